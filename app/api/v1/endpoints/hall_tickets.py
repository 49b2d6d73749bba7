"""
Hall Ticket API Endpoints

Endpoints:
- POST   /examinations/{exam_id}/hall-tickets/generate - Issue hall tickets for an examination
- GET    /examinations/{exam_id}/hall-tickets - List issued hall tickets
- DELETE /examinations/{exam_id}/hall-tickets - Delete all hall tickets of an examination
- GET    /examinations/{exam_id}/hall-tickets/{ticket_id} - Get one hall ticket
- GET    /examinations/{exam_id}/hall-tickets/{ticket_id}/print-data - Data for the renderer
- PATCH  /examinations/{exam_id}/hall-tickets/{ticket_id}/status - Mark printed / downloaded
- DELETE /examinations/{exam_id}/hall-tickets/{ticket_id} - Delete one hall ticket
- POST   /hall-tickets/verify - Gate check-in of a scanned code
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from app.api.v1.dependencies import get_tenant_id
from app.core.database import get_db
from app.models.hall_ticket import HallTicketStatus
from app.modules.hallticket.repository import HallTicketView
from app.services.hall_ticket_service import hall_ticket_service
from app.schemas.hall_ticket import (
    GenerateHallTicketsRequest,
    GenerationReportResponse,
    HallTicketResponse,
    HallTicketListResponse,
    HallTicketStatusEnum,
    StatusUpdateRequest,
    DeleteResponse,
    VerifyRequest,
    VerificationVerdictResponse,
    HallTicketTemplateResponse,
    PrintDataResponse,
)

router = APIRouter(tags=["Hall Tickets"])


def _to_response(view: HallTicketView) -> HallTicketResponse:
    ticket = view.ticket
    return HallTicketResponse(
        id=str(ticket.id),
        examination_id=str(ticket.examination_id),
        student_id=str(ticket.student_id),
        roll_number=ticket.roll_number,
        qr_code_data=ticket.qr_code_data,
        status=HallTicketStatus(ticket.status).value,
        generated_at=ticket.generated_at,
        printed_at=ticket.printed_at,
        downloaded_at=ticket.downloaded_at,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
        student_name=view.student_name,
        admission_number=view.admission_number,
        student_photo=view.student_photo,
        class_name=view.class_name,
        section_name=view.section_name,
        examination_name=view.examination_name,
    )


@router.post(
    "/examinations/{exam_id}/hall-tickets/generate",
    response_model=GenerationReportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_hall_tickets(
    exam_id: uuid.UUID,
    request: Optional[GenerateHallTicketsRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Generate hall tickets for every actively enrolled student of a scheduled examination

    Students who already hold a ticket are skipped, so the call can be repeated
    after new enrollments. Per-student failures are reported, not raised.
    """
    request = request or GenerateHallTicketsRequest()
    report = await hall_ticket_service.generate_hall_tickets(
        db=db,
        tenant_id=tenant_id,
        examination_id=str(exam_id),
        class_id=str(request.class_id) if request.class_id else None,
        section_id=str(request.section_id) if request.section_id else None,
        roll_number_prefix=request.roll_number_prefix,
    )
    return GenerationReportResponse(**report.to_dict())


@router.get("/examinations/{exam_id}/hall-tickets", response_model=HallTicketListResponse)
async def list_hall_tickets(
    exam_id: uuid.UUID,
    class_id: Optional[uuid.UUID] = None,
    section_id: Optional[uuid.UUID] = None,
    status_filter: Optional[HallTicketStatusEnum] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """List hall tickets of an examination ordered by roll number"""
    views, total = await hall_ticket_service.list_hall_tickets(
        db=db,
        tenant_id=tenant_id,
        examination_id=str(exam_id),
        class_id=str(class_id) if class_id else None,
        section_id=str(section_id) if section_id else None,
        status=HallTicketStatus(status_filter.value) if status_filter else None,
        search=search,
        page=page,
        page_size=page_size,
    )
    return HallTicketListResponse(
        hall_tickets=[_to_response(v) for v in views],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.delete("/examinations/{exam_id}/hall-tickets", response_model=DeleteResponse)
async def delete_examination_hall_tickets(
    exam_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """Delete every hall ticket of an examination"""
    deleted = await hall_ticket_service.delete_by_examination(db, tenant_id, str(exam_id))
    return DeleteResponse(deleted=deleted)


@router.get("/examinations/{exam_id}/hall-tickets/{ticket_id}", response_model=HallTicketResponse)
async def get_hall_ticket(
    exam_id: uuid.UUID,
    ticket_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    view = await hall_ticket_service.get_hall_ticket(db, tenant_id, str(ticket_id), str(exam_id))
    return _to_response(view)


@router.get(
    "/examinations/{exam_id}/hall-tickets/{ticket_id}/print-data",
    response_model=PrintDataResponse,
)
async def get_print_data(
    exam_id: uuid.UUID,
    ticket_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Hall ticket and default template for the renderer

    A generated ticket is marked downloaded.
    """
    view, template = await hall_ticket_service.get_print_data(db, tenant_id, str(ticket_id), str(exam_id))
    return PrintDataResponse(
        hall_ticket=_to_response(view),
        template=HallTicketTemplateResponse.model_validate(template) if template else None,
    )


@router.patch(
    "/examinations/{exam_id}/hall-tickets/{ticket_id}/status",
    response_model=HallTicketResponse,
)
async def update_hall_ticket_status(
    exam_id: uuid.UUID,
    ticket_id: uuid.UUID,
    request: StatusUpdateRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """Move a hall ticket forward; going back to an earlier status is rejected with 409"""
    view = await hall_ticket_service.update_status(
        db, tenant_id, str(ticket_id), HallTicketStatus(request.status.value), str(exam_id)
    )
    return _to_response(view)


@router.delete(
    "/examinations/{exam_id}/hall-tickets/{ticket_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_hall_ticket(
    exam_id: uuid.UUID,
    ticket_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    await hall_ticket_service.delete_hall_ticket(db, tenant_id, str(ticket_id), str(exam_id))


@router.post("/hall-tickets/verify", response_model=VerificationVerdictResponse)
async def verify_hall_ticket(
    request: VerifyRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Verify a scanned hall ticket code at the examination gate

    Answers 200 for every code; an unreadable, unknown or tampered code comes
    back with valid=false and a reason. A storage failure answers 503 so the
    scan can be retried.
    """
    verdict = await hall_ticket_service.verify_hall_ticket(db, request.qr_code_data)
    return VerificationVerdictResponse(**verdict.to_dict())
