"""
Hall Ticket Template Endpoints - school branding and instructions for printed hall tickets

Endpoints:
- POST   /hall-ticket-templates - Create a template
- GET    /hall-ticket-templates - List templates (default first)
- GET    /hall-ticket-templates/default - Get the default template
- GET    /hall-ticket-templates/{template_id} - Get a template
- PUT    /hall-ticket-templates/{template_id} - Update a template
- DELETE /hall-ticket-templates/{template_id} - Delete a template
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import uuid

from app.api.v1.dependencies import get_actor_id, get_tenant_id
from app.core.database import get_db
from app.services.hall_ticket_service import hall_ticket_service
from app.schemas.hall_ticket import (
    HallTicketTemplateCreate,
    HallTicketTemplateUpdate,
    HallTicketTemplateResponse,
)

router = APIRouter(prefix="/hall-ticket-templates", tags=["Hall Ticket Templates"])


@router.post("", response_model=HallTicketTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    template_data: HallTicketTemplateCreate,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db)
):
    """Create a template; marking it default clears the previous default"""
    template = await hall_ticket_service.create_template(db, tenant_id, template_data, created_by=actor_id)
    return HallTicketTemplateResponse.model_validate(template)


@router.get("", response_model=List[HallTicketTemplateResponse])
async def list_templates(
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    templates = await hall_ticket_service.list_templates(db, tenant_id)
    return [HallTicketTemplateResponse.model_validate(t) for t in templates]


@router.get("/default", response_model=HallTicketTemplateResponse)
async def get_default_template(
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    """The default template, or the oldest one when none is marked default"""
    template = await hall_ticket_service.get_default_template(db, tenant_id)
    return HallTicketTemplateResponse.model_validate(template)


@router.get("/{template_id}", response_model=HallTicketTemplateResponse)
async def get_template(
    template_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    template = await hall_ticket_service.get_template(db, tenant_id, str(template_id))
    return HallTicketTemplateResponse.model_validate(template)


@router.put("/{template_id}", response_model=HallTicketTemplateResponse)
async def update_template(
    template_id: uuid.UUID,
    template_data: HallTicketTemplateUpdate,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db)
):
    template = await hall_ticket_service.update_template(
        db, tenant_id, str(template_id), template_data, updated_by=actor_id
    )
    return HallTicketTemplateResponse.model_validate(template)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db)
):
    await hall_ticket_service.delete_template(db, tenant_id, str(template_id))
