"""
Hall Ticket Service - Business logic for hall tickets and their templates

Handles:
- Batch issuance and gate check-in (delegated to app.modules.hallticket)
- Listing, status updates and deletion of issued tickets
- Print data for the external renderer
- Hall ticket template management
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime
from typing import Optional, List, Tuple
import logging

from app.core.config import settings
from app.core.exceptions import (
    HallTicketNotFoundError,
    PersistenceError,
    TemplateNotFoundError,
)
from app.models.hall_ticket import HallTicketStatus, HallTicketTemplate
from app.modules.hallticket.codec import VerificationCodec
from app.modules.hallticket.issuance import GenerationReport, HallTicketIssuer
from app.modules.hallticket.repository import HallTicketRepository, HallTicketView
from app.modules.hallticket.verification import HallTicketVerifier, VerificationVerdict
from app.schemas.hall_ticket import HallTicketTemplateCreate, HallTicketTemplateUpdate

logger = logging.getLogger(__name__)


async def _commit(db: AsyncSession, operation: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError(f"Failed to save changes: {e}", operation=operation)


class HallTicketService:
    """Service for issuing, verifying and managing hall tickets"""

    def __init__(self, codec: Optional[VerificationCodec] = None):
        self._codec = codec

    @property
    def codec(self) -> VerificationCodec:
        if self._codec is None:
            self._codec = VerificationCodec(
                settings.HALL_TICKET_SECRET,
                tenant_scoped=settings.HALL_TICKET_TENANT_SCOPED_SECRETS,
            )
        return self._codec

    # ==================== ISSUANCE ====================

    async def generate_hall_tickets(
        self,
        db: AsyncSession,
        tenant_id: str,
        examination_id: str,
        class_id: Optional[str] = None,
        section_id: Optional[str] = None,
        roll_number_prefix: Optional[str] = None,
    ) -> GenerationReport:
        """
        Generate hall tickets for all eligible students of an examination

        Args:
            db: Database session
            tenant_id: Tenant issuing the tickets
            examination_id: Scheduled examination
            class_id: Restrict to one assigned class
            section_id: Restrict to one section
            roll_number_prefix: Custom roll number prefix instead of the year

        Returns:
            GenerationReport with generated/skipped/failed counts
        """
        issuer = HallTicketIssuer(
            db,
            self.codec,
            chunk_size=settings.HALL_TICKET_INSERT_CHUNK_SIZE,
            max_retries=settings.HALL_TICKET_MAX_INSERT_RETRIES,
            page_size=settings.ELIGIBILITY_PAGE_SIZE,
        )
        return await issuer.issue(
            examination_id,
            tenant_id,
            class_id=class_id,
            section_id=section_id,
            roll_prefix=roll_number_prefix,
        )

    # ==================== VERIFICATION ====================

    async def verify_hall_ticket(self, db: AsyncSession, code: str) -> VerificationVerdict:
        """Check a scanned code; works across tenants and never raises for bad input"""
        return await HallTicketVerifier(db, self.codec).check_in(code)

    # ==================== TICKETS ====================

    async def list_hall_tickets(
        self,
        db: AsyncSession,
        tenant_id: str,
        examination_id: str,
        class_id: Optional[str] = None,
        section_id: Optional[str] = None,
        status: Optional[HallTicketStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[HallTicketView], int]:
        page = max(page, 1)
        return await HallTicketRepository(db).list(
            tenant_id,
            examination_id,
            class_id=class_id,
            section_id=section_id,
            status=status,
            search=search,
            limit=page_size,
            offset=(page - 1) * page_size,
        )

    async def get_hall_ticket(
        self,
        db: AsyncSession,
        tenant_id: str,
        ticket_id: str,
        examination_id: Optional[str] = None,
    ) -> HallTicketView:
        """Ticket with display fields; optionally required to belong to `examination_id`"""
        view = await HallTicketRepository(db).get_view(tenant_id, ticket_id)
        if examination_id is not None and str(view.ticket.examination_id) != str(examination_id):
            raise HallTicketNotFoundError(ticket_id)
        return view

    async def update_status(
        self,
        db: AsyncSession,
        tenant_id: str,
        ticket_id: str,
        status: HallTicketStatus,
        examination_id: Optional[str] = None,
    ) -> HallTicketView:
        """
        Move a ticket forward (generated -> printed / downloaded).

        Setting the status a ticket already has changes nothing.
        """
        view = await self.get_hall_ticket(db, tenant_id, ticket_id, examination_id)
        if view.ticket.transition_to(HallTicketStatus(status)):
            await _commit(db, "update_status")
            logger.info(f"[HallTicketService] Ticket {ticket_id} marked {HallTicketStatus(status).value}")
        return view

    async def delete_hall_ticket(
        self,
        db: AsyncSession,
        tenant_id: str,
        ticket_id: str,
        examination_id: Optional[str] = None,
    ) -> None:
        if examination_id is not None:
            await self.get_hall_ticket(db, tenant_id, ticket_id, examination_id)
        await HallTicketRepository(db).delete(tenant_id, ticket_id)
        await _commit(db, "delete_hall_ticket")
        logger.info(f"[HallTicketService] Deleted hall ticket {ticket_id}")

    async def delete_by_examination(self, db: AsyncSession, tenant_id: str, examination_id: str) -> int:
        """Remove every ticket of an examination; returns how many were deleted"""
        deleted = await HallTicketRepository(db).delete_by_examination(tenant_id, examination_id)
        await _commit(db, "delete_by_examination")
        logger.info(f"[HallTicketService] Deleted {deleted} hall tickets for exam {examination_id}")
        return deleted

    async def get_print_data(
        self,
        db: AsyncSession,
        tenant_id: str,
        ticket_id: str,
        examination_id: Optional[str] = None,
    ) -> Tuple[HallTicketView, Optional[HallTicketTemplate]]:
        """
        Ticket and default template for the renderer.

        Handing out print data counts as a download: a freshly generated
        ticket moves to `downloaded`.
        """
        view = await self.get_hall_ticket(db, tenant_id, ticket_id, examination_id)
        if HallTicketStatus(view.ticket.status) == HallTicketStatus.GENERATED:
            view.ticket.transition_to(HallTicketStatus.DOWNLOADED)
            await _commit(db, "get_print_data")

        try:
            template = await self.get_default_template(db, tenant_id)
        except TemplateNotFoundError:
            template = None
        return view, template

    # ==================== TEMPLATES ====================

    async def _clear_default(self, db: AsyncSession, tenant_id: str, keep_id: Optional[str] = None) -> None:
        query = (
            update(HallTicketTemplate)
            .where(HallTicketTemplate.tenant_id == tenant_id, HallTicketTemplate.is_default.is_(True))
            .values(is_default=False, updated_at=datetime.utcnow())
        )
        if keep_id is not None:
            query = query.where(HallTicketTemplate.id != keep_id)
        await db.execute(query)

    async def create_template(
        self,
        db: AsyncSession,
        tenant_id: str,
        template_data: HallTicketTemplateCreate,
        created_by: Optional[str] = None,
    ) -> HallTicketTemplate:
        """Create a template; a new default replaces the previous one"""
        try:
            if template_data.is_default:
                await self._clear_default(db, tenant_id)

            template = HallTicketTemplate(
                tenant_id=tenant_id,
                name=template_data.name,
                header_logo_url=template_data.header_logo_url,
                school_name=template_data.school_name,
                school_address=template_data.school_address,
                instructions=template_data.instructions,
                is_default=template_data.is_default,
                created_by=created_by,
                updated_by=created_by,
            )
            db.add(template)
            await db.flush()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError(f"Failed to create template: {e}", operation="create_template")

        await _commit(db, "create_template")
        await db.refresh(template)
        logger.info(f"[HallTicketService] Created template '{template.name}' for tenant {tenant_id}")
        return template

    async def get_template(self, db: AsyncSession, tenant_id: str, template_id: str) -> HallTicketTemplate:
        try:
            result = await db.execute(
                select(HallTicketTemplate).where(
                    HallTicketTemplate.tenant_id == tenant_id,
                    HallTicketTemplate.id == template_id,
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read template: {e}", operation="get_template")
        template = result.scalar_one_or_none()
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    async def list_templates(self, db: AsyncSession, tenant_id: str) -> List[HallTicketTemplate]:
        try:
            result = await db.execute(
                select(HallTicketTemplate)
                .where(HallTicketTemplate.tenant_id == tenant_id)
                .order_by(HallTicketTemplate.is_default.desc(), HallTicketTemplate.name.asc())
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list templates: {e}", operation="list_templates")
        return list(result.scalars().all())

    async def update_template(
        self,
        db: AsyncSession,
        tenant_id: str,
        template_id: str,
        template_data: HallTicketTemplateUpdate,
        updated_by: Optional[str] = None,
    ) -> HallTicketTemplate:
        template = await self.get_template(db, tenant_id, template_id)
        changes = template_data.model_dump(exclude_unset=True)

        try:
            if changes.get("is_default"):
                await self._clear_default(db, tenant_id, keep_id=template.id)
            for key, value in changes.items():
                setattr(template, key, value)
            template.updated_by = updated_by
            template.updated_at = datetime.utcnow()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError(f"Failed to update template: {e}", operation="update_template")

        await _commit(db, "update_template")
        return template

    async def delete_template(self, db: AsyncSession, tenant_id: str, template_id: str) -> None:
        template = await self.get_template(db, tenant_id, template_id)
        await db.delete(template)
        await _commit(db, "delete_template")

    async def get_default_template(self, db: AsyncSession, tenant_id: str) -> HallTicketTemplate:
        """The tenant's default template, else its oldest one"""
        try:
            result = await db.execute(
                select(HallTicketTemplate)
                .where(HallTicketTemplate.tenant_id == tenant_id)
                .order_by(HallTicketTemplate.is_default.desc(), HallTicketTemplate.created_at.asc())
                .limit(1)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read templates: {e}", operation="get_default_template")
        template = result.scalar_one_or_none()
        if template is None:
            raise TemplateNotFoundError()
        return template


# Singleton instance
hall_ticket_service = HallTicketService()
