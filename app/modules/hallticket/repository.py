"""
Hall Ticket Repository - persistence for hall tickets

All SQLAlchemy failures leave this module as PersistenceError; callers never
see driver exceptions except IntegrityError from `insert_batch`/`insert_one`,
which the issuer needs to tell constraint violations apart.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import select, delete, func, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.exceptions import HallTicketNotFoundError, PersistenceError
from app.models.academic import Examination, SchoolClass, Section, Student, StudentEnrollment, EnrollmentStatus
from app.models.hall_ticket import HallTicket, HallTicketStatus

logger = logging.getLogger(__name__)


@dataclass
class HallTicketView:
    """A hall ticket with the display fields joined in"""
    ticket: HallTicket
    student_name: str = ""
    admission_number: str = ""
    student_photo: Optional[str] = None
    class_name: str = ""
    section_name: str = ""
    examination_name: str = ""


def _chunks(items: List[HallTicket], size: int) -> Iterable[List[HallTicket]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class HallTicketRepository:
    """Queries against the hall_tickets table"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== READS ====================

    async def get_ticketed_student_ids(self, tenant_id: str, examination_id: str) -> Set[str]:
        try:
            result = await self.db.execute(
                select(HallTicket.student_id).where(
                    HallTicket.tenant_id == tenant_id,
                    HallTicket.examination_id == examination_id,
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read existing hall tickets: {e}", operation="get_ticketed_student_ids")
        return {str(s) for s in result.scalars().all()}

    async def student_has_ticket(self, tenant_id: str, examination_id: str, student_id: str) -> bool:
        try:
            result = await self.db.execute(
                select(func.count(HallTicket.id)).where(
                    HallTicket.tenant_id == tenant_id,
                    HallTicket.examination_id == examination_id,
                    HallTicket.student_id == student_id,
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read hall ticket: {e}", operation="student_has_ticket")
        return (result.scalar() or 0) > 0

    async def roll_number_taken(self, tenant_id: str, examination_id: str, roll_number: str) -> bool:
        try:
            result = await self.db.execute(
                select(func.count(HallTicket.id)).where(
                    HallTicket.tenant_id == tenant_id,
                    HallTicket.examination_id == examination_id,
                    HallTicket.roll_number == roll_number,
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read hall ticket: {e}", operation="roll_number_taken")
        return (result.scalar() or 0) > 0

    async def get(self, tenant_id: str, ticket_id: str) -> HallTicket:
        try:
            result = await self.db.execute(
                select(HallTicket).where(HallTicket.tenant_id == tenant_id, HallTicket.id == ticket_id)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read hall ticket: {e}", operation="get")
        ticket = result.scalar_one_or_none()
        if ticket is None:
            raise HallTicketNotFoundError(ticket_id)
        return ticket

    def _view_query(self):
        # Class and section come from one active enrollment per ticket: the
        # lowest class code, matching the class issuance keeps for students
        # enrolled twice
        enrollment = aliased(StudentEnrollment)
        enrollment_class = aliased(SchoolClass)
        first_enrollment_id = (
            select(enrollment.id)
            .join(enrollment_class, enrollment.class_id == enrollment_class.id)
            .where(
                enrollment.tenant_id == HallTicket.tenant_id,
                enrollment.student_id == HallTicket.student_id,
                enrollment.status == EnrollmentStatus.ACTIVE,
            )
            .order_by(enrollment_class.code, enrollment.id)
            .limit(1)
            .correlate(HallTicket)
            .scalar_subquery()
        )
        return (
            select(
                HallTicket,
                Student.first_name,
                Student.last_name,
                Student.admission_number,
                Student.photo_url,
                SchoolClass.name,
                Section.name,
                Examination.name,
            )
            .outerjoin(Student, HallTicket.student_id == Student.id)
            .outerjoin(StudentEnrollment, StudentEnrollment.id == first_enrollment_id)
            .outerjoin(SchoolClass, StudentEnrollment.class_id == SchoolClass.id)
            .outerjoin(Section, StudentEnrollment.section_id == Section.id)
            .outerjoin(Examination, HallTicket.examination_id == Examination.id)
        )

    @staticmethod
    def _to_view(row) -> HallTicketView:
        ticket, first_name, last_name, admission_number, photo, class_name, section_name, exam_name = row
        return HallTicketView(
            ticket=ticket,
            student_name=f"{first_name or ''} {last_name or ''}".strip(),
            admission_number=admission_number or "",
            student_photo=photo,
            class_name=class_name or "",
            section_name=section_name or "",
            examination_name=exam_name or "",
        )

    async def get_view(self, tenant_id: str, ticket_id: str) -> HallTicketView:
        query = self._view_query().where(HallTicket.tenant_id == tenant_id, HallTicket.id == ticket_id).limit(1)
        try:
            row = (await self.db.execute(query)).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read hall ticket: {e}", operation="get_view")
        if row is None:
            raise HallTicketNotFoundError(ticket_id)
        return self._to_view(row)

    async def find_by_short_id(self, ticket_short: str) -> Tuple[Optional[HallTicketView], int]:
        """
        Ticket whose id starts with `ticket_short`, across tenants.

        Short ids are not unique. The earliest created match wins (ties by id)
        and the second value reports how many distinct tickets matched, capped at 2.
        """
        pattern = f"{ticket_short.lower()}%"
        try:
            ids = (await self.db.execute(
                select(HallTicket.id)
                .where(HallTicket.id.like(pattern))
                .order_by(HallTicket.created_at.asc(), HallTicket.id.asc())
                .limit(2)
            )).scalars().all()
            if not ids:
                return None, 0
            row = (await self.db.execute(
                self._view_query().where(HallTicket.id == ids[0]).limit(1)
            )).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up hall ticket: {e}", operation="find_by_short_id")
        return (self._to_view(row) if row else None), len(ids)

    async def list(
        self,
        tenant_id: str,
        examination_id: str,
        class_id: Optional[str] = None,
        section_id: Optional[str] = None,
        status: Optional[HallTicketStatus] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[HallTicketView], int]:
        conditions = [
            HallTicket.tenant_id == tenant_id,
            HallTicket.examination_id == examination_id,
        ]
        if class_id:
            conditions.append(StudentEnrollment.class_id == class_id)
        if section_id:
            conditions.append(StudentEnrollment.section_id == section_id)
        if status:
            conditions.append(HallTicket.status == status)
        if search:
            search_term = f"%{search}%"
            conditions.append(
                or_(
                    (Student.first_name + " " + Student.last_name).ilike(search_term),
                    HallTicket.roll_number.ilike(search_term),
                )
            )

        query = self._view_query().where(and_(*conditions))
        count_query = select(func.count()).select_from(query.with_only_columns(HallTicket.id).subquery())

        try:
            total = (await self.db.execute(count_query)).scalar() or 0
            rows = (await self.db.execute(
                query.order_by(HallTicket.roll_number.asc()).offset(offset).limit(limit)
            )).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list hall tickets: {e}", operation="list")

        return [self._to_view(r) for r in rows], total

    # ==================== WRITES ====================

    async def insert_batch(self, tickets: List[HallTicket], chunk_size: int = 100) -> None:
        """
        Insert all tickets inside one savepoint, `chunk_size` rows per flush.

        On IntegrityError nothing from the batch remains and the error is re-raised.
        """
        async with self.db.begin_nested():
            for chunk in _chunks(tickets, chunk_size):
                self.db.add_all(chunk)
                await self.db.flush()

    async def insert_one(self, ticket: HallTicket) -> None:
        """Insert a single ticket in its own savepoint; re-raises IntegrityError"""
        async with self.db.begin_nested():
            self.db.add(ticket)
            await self.db.flush()

    async def delete(self, tenant_id: str, ticket_id: str) -> None:
        try:
            result = await self.db.execute(
                delete(HallTicket).where(HallTicket.tenant_id == tenant_id, HallTicket.id == ticket_id)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete hall ticket: {e}", operation="delete")
        if result.rowcount == 0:
            raise HallTicketNotFoundError(ticket_id)

    async def delete_by_examination(self, tenant_id: str, examination_id: str) -> int:
        try:
            result = await self.db.execute(
                delete(HallTicket).where(
                    HallTicket.tenant_id == tenant_id,
                    HallTicket.examination_id == examination_id,
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete hall tickets: {e}", operation="delete_by_examination")
        return result.rowcount or 0


