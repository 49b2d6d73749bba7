"""
Batch Issuance - generate hall tickets for every eligible student of an examination

Flow:
1. Check the examination is scheduled and has classes (fail before any write)
2. Resolve actively enrolled students, in class code / admission number order
3. Skip students who already hold a ticket for the examination
4. Build each ticket: verification code first, then the roll number
5. Write all tickets in one savepoint; on a constraint violation fall back to
   one savepoint per ticket, reseeding roll numbers that collided

Once the preconditions pass, `issue` always returns a GenerationReport.
Failures of individual students are counted there, not raised.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ExaminationNotScheduledError,
    NoEligibleStudentsError,
    PersistenceError,
    RollNumberConflictError,
    ValidationError,
)
from app.core.logging_config import logger as app_logger
from app.core.types import generate_uuid
from app.models.academic import ExaminationStatus
from app.models.hall_ticket import HallTicket, HallTicketStatus
from app.modules.hallticket.allocator import RollNumberAllocator
from app.modules.hallticket.codec import VerificationCodec
from app.modules.hallticket.eligibility import (
    EligibleStudent,
    load_examination,
    resolve_eligible_students,
    resolve_target_classes,
)
from app.modules.hallticket.repository import HallTicketRepository

logger = logging.getLogger(__name__)


@dataclass
class GenerationReport:
    """Outcome of one issuance run; generated + skipped + failed == total_students"""
    total_students: int = 0
    generated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def record_failure(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def to_dict(self) -> Dict:
        return {
            "total_students": self.total_students,
            "generated": self.generated,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": list(self.errors),
        }


@dataclass
class _PendingTicket:
    student: EligibleStudent
    ticket_id: str
    class_prefix: str
    roll_number: str
    qr_code_data: str


ROLL_PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,30}$")


def build_class_prefix(base: str, class_code: str) -> str:
    """Roll number prefix for a class, e.g. 2026-10A-"""
    return f"{base}-{class_code}-"


class HallTicketIssuer:
    """Runs one issuance batch against a session"""

    def __init__(
        self,
        db: AsyncSession,
        codec: VerificationCodec,
        chunk_size: int = 100,
        max_retries: int = 3,
        page_size: int = 500,
    ):
        self.db = db
        self.codec = codec
        self.chunk_size = chunk_size
        self.max_retries = max_retries
        self.page_size = page_size
        self.repository = HallTicketRepository(db)

    async def issue(
        self,
        examination_id: str,
        tenant_id: str,
        class_id: Optional[str] = None,
        section_id: Optional[str] = None,
        roll_prefix: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GenerationReport:
        """
        Issue hall tickets for an examination.

        Args:
            examination_id: Examination to issue for
            tenant_id: Owning tenant
            class_id: Only this class (must be assigned to the examination)
            section_id: Only this section
            roll_prefix: Replaces the year in roll numbers ("MID-10A-001")
            now: Issue time, defaults to the current UTC time

        Returns:
            GenerationReport

        Raises:
            ValidationError: bad roll_prefix
            ExaminationNotFoundError, ExaminationNotScheduledError,
            NoClassesForExamError, NoEligibleStudentsError: before any write
            PersistenceError: storage failed as a whole
        """
        if roll_prefix is not None and not ROLL_PREFIX_PATTERN.fullmatch(roll_prefix):
            raise ValidationError(
                "Roll number prefix may only contain letters, digits, '_' and '-'",
                field="roll_number_prefix",
            )

        started = time.perf_counter()
        now = now or datetime.utcnow()

        examination = await load_examination(self.db, tenant_id, examination_id)
        if ExaminationStatus(examination.status) != ExaminationStatus.SCHEDULED:
            raise ExaminationNotScheduledError(examination_id, ExaminationStatus(examination.status).value)

        class_ids = await resolve_target_classes(self.db, examination_id, class_id)
        students = await resolve_eligible_students(
            self.db, tenant_id, class_ids, section_id, page_size=self.page_size
        )
        if not students:
            raise NoEligibleStudentsError(examination_id)

        report = GenerationReport(total_students=len(students))
        already_ticketed = await self.repository.get_ticketed_student_ids(tenant_id, examination_id)

        base = roll_prefix or str(now.year)
        allocator = RollNumberAllocator(self.db, tenant_id, examination_id)
        pending: List[_PendingTicket] = []

        for student in students:
            if student.student_id in already_ticketed:
                report.skipped += 1
                continue

            ticket_id = generate_uuid()
            try:
                code = self.codec.encode(ticket_id, student.student_id, examination_id, tenant_id=tenant_id)
            except (ValueError, TypeError) as e:
                logger.warning(f"[HallTicketIssuer] Verification code failed for {student.admission_number}: {e}")
                report.record_failure(f"Verification code for {student.admission_number}: {e}")
                continue

            class_prefix = build_class_prefix(base, student.class_code)
            pending.append(_PendingTicket(
                student=student,
                ticket_id=ticket_id,
                class_prefix=class_prefix,
                roll_number=await allocator.next_roll_number(class_prefix),
                qr_code_data=code,
            ))

        if pending:
            await self._write(pending, tenant_id, examination_id, allocator, report, now)

        duration_ms = (time.perf_counter() - started) * 1000
        app_logger.log_issuance(
            examination_id,
            total=report.total_students,
            generated=report.generated,
            skipped=report.skipped,
            failed=report.failed,
        )
        app_logger.log_performance("hall_ticket_issuance", duration_ms, threshold_ms=5000)
        return report

    def _build(self, item: _PendingTicket, tenant_id: str, examination_id: str, now: datetime) -> HallTicket:
        return HallTicket(
            id=item.ticket_id,
            tenant_id=tenant_id,
            examination_id=examination_id,
            student_id=item.student.student_id,
            roll_number=item.roll_number,
            qr_code_data=item.qr_code_data,
            status=HallTicketStatus.GENERATED,
            generated_at=now,
            created_at=now,
            updated_at=now,
        )

    async def _write(
        self,
        pending: List[_PendingTicket],
        tenant_id: str,
        examination_id: str,
        allocator: RollNumberAllocator,
        report: GenerationReport,
        now: datetime,
    ) -> None:
        try:
            try:
                await self.repository.insert_batch(
                    [self._build(p, tenant_id, examination_id, now) for p in pending],
                    chunk_size=self.chunk_size,
                )
                report.generated += len(pending)
            except IntegrityError as e:
                logger.warning(
                    f"[HallTicketIssuer] Bulk insert for exam {examination_id} hit a constraint "
                    f"({e.orig}); inserting one at a time"
                )
                for item in pending:
                    await self._insert_with_retry(item, tenant_id, examination_id, allocator, report, now)

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Failed to save hall tickets: {e}", operation="issue")

    async def _insert_with_retry(
        self,
        item: _PendingTicket,
        tenant_id: str,
        examination_id: str,
        allocator: RollNumberAllocator,
        report: GenerationReport,
        now: datetime,
    ) -> None:
        attempts = 0
        while True:
            attempts += 1
            try:
                await self.repository.insert_one(self._build(item, tenant_id, examination_id, now))
                report.generated += 1
                return
            except IntegrityError as e:
                if await self.repository.student_has_ticket(tenant_id, examination_id, item.student.student_id):
                    # Issued by a concurrent batch after we looked
                    report.skipped += 1
                    return

                if not await self.repository.roll_number_taken(tenant_id, examination_id, item.roll_number):
                    report.record_failure(f"Hall ticket for {item.student.admission_number}: {e.orig}")
                    return

                if attempts > self.max_retries:
                    error = RollNumberConflictError(item.roll_number, attempts)
                    logger.error(f"[HallTicketIssuer] {error.message} ({item.student.admission_number})")
                    report.record_failure(f"Hall ticket for {item.student.admission_number}: {error.message}")
                    return

                await allocator.reseed(item.class_prefix)
                previous = item.roll_number
                item.roll_number = await allocator.next_roll_number(item.class_prefix)
                logger.info(
                    f"[HallTicketIssuer] Roll number {previous} taken, retrying "
                    f"{item.student.admission_number} as {item.roll_number}"
                )
