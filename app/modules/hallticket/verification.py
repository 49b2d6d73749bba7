"""
Verification Service - gate check-in of a scanned hall ticket code

A scan never raises for a bad code: malformed input, unknown tickets and
tampered codes all come back as an invalid verdict with a reason.

Storage failures are not verdicts: a PersistenceError from the ticket lookup
is logged and re-raised (HTTP 503) so the scan can be retried.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PersistenceError
from app.core.logging_config import logger as app_logger
from app.modules.hallticket.codec import VerificationCodec
from app.modules.hallticket.repository import HallTicketRepository, HallTicketView

logger = logging.getLogger(__name__)


class VerificationReason(str, enum.Enum):
    MALFORMED = "malformed"
    NOT_FOUND = "not_found"
    HASH_MISMATCH = "hash_mismatch"


_MESSAGES = {
    None: "Hall ticket is valid",
    VerificationReason.MALFORMED: "Invalid QR code format",
    VerificationReason.NOT_FOUND: "Hall ticket not found",
    VerificationReason.HASH_MISMATCH: "Hall ticket verification failed",
}


@dataclass
class VerificationVerdict:
    """Result of a check-in; display fields are only set for valid tickets"""
    valid: bool
    reason: Optional[VerificationReason] = None
    message: str = ""
    hall_ticket_id: Optional[str] = None
    student_name: Optional[str] = None
    admission_number: Optional[str] = None
    roll_number: Optional[str] = None
    examination_name: Optional[str] = None
    class_name: Optional[str] = None

    @classmethod
    def invalid(cls, reason: VerificationReason) -> "VerificationVerdict":
        return cls(valid=False, reason=reason, message=_MESSAGES[reason])

    @classmethod
    def accepted(cls, view: HallTicketView) -> "VerificationVerdict":
        return cls(
            valid=True,
            message=_MESSAGES[None],
            hall_ticket_id=str(view.ticket.id),
            student_name=view.student_name,
            admission_number=view.admission_number,
            roll_number=view.ticket.roll_number,
            examination_name=view.examination_name,
            class_name=view.class_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "hall_ticket_id": self.hall_ticket_id,
            "student_name": self.student_name,
            "admission_number": self.admission_number,
            "roll_number": self.roll_number,
            "examination_name": self.examination_name,
            "class_name": self.class_name,
        }


class HallTicketVerifier:
    """Checks scanned codes against stored tickets"""

    def __init__(self, db: AsyncSession, codec: VerificationCodec):
        self.codec = codec
        self.repository = HallTicketRepository(db)

    async def check_in(self, code: str) -> VerificationVerdict:
        """
        Verify a scanned code.

        The ticket is located by the short ticket id in the code and the code
        is then re-verified against that ticket's full identifiers.
        """
        payload, problem = self.codec.decode(code)
        if payload is None:
            logger.debug(f"[HallTicketVerifier] Malformed code: {problem}")
            app_logger.log_verification(False, VerificationReason.MALFORMED.value)
            return VerificationVerdict.invalid(VerificationReason.MALFORMED)

        try:
            view, matches = await self.repository.find_by_short_id(payload.ticket_short)
        except PersistenceError as e:
            logger.warning(f"[HallTicketVerifier] Lookup of {payload.ticket_short} failed, no verdict: {e.message}")
            raise

        if view is None:
            app_logger.log_verification(False, VerificationReason.NOT_FOUND.value)
            return VerificationVerdict.invalid(VerificationReason.NOT_FOUND)
        if matches > 1:
            logger.warning(
                f"[HallTicketVerifier] Short id {payload.ticket_short} matches more than one ticket; "
                f"checking the earliest ({view.ticket.id})"
            )

        ticket = view.ticket
        result = self.codec.check(
            code, ticket.id, ticket.student_id, ticket.examination_id, tenant_id=ticket.tenant_id
        )
        if not result:
            logger.debug(f"[HallTicketVerifier] Ticket {ticket.id} rejected: {result.reason}")
            app_logger.log_verification(False, VerificationReason.HASH_MISMATCH.value, ticket_id=str(ticket.id))
            return VerificationVerdict.invalid(VerificationReason.HASH_MISMATCH)

        app_logger.log_verification(True, ticket_id=str(ticket.id))
        return VerificationVerdict.accepted(view)
