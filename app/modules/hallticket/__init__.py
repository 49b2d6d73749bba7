"""
Hall ticket issuance and verification

- codec: verification code printed on the ticket
- allocator: per-class roll numbers
- eligibility: who gets a ticket
- issuance: batch generation
- verification: gate check-in
"""

from app.modules.hallticket.codec import VerificationCodec, VerificationPayload, MalformedCodeError
from app.modules.hallticket.allocator import RollNumberAllocator, format_roll_number
from app.modules.hallticket.issuance import GenerationReport, HallTicketIssuer
from app.modules.hallticket.verification import (
    HallTicketVerifier,
    VerificationReason,
    VerificationVerdict,
)
