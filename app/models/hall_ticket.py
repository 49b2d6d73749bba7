"""
Hall Ticket Models - examination admission credentials and their print templates

A hall ticket binds one student to one examination. Its verification code is
what gets printed as a scannable symbol and re-checked at the examination gate.
"""

from sqlalchemy import Column, String, DateTime, Boolean, Text, ForeignKey, Index, UniqueConstraint, Enum as SQLEnum
from datetime import datetime
from typing import Optional
import enum

from app.core.database import Base
from app.core.exceptions import InvalidStatusTransitionError
from app.core.types import GUID, generate_uuid


class HallTicketStatus(str, enum.Enum):
    """Hall ticket status; only moves forward"""
    GENERATED = "generated"
    PRINTED = "printed"
    DOWNLOADED = "downloaded"

    def can_transition_to(self, target: "HallTicketStatus") -> bool:
        return target in ALLOWED_STATUS_TRANSITIONS[self]


ALLOWED_STATUS_TRANSITIONS = {
    HallTicketStatus.GENERATED: frozenset({HallTicketStatus.PRINTED, HallTicketStatus.DOWNLOADED}),
    HallTicketStatus.PRINTED: frozenset(),
    HallTicketStatus.DOWNLOADED: frozenset(),
}


class HallTicket(Base):
    """
    Hall ticket issued to a student for an examination.

    Uniqueness is enforced here, not in application code:
    - one ticket per (tenant, examination, student)
    - one roll number per (tenant, examination)
    """
    __tablename__ = "hall_tickets"

    __table_args__ = (
        UniqueConstraint('tenant_id', 'examination_id', 'student_id', name='uq_hall_ticket_exam_student'),
        UniqueConstraint('tenant_id', 'examination_id', 'roll_number', name='uq_hall_ticket_exam_roll_number'),
        Index('ix_hall_tickets_exam_status', 'tenant_id', 'examination_id', 'status'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    tenant_id = Column(GUID, nullable=False, index=True)
    examination_id = Column(GUID, ForeignKey("examinations.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)

    roll_number = Column(String(50), nullable=False)
    qr_code_data = Column(String(500), nullable=False)
    status = Column(
        SQLEnum(HallTicketStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        nullable=False,
        default=HallTicketStatus.GENERATED,
    )

    generated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    printed_at = Column(DateTime, nullable=True)
    downloaded_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def transition_to(self, target: HallTicketStatus, at: Optional[datetime] = None) -> bool:
        """
        Move to `target`, stamping printed_at/downloaded_at.

        Returns False when already in `target` (nothing to do) and raises
        InvalidStatusTransitionError for any backward or sideways move.
        """
        current = HallTicketStatus(self.status)
        if current == target:
            return False
        if not current.can_transition_to(target):
            raise InvalidStatusTransitionError(current.value, target.value)

        at = at or datetime.utcnow()
        self.status = target
        if target == HallTicketStatus.PRINTED:
            self.printed_at = at
        elif target == HallTicketStatus.DOWNLOADED:
            self.downloaded_at = at
        self.updated_at = at
        return True

    def __repr__(self):
        return f"<HallTicket {self.roll_number} ({self.status})>"


class HallTicketTemplate(Base):
    """School branding and instructions handed to the hall ticket renderer"""
    __tablename__ = "hall_ticket_templates"

    __table_args__ = (
        Index('ix_hall_ticket_templates_default', 'tenant_id', 'is_default'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    tenant_id = Column(GUID, nullable=False, index=True)

    name = Column(String(100), nullable=False)
    header_logo_url = Column(String(500), nullable=True)
    school_name = Column(String(200), nullable=True)
    school_address = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_by = Column(GUID, nullable=True)
    updated_by = Column(GUID, nullable=True)

    def __repr__(self):
        return f"<HallTicketTemplate {self.name}>"
