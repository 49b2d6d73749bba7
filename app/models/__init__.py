from app.models.academic import (
    Examination,
    ExaminationClass,
    ExaminationStatus,
    SchoolClass,
    Section,
    Student,
    StudentEnrollment,
    EnrollmentStatus,
)
from app.models.hall_ticket import (
    HallTicket,
    HallTicketTemplate,
    HallTicketStatus,
    ALLOWED_STATUS_TRANSITIONS,
)

__all__ = [
    "Examination",
    "ExaminationClass",
    "ExaminationStatus",
    "SchoolClass",
    "Section",
    "Student",
    "StudentEnrollment",
    "EnrollmentStatus",
    "HallTicket",
    "HallTicketTemplate",
    "HallTicketStatus",
    "ALLOWED_STATUS_TRANSITIONS",
]
