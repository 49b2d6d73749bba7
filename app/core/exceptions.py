"""
Custom Exceptions for ExamGate
==============================

Every error the service raises on purpose derives from ExamGateError so the
API layer can map it to a status code and a stable error body.

Usage:
    from app.core.exceptions import ExaminationNotScheduledError

    if examination.status != ExaminationStatus.SCHEDULED:
        raise ExaminationNotScheduledError(examination.id, examination.status)

Verification failures are deliberately absent: a bad scan is a verdict,
not an exception.
"""

from typing import Optional, Any, Dict


class ExamGateError(Exception):
    """Base exception for all ExamGate errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Client Input Errors (400-type)
# ============================================

class ClientInputError(ExamGateError):
    """Request cannot be served as asked; retrying will not help"""

    status_code = 400

    def __init__(self, message: str, code: str = "CLIENT_INPUT_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class ValidationError(ClientInputError):
    """Input validation failed"""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ExaminationNotScheduledError(ClientInputError):
    """Hall tickets can only be issued for scheduled examinations"""

    def __init__(self, examination_id: str, status: Optional[str] = None):
        super().__init__(
            "Examination must be in scheduled status to generate hall tickets",
            code="EXAMINATION_NOT_SCHEDULED",
            details={"examination_id": str(examination_id), "status": status},
        )


class NoClassesForExamError(ClientInputError):
    """Examination has no assigned classes matching the request"""

    def __init__(self, examination_id: str, class_id: Optional[str] = None):
        message = "No classes assigned to this examination"
        details = {"examination_id": str(examination_id)}
        if class_id:
            message = "Requested class is not assigned to this examination"
            details["class_id"] = str(class_id)
        super().__init__(message, code="NO_CLASSES_FOR_EXAM", details=details)


class NoEligibleStudentsError(ClientInputError):
    """No actively enrolled students in the requested scope"""

    def __init__(self, examination_id: str):
        super().__init__(
            "No active students found in the selected classes",
            code="NO_ELIGIBLE_STUDENTS",
            details={"examination_id": str(examination_id)},
        )


class InvalidStatusTransitionError(ClientInputError):
    """Hall ticket status may only move forward"""

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot move hall ticket from '{current}' to '{requested}'",
            code="INVALID_STATUS_TRANSITION",
            details={"current_status": current, "requested_status": requested},
        )
        self.status_code = 409


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(ExamGateError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class ExaminationNotFoundError(ResourceNotFoundError):
    """Examination not found for the tenant"""

    def __init__(self, examination_id: str):
        super().__init__("Examination", examination_id)


class HallTicketNotFoundError(ResourceNotFoundError):
    """Hall ticket not found"""

    def __init__(self, ticket_id: str):
        super().__init__("Hall Ticket", ticket_id)


class TemplateNotFoundError(ResourceNotFoundError):
    """Hall ticket template not found"""

    def __init__(self, template_id: str = "default"):
        super().__init__("Template", template_id)


# ============================================
# Persistence Errors
# ============================================

class PersistenceError(ExamGateError):
    """Storage unavailable or a write was rejected"""

    status_code = 503

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, code="PERSISTENCE_ERROR")
        if operation:
            self.details["operation"] = operation


class RollNumberConflictError(PersistenceError):
    """Roll number kept colliding with concurrently issued tickets"""

    def __init__(self, roll_number: str, attempts: int):
        super().__init__(f"Roll number '{roll_number}' still conflicting after {attempts} attempts")
        self.code = "ROLL_NUMBER_CONFLICT"
        self.status_code = 409
        self.details.update({"roll_number": roll_number, "attempts": attempts})


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: ExamGateError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
