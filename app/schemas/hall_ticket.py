"""
Hall Ticket Schemas - Request/Response models for hall ticket issuance and check-in
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum
import uuid


# ============== Enums ==============

class HallTicketStatusEnum(str, Enum):
    GENERATED = "generated"
    PRINTED = "printed"
    DOWNLOADED = "downloaded"


class VerificationReasonEnum(str, Enum):
    MALFORMED = "malformed"
    NOT_FOUND = "not_found"
    HASH_MISMATCH = "hash_mismatch"


# ============== Issuance ==============

class GenerateHallTicketsRequest(BaseModel):
    """Schema for generating hall tickets for an examination"""
    class_id: Optional[uuid.UUID] = Field(None, description="Only issue for this class")
    section_id: Optional[uuid.UUID] = Field(None, description="Only issue for this section")
    roll_number_prefix: Optional[str] = Field(
        None,
        min_length=1,
        max_length=30,
        pattern=r"^[A-Za-z0-9_-]+$",
        description="Replaces the year at the start of roll numbers",
    )

    @field_validator('roll_number_prefix')
    @classmethod
    def strip_prefix(cls, v):
        return v.strip() if v else v


class GenerationReportResponse(BaseModel):
    """Schema for the outcome of a generation run"""
    total_students: int
    generated: int
    skipped: int
    failed: int
    errors: List[str] = []


# ============== Hall Tickets ==============

class HallTicketResponse(BaseModel):
    """Schema for a hall ticket with display fields"""
    id: str
    examination_id: str
    student_id: str
    roll_number: str
    qr_code_data: str
    status: HallTicketStatusEnum
    generated_at: datetime
    printed_at: Optional[datetime] = None
    downloaded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    student_name: Optional[str] = None
    admission_number: Optional[str] = None
    student_photo: Optional[str] = None
    class_name: Optional[str] = None
    section_name: Optional[str] = None
    examination_name: Optional[str] = None

    class Config:
        from_attributes = True


class HallTicketListResponse(BaseModel):
    """Schema for a page of hall tickets"""
    hall_tickets: List[HallTicketResponse]
    total: int
    page: int
    page_size: int


class StatusUpdateRequest(BaseModel):
    """Schema for moving a hall ticket forward"""
    status: HallTicketStatusEnum


class DeleteResponse(BaseModel):
    deleted: int


# ============== Verification ==============

class VerifyRequest(BaseModel):
    """Schema for a scanned code at the examination gate"""
    qr_code_data: str = Field(..., max_length=2000, description="Text decoded from the printed code")


class VerificationVerdictResponse(BaseModel):
    """Schema for a check-in verdict"""
    valid: bool
    reason: Optional[VerificationReasonEnum] = None
    message: str
    hall_ticket_id: Optional[str] = None
    student_name: Optional[str] = None
    admission_number: Optional[str] = None
    roll_number: Optional[str] = None
    examination_name: Optional[str] = None
    class_name: Optional[str] = None


# ============== Templates ==============

class HallTicketTemplateCreate(BaseModel):
    """Schema for creating a hall ticket template"""
    name: str = Field(..., min_length=1, max_length=100)
    header_logo_url: Optional[str] = Field(None, max_length=500)
    school_name: Optional[str] = Field(None, max_length=200)
    school_address: Optional[str] = None
    instructions: Optional[str] = None
    is_default: bool = False


class HallTicketTemplateUpdate(BaseModel):
    """Schema for updating a hall ticket template; omitted fields are unchanged"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    header_logo_url: Optional[str] = Field(None, max_length=500)
    school_name: Optional[str] = Field(None, max_length=200)
    school_address: Optional[str] = None
    instructions: Optional[str] = None
    is_default: Optional[bool] = None


class HallTicketTemplateResponse(BaseModel):
    """Schema for hall ticket template response"""
    id: str
    name: str
    header_logo_url: Optional[str] = None
    school_name: Optional[str] = None
    school_address: Optional[str] = None
    instructions: Optional[str] = None
    is_default: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ============== Printing ==============

class PrintDataResponse(BaseModel):
    """Everything an external renderer needs to lay out one hall ticket"""
    hall_ticket: HallTicketResponse
    template: Optional[HallTicketTemplateResponse] = None
