# Pydantic schemas
from app.schemas.hall_ticket import (
    GenerateHallTicketsRequest,
    GenerationReportResponse,
    HallTicketResponse,
    HallTicketListResponse,
    StatusUpdateRequest,
    VerifyRequest,
    VerificationVerdictResponse,
    HallTicketTemplateCreate,
    HallTicketTemplateUpdate,
    HallTicketTemplateResponse,
    PrintDataResponse,
)
