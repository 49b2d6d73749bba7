from app.services.hall_ticket_service import HallTicketService, hall_ticket_service
