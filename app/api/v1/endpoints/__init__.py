# API endpoints
from . import health, hall_tickets, hall_ticket_templates

__all__ = ["health", "hall_tickets", "hall_ticket_templates"]
