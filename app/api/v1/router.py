from fastapi import APIRouter
from app.api.v1.endpoints import health, hall_tickets, hall_ticket_templates

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(hall_tickets.router)
api_router.include_router(hall_ticket_templates.router)
