"""
Tickets API Endpoints.

Public listing of the ticket types currently on sale.
"""

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_container
from api.models import TicketListResponse, TicketResponse

router = APIRouter()


@router.get(
    "/tickets",
    response_model=TicketListResponse,
    summary="List Ticket Types",
    description="Active ticket types, cheapest first."
)
def list_tickets(container: ServiceContainer = Depends(get_container)):
    """
    List ticket types available for registration.

    Inactive ticket types are hidden. `remaining` is null for
    ticket types with an unlimited quota.
    """
    tickets = container.tickets.list_public()
    return TicketListResponse(tickets=[TicketResponse.from_domain(t) for t in tickets])
