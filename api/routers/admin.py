"""
Admin API Endpoints.

Order management (list, CSV export, payment confirmation, transfer
verification) for admins, and ticket type management for super admins.
All endpoints require a bearer token.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from api.dependencies import (
    ServiceContainer,
    get_caller_identity,
    get_caller_identity_for_download,
    get_container,
    require_super_admin,
)
from api.models import (
    MessageResponse,
    OrderEnvelope,
    OrderListResponse,
    OrderResponse,
    TicketCreateRequest,
    TicketEnvelope,
    TicketListResponse,
    TicketResponse,
    TicketUpdateRequest,
    VerifyTransferRequest,
)
from domain.identity import CallerIdentity
from domain.time import utc_now
from services.csv_export_service import generate_orders_csv
from services.order_query_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(prefix="/admin")


# ============================================================================
# Orders
# ============================================================================

@router.get(
    "/orders",
    response_model=OrderListResponse,
    response_model_by_alias=True,
    summary="List Orders"
)
def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    status: Optional[str] = Query(None, description="pending, paid or cancelled"),
    search: Optional[str] = Query(None, description="Order number, customer name or e-mail"),
    caller: CallerIdentity = Depends(get_caller_identity),
    container: ServiceContainer = Depends(get_container),
):
    """
    Paginated order list, newest first.

    **Example usage:**
    ```
    GET /api/v1/admin/orders?page=2&pageSize=20&status=paid&search=ada
    ```
    """
    result = container.queries.list_orders(caller, page=page, page_size=page_size, status=status, search=search)
    return OrderListResponse.from_page(result)


@router.get(
    "/orders/export",
    summary="Export Orders CSV",
    description="Download every matching order as a spreadsheet-friendly CSV.",
    response_class=Response
)
def export_orders(
    status: Optional[str] = Query(None, description="pending, paid or cancelled"),
    caller: CallerIdentity = Depends(get_caller_identity_for_download),
    container: ServiceContainer = Depends(get_container),
):
    """
    Export orders as CSV.

    The token may be passed as `?token=` so the file can be downloaded
    through a plain browser link.

    **Security:**
    - CSV injection prevention (formula triggers neutralised)
    - Every neutralised field is logged
    """
    rows = container.queries.export_orders(caller, status=status)
    filename = f"orders_{utc_now().strftime('%Y%m%d%H%M%S')}.csv"
    return Response(
        content=generate_orders_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.post(
    "/orders/{order_no}/confirm-payment",
    response_model=OrderEnvelope,
    summary="Confirm Payment"
)
def confirm_payment(
    order_no: str,
    caller: CallerIdentity = Depends(get_caller_identity),
    container: ServiceContainer = Depends(get_container),
):
    """Mark a pending order as paid after the bank transfer has arrived."""
    details = container.orders.confirm_payment(order_no, caller)
    return OrderEnvelope(order=OrderResponse.from_details(details), message="Payment confirmed")


@router.post(
    "/orders/{order_no}/verify-transfer",
    response_model=OrderEnvelope,
    summary="Verify Transfer Payment"
)
def verify_transfer(
    order_no: str,
    request: VerifyTransferRequest,
    caller: CallerIdentity = Depends(get_caller_identity),
    container: ServiceContainer = Depends(get_container),
):
    """
    Record the last 4 digits of the payer's bank account for a paid order.

    Allowed once per order.

    **Example request:**
    ```json
    {"payerBankLast4": "4321"}
    ```
    """
    details = container.orders.verify_transfer_payment(order_no, request.payer_bank_last4, caller)
    return OrderEnvelope(order=OrderResponse.from_details(details), message="Transfer verified")


# ============================================================================
# Ticket types
# ============================================================================

@router.get("/tickets", response_model=TicketListResponse, summary="List All Ticket Types")
def list_all_tickets(
    caller: CallerIdentity = Depends(get_caller_identity),
    container: ServiceContainer = Depends(get_container),
):
    tickets = container.tickets.list_all(caller)
    return TicketListResponse(tickets=[TicketResponse.from_domain(t) for t in tickets])


@router.post("/tickets", response_model=TicketEnvelope, status_code=201, summary="Create Ticket Type")
def create_ticket(
    request: TicketCreateRequest,
    caller: CallerIdentity = Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    ticket = container.tickets.create(
        caller,
        name=request.name,
        price=request.price,
        quota=request.quota,
        description=request.description,
        is_active=request.is_active,
    )
    return TicketEnvelope(ticket=TicketResponse.from_domain(ticket))


@router.put("/tickets/{ticket_type_id}", response_model=TicketEnvelope, summary="Update Ticket Type")
def update_ticket(
    ticket_type_id: int,
    request: TicketUpdateRequest,
    caller: CallerIdentity = Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    """Update a ticket type. Existing orders keep the price they were booked at."""
    ticket = container.tickets.update(
        caller,
        ticket_type_id,
        name=request.name,
        description=request.description,
        price=request.price,
        quota=request.quota,
        is_active=request.is_active,
    )
    return TicketEnvelope(ticket=TicketResponse.from_domain(ticket))


@router.delete("/tickets/{ticket_type_id}", response_model=MessageResponse, summary="Delete Ticket Type")
def delete_ticket(
    ticket_type_id: int,
    caller: CallerIdentity = Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    """Delete a ticket type. Refused with 400 once any order references it."""
    container.tickets.delete(caller, ticket_type_id)
    return MessageResponse(message="Ticket type deleted")
