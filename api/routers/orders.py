"""
Orders API Endpoints.

Public registration flow: create an order, look it up, pay it.
"""

from fastapi import APIRouter, Body, Depends

from api.dependencies import ServiceContainer, get_container
from api.models import CreateOrderRequest, OrderEnvelope, OrderResponse

router = APIRouter()


@router.post(
    "/orders",
    response_model=OrderEnvelope,
    status_code=201,
    summary="Create Order",
    description="Register one or more attendees and reserve their tickets."
)
def create_order(request: CreateOrderRequest = Body(...), container: ServiceContainer = Depends(get_container)):
    """
    Create a pending order.

    **Per-attendee request** (each attendee picks a ticket type):
    ```json
    {
      "customerEmail": "ada@example.com",
      "customerPhone": "+64 21 555 0100",
      "attendees": [
        {"name": "Ada Lovelace", "ticketTypeId": 1},
        {"name": "Alan Turing", "ticketTypeId": 2}
      ]
    }
    ```

    **Legacy request** (`quantity` attendees of one ticket type, all named
    after the customer):
    ```json
    {
      "customerName": "Ada Lovelace",
      "customerEmail": "ada@example.com",
      "ticketTypeId": 1,
      "quantity": 2
    }
    ```

    Fails with 400 when validation fails, a ticket type is unknown or
    tickets are sold out. Nothing is reserved on failure.
    """
    details = container.orders.create_order(
        contact_email=request.customer_email,
        contact_phone=request.customer_phone,
        attendees=request.to_attendee_requests(),
    )
    return OrderEnvelope(order=OrderResponse.from_details(details))


@router.get(
    "/orders/{order_no}",
    response_model=OrderEnvelope,
    summary="Get Order"
)
def get_order(order_no: str, container: ServiceContainer = Depends(get_container)):
    details = container.orders.get_order(order_no)
    return OrderEnvelope(order=OrderResponse.from_details(details))


@router.post(
    "/orders/{order_no}/pay",
    response_model=OrderEnvelope,
    summary="Pay Order",
    description="Simulated payment: moves a pending order to paid."
)
def pay_order(order_no: str, container: ServiceContainer = Depends(get_container)):
    """
    Pay a pending order.

    A second payment is rejected with 400 (`ALREADY_PAID`) and changes
    nothing. The confirmation e-mail is sent in the background; a failed
    e-mail never fails the payment.
    """
    details = container.orders.pay_order(order_no)
    return OrderEnvelope(order=OrderResponse.from_details(details), message="Payment successful")
