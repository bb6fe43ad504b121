"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Request bodies use camelCase keys; response bodies use the snake_case field
names of the stored records. Amounts are serialized as strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from domain.errors import ValidationError
from domain.order import MAX_ATTENDEES
from domain.ticket import TicketType
from services.order_details import OrderDetails
from services.order_query_service import OrderPage
from services.pricing_service import AttendeeRequest


# ============================================================================
# Ticket Models
# ============================================================================

class TicketResponse(BaseModel):
    """Single ticket type in API response."""
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    quota: int  # -1 means unlimited
    sold_count: int
    remaining: Optional[int] = None  # None when unlimited
    is_active: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, ticket: TicketType) -> "TicketResponse":
        return cls(
            id=ticket.id,
            name=ticket.name,
            description=ticket.description,
            price=ticket.price,
            quota=ticket.quota,
            sold_count=ticket.sold_count,
            remaining=ticket.remaining,
            is_active=ticket.is_active,
            created_at=ticket.created_at,
        )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "name": "General",
                "description": "Full conference access",
                "price": "299.00",
                "quota": 200,
                "sold_count": 12,
                "remaining": 188,
                "is_active": True,
                "created_at": "2025-01-01T12:00:00Z",
            }
        }
    )


class TicketListResponse(BaseModel):
    tickets: List[TicketResponse]


class TicketEnvelope(BaseModel):
    ticket: TicketResponse


class TicketCreateRequest(BaseModel):
    """Admin request to create a ticket type."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(..., description="Unit price, two decimals")
    quota: int = Field(-1, description="Seats on sale; -1 for unlimited")
    is_active: bool = Field(True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class TicketUpdateRequest(BaseModel):
    """Admin request to update a ticket type. Omitted fields stay unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = None
    quota: Optional[int] = None
    is_active: Optional[bool] = Field(None, alias="isActive")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


# ============================================================================
# Order Request Models
# ============================================================================

class AttendeeIn(BaseModel):
    name: str
    ticket_type_id: int = Field(..., alias="ticketTypeId")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class AttendeeOrderRequest(BaseModel):
    """Per-attendee order: every attendee picks their own ticket type."""
    customer_email: str = Field(..., alias="customerEmail")
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    attendees: List[AttendeeIn]

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "customerEmail": "ada@example.com",
                "customerPhone": "+64 21 555 0100",
                "attendees": [
                    {"name": "Ada Lovelace", "ticketTypeId": 1},
                    {"name": "Alan Turing", "ticketTypeId": 2},
                ],
            }
        },
    )

    def to_attendee_requests(self) -> List[AttendeeRequest]:
        return [AttendeeRequest(name=a.name, ticket_type_id=a.ticket_type_id) for a in self.attendees]


class LegacyOrderRequest(BaseModel):
    """Single ticket type order: `quantity` attendees all named after the customer."""
    customer_name: str = Field(..., alias="customerName")
    customer_email: str = Field(..., alias="customerEmail")
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    ticket_type_id: int = Field(..., alias="ticketTypeId")
    quantity: int

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "customerName": "Ada Lovelace",
                "customerEmail": "ada@example.com",
                "ticketTypeId": 1,
                "quantity": 2,
            }
        },
    )

    def to_attendee_requests(self) -> List[AttendeeRequest]:
        # Bounded before expansion so a huge quantity never builds a huge list.
        if not 1 <= self.quantity <= MAX_ATTENDEES:
            raise ValidationError("quantity", f"Quantity must be between 1 and {MAX_ATTENDEES}")
        return [
            AttendeeRequest(name=self.customer_name, ticket_type_id=self.ticket_type_id)
            for _ in range(self.quantity)
        ]


CreateOrderRequest = Union[AttendeeOrderRequest, LegacyOrderRequest]


class VerifyTransferRequest(BaseModel):
    payer_bank_last4: str = Field(..., alias="payerBankLast4")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


# ============================================================================
# Order Response Models
# ============================================================================

class AttendeeResponse(BaseModel):
    name: str
    ticket_type_id: int
    ticket_name: str
    ticket_price: Decimal


class OrderResponse(BaseModel):
    """An order with its attendee manifest."""
    id: Optional[int] = None
    order_no: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    ticket_name: str  # display names of the ticket types involved
    quantity: int
    attendees: List[AttendeeResponse]
    total_amount: Decimal
    status: str  # "pending", "paid" or "cancelled"
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payer_bank_last4: Optional[str] = None
    verified_by: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_details(cls, details: OrderDetails) -> "OrderResponse":
        order = details.order
        return cls(
            id=order.id,
            order_no=order.order_no,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            ticket_name=details.ticket_name,
            quantity=details.quantity,
            attendees=[
                AttendeeResponse(
                    name=a.name,
                    ticket_type_id=a.ticket_type_id,
                    ticket_name=a.ticket_name,
                    ticket_price=a.ticket_price,
                )
                for a in order.attendees
            ],
            total_amount=order.total_amount,
            status=order.status.value,
            paid_at=order.paid_at,
            payment_method=order.payment_method,
            payer_bank_last4=order.payer_bank_last4,
            verified_by=order.verified_by,
            created_at=order.created_at,
        )


class OrderEnvelope(BaseModel):
    order: OrderResponse
    message: Optional[str] = None


class OrderListResponse(BaseModel):
    """One page of the admin order list."""
    orders: List[OrderResponse]
    total: int
    page: int
    page_size: int = Field(..., alias="pageSize")
    total_pages: int = Field(..., alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_page(cls, page: OrderPage) -> "OrderListResponse":
        return cls(
            orders=[OrderResponse.from_details(d) for d in page.orders],
            total=page.total,
            page=page.page,
            page_size=page.page_size,
            total_pages=page.total_pages,
        )


# ============================================================================
# Misc
# ============================================================================

class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
    code: str
