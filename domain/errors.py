"""
Domain error taxonomy.

Every error raised synchronously by the core carries a user-presentable
message, a stable code and an HTTP-style status hint. The API layer maps them
to responses without inspecting message text.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence


class DomainError(Exception):
    """Base error with code, user-safe message and status hint."""

    status_code: int = 400
    code: str = "DOMAIN_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(DomainError):
    """Raised when input is malformed. `field` names the failing input."""

    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class QuotaBelowSoldError(ValidationError):
    """Raised when a limited quota would drop below the tickets already sold."""

    def __init__(self, ticket_type_id: int, sold_count: int) -> None:
        super().__init__("quota", f"Quota cannot be lower than the {sold_count} ticket(s) already sold")
        self.ticket_type_id = ticket_type_id
        self.sold_count = sold_count


class TicketTypeInUseError(ValidationError):
    """Raised when deleting a ticket type that orders still reference."""

    def __init__(self, ticket_type_id: int) -> None:
        super().__init__(
            "ticket_type_id",
            "This ticket type already has orders and cannot be deleted; disable it instead",
        )
        self.ticket_type_id = ticket_type_id


class PermissionDeniedError(DomainError):
    """Raised when an admin-only operation is called by a non-admin."""

    status_code = 403
    code = "PERMISSION_DENIED"


class NotFoundError(DomainError):
    status_code = 404
    code = "NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_no: str) -> None:
        super().__init__(f"Order not found: {order_no}")
        self.order_no = order_no


class TicketTypeNotFoundError(NotFoundError):
    code = "TICKET_TYPE_NOT_FOUND"

    def __init__(self, ticket_type_id: int) -> None:
        super().__init__(f"Ticket type not found: {ticket_type_id}")
        self.ticket_type_id = ticket_type_id


class InvalidTicketTypeError(DomainError):
    """Raised when an attendee references a ticket type that does not exist."""

    code = "INVALID_TICKET_TYPE"

    def __init__(self, ticket_type_ids: Iterable[int]) -> None:
        self.ticket_type_ids = sorted(set(ticket_type_ids))
        ids = ", ".join(str(i) for i in self.ticket_type_ids)
        super().__init__(f"Unknown ticket type(s): {ids}")


class InsufficientInventoryError(DomainError):
    """
    Raised when requested counts exceed remaining quota.

    `shortages` holds (ticket_type_id, ticket_name, requested, available)
    for every offending type; `available` is None for inactive types.
    """

    code = "INSUFFICIENT_INVENTORY"

    def __init__(self, shortages: Sequence[tuple[int, str, int, Optional[int]]]) -> None:
        self.shortages = list(shortages)
        parts = []
        for _, name, requested, available in self.shortages:
            if available is None:
                parts.append(f"'{name}' is not on sale")
            else:
                parts.append(f"'{name}' (requested {requested}, available {available})")
        super().__init__("Sold out or insufficient inventory: " + "; ".join(parts))

    @property
    def ticket_type_ids(self) -> list[int]:
        return [shortage[0] for shortage in self.shortages]


class InvalidOrderStateError(DomainError):
    """Raised when the order's current status forbids the operation."""

    code = "INVALID_ORDER_STATE"

    def __init__(self, order_no: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Operation not allowed for order {order_no} in its current state")
        self.order_no = order_no


class AlreadyPaidError(InvalidOrderStateError):
    code = "ALREADY_PAID"

    def __init__(self, order_no: str) -> None:
        super().__init__(order_no, f"Order {order_no} has already been paid")


class OrderCancelledError(InvalidOrderStateError):
    code = "ORDER_CANCELLED"

    def __init__(self, order_no: str) -> None:
        super().__init__(order_no, f"Order {order_no} has been cancelled")


class AlreadyVerifiedError(InvalidOrderStateError):
    code = "ALREADY_VERIFIED"

    def __init__(self, order_no: str) -> None:
        super().__init__(order_no, f"Transfer payment for order {order_no} has already been verified")


class DuplicateOrderNumberError(DomainError):
    """Raised by a store when an order number is already taken."""

    status_code = 409
    code = "DUPLICATE_ORDER_NUMBER"

    def __init__(self, order_no: str) -> None:
        super().__init__(f"Order number already exists: {order_no}")
        self.order_no = order_no


class NotificationDeliveryError(Exception):
    """Wraps a notification sink failure. Logged, never propagated to callers."""

    def __init__(self, order_no: str, attempts: int, cause: BaseException) -> None:
        super().__init__(f"Failed to deliver confirmation for order {order_no} after {attempts} attempt(s): {cause}")
        self.order_no = order_no
        self.attempts = attempts


__all__ = [
    "AlreadyPaidError",
    "AlreadyVerifiedError",
    "DomainError",
    "DuplicateOrderNumberError",
    "InsufficientInventoryError",
    "InvalidOrderStateError",
    "InvalidTicketTypeError",
    "NotFoundError",
    "NotificationDeliveryError",
    "OrderCancelledError",
    "OrderNotFoundError",
    "PermissionDeniedError",
    "QuotaBelowSoldError",
    "TicketTypeInUseError",
    "TicketTypeNotFoundError",
    "ValidationError",
]
