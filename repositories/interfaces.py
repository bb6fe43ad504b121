"""
Store interfaces (repository pattern).

Stores are injected into the services and must be swappable: the in-memory
stores back tests and local development, the Supabase stores back production.
Both return domain models and raise domain errors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from domain.order import Order, OrderStatus
from domain.ticket import TicketType


@dataclass(frozen=True, slots=True)
class OrderQueryFilters:
    """Filter criteria for admin order queries."""

    status: Optional[OrderStatus] = None
    search: Optional[str] = None  # substring of order_no, customer_name or customer_email


@dataclass(frozen=True, slots=True)
class NewTicketType:
    """Values for a ticket type that has not been persisted yet."""

    name: str
    price: Decimal
    quota: int
    description: Optional[str] = None
    is_active: bool = True


class TicketStore(ABC):
    """Ticket inventory persistence."""

    @abstractmethod
    def get_by_id(self, ticket_type_id: int) -> Optional[TicketType]:
        """Return a ticket type by id, or None if not found."""
        ...

    @abstractmethod
    def list_active(self) -> List[TicketType]:
        """Return active ticket types ordered by price ascending."""
        ...

    @abstractmethod
    def list_all(self) -> List[TicketType]:
        """Return all ticket types ordered by created_at descending."""
        ...

    @abstractmethod
    def check_availability(self, ticket_type_id: int, requested_count: int) -> bool:
        """True iff the ticket type exists and can fulfil `requested_count` right now."""
        ...

    @abstractmethod
    def increment_sold(self, ticket_type_id: int, count: int) -> bool:
        """
        Atomically add `count` to sold_count if the result stays within quota.

        Returns False, leaving the row unchanged, when it would not.
        """
        ...

    @abstractmethod
    def create(self, values: NewTicketType, created_at: datetime) -> TicketType:
        ...

    @abstractmethod
    def update(self, ticket_type_id: int, changes: Mapping[str, Any]) -> Optional[TicketType]:
        """
        Apply column changes; return the updated ticket type, or None if not found.

        A limited `quota` change is checked against sold_count in the same
        atomic unit as the write, so a concurrent order cannot push sold_count
        past the new quota.

        Raises:
            ValidationError: The new quota is lower than sold_count.
        """
        ...

    @abstractmethod
    def delete(self, ticket_type_id: int) -> bool:
        """Delete a ticket type; return False if it did not exist. Not guarded here."""
        ...


class OrderStore(ABC):
    """Order persistence. Orders are never physically deleted."""

    @abstractmethod
    def create_with_reservation(self, order: Order, reservations: Mapping[int, int]) -> Order:
        """
        Persist `order` and add each reservation count to its ticket type's sold_count.

        Availability of every reserved ticket type is re-checked inside the same
        atomic unit. Either everything is applied or nothing is.

        Raises:
            InsufficientInventoryError: A ticket type cannot fulfil its count.
            InvalidTicketTypeError: A reserved ticket type no longer exists.
            DuplicateOrderNumberError: `order.order_no` is already taken.
        """
        ...

    @abstractmethod
    def get_by_order_no(self, order_no: str) -> Optional[Order]:
        ...

    @abstractmethod
    def mark_paid(self, order_no: str, paid_at: datetime) -> Order:
        """
        Conditionally transition a pending order to paid.

        Raises OrderNotFoundError, AlreadyPaidError or OrderCancelledError.
        """
        ...

    @abstractmethod
    def record_transfer_verification(self, order_no: str, payer_bank_last4: str, verified_by: str) -> Order:
        """
        Conditionally record transfer evidence on a paid, unverified order.

        Raises OrderNotFoundError, InvalidOrderStateError or AlreadyVerifiedError.
        """
        ...

    @abstractmethod
    def query(self, filters: OrderQueryFilters, limit: Optional[int] = None, offset: int = 0) -> List[Order]:
        """Return matching orders, newest first. `limit=None` returns all."""
        ...

    @abstractmethod
    def count(self, filters: OrderQueryFilters) -> int:
        ...

    @abstractmethod
    def delete_ticket_type_if_unreferenced(self, ticket_type_id: int) -> bool:
        """
        Delete a ticket type unless an order has an attendee on it.

        The reference check and the delete are one atomic unit with respect
        to `create_with_reservation`. Returns False if the ticket type did
        not exist.

        Raises:
            ValidationError: An order references the ticket type.
        """
        ...


__all__ = [
    "NewTicketType",
    "OrderQueryFilters",
    "OrderStore",
    "TicketStore",
]
