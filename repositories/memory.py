"""
In-memory stores.

Used by the test-suite and by local development (STORAGE_BACKEND=memory).
Both stores share one InMemoryDatabase, whose re-entrant lock serializes the
check-availability -> insert order -> increment sold_count unit, so concurrent
requests against a finite quota can never oversell. Quota edits and ticket
type deletion check sold_count and order references under the same lock.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from domain.errors import (
    DuplicateOrderNumberError,
    InsufficientInventoryError,
    InvalidTicketTypeError,
    OrderNotFoundError,
    QuotaBelowSoldError,
    TicketTypeInUseError,
)
from domain.order import Order
from domain.ticket import UNLIMITED_QUOTA, TicketType
from repositories.interfaces import NewTicketType, OrderQueryFilters, OrderStore, TicketStore

_UPDATABLE_TICKET_FIELDS = frozenset({"name", "description", "price", "quota", "is_active"})


class InMemoryDatabase:
    """Process-local tables plus the lock guarding them."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.ticket_types: Dict[int, TicketType] = {}
        self.orders: Dict[str, Order] = {}
        self._next_ticket_id = 1
        self._next_order_id = 1

    def next_ticket_id(self) -> int:
        value = self._next_ticket_id
        self._next_ticket_id += 1
        return value

    def next_order_id(self) -> int:
        value = self._next_order_id
        self._next_order_id += 1
        return value


class InMemoryTicketStore(TicketStore):
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def get_by_id(self, ticket_type_id: int) -> Optional[TicketType]:
        with self._db.lock:
            return self._db.ticket_types.get(ticket_type_id)

    def list_active(self) -> List[TicketType]:
        with self._db.lock:
            active = [t for t in self._db.ticket_types.values() if t.is_active]
        return sorted(active, key=lambda t: (t.price, t.id))

    def list_all(self) -> List[TicketType]:
        with self._db.lock:
            tickets = list(self._db.ticket_types.values())
        return sorted(tickets, key=lambda t: (t.created_at, t.id), reverse=True)

    def check_availability(self, ticket_type_id: int, requested_count: int) -> bool:
        ticket = self.get_by_id(ticket_type_id)
        return ticket is not None and ticket.can_fulfil(requested_count)

    def increment_sold(self, ticket_type_id: int, count: int) -> bool:
        with self._db.lock:
            ticket = self._db.ticket_types.get(ticket_type_id)
            if ticket is None or not ticket.can_fulfil(count):
                return False
            self._db.ticket_types[ticket_type_id] = ticket.with_sold(count)
            return True

    def create(self, values: NewTicketType, created_at: datetime) -> TicketType:
        with self._db.lock:
            ticket = TicketType(
                id=self._db.next_ticket_id(),
                name=values.name,
                description=values.description,
                price=values.price,
                quota=values.quota,
                sold_count=0,
                is_active=values.is_active,
                created_at=created_at,
            )
            self._db.ticket_types[ticket.id] = ticket
            return ticket

    def update(self, ticket_type_id: int, changes: Mapping[str, Any]) -> Optional[TicketType]:
        unknown = set(changes) - _UPDATABLE_TICKET_FIELDS
        if unknown:
            raise ValueError(f"Cannot update ticket type fields: {sorted(unknown)}")
        with self._db.lock:
            ticket = self._db.ticket_types.get(ticket_type_id)
            if ticket is None:
                return None
            quota = changes.get("quota", ticket.quota)
            if quota != UNLIMITED_QUOTA and quota < ticket.sold_count:
                raise QuotaBelowSoldError(ticket_type_id, ticket.sold_count)
            updated = replace(ticket, **changes)
            self._db.ticket_types[ticket_type_id] = updated
            return updated

    def delete(self, ticket_type_id: int) -> bool:
        with self._db.lock:
            return self._db.ticket_types.pop(ticket_type_id, None) is not None


class InMemoryOrderStore(OrderStore):
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def create_with_reservation(self, order: Order, reservations: Mapping[int, int]) -> Order:
        with self._db.lock:
            if order.order_no in self._db.orders:
                raise DuplicateOrderNumberError(order.order_no)

            missing = [tid for tid in reservations if tid not in self._db.ticket_types]
            if missing:
                raise InvalidTicketTypeError(missing)

            shortages = []
            for ticket_type_id, count in reservations.items():
                ticket = self._db.ticket_types[ticket_type_id]
                if not ticket.can_fulfil(count):
                    available = ticket.remaining if ticket.is_active else None
                    shortages.append((ticket_type_id, ticket.name, count, available))
            if shortages:
                raise InsufficientInventoryError(shortages)

            stored = replace(order, id=self._db.next_order_id())
            self._db.orders[stored.order_no] = stored
            for ticket_type_id, count in reservations.items():
                ticket = self._db.ticket_types[ticket_type_id]
                self._db.ticket_types[ticket_type_id] = ticket.with_sold(count)
            return stored

    def get_by_order_no(self, order_no: str) -> Optional[Order]:
        with self._db.lock:
            return self._db.orders.get(order_no)

    def mark_paid(self, order_no: str, paid_at: datetime) -> Order:
        with self._db.lock:
            order = self._db.orders.get(order_no)
            if order is None:
                raise OrderNotFoundError(order_no)
            updated = order.mark_paid(paid_at)
            self._db.orders[order_no] = updated
            return updated

    def record_transfer_verification(self, order_no: str, payer_bank_last4: str, verified_by: str) -> Order:
        with self._db.lock:
            order = self._db.orders.get(order_no)
            if order is None:
                raise OrderNotFoundError(order_no)
            updated = order.with_transfer_verification(payer_bank_last4, verified_by)
            self._db.orders[order_no] = updated
            return updated

    def _matching(self, filters: OrderQueryFilters) -> List[Order]:
        with self._db.lock:
            orders = list(self._db.orders.values())

        if filters.status is not None:
            orders = [o for o in orders if o.status is filters.status]
        if filters.search:
            needle = filters.search.lower()
            orders = [
                o for o in orders
                if needle in o.order_no.lower()
                or needle in o.customer_name.lower()
                or needle in o.customer_email.lower()
            ]
        return sorted(orders, key=lambda o: (o.created_at, o.id or 0), reverse=True)

    def query(self, filters: OrderQueryFilters, limit: Optional[int] = None, offset: int = 0) -> List[Order]:
        orders = self._matching(filters)
        if limit is None:
            return orders[offset:]
        return orders[offset:offset + limit]

    def count(self, filters: OrderQueryFilters) -> int:
        return len(self._matching(filters))

    def delete_ticket_type_if_unreferenced(self, ticket_type_id: int) -> bool:
        with self._db.lock:
            if ticket_type_id not in self._db.ticket_types:
                return False
            if any(
                a.ticket_type_id == ticket_type_id
                for o in self._db.orders.values()
                for a in o.attendees
            ):
                raise TicketTypeInUseError(ticket_type_id)
            del self._db.ticket_types[ticket_type_id]
            return True


__all__ = ["InMemoryDatabase", "InMemoryOrderStore", "InMemoryTicketStore"]
