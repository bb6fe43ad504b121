"""
Tests for `services/ticket_service.py`.

Covers:
- Public list shows active ticket types only, cheapest first.
- Admin-only management with input validation.
- Quota cannot drop below tickets already sold.
- Ticket types referenced by orders cannot be deleted.
- Both checks also hold for orders placed while the admin edit is in flight.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.errors import (
    PermissionDeniedError,
    QuotaBelowSoldError,
    TicketTypeInUseError,
    TicketTypeNotFoundError,
    ValidationError,
)
from domain.ticket import UNLIMITED_QUOTA
from repositories.memory import InMemoryOrderStore, InMemoryTicketStore
from services.pricing_service import AttendeeRequest
from services.ticket_service import TicketService


def test_list_public_hides_inactive_and_sorts_by_price(ticket_service, make_ticket) -> None:
    make_ticket(name="General", price="300.00")
    make_ticket(name="Student", price="100.00")
    make_ticket(name="Retired", price="1.00", is_active=False)

    assert [t.name for t in ticket_service.list_public()] == ["Student", "General"]


def test_create_ticket_type(ticket_service, super_admin) -> None:
    ticket = ticket_service.create(super_admin, name="  Workshop ", price="49.5", quota=30, description=" ")

    assert ticket.name == "Workshop"
    assert ticket.price == Decimal("49.50")
    assert ticket.quota == 30
    assert ticket.description is None
    assert ticket.sold_count == 0


def test_create_defaults_to_unlimited_quota(ticket_service, admin) -> None:
    ticket = ticket_service.create(admin, name="Online", price=0)

    assert ticket.quota == UNLIMITED_QUOTA
    assert ticket.remaining is None


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"name": "", "price": "1.00"}, "name"),
        ({"name": "X", "price": "-1.00"}, "price"),
        ({"name": "X", "price": "abc"}, "price"),
        ({"name": "X", "price": "1.00", "quota": -5}, "quota"),
    ],
)
def test_create_validates_input(ticket_service, admin, kwargs, field) -> None:
    with pytest.raises(ValidationError) as exc:
        ticket_service.create(admin, **kwargs)
    assert exc.value.field == field


def test_management_requires_admin(ticket_service, outsider, make_ticket) -> None:
    ticket = make_ticket()

    with pytest.raises(PermissionDeniedError):
        ticket_service.list_all(outsider)
    with pytest.raises(PermissionDeniedError):
        ticket_service.create(outsider, name="X", price="1.00")
    with pytest.raises(PermissionDeniedError):
        ticket_service.update(outsider, ticket.id, price="2.00")
    with pytest.raises(PermissionDeniedError):
        ticket_service.delete(outsider, ticket.id)


def test_update_rejects_quota_below_sold(ticket_service, order_service, admin, make_ticket) -> None:
    ticket = make_ticket(quota=10)
    order_service.create_order("ada@example.com", None, [AttendeeRequest("Ada", ticket.id)] * 3)

    with pytest.raises(ValidationError) as exc:
        ticket_service.update(admin, ticket.id, quota=2)
    assert exc.value.field == "quota"

    assert ticket_service.update(admin, ticket.id, quota=3).quota == 3
    assert ticket_service.update(admin, ticket.id, quota=UNLIMITED_QUOTA).is_unlimited


def test_update_without_changes_returns_current(ticket_service, admin, make_ticket) -> None:
    ticket = make_ticket()

    assert ticket_service.update(admin, ticket.id) == ticket


def test_update_unknown_ticket_type(ticket_service, admin) -> None:
    with pytest.raises(TicketTypeNotFoundError):
        ticket_service.update(admin, 404, name="Ghost")


def test_delete_unused_ticket_type(ticket_service, ticket_store, admin, make_ticket) -> None:
    ticket = make_ticket()

    ticket_service.delete(admin, ticket.id)

    assert ticket_store.get_by_id(ticket.id) is None
    with pytest.raises(TicketTypeNotFoundError):
        ticket_service.delete(admin, ticket.id)


def test_delete_refused_once_ordered(ticket_service, order_service, ticket_store, admin, make_ticket) -> None:
    ticket = make_ticket()
    order_service.create_order("ada@example.com", None, [AttendeeRequest("Ada", ticket.id)])

    with pytest.raises(ValidationError):
        ticket_service.delete(admin, ticket.id)

    assert ticket_store.get_by_id(ticket.id) is not None
    assert ticket_service.update(admin, ticket.id, is_active=False).is_active is False


def test_check_availability(ticket_service, make_ticket) -> None:
    ticket = make_ticket(quota=2)

    assert ticket_service.check_availability(ticket.id, 2) is True
    assert ticket_service.check_availability(ticket.id, 3) is False
    assert ticket_service.check_availability(999, 1) is False


class BookingBeforeUpdate(InMemoryTicketStore):
    """Ticket store that lets an order land between the service's read and its write."""

    def __init__(self, db, book) -> None:
        super().__init__(db)
        self._book = book

    def update(self, ticket_type_id, changes):
        self._book(ticket_type_id)
        return super().update(ticket_type_id, changes)


class BookingBeforeDelete(InMemoryOrderStore):
    """Order store that lets an order land just before the guarded delete runs."""

    def __init__(self, db, book) -> None:
        super().__init__(db)
        self._book = book

    def delete_ticket_type_if_unreferenced(self, ticket_type_id):
        self._book(ticket_type_id)
        return super().delete_ticket_type_if_unreferenced(ticket_type_id)


def test_quota_update_rechecks_orders_placed_meanwhile(
    db, order_service, order_store, ticket_store, admin, clock, make_ticket
) -> None:
    ticket = make_ticket(quota=10)
    order_service.create_order("ada@example.com", None, [AttendeeRequest("Ada", ticket.id)] * 2)

    def book(ticket_type_id: int) -> None:
        order_service.create_order("grace@example.com", None, [AttendeeRequest("Grace", ticket_type_id)] * 2)

    service = TicketService(BookingBeforeUpdate(db, book), order_store, clock=clock)

    with pytest.raises(QuotaBelowSoldError) as exc:
        service.update(admin, ticket.id, quota=3)
    assert exc.value.field == "quota"
    assert exc.value.sold_count == 4

    stored = ticket_store.get_by_id(ticket.id)
    assert stored.quota == 10
    assert stored.sold_count == 4


def test_delete_rechecks_orders_placed_meanwhile(
    db, order_service, ticket_store, admin, clock, make_ticket
) -> None:
    ticket = make_ticket()

    def book(ticket_type_id: int) -> None:
        order_service.create_order("grace@example.com", None, [AttendeeRequest("Grace", ticket_type_id)])

    service = TicketService(ticket_store, BookingBeforeDelete(db, book), clock=clock)

    with pytest.raises(TicketTypeInUseError):
        service.delete(admin, ticket.id)

    assert ticket_store.get_by_id(ticket.id) is not None


def test_store_update_refuses_quota_below_sold(ticket_store, order_service, make_ticket) -> None:
    ticket = make_ticket(quota=5)
    order_service.create_order("ada@example.com", None, [AttendeeRequest("Ada", ticket.id)] * 3)

    with pytest.raises(QuotaBelowSoldError):
        ticket_store.update(ticket.id, {"quota": 2})

    assert ticket_store.update(ticket.id, {"name": "Renamed"}).quota == 5
    assert ticket_store.get_by_id(ticket.id).sold_count == 3


def test_store_delete_is_unguarded(ticket_store, make_ticket) -> None:
    ticket = make_ticket()

    assert ticket_store.delete(ticket.id) is True
    assert ticket_store.delete(ticket.id) is False
