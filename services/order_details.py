"""
Read model combining an order with display fields from the live ticket store.

The order's monetary fields always come from its own snapshot; only the
ticket *names* shown to users are looked up live, falling back to the
snapshot when a ticket type is gone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from domain.order import Order
from domain.ticket import TicketType
from repositories.interfaces import TicketStore


@dataclass(frozen=True, slots=True)
class OrderDetails:
    order: Order
    ticket_names: Tuple[str, ...]

    @property
    def ticket_name(self) -> str:
        return ", ".join(self.ticket_names)

    @property
    def quantity(self) -> int:
        return self.order.quantity


def _display_names(order: Order, tickets: Dict[int, TicketType]) -> Tuple[str, ...]:
    names: List[str] = []
    for attendee in order.attendees:
        ticket = tickets.get(attendee.ticket_type_id)
        name = ticket.name if ticket is not None else attendee.ticket_name
        if name not in names:
            names.append(name)
    return tuple(names)


def build_order_details(order: Order, ticket_store: TicketStore) -> OrderDetails:
    lookup: Dict[int, TicketType] = {}
    for ticket_type_id in order.ticket_counts():
        ticket = ticket_store.get_by_id(ticket_type_id)
        if ticket is not None:
            lookup[ticket_type_id] = ticket
    return OrderDetails(order=order, ticket_names=_display_names(order, lookup))


def build_many_order_details(orders: Iterable[Order], ticket_store: TicketStore) -> List[OrderDetails]:
    """Same as build_order_details, fetching the ticket list once for the whole batch."""

    lookup = {ticket.id: ticket for ticket in ticket_store.list_all()}
    return [OrderDetails(order=order, ticket_names=_display_names(order, lookup)) for order in orders]


__all__ = ["OrderDetails", "build_many_order_details", "build_order_details"]
