"""
Pricing service for order totals.

Builds the attendee manifest from resolved ticket types, snapshotting each
attendee's ticket name and price, and sums one term per attendee so orders
that mix ticket types are priced correctly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Mapping, Sequence

from domain.money import sum_money
from domain.order import AttendeeEntry
from domain.ticket import TicketType


@dataclass(frozen=True, slots=True)
class AttendeeRequest:
    """An attendee as submitted: a name and the ticket type they want."""

    name: str
    ticket_type_id: int


@dataclass(frozen=True, slots=True)
class PricedManifest:
    """
    Attendee manifest with its total.

    total == sum(attendee.ticket_price for attendee in attendees)
    """

    attendees: List[AttendeeEntry]
    total: Decimal


def price_attendees(
    attendees: Sequence[AttendeeRequest],
    ticket_types: Mapping[int, TicketType],
) -> PricedManifest:
    """
    Snapshot ticket name and price onto every attendee and total them.

    Args:
        attendees: Validated attendee requests
        ticket_types: Resolved ticket types keyed by id (must cover every attendee)

    Returns:
        PricedManifest with one AttendeeEntry per attendee, in request order

    Example:
        manifest = price_attendees(
            [AttendeeRequest("Ada", 1), AttendeeRequest("Linus", 2)],
            {1: general, 2: student},
        )
        # manifest.total == general.price + student.price
    """

    entries: List[AttendeeEntry] = []
    for attendee in attendees:
        ticket = ticket_types[attendee.ticket_type_id]
        entries.append(AttendeeEntry(
            name=attendee.name,
            ticket_type_id=ticket.id,
            ticket_name=ticket.name,
            ticket_price=ticket.price,
        ))

    return PricedManifest(
        attendees=entries,
        total=sum_money(entry.ticket_price for entry in entries),
    )


__all__ = ["AttendeeRequest", "PricedManifest", "price_attendees"]
