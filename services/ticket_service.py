"""
Ticket inventory service.

Public reads (active ticket list) and admin management of ticket types.
Ticket types that are referenced by any order cannot be deleted, only
disabled, so historical orders always point at a real ticket type.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from domain.errors import TicketTypeNotFoundError, ValidationError
from domain.identity import CallerIdentity, require_admin
from domain.money import MoneyInput, to_money
from domain.ticket import UNLIMITED_QUOTA, TicketType
from domain.time import Clock, utc_now
from repositories.interfaces import NewTicketType, OrderStore, TicketStore

logger = logging.getLogger(__name__)


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("name", "Ticket type name is required")
    if len(cleaned) > 100:
        raise ValidationError("name", "Ticket type name must be at most 100 characters")
    return cleaned


def _clean_price(price: MoneyInput) -> Decimal:
    try:
        amount = to_money(price)
    except ValueError:
        raise ValidationError("price", "Price must be a valid amount") from None
    if amount < 0:
        raise ValidationError("price", "Price cannot be negative")
    return amount


def _clean_quota(quota: int) -> int:
    if isinstance(quota, bool) or not isinstance(quota, int):
        raise ValidationError("quota", "Quota must be an integer")
    if quota < 0 and quota != UNLIMITED_QUOTA:
        raise ValidationError("quota", f"Quota must be >= 0, or {UNLIMITED_QUOTA} for unlimited")
    return quota


def _clean_description(description: Optional[str]) -> Optional[str]:
    cleaned = (description or "").strip()
    return cleaned or None


class TicketService:
    """Service for ticket type reads and admin management."""

    def __init__(self, tickets: TicketStore, orders: OrderStore, clock: Clock = utc_now) -> None:
        self._tickets = tickets
        self._orders = orders
        self._clock = clock

    def list_public(self) -> List[TicketType]:
        """Active ticket types, cheapest first."""
        return self._tickets.list_active()

    def get(self, ticket_type_id: int) -> TicketType:
        ticket = self._tickets.get_by_id(ticket_type_id)
        if ticket is None:
            raise TicketTypeNotFoundError(ticket_type_id)
        return ticket

    def check_availability(self, ticket_type_id: int, requested_count: int) -> bool:
        return self._tickets.check_availability(ticket_type_id, requested_count)

    def list_all(self, caller: CallerIdentity) -> List[TicketType]:
        require_admin(caller)
        return self._tickets.list_all()

    def create(
        self,
        caller: CallerIdentity,
        *,
        name: str,
        price: MoneyInput,
        quota: int = UNLIMITED_QUOTA,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> TicketType:
        require_admin(caller)
        values = NewTicketType(
            name=_clean_name(name),
            description=_clean_description(description),
            price=_clean_price(price),
            quota=_clean_quota(quota),
            is_active=bool(is_active),
        )
        ticket = self._tickets.create(values, created_at=self._clock())
        logger.info(
            "Ticket type created",
            extra={"ticket_type_id": ticket.id, "ticket_name": ticket.name, "admin_id": caller.id},
        )
        return ticket

    def update(
        self,
        caller: CallerIdentity,
        ticket_type_id: int,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        price: Optional[MoneyInput] = None,
        quota: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> TicketType:
        """
        Update the given fields; None leaves a field unchanged.

        Price edits never touch existing orders (they keep their snapshot).
        A limited quota cannot be lowered below the number already sold.
        """

        require_admin(caller)
        current = self.get(ticket_type_id)

        changes: Dict[str, Any] = {}
        if name is not None:
            changes["name"] = _clean_name(name)
        if description is not None:
            changes["description"] = _clean_description(description)
        if price is not None:
            changes["price"] = _clean_price(price)
        if quota is not None:
            # Checked against sold_count by the store, atomically with the write.
            changes["quota"] = _clean_quota(quota)
        if is_active is not None:
            changes["is_active"] = bool(is_active)

        if not changes:
            return current

        updated = self._tickets.update(ticket_type_id, changes)
        if updated is None:
            raise TicketTypeNotFoundError(ticket_type_id)
        logger.info(
            "Ticket type updated",
            extra={"ticket_type_id": ticket_type_id, "fields": sorted(changes), "admin_id": caller.id},
        )
        return updated

    def delete(self, caller: CallerIdentity, ticket_type_id: int) -> None:
        """
        Delete a ticket type no order references.

        Raises:
            TicketTypeInUseError: An order has an attendee on this ticket type.
            TicketTypeNotFoundError: No such ticket type.
        """

        require_admin(caller)
        if not self._orders.delete_ticket_type_if_unreferenced(ticket_type_id):
            raise TicketTypeNotFoundError(ticket_type_id)
        logger.info("Ticket type deleted", extra={"ticket_type_id": ticket_type_id, "admin_id": caller.id})


__all__ = ["TicketService"]
