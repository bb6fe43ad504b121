"""
Ticket type repository backed by Supabase (persistence).

This module provides *only* persistence operations for the TicketType domain
entity. The quota-guarded increment runs inside Postgres
(`increment_ticket_sold`, see sql/schema.sql) so concurrent sales cannot
oversell. Quota edits are conditional UPDATEs filtered on sold_count, so
an order committed meanwhile makes the edit match zero rows. Everything else
is plain PostgREST table access.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from domain.errors import QuotaBelowSoldError
from domain.money import to_money
from domain.ticket import UNLIMITED_QUOTA, TicketType
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.interfaces import NewTicketType, TicketStore

# Supabase table name for ticket types.
# Keep this aligned with sql/schema.sql.
_TICKET_TYPES_TABLE: str = "ticket_types"

_UPDATABLE_FIELDS = frozenset({"name", "description", "price", "quota", "is_active"})


def _raise_on_error(response: Any, action: str) -> None:
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")


def _row_to_ticket_type(row: Mapping[str, Any]) -> TicketType:
    """Convert a Supabase row into a TicketType."""

    return TicketType(
        id=int(row["id"]),
        name=str(row["name"]),
        description=row.get("description"),
        price=to_money(str(row["price"])),
        quota=int(row["quota"]),
        sold_count=int(row.get("sold_count") or 0),
        is_active=bool(row.get("is_active", True)),
        created_at=parse_utc_datetime(row["created_at"]),
    )


def _serialize_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for field, value in changes.items():
        payload[field] = str(value) if isinstance(value, Decimal) else value
    return payload


class SupabaseTicketStore(TicketStore):
    """PostgreSQL-backed ticket store using the Supabase client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def _table(self) -> Any:
        return self._client.table(_TICKET_TYPES_TABLE)

    def get_by_id(self, ticket_type_id: int) -> Optional[TicketType]:
        response = self._table().select("*").eq("id", ticket_type_id).limit(1).execute()
        _raise_on_error(response, "fetch ticket type")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_ticket_type(rows[0])

    def list_active(self) -> List[TicketType]:
        response = (
            self._table()
            .select("*")
            .eq("is_active", True)
            .order("price")
            .order("id")
            .execute()
        )
        _raise_on_error(response, "list active ticket types")
        return [_row_to_ticket_type(row) for row in getattr(response, "data", None) or []]

    def list_all(self) -> List[TicketType]:
        response = (
            self._table()
            .select("*")
            .order("created_at", desc=True)
            .order("id", desc=True)
            .execute()
        )
        _raise_on_error(response, "list ticket types")
        return [_row_to_ticket_type(row) for row in getattr(response, "data", None) or []]

    def check_availability(self, ticket_type_id: int, requested_count: int) -> bool:
        ticket = self.get_by_id(ticket_type_id)
        return ticket is not None and ticket.can_fulfil(requested_count)

    def increment_sold(self, ticket_type_id: int, count: int) -> bool:
        response = self._client.rpc(
            "increment_ticket_sold",
            {"p_ticket_type_id": ticket_type_id, "p_count": count},
        ).execute()
        _raise_on_error(response, "increment sold count")
        return bool(getattr(response, "data", False))

    def create(self, values: NewTicketType, created_at: datetime) -> TicketType:
        payload: dict[str, Any] = {
            "name": values.name,
            "description": values.description,
            "price": str(values.price),
            "quota": values.quota,
            "sold_count": 0,
            "is_active": values.is_active,
            "created_at": to_iso_utc(created_at, name="created_at"),
        }

        response = self._table().insert(payload).execute()
        _raise_on_error(response, "create ticket type")

        rows = getattr(response, "data", None) or []
        if not rows:
            raise RuntimeError("Failed to create ticket type: no row returned")
        return _row_to_ticket_type(rows[0])

    def update(self, ticket_type_id: int, changes: Mapping[str, Any]) -> Optional[TicketType]:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update ticket type fields: {sorted(unknown)}")
        if not changes:
            return self.get_by_id(ticket_type_id)

        query = self._table().update(_serialize_changes(changes)).eq("id", ticket_type_id)
        quota = changes.get("quota")
        if quota is not None and quota != UNLIMITED_QUOTA:
            # Evaluated against the locked row, after any concurrent order commits.
            query = query.lte("sold_count", quota)
        response = query.execute()
        _raise_on_error(response, "update ticket type")

        rows = getattr(response, "data", None) or []
        if rows:
            return _row_to_ticket_type(rows[0])

        current = self.get_by_id(ticket_type_id)
        if current is None:
            return None
        raise QuotaBelowSoldError(ticket_type_id, current.sold_count)

    def delete(self, ticket_type_id: int) -> bool:
        response = self._table().delete().eq("id", ticket_type_id).execute()
        _raise_on_error(response, "delete ticket type")
        return bool(getattr(response, "data", None))


__all__ = ["SupabaseTicketStore"]
