"""
Order repository backed by Supabase (persistence).

Order creation goes through the `create_order_atomic()` PostgreSQL function,
which:
- Locks the reserved ticket_types rows (FOR UPDATE, ordered by id)
- Re-checks availability for every reserved ticket type
- Inserts the order with its attendee manifest (JSONB)
- Increments sold_count for each ticket type
All in a single transaction.

Payment and verification are conditional UPDATEs filtered on the current
state, so a second writer matches zero rows instead of overwriting the first.

Ticket type deletion goes through `delete_ticket_type_if_unreferenced()`,
which takes the same row lock as order creation before checking the
attendee manifests.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List, Mapping, Optional

from postgrest.exceptions import APIError

from domain.errors import (
    DuplicateOrderNumberError,
    InsufficientInventoryError,
    InvalidOrderStateError,
    InvalidTicketTypeError,
    OrderNotFoundError,
    TicketTypeInUseError,
)
from domain.money import to_money
from domain.order import (
    PAYMENT_METHOD_TRANSFER,
    AttendeeEntry,
    Order,
    OrderStatus,
    validate_bank_last4,
)
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.interfaces import OrderQueryFilters, OrderStore

# Supabase table name for orders.
# Keep this aligned with sql/schema.sql.
_ORDERS_TABLE: str = "orders"

# Characters with meaning inside a PostgREST or=(...) expression.
_SEARCH_RESERVED = str.maketrans("", "", ",()*%\"\\")


def _raise_on_error(response: Any, action: str) -> None:
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")


def _row_to_order(row: Mapping[str, Any]) -> Order:
    """Convert a Supabase row into an Order."""

    attendees_raw = row.get("attendees") or []
    if isinstance(attendees_raw, str):
        attendees_raw = json.loads(attendees_raw)

    attendees = tuple(
        AttendeeEntry(
            name=str(a["name"]),
            ticket_type_id=int(a["ticket_type_id"]),
            ticket_name=str(a["ticket_name"]),
            ticket_price=to_money(str(a["ticket_price"])),
        )
        for a in attendees_raw
    )
    paid_at = row.get("paid_at")

    return Order(
        id=int(row["id"]) if row.get("id") is not None else None,
        order_no=str(row["order_no"]),
        customer_name=str(row["customer_name"]),
        customer_email=str(row["customer_email"]),
        customer_phone=row.get("customer_phone"),
        attendees=attendees,
        total_amount=to_money(str(row["total_amount"])),
        status=OrderStatus(str(row["status"])),
        paid_at=parse_utc_datetime(paid_at) if paid_at else None,
        created_at=parse_utc_datetime(row["created_at"]),
        payment_method=row.get("payment_method"),
        payer_bank_last4=row.get("payer_bank_last4"),
        verified_by=row.get("verified_by"),
    )


def _order_to_payload(order: Order) -> dict[str, Any]:
    return {
        "order_no": order.order_no,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "attendees": [
            {
                "name": a.name,
                "ticket_type_id": a.ticket_type_id,
                "ticket_name": a.ticket_name,
                "ticket_price": str(a.ticket_price),
            }
            for a in order.attendees
        ],
        "total_amount": str(order.total_amount),
        "status": order.status.value,
        "created_at": to_iso_utc(order.created_at, name="created_at"),
    }


def _rpc_result(client: Any, function: str, params: dict[str, Any]) -> Mapping[str, Any]:
    """
    Call a JSON-returning PostgreSQL function and return its payload.

    Supabase-py raises APIError when a function returns a bare JSON object,
    for BOTH success and error payloads, so the body is recovered from the
    exception when it carries a `success` key.
    """

    try:
        response = client.rpc(function, params).execute()
    except APIError as e:
        payload = e.json() if callable(getattr(e, "json", None)) else {}
        if isinstance(payload, Mapping) and "success" in payload:
            return payload
        raise RuntimeError(f"{function} failed: {e}") from e

    _raise_on_error(response, function)
    data = getattr(response, "data", None)
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, Mapping):
        raise RuntimeError(f"{function} returned an unexpected payload: {data!r}")
    return data


class SupabaseOrderStore(OrderStore):
    """PostgreSQL-backed order store using the Supabase client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def _table(self) -> Any:
        return self._client.table(_ORDERS_TABLE)

    def create_with_reservation(self, order: Order, reservations: Mapping[int, int]) -> Order:
        result = _rpc_result(
            self._client,
            "create_order_atomic",
            {
                "p_order": _order_to_payload(order),
                "p_reservations": [
                    {"ticket_type_id": ticket_type_id, "count": count}
                    for ticket_type_id, count in reservations.items()
                ],
            },
        )

        if result.get("success"):
            return _row_to_order(result["order"])

        error_code = result.get("error")
        if error_code == "INSUFFICIENT_INVENTORY":
            raise InsufficientInventoryError([
                (
                    int(s["ticket_type_id"]),
                    str(s.get("ticket_name") or s["ticket_type_id"]),
                    int(s["requested"]),
                    int(s["available"]) if s.get("available") is not None else None,
                )
                for s in result.get("shortages") or []
            ])
        if error_code == "INVALID_TICKET_TYPE":
            raise InvalidTicketTypeError(int(i) for i in result.get("ticket_type_ids") or [])
        if error_code == "DUPLICATE_ORDER_NO":
            raise DuplicateOrderNumberError(order.order_no)
        raise RuntimeError(f"create_order_atomic failed: {error_code}: {result.get('message')}")

    def get_by_order_no(self, order_no: str) -> Optional[Order]:
        response = self._table().select("*").eq("order_no", order_no).limit(1).execute()
        _raise_on_error(response, "fetch order")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_order(rows[0])

    def mark_paid(self, order_no: str, paid_at: datetime) -> Order:
        response = (
            self._table()
            .update({"status": OrderStatus.PAID.value, "paid_at": to_iso_utc(paid_at, name="paid_at")})
            .eq("order_no", order_no)
            .eq("status", OrderStatus.PENDING.value)
            .execute()
        )
        _raise_on_error(response, "mark order paid")

        rows = getattr(response, "data", None) or []
        if rows:
            return _row_to_order(rows[0])

        # Nothing matched: either the order is missing or no longer pending.
        current = self.get_by_order_no(order_no)
        if current is None:
            raise OrderNotFoundError(order_no)
        current.mark_paid(paid_at)
        raise InvalidOrderStateError(order_no)

    def record_transfer_verification(self, order_no: str, payer_bank_last4: str, verified_by: str) -> Order:
        validate_bank_last4(payer_bank_last4)
        response = (
            self._table()
            .update({
                "payment_method": PAYMENT_METHOD_TRANSFER,
                "payer_bank_last4": payer_bank_last4,
                "verified_by": verified_by,
            })
            .eq("order_no", order_no)
            .eq("status", OrderStatus.PAID.value)
            .is_("payer_bank_last4", "null")
            .execute()
        )
        _raise_on_error(response, "record transfer verification")

        rows = getattr(response, "data", None) or []
        if rows:
            return _row_to_order(rows[0])

        current = self.get_by_order_no(order_no)
        if current is None:
            raise OrderNotFoundError(order_no)
        current.with_transfer_verification(payer_bank_last4, verified_by)
        raise InvalidOrderStateError(order_no)

    def _apply_filters(self, query: Any, filters: OrderQueryFilters) -> Any:
        if filters.status is not None:
            query = query.eq("status", filters.status.value)
        if filters.search:
            term = filters.search.translate(_SEARCH_RESERVED).strip()
            if term:
                query = query.or_(
                    f"order_no.ilike.*{term}*,"
                    f"customer_name.ilike.*{term}*,"
                    f"customer_email.ilike.*{term}*"
                )
        return query

    def query(self, filters: OrderQueryFilters, limit: Optional[int] = None, offset: int = 0) -> List[Order]:
        query = self._apply_filters(self._table().select("*"), filters)
        query = query.order("created_at", desc=True).order("id", desc=True)
        if limit is not None:
            query = query.range(offset, offset + limit - 1)
        elif offset:
            # PostgREST needs an upper bound for an offset-only range.
            query = query.range(offset, 2**31 - 1)

        response = query.execute()
        _raise_on_error(response, "query orders")
        return [_row_to_order(row) for row in getattr(response, "data", None) or []]

    def count(self, filters: OrderQueryFilters) -> int:
        query = self._apply_filters(self._table().select("id", count="exact"), filters)
        response = query.execute()
        _raise_on_error(response, "count orders")
        return int(getattr(response, "count", None) or 0)

    def delete_ticket_type_if_unreferenced(self, ticket_type_id: int) -> bool:
        response = self._client.rpc(
            "delete_ticket_type_if_unreferenced",
            {"p_ticket_type_id": ticket_type_id},
        ).execute()
        _raise_on_error(response, "delete ticket type")

        outcome = getattr(response, "data", None)
        if outcome == "deleted":
            return True
        if outcome == "not_found":
            return False
        if outcome == "referenced":
            raise TicketTypeInUseError(ticket_type_id)
        raise RuntimeError(f"delete_ticket_type_if_unreferenced returned an unexpected payload: {outcome!r}")


__all__ = ["SupabaseOrderStore"]
