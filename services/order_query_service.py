"""
Admin query and export views over orders.

Read-only. Both views share the same filter semantics: exact status match
and a case-insensitive substring search across order number, customer name
and customer e-mail, newest orders first.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from domain.errors import ValidationError
from domain.identity import CallerIdentity, require_admin
from domain.order import OrderStatus
from repositories.interfaces import OrderQueryFilters, OrderStore, TicketStore
from services.order_details import OrderDetails, build_many_order_details

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True, slots=True)
class OrderPage:
    orders: List[OrderDetails]
    total: int
    page: int
    page_size: int
    total_pages: int


@dataclass(frozen=True, slots=True)
class OrderExportRow:
    """One order flattened for spreadsheet export. Status is a human label."""

    order_no: str
    customer_name: str
    customer_email: str
    customer_phone: str
    ticket_name: str
    quantity: int
    attendee_names: str
    total_amount: Decimal
    status_label: str
    payment_method: str
    payer_bank_last4: str
    verified_by: str
    paid_at: Optional[datetime]
    created_at: datetime


def parse_status(status: Optional[str]) -> Optional[OrderStatus]:
    """Map an optional raw status filter to OrderStatus. Blank means no filter."""

    if status is None or not status.strip():
        return None
    try:
        return OrderStatus(status.strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError("status", f"Unknown order status '{status}'. Expected one of: {allowed}") from None


def _build_filters(status: Optional[str], search: Optional[str]) -> OrderQueryFilters:
    term = (search or "").strip()
    return OrderQueryFilters(status=parse_status(status), search=term or None)


class OrderQueryService:
    def __init__(self, orders: OrderStore, tickets: TicketStore) -> None:
        self._orders = orders
        self._tickets = tickets

    def list_orders(
        self,
        caller: CallerIdentity,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> OrderPage:
        """
        Paginated order list. Pages are 1-based.

        total_pages is ceil(total / page_size); a page past the end is empty.
        """

        require_admin(caller)
        if page < 1:
            raise ValidationError("page", "page must be >= 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError("page_size", f"page_size must be between 1 and {MAX_PAGE_SIZE}")

        filters = _build_filters(status, search)
        total = self._orders.count(filters)
        orders = self._orders.query(filters, limit=page_size, offset=(page - 1) * page_size)

        return OrderPage(
            orders=build_many_order_details(orders, self._tickets),
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
        )

    def export_orders(self, caller: CallerIdentity, status: Optional[str] = None) -> List[OrderExportRow]:
        """Every matching order, unpaginated, flattened for export."""

        require_admin(caller)
        filters = _build_filters(status, None)
        details = build_many_order_details(self._orders.query(filters), self._tickets)

        return [
            OrderExportRow(
                order_no=d.order.order_no,
                customer_name=d.order.customer_name,
                customer_email=d.order.customer_email,
                customer_phone=d.order.customer_phone or "",
                ticket_name=d.ticket_name,
                quantity=d.quantity,
                attendee_names="; ".join(a.name for a in d.order.attendees),
                total_amount=d.order.total_amount,
                status_label=d.order.status.label,
                payment_method=d.order.payment_method or "",
                payer_bank_last4=d.order.payer_bank_last4 or "",
                verified_by=d.order.verified_by or "",
                paid_at=d.order.paid_at,
                created_at=d.order.created_at,
            )
            for d in details
        ]


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "OrderExportRow",
    "OrderPage",
    "OrderQueryService",
    "parse_status",
]
