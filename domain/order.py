"""
Domain: Orders and their embedded attendee manifest.

Rules implemented here:
- total_amount equals the sum of the attendee price snapshots taken at booking time.
- The attendee manifest is owned by the order: later ticket price edits never
  change a historical order.
- Status moves one way only: pending -> paid, pending -> cancelled. Paid and
  cancelled are terminal.
- Transfer verification is recorded at most once, and only on a paid order.

This module contains only pure domain entities: no I/O, no database, no frameworks.
All timestamps must be passed explicitly.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

from .errors import (
    AlreadyPaidError,
    AlreadyVerifiedError,
    InvalidOrderStateError,
    OrderCancelledError,
    ValidationError,
)
from .money import sum_money
from .time import require_utc_timestamp

MAX_ATTENDEES: int = 5
PAYMENT_METHOD_TRANSFER: str = "transfer"

_BANK_LAST4_RE = re.compile(r"[0-9]{4}")


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        """Human label used in exports."""
        return self.value.capitalize()


@dataclass(frozen=True, slots=True)
class AttendeeEntry:
    """One attendee with the ticket name and price as they were at booking time."""

    name: str
    ticket_type_id: int
    ticket_name: str
    ticket_price: Decimal


@dataclass(frozen=True, slots=True)
class Order:
    """
    Immutable registration transaction covering one or more attendees.

    State changes return new instances (see `mark_paid` and
    `with_transfer_verification`). `id` is None until a store persists it.
    """

    order_no: str
    customer_name: str
    customer_email: str
    attendees: Tuple[AttendeeEntry, ...]
    total_amount: Decimal
    created_at: datetime
    status: OrderStatus = OrderStatus.PENDING
    customer_phone: Optional[str] = None
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payer_bank_last4: Optional[str] = None
    verified_by: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.paid_at is not None:
            require_utc_timestamp("paid_at", self.paid_at)
        if not self.attendees:
            raise ValueError("An order must have at least one attendee")
        if self.total_amount != sum_money(a.ticket_price for a in self.attendees):
            raise ValueError("total_amount must equal the sum of attendee ticket prices")

    @property
    def quantity(self) -> int:
        return len(self.attendees)

    @property
    def is_verified(self) -> bool:
        return self.payer_bank_last4 is not None

    def ticket_counts(self) -> Dict[int, int]:
        """Number of attendees per ticket type id, in first-seen order."""

        return dict(Counter(a.ticket_type_id for a in self.attendees))

    def mark_paid(self, paid_at: datetime) -> "Order":
        """
        Return a copy transitioned pending -> paid.

        Raises AlreadyPaidError or OrderCancelledError instead of silently
        accepting a second payment.
        """

        require_utc_timestamp("paid_at", paid_at)
        if self.status is OrderStatus.PAID:
            raise AlreadyPaidError(self.order_no)
        if self.status is OrderStatus.CANCELLED:
            raise OrderCancelledError(self.order_no)
        return replace(self, status=OrderStatus.PAID, paid_at=paid_at)

    def with_transfer_verification(self, payer_bank_last4: str, verified_by: str) -> "Order":
        """
        Return a copy annotated with bank transfer evidence.

        Amount, status and timestamps are left untouched.
        """

        validate_bank_last4(payer_bank_last4)
        if self.status is not OrderStatus.PAID:
            raise InvalidOrderStateError(
                self.order_no,
                f"Order {self.order_no} must be paid before its transfer can be verified",
            )
        if self.is_verified:
            raise AlreadyVerifiedError(self.order_no)
        return replace(
            self,
            payment_method=PAYMENT_METHOD_TRANSFER,
            payer_bank_last4=payer_bank_last4,
            verified_by=verified_by,
        )


def validate_bank_last4(value: str) -> None:
    if not isinstance(value, str) or not _BANK_LAST4_RE.fullmatch(value):
        raise ValidationError("payer_bank_last4", "Payer bank account last 4 digits must be exactly 4 digits")


__all__ = [
    "AttendeeEntry",
    "MAX_ATTENDEES",
    "Order",
    "OrderStatus",
    "PAYMENT_METHOD_TRANSFER",
    "validate_bank_last4",
]
