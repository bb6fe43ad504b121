"""
Domain: Ticket types and their inventory.

Rules implemented here:
- A ticket type has a quota; UNLIMITED_QUOTA (-1) means it never sells out.
- sold_count never exceeds quota for limited types.
- A ticket type can fulfil a request only while it is active.
- sold_count only grows, and only through order creation.

This module contains only pure domain entities: no I/O, no database, no frameworks.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .time import require_utc_timestamp

UNLIMITED_QUOTA: int = -1


@dataclass(frozen=True, slots=True)
class TicketType:
    """
    A purchasable category (e.g. "General", "Student") with price and quota.

    Immutable: `with_sold` returns a new instance instead of mutating.
    """

    id: int
    name: str
    price: Decimal
    quota: int
    created_at: datetime
    sold_count: int = 0
    is_active: bool = True
    description: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.price < 0:
            raise ValueError("price cannot be negative")
        if self.quota < 0 and self.quota != UNLIMITED_QUOTA:
            raise ValueError(f"quota must be >= 0 or {UNLIMITED_QUOTA} (unlimited)")
        if self.sold_count < 0:
            raise ValueError("sold_count cannot be negative")
        if self.quota != UNLIMITED_QUOTA and self.sold_count > self.quota:
            raise ValueError(f"sold_count ({self.sold_count}) cannot exceed quota ({self.quota})")

    @property
    def is_unlimited(self) -> bool:
        return self.quota == UNLIMITED_QUOTA

    @property
    def remaining(self) -> Optional[int]:
        """Seats left to sell, or None when the quota is unlimited."""

        if self.is_unlimited:
            return None
        return max(self.quota - self.sold_count, 0)

    def can_fulfil(self, requested_count: int) -> bool:
        """True iff the type is active AND (unlimited OR remaining >= requested_count)."""

        if not self.is_active:
            return False
        if self.is_unlimited:
            return True
        return self.quota - self.sold_count >= requested_count

    def with_sold(self, count: int) -> "TicketType":
        """Return a copy with `count` more tickets sold. Refuses to oversell."""

        if count <= 0:
            raise ValueError("count must be positive")
        if not self.is_unlimited and self.sold_count + count > self.quota:
            raise ValueError(
                f"Cannot sell {count} of ticket type {self.id}: only {self.remaining} remaining"
            )
        return replace(self, sold_count=self.sold_count + count)


__all__ = ["TicketType", "UNLIMITED_QUOTA"]
