"""
Order number generation.

Format: "T" + base-36 millisecond timestamp + 8 random hex characters, all
upper-case (e.g. "TM5X2K9Q1A3F09BC7"). URL-safe, roughly time-sortable, and
random enough that collisions are negligible; the store still rejects a
duplicate and the caller retries with a fresh number.
"""

from __future__ import annotations

import string
from datetime import datetime
from uuid import uuid4

from domain.time import require_utc_timestamp, utc_now

_BASE36_DIGITS = string.digits + string.ascii_uppercase


def _to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_order_no(now: datetime | None = None) -> str:
    now = now or utc_now()
    require_utc_timestamp("now", now)
    millis = int(now.timestamp() * 1000)
    random_suffix = uuid4().hex[:8].upper()
    return f"T{_to_base36(millis)}{random_suffix}"


__all__ = ["generate_order_no"]
