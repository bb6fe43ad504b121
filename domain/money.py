"""
Domain: fixed-point money helpers.

Amounts are Decimal values with two fractional digits. Binary floats are never
used for prices or totals, so summing many attendee prices cannot drift.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyInput = Union[Decimal, int, float, str]


def to_money(value: MoneyInput) -> Decimal:
    """
    Coerce a value into a 2dp Decimal.

    Floats go through `str()` first so 0.1 becomes Decimal("0.10") rather
    than its binary expansion.
    """

    if isinstance(value, bool):
        raise ValueError("Amount must be numeric, got bool")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(amounts: Iterable[Decimal]) -> Decimal:
    total = ZERO
    for amount in amounts:
        total += amount
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal) -> str:
    return f"{amount.quantize(CENT, rounding=ROUND_HALF_UP):.2f}"


__all__ = ["CENT", "ZERO", "format_money", "sum_money", "to_money"]
