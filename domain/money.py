"""
Domain: currency arithmetic.

All money in the platform is a `Decimal` with exactly two decimal places.
Values coming from the database or from JSON may be ints, floats or strings;
floats are converted through `str()` so binary rounding drift never enters a
balance.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """
    Convert a value to a 2-place Decimal.

    None is treated as zero (nullable numeric columns).

    Raises:
        ValueError: If the value cannot be interpreted as a number.
    """

    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"Not a currency amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a currency amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Not a currency amount: {value!r}")
    return amount.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def clamp_non_negative(value: Decimal) -> Decimal:
    """Clamp a money value at zero."""
    return value if value > ZERO else ZERO


def money_sum(values: Any) -> Decimal:
    """Exact sum of money values (order-independent)."""
    total = ZERO
    for value in values:
        total += to_money(value)
    return total
