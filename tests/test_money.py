"""
Tests for `domain/money.py`.

Covers:
- Conversion to 2-place Decimals with half-up rounding.
- Floats never introduce binary rounding drift.
- Non-numeric input is rejected.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.money import ZERO, clamp_non_negative, money_sum, to_money


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, "0.00"),
        (57, "57.00"),
        ("5090", "5090.00"),
        (0.1, "0.10"),
        (Decimal("2.345"), "2.35"),
        ("-12.5", "-12.50"),
    ],
)
def test_to_money(value, expected) -> None:
    assert to_money(value) == Decimal(expected)


def test_float_sums_do_not_drift() -> None:
    """0.1 + 0.2 is exactly 0.30 once amounts are money."""

    assert money_sum([0.1, 0.2]) == Decimal("0.30")
    assert money_sum([0.1] * 10) == Decimal("1.00")


@pytest.mark.parametrize("value", ["abc", True, float("nan"), "Infinity"])
def test_to_money_rejects_non_numbers(value) -> None:
    with pytest.raises(ValueError):
        to_money(value)


def test_clamp_non_negative() -> None:
    assert clamp_non_negative(Decimal("-1.00")) == ZERO
    assert clamp_non_negative(Decimal("3.00")) == Decimal("3.00")
