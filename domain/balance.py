"""
Domain: balance derivation and sale status transitions (pure).

Balance formula (single source for the whole platform):

    total_paid        = initial_payment + sum(payment.amount for every payment)
    remaining_balance = max(0, total_amount - total_paid)
    is_settled        = remaining_balance == 0

Every payment recorded against the sale counts, whatever its date. The
registration fee is not part of the formula.

Status state machine:

    active    --(balance reaches 0)-->            completed
    completed --(edit/delete re-opens balance)--> active
    active    --(manual action only)-->           defaulted

Nothing leaves `defaulted` automatically.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from itertools import chain
from typing import Iterable, Protocol

from .money import ZERO, clamp_non_negative, money_sum, to_money
from .sale import SaleStatus


class SaleTerms(Protocol):
    total_amount: Decimal
    initial_payment: Decimal


class HasAmount(Protocol):
    amount: Decimal


@dataclass(frozen=True, slots=True)
class BalanceResult:
    remaining_balance: Decimal
    is_settled: bool


def total_paid(initial_payment: Decimal, amounts: Iterable[Decimal]) -> Decimal:
    """Initial payment plus all installment amounts, negatives clamped to zero."""

    return money_sum(clamp_non_negative(to_money(value)) for value in chain((initial_payment,), amounts))


def balance_from_amounts(
    total_amount: Decimal,
    initial_payment: Decimal,
    amounts: Iterable[Decimal],
) -> BalanceResult:
    """Derive a balance from raw payment amounts."""

    total = clamp_non_negative(to_money(total_amount))
    remaining = clamp_non_negative(total - total_paid(initial_payment, amounts))
    return BalanceResult(remaining_balance=remaining, is_settled=remaining == ZERO)


def derive_balance(sale: SaleTerms, payments: Iterable[HasAmount]) -> BalanceResult:
    """
    Derive the outstanding balance of a sale from its payment ledger.

    Pure and total: malformed negative inputs are clamped, never rejected.

    Example:
        derive_balance(sale, [])          # total=5700, initial=610 -> 5090.00
        derive_balance(sale, [payment])   # one payment of 57       -> 5033.00
    """

    return balance_from_amounts(
        sale.total_amount,
        sale.initial_payment,
        (payment.amount for payment in payments),
    )


def resolve_status(current: SaleStatus, is_settled: bool) -> SaleStatus:
    """
    Apply the automatic status transitions.

    `defaulted` is sticky: only an explicit manual action changes it.
    """

    current = SaleStatus(current)
    if current is SaleStatus.DEFAULTED:
        return current
    return SaleStatus.COMPLETED if is_settled else SaleStatus.ACTIVE


def installments_remaining(remaining_balance: Decimal, daily_installment: Decimal) -> int:
    """
    Number of daily installments still needed to settle a balance.

    Raises:
        ValueError: If daily_installment is not positive.
    """

    installment = to_money(daily_installment)
    if installment <= ZERO:
        raise ValueError("daily_installment must be greater than 0")
    balance = clamp_non_negative(to_money(remaining_balance))
    return int((balance / installment).to_integral_value(rounding=ROUND_CEILING))


__all__ = [
    "BalanceResult",
    "balance_from_amounts",
    "derive_balance",
    "installments_remaining",
    "resolve_status",
    "total_paid",
]
