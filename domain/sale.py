"""
Domain: Sale (one credit purchase).

Contract rules captured here:
- A sale's total is fixed at creation: selling price x quantity + one service
  charge per sale.
- remaining_balance is a denormalized snapshot of the balance derived from the
  payment ledger; it is written only by balance synchronization.
- status is one of active, completed, defaulted. `defaulted` is only ever set
  by an explicit manual action.

This module captures the sale record. Balance derivation and status
transitions live in `domain/balance.py`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .money import clamp_non_negative, to_money
from .time import check_audit_timestamps


class SaleStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"


@dataclass(frozen=True, slots=True)
class Sale:
    """
    Immutable snapshot of a sale row.

    Money fields are normalized to 2-place Decimals on construction.
    """

    sale_id: UUID
    customer_id: UUID
    product_id: UUID
    quantity: int
    sale_date: date
    initial_payment: Decimal
    total_amount: Decimal
    remaining_balance: Decimal
    status: SaleStatus = SaleStatus.ACTIVE
    sale_number: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "initial_payment", to_money(self.initial_payment))
        object.__setattr__(self, "total_amount", to_money(self.total_amount))
        object.__setattr__(self, "remaining_balance", to_money(self.remaining_balance))
        object.__setattr__(self, "status", SaleStatus(self.status))
        check_audit_timestamps(created_at=self.created_at, updated_at=self.updated_at)

    def with_balance(self, remaining_balance: Decimal, status: Optional[SaleStatus] = None) -> "Sale":
        """Return a copy carrying a different balance snapshot (and optionally status)."""
        return replace(
            self,
            remaining_balance=remaining_balance,
            status=self.status if status is None else status,
        )


def calculate_total_amount(selling_price: Decimal, quantity: int, service_charge: Decimal) -> Decimal:
    """
    Total owed for a sale.

    The service charge is applied once per sale, not per unit.

    Example:
        calculate_total_amount(Decimal("5000"), 1, Decimal("700"))
        # Decimal('5700.00')
    """

    if quantity <= 0:
        raise ValueError("quantity must be a positive integer")
    return to_money(to_money(selling_price) * quantity + to_money(service_charge))


def opening_balance(total_amount: Decimal, initial_payment: Decimal) -> Decimal:
    """Balance of a freshly recorded sale, before any installment."""
    return clamp_non_negative(to_money(total_amount) - to_money(initial_payment))


__all__ = [
    "Sale",
    "SaleStatus",
    "calculate_total_amount",
    "opening_balance",
]
