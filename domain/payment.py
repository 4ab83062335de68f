"""
Domain: Payment (one installment against one sale).

Payments are independently stored rows; the set of payments for a sale is the
ledger from which the sale's balance is derived.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .money import to_money
from .time import check_audit_timestamps


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"


@dataclass(frozen=True, slots=True)
class Payment:
    """Immutable record of an installment payment."""

    payment_id: UUID
    sale_id: UUID
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_money(self.amount))
        object.__setattr__(self, "payment_method", PaymentMethod(self.payment_method))
        check_audit_timestamps(created_at=self.created_at)
