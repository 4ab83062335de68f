"""
Service-level errors.

Validation errors are raised before any write happens. BalanceSyncError is
raised *after* a mutation has been committed: the payment ledger is correct
and only the sale's cached balance is stale. Retry with
`BalanceReconciliationEngine.recompute_and_persist`, never by repeating the
mutation.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple
from uuid import UUID

from domain.payment import Payment


class SaleNotFoundError(LookupError):
    def __init__(self, sale_id: UUID) -> None:
        super().__init__(f"Sale not found: {sale_id}")
        self.sale_id = sale_id


class PaymentNotFoundError(LookupError):
    def __init__(self, payment_id: UUID) -> None:
        super().__init__(f"Payment not found: {payment_id}")
        self.payment_id = payment_id


class PaymentValidationError(ValueError):
    """Raised when a payment request breaks a business rule."""


class SaleValidationError(ValueError):
    """Raised when sale terms break a business rule."""


class SaleStatusError(ValueError):
    """Raised when a manual status action is not allowed from the current status."""


class SaleHasPaymentsError(ValueError):
    def __init__(self, sale_id: UUID, payment_count: int) -> None:
        super().__init__(
            f"Sale {sale_id} has {payment_count} payment(s) and cannot be deleted"
        )
        self.sale_id = sale_id
        self.payment_count = payment_count


class BalanceSyncError(RuntimeError):
    """
    The mutation succeeded but writing the recomputed balance failed.

    `stale_sale_ids` lists every sale whose stored balance is now stale; a
    payment moved between sales can leave both behind.
    """

    def __init__(
        self,
        sale_id: UUID,
        cause: BaseException,
        payment: Optional[Payment] = None,
        stale_sale_ids: Sequence[UUID] = (),
    ) -> None:
        self.sale_id = sale_id
        self.cause = cause
        self.payment = payment
        self.stale_sale_ids: Tuple[UUID, ...] = tuple(stale_sale_ids) or (sale_id,)
        sales = ", ".join(str(stale_id) for stale_id in self.stale_sale_ids)
        super().__init__(f"Balance sync failed for sale {sales}: {cause}")

    def with_payment(self, payment: Payment) -> "BalanceSyncError":
        """Attach the committed payment (payment recorded, balance sync failed)."""
        error = BalanceSyncError(self.sale_id, self.cause, payment, self.stale_sale_ids)
        error.__cause__ = self.__cause__
        return error


__all__ = [
    "BalanceSyncError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "SaleHasPaymentsError",
    "SaleNotFoundError",
    "SaleStatusError",
    "SaleValidationError",
]
