"""
Payment service for recording, editing and deleting installments.

Every flow follows the same order:
1. Validate the request (amount, method, sale state, overpayment)
2. Commit the payment write
3. Recompute the parent sale's balance from the ledger and persist it

If step 2 fails nothing has changed and the StoreError propagates. If step 3
fails the payment stands and BalanceSyncError (with the payment attached) is
raised so the caller can flag the balance as stale and retry the sync alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from domain.money import ZERO, to_money
from domain.payment import Payment, PaymentMethod
from domain.sale import SaleStatus
from domain.time import utc_now
from repositories.errors import StoreError
from services.balance_service import BalanceReconciliationEngine, SyncResult
from services.errors import (
    BalanceSyncError,
    PaymentNotFoundError,
    PaymentValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentOutcome:
    """
    Result of a payment mutation.

    payment: The payment as stored (for deletes, the payment that was removed)
    sync: Balance snapshot written for the affected sale
    previous_sale_sync: Snapshot written for the sale a payment was moved away from
    """
    payment: Payment
    sync: SyncResult
    previous_sale_sync: Optional[SyncResult] = None

    @property
    def sale_completed(self) -> bool:
        return self.sync.status is SaleStatus.COMPLETED


def _validate_amount(amount: Any) -> Decimal:
    try:
        value = to_money(amount)
    except ValueError as e:
        raise PaymentValidationError(str(e)) from None
    if value <= ZERO:
        raise PaymentValidationError("Payment amount must be greater than 0")
    return value


def _validate_method(method: Any) -> PaymentMethod:
    try:
        return PaymentMethod(method)
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise PaymentValidationError(f"Unknown payment method {method!r} (expected one of: {allowed})") from None


class PaymentService:
    """Payment flows that keep the parent sale's balance in sync."""

    def __init__(self, engine: BalanceReconciliationEngine) -> None:
        self.engine = engine
        self.payments_store = engine.payments_store

    async def _check_payable(self, sale_id: UUID, amount: Decimal, already_counted: Decimal = ZERO) -> None:
        """
        Reject payments against closed sales or beyond the live balance.

        `already_counted` is the portion of the live balance's paid total that
        the payment being edited already contributes.
        """

        sale, balance = await self.engine.derive_sale_balance(sale_id)

        if sale.status is SaleStatus.DEFAULTED:
            raise PaymentValidationError(f"Sale {sale_id} is defaulted; payments are not accepted")

        payable = balance.remaining_balance + already_counted
        if payable <= ZERO:
            raise PaymentValidationError(f"Sale {sale_id} is already fully paid")
        if amount > payable:
            raise PaymentValidationError(
                f"Payment amount {amount} exceeds remaining balance {payable}"
            )

    async def _sync(self, sale_id: UUID, payment: Payment) -> SyncResult:
        """Resync a sale after a committed payment write; every failure is a sync failure."""
        try:
            return await self.engine.recompute_and_persist(sale_id)
        except BalanceSyncError as e:
            raise e.with_payment(payment) from e.__cause__
        except StoreError as e:
            raise BalanceSyncError(sale_id, e, payment) from e

    async def record_payment(
        self,
        sale_id: UUID,
        amount: Any,
        payment_method: Any = PaymentMethod.CASH,
        notes: Optional[str] = None,
        payment_date: Optional[date] = None,
        created_by: Optional[UUID] = None,
    ) -> PaymentOutcome:
        """
        Record an installment against a sale.

        Raises:
            PaymentValidationError: Invalid amount/method, closed sale, or overpayment
            SaleNotFoundError: If the sale does not exist
            StoreError: If a read or the payment write fails (nothing recorded)
            BalanceSyncError: Payment recorded, balance sync failed

        Example:
            outcome = await service.record_payment(sale_id, Decimal("57.00"))
            if outcome.sale_completed:
                print("Payment recorded! Sale completed.")
        """

        value = _validate_amount(amount)
        method = _validate_method(payment_method)
        await self._check_payable(sale_id, value)

        now = utc_now()
        payment = Payment(
            payment_id=uuid4(),
            sale_id=sale_id,
            amount=value,
            payment_date=payment_date or now.date(),
            payment_method=method,
            notes=notes or None,
            created_by=created_by,
            created_at=now,
        )
        stored = await self.payments_store.create_payment(payment)
        logger.info(
            f"Payment of {value} recorded for sale {sale_id}",
            extra={"sale_id": str(sale_id), "payment_id": str(stored.payment_id), "amount": str(value)},
        )

        return PaymentOutcome(payment=stored, sync=await self._sync(sale_id, stored))

    async def edit_payment(
        self,
        payment_id: UUID,
        amount: Any = None,
        payment_date: Optional[date] = None,
        payment_method: Any = None,
        notes: Optional[str] = None,
        sale_id: Optional[UUID] = None,
    ) -> PaymentOutcome:
        """
        Edit a recorded payment and resynchronize the affected sale(s).

        When the payment is moved to a different sale, both the new and the
        previous sale are resynchronized.

        Raises:
            PaymentNotFoundError: If the payment does not exist
            PaymentValidationError: Invalid values or overpayment
            BalanceSyncError: Payment updated; the sales in `stale_sale_ids`
                could not be resynchronized
        """

        current = await self.payments_store.get_payment(payment_id)
        if current is None:
            raise PaymentNotFoundError(payment_id)

        fields: Dict[str, Any] = {}
        if amount is not None:
            fields["amount"] = _validate_amount(amount)
        if payment_method is not None:
            fields["payment_method"] = _validate_method(payment_method)
        if payment_date is not None:
            fields["payment_date"] = payment_date
        if notes is not None:
            fields["notes"] = notes
        if sale_id is not None and sale_id != current.sale_id:
            fields["sale_id"] = sale_id

        if not fields:
            return PaymentOutcome(payment=current, sync=await self._sync(current.sale_id, current))

        target_sale = fields.get("sale_id", current.sale_id)
        new_amount = fields.get("amount", current.amount)
        if "amount" in fields or "sale_id" in fields:
            counted = current.amount if target_sale == current.sale_id else ZERO
            await self._check_payable(target_sale, new_amount, already_counted=counted)

        await self.payments_store.update_payment(payment_id, fields)
        updated = await self.payments_store.get_payment(payment_id) or current
        logger.info(
            f"Payment {payment_id} edited",
            extra={"payment_id": str(payment_id), "fields": sorted(fields)},
        )

        sync: Optional[SyncResult] = None
        previous_sync: Optional[SyncResult] = None
        failures: List[BalanceSyncError] = []
        try:
            sync = await self._sync(target_sale, updated)
        except BalanceSyncError as e:
            failures.append(e)
        if target_sale != current.sale_id:
            # the sale the payment left is resynced even when the target failed
            try:
                previous_sync = await self._sync(current.sale_id, updated)
            except BalanceSyncError as e:
                failures.append(e)

        if failures:
            first = failures[0]
            raise BalanceSyncError(
                first.sale_id,
                first.cause,
                updated,
                stale_sale_ids=[failure.sale_id for failure in failures],
            ) from first.cause

        return PaymentOutcome(payment=updated, sync=sync, previous_sale_sync=previous_sync)

    async def delete_payment(self, payment_id: UUID) -> PaymentOutcome:
        """
        Delete a payment and resynchronize its sale.

        A sale completed by the deleted payment goes back to active.

        Raises:
            PaymentNotFoundError: If the payment does not exist
            BalanceSyncError: Payment deleted, balance sync failed
        """

        payment = await self.payments_store.get_payment(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)

        await self.payments_store.delete_payment(payment_id)
        logger.info(
            f"Payment {payment_id} deleted from sale {payment.sale_id}",
            extra={"sale_id": str(payment.sale_id), "payment_id": str(payment_id), "amount": str(payment.amount)},
        )

        return PaymentOutcome(payment=payment, sync=await self._sync(payment.sale_id, payment))

    async def list_payments(self, sale_id: UUID) -> List[Payment]:
        """Payment history for one sale."""
        return await self.payments_store.get_payments_for_sale(sale_id)


__all__ = ["PaymentOutcome", "PaymentService"]
