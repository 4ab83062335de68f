"""
Tests for `services/payment_service.py`.

Covers contract rules:
- Every payment create/edit/delete resynchronizes the parent sale.
- Validation (amount, method, closed sales, overpayment) happens before any write.
- A failed payment write changes nothing.
- A failed sync after a successful payment write raises BalanceSyncError with
  the committed payment attached; retrying the sync alone repairs the balance.
- Moving a payment resyncs both sales even when one sync fails, and the
  error names every sale left stale.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import httpx
import pytest

from domain.payment import PaymentMethod
from domain.sale import SaleStatus
from repositories.errors import StoreError
from repositories.memory_store import InMemoryPaymentsStore, InMemorySalesStore
from services.balance_service import BalanceReconciliationEngine
from services.errors import (
    BalanceSyncError,
    PaymentNotFoundError,
    PaymentValidationError,
    SaleNotFoundError,
)
from services.payment_service import PaymentService


class FlakySalesStore(InMemorySalesStore):
    """Fails balance writes while `failing` is set, or for the sales in `failing_ids`."""

    failing = False

    def __init__(self, sales=()) -> None:
        super().__init__(sales)
        self.failing_ids = set()

    async def update_sale(self, sale_id, fields):
        if self.failing or sale_id in self.failing_ids:
            raise StoreError("update sale", "timeout")
        await super().update_sale(sale_id, fields)


class DisconnectedSalesStore(InMemorySalesStore):
    """Balance writes fail in the HTTP transport, below the store's error wrapping."""

    async def update_sale(self, sale_id, fields):
        raise httpx.ConnectError("connection reset")


class RejectingPaymentsStore(InMemoryPaymentsStore):
    async def create_payment(self, payment):
        raise StoreError("record payment", "permission denied")


@pytest.fixture
def service(engine) -> PaymentService:
    return PaymentService(engine)


@pytest.mark.asyncio
async def test_record_payment_updates_balance(service, sale, sales_store) -> None:
    """Scenario: one payment of 57 against 5090 owed -> 5033."""

    outcome = await service.record_payment(sale.sale_id, Decimal("57"))

    stored = await sales_store.get_sale(sale.sale_id)
    assert outcome.payment.amount == Decimal("57.00")
    assert outcome.payment.payment_method is PaymentMethod.CASH
    assert outcome.sync.remaining_balance == Decimal("5033.00")
    assert stored.remaining_balance == Decimal("5033.00")
    assert outcome.sale_completed is False


@pytest.mark.asyncio
async def test_final_payment_completes_sale(service, sale, sales_store) -> None:
    await service.record_payment(sale.sale_id, Decimal("5000"))

    outcome = await service.record_payment(sale.sale_id, Decimal("90"), payment_method="cheque")

    assert outcome.sale_completed is True
    assert outcome.sync.remaining_balance == Decimal("0.00")
    assert (await sales_store.get_sale(sale.sale_id)).status is SaleStatus.COMPLETED


@pytest.mark.asyncio
async def test_balance_is_recomputed_not_subtracted(make_sale, make_payment) -> None:
    """A stale snapshot does not leak into the new balance."""

    stale = make_sale(remaining="5700")
    sales_store = InMemorySalesStore([stale])
    payments_store = InMemoryPaymentsStore([make_payment(stale, 1000)])
    service = PaymentService(BalanceReconciliationEngine(sales_store, payments_store))

    outcome = await service.record_payment(stale.sale_id, Decimal("90"))

    assert outcome.sync.remaining_balance == Decimal("4000.00")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-57"), "abc"])
async def test_invalid_amount_is_rejected(service, sale, payments_store, amount) -> None:
    with pytest.raises(PaymentValidationError):
        await service.record_payment(sale.sale_id, amount)

    assert await payments_store.get_payments_for_sale(sale.sale_id) == []


@pytest.mark.asyncio
async def test_unknown_method_is_rejected(service, sale) -> None:
    with pytest.raises(PaymentValidationError):
        await service.record_payment(sale.sale_id, Decimal("57"), payment_method="crypto")


@pytest.mark.asyncio
async def test_overpayment_is_rejected(service, sale, payments_store) -> None:
    with pytest.raises(PaymentValidationError):
        await service.record_payment(sale.sale_id, Decimal("5090.01"))

    assert await payments_store.get_payments_for_sale(sale.sale_id) == []


@pytest.mark.asyncio
async def test_payment_against_settled_sale_is_rejected(service, sale) -> None:
    await service.record_payment(sale.sale_id, Decimal("5090"))

    with pytest.raises(PaymentValidationError):
        await service.record_payment(sale.sale_id, Decimal("1"))


@pytest.mark.asyncio
async def test_payment_against_defaulted_sale_is_rejected(make_sale) -> None:
    sale = make_sale(status=SaleStatus.DEFAULTED)
    service = PaymentService(BalanceReconciliationEngine(InMemorySalesStore([sale]), InMemoryPaymentsStore()))

    with pytest.raises(PaymentValidationError):
        await service.record_payment(sale.sale_id, Decimal("57"))


@pytest.mark.asyncio
async def test_payment_against_unknown_sale(service) -> None:
    with pytest.raises(SaleNotFoundError):
        await service.record_payment(uuid4(), Decimal("57"))


@pytest.mark.asyncio
async def test_failed_payment_write_leaves_everything_unchanged(sale, sales_store) -> None:
    service = PaymentService(BalanceReconciliationEngine(sales_store, RejectingPaymentsStore()))

    with pytest.raises(StoreError):
        await service.record_payment(sale.sale_id, Decimal("57"))

    assert (await sales_store.get_sale(sale.sale_id)).remaining_balance == Decimal("5090.00")


@pytest.mark.asyncio
async def test_sync_failure_keeps_payment_and_is_retryable(sale, payments_store) -> None:
    """Payment recorded, balance sync failed: ledger is right, snapshot stale until retried."""

    sales_store = FlakySalesStore([sale])
    engine = BalanceReconciliationEngine(sales_store, payments_store)
    service = PaymentService(engine)
    sales_store.failing = True

    with pytest.raises(BalanceSyncError) as exc_info:
        await service.record_payment(sale.sale_id, Decimal("57"))

    error = exc_info.value
    assert error.sale_id == sale.sale_id
    assert error.payment is not None
    assert await payments_store.get_payment(error.payment.payment_id) == error.payment
    assert (await sales_store.get_sale(sale.sale_id)).remaining_balance == Decimal("5090.00")

    sales_store.failing = False
    result = await engine.recompute_and_persist(sale.sale_id)

    assert result.remaining_balance == Decimal("5033.00")
    assert (await sales_store.get_sale(sale.sale_id)).remaining_balance == Decimal("5033.00")


@pytest.mark.asyncio
async def test_transport_error_during_sync_is_sync_failure(sale, payments_store) -> None:
    """A dropped connection on the balance write still reports the committed payment."""

    service = PaymentService(BalanceReconciliationEngine(DisconnectedSalesStore([sale]), payments_store))

    with pytest.raises(BalanceSyncError) as exc_info:
        await service.record_payment(sale.sale_id, Decimal("57"))

    error = exc_info.value
    assert error.stale_sale_ids == (sale.sale_id,)
    assert isinstance(error.cause, httpx.ConnectError)
    assert await payments_store.get_payment(error.payment.payment_id) == error.payment


@pytest.mark.asyncio
async def test_edit_payment_amount_resyncs(service, sale, sales_store) -> None:
    recorded = await service.record_payment(sale.sale_id, Decimal("57"))

    outcome = await service.edit_payment(recorded.payment.payment_id, amount=Decimal("100"), notes="corrected")

    assert outcome.payment.amount == Decimal("100.00")
    assert outcome.payment.notes == "corrected"
    assert outcome.sync.remaining_balance == Decimal("4990.00")
    assert (await sales_store.get_sale(sale.sale_id)).remaining_balance == Decimal("4990.00")


@pytest.mark.asyncio
async def test_edit_payment_down_reopens_completed_sale(service, sale, sales_store) -> None:
    recorded = await service.record_payment(sale.sale_id, Decimal("5090"))
    assert recorded.sale_completed

    outcome = await service.edit_payment(recorded.payment.payment_id, amount=Decimal("5000"))

    assert outcome.sync.status is SaleStatus.ACTIVE
    assert outcome.sync.remaining_balance == Decimal("90.00")
    assert (await sales_store.get_sale(sale.sale_id)).status is SaleStatus.ACTIVE


@pytest.mark.asyncio
async def test_edit_payment_may_use_its_own_amount(service, sale) -> None:
    """Raising a payment up to the full balance counts the payment's old amount as available."""

    recorded = await service.record_payment(sale.sale_id, Decimal("90"))

    outcome = await service.edit_payment(recorded.payment.payment_id, amount=Decimal("5090"))
    assert outcome.sync.status is SaleStatus.COMPLETED

    with pytest.raises(PaymentValidationError):
        await service.edit_payment(recorded.payment.payment_id, amount=Decimal("5090.01"))


@pytest.mark.asyncio
async def test_moving_payment_resyncs_both_sales(make_sale) -> None:
    first = make_sale()
    second = make_sale()
    sales_store = InMemorySalesStore([first, second])
    service = PaymentService(BalanceReconciliationEngine(sales_store, InMemoryPaymentsStore()))
    recorded = await service.record_payment(first.sale_id, Decimal("90"))

    outcome = await service.edit_payment(recorded.payment.payment_id, sale_id=second.sale_id)

    assert outcome.payment.sale_id == second.sale_id
    assert outcome.sync.sale_id == second.sale_id
    assert outcome.sync.remaining_balance == Decimal("5000.00")
    assert outcome.previous_sale_sync is not None
    assert outcome.previous_sale_sync.remaining_balance == Decimal("5090.00")
    assert (await sales_store.get_sale(first.sale_id)).remaining_balance == Decimal("5090.00")
    assert (await sales_store.get_sale(second.sale_id)).remaining_balance == Decimal("5000.00")


@pytest.mark.asyncio
async def test_moving_payment_resyncs_previous_sale_when_target_sync_fails(make_sale) -> None:
    first = make_sale()
    second = make_sale()
    sales_store = FlakySalesStore([first, second])
    service = PaymentService(BalanceReconciliationEngine(sales_store, InMemoryPaymentsStore()))
    recorded = await service.record_payment(first.sale_id, Decimal("90"))
    sales_store.failing_ids.add(second.sale_id)

    with pytest.raises(BalanceSyncError) as exc_info:
        await service.edit_payment(recorded.payment.payment_id, sale_id=second.sale_id)

    error = exc_info.value
    assert error.stale_sale_ids == (second.sale_id,)
    assert error.payment.sale_id == second.sale_id
    assert (await sales_store.get_sale(first.sale_id)).remaining_balance == Decimal("5090.00")
    assert (await sales_store.get_sale(second.sale_id)).remaining_balance == Decimal("5090.00")


@pytest.mark.asyncio
async def test_moving_payment_reports_every_stale_sale(make_sale) -> None:
    first = make_sale()
    second = make_sale()
    sales_store = FlakySalesStore([first, second])
    service = PaymentService(BalanceReconciliationEngine(sales_store, InMemoryPaymentsStore()))
    recorded = await service.record_payment(first.sale_id, Decimal("90"))
    sales_store.failing = True

    with pytest.raises(BalanceSyncError) as exc_info:
        await service.edit_payment(recorded.payment.payment_id, sale_id=second.sale_id)

    assert exc_info.value.stale_sale_ids == (second.sale_id, first.sale_id)
    assert (await sales_store.get_sale(first.sale_id)).remaining_balance == Decimal("5000.00")


@pytest.mark.asyncio
async def test_edit_unknown_payment(service) -> None:
    with pytest.raises(PaymentNotFoundError):
        await service.edit_payment(uuid4(), amount=Decimal("1"))


@pytest.mark.asyncio
async def test_delete_payment_reverts_completed_sale(service, sale, sales_store) -> None:
    """Scenario: delete the last 57 of a completed sale -> 57 owed, active."""

    await service.record_payment(sale.sale_id, Decimal("5033"))
    last = await service.record_payment(sale.sale_id, Decimal("57"))
    assert last.sale_completed

    outcome = await service.delete_payment(last.payment.payment_id)

    stored = await sales_store.get_sale(sale.sale_id)
    assert outcome.sync.remaining_balance == Decimal("57.00")
    assert outcome.sync.status is SaleStatus.ACTIVE
    assert stored.remaining_balance == Decimal("57.00")
    assert stored.status is SaleStatus.ACTIVE


@pytest.mark.asyncio
async def test_delete_unknown_payment(service) -> None:
    with pytest.raises(PaymentNotFoundError):
        await service.delete_payment(uuid4())


@pytest.mark.asyncio
async def test_list_payments(service, sale) -> None:
    await service.record_payment(sale.sale_id, Decimal("57"))
    await service.record_payment(sale.sale_id, Decimal("57"), payment_method=PaymentMethod.BANK_TRANSFER)

    payments = await service.list_payments(sale.sale_id)

    assert len(payments) == 2
    assert {payment.payment_method for payment in payments} == {PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER}
