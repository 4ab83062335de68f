"""
Sale service for recording sales and changing their terms.

Sale totals are computed here (selling price x quantity + one service charge)
and the opening balance is derived with the same formula the reconciliation
engine uses. Any change to the terms is followed by a full recompute; nothing
patches `remaining_balance` directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from domain.balance import balance_from_amounts, resolve_status
from domain.constants import MIN_INITIAL_PAYMENT, SERVICE_CHARGE
from domain.money import ZERO, to_money
from domain.sale import Sale, SaleStatus, calculate_total_amount
from domain.time import utc_now
from repositories.errors import StoreError
from repositories.stores import SaleFilter
from services.balance_service import BalanceReconciliationEngine, SyncResult
from services.errors import (
    BalanceSyncError,
    SaleHasPaymentsError,
    SaleNotFoundError,
    SaleStatusError,
    SaleValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SaleTermsUpdate:
    """
    Requested change of sale terms.

    When quantity changes and no explicit total_amount is given, the total is
    recomputed from selling_price (required in that case) and service_charge.
    """
    quantity: Optional[int] = None
    total_amount: Optional[Decimal] = None
    initial_payment: Optional[Decimal] = None
    selling_price: Optional[Decimal] = None
    service_charge: Optional[Decimal] = None
    sale_date: Optional[date] = None


def _money(value: Any, name: str) -> Decimal:
    try:
        amount = to_money(value)
    except ValueError:
        raise SaleValidationError(f"{name} must be a currency amount") from None
    if amount < ZERO:
        raise SaleValidationError(f"{name} cannot be negative")
    return amount


def _quantity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise SaleValidationError("quantity must be a positive integer")
    return value


def generate_sale_number(sale_date: date) -> str:
    """Human-readable sale reference, e.g. SALE-20250101-1A2B3C."""
    return f"SALE-{sale_date:%Y%m%d}-{uuid4().hex[:6].upper()}"


class SaleService:
    """Sale flows that keep the balance snapshot consistent."""

    def __init__(self, engine: BalanceReconciliationEngine) -> None:
        self.engine = engine
        self.sales_store = engine.sales_store
        self.payments_store = engine.payments_store

    async def _get_sale(self, sale_id: UUID) -> Sale:
        sale = await self.sales_store.get_sale(sale_id)
        if sale is None:
            raise SaleNotFoundError(sale_id)
        return sale

    async def _sync(self, sale_id: UUID) -> SyncResult:
        try:
            return await self.engine.recompute_and_persist(sale_id)
        except StoreError as e:
            raise BalanceSyncError(sale_id, e) from e

    async def create_sale(
        self,
        customer_id: UUID,
        product_id: UUID,
        quantity: int,
        selling_price: Any,
        initial_payment: Any,
        service_charge: Any = SERVICE_CHARGE,
        sale_date: Optional[date] = None,
        created_by: Optional[UUID] = None,
    ) -> Sale:
        """
        Record a new credit sale.

        Raises:
            SaleValidationError: Invalid quantity or amounts, or an initial
                payment below the minimum or above the total
            StoreError: If the insert fails

        Example:
            sale = await service.create_sale(customer_id, product_id, 1,
                                             Decimal("5000"), Decimal("610"))
            # total 5700.00, remaining 5090.00, status active
        """

        quantity = _quantity(quantity)
        price = _money(selling_price, "selling_price")
        charge = _money(service_charge, "service_charge")
        initial = _money(initial_payment, "initial_payment")

        total = calculate_total_amount(price, quantity, charge)
        if initial > total:
            raise SaleValidationError(
                f"Initial payment {initial} exceeds sale total {total}"
            )
        minimum = min(MIN_INITIAL_PAYMENT, total)
        if initial < minimum:
            raise SaleValidationError(f"Minimum initial payment is {minimum}")

        opening = balance_from_amounts(total, initial, ())
        now = utc_now()
        sale_date = sale_date or now.date()
        sale = Sale(
            sale_id=uuid4(),
            customer_id=customer_id,
            product_id=product_id,
            quantity=quantity,
            sale_date=sale_date,
            initial_payment=initial,
            total_amount=total,
            remaining_balance=opening.remaining_balance,
            status=resolve_status(SaleStatus.ACTIVE, opening.is_settled),
            sale_number=generate_sale_number(sale_date),
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )

        stored = await self.sales_store.create_sale(sale)
        logger.info(
            f"Sale {stored.sale_number} recorded",
            extra={
                "sale_id": str(stored.sale_id),
                "total_amount": str(stored.total_amount),
                "remaining_balance": str(stored.remaining_balance),
            },
        )
        return stored

    async def edit_sale_terms(self, sale_id: UUID, update: SaleTermsUpdate) -> SyncResult:
        """
        Change a sale's terms and resynchronize its balance.

        Raises:
            SaleNotFoundError: If the sale does not exist
            SaleValidationError: Invalid values
            StoreError: If the terms write fails (nothing changed)
            BalanceSyncError: Terms saved, balance sync failed
        """

        sale = await self._get_sale(sale_id)
        fields: Dict[str, Any] = {}

        if update.quantity is not None:
            fields["quantity"] = _quantity(update.quantity)
        if update.initial_payment is not None:
            fields["initial_payment"] = _money(update.initial_payment, "initial_payment")
        if update.sale_date is not None:
            fields["sale_date"] = update.sale_date

        if update.total_amount is not None:
            fields["total_amount"] = _money(update.total_amount, "total_amount")
        elif update.selling_price is not None:
            charge = SERVICE_CHARGE if update.service_charge is None else update.service_charge
            fields["total_amount"] = calculate_total_amount(
                _money(update.selling_price, "selling_price"),
                fields.get("quantity", sale.quantity),
                _money(charge, "service_charge"),
            )
        elif "quantity" in fields and fields["quantity"] != sale.quantity:
            raise SaleValidationError(
                "Changing quantity requires selling_price or total_amount"
            )

        total = fields.get("total_amount", sale.total_amount)
        initial = fields.get("initial_payment", sale.initial_payment)
        if initial > total:
            raise SaleValidationError(f"Initial payment {initial} exceeds sale total {total}")

        if fields:
            await self.sales_store.update_sale(sale_id, fields)
            logger.info(
                f"Sale {sale_id} terms edited",
                extra={"sale_id": str(sale_id), "fields": sorted(fields)},
            )

        return await self._sync(sale_id)

    async def mark_sale_defaulted(self, sale_id: UUID) -> Sale:
        """
        Manually flag an active sale as defaulted.

        Runs under the sale's sync lock, so a recompute in flight finishes
        first and cannot overwrite the flag.

        Raises:
            SaleStatusError: If the sale is not active
        """

        async with self.engine.lock_for(sale_id):
            sale = await self._get_sale(sale_id)
            if sale.status is not SaleStatus.ACTIVE:
                raise SaleStatusError(f"Only active sales can be defaulted (status: {sale.status.value})")
            await self.sales_store.update_sale(sale_id, {"status": SaleStatus.DEFAULTED})

        logger.info(f"Sale {sale_id} marked defaulted", extra={"sale_id": str(sale_id)})
        return await self._get_sale(sale_id)

    async def reinstate_sale(self, sale_id: UUID) -> SyncResult:
        """
        Lift a manual default; the status is then derived from the ledger again.

        Raises:
            SaleStatusError: If the sale is not defaulted
            BalanceSyncError: Sale reinstated, balance sync failed
        """

        async with self.engine.lock_for(sale_id):
            sale = await self._get_sale(sale_id)
            if sale.status is not SaleStatus.DEFAULTED:
                raise SaleStatusError(f"Only defaulted sales can be reinstated (status: {sale.status.value})")
            await self.sales_store.update_sale(sale_id, {"status": SaleStatus.ACTIVE})

        logger.info(f"Sale {sale_id} reinstated", extra={"sale_id": str(sale_id)})
        # recompute takes the lock itself
        return await self._sync(sale_id)

    async def delete_sale(self, sale_id: UUID) -> None:
        """
        Delete a sale that has no payments.

        Raises:
            SaleHasPaymentsError: If any payment references the sale
        """

        await self._get_sale(sale_id)
        payments = await self.payments_store.get_payments_for_sale(sale_id)
        if payments:
            raise SaleHasPaymentsError(sale_id, len(payments))
        await self.sales_store.delete_sale(sale_id)
        logger.info(f"Sale {sale_id} deleted", extra={"sale_id": str(sale_id)})

    async def get_sale(self, sale_id: UUID, live: bool = True) -> Sale:
        """Fetch one sale, optionally with its live-derived balance."""

        if not live:
            return await self._get_sale(sale_id)
        sale, balance = await self.engine.derive_sale_balance(sale_id)
        return sale.with_balance(balance.remaining_balance)

    async def list_sales(self, sale_filter: Optional[SaleFilter] = None, live: bool = True) -> List[Sale]:
        """
        List sales for display.

        With `live`, balances come from batch derivation; if that fails the
        stored snapshot is shown.
        """

        sales = await self.sales_store.get_sales(sale_filter)
        if not live:
            return sales
        return await self.engine.derive_balances(sales)


__all__ = ["SaleService", "SaleTermsUpdate", "generate_sale_number"]
