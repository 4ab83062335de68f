"""
Balance reconciliation engine.

Keeps every sale's denormalized `remaining_balance` / `status` snapshot
consistent with its payment ledger.

Handles:
- Single-sale derivation from freshly fetched payments (errors propagate)
- Batch derivation for listings with one payment query (errors degrade to the
  stored snapshot)
- Recompute-and-persist after every payment or sale-terms mutation
- Bulk recompute of every sale

The payments table is the source of truth; the sale snapshot is a cache.
Recompute runs for the same sale are serialized within one engine. Engines in
different processes are not coordinated: the last write wins, and a rerun of
`recompute_and_persist` repairs any stale snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from domain.balance import BalanceResult, balance_from_amounts, derive_balance, resolve_status
from domain.money import ZERO
from domain.payment import Payment
from domain.sale import Sale, SaleStatus
from repositories.errors import StoreError
from repositories.stores import PaymentsStore, SaleFilter, SalesStore
from services.errors import BalanceSyncError, SaleNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Outcome of one recompute-and-persist run."""
    sale_id: UUID
    remaining_balance: Decimal
    status: SaleStatus
    previous_balance: Decimal
    previous_status: SaleStatus

    @property
    def changed(self) -> bool:
        """True when the stored snapshot was stale."""
        return (
            self.remaining_balance != self.previous_balance
            or self.status != self.previous_status
        )


@dataclass(frozen=True, slots=True)
class ReconciliationReport:
    """
    Summary of a bulk recompute.

    synced: sales whose snapshot was written
    corrected: subset of synced whose stored balance or status was stale
    failures: sale_id -> error message for sales that could not be synced
    """
    synced: List[SyncResult] = field(default_factory=list)
    failures: Dict[UUID, str] = field(default_factory=dict)

    @property
    def corrected(self) -> List[SyncResult]:
        return [result for result in self.synced if result.changed]

    @property
    def ok(self) -> bool:
        return not self.failures


class BalanceReconciliationEngine:
    """
    Derives and synchronizes sale balances.

    Args:
        sales_store: SalesStore implementation
        payments_store: PaymentsStore implementation

    Example:
        engine = BalanceReconciliationEngine(sales_store, payments_store)
        await payments_store.create_payment(payment)
        result = await engine.recompute_and_persist(payment.sale_id)
        print(result.remaining_balance, result.status)
    """

    def __init__(self, sales_store: SalesStore, payments_store: PaymentsStore) -> None:
        self.sales_store = sales_store
        self.payments_store = payments_store
        self._locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    @staticmethod
    def derive_balance(sale: Sale, payments: Iterable[Payment]) -> BalanceResult:
        """Pure single-sale derivation (see `domain.balance.derive_balance`)."""
        return derive_balance(sale, payments)

    def lock_for(self, sale_id: UUID) -> asyncio.Lock:
        """
        The lock serializing writes to one sale's balance and status.

        Manual status actions hold it for their read-check-write so a
        concurrent recompute cannot overwrite them.
        """
        lock = self._locks.get(sale_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[sale_id] = lock
        return lock

    async def derive_sale_balance(self, sale_id: UUID) -> Tuple[Sale, BalanceResult]:
        """
        Derive one sale's live balance from freshly fetched payments.

        Used on correctness-critical paths (e.g., before accepting a payment),
        so store errors propagate.

        Raises:
            SaleNotFoundError: If the sale does not exist.
            StoreError: If a read fails.
        """

        sale = await self.sales_store.get_sale(sale_id)
        if sale is None:
            raise SaleNotFoundError(sale_id)
        payments = await self.payments_store.get_payments_for_sale(sale_id)
        return sale, derive_balance(sale, payments)

    async def derive_balances(self, sales: Sequence[Sale]) -> List[Sale]:
        """
        Overlay live-derived balances on a list of sales.

        Fetches payments for all sales in one query and groups them by sale.
        Output order matches input order. If the payment fetch fails, the input
        sales are returned unchanged (their stored snapshot is shown instead).
        """

        if not sales:
            return []

        sale_ids = list(dict.fromkeys(sale.sale_id for sale in sales))
        try:
            payments = await self.payments_store.get_payments_for_sales(sale_ids)
        except Exception:
            logger.warning(
                "Batch balance derivation failed; using stored balances",
                extra={"sale_count": len(sale_ids)},
                exc_info=True,
            )
            return list(sales)

        amounts_by_sale: Dict[UUID, List[Decimal]] = defaultdict(list)
        for payment in payments:
            amounts_by_sale[payment.sale_id].append(payment.amount)

        derived: List[Sale] = []
        for sale in sales:
            result = balance_from_amounts(
                sale.total_amount,
                sale.initial_payment,
                amounts_by_sale.get(sale.sale_id, ()),
            )
            derived.append(sale.with_balance(result.remaining_balance))
        return derived

    async def recompute_and_persist(self, sale_id: UUID) -> SyncResult:
        """
        Recompute a sale's balance from its ledger and write the snapshot back.

        Call after every payment create/edit/delete and every sale-terms edit,
        once that mutation has been committed. Safe to call repeatedly.

        Raises:
            SaleNotFoundError: If the sale does not exist.
            StoreError: If reading the sale or its payments fails.
            BalanceSyncError: If writing the recomputed snapshot fails.
        """

        async with self.lock_for(sale_id):
            sale, result = await self.derive_sale_balance(sale_id)
            status = resolve_status(sale.status, result.is_settled)

            try:
                await self.sales_store.update_sale(
                    sale_id,
                    {"remaining_balance": result.remaining_balance, "status": status},
                )
            except Exception as e:
                # any write failure, transport errors included
                logger.warning(
                    f"Balance sync failed for sale {sale_id}",
                    extra={
                        "sale_id": str(sale_id),
                        "remaining_balance": str(result.remaining_balance),
                        "error": str(e),
                    },
                )
                raise BalanceSyncError(sale_id, e) from e

        sync = SyncResult(
            sale_id=sale_id,
            remaining_balance=result.remaining_balance,
            status=status,
            previous_balance=sale.remaining_balance,
            previous_status=sale.status,
        )

        if status != sale.status:
            logger.info(
                f"Sale {sale_id} status {sale.status.value} -> {status.value}",
                extra={"sale_id": str(sale_id), "remaining_balance": str(result.remaining_balance)},
            )
        else:
            logger.debug(
                f"Sale {sale_id} balance synced",
                extra={"sale_id": str(sale_id), "remaining_balance": str(result.remaining_balance)},
            )
        return sync

    async def recompute_all(self, sale_filter: Optional[SaleFilter] = None) -> ReconciliationReport:
        """
        Recompute and persist the balance of every matching sale.

        Per-sale failures are collected in the report instead of aborting the
        run. A failure to list the sales propagates.
        """

        report = ReconciliationReport()
        sales = await self.sales_store.get_sales(sale_filter)

        for sale in sales:
            try:
                report.synced.append(await self.recompute_and_persist(sale.sale_id))
            except (BalanceSyncError, StoreError, SaleNotFoundError) as e:
                report.failures[sale.sale_id] = str(e)

        corrected = len(report.corrected)
        logger.info(
            f"Recomputed {len(report.synced)} sale balance(s); "
            f"{corrected} corrected, {len(report.failures)} failed",
            extra={
                "synced": len(report.synced),
                "corrected": corrected,
                "failed": len(report.failures),
            },
        )
        return report


def outstanding_total(sales: Iterable[Sale]) -> Decimal:
    """Sum of balances still owed on active sales."""

    total = ZERO
    for sale in sales:
        if sale.status is SaleStatus.ACTIVE:
            total += sale.remaining_balance
    return total


__all__ = [
    "BalanceReconciliationEngine",
    "ReconciliationReport",
    "SyncResult",
    "outstanding_total",
]
