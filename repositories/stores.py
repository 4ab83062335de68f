"""
Store interfaces consumed by the balance reconciliation engine.

Two implementations exist: the Supabase-backed stores used in production and
the in-memory stores used by tests and local development. Every method is a
coroutine; the engine suspends at each call.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, List, Mapping, Optional, Protocol, Sequence
from uuid import UUID

from domain.payment import Payment
from domain.sale import Sale, SaleStatus


@dataclass(frozen=True, slots=True)
class SaleFilter:
    """Filter criteria for sale listings."""
    status: Optional[SaleStatus] = None
    customer_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    limit: Optional[int] = None

    def matches(self, sale: Sale) -> bool:
        if self.status is not None and sale.status != self.status:
            return False
        if self.customer_id is not None and sale.customer_id != self.customer_id:
            return False
        if self.date_from is not None and sale.sale_date < self.date_from:
            return False
        if self.date_to is not None and sale.sale_date > self.date_to:
            return False
        return True


class SalesStore(Protocol):
    async def get_sale(self, sale_id: UUID) -> Optional[Sale]: ...

    async def get_sales(self, sale_filter: Optional[SaleFilter] = None) -> List[Sale]: ...

    async def create_sale(self, sale: Sale) -> Sale: ...

    async def update_sale(self, sale_id: UUID, fields: Mapping[str, Any]) -> None: ...

    async def delete_sale(self, sale_id: UUID) -> None: ...


class PaymentsStore(Protocol):
    async def get_payment(self, payment_id: UUID) -> Optional[Payment]: ...

    async def get_payments_for_sale(self, sale_id: UUID) -> List[Payment]: ...

    async def get_payments_for_sales(self, sale_ids: Sequence[UUID]) -> List[Payment]: ...

    async def create_payment(self, payment: Payment) -> Payment: ...

    async def update_payment(self, payment_id: UUID, fields: Mapping[str, Any]) -> None: ...

    async def delete_payment(self, payment_id: UUID) -> None: ...


__all__ = ["SaleFilter", "SalesStore", "PaymentsStore"]
