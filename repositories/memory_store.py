"""
In-memory stores.

Same interface as the Supabase stores, backed by dicts. Used by the test-suite
and for running the API locally without a database. Each call yields to the
event loop once so concurrent flows interleave the way they would against a
network store.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from domain.payment import Payment
from domain.sale import Sale
from domain.time import utc_now
from repositories.errors import StoreError
from repositories.payment_repository import check_payment_fields
from repositories.sale_repository import check_sale_fields
from repositories.stores import SaleFilter


class InMemorySalesStore:
    def __init__(self, sales: Sequence[Sale] = ()) -> None:
        self._sales: Dict[UUID, Sale] = {sale.sale_id: sale for sale in sales}

    async def get_sale(self, sale_id: UUID) -> Optional[Sale]:
        await asyncio.sleep(0)
        return self._sales.get(sale_id)

    async def get_sales(self, sale_filter: Optional[SaleFilter] = None) -> List[Sale]:
        await asyncio.sleep(0)
        sale_filter = sale_filter or SaleFilter()
        # newest first, like the database listing
        sales = [sale for sale in reversed(list(self._sales.values())) if sale_filter.matches(sale)]
        if sale_filter.limit is not None:
            sales = sales[: sale_filter.limit]
        return sales

    async def create_sale(self, sale: Sale) -> Sale:
        await asyncio.sleep(0)
        if sale.sale_id in self._sales:
            raise StoreError("record sale", f"duplicate sale id {sale.sale_id}")
        self._sales[sale.sale_id] = sale
        return sale

    async def update_sale(self, sale_id: UUID, fields: Mapping[str, Any]) -> None:
        check_sale_fields(fields)
        await asyncio.sleep(0)
        current = self._sales.get(sale_id)
        if current is None:
            raise StoreError("update sale", f"no sale with id {sale_id}")
        self._sales[sale_id] = replace(current, updated_at=utc_now(), **dict(fields))

    async def delete_sale(self, sale_id: UUID) -> None:
        await asyncio.sleep(0)
        if self._sales.pop(sale_id, None) is None:
            raise StoreError("delete sale", f"no sale with id {sale_id}")


class InMemoryPaymentsStore:
    def __init__(self, payments: Sequence[Payment] = ()) -> None:
        self._payments: Dict[UUID, Payment] = {payment.payment_id: payment for payment in payments}
        self.batch_fetches = 0

    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        await asyncio.sleep(0)
        return self._payments.get(payment_id)

    async def get_payments_for_sale(self, sale_id: UUID) -> List[Payment]:
        await asyncio.sleep(0)
        return [payment for payment in self._payments.values() if payment.sale_id == sale_id]

    async def get_payments_for_sales(self, sale_ids: Sequence[UUID]) -> List[Payment]:
        await asyncio.sleep(0)
        self.batch_fetches += 1
        wanted = set(sale_ids)
        return [payment for payment in self._payments.values() if payment.sale_id in wanted]

    async def create_payment(self, payment: Payment) -> Payment:
        await asyncio.sleep(0)
        if payment.payment_id in self._payments:
            raise StoreError("record payment", f"duplicate payment id {payment.payment_id}")
        self._payments[payment.payment_id] = payment
        return payment

    async def update_payment(self, payment_id: UUID, fields: Mapping[str, Any]) -> None:
        check_payment_fields(fields)
        await asyncio.sleep(0)
        current = self._payments.get(payment_id)
        if current is None:
            raise StoreError("update payment", f"no payment with id {payment_id}")
        self._payments[payment_id] = replace(current, **dict(fields))

    async def delete_payment(self, payment_id: UUID) -> None:
        await asyncio.sleep(0)
        if self._payments.pop(payment_id, None) is None:
            raise StoreError("delete payment", f"no payment with id {payment_id}")


__all__ = ["InMemorySalesStore", "InMemoryPaymentsStore"]
