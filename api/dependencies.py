"""
FastAPI dependencies.

The engine lives on `app.state.engine`. It is either injected when the app is
created (tests, local runs with in-memory stores) or built at startup from the
environment:

- BALANCE_STORE: "supabase" (default) or "memory"
- SUPABASE_URL / SUPABASE_KEY: required for the supabase backend
"""

from __future__ import annotations

import os

from fastapi import Request

from repositories.client import create_supabase_client
from repositories.memory_store import InMemoryPaymentsStore, InMemorySalesStore
from repositories.payment_repository import SupabasePaymentsStore
from repositories.sale_repository import SupabaseSalesStore
from services.balance_service import BalanceReconciliationEngine
from services.payment_service import PaymentService
from services.sale_service import SaleService


async def build_engine_from_env() -> BalanceReconciliationEngine:
    backend = os.getenv("BALANCE_STORE", "supabase").lower()

    if backend == "memory":
        return BalanceReconciliationEngine(InMemorySalesStore(), InMemoryPaymentsStore())
    if backend != "supabase":
        raise RuntimeError(f"Unknown BALANCE_STORE backend: {backend!r} (expected supabase or memory)")

    client = await create_supabase_client()
    return BalanceReconciliationEngine(SupabaseSalesStore(client), SupabasePaymentsStore(client))


def get_engine(request: Request) -> BalanceReconciliationEngine:
    return request.app.state.engine


def get_sale_service(request: Request) -> SaleService:
    return SaleService(get_engine(request))


def get_payment_service(request: Request) -> PaymentService:
    return PaymentService(get_engine(request))
