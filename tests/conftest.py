"""
Pytest configuration and shared fixtures.

This file adds the project root to the Python path so that tests can import
the domain, repositories and services packages, and provides in-memory stores
seeded with the reference sale (total 5700, initial payment 610).
"""

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.payment import Payment, PaymentMethod  # noqa: E402
from domain.sale import Sale, SaleStatus, opening_balance  # noqa: E402
from repositories.memory_store import InMemoryPaymentsStore, InMemorySalesStore  # noqa: E402
from services.balance_service import BalanceReconciliationEngine  # noqa: E402

CUSTOMER_ID = UUID("00000000-0000-0000-0000-0000000000c1")
PRODUCT_ID = UUID("00000000-0000-0000-0000-0000000000a1")


@pytest.fixture
def make_sale():
    """Factory for Sale records; remaining balance defaults to the opening balance."""

    def _make(
        total="5700",
        initial="610",
        remaining=None,
        status=SaleStatus.ACTIVE,
        sale_id=None,
        quantity=1,
        sale_date=date(2025, 1, 1),
    ) -> Sale:
        return Sale(
            sale_id=sale_id or uuid4(),
            customer_id=CUSTOMER_ID,
            product_id=PRODUCT_ID,
            quantity=quantity,
            sale_date=sale_date,
            initial_payment=Decimal(initial),
            total_amount=Decimal(total),
            remaining_balance=(
                opening_balance(Decimal(total), Decimal(initial)) if remaining is None else Decimal(remaining)
            ),
            status=status,
        )

    return _make


@pytest.fixture
def make_payment():
    """Factory for Payment records against a sale."""

    def _make(sale: Sale, amount, payment_date=date(2025, 1, 2), method=PaymentMethod.CASH) -> Payment:
        return Payment(
            payment_id=uuid4(),
            sale_id=sale.sale_id,
            amount=Decimal(str(amount)),
            payment_date=payment_date,
            payment_method=method,
        )

    return _make


@pytest.fixture
def sale(make_sale) -> Sale:
    return make_sale()


@pytest.fixture
def sales_store(sale) -> InMemorySalesStore:
    return InMemorySalesStore([sale])


@pytest.fixture
def payments_store() -> InMemoryPaymentsStore:
    return InMemoryPaymentsStore()


@pytest.fixture
def engine(sales_store, payments_store) -> BalanceReconciliationEngine:
    return BalanceReconciliationEngine(sales_store, payments_store)
