"""
Payment repository (persistence).

This module provides *only* persistence operations for installment payments.
Callers are responsible for re-synchronizing the parent sale's balance after
every write.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence
from uuid import UUID

from supabase import AsyncClient

from domain.payment import Payment, PaymentMethod
from repositories.errors import StoreError
from repositories.rows import (
    execute,
    execute_paged,
    parse_date,
    parse_optional_utc_datetime,
    parse_optional_uuid,
    to_db_payload,
)

_PAYMENTS_TABLE: str = "payments"

PAYMENT_UPDATABLE_FIELDS = frozenset({"sale_id", "amount", "payment_date", "payment_method", "notes"})


def _row_to_payment(row: Mapping[str, Any]) -> Payment:
    """Convert a Supabase row into a Payment."""

    return Payment(
        payment_id=UUID(str(row["id"])),
        sale_id=UUID(str(row["sale_id"])),
        amount=row["amount"],
        payment_date=parse_date(row["payment_date"]),
        payment_method=PaymentMethod(str(row.get("payment_method") or PaymentMethod.CASH.value)),
        notes=row.get("notes"),
        created_by=parse_optional_uuid(row.get("created_by")),
        created_at=parse_optional_utc_datetime(row.get("created_at")),
    )


def _payment_to_row(payment: Payment) -> dict[str, Any]:
    return to_db_payload(
        {
            "id": payment.payment_id,
            "sale_id": payment.sale_id,
            "amount": payment.amount,
            "payment_date": payment.payment_date,
            "payment_method": payment.payment_method,
            "notes": payment.notes,
            "created_by": payment.created_by,
            "created_at": payment.created_at,
        }
    )


def check_payment_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - PAYMENT_UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update payment field(s): {sorted(unknown)}")


class SupabasePaymentsStore:
    """Payments store backed by the `payments` table."""

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        rows = await execute(
            self._client.table(_PAYMENTS_TABLE).select("*").eq("id", str(payment_id)).limit(1),
            "get payment",
        )
        if not rows:
            return None
        return _row_to_payment(rows[0])

    async def get_payments_for_sale(self, sale_id: UUID) -> List[Payment]:
        """All payments recorded against one sale, oldest first."""

        rows = await execute_paged(
            lambda: self._client.table(_PAYMENTS_TABLE)
            .select("*")
            .eq("sale_id", str(sale_id))
            .order("payment_date")
            .order("id"),
            "list payments",
        )
        return [_row_to_payment(row) for row in rows]

    async def get_payments_for_sales(self, sale_ids: Sequence[UUID]) -> List[Payment]:
        """
        All payments for a set of sales in a single `in_` query, paged.

        Returns an empty list without querying when `sale_ids` is empty.
        """

        if not sale_ids:
            return []

        ids = [str(sale_id) for sale_id in sale_ids]
        rows = await execute_paged(
            lambda: self._client.table(_PAYMENTS_TABLE).select("*").in_("sale_id", ids).order("id"),
            "list payments",
        )
        return [_row_to_payment(row) for row in rows]

    async def create_payment(self, payment: Payment) -> Payment:
        rows = await execute(
            self._client.table(_PAYMENTS_TABLE).insert(_payment_to_row(payment)),
            "record payment",
        )
        return _row_to_payment(rows[0]) if rows else payment

    async def update_payment(self, payment_id: UUID, fields: Mapping[str, Any]) -> None:
        check_payment_fields(fields)
        rows = await execute(
            self._client.table(_PAYMENTS_TABLE).update(to_db_payload(fields)).eq("id", str(payment_id)),
            "update payment",
        )
        if not rows:
            raise StoreError("update payment", f"no payment with id {payment_id}")

    async def delete_payment(self, payment_id: UUID) -> None:
        rows = await execute(
            self._client.table(_PAYMENTS_TABLE).delete().eq("id", str(payment_id)),
            "delete payment",
        )
        if not rows:
            raise StoreError("delete payment", f"no payment with id {payment_id}")


__all__ = ["SupabasePaymentsStore", "PAYMENT_UPDATABLE_FIELDS", "check_payment_fields"]
