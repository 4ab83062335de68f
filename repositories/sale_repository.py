"""
Sale repository (persistence).

This module provides *only* persistence operations for the Sale domain entity.
It does not derive balances or decide statuses; it stores whatever snapshot
the balance engine hands it.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from supabase import AsyncClient

from domain.sale import Sale, SaleStatus
from domain.time import utc_now
from repositories.errors import StoreError
from repositories.rows import (
    execute,
    execute_paged,
    parse_date,
    parse_optional_utc_datetime,
    parse_optional_uuid,
    to_db_payload,
)
from repositories.stores import SaleFilter

# Supabase table name for sale records.
# Keep this aligned with your database schema.
_SALES_TABLE: str = "sales"

# Columns a caller may change after creation.
SALE_UPDATABLE_FIELDS = frozenset(
    {"quantity", "sale_date", "initial_payment", "total_amount", "remaining_balance", "status"}
)


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a Supabase row into a Sale."""

    return Sale(
        sale_id=UUID(str(row["id"])),
        customer_id=UUID(str(row["customer_id"])),
        product_id=UUID(str(row["product_id"])),
        quantity=int(row["quantity"]),
        sale_date=parse_date(row["sale_date"]),
        initial_payment=row.get("initial_payment"),
        total_amount=row["total_amount"],
        remaining_balance=row.get("remaining_balance"),
        status=SaleStatus(str(row.get("status") or SaleStatus.ACTIVE.value)),
        sale_number=row.get("sale_number"),
        created_by=parse_optional_uuid(row.get("created_by")),
        created_at=parse_optional_utc_datetime(row.get("created_at")),
        updated_at=parse_optional_utc_datetime(row.get("updated_at")),
    )


def _sale_to_row(sale: Sale) -> dict[str, Any]:
    return to_db_payload(
        {
            "id": sale.sale_id,
            "sale_number": sale.sale_number,
            "customer_id": sale.customer_id,
            "product_id": sale.product_id,
            "quantity": sale.quantity,
            "sale_date": sale.sale_date,
            "initial_payment": sale.initial_payment,
            "total_amount": sale.total_amount,
            "remaining_balance": sale.remaining_balance,
            "status": sale.status,
            "created_by": sale.created_by,
            "created_at": sale.created_at,
            "updated_at": sale.updated_at,
        }
    )


def check_sale_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - SALE_UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update sale field(s): {sorted(unknown)}")


class SupabaseSalesStore:
    """Sales store backed by the `sales` table."""

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    async def get_sale(self, sale_id: UUID) -> Optional[Sale]:
        """
        Retrieve a single sale by its ID.

        Returns:
            Sale or None if not found
        """

        rows = await execute(
            self._client.table(_SALES_TABLE).select("*").eq("id", str(sale_id)).limit(1),
            "get sale",
        )
        if not rows:
            return None
        return _row_to_sale(rows[0])

    async def get_sales(self, sale_filter: Optional[SaleFilter] = None) -> List[Sale]:
        """
        List sales, newest first.

        Without an explicit limit every matching row is fetched, page by page.

        Returns:
            List[Sale] (possibly empty)
        """

        sale_filter = sale_filter or SaleFilter()

        def build_query():
            query = self._client.table(_SALES_TABLE).select("*")
            if sale_filter.status is not None:
                query = query.eq("status", sale_filter.status.value)
            if sale_filter.customer_id is not None:
                query = query.eq("customer_id", str(sale_filter.customer_id))
            if sale_filter.date_from is not None:
                query = query.gte("sale_date", sale_filter.date_from.isoformat())
            if sale_filter.date_to is not None:
                query = query.lte("sale_date", sale_filter.date_to.isoformat())
            # id breaks created_at ties so pages never overlap
            return query.order("created_at", desc=True).order("id")

        if sale_filter.limit is not None:
            rows = await execute(build_query().limit(sale_filter.limit), "list sales")
        else:
            rows = await execute_paged(build_query, "list sales")
        return [_row_to_sale(row) for row in rows]

    async def create_sale(self, sale: Sale) -> Sale:
        """Insert a new sale row and return the stored record."""

        rows = await execute(self._client.table(_SALES_TABLE).insert(_sale_to_row(sale)), "record sale")
        return _row_to_sale(rows[0]) if rows else sale

    async def update_sale(self, sale_id: UUID, fields: Mapping[str, Any]) -> None:
        """
        Patch a sale row.

        Raises:
            ValueError: If a field is not updatable.
            StoreError: If the write fails or no row matched.
        """

        check_sale_fields(fields)
        payload = to_db_payload(fields)
        payload["updated_at"] = utc_now().isoformat()

        rows = await execute(
            self._client.table(_SALES_TABLE).update(payload).eq("id", str(sale_id)),
            "update sale",
        )
        if not rows:
            raise StoreError("update sale", f"no sale with id {sale_id}")

    async def delete_sale(self, sale_id: UUID) -> None:
        rows = await execute(
            self._client.table(_SALES_TABLE).delete().eq("id", str(sale_id)),
            "delete sale",
        )
        if not rows:
            raise StoreError("delete sale", f"no sale with id {sale_id}")


__all__ = ["SupabaseSalesStore", "SALE_UPDATABLE_FIELDS", "check_sale_fields"]
