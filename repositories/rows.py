"""
Row conversion helpers shared by the Supabase stores.

Supabase returns ISO-8601 strings for timestamps and dates, and numerics as
numbers or strings depending on column type. Money goes back out as strings so
Postgres `numeric` columns receive exact values.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import UUID

import httpx
from postgrest.exceptions import APIError

from domain.money import to_money
from repositories.errors import StoreError

# PostgREST caps a response at its max-rows setting (1000 by default).
PAGE_SIZE = 1000


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_optional_utc_datetime(value: Any) -> Optional[datetime]:
    return parse_utc_datetime(value) if value else None


def parse_date(value: Any) -> date:
    """Parse a `date` column (or the date part of a timestamp)."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise TypeError(f"Unsupported date type: {type(value)!r}")


def parse_optional_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


def to_db_value(value: Any) -> Any:
    """Serialize a domain value for a PostgREST payload."""

    if isinstance(value, Decimal):
        return str(to_money(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def to_db_payload(fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: to_db_value(value) for key, value in fields.items()}


async def execute(query: Any, action: str) -> List[Mapping[str, Any]]:
    """
    Run a PostgREST query and return its rows.

    supabase-py raises APIError for failures reported by PostgREST and lets
    httpx transport errors (connection reset, timeouts) through; older
    responses carry an `error` attribute instead. All become StoreError.
    """

    try:
        response = await query.execute()
    except APIError as e:
        raise StoreError(action, e.message or str(e)) from e
    except httpx.HTTPError as e:
        raise StoreError(action, str(e) or type(e).__name__) from e

    error = getattr(response, "error", None)
    if error:
        raise StoreError(action, error)

    return getattr(response, "data", None) or []


async def execute_paged(build_query: Callable[[], Any], action: str) -> List[Mapping[str, Any]]:
    """
    Run a listing query page by page and return every row.

    `build_query` must return a fresh, deterministically ordered query; each
    page is fetched with `.range(offset, offset + PAGE_SIZE - 1)`. A short
    page ends the scan.
    """

    page_size = PAGE_SIZE
    all_rows: List[Mapping[str, Any]] = []
    offset = 0

    while True:
        page_rows = await execute(build_query().range(offset, offset + page_size - 1), action)
        all_rows.extend(page_rows)
        if len(page_rows) < page_size:
            break
        offset += len(page_rows)

    return all_rows
