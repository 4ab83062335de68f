"""
Domain time helpers (pure).

Audit timestamps (created_at, updated_at) are timezone-aware UTC and may be
absent on records that have not been stored yet. Business dates (sale_date,
payment_date) are plain calendar dates and are not checked here.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def check_audit_timestamps(**timestamps: Optional[datetime]) -> None:
    """
    Validate optional audit timestamps by field name.

    Raises:
        ValueError: If a given timestamp is naive or not at UTC offset 0.

    Example:
        check_audit_timestamps(created_at=sale.created_at, updated_at=sale.updated_at)
    """

    for name, value in timestamps.items():
        if value is None:
            continue
        offset = value.utcoffset()
        if offset is None:
            raise ValueError(f"{name} must be timezone-aware (UTC)")
        if offset != timedelta(0):
            raise ValueError(f"{name} must be a UTC timestamp, got offset {offset}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
