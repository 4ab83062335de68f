"""
Supabase client initialization.

This module contains *only* the database connection setup. Nothing is read
or connected at import time: callers build a client explicitly and hand it to
the store classes, so tests and scripts can substitute their own stores.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from supabase import AsyncClient, acreate_client

# .env lives in the project root, next to the packages.
_ENV_PATH = Path(__file__).parent.parent / ".env"


@dataclass(frozen=True, slots=True)
class SupabaseSettings:
    url: str
    key: str


def load_settings(env_path: Optional[Path] = None) -> SupabaseSettings:
    """
    Read Supabase credentials from the environment (and `.env` if present).

    Raises:
        RuntimeError: If a required variable is missing.
    """

    load_dotenv(dotenv_path=env_path or _ENV_PATH)

    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_KEY")

    if not url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )
    if not key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return SupabaseSettings(url=url, key=key)


async def create_supabase_client(settings: Optional[SupabaseSettings] = None) -> AsyncClient:
    """Create an async Supabase client from settings (loaded from env by default)."""

    settings = settings or load_settings()
    return await acreate_client(settings.url, settings.key)


__all__ = ["SupabaseSettings", "load_settings", "create_supabase_client"]
