"""
Supabase client initialization and row helpers.

The client is created on first use so that the in-memory backend never
needs credentials.

Environment variables required for DATA_BACKEND=supabase:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Mapping, Optional

from dotenv import load_dotenv
from supabase import Client, create_client  # type: ignore[import-not-found]

from domain.time import require_utc_timestamp

env_path = Path(__file__).parent.parent / ".env"

_client: Optional[Client] = None


def get_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Client:
    """
    Return the shared Supabase client, creating it on first call.

    Raises:
        RuntimeError: SUPABASE_URL or SUPABASE_KEY is not configured
    """
    global _client
    if _client is not None:
        return _client

    load_dotenv(dotenv_path=env_path)
    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_KEY")

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

    _client = create_client(url, key)
    return _client


def rows_or_raise(response: Any, action: str) -> List[Mapping[str, Any]]:
    """Return response rows, raising RuntimeError if Supabase reported an error."""
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return getattr(response, "data", None) or []


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""
    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


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


def parse_optional_datetime(value: Any) -> Optional[datetime]:
    return parse_utc_datetime(value) if value else None


__all__ = [
    "get_supabase_client",
    "rows_or_raise",
    "to_iso_utc",
    "parse_utc_datetime",
    "parse_optional_datetime",
]
