"""
Supabase client initialization.

This module contains *only* the database connection setup. Repository modules
call `get_supabase()`; the client is created on first use so that importing
the application does not require credentials.

Environment variables required (see `config`):
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

from typing import Any, Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client

import config

_client: Optional[Any] = None


def get_supabase() -> Client:
    """Return the shared Supabase client, creating it on first use."""

    global _client
    if _client is None:
        if not config.SUPABASE_URL:
            raise RuntimeError(
                "Missing environment variable: SUPABASE_URL. "
                "Set SUPABASE_URL to your Supabase project URL."
            )
        if not config.SUPABASE_KEY:
            raise RuntimeError(
                "Missing environment variable: SUPABASE_KEY. "
                "Set SUPABASE_KEY to your Supabase API key."
            )
        _client = create_client(config.SUPABASE_URL, config.SUPABASE_KEY)
    return _client


def use_client(client: Optional[Any]) -> None:
    """Install a preconfigured client (scripts, tests). None resets to lazy creation."""

    global _client
    _client = client


UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: APIError) -> bool:
    """True if a PostgREST error is a Postgres unique-constraint violation."""

    return getattr(exc, "code", None) == UNIQUE_VIOLATION


def raise_for_error(response: Any, action: str) -> list[dict[str, Any]]:
    """Return response rows, or raise RuntimeError if Supabase reported an error."""

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    data = getattr(response, "data", None)
    if data is None:
        return []
    return data if isinstance(data, list) else [data]


__all__ = ["get_supabase", "is_unique_violation", "raise_for_error", "use_client"]
