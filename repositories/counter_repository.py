"""
Counter repository (sequential ids).

`lead_id` and `sale_id` come from named counters. The increment happens inside
the `next_sequence_value()` Postgres function (see sql/schema.sql), a single
`INSERT ... ON CONFLICT DO UPDATE ... RETURNING`, so concurrent callers never
receive the same value. Application code never reads then writes a counter.
"""

from __future__ import annotations

from repositories.client import get_supabase, raise_for_error

LEAD_SEQUENCE = "lead_id"
SALE_SEQUENCE = "sale_id"

_COUNTERS_TABLE: str = "counters"


def next_sequence_value(name: str) -> int:
    """
    Atomically increment the named counter and return the new value.

    Raises:
        RuntimeError: If Supabase returns an error or no value.
    """

    response = get_supabase().rpc("next_sequence_value", {"p_name": name}).execute()
    rows = raise_for_error(response, f"increment counter {name!r}")
    if not rows:
        raise RuntimeError(f"Counter {name!r} returned no value")

    value = rows[0]
    if isinstance(value, dict):
        value = value.get("next_sequence_value", value.get("sequence_value"))
    return int(value)


def get_sequence_value(name: str) -> int:
    """Last value handed out by the counter (0 if it was never used)."""

    response = (
        get_supabase().table(_COUNTERS_TABLE)
        .select("*")
        .eq("name", name)
        .limit(1)
        .execute()
    )
    rows = raise_for_error(response, f"read counter {name!r}")
    return int(rows[0]["sequence_value"]) if rows else 0


def raise_sequence_floor(name: str, value: int) -> int:
    """
    Move the counter up to `value` if it is below it; never moves it down.

    Maintenance only (after importing rows with explicit ids): this is a
    read-then-write and must not run while the API is serving requests.

    Returns:
        The counter value after the call.
    """

    current = get_sequence_value(name)
    if current >= value:
        return current
    response = (
        get_supabase().table(_COUNTERS_TABLE)
        .upsert({"name": name, "sequence_value": value})
        .execute()
    )
    raise_for_error(response, f"set counter {name!r}")
    return value


__all__ = [
    "LEAD_SEQUENCE",
    "SALE_SEQUENCE",
    "get_sequence_value",
    "next_sequence_value",
    "raise_sequence_floor",
]
