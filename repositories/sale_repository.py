"""
Sale repository (persistence).

This module provides *only* persistence operations for the Sale aggregate.
It does not enforce business rules (installment amounts, rollover); it
inserts, fetches and version-checks writes.

One sale per lead is backed by a unique index on `sales.lead_id`; an insert
that hits it raises `DuplicateSaleForLead` so the caller can fall back to the
existing sale.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any, List, Mapping, Optional

from postgrest.exceptions import APIError

from domain.errors import Conflict
from domain.sale import Sale, SaleStatus
from repositories.client import get_supabase, is_unique_violation, raise_for_error
from repositories.serialization import (
    archive_from_json,
    archive_to_json,
    contract_from_row,
    contract_to_row,
    from_iso,
    notes_from_json,
    notes_to_json,
    to_iso_utc,
    to_uuid,
)

# Supabase table name for sale records.
# Keep this aligned with sql/schema.sql.
_SALES_TABLE: str = "sales"


class DuplicateSaleForLead(Conflict):
    """A sale already exists for this lead (unique index on lead_id)."""


def sale_to_row(sale: Sale) -> dict[str, Any]:
    """Convert a Sale aggregate into a Supabase row payload."""

    return {
        "sale_id": sale.sale_id,
        "lead_id": sale.lead_id,
        "name": sale.name,
        "email": sale.email,
        "phone_number": sale.phone_number,
        "business_name": sale.business_name,
        "business_address": sale.business_address,
        "billing_address": sale.billing_address,
        **contract_to_row(sale.contract),
        "status": sale.status.value,
        "previous_contracts": archive_to_json(sale.previous_contracts),
        "notes": notes_to_json(sale.notes),
        "created_by": str(sale.created_by) if sale.created_by else None,
        "created_at_utc": to_iso_utc(sale.created_at, name="created_at"),
        "version": sale.version,
    }


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a Supabase row into a Sale aggregate."""

    return Sale(
        sale_id=int(row["sale_id"]),
        lead_id=int(row["lead_id"]),
        name=str(row["name"]),
        email=str(row["email"]),
        phone_number=str(row["phone_number"]),
        business_name=str(row["business_name"]),
        business_address=str(row["business_address"]),
        billing_address=str(row["billing_address"]),
        created_at=from_iso(row["created_at_utc"]),
        contract=contract_from_row(row),
        status=SaleStatus(row.get("status") or SaleStatus.PENDING.value),
        previous_contracts=archive_from_json(row.get("previous_contracts")),
        notes=notes_from_json(row.get("notes")),
        created_by=to_uuid(row.get("created_by")),
        version=int(row.get("version") or 0),
    )


def insert_sale(sale: Sale) -> Sale:
    """
    Insert a new sale.

    Raises:
        DuplicateSaleForLead: If the lead already has a sale.
        RuntimeError: If Supabase returns any other error.
    """

    try:
        response = get_supabase().table(_SALES_TABLE).insert(sale_to_row(sale)).execute()
    except APIError as exc:
        if is_unique_violation(exc):
            raise DuplicateSaleForLead(f"Lead {sale.lead_id} already has a sale") from exc
        raise
    raise_for_error(response, "record sale")
    return sale


def get_sale_by_id(sale_id: int) -> Optional[Sale]:
    """
    Retrieve a single sale by its sequential id.

    Returns:
        Sale or None if not found
    """

    response = (
        get_supabase().table(_SALES_TABLE)
        .select("*")
        .eq("sale_id", sale_id)
        .limit(1)
        .execute()
    )
    rows = raise_for_error(response, "get sale")
    return _row_to_sale(rows[0]) if rows else None


def get_sale_by_lead(lead_id: int) -> Optional[Sale]:
    """Retrieve the sale linked to a lead, if any."""

    response = (
        get_supabase().table(_SALES_TABLE)
        .select("*")
        .eq("lead_id", lead_id)
        .limit(1)
        .execute()
    )
    rows = raise_for_error(response, "get sale by lead")
    return _row_to_sale(rows[0]) if rows else None


def list_sales(status: Optional[SaleStatus] = None) -> List[Sale]:
    """List sales, newest first, optionally filtered by status."""

    query = get_supabase().table(_SALES_TABLE).select("*")
    if status is not None:
        query = query.eq("status", status.value)
    response = query.order("sale_id", desc=True).execute()
    rows = raise_for_error(response, "list sales")
    return [_row_to_sale(row) for row in rows]


def list_sales_due_before(cutoff: datetime) -> List[Sale]:
    """
    List sales whose current contract ends on or before `cutoff`.

    Ordered by contract end date, soonest first.
    """

    response = (
        get_supabase().table(_SALES_TABLE)
        .select("*")
        .lte("contract_end_date", to_iso_utc(cutoff, name="cutoff"))
        .order("contract_end_date")
        .execute()
    )
    rows = raise_for_error(response, "list due sales")
    return [_row_to_sale(row) for row in rows]


def update_sale(sale: Sale) -> Sale:
    """
    Persist a changed sale if nobody else wrote it since it was read.

    Returns the sale with its bumped version.

    Raises:
        Conflict: If the stored version moved on.
    """

    saved = replace(sale, version=sale.version + 1)
    response = (
        get_supabase().table(_SALES_TABLE)
        .update(sale_to_row(saved))
        .eq("sale_id", sale.sale_id)
        .eq("version", sale.version)
        .execute()
    )
    rows = raise_for_error(response, "update sale")
    if not rows:
        raise Conflict(f"Sale {sale.sale_id} was modified concurrently; reload and retry")
    return saved


__all__ = [
    "DuplicateSaleForLead",
    "get_sale_by_id",
    "get_sale_by_lead",
    "insert_sale",
    "list_sales",
    "list_sales_due_before",
    "sale_to_row",
    "update_sale",
]
