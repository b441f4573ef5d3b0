"""
Lead repository (persistence).

This module provides *only* persistence operations for the Lead domain entity.
No business rules (disposition transitions, note wording) belong here.

Writes are version-checked: an update only matches the row if its `version`
is still the one that was read, otherwise `Conflict` is raised.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, List, Mapping, Optional

from postgrest.exceptions import APIError

from domain.errors import Conflict
from domain.lead import Disposition, Lead
from domain.sale import Sale
from repositories.client import get_supabase, is_unique_violation, raise_for_error
from repositories.sale_repository import sale_to_row
from repositories.serialization import from_iso, notes_from_json, notes_to_json, to_iso_utc, to_uuid

# Supabase table name for Lead records.
# Keep this aligned with sql/schema.sql.
_LEADS_TABLE: str = "leads"


def _lead_to_row(lead: Lead) -> dict[str, Any]:
    """Convert a domain Lead to a Supabase row payload."""

    return {
        "lead_id": lead.lead_id,
        "name": lead.name,
        "email": lead.email,
        "phone_number": lead.phone_number,
        "business_name": lead.business_name,
        "business_address": lead.business_address,
        "disposition": lead.disposition.value,
        "notes": notes_to_json(lead.notes),
        "important_dates": list(lead.important_dates),
        "created_by": str(lead.created_by) if lead.created_by else None,
        "created_at_utc": to_iso_utc(lead.created_at, name="created_at"),
        "version": lead.version,
    }


def _row_to_lead(row: Mapping[str, Any]) -> Lead:
    """Convert a Supabase row into a domain Lead."""

    return Lead(
        lead_id=int(row["lead_id"]),
        name=str(row["name"]),
        email=str(row["email"]),
        phone_number=str(row["phone_number"]),
        business_name=str(row["business_name"]),
        business_address=str(row["business_address"]),
        created_at=from_iso(row["created_at_utc"]),
        disposition=Disposition(row.get("disposition") or Disposition.FOLLOW_UP.value),
        notes=notes_from_json(row.get("notes")),
        important_dates=tuple(row.get("important_dates") or ()),
        created_by=to_uuid(row.get("created_by")),
        version=int(row.get("version") or 0),
    )


def insert_lead(lead: Lead) -> Lead:
    """
    Insert a new Lead.

    Raises:
        Conflict: If the email (or lead_id) is already taken.
        RuntimeError: If Supabase returns any other error.
    """

    try:
        response = get_supabase().table(_LEADS_TABLE).insert(_lead_to_row(lead)).execute()
    except APIError as exc:
        if is_unique_violation(exc):
            raise Conflict(f"A lead with email {lead.email} already exists") from exc
        raise
    raise_for_error(response, "insert lead")
    return lead


def get_lead_by_id(lead_id: int) -> Optional[Lead]:
    """
    Fetch a Lead by its sequential id.

    Returns:
    - Lead if found
    - None if no record exists for the given ID
    """

    response = (
        get_supabase().table(_LEADS_TABLE)
        .select("*")
        .eq("lead_id", lead_id)
        .limit(1)
        .execute()
    )
    rows = raise_for_error(response, "fetch lead")
    return _row_to_lead(rows[0]) if rows else None


def get_lead_by_email(email: str) -> Optional[Lead]:
    response = (
        get_supabase().table(_LEADS_TABLE)
        .select("*")
        .eq("email", email)
        .limit(1)
        .execute()
    )
    rows = raise_for_error(response, "fetch lead")
    return _row_to_lead(rows[0]) if rows else None


def list_leads(disposition: Optional[Disposition] = None) -> List[Lead]:
    """List leads, newest first, optionally filtered by disposition."""

    query = get_supabase().table(_LEADS_TABLE).select("*")
    if disposition is not None:
        query = query.eq("disposition", disposition.value)

    response = query.order("lead_id", desc=True).execute()
    rows = raise_for_error(response, "list leads")
    return [_row_to_lead(row) for row in rows]


def update_lead(lead: Lead) -> Lead:
    """
    Persist a changed Lead if nobody else wrote it since it was read.

    Returns the lead with its bumped version.

    Raises:
        Conflict: If the stored version moved on, or the new email is taken.
    """

    saved = replace(lead, version=lead.version + 1)
    payload = _lead_to_row(saved)
    try:
        response = (
            get_supabase().table(_LEADS_TABLE)
            .update(payload)
            .eq("lead_id", lead.lead_id)
            .eq("version", lead.version)
            .execute()
        )
    except APIError as exc:
        if is_unique_violation(exc):
            raise Conflict(f"A lead with email {lead.email} already exists") from exc
        raise
    rows = raise_for_error(response, "update lead")
    if not rows:
        raise Conflict(f"Lead {lead.lead_id} was modified concurrently; reload and retry")
    return saved


def update_lead_with_sale(lead: Lead, sale: Sale) -> tuple[Lead, Sale]:
    """
    Persist a lead and its sale in one database transaction.

    Uses the `save_lead_and_sale()` Postgres function, which applies both
    version-checked updates or neither.

    Raises:
        Conflict: If either row was modified concurrently, or the email is taken.
    """

    saved_lead = replace(lead, version=lead.version + 1)
    saved_sale = replace(sale, version=sale.version + 1)
    try:
        response = get_supabase().rpc(
            "save_lead_and_sale",
            {
                "p_lead": _lead_to_row(saved_lead),
                "p_lead_version": lead.version,
                "p_sale": sale_to_row(saved_sale),
                "p_sale_version": sale.version,
            },
        ).execute()
    except APIError as exc:
        if is_unique_violation(exc):
            raise Conflict(f"A lead with email {lead.email} already exists") from exc
        # PostgREST can surface a JSON function result as an APIError
        result = exc.json() if callable(getattr(exc, "json", None)) else {}
        if "success" not in result:
            raise
    else:
        rows = raise_for_error(response, "save lead and sale")
        result = rows[0] if rows else {}

    if not result.get("success"):
        raise Conflict(
            result.get("message")
            or f"Lead {lead.lead_id} or its sale was modified concurrently; reload and retry"
        )
    return saved_lead, saved_sale


__all__ = [
    "get_lead_by_email",
    "get_lead_by_id",
    "insert_lead",
    "list_leads",
    "update_lead",
    "update_lead_with_sale",
]
