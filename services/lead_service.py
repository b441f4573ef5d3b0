"""
Lead service.

Handles:
- Lead creation (sequential lead_id, unique email)
- The disposition gateway: moving a lead to "Sale" ensures exactly one
  draft sale exists for it
- Lead notes, important dates and identity-field edits; a business-address
  edit is mirrored onto the linked sale in the same transaction
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

from domain.errors import Conflict, NotFound
from domain.identity import Actor, require_actor
from domain.lead import Disposition, Lead, NewLead
from domain.note import clean_note_text
from domain.sale import Sale
from domain.time import utc_now
from repositories import lead_repository
from repositories.counter_repository import LEAD_SEQUENCE, next_sequence_value
from services import sale_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DispositionResult:
    """
    Outcome of a disposition change.

    sale: the lead's sale when the new disposition is Sale, else None
    sale_created: True only if this call created that sale
    """

    lead: Lead
    sale: Optional[Sale] = None
    sale_created: bool = False


def get_lead(lead_id: int) -> Lead:
    lead = lead_repository.get_lead_by_id(lead_id)
    if lead is None:
        raise NotFound(f"Lead not found: {lead_id}")
    return lead


def list_leads(disposition: Optional[str] = None) -> List[Lead]:
    parsed = Disposition.parse(disposition) if disposition is not None else None
    return lead_repository.list_leads(parsed)


def _attach_sale(lead: Lead, actor: Actor, now: datetime) -> tuple[Lead, Sale, bool]:
    sale, created = sale_service.create_draft_sale(lead, now=now)
    if created:
        text = f"Sale #{sale.sale_id} created for this lead"
    else:
        text = f"Existing sale #{sale.sale_id} found for this lead; no new sale created"
    return lead.with_note(text, at=now, by=actor.user_id), sale, created


def create_lead(
    payload: Mapping[str, Any],
    actor: Optional[Actor],
    *,
    now: Optional[datetime] = None,
) -> DispositionResult:
    """
    Create a lead.

    A lead created directly with disposition "Sale" goes through the same
    draft-sale creation as a later disposition change.

    Raises:
        InvalidInput: Missing/invalid fields
        Conflict: Email already used by another lead
    """

    actor = require_actor(actor)
    draft = NewLead.from_payload(payload)
    now = now or utc_now()

    if lead_repository.get_lead_by_email(draft.email) is not None:
        raise Conflict(f"A lead with email {draft.email} already exists")

    lead_id = next_sequence_value(LEAD_SEQUENCE)
    lead = lead_repository.insert_lead(Lead.create(lead_id, draft, at=now, by=actor.user_id))
    logger.info("Lead created", extra={"lead_id": lead_id, "user_id": str(actor.user_id)})

    if lead.disposition is not Disposition.SALE:
        return DispositionResult(lead=lead)

    lead, sale, created = _attach_sale(lead, actor, now)
    return DispositionResult(lead=lead_repository.update_lead(lead), sale=sale, sale_created=created)


def set_disposition(
    lead_id: int,
    new_disposition: Any,
    actor: Optional[Actor],
    *,
    now: Optional[datetime] = None,
) -> DispositionResult:
    """
    Move a lead through the disposition pipeline.

    Raises:
        InvalidInput: Unknown disposition value
        NoChange: The lead already has this disposition
        NotFound: No such lead
        Conflict: The lead was modified concurrently

    When the new disposition is "Sale", the lead's sale is looked up and a
    draft is created only if none exists. The sale is written before the
    lead, so a lead write that loses a race leaves the sale in place and a
    retry finds it.
    """

    actor = require_actor(actor)
    disposition = Disposition.parse(new_disposition)
    now = now or utc_now()

    lead = get_lead(lead_id)
    updated = lead.with_disposition(disposition, at=now, by=actor.user_id)

    sale: Optional[Sale] = None
    created = False
    if disposition is Disposition.SALE:
        updated, sale, created = _attach_sale(updated, actor, now)

    saved = lead_repository.update_lead(updated)
    logger.info(
        "Lead disposition changed",
        extra={
            "lead_id": lead_id,
            "user_id": str(actor.user_id),
            "from_disposition": lead.disposition.value,
            "to_disposition": disposition.value,
            "sale_id": sale.sale_id if sale else None,
        },
    )
    return DispositionResult(lead=saved, sale=sale, sale_created=created)


def add_lead_note(
    lead_id: int,
    text: Any,
    actor: Optional[Actor],
    *,
    now: Optional[datetime] = None,
) -> Lead:
    actor = require_actor(actor)
    text = clean_note_text(text)
    lead = get_lead(lead_id)
    return lead_repository.update_lead(lead.with_note(text, at=now or utc_now(), by=actor.user_id))


def update_important_dates(
    lead_id: int,
    dates: Iterable[str],
    actor: Optional[Actor],
    *,
    now: Optional[datetime] = None,
) -> Lead:
    """Replace the lead's important dates (YYYY-MM-DD markers)."""

    actor = require_actor(actor)
    lead = get_lead(lead_id)
    updated = lead.with_important_dates(dates, at=now or utc_now(), by=actor.user_id)
    return lead_repository.update_lead(updated)


def edit_lead(
    lead_id: int,
    patch: Mapping[str, Any],
    actor: Optional[Actor],
    *,
    now: Optional[datetime] = None,
) -> Lead:
    """
    Edit a lead's identity fields.

    A business-address change raises LeadFieldsChanged; the linked sale
    mirrors it onto its billing address and both rows are written in one
    transaction.
    """

    actor = require_actor(actor)
    now = now or utc_now()
    lead = get_lead(lead_id)
    updated, event = lead.edited(patch, at=now, by=actor.user_id)

    if event.changed("email"):
        other = lead_repository.get_lead_by_email(updated.email)
        if other is not None and other.lead_id != lead_id:
            raise Conflict(f"A lead with email {updated.email} already exists")

    sale = sale_service.find_sale_by_lead(lead_id)
    mirrored = sale.on_lead_fields_changed(event) if sale is not None else None

    if mirrored is not None and mirrored is not sale:
        saved, saved_sale = lead_repository.update_lead_with_sale(updated, mirrored)
        logger.info(
            "Lead edit mirrored to sale",
            extra={"lead_id": lead_id, "sale_id": saved_sale.sale_id, "fields": sorted(event.changes)},
        )
        return saved

    saved = lead_repository.update_lead(updated)
    logger.info("Lead edited", extra={"lead_id": lead_id, "fields": sorted(event.changes)})
    return saved


__all__ = [
    "DispositionResult",
    "add_lead_note",
    "create_lead",
    "edit_lead",
    "get_lead",
    "list_leads",
    "set_disposition",
    "update_important_dates",
]
