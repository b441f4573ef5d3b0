"""
Sale service.

Handles:
- Draft sale creation when a lead converts (at most one sale per lead)
- The sale update operation: validate, apply business rules and contract
  rollover on the aggregate, then a version-checked write
- Sale notes and the read side (by id, by lead, by status, due contracts)

Card numbers and CVVs are never logged.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

from domain.errors import InvalidInput, InvalidOperation, NoChange, NotFound
from domain.identity import Actor, require_actor
from domain.lead import Lead
from domain.note import clean_note_text
from domain.sale import Sale, SalePatch, SaleStatus
from domain.time import parse_utc_datetime, utc_now
from repositories import sale_repository
from repositories.counter_repository import SALE_SEQUENCE, next_sequence_value
from repositories.sale_repository import DuplicateSaleForLead

logger = logging.getLogger(__name__)


def find_sale_by_lead(lead_id: int) -> Optional[Sale]:
    return sale_repository.get_sale_by_lead(lead_id)


def get_sale(sale_id: int) -> Sale:
    sale = sale_repository.get_sale_by_id(sale_id)
    if sale is None:
        raise NotFound(f"Sale not found: {sale_id}")
    return sale


def get_sale_for_lead(lead_id: int) -> Sale:
    sale = find_sale_by_lead(lead_id)
    if sale is None:
        raise NotFound(f"No sale found for lead {lead_id}")
    return sale


def create_draft_sale(lead: Lead, *, now: Optional[datetime] = None) -> tuple[Sale, bool]:
    """
    Ensure the lead has a sale, creating a draft if it has none.

    Returns (sale, created). Two callers racing on the same lead both get the
    single sale that won the unique index on `sales.lead_id`; the loser's
    sequence value is simply not used.
    """

    now = now or utc_now()

    existing = find_sale_by_lead(lead.lead_id)
    if existing is not None:
        return existing, False

    sale_id = next_sequence_value(SALE_SEQUENCE)
    draft = Sale.draft(sale_id, lead.lead_id, lead.snapshot(), at=now)
    try:
        sale_repository.insert_sale(draft)
    except DuplicateSaleForLead:
        existing = find_sale_by_lead(lead.lead_id)
        if existing is None:
            raise
        logger.warning(
            "Concurrent sale creation for lead; using existing sale",
            extra={"lead_id": lead.lead_id, "sale_id": existing.sale_id, "discarded_sale_id": sale_id},
        )
        return existing, False

    logger.info("Draft sale created", extra={"lead_id": lead.lead_id, "sale_id": sale_id})
    return draft, True


def update_sale(
    sale_id: int,
    payload: Mapping[str, Any],
    actor: Optional[Actor],
    *,
    now: Optional[datetime] = None,
) -> Sale:
    """
    Apply a payment/contract update to a sale.

    Process:
    1. Validate the payload completely (InvalidInput)
    2. Load the sale (NotFound)
    3. Check business rules against the current state (InvalidOperation)
    4. Run the contract rollover, derive status, append notes
    5. Write, provided no one else wrote the sale meanwhile (Conflict)

    Nothing is written unless every step succeeds.
    """

    actor = require_actor(actor)
    patch = SalePatch.from_payload(payload)
    now = now or utc_now()

    sale = get_sale(sale_id)
    try:
        updated, archived = sale.apply_update(patch, now=now, by=actor.user_id)
    except (InvalidOperation, NoChange) as exc:
        logger.warning(
            "Sale update rejected",
            extra={"sale_id": sale_id, "user_id": str(actor.user_id), "reason": exc.message},
        )
        raise

    saved = sale_repository.update_sale(updated)

    if archived is not None:
        logger.info(
            "Contract period archived",
            extra={
                "sale_id": sale_id,
                "archived_end_date": archived.contract.contract_end_date.isoformat(),
                "archived_count": len(saved.previous_contracts),
            },
        )
    logger.info(
        "Sale updated",
        extra={
            "sale_id": sale_id,
            "user_id": str(actor.user_id),
            "status": saved.status.value,
            "contract_end_date": (
                saved.contract.contract_end_date.isoformat() if saved.contract.contract_end_date else None
            ),
            "installments": len(patch.partial_payments),
        },
    )
    return saved


def add_sale_note(
    sale_id: int,
    text: Any,
    actor: Optional[Actor],
    *,
    now: Optional[datetime] = None,
) -> Sale:
    actor = require_actor(actor)
    text = clean_note_text(text)
    sale = get_sale(sale_id)
    saved = sale_repository.update_sale(sale.with_note(text, at=now or utc_now(), by=actor.user_id))
    logger.info("Sale note added", extra={"sale_id": sale_id, "user_id": str(actor.user_id)})
    return saved


def list_sales(status: Optional[str] = None) -> List[Sale]:
    if status is None:
        return sale_repository.list_sales()
    try:
        parsed = SaleStatus(status)
    except ValueError:
        raise InvalidInput(f"Invalid status: {status!r}") from None
    return sale_repository.list_sales(parsed)


def list_due_sales(before: Any = None, *, now: Optional[datetime] = None) -> List[Sale]:
    """Sales whose contract ends on or before `before` (default: now)."""

    if before is None:
        cutoff = now or utc_now()
    else:
        try:
            cutoff = parse_utc_datetime(before)
        except (TypeError, ValueError):
            raise InvalidInput(f"Invalid date: {before!r}") from None
    return sale_repository.list_sales_due_before(cutoff)


__all__ = [
    "add_sale_note",
    "create_draft_sale",
    "find_sale_by_lead",
    "get_sale",
    "get_sale_for_lead",
    "list_due_sales",
    "list_sales",
    "update_sale",
]
