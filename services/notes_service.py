"""
Notes service.

Single entry point for appending a free-text note to a lead or a sale.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from domain.errors import InvalidInput
from domain.identity import Actor
from domain.lead import Lead
from domain.note import NoteTarget
from domain.sale import Sale
from services import lead_service, sale_service


def append_note(
    target: Any,
    entity_id: int,
    text: Any,
    actor: Optional[Actor],
    *,
    now: Optional[datetime] = None,
) -> Union[Lead, Sale]:
    """Append `text` to the notes of the lead or sale `entity_id`."""

    try:
        target = NoteTarget(target)
    except ValueError:
        raise InvalidInput(f"Invalid note target: {target!r}") from None

    if target is NoteTarget.LEAD:
        return lead_service.add_lead_note(entity_id, text, actor, now=now)
    return sale_service.add_sale_note(entity_id, text, actor, now=now)


__all__ = ["append_note"]
