"""
Domain: notes (audit trail).

Notes are append-only. Leads and sales hold them as tuples; appending returns
a new tuple and never touches existing entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID

from .errors import InvalidInput
from .time import require_utc_timestamp


class NoteTarget(str, Enum):
    LEAD = "lead"
    SALE = "sale"


@dataclass(frozen=True, slots=True)
class Note:
    """A single audit entry. `created_by` is None for system-triggered notes."""

    text: str
    created_at: datetime
    created_by: Optional[UUID] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)


def clean_note_text(text: object) -> str:
    """Validate user-supplied note text."""

    if not isinstance(text, str) or not text.strip():
        raise InvalidInput("Note text is required")
    return text.strip()


def append_note(
    notes: Tuple[Note, ...],
    text: str,
    *,
    at: datetime,
    by: Optional[UUID],
) -> Tuple[Note, ...]:
    return notes + (Note(text=text, created_at=at, created_by=by),)


__all__ = ["Note", "NoteTarget", "append_note", "clean_note_text"]
