"""
Domain: Lead entity and disposition pipeline.

Contract excerpts implemented here:
- A Lead is identified by a sequential integer lead_id assigned at creation.
- Email is globally unique (enforced by the store; normalized here).
- Disposition is one of Not Interested / Follow up / Sale, default Follow up.
- Notes are append-only; every visible change appends at least one note.

This module contains only pure domain entities: no I/O, no database. Every
transition returns a new Lead instance and leaves the original untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
from uuid import UUID

from .errors import InvalidInput, NoChange
from .events import LeadFieldsChanged
from .note import Note, append_note, clean_note_text
from .time import require_utc_timestamp

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Identity fields a user may edit after creation, in display order.
EDITABLE_FIELDS: Tuple[str, ...] = (
    "name",
    "email",
    "phone_number",
    "business_name",
    "business_address",
)


class Disposition(str, Enum):
    NOT_INTERESTED = "Not Interested"
    FOLLOW_UP = "Follow up"
    SALE = "Sale"

    @classmethod
    def parse(cls, value: Any) -> "Disposition":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(f'"{d.value}"' for d in cls)
            raise InvalidInput(f"Invalid disposition: {value!r} (expected one of {allowed})") from None


def _require_text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{key} is required")
    return value.strip()


def normalize_email(value: Any) -> str:
    if not isinstance(value, str) or not _EMAIL_RE.match(value.strip()):
        raise InvalidInput(f"Invalid email address: {value!r}")
    return value.strip().lower()


def parse_important_dates(values: Any) -> Tuple[str, ...]:
    """Validate calendar markers (YYYY-MM-DD), dropping duplicates, keeping order."""

    if not isinstance(values, (list, tuple)):
        raise InvalidInput("important_dates must be a list of YYYY-MM-DD strings")
    seen: Dict[str, None] = {}
    for value in values:
        try:
            parsed = date.fromisoformat(value) if isinstance(value, str) else None
        except ValueError:
            parsed = None
        if parsed is None:
            raise InvalidInput(f"Invalid important date: {value!r} (expected YYYY-MM-DD)")
        seen[parsed.isoformat()] = None
    return tuple(seen)


@dataclass(frozen=True, slots=True)
class NewLead:
    """Validated input for creating a lead (before a lead_id is assigned)."""

    name: str
    email: str
    phone_number: str
    business_name: str
    business_address: str
    disposition: Disposition = Disposition.FOLLOW_UP
    initial_note: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "NewLead":
        note = payload.get("note")
        return cls(
            name=_require_text(payload, "name"),
            email=normalize_email(payload.get("email")),
            phone_number=_require_text(payload, "phone_number"),
            business_name=_require_text(payload, "business_name"),
            business_address=_require_text(payload, "business_address"),
            disposition=Disposition.parse(payload.get("disposition") or Disposition.FOLLOW_UP),
            initial_note=clean_note_text(note) if note else None,
        )


@dataclass(frozen=True, slots=True)
class Lead:
    """
    Pure domain entity for a Lead.

    `version` is the optimistic-concurrency counter of the stored row; it is
    carried through transitions unchanged and bumped by the repository.
    """

    lead_id: int
    name: str
    email: str
    phone_number: str
    business_name: str
    business_address: str
    created_at: datetime
    disposition: Disposition = Disposition.FOLLOW_UP
    notes: Tuple[Note, ...] = ()
    important_dates: Tuple[str, ...] = ()
    created_by: Optional[UUID] = None
    version: int = 0

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    @staticmethod
    def create(
        lead_id: int,
        draft: NewLead,
        *,
        at: datetime,
        by: Optional[UUID],
    ) -> "Lead":
        notes = append_note((), "Lead created", at=at, by=by)
        if draft.initial_note:
            notes = append_note(notes, draft.initial_note, at=at, by=by)
        return Lead(
            lead_id=lead_id,
            name=draft.name,
            email=draft.email,
            phone_number=draft.phone_number,
            business_name=draft.business_name,
            business_address=draft.business_address,
            created_at=at,
            disposition=draft.disposition,
            notes=notes,
            created_by=by,
        )

    def snapshot(self) -> Dict[str, str]:
        """Identity fields copied onto a sale when it is created."""

        return {name: getattr(self, name) for name in EDITABLE_FIELDS}

    def with_note(self, text: str, *, at: datetime, by: Optional[UUID]) -> "Lead":
        return replace(self, notes=append_note(self.notes, text, at=at, by=by))

    def with_disposition(self, new: Disposition, *, at: datetime, by: Optional[UUID]) -> "Lead":
        """Change disposition and record the transition. Raises NoChange if equal."""

        if new is self.disposition:
            raise NoChange(f'Lead {self.lead_id} already has status "{new.value}"')
        text = f'Changed status from "{self.disposition.value}" to "{new.value}"'
        return replace(
            self,
            disposition=new,
            notes=append_note(self.notes, text, at=at, by=by),
        )

    def with_important_dates(
        self, dates: Iterable[str], *, at: datetime, by: Optional[UUID]
    ) -> "Lead":
        parsed = parse_important_dates(list(dates))
        if parsed == self.important_dates:
            raise NoChange("Important dates are unchanged")
        text = "Updated important dates: " + (", ".join(parsed) if parsed else "none")
        return replace(
            self,
            important_dates=parsed,
            notes=append_note(self.notes, text, at=at, by=by),
        )

    def edited(
        self,
        patch: Mapping[str, Any],
        *,
        at: datetime,
        by: Optional[UUID],
    ) -> tuple["Lead", LeadFieldsChanged]:
        """
        Apply an edit of identity fields.

        Only fields present in `patch` are considered; unknown fields are
        rejected. Returns the new lead and the event describing what changed.
        Raises NoChange if nothing differs.
        """

        unknown = set(patch) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidInput(f"Unknown lead field(s): {', '.join(sorted(unknown))}")

        changes: Dict[str, Tuple[str, str]] = {}
        for name in EDITABLE_FIELDS:
            if name not in patch:
                continue
            value = normalize_email(patch[name]) if name == "email" else _require_text(patch, name)
            current = getattr(self, name)
            if value != current:
                changes[name] = (current, value)

        if not changes:
            raise NoChange(f"No changes to lead {self.lead_id}")

        notes = self.notes
        for name, (old, new) in changes.items():
            notes = append_note(notes, f'Updated {name} from "{old}" to "{new}"', at=at, by=by)

        updated = replace(self, notes=notes, **{name: new for name, (_, new) in changes.items()})
        event = LeadFieldsChanged(lead_id=self.lead_id, changes=changes, occurred_at=at, actor_id=by)
        return updated, event


__all__ = [
    "Disposition",
    "EDITABLE_FIELDS",
    "Lead",
    "NewLead",
    "normalize_email",
    "parse_important_dates",
]
