"""
Domain events raised by one aggregate and consumed by another.

The only cross-aggregate flow is a lead edit that has to be mirrored onto the
lead's sale. The event is handled inside the same transaction as the lead
write (see `services.lead_service.edit_lead`).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional, Tuple
from uuid import UUID


@dataclass(frozen=True, slots=True)
class LeadFieldsChanged:
    """Identity fields of a lead changed. `changes` maps field -> (old, new)."""

    lead_id: int
    changes: Mapping[str, Tuple[str, str]]
    occurred_at: datetime
    actor_id: Optional[UUID] = None

    def changed(self, field_name: str) -> bool:
        return field_name in self.changes

    def new_value(self, field_name: str) -> str:
        return self.changes[field_name][1]


__all__ = ["LeadFieldsChanged"]
