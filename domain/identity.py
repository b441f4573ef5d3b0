"""
Domain: caller identity and role checks.

Every mutating operation receives an `Actor`. Creating users and listing
users require the admin role; everything else only requires that an identity
is present.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from .errors import Forbidden, Unauthorized


class Role(str, Enum):
    ADMIN = "admin"
    SALES = "sales"
    CUSTOMER_RELATIONS = "customer_relations"
    PROCUREMENT = "procurement"


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller, as resolved from a session."""

    user_id: UUID
    role: Role
    name: str = ""
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def require_actor(actor: Optional[Actor]) -> Actor:
    """Return the actor, or raise Unauthorized when there is none."""

    if actor is None:
        raise Unauthorized("Authentication required")
    return actor


def require_admin(actor: Optional[Actor]) -> Actor:
    """Return the actor if it holds the admin role."""

    actor = require_actor(actor)
    if not actor.is_admin:
        raise Forbidden("Admin role required")
    return actor


__all__ = ["Actor", "Role", "require_actor", "require_admin"]
