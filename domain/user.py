"""
Domain: user accounts and login sessions.

Users are the sales team. Their id is an opaque foreign key on notes and
ledger entries; the role drives the admin checks in `domain.identity`.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional
from uuid import UUID

from .errors import InvalidInput
from .identity import Actor, Role
from .lead import normalize_email
from .time import require_utc_timestamp

_HASH_ITERATIONS = 240_000
MIN_PASSWORD_LENGTH = 8


def hash_password(password: str, *, salt: Optional[str] = None) -> str:
    """Return `pbkdf2_sha256$<iterations>$<salt>$<hex digest>`."""

    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _HASH_ITERATIONS)
    return f"pbkdf2_sha256${_HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, expected = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def generate_token() -> str:
    """Opaque session token."""

    return secrets.token_urlsafe(32)


@dataclass(frozen=True, slots=True)
class NewUser:
    """Validated input for creating a user."""

    name: str
    email: str
    password: str
    role: Role = Role.SALES

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "NewUser":
        name = payload.get("name")
        password = payload.get("password")
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput("name is required")
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInput(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
        role = payload.get("role") or Role.SALES
        try:
            role = Role(role)
        except ValueError:
            raise InvalidInput(f"Invalid role: {role!r}") from None
        return cls(name=name.strip(), email=normalize_email(payload.get("email")), password=password, role=role)


@dataclass(frozen=True, slots=True)
class User:
    user_id: UUID
    name: str
    email: str
    password_hash: str
    role: Role
    created_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    def as_actor(self) -> Actor:
        return Actor(user_id=self.user_id, role=self.role, name=self.name, email=self.email)


@dataclass(frozen=True, slots=True)
class Session:
    token: str
    user_id: UUID
    expires_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("expires_at", self.expires_at)

    @staticmethod
    def start(user_id: UUID, *, now: datetime, ttl: timedelta) -> "Session":
        return Session(token=generate_token(), user_id=user_id, expires_at=now + ttl)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


__all__ = [
    "MIN_PASSWORD_LENGTH",
    "NewUser",
    "Session",
    "User",
    "generate_token",
    "hash_password",
    "verify_password",
]
