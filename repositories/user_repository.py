"""
User and session repository (persistence).

Provides functions to store and look up user accounts and login sessions.
Password checks and role rules live in the services/domain layers.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from postgrest.exceptions import APIError

from domain.errors import Conflict
from domain.identity import Role
from domain.user import Session, User
from repositories.client import get_supabase, is_unique_violation, raise_for_error
from repositories.serialization import from_iso, to_iso_utc

_USERS_TABLE: str = "users"
_SESSIONS_TABLE: str = "sessions"


def _row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        user_id=UUID(str(row["user_id"])),
        name=str(row["name"]),
        email=str(row["email"]),
        password_hash=str(row["password_hash"]),
        role=Role(row["role"]),
        created_at=from_iso(row["created_at_utc"]),
    )


def insert_user(user: User) -> User:
    """
    Insert a new user.

    Raises:
        Conflict: If the email is already registered.
    """

    payload = {
        "user_id": str(user.user_id),
        "name": user.name,
        "email": user.email,
        "password_hash": user.password_hash,
        "role": user.role.value,
        "created_at_utc": to_iso_utc(user.created_at, name="created_at"),
    }
    try:
        response = get_supabase().table(_USERS_TABLE).insert(payload).execute()
    except APIError as exc:
        if is_unique_violation(exc):
            raise Conflict(f"Email {user.email} already exists") from exc
        raise
    raise_for_error(response, "create user")
    return user


def get_user_by_email(email: str) -> Optional[User]:
    response = (
        get_supabase().table(_USERS_TABLE)
        .select("*")
        .eq("email", email)
        .limit(1)
        .execute()
    )
    rows = raise_for_error(response, "fetch user")
    return _row_to_user(rows[0]) if rows else None


def get_user_by_id(user_id: UUID) -> Optional[User]:
    response = (
        get_supabase().table(_USERS_TABLE)
        .select("*")
        .eq("user_id", str(user_id))
        .limit(1)
        .execute()
    )
    rows = raise_for_error(response, "fetch user")
    return _row_to_user(rows[0]) if rows else None


def list_users() -> List[User]:
    response = get_supabase().table(_USERS_TABLE).select("*").order("created_at_utc").execute()
    rows = raise_for_error(response, "list users")
    return [_row_to_user(row) for row in rows]


def insert_session(session: Session) -> Session:
    payload = {
        "token": session.token,
        "user_id": str(session.user_id),
        "expires_at_utc": to_iso_utc(session.expires_at, name="expires_at"),
    }
    response = get_supabase().table(_SESSIONS_TABLE).insert(payload).execute()
    raise_for_error(response, "create session")
    return session


def get_session(token: str) -> Optional[Session]:
    response = (
        get_supabase().table(_SESSIONS_TABLE)
        .select("*")
        .eq("token", token)
        .limit(1)
        .execute()
    )
    rows = raise_for_error(response, "fetch session")
    if not rows:
        return None
    row = rows[0]
    return Session(
        token=str(row["token"]),
        user_id=UUID(str(row["user_id"])),
        expires_at=from_iso(row["expires_at_utc"]),
    )


def delete_session(token: str) -> None:
    response = get_supabase().table(_SESSIONS_TABLE).delete().eq("token", token).execute()
    raise_for_error(response, "delete session")


__all__ = [
    "delete_session",
    "get_session",
    "get_user_by_email",
    "get_user_by_id",
    "insert_session",
    "insert_user",
    "list_users",
]
