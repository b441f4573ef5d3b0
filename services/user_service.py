"""
User service.

Handles:
- Account creation and listing (admin only)
- Login / logout with opaque session tokens
- Resolving a session token to the calling `Actor`
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Optional
from uuid import uuid4

import config
from domain.errors import Conflict, Unauthorized
from domain.identity import Actor, Role, require_admin
from domain.user import NewUser, Session, User, hash_password, verify_password
from domain.time import utc_now
from repositories import user_repository

logger = logging.getLogger(__name__)

_LOGIN_FAILED = "Invalid email or password"


def _insert(draft: NewUser, now: datetime) -> User:
    if user_repository.get_user_by_email(draft.email) is not None:
        raise Conflict(f"Email {draft.email} already exists")
    user = User(
        user_id=uuid4(),
        name=draft.name,
        email=draft.email,
        password_hash=hash_password(draft.password),
        role=draft.role,
        created_at=now,
    )
    return user_repository.insert_user(user)


def create_user(
    payload: Mapping[str, Any],
    actor: Optional[Actor],
    *,
    now: Optional[datetime] = None,
) -> User:
    """
    Create a user account.

    Raises:
        Unauthorized / Forbidden: Caller is not an admin
        InvalidInput: Missing name, short password, bad email or role
        Conflict: Email already registered
    """

    actor = require_admin(actor)
    user = _insert(NewUser.from_payload(payload), now or utc_now())
    logger.info(
        "User created",
        extra={"user_id": str(user.user_id), "role": user.role.value, "created_by": str(actor.user_id)},
    )
    return user


def ensure_admin(payload: Mapping[str, Any], *, now: Optional[datetime] = None) -> tuple[User, bool]:
    """
    Create the given admin account unless the email is already registered.

    Used to bootstrap the first admin from the command line, where there is no
    caller session. Returns (user, created).
    """

    draft = NewUser.from_payload({**payload, "role": Role.ADMIN.value})
    existing = user_repository.get_user_by_email(draft.email)
    if existing is not None:
        return existing, False
    user = _insert(draft, now or utc_now())
    logger.info("Admin user bootstrapped", extra={"user_id": str(user.user_id)})
    return user, True


def list_users(actor: Optional[Actor]) -> List[User]:
    require_admin(actor)
    return user_repository.list_users()


def login(email: Any, password: Any, *, now: Optional[datetime] = None) -> tuple[User, Session]:
    """
    Check credentials and open a session.

    Unknown email and wrong password fail with the same message.
    """

    if not isinstance(email, str) or not isinstance(password, str):
        raise Unauthorized(_LOGIN_FAILED)

    user = user_repository.get_user_by_email(email.strip().lower())
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Login failed")
        raise Unauthorized(_LOGIN_FAILED)

    session = Session.start(
        user.user_id,
        now=now or utc_now(),
        ttl=timedelta(hours=config.SESSION_TTL_HOURS),
    )
    user_repository.insert_session(session)
    logger.info("User logged in", extra={"user_id": str(user.user_id)})
    return user, session


def logout(token: Optional[str]) -> None:
    if token:
        user_repository.delete_session(token)


def resolve_actor(token: Optional[str], *, now: Optional[datetime] = None) -> Actor:
    """
    Map a session token to the calling user.

    Raises:
        Unauthorized: Missing, unknown or expired token, or deleted user
    """

    if not token:
        raise Unauthorized("Authentication required")

    session = user_repository.get_session(token)
    if session is None:
        raise Unauthorized("Invalid session")
    if session.is_expired(now or utc_now()):
        user_repository.delete_session(token)
        raise Unauthorized("Session expired")

    user = user_repository.get_user_by_id(session.user_id)
    if user is None:
        raise Unauthorized("Invalid session")
    return user.as_actor()


__all__ = [
    "create_user",
    "ensure_admin",
    "list_users",
    "login",
    "logout",
    "resolve_actor",
]
