"""
Request dependencies.

The session token is read from the `authToken` cookie set at login, or from
an `Authorization: Bearer <token>` header for non-browser clients.
"""

from typing import Optional

from fastapi import Depends, Request

import config
from domain.identity import Actor
from services import user_service


def get_session_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(config.SESSION_COOKIE_NAME)


def current_actor(token: Optional[str] = Depends(get_session_token)) -> Actor:
    """Resolve the caller; raises Unauthorized (401) without a valid session."""
    return user_service.resolve_actor(token)
