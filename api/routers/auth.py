"""
Auth API Endpoints.

Login/logout with a session cookie, session check, and user administration.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response

import config
from api.dependencies import current_actor, get_session_token
from api.models import (
    CheckAuthResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    UserCreateRequest,
    UserListResponse,
    UserResponse,
)
from domain.identity import Actor
from services import user_service

router = APIRouter()


@router.post(
    "/auth/login",
    response_model=LoginResponse,
    summary="Log In",
    description="Check credentials and start a session.",
)
def login(request: LoginRequest, response: Response):
    """
    Log in with email and password.

    On success the session token is set as the `authToken` cookie
    (HttpOnly, SameSite=Lax). Unknown email and wrong password both return
    401 with the same message.
    """
    user, session = user_service.login(request.email, request.password)
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=session.token,
        max_age=config.SESSION_TTL_HOURS * 3600,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="lax",
    )
    return LoginResponse(success=True, user=UserResponse.from_domain(user))


@router.post("/auth/logout", response_model=MessageResponse, summary="Log Out")
def logout(response: Response, token: Optional[str] = Depends(get_session_token)):
    user_service.logout(token)
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    return MessageResponse(success=True, message="Logged out")


@router.get("/auth/check-auth", response_model=CheckAuthResponse, summary="Check Session")
def check_auth(actor: Actor = Depends(current_actor)):
    return CheckAuthResponse(authenticated=True, user=UserResponse.from_actor(actor))


@router.post(
    "/auth/users",
    response_model=UserResponse,
    status_code=201,
    summary="Create User",
    description="Create a user account. Requires the admin role.",
)
def create_user(request: UserCreateRequest, actor: Actor = Depends(current_actor)):
    user = user_service.create_user(request.model_dump(exclude_none=True), actor)
    return UserResponse.from_domain(user)


@router.get("/auth/users", response_model=UserListResponse, summary="List Users")
def list_users(actor: Actor = Depends(current_actor)):
    users = user_service.list_users(actor)
    return UserListResponse(items=[UserResponse.from_domain(u) for u in users], total_count=len(users))
