# src/dropline/api/v1/endpoints/auth.py
"""Authentication endpoints for the Dropline API."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from dropline.api.v1.dependencies import CurrentUserDep, SessionDep, SettingsDep
from dropline.core.security import create_access_token
from dropline.core.settings import Settings
from dropline.schemas.user import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SignUpRequest,
    UserResponse,
)
from dropline.services import users as user_service

router = APIRouter(prefix="/auth", tags=["authentication"])


def _set_session_cookie(response: Response, token: str, config: Settings) -> None:
    response.set_cookie(
        key=config.auth_cookie_name,
        value=token,
        max_age=config.access_token_expire_minutes * 60,
        httponly=True,
        secure=config.is_production,
        samesite="none" if config.is_production else "lax",
        path="/",
    )


@router.post(
    "/sign-up",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(
    payload: SignUpRequest,
    response: Response,
    db: SessionDep,
    config: SettingsDep,
) -> MessageResponse:
    """Create an account and start a session for it."""
    user = user_service.register_user(db, payload.username, payload.email, payload.password)
    _set_session_cookie(response, create_access_token(user.id), config)
    return MessageResponse(message="User created successfully")


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    db: SessionDep,
    config: SettingsDep,
) -> LoginResponse:
    """Exchange credentials for a session.

    The token is set as an HttpOnly cookie and also returned in the body for
    clients that send it as a Bearer header.
    """
    user = user_service.authenticate(db, payload.username, payload.password)
    token = create_access_token(user.id)
    _set_session_cookie(response, token, config)
    return LoginResponse(message="Login successful", access_token=token)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response, config: SettingsDep) -> MessageResponse:
    response.delete_cookie(
        key=config.auth_cookie_name,
        path="/",
        httponly=True,
        secure=config.is_production,
        samesite="none" if config.is_production else "lax",
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(current_user: CurrentUserDep) -> UserResponse:
    """Return the authenticated account."""
    return UserResponse.model_validate(current_user)
