# src/dropline/api/v1/endpoints/users.py
"""Key publication endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from dropline.api.v1.dependencies import CurrentUserDep, SessionDep
from dropline.schemas.user import KeysUpdateRequest, PublicKeyResponse, UserResponse
from dropline.services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.put("/me/keys", response_model=UserResponse)
async def update_my_keys(
    payload: KeysUpdateRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> UserResponse:
    """Publish the caller's public key and store their encrypted private key."""
    user = user_service.update_keys(
        db,
        current_user,
        payload.public_key,
        payload.encrypted_private_key,
    )
    return UserResponse.model_validate(user)


@router.get("/{username}/public-key", response_model=PublicKeyResponse)
async def get_public_key(username: str, db: SessionDep) -> PublicKeyResponse:
    """Look up the public key a sender wraps content keys for."""
    return PublicKeyResponse.model_validate(user_service.get_by_username(db, username))
