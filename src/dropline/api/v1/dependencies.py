"""Shared API dependencies for caller identity, storage and services."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from dropline.core.errors import UnauthorizedError
from dropline.core.security import decode_access_token
from dropline.core.settings import Settings, settings
from dropline.db.session import get_db
from dropline.models import User
from dropline.services import users as user_service
from dropline.services.registry import TransferRegistry
from dropline.services.shares import ShareResolver
from dropline.services.storage import LocalDiskStore, ObjectStorageGateway
from dropline.services.uploads import UploadOrchestrator

# Bearer is optional: browsers send the session cookie instead
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_settings() -> Settings:
    """Return the process-wide settings object."""
    return settings


SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_storage_gateway(request: Request) -> ObjectStorageGateway:
    """Return the object storage gateway built at startup."""
    return request.app.state.storage


def get_local_store(request: Request) -> LocalDiskStore:
    """Return the disk store used by legacy single-phase uploads."""
    return request.app.state.local_store


StorageDep = Annotated[ObjectStorageGateway, Depends(get_storage_gateway)]
LocalStoreDep = Annotated[LocalDiskStore, Depends(get_local_store)]


def get_optional_caller_id(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    config: SettingsDep,
) -> uuid.UUID | None:
    """Return the caller identity, or ``None`` when no credential was sent.

    The session cookie takes precedence over an ``Authorization: Bearer``
    header. A credential that is present but invalid is rejected rather than
    treated as anonymous.

    Raises:
        UnauthorizedError: If the supplied credential does not validate.
    """
    token = request.cookies.get(config.auth_cookie_name)
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        return None
    return decode_access_token(token)


OptionalCallerDep = Annotated[uuid.UUID | None, Depends(get_optional_caller_id)]


def get_current_user(caller_id: OptionalCallerDep, db: SessionDep) -> User:
    """Get the authenticated user for endpoints that require a session.

    Raises:
        UnauthorizedError: If no credential was sent or its user is gone.
    """
    if caller_id is None:
        raise UnauthorizedError("Not authenticated")
    user = user_service.get_user(db, caller_id)
    if user is None:
        raise UnauthorizedError("User not found")
    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_registry(db: SessionDep) -> TransferRegistry:
    return TransferRegistry(db)


RegistryDep = Annotated[TransferRegistry, Depends(get_registry)]


def get_upload_orchestrator(
    registry: RegistryDep,
    storage: StorageDep,
    local_store: LocalStoreDep,
    config: SettingsDep,
) -> UploadOrchestrator:
    return UploadOrchestrator(registry, storage, local_store, config)


def get_share_resolver(
    request: Request,
    registry: RegistryDep,
    storage: StorageDep,
    local_store: LocalStoreDep,
    config: SettingsDep,
) -> ShareResolver:
    def local_download_url(token: str, index: int) -> str:
        return str(request.url_for("download_shared_file", token=token, index=index))

    return ShareResolver(
        registry,
        storage,
        local_store,
        config,
        local_download_url=local_download_url,
    )


OrchestratorDep = Annotated[UploadOrchestrator, Depends(get_upload_orchestrator)]
ResolverDep = Annotated[ShareResolver, Depends(get_share_resolver)]
