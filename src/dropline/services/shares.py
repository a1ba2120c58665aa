"""Token resolution for recipients: expiry, authorization and download links."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from dropline.core.errors import (
    ExpiredError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from dropline.core.settings import Settings
from dropline.db.time import ensure_utc, utcnow
from dropline.models import File, Recipient, Transfer, User
from dropline.models.transfer import FILE_BACKEND_LOCAL
from dropline.services.registry import TransferRegistry
from dropline.services.storage import LocalDiskStore, ObjectStorageGateway


@dataclass(frozen=True)
class ShareListing:
    transfer: Transfer
    files: list[File]
    recipient: Recipient | None
    sender: User | None

    @property
    def expires_at(self) -> datetime:
        return ensure_utc(self.transfer.expires_at)


@dataclass(frozen=True)
class FileDownload:
    url: str
    content_type: str
    filename: str


class ShareResolver:
    """Serves transfer metadata and download links for a share token.

    Checks run in a fixed order (existence, then expiry, then recipient
    authorization) so error codes never reveal whether a caller would have been
    authorized for a missing or lapsed transfer.
    """

    def __init__(
        self,
        registry: TransferRegistry,
        storage: ObjectStorageGateway,
        local_store: LocalDiskStore,
        config: Settings,
        local_download_url: Callable[[str, int], str] | None = None,
    ) -> None:
        self.registry = registry
        self.storage = storage
        self.local_store = local_store
        self.config = config
        self._local_download_url = local_download_url or (
            lambda token, index: f"/api/v1/share/{token}/download/{index}"
        )

    def resolve(
        self,
        token: str,
        caller_id: uuid.UUID | None,
        now: datetime | None = None,
    ) -> tuple[Transfer, Recipient | None]:
        """Return the live transfer for ``token`` and the caller's grant, if gated."""
        transfer = self.registry.find_by_token(token)

        current = ensure_utc(now) if now else utcnow()
        if current > ensure_utc(transfer.expires_at):
            raise ExpiredError("This link has expired")

        if transfer.is_anonymous:
            return transfer, None
        if caller_id is None:
            raise UnauthorizedError("Sign in to access this transfer")
        recipient = self.registry.get_recipient(transfer.id, caller_id)
        if recipient is None:
            raise ForbiddenError("You are not a recipient of this transfer")
        return transfer, recipient

    def list_files(self, token: str, caller_id: uuid.UUID | None) -> ShareListing:
        transfer, recipient = self.resolve(token, caller_id)
        files = self.registry.list_files(transfer.id)
        sender = transfer.sender if recipient is not None else None
        return ShareListing(transfer=transfer, files=files, recipient=recipient, sender=sender)

    def _resolve_file(self, token: str, index: int, caller_id: uuid.UUID | None) -> File:
        transfer, _ = self.resolve(token, caller_id)
        return self.registry.find_file(transfer.id, index)

    def fetch_one(self, token: str, index: int, caller_id: uuid.UUID | None) -> FileDownload:
        """Return a short-lived download URL for the file at ``index``."""
        file = self._resolve_file(token, index, caller_id)
        return FileDownload(
            url=self.link_for(token, file),
            content_type=file.content_type,
            filename=file.filename,
        )

    def link_for(self, token: str, file: File) -> str:
        """Return the URL a client should fetch ``file`` from."""
        if file.backend == FILE_BACKEND_LOCAL:
            return self._local_download_url(token, file.index)
        return self.storage.presign_get(
            file.path,
            self.config.presign_ttl_seconds,
            filename=file.filename,
        )

    def open_local(
        self, token: str, index: int, caller_id: uuid.UUID | None
    ) -> tuple[File, Path | None]:
        """Return the file and, for disk-backed files, its on-disk path.

        Object-backed files yield ``None`` so the caller can redirect to a
        presigned URL instead.
        """
        file = self._resolve_file(token, index, caller_id)
        if file.backend != FILE_BACKEND_LOCAL:
            return file, None
        path = self.local_store.path_for(file.path)
        if not path.is_file():
            raise NotFoundError("File data not found")
        return file, path
