"""Upload orchestration: presign, verify-and-commit, and legacy direct upload.

The primary flow is two-phase. ``presign`` issues a token and one presigned
PUT URL per declared file without touching the registry; the client uploads
straight to object storage and then calls ``complete``, which confirms every
object exists before committing the transfer in one transaction.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta
from pathlib import PurePosixPath, PureWindowsPath
from typing import BinaryIO

from dropline.core.errors import InvalidInputError, StorageError, UnauthorizedError
from dropline.core.settings import Settings
from dropline.db.time import utcnow
from dropline.models import Transfer
from dropline.models.transfer import FILE_BACKEND_LOCAL, FILE_BACKEND_OBJECT
from dropline.services import users as user_service
from dropline.services.registry import FileDescriptor, RecipientGrant, TransferRegistry
from dropline.services.storage import LocalDiskStore, ObjectStorageGateway
from dropline.services.tokens import generate_secure_token, is_well_formed_token

logger = logging.getLogger(__name__)

OBJECT_KEY_PREFIX = "uploads"
LOCAL_KEY_PREFIX = "local"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class DeclaredFile:
    """A file announced in the presign step."""

    filename: str
    size: int


@dataclass(frozen=True)
class PresignedUpload:
    filename: str
    upload_url: str
    key: str


@dataclass(frozen=True)
class PresignResult:
    token: str
    uploads: list[PresignedUpload]


@dataclass(frozen=True)
class ReportedFile:
    """A file the client reports as uploaded to object storage."""

    filename: str
    size: int
    key: str
    content_type: str = DEFAULT_CONTENT_TYPE
    index: int | None = None


@dataclass(frozen=True)
class RecipientRequest:
    username: str
    encrypted_key: str


@dataclass(frozen=True)
class LocalUpload:
    """A multipart part received by the single-phase upload endpoint."""

    filename: str
    content_type: str | None
    stream: BinaryIO
    size: int | None = None


def safe_key_component(filename: str) -> str:
    """Reduce ``filename`` to a storage-key-safe basename."""
    name = PureWindowsPath(PurePosixPath(filename).name).name
    cleaned = _UNSAFE_KEY_CHARS.sub("_", name).strip("._")
    return cleaned[:128] or "file"


def format_ttl(ttl: timedelta) -> str:
    """Render a transfer lifetime the way clients display it (``1h``, ``90m``)."""
    minutes = int(ttl.total_seconds() // 60)
    if minutes and minutes % 60 == 0:
        return f"{minutes // 60}h"
    return f"{minutes}m"


class UploadOrchestrator:
    """Validates file sets, issues upload URLs and commits transfers."""

    def __init__(
        self,
        registry: TransferRegistry,
        storage: ObjectStorageGateway,
        local_store: LocalDiskStore,
        config: Settings,
    ) -> None:
        self.registry = registry
        self.storage = storage
        self.local_store = local_store
        self.config = config

    # -- helpers ----------------------------------------------------------------

    def ttl_for(self, *, gated: bool) -> timedelta:
        minutes = (
            self.config.recipient_transfer_ttl_minutes
            if gated
            else self.config.anonymous_transfer_ttl_minutes
        )
        return timedelta(minutes=minutes)

    def _check_cap(self, total: int) -> None:
        if total > self.config.max_transfer_bytes:
            limit_mib = self.config.max_transfer_bytes // (1024 * 1024)
            raise InvalidInputError(f"Total file size exceeds {limit_mib} MB limit")

    @staticmethod
    def object_key_prefix(token: str) -> str:
        return f"{OBJECT_KEY_PREFIX}/{token}/"

    def _new_key(self, prefix: str, filename: str) -> str:
        return f"{prefix}{uuid.uuid4().hex}_{safe_key_component(filename)}"

    # -- phase 1 ----------------------------------------------------------------

    def presign(self, files: Sequence[DeclaredFile]) -> PresignResult:
        """Issue a transfer token and one presigned PUT URL per declared file."""
        if not files:
            raise InvalidInputError("No files provided")
        if any(f.size < 0 for f in files):
            raise InvalidInputError("File sizes must be non-negative")
        self._check_cap(sum(f.size for f in files))

        token = generate_secure_token(self.config.transfer_token_bytes)
        prefix = self.object_key_prefix(token)
        uploads: list[PresignedUpload] = []
        for declared in files:
            key = self._new_key(prefix, declared.filename)
            url = self.storage.presign_put(key, self.config.presign_ttl_seconds)
            uploads.append(PresignedUpload(declared.filename, url, key))

        logger.debug("Presigned %d upload(s)", len(uploads))
        return PresignResult(token=token, uploads=uploads)

    # -- phase 2 ----------------------------------------------------------------

    async def complete(
        self,
        token: str,
        files: Sequence[ReportedFile],
        caller_id: uuid.UUID | None = None,
        recipients: Sequence[RecipientRequest] = (),
    ) -> Transfer:
        """Verify reported uploads and commit them as one transfer.

        Raises:
            InvalidInputError: Bad token or file list, an object missing from
                storage, or the reported total over the cap.
            UnauthorizedError: Recipients were given without a caller identity.
            NotFoundError: A recipient username is unknown.
            StorageError: Existence checks failed or timed out.
            ConflictError: The token was already committed.
        """
        if not token or not files:
            raise InvalidInputError("Missing token or no files provided")
        if not is_well_formed_token(token):
            raise InvalidInputError("Invalid token")

        descriptors = self._describe_reported(token, files)
        grants = self._resolve_grants(recipients, caller_id)

        await self._verify_uploaded(files)

        self._check_cap(sum(f.size for f in files))

        gated = bool(grants)
        return self.registry.register_transfer(
            token=token,
            expires_at=utcnow() + self.ttl_for(gated=gated),
            files=descriptors,
            is_anonymous=not gated,
            sender_id=caller_id,
            recipients=grants,
        )

    def _describe_reported(
        self, token: str, files: Sequence[ReportedFile]
    ) -> list[FileDescriptor]:
        prefix = self.object_key_prefix(token)
        descriptors: list[FileDescriptor] = []
        seen_keys: set[str] = set()
        seen_indexes: set[int] = set()
        for position, reported in enumerate(files):
            index = position if reported.index is None else reported.index
            if index < 0:
                raise InvalidInputError("File index must be non-negative")
            if index in seen_indexes:
                raise InvalidInputError(f"Duplicate file index: {index}")
            if reported.size < 0:
                raise InvalidInputError("File sizes must be non-negative")
            if not reported.key.startswith(prefix) or ".." in reported.key:
                raise InvalidInputError(f"Storage key does not belong to this transfer: {reported.filename}")
            if reported.key in seen_keys:
                raise InvalidInputError(f"Duplicate storage key: {reported.filename}")
            seen_indexes.add(index)
            seen_keys.add(reported.key)
            descriptors.append(
                FileDescriptor(
                    filename=reported.filename,
                    size=reported.size,
                    key=reported.key,
                    content_type=reported.content_type or DEFAULT_CONTENT_TYPE,
                    index=index,
                    backend=FILE_BACKEND_OBJECT,
                )
            )
        return descriptors

    def _resolve_grants(
        self,
        recipients: Sequence[RecipientRequest],
        caller_id: uuid.UUID | None,
    ) -> list[RecipientGrant]:
        if not recipients:
            if not self.config.allow_anonymous_transfers:
                raise InvalidInputError("At least one recipient is required")
            return []
        if caller_id is None:
            raise UnauthorizedError("Sign in to share with recipients")

        usernames = [r.username for r in recipients]
        if len(set(usernames)) != len(usernames):
            raise InvalidInputError("Duplicate recipient")
        accounts = user_service.resolve_usernames(self.registry.db, usernames)
        return [
            RecipientGrant(receiver_id=accounts[r.username].id, encrypted_key=r.encrypted_key)
            for r in recipients
        ]

    async def _verify_uploaded(self, files: Sequence[ReportedFile]) -> None:
        """Check every object concurrently; the first failure aborts the rest."""
        tasks = [asyncio.create_task(self._verify_one(f)) for f in files]
        try:
            done, pending = await asyncio.wait(
                tasks,
                timeout=self.config.storage_timeout_seconds,
                return_when=asyncio.FIRST_EXCEPTION,
            )
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        for task in tasks:
            if task in done and not task.cancelled() and task.exception() is not None:
                failure = task.exception()
                logger.info("Upload verification failed: %s", failure)
                raise failure  # type: ignore[misc]
        if pending:
            raise StorageError("Timed out verifying uploaded files")

    async def _verify_one(self, reported: ReportedFile) -> None:
        try:
            exists = await asyncio.to_thread(self.storage.exists, reported.key)
        except StorageError as err:
            raise StorageError(f"Failed to verify {reported.filename}") from err
        if not exists:
            raise InvalidInputError(f"File not found in storage: {reported.filename}")

    # -- legacy single-phase ----------------------------------------------------

    async def upload_direct(
        self,
        uploads: Sequence[LocalUpload],
        caller_id: uuid.UUID | None = None,
    ) -> Transfer:
        """Store multipart parts on local disk and register them in one commit."""
        if not uploads:
            raise InvalidInputError("No files provided")
        if not self.config.allow_anonymous_transfers:
            raise InvalidInputError("At least one recipient is required")

        token = generate_secure_token(self.config.transfer_token_bytes)
        written: list[str] = []
        descriptors: list[FileDescriptor] = []
        total = 0
        try:
            for index, upload in enumerate(uploads):
                if upload.size is not None:
                    self._check_cap(total + upload.size)
                key = self._new_key(f"{LOCAL_KEY_PREFIX}/{token}/", upload.filename)
                size = await asyncio.to_thread(self.local_store.save, key, upload.stream)
                written.append(key)
                total += size
                self._check_cap(total)
                descriptors.append(
                    FileDescriptor(
                        filename=upload.filename,
                        size=size,
                        key=key,
                        content_type=upload.content_type or DEFAULT_CONTENT_TYPE,
                        index=index,
                        backend=FILE_BACKEND_LOCAL,
                    )
                )
            return self.registry.register_transfer(
                token=token,
                expires_at=utcnow() + self.ttl_for(gated=False),
                files=descriptors,
                is_anonymous=True,
                sender_id=caller_id,
            )
        except Exception:
            self._discard_local(written)
            raise

    def _discard_local(self, keys: Sequence[str]) -> None:
        for key in keys:
            try:
                self.local_store.delete(key)
            except StorageError as err:
                logger.warning("Could not remove %s after failed upload: %s", key, err)
