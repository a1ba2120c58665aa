"""Persistence-backed ledger of transfers, files and recipients."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dropline.core.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    RegistryError,
)
from dropline.db.time import ensure_utc, utcnow
from dropline.models import File, Recipient, Transfer
from dropline.models.transfer import FILE_BACKEND_OBJECT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileDescriptor:
    """Metadata of one file to be committed with a transfer."""

    filename: str
    size: int
    key: str
    content_type: str
    index: int
    backend: str = FILE_BACKEND_OBJECT


@dataclass(frozen=True)
class RecipientGrant:
    """A recipient and the content key wrapped for them."""

    receiver_id: uuid.UUID
    encrypted_key: str


class TransferRegistry:
    """Transactional store for Transfer, File and Recipient rows.

    ``create_transfer``, ``add_files`` and ``add_recipients`` only flush;
    :meth:`register_transfer` is the single commit point so a partial file set
    is never visible.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    # -- writes -----------------------------------------------------------------

    def create_transfer(
        self,
        token: str,
        expires_at: datetime,
        total_size: int,
        is_anonymous: bool,
        sender_id: uuid.UUID | None = None,
    ) -> Transfer:
        created_at = utcnow()
        if ensure_utc(expires_at) <= created_at:
            raise InvalidInputError("Transfer expiry must be in the future")
        transfer = Transfer(
            token=token,
            created_at=created_at,
            updated_at=created_at,
            expires_at=ensure_utc(expires_at),
            total_size=total_size,
            is_anonymous=is_anonymous,
            sender_id=sender_id,
            deleted=False,
        )
        self.db.add(transfer)
        self.db.flush()
        return transfer

    def add_files(self, transfer_id: uuid.UUID, descriptors: Sequence[FileDescriptor]) -> None:
        indexes = [d.index for d in descriptors]
        if len(set(indexes)) != len(indexes):
            raise InvalidInputError("Duplicate file index in transfer")
        for descriptor in descriptors:
            self.db.add(
                File(
                    transfer_id=transfer_id,
                    filename=descriptor.filename,
                    size=descriptor.size,
                    path=descriptor.key,
                    content_type=descriptor.content_type,
                    index=descriptor.index,
                    backend=descriptor.backend,
                    deleted=False,
                )
            )
        self.db.flush()

    def add_recipients(self, transfer_id: uuid.UUID, grants: Sequence[RecipientGrant]) -> None:
        for grant in grants:
            self.db.add(
                Recipient(
                    transfer_id=transfer_id,
                    receiver_id=grant.receiver_id,
                    encrypted_key=grant.encrypted_key,
                )
            )
        self.db.flush()

    def register_transfer(
        self,
        *,
        token: str,
        expires_at: datetime,
        files: Sequence[FileDescriptor],
        is_anonymous: bool,
        sender_id: uuid.UUID | None = None,
        recipients: Sequence[RecipientGrant] = (),
    ) -> Transfer:
        """Atomically create a transfer with its files and recipient grants.

        Raises:
            InvalidInputError: Empty file set, duplicate index or past expiry.
            ConflictError: The token (or a row uniqueness constraint) collided.
            RegistryError: The database rejected or failed the commit.
        """
        if not files:
            raise InvalidInputError("A transfer needs at least one file")
        total_size = sum(f.size for f in files)
        try:
            transfer = self.create_transfer(
                token, expires_at, total_size, is_anonymous, sender_id
            )
            self.add_files(transfer.id, files)
            self.add_recipients(transfer.id, recipients)
            self.db.commit()
        except InvalidInputError:
            self.db.rollback()
            raise
        except IntegrityError as err:
            self.db.rollback()
            logger.warning("Transfer commit rejected by constraint: %s", err.orig)
            raise ConflictError("Transfer token already in use") from err
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.exception("Transfer commit failed")
            raise RegistryError("Failed to store transfer") from err

        self.db.refresh(transfer)
        logger.info(
            "Registered transfer %s: %d file(s), %d bytes, %d recipient(s)",
            transfer.id,
            len(files),
            total_size,
            len(recipients),
        )
        return transfer

    def soft_delete(self, transfer: Transfer) -> None:
        """Hide a transfer and its files from every read path."""
        transfer.deleted = True
        for file in transfer.files:
            file.deleted = True
        try:
            self.db.commit()
        except SQLAlchemyError as err:
            self.db.rollback()
            raise RegistryError("Failed to delete transfer") from err

    # -- reads ------------------------------------------------------------------

    def find_by_token(self, token: str) -> Transfer:
        transfer = self.db.scalars(
            select(Transfer).where(Transfer.token == token, Transfer.deleted.is_(False))
        ).first()
        if transfer is None:
            raise NotFoundError("Invalid or expired share link")
        return transfer

    def find_file(self, transfer_id: uuid.UUID, index: int) -> File:
        file = self.db.scalars(
            select(File).where(
                File.transfer_id == transfer_id,
                File.index == index,
                File.deleted.is_(False),
            )
        ).first()
        if file is None:
            raise NotFoundError("File not found")
        return file

    def list_files(self, transfer_id: uuid.UUID) -> list[File]:
        return list(
            self.db.scalars(
                select(File)
                .where(File.transfer_id == transfer_id, File.deleted.is_(False))
                .order_by(File.index)
            )
        )

    def is_authorized_recipient(self, transfer_id: uuid.UUID, receiver_id: uuid.UUID) -> bool:
        return self.get_recipient(transfer_id, receiver_id) is not None

    def get_recipient(self, transfer_id: uuid.UUID, receiver_id: uuid.UUID) -> Recipient | None:
        return self.db.scalars(
            select(Recipient).where(
                Recipient.transfer_id == transfer_id,
                Recipient.receiver_id == receiver_id,
            )
        ).first()

    def list_sent(self, sender_id: uuid.UUID) -> list[Transfer]:
        return list(
            self.db.scalars(
                select(Transfer)
                .where(Transfer.sender_id == sender_id, Transfer.deleted.is_(False))
                .order_by(Transfer.created_at.desc())
            )
        )

    def find_expired(self, now: datetime | None = None) -> list[Transfer]:
        cutoff = ensure_utc(now) if now else utcnow()
        return list(
            self.db.scalars(
                select(Transfer).where(
                    Transfer.expires_at <= cutoff,
                    Transfer.deleted.is_(False),
                )
            )
        )
