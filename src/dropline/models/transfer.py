"""SQLAlchemy models for transfers and their files."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dropline.db.session import Base
from dropline.db.time import utcnow

if TYPE_CHECKING:
    from .recipient import Recipient
    from .user import User

FILE_BACKEND_OBJECT = "object"
FILE_BACKEND_LOCAL = "local"


class Transfer(Base):
    """A batch of files shared under one token with one expiry.

    Rows are created together with their files in a single commit and are only
    ever mutated to set ``deleted``.
    """

    __tablename__ = "transfers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    token: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Sum of the file sizes committed with the transfer.
    total_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sender_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=True,
        index=True,
    )
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    files: Mapped[list[File]] = relationship(
        "File",
        back_populates="transfer",
        order_by="File.index",
    )
    recipients: Mapped[list[Recipient]] = relationship("Recipient", back_populates="transfer")
    sender: Mapped[User | None] = relationship("User")


class File(Base):
    """One uploaded object within a transfer."""

    __tablename__ = "files"
    __table_args__ = (
        UniqueConstraint("transfer_id", "index", name="uq_files_transfer_index"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    transfer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("transfers.id"),
        nullable=False,
        index=True,
    )
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Storage locator: an object key, or a key relative to the local storage root.
    path: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="application/octet-stream",
    )
    index: Mapped[int] = mapped_column(Integer, nullable=False)
    backend: Mapped[str] = mapped_column(String(16), nullable=False, default=FILE_BACKEND_OBJECT)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    transfer: Mapped[Transfer] = relationship("Transfer", back_populates="files")
