"""SQLAlchemy model for account identities."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from dropline.db.session import Base
from dropline.db.time import utcnow


class User(Base):
    """Registered account that can send transfers and receive key envelopes."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    # Opaque verifier; empty for accounts provisioned by an external identity provider.
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Published so senders can wrap a transfer's content key for this user.
    public_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Client-encrypted private key blob; the server never sees it in clear.
    encrypted_private_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )
