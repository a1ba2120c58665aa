"""SQLAlchemy model for per-recipient key envelopes."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dropline.db.session import Base
from dropline.db.time import utcnow

if TYPE_CHECKING:
    from .transfer import Transfer


class Recipient(Base):
    """Grants one user access to a transfer's decryption material.

    ``encrypted_key`` is the transfer's content key wrapped under the
    recipient's public key by the sender's client. It is stored and returned
    verbatim and never decrypted server-side.
    """

    __tablename__ = "recipients"
    __table_args__ = (
        UniqueConstraint("transfer_id", "receiver_id", name="uq_recipients_transfer_receiver"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    transfer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("transfers.id"),
        nullable=False,
        index=True,
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    encrypted_key: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    transfer: Mapped[Transfer] = relationship("Transfer", back_populates="recipients")
