"""Share-related Pydantic schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SharedFile(BaseModel):
    """Public metadata of one file in a shared transfer."""

    filename: str
    size: int
    content_type: str
    index: int

    model_config = ConfigDict(from_attributes=True)


class SenderInfo(BaseModel):
    """Sender identity needed by recipients to verify and decrypt."""

    id: uuid.UUID
    username: str
    public_key: str | None

    model_config = ConfigDict(from_attributes=True)


class ShareListingResponse(BaseModel):
    """Files of a transfer plus the caller's key envelope when gated."""

    expires_at: datetime
    is_anonymous: bool
    files: list[SharedFile]
    encrypted_key: str | None = None
    sender: SenderInfo | None = None


class DownloadLinkResponse(BaseModel):
    """Short-lived link for downloading one file."""

    url: str
    content_type: str
    filename: str
