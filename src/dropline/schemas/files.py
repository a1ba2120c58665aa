"""Upload-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .common import StrictRequest


class PresignFileRequest(StrictRequest):
    """One file the client intends to upload."""

    filename: str = Field(..., min_length=1, max_length=255)
    size: int = Field(..., ge=0, description="Declared size in bytes")


class PresignedFile(BaseModel):
    """Upload target for one declared file."""

    filename: str
    upload_url: str = Field(..., serialization_alias="uploadURL")
    key: str


class PresignResponse(BaseModel):
    """Token and per-file upload URLs issued by the presign step."""

    token: str
    urls: list[PresignedFile]


class CompleteFile(StrictRequest):
    """A file the client reports as uploaded."""

    filename: str = Field(..., min_length=1, max_length=255)
    size: int = Field(..., ge=0)
    key: str = Field(..., min_length=1)
    content_type: str = Field(
        default="application/octet-stream",
        alias="contentType",
        max_length=255,
    )
    index: int | None = Field(
        default=None,
        ge=0,
        description="Position in the transfer; defaults to the list position",
    )


class RecipientGrantRequest(StrictRequest):
    """Content key wrapped for one recipient by the sender's client."""

    username: str = Field(..., min_length=1)
    encrypted_key: str = Field(..., min_length=1, alias="encryptedKey")


class CompleteUploadRequest(StrictRequest):
    """Completion report for a presigned upload session."""

    token: str
    files: list[CompleteFile]
    recipients: list[RecipientGrantRequest] = Field(default_factory=list)


class TransferCreatedResponse(BaseModel):
    """Share code returned once a transfer is committed."""

    share_code: str
    expires_in: str
    expires_at: datetime


class TransferSummary(BaseModel):
    """Sender-facing view of a transfer."""

    token: str
    created_at: datetime
    expires_at: datetime
    total_size: int
    is_anonymous: bool
    file_count: int

    model_config = ConfigDict(from_attributes=True)
