"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .files import (
    CompleteFile,
    CompleteUploadRequest,
    PresignedFile,
    PresignFileRequest,
    PresignResponse,
    RecipientGrantRequest,
    TransferCreatedResponse,
    TransferSummary,
)
from .share import DownloadLinkResponse, SenderInfo, SharedFile, ShareListingResponse
from .user import (
    KeysUpdateRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PublicKeyResponse,
    SignUpRequest,
    UserResponse,
)

__all__ = [
    "CompleteFile", "CompleteUploadRequest", "PresignedFile", "PresignFileRequest",
    "PresignResponse", "RecipientGrantRequest", "TransferCreatedResponse", "TransferSummary",
    "DownloadLinkResponse", "SenderInfo", "SharedFile", "ShareListingResponse",
    "KeysUpdateRequest", "LoginRequest", "LoginResponse", "MessageResponse", "PublicKeyResponse",
    "SignUpRequest", "UserResponse",
]
