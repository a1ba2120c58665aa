"""Business logic services for the Dropline application."""

from .registry import FileDescriptor, RecipientGrant, TransferRegistry
from .shares import ShareResolver
from .storage import LocalDiskStore, S3StorageGateway
from .uploads import UploadOrchestrator

__all__ = [
    "FileDescriptor",
    "LocalDiskStore",
    "RecipientGrant",
    "S3StorageGateway",
    "ShareResolver",
    "TransferRegistry",
    "UploadOrchestrator",
]
