"""SQLAlchemy models for the Dropline application."""

from .recipient import Recipient
from .transfer import File, Transfer
from .user import User

__all__ = [
    "File",
    "Recipient",
    "Transfer",
    "User",
]
