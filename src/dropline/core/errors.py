"""Error taxonomy shared by the transfer services.

Services raise these exceptions; the API layer maps each one to its
``status_code`` in a single exception handler.
"""

from __future__ import annotations


class TransferError(RuntimeError):
    """Base exception for failures in the transfer core."""

    status_code: int = 500
    public_message: str | None = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def detail(self) -> str:
        """Message safe to return to clients."""
        return self.public_message or self.message


class InvalidInputError(TransferError):
    """Malformed or missing fields, or a size cap exceeded."""

    status_code = 400


class UnauthorizedError(TransferError):
    """Missing or invalid caller identity."""

    status_code = 401


class ForbiddenError(TransferError):
    """Caller is authenticated but not an authorized recipient."""

    status_code = 403


class NotFoundError(TransferError):
    """Unknown token, file index or account."""

    status_code = 404


class ConflictError(TransferError):
    """A uniqueness constraint rejected the write (e.g. token collision)."""

    status_code = 409


class ExpiredError(TransferError):
    """The transfer existed but is past its expiry."""

    status_code = 410


class StorageError(TransferError):
    """Object storage or local disk failure."""

    status_code = 500
    public_message = "Internal server error"


class RegistryError(TransferError):
    """Database failure while reading or committing transfer metadata."""

    status_code = 500
    public_message = "Internal server error"
