"""Account-related Pydantic schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .common import StrictRequest


class SignUpRequest(StrictRequest):
    """Schema for account registration."""

    username: str = Field(..., min_length=1, max_length=64)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class LoginRequest(StrictRequest):
    """Schema for password login."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class KeysUpdateRequest(StrictRequest):
    """Publish a public key and store the client-encrypted private key."""

    public_key: str = Field(..., min_length=1, alias="publicKey")
    encrypted_private_key: str | None = Field(default=None, alias="encryptedPrivateKey")


class UserResponse(BaseModel):
    """Account details returned to its owner."""

    id: uuid.UUID
    username: str
    email: str
    public_key: str | None
    encrypted_private_key: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublicKeyResponse(BaseModel):
    """Public key lookup result."""

    id: uuid.UUID
    username: str
    public_key: str | None

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class LoginResponse(BaseModel):
    """Session credential issued on login (also set as an HttpOnly cookie)."""

    message: str
    access_token: str
    token_type: str = "bearer"
