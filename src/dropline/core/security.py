"""Credential verifier and session token helpers.

Password verifiers are bcrypt hashes produced through passlib; session
credentials are HS256 JWTs carried in an HttpOnly cookie or a Bearer header.
"""
from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from dropline.core.errors import UnauthorizedError
from dropline.core.settings import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)


def hash_password(password: str) -> str:
    """Return an opaque verifier for ``password``."""
    return pwd_context.hash(password)


def verify_password(password: str, verifier: str | None) -> bool:
    """Check ``password`` against a stored verifier.

    Accounts without a verifier (e.g. created through an external identity
    provider) never match.
    """
    if not verifier:
        return False
    try:
        return pwd_context.verify(password, verifier)
    except ValueError:
        return False


def create_access_token(
    user_id: uuid.UUID | str,
    extra_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session token for ``user_id``."""
    now = datetime.now(UTC)
    to_encode: dict[str, Any] = {"sub": str(user_id), "iat": now}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> uuid.UUID:
    """Validate a session token and return the caller identity it carries.

    Raises:
        UnauthorizedError: If the token is malformed, expired, badly signed or
            does not carry a UUID subject.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise UnauthorizedError("Could not validate credentials") from err

    subject = payload.get("sub")
    if not subject:
        raise UnauthorizedError("Could not validate credentials")
    try:
        return uuid.UUID(str(subject))
    except ValueError as err:
        raise UnauthorizedError("Could not validate credentials") from err
