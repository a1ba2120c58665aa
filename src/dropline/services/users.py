"""CRUD-style helpers for accounts and published keys."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dropline.core import security
from dropline.core.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from dropline.models import User

__all__ = [
    "authenticate",
    "get_by_username",
    "get_user",
    "register_user",
    "resolve_usernames",
    "update_keys",
]

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: uuid.UUID) -> User | None:
    """Return a single user by primary key."""
    return db.get(User, user_id)


def get_by_username(db: Session, username: str) -> User:
    """Return the account named ``username``."""
    user = db.scalars(select(User).where(User.username == username)).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def register_user(db: Session, username: str, email: str, password: str) -> User:
    """Persist a new account with a hashed password."""
    username = username.strip()
    email = email.strip().lower()
    if not username or not email or not password:
        raise InvalidInputError("Invalid input")

    existing = db.scalars(
        select(User).where(or_(User.username == username, User.email == email))
    ).first()
    if existing is not None:
        if existing.username == username:
            raise ConflictError("Username is already taken")
        raise ConflictError("User already exists with this email")

    user = User(
        username=username,
        email=email,
        password_hash=security.hash_password(password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise ConflictError("User already exists") from err
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, username: str, password: str) -> User:
    """Return the account for valid credentials."""
    user = db.scalars(select(User).where(User.username == username)).first()
    if user is None or not security.verify_password(password, user.password_hash):
        raise UnauthorizedError("Invalid credentials")
    return user


def update_keys(
    db: Session,
    user: User,
    public_key: str,
    encrypted_private_key: str | None = None,
) -> User:
    """Publish ``public_key`` and store the client-encrypted private key."""
    user.public_key = public_key
    if encrypted_private_key is not None:
        user.encrypted_private_key = encrypted_private_key
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def resolve_usernames(db: Session, usernames: Iterable[str]) -> dict[str, User]:
    """Map each requested username to its account.

    Raises:
        NotFoundError: If any username is unknown.
    """
    wanted = set(usernames)
    if not wanted:
        return {}
    users = db.scalars(select(User).where(User.username.in_(wanted))).all()
    found = {user.username: user for user in users}
    missing = sorted(wanted - found.keys())
    if missing:
        raise NotFoundError(f"Recipient not found: {missing[0]}")
    return found
