"""Unguessable URL-safe identifiers for share tokens and OAuth state."""

from __future__ import annotations

import base64
import binascii
import json
import re
import secrets
from typing import Final

MIN_TOKEN_BYTES: Final[int] = 32
STATE_RANDOM_BYTES: Final[int] = 16
MAX_TOKEN_LENGTH: Final[int] = 128

_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _encode_b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _decode_b64(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def generate_secure_token(byte_length: int = MIN_TOKEN_BYTES) -> str:
    """Return ``byte_length`` random bytes as unpadded URL-safe base64."""
    if byte_length <= 0:
        raise ValueError("byte_length must be positive")
    return _encode_b64(secrets.token_bytes(byte_length))


def is_well_formed_token(token: str) -> bool:
    """Return True if ``token`` could have been produced by the generator."""
    return 0 < len(token) <= MAX_TOKEN_LENGTH and bool(_TOKEN_RE.match(token))


def generate_state(data: dict[str, str]) -> str:
    """Build an OAuth anti-CSRF state value carrying ``data``.

    Format: ``<random part>.<payload part>``, both URL-safe base64.
    """
    random_part = _encode_b64(secrets.token_bytes(STATE_RANDOM_BYTES))
    payload_part = _encode_b64(json.dumps(data, separators=(",", ":")).encode())
    return f"{random_part}.{payload_part}"


def decode_state(state: str) -> dict[str, str]:
    """Recover the metadata embedded by :func:`generate_state`.

    Raises:
        ValueError: If the state is not in the expected format.
    """
    parts = state.split(".")
    if len(parts) != 2 or not parts[0]:
        raise ValueError("invalid state format")
    try:
        payload = json.loads(_decode_b64(parts[1]))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as err:
        raise ValueError("failed to decode state payload") from err
    if not isinstance(payload, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in payload.items()
    ):
        raise ValueError("state payload must be a string mapping")
    return payload
