"""Object storage gateway and local disk store.

The gateway wraps an S3-compatible bucket (Cloudflare R2, MinIO, AWS S3) and
only exposes what the transfer core needs: presigned PUT/GET URLs, existence
checks and deletes. Payload bytes never pass through the application in the
presigned flow.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import BinaryIO, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from dropline.core.errors import StorageError
from dropline.core.settings import Settings

logger = logging.getLogger(__name__)

_MISSING_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_UNSAFE_FALLBACK_CHARS = re.compile(r'[^\x20-\x7e]|[\\";=]')


def attachment_disposition(filename: str) -> str:
    """Build an attachment Content-Disposition value safe for any filename.

    Carries a sanitised ASCII ``filename`` for old clients and the exact name
    as RFC 5987 ``filename*``.
    """
    fallback = _UNSAFE_FALLBACK_CHARS.sub("_", filename)
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


class ObjectStorageGateway(Protocol):
    """Capability the core depends on for content storage."""

    def presign_put(self, key: str, ttl_seconds: int) -> str: ...

    def presign_get(self, key: str, ttl_seconds: int, filename: str | None = None) -> str: ...

    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> None: ...


class S3StorageGateway:
    """Gateway backed by a boto3 S3 client."""

    def __init__(self, client, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    def presign_put(self, key: str, ttl_seconds: int) -> str:
        """Return a URL allowing a single PUT of ``key`` for ``ttl_seconds``."""
        return self._presign("put_object", {"Bucket": self._bucket, "Key": key}, ttl_seconds)

    def presign_get(self, key: str, ttl_seconds: int, filename: str | None = None) -> str:
        """Return a URL allowing a GET of ``key``, served as an attachment."""
        params = {"Bucket": self._bucket, "Key": key}
        if filename:
            params["ResponseContentDisposition"] = attachment_disposition(filename)
        return self._presign("get_object", params, ttl_seconds)

    def exists(self, key: str) -> bool:
        """Return True if ``key`` is present in the bucket.

        Raises:
            StorageError: If the bucket could not be queried (auth, network).
        """
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as err:
            code = str(err.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return False
            logger.warning("HEAD %s failed: %s", key, code or err)
            raise StorageError("Object storage request failed") from err
        except BotoCoreError as err:
            logger.warning("HEAD %s failed: %s", key, err)
            raise StorageError("Object storage unavailable") from err
        return True

    def delete(self, key: str) -> None:
        """Remove ``key`` from the bucket."""
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as err:
            raise StorageError(f"Failed to delete object {key}") from err

    def _presign(self, operation: str, params: dict[str, str], ttl_seconds: int) -> str:
        try:
            url: str = self._client.generate_presigned_url(
                operation,
                Params=params,
                ExpiresIn=ttl_seconds,
            )
        except (ClientError, BotoCoreError) as err:
            logger.error("Presigning %s for %s failed: %s", operation, params.get("Key"), err)
            raise StorageError("Failed to generate presigned URL") from err
        return url


def build_s3_client(config: Settings):
    """Create the process-wide boto3 client from settings."""
    return boto3.client(
        "s3",
        endpoint_url=config.effective_s3_endpoint_url,
        aws_access_key_id=config.s3_access_key_id,
        aws_secret_access_key=config.s3_secret_access_key,
        region_name=config.s3_region,
        config=Config(
            signature_version="s3v4",
            connect_timeout=5,
            read_timeout=config.storage_timeout_seconds,
            retries={"max_attempts": 3, "mode": "standard"},
            s3={"addressing_style": "path"},
        ),
    )


def build_storage_gateway(config: Settings) -> S3StorageGateway:
    """Construct the object storage gateway used by the API."""
    gateway = S3StorageGateway(build_s3_client(config), config.s3_bucket)
    logger.info(
        "Object storage gateway ready: endpoint=%s bucket=%s",
        config.effective_s3_endpoint_url or "aws",
        config.s3_bucket,
    )
    return gateway


class LocalDiskStore:
    """Key/value file store rooted at a directory, used by single-phase uploads."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Resolve ``key`` under the root, refusing keys that escape it."""
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root):
            raise StorageError("Invalid storage key")
        return path

    def save(self, key: str, stream: BinaryIO) -> int:
        """Copy ``stream`` to ``key`` and return the number of bytes written."""
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as fh:
                shutil.copyfileobj(stream, fh)
                return fh.tell()
        except OSError as err:
            logger.error("Writing %s failed: %s", path, err)
            raise StorageError("Failed to store uploaded file") from err

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as err:
            raise StorageError(f"Failed to delete {key}") from err
        parent = path.parent
        if parent != self._root and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
