# src/dropline/scripts/cleanup.py
"""
Cron job that retires expired transfers.

Run periodically to:
1. Delete the stored objects of every transfer past its expiry
2. Soft-delete the transfer and its files so no read path serves them again
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime

from dropline.core.errors import StorageError
from dropline.core.settings import settings
from dropline.db.session import session_scope
from dropline.db.time import utcnow
from dropline.models.transfer import FILE_BACKEND_LOCAL
from dropline.services.registry import TransferRegistry
from dropline.services.storage import (
    LocalDiskStore,
    ObjectStorageGateway,
    build_storage_gateway,
)

logger = logging.getLogger(__name__)


def sweep_expired(
    registry: TransferRegistry,
    storage: ObjectStorageGateway,
    local_store: LocalDiskStore,
    now: datetime | None = None,
    dry_run: bool = False,
) -> int:
    """Retire every live transfer with ``expires_at <= now``.

    Object deletion failures are logged and skipped; the transfer is still
    soft-deleted so it stops being served.

    Returns:
        Number of transfers retired (or that would be, with ``dry_run``).
    """
    expired = registry.find_expired(now or utcnow())
    if not expired:
        logger.info("No expired transfers found")
        return 0

    logger.info("Found %d expired transfer(s)", len(expired))
    if dry_run:
        return len(expired)

    for transfer in expired:
        for file in transfer.files:
            if file.deleted:
                continue
            store = local_store if file.backend == FILE_BACKEND_LOCAL else storage
            try:
                store.delete(file.path)
            except StorageError as err:
                logger.error("Failed to delete %s: %s", file.path, err)
        registry.soft_delete(transfer)
        logger.info("Transfer %s cleaned", transfer.id)
    return len(expired)


def main() -> None:
    parser = argparse.ArgumentParser(description="Retire expired transfers")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report how many transfers have expired.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper())
    with session_scope() as db:
        count = sweep_expired(
            TransferRegistry(db),
            build_storage_gateway(settings),
            LocalDiskStore(settings.local_storage_dir),
            dry_run=args.dry_run,
        )
    print(f"Expired transfers {'found' if args.dry_run else 'cleaned'}: {count}")


if __name__ == "__main__":
    main()
