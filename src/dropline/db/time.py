"""UTC helpers shared by models and expiry checks."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Normalise ``value`` to aware UTC.

    SQLite returns naive datetimes for ``DateTime(timezone=True)`` columns;
    every value this service writes is UTC, so naive values are read as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
