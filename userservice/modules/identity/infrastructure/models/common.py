"""Shared helpers for the SQLModel persistence models."""

from datetime import UTC, datetime

from sqlalchemy import DateTime

# Timezone-aware on PostgreSQL; SQLite stores naive UTC text
UTCDateTime = DateTime(timezone=True)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)
