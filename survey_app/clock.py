"""Clock used for ``updated_at`` / ``completed_at`` stamping.

All persisted timestamps are naive UTC so PostgreSQL and SQLite compare them
identically. Tests freeze time by patching ``utcnow``.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime | None) -> datetime | None:
    """Normalise an incoming timestamp to naive UTC (``None`` passes through)."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


__all__ = ["utcnow", "to_utc_naive"]
