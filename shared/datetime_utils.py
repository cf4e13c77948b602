"""
Date/time helpers — framework-agnostic.

MongoDB stores datetimes with millisecond precision and, unless the client is
created with ``tz_aware=True``, hands them back naive. Everything that
compares stored timestamps with token issue times goes through these helpers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime truncated to milliseconds."""
    return truncate_to_millis(datetime.now(timezone.utc))


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC.

    Naive datetimes (no ``tzinfo``) are assumed to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def truncate_to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision the store would not keep anyway."""
    return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


def to_epoch_millis(value: datetime) -> int:
    """Integer milliseconds since the Unix epoch."""
    value = ensure_utc(value)
    return int(value.timestamp()) * 1000 + value.microsecond // 1000


def from_epoch_millis(millis: int) -> datetime:
    seconds, ms = divmod(int(millis), 1000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(
        microsecond=ms * 1000
    )
