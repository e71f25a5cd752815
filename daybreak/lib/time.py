"""
Time helpers shared across the application.

Single source of truth for "now in UTC". Database columns store naive UTC
values; use utcnow_naive() for those and utcnow() when an aware value is
needed for timezone maths.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utcnow_naive() -> datetime:
    """
    Return a naive UTC datetime.

    Use this instead of deprecated datetime.utcnow(). Preserves existing
    storage/comparison semantics for naive UTC values.
    """
    return utcnow().replace(tzinfo=None)


def to_naive_utc(moment: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive input is assumed to be UTC already."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def as_aware_utc(moment: datetime) -> datetime:
    """Attach UTC to a naive UTC datetime (or normalise an aware one to UTC)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
