"""
Timezone Utilities

Handles timezone conversions with proper DST (Daylight Saving Time) support.
All "today" and "is it time yet" questions are answered in the user's
timezone, never the server's.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
import pytz

logger = logging.getLogger(__name__)


def get_timezone(timezone_str: Optional[str]) -> pytz.BaseTzInfo:
    """Resolve a timezone name, falling back to UTC for unknown or empty names."""
    if not timezone_str:
        return pytz.UTC
    try:
        return pytz.timezone(timezone_str)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{timezone_str}', falling back to UTC")
        return pytz.UTC


def to_local(timezone_str: Optional[str], moment: datetime) -> datetime:
    """
    Convert a moment to the given timezone.

    Naive datetimes are treated as UTC (the storage convention).
    """
    tz = get_timezone(timezone_str)
    if moment.tzinfo is None:
        moment = pytz.UTC.localize(moment)
    return moment.astimezone(tz)


def local_date(timezone_str: Optional[str], moment: datetime) -> date:
    """Calendar day of `moment` in the given timezone."""
    return to_local(timezone_str, moment).date()


def safe_localize(tz: pytz.BaseTzInfo, naive_dt: datetime) -> datetime:
    """
    Safely localize a naive datetime, handling DST edge cases.

    - For non-existent times (during spring forward): Returns the time after the gap
    - For ambiguous times (during fall back): Returns the first occurrence (DST=True)

    Args:
        tz: pytz timezone object
        naive_dt: Naive datetime to localize

    Returns:
        Timezone-aware datetime
    """
    try:
        return tz.localize(naive_dt, is_dst=None)
    except pytz.AmbiguousTimeError:
        logger.debug(f"Ambiguous time {naive_dt} in {tz}, using DST=True")
        return tz.localize(naive_dt, is_dst=True)
    except pytz.NonExistentTimeError:
        logger.debug(f"Non-existent time {naive_dt} in {tz}, normalizing")
        localized = tz.localize(naive_dt, is_dst=False)
        return tz.normalize(localized)


def local_day_bounds(timezone_str: Optional[str], as_of: datetime) -> Tuple[datetime, datetime]:
    """
    Start and end of the user's local calendar day containing `as_of`.

    Returns aware datetimes in the user's timezone: [start, end). DST days
    are 23 or 25 hours long, so the end is the next local midnight rather
    than start + 24h.
    """
    tz = get_timezone(timezone_str)
    today = to_local(timezone_str, as_of).date()
    start = safe_localize(tz, datetime.combine(today, time.min))
    end = safe_localize(tz, datetime.combine(today + timedelta(days=1), time.min))
    return start, end


def parse_delivery_time(value: str) -> Tuple[int, int]:
    """
    Parse an 'HH:MM' delivery time.

    Raises:
        ValueError: if the value is not a valid 24h time
    """
    try:
        hour_str, minute_str = (value or '').split(':')
        hour, minute = int(hour_str), int(minute_str)
    except ValueError:
        raise ValueError(f"Invalid delivery time {value!r}, expected HH:MM")
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid delivery time {value!r}, expected HH:MM")
    return hour, minute


def delivery_window_day(
    timezone_str: Optional[str],
    delivery_time: str,
    now: datetime,
    window: timedelta
) -> Optional[date]:
    """
    Local calendar day whose delivery window contains `now`, if any.

    The window for a day is [delivery_time, delivery_time + window) in the
    user's timezone. Yesterday's window is checked too so a window that
    crosses midnight (e.g. 23:55 + 15 minutes) still matches, and is
    attributed to the day it started on.

    Returns:
        The calendar day the briefing is due for, or None when not due
    """
    tz = get_timezone(timezone_str)
    hour, minute = parse_delivery_time(delivery_time)
    local_now = to_local(timezone_str, now)

    for day in (local_now.date(), local_now.date() - timedelta(days=1)):
        target = safe_localize(tz, datetime.combine(day, time(hour, minute)))
        if target <= local_now < target + window:
            return day
    return None


def is_within_delivery_window(
    timezone_str: Optional[str],
    delivery_time: str,
    now: datetime,
    window: timedelta
) -> bool:
    """True when `now` falls in [delivery_time, delivery_time + window) locally."""
    return delivery_window_day(timezone_str, delivery_time, now, window) is not None


def get_next_scheduled_time(
    timezone_str: str,
    preferred_hour: int,
    preferred_minute: int = 0,
    from_time: Optional[datetime] = None
) -> datetime:
    """
    Calculate the next scheduled time in UTC, handling DST correctly.

    This function properly handles:
    - Non-existent times (spring forward): Moves to the next valid time
    - Ambiguous times (fall back): Uses the first occurrence (before DST ends)

    Args:
        timezone_str: Timezone string (e.g., 'America/New_York', 'Europe/London')
        preferred_hour: Hour of day (0-23) for scheduling
        preferred_minute: Minute of hour (0-59) for scheduling
        from_time: Starting point (defaults to now; naive values are UTC)

    Returns:
        datetime: Next scheduled time in UTC (timezone-naive)
    """
    tz = get_timezone(timezone_str)

    if from_time is None:
        local_now = datetime.now(tz)
    else:
        local_now = to_local(timezone_str, from_time)

    target_naive = local_now.replace(
        hour=preferred_hour,
        minute=preferred_minute,
        second=0,
        microsecond=0
    ).replace(tzinfo=None)

    target_local = safe_localize(tz, target_naive)

    # If the time has passed, move to tomorrow
    if target_local <= local_now:
        tomorrow_naive = target_naive + timedelta(days=1)
        target_local = safe_localize(tz, tomorrow_naive)

    return target_local.astimezone(pytz.UTC).replace(tzinfo=None)


def is_valid_timezone(timezone_str: str) -> bool:
    """
    Check if a timezone string is valid.

    Args:
        timezone_str: Timezone string to validate

    Returns:
        True if valid, False otherwise
    """
    try:
        pytz.timezone(timezone_str)
        return True
    except pytz.UnknownTimeZoneError:
        return False
