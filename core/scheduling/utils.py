"""
Shared utilities for scheduling functionality.

Provides timezone handling, validation, overlap checks and slot
enumeration for interview booking.

Author: HireMatch Team
"""

import logging
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Iterator, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import ValidationError

logger = logging.getLogger(__name__)


# Common valid timezones for quick validation
COMMON_TIMEZONES = frozenset([
    'UTC', 'America/New_York', 'America/Los_Angeles', 'America/Chicago',
    'America/Toronto', 'America/Vancouver', 'Europe/London', 'Europe/Paris',
    'Europe/Berlin', 'Asia/Tokyo', 'Asia/Singapore', 'Australia/Sydney',
])


def validate_timezone(tz: str) -> bool:
    """
    Validate that a timezone string is a valid IANA timezone.

    Example:
        >>> validate_timezone('America/Toronto')
        True
        >>> validate_timezone('Invalid/Timezone')
        False
    """
    if not tz or not isinstance(tz, str):
        return False

    if tz in COMMON_TIMEZONES:
        return True

    try:
        ZoneInfo(tz)
        return True
    except (ZoneInfoNotFoundError, KeyError, ValueError):
        return False


def get_safe_timezone(tz: str, default: str = 'UTC') -> ZoneInfo:
    """
    Get a ZoneInfo object, falling back to default if invalid.

    Raises:
        ValueError: If both tz and default are invalid
    """
    if validate_timezone(tz):
        return ZoneInfo(tz)

    logger.warning(f"Invalid timezone '{tz}', falling back to '{default}'")

    if validate_timezone(default):
        return ZoneInfo(default)

    raise ValueError(f"Both timezone '{tz}' and default '{default}' are invalid")


def ensure_aware(dt: datetime, tz: str = 'UTC') -> datetime:
    """
    Attach ``tz`` to a naive datetime; aware datetimes pass through.

    Args:
        dt: Datetime to localize
        tz: IANA timezone the naive value is expressed in
    """
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=get_safe_timezone(tz))
    return dt


def to_utc(dt: datetime, tz: str = 'UTC') -> datetime:
    """Normalize a datetime to an aware UTC instant."""
    return ensure_aware(dt, tz).astimezone(dt_timezone.utc)


def validate_time_slot(
    start_time: datetime,
    end_time: datetime,
    min_duration: Optional[timedelta] = None,
    max_duration: Optional[timedelta] = None,
    field: str = 'slot',
) -> None:
    """
    Validate a time slot.

    Args:
        start_time: Slot start time
        end_time: Slot end time
        min_duration: Optional minimum duration
        max_duration: Optional maximum duration
        field: Input field name reported on failure

    Raises:
        ValidationError: If validation fails
    """
    if start_time is None or end_time is None:
        raise ValidationError("Start and end times are required", field=field)

    # Start must be before end
    if to_utc(start_time) >= to_utc(end_time):
        raise ValidationError(
            "Start time must be before end time",
            field=field,
            value=(start_time, end_time),
        )

    duration = to_utc(end_time) - to_utc(start_time)

    if min_duration and duration < min_duration:
        raise ValidationError(f"Duration must be at least {min_duration}", field=field)

    if max_duration and duration > max_duration:
        raise ValidationError(f"Duration cannot exceed {max_duration}", field=field)


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """
    Half-open overlap test: [a) and [b) overlap iff a.start < b.end and a.end > b.start.

    Touching intervals (one ends exactly when the other starts) do not overlap.
    """
    return start_a < end_b and end_a > start_b


def iter_time_slots(
    start: datetime,
    end: datetime,
    duration: timedelta,
    step: timedelta,
) -> Iterator[Tuple[datetime, datetime]]:
    """
    Yield fixed-length (start, end) pairs inside [start, end).

    The cursor advances by ``step``; iteration stops at the first cursor
    whose slot would run past ``end``.

    Raises:
        ValidationError: If duration or step is not positive
    """
    if duration <= timedelta(0):
        raise ValidationError("Slot duration must be positive", field='duration', value=duration)
    if step <= timedelta(0):
        raise ValidationError("Slot step must be positive", field='step', value=step)

    current = start
    while current + duration <= end:
        yield current, current + duration
        current += step


def count_time_slots(window_length: timedelta, duration: timedelta, step: timedelta) -> int:
    """
    Number of slots iter_time_slots yields for a window of the given length.

    floor((window - duration) / step) + 1 when non-negative, else 0.
    """
    if window_length < duration:
        return 0
    return (window_length - duration) // step + 1
