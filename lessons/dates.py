"""Calendar date arithmetic for weekly lessons.

Weekdays follow the school's convention: 0 = Sunday ... 6 = Saturday.
Python's ``date.weekday()`` counts from Monday, so every conversion goes
through ``weekday_of``.
"""

import re
from datetime import date, datetime, time, timedelta

from .exceptions import ValidationError

DAYS_IN_WEEK = 7

_DATE_KEY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def validate_weekday(weekday: int) -> int:
    """Check that ``weekday`` is an int in 0-6 and return it.

    Raises:
        ValidationError: For any other value (no wrapping).
    """
    if isinstance(weekday, bool) or not isinstance(weekday, int):
        raise ValidationError(f"Weekday must be an integer 0-6, got {weekday!r}")
    if not 0 <= weekday <= 6:
        raise ValidationError(f"Weekday must be 0-6 (Sun-Sat), got {weekday}")
    return weekday


def weekday_of(day: date) -> int:
    """Return the weekday of ``day`` with 0 = Sunday."""
    return (day.weekday() + 1) % DAYS_IN_WEEK


def next_occurrence_of(weekday: int, base: date) -> date:
    """Find the first date on or after ``base`` that falls on ``weekday``.

    Args:
        weekday: Target weekday (0 = Sunday).
        base: The earliest possible date.

    Returns:
        A date in ``[base, base + 6 days]``; ``base`` itself if it
        already falls on ``weekday``.
    """
    validate_weekday(weekday)
    days_ahead = weekday - weekday_of(base)
    if days_ahead < 0:
        days_ahead += DAYS_IN_WEEK
    return base + timedelta(days=days_ahead)


def previous_occurrence_of(weekday: int, base: date) -> date:
    """Find the last date on or before ``base`` that falls on ``weekday``.

    Args:
        weekday: Target weekday (0 = Sunday).
        base: The latest possible date.

    Returns:
        A date in ``[base - 6 days, base]``.
    """
    validate_weekday(weekday)
    days_since = weekday_of(base) - weekday
    if days_since < 0:
        days_since += DAYS_IN_WEEK
    return base - timedelta(days=days_since)


def occurrence_after_next(weekday: int, base: date) -> date:
    """Return the occurrence one week after ``next_occurrence_of``.

    Public API for callers that schedule work up to the lesson after next
    (homework due dates); the projector and exporter do not use it.
    """
    return next_occurrence_of(weekday, base) + timedelta(days=DAYS_IN_WEEK)


def format_date_key(day: date) -> str:
    """Format a date as a zero-padded ``YYYY-MM-DD`` key.

    Built from the calendar fields directly; ``strftime`` does not pad
    years below 1000 on every platform. Datetimes are reduced to their
    local date.
    """
    if isinstance(day, datetime):
        day = day.date()
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def parse_date_key(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` key back into a date.

    Raises:
        ValidationError: If the string is not a valid date key.
    """
    match = _DATE_KEY_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid date: {value!r}. Expected YYYY-MM-DD.")

    year, month, day = map(int, match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value!r}. {e}") from e


def as_date(value) -> date:
    """Accept either a date or a date key and return a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date_key(value)


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a time object.

    Raises:
        ValidationError: If the string is not a valid time of day.
    """
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Cannot parse time of day: {value!r}")

    hour, minute, second = match.groups()
    try:
        return time(int(hour), int(minute), int(second or 0))
    except ValueError as e:
        raise ValidationError(f"Cannot parse time of day: {value!r}. {e}") from e


def format_time_of_day(value: time) -> str:
    """Format a time as ``HH:MM``, keeping seconds only when present."""
    if value.second:
        return value.strftime("%H:%M:%S")
    return value.strftime("%H:%M")
