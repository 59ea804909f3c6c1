"""Translate calendar views into inclusive date ranges.

Weeks run Sunday to Saturday, as on the school's calendar.
"""

from calendar import monthrange
from datetime import date, timedelta
from enum import Enum

from .dates import next_occurrence_of, previous_occurrence_of
from .exceptions import ValidationError

SUNDAY = 0
SATURDAY = 6


class CalendarView(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


def day_range(day: date) -> tuple[date, date]:
    return day, day


def week_range(day: date) -> tuple[date, date]:
    """Return the Sunday..Saturday week containing ``day``."""
    return previous_occurrence_of(SUNDAY, day), next_occurrence_of(SATURDAY, day)


def month_range(day: date) -> tuple[date, date]:
    """Return the range shown by a month grid for the month of ``day``.

    Starts on the Sunday of the week holding the 1st and ends on the
    Saturday of the week holding the last day, so leading and trailing
    days of the neighbouring months are included.
    """
    first = day.replace(day=1)
    last = day.replace(day=monthrange(day.year, day.month)[1])
    return previous_occurrence_of(SUNDAY, first), next_occurrence_of(SATURDAY, last)


def view_range(view: CalendarView, day: date) -> tuple[date, date]:
    """Return the visible range of ``view`` around ``day``."""
    view = CalendarView(view)
    if view is CalendarView.DAY:
        return day_range(day)
    if view is CalendarView.WEEK:
        return week_range(day)
    return month_range(day)


def end_of_month(day: date) -> date:
    return day.replace(day=monthrange(day.year, day.month)[1])


def next_month_range(today: date) -> tuple[date, date]:
    """Return the first and last day of the month after ``today``."""
    first = end_of_month(today) + timedelta(days=1)
    return first, end_of_month(first)


def weeks_ahead_range(today: date, weeks: int) -> tuple[date, date]:
    """Return ``today`` through ``today + weeks`` weeks.

    Raises:
        ValidationError: If ``weeks`` is less than 1.
    """
    if weeks < 1:
        raise ValidationError(f"Weeks must be at least 1, got {weeks}")
    return today, today + timedelta(weeks=weeks)
