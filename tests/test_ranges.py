from datetime import date

import pytest

from lessons.exceptions import ValidationError
from lessons.ranges import (
    CalendarView,
    day_range,
    month_range,
    next_month_range,
    view_range,
    week_range,
    weeks_ahead_range,
)


def test_week_range_runs_sunday_to_saturday():
    assert week_range(date(2024, 3, 13)) == (date(2024, 3, 10), date(2024, 3, 16))
    assert week_range(date(2024, 3, 10)) == (date(2024, 3, 10), date(2024, 3, 16))
    assert week_range(date(2024, 3, 16)) == (date(2024, 3, 10), date(2024, 3, 16))


def test_month_range_covers_leading_and_trailing_weeks():
    # March 2024 starts on a Friday and ends on a Sunday.
    assert month_range(date(2024, 3, 20)) == (date(2024, 2, 25), date(2024, 4, 6))


def test_month_range_when_month_aligns_with_weeks():
    # September 2024 starts on a Sunday.
    start, end = month_range(date(2024, 9, 1))
    assert start == date(2024, 9, 1)
    assert end == date(2024, 10, 5)


def test_view_range_dispatch():
    day = date(2024, 3, 13)
    assert view_range(CalendarView.DAY, day) == day_range(day) == (day, day)
    assert view_range("week", day) == week_range(day)
    assert view_range(CalendarView.MONTH, day) == month_range(day)


def test_next_month_range():
    assert next_month_range(date(2024, 1, 31)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert next_month_range(date(2024, 12, 5)) == (date(2025, 1, 1), date(2025, 1, 31))


def test_weeks_ahead_range():
    assert weeks_ahead_range(date(2024, 3, 1), 4) == (date(2024, 3, 1), date(2024, 3, 29))


@pytest.mark.parametrize("weeks", [0, -2])
def test_weeks_ahead_range_rejects_non_positive(weeks):
    with pytest.raises(ValidationError):
        weeks_ahead_range(date(2024, 3, 1), weeks)
