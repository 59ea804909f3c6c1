from datetime import date, datetime, time

import pytest

from lessons.dates import (
    as_date,
    format_date_key,
    format_time_of_day,
    next_occurrence_of,
    occurrence_after_next,
    parse_date_key,
    parse_time_of_day,
    previous_occurrence_of,
    validate_weekday,
    weekday_of,
)
from lessons.exceptions import ValidationError

MONDAY = date(2024, 6, 10)


def test_weekday_of_counts_from_sunday():
    assert weekday_of(date(2024, 6, 9)) == 0  # Sunday
    assert weekday_of(MONDAY) == 1
    assert weekday_of(date(2024, 6, 15)) == 6  # Saturday


def test_next_occurrence_walks_forward():
    assert next_occurrence_of(3, MONDAY) == date(2024, 6, 12)


def test_next_occurrence_same_day_is_inclusive():
    assert next_occurrence_of(1, MONDAY) == MONDAY


def test_next_occurrence_wraps_into_next_week():
    assert next_occurrence_of(0, MONDAY) == date(2024, 6, 16)


@pytest.mark.parametrize("weekday", range(7))
def test_next_occurrence_stays_within_six_days(weekday):
    result = next_occurrence_of(weekday, MONDAY)
    assert 0 <= (result - MONDAY).days <= 6
    assert weekday_of(result) == weekday


def test_previous_occurrence_walks_backward():
    assert previous_occurrence_of(0, MONDAY) == date(2024, 6, 9)
    assert previous_occurrence_of(3, MONDAY) == date(2024, 6, 5)


def test_previous_occurrence_same_day_is_inclusive():
    assert previous_occurrence_of(1, MONDAY) == MONDAY


def test_occurrence_after_next():
    assert occurrence_after_next(3, MONDAY) == date(2024, 6, 19)
    assert occurrence_after_next(1, MONDAY) == date(2024, 6, 17)


def test_next_occurrence_across_year_end():
    assert next_occurrence_of(1, date(2024, 12, 31)) == date(2025, 1, 6)


@pytest.mark.parametrize("bad", [-1, 7, 10, "1", 1.0, True, None])
def test_invalid_weekday_fails_fast(bad):
    with pytest.raises(ValidationError):
        validate_weekday(bad)
    with pytest.raises(ValidationError):
        next_occurrence_of(bad, MONDAY)


def test_format_date_key_is_zero_padded():
    assert format_date_key(date(2024, 3, 5)) == "2024-03-05"
    assert format_date_key(date(987, 1, 9)) == "0987-01-09"


def test_format_date_key_uses_calendar_date_of_datetime():
    assert format_date_key(datetime(2024, 3, 5, 23, 59)) == "2024-03-05"


def test_parse_date_key():
    assert parse_date_key("2024-02-29") == date(2024, 2, 29)


@pytest.mark.parametrize("bad", ["2024-2-29", "2023-02-29", "20240229", "", None])
def test_parse_date_key_rejects_malformed(bad):
    with pytest.raises(ValidationError):
        parse_date_key(bad)


def test_as_date_accepts_dates_and_keys():
    assert as_date("2024-03-15") == date(2024, 3, 15)
    assert as_date(date(2024, 3, 15)) == date(2024, 3, 15)
    assert as_date(datetime(2024, 3, 15, 10, 0)) == date(2024, 3, 15)


def test_parse_time_of_day():
    assert parse_time_of_day("14:00") == time(14, 0)
    assert parse_time_of_day("9:05:30") == time(9, 5, 30)


@pytest.mark.parametrize("bad", ["25:00", "14", "ab:cd", ""])
def test_parse_time_of_day_rejects_malformed(bad):
    with pytest.raises(ValidationError):
        parse_time_of_day(bad)


def test_format_time_of_day():
    assert format_time_of_day(time(14, 0)) == "14:00"
    assert format_time_of_day(time(9, 5, 30)) == "09:05:30"
