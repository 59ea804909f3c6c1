import logging
from datetime import date, datetime, time

import pytest

from factories import make_occurrence, make_rule
from lessons.exceptions import ValidationError
from lessons.models import LessonStatus, OccurrenceKey, SourceKind
from lessons.projector import OccurrenceProjector, project_occurrences, rule_dates

MARCH = (date(2024, 3, 1), date(2024, 3, 31))
MARCH_FRIDAYS = [date(2024, 3, d) for d in (1, 8, 15, 22, 29)]


def dates_of(projected):
    return [p.lesson_date for p in projected]


def test_unbounded_series_yields_every_friday(friday_rule):
    projected = project_occurrences([friday_rule], [], *MARCH)

    assert dates_of(projected) == MARCH_FRIDAYS
    assert all(p.source_kind is SourceKind.RECURRING_INSTANCE for p in projected)


def test_recurring_instance_fields(friday_rule):
    first = project_occurrences([friday_rule], [], *MARCH)[0]

    assert first.id == OccurrenceKey("rule-1", date(2024, 3, 1))
    assert first.start == datetime(2024, 3, 1, 14, 0)
    assert first.end == datetime(2024, 3, 1, 15, 30)
    assert first.title == "数学"
    assert first.resource is friday_rule
    assert first.source_rule_id == "rule-1"
    assert first.status is LessonStatus.SCHEDULED


def test_validity_window_clamp():
    rule = make_rule(
        weekday=1,
        valid_from=date(2024, 1, 1),
        valid_until=date(2024, 1, 15),
    )

    projected = project_occurrences([rule], [], date(2024, 1, 1), date(2024, 1, 31))

    assert dates_of(projected) == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]


def test_range_boundaries_are_inclusive(friday_rule):
    projected = project_occurrences([friday_rule], [], date(2024, 3, 8), date(2024, 3, 22))
    assert dates_of(projected) == [date(2024, 3, 8), date(2024, 3, 15), date(2024, 3, 22)]


def test_one_day_outside_range_is_excluded(friday_rule):
    projected = project_occurrences([friday_rule], [], date(2024, 3, 9), date(2024, 3, 21))
    assert dates_of(projected) == [date(2024, 3, 15)]


def test_single_occurrence_on_range_boundaries():
    singles = [
        make_occurrence(id="a", lesson_date=date(2024, 3, 1)),
        make_occurrence(id="b", lesson_date=date(2024, 3, 31)),
        make_occurrence(id="c", lesson_date=date(2024, 2, 29)),
        make_occurrence(id="d", lesson_date=date(2024, 4, 1)),
    ]

    projected = project_occurrences([], singles, *MARCH)

    assert [p.id for p in projected] == ["a", "b"]


def test_rule_starting_after_range_yields_nothing():
    rule = make_rule(valid_from=date(2024, 4, 1))
    assert project_occurrences([rule], [], *MARCH) == []


def test_rule_ended_before_range_yields_nothing():
    rule = make_rule(valid_from=date(2024, 1, 1), valid_until=date(2024, 2, 20))
    assert project_occurrences([rule], [], *MARCH) == []


def test_rule_dates_single_day_range():
    rule = make_rule()
    assert rule_dates(rule, date(2024, 3, 15), date(2024, 3, 15)) == [date(2024, 3, 15)]
    assert rule_dates(rule, date(2024, 3, 14), date(2024, 3, 14)) == []


def test_independent_lessons_are_projected_and_cancelled_ones_hidden():
    singles = [
        make_occurrence(id="kept"),
        make_occurrence(id="done", status=LessonStatus.COMPLETED),
        make_occurrence(id="gone", status=LessonStatus.CANCELLED),
    ]

    projected = project_occurrences([], singles, *MARCH)

    assert sorted(p.id for p in projected) == ["done", "kept"]
    assert all(p.source_kind is SourceKind.SINGLE for p in projected)


def test_active_override_replaces_recurring_instance(friday_rule):
    override = make_occurrence(
        id="ovr",
        source_rule_id="rule-1",
        lesson_date=date(2024, 3, 15),
        subject="物理",
        start_time=time(16, 0),
        end_time=time(17, 0),
    )

    projected = project_occurrences([friday_rule], [override], *MARCH)

    assert dates_of(projected) == MARCH_FRIDAYS
    on_15th = [p for p in projected if p.lesson_date == date(2024, 3, 15)]
    assert len(on_15th) == 1
    assert on_15th[0].source_kind is SourceKind.SINGLE
    assert on_15th[0].subject == "物理"
    assert on_15th[0].start == datetime(2024, 3, 15, 16, 0)
    assert on_15th[0].source_rule_id == "rule-1"


def test_cancelled_override_suppresses_date(friday_rule):
    cancelled = make_occurrence(
        id="cx",
        source_rule_id="rule-1",
        lesson_date=date(2024, 3, 22),
        status=LessonStatus.CANCELLED,
    )

    projected = project_occurrences([friday_rule], [cancelled], *MARCH)

    assert len(projected) == 4
    assert date(2024, 3, 22) not in dates_of(projected)


def test_override_of_other_rule_does_not_suppress(friday_rule):
    other = make_occurrence(
        id="cx",
        source_rule_id="rule-2",
        lesson_date=date(2024, 3, 22),
        status=LessonStatus.CANCELLED,
    )

    projected = project_occurrences([friday_rule], [other], *MARCH)

    assert date(2024, 3, 22) in dates_of(projected)


def test_duplicate_override_rows_never_double_emit_the_rule(friday_rule):
    rows = [
        make_occurrence(
            id="x1", source_rule_id="rule-1", lesson_date=date(2024, 3, 8),
            status=LessonStatus.CANCELLED,
        ),
        make_occurrence(id="x2", source_rule_id="rule-1", lesson_date=date(2024, 3, 8)),
    ]

    projected = project_occurrences([friday_rule], rows, *MARCH)

    on_8th = [p for p in projected if p.lesson_date == date(2024, 3, 8)]
    assert [p.id for p in on_8th] == ["x2"]


def test_override_without_its_rule_is_still_shown():
    orphan = make_occurrence(
        id="orphan", source_rule_id="deleted-rule", lesson_date=date(2024, 3, 15)
    )

    projected = project_occurrences([], [orphan], *MARCH)

    assert [p.id for p in projected] == ["orphan"]


def test_projection_is_idempotent(friday_rule):
    rules = [friday_rule, make_rule(id="rule-2", weekday=2, subject="化学")]
    singles = [
        make_occurrence(id="a"),
        make_occurrence(id="b", source_rule_id="rule-1", lesson_date=date(2024, 3, 8)),
    ]
    projector = OccurrenceProjector()

    first = projector.project(rules, singles, *MARCH)
    second = projector.project(rules, singles, *MARCH)

    assert first == second
    assert [p.id for p in first] == [p.id for p in second]


def test_output_is_chronological_with_deterministic_ties():
    rules = [
        make_rule(id="rule-b"),
        make_rule(id="rule-a"),
    ]

    projected = project_occurrences(rules, [], date(2024, 3, 1), date(2024, 3, 8))

    assert [p.id for p in projected] == [
        OccurrenceKey("rule-a", date(2024, 3, 1)),
        OccurrenceKey("rule-b", date(2024, 3, 1)),
        OccurrenceKey("rule-a", date(2024, 3, 8)),
        OccurrenceKey("rule-b", date(2024, 3, 8)),
    ]


def test_keys_with_delimiters_do_not_collide():
    rules = [
        make_rule(id="a-2024", weekday=5),
        make_rule(id="a", weekday=5),
    ]

    projected = project_occurrences(rules, [], date(2024, 3, 1), date(2024, 3, 1))

    assert len({p.id for p in projected}) == 2


def test_inverted_range_is_rejected(friday_rule):
    with pytest.raises(ValidationError):
        project_occurrences([friday_rule], [], date(2024, 3, 31), date(2024, 3, 1))


def test_malformed_rule_is_skipped_with_warning(friday_rule, caplog):
    broken = make_rule(
        id="broken", valid_from=date(2024, 3, 20), valid_until=date(2024, 3, 1)
    )
    bad_weekday = make_rule(id="bad-weekday", weekday=9)

    with caplog.at_level(logging.WARNING, logger="lessons.projector"):
        projected = project_occurrences([broken, friday_rule, bad_weekday], [], *MARCH)

    assert dates_of(projected) == MARCH_FRIDAYS
    assert "broken" in caplog.text
    assert "bad-weekday" in caplog.text


def test_malformed_single_lesson_is_skipped_with_warning(caplog):
    bad = make_occurrence(id="bad", start_time=time(18, 0), end_time=time(17, 0))
    good = make_occurrence(id="good")

    with caplog.at_level(logging.WARNING, logger="lessons.projector"):
        projected = project_occurrences([], [bad, good], *MARCH)

    assert [p.id for p in projected] == ["good"]
    assert "bad" in caplog.text


def test_projector_does_not_refilter_inactive_rules():
    inactive = make_rule(is_active=False)
    assert len(project_occurrences([inactive], [], *MARCH)) == 5


def test_custom_title_builder(friday_rule):
    projector = OccurrenceProjector(title_for=lambda r: f"{r.subject}!")
    projected = projector.project([friday_rule], [make_occurrence()], *MARCH)
    assert {p.title for p in projected} == {"数学!", "英語!"}


@pytest.mark.parametrize(
    "field, value",
    [
        ("start_time", None),
        ("end_time", "15:30"),
        ("valid_from", None),
        ("valid_from", datetime(2024, 3, 1, 9, 0)),
        ("valid_until", "2024-04-30"),
        ("subject", None),
    ],
)
def test_rule_with_wrong_field_type_is_skipped(friday_rule, field, value, caplog):
    bad = make_rule(id="bad", **{field: value})

    with caplog.at_level(logging.WARNING, logger="lessons.projector"):
        projected = project_occurrences([bad, friday_rule], [], *MARCH)

    assert dates_of(projected) == MARCH_FRIDAYS
    assert "bad" in caplog.text


@pytest.mark.parametrize(
    "field, value",
    [
        ("lesson_date", None),
        ("lesson_date", "2024-03-12"),
        ("start_time", None),
        ("end_time", "18:00"),
        ("subject", 42),
    ],
)
def test_single_lesson_with_wrong_field_type_is_skipped(field, value, caplog):
    bad = make_occurrence(id="bad", **{field: value})
    good = make_occurrence(id="good")

    with caplog.at_level(logging.WARNING, logger="lessons.projector"):
        projected = project_occurrences([], [bad, good], *MARCH)

    assert [p.id for p in projected] == ["good"]
    assert "bad" in caplog.text


def test_override_with_missing_date_does_not_break_projection(friday_rule):
    bad = make_occurrence(id="bad", source_rule_id="rule-1", lesson_date=None)

    projected = project_occurrences([friday_rule], [bad], *MARCH)

    assert dates_of(projected) == MARCH_FRIDAYS


def test_validate_reports_wrong_types_as_validation_errors():
    with pytest.raises(ValidationError):
        make_rule(start_time=None).validate()
    with pytest.raises(ValidationError):
        make_rule(valid_until="2024-04-30").validate()
    with pytest.raises(ValidationError):
        make_occurrence(lesson_date=None).validate()
