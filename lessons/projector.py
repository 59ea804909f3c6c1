"""Expand weekly rules and single lessons into the lessons of a date range."""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional, Union

from .dates import DAYS_IN_WEEK, format_date_key, next_occurrence_of
from .exceptions import ValidationError
from .models import (
    OccurrenceKey,
    ProjectedOccurrence,
    RecurringRule,
    SingleOccurrence,
    SourceKind,
    resolve_overrides,
)

logger = logging.getLogger(__name__)

TitleBuilder = Callable[[Union[RecurringRule, SingleOccurrence]], str]

_KIND_ORDER = {SourceKind.SINGLE: 0, SourceKind.RECURRING_INSTANCE: 1}


def default_title(resource: Union[RecurringRule, SingleOccurrence]) -> str:
    return resource.subject


def _sort_key(occurrence: ProjectedOccurrence) -> tuple:
    return (
        occurrence.start,
        occurrence.end,
        _KIND_ORDER[occurrence.source_kind],
        occurrence.id_token,
    )


def rule_dates(rule: RecurringRule, range_start: date, range_end: date) -> list[date]:
    """Return the dates ``rule`` produces inside ``[range_start, range_end]``.

    The window is clamped to the rule's validity; an empty list is returned
    when the two do not overlap.
    """
    effective_start = max(rule.valid_from, range_start)
    effective_end = range_end if rule.valid_until is None else min(rule.valid_until, range_end)
    if effective_start > effective_end:
        return []

    dates: list[date] = []
    current = next_occurrence_of(rule.weekday, effective_start)
    while current <= effective_end:
        dates.append(current)
        current += timedelta(days=DAYS_IN_WEEK)
    return dates


class OccurrenceProjector:
    """Builds the calendar of lessons for a visible date range.

    Single lessons are shown as stored. Recurring rules are expanded week
    by week, and any stored row for the same rule and date replaces the
    synthesized instance: a cancelled row hides the date, any other row is
    shown in its place. Rows that fail validation are logged and skipped so
    one bad record cannot empty the calendar.
    """

    def __init__(self, title_for: Optional[TitleBuilder] = None) -> None:
        """Initialize the projector.

        Args:
            title_for: Builds the display title of a rule or lesson.
                Defaults to the subject.
        """
        self._title_for = title_for or default_title

    def project(
        self,
        active_rules: Iterable[RecurringRule],
        single_occurrences: Iterable[SingleOccurrence],
        range_start: date,
        range_end: date,
    ) -> list[ProjectedOccurrence]:
        """Project rules and single lessons onto ``[range_start, range_end]``.

        Args:
            active_rules: Rules already filtered to ``is_active``.
            single_occurrences: Stored single lessons, independent or overrides.
            range_start: First visible day (inclusive).
            range_end: Last visible day (inclusive).

        Returns:
            Occurrences sorted by start time; ties are broken by id so the
            same inputs always give the same list.

        Raises:
            ValidationError: If ``range_start`` is after ``range_end``.
        """
        if range_start > range_end:
            raise ValidationError(
                f"Range start {range_start} is after range end {range_end}"
            )

        occurrences = list(single_occurrences)
        overrides = resolve_overrides(occurrences)

        projected = self._project_singles(occurrences, range_start, range_end)
        for rule in active_rules:
            projected.extend(self._project_rule(rule, overrides, range_start, range_end))

        projected.sort(key=_sort_key)
        logger.debug(
            "Projected %d lessons for %s..%s",
            len(projected),
            format_date_key(range_start),
            format_date_key(range_end),
        )
        return projected

    def _project_singles(
        self,
        occurrences: list[SingleOccurrence],
        range_start: date,
        range_end: date,
    ) -> list[ProjectedOccurrence]:
        projected: list[ProjectedOccurrence] = []

        for occurrence in occurrences:
            try:
                occurrence.validate()
            except ValidationError as e:
                logger.warning("Skipping invalid lesson %s: %s", occurrence.id, e)
                continue
            if not range_start <= occurrence.lesson_date <= range_end:
                continue
            if occurrence.is_cancelled:
                continue

            projected.append(
                ProjectedOccurrence(
                    id=occurrence.id or "",
                    title=self._title_for(occurrence),
                    start=datetime.combine(occurrence.lesson_date, occurrence.start_time),
                    end=datetime.combine(occurrence.lesson_date, occurrence.end_time),
                    source_kind=SourceKind.SINGLE,
                    lesson_date=occurrence.lesson_date,
                    resource=occurrence,
                )
            )

        return projected

    def _project_rule(
        self,
        rule: RecurringRule,
        overrides: dict,
        range_start: date,
        range_end: date,
    ) -> list[ProjectedOccurrence]:
        try:
            rule.validate()
        except ValidationError as e:
            logger.warning("Skipping invalid recurring rule %s: %s", rule.id, e)
            return []

        projected: list[ProjectedOccurrence] = []
        title = self._title_for(rule)

        for lesson_date in rule_dates(rule, range_start, range_end):
            key = OccurrenceKey(rule.id, lesson_date)
            # Overridden dates are either cancelled or already projected as singles.
            if key in overrides:
                continue

            projected.append(
                ProjectedOccurrence(
                    id=key,
                    title=title,
                    start=datetime.combine(lesson_date, rule.start_time),
                    end=datetime.combine(lesson_date, rule.end_time),
                    source_kind=SourceKind.RECURRING_INSTANCE,
                    lesson_date=lesson_date,
                    resource=rule,
                )
            )

        return projected


def project_occurrences(
    active_rules: Iterable[RecurringRule],
    single_occurrences: Iterable[SingleOccurrence],
    range_start: date,
    range_end: date,
    title_for: Optional[TitleBuilder] = None,
) -> list[ProjectedOccurrence]:
    """Shortcut for ``OccurrenceProjector(title_for).project(...)``."""
    return OccurrenceProjector(title_for).project(
        active_rules, single_occurrences, range_start, range_end
    )
