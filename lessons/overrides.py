"""Commands that change a recurring series or one of its dates.

Every command is a single write against the injected store. Converting or
cancelling a date checks for an existing row first and then inserts or
updates; the check is not transactional, so two simultaneous requests for
the same date resolve as last-write-wins.
"""

import logging
from dataclasses import fields, replace
from datetime import date
from typing import Any, Optional, Union

from .dates import as_date, format_date_key
from .exceptions import NotFoundError, OverrideConflictError, ValidationError
from .models import (
    ActiveOverride,
    CancelledOverride,
    LessonStatus,
    OccurrenceKey,
    OverrideOutcome,
    RecurringRule,
    SingleOccurrence,
    resolve_overrides,
)
from .store import ScheduleStore

logger = logging.getLogger(__name__)

_RULE_FIELDS = {f.name for f in fields(RecurringRule)}
_OCCURRENCE_FIELDS = {f.name for f in fields(SingleOccurrence)}

# Fields that identify an override and cannot be edited through it.
_PINNED_OCCURRENCE_FIELDS = {"id", "lesson_date", "source_rule_id"}


def _check_changes(changes: dict[str, Any], allowed: set[str], pinned: set[str]) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
    locked = set(changes) & pinned
    if locked:
        raise ValidationError(f"Fields cannot be changed: {', '.join(sorted(locked))}")


def materialize(rule: RecurringRule, lesson_date: date, **changes: Any) -> SingleOccurrence:
    """Copy one date of ``rule`` into a new (unsaved) single lesson."""
    occurrence = SingleOccurrence(
        student_id=rule.student_id,
        instructor_id=rule.instructor_id,
        subject=rule.subject,
        lesson_type=rule.lesson_type,
        lesson_date=lesson_date,
        start_time=rule.start_time,
        end_time=rule.end_time,
        status=LessonStatus.SCHEDULED,
        notes=rule.notes,
        created_by=rule.created_by,
        source_rule_id=rule.id,
    )
    return replace(occurrence, **changes)


class OverrideCommandHandler:
    """Applies series and single-date changes to a schedule store.

    State of one ``(rule, date)`` pair::

        implicit (no row) -> scheduled override -> cancelled override
        implicit (no row) -> cancelled override

    A cancelled override is final; converting it again raises
    ``OverrideConflictError``. Series edits and deletes never touch rows
    that were already materialized.
    """

    def __init__(self, store: ScheduleStore) -> None:
        """Initialize the handler.

        Args:
            store: Store holding rules and single lessons.
        """
        self._store = store

    def create_series(self, rule: RecurringRule) -> RecurringRule:
        """Validate and insert a new recurring rule.

        Raises:
            ValidationError: If the rule is malformed.
        """
        rule.validate()
        stored = self._store.add_rule(rule)
        logger.info(
            "Created recurring rule %s (weekday %d, from %s)",
            stored.id,
            stored.weekday,
            format_date_key(stored.valid_from),
        )
        return stored

    def current_override(self, rule_id: str, lesson_date: date) -> Optional[OverrideOutcome]:
        """Return the override state of one date, or None if it has no row."""
        rows = self._store.find_overrides(rule_id, lesson_date)
        if not rows:
            return None
        return resolve_overrides(rows)[OccurrenceKey(rule_id, lesson_date)]

    def _load_rule_date(
        self, rule_id: str, date_key: Union[str, date]
    ) -> tuple[RecurringRule, date]:
        rule = self._store.get_rule(rule_id)
        lesson_date = as_date(date_key)
        if not rule.covers(lesson_date):
            raise ValidationError(
                f"Recurring rule {rule_id} has no lesson on {format_date_key(lesson_date)}"
            )
        return rule, lesson_date

    def convert_to_single(
        self, rule_id: str, date_key: Union[str, date], **changes: Any
    ) -> SingleOccurrence:
        """Turn one date of a series into an editable single lesson.

        If the date already has a scheduled override, that row is updated
        with ``changes`` instead of inserting a second one.

        Args:
            rule_id: The recurring rule.
            date_key: The date to convert (``YYYY-MM-DD`` or a date).
            **changes: Field values that differ from the series.

        Returns:
            The stored single lesson.

        Raises:
            NotFoundError: If the rule does not exist.
            ValidationError: If the date is not produced by the rule or the
                changes are invalid. Cancelling goes through
                ``cancel_single_occurrence``, so a cancelled status is refused.
            OverrideConflictError: If the date was already cancelled.
        """
        _check_changes(changes, _OCCURRENCE_FIELDS, _PINNED_OCCURRENCE_FIELDS)
        if changes.get("status") == LessonStatus.CANCELLED:
            raise ValidationError("Use cancel_single_occurrence to cancel a lesson")
        rule, lesson_date = self._load_rule_date(rule_id, date_key)
        existing = self.current_override(rule_id, lesson_date)

        if isinstance(existing, CancelledOverride):
            raise OverrideConflictError(
                f"Lesson on {format_date_key(lesson_date)} of rule {rule_id} is cancelled"
            )

        if isinstance(existing, ActiveOverride):
            logger.info(
                "Lesson on %s of rule %s is already a single lesson; updating it",
                format_date_key(lesson_date),
                rule_id,
            )
            updated = replace(existing.occurrence, **changes)
            updated.validate()
            return self._store.update_occurrence(updated)

        occurrence = materialize(rule, lesson_date, **changes)
        occurrence.validate()
        stored = self._store.add_occurrence(occurrence)
        logger.info(
            "Converted %s of rule %s to single lesson %s",
            format_date_key(lesson_date),
            rule_id,
            stored.id,
        )
        return stored

    def cancel_single_occurrence(
        self, rule_id: str, date_key: Union[str, date]
    ) -> SingleOccurrence:
        """Cancel one date of a series, leaving the other dates unchanged.

        Cancelling an already cancelled date returns the existing row.

        Raises:
            NotFoundError: If the rule does not exist.
            ValidationError: If the date is not produced by the rule.
        """
        rule, lesson_date = self._load_rule_date(rule_id, date_key)
        existing = self.current_override(rule_id, lesson_date)

        if isinstance(existing, CancelledOverride):
            return existing.occurrence

        if isinstance(existing, ActiveOverride):
            updated = replace(existing.occurrence, status=LessonStatus.CANCELLED)
            stored = self._store.update_occurrence(updated)
        else:
            stored = self._store.add_occurrence(
                materialize(rule, lesson_date, status=LessonStatus.CANCELLED)
            )

        logger.info("Cancelled %s of rule %s", format_date_key(lesson_date), rule_id)
        return stored

    def edit_series(self, rule_id: str, **changes: Any) -> RecurringRule:
        """Change every future lesson of a series.

        Raises:
            NotFoundError: If the rule does not exist.
            ValidationError: If the changes are unknown or leave the rule
                malformed.
        """
        _check_changes(changes, _RULE_FIELDS, {"id"})
        rule = self._store.get_rule(rule_id)
        updated = replace(rule, **changes)
        updated.validate()
        stored = self._store.update_rule(updated)
        logger.info("Edited recurring rule %s: %s", rule_id, ", ".join(sorted(changes)))
        return stored

    def deactivate_series(self, rule_id: str) -> RecurringRule:
        """Retire a series without deleting it."""
        rule = self._store.get_rule(rule_id)
        stored = self._store.update_rule(replace(rule, is_active=False))
        logger.info("Deactivated recurring rule %s", rule_id)
        return stored

    def delete_series(self, rule_id: str) -> None:
        """Delete a series. Its materialized single lessons are kept.

        Raises:
            NotFoundError: If the rule does not exist.
        """
        try:
            self._store.delete_rule(rule_id)
        except NotFoundError:
            logger.warning("Cannot delete missing recurring rule %s", rule_id)
            raise
        logger.info("Deleted recurring rule %s", rule_id)
