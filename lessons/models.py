"""Data models for recurring lessons, single lessons and projected occurrences."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Iterable, Optional, Union

from .dates import format_date_key, validate_weekday, weekday_of
from .exceptions import ValidationError

logger = logging.getLogger(__name__)


class LessonType(str, Enum):
    """How a lesson is delivered."""

    VIDEO = "video"
    FACE_TO_FACE = "face_to_face"


class LessonStatus(str, Enum):
    """Attendance status of a single lesson."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SourceKind(str, Enum):
    """Where a projected occurrence came from."""

    SINGLE = "single"
    RECURRING_INSTANCE = "recurring_instance"


def _check_subject(subject) -> None:
    if not isinstance(subject, str) or not subject.strip():
        raise ValidationError("Subject must not be empty")


def _check_date(value, name: str) -> None:
    # datetime is a date subclass but does not compare with plain dates.
    if not isinstance(value, date) or isinstance(value, datetime):
        raise ValidationError(f"{name} must be a date, got {value!r}")


def _check_times(start_time, end_time) -> None:
    if not isinstance(start_time, time) or not isinstance(end_time, time):
        raise ValidationError(
            f"Start and end must be times of day, got {start_time!r} and {end_time!r}"
        )
    if start_time >= end_time:
        raise ValidationError("Start time must be before end time")


@dataclass(frozen=True)
class OccurrenceKey:
    """Identity of one date within a recurring series.

    Used both as the id of a synthesized recurring instance and as the
    join key between a rule and the rows that override it.
    """

    rule_id: str
    lesson_date: date

    @property
    def date_key(self) -> str:
        return format_date_key(self.lesson_date)

    @property
    def token(self) -> tuple[str, ...]:
        return (self.rule_id, self.date_key)


@dataclass
class RecurringRule:
    """A weekly lesson series bound to one weekday and a validity window."""

    student_id: str
    subject: str
    lesson_type: LessonType
    weekday: int  # 0-6: Sunday-Saturday
    start_time: time
    end_time: time
    valid_from: date
    valid_until: Optional[date] = None  # None = no end date
    instructor_id: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    created_by: Optional[str] = None
    id: Optional[str] = None

    def validate(self) -> None:
        """Check the rule's invariants.

        Raises:
            ValidationError: If the weekday, times or validity window are
                malformed.
        """
        validate_weekday(self.weekday)
        _check_subject(self.subject)
        if not isinstance(self.lesson_type, LessonType):
            raise ValidationError(f"Unknown lesson type: {self.lesson_type!r}")
        _check_times(self.start_time, self.end_time)
        _check_date(self.valid_from, "valid_from")
        if self.valid_until is None:
            return
        _check_date(self.valid_until, "valid_until")
        if self.valid_until < self.valid_from:
            raise ValidationError(
                f"Validity window is inverted: {self.valid_from} > {self.valid_until}"
            )

    def covers(self, lesson_date: date) -> bool:
        """Return True if the series produces a lesson on ``lesson_date``."""
        if weekday_of(lesson_date) != self.weekday:
            return False
        if lesson_date < self.valid_from:
            return False
        return self.valid_until is None or lesson_date <= self.valid_until


@dataclass
class SingleOccurrence:
    """A concrete, dated lesson.

    Either an independent one-off lesson (``source_rule_id`` is None) or an
    override of one date of a recurring series.
    """

    student_id: str
    subject: str
    lesson_type: LessonType
    lesson_date: date
    start_time: time
    end_time: time
    status: LessonStatus = field(default=LessonStatus.SCHEDULED)
    instructor_id: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    source_rule_id: Optional[str] = None
    id: Optional[str] = None

    @property
    def key(self) -> Optional[OccurrenceKey]:
        """Override key, or None for an independent lesson."""
        if self.source_rule_id is None:
            return None
        return OccurrenceKey(self.source_rule_id, self.lesson_date)

    @property
    def is_cancelled(self) -> bool:
        return self.status == LessonStatus.CANCELLED

    def validate(self) -> None:
        """Check the occurrence's invariants.

        Raises:
            ValidationError: If the subject, type, status, date or times are
                malformed.
        """
        _check_subject(self.subject)
        if not isinstance(self.lesson_type, LessonType):
            raise ValidationError(f"Unknown lesson type: {self.lesson_type!r}")
        if not isinstance(self.status, LessonStatus):
            raise ValidationError(f"Unknown lesson status: {self.status!r}")
        _check_date(self.lesson_date, "lesson_date")
        _check_times(self.start_time, self.end_time)


@dataclass(frozen=True)
class ActiveOverride:
    """A date of a series replaced by an editable single lesson."""

    occurrence: SingleOccurrence


@dataclass(frozen=True)
class CancelledOverride:
    """A date of a series that has been cancelled."""

    occurrence: SingleOccurrence


OverrideOutcome = Union[ActiveOverride, CancelledOverride]


def override_outcome(occurrence: SingleOccurrence) -> OverrideOutcome:
    """Classify an override row as active or cancelled."""
    if occurrence.source_rule_id is None:
        raise ValidationError("An independent lesson is not an override")
    if occurrence.is_cancelled:
        return CancelledOverride(occurrence)
    return ActiveOverride(occurrence)


def resolve_overrides(
    occurrences: Iterable[SingleOccurrence],
) -> dict[OccurrenceKey, OverrideOutcome]:
    """Index override rows by ``(rule_id, lesson_date)``.

    At most one row per key is expected, but duplicates are tolerated: an
    active row wins over a cancelled one, otherwise the first row wins.
    Independent lessons are ignored.
    """
    resolved: dict[OccurrenceKey, OverrideOutcome] = {}

    for occurrence in occurrences:
        key = occurrence.key
        if key is None:
            continue

        outcome = override_outcome(occurrence)
        existing = resolved.get(key)
        if existing is None:
            resolved[key] = outcome
            continue

        logger.debug(
            "Duplicate override rows for rule %s on %s", key.rule_id, key.date_key
        )
        if isinstance(existing, CancelledOverride) and isinstance(outcome, ActiveOverride):
            resolved[key] = outcome

    return resolved


@dataclass
class ProjectedOccurrence:
    """One lesson as shown on the calendar. Derived, never stored."""

    id: Union[str, OccurrenceKey]
    title: str
    start: datetime
    end: datetime
    source_kind: SourceKind
    lesson_date: date
    resource: Union[RecurringRule, SingleOccurrence]

    @property
    def source_rule_id(self) -> Optional[str]:
        """The series this occurrence belongs to, if any."""
        if isinstance(self.resource, RecurringRule):
            return self.resource.id
        return self.resource.source_rule_id

    @property
    def subject(self) -> str:
        return self.resource.subject

    @property
    def lesson_type(self) -> LessonType:
        return self.resource.lesson_type

    @property
    def status(self) -> LessonStatus:
        if isinstance(self.resource, SingleOccurrence):
            return self.resource.status
        return LessonStatus.SCHEDULED

    @property
    def id_token(self) -> tuple[str, ...]:
        """Stable, comparable form of ``id``."""
        if isinstance(self.id, OccurrenceKey):
            return self.id.token
        return (self.id or "",)
