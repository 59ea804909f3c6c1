"""Japanese labels, event titles and colours for the lesson calendar."""

from datetime import date
from enum import Enum
from typing import Mapping, Optional, Union

from .dates import format_time_of_day, validate_weekday, weekday_of
from .models import (
    LessonStatus,
    LessonType,
    ProjectedOccurrence,
    RecurringRule,
    SingleOccurrence,
)

DAY_NAMES = ("日曜日", "月曜日", "火曜日", "水曜日", "木曜日", "金曜日", "土曜日")
SHORT_DAY_NAMES = ("日", "月", "火", "水", "木", "金", "土")

LESSON_TYPE_LABELS = {
    LessonType.VIDEO: "映像",
    LessonType.FACE_TO_FACE: "対面",
}

NO_INSTRUCTOR = "講師未定"

DEFAULT_COLOR = "#3b82f6"
LESSON_TYPE_COLORS = {
    LessonType.VIDEO: "#10b981",
    LessonType.FACE_TO_FACE: "#f59e0b",
}
STATUS_COLORS = {
    LessonStatus.COMPLETED: "#6b7280",
    LessonStatus.CANCELLED: "#ef4444",
}


class Role(str, Enum):
    """Who is looking at the calendar."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


def day_name(weekday: int) -> str:
    """Return the full weekday name, e.g. ``月曜日`` for 1."""
    return DAY_NAMES[validate_weekday(weekday)]


def short_day_name(weekday: int) -> str:
    return SHORT_DAY_NAMES[validate_weekday(weekday)]


def format_date_ja(day: date) -> str:
    """Format a date like ``11月20日（水）``."""
    return f"{day.month}月{day.day}日（{short_day_name(weekday_of(day))}）"


def format_period(start: date, end: date) -> str:
    """Format a period like ``11月13日（水） 〜 11月20日（水）``."""
    return f"{format_date_ja(start)} 〜 {format_date_ja(end)}"


def lesson_type_label(lesson_type: LessonType) -> str:
    return LESSON_TYPE_LABELS[LessonType(lesson_type)]


def format_recurring_rule(rule: RecurringRule) -> str:
    """Describe a series, e.g. ``月曜日 14:00-15:30 数学(映像)``."""
    return (
        f"{day_name(rule.weekday)} "
        f"{format_time_of_day(rule.start_time)}-{format_time_of_day(rule.end_time)} "
        f"{rule.subject}({lesson_type_label(rule.lesson_type)})"
    )


def event_title(
    resource: Union[RecurringRule, SingleOccurrence],
    role: Role,
    names: Optional[Mapping[str, str]] = None,
) -> str:
    """Build the calendar title of a lesson for ``role``.

    Students see the instructor's name; instructors and the administrator
    see the student's name.

    Args:
        resource: The rule or single lesson being shown.
        role: Role of the viewer.
        names: Display names keyed by profile id.
    """
    names = names or {}
    title = resource.subject

    if Role(role) is Role.STUDENT:
        instructor = names.get(resource.instructor_id) if resource.instructor_id else None
        return f"{title} - {instructor or NO_INSTRUCTOR}"

    student = names.get(resource.student_id)
    if student:
        title += f" - {student}"
    return title


def make_title_builder(role: Role, names: Optional[Mapping[str, str]] = None):
    """Return a ``title_for`` callable for ``OccurrenceProjector``."""

    def title_for(resource: Union[RecurringRule, SingleOccurrence]) -> str:
        return event_title(resource, role, names)

    return title_for


def event_color(occurrence: ProjectedOccurrence) -> str:
    """Return the background colour of an event.

    Completed and cancelled lessons are coloured by status, everything else
    by lesson type.
    """
    status_color = STATUS_COLORS.get(occurrence.status)
    if status_color:
        return status_color
    return LESSON_TYPE_COLORS.get(occurrence.lesson_type, DEFAULT_COLOR)
