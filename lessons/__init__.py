"""Lesson calendar: weekly series, single-date overrides and projection."""

from .calendar_service import CalendarService
from .exceptions import (
    NotFoundError,
    OverrideConflictError,
    ScheduleError,
    StoreError,
    ValidationError,
)
from .models import (
    LessonStatus,
    LessonType,
    OccurrenceKey,
    ProjectedOccurrence,
    RecurringRule,
    SingleOccurrence,
    SourceKind,
)
from .overrides import OverrideCommandHandler
from .projector import OccurrenceProjector, project_occurrences
from .sqlite_store import SqliteScheduleStore
from .store import InMemoryScheduleStore, ScheduleStore

__all__ = [
    "CalendarService",
    "InMemoryScheduleStore",
    "LessonStatus",
    "LessonType",
    "NotFoundError",
    "OccurrenceKey",
    "OccurrenceProjector",
    "OverrideCommandHandler",
    "OverrideConflictError",
    "ProjectedOccurrence",
    "RecurringRule",
    "ScheduleError",
    "ScheduleStore",
    "SingleOccurrence",
    "SourceKind",
    "SqliteScheduleStore",
    "StoreError",
    "ValidationError",
    "project_occurrences",
]
