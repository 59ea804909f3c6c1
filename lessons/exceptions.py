"""Exceptions raised by the lesson calendar."""


class ScheduleError(Exception):
    """Base class for all lesson calendar errors."""


class ValidationError(ScheduleError, ValueError):
    """A rule, occurrence, date or range is malformed."""


class OverrideConflictError(ScheduleError):
    """An override cannot be applied to the existing row for that date."""


class NotFoundError(ScheduleError, LookupError):
    """A rule or occurrence id does not exist in the store."""


class StoreError(ScheduleError):
    """The backing store failed to read or write."""
