"""Storage interface for recurring rules and single lessons."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date
from typing import Iterable, Optional

from .exceptions import NotFoundError
from .models import RecurringRule, SingleOccurrence


def new_id() -> str:
    """Generate an opaque row id."""
    return uuid.uuid4().hex


class ScheduleStore(ABC):
    """Abstract base class for lesson schedule persistence.

    Implementations hand out copies: mutating a returned object never
    changes stored state. Lookups of unknown ids raise ``NotFoundError``.
    """

    @abstractmethod
    def get_rule(self, rule_id: str) -> RecurringRule:
        """Return the recurring rule with ``rule_id``."""

    @abstractmethod
    def list_rules(
        self,
        active_only: bool = False,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
    ) -> list[RecurringRule]:
        """Return recurring rules, optionally filtered."""

    @abstractmethod
    def add_rule(self, rule: RecurringRule) -> RecurringRule:
        """Insert a rule and return it with its assigned id."""

    @abstractmethod
    def update_rule(self, rule: RecurringRule) -> RecurringRule:
        """Overwrite the stored rule with the same id."""

    @abstractmethod
    def delete_rule(self, rule_id: str) -> None:
        """Remove a rule. Single lessons referencing it are kept."""

    @abstractmethod
    def get_occurrence(self, occurrence_id: str) -> SingleOccurrence:
        """Return the single lesson with ``occurrence_id``."""

    @abstractmethod
    def list_occurrences(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
    ) -> list[SingleOccurrence]:
        """Return single lessons with ``start <= lesson_date <= end``."""

    @abstractmethod
    def find_overrides(self, rule_id: str, lesson_date: date) -> list[SingleOccurrence]:
        """Return every row overriding ``rule_id`` on ``lesson_date``."""

    @abstractmethod
    def list_overrides(
        self,
        rule_ids: Iterable[str],
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[SingleOccurrence]:
        """Return override rows of ``rule_ids`` in range, whoever they belong to."""

    @abstractmethod
    def add_occurrence(self, occurrence: SingleOccurrence) -> SingleOccurrence:
        """Insert a single lesson and return it with its assigned id."""

    @abstractmethod
    def update_occurrence(self, occurrence: SingleOccurrence) -> SingleOccurrence:
        """Overwrite the stored single lesson with the same id."""


def matches_people(
    record, student_id: Optional[str], instructor_id: Optional[str]
) -> bool:
    """Return True if ``record`` belongs to the given student and instructor."""
    if student_id is not None and record.student_id != student_id:
        return False
    if instructor_id is not None and record.instructor_id != instructor_id:
        return False
    return True


class InMemoryScheduleStore(ScheduleStore):
    """Dictionary-backed store, used for tests and previews."""

    def __init__(
        self,
        rules: Optional[list[RecurringRule]] = None,
        occurrences: Optional[list[SingleOccurrence]] = None,
    ) -> None:
        """Initialize the store, optionally seeded with records.

        Args:
            rules: Rules to insert; ids are assigned where missing.
            occurrences: Single lessons to insert; ids are assigned where missing.
        """
        self._rules: dict[str, RecurringRule] = {}
        self._occurrences: dict[str, SingleOccurrence] = {}

        for rule in rules or []:
            self.add_rule(rule)
        for occurrence in occurrences or []:
            self.add_occurrence(occurrence)

    def get_rule(self, rule_id: str) -> RecurringRule:
        try:
            return replace(self._rules[rule_id])
        except KeyError:
            raise NotFoundError(f"Recurring rule not found: {rule_id}") from None

    def list_rules(
        self,
        active_only: bool = False,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
    ) -> list[RecurringRule]:
        return [
            replace(rule)
            for rule in self._rules.values()
            if (rule.is_active or not active_only)
            and matches_people(rule, student_id, instructor_id)
        ]

    def add_rule(self, rule: RecurringRule) -> RecurringRule:
        stored = replace(rule, id=rule.id or new_id())
        self._rules[stored.id] = stored
        return replace(stored)

    def update_rule(self, rule: RecurringRule) -> RecurringRule:
        if rule.id not in self._rules:
            raise NotFoundError(f"Recurring rule not found: {rule.id}")
        self._rules[rule.id] = replace(rule)
        return replace(rule)

    def delete_rule(self, rule_id: str) -> None:
        if self._rules.pop(rule_id, None) is None:
            raise NotFoundError(f"Recurring rule not found: {rule_id}")

    def get_occurrence(self, occurrence_id: str) -> SingleOccurrence:
        try:
            return replace(self._occurrences[occurrence_id])
        except KeyError:
            raise NotFoundError(f"Lesson not found: {occurrence_id}") from None

    def list_occurrences(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
    ) -> list[SingleOccurrence]:
        found = [
            replace(occurrence)
            for occurrence in self._occurrences.values()
            if (start is None or occurrence.lesson_date >= start)
            and (end is None or occurrence.lesson_date <= end)
            and matches_people(occurrence, student_id, instructor_id)
        ]
        found.sort(key=lambda o: (o.lesson_date, o.start_time))
        return found

    def find_overrides(self, rule_id: str, lesson_date: date) -> list[SingleOccurrence]:
        return [
            replace(occurrence)
            for occurrence in self._occurrences.values()
            if occurrence.source_rule_id == rule_id
            and occurrence.lesson_date == lesson_date
        ]

    def list_overrides(
        self,
        rule_ids: Iterable[str],
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[SingleOccurrence]:
        wanted = set(rule_ids)
        found = [
            replace(occurrence)
            for occurrence in self._occurrences.values()
            if occurrence.source_rule_id in wanted
            and (start is None or occurrence.lesson_date >= start)
            and (end is None or occurrence.lesson_date <= end)
        ]
        found.sort(key=lambda o: (o.lesson_date, o.start_time))
        return found

    def add_occurrence(self, occurrence: SingleOccurrence) -> SingleOccurrence:
        stored = replace(occurrence, id=occurrence.id or new_id())
        self._occurrences[stored.id] = stored
        return replace(stored)

    def update_occurrence(self, occurrence: SingleOccurrence) -> SingleOccurrence:
        if occurrence.id not in self._occurrences:
            raise NotFoundError(f"Lesson not found: {occurrence.id}")
        self._occurrences[occurrence.id] = replace(occurrence)
        return replace(occurrence)
