"""Load a viewer's schedule from a store and project it."""

import logging
from datetime import date
from typing import Optional

from .models import ProjectedOccurrence, RecurringRule, SingleOccurrence, SourceKind
from .projector import OccurrenceProjector
from .ranges import CalendarView, view_range
from .store import ScheduleStore, matches_people

logger = logging.getLogger(__name__)


class CalendarService:
    """Reads rules and lessons for a viewer and hands them to the projector.

    Pass ``student_id`` to see one student's lessons, ``instructor_id`` to
    see the lessons assigned to an instructor, or neither to see the whole
    school.
    """

    def __init__(
        self,
        store: ScheduleStore,
        projector: Optional[OccurrenceProjector] = None,
    ) -> None:
        self._store = store
        self._projector = projector or OccurrenceProjector()

    def load_snapshot(
        self,
        range_start: date,
        range_end: date,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
    ) -> tuple[list[RecurringRule], list[SingleOccurrence]]:
        """Fetch active rules and the single lessons inside the range.

        Lessons are filtered by viewer, except override rows of the loaded
        rules: those are always included, since a cancelled or reassigned
        date must still hide the rule's instance even when the row now
        names other people.
        """
        rules = self._store.list_rules(
            active_only=True, student_id=student_id, instructor_id=instructor_id
        )
        occurrences = self._store.list_occurrences(
            range_start, range_end, student_id=student_id, instructor_id=instructor_id
        )
        if student_id is not None or instructor_id is not None:
            seen = {occurrence.id for occurrence in occurrences}
            for override in self._store.list_overrides(
                [rule.id for rule in rules], range_start, range_end
            ):
                if override.id not in seen:
                    occurrences.append(override)
                    seen.add(override.id)
        logger.debug(
            "Loaded %d active rules and %d lessons", len(rules), len(occurrences)
        )
        return rules, occurrences

    def project(
        self,
        range_start: date,
        range_end: date,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
    ) -> list[ProjectedOccurrence]:
        """Return the lessons visible in ``[range_start, range_end]``."""
        rules, occurrences = self.load_snapshot(
            range_start, range_end, student_id, instructor_id
        )
        projected = self._projector.project(rules, occurrences, range_start, range_end)
        # Overrides loaded only to suppress a rule's date are not the viewer's.
        return [
            occurrence
            for occurrence in projected
            if occurrence.source_kind is SourceKind.RECURRING_INSTANCE
            or matches_people(occurrence.resource, student_id, instructor_id)
        ]

    def project_view(
        self,
        view: CalendarView,
        anchor: date,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
    ) -> list[ProjectedOccurrence]:
        """Return the lessons of the day, week or month grid around ``anchor``."""
        range_start, range_end = view_range(view, anchor)
        return self.project(range_start, range_end, student_id, instructor_id)

    def list_independent_occurrences(
        self,
        range_start: date,
        range_end: date,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
    ) -> list[SingleOccurrence]:
        """Return stored single lessons as-is, including cancelled ones.

        Unlike ``project`` this ignores rules entirely, so lessons whose
        series has since been deleted are still listed.
        """
        return self._store.list_occurrences(
            range_start, range_end, student_id=student_id, instructor_id=instructor_id
        )
