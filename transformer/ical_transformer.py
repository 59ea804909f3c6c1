"""iCalendar transformer for projected lessons."""

import hashlib
import json
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from icalendar import Calendar, Event

from lessons.dates import format_date_key
from lessons.display import event_color, format_period, lesson_type_label
from lessons.models import ProjectedOccurrence
from .base import BaseTransformer


class ICalTransformer(BaseTransformer):
    """Transformer that converts projected lessons to iCalendar format.

    Each occurrence becomes its own VEVENT, so single-date edits and
    cancellations are exported exactly as they appear on the calendar.
    """

    DEFAULT_TIMEZONE = "Asia/Tokyo"
    UID_DOMAIN = "juku-schedule"

    def __init__(
        self,
        timezone: str = DEFAULT_TIMEZONE,
        calendar_name: str = "授業スケジュール",
        stamp: Optional[datetime] = None,
    ) -> None:
        """Initialize the iCalendar transformer.

        Args:
            timezone: IANA zone attached to the lessons' wall-clock times.
            calendar_name: Value of ``X-WR-CALNAME``.
            stamp: Fixed ``DTSTAMP`` for every event; defaults to now.
        """
        self._calendar: Optional[Calendar] = None
        self._timezone = ZoneInfo(timezone)
        self._timezone_name = timezone
        self._calendar_name = calendar_name
        self._stamp = stamp

    def _generate_uid(self, occurrence: ProjectedOccurrence) -> str:
        """Generate a stable unique identifier for an occurrence.

        A recurring instance hashes its (rule, date) pair and a single
        lesson hashes its row id, so re-exporting the same range updates
        events instead of duplicating them.

        Args:
            occurrence: The projected lesson.

        Returns:
            Unique identifier string.
        """
        unique_string = json.dumps(
            [occurrence.source_kind.value, *occurrence.id_token], ensure_ascii=False
        )
        return hashlib.md5(unique_string.encode()).hexdigest() + f"@{self.UID_DOMAIN}"

    def transform(
        self,
        occurrences: list[ProjectedOccurrence],
        start_date: date,
        end_date: date
    ) -> Calendar:
        """Transform projected lessons into iCalendar format.

        Args:
            occurrences: Lessons returned by the projector.
            start_date: First day of the exported range.
            end_date: Last day of the exported range.

        Returns:
            iCalendar Calendar object.
        """
        self._calendar = Calendar()
        self._calendar.add("prodid", "-//Juku Schedule//lessons2iCal//JA")
        self._calendar.add("version", "2.0")
        self._calendar.add("calscale", "GREGORIAN")
        self._calendar.add("method", "PUBLISH")
        self._calendar.add("x-wr-calname", self._calendar_name)
        self._calendar.add("x-wr-timezone", self._timezone_name)
        self._calendar.add("x-wr-caldesc", format_period(start_date, end_date))

        stamp = self._stamp or datetime.now(self._timezone)

        for occurrence in occurrences:
            ical_event = Event()

            ical_event.add("uid", self._generate_uid(occurrence))
            ical_event.add("dtstart", occurrence.start.replace(tzinfo=self._timezone))
            ical_event.add("dtend", occurrence.end.replace(tzinfo=self._timezone))
            ical_event.add("dtstamp", stamp)

            # Summary format: [映像] 数学 - 山田
            label = lesson_type_label(occurrence.lesson_type)
            ical_event.add("summary", f"[{label}] {occurrence.title}")

            if occurrence.resource.notes:
                ical_event.add("description", occurrence.resource.notes)

            ical_event.add("categories", [occurrence.source_kind.value])
            ical_event.add("x-lesson-date", format_date_key(occurrence.lesson_date))
            ical_event.add("x-lesson-color", event_color(occurrence))
            if occurrence.source_rule_id:
                ical_event.add("x-recurring-schedule-id", occurrence.source_rule_id)

            self._calendar.add_component(ical_event)

        return self._calendar

    def save(self, output_path: str) -> None:
        """Save the calendar to an .ics file.

        Args:
            output_path: Path to the output file.

        Raises:
            RuntimeError: If transform() hasn't been called yet.
        """
        if self._calendar is None:
            raise RuntimeError("No calendar data. Call transform() first.")

        with open(output_path, "wb") as f:
            f.write(self._calendar.to_ical())
