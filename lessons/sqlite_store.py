"""SQLite-backed schedule store.

The database location can be passed to ``SqliteScheduleStore`` directly or
set with the ``JUKU_DB_PATH`` environment variable. By default a file named
``juku_schedule.db`` in the current working directory is used.

Dates are stored as ``YYYY-MM-DD`` text and times as ``HH:MM`` text, the
same representation the hosted backend uses.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Iterable, Iterator, Optional

from .dates import format_date_key, format_time_of_day, parse_date_key, parse_time_of_day
from .exceptions import NotFoundError, StoreError
from .models import LessonStatus, LessonType, RecurringRule, SingleOccurrence
from .store import ScheduleStore, new_id

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "juku_schedule.db"
DB_PATH_ENV = "JUKU_DB_PATH"

RULE_COLUMNS = (
    "id", "student_id", "instructor_id", "lesson_type", "subject", "day_of_week",
    "start_time", "end_time", "start_date", "end_date", "is_active", "notes",
    "created_by",
)

OCCURRENCE_COLUMNS = (
    "id", "student_id", "instructor_id", "lesson_type", "subject", "lesson_date",
    "start_time", "end_time", "status", "notes", "created_by",
    "recurring_schedule_id",
)


def resolve_db_path(db_path: Optional[str] = None) -> str:
    """Return ``db_path``, else ``JUKU_DB_PATH``, else ``DEFAULT_DB_PATH``."""
    return db_path or os.getenv(DB_PATH_ENV, DEFAULT_DB_PATH)


def _optional_date(value: Optional[str]) -> Optional[date]:
    return parse_date_key(value) if value else None


def _rule_to_row(rule: RecurringRule) -> tuple:
    return (
        rule.id,
        rule.student_id,
        rule.instructor_id,
        LessonType(rule.lesson_type).value,
        rule.subject,
        rule.weekday,
        format_time_of_day(rule.start_time),
        format_time_of_day(rule.end_time),
        format_date_key(rule.valid_from),
        format_date_key(rule.valid_until) if rule.valid_until else None,
        1 if rule.is_active else 0,
        rule.notes,
        rule.created_by,
    )


def _row_to_rule(row: sqlite3.Row) -> RecurringRule:
    return RecurringRule(
        id=row["id"],
        student_id=row["student_id"],
        instructor_id=row["instructor_id"],
        lesson_type=LessonType(row["lesson_type"]),
        subject=row["subject"],
        weekday=row["day_of_week"],
        start_time=parse_time_of_day(row["start_time"]),
        end_time=parse_time_of_day(row["end_time"]),
        valid_from=parse_date_key(row["start_date"]),
        valid_until=_optional_date(row["end_date"]),
        is_active=bool(row["is_active"]),
        notes=row["notes"],
        created_by=row["created_by"],
    )


def _occurrence_to_row(occurrence: SingleOccurrence) -> tuple:
    return (
        occurrence.id,
        occurrence.student_id,
        occurrence.instructor_id,
        LessonType(occurrence.lesson_type).value,
        occurrence.subject,
        format_date_key(occurrence.lesson_date),
        format_time_of_day(occurrence.start_time),
        format_time_of_day(occurrence.end_time),
        LessonStatus(occurrence.status).value,
        occurrence.notes,
        occurrence.created_by,
        occurrence.source_rule_id,
    )


def _row_to_occurrence(row: sqlite3.Row) -> SingleOccurrence:
    return SingleOccurrence(
        id=row["id"],
        student_id=row["student_id"],
        instructor_id=row["instructor_id"],
        lesson_type=LessonType(row["lesson_type"]),
        subject=row["subject"],
        lesson_date=parse_date_key(row["lesson_date"]),
        start_time=parse_time_of_day(row["start_time"]),
        end_time=parse_time_of_day(row["end_time"]),
        status=LessonStatus(row["status"]),
        notes=row["notes"],
        created_by=row["created_by"],
        source_rule_id=row["recurring_schedule_id"],
    )


def _convert_rows(rows: list[sqlite3.Row], convert, label: str) -> list:
    """Convert rows, skipping any that cannot be parsed."""
    records = []
    for row in rows:
        try:
            records.append(convert(row))
        except ValueError as e:
            logger.warning("Skipping unreadable %s row %s: %s", label, row["id"], e)
    return records


class SqliteScheduleStore(ScheduleStore):
    """Schedule store persisting to a local SQLite file.

    Table and column names follow the hosted backend (``recurring_schedules``
    and ``schedules``) so exported rows can be loaded without mapping.
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        """Open (and create if needed) the schedule database.

        Args:
            db_path: Path to the SQLite file. Falls back to ``JUKU_DB_PATH``
                and then ``DEFAULT_DB_PATH``.
        """
        self._db_path = resolve_db_path(db_path)
        self.init_db()

    @property
    def db_path(self) -> str:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open schedule database {self._db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StoreError(f"Schedule database error: {e}") from e
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create the schedule tables if they do not exist."""
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS recurring_schedules (
                    id TEXT PRIMARY KEY,
                    student_id TEXT NOT NULL,
                    instructor_id TEXT,
                    lesson_type TEXT NOT NULL,
                    subject TEXT NOT NULL,
                    day_of_week INTEGER NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    start_date TEXT NOT NULL,
                    end_date TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    notes TEXT,
                    created_by TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schedules (
                    id TEXT PRIMARY KEY,
                    student_id TEXT NOT NULL,
                    instructor_id TEXT,
                    lesson_type TEXT NOT NULL,
                    subject TEXT NOT NULL,
                    lesson_date TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'scheduled',
                    notes TEXT,
                    created_by TEXT,
                    recurring_schedule_id TEXT
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_schedules_recurring_date "
                "ON schedules (recurring_schedule_id, lesson_date)"
            )

    def get_rule(self, rule_id: str) -> RecurringRule:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM recurring_schedules WHERE id = ?", (rule_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Recurring rule not found: {rule_id}")
        return _row_to_rule(row)

    def list_rules(
        self,
        active_only: bool = False,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
    ) -> list[RecurringRule]:
        clauses: list[str] = []
        params: list = []
        if active_only:
            clauses.append("is_active = 1")
        if student_id is not None:
            clauses.append("student_id = ?")
            params.append(student_id)
        if instructor_id is not None:
            clauses.append("instructor_id = ?")
            params.append(instructor_id)

        query = "SELECT * FROM recurring_schedules"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return _convert_rows(rows, _row_to_rule, "recurring rule")

    def add_rule(self, rule: RecurringRule) -> RecurringRule:
        if rule.id is None:
            rule = replace(rule, id=new_id())
        placeholders = ", ".join("?" for _ in RULE_COLUMNS)
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO recurring_schedules ({', '.join(RULE_COLUMNS)}) "
                f"VALUES ({placeholders})",
                _rule_to_row(rule),
            )
        logger.info("Inserted recurring rule %s", rule.id)
        return self.get_rule(rule.id)

    def update_rule(self, rule: RecurringRule) -> RecurringRule:
        assignments = ", ".join(f"{column} = ?" for column in RULE_COLUMNS[1:])
        row = _rule_to_row(rule)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE recurring_schedules SET {assignments} WHERE id = ?",
                (*row[1:], rule.id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Recurring rule not found: {rule.id}")
        return self.get_rule(rule.id)

    def delete_rule(self, rule_id: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM recurring_schedules WHERE id = ?", (rule_id,)
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Recurring rule not found: {rule_id}")

    def get_occurrence(self, occurrence_id: str) -> SingleOccurrence:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM schedules WHERE id = ?", (occurrence_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Lesson not found: {occurrence_id}")
        return _row_to_occurrence(row)

    def list_occurrences(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
    ) -> list[SingleOccurrence]:
        clauses: list[str] = []
        params: list = []
        if start is not None:
            clauses.append("lesson_date >= ?")
            params.append(format_date_key(start))
        if end is not None:
            clauses.append("lesson_date <= ?")
            params.append(format_date_key(end))
        if student_id is not None:
            clauses.append("student_id = ?")
            params.append(student_id)
        if instructor_id is not None:
            clauses.append("instructor_id = ?")
            params.append(instructor_id)

        query = "SELECT * FROM schedules"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY lesson_date, start_time"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return _convert_rows(rows, _row_to_occurrence, "lesson")

    def find_overrides(self, rule_id: str, lesson_date: date) -> list[SingleOccurrence]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM schedules "
                "WHERE recurring_schedule_id = ? AND lesson_date = ?",
                (rule_id, format_date_key(lesson_date)),
            ).fetchall()
        return _convert_rows(rows, _row_to_occurrence, "lesson")

    def list_overrides(
        self,
        rule_ids: Iterable[str],
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[SingleOccurrence]:
        rule_ids = list(rule_ids)
        if not rule_ids:
            return []

        placeholders = ", ".join("?" for _ in rule_ids)
        clauses = [f"recurring_schedule_id IN ({placeholders})"]
        params: list = list(rule_ids)
        if start is not None:
            clauses.append("lesson_date >= ?")
            params.append(format_date_key(start))
        if end is not None:
            clauses.append("lesson_date <= ?")
            params.append(format_date_key(end))

        query = (
            "SELECT * FROM schedules WHERE " + " AND ".join(clauses)
            + " ORDER BY lesson_date, start_time"
        )
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return _convert_rows(rows, _row_to_occurrence, "lesson")

    def add_occurrence(self, occurrence: SingleOccurrence) -> SingleOccurrence:
        if occurrence.id is None:
            occurrence = replace(occurrence, id=new_id())
        placeholders = ", ".join("?" for _ in OCCURRENCE_COLUMNS)
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO schedules ({', '.join(OCCURRENCE_COLUMNS)}) "
                f"VALUES ({placeholders})",
                _occurrence_to_row(occurrence),
            )
        logger.info("Inserted lesson %s on %s", occurrence.id, occurrence.lesson_date)
        return self.get_occurrence(occurrence.id)

    def update_occurrence(self, occurrence: SingleOccurrence) -> SingleOccurrence:
        assignments = ", ".join(f"{column} = ?" for column in OCCURRENCE_COLUMNS[1:])
        row = _occurrence_to_row(occurrence)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE schedules SET {assignments} WHERE id = ?",
                (*row[1:], occurrence.id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Lesson not found: {occurrence.id}")
        return self.get_occurrence(occurrence.id)
