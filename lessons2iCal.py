#!/usr/bin/env python3
"""Juku lesson calendar to iCalendar converter.

Reads recurring rules and single lessons from the schedule database,
projects them onto a date range and writes an iCalendar (.ics) file.
"""

import argparse
import logging
import sys
from datetime import date
from typing import Optional

from lessons import CalendarService, OccurrenceProjector, ScheduleError, SqliteScheduleStore
from lessons.dates import parse_date_key
from lessons.display import Role, format_period, make_title_builder
from lessons.ranges import (
    CalendarView,
    end_of_month,
    next_month_range,
    view_range,
    weeks_ahead_range,
)
from transformer import ICalTransformer


def parse_date(date_str: str) -> date:
    """Parse date string in YYYY-MM-DD format."""
    try:
        return parse_date_key(date_str)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date format: '{date_str}'. Expected YYYY-MM-DD."
        )


def resolve_range(
    start_date: Optional[date],
    end_date: Optional[date],
    view: Optional[str],
    anchor: Optional[date],
    next_month: bool = False,
    weeks: Optional[int] = None,
) -> tuple[date, date]:
    """Work out the exported range from the command-line options.

    An explicit start date wins; its end defaults to the end of that
    month. ``next_month`` and ``weeks`` count from ``anchor`` (default
    today). Otherwise the day/week/month grid around ``anchor`` is used.
    """
    if start_date is not None:
        return start_date, end_date or end_of_month(start_date)

    today = anchor or date.today()
    if next_month:
        return next_month_range(today)
    if weeks is not None:
        return weeks_ahead_range(today, weeks)
    return view_range(CalendarView(view or CalendarView.MONTH), today)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export the juku lesson calendar to iCalendar format.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 lessons2iCal.py --start-date 2024-03-01 --end-date 2024-03-31
  python3 lessons2iCal.py --view week --date 2024-03-13 --student s-001 -o week.ics
  python3 lessons2iCal.py --next-month --instructor i-007
        """
    )

    parser.add_argument(
        "--db",
        default=None,
        help="Path to the schedule database (default: $JUKU_DB_PATH or juku_schedule.db)"
    )

    range_group = parser.add_mutually_exclusive_group()
    range_group.add_argument(
        "--start-date",
        type=parse_date,
        default=None,
        help="First day to export (format: YYYY-MM-DD)"
    )
    range_group.add_argument(
        "--view",
        choices=[v.value for v in CalendarView],
        default=None,
        help="Export the day, week or month grid around --date (default: month)"
    )
    range_group.add_argument(
        "--next-month",
        action="store_true",
        help="Export the whole month after --date"
    )
    range_group.add_argument(
        "--weeks",
        type=int,
        default=None,
        help="Export N weeks starting at --date"
    )

    parser.add_argument(
        "--end-date",
        type=parse_date,
        default=None,
        help="Last day to export (format: YYYY-MM-DD). Default: end of the start month"
    )

    parser.add_argument(
        "--date",
        type=parse_date,
        default=None,
        help="Anchor date for --view, --next-month and --weeks (format: YYYY-MM-DD, default: today)"
    )

    parser.add_argument("--student", default=None, help="Only lessons of this student id")
    parser.add_argument("--instructor", default=None, help="Only lessons of this instructor id")

    parser.add_argument(
        "--role",
        choices=[r.value for r in Role],
        default=Role.ADMIN.value,
        help="Viewer role used for event titles (default: admin)"
    )

    parser.add_argument(
        "--timezone",
        default=ICalTransformer.DEFAULT_TIMEZONE,
        help=f"Time zone of lesson times (default: {ICalTransformer.DEFAULT_TIMEZONE})"
    )

    parser.add_argument(
        "-o", "--output",
        default="lessons.ics",
        help="Output file path (default: lessons.ics)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug output"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the exporter."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Ensure output file has .ics extension
    output_path = args.output
    if not output_path.lower().endswith(".ics"):
        output_path = f"{output_path}.ics"

    try:
        range_start, range_end = resolve_range(
            args.start_date,
            args.end_date,
            args.view,
            args.date,
            next_month=args.next_month,
            weeks=args.weeks,
        )
        if range_start > range_end:
            print("Error: Start date must not be after end date.", file=sys.stderr)
            return 1

        store = SqliteScheduleStore(args.db)
        projector = OccurrenceProjector(title_for=make_title_builder(Role(args.role)))
        service = CalendarService(store, projector)

        occurrences = service.project(
            range_start,
            range_end,
            student_id=args.student,
            instructor_id=args.instructor,
        )

        print(f"Found {len(occurrences)} lessons.")

        if not occurrences:
            print("Warning: No lessons found. The output file will be empty.")

        transformer = ICalTransformer(timezone=args.timezone)
        transformer.export(occurrences, range_start, range_end, output_path)

        print(f"Calendar saved to: {output_path}")
        print(f"Period: {format_period(range_start, range_end)}")

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.", file=sys.stderr)
        return 130
    except (ValueError, ScheduleError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: An unexpected error occurred: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
