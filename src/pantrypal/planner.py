"""
Weekly planner date logic.

The week being viewed is carried in an explicit PlannerContext instead of
process-wide state, so the CLI, the web app and tests can each hold their own.
"""

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

from .data.models import PlannerEntry, WeeklyPlan, utcnow

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def format_date(d: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return d.strftime("%Y-%m-%d")


def parse_date(value: str) -> date:
    """
    Parse a YYYY-MM-DD string.

    Only the zero-padded calendar form is accepted, so the result always
    formats back to the same string.

    Raises:
        ValueError: If the string is not a valid YYYY-MM-DD date
    """
    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value!r}")
    return date.fromisoformat(value)


def week_start_for(day: date) -> date:
    """Monday of the week containing ``day`` (Sunday belongs to the week before)."""
    return day - timedelta(days=day.weekday())


def week_id_for(day: date) -> str:
    """Week identifier for any day in the week."""
    return format_date(week_start_for(day))


@dataclass
class WeekDay:
    """Display information for one day of a planning week."""

    date: date
    date_string: str
    day_name: str
    day_short: str
    day_number: int
    month: str


@dataclass
class PlannerContext:
    """
    Which week the user is looking at.

    Attributes:
        today: Reference date (defaults to the current date)
        week_offset: Weeks relative to the current one (-1 = last week)
    """

    today: Optional[date] = None
    week_offset: int = 0

    def reference_date(self) -> date:
        return self.today or date.today()

    def week_start(self) -> date:
        return week_start_for(self.reference_date()) + timedelta(weeks=self.week_offset)

    def week_id(self) -> str:
        return format_date(self.week_start())

    def week_dates(self) -> List[WeekDay]:
        """The seven days of the week, Monday first."""
        monday = self.week_start()
        days = []
        for i, day_name in enumerate(DAY_NAMES):
            d = monday + timedelta(days=i)
            days.append(WeekDay(
                date=d,
                date_string=format_date(d),
                day_name=day_name,
                day_short=day_name[:3],
                day_number=d.day,
                month=d.strftime("%b"),
            ))
        return days

    def week_range_string(self) -> str:
        """
        Human-readable week range.

        Returns:
            e.g. "Nov 18 - Nov 24, 2024" (year of the Sunday)
        """
        monday = self.week_start()
        sunday = monday + timedelta(days=6)
        return (
            f"{monday.strftime('%b')} {monday.day} - "
            f"{sunday.strftime('%b')} {sunday.day}, {sunday.year}"
        )

    def contains(self, day: str) -> bool:
        """True if the YYYY-MM-DD date falls in this week."""
        return week_start_for(parse_date(day)) == self.week_start()

    def shifted(self, weeks: int) -> "PlannerContext":
        """A new context moved by ``weeks`` (this one is left unchanged)."""
        return PlannerContext(today=self.today, week_offset=self.week_offset + weeks)


def initialize_planner(context: PlannerContext) -> WeeklyPlan:
    """Empty plan for the context's week with one dinner slot per day."""
    now = utcnow()
    return WeeklyPlan(
        week_start=context.week_id(),
        meals={day.date_string: PlannerEntry(date=day.date_string) for day in context.week_dates()},
        created_at=now,
        updated_at=now,
    )
