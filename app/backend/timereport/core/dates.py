"""Timezone-aware date helpers for monthly reporting periods."""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from timereport.core.config import get_settings


class DateTimeFactory:
    """Builds "now" and month boundaries in one configured timezone."""

    def __init__(self, timezone: str | None = None) -> None:
        self.timezone = ZoneInfo(timezone or get_settings().timezone)

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    def start_of_month(self, reference: date | None = None) -> date:
        reference = reference or self.now().date()
        return date(reference.year, reference.month, 1)

    def month_range(self, reference: date | None = None) -> tuple[datetime, datetime]:
        """Return the first and last instant of the month containing ``reference``.

        The end is the last day at 23:59:59, matching an inclusive range of
        whole days.
        """

        first_day = self.start_of_month(reference)
        last_day = date(
            first_day.year,
            first_day.month,
            calendar.monthrange(first_day.year, first_day.month)[1],
        )
        start = datetime.combine(first_day, time(0, 0, 0), tzinfo=self.timezone)
        end = datetime.combine(last_day, time(23, 59, 59), tzinfo=self.timezone)
        return start, end

    def to_local(self, value: datetime) -> datetime:
        # Naive values come back from SQLite; treat them as already local.
        if value.tzinfo is None:
            return value.replace(tzinfo=self.timezone)
        return value.astimezone(self.timezone)


def day_sequence(start: date, end: date) -> list[date]:
    days: list[date] = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days
