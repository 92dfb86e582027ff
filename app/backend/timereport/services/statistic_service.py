"""Daily timesheet statistics grouped by user, project and activity."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from timereport.core.dates import DateTimeFactory, day_sequence
from timereport.models.entities import User
from timereport.repositories.reporting_repository import ReportingRepository

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(slots=True)
class DailyStatistic:
    day: date
    total_duration: int = 0
    total_rate: Decimal = ZERO
    total_internal_rate: Decimal = ZERO


class DailyStatisticSeries:
    """Zero-filled statistics for every calendar day between two dates."""

    def __init__(self, begin: date, end: date) -> None:
        self._days: dict[date, DailyStatistic] = {day: DailyStatistic(day=day) for day in day_sequence(begin, end)}

    def days(self) -> list[DailyStatistic]:
        return list(self._days.values())

    def get_day(self, day: date) -> DailyStatistic | None:
        return self._days.get(day)

    def add(self, day: date, *, duration: int, rate: Decimal, internal_rate: Decimal) -> None:
        statistic = self._days.get(day)
        if statistic is None:
            return
        statistic.total_duration += duration
        statistic.total_rate += rate
        statistic.total_internal_rate += internal_rate

    def __iter__(self) -> Iterator[DailyStatistic]:
        return iter(self._days.values())


@dataclass(slots=True)
class ActivityStatistics:
    activity: UUID
    data: DailyStatisticSeries


@dataclass(slots=True)
class ProjectStatistics:
    project: UUID
    data: DailyStatisticSeries
    activities: dict[UUID, ActivityStatistics] = field(default_factory=dict)


GroupedDailyStatistics = dict[UUID, dict[UUID, ProjectStatistics]]


class TimesheetStatisticService:
    """Builds per-day statistics from timesheet records."""

    def __init__(self, db: Session, dates: DateTimeFactory | None = None) -> None:
        self.repo = ReportingRepository(db)
        self.dates = dates or DateTimeFactory()

    def daily_statistics_grouped(
        self,
        begin: datetime,
        end: datetime,
        users: Sequence[User],
    ) -> GroupedDailyStatistics:
        """Return ``{user id: {project id: ProjectStatistics}}`` for the range.

        Every series covers each calendar day from ``begin`` to ``end``
        (inclusive), including days without records. Users, projects and
        activities without any record in the range are absent.
        """

        grouped: GroupedDailyStatistics = {}
        if not users:
            return grouped

        first_day = self.dates.to_local(begin).date()
        last_day = self.dates.to_local(end).date()

        rows = self.repo.list_timesheets_for_users((user.id for user in users), begin=begin, end=end)
        for row in rows:
            day = self.dates.to_local(row.begin).date()
            projects = grouped.setdefault(row.user_id, {})
            project_stats = projects.get(row.project_id)
            if project_stats is None:
                project_stats = ProjectStatistics(
                    project=row.project_id,
                    data=DailyStatisticSeries(first_day, last_day),
                )
                projects[row.project_id] = project_stats

            activity_stats = project_stats.activities.get(row.activity_id)
            if activity_stats is None:
                activity_stats = ActivityStatistics(
                    activity=row.activity_id,
                    data=DailyStatisticSeries(first_day, last_day),
                )
                project_stats.activities[row.activity_id] = activity_stats

            values = {
                "duration": row.duration or 0,
                "rate": row.rate if row.rate is not None else ZERO,
                "internal_rate": row.internal_rate if row.internal_rate is not None else ZERO,
            }
            project_stats.data.add(day, **values)
            activity_stats.data.add(day, **values)

        logger.debug("Grouped %d timesheets for %d users between %s and %s", len(rows), len(users), begin, end)
        return grouped
