"""Activity-centric monthly totals with per-user subtotals."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from timereport.models.entities import Activity, User
from timereport.repositories.reporting_repository import UserQuery
from timereport.services.statistic_service import GroupedDailyStatistics

ZERO = Decimal("0.00")


class StatisticsProvider(Protocol):
    def daily_statistics_grouped(
        self,
        begin: datetime,
        end: datetime,
        users: Sequence[User],
    ) -> GroupedDailyStatistics: ...


class UserDirectory(Protocol):
    def get_users_for_query(self, query: UserQuery) -> Sequence[User]: ...


class ActivityDirectory(Protocol):
    def find_activities_by_ids(self, activity_ids: Iterable[UUID]) -> Sequence[Activity]: ...


@dataclass(slots=True)
class UserActivityTotal:
    duration: int = 0
    rate: Decimal = ZERO
    internal_rate: Decimal = ZERO


@dataclass(slots=True)
class ActivityTotal:
    """Running sums for one activity across all users of the period.

    Grand totals are only changed through :meth:`add`, so they always equal
    the sum of ``per_user``.
    """

    activity: UUID
    duration: int = 0
    rate: Decimal = ZERO
    internal_rate: Decimal = ZERO
    per_user: dict[UUID, UserActivityTotal] = field(default_factory=dict)

    def add(self, user_id: UUID, *, duration: int, rate: Decimal, internal_rate: Decimal) -> None:
        subtotal = self.per_user.setdefault(user_id, UserActivityTotal())
        subtotal.duration += duration
        subtotal.rate += rate
        subtotal.internal_rate += internal_rate
        self.duration += duration
        self.rate += rate
        self.internal_rate += internal_rate


def aggregate_activity_totals(grouped: GroupedDailyStatistics) -> dict[UUID, ActivityTotal]:
    """Fold user -> project -> activity -> day statistics into activity totals."""

    totals: dict[UUID, ActivityTotal] = {}
    for user_id, projects in grouped.items():
        for project_stats in projects.values():
            for activity_id, activity_stats in project_stats.activities.items():
                duration = 0
                rate = ZERO
                internal_rate = ZERO
                for day in activity_stats.data.days():
                    duration += day.total_duration
                    rate += day.total_rate
                    internal_rate += day.total_internal_rate

                if duration == 0 and rate == ZERO and internal_rate == ZERO:
                    continue

                total = totals.get(activity_id)
                if total is None:
                    total = ActivityTotal(activity=activity_id)
                    totals[activity_id] = total
                total.add(user_id, duration=duration, rate=rate, internal_rate=internal_rate)
    return totals
