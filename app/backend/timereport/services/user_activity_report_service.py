"""Monthly activity sum report: assembly, serialization and export."""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Protocol
from uuid import UUID

from fastapi import HTTPException, status
from openpyxl import Workbook
from sqlalchemy.orm import Session

from timereport.core.auth import RequestUserContext
from timereport.core.config import get_settings
from timereport.core.dates import DateTimeFactory
from timereport.models.entities import Activity, Team, User
from timereport.repositories.reporting_repository import ReportingRepository, UserQuery, Visibility
from timereport.services.activity_sum import (
    ActivityDirectory,
    ActivityTotal,
    StatisticsProvider,
    UserActivityTotal,
    UserDirectory,
    aggregate_activity_totals,
)
from timereport.services.report_form import MonthlyUserListForm, SumType, fallback_form, parse_report_form
from timereport.services.statistic_service import TimesheetStatisticService

logger = logging.getLogger(__name__)

REPORT_TITLE = "user_activity_sum"
EXPORT_ROUTE = "user_activity_sum_export"
EXPORT_FORMATS = {"csv", "xlsx"}
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")
SECONDS_PER_HOUR = Decimal(3600)


class TeamDirectory(Protocol):
    def get_team(self, team_id: UUID) -> Team | None: ...


@dataclass(slots=True)
class ActivityReport:
    form: MonthlyUserListForm
    begin: datetime
    end: datetime
    users: list[User]
    users_by_id: dict[UUID, User]
    activities: dict[UUID, Activity]
    activity_totals: dict[UUID, ActivityTotal]
    has_data: bool

    @property
    def decimal(self) -> bool:
        return self.form.decimal

    @property
    def sum_type(self) -> SumType:
        return self.form.sum_type


@dataclass(slots=True)
class ReportTable:
    header: list[str]
    rows: list[list[object]]
    totals: list[object]


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2)


def format_duration(seconds: int) -> str:
    """Format seconds as ``H:MM``."""

    hours, remainder = divmod(int(seconds), 3600)
    return f"{hours}:{remainder // 60:02d}"


def duration_hours(seconds: int) -> Decimal:
    return _q2(Decimal(int(seconds)) / SECONDS_PER_HOUR)


def _serialize_total(total: ActivityTotal | UserActivityTotal) -> dict[str, object]:
    return {
        "duration": total.duration,
        "rate": str(_q2(total.rate)),
        "internal_rate": str(_q2(total.internal_rate)),
    }


def _activity_name(report: ActivityReport, activity_id: UUID) -> str:
    activity = report.activities.get(activity_id)
    return activity.name if activity is not None else str(activity_id)


def _sorted_totals(report: ActivityReport) -> list[ActivityTotal]:
    return sorted(
        report.activity_totals.values(),
        key=lambda total: (_activity_name(report, total.activity).lower(), str(total.activity)),
    )


def user_totals(report: ActivityReport) -> dict[UUID, UserActivityTotal]:
    """Per-user sums across all activities, zero for users without records."""

    totals = {user.id: UserActivityTotal() for user in report.users}
    for activity_total in report.activity_totals.values():
        for user_id, subtotal in activity_total.per_user.items():
            bucket = totals.setdefault(user_id, UserActivityTotal())
            bucket.duration += subtotal.duration
            bucket.rate += subtotal.rate
            bucket.internal_rate += subtotal.internal_rate
    return totals


def grand_total(report: ActivityReport) -> UserActivityTotal:
    total = UserActivityTotal()
    for activity_total in report.activity_totals.values():
        total.duration += activity_total.duration
        total.rate += activity_total.rate
        total.internal_rate += activity_total.internal_rate
    return total


def serialize_report(report: ActivityReport) -> dict[str, object]:
    """JSON view of the interactive report."""

    per_user_totals = user_totals(report)
    return {
        "report_title": REPORT_TITLE,
        "export_route": EXPORT_ROUTE,
        "date": report.begin.date().isoformat(),
        "begin": report.begin.isoformat(),
        "end": report.end.isoformat(),
        "team": str(report.form.team) if report.form.team is not None else None,
        "sum_type": report.sum_type.value,
        "decimal": report.decimal,
        "has_data": report.has_data,
        "users": [
            {
                "id": str(user.id),
                "username": user.username,
                "display_name": user.display_name,
                "enabled": user.enabled,
            }
            for user in report.users
        ],
        "activities": [
            {
                "id": str(activity.id),
                "name": activity.name,
                "project_id": str(activity.project_id) if activity.project_id is not None else None,
            }
            for activity in sorted(report.activities.values(), key=lambda item: item.name.lower())
        ],
        "activity_totals": [
            {
                "activity_id": str(total.activity),
                "activity_name": _activity_name(report, total.activity),
                **_serialize_total(total),
                "per_user": {
                    str(user_id): _serialize_total(subtotal) for user_id, subtotal in total.per_user.items()
                },
            }
            for total in _sorted_totals(report)
        ],
        "user_totals": {
            str(user_id): _serialize_total(subtotal) for user_id, subtotal in per_user_totals.items()
        },
        "totals": _serialize_total(grand_total(report)),
    }


def _cell_value(total: ActivityTotal | UserActivityTotal, sum_type: SumType, decimal: bool) -> object:
    if sum_type == SumType.RATE:
        return _q2(total.rate)
    if sum_type == SumType.INTERNAL_RATE:
        return _q2(total.internal_rate)
    if decimal:
        return duration_hours(total.duration)
    return format_duration(total.duration)


def render_report_table(report: ActivityReport) -> ReportTable:
    """Render the report as rows of cells: one per activity plus a totals row."""

    sum_type = report.sum_type
    decimal = report.decimal
    empty = UserActivityTotal()

    header = ["Activity", *(user.display_name for user in report.users), "Total"]
    rows: list[list[object]] = []
    for total in _sorted_totals(report):
        rows.append(
            [
                _activity_name(report, total.activity),
                *(_cell_value(total.per_user.get(user.id, empty), sum_type, decimal) for user in report.users),
                _cell_value(total, sum_type, decimal),
            ]
        )

    per_user_totals = user_totals(report)
    totals = [
        "Total",
        *(_cell_value(per_user_totals[user.id], sum_type, decimal) for user in report.users),
        _cell_value(grand_total(report), sum_type, decimal),
    ]
    return ReportTable(header=header, rows=rows, totals=totals)


class UserActivitySumService:
    """Builds the monthly per-activity, per-user sum report."""

    def __init__(
        self,
        db: Session | None = None,
        *,
        statistics: StatisticsProvider | None = None,
        user_directory: UserDirectory | None = None,
        activity_directory: ActivityDirectory | None = None,
        team_directory: TeamDirectory | None = None,
        dates: DateTimeFactory | None = None,
    ) -> None:
        self.settings = get_settings()
        self.dates = dates or DateTimeFactory()
        repo = ReportingRepository(db) if db is not None else None
        self.statistics = statistics or TimesheetStatisticService(db, dates=self.dates)
        self.users = user_directory or repo
        self.activities = activity_directory or repo
        self.teams = team_directory or repo

    def _bind_form(self, params: Mapping[str, object]) -> tuple[MonthlyUserListForm, UserQuery]:
        default_date = self.dates.start_of_month()
        form, valid = parse_report_form(params, default_date=default_date)

        query = UserQuery(visibility=Visibility.BOTH, system_account=False)
        if valid and form.team is not None:
            if self.teams.get_team(form.team) is None:
                logger.debug("Unknown team %s in report filter, falling back to defaults", form.team)
                form = fallback_form(
                    {"sumType": form.sum_type.value, "decimal": form.decimal},
                    default_date=default_date,
                )
            else:
                query.search_teams = [form.team]
        return form, query

    def build_report(self, *, context: RequestUserContext, params: Mapping[str, object]) -> ActivityReport:
        form, query = self._bind_form(params)
        users = list(self.users.get_users_for_query(query))
        begin, end = self.dates.month_range(form.month)
        users_by_id = {user.id: user for user in users}

        has_data = True
        activity_totals: dict[UUID, ActivityTotal] = {}
        if users:
            grouped = self.statistics.daily_statistics_grouped(begin, end, users)
            activity_totals = aggregate_activity_totals(grouped)
        else:
            has_data = False

        activities: dict[UUID, Activity] = {}
        if activity_totals:
            for activity in self.activities.find_activities_by_ids(list(activity_totals.keys())):
                activities[activity.id] = activity

        logger.info(
            "Built %s for %s: month=%s users=%d activities=%d",
            REPORT_TITLE,
            context.username,
            begin.date().isoformat(),
            len(users),
            len(activity_totals),
        )
        return ActivityReport(
            form=form,
            begin=begin,
            end=end,
            users=users,
            users_by_id=users_by_id,
            activities=activities,
            activity_totals=activity_totals,
            has_data=has_data,
        )

    def report(self, *, context: RequestUserContext, params: Mapping[str, object]) -> dict[str, object]:
        return serialize_report(self.build_report(context=context, params=params))

    def export_report(
        self,
        *,
        context: RequestUserContext,
        params: Mapping[str, object],
        format_name: str,
    ) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in EXPORT_FORMATS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="format must be one of: csv, xlsx.",
            )

        table = render_report_table(self.build_report(context=context, params=params))
        base_filename = self.settings.export_base_filename

        if normalized_format == "csv":
            sio = io.StringIO()
            writer = csv.writer(sio)
            writer.writerow(table.header)
            writer.writerows(table.rows)
            writer.writerow(table.totals)
            payload = ExportFilePayload(
                media_type="text/csv; charset=utf-8",
                filename=f"{base_filename}.csv",
                content=sio.getvalue().encode("utf-8"),
            )
        else:
            workbook = Workbook()
            sheet = workbook.active
            sheet.title = REPORT_TITLE
            sheet.append(table.header)
            for row in table.rows:
                sheet.append(row)
            sheet.append(table.totals)

            output = BytesIO()
            workbook.save(output)
            payload = ExportFilePayload(
                media_type=XLSX_MEDIA_TYPE,
                filename=f"{base_filename}.xlsx",
                content=output.getvalue(),
            )

        logger.info("Exported %s as %s (%d rows)", REPORT_TITLE, normalized_format, len(table.rows))
        return payload
