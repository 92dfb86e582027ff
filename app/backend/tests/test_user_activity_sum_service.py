from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from timereport.core.auth import RequestUserContext
from timereport.core.dates import DateTimeFactory
from timereport.models.entities import Activity, Team, User, UserRole
from timereport.repositories.reporting_repository import UserQuery, Visibility
from timereport.services.report_form import SumType
from timereport.services.statistic_service import (
    ActivityStatistics,
    DailyStatisticSeries,
    ProjectStatistics,
)
from timereport.services.user_activity_report_service import (
    UserActivitySumService,
    format_duration,
    render_report_table,
    serialize_report,
)


def _context() -> RequestUserContext:
    return RequestUserContext(
        user_id=uuid.uuid4(),
        username="lead",
        email="lead@test.local",
        display_name="Lead",
        role=UserRole.TEAMLEAD,
        system_account=False,
    )


class FakeUsers:
    def __init__(self, users: list[User]) -> None:
        self.users = users
        self.queries: list[UserQuery] = []

    def get_users_for_query(self, query: UserQuery) -> list[User]:
        self.queries.append(query)
        return self.users


class FakeActivities:
    def __init__(self, activities: list[Activity]) -> None:
        self.activities = activities
        self.calls: list[list[uuid.UUID]] = []

    def find_activities_by_ids(self, activity_ids) -> list[Activity]:
        ids = list(activity_ids)
        self.calls.append(ids)
        return [activity for activity in self.activities if activity.id in ids]


class FakeTeams:
    def __init__(self, teams: list[Team]) -> None:
        self.teams = {team.id: team for team in teams}

    def get_team(self, team_id: uuid.UUID) -> Team | None:
        return self.teams.get(team_id)


class FakeStatistics:
    def __init__(self, entries: list[tuple[uuid.UUID, uuid.UUID, date, int, str]]) -> None:
        self.entries = entries
        self.calls: list[tuple[datetime, datetime, list[User]]] = []

    def daily_statistics_grouped(self, begin: datetime, end: datetime, users):
        self.calls.append((begin, end, list(users)))
        grouped = {}
        project_id = uuid.UUID(int=1)
        for user_id, activity_id, day, duration, rate in self.entries:
            project = grouped.setdefault(user_id, {}).setdefault(
                project_id,
                ProjectStatistics(project=project_id, data=DailyStatisticSeries(begin.date(), end.date())),
            )
            activity = project.activities.setdefault(
                activity_id,
                ActivityStatistics(activity=activity_id, data=DailyStatisticSeries(begin.date(), end.date())),
            )
            activity.data.add(day, duration=duration, rate=Decimal(rate), internal_rate=Decimal("0.00"))
        return grouped


def _service(users, activities, statistics, teams=()) -> UserActivitySumService:
    return UserActivitySumService(
        statistics=statistics,
        user_directory=FakeUsers(list(users)),
        activity_directory=FakeActivities(list(activities)),
        team_directory=FakeTeams(list(teams)),
        dates=DateTimeFactory("UTC"),
    )


def _user(name: str) -> User:
    return User(id=uuid.uuid4(), username=name.lower(), email=f"{name.lower()}@test.local", display_name=name, enabled=True)


def test_report_aggregates_and_resolves_activities() -> None:
    u1, u2 = _user("Anna"), _user("Ben")
    a1 = Activity(id=uuid.uuid4(), name="Support")
    statistics = FakeStatistics(
        [
            (u1.id, a1.id, date(2026, 6, 1), 3600, "10.00"),
            (u1.id, a1.id, date(2026, 6, 2), 1800, "5.00"),
            (u2.id, a1.id, date(2026, 6, 1), 900, "2.50"),
        ]
    )
    service = _service([u1, u2], [a1], statistics)

    report = service.build_report(context=_context(), params={"date": "2026-06-15"})

    assert report.has_data is True
    assert report.begin == datetime(2026, 6, 1, 0, 0, 0, tzinfo=service.dates.timezone)
    assert report.end == datetime(2026, 6, 30, 23, 59, 59, tzinfo=service.dates.timezone)
    assert report.activity_totals[a1.id].duration == 6300
    assert report.activity_totals[a1.id].per_user[u1.id].duration == 5400
    assert report.activity_totals[a1.id].per_user[u2.id].duration == 900
    assert report.activities == {a1.id: a1}
    assert report.users_by_id == {u1.id: u1, u2.id: u2}
    assert len(statistics.calls) == 1

    query = service.users.queries[0]
    assert query.visibility == Visibility.BOTH
    assert query.system_account is False
    assert query.search_teams == []


def test_empty_user_set_reports_no_data_without_fetching() -> None:
    statistics = FakeStatistics([])
    service = _service([], [], statistics)

    report = service.build_report(context=_context(), params={})

    assert report.has_data is False
    assert report.activity_totals == {}
    assert statistics.calls == []
    assert service.activities.calls == []
    assert serialize_report(report)["has_data"] is False


def test_activity_lookup_skipped_when_no_activity_has_time() -> None:
    statistics = FakeStatistics([])
    service = _service([_user("Cleo")], [], statistics)

    report = service.build_report(context=_context(), params={})

    assert report.has_data is True
    assert report.activity_totals == {}
    assert len(statistics.calls) == 1
    assert service.activities.calls == []


def test_known_team_restricts_user_query() -> None:
    team = Team(id=uuid.uuid4(), name="Ops")
    service = _service([_user("Dana")], [], FakeStatistics([]), teams=[team])

    report = service.build_report(context=_context(), params={"team": str(team.id), "date": "2026-02-01"})

    assert service.users.queries[0].search_teams == [team.id]
    assert report.form.team == team.id
    assert report.begin.date() == date(2026, 2, 1)


def test_unknown_team_falls_back_to_current_month_without_team() -> None:
    service = _service([_user("Eli")], [], FakeStatistics([]))

    report = service.build_report(
        context=_context(),
        params={"team": str(uuid.uuid4()), "date": "2020-01-01", "sumType": "rate"},
    )

    assert service.users.queries[0].search_teams == []
    assert report.form.team is None
    assert report.begin.date() == service.dates.start_of_month()
    assert report.sum_type == SumType.RATE


def test_rendered_table_matches_serialized_totals() -> None:
    u1, u2 = _user("Anna"), _user("Ben")
    a1 = Activity(id=uuid.uuid4(), name="Support")
    a2 = Activity(id=uuid.uuid4(), name="Analysis")
    statistics = FakeStatistics(
        [
            (u1.id, a1.id, date(2026, 6, 1), 3600, "10.00"),
            (u2.id, a2.id, date(2026, 6, 3), 5400, "20.00"),
        ]
    )
    service = _service([u1, u2], [a1, a2], statistics)

    report = service.build_report(context=_context(), params={"date": "2026-06-01", "decimal": "1"})
    table = render_report_table(report)
    payload = serialize_report(report)

    assert table.header == ["Activity", "Anna", "Ben", "Total"]
    assert [row[0] for row in table.rows] == ["Analysis", "Support"]
    assert table.rows[0] == ["Analysis", Decimal("0.00"), Decimal("1.50"), Decimal("1.50")]
    assert table.totals == ["Total", Decimal("1.00"), Decimal("1.50"), Decimal("2.50")]
    assert payload["totals"] == {"duration": 9000, "rate": "30.00", "internal_rate": "0.00"}
    assert payload["user_totals"][str(u1.id)]["duration"] == 3600


def test_format_duration() -> None:
    assert format_duration(0) == "0:00"
    assert format_duration(6300) == "1:45"
    assert format_duration(36000 + 59) == "10:00"
