"""Repository helpers for users, teams, activities and timesheets used by reports."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from timereport.models.entities import Activity, Team, TeamMember, Timesheet, User


class Visibility(str, enum.Enum):
    VISIBLE = "visible"
    HIDDEN = "hidden"
    BOTH = "both"


@dataclass(slots=True)
class UserQuery:
    """Filter criteria for user directory lookups."""

    visibility: Visibility = Visibility.VISIBLE
    system_account: bool | None = None
    search_teams: list[UUID] = field(default_factory=list)


class ReportingRepository:
    """Read-side persistence operations backing the reporting services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Users and teams ----------
    def get_user_by_username(self, username: str) -> User | None:
        return self.db.scalar(select(User).where(User.username == username))

    def add_user(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def get_users_for_query(self, query: UserQuery) -> list[User]:
        statement = select(User)

        if query.visibility == Visibility.VISIBLE:
            statement = statement.where(User.enabled.is_(True))
        elif query.visibility == Visibility.HIDDEN:
            statement = statement.where(User.enabled.is_(False))

        if query.system_account is not None:
            statement = statement.where(User.system_account.is_(query.system_account))

        if query.search_teams:
            member_ids = select(TeamMember.user_id).where(TeamMember.team_id.in_(query.search_teams))
            statement = statement.where(User.id.in_(member_ids))

        return self.db.scalars(statement.order_by(User.display_name.asc(), User.username.asc())).all()

    def get_team(self, team_id: UUID) -> Team | None:
        return self.db.scalar(select(Team).where(Team.id == team_id))

    # ---------- Activities ----------
    def find_activities_by_ids(self, activity_ids: Iterable[UUID]) -> list[Activity]:
        ids = list(activity_ids)
        if not ids:
            return []
        return self.db.scalars(
            select(Activity).where(Activity.id.in_(ids)).order_by(Activity.name.asc())
        ).all()

    # ---------- Timesheets ----------
    def list_timesheets_for_users(
        self,
        user_ids: Iterable[UUID],
        *,
        begin: datetime,
        end: datetime,
    ) -> list[Timesheet]:
        ids = list(user_ids)
        if not ids:
            return []
        return self.db.scalars(
            select(Timesheet)
            .where(
                and_(
                    Timesheet.user_id.in_(ids),
                    Timesheet.begin >= begin,
                    Timesheet.begin <= end,
                )
            )
            .order_by(Timesheet.begin.asc())
        ).all()
