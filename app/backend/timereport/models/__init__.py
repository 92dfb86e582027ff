"""ORM model package."""

from timereport.models.entities import (
    Activity,
    Project,
    Team,
    TeamMember,
    Timesheet,
    User,
    UserRole,
)

__all__ = [
    "Activity",
    "Project",
    "Team",
    "TeamMember",
    "Timesheet",
    "User",
    "UserRole",
]
