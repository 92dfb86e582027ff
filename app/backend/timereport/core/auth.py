"""Authentication context extraction and role guard utilities."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from timereport.core.config import get_settings
from timereport.db.dependencies import get_db_session
from timereport.models.entities import User, UserRole
from timereport.repositories.reporting_repository import ReportingRepository

logger = logging.getLogger(__name__)

# Roles allowed to read reports about other users.
REPORT_OTHER_ROLES = {UserRole.TEAMLEAD, UserRole.ADMIN, UserRole.SUPER_ADMIN}


@dataclass(frozen=True)
class RequestUserContext:
    """Authenticated request actor resolved from headers and DB state."""

    user_id: UUID
    username: str
    email: str
    display_name: str
    role: UserRole
    system_account: bool

    @property
    def is_super_admin(self) -> bool:
        """Whether current user has super admin role."""

        return self.role == UserRole.SUPER_ADMIN


def _ensure_dev_principal(db: Session) -> User:
    settings = get_settings()
    repo = ReportingRepository(db)
    username = settings.auth_dev_username.strip()
    user = repo.get_user_by_username(username)
    if user is not None:
        return user

    now = datetime.utcnow()
    # A system account never shows up in user reports.
    return repo.add_user(
        User(
            username=username,
            email=settings.auth_dev_email.strip().lower(),
            display_name=settings.auth_dev_display_name.strip(),
            role=UserRole.SUPER_ADMIN,
            enabled=True,
            system_account=True,
            created_at=now,
            updated_at=now,
        )
    )


def _resolve_user(db: Session, x_auth_username: str | None) -> User:
    settings = get_settings()
    if x_auth_username and x_auth_username.strip():
        user = ReportingRepository(db).get_user_by_username(x_auth_username.strip())
        if user is None or not user.enabled:
            logger.warning("Rejected request for unknown or disabled user %r", x_auth_username)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unknown or disabled user.",
            )
        return user

    if settings.auth_allow_dev_principal:
        return _ensure_dev_principal(db)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing identity header. Expected X-AUTH-USERNAME or enable development principal fallback.",
    )


def get_current_user_context(
    x_auth_username: str | None = Header(default=None, alias="X-AUTH-USERNAME"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    """Resolve current request user.

    Header strategy:
    - Current phase: trusted username header from proxy / test clients.
    - Later: replace with token validation and claim extraction.
    """

    user = _resolve_user(db, x_auth_username)
    db.commit()

    return RequestUserContext(
        user_id=user.id,
        username=user.username,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        system_account=user.system_account,
    )


def has_role(context: RequestUserContext, allowed_roles: set[UserRole]) -> bool:
    """Check whether user has any of the allowed roles."""

    return context.role in allowed_roles


def require_roles(*roles: UserRole):
    """Dependency factory requiring at least one provided role."""

    allowed = set(roles)

    def dependency(context: RequestUserContext = Depends(get_current_user_context)) -> RequestUserContext:
        if not has_role(context, allowed):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role permissions for this operation.",
            )
        return context

    return dependency
