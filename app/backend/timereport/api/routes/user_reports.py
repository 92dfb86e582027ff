"""User reporting endpoints: monthly activity sums and their export."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from timereport.core.auth import REPORT_OTHER_ROLES, RequestUserContext, require_roles
from timereport.db.dependencies import get_db_session
from timereport.services.user_activity_report_service import UserActivitySumService

router = APIRouter(prefix="/reporting/users", tags=["reporting"])

require_report_other = require_roles(*REPORT_OTHER_ROLES)


def _service(db: Session) -> UserActivitySumService:
    return UserActivitySumService(db)


@router.api_route("/activity-sum", methods=["GET", "POST"])
def user_activity_sum(
    request: Request,
    context: RequestUserContext = Depends(require_report_other),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.report(context=context, params=request.query_params)


@router.api_route("/activity-sum_export", methods=["GET", "POST"])
def user_activity_sum_export(
    request: Request,
    format: str = Query(default="xlsx"),
    context: RequestUserContext = Depends(require_report_other),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _service(db)
    exported = service.export_report(
        context=context,
        params=request.query_params,
        format_name=format,
    )
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
