"""Current user endpoint."""

from fastapi import APIRouter, Depends

from timereport.core.auth import REPORT_OTHER_ROLES, RequestUserContext, get_current_user_context, has_role

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def get_me(context: RequestUserContext = Depends(get_current_user_context)) -> dict[str, object]:
    """Return current authenticated user profile and reporting permission."""

    return {
        "id": str(context.user_id),
        "username": context.username,
        "email": context.email,
        "display_name": context.display_name,
        "role": context.role.value,
        "system_account": context.system_account,
        "can_view_user_reports": has_role(context, REPORT_OTHER_ROLES),
    }
