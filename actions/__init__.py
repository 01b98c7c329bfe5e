from __future__ import annotations

from typing import Any, Callable

from actions import assignments, auth_actions, dashboard, evaluations, proposals
from utils import ApiError, AuthContext


Handler = Callable[[Any, "AuthContext | None", Any, Any], Any]

ACTION_HANDLERS: dict[str, Handler] = {
    "EMAIL_LOGIN": auth_actions.email_login,
    "ADMIN_LOGIN": auth_actions.admin_login,
    "LOGOUT": auth_actions.logout,
    "GET_ME": auth_actions.get_me,
    "ADMIN_DASHBOARD": dashboard.admin_dashboard,
    "EMPLOYEE_DASHBOARD": dashboard.employee_dashboard,
    "LEADERBOARD": dashboard.leaderboard,
    "EVALUATION_SUMMARY": dashboard.evaluation_summary,
    "ASSIGNMENT_STATUS_UPDATE": assignments.assignment_status_update,
    "EVALUATION_SUBMIT": evaluations.evaluation_submit,
    "PROPOSAL_GET_MINE": proposals.proposal_get_mine,
    "PROPOSAL_SUBMIT": proposals.proposal_submit,
    "PROPOSAL_LIST": proposals.proposal_list,
    "PROPOSAL_ENTERTAIN": proposals.proposal_entertain,
    "PROPOSAL_DELETE": proposals.proposal_delete,
}


def dispatch(action: str, data: Any, auth: AuthContext | None, db, cfg) -> Any:
    action_u = str(action or "").upper().strip()
    handler = ACTION_HANDLERS.get(action_u)
    if handler is None:
        raise ApiError("BAD_REQUEST", f"Unknown action: {action_u}")
    if data is not None and not isinstance(data, dict):
        raise ApiError("BAD_REQUEST", "data must be an object")
    return handler(data or {}, auth, db, cfg)
