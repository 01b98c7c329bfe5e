from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import select

from models import Profile, Session as DbSession, UserRole
from utils import ApiError, AuthContext, iso_utc_now, new_uuid, normalize_role, parse_datetime_maybe, sha256_hex, to_iso_utc


ROLE_ADMIN = "ADMIN"
ROLE_EMPLOYEE = "EMPLOYEE"
KNOWN_ROLES = {ROLE_ADMIN, ROLE_EMPLOYEE}

PUBLIC_ACTIONS = {
    "EMAIL_LOGIN",
    "ADMIN_LOGIN",
}


STATIC_RBAC_PERMISSIONS: dict[str, list[str]] = {
    "EMAIL_LOGIN": ["PUBLIC"],
    "ADMIN_LOGIN": ["PUBLIC"],
    "LOGOUT": ["ADMIN", "EMPLOYEE"],
    "GET_ME": ["ADMIN", "EMPLOYEE"],
    # Dashboards
    "ADMIN_DASHBOARD": ["ADMIN"],
    "EMPLOYEE_DASHBOARD": ["ADMIN", "EMPLOYEE"],
    "LEADERBOARD": ["ADMIN", "EMPLOYEE"],
    "EVALUATION_SUMMARY": ["ADMIN"],
    # Attendance + evaluations
    "ASSIGNMENT_STATUS_UPDATE": ["ADMIN"],
    "EVALUATION_SUBMIT": ["ADMIN", "EMPLOYEE"],
    # Training proposals
    "PROPOSAL_GET_MINE": ["ADMIN", "EMPLOYEE"],
    "PROPOSAL_SUBMIT": ["ADMIN", "EMPLOYEE"],
    "PROPOSAL_LIST": ["ADMIN"],
    "PROPOSAL_ENTERTAIN": ["ADMIN"],
    "PROPOSAL_DELETE": ["ADMIN"],
}


_INVALID = AuthContext(valid=False, userId="", email="", role="", expiresAt="")


def is_public_action(action: str) -> bool:
    return str(action or "").upper() in PUBLIC_ACTIONS


def role_for_user(db, user_id: str) -> str:
    """ADMIN when any admin role row exists for the user, else EMPLOYEE."""
    rows = db.execute(select(UserRole.role).where(UserRole.user_id == str(user_id or ""))).scalars().all()
    roles = {normalize_role(r) for r in rows}
    return ROLE_ADMIN if ROLE_ADMIN in roles else ROLE_EMPLOYEE


def uuid_hex_32() -> str:
    return new_uuid().replace("-", "")


def issue_session_token(db, *, user_id: str, email: str, role: str, session_ttl_minutes: int) -> dict[str, str]:
    token = "ST-" + uuid_hex_32() + uuid_hex_32()
    issued_at = iso_utc_now()
    expires_at = to_iso_utc(datetime.now(timezone.utc) + timedelta(minutes=session_ttl_minutes))

    db.add(
        DbSession(
            sessionId="SES-" + new_uuid(),
            tokenHash=sha256_hex(token),
            tokenPrefix=token[:12],
            userId=str(user_id or ""),
            email=str(email or ""),
            role=str(normalize_role(role) or ""),
            issuedAt=issued_at,
            expiresAt=expires_at,
            lastSeenAt=issued_at,
            revokedAt="",
            revokedBy="",
        )
    )
    return {"sessionToken": token, "expiresAt": expires_at}


def revoke_session(db, session_id: str, *, revoked_by: str) -> bool:
    ses = db.get(DbSession, str(session_id or "")) if session_id else None
    if not ses or ses.revokedAt:
        return False
    ses.revokedAt = iso_utc_now()
    ses.revokedBy = str(revoked_by or "")
    return True


def validate_session_token(db, token: Any) -> AuthContext:
    if not token or not isinstance(token, str):
        return _INVALID

    ses = db.execute(select(DbSession).where(DbSession.tokenHash == sha256_hex(token))).scalar_one_or_none()
    if not ses:
        return _INVALID

    exp_dt = parse_datetime_maybe(ses.expiresAt)
    if exp_dt and exp_dt < datetime.now(timezone.utc):
        return _INVALID
    if ses.revokedAt:
        return _INVALID

    profile = db.get(Profile, str(ses.userId or ""))
    if not profile:
        return _INVALID
    if str(profile.status or "").lower() != "active":
        raise ApiError("FORBIDDEN", "Account is not active", http_status=403)

    # Update lastSeenAt at most once per interval.
    try:
        interval_s = int(str(os.getenv("SESSION_LAST_SEEN_UPDATE_SECONDS", "300") or "300"))
    except Exception:
        interval_s = 300
    last_dt = parse_datetime_maybe(ses.lastSeenAt)
    if interval_s <= 0 or not last_dt or (datetime.now(timezone.utc) - last_dt).total_seconds() >= interval_s:
        ses.lastSeenAt = iso_utc_now()

    return AuthContext(
        valid=True,
        userId=str(ses.userId or ""),
        email=str(ses.email or ""),
        role=normalize_role(ses.role),
        expiresAt=str(ses.expiresAt or ""),
        name=str(profile.name or ""),
        sessionId=str(ses.sessionId or ""),
    )


def assert_permission(role: str, action: str) -> None:
    role_u = normalize_role(role) or ""
    action_u = str(action or "").upper().strip()

    if is_public_action(action_u):
        return

    allowed = STATIC_RBAC_PERMISSIONS.get(action_u)
    if not allowed:
        raise ApiError("BAD_REQUEST", f"Unknown action: {action_u}")

    if not role_u or role_u == "PUBLIC":
        raise ApiError("AUTH_INVALID", "Login required", http_status=401)
    if role_u not in KNOWN_ROLES:
        raise ApiError("FORBIDDEN", f"Inactive or unknown role: {role_u}", http_status=403)
    if role_u not in allowed:
        raise ApiError("FORBIDDEN", f"Not allowed for role: {role_u}", http_status=403)


def actions_for_role(role: str) -> list[str]:
    role_u = normalize_role(role)
    return sorted(a for a, roles in STATIC_RBAC_PERMISSIONS.items() if role_u in roles or "PUBLIC" in roles)


def serialize_auth(auth: AuthContext) -> dict[str, Any]:
    return {
        "valid": bool(auth.valid),
        "expiresAt": auth.expiresAt,
        "me": {"userId": auth.userId, "email": auth.email, "name": auth.name, "role": role_or_public(auth)},
        "actionKeys": actions_for_role(auth.role),
    }


def role_or_public(auth: Optional[AuthContext]) -> str:
    if not auth or not auth.valid:
        return "PUBLIC"
    return normalize_role(auth.role) or "PUBLIC"
