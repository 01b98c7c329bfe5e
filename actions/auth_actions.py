from __future__ import annotations

import re

from sqlalchemy import select

from actions.helpers import append_audit
from auth import ROLE_ADMIN, issue_session_token, revoke_session, role_for_user, serialize_auth
from models import Profile
from passwords import verify_password
from utils import ApiError, AuthContext, normalize_email


_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _clean_email(data) -> str:
    email = normalize_email((data or {}).get("email"))
    if not email or not _EMAIL_RE.match(email):
        raise ApiError("BAD_REQUEST", "Please enter a valid email address")
    return email


def _find_profile_by_email(db, email: str):
    return db.execute(select(Profile).where(Profile.email == email)).scalars().first()


def _login_response(profile: Profile, role: str, ses: dict[str, str]) -> dict:
    return {
        "sessionToken": ses["sessionToken"],
        "expiresAt": ses["expiresAt"],
        "me": {
            "userId": profile.id,
            "email": profile.email,
            "name": profile.name or "",
            "department": profile.department or None,
            "role": role,
        },
    }


def email_login(data, auth: AuthContext | None, db, cfg):
    """
    Email-only login for employees on the internal network.

    Identity is the existence of an active profile with that email; there is no
    password. The role comes from user_roles (employee when absent).
    """

    email = _clean_email(data)
    profile = _find_profile_by_email(db, email)
    if not profile or str(profile.status or "").lower() != "active":
        raise ApiError(
            "AUTH_INVALID",
            "Email not registered or account is inactive. Please contact your administrator.",
            http_status=401,
        )

    role = role_for_user(db, profile.id)
    ses = issue_session_token(
        db,
        user_id=profile.id,
        email=profile.email,
        role=role,
        session_ttl_minutes=cfg.SESSION_TTL_MINUTES,
    )
    append_audit(
        db,
        entityType="AUTH",
        entityId=profile.id,
        action="EMAIL_LOGIN",
        stageTag="AUTH_LOGIN",
        actor=AuthContext(valid=True, userId=profile.id, email=profile.email, role=role, expiresAt=ses["expiresAt"]),
    )
    return _login_response(profile, role, ses)


def admin_login(data, auth: AuthContext | None, db, cfg):
    email = _clean_email(data)
    password = str((data or {}).get("password") or "")
    if not password:
        raise ApiError("BAD_REQUEST", "Missing password")

    profile = _find_profile_by_email(db, email)
    if not profile or not verify_password(password, profile.password_hash or ""):
        raise ApiError("AUTH_INVALID", "Invalid credentials", http_status=401)
    if str(profile.status or "").lower() != "active":
        raise ApiError("FORBIDDEN", "Account is not active", http_status=403)
    if role_for_user(db, profile.id) != ROLE_ADMIN:
        raise ApiError("FORBIDDEN", "Access denied. Admin privileges required.", http_status=403)

    ses = issue_session_token(
        db,
        user_id=profile.id,
        email=profile.email,
        role=ROLE_ADMIN,
        session_ttl_minutes=cfg.SESSION_TTL_MINUTES,
    )
    append_audit(
        db,
        entityType="AUTH",
        entityId=profile.id,
        action="ADMIN_LOGIN",
        stageTag="AUTH_LOGIN",
        actor=AuthContext(valid=True, userId=profile.id, email=profile.email, role=ROLE_ADMIN, expiresAt=ses["expiresAt"]),
    )
    return _login_response(profile, ROLE_ADMIN, ses)


def logout(data, auth: AuthContext | None, db, cfg):
    if not auth or not auth.valid:
        raise ApiError("AUTH_INVALID", "Invalid or expired session", http_status=401)
    if revoke_session(db, auth.sessionId, revoked_by=auth.userId):
        append_audit(db, entityType="AUTH", entityId=auth.userId, action="LOGOUT", stageTag="AUTH_LOGOUT", actor=auth)
    return {"loggedOut": True}


def get_me(data, auth: AuthContext | None, db, cfg):
    if not auth or not auth.valid:
        raise ApiError("AUTH_INVALID", "Invalid or expired session", http_status=401)
    return serialize_auth(auth)
