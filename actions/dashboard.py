from __future__ import annotations

from datetime import datetime, timezone

from auth import ROLE_ADMIN
from cache_layer import cache_get_or_set, make_cache_key
from services.dashboard import build_admin_dashboard, build_employee_dashboard, build_evaluation_summary, build_leaderboard
from services.records import RecordFetcher
from utils import ApiError, AuthContext, normalize_role, parse_year


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _cached(cfg, key: str, factory):
    if not bool(getattr(cfg, "DASHBOARD_CACHE_ENABLED", False)):
        return factory()
    return cache_get_or_set(key, factory)


def _year(data, now: datetime) -> int:
    return parse_year((data or {}).get("year"), default=now.year)


def admin_dashboard(data, auth: AuthContext | None, db, cfg):
    now = _now()
    year = _year(data, now)
    return _cached(
        cfg,
        make_cache_key("DASH_ADMIN", year),
        lambda: build_admin_dashboard(RecordFetcher(db), year=year, now=now, cfg=cfg),
    )


def employee_dashboard(data, auth: AuthContext | None, db, cfg):
    if not auth or not auth.valid:
        raise ApiError("AUTH_INVALID", "Invalid or expired session", http_status=401)

    now = _now()
    year = _year(data, now)
    user_id = auth.userId
    requested = str((data or {}).get("userId") or "").strip()
    if requested and requested != auth.userId:
        if normalize_role(auth.role) != ROLE_ADMIN:
            raise ApiError("FORBIDDEN", "Only admins can view other users' dashboards", http_status=403)
        user_id = requested

    return _cached(
        cfg,
        make_cache_key("DASH_EMP", user_id, year),
        lambda: build_employee_dashboard(RecordFetcher(db), user_id=user_id, year=year, now=now, cfg=cfg),
    )


def leaderboard(data, auth: AuthContext | None, db, cfg):
    now = _now()
    year = _year(data, now)
    user_id = auth.userId if auth and auth.valid else None
    # The current-user entry differs per caller, so the key is per user.
    return _cached(
        cfg,
        make_cache_key("LEADERBOARD", user_id or "-", year),
        lambda: build_leaderboard(RecordFetcher(db), current_user_id=user_id, year=year, cfg=cfg),
    )


def evaluation_summary(data, auth: AuthContext | None, db, cfg):
    year = _year(data, _now())
    return _cached(
        cfg,
        make_cache_key("EVAL_SUMMARY", year),
        lambda: build_evaluation_summary(RecordFetcher(db), year=year),
    )
