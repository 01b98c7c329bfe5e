from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Optional

from flask import Blueprint, current_app, g, request
from sqlalchemy.exc import DBAPIError

from actions import dispatch
from auth import assert_permission, is_public_action, role_or_public, validate_session_token
from cache_layer import invalidate_dashboards
from db import SessionLocal
from models import AuditLog
from utils import ApiError, AuthContext, err, iso_utc_now, now_monotonic, ok, parse_json_body, redact_for_audit


api_bp = Blueprint("api", __name__)

_log = logging.getLogger("api")

LOGIN_ACTIONS = {"EMAIL_LOGIN", "ADMIN_LOGIN"}


def header_token() -> str:
    authz = str(request.headers.get("Authorization") or "").strip()
    if authz.lower().startswith("bearer "):
        return authz.split(" ", 1)[1].strip()
    return str(request.headers.get("X-Session-Token") or "").strip()


def _client_ip() -> str:
    fwd = str(request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    return fwd or str(request.remote_addr or "")


def _check_rate_limits(cfg, action_u: str) -> None:
    limiter = current_app.extensions["rate_limiter"]
    ip = _client_ip()
    if action_u in LOGIN_ACTIONS:
        limiter.check(f"{ip}:LOGIN", cfg.RATE_LIMIT_LOGIN)
    else:
        limiter.check(f"{ip}:GLOBAL", cfg.RATE_LIMIT_GLOBAL)
        limiter.check(f"{ip}:API:{action_u}", cfg.RATE_LIMIT_DEFAULT)


def _audit_row(action_u: str, auth_ctx: Optional[AuthContext], *, stage: str, remark: str, meta: dict) -> AuditLog:
    return AuditLog(
        logId=f"LOG-{os.urandom(16).hex()}",
        entityType="API",
        entityId=str(auth_ctx.userId or auth_ctx.email or "") if auth_ctx else "PUBLIC",
        action=action_u or "UNKNOWN",
        fromState="",
        toState="",
        stageTag=stage,
        remark=remark,
        actorUserId=str(auth_ctx.userId) if auth_ctx else "PUBLIC",
        actorRole=str(auth_ctx.role) if auth_ctx else "PUBLIC",
        actorEmail=str(auth_ctx.email or "") if auth_ctx else "",
        at=iso_utc_now(),
        correlationId=str(getattr(g, "request_id", "") or ""),
        metaJson=json.dumps(meta),
    )


def _write_error_audit(action_u: str, auth_ctx: Optional[AuthContext], data: Any, e: ApiError) -> None:
    db2 = SessionLocal()
    try:
        db2.add(
            _audit_row(
                action_u,
                auth_ctx,
                stage="API_ERROR",
                remark=f"{e.code}: {e.message}",
                meta={"data": redact_for_audit(data or {}), "error": {"code": e.code, "message": e.message}},
            )
        )
        db2.commit()
    except Exception:
        db2.rollback()
        _log.warning("error audit write failed action=%s", action_u, exc_info=True)
    finally:
        db2.close()


def _internal_error(cfg, e: Exception, *, db_error: bool) -> ApiError:
    request_id = str(getattr(g, "request_id", "") or "")
    label = "Database error" if db_error else "Unexpected error"
    if cfg.IS_PRODUCTION:
        return ApiError("INTERNAL", f"{label} (requestId: {request_id})", http_status=500)

    detail = str(getattr(e, "orig", None) or e or type(e).__name__)
    detail = re.sub(r"\s+", " ", detail).strip()
    if len(detail) > 300:
        detail = detail[:300] + "..."
    return ApiError("INTERNAL", f"{label}: {detail} (requestId: {request_id})", http_status=500)


def run_action(action: str, data: Any, token: Any):
    """
    Authenticate, authorize, dispatch and audit one action.

    Returns a Flask (body, status) pair in the {"ok", "data"|"error"} envelope.
    The DB session is committed only when the handler succeeds; dashboard
    snapshots a write marked stale are dropped after that commit.
    """

    cfg = current_app.config["CFG"]
    action_u = str(action or "").upper().strip()
    db = None
    auth_ctx: Optional[AuthContext] = None

    try:
        if not action_u:
            raise ApiError("BAD_REQUEST", "Missing action")
        _check_rate_limits(cfg, action_u)

        db = SessionLocal()
        if is_public_action(action_u):
            auth_ctx = None
        else:
            auth_ctx = validate_session_token(db, token)
            if not auth_ctx.valid:
                raise ApiError("AUTH_INVALID", "Invalid or expired session", http_status=401)

        assert_permission(role_or_public(auth_ctx), action_u)

        out = dispatch(action_u, data, auth_ctx, db, cfg)

        db.add(_audit_row(action_u, auth_ctx, stage="API_CALL", remark="", meta={"data": redact_for_audit(data or {})}))
        db.commit()
        if g.pop("invalidate_dashboards", False):
            invalidate_dashboards()

        _log.info(
            "request_id=%s action=%s user=%s role=%s latency_ms=%s",
            g.request_id,
            action_u,
            (auth_ctx.userId if auth_ctx else "PUBLIC"),
            (auth_ctx.role if auth_ctx else "PUBLIC"),
            int((now_monotonic() - g.start_ts) * 1000),
        )
        return ok(out)
    except ApiError as e:
        if db is not None:
            db.rollback()
        _write_error_audit(action_u, auth_ctx, data, e)
        return err(e.code, e.message, http_status=e.http_status)
    except DBAPIError as e:
        if db is not None:
            db.rollback()
        api_err = _internal_error(cfg, e, db_error=True)
        _write_error_audit(action_u, auth_ctx, data, api_err)
        _log.exception("request_id=%s action=%s", g.request_id, action_u)
        return err(api_err.code, api_err.message, http_status=api_err.http_status)
    except Exception as e:
        if db is not None:
            db.rollback()
        api_err = _internal_error(cfg, e, db_error=False)
        _write_error_audit(action_u, auth_ctx, data, api_err)
        _log.exception("request_id=%s action=%s", g.request_id, action_u)
        return err(api_err.code, api_err.message, http_status=api_err.http_status)
    finally:
        if db is not None:
            db.close()


@api_bp.post("/api")
def api_route():
    try:
        body = parse_json_body(request.get_data(as_text=True))
    except ApiError as e:
        return err(e.code, e.message, http_status=e.http_status)
    token = body.get("token") or header_token()
    return run_action(body.get("action"), body.get("data") or {}, token)


@api_bp.get("/api/dashboard/admin")
def rest_admin_dashboard():
    return run_action("ADMIN_DASHBOARD", {"year": request.args.get("year")}, header_token())


@api_bp.get("/api/dashboard/me")
def rest_employee_dashboard():
    data = {"year": request.args.get("year"), "userId": request.args.get("userId")}
    return run_action("EMPLOYEE_DASHBOARD", data, header_token())


@api_bp.get("/api/leaderboard")
def rest_leaderboard():
    return run_action("LEADERBOARD", {"year": request.args.get("year")}, header_token())
