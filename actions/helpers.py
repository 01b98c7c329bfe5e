from __future__ import annotations

import json
import os
from typing import Any, Optional

from flask import g, has_request_context

from models import AuditLog
from cache_layer import invalidate_dashboards
from utils import ApiError, AuthContext, iso_utc_now, redact_for_audit


def _correlation_id() -> str:
    if not has_request_context():
        return ""
    return str(getattr(g, "request_id", "") or "")


def append_audit(
    db,
    *,
    entityType: str,
    entityId: str,
    action: str,
    stageTag: str = "",
    remark: str = "",
    fromState: str = "",
    toState: str = "",
    actor: Optional[AuthContext] = None,
    meta: Optional[dict[str, Any]] = None,
) -> None:
    db.add(
        AuditLog(
            logId=f"LOG-{os.urandom(16).hex()}",
            entityType=str(entityType or ""),
            entityId=str(entityId or ""),
            action=str(action or ""),
            fromState=str(fromState or ""),
            toState=str(toState or ""),
            stageTag=str(stageTag or ""),
            remark=str(remark or ""),
            actorUserId=str(actor.userId) if actor else "SYSTEM",
            actorRole=str(actor.role) if actor else "SYSTEM",
            actorEmail=str(actor.email or "") if actor else "",
            at=iso_utc_now(),
            correlationId=_correlation_id(),
            metaJson=json.dumps(redact_for_audit(meta or {})),
        )
    )


def require_str(data: dict[str, Any], key: str) -> str:
    value = str((data or {}).get(key) or "").strip()
    if not value:
        raise ApiError("BAD_REQUEST", f"Missing {key}")
    return value


def mark_dashboards_stale() -> None:
    """
    Request a dashboard cache drop once the current write is committed.

    Under /api the dispatcher drops the snapshots after db.commit(); callers
    outside a request own their commit and get the drop immediately.
    """

    if has_request_context():
        g.invalidate_dashboards = True
    else:
        invalidate_dashboards()
