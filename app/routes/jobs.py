"""
Background job endpoints (Celery).
"""
from __future__ import annotations

import hmac

from flask import Blueprint, current_app, jsonify, request

from auth import ROLE_ADMIN, validate_session_token
from db import SessionLocal
from app.routes.api import header_token
from app.tasks import celery_app
from app.tasks.reminders import overdue_evaluation_reminders_task
from utils import ApiError, err, normalize_role

jobs_bp = Blueprint("jobs", __name__)


def _require_admin_or_cron() -> None:
    cfg = current_app.config["CFG"]
    internal = str(request.headers.get("X-Internal-Token") or "").strip()
    if cfg.INTERNAL_CRON_TOKEN and internal and hmac.compare_digest(internal, cfg.INTERNAL_CRON_TOKEN):
        return

    db = SessionLocal()
    try:
        auth = validate_session_token(db, header_token())
        db.commit()
    finally:
        db.close()
    if not auth.valid:
        raise ApiError("AUTH_INVALID", "Invalid or expired session", http_status=401)
    if normalize_role(auth.role) != ROLE_ADMIN:
        raise ApiError("FORBIDDEN", "Not allowed for role: " + normalize_role(auth.role), http_status=403)


@jobs_bp.errorhandler(ApiError)
def _api_error(e: ApiError):
    return err(e.code, e.message, http_status=e.http_status)


@jobs_bp.post("/overdue-reminders")
def enqueue_overdue_reminders():
    """
    Queue the overdue-evaluation reminder scan.

    Returns:
        { "ok": true, "data": { "job_id": "...", "status": "queued" } }
    """
    _require_admin_or_cron()
    task = overdue_evaluation_reminders_task.apply_async()
    return jsonify({"ok": True, "data": {"job_id": task.id, "status": "queued"}}), 202


@jobs_bp.get("/<job_id>")
def get_job_status(job_id: str):
    _require_admin_or_cron()
    task = celery_app.AsyncResult(job_id)

    data = {"job_id": job_id, "status": task.state}
    if task.state == "PENDING":
        data["message"] = "Job is queued or unknown"
    elif task.state == "PROGRESS":
        meta = task.info or {}
        data["progress"] = meta.get("progress", 0)
        data["message"] = meta.get("status", "Processing...")
    elif task.state == "SUCCESS":
        data["result"] = task.result
    elif task.state == "FAILURE":
        data["error"] = str(task.info) if task.info else "Unknown error"

    return jsonify({"ok": True, "data": data})
