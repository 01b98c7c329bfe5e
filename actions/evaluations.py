from __future__ import annotations

import json

from sqlalchemy import select

from actions.helpers import append_audit, mark_dashboards_stale, require_str
from models import Evaluation, ProgramAssignment
from services.evaluation_summary import QUESTION_KEYS, SCORE_MAP
from utils import ApiError, AuthContext, iso_utc_now, new_uuid


def _clean_answers(raw) -> dict[str, str]:
    if not isinstance(raw, dict):
        raise ApiError("BAD_REQUEST", "answers must be an object")
    out: dict[str, str] = {}
    for key in QUESTION_KEYS:
        value = str(raw.get(key) or "").strip().upper()
        if not value:
            raise ApiError("BAD_REQUEST", f"Missing answer for {key}")
        if value not in SCORE_MAP:
            raise ApiError("BAD_REQUEST", f"Invalid answer for {key}: {value}")
        out[key] = value
    # Free-text comments are kept as-is; only q1..q9 are scored.
    comment = str(raw.get("comments") or "").strip()
    if comment:
        out["comments"] = comment[:2000]
    return out


def evaluation_submit(data, auth: AuthContext | None, db, cfg):
    if not auth or not auth.valid:
        raise ApiError("AUTH_INVALID", "Invalid or expired session", http_status=401)

    program_id = require_str(data, "programId")
    answers = _clean_answers((data or {}).get("answers"))

    assignment = (
        db.execute(
            select(ProgramAssignment)
            .where(ProgramAssignment.user_id == auth.userId)
            .where(ProgramAssignment.program_id == program_id)
        )
        .scalars()
        .first()
    )
    if assignment is None:
        raise ApiError("NOT_FOUND", "You are not assigned to this program", http_status=404)

    existing = (
        db.execute(select(Evaluation.id).where(Evaluation.user_id == auth.userId).where(Evaluation.program_id == program_id))
        .scalars()
        .first()
    )
    if existing:
        raise ApiError("CONFLICT", "Evaluation already submitted for this program", http_status=409)

    row = Evaluation(
        id=new_uuid(),
        user_id=auth.userId,
        program_id=program_id,
        template_id=str((data or {}).get("templateId") or "").strip() or None,
        answers=json.dumps(answers),
        submitted_at=iso_utc_now(),
    )
    db.add(row)

    append_audit(
        db,
        entityType="EVALUATION",
        entityId=row.id,
        action="EVALUATION_SUBMIT",
        stageTag="EVALUATION",
        actor=auth,
        meta={"programId": program_id},
    )
    mark_dashboards_stale()

    return {"id": row.id, "program_id": program_id, "submitted_at": row.submitted_at, "answers": answers}
