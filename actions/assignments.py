from __future__ import annotations

from actions.helpers import append_audit, mark_dashboards_stale, require_str
from models import ProgramAssignment
from utils import ApiError, AuthContext, iso_utc_now


ASSIGNMENT_STATUSES = {"Assigned", "Registered", "Attended", "No-Show", "Completed", "Cancelled"}
ATTENDANCE_STATUSES = {"Attended", "No-Show"}


def assignment_status_update(data, auth: AuthContext | None, db, cfg):
    assignment_id = require_str(data, "assignmentId")
    status = require_str(data, "status")
    if status not in ASSIGNMENT_STATUSES:
        raise ApiError("BAD_REQUEST", f"Invalid status: {status}")

    row = db.get(ProgramAssignment, assignment_id)
    if row is None:
        raise ApiError("NOT_FOUND", "Assignment not found", http_status=404)

    before = str(row.status or "")
    now = iso_utc_now()
    row.status = status
    row.updated_at = now
    if status in ATTENDANCE_STATUSES:
        row.attendance_marked_by = auth.userId if auth else None
        row.attendance_marked_at = now

    append_audit(
        db,
        entityType="ASSIGNMENT",
        entityId=assignment_id,
        action="ASSIGNMENT_STATUS_UPDATE",
        fromState=before,
        toState=status,
        stageTag="ATTENDANCE",
        actor=auth,
        meta={"programId": row.program_id, "userId": row.user_id},
    )
    mark_dashboards_stale()

    return {
        "id": row.id,
        "user_id": row.user_id,
        "program_id": row.program_id,
        "status": row.status,
        "attendance_marked_by": row.attendance_marked_by,
        "attendance_marked_at": row.attendance_marked_at,
    }
