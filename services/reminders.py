from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select

from models import ReminderLog
from services.dashboard import overdue_evaluations
from services.records import RecordFetcher
from utils import iso_utc_now, new_uuid


_log = logging.getLogger("reminders")

REMINDER_TYPE_EVALUATION = "evaluation_overdue"


def record_overdue_reminders(db, cfg, *, now: datetime) -> dict[str, Any]:
    """
    Log one reminder per overdue (user, program) evaluation.

    Every overdue pair is scanned, not just the dashboard's most recent slice,
    and pairs already present in reminders_log for this type are skipped, so
    repeated runs never log a pair twice. Delivery itself is out of scope; the
    log row is the record.
    """

    overdue = overdue_evaluations(
        RecordFetcher(db),
        now=now,
        grace_days=int(getattr(cfg, "OVERDUE_GRACE_DAYS", 3)),
        candidate_limit=None,
    )
    if not overdue:
        return {"overdue": 0, "logged": 0, "skipped": 0}

    user_ids = sorted({a["user_id"] for a in overdue})
    already = {
        (str(u), str(p))
        for u, p in db.execute(
            select(ReminderLog.user_id, ReminderLog.program_id)
            .where(ReminderLog.type == REMINDER_TYPE_EVALUATION)
            .where(ReminderLog.user_id.in_(user_ids))
        ).all()
    }

    sent_at = iso_utc_now()
    logged = 0
    for a in overdue:
        key = (a["user_id"], a["program_id"])
        if key in already:
            continue
        db.add(
            ReminderLog(
                id=new_uuid(),
                user_id=a["user_id"],
                program_id=a["program_id"],
                type=REMINDER_TYPE_EVALUATION,
                sent_at=sent_at,
            )
        )
        already.add(key)
        logged += 1

    _log.info("overdue reminders overdue=%s logged=%s", len(overdue), logged)
    return {"overdue": len(overdue), "logged": logged, "skipped": len(overdue) - logged}
