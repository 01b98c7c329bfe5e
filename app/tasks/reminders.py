from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

import db as db_module
from app.tasks import celery_app
from config import Config
from services.reminders import record_overdue_reminders


_log = logging.getLogger("reminders")


def _ensure_engine(cfg: Config) -> None:
    # Worker processes don't go through create_app().
    if db_module.engine is None:
        from models import Base

        engine = db_module.init_engine(cfg.DATABASE_URL)
        Base.metadata.create_all(bind=engine)


def run_overdue_reminders(now: datetime | None = None) -> dict:
    cfg = Config()
    _ensure_engine(cfg)
    started = now or datetime.now(timezone.utc)

    db = db_module.SessionLocal()
    try:
        out = record_overdue_reminders(db, cfg, now=started)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    out["ranAt"] = started.isoformat()
    return out


@celery_app.task(bind=True, autoretry_for=(SQLAlchemyError,), retry_backoff=True, max_retries=3)
def overdue_evaluation_reminders_task(self):
    """Log reminders for attended programs still missing an evaluation."""
    if not self.request.is_eager:
        self.update_state(state="PROGRESS", meta={"progress": 0, "status": "Scanning overdue evaluations"})
    out = run_overdue_reminders()
    _log.info("task_id=%s overdue reminders done logged=%s", self.request.id, out.get("logged"))
    out["task_id"] = self.request.id
    return out
