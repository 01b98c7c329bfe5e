from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

import pytest

from cache_layer import cache_clear
from db import SessionLocal
from models import Evaluation, Profile, Program, ProgramAssignment, UserRole
from passwords import hash_password
from utils import iso_utc_now, new_uuid, to_iso_utc


@pytest.fixture()
def app_client(tmp_path, monkeypatch):
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("REDIS_URL", "")
    monkeypatch.setenv("RATE_LIMIT_LOGIN", "1000/60")
    monkeypatch.setenv("RATE_LIMIT_GLOBAL", "10000/60")
    monkeypatch.setenv("RATE_LIMIT_DEFAULT", "10000/60")
    monkeypatch.setenv("ENABLE_COMPRESSION", "0")
    monkeypatch.setenv("INTERNAL_CRON_TOKEN", "cron-secret")

    from app import create_app

    cache_clear()
    app = create_app()
    app.config["TESTING"] = True
    yield app, app.test_client()
    cache_clear()


class Seeder:
    """Inserts rows directly, bypassing the API."""

    def profile(
        self,
        *,
        name: str,
        email: str,
        department: Optional[str] = None,
        status: str = "active",
        role: Optional[str] = None,
        password: str = "",
        user_id: Optional[str] = None,
    ) -> str:
        uid = user_id or new_uuid()
        now = iso_utc_now()
        with SessionLocal() as db:
            db.add(
                Profile(
                    id=uid,
                    name=name,
                    email=email.lower(),
                    department=department,
                    status=status,
                    password_hash=hash_password(password) if password else "",
                    created_at=now,
                    updated_at=now,
                )
            )
            if role:
                db.add(UserRole(user_id=uid, role=role, created_at=now))
            db.commit()
        return uid

    def program(
        self,
        *,
        title: str,
        start: datetime,
        end: datetime,
        hours: float,
        category: str = "Technical",
        notify_for_evaluation: bool = False,
    ) -> str:
        pid = new_uuid()
        now = iso_utc_now()
        with SessionLocal() as db:
            db.add(
                Program(
                    id=pid,
                    title=title,
                    category=category,
                    training_type="Internal",
                    start_date_time=to_iso_utc(start),
                    end_date_time=to_iso_utc(end),
                    hours=hours,
                    notify_for_evaluation=notify_for_evaluation,
                    created_at=now,
                    updated_at=now,
                )
            )
            db.commit()
        return pid

    def assignment(self, *, user_id: str, program_id: str, status: str = "Assigned") -> str:
        aid = new_uuid()
        now = iso_utc_now()
        with SessionLocal() as db:
            db.add(
                ProgramAssignment(
                    id=aid, user_id=user_id, program_id=program_id, status=status, created_at=now, updated_at=now
                )
            )
            db.commit()
        return aid

    def evaluation(self, *, user_id: str, program_id: str, answers: dict, submitted: Optional[datetime] = None) -> str:
        eid = new_uuid()
        with SessionLocal() as db:
            db.add(
                Evaluation(
                    id=eid,
                    user_id=user_id,
                    program_id=program_id,
                    answers=json.dumps(answers),
                    submitted_at=to_iso_utc(submitted) if submitted else iso_utc_now(),
                )
            )
            db.commit()
        return eid


@pytest.fixture()
def seed(app_client):
    return Seeder()
