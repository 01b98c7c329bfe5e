"""
Record fetch layer.

Reads profiles, programs, assignments (joined with their program and owning
profile) and evaluations as plain dicts for the aggregation services. Date
filters here are coarse ISO-text comparisons; the services apply the exact
calendar checks on parsed timestamps.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from models import Evaluation, Profile, Program, ProgramAssignment
from utils import ApiError


_log = logging.getLogger("records")

T = TypeVar("T")


class FetchFailure(ApiError):
    def __init__(self, what: str):
        super().__init__("FETCH_FAILED", f"Failed to load {what}", http_status=502)
        self.what = what


def serialize_profile(p: Profile) -> dict[str, Any]:
    return {
        "id": str(p.id or ""),
        "name": str(p.name or ""),
        "email": str(p.email or ""),
        "department": p.department or None,
        "position": p.position or None,
        "status": str(p.status or ""),
    }


def serialize_program(p: Program) -> dict[str, Any]:
    return {
        "id": str(p.id or ""),
        "title": str(p.title or ""),
        "category": str(p.category or ""),
        "training_type": str(p.training_type or ""),
        "start_date_time": str(p.start_date_time or ""),
        "end_date_time": str(p.end_date_time or ""),
        "hours": p.hours if p.hours is not None else 0,
        "status": p.status or None,
        "location": p.location or None,
        "organizer": p.organizer or None,
        "trainer": p.trainer or None,
        "notify_for_evaluation": bool(p.notify_for_evaluation),
    }


def serialize_assignment(a: ProgramAssignment, program: Optional[Program], profile: Optional[Profile]) -> dict[str, Any]:
    return {
        "id": str(a.id or ""),
        "user_id": str(a.user_id or ""),
        "program_id": str(a.program_id or ""),
        "status": str(a.status or ""),
        "attendance_marked_by": a.attendance_marked_by or None,
        "attendance_marked_at": a.attendance_marked_at or None,
        "program": serialize_program(program) if program is not None else None,
        "profile": serialize_profile(profile) if profile is not None else None,
    }


def serialize_evaluation(e: Evaluation) -> dict[str, Any]:
    try:
        answers = json.loads(str(e.answers or "{}"))
    except ValueError:
        answers = {}
    return {
        "id": str(e.id or ""),
        "user_id": str(e.user_id or ""),
        "program_id": str(e.program_id or ""),
        "template_id": e.template_id or None,
        "answers": answers if isinstance(answers, dict) else {},
        "submitted_at": str(e.submitted_at or ""),
    }


class RecordFetcher:
    def __init__(self, db):
        self.db = db

    def _run(self, what: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except SQLAlchemyError as e:
            _log.exception("fetch %s failed", what)
            raise FetchFailure(what) from e

    def fetch_profiles(self) -> list[dict[str, Any]]:
        def _q():
            rows = self.db.execute(select(Profile).order_by(Profile.created_at.asc(), Profile.id.asc())).scalars().all()
            return [serialize_profile(p) for p in rows]

        return self._run("profiles", _q)

    def fetch_programs(self, start_from: Optional[str] = None, start_to: Optional[str] = None) -> list[dict[str, Any]]:
        """Programs by start timestamp; `start_to` is exclusive."""

        def _q():
            q = select(Program)
            if start_from:
                q = q.where(Program.start_date_time >= start_from)
            if start_to:
                q = q.where(Program.start_date_time < start_to)
            rows = self.db.execute(q.order_by(Program.start_date_time.asc())).scalars().all()
            return [serialize_program(p) for p in rows]

        return self._run("programs", _q)

    def fetch_assignments(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        end_from: Optional[str] = None,
        end_to: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Assignments joined with program and profile; `end_to` is exclusive."""

        def _q():
            q = (
                select(ProgramAssignment, Program, Profile)
                .outerjoin(Program, Program.id == ProgramAssignment.program_id)
                .outerjoin(Profile, Profile.id == ProgramAssignment.user_id)
            )
            if user_id:
                q = q.where(ProgramAssignment.user_id == user_id)
            if status:
                q = q.where(ProgramAssignment.status == status)
            if end_from:
                q = q.where(Program.end_date_time >= end_from)
            if end_to:
                q = q.where(Program.end_date_time < end_to)
            q = q.order_by(ProgramAssignment.created_at.asc(), ProgramAssignment.id.asc())
            return [serialize_assignment(a, prog, prof) for a, prog, prof in self.db.execute(q).all()]

        return self._run("assignments", _q)

    def fetch_evaluations(
        self,
        *,
        submitted_from: Optional[str] = None,
        submitted_to: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        def _q():
            q = select(Evaluation)
            if user_id:
                q = q.where(Evaluation.user_id == user_id)
            if submitted_from:
                q = q.where(Evaluation.submitted_at >= submitted_from)
            if submitted_to:
                q = q.where(Evaluation.submitted_at < submitted_to)
            rows = self.db.execute(q.order_by(Evaluation.submitted_at.desc())).scalars().all()
            return [serialize_evaluation(e) for e in rows]

        return self._run("evaluations", _q)

    def existing_evaluation_pairs(self, pairs: Iterable[tuple[str, str]]) -> set[tuple[str, str]]:
        """Which (user_id, program_id) pairs already have an evaluation, in one query."""

        wanted = {(str(u or ""), str(p or "")) for u, p in pairs or []}
        if not wanted:
            return set()
        user_ids = sorted({u for u, _p in wanted})
        program_ids = sorted({p for _u, p in wanted})

        def _q():
            rows = self.db.execute(
                select(Evaluation.user_id, Evaluation.program_id)
                .where(Evaluation.user_id.in_(user_ids))
                .where(Evaluation.program_id.in_(program_ids))
            ).all()
            return {(str(u), str(p)) for u, p in rows} & wanted

        return self._run("evaluations", _q)
