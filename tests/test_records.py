from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from db import SessionLocal
from services.records import FetchFailure, RecordFetcher


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class _DownDb:
    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_fetch_assignments_joins_program_and_profile(app_client, seed):
    uid = seed.profile(name="Tono", email="tono@example.com", department="Legal")
    pid = seed.program(title="GDPR", start=_utc(2024, 2, 1, 9), end=_utc(2024, 2, 1, 12), hours=3, category="Mandatory")
    seed.assignment(user_id=uid, program_id=pid, status="Attended")

    with SessionLocal() as db:
        rows = RecordFetcher(db).fetch_assignments(user_id=uid)

    assert len(rows) == 1
    a = rows[0]
    assert a["status"] == "Attended"
    assert a["program"]["hours"] == 3
    assert a["program"]["category"] == "Mandatory"
    assert a["program"]["end_date_time"] == "2024-02-01T12:00:00.000Z"
    assert a["profile"]["department"] == "Legal"


def test_fetch_filters_by_status_and_end_window(app_client, seed):
    uid = seed.profile(name="Tono", email="tono@example.com")
    p23 = seed.program(title="Old", start=_utc(2023, 12, 31, 20), end=_utc(2023, 12, 31, 23), hours=3)
    p24 = seed.program(title="New", start=_utc(2024, 7, 1, 9), end=_utc(2024, 7, 1, 17), hours=8)
    seed.assignment(user_id=uid, program_id=p23, status="Attended")
    seed.assignment(user_id=uid, program_id=p24, status="Assigned")

    with SessionLocal() as db:
        f = RecordFetcher(db)
        in_window = f.fetch_assignments(end_from="2024-01-01", end_to="2025-01-01")
        attended = f.fetch_assignments(status="Attended")

    assert [a["program_id"] for a in in_window] == [p24]
    assert [a["program_id"] for a in attended] == [p23]


def test_assignment_with_missing_program_has_null_program(app_client, seed):
    uid = seed.profile(name="Tono", email="tono@example.com")
    seed.assignment(user_id=uid, program_id="deleted-program")

    with SessionLocal() as db:
        rows = RecordFetcher(db).fetch_assignments()

    assert rows[0]["program"] is None


def test_programs_and_evaluations(app_client, seed):
    uid = seed.profile(name="Tono", email="tono@example.com")
    p1 = seed.program(title="A", start=_utc(2024, 1, 5, 9), end=_utc(2024, 1, 5, 10), hours=1)
    p2 = seed.program(title="B", start=_utc(2025, 1, 5, 9), end=_utc(2025, 1, 5, 10), hours=1)
    seed.evaluation(user_id=uid, program_id=p1, answers={"q1": "BAGUS"}, submitted=_utc(2024, 1, 6))

    with SessionLocal() as db:
        f = RecordFetcher(db)
        programs = f.fetch_programs(start_from="2024-01-01", start_to="2025-01-01")
        evaluations = f.fetch_evaluations(user_id=uid)
        pairs = f.existing_evaluation_pairs([(uid, p1), (uid, p2), ("someone", p1)])

    assert [p["id"] for p in programs] == [p1]
    assert evaluations[0]["answers"] == {"q1": "BAGUS"}
    assert pairs == {(uid, p1)}


def test_existing_evaluation_pairs_empty_input_skips_query():
    assert RecordFetcher(_DownDb()).existing_evaluation_pairs([]) == set()


def test_database_errors_become_fetch_failures():
    f = RecordFetcher(_DownDb())

    with pytest.raises(FetchFailure) as ei:
        f.fetch_assignments(user_id="u1")
    assert ei.value.what == "assignments"
    assert ei.value.code == "FETCH_FAILED"
    assert ei.value.http_status == 502

    with pytest.raises(FetchFailure):
        f.fetch_profiles()
