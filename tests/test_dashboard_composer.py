from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from services.dashboard import (
    available_years,
    build_admin_dashboard,
    build_employee_dashboard,
    build_leaderboard,
    overdue_evaluations,
    upcoming_programs,
)
from services.records import FetchFailure
from utils import to_iso_utc


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _iso(dt: datetime) -> str:
    return to_iso_utc(dt)


class FakeFetcher:
    """In-memory stand-in for services.records.RecordFetcher."""

    def __init__(self, profiles=None, programs=None, assignments=None, evaluations=None):
        self.profiles = profiles or []
        self.programs = programs or []
        self.assignments = assignments or []
        self.evaluations = evaluations or []
        self.pair_lookups = 0

    def fetch_profiles(self):
        return list(self.profiles)

    def fetch_programs(self, start_from=None, start_to=None):
        return list(self.programs)

    def fetch_assignments(self, *, user_id=None, status=None, end_from=None, end_to=None):
        rows = self.assignments
        if user_id:
            rows = [a for a in rows if a["user_id"] == user_id]
        if status:
            rows = [a for a in rows if a["status"] == status]
        return list(rows)

    def fetch_evaluations(self, *, submitted_from=None, submitted_to=None, user_id=None):
        return list(self.evaluations)

    def existing_evaluation_pairs(self, pairs):
        self.pair_lookups += 1
        have = {(e["user_id"], e["program_id"]) for e in self.evaluations}
        return {p for p in pairs if p in have}


class BrokenFetcher(FakeFetcher):
    def fetch_assignments(self, **kwargs):
        raise FetchFailure("assignments")


def _program(pid: str, *, start: datetime, end: datetime | None = None, hours: float = 8, category: str = "Technical", notify=False):
    return {
        "id": pid,
        "title": f"Program {pid}",
        "category": category,
        "hours": hours,
        "start_date_time": _iso(start),
        "end_date_time": _iso(end or start + timedelta(hours=hours)),
        "notify_for_evaluation": notify,
    }


def _assign(user_id: str, program: dict, status: str = "Attended", dept: str = "Eng"):
    return {
        "id": f"{user_id}:{program['id']}",
        "user_id": user_id,
        "program_id": program["id"],
        "status": status,
        "program": program,
        "profile": {"id": user_id, "name": user_id.upper(), "department": dept},
    }


def test_upcoming_programs_window_order_and_limit():
    programs = [
        _program("late", start=NOW + timedelta(days=8)),
        _program("past", start=NOW - timedelta(minutes=1)),
        _program("d3", start=NOW + timedelta(days=3)),
        _program("d1", start=NOW + timedelta(days=1)),
        _program("now", start=NOW),
        _program("d7", start=NOW + timedelta(days=7)),
    ]
    out = upcoming_programs(programs, now=NOW)
    assert [p["id"] for p in out] == ["now", "d1", "d3", "d7"]
    assert [p["id"] for p in upcoming_programs(programs, now=NOW, limit=2)] == ["now", "d1"]


def test_overdue_caps_candidates_before_filtering_existing_evaluations():
    assignments = []
    evaluations = []
    # 12 attended programs that ended 4..15 days ago; the 10 most recent are candidates.
    for i in range(12):
        p = _program(f"p{i}", start=NOW - timedelta(days=4 + i, hours=8), end=NOW - timedelta(days=4 + i))
        assignments.append(_assign("u1", p))
        if i < 3:
            evaluations.append({"user_id": "u1", "program_id": f"p{i}", "answers": {}})
    # Ended 2 days ago: inside the grace period.
    recent = _program("recent", start=NOW - timedelta(days=2, hours=8), end=NOW - timedelta(days=2))
    assignments.append(_assign("u1", recent))
    # Not attended.
    assignments.append(_assign("u2", _program("noshow", start=NOW - timedelta(days=30)), status="No-Show"))

    fetcher = FakeFetcher(assignments=assignments, evaluations=evaluations)
    out = overdue_evaluations(fetcher, now=NOW)

    # p0..p9 are the capped candidates; p0..p2 already evaluated; p10, p11 fall outside the cap.
    assert [a["program_id"] for a in out] == [f"p{i}" for i in range(3, 10)]
    assert fetcher.pair_lookups == 1


def test_overdue_without_candidate_limit_keeps_every_pair():
    assignments = [
        _assign("u1", _program(f"p{i}", start=NOW - timedelta(days=4 + i, hours=8), end=NOW - timedelta(days=4 + i)))
        for i in range(12)
    ]
    fetcher = FakeFetcher(assignments=assignments, evaluations=[{"user_id": "u1", "program_id": "p11", "answers": {}}])

    out = overdue_evaluations(fetcher, now=NOW, candidate_limit=None)

    assert [a["program_id"] for a in out] == [f"p{i}" for i in range(11)]


def test_overdue_empty_does_not_query_evaluations():
    fetcher = FakeFetcher()
    assert overdue_evaluations(fetcher, now=NOW) == []
    assert fetcher.pair_lookups == 0


def test_available_years_include_current_year_descending():
    programs = [
        _program("a", start=datetime(2022, 5, 1, tzinfo=timezone.utc)),
        _program("b", start=datetime(2025, 1, 3, tzinfo=timezone.utc)),
        _program("c", start=datetime(2022, 9, 1, tzinfo=timezone.utc)),
        {"id": "d", "start_date_time": ""},
    ]
    assert available_years(programs, now=NOW) == [2025, 2024, 2022]
    assert available_years([], now=NOW) == [2024]


def test_admin_dashboard_snapshot():
    p_jan = _program("jan", start=datetime(2024, 1, 10, 9, tzinfo=timezone.utc), hours=8)
    p_mar = _program("mar", start=datetime(2024, 3, 5, 9, tzinfo=timezone.utc), hours=16, category="Leadership")
    p_old = _program("old", start=datetime(2023, 3, 5, 9, tzinfo=timezone.utc), hours=100)
    p_soon = _program("soon", start=NOW + timedelta(days=2), hours=4)

    profiles = [
        {"id": "u1", "name": "Ana", "department": "Eng"},
        {"id": "u2", "name": "Bo", "department": "Eng"},
        {"id": "u3", "name": "Cy", "department": None},
    ]
    assignments = [
        _assign("u1", p_jan, "Attended"),
        _assign("u2", p_mar, "Assigned"),
        _assign("u1", p_old, "Attended"),
    ]
    evaluations = [
        {"user_id": "u1", "program_id": "jan", "answers": {"q1": "BAGUS"}, "submitted_at": "2024-01-12T10:00:00.000Z"},
        {"user_id": "u1", "program_id": "old", "answers": {"q1": "LEMAH"}, "submitted_at": "2023-03-08T10:00:00.000Z"},
    ]
    fetcher = FakeFetcher(profiles, [p_jan, p_mar, p_old, p_soon], assignments, evaluations)

    out = build_admin_dashboard(fetcher, year=2024, now=NOW)

    assert out["totalPrograms"] == 3
    assert out["totalParticipants"] == 2
    assert out["totalHours"] == 24
    assert out["compliancePercentage"] == 30  # 24 / 80
    assert [p["id"] for p in out["upcomingPrograms"]] == ["soon"]
    assert out["hoursByDepartment"] == {"Eng": 24}
    assert out["departmentCompliance"][0]["employeeCount"] == 2
    assert out["monthlyTrend"][0]["hours"] == 8
    assert out["monthlyTrend"][2]["hours"] == 16
    assert out["evaluationSummary"]["q1"] == 3
    assert out["evaluationSummary"]["totalResponses"] == 1
    assert [e["userId"] for e in out["leaderboard"]] == ["u2", "u1", "u3"]
    assert out["selectedYear"] == 2024
    assert out["availableYears"] == [2024, 2023]
    # Both attended programs already have an evaluation.
    assert [a["program_id"] for a in out["overdueEvaluations"]] == []


def test_admin_dashboard_without_evaluations_has_null_summary():
    out = build_admin_dashboard(FakeFetcher(), year=2024, now=NOW)
    assert out["evaluationSummary"] is None
    assert out["totalHours"] == 0
    assert out["compliancePercentage"] == 0
    assert len(out["monthlyTrend"]) == 12
    assert out["leaderboard"] == []


def test_admin_dashboard_propagates_fetch_failure():
    with pytest.raises(FetchFailure) as ei:
        build_admin_dashboard(BrokenFetcher(), year=2024, now=NOW)
    assert ei.value.http_status == 502
    assert ei.value.code == "FETCH_FAILED"


def test_employee_dashboard_snapshot():
    done = _program("done", start=datetime(2024, 2, 1, 9, tzinfo=timezone.utc), hours=8, notify=True)
    planned = _program("planned", start=datetime(2024, 9, 1, 9, tzinfo=timezone.utc), hours=16, category="Mandatory")
    sooner = _program("sooner", start=NOW + timedelta(days=3), hours=2, notify=True)
    other_year = _program("y23", start=datetime(2023, 5, 1, 9, tzinfo=timezone.utc), hours=30, notify=True)

    assignments = [
        _assign("me", done, "Attended"),
        _assign("me", planned, "Registered"),
        _assign("me", sooner, "Assigned"),
        _assign("me", other_year, "Attended"),
        _assign("someone", done, "Attended"),
    ]
    evaluations = [{"user_id": "me", "program_id": "y23", "answers": {}}]
    fetcher = FakeFetcher(assignments=assignments, evaluations=evaluations)

    out = build_employee_dashboard(fetcher, user_id="me", year=2024, now=NOW)

    assert out["hoursThisYear"] == 26
    assert out["attendedHoursThisYear"] == 8
    assert out["targetHours"] == 40
    assert out["compliancePercentage"] == 65
    assert out["nextProgram"]["id"] == "sooner"
    assert sorted(a["program_id"] for a in out["pendingEvaluations"]) == ["done", "sooner"]
    assert out["pendingEvaluationsCount"] == 2
    assert out["hoursByCategory"]["Technical"] == 8
    assert out["hoursByCategory"]["Mandatory"] == 0
    assert sorted(a["program_id"] for a in out["trainingHistory"]) == ["done", "planned", "sooner"]
    assert fetcher.pair_lookups == 1


def test_employee_dashboard_empty():
    out = build_employee_dashboard(FakeFetcher(), user_id="ghost", year=2024, now=NOW)
    assert out["hoursThisYear"] == 0
    assert out["nextProgram"] is None
    assert out["pendingEvaluations"] == []
    assert out["trainingHistory"] == []
    assert sum(out["hoursByCategory"].values()) == 0


def test_build_leaderboard_uses_year_window_and_config():
    class Cfg:
        LEADERBOARD_SIZE = 2
        TRAINING_TARGET_HOURS = 10

    p24 = _program("p24", start=datetime(2024, 4, 1, 9, tzinfo=timezone.utc), hours=5)
    p23 = _program("p23", start=datetime(2023, 4, 1, 9, tzinfo=timezone.utc), hours=50)
    profiles = [{"id": u, "name": u, "department": "Ops"} for u in ("a", "b", "c")]
    assignments = [_assign("c", p24), _assign("b", p24, "Assigned"), _assign("a", p23)]
    fetcher = FakeFetcher(profiles=profiles, assignments=assignments)

    out = build_leaderboard(fetcher, current_user_id="a", year=2024, cfg=Cfg())

    assert [e["userId"] for e in out["topTen"]] == ["b", "c"]
    assert out["topTen"][0]["compliancePercentage"] == 50
    assert out["currentUserEntry"]["rank"] == 3
    assert out["currentUserEntry"]["hoursCompleted"] == 0
    assert out["isCurrentUserInTopTen"] is False
