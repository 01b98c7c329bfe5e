"""
Dashboard snapshots.

Each builder pulls records through a fetcher (services.records.RecordFetcher or
anything with the same methods), runs the pure aggregators and returns one
JSON-ready dict. Nothing is persisted; a fetch failure aborts the whole build.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from services.aggregations import department_compliance, hours_by_department, leaderboard, monthly_trend
from services.evaluation_summary import summarize_evaluations_or_none
from services.hours import (
    DEFAULT_TARGET_HOURS,
    POLICY_ALL_ASSIGNED,
    POLICY_ATTENDED,
    STATUS_ATTENDED,
    compliance_percentage,
    filter_year,
    hours_by_category,
    program_end,
    program_of,
    sum_hours,
)
from utils import parse_datetime_maybe


_log = logging.getLogger("dashboard")

UPCOMING_STATUSES = {"Assigned", "Registered"}


def _cfg_value(cfg, name: str, default):
    if cfg is None:
        return default
    value = getattr(cfg, name, None)
    return default if value is None else value


def _coarse_year_window(year: int) -> tuple[str, str]:
    # One day of slack each side; exact calendar filtering happens on parsed values.
    return f"{int(year) - 1}-12-31", f"{int(year) + 1}-01-02"


def _in_year(value: Any, year: int) -> bool:
    dt = parse_datetime_maybe(value)
    return dt is not None and dt.year == int(year)


def upcoming_programs(
    programs: list[dict[str, Any]],
    *,
    now: datetime,
    window_days: int = 7,
    limit: int = 5,
) -> list[dict[str, Any]]:
    """Programs starting within [now, now + window_days], soonest first."""

    horizon = now + timedelta(days=int(window_days))
    picked = []
    for p in programs or []:
        start = parse_datetime_maybe(p.get("start_date_time"))
        if start is None or start < now or start > horizon:
            continue
        picked.append((start, p))
    picked.sort(key=lambda t: t[0])
    return [p for _s, p in picked[: max(0, int(limit))]]


def overdue_evaluations(
    fetcher,
    *,
    now: datetime,
    grace_days: int = 3,
    candidate_limit: Optional[int] = 10,
) -> list[dict[str, Any]]:
    """
    Attended assignments whose program ended more than `grace_days` ago and that
    have no evaluation yet.

    Candidates are capped to `candidate_limit` (most recently ended first) before
    the evaluation check, so fewer than `candidate_limit` rows may come back even
    when more overdue ones exist. `candidate_limit=None` keeps every candidate.
    """

    cutoff = now - timedelta(days=int(grace_days))
    candidates = []
    for a in fetcher.fetch_assignments(status=STATUS_ATTENDED):
        end = program_end(a)
        if end is None or end >= cutoff:
            continue
        candidates.append((end, a))
    candidates.sort(key=lambda t: t[0], reverse=True)
    if candidate_limit is not None:
        candidates = candidates[: max(0, int(candidate_limit))]
    capped = [a for _e, a in candidates]
    if not capped:
        return []

    done = fetcher.existing_evaluation_pairs([(a["user_id"], a["program_id"]) for a in capped])
    return [a for a in capped if (a["user_id"], a["program_id"]) not in done]


def available_years(programs: list[dict[str, Any]], *, now: datetime) -> list[int]:
    years = {now.year}
    for p in programs or []:
        start = parse_datetime_maybe(p.get("start_date_time"))
        if start is not None:
            years.add(start.year)
    return sorted(years, reverse=True)


def build_admin_dashboard(fetcher, *, year: int, now: datetime, cfg=None) -> dict[str, Any]:
    target = float(_cfg_value(cfg, "TRAINING_TARGET_HOURS", DEFAULT_TARGET_HOURS))
    policy = POLICY_ALL_ASSIGNED
    lo, hi = _coarse_year_window(year)

    profiles = fetcher.fetch_profiles()
    all_programs = fetcher.fetch_programs()
    programs = [p for p in all_programs if _in_year(p.get("start_date_time"), year)]
    assignments = filter_year(fetcher.fetch_assignments(end_from=lo, end_to=hi), year)
    evaluations = [
        e
        for e in fetcher.fetch_evaluations(submitted_from=lo, submitted_to=hi)
        if _in_year(e.get("submitted_at"), year)
    ]

    participants = {str(a.get("user_id") or "") for a in assignments}
    total_hours = sum_hours(assignments, policy=policy)

    out = {
        "totalPrograms": len(programs),
        "totalParticipants": len(participants),
        "totalHours": total_hours,
        "compliancePercentage": compliance_percentage(total_hours, len(participants) * target),
        "upcomingPrograms": upcoming_programs(
            all_programs,
            now=now,
            window_days=_cfg_value(cfg, "UPCOMING_WINDOW_DAYS", 7),
            limit=_cfg_value(cfg, "UPCOMING_LIMIT", 5),
        ),
        "overdueEvaluations": overdue_evaluations(
            fetcher,
            now=now,
            grace_days=_cfg_value(cfg, "OVERDUE_GRACE_DAYS", 3),
            candidate_limit=_cfg_value(cfg, "OVERDUE_CANDIDATE_LIMIT", 10),
        ),
        "hoursByDepartment": hours_by_department(assignments, policy=policy, profiles=profiles),
        "departmentCompliance": department_compliance(
            assignments, policy=policy, profiles=profiles, target_hours=target
        ),
        "monthlyTrend": monthly_trend(assignments, policy=policy),
        "evaluationSummary": summarize_evaluations_or_none(evaluations),
        "leaderboard": leaderboard(
            profiles,
            assignments,
            policy=policy,
            size=_cfg_value(cfg, "LEADERBOARD_SIZE", 10),
            target_hours=target,
        )["topTen"],
        "selectedYear": int(year),
        "availableYears": available_years(all_programs, now=now),
    }
    _log.info(
        "admin dashboard year=%s programs=%s assignments=%s evaluations=%s",
        year,
        len(programs),
        len(assignments),
        len(evaluations),
    )
    return out


def _next_program(assignments: list[dict[str, Any]], now: datetime) -> Optional[dict[str, Any]]:
    best = None
    for a in assignments:
        if str(a.get("status") or "") not in UPCOMING_STATUSES:
            continue
        start = parse_datetime_maybe(program_of(a).get("start_date_time"))
        if start is None or start < now:
            continue
        if best is None or start < best[0]:
            best = (start, program_of(a))
    return best[1] if best else None


def build_employee_dashboard(fetcher, *, user_id: str, year: int, now: datetime, cfg=None) -> dict[str, Any]:
    target = float(_cfg_value(cfg, "TRAINING_TARGET_HOURS", DEFAULT_TARGET_HOURS))

    assignments = fetcher.fetch_assignments(user_id=user_id)
    in_year = filter_year(assignments, year)
    hours = sum_hours(in_year, policy=POLICY_ALL_ASSIGNED)

    flagged = [a for a in assignments if program_of(a).get("notify_for_evaluation") is True]
    done = fetcher.existing_evaluation_pairs([(a["user_id"], a["program_id"]) for a in flagged]) if flagged else set()
    pending = [a for a in flagged if (a["user_id"], a["program_id"]) not in done]

    return {
        "hoursThisYear": hours,
        "targetHours": target,
        "compliancePercentage": compliance_percentage(hours, target),
        "attendedHoursThisYear": sum_hours(in_year, policy=POLICY_ATTENDED),
        "nextProgram": _next_program(assignments, now),
        "pendingEvaluations": pending,
        "pendingEvaluationsCount": len(pending),
        "hoursByCategory": hours_by_category(in_year),
        "trainingHistory": in_year,
        "selectedYear": int(year),
    }


def build_leaderboard(fetcher, *, current_user_id: Optional[str], year: int, cfg=None) -> dict[str, Any]:
    lo, hi = _coarse_year_window(year)
    profiles = fetcher.fetch_profiles()
    assignments = filter_year(fetcher.fetch_assignments(end_from=lo, end_to=hi), year)
    return leaderboard(
        profiles,
        assignments,
        policy=POLICY_ALL_ASSIGNED,
        current_user_id=current_user_id,
        size=_cfg_value(cfg, "LEADERBOARD_SIZE", 10),
        target_hours=float(_cfg_value(cfg, "TRAINING_TARGET_HOURS", DEFAULT_TARGET_HOURS)),
    )


def build_evaluation_summary(fetcher, *, year: int) -> dict[str, Any]:
    lo, hi = _coarse_year_window(year)
    evaluations = [
        e
        for e in fetcher.fetch_evaluations(submitted_from=lo, submitted_to=hi)
        if _in_year(e.get("submitted_at"), year)
    ]
    return {"year": int(year), "summary": summarize_evaluations_or_none(evaluations)}
