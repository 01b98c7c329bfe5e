"""
Department, monthly and leaderboard roll-ups over assignment+program records.

All functions are single-pass reductions over already-fetched records and hold no
state between calls. Callers pick the hours policy (see services.hours).
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

from services.hours import (
    DEFAULT_TARGET_HOURS,
    compliance_percentage,
    counts_toward_hours,
    program_end,
    program_hours,
)


UNKNOWN_DEPARTMENT = "Unknown"
LEADERBOARD_NO_DEPARTMENT = "-"
UNKNOWN_NAME = "Unknown"

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _department_of(assignment: dict[str, Any], profiles_by_id: dict[str, dict[str, Any]]) -> str:
    profile = profiles_by_id.get(str(assignment.get("user_id") or ""))
    if profile is None:
        profile = assignment.get("profile") if isinstance(assignment.get("profile"), dict) else {}
    return str((profile or {}).get("department") or "").strip() or UNKNOWN_DEPARTMENT


def _index_profiles(profiles: Optional[Iterable[dict[str, Any]]]) -> dict[str, dict[str, Any]]:
    return {str(p.get("id") or ""): p for p in profiles or [] if str(p.get("id") or "")}


def hours_by_department(
    assignments: Iterable[dict[str, Any]],
    *,
    policy: str,
    profiles: Optional[Iterable[dict[str, Any]]] = None,
) -> dict[str, float]:
    by_id = _index_profiles(profiles)
    out: dict[str, float] = {}
    for a in assignments or []:
        if not counts_toward_hours(a, policy=policy):
            continue
        dept = _department_of(a, by_id)
        out[dept] = out.get(dept, 0.0) + program_hours(a)
    return out


def department_compliance(
    assignments: Iterable[dict[str, Any]],
    *,
    policy: str,
    profiles: Optional[Iterable[dict[str, Any]]] = None,
    target_hours: float = DEFAULT_TARGET_HOURS,
) -> list[dict[str, Any]]:
    """
    Per-department compliance.

    The department comes from the owning profile (from `profiles` when given,
    else the assignment's joined `profile`). Employee count is the number of
    distinct user_ids with any assignment in that department, whatever the
    policy; the policy only decides which hours are summed. Output is sorted
    by compliance, highest first; ties keep first-seen order.
    """

    by_id = _index_profiles(profiles)
    hours: dict[str, float] = {}
    employees: dict[str, set[str]] = {}

    for a in assignments or []:
        dept = _department_of(a, by_id)
        employees.setdefault(dept, set()).add(str(a.get("user_id") or ""))
        hours.setdefault(dept, 0.0)
        if counts_toward_hours(a, policy=policy):
            hours[dept] += program_hours(a)

    rows = []
    for dept, total in hours.items():
        count = len(employees.get(dept) or ())
        target = count * float(target_hours or 0)
        rows.append(
            {
                "department": dept,
                "employeeCount": count,
                "totalHours": total,
                "targetHours": target,
                "compliancePercentage": compliance_percentage(total, target),
            }
        )
    rows.sort(key=lambda r: r["compliancePercentage"], reverse=True)
    return rows


def monthly_trend(assignments: Iterable[dict[str, Any]], *, policy: str) -> list[dict[str, Any]]:
    buckets: list[dict[str, Any]] = [{"hours": 0.0, "programs": set()} for _ in range(12)]

    for a in assignments or []:
        if not counts_toward_hours(a, policy=policy):
            continue
        end = program_end(a)
        if end is None:
            continue
        b = buckets[end.month - 1]
        b["hours"] += program_hours(a)
        program_id = str(a.get("program_id") or "")
        if program_id:
            b["programs"].add(program_id)

    return [
        {"month": MONTH_NAMES[i], "monthNum": i + 1, "hours": b["hours"], "programs": len(b["programs"])}
        for i, b in enumerate(buckets)
    ]


def rank_users(
    profiles: Iterable[dict[str, Any]],
    assignments: Iterable[dict[str, Any]],
    *,
    policy: str,
    target_hours: float = DEFAULT_TARGET_HOURS,
    current_user_id: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Every profile, ranked by hours (highest first, ties in profile order)."""

    hours_by_user: dict[str, float] = {}
    for a in assignments or []:
        if not counts_toward_hours(a, policy=policy):
            continue
        uid = str(a.get("user_id") or "")
        hours_by_user[uid] = hours_by_user.get(uid, 0.0) + program_hours(a)

    entries = []
    for p in profiles or []:
        uid = str(p.get("id") or "")
        completed = hours_by_user.get(uid, 0.0)
        entries.append(
            {
                "userId": uid,
                "name": str(p.get("name") or "") or UNKNOWN_NAME,
                "department": str(p.get("department") or "") or LEADERBOARD_NO_DEPARTMENT,
                "hoursCompleted": completed,
                "compliancePercentage": compliance_percentage(completed, target_hours),
            }
        )
    entries.sort(key=lambda e: e["hoursCompleted"], reverse=True)

    cur = str(current_user_id or "")
    for i, e in enumerate(entries):
        e["rank"] = i + 1
        e["isCurrentUser"] = bool(cur) and e["userId"] == cur
    return entries


def leaderboard(
    profiles: Iterable[dict[str, Any]],
    assignments: Iterable[dict[str, Any]],
    *,
    policy: str,
    current_user_id: Optional[str] = None,
    size: int = 10,
    target_hours: float = DEFAULT_TARGET_HOURS,
) -> dict[str, Any]:
    ranked = rank_users(profiles, assignments, policy=policy, target_hours=target_hours, current_user_id=current_user_id)
    top = ranked[: max(0, int(size))]

    cur = str(current_user_id or "")
    in_top = bool(cur) and any(e["userId"] == cur for e in top)
    current_entry = None
    if cur and not in_top:
        current_entry = next((e for e in ranked if e["userId"] == cur), None)

    return {"topTen": top, "currentUserEntry": current_entry, "isCurrentUserInTopTen": in_top}
