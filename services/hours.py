from __future__ import annotations

import math
from datetime import date
from typing import Any, Iterable, Optional

from utils import parse_datetime_maybe


DEFAULT_TARGET_HOURS = 40

STATUS_ATTENDED = "Attended"

# Which assignments count toward hours. Every aggregator that totals hours takes
# one of these explicitly.
POLICY_ATTENDED = "ATTENDED"
POLICY_ALL_ASSIGNED = "ALL_ASSIGNED"
HOUR_POLICIES = {POLICY_ATTENDED, POLICY_ALL_ASSIGNED}

CATEGORIES = ("Technical", "Leadership", "Soft Skill", "Mandatory", "Others")
FALLBACK_CATEGORY = "Others"


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round like JavaScript's Math.round (x.5 goes up), not banker's rounding."""
    factor = 10 ** ndigits
    return math.floor(float(value) * factor + 0.5) / factor


def program_of(assignment: dict[str, Any]) -> dict[str, Any]:
    prog = (assignment or {}).get("program")
    return prog if isinstance(prog, dict) else {}


def program_hours(assignment: dict[str, Any]) -> float:
    raw = program_of(assignment).get("hours")
    if raw is None or isinstance(raw, bool):
        return 0.0
    try:
        hours = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(hours) or math.isinf(hours):
        return 0.0
    return hours


def category_of(program: Optional[dict[str, Any]]) -> str:
    category = str((program or {}).get("category") or FALLBACK_CATEGORY)
    return category if category in CATEGORIES else FALLBACK_CATEGORY


def program_end(assignment: dict[str, Any]):
    return parse_datetime_maybe(program_of(assignment).get("end_date_time"))


def is_attended(assignment: dict[str, Any]) -> bool:
    return str((assignment or {}).get("status") or "") == STATUS_ATTENDED


def _check_policy(policy: str) -> str:
    if policy not in HOUR_POLICIES:
        raise ValueError(f"Unknown hours policy: {policy!r}")
    return policy


def counts_toward_hours(assignment: dict[str, Any], *, policy: str) -> bool:
    if _check_policy(policy) == POLICY_ATTENDED:
        return is_attended(assignment)
    return True


def sum_attended_hours(assignments: Iterable[dict[str, Any]]) -> float:
    return sum((program_hours(a) for a in assignments or [] if is_attended(a)), 0.0)


def sum_all_assigned_hours(assignments: Iterable[dict[str, Any]]) -> float:
    return sum((program_hours(a) for a in assignments or []), 0.0)


def sum_hours(assignments: Iterable[dict[str, Any]], *, policy: str) -> float:
    if _check_policy(policy) == POLICY_ATTENDED:
        return sum_attended_hours(assignments)
    return sum_all_assigned_hours(assignments)


def compliance_percentage(completed_hours: float, target_hours: float = DEFAULT_TARGET_HOURS) -> int:
    try:
        target = float(target_hours or 0)
        completed = float(completed_hours or 0)
    except (TypeError, ValueError):
        return 0
    if target <= 0:
        return 0
    pct = int(round_half_up(completed / target * 100))
    return max(0, min(pct, 100))


def year_bounds(year: int) -> tuple[date, date]:
    return date(int(year), 1, 1), date(int(year), 12, 31)


def ended_in_year(assignment: dict[str, Any], year: int) -> bool:
    end = program_end(assignment)
    if end is None:
        return False
    start_d, end_d = year_bounds(year)
    return start_d <= end.date() <= end_d


def filter_year(assignments: Iterable[dict[str, Any]], year: int) -> list[dict[str, Any]]:
    return [a for a in assignments or [] if ended_in_year(a, year)]


def current_year_hours(assignments: Iterable[dict[str, Any]], as_of_year: int, *, policy: str) -> float:
    return sum_hours(filter_year(assignments, as_of_year), policy=policy)


def hours_by_category(assignments: Iterable[dict[str, Any]]) -> dict[str, float]:
    out: dict[str, float] = {c: 0.0 for c in CATEGORIES}
    for a in assignments or []:
        if not is_attended(a):
            continue
        out[category_of(program_of(a))] += program_hours(a)
    return out
