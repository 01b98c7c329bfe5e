from __future__ import annotations

import json
from typing import Any, Iterable, Optional

from services.hours import round_half_up


SCORE_MAP = {"LEMAH": 1, "SEDERHANA": 2, "BAGUS": 3}
QUESTION_KEYS = tuple(f"q{i}" for i in range(1, 10))


def answers_of(evaluation: dict[str, Any]) -> dict[str, Any]:
    raw = (evaluation or {}).get("answers")
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip().startswith("{"):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def summarize_evaluations(evaluations: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """
    Average score per question (LEMAH=1, SEDERHANA=2, BAGUS=3), 2 dp.

    Missing or unrecognised answers are left out of that question's average rather
    than scored as zero. `totalResponses` counts evaluation records.
    """

    totals = {k: 0 for k in QUESTION_KEYS}
    counts = {k: 0 for k in QUESTION_KEYS}
    total_responses = 0

    for ev in evaluations or []:
        total_responses += 1
        answers = answers_of(ev)
        for key in QUESTION_KEYS:
            score = SCORE_MAP.get(str(answers.get(key) or ""))
            if score:
                totals[key] += score
                counts[key] += 1

    out: dict[str, Any] = {}
    for key in QUESTION_KEYS:
        out[key] = round_half_up(totals[key] / counts[key], 2) if counts[key] else 0
    out["totalResponses"] = total_responses
    return out


def summarize_evaluations_or_none(evaluations: Optional[list[dict[str, Any]]]) -> Optional[dict[str, Any]]:
    if not evaluations:
        return None
    return summarize_evaluations(evaluations)
