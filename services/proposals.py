from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select

from models import Profile, ProposedTraining
from utils import ApiError, iso_utc_now, new_uuid


PROPOSAL_MONTHS = {12, 1}
MAX_PROPOSAL_LEN = 500


def is_proposal_period_open(now: datetime) -> bool:
    return now.month in PROPOSAL_MONTHS


def get_proposal_year(now: datetime) -> int:
    # December proposes for the coming year; January (and any other month) for the current one.
    return now.year + 1 if now.month == 12 else now.year


def _clean_text(value: Any, field: str) -> Optional[str]:
    s = str(value or "").strip()
    if len(s) > MAX_PROPOSAL_LEN:
        raise ApiError("BAD_REQUEST", f"{field} is too long")
    return s or None


def serialize_proposal(p: ProposedTraining, profile: Optional[Profile] = None) -> dict[str, Any]:
    out = {
        "id": p.id,
        "user_id": p.user_id,
        "year": int(p.year),
        "proposal_1": p.proposal_1,
        "proposal_2": p.proposal_2,
        "proposal_1_entertained": bool(p.proposal_1_entertained),
        "proposal_2_entertained": bool(p.proposal_2_entertained),
        "is_entertained": bool(p.proposal_1_entertained or p.proposal_2_entertained),
        "entertained_at": p.entertained_at or None,
        "entertained_by": p.entertained_by or None,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
    }
    if profile is not None:
        out["profile"] = {
            "id": profile.id,
            "name": profile.name,
            "email": profile.email,
            "department": profile.department or None,
        }
    return out


def find_proposal(db, *, user_id: str, year: int) -> Optional[ProposedTraining]:
    return (
        db.execute(select(ProposedTraining).where(ProposedTraining.user_id == user_id).where(ProposedTraining.year == int(year)))
        .scalars()
        .first()
    )


def upsert_proposal(db, *, user_id: str, year: int, proposal_1: Any, proposal_2: Any) -> ProposedTraining:
    p1 = _clean_text(proposal_1, "proposal1")
    p2 = _clean_text(proposal_2, "proposal2")
    if not p1 and not p2:
        raise ApiError("BAD_REQUEST", "At least one proposal is required")

    now = iso_utc_now()
    row = find_proposal(db, user_id=user_id, year=year)
    if row is None:
        row = ProposedTraining(
            id=new_uuid(),
            user_id=user_id,
            year=int(year),
            proposal_1_entertained=False,
            proposal_2_entertained=False,
            created_at=now,
        )
        db.add(row)
    row.proposal_1 = p1
    row.proposal_2 = p2
    row.updated_at = now
    return row


def set_entertained(db, *, proposal_id: str, slot: int, entertained: bool, admin_id: str) -> ProposedTraining:
    if slot not in (1, 2):
        raise ApiError("BAD_REQUEST", "proposalNumber must be 1 or 2")
    row = db.get(ProposedTraining, proposal_id)
    if row is None:
        raise ApiError("NOT_FOUND", "Proposal not found", http_status=404)

    if slot == 1:
        row.proposal_1_entertained = bool(entertained)
    else:
        row.proposal_2_entertained = bool(entertained)
    row.entertained_at = iso_utc_now()
    row.entertained_by = admin_id
    row.updated_at = row.entertained_at
    return row


def list_proposals(db, *, year: int) -> list[dict[str, Any]]:
    rows = db.execute(
        select(ProposedTraining, Profile)
        .outerjoin(Profile, Profile.id == ProposedTraining.user_id)
        .where(ProposedTraining.year == int(year))
        .order_by(ProposedTraining.created_at.desc(), ProposedTraining.id.asc())
    ).all()
    return [serialize_proposal(p, prof) for p, prof in rows]
