from __future__ import annotations

from datetime import datetime, timezone

from actions.helpers import append_audit, require_str
from models import Profile, ProposedTraining
from services.proposals import (
    find_proposal,
    get_proposal_year,
    is_proposal_period_open,
    list_proposals,
    serialize_proposal,
    set_entertained,
    upsert_proposal,
)
from utils import ApiError, AuthContext, parse_year


def _now() -> datetime:
    return datetime.now(timezone.utc)


def proposal_get_mine(data, auth: AuthContext | None, db, cfg):
    now = _now()
    year = parse_year((data or {}).get("year"), default=get_proposal_year(now))
    row = find_proposal(db, user_id=auth.userId, year=year)
    return {
        "year": year,
        "periodOpen": is_proposal_period_open(now),
        "proposal": serialize_proposal(row) if row else None,
    }


def proposal_submit(data, auth: AuthContext | None, db, cfg):
    now = _now()
    if not is_proposal_period_open(now):
        raise ApiError("FORBIDDEN", "Training proposals are only accepted in December and January", http_status=403)

    year = get_proposal_year(now)
    row = upsert_proposal(
        db,
        user_id=auth.userId,
        year=year,
        proposal_1=(data or {}).get("proposal1"),
        proposal_2=(data or {}).get("proposal2"),
    )
    append_audit(
        db,
        entityType="PROPOSAL",
        entityId=row.id,
        action="PROPOSAL_SUBMIT",
        stageTag="PROPOSAL",
        actor=auth,
        meta={"year": year},
    )
    return serialize_proposal(row)


def proposal_list(data, auth: AuthContext | None, db, cfg):
    year = parse_year((data or {}).get("year"), default=get_proposal_year(_now()))
    return {"year": year, "items": list_proposals(db, year=year)}


def proposal_entertain(data, auth: AuthContext | None, db, cfg):
    proposal_id = require_str(data, "proposalId")
    try:
        slot = int((data or {}).get("proposalNumber"))
    except (TypeError, ValueError):
        raise ApiError("BAD_REQUEST", "proposalNumber must be 1 or 2")
    entertained = (data or {}).get("isEntertained")
    if not isinstance(entertained, bool):
        raise ApiError("BAD_REQUEST", "isEntertained must be true or false")

    row = set_entertained(db, proposal_id=proposal_id, slot=slot, entertained=entertained, admin_id=auth.userId)
    append_audit(
        db,
        entityType="PROPOSAL",
        entityId=row.id,
        action="PROPOSAL_ENTERTAIN",
        toState=f"{slot}:{'Y' if entertained else 'N'}",
        stageTag="PROPOSAL",
        actor=auth,
    )
    return serialize_proposal(row, db.get(Profile, row.user_id))


def proposal_delete(data, auth: AuthContext | None, db, cfg):
    proposal_id = require_str(data, "proposalId")
    row = db.get(ProposedTraining, proposal_id)
    if row is None:
        raise ApiError("NOT_FOUND", "Proposal not found", http_status=404)
    db.delete(row)
    append_audit(
        db,
        entityType="PROPOSAL",
        entityId=proposal_id,
        action="PROPOSAL_DELETE",
        stageTag="PROPOSAL",
        actor=auth,
        meta={"userId": row.user_id, "year": row.year},
    )
    return {"deleted": True, "id": proposal_id}
