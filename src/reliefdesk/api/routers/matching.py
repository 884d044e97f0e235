"""
Opportunity matching endpoints: listings, matching runs and the grant
application lifecycle (apply, award, fund).
"""

from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from reliefdesk.core.lifecycle import MatchStatus
from reliefdesk.core.matching import GrantService, MatchingEngine
from reliefdesk.core.scheduler.locks import MATCHING_LOCK, LockManager
from reliefdesk.persistence.repo import MatchRepository

from ..deps import get_db, require_actor
from ..schemas import AwardRequest, MatchUpdateRequest, match_to_dict

router = APIRouter(tags=["matching"])


# =============================================================================
# Listings
# =============================================================================


@router.get("/matches")
def list_matches(status: MatchStatus | None = None, db: Session = Depends(get_db)):
    matches = MatchRepository(db).list_matches(status=status.value if status else None)
    return [match_to_dict(m) for m in matches]


@router.get("/survivors/{client_id}/matches")
def list_client_matches(client_id: int, db: Session = Depends(get_db)):
    return [match_to_dict(m) for m in MatchRepository(db).list_matches(client_id=client_id)]


@router.get("/opportunities/{opportunity_id}/matches")
def list_opportunity_matches(opportunity_id: int, db: Session = Depends(get_db)):
    return [match_to_dict(m) for m in MatchRepository(db).list_matches(opportunity_id=opportunity_id)]


@router.get("/opportunities/{opportunity_id}/survivors/{client_id}/match")
def get_match(opportunity_id: int, client_id: int, db: Session = Depends(get_db)):
    return match_to_dict(GrantService(db).get_match(opportunity_id, client_id))


@router.patch("/opportunities/{opportunity_id}/survivors/{client_id}/match")
def update_match(
    opportunity_id: int,
    client_id: int,
    body: MatchUpdateRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(require_actor),
):
    match = GrantService(db).update_match(
        opportunity_id,
        client_id,
        actor_id,
        status=body.status.value if body.status else None,
        notes=body.notes,
        award_amount=body.award_amount,
    )
    return match_to_dict(match)


# =============================================================================
# Matching run
# =============================================================================


@router.post("/run")
def run_matching(
    request: Request,
    db: Session = Depends(get_db),
    actor_id: int = Depends(require_actor),
):
    holder_id = f"api-{actor_id}-{uuid4().hex[:8]}"
    locks = LockManager(db)
    if not locks.acquire(MATCHING_LOCK, holder_id, ttl_minutes=request.app.state.lock_ttl_minutes):
        raise HTTPException(status_code=409, detail="A matching run is already in progress")

    try:
        stats = MatchingEngine(db).run(run_type="manual")
    finally:
        locks.release(MATCHING_LOCK, holder_id)

    count = stats.matches_new
    return {
        "success": True,
        "message": f"Matching process completed successfully. Found {count} new matches.",
        "newMatchCount": count,
    }


# =============================================================================
# Grant lifecycle
# =============================================================================


@router.post("/apply/{opportunity_id}/survivors/{client_id}")
def apply_for_grant(
    opportunity_id: int,
    client_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(require_actor),
):
    match = GrantService(db).apply(opportunity_id, client_id, actor_id)
    return {
        "success": True,
        "message": "Grant application submitted successfully",
        "match": match_to_dict(match),
    }


@router.post("/award/{opportunity_id}/survivors/{client_id}")
def award_grant(
    opportunity_id: int,
    client_id: int,
    body: AwardRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(require_actor),
):
    match = GrantService(db).award(
        opportunity_id,
        client_id,
        body.award_amount,
        actor_id,
        notes=body.notes,
    )
    return {
        "success": True,
        "message": "Grant awarded successfully",
        "match": match_to_dict(match),
    }


@router.post("/fund/{opportunity_id}/survivors/{client_id}")
def fund_grant(
    opportunity_id: int,
    client_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(require_actor),
):
    match = GrantService(db).fund(opportunity_id, client_id, actor_id)
    return {
        "success": True,
        "message": "Grant marked as funded successfully",
        "match": match_to_dict(match),
    }
