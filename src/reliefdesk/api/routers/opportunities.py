"""Funding opportunity CRUD."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from reliefdesk.core.config.models import OpportunityStatus
from reliefdesk.core.logging import get_logger
from reliefdesk.core.matching import NotFoundError
from reliefdesk.persistence.repo import FundingOpportunityRepository, OrganizationRepository

from ..deps import get_db, require_actor
from ..schemas import OpportunityCreate, OpportunityUpdate, opportunity_fields, opportunity_to_dict

router = APIRouter(tags=["funding-opportunities"])

logger = get_logger("api.opportunities")


def _require(repo: FundingOpportunityRepository, opportunity_id: int):
    opportunity = repo.get_by_id(opportunity_id)
    if opportunity is None:
        raise NotFoundError("Funding opportunity", opportunity_id)
    return opportunity


@router.get("")
def list_opportunities(
    status: OpportunityStatus | None = None,
    organization_id: int | None = None,
    db: Session = Depends(get_db),
):
    repo = FundingOpportunityRepository(db)
    items = repo.list_opportunities(
        organization_id=organization_id,
        status=status.value if status else None,
    )
    return [opportunity_to_dict(o) for o in items]


@router.post("", status_code=201)
def create_opportunity(
    body: OpportunityCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(require_actor),
):
    if OrganizationRepository(db).get_by_id(body.organization_id) is None:
        raise NotFoundError("Organization", body.organization_id)

    fields = opportunity_fields(body)
    organization_id = fields.pop("organization_id")
    name = fields.pop("name")
    opportunity = FundingOpportunityRepository(db).create(organization_id, name, **fields)
    logger.info("Funding opportunity %s created by user %s", opportunity.id, actor_id)
    return opportunity_to_dict(opportunity)


@router.get("/{opportunity_id}")
def get_opportunity(opportunity_id: int, db: Session = Depends(get_db)):
    return opportunity_to_dict(_require(FundingOpportunityRepository(db), opportunity_id))


@router.patch("/{opportunity_id}")
def update_opportunity(
    opportunity_id: int,
    body: OpportunityUpdate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(require_actor),
):
    repo = FundingOpportunityRepository(db)
    opportunity = repo.update(_require(repo, opportunity_id), opportunity_fields(body))
    logger.info("Funding opportunity %s updated by user %s", opportunity.id, actor_id)
    return opportunity_to_dict(opportunity)


@router.delete("/{opportunity_id}", status_code=204)
def delete_opportunity(
    opportunity_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(require_actor),
):
    repo = FundingOpportunityRepository(db)
    _require(repo, opportunity_id)
    repo.delete(opportunity_id)
    logger.info("Funding opportunity %s deleted by user %s", opportunity_id, actor_id)
    return Response(status_code=204)
