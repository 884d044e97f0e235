"""Survivor capital stack."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from reliefdesk.core.matching import NotFoundError
from reliefdesk.persistence.repo import CapitalSourceRepository, ClientRepository

from ..deps import get_db
from ..schemas import capital_source_to_dict

router = APIRouter(tags=["survivors"])


@router.get("/survivors/{client_id}/capital-sources")
def list_capital_sources(client_id: int, db: Session = Depends(get_db)):
    if ClientRepository(db).get_by_id(client_id) is None:
        raise NotFoundError("Survivor/client", client_id)
    sources = CapitalSourceRepository(db).list_sources(client_id=client_id)
    return [capital_source_to_dict(s) for s in sources]
