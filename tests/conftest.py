from __future__ import annotations

from typing import Any

import pytest

from reliefdesk.persistence.db import create_db_engine, make_session_factory
from reliefdesk.persistence.models import Base, Client, FundingOpportunity, Organization
from reliefdesk.persistence.repo import (
    ClientRepository,
    FundingOpportunityRepository,
    OrganizationRepository,
)

HOUSTON_ZIPS = {"type": "zipCode", "ranges": [{"min": 77001, "max": 77099}]}
LOW_INCOME = {"type": "income", "ranges": [{"min": 0, "max": 50000}]}


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_org(session, name: str = "Gulf Coast Recovery") -> Organization:
    return OrganizationRepository(session).create(name, email="help@example.org")


def make_client(
    session,
    name: str,
    address: str | None = None,
    zip_code: str | None = None,
    members: list[dict[str, Any]] | None = None,
    organization: Organization | None = None,
) -> Client:
    repo = ClientRepository(session)
    client = repo.create(name, email=f"{name.split()[0].lower()}@example.com",
                         organization_id=organization.id if organization else None)
    if address is not None or zip_code is not None:
        prop = repo.add_property(client.id, address or "", zip_code=zip_code)
        if members:
            group = repo.add_household_group(prop.id, f"{name} household")
            for member in members:
                repo.add_member(group.id, **member)
    return client


def make_opportunity(
    session,
    organization: Organization,
    name: str = "Home Repair Fund",
    criteria: list[dict[str, Any]] | None = None,
    status: str = "active",
) -> FundingOpportunity:
    return FundingOpportunityRepository(session).create(
        organization.id,
        name,
        description="Repairs for storm-damaged homes",
        status=status,
        award_amount=5000,
        eligibility_criteria=criteria if criteria is not None else [HOUSTON_ZIPS],
    )


@pytest.fixture
def org(session):
    org = make_org(session)
    session.commit()
    return org


@pytest.fixture
def houston_client(session):
    client = make_client(
        session,
        "Maria Lopez",
        address="412 Elm St, Houston, TX 77002",
        members=[
            {"name": "Maria Lopez", "annual_income": 28000, "qualifying_tags": ["disaster:harvey"]},
            {"name": "Ana Lopez", "annual_income": 4000, "qualifying_tags": ["veteran:no"]},
        ],
    )
    session.commit()
    return client


@pytest.fixture
def opportunity(session, org):
    opportunity = make_opportunity(session, org)
    session.commit()
    return opportunity
