"""Database persistence layer."""

from .db import create_db_engine, get_engine, get_session, init_db, make_session_factory
from .models import (
    Base,
    CapitalSource,
    Client,
    FundingOpportunity,
    HouseholdGroup,
    HouseholdMember,
    MatchEvent,
    MatchingRun,
    OpportunityMatch,
    Organization,
    Property,
    RunLock,
)
from .repo import (
    CapitalSourceRepository,
    ClientRepository,
    FundingOpportunityRepository,
    MatchRepository,
    OrganizationRepository,
    RunRepository,
)

__all__ = [
    "create_db_engine",
    "get_engine",
    "get_session",
    "init_db",
    "make_session_factory",
    "Base",
    "CapitalSource",
    "Client",
    "FundingOpportunity",
    "HouseholdGroup",
    "HouseholdMember",
    "MatchEvent",
    "MatchingRun",
    "OpportunityMatch",
    "Organization",
    "Property",
    "RunLock",
    "CapitalSourceRepository",
    "ClientRepository",
    "FundingOpportunityRepository",
    "MatchRepository",
    "OrganizationRepository",
    "RunRepository",
]
