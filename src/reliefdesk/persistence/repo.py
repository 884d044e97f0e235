"""
Repository pattern for database operations.

Provides clean abstractions for CRUD operations on domain models,
including joined match listings and status-change history.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import and_, func, select, update
from sqlalchemy.orm import Session, joinedload

from .models import (
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
    utcnow,
)


# =============================================================================
# Organization Repository
# =============================================================================


class OrganizationRepository:
    """Repository for Organization CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, organization_id: int) -> Organization | None:
        return self.session.get(Organization, organization_id)

    def create(self, name: str, **fields: Any) -> Organization:
        organization = Organization(name=name, **fields)
        self.session.add(organization)
        self.session.flush()
        return organization


# =============================================================================
# Client Repository
# =============================================================================


class ClientRepository:
    """Repository for clients and their properties and households."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, client_id: int) -> Client | None:
        """Get client by ID."""
        return self.session.get(Client, client_id)

    def get_all(self, organization_id: int | None = None) -> Sequence[Client]:
        """Get all clients, optionally for one organization."""
        stmt = select(Client)
        if organization_id is not None:
            stmt = stmt.where(Client.organization_id == organization_id)
        stmt = stmt.order_by(Client.id)
        return self.session.execute(stmt).scalars().all()

    def create(
        self,
        name: str,
        email: str | None = None,
        organization_id: int | None = None,
        phone: str | None = None,
    ) -> Client:
        client = Client(name=name, email=email, organization_id=organization_id, phone=phone)
        self.session.add(client)
        self.session.flush()
        return client

    def add_property(
        self,
        client_id: int,
        address: str,
        zip_code: str | None = None,
        **fields: Any,
    ) -> Property:
        prop = Property(client_id=client_id, address=address, zip_code=zip_code, **fields)
        self.session.add(prop)
        self.session.flush()
        return prop

    def add_household_group(self, property_id: int, name: str, type: str = "family") -> HouseholdGroup:
        group = HouseholdGroup(property_id=property_id, name=name, type=type)
        self.session.add(group)
        self.session.flush()
        return group

    def add_member(
        self,
        group_id: int,
        name: str,
        annual_income: float | None = None,
        qualifying_tags: list[str] | None = None,
    ) -> HouseholdMember:
        member = HouseholdMember(
            group_id=group_id,
            name=name,
            annual_income=annual_income,
            qualifying_tags=list(qualifying_tags or []),
        )
        self.session.add(member)
        self.session.flush()
        return member

    def get_properties(self, client_id: int) -> Sequence[Property]:
        stmt = select(Property).where(Property.client_id == client_id).order_by(Property.id)
        return self.session.execute(stmt).scalars().all()

    def get_household_members(self, client_id: int) -> Sequence[HouseholdMember]:
        """All members of all household groups at the client's properties."""
        stmt = (
            select(HouseholdMember)
            .join(HouseholdGroup, HouseholdMember.group_id == HouseholdGroup.id)
            .join(Property, HouseholdGroup.property_id == Property.id)
            .where(Property.client_id == client_id)
            .order_by(HouseholdMember.id)
        )
        return self.session.execute(stmt).scalars().all()


# =============================================================================
# Funding Opportunity Repository
# =============================================================================


class FundingOpportunityRepository:
    """Repository for FundingOpportunity CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, opportunity_id: int) -> FundingOpportunity | None:
        return self.session.get(FundingOpportunity, opportunity_id)

    def list_opportunities(
        self,
        organization_id: int | None = None,
        status: str | None = None,
        public_only: bool = False,
    ) -> Sequence[FundingOpportunity]:
        """List opportunities with filters."""
        stmt = select(FundingOpportunity)

        conditions = []
        if organization_id is not None:
            conditions.append(FundingOpportunity.organization_id == organization_id)
        if status is not None:
            conditions.append(FundingOpportunity.status == status)
        if public_only:
            conditions.append(FundingOpportunity.is_public == True)  # noqa: E712

        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(FundingOpportunity.id)
        return self.session.execute(stmt).scalars().all()

    def create(self, organization_id: int, name: str, **fields: Any) -> FundingOpportunity:
        opportunity = FundingOpportunity(organization_id=organization_id, name=name, **fields)
        self.session.add(opportunity)
        self.session.flush()
        return opportunity

    def update(self, opportunity: FundingOpportunity, fields: dict[str, Any]) -> FundingOpportunity:
        for key, value in fields.items():
            if hasattr(FundingOpportunity, key):
                setattr(opportunity, key, value)
        self.session.flush()
        return opportunity

    def delete(self, opportunity_id: int) -> bool:
        opportunity = self.get_by_id(opportunity_id)
        if opportunity:
            self.session.delete(opportunity)
            self.session.flush()
            return True
        return False


# =============================================================================
# Match Repository
# =============================================================================


class MatchRepository:
    """Repository for OpportunityMatch operations with status history."""

    def __init__(self, session: Session):
        self.session = session

    def _select(self):
        return select(OpportunityMatch).options(
            joinedload(OpportunityMatch.opportunity),
            joinedload(OpportunityMatch.client),
        )

    def get_by_id(self, match_id: int) -> OpportunityMatch | None:
        stmt = self._select().where(OpportunityMatch.id == match_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def get(self, opportunity_id: int, client_id: int) -> OpportunityMatch | None:
        """Get the match for an opportunity/client pair."""
        stmt = self._select().where(
            and_(
                OpportunityMatch.opportunity_id == opportunity_id,
                OpportunityMatch.client_id == client_id,
            )
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_matches(
        self,
        opportunity_id: int | None = None,
        client_id: int | None = None,
        status: str | None = None,
    ) -> Sequence[OpportunityMatch]:
        """List matches with opportunity and client joined, best score first."""
        stmt = self._select()

        conditions = []
        if opportunity_id is not None:
            conditions.append(OpportunityMatch.opportunity_id == opportunity_id)
        if client_id is not None:
            conditions.append(OpportunityMatch.client_id == client_id)
        if status is not None:
            conditions.append(OpportunityMatch.status == status)

        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(OpportunityMatch.match_score.desc(), OpportunityMatch.id)
        return self.session.execute(stmt).scalars().all()

    def existing_pairs(self) -> set[tuple[int, int]]:
        """All (opportunity_id, client_id) pairs that already have a match."""
        stmt = select(OpportunityMatch.opportunity_id, OpportunityMatch.client_id)
        return {(opp_id, client_id) for opp_id, client_id in self.session.execute(stmt).all()}

    def create(
        self,
        opportunity_id: int,
        client_id: int,
        match_score: float,
        match_criteria: dict[str, Any],
        status: str = "pending",
        **fields: Any,
    ) -> OpportunityMatch:
        match = OpportunityMatch(
            opportunity_id=opportunity_id,
            client_id=client_id,
            match_score=match_score,
            match_criteria=match_criteria,
            status=status,
            last_checked_at=utcnow(),
            **fields,
        )
        self.session.add(match)
        self.session.flush()
        return match

    def update_if_status(self, match_id: int, expected_status: str, fields: dict[str, Any]) -> bool:
        """Update a match only while it still has ``expected_status``.

        Returns:
            True if the row was updated, False if its status had changed
        """
        values = dict(fields)
        values.setdefault("updated_at", utcnow())
        stmt = (
            update(OpportunityMatch)
            .where(
                and_(
                    OpportunityMatch.id == match_id,
                    OpportunityMatch.status == expected_status,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return bool(result.rowcount)

    def touch_checked(self, opportunity_id: int, client_id: int) -> None:
        """Refresh last_checked_at on an existing match."""
        match = self.get(opportunity_id, client_id)
        if match is not None:
            match.last_checked_at = utcnow()

    def record_event(
        self,
        match_id: int,
        event_type: str,
        to_status: str,
        from_status: str | None = None,
        actor_id: int | None = None,
        message: str | None = None,
    ) -> MatchEvent:
        """Record a status change for a match."""
        event = MatchEvent(
            match_id=match_id,
            event_type=event_type,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            message=message,
        )
        self.session.add(event)
        self.session.flush()
        return event

    def get_events(
        self,
        match_id: int | None = None,
        event_type: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> Sequence[MatchEvent]:
        """Get match events with filters, newest first."""
        stmt = select(MatchEvent)

        conditions = []
        if match_id is not None:
            conditions.append(MatchEvent.match_id == match_id)
        if event_type is not None:
            conditions.append(MatchEvent.event_type == event_type)
        if since is not None:
            conditions.append(MatchEvent.created_at >= since)

        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(MatchEvent.created_at.desc(), MatchEvent.id.desc()).limit(limit)
        return self.session.execute(stmt).scalars().all()

    def count_by_status(self) -> dict[str, int]:
        """Count matches grouped by status."""
        stmt = select(
            OpportunityMatch.status,
            func.count(OpportunityMatch.id),
        ).group_by(OpportunityMatch.status)

        result = self.session.execute(stmt).all()
        return {status: count for status, count in result}


# =============================================================================
# Capital Source Repository
# =============================================================================


class CapitalSourceRepository:
    """Repository for a client's capital stack."""

    def __init__(self, session: Session):
        self.session = session

    def list_sources(self, client_id: int | None = None) -> Sequence[CapitalSource]:
        stmt = select(CapitalSource)
        if client_id is not None:
            stmt = stmt.where(CapitalSource.client_id == client_id)
        stmt = stmt.order_by(CapitalSource.id)
        return self.session.execute(stmt).scalars().all()

    def create(
        self,
        client_id: int | None,
        type: str,
        name: str,
        amount: float,
        status: str,
        description: str | None = None,
        funding_category: str | None = None,
    ) -> CapitalSource:
        if amount < 0:
            raise ValueError("Capital source amount must be non-negative")
        source = CapitalSource(
            client_id=client_id,
            type=type,
            name=name,
            amount=amount,
            status=status,
            description=description,
            funding_category=funding_category,
        )
        self.session.add(source)
        self.session.flush()
        return source

    def find(self, client_id: int, type: str, name: str, status: str) -> CapitalSource | None:
        stmt = select(CapitalSource).where(
            and_(
                CapitalSource.client_id == client_id,
                CapitalSource.type == type,
                CapitalSource.name == name,
                CapitalSource.status == status,
            )
        ).order_by(CapitalSource.id).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()


# =============================================================================
# Run Repository
# =============================================================================


class RunRepository:
    """Repository for MatchingRun operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, run_type: str = "manual") -> MatchingRun:
        """Create a new matching run."""
        run = MatchingRun(run_type=run_type, status="RUNNING", started_at=utcnow())
        self.session.add(run)
        self.session.flush()
        return run

    def get_by_id(self, run_id: int) -> MatchingRun | None:
        return self.session.get(MatchingRun, run_id)

    def complete(
        self,
        run_id: int,
        status: str = "COMPLETED",
        error_message: str | None = None,
    ) -> None:
        """Mark a run as complete."""
        run = self.get_by_id(run_id)
        if not run:
            return

        run.status = status
        run.finished_at = utcnow()
        run.error_message = error_message

    def get_recent(self, limit: int = 20) -> Sequence[MatchingRun]:
        stmt = (
            select(MatchingRun)
            .order_by(MatchingRun.started_at.desc(), MatchingRun.id.desc())
            .limit(limit)
        )
        return self.session.execute(stmt).scalars().all()
