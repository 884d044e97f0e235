"""
SQLAlchemy ORM models for ReliefDesk.

Defines the complete database schema including:
- Organizations: Tenants operating the system
- Clients, Properties, Household groups/members: Survivor records used for matching
- FundingOpportunities: Grants with eligibility criteria
- OpportunityMatches: Client/opportunity pairs moving through the grant lifecycle
- MatchEvents: Status change history
- CapitalSources: A client's capital stack
- MatchingRuns: Matching engine execution logs
- RunLocks: Overlap protection for scheduled runs
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Base Class
# =============================================================================


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        dict[str, Any]: JSON,
        list[Any]: JSON,
    }


# =============================================================================
# Mixins
# =============================================================================


class TimestampMixin:
    """Mixin providing created_at and updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        default=None,
        onupdate=utcnow,
        nullable=True,
    )


# =============================================================================
# Organization Model
# =============================================================================


class Organization(Base, TimestampMixin):
    """Non-profit or agency operating an instance of the system."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)

    clients: Mapped[list["Client"]] = relationship("Client", back_populates="organization")
    opportunities: Mapped[list["FundingOpportunity"]] = relationship(
        "FundingOpportunity",
        back_populates="organization",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name='{self.name}')>"


# =============================================================================
# Client (Survivor) Models
# =============================================================================


class Client(Base, TimestampMixin):
    """Disaster-recovery program participant."""

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    organization: Mapped["Organization | None"] = relationship("Organization", back_populates="clients")
    properties: Mapped[list["Property"]] = relationship(
        "Property",
        back_populates="client",
        cascade="all, delete-orphan",
    )
    matches: Mapped[list["OpportunityMatch"]] = relationship(
        "OpportunityMatch",
        back_populates="client",
        cascade="all, delete-orphan",
    )
    capital_sources: Mapped[list["CapitalSource"]] = relationship(
        "CapitalSource",
        back_populates="client",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.name}')>"


class Property(Base, TimestampMixin):
    """A client's property; its zip code drives zip-based eligibility."""

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    zip_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="single_family")
    ownership_status: Mapped[str] = mapped_column(String(50), nullable=False, default="owner")
    primary_residence: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    client: Mapped["Client | None"] = relationship("Client", back_populates="properties")
    household_groups: Mapped[list["HouseholdGroup"]] = relationship(
        "HouseholdGroup",
        back_populates="property",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, client_id={self.client_id}, zip='{self.zip_code}')>"


class HouseholdGroup(Base, TimestampMixin):
    """Group of people living at a property."""

    __tablename__ = "household_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="family")

    property: Mapped["Property | None"] = relationship("Property", back_populates="household_groups")
    members: Mapped[list["HouseholdMember"]] = relationship(
        "HouseholdMember",
        back_populates="group",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<HouseholdGroup(id={self.id}, name='{self.name}')>"


class HouseholdMember(Base, TimestampMixin):
    """A household member; income and tags feed eligibility."""

    __tablename__ = "household_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("household_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    annual_income: Mapped[float | None] = mapped_column(Float, nullable=True)

    # "key:value" strings, e.g. "disaster:harvey" or "veteran:yes"
    qualifying_tags: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)

    group: Mapped["HouseholdGroup"] = relationship("HouseholdGroup", back_populates="members")

    def __repr__(self) -> str:
        return f"<HouseholdMember(id={self.id}, name='{self.name}')>"


# =============================================================================
# Funding Opportunity Model
# =============================================================================


class FundingOpportunity(Base, TimestampMixin):
    """Grant or assistance program clients can be matched against."""

    __tablename__ = "funding_opportunities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active", index=True)

    award_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    award_minimum: Mapped[float | None] = mapped_column(Float, nullable=True)
    award_maximum: Mapped[float | None] = mapped_column(Float, nullable=True)

    application_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    application_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    eligibility_criteria: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    organization: Mapped["Organization"] = relationship("Organization", back_populates="opportunities")
    matches: Mapped[list["OpportunityMatch"]] = relationship(
        "OpportunityMatch",
        back_populates="opportunity",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<FundingOpportunity(id={self.id}, name='{self.name}', status='{self.status}')>"


# =============================================================================
# Opportunity Match Model
# =============================================================================


class OpportunityMatch(Base, TimestampMixin):
    """A client paired with a funding opportunity, with its lifecycle status."""

    __tablename__ = "opportunity_matches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    opportunity_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("funding_opportunities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    match_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    match_criteria: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending", index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    award_amount: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Lifecycle timestamps, stamped by the server only
    last_checked_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    applied_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    awarded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    awarded_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    funded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    funded_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    opportunity: Mapped["FundingOpportunity"] = relationship("FundingOpportunity", back_populates="matches")
    client: Mapped["Client"] = relationship("Client", back_populates="matches")
    events: Mapped[list["MatchEvent"]] = relationship(
        "MatchEvent",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchEvent.created_at.desc()",
    )

    __table_args__ = (
        UniqueConstraint("opportunity_id", "client_id", name="uq_match_opportunity_client"),
        Index("ix_match_status_score", "status", "match_score"),
    )

    @property
    def opportunity_name(self) -> str | None:
        return self.opportunity.name if self.opportunity is not None else None

    @property
    def client_name(self) -> str | None:
        return self.client.name if self.client is not None else None

    def __repr__(self) -> str:
        return (
            f"<OpportunityMatch(id={self.id}, opp={self.opportunity_id}, "
            f"client={self.client_id}, status='{self.status}')>"
        )


# =============================================================================
# Match Event Model
# =============================================================================


class MatchEvent(Base):
    """Status change recorded for a match."""

    __tablename__ = "match_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("opportunity_matches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    message: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True,
    )

    match: Mapped["OpportunityMatch"] = relationship("OpportunityMatch", back_populates="events")

    def __repr__(self) -> str:
        return f"<MatchEvent(id={self.id}, type='{self.event_type}', match_id={self.match_id})>"


# =============================================================================
# Capital Source Model
# =============================================================================


class CapitalSource(Base, TimestampMixin):
    """A source of recovery funds in a client's capital stack."""

    __tablename__ = "capital_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)  # FEMA, Insurance, Grant
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(50), nullable=False)  # current, projected
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    funding_category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    client: Mapped["Client | None"] = relationship("Client", back_populates="capital_sources")

    def __repr__(self) -> str:
        return f"<CapitalSource(id={self.id}, name='{self.name}', status='{self.status}')>"


# =============================================================================
# Matching Run Model
# =============================================================================


class MatchingRun(Base):
    """Execution log for a matching engine run."""

    __tablename__ = "matching_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="manual",  # manual, scheduled
    )
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="RUNNING",
        index=True,
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True,
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    opportunities_checked: Mapped[int] = mapped_column(Integer, default=0)
    clients_checked: Mapped[int] = mapped_column(Integer, default=0)
    matches_new: Mapped[int] = mapped_column(Integer, default=0)
    matches_rechecked: Mapped[int] = mapped_column(Integer, default=0)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate run duration in seconds."""
        if self.finished_at and self.started_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def __repr__(self) -> str:
        return f"<MatchingRun(id={self.id}, status='{self.status}', new={self.matches_new})>"


# =============================================================================
# Lock Model (for overlap protection)
# =============================================================================


class RunLock(Base):
    """Named lock preventing overlapping matching runs."""

    __tablename__ = "run_locks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lock_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    holder_id: Mapped[str] = mapped_column(String(100), nullable=False)  # Process identifier

    def __repr__(self) -> str:
        return f"<RunLock(name='{self.lock_name}', holder='{self.holder_id}')>"
