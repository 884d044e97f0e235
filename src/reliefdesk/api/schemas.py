"""
Request models and JSON serializers for the REST API.

Wire keys are camelCase; Python attributes stay snake_case.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from reliefdesk.core.config.models import CriterionType, OpportunityStatus
from reliefdesk.core.lifecycle import MatchStatus
from reliefdesk.persistence.models import CapitalSource, FundingOpportunity, OpportunityMatch


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Matching
# =============================================================================


class AwardRequest(CamelModel):
    award_amount: float = Field(ge=0, allow_inf_nan=False)
    notes: str | None = None


class MatchUpdateRequest(CamelModel):
    status: MatchStatus | None = None
    notes: str | None = None
    award_amount: float | None = Field(default=None, ge=0, allow_inf_nan=False)


# =============================================================================
# Funding Opportunities
# =============================================================================


class RangeBound(BaseModel):
    min: float | None = None
    max: float | None = None


class EligibilityCriterion(BaseModel):
    """One eligibility rule; unknown extra keys are kept as-is."""

    model_config = ConfigDict(extra="allow")

    type: CriterionType
    ranges: list[RangeBound] | None = None
    events: list[str] | None = None
    key: str | None = None
    values: list[str] | None = None


class OpportunityCreate(CamelModel):
    organization_id: int
    name: str = Field(min_length=1, max_length=500)
    description: str = ""
    status: OpportunityStatus = OpportunityStatus.ACTIVE
    award_amount: float | None = Field(default=None, ge=0)
    award_minimum: float | None = Field(default=None, ge=0)
    award_maximum: float | None = Field(default=None, ge=0)
    application_start_date: date | None = None
    application_end_date: date | None = None
    eligibility_criteria: list[EligibilityCriterion] = Field(default_factory=list)
    is_public: bool = True


class OpportunityUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    status: OpportunityStatus | None = None
    award_amount: float | None = Field(default=None, ge=0)
    award_minimum: float | None = Field(default=None, ge=0)
    award_maximum: float | None = Field(default=None, ge=0)
    application_start_date: date | None = None
    application_end_date: date | None = None
    eligibility_criteria: list[EligibilityCriterion] | None = None
    is_public: bool | None = None


def opportunity_fields(model: OpportunityCreate | OpportunityUpdate) -> dict[str, Any]:
    """Column values from a create/update body, only for fields that were sent."""
    fields = model.model_dump(exclude_unset=True)
    if "status" in fields and fields["status"] is not None:
        fields["status"] = OpportunityStatus(fields["status"]).value
    if "eligibility_criteria" in fields and fields["eligibility_criteria"] is not None:
        fields["eligibility_criteria"] = [
            criterion.model_dump(mode="json", exclude_none=True)
            for criterion in (model.eligibility_criteria or [])
        ]
    return fields


# =============================================================================
# Serializers
# =============================================================================


def match_to_dict(match: OpportunityMatch) -> dict[str, Any]:
    opportunity = match.opportunity
    return {
        "id": match.id,
        "opportunityId": match.opportunity_id,
        "survivorId": match.client_id,
        "clientId": match.client_id,
        "opportunityName": match.opportunity_name,
        "survivorName": match.client_name,
        "status": match.status,
        "matchScore": match.match_score,
        "matchCriteria": match.match_criteria,
        "notes": match.notes,
        "awardAmount": match.award_amount,
        "applicationEndDate": opportunity.application_end_date if opportunity is not None else None,
        "appliedAt": match.applied_at,
        "awardedAt": match.awarded_at,
        "fundedAt": match.funded_at,
        "lastCheckedAt": match.last_checked_at,
        "createdAt": match.created_at,
        "updatedAt": match.updated_at,
    }


def opportunity_to_dict(opportunity: FundingOpportunity) -> dict[str, Any]:
    return {
        "id": opportunity.id,
        "organizationId": opportunity.organization_id,
        "name": opportunity.name,
        "description": opportunity.description,
        "status": opportunity.status,
        "awardAmount": opportunity.award_amount,
        "awardMinimum": opportunity.award_minimum,
        "awardMaximum": opportunity.award_maximum,
        "applicationStartDate": opportunity.application_start_date,
        "applicationEndDate": opportunity.application_end_date,
        "eligibilityCriteria": opportunity.eligibility_criteria,
        "isPublic": opportunity.is_public,
        "createdAt": opportunity.created_at,
        "updatedAt": opportunity.updated_at,
    }


def capital_source_to_dict(source: CapitalSource) -> dict[str, Any]:
    return {
        "id": source.id,
        "survivorId": source.client_id,
        "type": source.type,
        "name": source.name,
        "amount": source.amount,
        "status": source.status,
        "description": source.description,
        "fundingCategory": source.funding_category,
        "createdAt": source.created_at,
    }
