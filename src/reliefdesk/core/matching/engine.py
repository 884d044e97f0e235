"""
Matching engine.

Pairs every active funding opportunity with every client, creating a
``pending`` match for each eligible pair that has no match yet. Existing
matches are only re-stamped, never re-scored, so a second run over
unchanged data creates nothing.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from reliefdesk.core.config.models import OpportunityStatus
from reliefdesk.core.lifecycle import MatchStatus
from reliefdesk.core.logging import get_contextual_logger, get_logger
from reliefdesk.persistence.models import Client, FundingOpportunity, utcnow
from reliefdesk.persistence.repo import (
    ClientRepository,
    FundingOpportunityRepository,
    MatchRepository,
    RunRepository,
)

from .criteria import ClientProfile, evaluate_eligibility, extract_zip

logger = get_logger("matching")


@dataclass
class MatchingStats:
    """Statistics for a matching run."""

    run_id: int | None = None
    opportunities_checked: int = 0
    clients_checked: int = 0
    matches_new: int = 0
    matches_rechecked: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "opportunities_checked": self.opportunities_checked,
            "clients_checked": self.clients_checked,
            "matches_new": self.matches_new,
            "matches_rechecked": self.matches_rechecked,
        }


class MatchingEngine:
    """Creates pending matches from opportunity eligibility criteria."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.clients = ClientRepository(session)
        self.opportunities = FundingOpportunityRepository(session)
        self.matches = MatchRepository(session)
        self.runs = RunRepository(session)

    def run(self, run_type: str = "manual") -> MatchingStats:
        """Execute one matching pass and record it as a MatchingRun.

        Args:
            run_type: Type of run (manual, scheduled)

        Returns:
            MatchingStats; ``matches_new`` is the newly created match count

        Raises:
            Exception: Any failure is recorded as FAILED and re-raised
        """
        run = self.runs.create(run_type=run_type)
        self.session.commit()

        log = get_contextual_logger("matching", run_id=run.id)
        log.info("Matching run started (%s)", run_type)

        stats = MatchingStats(run_id=run.id)
        try:
            self._execute(stats)
        except Exception as e:
            self.session.rollback()
            self.runs.complete(
                run.id,
                status="FAILED",
                error_message=f"{e}\n{traceback.format_exc()}",
            )
            self.session.commit()
            log.error("Matching run failed: %s", e)
            raise

        run.opportunities_checked = stats.opportunities_checked
        run.clients_checked = stats.clients_checked
        run.matches_new = stats.matches_new
        run.matches_rechecked = stats.matches_rechecked
        self.runs.complete(run.id, status="COMPLETED")
        self.session.commit()

        log.info(
            "Matching run finished: %d new, %d rechecked",
            stats.matches_new,
            stats.matches_rechecked,
        )
        return stats

    def _execute(self, stats: MatchingStats) -> None:
        opportunities = self.opportunities.list_opportunities(status=OpportunityStatus.ACTIVE.value)
        if not opportunities:
            logger.info("No active funding opportunities to match")
            return

        clients = self.clients.get_all()
        if not clients:
            logger.info("No clients to match")
            return

        stats.clients_checked = len(clients)
        existing = self.matches.existing_pairs()
        profiles: dict[int, ClientProfile] = {}

        for opportunity in opportunities:
            criteria = self._criteria_of(opportunity)
            if not criteria:
                continue
            stats.opportunities_checked += 1

            for client in clients:
                if (opportunity.id, client.id) in existing:
                    self.matches.touch_checked(opportunity.id, client.id)
                    stats.matches_rechecked += 1
                    continue

                profile = profiles.get(client.id)
                if profile is None:
                    profile = self.build_profile(client)
                    profiles[client.id] = profile

                result = evaluate_eligibility(profile, criteria)
                if not result.is_match:
                    continue

                self.matches.create(
                    opportunity_id=opportunity.id,
                    client_id=client.id,
                    match_score=result.score,
                    match_criteria=result.details,
                    status=MatchStatus.PENDING.value,
                )
                existing.add((opportunity.id, client.id))
                stats.matches_new += 1
                logger.debug(
                    "New match: opportunity %s / client %s (score %s)",
                    opportunity.id,
                    client.id,
                    result.score,
                )

    @staticmethod
    def _criteria_of(opportunity: FundingOpportunity) -> list[dict[str, Any]]:
        criteria = opportunity.eligibility_criteria
        if not isinstance(criteria, list):
            return []
        return [item for item in criteria if isinstance(item, dict)]

    def build_profile(self, client: Client) -> ClientProfile:
        """Gather zip code and household data for a client.

        Uses the client's first property. A zip code found in the address
        is written back to the property.
        """
        profile = ClientProfile(client_id=client.id)

        properties = self.clients.get_properties(client.id)
        if properties:
            prop = properties[0]
            if prop.zip_code:
                profile.zip_code = prop.zip_code
            else:
                found = extract_zip(prop.address)
                if found:
                    prop.zip_code = found
                    prop.updated_at = utcnow()
                    profile.zip_code = found

        members = self.clients.get_household_members(client.id)
        profile.household_size = len(members)
        profile.total_income = sum(float(m.annual_income or 0) for m in members)
        for member in members:
            profile.tags.update(str(tag) for tag in member.qualifying_tags or [])

        return profile


def run_matching(session: Session, run_type: str = "manual") -> int:
    """Run the matching engine and return the number of new matches."""
    return MatchingEngine(session).run(run_type=run_type).matches_new
