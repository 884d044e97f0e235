"""
Grant application lifecycle service.

Every status change of a match goes through here: the transition table is
checked, the row is updated only if it still has the status that was
checked, the acting user and timestamp are stamped, a MatchEvent is
recorded, and the capital stack side effects of award and fund are applied.
"""

from __future__ import annotations

import math
from typing import Any

from sqlalchemy.orm import Session

from reliefdesk.core.config.models import CapitalSourceStatus, CapitalSourceType
from reliefdesk.core.lifecycle import (
    ACTION_TIMESTAMPS,
    STATUS_ACTIONS,
    InvalidTransition,
    MatchAction,
    MatchStatus,
    check_transition,
    parse_status,
)
from reliefdesk.core.logging import get_contextual_logger
from reliefdesk.persistence.models import Client, FundingOpportunity, OpportunityMatch, utcnow
from reliefdesk.persistence.repo import (
    CapitalSourceRepository,
    ClientRepository,
    FundingOpportunityRepository,
    MatchRepository,
)

from .notify import GrantNotice, GrantNoticeKind, GrantNotifier, LoggingNotifier

GRANT_FUNDING_CATEGORY = "individual_assistance"

# Column holding the acting user for each stamped action
_ACTOR_COLUMNS = {
    MatchAction.APPLY: "applied_by_id",
    MatchAction.AWARD: "awarded_by_id",
    MatchAction.FUND: "funded_by_id",
}


class NotFoundError(Exception):
    """Referenced opportunity, client or match does not exist."""

    def __init__(self, kind: str, identifier: Any):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found")


class GrantValidationError(ValueError):
    """Request data is not acceptable for the requested change."""


def grant_source_name(opportunity: FundingOpportunity) -> str:
    return f"{opportunity.name} Grant"


class GrantService:
    """Applies lifecycle actions to opportunity matches."""

    def __init__(self, session: Session, notifier: GrantNotifier | None = None) -> None:
        self.session = session
        self.notifier = notifier or LoggingNotifier()
        self.matches = MatchRepository(session)
        self.clients = ClientRepository(session)
        self.opportunities = FundingOpportunityRepository(session)
        self.capital = CapitalSourceRepository(session)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _require_opportunity(self, opportunity_id: int) -> FundingOpportunity:
        opportunity = self.opportunities.get_by_id(opportunity_id)
        if opportunity is None:
            raise NotFoundError("Funding opportunity", opportunity_id)
        return opportunity

    def _require_client(self, client_id: int) -> Client:
        client = self.clients.get_by_id(client_id)
        if client is None:
            raise NotFoundError("Survivor/client", client_id)
        return client

    def get_match(self, opportunity_id: int, client_id: int) -> OpportunityMatch:
        match = self.matches.get(opportunity_id, client_id)
        if match is None:
            raise NotFoundError("Match", (opportunity_id, client_id))
        return match

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _transition(
        self,
        match: OpportunityMatch,
        action: MatchAction,
        actor_id: int | None,
        fields: dict[str, Any] | None = None,
        message: str | None = None,
    ) -> OpportunityMatch:
        """Move ``match`` along ``action`` if the table allows it.

        The update is conditional on the status that was checked, so two
        concurrent requests cannot both pass the guard.

        Raises:
            InvalidTransition: If the action is not legal from the current status
        """
        current = parse_status(match.status)
        target = check_transition(current, action)

        values: dict[str, Any] = {"status": target.value}
        now = utcnow()
        if action in ACTION_TIMESTAMPS:
            values[ACTION_TIMESTAMPS[action]] = now
            values[_ACTOR_COLUMNS[action]] = actor_id
        values.update(fields or {})

        if not self.matches.update_if_status(match.id, current.value, values):
            self.session.refresh(match)
            raise InvalidTransition(action, parse_status(match.status))

        self.session.refresh(match)
        self.matches.record_event(
            match.id,
            event_type=action.value,
            from_status=current.value,
            to_status=target.value,
            actor_id=actor_id,
            message=message,
        )

        log = get_contextual_logger("grants", match_id=match.id, client_id=match.client_id)
        log.info("Match %s: %s -> %s (%s)", match.id, current.value, target.value, action.value)
        return match

    def _notify(
        self,
        kind: GrantNoticeKind,
        client: Client,
        opportunity: FundingOpportunity,
        match: OpportunityMatch,
    ) -> None:
        """Tell the client about a grant milestone; clients without an email are skipped.

        A failed delivery is logged and does not undo the status change.
        """
        if not client.email:
            return
        notice = GrantNotice(
            kind=kind,
            to=client.email,
            client_name=client.name,
            grant_name=opportunity.name,
            match_id=match.id,
            amount=match.award_amount,
            organization_id=opportunity.organization_id,
        )
        try:
            self.notifier.send(notice)
        except Exception:
            log = get_contextual_logger("grants", match_id=match.id, client_id=client.id)
            log.warning("Could not deliver %s notice", kind.value, exc_info=True)

    def apply(self, opportunity_id: int, client_id: int, actor_id: int | None) -> OpportunityMatch:
        """Submit a grant application.

        A pair with no match yet gets a direct application match, created
        already applied with score 100.
        """
        opportunity = self._require_opportunity(opportunity_id)
        client = self._require_client(client_id)

        match = self.matches.get(opportunity_id, client_id)
        if match is None:
            now = utcnow()
            match = self.matches.create(
                opportunity_id=opportunity_id,
                client_id=client_id,
                match_score=100,
                match_criteria={"direct_application": True},
                status=MatchStatus.APPLIED.value,
                applied_at=now,
                applied_by_id=actor_id,
            )
            self.matches.record_event(
                match.id,
                event_type=MatchAction.APPLY.value,
                from_status=None,
                to_status=MatchStatus.APPLIED.value,
                actor_id=actor_id,
                message="Direct application",
            )
            log = get_contextual_logger("grants", match_id=match.id, client_id=client_id)
            log.info("Direct application created for opportunity %s", opportunity_id)
            match = self.get_match(opportunity_id, client_id)
        else:
            match = self._transition(match, MatchAction.APPLY, actor_id)

        self._notify(GrantNoticeKind.APPLICATION_RECEIVED, client, opportunity, match)
        return match

    def award(
        self,
        opportunity_id: int,
        client_id: int,
        award_amount: float,
        actor_id: int | None,
        notes: str | None = None,
    ) -> OpportunityMatch:
        """Record a grant award and add it to the client's capital stack as projected.

        Raises:
            GrantValidationError: If award_amount is negative or not a finite number
            InvalidTransition: If the match has not been applied for
        """
        if award_amount is None or not math.isfinite(award_amount) or award_amount < 0:
            raise GrantValidationError("Award amount must be a non-negative number")

        opportunity = self._require_opportunity(opportunity_id)
        client = self._require_client(client_id)
        match = self.get_match(opportunity_id, client_id)

        fields: dict[str, Any] = {"award_amount": award_amount}
        if notes:
            fields["notes"] = notes

        match = self._transition(match, MatchAction.AWARD, actor_id, fields=fields)

        self.capital.create(
            client_id=client_id,
            type=CapitalSourceType.GRANT.value,
            name=grant_source_name(opportunity),
            amount=award_amount,
            status=CapitalSourceStatus.PROJECTED.value,
            description=f"Individual assistance grant from {opportunity.name}",
            funding_category=GRANT_FUNDING_CATEGORY,
        )
        self._notify(GrantNoticeKind.AWARDED, client, opportunity, match)
        return match

    def fund(self, opportunity_id: int, client_id: int, actor_id: int | None) -> OpportunityMatch:
        """Mark an awarded grant as funded; its projected capital source becomes current."""
        opportunity = self._require_opportunity(opportunity_id)
        client = self._require_client(client_id)
        match = self.get_match(opportunity_id, client_id)

        match = self._transition(match, MatchAction.FUND, actor_id)

        source = self.capital.find(
            client_id=client_id,
            type=CapitalSourceType.GRANT.value,
            name=grant_source_name(opportunity),
            status=CapitalSourceStatus.PROJECTED.value,
        )
        if source is not None:
            source.status = CapitalSourceStatus.CURRENT.value
            self.session.flush()
        self._notify(GrantNoticeKind.FUNDED, client, opportunity, match)
        return match

    def perform(
        self,
        opportunity_id: int,
        client_id: int,
        action: MatchAction,
        actor_id: int | None,
        notes: str | None = None,
    ) -> OpportunityMatch:
        """Run one of the actions that need no extra data (notify, reject, archive)."""
        if action is MatchAction.AWARD:
            raise GrantValidationError("Awarding requires an award amount")
        if action is MatchAction.APPLY:
            return self.apply(opportunity_id, client_id, actor_id)
        if action is MatchAction.FUND:
            return self.fund(opportunity_id, client_id, actor_id)

        match = self.get_match(opportunity_id, client_id)
        fields = {"notes": notes} if notes is not None else None
        return self._transition(match, action, actor_id, fields=fields)

    # -------------------------------------------------------------------------
    # Generic update
    # -------------------------------------------------------------------------

    def update_match(
        self,
        opportunity_id: int,
        client_id: int,
        actor_id: int | None,
        status: str | None = None,
        notes: str | None = None,
        award_amount: float | None = None,
    ) -> OpportunityMatch:
        """Update notes and, through the transition table, status.

        Setting the current status again is a no-op. ``award_amount`` is
        only accepted together with a change to ``awarded``.

        Raises:
            NotFoundError: If the match does not exist
            InvalidTransition: If the status change is not legal
            GrantValidationError: If award_amount is given without awarding
        """
        match = self.get_match(opportunity_id, client_id)

        target = parse_status(status) if status is not None else None
        current = parse_status(match.status)

        if target is not None and target is not current:
            action = STATUS_ACTIONS.get(target)
            if action is None:
                raise InvalidTransition(None, current, target)

            if action is MatchAction.AWARD:
                if award_amount is None:
                    raise GrantValidationError("awardAmount is required to award a grant")
                return self.award(opportunity_id, client_id, award_amount, actor_id, notes=notes)
            if award_amount is not None:
                raise GrantValidationError("awardAmount can only be set when awarding a grant")
            if action is MatchAction.APPLY:
                match = self.apply(opportunity_id, client_id, actor_id)
            elif action is MatchAction.FUND:
                match = self.fund(opportunity_id, client_id, actor_id)
            else:
                return self._transition(
                    match,
                    action,
                    actor_id,
                    fields={"notes": notes} if notes is not None else None,
                )
        elif award_amount is not None:
            raise GrantValidationError("awardAmount can only be set when awarding a grant")

        if notes is not None:
            match.notes = notes
            match.updated_at = utcnow()
            self.session.flush()
        return match
