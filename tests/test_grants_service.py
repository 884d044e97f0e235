from __future__ import annotations

import pytest
from sqlalchemy import text

from reliefdesk.core.lifecycle import InvalidTransition, MatchAction, MatchStatus
from reliefdesk.core.matching import (
    GrantNotice,
    GrantNoticeKind,
    GrantNotifier,
    GrantService,
    GrantValidationError,
    NotFoundError,
    run_matching,
)
from reliefdesk.persistence.repo import CapitalSourceRepository, MatchRepository

CASE_WORKER = 7


@pytest.fixture
def matched(session, opportunity, houston_client):
    run_matching(session)
    return opportunity, houston_client


@pytest.fixture
def service(session):
    return GrantService(session)


def test_apply_stamps_actor_and_time(session, service, matched):
    opportunity, client = matched

    match = service.apply(opportunity.id, client.id, CASE_WORKER)
    session.commit()

    assert match.status == "applied"
    assert match.applied_at is not None
    assert match.applied_by_id == CASE_WORKER

    events = MatchRepository(session).get_events(match_id=match.id)
    assert [(e.event_type, e.from_status, e.to_status) for e in events] == [("apply", "pending", "applied")]


def test_direct_application_without_prior_match(session, service, opportunity, houston_client):
    match = service.apply(opportunity.id, houston_client.id, CASE_WORKER)
    session.commit()

    assert match.status == "applied"
    assert match.match_score == 100
    assert match.match_criteria == {"direct_application": True}
    assert match.applied_by_id == CASE_WORKER

    events = MatchRepository(session).get_events(match_id=match.id)
    assert events[0].from_status is None
    assert events[0].message == "Direct application"


def test_apply_unknown_opportunity_or_client(service, houston_client, opportunity):
    with pytest.raises(NotFoundError, match="Funding opportunity not found"):
        service.apply(9999, houston_client.id, CASE_WORKER)
    with pytest.raises(NotFoundError, match="Survivor/client not found"):
        service.apply(opportunity.id, 9999, CASE_WORKER)


def test_award_before_apply_is_rejected(service, matched):
    opportunity, client = matched

    with pytest.raises(InvalidTransition) as exc_info:
        service.award(opportunity.id, client.id, 2500, CASE_WORKER)

    assert exc_info.value.current is MatchStatus.PENDING


def test_apply_twice_is_rejected(session, service, matched):
    opportunity, client = matched
    service.apply(opportunity.id, client.id, CASE_WORKER)
    session.commit()

    with pytest.raises(InvalidTransition) as exc_info:
        service.apply(opportunity.id, client.id, CASE_WORKER)

    assert exc_info.value.current is MatchStatus.APPLIED


def test_negative_award_is_rejected_before_any_change(session, service, matched):
    opportunity, client = matched
    service.apply(opportunity.id, client.id, CASE_WORKER)
    session.commit()

    with pytest.raises(GrantValidationError):
        service.award(opportunity.id, client.id, -1, CASE_WORKER)

    assert MatchRepository(session).get(opportunity.id, client.id).status == "applied"
    assert CapitalSourceRepository(session).list_sources(client.id) == []


def test_award_then_fund_moves_capital_source(session, service, matched):
    opportunity, client = matched
    service.apply(opportunity.id, client.id, CASE_WORKER)

    match = service.award(opportunity.id, client.id, 2500, CASE_WORKER, notes="Approved by board")
    session.commit()

    assert match.status == "awarded"
    assert match.award_amount == 2500
    assert match.notes == "Approved by board"
    assert match.awarded_by_id == CASE_WORKER

    [source] = CapitalSourceRepository(session).list_sources(client.id)
    assert source.type == "Grant"
    assert source.name == "Home Repair Fund Grant"
    assert source.status == "projected"
    assert source.amount == 2500
    assert source.funding_category == "individual_assistance"
    assert source.description == "Individual assistance grant from Home Repair Fund"

    match = service.fund(opportunity.id, client.id, CASE_WORKER)
    session.commit()

    assert match.status == "funded"
    assert match.funded_at is not None
    assert match.awarded_at <= match.funded_at
    [source] = CapitalSourceRepository(session).list_sources(client.id)
    assert source.status == "current"


def test_award_without_notes_keeps_existing_notes(session, service, matched):
    opportunity, client = matched
    service.update_match(opportunity.id, client.id, CASE_WORKER, notes="Called survivor")
    service.apply(opportunity.id, client.id, CASE_WORKER)

    match = service.award(opportunity.id, client.id, 1000, CASE_WORKER)

    assert match.notes == "Called survivor"


def test_award_with_empty_notes_keeps_existing_notes(session, service, matched):
    opportunity, client = matched
    service.update_match(opportunity.id, client.id, CASE_WORKER, notes="Called survivor")
    service.apply(opportunity.id, client.id, CASE_WORKER)

    match = service.award(opportunity.id, client.id, 1000, CASE_WORKER, notes="")

    assert match.notes == "Called survivor"


@pytest.mark.parametrize("amount", [float("inf"), float("-inf"), float("nan")])
def test_non_finite_award_is_rejected(session, service, matched, amount):
    opportunity, client = matched
    service.apply(opportunity.id, client.id, CASE_WORKER)
    session.commit()

    with pytest.raises(GrantValidationError):
        service.award(opportunity.id, client.id, amount, CASE_WORKER)

    assert MatchRepository(session).get(opportunity.id, client.id).status == "applied"
    assert CapitalSourceRepository(session).list_sources(client.id) == []


def test_fund_requires_award(service, session, matched):
    opportunity, client = matched
    service.apply(opportunity.id, client.id, CASE_WORKER)
    session.commit()

    with pytest.raises(InvalidTransition):
        service.fund(opportunity.id, client.id, CASE_WORKER)


def test_stale_status_fails_the_guard(session, service, matched):
    opportunity, client = matched
    match = MatchRepository(session).get(opportunity.id, client.id)
    assert match.status == "pending"

    # Another writer applies first
    session.connection().execute(
        text("UPDATE opportunity_matches SET status = 'applied' WHERE id = :id"),
        {"id": match.id},
    )

    with pytest.raises(InvalidTransition) as exc_info:
        service._transition(match, MatchAction.APPLY, CASE_WORKER)

    assert exc_info.value.current is MatchStatus.APPLIED
    assert MatchRepository(session).get_events(match_id=match.id) == []


def test_perform_reject_and_archive(session, service, matched):
    opportunity, client = matched

    match = service.perform(opportunity.id, client.id, MatchAction.REJECT, CASE_WORKER, notes="Moved away")
    assert match.status == "rejected"
    assert match.notes == "Moved away"

    match = service.perform(opportunity.id, client.id, MatchAction.ARCHIVE, CASE_WORKER)
    assert match.status == "archived"

    with pytest.raises(InvalidTransition):
        service.perform(opportunity.id, client.id, MatchAction.ARCHIVE, CASE_WORKER)


def test_perform_award_needs_amount(service, matched):
    opportunity, client = matched
    with pytest.raises(GrantValidationError):
        service.perform(opportunity.id, client.id, MatchAction.AWARD, CASE_WORKER)


def test_update_match_notes_only(session, service, matched):
    opportunity, client = matched

    match = service.update_match(opportunity.id, client.id, CASE_WORKER, notes="Left voicemail")

    assert match.status == "pending"
    assert match.notes == "Left voicemail"


def test_update_match_same_status_is_noop(session, service, matched):
    opportunity, client = matched

    match = service.update_match(opportunity.id, client.id, CASE_WORKER, status="pending")

    assert match.status == "pending"
    assert MatchRepository(session).get_events(match_id=match.id) == []


def test_update_match_cannot_go_back_to_pending(session, service, matched):
    opportunity, client = matched
    service.apply(opportunity.id, client.id, CASE_WORKER)

    with pytest.raises(InvalidTransition) as exc_info:
        service.update_match(opportunity.id, client.id, CASE_WORKER, status="pending")

    assert exc_info.value.current is MatchStatus.APPLIED
    assert exc_info.value.target is MatchStatus.PENDING


def test_update_match_award_requires_amount(service, matched):
    opportunity, client = matched
    service.apply(opportunity.id, client.id, CASE_WORKER)

    with pytest.raises(GrantValidationError):
        service.update_match(opportunity.id, client.id, CASE_WORKER, status="awarded")

    match = service.update_match(opportunity.id, client.id, CASE_WORKER, status="awarded", award_amount=800)
    assert match.status == "awarded"
    assert match.award_amount == 800


def test_update_match_rejects_amount_without_award(service, matched):
    opportunity, client = matched

    with pytest.raises(GrantValidationError):
        service.update_match(opportunity.id, client.id, CASE_WORKER, notes="x", award_amount=100)


def test_update_match_unknown_pair(service, opportunity, houston_client):
    with pytest.raises(NotFoundError, match="Match not found"):
        service.update_match(opportunity.id, houston_client.id, CASE_WORKER, notes="x")


class RecordingNotifier(GrantNotifier):
    def __init__(self):
        self.sent: list[GrantNotice] = []

    def send(self, notice):
        self.sent.append(notice)


def test_each_milestone_notifies_the_client(session, matched):
    opportunity, client = matched
    notifier = RecordingNotifier()
    service = GrantService(session, notifier=notifier)

    service.apply(opportunity.id, client.id, CASE_WORKER)
    service.award(opportunity.id, client.id, 2500, CASE_WORKER)
    service.fund(opportunity.id, client.id, CASE_WORKER)

    assert [n.kind for n in notifier.sent] == [
        GrantNoticeKind.APPLICATION_RECEIVED,
        GrantNoticeKind.AWARDED,
        GrantNoticeKind.FUNDED,
    ]
    assert {n.to for n in notifier.sent} == {"maria@example.com"}
    assert notifier.sent[0].amount is None
    assert notifier.sent[2].amount == 2500
    assert "$2,500.00" in notifier.sent[2].body
    assert notifier.sent[1].subject == "Congratulations! You've Been Awarded a Grant"


def test_direct_application_notifies_the_client(session, opportunity, houston_client):
    notifier = RecordingNotifier()

    GrantService(session, notifier=notifier).apply(opportunity.id, houston_client.id, CASE_WORKER)

    [notice] = notifier.sent
    assert notice.kind is GrantNoticeKind.APPLICATION_RECEIVED
    assert notice.grant_name == "Home Repair Fund"
    assert notice.client_name == "Maria Lopez"


def test_client_without_email_gets_no_notice(session, matched):
    opportunity, client = matched
    client.email = None
    session.commit()
    notifier = RecordingNotifier()
    service = GrantService(session, notifier=notifier)

    service.apply(opportunity.id, client.id, CASE_WORKER)
    service.award(opportunity.id, client.id, 2500, CASE_WORKER)
    service.fund(opportunity.id, client.id, CASE_WORKER)

    assert notifier.sent == []


def test_rejection_sends_no_notice(session, matched):
    opportunity, client = matched
    notifier = RecordingNotifier()

    GrantService(session, notifier=notifier).perform(opportunity.id, client.id, MatchAction.REJECT, CASE_WORKER)

    assert notifier.sent == []


def test_failed_delivery_keeps_the_transition(session, matched):
    class BrokenNotifier(GrantNotifier):
        def send(self, notice):
            raise ConnectionError("smtp down")

    opportunity, client = matched
    match = GrantService(session, notifier=BrokenNotifier()).apply(opportunity.id, client.id, CASE_WORKER)
    session.commit()

    assert match.status == "applied"
    assert MatchRepository(session).get(opportunity.id, client.id).status == "applied"
