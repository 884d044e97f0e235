from __future__ import annotations

import pytest

from reliefdesk.core.lifecycle import (
    TRANSITIONS,
    InvalidTransition,
    MatchAction,
    MatchStatus,
    available_actions,
    can_transition,
    check_transition,
    is_terminal,
    parse_status,
    secondary_actions,
)


def test_pending_offers_only_apply():
    assert available_actions("pending") == [MatchAction.APPLY]
    assert available_actions("notified") == [MatchAction.APPLY]


def test_applied_offers_only_award():
    assert available_actions("applied") == [MatchAction.AWARD]


def test_awarded_offers_only_fund():
    assert available_actions("awarded") == [MatchAction.FUND]


@pytest.mark.parametrize("status", ["funded", "rejected", "archived"])
def test_terminal_statuses_offer_no_primary_action(status):
    assert available_actions(status) == []
    assert is_terminal(status)


def test_happy_path_transitions():
    assert check_transition("pending", MatchAction.APPLY) is MatchStatus.APPLIED
    assert check_transition("applied", MatchAction.AWARD) is MatchStatus.AWARDED
    assert check_transition("awarded", MatchAction.FUND) is MatchStatus.FUNDED


def test_side_exits():
    assert check_transition("pending", MatchAction.NOTIFY) is MatchStatus.NOTIFIED
    assert check_transition("notified", MatchAction.APPLY) is MatchStatus.APPLIED
    assert check_transition("pending", MatchAction.REJECT) is MatchStatus.REJECTED
    assert check_transition("funded", MatchAction.ARCHIVE) is MatchStatus.ARCHIVED


def test_illegal_transition_reports_current_status():
    with pytest.raises(InvalidTransition) as exc_info:
        check_transition("pending", MatchAction.AWARD)

    assert exc_info.value.current is MatchStatus.PENDING
    assert exc_info.value.action is MatchAction.AWARD
    assert "Cannot award a match that is pending" in str(exc_info.value)


def test_fund_requires_award():
    assert not can_transition("applied", MatchAction.FUND)
    assert not can_transition("pending", MatchAction.FUND)


def test_archive_allowed_from_every_live_status():
    for status in MatchStatus:
        expected = status is not MatchStatus.ARCHIVED
        assert can_transition(status, MatchAction.ARCHIVE) is expected


def test_nothing_leads_back_to_pending():
    assert MatchStatus.PENDING not in TRANSITIONS.values()


def test_reject_only_before_application():
    assert secondary_actions("pending") == [MatchAction.REJECT, MatchAction.ARCHIVE]
    assert secondary_actions("applied") == [MatchAction.ARCHIVE]
    assert secondary_actions("archived") == []


def test_parse_status_normalizes_and_rejects_unknown():
    assert parse_status(" Applied ") is MatchStatus.APPLIED
    with pytest.raises(ValueError, match="Unknown match status"):
        parse_status("completed")
