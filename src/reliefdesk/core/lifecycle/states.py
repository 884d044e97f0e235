"""
Grant-application lifecycle of an opportunity match.

The transition table is the single source of truth for which action is
legal from which status. The API service enforces it; the CLI only uses
it to decide which actions to offer.

    pending  --notify--> notified
    pending  --apply-->  applied      notified --apply--> applied
    applied  --award-->  awarded
    awarded  --fund-->   funded
    pending|notified --reject--> rejected
    any non-archived --archive--> archived
"""

from __future__ import annotations

from enum import Enum


class MatchStatus(str, Enum):
    """Status of an opportunity match."""

    PENDING = "pending"
    NOTIFIED = "notified"
    APPLIED = "applied"
    AWARDED = "awarded"
    FUNDED = "funded"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class MatchAction(str, Enum):
    """Actions that move a match between statuses."""

    NOTIFY = "notify"
    APPLY = "apply"
    AWARD = "award"
    FUND = "fund"
    REJECT = "reject"
    ARCHIVE = "archive"


# (action, from-status) -> to-status
TRANSITIONS: dict[tuple[MatchAction, MatchStatus], MatchStatus] = {
    (MatchAction.NOTIFY, MatchStatus.PENDING): MatchStatus.NOTIFIED,
    (MatchAction.APPLY, MatchStatus.PENDING): MatchStatus.APPLIED,
    (MatchAction.APPLY, MatchStatus.NOTIFIED): MatchStatus.APPLIED,
    (MatchAction.AWARD, MatchStatus.APPLIED): MatchStatus.AWARDED,
    (MatchAction.FUND, MatchStatus.AWARDED): MatchStatus.FUNDED,
    (MatchAction.REJECT, MatchStatus.PENDING): MatchStatus.REJECTED,
    (MatchAction.REJECT, MatchStatus.NOTIFIED): MatchStatus.REJECTED,
    **{
        (MatchAction.ARCHIVE, status): MatchStatus.ARCHIVED
        for status in MatchStatus
        if status is not MatchStatus.ARCHIVED
    },
}

# The one forward step a case worker takes from each status
PRIMARY_ACTIONS: dict[MatchStatus, MatchAction] = {
    MatchStatus.PENDING: MatchAction.APPLY,
    MatchStatus.NOTIFIED: MatchAction.APPLY,
    MatchStatus.APPLIED: MatchAction.AWARD,
    MatchStatus.AWARDED: MatchAction.FUND,
}

# Timestamp column stamped by the server when an action succeeds
ACTION_TIMESTAMPS: dict[MatchAction, str] = {
    MatchAction.APPLY: "applied_at",
    MatchAction.AWARD: "awarded_at",
    MatchAction.FUND: "funded_at",
}

# Status that the generic status-update endpoint maps to each action
STATUS_ACTIONS: dict[MatchStatus, MatchAction] = {
    MatchStatus.NOTIFIED: MatchAction.NOTIFY,
    MatchStatus.APPLIED: MatchAction.APPLY,
    MatchStatus.AWARDED: MatchAction.AWARD,
    MatchStatus.FUNDED: MatchAction.FUND,
    MatchStatus.REJECTED: MatchAction.REJECT,
    MatchStatus.ARCHIVED: MatchAction.ARCHIVE,
}


class InvalidTransition(Exception):
    """Requested action is not legal from the match's current status."""

    def __init__(
        self,
        action: MatchAction | None,
        current: MatchStatus,
        target: MatchStatus | None = None,
    ):
        self.action = action
        self.current = current
        self.target = target
        if action is not None:
            message = f"Cannot {action.value} a match that is {current.value}"
        else:
            target_name = target.value if target is not None else "?"
            message = f"Cannot move a match from {current.value} to {target_name}"
        super().__init__(message)


def parse_status(value: str | MatchStatus) -> MatchStatus:
    """Coerce a stored or user-supplied status string.

    Raises:
        ValueError: If the value is not a known status
    """
    if isinstance(value, MatchStatus):
        return value
    try:
        return MatchStatus(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown match status: {value!r}") from None


def can_transition(current: MatchStatus | str, action: MatchAction) -> bool:
    return (action, parse_status(current)) in TRANSITIONS


def check_transition(current: MatchStatus | str, action: MatchAction) -> MatchStatus:
    """Return the status ``action`` leads to from ``current``.

    Raises:
        InvalidTransition: If the table has no such edge
    """
    status = parse_status(current)
    target = TRANSITIONS.get((action, status))
    if target is None:
        raise InvalidTransition(action, status)
    return target


def available_actions(current: MatchStatus | str) -> list[MatchAction]:
    """Primary (forward) actions offered for a status.

    Pending and notified matches offer only apply, applied only award,
    awarded only fund, and terminal statuses nothing.
    """
    action = PRIMARY_ACTIONS.get(parse_status(current))
    return [action] if action is not None else []


def secondary_actions(current: MatchStatus | str) -> list[MatchAction]:
    """Housekeeping actions (reject, archive) legal from a status."""
    status = parse_status(current)
    return [
        action
        for action in (MatchAction.REJECT, MatchAction.ARCHIVE)
        if (action, status) in TRANSITIONS
    ]


def is_terminal(current: MatchStatus | str) -> bool:
    return not available_actions(current)
