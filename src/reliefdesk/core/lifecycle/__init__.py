"""Match lifecycle - transition table and status views."""

from .states import (
    ACTION_TIMESTAMPS,
    PRIMARY_ACTIONS,
    STATUS_ACTIONS,
    InvalidTransition,
    MatchAction,
    MatchStatus,
    TRANSITIONS,
    available_actions,
    can_transition,
    check_transition,
    is_terminal,
    parse_status,
    secondary_actions,
)
from .views import ALL_TAB, TAB_ORDER, filter_matches, partition_by_tab, tab_counts

__all__ = [
    "ACTION_TIMESTAMPS",
    "PRIMARY_ACTIONS",
    "STATUS_ACTIONS",
    "InvalidTransition",
    "MatchAction",
    "MatchStatus",
    "TRANSITIONS",
    "available_actions",
    "can_transition",
    "check_transition",
    "is_terminal",
    "parse_status",
    "secondary_actions",
    "ALL_TAB",
    "TAB_ORDER",
    "filter_matches",
    "partition_by_tab",
    "tab_counts",
]
