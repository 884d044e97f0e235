"""
Status tabs and list filtering for match listings.

Works on anything exposing ``status``, ``opportunity_name`` and
``client_name`` attributes (ORM rows, API client records).
"""

from __future__ import annotations

from typing import Iterable, Protocol, Sequence, TypeVar

from .states import MatchStatus, parse_status

ALL_TAB = "all"

# Display order of the status tabs
TAB_ORDER: tuple[str, ...] = (
    ALL_TAB,
    MatchStatus.PENDING.value,
    MatchStatus.NOTIFIED.value,
    MatchStatus.APPLIED.value,
    MatchStatus.AWARDED.value,
    MatchStatus.FUNDED.value,
    MatchStatus.REJECTED.value,
    MatchStatus.ARCHIVED.value,
)


class MatchLike(Protocol):
    status: str
    opportunity_name: str | None
    client_name: str | None


M = TypeVar("M", bound=MatchLike)


def partition_by_tab(matches: Iterable[M]) -> dict[str, list[M]]:
    """Group matches into status tabs.

    ``all`` holds every non-archived match; each status tab holds the
    matches with that status. Archived matches only ever land in the
    ``archived`` tab.
    """
    tabs: dict[str, list[M]] = {tab: [] for tab in TAB_ORDER}
    for match in matches:
        status = parse_status(match.status)
        tabs[status.value].append(match)
        if status is not MatchStatus.ARCHIVED:
            tabs[ALL_TAB].append(match)
    return tabs


def tab_counts(matches: Iterable[MatchLike]) -> dict[str, int]:
    return {tab: len(items) for tab, items in partition_by_tab(matches).items()}


def filter_matches(
    matches: Sequence[M],
    search: str | None = None,
    status: str | None = ALL_TAB,
) -> list[M]:
    """Filter a match list the way the list screen does.

    ``search`` is a case-insensitive substring of the opportunity or client
    name. ``status="all"`` keeps every status except archived; ``None``
    applies no status filter at all.
    """
    needle = (search or "").strip().lower()
    wanted = None if status in (None, ALL_TAB) else parse_status(status)

    result: list[M] = []
    for match in matches:
        if needle:
            names = f"{match.opportunity_name or ''}\n{match.client_name or ''}".lower()
            if needle not in names:
                continue

        current = parse_status(match.status)
        if wanted is None:
            if status == ALL_TAB and current is MatchStatus.ARCHIVED:
                continue
        elif current is not wanted:
            continue

        result.append(match)
    return result
