from __future__ import annotations

from dataclasses import dataclass

from reliefdesk.core.lifecycle import ALL_TAB, TAB_ORDER, filter_matches, partition_by_tab, tab_counts


@dataclass
class Row:
    status: str
    opportunity_name: str | None = "Home Repair Fund"
    client_name: str | None = "Maria Lopez"


ROWS = [
    Row("pending"),
    Row("pending", opportunity_name="Rental Assistance"),
    Row("notified"),
    Row("applied", client_name="James Carter"),
    Row("awarded"),
    Row("funded"),
    Row("rejected"),
    Row("archived"),
    Row("archived", client_name="James Carter"),
]


def test_status_tabs_partition_all_without_overlap():
    tabs = partition_by_tab(ROWS)

    live_tabs = [tab for tab in TAB_ORDER if tab not in (ALL_TAB, "archived")]
    seen = [id(row) for tab in live_tabs for row in tabs[tab]]

    assert len(seen) == len(set(seen))
    assert sorted(seen) == sorted(id(row) for row in tabs[ALL_TAB])


def test_archived_only_in_archived_tab():
    tabs = partition_by_tab(ROWS)

    archived = [row for row in ROWS if row.status == "archived"]
    assert tabs["archived"] == archived
    for tab in TAB_ORDER:
        if tab != "archived":
            assert not any(row.status == "archived" for row in tabs[tab])


def test_tab_counts():
    counts = tab_counts(ROWS)
    assert counts[ALL_TAB] == 7
    assert counts["pending"] == 2
    assert counts["archived"] == 2


def test_filter_all_hides_archived():
    result = filter_matches(ROWS, status="all")
    assert len(result) == 7
    assert all(row.status != "archived" for row in result)


def test_filter_by_status_and_search():
    assert len(filter_matches(ROWS, status="archived")) == 2
    assert filter_matches(ROWS, search="rental") == [ROWS[1]]
    assert filter_matches(ROWS, search="JAMES", status="archived") == [ROWS[8]]


def test_filter_without_status_keeps_archived():
    result = filter_matches(ROWS, search="james", status=None)
    assert result == [ROWS[3], ROWS[8]]
