from __future__ import annotations

import pytest

from _analytics.distribution import aggregate, chart_slices, total_in_scope
from _helpers.filter import filter_records
from _meta.taxonomy_extraction import build_taxonomy
from _state.selection_state import SelectionState


def _rows(records, categories, subtypes=(), expanded=(), order=None):
    tax = build_taxonomy(records)
    filtered = filter_records(records, SelectionState.of(categories, subtypes), tax)
    return aggregate(filtered, tax, expanded, order=order)


def test_percentages_are_shares_of_errors_in_scope(records) -> None:
    rows = _rows(records, ["A", "B"])

    assert [(r.name, r.count) for r in rows] == [("A", 6), ("B", 4)]
    assert [r.percentage for r in rows] == [pytest.approx(60.0), pytest.approx(40.0)]
    assert sum(r.percentage for r in rows) == pytest.approx(100.0)


def test_unselected_categories_stay_listed_with_zero(records) -> None:
    rows = _rows(records, ["B"])

    assert [(r.name, r.count, r.percentage) for r in rows] == [("A", 0, 0.0), ("B", 4, 100.0)]


def test_nothing_in_scope_gives_all_zero_rows(records) -> None:
    rows = _rows(records, [])

    assert [(r.count, r.percentage) for r in rows] == [(0, 0.0), (0, 0.0)]
    assert chart_slices(rows) == []


def test_expanded_category_is_followed_by_its_subtypes(records) -> None:
    rows = _rows(records, ["A", "B"], expanded=["A", "B"])

    assert [(r.name, r.is_subtype) for r in rows] == [
        ("A", False), ("timeout", True), ("denied", True), ("B", False),
    ]
    timeout = rows[1]
    assert timeout.parent == "A"
    assert timeout.key == "A::timeout"
    assert timeout.percentage == pytest.approx(30.0)
    assert timeout.share_of_parent == pytest.approx(50.0)


def test_subtype_counts_follow_the_selection(records) -> None:
    rows = _rows(records, ["A", "B"], subtypes=["A::timeout"], expanded=["A"])

    by_name = {r.name: r for r in rows}
    assert by_name["A"].count == 3
    assert by_name["timeout"].count == 3
    assert by_name["denied"].count == 0
    assert by_name["denied"].share_of_parent == 0.0
    assert sum(r.percentage for r in rows if not r.is_subtype) == pytest.approx(100.0)


def test_caller_order(records) -> None:
    assert [r.name for r in _rows(records, ["A", "B"], order=["B", "A"])] == ["B", "A"]
    assert [r.name for r in _rows(records, ["A", "B"], order="count")] == ["A", "B"]


def test_chart_slices_replace_expanded_parent(records) -> None:
    rows = _rows(records, ["A", "B"], subtypes=["A::timeout"], expanded=["A"])

    slices = chart_slices(rows)

    assert [(s.name, s.count) for s in slices] == [("timeout", 3), ("B", 4)]


def test_total_in_scope_ignores_resolved(records) -> None:
    assert total_in_scope(records) == 10


def test_row_dict_leaves_out_member_ids(records) -> None:
    row = _rows(records, ["A"], expanded=["A"])[1]

    assert "record_ids" not in row.as_dict()
    assert row.as_dict()["key"] == "A::timeout"
