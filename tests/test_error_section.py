from __future__ import annotations

import json
from pathlib import Path

from dash import no_update

from _meta.records import record_to_dict
from _sections.error_section import (
    ERRORS_KEY,
    SUBTYPES_KEY,
    _applied_payloads,
    _distribution_table,
    _last_write,
    _pending_snapshot,
    _restore_pending,
    _session_scope,
    apply_trigger,
)
from _helpers.graph import InteractionBridge


def _store(records):
    return [record_to_dict(r) for r in records]


def test_session_scope_tears_down(records) -> None:
    with _session_scope(_store(records), None, ["A", "B"]) as session:
        assert session.initialized
        assert session.expanded_categories == ["A"]
    assert not session.initialized


def test_controls_map_to_session_operations(records) -> None:
    with _session_scope(_store(records), {ERRORS_KEY: '["A", "B"]'}, []) as session:
        apply_trigger(session, {"type": "cat-toggle", "cat": "B"})
        assert session.selected_error_values == ["A"]

        apply_trigger(session, {"type": "cat-expand", "cat": "A"})
        apply_trigger(session, {"type": "sub-toggle", "key": "A::timeout"})
        assert session.selected_subtypes == ["A::timeout"]

        apply_trigger(session, {"type": "cat-expand", "cat": "A"})
        assert session.expanded_categories == []
        assert session.selected_subtypes == []

        apply_trigger(session, "sel-btn-none")
        assert session.selected_error_values == []
        apply_trigger(session, "sel-btn-reset")
        assert session.selected_error_values == ["A", "B"]

        apply_trigger(session, "sel-store-records")
        apply_trigger(session, None)
        assert session.selected_error_values == ["A", "B"]


def test_store_outputs_follow_storage_writes(records) -> None:
    with _session_scope(_store(records), {ERRORS_KEY: '["A", "B"]'}, []) as session:
        assert _last_write(session.storage, ERRORS_KEY) is no_update

        session.remove_error_value("A")
        session.remove_error_value("B")

        assert _last_write(session.storage, ERRORS_KEY) == "[]"
        assert _last_write(session.storage, SUBTYPES_KEY) is no_update
        assert _applied_payloads(session) == {ERRORS_KEY: "[]", SUBTYPES_KEY: "[]"}


def test_pending_hover_survives_the_store_round_trip(records) -> None:
    hovered = []
    with _session_scope(_store(records), None, []) as session:
        bridge = InteractionBridge(session, on_hover=lambda _r: None, on_select=lambda _r: None,
                                   clock=lambda: 100.0)
        bridge.on_segment_hover(bridge.records_for_segment("B"))
        pending = json.loads(json.dumps(_pending_snapshot(bridge)))

    assert pending["payload"] == ["b1", "b2", "b3", "b4"]

    with _session_scope(_store(records), None, []) as session:
        bridge = InteractionBridge(session, on_hover=hovered.append, on_select=lambda _r: None,
                                   clock=lambda: 101.0)
        _restore_pending(bridge, pending, {r.uuid: r for r in session.all_records})
        assert bridge.poll()

    assert [r.uuid for r in hovered[0]] == ["b1", "b2", "b3", "b4"]


def test_table_has_controls_for_each_row(records) -> None:
    with _session_scope(_store(records), {ERRORS_KEY: '["A"]'}, ["A"]) as session:
        table = _distribution_table(session.distribution(), session)

    rows = table.children[1:]
    assert len(rows) == 4
    assert [r.className for r in rows] == ["", "subtype", "subtype", "muted"]
    expand_button = rows[0].children[1].children
    assert expand_button.id == {"type": "cat-expand", "cat": "A"}
    assert rows[3].children[1].children == ""


def test_create_app_builds_layout(tmp_path: Path) -> None:
    from app import create_app

    app = create_app(feed_path=str(tmp_path / "feed.json"), cache_path=str(tmp_path / "cache.json"))

    assert app.layout is not None
    assert any("sel-store-errors" in key for key in app.callback_map)
