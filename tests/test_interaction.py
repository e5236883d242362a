from __future__ import annotations

import pytest

from _helpers.graph import InteractionBridge, _extract_hover, _hover_key
from _helpers.timer import CoalescingTimer
from _state.selection_session import SelectionSession, SessionNotInitializedError
from _state.storage import MemoryStorage


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


# ---------- CoalescingTimer ----------

def test_burst_delivers_only_the_last_payload() -> None:
    clock, fired = FakeClock(), []
    timer = CoalescingTimer(0.1, fired.append, clock=clock)

    timer.submit("first")
    clock.now = 0.05
    timer.submit("second")
    clock.now = 0.12
    assert not timer.poll()

    clock.now = 0.2
    assert timer.poll()
    assert fired == ["second"]
    assert not timer.pending
    assert not timer.poll()


def test_cancel_drops_pending_payload() -> None:
    clock, fired = FakeClock(), []
    timer = CoalescingTimer(0.1, fired.append, clock=clock)

    timer.submit("x")
    timer.cancel()
    clock.now = 1.0

    assert not timer.poll()
    assert fired == []
    assert timer.deadline is None


def test_flush_fires_immediately() -> None:
    fired = []
    timer = CoalescingTimer(10, fired.append, clock=FakeClock())

    assert not timer.flush()
    timer.submit([])
    assert timer.flush()
    assert fired == [[]]


def test_negative_delay_is_rejected() -> None:
    with pytest.raises(ValueError):
        CoalescingTimer(-1, print)


def test_snapshot_restores_into_a_new_timer() -> None:
    clock, fired = FakeClock(5.0), []
    timer = CoalescingTimer(0.1, fired.append, clock=clock)
    timer.submit(["r1"])
    snap = timer.snapshot()

    again = CoalescingTimer(0.1, fired.append, clock=clock)
    again.restore(snap)
    clock.now = 5.2

    assert snap == {"payload": ["r1"], "deadline": pytest.approx(5.1)}
    assert again.poll()
    assert fired == [["r1"]]
    again.restore(None)
    assert not again.pending


# ---------- hover payloads ----------

def test_extract_hover_reads_customdata() -> None:
    payload = {"points": [{"label": "A · timeout",
                           "customdata": {"name": "timeout", "parent": "A", "is_subtype": True}}]}
    wrapped = {"points": [{"customdata": [{"name": "B", "parent": None, "is_subtype": False}]}]}

    assert _extract_hover(payload) == ("timeout", "A", True)
    assert _extract_hover(wrapped) == ("B", None, False)
    assert _extract_hover({"points": [{"label": "C"}]}) == ("C", None, False)
    assert _extract_hover(None) == (None, None, None)
    assert _extract_hover({"points": []}) == (None, None, None)
    assert _hover_key(payload) == "A::timeout"
    assert _hover_key(wrapped) == "B"
    assert _hover_key(None) is None


# ---------- InteractionBridge ----------

def _bridge(records, clock):
    session = SelectionSession(MemoryStorage()).init(records)
    hovered, selected = [], []
    bridge = InteractionBridge(session, on_hover=hovered.append, on_select=selected.append,
                               delay=0.1, clock=clock)
    return session, bridge, hovered, selected


def test_hover_is_coalesced_then_delivered(records) -> None:
    clock = FakeClock()
    _, bridge, hovered, _ = _bridge(records, clock)

    bridge.on_segment_hover(bridge.records_for_segment("A"))
    bridge.on_segment_hover(bridge.records_for_segment("B"))
    assert not bridge.poll()

    clock.now = 0.2
    assert bridge.poll()
    assert len(hovered) == 1
    assert [r.uuid for r in hovered[0]] == ["b1", "b2", "b3", "b4"]


def test_empty_hover_is_ignored_and_leave_clears(records) -> None:
    clock = FakeClock()
    _, bridge, hovered, _ = _bridge(records, clock)

    bridge.on_segment_hover([])
    assert not bridge.timer.pending

    bridge.on_segment_leave()
    clock.now = 0.1
    assert bridge.poll()
    assert hovered == [[]]


def test_click_selects_immediately(records) -> None:
    _, bridge, _, selected = _bridge(records, FakeClock())

    bridge.on_segment_click(bridge.records_for_segment("timeout", "A", True))
    bridge.on_segment_click([])

    assert [[r.uuid for r in recs] for recs in selected] == [["a1", "a2", "a3"]]


def test_segment_lookup_respects_the_filter(records) -> None:
    session, bridge, _, _ = _bridge(records, FakeClock())
    session.add_subtype("A::denied")

    assert [r.uuid for r in bridge.records_for_segment("A")] == ["a4", "a5", "a6"]
    assert bridge.records_for_segment("timeout", "A", True) == []
    assert bridge.records_for_segment("nope", "A", True) == []
    assert bridge.records_for_segment(None) == []


def test_teardown_cancels_pending_hover(records) -> None:
    clock = FakeClock()
    session, bridge, hovered, _ = _bridge(records, clock)
    bridge.on_segment_hover(bridge.records_for_segment("A"))

    session.teardown()
    clock.now = 1.0

    assert not bridge.timer.pending
    assert hovered == []
    with pytest.raises(SessionNotInitializedError):
        bridge.poll()
    with pytest.raises(SessionNotInitializedError):
        bridge.on_segment_hover(records)
