# helpers_hover.py
from __future__ import annotations
import time
from typing import Callable, Iterable, List, Optional

from _analytics.distribution import DistributionRow
from _helpers.timer import CoalescingTimer
from _meta.records import FailureStatus, Record
from settings import DEFAULTS


def _extract_hover(hoverData):
    """Donut hover/click payload -> (name, parent, is_subtype) of the segment, or Nones."""
    if not hoverData or "points" not in hoverData or not hoverData["points"]:
        return None, None, None
    pt = hoverData["points"][0]
    cd = pt.get("customdata")
    # plotly wraps per-point customdata in a list for pie traces
    if isinstance(cd, (list, tuple)) and cd and isinstance(cd[0], dict):
        cd = cd[0]
    if isinstance(cd, dict):
        return cd.get("name"), cd.get("parent"), bool(cd.get("is_subtype"))
    return pt.get("label"), None, False


def _hover_key(hoverData):
    if not hoverData:
        return None
    name, parent, is_subtype = _extract_hover(hoverData)
    if name is None:
        return None
    return f"{parent}::{name}" if is_subtype else name


class InteractionBridge:
    """
    Maps chart segments back to concrete record lists for other views.

    Hover is high-frequency: events are coalesced (last one wins within
    `delay` seconds) and delivered to `on_hover` when `poll()` finds the window
    elapsed. Clicks go straight to `on_select`. The pending hover is cancelled
    when the owning session tears down.
    """

    def __init__(
        self,
        session,
        on_hover: Callable[[List[Record]], None],
        on_select: Callable[[List[Record]], None],
        delay: float = DEFAULTS["hover_delay_s"],
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self._on_select = on_select
        self.timer = CoalescingTimer(delay, on_hover, clock=clock)
        session.register_teardown(self.teardown)

    def _require_session(self) -> None:
        # raises SessionNotInitializedError outside init()/teardown()
        self.session.ensure_initialized()

    def on_segment_hover(self, records: Iterable[Record]) -> None:
        self._require_session()
        records = list(records)
        if records:
            self.timer.submit(records)

    def on_segment_leave(self) -> None:
        self._require_session()
        self.timer.submit([])

    def on_segment_click(self, records: Iterable[Record]) -> None:
        self._require_session()
        records = list(records)
        if records:
            self._on_select(records)

    def poll(self) -> bool:
        self._require_session()
        return self.timer.poll()

    def records_for_row(self, row: DistributionRow) -> List[Record]:
        """Members of a category or subtype row within the current filtered set."""
        self._require_session()
        filtered = self.session.filtered_bots
        if row.is_subtype:
            ids = set(row.record_ids)
            return [r for r in filtered if r.uuid in ids]
        return [r for r in filtered if isinstance(r.status, FailureStatus) and r.status.value == row.name]

    def records_for_segment(self, name: Optional[str], parent: Optional[str] = None,
                            is_subtype: bool = False) -> List[Record]:
        """Same as records_for_row, addressed by the identifiers carried in chart customdata."""
        self._require_session()
        if name is None:
            return []
        if is_subtype:
            entry = next((e for e in self.session.taxonomy.subtypes_of(parent) if e.label == name), None)
            if entry is None:
                return []
            row = DistributionRow(name=name, count=entry.count, percentage=0.0, is_subtype=True,
                                  parent=parent, key=entry.key, record_ids=entry.record_ids)
        else:
            row = DistributionRow(name=name, count=0, percentage=0.0)
        return self.records_for_row(row)

    def teardown(self) -> None:
        self.timer.cancel()
