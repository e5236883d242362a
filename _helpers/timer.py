# timer.py
from __future__ import annotations
import time
from typing import Any, Callable, Dict, Optional

_NOTHING = object()


class CoalescingTimer:
    """
    Collapse bursts of events into the last one.

    `submit` replaces any pending payload and restarts the window; the payload
    is handed to `callback` by the first `poll` at or after the deadline.
    There is no thread: whoever owns the timer drives it (an interval tick in
    the app, explicit calls in tests). `cancel` drops the pending payload.
    """

    def __init__(self, delay: float, callback: Callable[[Any], None],
                 clock: Callable[[], float] = time.monotonic):
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = float(delay)
        self._callback = callback
        self._clock = clock
        self._payload: Any = _NOTHING
        self._deadline: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self._payload is not _NOTHING

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def submit(self, payload: Any) -> None:
        self._payload = payload
        self._deadline = self._clock() + self.delay

    def poll(self) -> bool:
        """Fire the pending payload if its window has elapsed. True if it fired."""
        if not self.pending or self._clock() < self._deadline:
            return False
        self._fire()
        return True

    def flush(self) -> bool:
        if not self.pending:
            return False
        self._fire()
        return True

    def cancel(self) -> None:
        self._payload = _NOTHING
        self._deadline = None

    def _fire(self) -> None:
        payload = self._payload
        self.cancel()
        self._callback(payload)

    # dcc.Store round trip: the app keeps the pending hover between requests
    def snapshot(self) -> Optional[Dict[str, Any]]:
        if not self.pending:
            return None
        return {"payload": self._payload, "deadline": self._deadline}

    def restore(self, snap: Optional[Dict[str, Any]]) -> None:
        if not snap or "deadline" not in snap:
            self.cancel()
            return
        self._payload = snap.get("payload")
        self._deadline = float(snap["deadline"])
