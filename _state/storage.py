# storage.py
"""
Durable string storage for the persisted selection.

- MemoryStorage: one session, nothing to notify.
- SharedStorage: one medium, many sessions. A write made through one handle is
  queued as a change event for every *other* handle (never the writer), and
  delivered when `dispatch()` runs; this is the same contract as browser
  `storage` events.

In the Dash app the medium is browser localStorage (dcc.Store, storage_type
"local"); callbacks seed a MemoryStorage from the store payloads instead.
"""

from __future__ import annotations
import logging
from collections import deque
from typing import Callable, Deque, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str, Optional[str]], None]


class SelectionStorage:
    def read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def write(self, key: str, value: str) -> None:
        raise NotImplementedError

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register for foreign change events; returns the unsubscribe callable."""
        raise NotImplementedError


class MemoryStorage(SelectionStorage):
    def __init__(self, initial: Optional[Mapping[str, Optional[str]]] = None):
        self._data: Dict[str, str] = {k: v for k, v in (initial or {}).items() if v is not None}
        self.writes: List[Tuple[str, str]] = []

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value
        self.writes.append((key, value))

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        return lambda: None

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class SharedStorage:
    """The shared medium. Sessions talk to it through `handle()`."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._handles: List["SharedStorageHandle"] = []
        self._pending: Deque[Tuple["SharedStorageHandle", str, Optional[str]]] = deque()

    def handle(self) -> "SharedStorageHandle":
        h = SharedStorageHandle(self)
        self._handles.append(h)
        return h

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write(self, origin: "SharedStorageHandle", key: str, value: Optional[str]) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        for h in self._handles:
            if h is not origin and h.listeners:
                self._pending.append((h, key, value))

    def write_external(self, key: str, value: Optional[str]) -> None:
        """A write from outside any session (devtools, another app); every handle is notified."""
        self._write(None, key, value)  # type: ignore[arg-type]

    def dispatch(self) -> int:
        """Deliver queued change events in write order. Returns how many were delivered."""
        n = 0
        while self._pending:
            h, key, value = self._pending.popleft()
            for listener in list(h.listeners):
                listener(key, value)
            n += 1
        return n

    @property
    def pending_events(self) -> int:
        return len(self._pending)


class SharedStorageHandle(SelectionStorage):
    def __init__(self, medium: SharedStorage):
        self._medium = medium
        self.listeners: List[ChangeListener] = []

    def read(self, key: str) -> Optional[str]:
        return self._medium.read(key)

    def write(self, key: str, value: str) -> None:
        self._medium._write(self, key, value)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self.listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self.listeners:
                self.listeners.remove(listener)
        return _unsubscribe
