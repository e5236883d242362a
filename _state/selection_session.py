# selection_session.py
"""
Selection state for the error-distribution view.

Holds:
- selected_error_values : ordered list of selected categories
- selected_subtypes     : ordered list of "category::label" keys
- expanded_categories   : categories whose subtypes are shown (not persisted)

and owns persistence (two JSON-array string keys) plus reconciliation with
other sessions writing the same keys. Every stored or foreign payload goes
through the same validation before it is adopted:

    parse -> list[str]? -> intersect with available categories -> adopt

Lifecycle: SelectionSession(storage, ...) -> init(records) -> ... -> teardown().
"""

from __future__ import annotations
import json
import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from _analytics.distribution import DistributionRow, aggregate
from _helpers.filter import filter_records, has_effective_narrowing
from _meta.records import Record
from _meta.taxonomy_extraction import Taxonomy, build_taxonomy, split_subtype_key, subtype_key
from _state.selection_state import SelectionState
from _state.storage import SelectionStorage
from settings import DEFAULTS

logger = logging.getLogger(__name__)


class SessionNotInitializedError(RuntimeError):
    """The engine was used before init() or after teardown()."""


def _parse_string_list(raw: Optional[str]) -> Optional[List[str]]:
    """JSON array of strings -> list; anything else -> None."""
    if raw is None:
        return None
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(parsed, list) or not all(isinstance(v, str) for v in parsed):
        return None
    return parsed


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


class SelectionSession:
    def __init__(
        self,
        storage: SelectionStorage,
        *,
        non_critical: Sequence[str] = tuple(DEFAULTS["non_critical_errors"]),
        errors_key: str = DEFAULTS["selected_errors_key"],
        subtypes_key: str = DEFAULTS["selected_subtypes_key"],
    ):
        self.storage = storage
        self.non_critical = frozenset(non_critical)
        self.errors_key = errors_key
        self.subtypes_key = subtypes_key

        self._initialized = False
        self._records: List[Record] = []
        self._taxonomy = Taxonomy()
        self._categories: List[str] = []
        self._subtypes: List[str] = []
        self._expanded: List[str] = []
        self._filtered: List[Record] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._teardown_hooks: List[Callable[[], None]] = []
        self._listeners: List[Callable[["SelectionSession"], None]] = []

    # ---------- lifecycle ----------

    def init(self, records: Iterable[Record]) -> "SelectionSession":
        """Hydrate from storage (or defaults) against the taxonomy of `records`."""
        self._records = list(records)
        self._taxonomy = build_taxonomy(self._records)

        stored = self.storage.read(self.errors_key)
        self._categories = self._validate_categories(stored, source="storage")
        if stored is not None and _parse_string_list(stored) is not None:
            # stored list referenced categories that are gone
            self._persist_categories()
        self._subtypes = self._validate_subtypes(self.storage.read(self.subtypes_key), source="storage")
        self._expanded = []

        self._unsubscribe = self.storage.subscribe(self.handle_storage_event)
        self._initialized = True
        self._recompute()
        logger.debug("Session initialized: %d records, %d/%d categories selected",
                     len(self._records), len(self._categories), len(self._taxonomy))
        return self

    def teardown(self) -> None:
        for hook in self._teardown_hooks:
            hook()
        self._teardown_hooks.clear()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def register_teardown(self, hook: Callable[[], None]) -> None:
        self._teardown_hooks.append(hook)

    def add_listener(self, fn: Callable[["SelectionSession"], None]) -> Callable[[], None]:
        """`fn(session)` after every recomputation of the filtered set."""
        self._listeners.append(fn)

        def _remove() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)
        return _remove

    def ensure_initialized(self) -> None:
        if not self._initialized:
            raise SessionNotInitializedError(
                "SelectionSession used outside an initialized session; call init(records) first"
            )

    # ---------- read surface ----------

    @property
    def taxonomy(self) -> Taxonomy:
        return self._taxonomy

    @property
    def all_records(self) -> List[Record]:
        return list(self._records)

    @property
    def available_categories(self) -> List[str]:
        return self._taxonomy.categories

    @property
    def default_categories(self) -> List[str]:
        return [c for c in self._taxonomy.categories if c not in self.non_critical]

    @property
    def selected_error_values(self) -> List[str]:
        return list(self._categories)

    @property
    def selected_subtypes(self) -> List[str]:
        return list(self._subtypes)

    @property
    def expanded_categories(self) -> List[str]:
        return list(self._expanded)

    @property
    def state(self) -> SelectionState:
        return SelectionState.of(self._categories, self._subtypes, self._expanded)

    @property
    def filtered_bots(self) -> List[Record]:
        self.ensure_initialized()
        return list(self._filtered)

    @property
    def bots_filtered_by_error(self) -> bool:
        if set(self._categories) != set(self._taxonomy.categories):
            return True
        return has_effective_narrowing(self.state, self._taxonomy)

    def can_expand(self, category: str) -> bool:
        return self._taxonomy.can_expand(category)

    def is_subtype_selected(self, category: str, label: str) -> bool:
        return subtype_key(category, label) in self._subtypes

    def distribution(self, order: Union[str, Sequence[str], None] = None) -> List[DistributionRow]:
        self.ensure_initialized()
        return aggregate(self._filtered, self._taxonomy, self._expanded, order=order)

    # ---------- category mutations ----------

    def add_error_value(self, value: str) -> None:
        self.ensure_initialized()
        if value not in self._taxonomy:
            logger.debug("Ignoring unknown category %r", value)
        elif value not in self._categories:
            self._categories.append(value)
        self._commit_categories()

    def remove_error_value(self, value: str) -> None:
        self.ensure_initialized()
        self._categories = [c for c in self._categories if c != value]
        self._commit_categories()

    def select_all(self, values: Optional[Iterable[str]] = None) -> None:
        self.ensure_initialized()
        values = self._taxonomy.categories if values is None else values
        self._categories = [c for c in _dedupe(values) if c in self._taxonomy]
        self._commit_categories()

    def select_none(self) -> None:
        self.ensure_initialized()
        self._categories = []
        self._subtypes = []
        self._commit_both()

    def select_default(self) -> None:
        self.ensure_initialized()
        self._categories = self.default_categories
        self._subtypes = []
        self._commit_both()

    def reset(self) -> None:
        self.ensure_initialized()
        self._categories = self._taxonomy.categories
        self._subtypes = []
        self._commit_both()

    # ---------- subtype mutations ----------

    def add_subtype(self, key: str) -> None:
        self.ensure_initialized()
        if key not in self._subtypes:
            self._subtypes.append(key)
        self._commit_subtypes()

    def remove_subtype(self, key: str) -> None:
        self.ensure_initialized()
        self._subtypes = [k for k in self._subtypes if k != key]
        self._commit_subtypes()

    def toggle_subtype(self, key: str) -> None:
        if key in self._subtypes:
            self.remove_subtype(key)
        else:
            self.add_subtype(key)

    def clear_subtypes_for_error(self, category: str) -> None:
        self.ensure_initialized()
        prefix = f"{category}::"
        self._subtypes = [k for k in self._subtypes if not k.startswith(prefix)]
        self._commit_subtypes()

    # ---------- expansion ----------

    def expand(self, category: str) -> bool:
        self.ensure_initialized()
        if not self.can_expand(category) or category in self._expanded:
            return False
        self._expanded.append(category)
        self._recompute()
        return True

    def collapse(self, category: str) -> None:
        self.ensure_initialized()
        self._expanded = [c for c in self._expanded if c != category]
        # hidden subtype filters are not kept
        self.clear_subtypes_for_error(category)

    def toggle_expanded(self, category: str) -> None:
        if category in self._expanded:
            self.collapse(category)
        else:
            self.expand(category)

    def set_expanded(self, categories: Iterable[str]) -> None:
        """Restore expansion from the view layer (expandable categories only)."""
        self.ensure_initialized()
        self._expanded = [c for c in _dedupe(categories) if self.can_expand(c)]
        self._recompute()

    # ---------- dataset refresh ----------

    def set_records(self, records: Iterable[Record]) -> None:
        """New fetch: rebuild the taxonomy and prune what no longer exists."""
        self.ensure_initialized()
        self._records = list(records)
        self._taxonomy = build_taxonomy(self._records)

        kept = [c for c in self._categories if c in self._taxonomy]
        if len(kept) != len(self._categories):
            logger.info("Pruned categories no longer in the dataset: %s",
                        sorted(set(self._categories) - set(kept)))
            self._categories = kept
            self._persist_categories()

        kept_subtypes = [k for k in self._subtypes if split_subtype_key(k)[0] in self._taxonomy]
        if len(kept_subtypes) != len(self._subtypes):
            self._subtypes = kept_subtypes
            self._persist_subtypes()

        self._expanded = [c for c in self._expanded if self.can_expand(c)]
        self._recompute()

    # ---------- cross-session ----------

    def handle_storage_event(self, key: str, new_value: Optional[str]) -> None:
        """
        A persisted key changed in another session. The payload is untrusted:
        it is validated exactly like hydration before it replaces local state.
        """
        self.ensure_initialized()
        if new_value is None:
            logger.debug("Ignoring removal of %r", key)
            return
        if key == self.errors_key:
            self._categories = self._validate_categories(new_value, source="cross-session")
        elif key == self.subtypes_key:
            self._subtypes = self._validate_subtypes(new_value, source="cross-session")
        else:
            return
        self._recompute()

    # ---------- validation ----------

    def _validate_categories(self, raw: Optional[str], source: str) -> List[str]:
        if raw is None:
            return self.default_categories
        parsed = _parse_string_list(raw)
        if parsed is None:
            logger.warning("Malformed %s payload for %r; using default selection", source, self.errors_key)
            return self.default_categories
        valid = [c for c in _dedupe(parsed) if c in self._taxonomy]
        if parsed and not valid:
            logger.warning("No known categories in %s payload for %r; using default selection",
                           source, self.errors_key)
            return self.default_categories
        return valid

    def _validate_subtypes(self, raw: Optional[str], source: str) -> List[str]:
        if raw is None:
            return []
        parsed = _parse_string_list(raw)
        if parsed is None:
            logger.warning("Malformed %s payload for %r; clearing subtype selection", source, self.subtypes_key)
            return []
        return [k for k in _dedupe(parsed) if split_subtype_key(k)[0] in self._taxonomy]

    # ---------- persistence ----------

    def _write(self, key: str, values: List[str]) -> None:
        payload = json.dumps(values)
        if self.storage.read(key) == payload:
            return
        self.storage.write(key, payload)

    def _persist_categories(self) -> None:
        self._write(self.errors_key, self._categories)

    def _persist_subtypes(self) -> None:
        self._write(self.subtypes_key, self._subtypes)

    def _commit_categories(self) -> None:
        self._persist_categories()
        self._recompute()

    def _commit_subtypes(self) -> None:
        self._persist_subtypes()
        self._recompute()

    def _commit_both(self) -> None:
        self._persist_categories()
        self._persist_subtypes()
        self._recompute()

    def _recompute(self) -> None:
        self._filtered = filter_records(self._records, self.state, self._taxonomy)
        for fn in list(self._listeners):
            fn(self)

    # ---------- view payloads ----------

    def storage_payloads(self) -> Tuple[str, str]:
        return json.dumps(self._categories), json.dumps(self._subtypes)
