# selection_state.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

from _meta.taxonomy_extraction import split_subtype_key


@dataclass(frozen=True)
class SelectionState:
    """Immutable snapshot of what the operator has selected / expanded."""
    categories: FrozenSet[str] = field(default_factory=frozenset)
    subtypes: FrozenSet[str] = field(default_factory=frozenset)
    expanded: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, categories: Iterable[str] = (), subtypes: Iterable[str] = (),
           expanded: Iterable[str] = ()) -> "SelectionState":
        return cls(frozenset(categories), frozenset(subtypes), frozenset(expanded))

    def subtypes_for(self, category: str) -> FrozenSet[str]:
        return frozenset(k for k in self.subtypes if split_subtype_key(k)[0] == category)
