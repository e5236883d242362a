from __future__ import annotations
from typing import FrozenSet, Iterable, List

from _meta.records import FailureStatus, Record
from _meta.taxonomy_extraction import Taxonomy
from _state.selection_state import SelectionState


def narrowing_keys(selection: SelectionState, taxonomy: Taxonomy) -> FrozenSet[str]:
    """
    Selected keys that switch subtype narrowing on: keys of a selected,
    expandable category that exist in its taxonomy. Keys under a
    non-expandable or unknown category, or stale labels, are inert.
    """
    keys = set()
    for cat in selection.categories:
        if taxonomy.can_expand(cat):
            keys.update(selection.subtypes_for(cat).intersection(taxonomy.subtype_keys(cat)))
    return frozenset(keys)


def _passes(record: Record, selection: SelectionState, taxonomy: Taxonomy, narrowing: bool) -> bool:
    st = record.status
    # success / pending are never category-filtered
    if not isinstance(st, FailureStatus):
        return True
    if st.value not in selection.categories:
        return False
    if not narrowing or not taxonomy.can_expand(st.value):
        return True
    return taxonomy.subtype_key_of(record) in selection.subtypes


def record_passes(record: Record, selection: SelectionState, taxonomy: Taxonomy) -> bool:
    return _passes(record, selection, taxonomy, has_effective_narrowing(selection, taxonomy))


def filter_records(
    records: Iterable[Record],
    selection: SelectionState,
    taxonomy: Taxonomy,
) -> List[Record]:
    """
    Applies the two-level category/subtype selection to the record collection.
    Returns a new list in input order; neither input is mutated. An empty
    category selection drops every error/warning record.

    Once any subtype narrows, every selected expandable category keeps only
    the records whose subtype key is selected; non-expandable categories
    keep all of theirs.
    """
    narrowing = has_effective_narrowing(selection, taxonomy)
    return [rec for rec in records if _passes(rec, selection, taxonomy, narrowing)]


def has_effective_narrowing(selection: SelectionState, taxonomy: Taxonomy) -> bool:
    return bool(narrowing_keys(selection, taxonomy))


def failure_records(records: Iterable[Record]) -> List[Record]:
    return [r for r in records if isinstance(r.status, FailureStatus)]
