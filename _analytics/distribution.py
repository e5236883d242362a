from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from _meta.records import FAILURE_TYPES, Record, records_to_frame
from _meta.taxonomy_extraction import Taxonomy, resolve_category_order


@dataclass(frozen=True)
class DistributionRow:
    name: str
    count: int
    percentage: float
    is_subtype: bool = False
    parent: Optional[str] = None
    key: Optional[str] = None
    record_ids: Tuple[str, ...] = field(default=(), repr=False)
    share_of_parent: Optional[float] = None

    def as_dict(self) -> dict:
        return {
            "name": self.name, "count": self.count, "percentage": self.percentage,
            "is_subtype": self.is_subtype, "parent": self.parent, "key": self.key,
            "share_of_parent": self.share_of_parent,
        }


def _share(numer: float, denom: float) -> float:
    """numer/denom*100, 0.0 when the denominator is empty."""
    if not denom:
        return 0.0
    return float(numer) / float(denom) * 100.0


def _scope_frame(filtered: Iterable[Record]) -> pd.DataFrame:
    df = records_to_frame(filtered)
    return df[df["type"].isin(FAILURE_TYPES)]


def aggregate(
    filtered: Iterable[Record],
    taxonomy: Taxonomy,
    expanded: Iterable[str] = (),
    order: Union[str, Sequence[str], None] = None,
) -> List[DistributionRow]:
    """
    Per-category rows over the filtered error/warning records, in caller order.
    An expanded *and* expandable category is followed immediately by its
    subtype rows (taxonomy order). Percentages are shares of the error/warning
    records in scope; every share is 0 when nothing is in scope.
    """
    scope = _scope_frame(filtered)
    total = len(scope)
    counts = scope["value"].value_counts()
    expanded = set(expanded)
    in_scope_ids = scope["uuid"]

    rows: List[DistributionRow] = []
    for cat in resolve_category_order(taxonomy, order):
        n = int(counts.get(cat, 0))
        rows.append(DistributionRow(name=cat, count=n, percentage=_share(n, total)))

        if cat not in expanded or not taxonomy.can_expand(cat):
            continue
        for entry in taxonomy.subtypes_of(cat):
            sub_n = int(in_scope_ids.isin(entry.record_ids).sum())
            rows.append(DistributionRow(
                name=entry.label,
                count=sub_n,
                percentage=_share(sub_n, total),
                is_subtype=True,
                parent=cat,
                key=entry.key,
                record_ids=entry.record_ids,
                share_of_parent=_share(sub_n, n),
            ))
    return rows


def chart_slices(rows: Sequence[DistributionRow]) -> List[DistributionRow]:
    """
    Donut payload: an expanded parent is replaced by its subtype slices,
    and zero-count slices are dropped.
    """
    parents_with_subtypes = {r.parent for r in rows if r.is_subtype}
    out = []
    for r in rows:
        if not r.is_subtype and r.name in parents_with_subtypes:
            continue
        if r.count > 0:
            out.append(r)
    return out


def total_in_scope(filtered: Iterable[Record]) -> int:
    return len(_scope_frame(filtered))
