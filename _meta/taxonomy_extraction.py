# taxonomy_extraction.py
"""
Build the two-level error taxonomy (category -> subtype) from a bot-run feed.

Only error/warning records take part:
  category = status.value
  subtype  = status.message when it is non-empty and differs from the category,
             otherwise the category itself (a category whose records carry no
             usable message ends up with a single subtype and is not expandable)

Outputs (CLI):
- error_taxonomy.json        (per-category subtype entries with member uuids)
- error_taxonomy_edges.csv   (category -> subtype edges with counts)
"""

from __future__ import annotations
import argparse
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from _meta.records import FAILURE_TYPES, FailureStatus, Record, records_to_frame

logger = logging.getLogger(__name__)

SUBTYPE_SEP = "::"
CATEGORY_ORDERS = ("natural", "alphabetical", "count")


# ---------------------------- keys & labels ----------------------------

def subtype_label(category: str, message: str) -> str:
    msg = (message or "").strip()
    return msg if msg and msg != category else category


def subtype_key(category: str, label: str) -> str:
    return f"{category}{SUBTYPE_SEP}{label}"


def split_subtype_key(key: str) -> Tuple[str, str]:
    """'A::timeout' -> ('A', 'timeout'). Keys without a separator map to (key, '')."""
    category, sep, label = str(key).partition(SUBTYPE_SEP)
    return (category, label) if sep else (category, "")


def natural_key(s: str):
    return [int(t) if t.isdigit() else t.lower() for t in re.split(r'(\d+)', str(s))]


# ---------------------------- model ----------------------------

@dataclass(frozen=True)
class SubtypeEntry:
    category: str
    label: str
    record_ids: Tuple[str, ...]

    @property
    def count(self) -> int:
        return len(self.record_ids)

    @property
    def key(self) -> str:
        return subtype_key(self.category, self.label)


@dataclass(frozen=True)
class Taxonomy:
    """Category -> SubtypeEntry list, both in first-appearance order."""
    entries: Dict[str, Tuple[SubtypeEntry, ...]] = field(default_factory=dict)

    @property
    def categories(self) -> List[str]:
        return list(self.entries)

    def __contains__(self, category: object) -> bool:
        return category in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def subtypes_of(self, category: str) -> List[SubtypeEntry]:
        return list(self.entries.get(category, ()))

    def can_expand(self, category: str) -> bool:
        return len(self.entries.get(category, ())) > 1

    def subtype_keys(self, category: str) -> List[str]:
        return [e.key for e in self.entries.get(category, ())]

    def subtype_key_of(self, record: Record) -> Optional[str]:
        st = record.status
        if not isinstance(st, FailureStatus):
            return None
        return subtype_key(st.value, subtype_label(st.value, st.message))

    def category_counts(self) -> Dict[str, int]:
        return {c: sum(e.count for e in entries) for c, entries in self.entries.items()}

    def sorted_categories(self, order: str = "natural") -> List[str]:
        if order not in CATEGORY_ORDERS:
            raise ValueError(f"Unknown category order: {order!r} (expected one of {CATEGORY_ORDERS})")
        cats = self.categories
        if order == "alphabetical":
            return sorted(cats, key=natural_key)
        if order == "count":
            counts = self.category_counts()
            # stable: ties keep first-appearance order
            return sorted(cats, key=lambda c: -counts[c])
        return cats

    def distribution(self) -> List[dict]:
        """Unfiltered per-category counts, the list the legend is built from."""
        counts = self.category_counts()
        total = sum(counts.values())
        return [
            {"name": c, "count": n, "percentage": (n / total * 100.0) if total else 0.0}
            for c, n in counts.items()
        ]


# ---------------------------- extraction core ----------------------------

def _frame_with_labels(records: Iterable[Record]) -> pd.DataFrame:
    df = records_to_frame(records)
    df = df[df["type"].isin(FAILURE_TYPES)].copy()
    df["subtype"] = [subtype_label(c, m) for c, m in zip(df["value"], df["message"])]
    return df


def build_taxonomy(records: Iterable[Record]) -> Taxonomy:
    """
    Group error/warning records by category, then by subtype label.
    Always called on the unfiltered collection so the subtype options stay
    stable while their counts move with the selection.
    """
    df = _frame_with_labels(records)
    out: Dict[str, Tuple[SubtypeEntry, ...]] = {}
    if df.empty:
        return Taxonomy(out)

    for cat, grp in df.groupby("value", sort=False):
        entries = []
        for label, sub in grp.groupby("subtype", sort=False):
            entries.append(SubtypeEntry(category=str(cat), label=str(label),
                                        record_ids=tuple(sub["uuid"].astype(str))))
        out[str(cat)] = tuple(entries)

    logger.debug("Taxonomy built: %d categories, %d subtypes",
                 len(out), sum(len(v) for v in out.values()))
    return Taxonomy(out)


def resolve_category_order(taxonomy: Taxonomy, order: Union[str, Sequence[str], None]) -> List[str]:
    """Caller order: a named order, an explicit list (unknown names dropped), or None (natural)."""
    if order is None:
        return taxonomy.categories
    if isinstance(order, str):
        return taxonomy.sorted_categories(order)
    return [c for c in order if c in taxonomy]


# ---------------------------- Export helpers ----------------------------

def taxonomy_to_json(taxonomy: Taxonomy) -> Dict[str, dict]:
    return {
        cat: {
            "expandable": taxonomy.can_expand(cat),
            "count": sum(e.count for e in entries),
            "subtypes": [
                {"label": e.label, "key": e.key, "count": e.count, "record_ids": list(e.record_ids)}
                for e in entries
            ],
        }
        for cat, entries in taxonomy.entries.items()
    }


def _export_edges(taxonomy: Taxonomy, path: Path):
    """
    Export category -> subtype edges for inspection.
    """
    rows = []
    for cat, entries in taxonomy.entries.items():
        for e in entries:
            rows.append({
                "category": cat,
                "subtype": e.label,
                "key": e.key,
                "count": e.count,
                "expandable": taxonomy.can_expand(cat),
            })
    pd.DataFrame(rows, columns=["category", "subtype", "key", "count", "expandable"]).to_csv(
        path, index=False, encoding="utf-8-sig"
    )


# ---------------------------- CLI ----------------------------

def main(argv: Optional[List[str]] = None):
    from _utils.load_records import load_records
    from _utils.logging import configure_logging
    from settings import DEFAULTS, PATHS

    ap = argparse.ArgumentParser(description="Build the error category/subtype taxonomy from a bot-run feed.")
    ap.add_argument("-i", "--input", default=PATHS["records_json"], help="Record feed (JSON or CSV)")
    ap.add_argument("-o", "--out_json", default=PATHS["taxonomy_json"], help="Output JSON path")
    ap.add_argument("--edges_csv", default=PATHS["taxonomy_edges_csv"], help="Edges CSV path")
    ap.add_argument("--log_level", default=DEFAULTS["log_level"], help="Logging level")
    args = ap.parse_args(argv)
    configure_logging(args.log_level)

    records = load_records(args.input)
    taxonomy = build_taxonomy(records)

    with open(args.out_json, "w", encoding="utf-8") as f:
        json.dump(taxonomy_to_json(taxonomy), f, ensure_ascii=False, indent=2)
    logger.info("Saved taxonomy JSON -> %s", args.out_json)

    _export_edges(taxonomy, Path(args.edges_csv))
    logger.info("Saved edges CSV -> %s", args.edges_csv)

    logger.info("Categories processed: %d", len(taxonomy))
    for cat in taxonomy.categories[:3]:
        logger.info(" - %s  subtypes=%d  expandable=%s",
                    cat, len(taxonomy.subtypes_of(cat)), taxonomy.can_expand(cat))


if __name__ == "__main__":
    main()
