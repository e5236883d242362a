# load_records.py
"""
Read the bot-run feed delivered by the fetch layer.

Supported inputs:
- .json : a list of records, or {"bots": [...]} / {"data": [...]}
- .csv  : one row per record, status as flat status_type / status_value /
          status_message / status_category / status_priority columns
"""

from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from _meta.records import Record, parse_records, record_to_dict

logger = logging.getLogger(__name__)

CSV_REQUIRED = ["uuid", "status_type", "status_value"]


def _rows_from_json(path: Path) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    if isinstance(payload, dict):
        payload = payload.get("bots", payload.get("data"))
    if not isinstance(payload, list):
        raise ValueError(f"Record feed {path} must hold a list of records")
    return payload


def _rows_from_csv(path: Path) -> List[Dict[str, Any]]:
    df = pd.read_csv(path, dtype=str, encoding="utf-8-sig")
    missing = [c for c in CSV_REQUIRED if c not in df.columns]
    if missing:
        raise ValueError(f"Record feed missing required columns: {missing}")
    # Keep true empties as ""
    df = df.fillna("")
    return df.to_dict("records")


def load_records(path: str | Path) -> List[Record]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Record feed not found: {p}")
    suffix = p.suffix.lower()
    if suffix == ".json":
        rows = _rows_from_json(p)
    elif suffix == ".csv":
        rows = _rows_from_csv(p)
    else:
        raise ValueError(f"Unsupported record feed format: {p.suffix}")
    records = parse_records(rows)
    logger.info("Loaded %d records from %s", len(records), p)
    return records


def _cache_is_fresh(feed: Path, cache: Path) -> bool:
    if not cache.exists():
        return False
    if not feed.exists():
        return True
    return cache.stat().st_mtime >= feed.stat().st_mtime


def load_or_build_records(feed_path: str | Path, cache_path: Optional[str | Path] = None,
                          force: bool = False) -> List[Record]:
    """
    Loads the feed through a normalized JSON cache. The cache is rebuilt when
    the feed is newer than it, or when `force` is set (the toolbar's reload).
    """
    feed = Path(feed_path)
    if cache_path is None:
        return load_records(feed)

    cache = Path(cache_path)
    if not force and _cache_is_fresh(feed, cache):
        logger.info("Loading cached records from %s", cache)
        return load_records(cache)

    records = load_records(feed)
    cache.parent.mkdir(parents=True, exist_ok=True)
    with open(cache, "w", encoding="utf-8") as f:
        json.dump([record_to_dict(r) for r in records], f, ensure_ascii=False)
    logger.info("Cached %d records -> %s", len(records), cache)
    return records
