from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from _meta.records import FailureStatus, ResolvedStatus
from _utils.load_records import load_or_build_records, load_records

FEED = [
    {"uuid": "r1", "platform": "zoom", "status": {"type": "error", "value": "A", "message": "timeout"}},
    {"uuid": "r2", "platform": "meet", "status": {"type": "success"}},
]


def test_json_list(tmp_path: Path) -> None:
    path = tmp_path / "feed.json"
    path.write_text(json.dumps(FEED), encoding="utf-8")

    recs = load_records(path)

    assert [r.uuid for r in recs] == ["r1", "r2"]
    assert isinstance(recs[0].status, FailureStatus)


def test_json_wrapped_in_bots_key(tmp_path: Path) -> None:
    path = tmp_path / "feed.json"
    path.write_text(json.dumps({"bots": FEED, "total": 2}), encoding="utf-8")

    assert len(load_records(path)) == 2


def test_json_without_a_list_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "feed.json"
    path.write_text(json.dumps({"total": 2}), encoding="utf-8")

    with pytest.raises(ValueError, match="list of records"):
        load_records(path)


def test_csv_with_flat_status_columns(tmp_path: Path) -> None:
    path = tmp_path / "feed.csv"
    path.write_text(
        "uuid,status_type,status_value,status_message,platform\n"
        "r1,error,A,timeout,zoom\n"
        "r2,success,,,meet\n",
        encoding="utf-8",
    )

    recs = load_records(path)

    assert recs[0].status.value == "A"
    assert recs[0].status.message == "timeout"
    assert isinstance(recs[1].status, ResolvedStatus)
    assert recs[1].platform == "meet"


def test_csv_missing_columns(tmp_path: Path) -> None:
    path = tmp_path / "feed.csv"
    path.write_text("uuid,status_type\nr1,error\n", encoding="utf-8")

    with pytest.raises(ValueError, match="status_value"):
        load_records(path)


def test_missing_and_unsupported_files(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_records(tmp_path / "nope.json")

    other = tmp_path / "feed.xml"
    other.write_text("<bots/>", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported"):
        load_records(other)


def test_cache_is_built_then_reused(tmp_path: Path) -> None:
    feed = tmp_path / "feed.json"
    feed.write_text(json.dumps(FEED), encoding="utf-8")
    cache = tmp_path / "cache" / "records.json"

    first = load_or_build_records(feed, cache)
    assert cache.exists()

    feed.unlink()
    second = load_or_build_records(feed, cache)

    assert second == first


def test_force_rebuilds_from_the_feed(tmp_path: Path) -> None:
    feed = tmp_path / "feed.json"
    cache = tmp_path / "records.json"
    feed.write_text(json.dumps(FEED), encoding="utf-8")
    load_or_build_records(feed, cache)

    feed.write_text(json.dumps(FEED[:1]), encoding="utf-8")
    # keep the cache looking fresh so only `force` triggers the rebuild
    future = feed.stat().st_mtime + 100
    os.utime(cache, (future, future))

    assert len(load_or_build_records(feed, cache)) == 2
    assert len(load_or_build_records(feed, cache, force=True)) == 1
    assert len(load_or_build_records(feed)) == 1
