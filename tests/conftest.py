from __future__ import annotations

from typing import Callable, List

import pytest

from _meta.records import Record, parse_record


def _record(uuid: str, value: str = "", message: str = "", status_type: str = "error",
            platform: str = "zoom", **extra) -> Record:
    raw = {"uuid": uuid, "platform": platform,
           "status": {"type": status_type, "value": value, "message": message}}
    raw.update(extra)
    return parse_record(raw)


@pytest.fixture
def make_record() -> Callable[..., Record]:
    return _record


@pytest.fixture
def records() -> List[Record]:
    """
    10 failures and 2 successes:
      A: 3 x "timeout", 3 x "denied"   (expandable)
      B: 4 x "denied"                  (single subtype, not expandable)
    """
    out = [_record(f"a{i}", "A", "timeout") for i in range(1, 4)]
    out += [_record(f"a{i}", "A", "denied", platform="meet") for i in range(4, 7)]
    out += [_record(f"b{i}", "B", "denied", platform="teams") for i in range(1, 5)]
    out += [_record("ok1", status_type="success"), _record("ok2", status_type="success", platform="meet")]
    return out
