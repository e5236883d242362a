# records.py
"""
Bot-run record model.

A record's status is a variant:
- ResolvedStatus  for type in {success, pending}  -> never categorized
- FailureStatus   for type in {error, warning}    -> value (category), message,
                                                    category, priority; always filled

Missing fields on a failure status are replaced by explicit fallbacks at parse
time, so nothing downstream needs optional-access guards.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Union

import pandas as pd

RESOLVED_TYPES = ("success", "pending")
FAILURE_TYPES = ("error", "warning")

FALLBACK_VALUE = "Unknown"
FALLBACK_CATEGORY = "unknown_error"
FALLBACK_PRIORITY = "low"

FRAME_COLUMNS = ["uuid", "type", "value", "message", "category", "priority", "platform", "created_at"]


@dataclass(frozen=True)
class ResolvedStatus:
    type: str
    value: str = ""
    message: str = ""


@dataclass(frozen=True)
class FailureStatus:
    type: str
    value: str
    message: str
    category: str
    priority: str


Status = Union[ResolvedStatus, FailureStatus]


@dataclass(frozen=True)
class Record:
    uuid: str
    status: Status
    platform: str = ""
    created_at: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False, repr=False)

    @property
    def is_failure(self) -> bool:
        return isinstance(self.status, FailureStatus)

    @property
    def category_key(self) -> str | None:
        return self.status.value if self.is_failure else None


# ---------- parsing ----------

def _clean(v: Any) -> str:
    """str() with None/NaN-ish values collapsed to ''."""
    if v is None:
        return ""
    if isinstance(v, float) and v != v:
        return ""
    s = str(v).strip()
    return "" if s in ("nan", "NaN", "None") else s


def parse_status(raw: Mapping[str, Any] | None) -> Status:
    raw = raw or {}
    st_type = _clean(raw.get("type")).lower()
    if st_type in RESOLVED_TYPES:
        return ResolvedStatus(type=st_type, value=_clean(raw.get("value")), message=_clean(raw.get("message")))
    if st_type in FAILURE_TYPES:
        return FailureStatus(
            type=st_type,
            value=_clean(raw.get("value")) or FALLBACK_VALUE,
            message=_clean(raw.get("message")),
            category=_clean(raw.get("category")) or FALLBACK_CATEGORY,
            priority=_clean(raw.get("priority")).lower() or FALLBACK_PRIORITY,
        )
    raise ValueError(f"Unsupported status type: {raw.get('type')!r}")


def parse_record(raw: Mapping[str, Any]) -> Record:
    """
    Build a Record from a feed row. Accepts either a nested `status` mapping or
    flat `status_*` columns (as produced by a CSV export).
    """
    uuid = _clean(raw.get("uuid") or raw.get("id"))
    if not uuid:
        raise ValueError(f"Record without identifier: {dict(raw)!r}")

    status_raw = raw.get("status")
    if not isinstance(status_raw, Mapping):
        status_raw = {
            k[len("status_"):]: v for k, v in raw.items() if str(k).startswith("status_")
        }

    known = {"uuid", "id", "status", "platform", "created_at"}
    extra = {k: v for k, v in raw.items() if k not in known and not str(k).startswith("status_")}
    return Record(
        uuid=uuid,
        status=parse_status(status_raw),
        platform=_clean(raw.get("platform")),
        created_at=_clean(raw.get("created_at")),
        attributes=extra,
    )


def parse_records(rows: Iterable[Mapping[str, Any]]) -> List[Record]:
    return [parse_record(r) for r in rows]


def record_to_dict(rec: Record) -> Dict[str, Any]:
    """Inverse of parse_record (nested status form); used for dcc.Store payloads."""
    st = rec.status
    status: Dict[str, Any] = {"type": st.type, "value": st.value, "message": st.message}
    if isinstance(st, FailureStatus):
        status["category"] = st.category
        status["priority"] = st.priority
    out = {"uuid": rec.uuid, "status": status, "platform": rec.platform, "created_at": rec.created_at}
    out.update(rec.attributes)
    return out


def records_to_frame(records: Iterable[Record]) -> pd.DataFrame:
    """Flat one-row-per-record frame; resolved statuses carry '' for category/priority."""
    rows = []
    for r in records:
        st = r.status
        rows.append({
            "uuid": r.uuid,
            "type": st.type,
            "value": st.value,
            "message": st.message,
            "category": getattr(st, "category", ""),
            "priority": getattr(st, "priority", ""),
            "platform": r.platform,
            "created_at": r.created_at,
        })
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)
