from __future__ import annotations
from typing import Dict, Iterable, List

import pandas as pd

from _meta.records import FAILURE_TYPES, Record, records_to_frame

UNKNOWN_PLATFORM = "unknown"


def _share(numer: float, denom: float) -> float:
    if not denom:
        return 0.0
    return float(numer) / float(denom) * 100.0


def platform_breakdown(all_records: Iterable[Record], filtered: Iterable[Record]) -> List[Dict[str, object]]:
    """
    Per platform: total runs, the error/warning runs still visible under the
    current selection, and the rest counted as success. Platforms ordered by
    total runs (desc), then name.
    """
    df_all = records_to_frame(all_records)
    if df_all.empty:
        return []
    df_all["platform"] = df_all["platform"].replace("", UNKNOWN_PLATFORM)

    df_f = records_to_frame(filtered)
    df_f = df_f[df_f["type"].isin(FAILURE_TYPES)].copy()
    df_f["platform"] = df_f["platform"].replace("", UNKNOWN_PLATFORM)

    totals = df_all.groupby("platform").size()
    errors = df_f.groupby("platform").size().reindex(totals.index, fill_value=0)

    out = []
    for platform in sorted(totals.index, key=lambda p: (-int(totals[p]), str(p))):
        total = int(totals[platform])
        err = int(errors[platform])
        ok = total - err
        out.append({
            "platform": str(platform),
            "total": total,
            "success": ok,
            "error": err,
            "success_pct": _share(ok, total),
            "error_pct": _share(err, total),
        })
    return out


def headline_stats(all_records: Iterable[Record], filtered: Iterable[Record]) -> Dict[str, float]:
    df_all = records_to_frame(all_records)
    df_f = records_to_frame(filtered)
    total = len(df_all)
    success = int((df_all["type"] == "success").sum())
    errors = int(df_all["type"].isin(FAILURE_TYPES).sum())
    visible_errors = int(df_f["type"].isin(FAILURE_TYPES).sum())
    return {
        "total": total,
        "success": success,
        "errors": errors,
        "visible_errors": visible_errors,
        "success_rate": _share(success, total),
        "error_rate": _share(errors, total),
        "visible_error_rate": _share(visible_errors, total),
    }


def frame_for_table(records: Iterable[Record], limit: int) -> pd.DataFrame:
    """First `limit` records as display rows (uuid, platform, status, message)."""
    df = records_to_frame(records)
    return df[["uuid", "platform", "type", "value", "message"]].head(limit)


def platform_durations(records: Iterable[Record]) -> List[Dict[str, object]]:
    """
    Average run duration (seconds) per platform over records that carry a
    numeric `duration` attribute. Ordered by run count (desc), then name.
    """
    rows = [
        {"platform": r.platform or UNKNOWN_PLATFORM, "duration": r.attributes.get("duration")}
        for r in records
    ]
    df = pd.DataFrame(rows, columns=["platform", "duration"])
    df["duration"] = pd.to_numeric(df["duration"], errors="coerce")
    df = df.dropna(subset=["duration"])
    if df.empty:
        return []

    grp = df.groupby("platform")["duration"].agg(["mean", "size"])
    out = [
        {"platform": str(p), "avg_duration_s": float(row["mean"]), "count": int(row["size"])}
        for p, row in grp.iterrows()
    ]
    return sorted(out, key=lambda d: (-d["count"], d["platform"]))


def format_minutes(seconds: float) -> str:
    return f"{round(seconds / 60):,}m"
