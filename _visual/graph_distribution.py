# graph_distribution.py
from __future__ import annotations
from typing import Sequence

import plotly.graph_objects as go

from _analytics.distribution import DistributionRow

DONUT_HEIGHT = 320
TITLE_FS = 12
LEGEND_FS = 8


def _slice_label(row: DistributionRow) -> str:
    return f"{row.parent} · {row.name}" if row.is_subtype else row.name


def make_distribution_donut(slices: Sequence[DistributionRow], title: str = "Error Type Summary") -> go.Figure:
    """
    Donut over the chart slices. Each point carries its row identity in
    customdata so hover/click can be mapped back to records.
    """
    if not slices:
        fig = go.Figure(go.Pie(labels=["No errors in selection"], values=[1], hole=0.6,
                               sort=False, textinfo="none", hoverinfo="skip",
                               marker=dict(colors=["#eee"])))
        total = 0
    else:
        total = sum(r.count for r in slices)
        fig = go.Figure(go.Pie(
            labels=[_slice_label(r) for r in slices],
            values=[r.count for r in slices],
            customdata=[{"name": r.name, "parent": r.parent, "is_subtype": r.is_subtype} for r in slices],
            hovertext=[f"{r.percentage:.1f}%" for r in slices],
            hovertemplate="<b>%{label}</b><br>Runs: %{value}<br>Share: %{hovertext}<extra></extra>",
            hole=0.6, sort=False, textinfo="none",
            marker=dict(line=dict(color="#fff", width=2)),
        ))

    fig.update_layout(
        autosize=True, height=DONUT_HEIGHT, showlegend=False, font=dict(size=TITLE_FS),
        title=dict(text=title, font=dict(size=TITLE_FS)),
        legend=dict(font=dict(size=LEGEND_FS)),
        margin=dict(l=10, r=10, t=40, b=10),
        annotations=[dict(text=f"<b>{total:,}</b><br>errors", x=0.5, y=0.5, showarrow=False,
                          font=dict(size=TITLE_FS))],
    )
    return fig
