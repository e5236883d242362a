# selection_toolbar.py
"""
Toolbar for:
- Select all / none / default / reset of the error categories
- Reload of the record feed (dataset refresh -> selection pruning)

Stores exposed:
- sel-store-records: list[dict]              # current record feed (record_to_dict form)
- sel-store-errors: str                      # JSON array, browser localStorage (shared by tabs)
- sel-store-subtypes: str                    # JSON array, browser localStorage (shared by tabs)
- sel-store-applied: dict[str, str]          # payloads this tab has adopted (per tab)
- sel-store-expanded: list[str]              # expanded categories (per tab)
"""

from __future__ import annotations
import logging

from dash import dcc, html, Input, Output, callback_context, no_update

from _meta.records import record_to_dict
from _utils.load_records import load_or_build_records

logger = logging.getLogger(__name__)

SELECTION_BUTTONS = {
    "sel-btn-all": "Select all",
    "sel-btn-none": "Select none",
    "sel-btn-default": "Default",
    "sel-btn-reset": "Reset",
}


def make_selection_toolbar() -> html.Div:
    """Build the toolbar layout (contains Stores + UI controls)."""
    buttons = [html.Button(label, id=bid, n_clicks=0, className="btn") for bid, label in SELECTION_BUTTONS.items()]
    return html.Div(id="sel-toolbar", children=[
        dcc.Store(id="sel-store-records", data=None),
        dcc.Store(id="sel-store-errors", storage_type="local"),
        dcc.Store(id="sel-store-subtypes", storage_type="local"),
        dcc.Store(id="sel-store-applied", data=None),
        dcc.Store(id="sel-store-expanded", data=[]),

        html.Div(className="toolbar-row", children=[
            html.Div(buttons, className="toolbar-group"),
            html.Button([html.Span("refresh", className="icon"), "Reload data"], id="sel-reload", n_clicks=0, className="btn"),
            html.Span(id="sel-status", style={"fontSize": "10px", "color": "#555"}),
        ]),
    ])


def register_selection_toolbar_callbacks(app, feed_path: str, cache_path: str | None = None) -> None:
    """
    Wire up the feed loading. The selection buttons are consumed by the
    error section's sync callback, which owns every write to the selection stores.
    """
    @app.callback(
        Output("sel-store-records", "data"),
        Output("sel-status", "children"),
        Input("sel-reload", "n_clicks"),
        prevent_initial_call=False,
    )
    def _load_records(n_clicks):
        force = callback_context.triggered_id == "sel-reload" and bool(n_clicks)
        try:
            records = load_or_build_records(feed_path, cache_path, force=force)
        except (FileNotFoundError, ValueError) as exc:
            logger.error("Record feed unavailable: %s", exc)
            return (no_update if force else []), f"Feed error: {exc}"
        return [record_to_dict(r) for r in records], f"{len(records):,} runs loaded"
