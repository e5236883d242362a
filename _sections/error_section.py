from __future__ import annotations
import logging
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from dash import dcc, html, Input, Output, State, callback_context, no_update
from dash.dependencies import ALL
from dash.exceptions import PreventUpdate

from _analytics.distribution import DistributionRow, chart_slices
from _analytics.platform_breakdown import (frame_for_table, format_minutes, headline_stats,
                                           platform_breakdown, platform_durations)
from _helpers.graph import InteractionBridge, _extract_hover
from _meta.records import Record, parse_records
from _state.selection_session import SelectionSession
from _state.storage import MemoryStorage
from _visual.graph_distribution import make_distribution_donut
from settings import DEFAULTS

logger = logging.getLogger(__name__)

ERRORS_KEY = DEFAULTS["selected_errors_key"]
SUBTYPES_KEY = DEFAULTS["selected_subtypes_key"]
LOCAL_STORES = {"sel-store-errors": ERRORS_KEY, "sel-store-subtypes": SUBTYPES_KEY}

BUTTON_ACTIONS = {
    "sel-btn-all": "select_all",
    "sel-btn-none": "select_none",
    "sel-btn-default": "select_default",
    "sel-btn-reset": "reset",
}


# ---------- session plumbing ----------

@contextmanager
def _session_scope(records_data, payloads: Optional[Dict[str, Optional[str]]], expanded) -> Iterator[SelectionSession]:
    """
    One engine session per callback: hydrate from the store payloads, hand it
    to the caller, tear it down afterwards (cancels any bridge timer).
    """
    session = SelectionSession(MemoryStorage(payloads or {}))
    session.init(parse_records(records_data or []))
    try:
        session.set_expanded(expanded or [])
        yield session
    finally:
        session.teardown()


def _applied_payloads(session: SelectionSession) -> Dict[str, str]:
    errors, subtypes = session.storage_payloads()
    return {ERRORS_KEY: errors, SUBTYPES_KEY: subtypes}


def _last_write(storage: MemoryStorage, key: str):
    for k, v in reversed(storage.writes):
        if k == key:
            return v
    return no_update


def apply_trigger(session: SelectionSession, trig) -> None:
    """Map a toolbar / table control to the engine operation it stands for."""
    if isinstance(trig, str) and trig in BUTTON_ACTIONS:
        getattr(session, BUTTON_ACTIONS[trig])()
        return
    if not isinstance(trig, dict):
        return
    kind = trig.get("type")
    if kind == "cat-toggle":
        cat = trig["cat"]
        if cat in session.selected_error_values:
            session.remove_error_value(cat)
        else:
            session.add_error_value(cat)
    elif kind == "cat-expand":
        session.toggle_expanded(trig["cat"])
    elif kind == "sub-toggle":
        session.toggle_subtype(trig["key"])


def _pending_snapshot(bridge: InteractionBridge) -> Optional[dict]:
    snap = bridge.timer.snapshot()
    if snap is None:
        return None
    return {"payload": [r.uuid for r in snap["payload"]], "deadline": snap["deadline"]}


def _restore_pending(bridge: InteractionBridge, pending: Optional[dict], by_uuid: Dict[str, Record]) -> None:
    if not pending:
        bridge.timer.cancel()
        return
    records = [by_uuid[u] for u in pending.get("payload") or [] if u in by_uuid]
    bridge.timer.restore({"payload": records, "deadline": pending["deadline"]})


# ---------- rendering ----------

def _fmt_pct(v: Optional[float]) -> str:
    return "" if v is None else f"{v:.1f}%"


def _distribution_table(rows: List[DistributionRow], session: SelectionSession) -> html.Table:
    expanded = set(session.expanded_categories)
    selected = set(session.selected_error_values)
    selected_subtypes = set(session.selected_subtypes)

    body = [html.Tr([html.Th("Error type"), html.Th(""), html.Th("Runs"), html.Th("Share"), html.Th("Of parent")])]
    for r in rows:
        if r.is_subtype:
            on = r.key in selected_subtypes
            name_cell = html.Td([
                html.Button("☑" if on else "☐", id={"type": "sub-toggle", "key": r.key}, className="btn-flat"),
                r.name,
            ])
            body.append(html.Tr(className="subtype", children=[
                name_cell, html.Td(""), html.Td(f"{r.count:,}"), html.Td(_fmt_pct(r.percentage)),
                html.Td(_fmt_pct(r.share_of_parent)),
            ]))
            continue

        on = r.name in selected
        expand_cell = html.Td(
            html.Button("▾" if r.name in expanded else "▸", id={"type": "cat-expand", "cat": r.name}, className="btn-flat")
            if session.can_expand(r.name) else ""
        )
        body.append(html.Tr(className="" if on else "muted", children=[
            html.Td([html.Button("☑" if on else "☐", id={"type": "cat-toggle", "cat": r.name}, className="btn-flat"), r.name]),
            expand_cell, html.Td(f"{r.count:,}"), html.Td(_fmt_pct(r.percentage)), html.Td(""),
        ]))
    return html.Table(body, className="share-table")


def _headline(all_records: List[Record], filtered: List[Record], filtered_by_error: bool) -> List[html.Div]:
    s = headline_stats(all_records, filtered)
    items = [
        ("Total runs", f"{s['total']:,}"),
        ("Success rate", _fmt_pct(s["success_rate"])),
        ("Error rate", _fmt_pct(s["error_rate"])),
        ("Visible error rate", _fmt_pct(s["visible_error_rate"]) + (" (filtered)" if filtered_by_error else "")),
    ]
    return [html.Div([html.Span(k), html.Span(v, className="mono")], className="kv") for k, v in items]


def _platform_table(all_records: List[Record], filtered: List[Record]) -> html.Table:
    durations = {d["platform"]: d["avg_duration_s"] for d in platform_durations(filtered)}
    body = [html.Tr([html.Th("Platform"), html.Th("Runs"), html.Th("Success"), html.Th("Errors"), html.Th("Error %"),
                     html.Th("Avg duration")])]
    for p in platform_breakdown(all_records, filtered):
        avg = durations.get(p["platform"])
        body.append(html.Tr([
            html.Td(p["platform"]), html.Td(f"{p['total']:,}"), html.Td(f"{p['success']:,}"),
            html.Td(f"{p['error']:,}"), html.Td(_fmt_pct(p["error_pct"])),
            html.Td("" if avg is None else format_minutes(avg)),
        ]))
    return html.Table(body, className="share-table")


def _records_table(records: List[Record], limit: int) -> html.Table:
    df = frame_for_table(records, limit)
    body = [html.Tr([html.Th(c) for c in df.columns])]
    for row in df.itertuples(index=False):
        body.append(html.Tr([html.Td(str(v)) for v in row]))
    return html.Table(body, className="share-table")


# ---------- layout ----------

def make_error_section(title: str = "Error Type Summary") -> html.Div:
    """Builds the static HTML structure of the error-distribution section."""
    return html.Div(className="layout", children=[
        dcc.Store(id="err-hover-pending", data=None),
        dcc.Store(id="err-hover-records", data=[]),
        dcc.Store(id="err-selected-records", data=[]),
        dcc.Interval(id="err-hover-tick", interval=int(DEFAULTS["hover_delay_s"] * 1000), disabled=True),

        html.Div(className="panel", children=[
            html.Span(title, className="title"),
            html.Div(id="err-headline", style={"width": "320px", "marginBottom": "8px"}),
            html.Div(style={"display": "flex", "gap": "12px", "alignItems": "stretch", "width": "100%"}, children=[
                html.Div(style={"flex": "1", "border": "1px solid #eee", "borderRadius": "10px"}, children=[
                    dcc.Graph(id="err-donut", clear_on_unhover=True, config={"displayModeBar": False}),
                ]),
                html.Div(id="err-table", style={"flex": "1", "overflowY": "auto", "maxHeight": "340px"}),
            ]),
            html.Div(id="err-highlight", style={"marginTop": "10px", "fontSize": "11px"}),
            html.Div(id="err-platform", style={"marginTop": "10px"}),
        ]),
    ])


def register_error_section_callbacks(app) -> None:

    @app.callback(
        Output("sel-store-errors", "data"),
        Output("sel-store-subtypes", "data"),
        Output("sel-store-applied", "data"),
        Output("sel-store-expanded", "data"),
        *[Input(bid, "n_clicks") for bid in BUTTON_ACTIONS],
        Input({"type": "cat-toggle", "cat": ALL}, "n_clicks"),
        Input({"type": "cat-expand", "cat": ALL}, "n_clicks"),
        Input({"type": "sub-toggle", "key": ALL}, "n_clicks"),
        Input("sel-store-records", "data"),
        Input("sel-store-errors", "data"),
        Input("sel-store-subtypes", "data"),
        State("sel-store-applied", "data"),
        State("sel-store-expanded", "data"),
    )
    def _sync_selection(*args):
        """
        Single writer of the selection stores. Handles, in one place:
        user actions, dataset refreshes, and localStorage changes made by other tabs.
        """
        records_data, errors_payload, subtypes_payload, applied, expanded = args[-5:]
        if records_data is None:
            raise PreventUpdate

        trig = callback_context.triggered_id
        local = {ERRORS_KEY: errors_payload, SUBTYPES_KEY: subtypes_payload}

        if trig in LOCAL_STORES and applied is not None:
            key = LOCAL_STORES[trig]
            if local[key] == applied.get(key):
                # our own write echoing back
                raise PreventUpdate
            with _session_scope(records_data, applied, expanded) as session:
                session.handle_storage_event(key, local[key])
                return no_update, no_update, _applied_payloads(session), session.expanded_categories

        if isinstance(trig, dict) or trig in BUTTON_ACTIONS:
            if not callback_context.triggered or not callback_context.triggered[0].get("value"):
                # controls re-rendered with n_clicks=None
                raise PreventUpdate

        with _session_scope(records_data, applied if applied is not None else local, expanded) as session:
            apply_trigger(session, trig)
            storage = session.storage
            return (
                _last_write(storage, ERRORS_KEY),
                _last_write(storage, SUBTYPES_KEY),
                _applied_payloads(session),
                session.expanded_categories,
            )

    @app.callback(
        Output("err-donut", "figure"),
        Output("err-table", "children"),
        Output("err-headline", "children"),
        Output("err-platform", "children"),
        Input("sel-store-records", "data"),
        Input("sel-store-applied", "data"),
        Input("sel-store-expanded", "data"),
    )
    def _render_distribution(records_data, applied, expanded):
        if records_data is None or applied is None:
            raise PreventUpdate
        with _session_scope(records_data, applied, expanded) as session:
            rows = session.distribution(order=DEFAULTS["category_order"])
            filtered = session.filtered_bots
            all_records = session.all_records
            return (
                make_distribution_donut(chart_slices(rows)),
                _distribution_table(rows, session),
                _headline(all_records, filtered, session.bots_filtered_by_error),
                _platform_table(all_records, filtered),
            )

    @app.callback(
        Output("err-hover-pending", "data"),
        Input("err-donut", "hoverData"),
        State("sel-store-records", "data"),
        State("sel-store-applied", "data"),
        State("sel-store-expanded", "data"),
        prevent_initial_call=True,
    )
    def _queue_hover(hoverData, records_data, applied, expanded):
        if records_data is None or applied is None:
            raise PreventUpdate
        with _session_scope(records_data, applied, expanded) as session:
            bridge = InteractionBridge(session, on_hover=lambda _r: None, on_select=lambda _r: None, clock=time.time)
            name, parent, is_subtype = _extract_hover(hoverData)
            if name is None:
                bridge.on_segment_leave()
            else:
                bridge.on_segment_hover(bridge.records_for_segment(name, parent, is_subtype))
            snap = _pending_snapshot(bridge)
        if snap is None:
            raise PreventUpdate
        return snap

    @app.callback(
        Output("err-hover-tick", "disabled"),
        Input("err-hover-pending", "data"),
    )
    def _toggle_tick(pending):
        return not pending

    @app.callback(
        Output("err-hover-records", "data"),
        Output("err-hover-pending", "data", allow_duplicate=True),
        Input("err-hover-tick", "n_intervals"),
        State("err-hover-pending", "data"),
        State("sel-store-records", "data"),
        State("sel-store-applied", "data"),
        State("sel-store-expanded", "data"),
        prevent_initial_call=True,
    )
    def _flush_hover(_n, pending, records_data, applied, expanded):
        if not pending or records_data is None or applied is None:
            raise PreventUpdate
        delivered: List[List[Record]] = []
        with _session_scope(records_data, applied, expanded) as session:
            bridge = InteractionBridge(session, on_hover=delivered.append, on_select=lambda _r: None, clock=time.time)
            _restore_pending(bridge, pending, {r.uuid: r for r in session.all_records})
            if not bridge.poll():
                raise PreventUpdate
        return [r.uuid for r in delivered[0]], None

    @app.callback(
        Output("err-selected-records", "data"),
        Input("err-donut", "clickData"),
        State("sel-store-records", "data"),
        State("sel-store-applied", "data"),
        State("sel-store-expanded", "data"),
        prevent_initial_call=True,
    )
    def _on_click(clickData, records_data, applied, expanded):
        if not clickData or records_data is None or applied is None:
            raise PreventUpdate
        picked: List[Record] = []
        with _session_scope(records_data, applied, expanded) as session:
            bridge = InteractionBridge(session, on_hover=lambda _r: None, on_select=picked.extend)
            bridge.on_segment_click(bridge.records_for_segment(*_extract_hover(clickData)))
        if not picked:
            raise PreventUpdate
        return [r.uuid for r in picked]

    @app.callback(
        Output("err-highlight", "children"),
        Input("err-hover-records", "data"),
        Input("err-selected-records", "data"),
        State("sel-store-records", "data"),
    )
    def _render_highlight(hovered, selected, records_data):
        if not records_data:
            raise PreventUpdate
        by_uuid = {r.uuid: r for r in parse_records(records_data)}
        picked = [by_uuid[u] for u in (selected or []) if u in by_uuid]
        children = [html.Div(f"Hovering {len(hovered or []):,} runs · {len(picked):,} runs selected", className="kv")]
        if picked:
            children.append(_records_table(picked, DEFAULTS["max_listed_records"]))
        return children
