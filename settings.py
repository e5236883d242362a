# config.py
from pathlib import Path
from _utils.utils import resource_path

ROOT = Path(__file__).resolve().parents[0]
LOCAL = ROOT / "_local"

LOCAL.mkdir(exist_ok=True)

DEFAULTS = {
    "selected_errors_key": "analytics-selected-errors",
    "selected_subtypes_key": "analytics-selected-subtypes",
    # excluded from "select default" so first-time viewers only see actionable errors
    "non_critical_errors": [
        "Bot Not Accepted",
        "Insufficient Tokens",
        "Invalid Meeting URL",
        "Meeting Already Started",
        "Meeting Start Timeout",
        "Webhook Error",
    ],
    "hover_delay_s": 0.1,
    "category_order": "alphabetical",   # alphabetical | count | natural
    "max_listed_records": 50,
    "log_level": "INFO",
    "port": 8055,
}

PATHS = {
    "records_json":            resource_path("_local/bot_runs.json"),
    "records_cache_json":      resource_path("_local/bot_runs_cache.json"),
    "taxonomy_json":           resource_path("_local/error_taxonomy.json"),
    "taxonomy_edges_csv":      resource_path("_local/error_taxonomy_edges.csv"),
}



# theme.py
INDEX_STRING = """<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>Bot Run Analytics</title>
  <link rel="stylesheet" href="https://fonts.googleapis.com/css2?family=Material+Symbols+Outlined:FILL@0..1" />
<style>
    html, body {
      margin: 0;
      padding: 0;
      font-family: system-ui, sans-serif;
    }
    .layout { padding: 8px; }
    .panel { border:1px solid #666; border-radius:10px; padding:8px; }

    /* --- Component & Text Styles --- */
    .icon { font-family: 'Material Symbols Outlined'; font-variation-settings: 'FILL' 0; font-size:18px; }
    .toolbar-row { display:flex; gap:15px; align-items:center; flex-wrap:wrap; }
    .toolbar-group { display:inline-flex; align-items:center; gap:6px; font-size:11px; }
    .toolbar-group label { font-weight: 600; }
    .btn { display:inline-flex; align-items:center; gap:4px; padding:4px 8px; border:1px solid #ddd; border-radius:8px; cursor:pointer; background:#fff; font-size: 11px; }
    .btn-flat { border:none; background:none; cursor:pointer; padding:0 4px; font-size: 12px; }
    .title { margin:0 0 6px 0; color:#444; font-weight:600; font-size: 13px; }
    .kv { display:flex; justify-content:space-between; padding:2px 0; font-size: 11px; }
    .mono { font-family: ui-monospace, SFMono-Regular, Menlo, Consolas, monospace; }
    .js-plotly-plot .main-svg text { font-size: 10px !important; }
    .js-plotly-plot .legend text { font-size: 9px !important; }
    .share-table { width: 100%; margin-top: 15px; border-collapse: collapse; font-size: 10px; white-space: nowrap; }
    .share-table th, .share-table td { border: 1px solid #ddd; padding: 4px 6px; text-align: right; }
    .share-table th { background-color: #f8f8f8; text-align: center; font-weight: bold;}
    .share-table td:first-child { text-align: left; font-weight: bold; }
    .share-table tr.subtype td:first-child { font-weight: normal; padding-left: 24px; }
    .share-table tr.muted td { color: #aaa; }
</style>
</head>
<body>
  {%app_entry%}
  <footer>{%config%}{%scripts%}{%renderer%}</footer>
</body>
</html>"""
