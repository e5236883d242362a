import logging

from dash import Dash, html

from settings import DEFAULTS, PATHS, INDEX_STRING
from _sections.error_section import make_error_section, register_error_section_callbacks
from _sections.selection_toolbar import make_selection_toolbar, register_selection_toolbar_callbacks
from _utils.logging import configure_logging

logger = logging.getLogger(__name__)

# --- MAIN APP CREATION ---

def create_app(feed_path=None, cache_path=None):
    app = Dash(__name__, suppress_callback_exceptions=True)
    app.index_string = INDEX_STRING

    feed_path = feed_path or PATHS["records_json"]
    cache_path = cache_path if cache_path is not None else PATHS["records_cache_json"]

    # --- Layout: toolbar (stores + controls) above the error section ---
    app.layout = html.Div([
        make_selection_toolbar(),
        make_error_section(),
    ])

    # --- REGISTER ALL CALLBACKS ONCE AT STARTUP ---
    register_selection_toolbar_callbacks(app, feed_path, cache_path)
    register_error_section_callbacks(app)

    logger.info("App created (feed=%s)", feed_path)
    return app

if __name__ == "__main__":
    configure_logging(DEFAULTS["log_level"])
    app = create_app()
    app.run(debug=False, port=DEFAULTS["port"])
