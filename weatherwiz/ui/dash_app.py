from __future__ import annotations

import atexit
import logging
from pathlib import Path

import dash_bootstrap_components as dbc
from dash import Dash

from weatherwiz.config.loader import load_global_config
from weatherwiz.services.session_service import DashboardSession
from weatherwiz.ui.callbacks.callbacks_render import register_render_callbacks
from weatherwiz.ui.context import AppContext
from weatherwiz.ui.layout.build_layout import build_layout

logger = logging.getLogger(__name__)


def create_dash_app(config_root: Path | str = Path("config")) -> Dash:
    config_root = Path(config_root)

    # 1) Load Config
    global_config = load_global_config(config_root)

    # 2) Start the session: ingestion failures are fatal and surface here
    session = DashboardSession(global_config).start()
    atexit.register(session.close)

    # 3) App Context
    ctx = AppContext(
        config_root=config_root,
        global_config=global_config,
        session=session,
    )

    assets_path = Path(__file__).parent / "assets"

    app = Dash(
        __name__,
        external_stylesheets=[dbc.themes.FLATLY],
        assets_folder=str(assets_path),
    )
    app.title = global_config.ui_title
    app.layout = build_layout(ctx)

    register_render_callbacks(app, ctx)

    logger.info(
        "Dash app created",
        extra={"config_root": str(config_root), "clients": [c.id for c in session.clients]},
    )
    return app
