from __future__ import annotations

from typing import TYPE_CHECKING

import dash_bootstrap_components as dbc
from dash import html

from weatherwiz.clients import HistogramClient, MenuClient, ScatterClient, StatClient
from weatherwiz.ui.ids import IDs
from weatherwiz.ui.layout.build_filter_panel import build_filter_panel
from weatherwiz.ui.layout.build_navbar import build_navbar
from weatherwiz.ui.layout.build_plot_panel import build_plot_panel

if TYPE_CHECKING:
    from weatherwiz.ui.context import AppContext


def build_layout(ctx: AppContext):
    session = ctx.session
    cfg = ctx.global_config

    clients = session.clients
    menus = [c for c in clients if isinstance(c, MenuClient)]
    charts = [c for c in clients if isinstance(c, (HistogramClient, ScatterClient))]
    stats = [c for c in clients if isinstance(c, StatClient)]

    n_rows = session.store.row_count(cfg.table)
    navbar = build_navbar(cfg.ui_title, f"{n_rows} days · table '{cfg.table}'")

    return dbc.Container(
        fluid=True,
        className="wwz-root",
        children=[
            navbar,
            build_filter_panel(menus),
            build_plot_panel(charts, stats),
            html.Div(id=IDs.Control.STATUS_BAR, className="wwz-status text-muted small"),
        ],
    )
