from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List

import dash
import plotly.graph_objs as go
from dash import ALL, Input, Output

from weatherwiz.clients import MenuClient, ScatterClient, StatClient
from weatherwiz.core.client import BaseClient
from weatherwiz.ui.helpers import brush_range, error_figure
from weatherwiz.ui.ids import IDs, graph_id, menu_id, stat_id

if TYPE_CHECKING:
    from weatherwiz.services.session_service import DashboardSession
    from weatherwiz.ui.context import AppContext

logger = logging.getLogger(__name__)


def _render_chart(client: BaseClient) -> go.Figure:
    try:
        return client.render_figure()
    except Exception:
        logger.exception("Error rendering chart", extra={"client_id": client.id})
        return error_figure("The chart could not be drawn from its last result.")


def _status_text(clients: List[BaseClient]) -> str:
    failed = [c.title for c in clients if c.last_error is not None]
    if not failed:
        return ""
    return "Showing last good results for: " + ", ".join(failed)


def run_dashboard_turn(session: DashboardSession, inputs_list: List[Any], outputs_list: List[Any]):
    """
    Apply every menu value and scatter brush in one dispatch turn, then render
    every widget from its last good value.

    :param inputs_list: dash.ctx.inputs_list -> [menu value inputs, graph selectedData inputs]
    :param outputs_list: dash.ctx.outputs_list -> [menu options, graph figures, stat texts, status bar]
    :return: (options, figures, stat texts, status text) in output order
    """
    menu_inputs, graph_inputs = inputs_list
    status = None

    try:
        with session.interaction():
            for item in menu_inputs:
                client = session.client(item["id"]["index"])
                if isinstance(client, MenuClient):
                    client.select(item.get("value"))

            for item in graph_inputs:
                client = session.client(item["id"]["index"])
                if isinstance(client, ScatterClient):
                    client.brush(*brush_range(item.get("value")))
    except Exception:
        logger.exception(
            "Error in update_dashboard",
            extra={"menu_values": [item.get("value") for item in menu_inputs]},
        )
        status = "The dashboard hit an unexpected error; showing the last good results."
        # the turn still flushed; apply what it issued
        session.refresh()

    menu_outputs, graph_outputs, stat_outputs, _ = outputs_list

    options = [session.client(item["id"]["index"]).options() for item in menu_outputs]
    figures = [_render_chart(session.client(item["id"]["index"])) for item in graph_outputs]

    stats = []
    for item in stat_outputs:
        client = session.client(item["id"]["index"])
        stats.append(client.format_value() if isinstance(client, StatClient) else "")

    return options, figures, stats, status or _status_text(session.clients)


def register_render_callbacks(app: dash.Dash, ctx: AppContext) -> None:
    session = ctx.session

    # ---------------------------------------------------------
    # Menu values + scatter brushes -> one dispatch turn -> every widget
    # ---------------------------------------------------------
    @app.callback(
        Output(menu_id(ALL), "options"),
        Output(graph_id(ALL), "figure"),
        Output(stat_id(ALL), "children"),
        Output(IDs.Control.STATUS_BAR, "children"),
        Input(menu_id(ALL), "value"),
        Input(graph_id(ALL), "selectedData"),
        prevent_initial_call=True,
    )
    def update_dashboard(menu_values: List[Any], selections: List[Any]):
        return run_dashboard_turn(session, dash.ctx.inputs_list, dash.ctx.outputs_list)
