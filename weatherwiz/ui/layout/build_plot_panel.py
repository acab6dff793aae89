from __future__ import annotations

from typing import List, Union

import dash_bootstrap_components as dbc
from dash import dcc, html

from weatherwiz.clients import HistogramClient, ScatterClient, StatClient
from weatherwiz.ui.ids import graph_id, stat_id

ChartClient = Union[HistogramClient, ScatterClient]


def _chart_card(client: ChartClient) -> dbc.Card:
    return dbc.Card(
        [
            dbc.CardHeader(html.Strong(client.title), className="p-2"),
            dbc.CardBody(
                dcc.Loading(
                    type="default",
                    children=dcc.Graph(
                        id=graph_id(client.id),
                        figure=client.render_figure(),
                        config={"responsive": True, "displaylogo": False},
                    ),
                ),
                className="p-1",
            ),
        ],
        className="wwz-chartcard h-100",
    )


def _stat_card(client: StatClient) -> dbc.Card:
    return dbc.Card(
        [
            dbc.CardHeader(html.Strong(client.title), className="p-2"),
            dbc.CardBody(
                html.H3(client.format_value(), id=stat_id(client.id), className="wwz-stat mb-0"),
            ),
        ],
        className="wwz-statcard mb-3",
    )


def build_plot_panel(charts: List[ChartClient], stats: List[StatClient]) -> dbc.Row:
    chart_cols = [dbc.Col(_chart_card(c), md=4 if stats else 6, className="mb-3") for c in charts]
    stat_col = dbc.Col([_stat_card(s) for s in stats], md=12 - 4 * min(len(charts), 2) if charts else 12)

    children = chart_cols + ([stat_col] if stats else [])
    return dbc.Row(children, className="gx-3")
