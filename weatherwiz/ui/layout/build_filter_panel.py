from __future__ import annotations

from typing import List

import dash_bootstrap_components as dbc
from dash import dcc, html

from weatherwiz.clients import MenuClient
from weatherwiz.ui.ids import menu_id


def build_filter_panel(menus: List[MenuClient]) -> dbc.Card:
    """One dropdown per menu client, laid out in a single row."""
    if not menus:
        return dbc.Card(dbc.CardBody("No filters configured."), className="wwz-filters")

    return dbc.Card(
        dbc.CardBody(
            dbc.Row(
                [
                    dbc.Col(
                        [
                            html.Label(menu.title, className="form-label"),
                            dcc.Dropdown(
                                id=menu_id(menu.id),
                                options=menu.options(),
                                value=menu.selected,
                                clearable=True,
                                placeholder="All",
                            ),
                        ],
                        md=3,
                    )
                    for menu in menus
                ],
                className="gx-3",
            )
        ),
        className="wwz-filters mb-3",
    )
