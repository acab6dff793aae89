from __future__ import annotations

import dash_bootstrap_components as dbc
from dash import html

from weatherwiz.ui.ids import IDs


def build_navbar(title: str, subtitle: str) -> dbc.Navbar:
    return dbc.Navbar(
        dbc.Container(
            fluid=True,
            children=[
                html.Div(
                    [
                        html.H2(title, className="mb-0"),
                        html.Small(
                            subtitle,
                            className="text-muted",
                            id=IDs.Control.NAVBAR_SUBTITLE,
                        ),
                    ],
                    className="d-flex flex-column justify-content-center",
                ),
            ],
        ),
        className="wwz-navbar mb-3",
        color="light",
    )
