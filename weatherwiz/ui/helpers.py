from __future__ import annotations

from typing import Any, Optional, Tuple

import plotly.graph_objs as go


def brush_range(selected_data: Optional[dict]) -> Tuple[Any, Any]:
    """
    Turn a Graph's selectedData into an (x_low, x_high) interval.

    Box selections carry an explicit x range; lasso selections only carry points,
    so their x extent is used. No selection -> (None, None), which clears the brush.
    """
    if not selected_data:
        return None, None

    x_range = (selected_data.get("range") or {}).get("x")
    if x_range and len(x_range) == 2:
        return x_range[0], x_range[1]

    xs = [p["x"] for p in selected_data.get("points", []) if "x" in p]
    if not xs:
        return None, None
    return min(xs), max(xs)


def message_figure(title: str, details: Optional[str] = None) -> go.Figure:
    fig = go.Figure()
    text = title if details is None else f"{title}<br><br>{details}"
    fig.add_annotation(
        text=text,
        showarrow=False,
        xref="paper",
        yref="paper",
        x=0.5,
        y=0.5,
    )
    fig.update_xaxes(visible=False)
    fig.update_yaxes(visible=False)
    fig.update_layout(height=300, margin=dict(l=40, r=40, t=40, b=40))
    return fig


def error_figure(details: str) -> go.Figure:
    return message_figure("Something went wrong while rendering this chart.", details)
