from __future__ import annotations

from typing import Any, Optional, Tuple

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from weatherwiz.core.client import BaseClient, ResultSink
from weatherwiz.core.predicate import Between, Predicate
from weatherwiz.core.query import Aggregate, QuerySpec
from weatherwiz.core.selection import Selection

Domain = Tuple[Any, Any]


class ScatterClient(BaseClient):
    """
    Row-level x/y scatter filtered by the Selection.

    Also a clause source: an interval brush along x publishes a Between clause
    (its source_id defaults to the client id). With fixed_domain the axes are pinned to the
    unfiltered extent so filtering does not rescale the plot.
    """

    kind = "scatter"
    label = "Scatter"

    def __init__(
        self,
        table: str,
        selection: Optional[Selection] = None,
        *,
        x: str = "temp_max",
        y: str = "wind",
        color: Optional[str] = None,
        fixed_domain: bool = True,
        client_id: Optional[str] = None,
        source_id: Optional[str] = None,
        self_exclusion: Optional[bool] = None,
        sink: Optional[ResultSink] = None,
        title: Optional[str] = None,
    ):
        client_id = client_id or f"{x}-{y}-scatter"
        super().__init__(
            table,
            selection,
            client_id=client_id,
            source_id=source_id or client_id,
            self_exclusion=self_exclusion,
            sink=sink,
            title=title or f"{y} vs {x}",
        )
        self.x = x
        self.y = y
        self.color = color
        self.fixed_domain = fixed_domain
        self.x_domain: Optional[Domain] = None
        self.y_domain: Optional[Domain] = None

    def build_query(self, predicate: Predicate) -> QuerySpec:
        cols = (self.x, self.y) + ((self.color,) if self.color else ())
        return QuerySpec(select=cols)

    # ------------------------------------------------------------------
    # Fixed domain
    # ------------------------------------------------------------------
    def domain_query(self) -> QuerySpec:
        """Min/max of both axes; run once against the unfiltered table."""
        return QuerySpec(
            aggregates=(
                Aggregate("x_min", self.x, "min"),
                Aggregate("x_max", self.x, "max"),
                Aggregate("y_min", self.y, "min"),
                Aggregate("y_max", self.y, "max"),
            )
        )

    def apply_domain(self, data: pd.DataFrame) -> None:
        if data is None or data.empty:
            return
        row = data.iloc[0]
        self.x_domain = (row["x_min"], row["x_max"])
        self.y_domain = (row["y_min"], row["y_max"])

    # ------------------------------------------------------------------
    # Interval brush
    # ------------------------------------------------------------------
    def brush(self, low: Any = None, high: Any = None) -> bool:
        """
        Publish an x-interval clause; either bound missing clears it
        :return: True if the Selection changed
        """
        if low is None or high is None:
            return self.publish(None)
        return self.publish(Between(self.x, low, high))

    def render_figure(self, data: Optional[pd.DataFrame] = None) -> go.Figure:
        data = self.value if data is None else data
        if data is None or data.empty:
            return self.empty_figure("No rows match the current selection")

        if self.color:
            fig = px.scatter(data, x=self.x, y=self.y, color=self.color, opacity=0.5)
        else:
            fig = go.Figure(
                go.Scatter(
                    x=data[self.x],
                    y=data[self.y],
                    mode="markers",
                    marker=dict(color="steelblue", opacity=0.3, size=5),
                )
            )

        fig.update_traces(marker_size=5)
        fig.update_layout(
            title=self.title,
            height=300,
            margin=dict(l=40, r=20, t=50, b=40),
            xaxis_title=self.x,
            yaxis_title=self.y,
            dragmode="select",
            selectdirection="h",
            # keep the brush rectangle across redraws
            uirevision=self.id,
        )
        if self.x_domain is not None:
            fig.update_xaxes(range=list(self.x_domain))
        if self.y_domain is not None:
            fig.update_yaxes(range=list(self.y_domain))
        return fig
