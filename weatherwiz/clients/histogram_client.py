from __future__ import annotations

from typing import Optional

import pandas as pd
import plotly.graph_objects as go

from weatherwiz.core.client import BaseClient, ResultSink
from weatherwiz.core.predicate import Predicate
from weatherwiz.core.query import Aggregate, Bin, QuerySpec
from weatherwiz.core.selection import Selection


class HistogramClient(BaseClient):
    """
    Binned row counts of one numeric column, filtered by the Selection.
    """

    kind = "histogram"
    label = "Histogram"

    def __init__(
        self,
        table: str,
        selection: Optional[Selection] = None,
        *,
        column: str = "precipitation",
        step: float = 5.0,
        client_id: Optional[str] = None,
        source_id: Optional[str] = None,
        self_exclusion: Optional[bool] = None,
        sink: Optional[ResultSink] = None,
        title: Optional[str] = None,
    ):
        super().__init__(
            table,
            selection,
            client_id=client_id or f"{column}-histogram",
            source_id=source_id,
            self_exclusion=self_exclusion,
            sink=sink,
            title=title or f"Distribution of {column}",
        )
        self.column = column
        self.step = float(step)

    def build_query(self, predicate: Predicate) -> QuerySpec:
        return QuerySpec(
            bin=Bin(self.column, self.step),
            aggregates=(Aggregate("count", "*", "count"),),
            order_by=("bin0",),
        )

    def render_figure(self, data: Optional[pd.DataFrame] = None) -> go.Figure:
        data = self.value if data is None else data
        if data is None or data.empty:
            return self.empty_figure("No rows match the current selection")

        fig = go.Figure(
            go.Bar(
                x=data["bin0"],
                y=data["count"],
                width=self.step,
                offset=0,
                marker_color="steelblue",
                customdata=data["bin1"],
                hovertemplate=f"{self.column} %{{x}} to %{{customdata}}<br>count %{{y}}<extra></extra>",
            )
        )
        fig.update_layout(
            title=self.title,
            height=300,
            margin=dict(l=40, r=20, t=50, b=40),
            xaxis_title=self.column,
            yaxis_title="Number of days",
            bargap=0.05,
        )
        return fig
