from __future__ import annotations

import numbers
from typing import Any, Dict, Optional, Sequence, Union

import pandas as pd

from weatherwiz.core.client import BaseClient, ResultSink
from weatherwiz.core.predicate import Predicate
from weatherwiz.core.query import Aggregate, QuerySpec
from weatherwiz.core.selection import Selection

StatValue = Union[None, float, pd.Timestamp, Dict[Any, Any]]


def _clean(value: Any) -> Any:
    # min/max over a date column yield Timestamps; only numbers become floats
    if value is None or pd.isna(value):
        return None
    if isinstance(value, numbers.Real):
        return float(value)
    return value


class StatClient(BaseClient):
    """
    A single derived statistic (average precipitation by default).

    Ungrouped queries yield one row and the value is a float (None when no rows
    match). With group_by the result has one row per group and the value is a
    {group: float} mapping; both shapes go through the same row iteration.
    """

    kind = "stat"
    label = "Statistic"

    def __init__(
        self,
        table: str,
        selection: Optional[Selection] = None,
        *,
        column: str = "precipitation",
        func: str = "mean",
        group_by: Sequence[str] = (),
        unit: str = "",
        precision: int = 2,
        client_id: Optional[str] = None,
        source_id: Optional[str] = None,
        self_exclusion: Optional[bool] = None,
        sink: Optional[ResultSink] = None,
        title: Optional[str] = None,
    ):
        super().__init__(
            table,
            selection,
            client_id=client_id or f"{func}-{column}",
            source_id=source_id,
            self_exclusion=self_exclusion,
            sink=sink,
            title=title or f"{func.title()} {column}",
        )
        self.column = column
        self.func = func
        self.group_by = tuple(group_by)
        self.unit = unit
        self.precision = precision

    def build_query(self, predicate: Predicate) -> QuerySpec:
        return QuerySpec(
            group_by=self.group_by,
            aggregates=(Aggregate("value", self.column, self.func),),
            order_by=self.group_by,
        )

    def transform(self, data: pd.DataFrame) -> StatValue:
        if data is None or data.empty:
            return {} if self.group_by else None

        values: Dict[Any, Any] = {}
        for row in data.to_dict("records"):
            key = tuple(row[g] for g in self.group_by)
            values[key[0] if len(key) == 1 else key] = _clean(row["value"])

        if not self.group_by:
            return values[()]
        return values

    def format_value(self, value: StatValue = None) -> str:
        value = self.value if value is None else value
        if value is None or value == {}:
            return "n/a"
        if isinstance(value, dict):
            return ", ".join(f"{k}: {self._fmt(v)}" for k, v in value.items())
        return self._fmt(value)

    def _fmt(self, value: Any) -> str:
        if value is None:
            return "n/a"
        if isinstance(value, float):
            text = f"{value:.{self.precision}f}"
        else:
            text = str(value)
        return f"{text} {self.unit}" if self.unit else text
