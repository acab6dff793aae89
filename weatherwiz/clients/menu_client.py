from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

from weatherwiz.core.client import BaseClient, ResultSink
from weatherwiz.core.predicate import Eq, Predicate
from weatherwiz.core.query import Aggregate, QuerySpec
from weatherwiz.core.selection import Selection


class MenuClient(BaseClient):
    """
    Categorical selector over one column (the "Weather" menu).

    It is a clause source that excludes its own clause when resolving, so the
    menu keeps listing every value still reachable under the *other* clauses
    instead of collapsing to the current choice.
    """

    kind = "menu"
    label = "Menu"

    def __init__(
        self,
        table: str,
        selection: Optional[Selection] = None,
        *,
        column: str = "weather",
        client_id: Optional[str] = None,
        source_id: Optional[str] = None,
        self_exclusion: Optional[bool] = None,
        sink: Optional[ResultSink] = None,
        title: Optional[str] = None,
    ):
        client_id = client_id or f"{column}-menu"
        super().__init__(
            table,
            selection,
            client_id=client_id,
            # each menu owns its own clause unless told to share one
            source_id=source_id or client_id,
            self_exclusion=self_exclusion,
            sink=sink,
            title=title or column.replace("_", " ").title(),
        )
        self.column = column
        self.selected: Any = None

    def build_query(self, predicate: Predicate) -> QuerySpec:
        return QuerySpec(
            group_by=(self.column,),
            aggregates=(Aggregate("count", "*", "count"),),
            order_by=(self.column,),
        )

    def transform(self, data: pd.DataFrame) -> List[Dict[str, Any]]:
        if data is None or data.empty:
            return []
        # .tolist() turns numpy scalars into plain Python values (JSON-safe for Dash)
        values = data[self.column].tolist()
        counts = data["count"].astype(int).tolist()
        return [{"value": v, "count": c} for v, c in zip(values, counts)]

    def options(self) -> List[Dict[str, Any]]:
        """Dropdown options built from the last good result."""
        return [{"label": str(item["value"]), "value": item["value"]} for item in (self.value or [])]

    def select(self, value: Any) -> bool:
        """
        Publish the menu choice as an equality clause; None/"" clears it
        :return: True if the Selection changed
        """
        self.selected = value if value not in (None, "") else None
        predicate = Eq(self.column, self.selected) if self.selected is not None else None
        return self.publish(predicate)
