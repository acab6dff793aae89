from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, FrozenSet, Optional

import pandas as pd
import plotly.graph_objs as go

from .predicate import CombineMode, Predicate, TRUE
from .query import QueryResult, QuerySpec
from .selection import Selection

logger = logging.getLogger(__name__)

ResultSink = Callable[[Any], None]


class ClientState(str, Enum):
    IDLE = "idle"
    QUERY_PENDING = "query_pending"
    APPLYING_RESULT = "applying_result"
    SUPERSEDED = "superseded"


class BaseClient(ABC):
    """
    Abstract base class for all query-bound dashboard widgets.

    Defines the contract that every client in the app must follow
    - expose a 'kind' - used by the ClientRegistry and config
    - expose a 'label' - used for UI/human-readable applications
    - implement 'build_query' - a pure function from the resolved predicate to a QuerySpec
    - optionally override 'transform' - turns the raw result rows into the value handed to the sink

    A client holds a non-owning reference to its Selection; the Coordinator owns the
    subscription and decides when build_query/on_result run.
    """

    kind: str = None
    label: str = None

    def __init__(
        self,
        table: str,
        selection: Optional[Selection] = None,
        *,
        client_id: Optional[str] = None,
        source_id: Optional[str] = None,
        self_exclusion: Optional[bool] = None,
        sink: Optional[ResultSink] = None,
        title: Optional[str] = None,
    ):
        self.id = client_id or self.kind
        self.table = table
        self.selection = selection
        self.source_id = source_id
        self.sink = sink
        self.title = title or self.label
        self._self_exclusion = self_exclusion

        # Last known good value; kept in place when a later query fails
        self.value: Any = None
        self.last_result: Optional[QueryResult] = None
        self.last_error: Optional[Exception] = None
        self.result_count = 0

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------
    @abstractmethod
    def build_query(self, predicate: Predicate) -> QuerySpec:
        """
        Build the query for the current resolved predicate
        :param predicate: the Selection resolved for this client (own clause excluded if self-excluding)
        :return: the QuerySpec to run against self.table
        """
        raise NotImplementedError()

    def transform(self, data: pd.DataFrame) -> Any:
        """Turn raw result rows into the value forwarded to the sink. Identity by default."""
        return data

    def on_result(self, result: QueryResult) -> None:
        value = self.transform(result.data)
        self.value = value
        self.last_result = result
        self.last_error = None
        self.result_count += 1
        if self.sink is not None:
            self.sink(value)

    def on_error(self, error: Exception) -> None:
        """Record a failure; the last good value stays in place."""
        self.last_error = error

    # ------------------------------------------------------------------
    # Cross-filtering helpers
    # ------------------------------------------------------------------
    @property
    def self_exclusion(self) -> bool:
        """
        Explicit flag if given, otherwise derived: a clause source bound to an
        intersect Selection never filters against its own clause.
        """
        if self._self_exclusion is not None:
            return self._self_exclusion
        return (
            self.source_id is not None
            and self.selection is not None
            and self.selection.combine_mode is CombineMode.INTERSECT
        )

    def exclusions(self) -> FrozenSet[str]:
        if self.self_exclusion and self.source_id is not None:
            return frozenset([self.source_id])
        return frozenset()

    def resolve_predicate(self) -> Predicate:
        if self.selection is None:
            return TRUE
        return self.selection.resolve(excluding=self.exclusions())

    def publish(self, predicate: Optional[Predicate]) -> bool:
        """
        Push this client's clause into its Selection (None clears it).
        Only clients configured with a source_id can publish.
        """
        if self.selection is None or self.source_id is None:
            raise RuntimeError(f"Client '{self.id}' is not a selection source")
        return self.selection.update(self.source_id, predicate)

    # ------------------------------------------------------------------
    # Common helpers for all clients
    # ------------------------------------------------------------------
    @staticmethod
    def empty_figure(message: str) -> go.Figure:
        """
        Standardised 'no data' figure used by chart clients.
        """
        fig = go.Figure()
        fig.update_layout(
            title=message,
            xaxis={"visible": False},
            yaxis={"visible": False},
        )
        return fig

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, table={self.table!r}, source_id={self.source_id!r})"
