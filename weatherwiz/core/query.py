from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import pandas as pd

from .predicate import Predicate, TRUE

AGGREGATE_FUNCS = frozenset({"count", "sum", "mean", "min", "max", "median"})


@dataclass(frozen=True)
class Aggregate:
    """
    One named aggregate in a query projection.

    - alias: output column name
    - column: input column; ignored (may be "*") for count
    - func: one of AGGREGATE_FUNCS
    """
    alias: str
    column: str
    func: str = "count"

    def __post_init__(self) -> None:
        if self.func not in AGGREGATE_FUNCS:
            raise ValueError(f"Unsupported aggregate '{self.func}' for '{self.alias}'")


@dataclass(frozen=True)
class Bin:
    """Fixed-width binning of a numeric column into bin0/bin1 edges."""
    column: str
    step: float

    def __post_init__(self) -> None:
        if self.step <= 0:
            raise ValueError(f"Bin step must be positive, got {self.step}")


@dataclass(frozen=True)
class QuerySpec:
    """
    Declarative query template produced by Client.build_query.

    Either a row projection (select only) or an aggregation (group_by/bin plus
    aggregates). Frozen and tuple-based so equal specs hash equal.
    """
    select: Tuple[str, ...] = ()
    group_by: Tuple[str, ...] = ()
    aggregates: Tuple[Aggregate, ...] = ()
    bin: Optional[Bin] = None
    order_by: Tuple[str, ...] = ()
    limit: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("select", "group_by", "aggregates", "order_by"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def is_aggregate(self) -> bool:
        return bool(self.aggregates)

    def input_columns(self) -> frozenset:
        """Table columns this spec reads (excluding count(*))."""
        cols = set(self.select) | set(self.group_by)
        cols |= {a.column for a in self.aggregates if a.column != "*"}
        if self.bin is not None:
            cols.add(self.bin.column)
        return frozenset(cols)


@dataclass(frozen=True)
class QueryRequest:
    """Immutable snapshot of one issued query."""
    client_id: str
    table: str
    spec: QuerySpec
    generation: int
    predicate: Predicate = TRUE
    selection_version: int = 0
    issued_at: float = 0.0

    @property
    def key(self) -> Tuple[str, Predicate, QuerySpec]:
        """Identity used to deduplicate in-flight work."""
        return self.table, self.predicate, self.spec


@dataclass
class QueryResult:
    """Column-oriented result tagged with the generation it answers."""
    client_id: str
    generation: int
    data: pd.DataFrame = field(default_factory=pd.DataFrame)
    elapsed: float = 0.0

    @property
    def empty(self) -> bool:
        return self.data is None or self.data.empty
