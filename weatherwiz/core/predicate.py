from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from functools import reduce
from typing import Any, FrozenSet, Iterable, Tuple

import pandas as pd


class CombineMode(str, Enum):
    """How a Selection folds its clause predicates together."""

    INTERSECT = "intersect"
    UNION = "union"


def _literal(value: Any) -> str:
    if isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    if isinstance(value, pd.Timestamp):
        return f"'{value.isoformat()}'"
    return str(value)


class Predicate(ABC):
    """
    Immutable filter expression over the columns of a table.

    Predicates are plain values: equal predicates compare and hash equal, so the
    Selection can detect no-op updates and the Coordinator can deduplicate
    identical in-flight queries.
    """

    @property
    @abstractmethod
    def columns(self) -> FrozenSet[str]:
        """Columns referenced by this predicate."""
        raise NotImplementedError()

    @abstractmethod
    def mask(self, frame: pd.DataFrame) -> pd.Series:
        """
        Evaluate the predicate against a DataFrame
        :param frame: the table to filter
        :return: boolean Series aligned with frame.index
        """
        raise NotImplementedError()

    def __and__(self, other: Predicate) -> Predicate:
        return combine([self, other], CombineMode.INTERSECT)

    def __or__(self, other: Predicate) -> Predicate:
        return combine([self, other], CombineMode.UNION)


@dataclass(frozen=True)
class _TruePredicate(Predicate):
    """Identity predicate: no filter."""

    @property
    def columns(self) -> FrozenSet[str]:
        return frozenset()

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        return pd.Series(True, index=frame.index, dtype=bool)

    def __str__(self) -> str:
        return "TRUE"


TRUE: Predicate = _TruePredicate()


@dataclass(frozen=True)
class Eq(Predicate):
    column: str
    value: Any

    @property
    def columns(self) -> FrozenSet[str]:
        return frozenset([self.column])

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        return frame[self.column] == self.value

    def __str__(self) -> str:
        return f"{self.column} = {_literal(self.value)}"


@dataclass(frozen=True)
class IsIn(Predicate):
    column: str
    values: Tuple[Any, ...]

    def __post_init__(self) -> None:
        # Accept any iterable but store a tuple so the predicate stays hashable
        object.__setattr__(self, "values", tuple(self.values))

    @property
    def columns(self) -> FrozenSet[str]:
        return frozenset([self.column])

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        return frame[self.column].isin(list(self.values))

    def __str__(self) -> str:
        items = ", ".join(_literal(v) for v in self.values)
        return f"{self.column} IN ({items})"


@dataclass(frozen=True)
class Between(Predicate):
    """Inclusive range on a numeric or datetime column."""

    column: str
    low: Any
    high: Any

    def __post_init__(self) -> None:
        if self.low > self.high:
            low, high = self.high, self.low
            object.__setattr__(self, "low", low)
            object.__setattr__(self, "high", high)

    @property
    def columns(self) -> FrozenSet[str]:
        return frozenset([self.column])

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        return frame[self.column].between(self.low, self.high, inclusive="both")

    def __str__(self) -> str:
        return f"{self.column} BETWEEN {_literal(self.low)} AND {_literal(self.high)}"


class _Compound(Predicate):
    _op: str = ""

    def __init__(self, *terms: Predicate):
        self.terms: Tuple[Predicate, ...] = tuple(terms)

    @property
    def columns(self) -> FrozenSet[str]:
        cols: FrozenSet[str] = frozenset()
        for term in self.terms:
            cols = cols | term.columns
        return cols

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.terms == self.terms

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.terms))

    def __repr__(self) -> str:
        inner = ", ".join(repr(t) for t in self.terms)
        return f"{type(self).__name__}({inner})"

    def __str__(self) -> str:
        return f" {self._op} ".join(f"({t})" for t in self.terms)


class And(_Compound):
    _op = "AND"

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        masks = [t.mask(frame) for t in self.terms]
        return reduce(lambda a, b: a & b, masks, TRUE.mask(frame))


class Or(_Compound):
    _op = "OR"

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        if not self.terms:
            return TRUE.mask(frame)
        masks = [t.mask(frame) for t in self.terms]
        return reduce(lambda a, b: a | b, masks)


def combine(predicates: Iterable[Predicate], mode: CombineMode) -> Predicate:
    """
    Fold predicates into one using the given combine mode.

    - identities (TRUE) are dropped from an intersection and absorb a union
    - nested terms of the same kind are flattened
    - nothing left to combine resolves to TRUE (no filter)
    """
    compound = And if mode is CombineMode.INTERSECT else Or

    terms = []
    for pred in predicates:
        if pred == TRUE:
            if mode is CombineMode.UNION:
                return TRUE
            continue
        if isinstance(pred, compound):
            terms.extend(pred.terms)
        else:
            terms.append(pred)

    if not terms:
        return TRUE
    if len(terms) == 1:
        return terms[0]
    return compound(*terms)
