from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from .predicate import CombineMode, Predicate, combine

logger = logging.getLogger(__name__)

SelectionListener = Callable[["Selection"], None]


@dataclass(frozen=True)
class Clause:
    """
    One replaceable predicate fragment contributed by a single source.

    Fields:

    - source_id: the widget/client that owns this clause
    - predicate: the filter it contributes
    - columns: columns the clause constrains (defaults to predicate.columns)
    """
    source_id: str
    predicate: Predicate
    columns: FrozenSet[str] = frozenset()

    @classmethod
    def of(cls, source_id: str, predicate: Predicate, columns: Optional[Iterable[str]] = None) -> Clause:
        cols = frozenset(columns) if columns is not None else predicate.columns
        return cls(source_id=source_id, predicate=predicate, columns=cols)


class Selection:
    """
    Shared, mutable filter state made of per-source clauses.

    Purpose:
    - Holds at most one clause per source; a new clause from the same source replaces the old one
    - Resolves the clauses into a single predicate, optionally excluding sources (cross-filtering)
    - Notifies listeners (the Coordinator) synchronously on every effective change

    Design Notes:
    - update() is the only mutation entry point; the clause map is swapped, never edited in place,
      so listeners always observe a fully replaced map
    - Version bumps are coalesced per dispatch turn: once a listener holds the turn open,
      further updates only change clauses until close_turn() is called
    """

    def __init__(self, combine_mode: CombineMode = CombineMode.INTERSECT, name: Optional[str] = None):
        self.combine_mode = CombineMode(combine_mode)
        self.name = name or f"selection-{id(self):x}"
        self._clauses: Dict[str, Clause] = {}
        self._listeners: List[SelectionListener] = []
        self._version = 0
        self._turn_open = False

    @classmethod
    def intersect(cls, name: Optional[str] = None) -> Selection:
        return cls(CombineMode.INTERSECT, name=name)

    @classmethod
    def union(cls, name: Optional[str] = None) -> Selection:
        return cls(CombineMode.UNION, name=name)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def version(self) -> int:
        return self._version

    @property
    def clauses(self) -> Dict[str, Clause]:
        return dict(self._clauses)

    def clause(self, source_id: str) -> Optional[Clause]:
        return self._clauses.get(source_id)

    def columns(self, excluding: FrozenSet[str] = frozenset()) -> FrozenSet[str]:
        """Columns constrained by the active clauses, minus excluded sources."""
        cols: FrozenSet[str] = frozenset()
        for source_id, clause in self._clauses.items():
            if source_id not in excluding:
                cols = cols | clause.columns
        return cols

    def __len__(self) -> int:
        return len(self._clauses)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def update(
        self,
        source_id: str,
        predicate: Optional[Predicate],
        columns: Optional[Iterable[str]] = None,
    ) -> bool:
        """
        Set or clear the clause for source_id
        :param source_id: the clause owner
        :param predicate: new predicate, or None to remove the clause entirely
        :param columns: columns the clause constrains; defaults to predicate.columns
        :return: True if the clause map changed, False for a no-op
        """
        current = self._clauses.get(source_id)

        if predicate is None:
            if current is None:
                return False
            clauses = {k: v for k, v in self._clauses.items() if k != source_id}
        else:
            clause = Clause.of(source_id, predicate, columns)
            if clause == current:
                return False
            clauses = dict(self._clauses)
            clauses[source_id] = clause

        self._clauses = clauses

        if not self._turn_open:
            self._version += 1
            self._turn_open = bool(self._listeners)

        logger.debug(
            "Selection updated",
            extra={
                "selection": self.name,
                "source_id": source_id,
                "predicate": str(predicate) if predicate is not None else None,
                "version": self._version,
            },
        )

        for listener in list(self._listeners):
            listener(self)
        return True

    def clear(self) -> bool:
        """Remove every clause; a single notification per removed source."""
        changed = False
        for source_id in list(self._clauses):
            changed = self.update(source_id, None) or changed
        return changed

    def close_turn(self) -> None:
        """End the current dispatch turn; the next effective update bumps the version again."""
        self._turn_open = False

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def resolve(self, excluding: Iterable[str] = frozenset()) -> Predicate:
        """
        Combine all clause predicates whose source is not excluded.
        An empty clause set resolves to TRUE (no filter).
        """
        excluded = frozenset(excluding)
        preds = [c.predicate for s, c in self._clauses.items() if s not in excluded]
        return combine(preds, self.combine_mode)

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------
    def subscribe(self, listener: SelectionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: SelectionListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass
        if not self._listeners:
            self._turn_open = False

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def __repr__(self) -> str:
        return (
            f"Selection(name={self.name!r}, mode={self.combine_mode.value}, "
            f"version={self._version}, clauses={sorted(self._clauses)})"
        )
