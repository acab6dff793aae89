from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .exceptions import IngestionError, QueryExecutionError
from .predicate import Predicate, TRUE
from .query import QuerySpec

logger = logging.getLogger(__name__)


class TabularStore:
    """
    In-process tabular store backed by pandas DataFrames.

    Includes:
    - one-time ingestion of CSV files/URLs into named tables
    - filter + bin + group + aggregate execution of a QuerySpec

    Tables are treated as read-only once registered, so query() can run on
    worker threads while the coordinator keeps dispatching.
    """

    def __init__(self) -> None:
        self._tables: Dict[str, pd.DataFrame] = {}
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------
    def load_csv(
        self,
        table: str,
        source: Union[str, Path],
        parse_dates: Optional[Sequence[str]] = None,
    ) -> int:
        """
        Load a CSV file or URL into a named table.

        :param table: the table name queries will refer to
        :param source: local path or URL understood by pandas.read_csv
        :param parse_dates: columns to parse as datetimes
        :return: number of rows loaded

        Raises:
            IngestionError: if the source cannot be read or holds no rows
        """
        logger.info("Loading CSV", extra={"table": table, "source": str(source)})
        start = time.perf_counter()

        try:
            frame = pd.read_csv(source, parse_dates=list(parse_dates) if parse_dates else False)
        except (OSError, ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            logger.error(
                "CSV ingestion failed",
                extra={"table": table, "source": str(source), "error": str(e)},
            )
            raise IngestionError(f"Could not load '{source}' into table '{table}': {e}") from e

        if frame.empty:
            raise IngestionError(f"Source '{source}' has no rows for table '{table}'")

        self.register(table, frame)

        logger.info(
            "CSV loaded",
            extra={
                "table": table,
                "n_rows": len(frame),
                "columns": list(frame.columns),
                "elapsed_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return len(frame)

    def register(self, table: str, frame: pd.DataFrame) -> None:
        """Register an existing DataFrame as a table (replaces any previous one)."""
        with self._lock:
            self._tables[table] = frame.reset_index(drop=True)

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------
    def tables(self) -> List[str]:
        with self._lock:
            return sorted(self._tables)

    def has_table(self, table: str) -> bool:
        with self._lock:
            return table in self._tables

    def columns(self, table: str) -> List[str]:
        return list(self._get(table).columns)

    def row_count(self, table: str) -> int:
        return len(self._get(table))

    def _get(self, table: str) -> pd.DataFrame:
        with self._lock:
            frame = self._tables.get(table)
        if frame is None:
            raise QueryExecutionError(f"Unknown table '{table}'")
        return frame

    # -------------------------------------------------------------------------
    # Query execution
    # -------------------------------------------------------------------------
    def query(self, table: str, predicate: Predicate, spec: QuerySpec) -> pd.DataFrame:
        """
        Execute a QuerySpec against a table filtered by predicate.

        :return: a new DataFrame whose columns match the spec's projection
                 (select columns, or group keys + aggregate aliases)

        Raises:
            QueryExecutionError: unknown table/column or any evaluation failure
        """
        frame = self._get(table)
        predicate = predicate if predicate is not None else TRUE

        missing = (predicate.columns | spec.input_columns()) - set(frame.columns)
        if missing:
            raise QueryExecutionError(
                f"Unknown column(s) {sorted(missing)} in table '{table}'"
            )

        try:
            filtered = frame.loc[predicate.mask(frame)]
            if spec.is_aggregate:
                out = self._aggregate(filtered, spec)
            else:
                cols = list(spec.select) or list(frame.columns)
                out = filtered[cols]

            if spec.order_by:
                by = [c.lstrip("-") for c in spec.order_by]
                ascending = [not c.startswith("-") for c in spec.order_by]
                out = out.sort_values(by=by, ascending=ascending, kind="mergesort")

            if spec.limit is not None:
                out = out.head(spec.limit)

            return out.reset_index(drop=True)
        except QueryExecutionError:
            raise
        except Exception as e:
            raise QueryExecutionError(f"Query on '{table}' failed: {e}") from e

    @staticmethod
    def _aggregate(filtered: pd.DataFrame, spec: QuerySpec) -> pd.DataFrame:
        keys = list(spec.group_by)
        work = filtered

        if spec.bin is not None:
            step = spec.bin.step
            values = pd.to_numeric(filtered[spec.bin.column], errors="coerce")
            bin0 = np.floor(values / step) * step
            work = filtered.assign(bin0=bin0, bin1=bin0 + step)
            keys = ["bin0", "bin1"] + keys

        if not keys:
            row = {}
            for agg in spec.aggregates:
                if agg.func == "count":
                    row[agg.alias] = len(work) if agg.column == "*" else int(work[agg.column].count())
                else:
                    row[agg.alias] = getattr(work[agg.column], agg.func)()
            return pd.DataFrame([row])

        named = {}
        for agg in spec.aggregates:
            if agg.func == "count" and agg.column == "*":
                named[agg.alias] = (keys[0], "size")
            else:
                named[agg.alias] = (agg.column, agg.func)

        return work.groupby(keys, sort=True, dropna=True).agg(**named).reset_index()
