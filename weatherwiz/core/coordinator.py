from __future__ import annotations

import functools
import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from .client import BaseClient, ClientState
from .exceptions import QueryBuildError, QueryExecutionError, QueryTimeoutError
from .query import QueryRequest, QueryResult, QuerySpec
from .selection import Selection
from .store import TabularStore

logger = logging.getLogger(__name__)

# Max concurrent store queries (one per client is the most a single pass can use)
DEFAULT_MAX_WORKERS = 4


@dataclass
class CoordinatorStats:
    passes: int = 0
    issued: int = 0
    applied: int = 0
    superseded: int = 0
    deduplicated: int = 0
    stale_discards: int = 0
    build_failures: int = 0
    execution_failures: int = 0
    timeouts: int = 0


@dataclass
class _ClientRecord:
    client: BaseClient
    state: ClientState = ClientState.IDLE
    generation: int = 0
    pending: Optional[QueryRequest] = None
    future: Optional[Future] = None


class Coordinator:
    """
    Reactive scheduler between Selections, Clients and the TabularStore.

    Purpose:
    - Owns the Selection -> Client subscription graph
    - Coalesces every Selection change of a dispatch turn into one dispatch pass (flush)
    - Issues each affected client's query on a worker pool and applies results in generation order

    Design Notes:
    - Coordinator state and client callbacks are only touched by the thread running
      flush/poll/drain, serialised by a re-entrant lock; workers only run store queries
      and post their futures to a completion queue
    - Cancellation is logical: a superseded query keeps running (unless it never started)
      and its result is dropped by the generation check
    - At most one live query per client; an identical query already in flight is kept
    """

    def __init__(
        self,
        store: TabularStore,
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        query_timeout: Optional[float] = None,
    ):
        self.store = store
        self.query_timeout = query_timeout
        self.stats = CoordinatorStats()

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="weatherwiz-query")
        self._lock = threading.RLock()
        # Signalled on every completion and every applied batch; drain() waits on it
        self._settled = threading.Condition(self._lock)
        self._records: Dict[str, _ClientRecord] = {}
        self._dirty_selections: Dict[int, Selection] = {}
        self._dirty_clients: Dict[str, None] = {}
        self._completed: "queue.SimpleQueue[Tuple[QueryRequest, Future]]" = queue.SimpleQueue()
        self._closed = False

    # ------------------------------------------------------------------
    # Subscription graph
    # ------------------------------------------------------------------
    def connect(self, client: BaseClient) -> None:
        """
        Register a client and schedule its first query for the next flush.

        Raises:
            ValueError: if a client with the same id is already connected
            RuntimeError: if the coordinator was closed
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Coordinator is closed")
            if client.id in self._records:
                raise ValueError(f"Client '{client.id}' already connected")

            self._records[client.id] = _ClientRecord(client=client)
            if client.selection is not None:
                client.selection.subscribe(self._on_selection_change)
            self._dirty_clients[client.id] = None

            logger.info(
                "Client connected",
                extra={
                    "client_id": client.id,
                    "kind": client.kind,
                    "selection": client.selection.name if client.selection is not None else None,
                    "self_exclusion": client.self_exclusion,
                },
            )

    def disconnect(self, client: BaseClient) -> None:
        """Unsubscribe a client; any in-flight result for it is dropped on arrival."""
        with self._lock:
            record = self._records.pop(client.id, None)
            if record is None:
                return
            self._dirty_clients.pop(client.id, None)
            if record.future is not None:
                record.future.cancel()

            selection = client.selection
            if selection is not None and not any(
                r.client.selection is selection for r in self._records.values()
            ):
                selection.unsubscribe(self._on_selection_change)
                self._dirty_selections.pop(id(selection), None)

            logger.info("Client disconnected", extra={"client_id": client.id})

    @property
    def clients(self) -> List[BaseClient]:
        with self._lock:
            return [r.client for r in self._records.values()]

    def state_of(self, client_id: str) -> ClientState:
        with self._lock:
            return self._records[client_id].state

    def generation_of(self, client_id: str) -> int:
        with self._lock:
            return self._records[client_id].generation

    def requery(self, client: BaseClient) -> None:
        """Schedule a client for the next dispatch pass without a Selection change."""
        with self._lock:
            if client.id in self._records:
                self._dirty_clients[client.id] = None

    def _on_selection_change(self, selection: Selection) -> None:
        with self._lock:
            self._dirty_selections[id(selection)] = selection

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    @contextmanager
    def turn(self) -> Iterator[Coordinator]:
        """
        One synchronous dispatch turn: Selection updates made inside the block
        are coalesced and dispatched in a single pass on exit.
        """
        with self._lock:
            try:
                yield self
            finally:
                self.flush()

    def flush(self) -> int:
        """
        Run one dispatch pass for everything marked dirty since the last flush.
        :return: number of queries issued
        """
        with self._lock:
            if not self._dirty_selections and not self._dirty_clients:
                return 0

            selections = list(self._dirty_selections.values())
            self._dirty_selections.clear()
            for selection in selections:
                selection.close_turn()

            targets: Dict[str, None] = dict(self._dirty_clients)
            self._dirty_clients.clear()
            for record in self._records.values():
                if any(record.client.selection is s for s in selections):
                    targets[record.client.id] = None

            self.stats.passes += 1
            issued = 0
            for client_id in targets:
                record = self._records.get(client_id)
                if record is not None and self._dispatch(record):
                    issued += 1

            logger.info(
                "Dispatch pass",
                extra={
                    "pass": self.stats.passes,
                    "selections": [s.name for s in selections],
                    "versions": [s.version for s in selections],
                    "n_targets": len(targets),
                    "n_issued": issued,
                },
            )
            return issued

    def _dispatch(self, record: _ClientRecord) -> bool:
        client = record.client

        try:
            predicate = client.resolve_predicate()
            spec = client.build_query(predicate)
            if not isinstance(spec, QuerySpec):
                raise TypeError(f"build_query returned {type(spec).__name__}, expected QuerySpec")
        except Exception as e:
            error = e if isinstance(e, QueryBuildError) else QueryBuildError(client.id, str(e))
            self.stats.build_failures += 1
            logger.exception("Query build failed; skipping client this pass", extra={"client_id": client.id})
            # Anything still in flight answers an older selection state
            self._abandon(record)
            client.on_error(error)
            return False

        selection_version = client.selection.version if client.selection is not None else 0

        if record.pending is not None:
            if record.pending.key == (client.table, predicate, spec):
                self.stats.deduplicated += 1
                logger.debug(
                    "Identical query already in flight",
                    extra={"client_id": client.id, "generation": record.pending.generation},
                )
                return False
            record.state = ClientState.SUPERSEDED
            self.stats.superseded += 1
            logger.debug(
                "Superseding in-flight query",
                extra={"client_id": client.id, "generation": record.pending.generation},
            )
            if record.future is not None:
                record.future.cancel()

        record.generation += 1
        request = QueryRequest(
            client_id=client.id,
            table=client.table,
            spec=spec,
            generation=record.generation,
            predicate=predicate,
            selection_version=selection_version,
            issued_at=time.monotonic(),
        )
        record.pending = request
        record.state = ClientState.QUERY_PENDING

        future = self._executor.submit(self._execute, request)
        record.future = future
        future.add_done_callback(functools.partial(self._on_done, request))
        self.stats.issued += 1

        logger.debug(
            "Query issued",
            extra={
                "client_id": client.id,
                "generation": request.generation,
                "selection_version": selection_version,
                "predicate": str(predicate),
            },
        )
        return True

    def _abandon(self, record: _ClientRecord) -> None:
        if record.future is not None:
            record.future.cancel()
        if record.pending is not None:
            record.generation += 1
        record.pending = None
        record.future = None
        record.state = ClientState.IDLE

    # Runs on a worker thread: store access only, no coordinator state
    def _execute(self, request: QueryRequest) -> QueryResult:
        start = time.perf_counter()
        data = self.store.query(request.table, request.predicate, request.spec)
        return QueryResult(
            client_id=request.client_id,
            generation=request.generation,
            data=data,
            elapsed=time.perf_counter() - start,
        )

    # Runs on a worker thread (or inline when a future is cancelled before it starts)
    def _on_done(self, request: QueryRequest, future: Future) -> None:
        self._completed.put((request, future))
        with self._settled:
            self._settled.notify_all()

    # ------------------------------------------------------------------
    # Result application
    # ------------------------------------------------------------------
    def poll(self) -> int:
        """
        Apply every result that has already arrived, without blocking.
        :return: number of results applied to clients
        """
        with self._settled:
            applied = self._apply_completed()
            self._expire_timeouts()
        return applied

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Flush, then wait until no client has a live query, applying results as they arrive.

        Several threads may drain at once: whichever holds the lock applies the
        completions, and every waiter re-checks after each completion or batch.
        :param timeout: overall bound in seconds; None waits for every live query
        :return: True if everything settled, False if the timeout hit first
        """
        self.flush()
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._settled:
            while True:
                self._apply_completed()
                self._expire_timeouts()
                if not self._has_live_queries():
                    return True

                wait = self._next_wait(deadline)
                if wait is not None and wait <= 0:
                    logger.warning("Drain timed out with queries still pending")
                    return False

                self._settled.wait(timeout=wait)

    def _apply_completed(self) -> int:
        """Apply everything on the completion queue; caller holds the lock."""
        applied = 0
        taken = 0
        while True:
            try:
                request, future = self._completed.get_nowait()
            except queue.Empty:
                break
            taken += 1
            if self._apply(request, future):
                applied += 1
        if taken:
            self._settled.notify_all()
        return applied

    def _has_live_queries(self) -> bool:
        return any(r.pending is not None for r in self._records.values())

    def _next_wait(self, deadline: Optional[float]) -> Optional[float]:
        now = time.monotonic()
        if deadline is not None and now >= deadline:
            return 0.0

        waits = []
        if deadline is not None:
            waits.append(deadline - now)
        if self.query_timeout is not None:
            for r in self._records.values():
                if r.pending is not None:
                    # wake just after the query's own bound so it can be expired
                    waits.append(max(r.pending.issued_at + self.query_timeout - now, 0.001))
        return min(waits) if waits else None

    def _apply(self, request: QueryRequest, future: Future) -> bool:
        record = self._records.get(request.client_id)
        if record is None or record.pending is None or record.pending.generation != request.generation:
            self.stats.stale_discards += 1
            logger.debug(
                "Discarding stale result",
                extra={"client_id": request.client_id, "generation": request.generation},
            )
            return False

        client = record.client
        record.pending = None
        record.future = None

        error = future.exception()
        if error is not None:
            if not isinstance(error, QueryExecutionError):
                error = QueryExecutionError(f"Client '{client.id}' query failed: {error}")
            self.stats.execution_failures += 1
            record.state = ClientState.IDLE
            logger.error(
                "Query execution failed; keeping last result",
                extra={"client_id": client.id, "generation": request.generation, "error": str(error)},
            )
            client.on_error(error)
            return False

        result: QueryResult = future.result()
        record.state = ClientState.APPLYING_RESULT
        try:
            client.on_result(result)
        except Exception as e:
            logger.exception("Client failed to apply result", extra={"client_id": client.id})
            client.on_error(e)
            return False
        finally:
            record.state = ClientState.IDLE

        self.stats.applied += 1
        logger.debug(
            "Result applied",
            extra={
                "client_id": client.id,
                "generation": result.generation,
                "n_rows": len(result.data),
                "elapsed_ms": int(result.elapsed * 1000),
            },
        )
        return True

    def _expire_timeouts(self) -> None:
        if self.query_timeout is None:
            return
        now = time.monotonic()
        for record in self._records.values():
            pending = record.pending
            if pending is None or now - pending.issued_at <= self.query_timeout:
                continue
            self.stats.timeouts += 1
            self.stats.execution_failures += 1
            logger.error(
                "Query timed out; keeping last result",
                extra={
                    "client_id": record.client.id,
                    "generation": pending.generation,
                    "timeout": self.query_timeout,
                },
            )
            self._abandon(record)
            record.client.on_error(
                QueryTimeoutError(f"Client '{record.client.id}' query exceeded {self.query_timeout}s")
            )

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def close(self) -> None:
        """Disconnect every client and stop the worker pool. Safe to call twice."""
        with self._lock:
            if self._closed:
                return
            for record in list(self._records.values()):
                self.disconnect(record.client)
            self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Coordinator closed", extra={"stats": vars(self.stats)})

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> Coordinator:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
