from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Mapping, Optional

from weatherwiz.clients import HistogramClient, MenuClient, ScatterClient, StatClient
from weatherwiz.config.model import GlobalConfig
from weatherwiz.core.client import BaseClient
from weatherwiz.core.client_registry import ClientRegistry
from weatherwiz.core.coordinator import Coordinator
from weatherwiz.core.exceptions import ConfigError
from weatherwiz.core.predicate import Predicate, TRUE
from weatherwiz.core.selection import Selection
from weatherwiz.core.store import TabularStore

logger = logging.getLogger(__name__)

# Upper bound for one interaction turn to settle before the UI renders what it has
DEFAULT_TURN_TIMEOUT = 30.0


def build_client_registry() -> ClientRegistry:
    registry = ClientRegistry()
    registry.register(MenuClient)
    registry.register(HistogramClient)
    registry.register(ScatterClient)
    registry.register(StatClient)
    return registry


class DashboardSession:
    """
    One dashboard session: store, shared Selection, clients and their Coordinator.

    Lifecycle:
    - start(): ingest the CSV (IngestionError surfaces here, before any client exists),
      build clients from config, connect them and settle the first dispatch
    - apply(): one interaction turn (selection updates coalesced into one dispatch pass)
    - close(): disconnect every client and stop the worker pool
    """

    def __init__(
        self,
        config: GlobalConfig,
        *,
        store: Optional[TabularStore] = None,
        registry: Optional[ClientRegistry] = None,
        turn_timeout: float = DEFAULT_TURN_TIMEOUT,
    ):
        self.config = config
        self.store = store or TabularStore()
        self.registry = registry or build_client_registry()
        self.turn_timeout = turn_timeout

        self.selection: Optional[Selection] = None
        self.coordinator: Optional[Coordinator] = None
        self._clients: Dict[str, BaseClient] = {}
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> DashboardSession:
        if self._started:
            return self

        cfg = self.config
        if not self.store.has_table(cfg.table):
            self.store.load_csv(cfg.table, cfg.data_source, parse_dates=cfg.parse_dates)

        self.selection = Selection(cfg.combine_mode, name=cfg.table)
        self.coordinator = Coordinator(
            self.store,
            max_workers=cfg.max_workers,
            query_timeout=cfg.query_timeout,
        )

        try:
            for widget in cfg.widgets:
                client = self._create_client(widget.kind, widget.id, widget.options)
                self._prepare(client)
                self._clients[client.id] = client
                self.coordinator.connect(client)
        except Exception:
            self.coordinator.close()
            raise

        self._started = True
        settled = self.coordinator.drain(timeout=self.turn_timeout)

        logger.info(
            "Dashboard session started",
            extra={
                "table": cfg.table,
                "n_rows": self.store.row_count(cfg.table),
                "clients": list(self._clients),
                "settled": settled,
            },
        )
        return self

    def _create_client(self, kind: str, client_id: str, options: Mapping) -> BaseClient:
        if kind not in self.registry:
            raise ConfigError(f"Unknown widget kind '{kind}' (known: {self.registry.kinds()})")
        try:
            return self.registry.create(
                kind,
                table=self.config.table,
                selection=self.selection,
                client_id=client_id,
                **options,
            )
        except TypeError as e:
            raise ConfigError(f"Invalid options for widget '{client_id}': {e}") from e

    def _prepare(self, client: BaseClient) -> None:
        if isinstance(client, ScatterClient) and client.fixed_domain:
            client.apply_domain(self.store.query(client.table, TRUE, client.domain_query()))

    def close(self) -> None:
        if self.coordinator is not None:
            self.coordinator.close()
        self._started = False
        logger.info("Dashboard session closed", extra={"table": self.config.table})

    def __enter__(self) -> DashboardSession:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------
    def apply(self, updates: Mapping[str, Optional[Predicate]]) -> bool:
        """
        Run one dispatch turn: every update is applied to the shared Selection,
        coalesced into a single pass, and the results are waited for.
        :param updates: source_id -> predicate (None clears that source's clause)
        :return: True if all queries settled within the turn timeout
        """
        self._require_started()
        with self.coordinator.turn():
            for source_id, predicate in updates.items():
                self.selection.update(source_id, predicate)
        return self.coordinator.drain(timeout=self.turn_timeout)

    @contextmanager
    def interaction(self) -> Iterator[DashboardSession]:
        """
        Same turn as apply(), for callers that drive clients directly
        (menu.select(...), scatter.brush(...)) inside the block.
        """
        self._require_started()
        with self.coordinator.turn():
            yield self
        self.coordinator.drain(timeout=self.turn_timeout)

    def refresh(self) -> bool:
        """Apply results that arrived since the last turn, waiting for live queries."""
        self._require_started()
        return self.coordinator.drain(timeout=self.turn_timeout)

    def client(self, client_id: str) -> BaseClient:
        try:
            return self._clients[client_id]
        except KeyError:
            raise KeyError(f"Client '{client_id}' not found")

    def clients_of(self, kind: str) -> List[BaseClient]:
        return [c for c in self._clients.values() if c.kind == kind]

    @property
    def clients(self) -> List[BaseClient]:
        return list(self._clients.values())

    @property
    def started(self) -> bool:
        return self._started

    def _require_started(self) -> None:
        if not self._started:
            raise RuntimeError("Dashboard session not started")
