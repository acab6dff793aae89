from __future__ import annotations

import threading
import time

import pandas as pd
import pytest

from weatherwiz.clients import HistogramClient, MenuClient, ScatterClient, StatClient
from weatherwiz.core.client import BaseClient, ClientState
from weatherwiz.core.coordinator import Coordinator
from weatherwiz.core.exceptions import QueryBuildError, QueryExecutionError, QueryTimeoutError
from weatherwiz.core.predicate import TRUE, Between, Eq
from weatherwiz.core.selection import Selection
from weatherwiz.core.store import TabularStore


def _make_weather_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "precipitation": [0.0, 10.9, 0.8, 20.3, 0.0, 4.1],
            "temp_max": [12.8, 10.6, 11.7, 12.2, 6.1, 4.4],
            "wind": [4.7, 4.5, 2.3, 4.7, 5.1, 5.3],
            "weather": ["drizzle", "rain", "rain", "rain", "sun", "snow"],
        }
    )


def _make_store() -> TabularStore:
    store = TabularStore()
    store.register("weather", _make_weather_frame())
    return store


class _GatedStore(TabularStore):
    """Every query blocks until the test releases its gate (or auto_release is set)."""

    def __init__(self):
        super().__init__()
        self.register("weather", _make_weather_frame())
        self.auto_release = False
        self.calls = []
        self._calls_lock = threading.Lock()

    def query(self, table, predicate, spec):
        gate = threading.Event()
        with self._calls_lock:
            self.calls.append((predicate, gate))
        if not self.auto_release:
            gate.wait(5)
        return super().query(table, predicate, spec)

    def release_all(self):
        self.auto_release = True
        with self._calls_lock:
            for _, gate in self.calls:
                gate.set()


class _FlakyStore(TabularStore):
    def __init__(self):
        super().__init__()
        self.register("weather", _make_weather_frame())
        self.fail = False

    def query(self, table, predicate, spec):
        if self.fail:
            raise QueryExecutionError("backend unavailable")
        return super().query(table, predicate, spec)


class _SlowStore(TabularStore):
    def __init__(self, delay):
        super().__init__()
        self.register("weather", _make_weather_frame())
        self.delay = delay

    def query(self, table, predicate, spec):
        time.sleep(self.delay)
        return super().query(table, predicate, spec)


class _BrokenClient(BaseClient):
    kind = "broken"
    label = "Broken"

    def build_query(self, predicate):
        raise ValueError("cannot build")


def _wait_until(condition, timeout=5.0, coordinator=None):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if coordinator is not None:
            coordinator.poll()
        if condition():
            return True
        time.sleep(0.005)
    return False


def test_connect_issues_initial_query():
    sel = Selection.intersect()
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(_make_store()) as coord:
        coord.connect(stat)
        assert coord.drain(timeout=5)

        assert stat.value == pytest.approx(36.1 / 6)
        assert stat.result_count == 1
        assert coord.state_of("avg") is ClientState.IDLE
        assert coord.generation_of("avg") == 1


def test_connect_twice_rejected_and_closed_coordinator_refuses():
    sel = Selection.intersect()
    stat = StatClient("weather", sel, client_id="avg")
    coord = Coordinator(_make_store())
    coord.connect(stat)

    with pytest.raises(ValueError):
        coord.connect(stat)

    coord.close()
    coord.close()
    assert coord.closed
    with pytest.raises(RuntimeError):
        coord.connect(StatClient("weather", sel, client_id="other"))


def test_menu_update_refreshes_dependents_once():
    sel = Selection.intersect()
    menu = MenuClient("weather", sel, client_id="menu")
    hist = HistogramClient("weather", sel, client_id="hist")
    scatter = ScatterClient("weather", sel, client_id="scatter", self_exclusion=False)

    with Coordinator(_make_store()) as coord:
        for c in (menu, hist, scatter):
            coord.connect(c)
        coord.drain(timeout=5)
        before = {c.id: c.result_count for c in (menu, hist, scatter)}

        with coord.turn():
            menu.select("rain")
        assert coord.drain(timeout=5)

        for c in (menu, hist, scatter):
            assert c.result_count == before[c.id] + 1

        assert len(scatter.value) == 3
        assert int(hist.value["count"].sum()) == 3
        # the menu ignores its own clause and still offers every category
        assert [o["value"] for o in menu.options()] == ["drizzle", "rain", "snow", "sun"]


def test_updates_within_a_turn_coalesce_into_one_pass():
    sel = Selection.intersect()
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(_make_store()) as coord:
        coord.connect(stat)
        coord.drain(timeout=5)
        passes, version = coord.stats.passes, sel.version

        with coord.turn():
            sel.update("menu", Eq("weather", "rain"))
            sel.update("brush", Between("temp_max", 10.0, 12.0))
            sel.update("menu", Eq("weather", "sun"))
        coord.drain(timeout=5)

        assert coord.stats.passes == passes + 1
        assert sel.version == version + 1
        assert stat.result_count == 2
        assert stat.last_result.generation == 2


def test_select_then_clear_in_one_turn_recomputes_unfiltered():
    sel = Selection.intersect()
    menu = MenuClient("weather", sel, client_id="menu")
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(_make_store()) as coord:
        coord.connect(menu)
        coord.connect(stat)
        coord.drain(timeout=5)
        unfiltered = stat.value

        with coord.turn():
            menu.select("sun")
            menu.select(None)
        coord.drain(timeout=5)

        assert stat.result_count == 2
        assert stat.last_result.generation == 2
        assert stat.value == pytest.approx(unfiltered)
        assert sel.resolve() == TRUE


def test_independent_selections_do_not_wake_each_other():
    sel_x = Selection.intersect(name="x")
    sel_y = Selection.intersect(name="y")
    on_x = StatClient("weather", sel_x, client_id="on-x")
    on_y = StatClient("weather", sel_y, client_id="on-y")

    with Coordinator(_make_store()) as coord:
        coord.connect(on_x)
        coord.connect(on_y)
        coord.drain(timeout=5)
        issued = coord.stats.issued

        with coord.turn():
            sel_x.update("menu", Eq("weather", "rain"))
        coord.drain(timeout=5)

        assert coord.stats.issued == issued + 1
        assert on_x.result_count == 2
        assert on_y.result_count == 1


def test_superseded_result_is_discarded():
    store = _GatedStore()
    sel = Selection.intersect()
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(store, max_workers=4) as coord:
        coord.connect(stat)
        coord.flush()
        assert _wait_until(lambda: len(store.calls) == 1)

        with coord.turn():
            sel.update("menu", Eq("weather", "rain"))
        assert _wait_until(lambda: len(store.calls) == 2)

        assert coord.stats.superseded == 1
        assert coord.generation_of("avg") == 2
        assert coord.state_of("avg") is ClientState.QUERY_PENDING

        # newer query finishes first and is applied
        store.calls[1][1].set()
        assert coord.drain(timeout=5)
        assert stat.result_count == 1
        assert stat.last_result.generation == 2
        assert stat.value == pytest.approx(32.0 / 3)

        # the older one arrives late and is dropped
        store.calls[0][1].set()
        assert _wait_until(lambda: coord.stats.stale_discards == 1, coordinator=coord)
        assert stat.result_count == 1
        assert stat.value == pytest.approx(32.0 / 3)


def test_identical_in_flight_query_is_not_reissued():
    store = _GatedStore()
    sel = Selection.intersect()
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(store) as coord:
        coord.connect(stat)
        coord.flush()
        assert _wait_until(lambda: len(store.calls) == 1)

        coord.requery(stat)
        coord.flush()

        assert coord.stats.deduplicated == 1
        assert coord.generation_of("avg") == 1

        store.release_all()
        assert coord.drain(timeout=5)
        assert stat.result_count == 1
        assert len(store.calls) == 1


def test_build_failure_is_isolated_to_the_client():
    sel = Selection.intersect()
    broken = _BrokenClient("weather", sel, client_id="broken")
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(_make_store()) as coord:
        coord.connect(broken)
        coord.connect(stat)
        assert coord.drain(timeout=5)

        assert isinstance(broken.last_error, QueryBuildError)
        assert broken.last_error.client_id == "broken"
        assert broken.result_count == 0
        assert stat.result_count == 1
        assert coord.stats.build_failures == 1
        assert coord.state_of("broken") is ClientState.IDLE


def test_execution_failure_keeps_last_value():
    store = _FlakyStore()
    sel = Selection.intersect()
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(store) as coord:
        coord.connect(stat)
        coord.drain(timeout=5)
        good = stat.value

        store.fail = True
        with coord.turn():
            sel.update("menu", Eq("weather", "rain"))
        coord.drain(timeout=5)

        assert isinstance(stat.last_error, QueryExecutionError)
        assert stat.value == good
        assert stat.result_count == 1
        assert coord.state_of("avg") is ClientState.IDLE

        # the next change retries normally
        store.fail = False
        with coord.turn():
            sel.update("menu", Eq("weather", "sun"))
        coord.drain(timeout=5)

        assert stat.last_error is None
        assert stat.value == pytest.approx(0.0)


def test_query_timeout_abandons_and_drops_late_result():
    store = _GatedStore()
    sel = Selection.intersect()
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(store, query_timeout=0.1) as coord:
        coord.connect(stat)
        assert coord.drain(timeout=5)

        assert isinstance(stat.last_error, QueryTimeoutError)
        assert stat.value is None
        assert coord.stats.timeouts == 1
        assert coord.state_of("avg") is ClientState.IDLE

        store.release_all()
        assert _wait_until(lambda: coord.stats.stale_discards == 1, coordinator=coord)
        assert stat.result_count == 0

        coord.requery(stat)
        assert coord.drain(timeout=5)
        assert stat.result_count == 1
        assert stat.last_error is None


def test_drain_reports_unsettled_queries():
    store = _GatedStore()
    sel = Selection.intersect()
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(store) as coord:
        coord.connect(stat)
        assert coord.drain(timeout=0.05) is False
        assert coord.state_of("avg") is ClientState.QUERY_PENDING

        store.release_all()
        assert coord.drain(timeout=5)
        assert stat.result_count == 1


def test_disconnect_stops_dispatch_and_unsubscribes():
    sel = Selection.intersect()
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(_make_store()) as coord:
        coord.connect(stat)
        coord.drain(timeout=5)
        assert sel.listener_count == 1

        coord.disconnect(stat)
        assert sel.listener_count == 0
        assert coord.clients == []

        sel.update("menu", Eq("weather", "rain"))
        assert coord.flush() == 0
        assert stat.result_count == 1


def test_concurrent_drains_both_wake_when_results_land():
    sel = Selection.intersect()
    stat = StatClient("weather", sel, client_id="avg")

    with Coordinator(_SlowStore(0.2), query_timeout=10.0) as coord:
        coord.connect(stat)
        coord.flush()

        outcomes = {}

        def _drain(name):
            start = time.monotonic()
            settled = coord.drain(timeout=5)
            outcomes[name] = (settled, time.monotonic() - start)

        threads = [threading.Thread(target=_drain, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        assert set(outcomes) == {"a", "b"}
        for settled, elapsed in outcomes.values():
            assert settled is True
            assert elapsed < 2.0
        assert stat.result_count == 1
