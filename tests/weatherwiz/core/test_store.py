from __future__ import annotations

import math

import pandas as pd
import pytest

from weatherwiz.core.exceptions import IngestionError, QueryExecutionError
from weatherwiz.core.predicate import TRUE, Eq, IsIn
from weatherwiz.core.query import Aggregate, Bin, QuerySpec
from weatherwiz.core.store import TabularStore


def _make_weather_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "date": pd.to_datetime(
                ["2012-01-01", "2012-01-02", "2012-01-03", "2012-01-04", "2012-01-05", "2012-01-06"]
            ),
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


def test_load_csv_registers_table(tmp_path):
    path = tmp_path / "weather.csv"
    _make_weather_frame().to_csv(path, index=False)

    store = TabularStore()
    n_rows = store.load_csv("weather", path, parse_dates=["date"])

    assert n_rows == 6
    assert store.tables() == ["weather"]
    assert store.row_count("weather") == 6
    assert store.columns("weather") == ["date", "precipitation", "temp_max", "wind", "weather"]

    frame = store.query("weather", TRUE, QuerySpec(select=("date",)))
    assert pd.api.types.is_datetime64_any_dtype(frame["date"])


def test_load_csv_missing_file_raises_ingestion_error(tmp_path):
    store = TabularStore()
    with pytest.raises(IngestionError):
        store.load_csv("weather", tmp_path / "missing.csv")
    assert store.tables() == []


def test_load_csv_header_only_raises_ingestion_error(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("date,precipitation,weather\n")

    with pytest.raises(IngestionError):
        TabularStore().load_csv("weather", path)


def test_load_csv_blank_file_raises_ingestion_error(tmp_path):
    path = tmp_path / "blank.csv"
    path.write_text("")

    with pytest.raises(IngestionError):
        TabularStore().load_csv("weather", path)


def test_select_with_predicate():
    store = _make_store()

    df = store.query("weather", Eq("weather", "rain"), QuerySpec(select=("temp_max", "wind")))

    assert list(df.columns) == ["temp_max", "wind"]
    assert list(df["temp_max"]) == [10.6, 11.7, 12.2]
    assert list(df.index) == [0, 1, 2]


def test_unknown_table_or_column_raises():
    store = _make_store()

    with pytest.raises(QueryExecutionError):
        store.query("nope", TRUE, QuerySpec())

    with pytest.raises(QueryExecutionError):
        store.query("weather", Eq("humidity", 3), QuerySpec())

    with pytest.raises(QueryExecutionError):
        store.query("weather", TRUE, QuerySpec(select=("humidity",)))


def test_ungrouped_aggregate_returns_single_row():
    store = _make_store()
    spec = QuerySpec(
        aggregates=(
            Aggregate("avg", "precipitation", "mean"),
            Aggregate("n", "*", "count"),
        )
    )

    df = store.query("weather", TRUE, spec)

    assert len(df) == 1
    assert df.loc[0, "avg"] == pytest.approx(36.1 / 6)
    assert df.loc[0, "n"] == 6


def test_ungrouped_aggregate_over_no_rows():
    store = _make_store()
    spec = QuerySpec(aggregates=(Aggregate("avg", "precipitation", "mean"), Aggregate("n", "*", "count")))

    df = store.query("weather", Eq("weather", "fog"), spec)

    assert df.loc[0, "n"] == 0
    assert math.isnan(df.loc[0, "avg"])


def test_grouped_count_is_sorted_by_key():
    store = _make_store()
    spec = QuerySpec(group_by=("weather",), aggregates=(Aggregate("count", "*", "count"),), order_by=("weather",))

    df = store.query("weather", TRUE, spec)

    assert list(df["weather"]) == ["drizzle", "rain", "snow", "sun"]
    assert list(df["count"]) == [1, 3, 1, 1]


def test_binned_histogram():
    store = _make_store()
    spec = QuerySpec(bin=Bin("precipitation", 5.0), aggregates=(Aggregate("count", "*", "count"),), order_by=("bin0",))

    df = store.query("weather", TRUE, spec)

    assert list(df["bin0"]) == [0.0, 10.0, 20.0]
    assert list(df["bin1"]) == [5.0, 15.0, 25.0]
    assert list(df["count"]) == [4, 1, 1]


def test_order_by_descending_and_limit():
    store = _make_store()
    spec = QuerySpec(select=("precipitation",), order_by=("-precipitation",), limit=2)

    df = store.query("weather", IsIn("weather", ["rain", "snow"]), spec)

    assert list(df["precipitation"]) == [20.3, 10.9]


def test_invalid_aggregate_and_bin_rejected():
    with pytest.raises(ValueError):
        Aggregate("x", "precipitation", "stddev")
    with pytest.raises(ValueError):
        Bin("precipitation", 0)
