from __future__ import annotations

import math

import pandas as pd

from weatherwiz.clients import StatClient
from weatherwiz.core.predicate import TRUE
from weatherwiz.core.query import Aggregate, QueryResult
from weatherwiz.core.selection import Selection
from weatherwiz.core.store import TabularStore


def _make_stat(**kwargs) -> StatClient:
    return StatClient("weather", Selection.intersect(), **kwargs)


def test_build_query_single_aggregate():
    spec = _make_stat().build_query(TRUE)
    assert spec.aggregates == (Aggregate("value", "precipitation", "mean"),)
    assert spec.group_by == ()


def test_ungrouped_result_is_scalar():
    stat = _make_stat()
    assert stat.transform(pd.DataFrame({"value": [3.25]})) == 3.25
    assert stat.transform(pd.DataFrame({"value": [math.nan]})) is None
    assert stat.transform(pd.DataFrame(columns=["value"])) is None


def test_grouped_result_is_mapping():
    stat = _make_stat(group_by=["weather"])
    data = pd.DataFrame({"weather": ["rain", "sun"], "value": [10.5, 0.0]})

    assert stat.transform(data) == {"rain": 10.5, "sun": 0.0}
    assert stat.transform(data.iloc[0:0]) == {}


def test_format_value():
    stat = _make_stat(unit="mm", precision=1)
    assert stat.format_value(3.14159) == "3.1 mm"
    assert stat.format_value() == "n/a"
    assert _make_stat(precision=0).format_value({"rain": 10.5, "sun": None}) == "rain: 10, sun: n/a"


def test_min_max_over_date_column_keeps_timestamp():
    store = TabularStore()
    store.register(
        "weather",
        pd.DataFrame({"date": pd.to_datetime(["2012-01-03", "2012-01-01", "2012-01-02"]), "wind": [1.0, 2.0, 3.0]}),
    )
    stat = _make_stat(column="date", func="max")

    data = store.query("weather", TRUE, stat.build_query(TRUE))
    stat.on_result(QueryResult(stat.id, 1, data))

    assert stat.value == pd.Timestamp("2012-01-03")
    assert stat.format_value() == "2012-01-03 00:00:00"
    assert stat.transform(pd.DataFrame({"value": [pd.NaT]})) is None
