from __future__ import annotations

import pandas as pd

from weatherwiz.core.predicate import TRUE, And, Between, CombineMode, Eq, IsIn, Or, combine


def _make_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "weather": ["rain", "sun", "rain", "snow"],
            "temp_max": [10.0, 20.0, 15.0, 2.0],
        }
    )


def test_eq_and_isin_masks():
    df = _make_frame()

    assert list(Eq("weather", "rain").mask(df)) == [True, False, True, False]
    assert list(IsIn("weather", ["sun", "snow"]).mask(df)) == [False, True, False, True]


def test_between_is_inclusive_and_normalises_bounds():
    df = _make_frame()

    pred = Between("temp_max", 15.0, 10.0)

    assert (pred.low, pred.high) == (10.0, 15.0)
    assert list(pred.mask(df)) == [True, False, True, False]


def test_true_mask_keeps_every_row():
    df = _make_frame()
    assert TRUE.mask(df).all()
    assert TRUE.columns == frozenset()


def test_compound_masks_and_columns():
    df = _make_frame()
    rain = Eq("weather", "rain")
    warm = Between("temp_max", 12.0, 30.0)

    assert list(And(rain, warm).mask(df)) == [False, False, True, False]
    assert list(Or(rain, warm).mask(df)) == [True, True, True, False]
    assert And(rain, warm).columns == frozenset({"weather", "temp_max"})


def test_predicates_are_values():
    assert Eq("weather", "rain") == Eq("weather", "rain")
    assert IsIn("weather", ["a", "b"]) == IsIn("weather", ("a", "b"))
    assert And(Eq("a", 1), Eq("b", 2)) == And(Eq("a", 1), Eq("b", 2))
    assert And(Eq("a", 1), Eq("b", 2)) != Or(Eq("a", 1), Eq("b", 2))
    assert len({Eq("weather", "rain"), Eq("weather", "rain"), TRUE}) == 2


def test_combine_intersect_drops_identity_and_flattens():
    a, b, c = Eq("a", 1), Eq("b", 2), Eq("c", 3)

    assert combine([], CombineMode.INTERSECT) == TRUE
    assert combine([TRUE, a], CombineMode.INTERSECT) == a
    assert combine([And(a, b), c], CombineMode.INTERSECT) == And(a, b, c)


def test_combine_union_is_absorbed_by_identity():
    a, b = Eq("a", 1), Eq("b", 2)

    assert combine([a, b], CombineMode.UNION) == Or(a, b)
    assert combine([a, TRUE], CombineMode.UNION) == TRUE
    assert combine([], CombineMode.UNION) == TRUE


def test_operators_delegate_to_combine():
    a, b = Eq("a", 1), Eq("b", 2)
    assert (a & b) == And(a, b)
    assert (a | b) == Or(a, b)
    assert (a & TRUE) == a


def test_sql_like_rendering():
    assert str(Eq("weather", "rain")) == "weather = 'rain'"
    assert str(Eq("name", "O'Brien")) == "name = 'O''Brien'"
    assert str(Between("temp_max", 1, 5)) == "temp_max BETWEEN 1 AND 5"
    assert str(And(Eq("a", 1), IsIn("b", ["x"]))) == "(a = 1) AND (b IN ('x'))"
