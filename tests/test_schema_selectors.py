from __future__ import annotations

import re

import pandas as pd
import pytest

from housing_recipes.errors import SchemaError
from housing_recipes.schema import ColumnKind, Role, Schema, infer_column_kind
from housing_recipes.selectors import (
    all_nominal,
    all_nominal_predictors,
    all_numeric,
    all_numeric_predictors,
    all_outcomes,
    all_predictors,
    build_selector,
    columns,
    contains,
    ends_with,
    has_role,
    has_type,
    matches,
    starts_with,
)


@pytest.fixture
def schema() -> Schema:
    frame = pd.DataFrame(
        {
            "Sale_Price": [1.0, 2.0],
            "Neighborhood": ["North_Ames", "Old_Town"],
            "Overall_Cond": pd.Categorical(["Good", "Poor"], categories=["Poor", "Good"], ordered=True),
            "Gr_Liv_Area": [1200, 900],
            "Central_Air": [True, False],
            "Order": [1, 2],
        }
    )
    roles = {"Sale_Price": Role.OUTCOME, "Order": Role.IGNORED}
    return Schema.from_frame(frame, roles)


def test_infer_column_kind():
    assert infer_column_kind(pd.Series([1, 2])) is ColumnKind.NUMERIC
    assert infer_column_kind(pd.Series([1.5])) is ColumnKind.NUMERIC
    assert infer_column_kind(pd.Series(["a"])) is ColumnKind.NOMINAL
    assert infer_column_kind(pd.Series([True])) is ColumnKind.NOMINAL
    assert infer_column_kind(pd.Series(pd.Categorical(["a"]))) is ColumnKind.NOMINAL
    assert infer_column_kind(pd.Series(pd.Categorical(["a"], ordered=True))) is ColumnKind.ORDINAL


def test_schema_from_mapping_rejects_unknown_kind():
    with pytest.raises(SchemaError):
        Schema.from_mapping({"x": "complex"})


def test_schema_get_missing_column(schema):
    with pytest.raises(SchemaError):
        schema.get("Lot_Area")


def test_role_selectors(schema):
    assert all_outcomes()(schema) == ["Sale_Price"]
    assert all_predictors()(schema) == ["Neighborhood", "Overall_Cond", "Gr_Liv_Area", "Central_Air"]
    assert has_role("ignored")(schema) == ["Order"]


def test_kind_selectors(schema):
    assert all_numeric()(schema) == ["Sale_Price", "Gr_Liv_Area", "Order"]
    assert all_nominal()(schema) == ["Neighborhood", "Overall_Cond", "Central_Air"]
    assert all_numeric_predictors()(schema) == ["Gr_Liv_Area"]
    assert all_nominal_predictors()(schema) == ["Neighborhood", "Overall_Cond", "Central_Air"]
    assert has_type("ordinal")(schema) == ["Overall_Cond"]


def test_name_selectors(schema):
    assert starts_with("Gr_")(schema) == ["Gr_Liv_Area"]
    assert ends_with("_Air")(schema) == ["Central_Air"]
    assert contains("_Co")(schema) == ["Overall_Cond"]
    assert matches(r"^[NO]")(schema) == ["Neighborhood", "Overall_Cond", "Order"]


def test_columns_selector_keeps_schema_order(schema):
    assert columns("Gr_Liv_Area", "Neighborhood")(schema) == ["Neighborhood", "Gr_Liv_Area"]


def test_columns_selector_rejects_missing_names(schema):
    with pytest.raises(SchemaError):
        columns("Lot_Area")(schema)


def test_selector_composition(schema):
    union = starts_with("Gr_") | columns("Neighborhood")
    difference = all_nominal_predictors() - columns("Central_Air")

    assert union(schema) == ["Neighborhood", "Gr_Liv_Area"]
    assert difference(schema) == ["Neighborhood", "Overall_Cond"]
    assert repr(difference) == "all_nominal_predictors() - columns('Central_Air')"


def test_selectors_are_hashable_values():
    assert starts_with("x") == starts_with("x")
    assert len({all_predictors(), all_predictors()}) == 1


def test_invalid_regex_is_rejected_early():
    with pytest.raises(re.error):
        matches("(")


@pytest.mark.parametrize(
    "spec, expected",
    [
        ("all_nominal_predictors", ["Neighborhood", "Overall_Cond", "Central_Air"]),
        (["Gr_Liv_Area"], ["Gr_Liv_Area"]),
        ({"columns": "Gr_Liv_Area"}, ["Gr_Liv_Area"]),
        ({"starts_with": "Ne"}, ["Neighborhood"]),
        ({"has_type": ["ordinal"]}, ["Overall_Cond"]),
        ({"has_role": "outcome"}, ["Sale_Price"]),
        ({"selector": "all_nominal", "exclude": ["Central_Air"]}, ["Neighborhood", "Overall_Cond"]),
    ],
)
def test_build_selector_from_config(schema, spec, expected):
    assert build_selector(spec)(schema) == expected


@pytest.mark.parametrize("spec", ["everything", {}, {"columns": ["a"], "starts_with": "b"}, {"unknown": 1}, 3])
def test_build_selector_rejects_bad_specs(spec):
    with pytest.raises(ValueError):
        build_selector(spec)
