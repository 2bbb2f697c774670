from __future__ import annotations

import pandas as pd
import pytest

from housing_recipes.config import DataConfig
from housing_recipes.data import load_raw_data, make_strata, split_dataset, summarise_dataframe


def test_split_dataset_is_reproducible_and_disjoint(ames_frame):
    train_a, test_a = split_dataset(ames_frame, 0.75, "Sale_Price", random_state=502)
    train_b, test_b = split_dataset(ames_frame, 0.75, "Sale_Price", random_state=502)

    assert len(train_a) == 30
    assert len(test_a) == 10
    assert train_a.index.equals(train_b.index)
    assert test_a.index.equals(test_b.index)
    assert set(train_a.index).isdisjoint(test_a.index)


def test_split_dataset_balances_numeric_strata(ames_frame):
    train, test = split_dataset(ames_frame, 0.75, "Sale_Price", random_state=0)
    strata = make_strata(ames_frame["Sale_Price"])

    assert sorted(strata.loc[test.index].value_counts().tolist()) == [2, 2, 3, 3]
    assert len(train) + len(test) == len(ames_frame)


def test_make_strata_bins_numeric_and_keeps_categorical():
    numeric = make_strata(pd.Series(range(8)), bins=4)
    categorical = make_strata(pd.Series(["a", "b", "a"]))

    assert numeric.tolist() == [0, 0, 1, 1, 2, 2, 3, 3]
    assert categorical.tolist() == ["a", "b", "a"]


def test_make_strata_rejects_single_bin():
    with pytest.raises(ValueError):
        make_strata(pd.Series([1.0, 2.0]), bins=1)


@pytest.mark.parametrize("fraction", [0, 1, 1.2])
def test_split_dataset_rejects_bad_fraction(ames_frame, fraction):
    with pytest.raises(ValueError):
        split_dataset(ames_frame, fraction)


def test_split_dataset_requires_stratification_column(ames_frame):
    with pytest.raises(KeyError):
        split_dataset(ames_frame, 0.8, "Lot_Area")


def test_load_raw_data(tmp_path, ames_frame):
    csv_path = tmp_path / "ames.csv"
    ames_frame.to_csv(csv_path, index=False)

    df = load_raw_data(DataConfig(raw_data_path=csv_path, target_column="Sale_Price"))

    assert df.shape == ames_frame.shape
    assert list(df.columns) == list(ames_frame.columns)


def test_load_raw_data_errors(tmp_path, ames_frame):
    with pytest.raises(FileNotFoundError):
        load_raw_data(DataConfig(raw_data_path=tmp_path / "missing.csv", target_column="Sale_Price"))

    csv_path = tmp_path / "ames.csv"
    ames_frame.to_csv(csv_path, index=False)
    with pytest.raises(KeyError):
        load_raw_data(DataConfig(raw_data_path=csv_path, target_column="price"))


def test_summarise_dataframe_counts_nulls():
    summary = summarise_dataframe(pd.DataFrame({"a": [1.0, None], "b": ["x", "y"]}))

    assert summary.rows == 2
    assert summary.columns == 2
    assert summary.null_counts == {"a": 1, "b": 0}
