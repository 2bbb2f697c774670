from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from housing_recipes.config import load_config


def _write_config(path: Path, payload: dict) -> Path:
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle)
    return path


def test_load_config_with_env_overrides(tmp_path, monkeypatch):
    config_path = _write_config(
        tmp_path / "config.yaml",
        {
            "project": {"name": "demo"},
            "data": {"raw_data_path": "data.csv", "target_column": "price"},
            "mlflow": {"experiment_name": "exp", "tracking_uri": "mlruns"},
        },
    )

    monkeypatch.setenv("HOUSING_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("HOUSING_DATA_PATH", "/tmp/data.csv")
    monkeypatch.setenv("MLFLOW_TRACKING_URI", "sqlite:///mlruns.db")

    cfg = load_config()

    assert cfg.data.raw_data_path == Path("/tmp/data.csv")
    assert cfg.mlflow.tracking_uri == "sqlite:///mlruns.db"
    assert cfg.project_name == "demo"
    assert cfg.recipe.formula == "price ~ ."
    assert cfg.recipe.steps == ()


def test_load_config_parses_recipe_steps(tmp_path, monkeypatch):
    monkeypatch.delenv("HOUSING_DATA_PATH", raising=False)
    config_path = _write_config(
        tmp_path / "config.yaml",
        {
            "data": {"raw_data_path": "ames.csv", "target_column": "Sale_Price"},
            "split": {"train_fraction": 0.75, "stratify_by": "Sale_Price", "random_state": 7},
            "recipe": {
                "formula": "Sale_Price ~ Neighborhood + Gr_Liv_Area",
                "steps": [
                    {"kind": "log", "columns": ["Gr_Liv_Area"], "base": 10},
                    {"kind": "dummy", "selector": "all_nominal_predictors"},
                    {"kind": "interact", "left": ["Gr_Liv_Area"], "right": {"starts_with": "Neighborhood_"}},
                ],
            },
        },
    )

    cfg = load_config(config_path)

    log_step, dummy_step, interact_step = cfg.recipe.steps
    assert log_step.kind == "log"
    assert log_step.selector == {"columns": ["Gr_Liv_Area"]}
    assert log_step.params == {"base": 10}
    assert dummy_step.selector == "all_nominal_predictors"
    assert interact_step.selector is None
    assert set(interact_step.params) == {"left", "right"}
    assert cfg.split.train_fraction == 0.75
    assert cfg.split.random_state == 7
    assert cfg.to_dict()["recipe"]["steps"][0] == {"kind": "log", "selector": {"columns": ["Gr_Liv_Area"]}, "base": 10}


@pytest.mark.parametrize(
    "step",
    [
        {"columns": ["a"]},
        {"kind": "log", "columns": ["a"], "selector": "all_numeric"},
        "log",
    ],
)
def test_load_config_rejects_malformed_steps(tmp_path, step):
    config_path = _write_config(
        tmp_path / "config.yaml",
        {"data": {"raw_data_path": "ames.csv"}, "recipe": {"steps": [step]}},
    )

    with pytest.raises(ValueError):
        load_config(config_path)


def test_load_config_rejects_bad_train_fraction(tmp_path):
    config_path = _write_config(
        tmp_path / "config.yaml",
        {"data": {"raw_data_path": "ames.csv"}, "split": {"train_fraction": 1.5}},
    )

    with pytest.raises(ValueError):
        load_config(config_path)


def test_load_config_requires_data_path(tmp_path, monkeypatch):
    monkeypatch.delenv("HOUSING_DATA_PATH", raising=False)
    config_path = _write_config(tmp_path / "config.yaml", {"data": {"target_column": "Sale_Price"}})

    with pytest.raises(ValueError):
        load_config(config_path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")
