"""Configuration loader for the housing recipes feature-engineering workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import os

import yaml


@dataclass(frozen=True)
class DataConfig:
    raw_data_path: Path
    target_column: str
    index_column: Optional[str] = None


@dataclass(frozen=True)
class SplitConfig:
    train_fraction: float = 0.8
    stratify_by: Optional[str] = None
    strata_bins: int = 4
    random_state: int = 42


@dataclass(frozen=True)
class StepConfig:
    """One recipe step as declared in YAML.

    ``selector`` holds the raw selector spec (``selector:`` or ``columns:`` key);
    every other key except ``kind`` lands in ``params``.
    """

    kind: str
    selector: Any = None
    params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "selector": self.selector, **self.params}


@dataclass(frozen=True)
class RecipeConfig:
    formula: str
    steps: Tuple[StepConfig, ...] = ()


@dataclass(frozen=True)
class MLflowConfig:
    experiment_name: str
    tracking_uri: str
    run_name_template: str = "run_{timestamp}"


@dataclass(frozen=True)
class ArtifactsConfig:
    output_dir: Path = Path("artifacts")
    save_transformed_data: bool = True


@dataclass(frozen=True)
class ProjectConfig:
    project_name: str
    data: DataConfig
    split: SplitConfig
    recipe: RecipeConfig
    mlflow: MLflowConfig
    artifacts: ArtifactsConfig

    def to_dict(self) -> Dict[str, Any]:
        """Return config as a serialisable dictionary."""

        return {
            "project_name": self.project_name,
            "data": {
                "raw_data_path": str(self.data.raw_data_path),
                "target_column": self.data.target_column,
                "index_column": self.data.index_column,
            },
            "split": {
                "train_fraction": self.split.train_fraction,
                "stratify_by": self.split.stratify_by,
                "strata_bins": self.split.strata_bins,
                "random_state": self.split.random_state,
            },
            "recipe": {
                "formula": self.recipe.formula,
                "steps": [step.to_dict() for step in self.recipe.steps],
            },
            "mlflow": {
                "experiment_name": self.mlflow.experiment_name,
                "tracking_uri": self.mlflow.tracking_uri,
                "run_name_template": self.mlflow.run_name_template,
            },
            "artifacts": {
                "output_dir": str(self.artifacts.output_dir),
                "save_transformed_data": self.artifacts.save_transformed_data,
            },
        }


def _resolve_config_path(explicit_path: Optional[Path] = None) -> Path:
    if explicit_path:
        return explicit_path

    env_path = os.getenv("HOUSING_CONFIG_PATH")
    if env_path:
        return Path(env_path)

    return Path("config/config.yaml")


def _parse_steps(raw_steps: Optional[List[Dict[str, Any]]]) -> Tuple[StepConfig, ...]:
    steps = []
    for position, raw in enumerate(raw_steps or [], start=1):
        if not isinstance(raw, dict) or "kind" not in raw:
            raise ValueError(f"Recipe step #{position} must be a mapping with a 'kind' key, got {raw!r}")
        params = dict(raw)
        kind = str(params.pop("kind"))
        if "selector" in params and "columns" in params:
            raise ValueError(f"Recipe step #{position} ({kind}) sets both 'selector' and 'columns'")
        selector = params.pop("selector", None)
        if "columns" in params:
            selector = {"columns": params.pop("columns")}
        steps.append(StepConfig(kind=kind, selector=selector, params=params))
    return tuple(steps)


def load_config(path: Optional[Path] = None) -> ProjectConfig:
    """Load project configuration from YAML and apply env overrides."""

    config_path = _resolve_config_path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        raw_config = yaml.safe_load(handle) or {}

    project = raw_config.get("project", {})
    data_cfg = raw_config.get("data", {})
    split_cfg = raw_config.get("split", {})
    recipe_cfg = raw_config.get("recipe", {})
    mlflow_cfg = raw_config.get("mlflow", {})
    artifacts_cfg = raw_config.get("artifacts", {})

    raw_data_path = os.getenv("HOUSING_DATA_PATH", data_cfg.get("raw_data_path"))
    if not raw_data_path:
        raise ValueError("data.raw_data_path must be set (or HOUSING_DATA_PATH exported)")
    target_column = data_cfg.get("target_column", "Sale_Price")
    tracking_uri = os.getenv("MLFLOW_TRACKING_URI", mlflow_cfg.get("tracking_uri", "mlruns"))

    train_fraction = float(split_cfg.get("train_fraction", 0.8))
    if not 0 < train_fraction < 1:
        raise ValueError(f"split.train_fraction must be in (0, 1), got {train_fraction}")

    project_config = ProjectConfig(
        project_name=project.get("name", "housing-recipes"),
        data=DataConfig(
            raw_data_path=Path(raw_data_path),
            target_column=target_column,
            index_column=data_cfg.get("index_column"),
        ),
        split=SplitConfig(
            train_fraction=train_fraction,
            stratify_by=split_cfg.get("stratify_by"),
            strata_bins=int(split_cfg.get("strata_bins", 4)),
            random_state=int(split_cfg.get("random_state", 42)),
        ),
        recipe=RecipeConfig(
            formula=recipe_cfg.get("formula", f"{target_column} ~ ."),
            steps=_parse_steps(recipe_cfg.get("steps")),
        ),
        mlflow=MLflowConfig(
            experiment_name=mlflow_cfg.get("experiment_name", "housing_recipes"),
            tracking_uri=tracking_uri,
            run_name_template=mlflow_cfg.get("run_name_template", "run_{timestamp}"),
        ),
        artifacts=ArtifactsConfig(
            output_dir=Path(artifacts_cfg.get("output_dir", "artifacts")),
            save_transformed_data=bool(artifacts_cfg.get("save_transformed_data", True)),
        ),
    )

    return project_config
