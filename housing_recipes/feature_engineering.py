"""Feature-engineering stage: fit the configured recipe and persist its artifacts."""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import mlflow
import pandas as pd

from .config import ProjectConfig, RecipeConfig, StepConfig, load_config
from .data import load_raw_data, save_json_artifact, split_from_config
from .logging_utils import configure_logging, get_logger
from .mlflow_utils import ensure_run
from .pipeline import FittedPipeline, Pipeline, define
from .registry import (
    build_run_name,
    prepare_run_artifacts,
    save_pipeline,
    write_metadata,
)
from .schema import Role
from .selectors import build_selector
from .steps import STEP_KINDS, InteractStep, Step

logger = get_logger(__name__)


@dataclass(frozen=True)
class FeatureMetadata:
    outcome: str
    predictors: List[str]
    feature_names: List[str]
    column_kinds: Dict[str, str]

    @classmethod
    def from_fitted(cls, fitted: FittedPipeline) -> "FeatureMetadata":
        return cls(
            outcome=fitted.outcome,
            predictors=fitted.definition.predictors,
            feature_names=fitted.feature_names,
            column_kinds={column.name: column.kind.value for column in fitted.output_schema},
        )

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "predictors": self.predictors,
            "feature_names": self.feature_names,
            "column_kinds": self.column_kinds,
        }


def build_step(config: StepConfig) -> Step:
    """Instantiate one step from its YAML declaration."""

    step_cls = STEP_KINDS.get(config.kind)
    if step_cls is None:
        raise ValueError(f"Unknown recipe step kind '{config.kind}'. Expected one of {sorted(STEP_KINDS)}")

    params = dict(config.params)
    if step_cls is InteractStep:
        if "left" not in params or "right" not in params:
            raise ValueError("interact steps need both 'left' and 'right' selectors")
        left = build_selector(params.pop("left"))
        right = build_selector(params.pop("right"))
        return InteractStep(left, right, **params)

    if config.selector is None:
        raise ValueError(f"{config.kind} step needs a 'selector' or 'columns' entry")
    return step_cls(build_selector(config.selector), **params)


def build_pipeline(config: RecipeConfig, schema: pd.DataFrame) -> Pipeline:
    pipeline = define(schema, config.formula)
    for step_config in config.steps:
        pipeline = pipeline.append_step(build_step(step_config))
    logger.info("Built recipe with %d steps for outcome '%s'", len(pipeline.steps), pipeline.outcome)
    return pipeline


def log_recipe_to_mlflow(fitted: FittedPipeline, metadata: FeatureMetadata) -> None:
    if mlflow.active_run() is None:
        return

    mlflow.log_params(
        {
            "recipe_num_steps": len(fitted.fitted_steps),
            "recipe_step_kinds": ",".join(fitted_step.step.kind for fitted_step in fitted.fitted_steps),
            "num_predictors": len(metadata.predictors),
            "total_transformed_features": len(metadata.feature_names),
        }
    )
    mlflow.log_dict(metadata.to_dict(), "feature_engineering/feature_metadata.json")
    mlflow.log_dict({"steps": fitted.describe_steps()}, "feature_engineering/recipe_steps.json")


def _split_counts(frame: pd.DataFrame, fitted: FittedPipeline) -> Dict[str, Any]:
    roles = {column.name: column.role for column in fitted.output_schema}
    return {
        "rows": int(len(frame)),
        "columns": int(frame.shape[1]),
        "predictors": int(sum(1 for name in frame.columns if roles.get(name) is Role.PREDICTOR)),
    }


def run_feature_engineering(config: ProjectConfig, run_name: Optional[str] = None) -> Dict[str, Any]:
    """Load data, split it, fit the recipe on the training rows, and bake both splits.

    Returns the run metadata that is also written next to the artifacts.
    """

    configure_logging()
    mlflow.set_tracking_uri(config.mlflow.tracking_uri)
    mlflow.set_experiment(config.mlflow.experiment_name)

    effective_run_name = run_name or build_run_name(config.mlflow.run_name_template)
    artifacts = prepare_run_artifacts(config.artifacts, effective_run_name)

    with ensure_run(effective_run_name, stage="feature_engineering") as run:
        logger.info("Starting feature engineering run: %s", run.info.run_id)
        mlflow.log_params(
            {
                "train_fraction": config.split.train_fraction,
                "stratify_by": config.split.stratify_by or "none",
                "random_state": config.split.random_state,
            }
        )

        df = load_raw_data(config.data)
        train, test = split_from_config(df, config.split)

        fitted = build_pipeline(config.recipe, train).fit(train)
        train_features = fitted.training_output()
        test_features = fitted.apply(test)
        feature_metadata = FeatureMetadata.from_fitted(fitted)

        save_pipeline(fitted, artifacts.pipeline_path)
        save_json_artifact({"steps": fitted.describe_steps()}, artifacts.steps_path)
        metadata_path = artifacts.run_dir / "feature_metadata.json"
        save_json_artifact(feature_metadata.to_dict(), metadata_path)

        data_paths: Dict[str, str] = {}
        if config.artifacts.save_transformed_data:
            for split_name, frame in (("train", train_features), ("test", test_features)):
                path = artifacts.run_dir / f"{split_name}_features.csv"
                frame.to_csv(path, index=config.data.index_column is not None)
                data_paths[split_name] = str(path)

        mlflow.log_artifact(str(artifacts.pipeline_path), artifact_path="recipe")
        log_recipe_to_mlflow(fitted, feature_metadata)

        run_metadata = {
            "run_name": effective_run_name,
            "mlflow_run_id": run.info.run_id,
            "splits": {
                "train": _split_counts(train_features, fitted),
                "test": _split_counts(test_features, fitted),
            },
            "artifacts": {
                "recipe": str(artifacts.pipeline_path),
                "recipe_steps": str(artifacts.steps_path),
                "feature_metadata": str(metadata_path),
                **{f"{split_name}_features": path for split_name, path in data_paths.items()},
            },
        }
        write_metadata(run_metadata, artifacts.metadata_path)

        logger.info("Feature engineering complete. Artifacts saved under %s", artifacts.run_dir)

    return run_metadata


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fit the housing preprocessing recipe and bake the train/test splits")
    parser.add_argument("--config", type=Path, help="Optional path to configuration YAML")
    parser.add_argument("--run-name", type=str, help="Optional explicit run name")
    return parser.parse_args(args)


def main(argv: Optional[List[str]] = None) -> None:
    cli_args = parse_args(argv)
    config = load_config(path=cli_args.config)
    summary = run_feature_engineering(config, run_name=cli_args.run_name)
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":  # pragma: no cover
    main()
