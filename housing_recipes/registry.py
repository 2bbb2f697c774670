"""Local artifact layout, fitted-recipe persistence, and MLflow run lookup."""

from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import joblib
import mlflow
from mlflow.entities import Run
from mlflow.tracking import MlflowClient

from .config import ArtifactsConfig
from .logging_utils import get_logger
from .pipeline import FittedPipeline

logger = get_logger(__name__)


@dataclass(frozen=True)
class RunArtifacts:
    run_dir: Path
    pipeline_path: Path
    metadata_path: Path
    steps_path: Path


def build_run_name(template: str) -> str:
    return template.format(timestamp=datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S"))


def prepare_run_artifacts(config: ArtifactsConfig, run_name: str) -> RunArtifacts:
    run_dir = config.output_dir / run_name
    run_dir.mkdir(parents=True, exist_ok=True)
    return RunArtifacts(
        run_dir=run_dir,
        pipeline_path=run_dir / "recipe.joblib",
        metadata_path=run_dir / "run_metadata.json",
        steps_path=run_dir / "recipe_steps.json",
    )


def save_pipeline(fitted: FittedPipeline, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(fitted, path)
    logger.info("Saved fitted recipe to %s", path)


def load_pipeline(path: Path) -> FittedPipeline:
    if not path.exists():
        raise FileNotFoundError(f"Fitted recipe not found at {path}")
    fitted = joblib.load(path)
    if not isinstance(fitted, FittedPipeline):
        raise TypeError(f"{path} does not contain a fitted recipe (found {type(fitted).__name__})")
    return fitted


def write_metadata(metadata: dict, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(metadata, handle, indent=2)


def _get_client() -> MlflowClient:
    return MlflowClient()


def get_latest_run_by_stage(experiment_name: str, stage: str) -> Optional[Run]:
    client = _get_client()
    experiment = client.get_experiment_by_name(experiment_name)
    if experiment is None:
        return None

    runs = client.search_runs(
        [experiment.experiment_id],
        filter_string=f"tags.stage = '{stage}'",
        order_by=["attributes.start_time DESC"],
        max_results=1,
    )
    if not runs:
        return None
    return runs[0]


def download_artifact(run_id: str, artifact_path: str) -> Path:
    logger.debug("Downloading artifact %s from run %s", artifact_path, run_id)
    dest = Path(tempfile.mkdtemp())
    local_path = Path(mlflow.artifacts.download_artifacts(run_id=run_id, artifact_path=artifact_path, dst_path=str(dest)))
    return local_path


def load_pipeline_from_run(run_id: str) -> FittedPipeline:
    """Fetch the fitted recipe logged by a feature-engineering run."""

    return load_pipeline(download_artifact(run_id, "recipe/recipe.joblib"))
