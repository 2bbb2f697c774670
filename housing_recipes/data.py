"""Data access, summaries, and train/test splitting for recipe workflows."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import mlflow
import pandas as pd
from pandas.api import types as ptypes
from sklearn.model_selection import train_test_split

from .config import DataConfig, SplitConfig
from .logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DatasetSummary:
    rows: int
    columns: int
    memory_mb: float
    null_counts: dict


def load_raw_data(config: DataConfig, *, dtype=None) -> pd.DataFrame:
    """Load the raw housing dataset from disk."""

    data_path = config.raw_data_path
    if not data_path.exists():
        raise FileNotFoundError(f"Raw data not found at {data_path}")

    df = pd.read_csv(data_path, dtype=dtype)
    if config.target_column not in df.columns:
        raise KeyError(f"Target column '{config.target_column}' missing from dataset")
    if config.index_column and config.index_column in df.columns:
        df = df.set_index(config.index_column)

    summary = summarise_dataframe(df)
    logger.info(
        "Loaded raw dataset with %s rows and %s columns from %s",
        summary.rows,
        summary.columns,
        data_path,
    )
    log_dataset_summary_to_mlflow(summary)
    return df


def make_strata(values: pd.Series, bins: int = 4) -> pd.Series:
    """Turn a stratification column into discrete strata.

    Numeric columns are cut at their quantiles into ``bins`` groups (ties
    collapse duplicate edges); categorical columns are used as they are.
    """

    if ptypes.is_numeric_dtype(values.dtype) and not ptypes.is_bool_dtype(values.dtype):
        if bins < 2:
            raise ValueError(f"strata_bins must be >= 2 for numeric strata, got {bins}")
        return pd.qcut(values, q=bins, labels=False, duplicates="drop")
    return values.astype(str)


def split_dataset(
    df: pd.DataFrame,
    train_fraction: float = 0.8,
    stratify_by: Optional[str] = None,
    *,
    strata_bins: int = 4,
    random_state: Optional[int] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split a frame into (train, test) row subsets, optionally stratified."""

    if not 0 < train_fraction < 1:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")

    strata = None
    if stratify_by is not None:
        if stratify_by not in df.columns:
            raise KeyError(f"Stratification column '{stratify_by}' missing from dataset")
        strata = make_strata(df[stratify_by], strata_bins)

    train, test = train_test_split(
        df,
        train_size=train_fraction,
        random_state=random_state,
        stratify=strata,
    )

    logger.info(
        "Created train/test split with train=%d rows, test=%d rows (stratified by %s)",
        len(train),
        len(test),
        stratify_by or "nothing",
    )
    return train, test


def split_from_config(df: pd.DataFrame, config: SplitConfig) -> Tuple[pd.DataFrame, pd.DataFrame]:
    return split_dataset(
        df,
        config.train_fraction,
        config.stratify_by,
        strata_bins=config.strata_bins,
        random_state=config.random_state,
    )


def summarise_dataframe(df: pd.DataFrame) -> DatasetSummary:
    """Generate summary statistics for a dataframe."""

    memory_mb = df.memory_usage(deep=True).sum() / (1024 ** 2)
    null_counts = {str(key): int(value) for key, value in df.isnull().sum().items()}
    return DatasetSummary(
        rows=df.shape[0],
        columns=df.shape[1],
        memory_mb=round(memory_mb, 3),
        null_counts=null_counts,
    )


def log_dataset_summary_to_mlflow(summary: DatasetSummary) -> None:
    """Log dataset metadata to the active MLflow run, if available."""

    if mlflow.active_run() is None:
        return

    mlflow.log_params({
        "data_rows": summary.rows,
        "data_columns": summary.columns,
        "data_memory_mb": summary.memory_mb,
    })
    mlflow.log_dict(summary.null_counts, "dataset/null_counts.json")


def save_json_artifact(content: dict, path: Path) -> None:
    """Persist JSON content to disk."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(content, handle, indent=2)

    logger.debug("Saved artifact to %s", path)
