"""Helper utilities for MLflow run management."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

import mlflow


@contextmanager
def ensure_run(
    run_name: str,
    *,
    stage: Optional[str] = None,
    nested: bool = False,
) -> Iterator[mlflow.ActiveRun]:
    """Return an MLflow run context, reusing the active run when present.

    Args:
        run_name: Name for the run if a new one is started.
        stage: Optional value for the ``stage`` tag used to look runs up later.
        nested: When True, force creation of a nested run even if one is active.
    """

    active = mlflow.active_run()
    if active and not nested:
        if stage:
            mlflow.set_tag("stage", stage)
        yield active
    else:
        with mlflow.start_run(run_name=run_name, nested=nested) as new_run:
            if stage:
                mlflow.set_tag("stage", stage)
            yield new_run
