"""Declarative preprocessing recipes for housing-price regression."""

from .errors import (
    DomainError,
    FitError,
    PipelineError,
    PipelineStateError,
    SchemaError,
    UnresolvedSelectorError,
)
from .pipeline import FittedPipeline, Pipeline, define
from .schema import ColumnKind, Role, Schema
from .selectors import (
    all_nominal,
    all_nominal_predictors,
    all_numeric,
    all_numeric_predictors,
    all_outcomes,
    all_predictors,
    columns,
    contains,
    ends_with,
    has_role,
    has_type,
    matches,
    starts_with,
)
from .steps import DummyStep, InteractStep, LogStep, NaturalSplineStep, OtherStep

__all__ = [
    "ColumnKind",
    "DomainError",
    "DummyStep",
    "FitError",
    "FittedPipeline",
    "InteractStep",
    "LogStep",
    "NaturalSplineStep",
    "OtherStep",
    "Pipeline",
    "PipelineError",
    "PipelineStateError",
    "Role",
    "Schema",
    "SchemaError",
    "UnresolvedSelectorError",
    "all_nominal",
    "all_nominal_predictors",
    "all_numeric",
    "all_numeric_predictors",
    "all_outcomes",
    "all_predictors",
    "columns",
    "contains",
    "define",
    "ends_with",
    "has_role",
    "has_type",
    "matches",
    "starts_with",
]
