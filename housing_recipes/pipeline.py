"""Declarative preprocessing recipes with a fit-once, apply-many lifecycle.

A :class:`Pipeline` is an immutable description: a role-annotated input schema
and an ordered tuple of steps. Nothing is computed until :meth:`Pipeline.fit`,
which walks the steps in order against the training data, re-resolving each
step's selector on the *current* working columns, and returns a frozen
:class:`FittedPipeline`. The fitted snapshot replays the stored step states on
any new dataset without re-estimating anything.

Example::

    recipe = (
        define(ames_train, "Sale_Price ~ Neighborhood + Gr_Liv_Area + Year_Built + Bldg_Type + Latitude")
        .step_log(columns("Gr_Liv_Area"), base=10)
        .step_other(columns("Neighborhood"), threshold=0.01)
        .step_dummy(all_nominal_predictors())
        .step_interact(columns("Gr_Liv_Area"), starts_with("Bldg_Type_"))
        .step_ns(columns("Latitude"), deg_free=20)
    )
    fitted = recipe.fit(ames_train)
    test_features = fitted.apply(ames_test)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .errors import PipelineStateError, SchemaError, UnresolvedSelectorError
from .formula import Formula, parse_formula
from .logging_utils import get_logger
from .schema import ColumnKind, Role, Schema, infer_column_kind
from .selectors import Selector, columns
from .steps import DummyStep, InteractStep, LogStep, NaturalSplineStep, OtherStep, Step

logger = get_logger(__name__)

SelectorLike = Union[Selector, str, Sequence[str]]
SchemaLike = Union[pd.DataFrame, Schema, Mapping[str, Union[ColumnKind, str]]]


def _as_selector(selector: SelectorLike) -> Selector:
    if isinstance(selector, Selector):
        return selector
    if isinstance(selector, str):
        return columns(selector)
    return columns(*selector)


def _as_schema(schema: SchemaLike) -> Schema:
    if isinstance(schema, Schema):
        return schema
    if isinstance(schema, pd.DataFrame):
        return Schema.from_frame(schema)
    return Schema.from_mapping(schema)


def _require_columns(data: pd.DataFrame, names: Sequence[str], context: str) -> None:
    missing = [name for name in names if name not in data.columns]
    if missing:
        raise SchemaError(f"{context}: dataset is missing columns {missing}")


def _apply_declared_kinds(frame: pd.DataFrame, schema: Schema) -> pd.DataFrame:
    """Coerce columns so their dtype matches the kind declared at definition time.

    Declared nominal columns become unordered categoricals and declared ordinal
    columns ordered ones. A declared numeric column must already be numeric.
    """

    for name in frame.columns:
        declared = schema.get(name).kind
        series = frame[name]
        if infer_column_kind(series) is declared:
            continue
        if declared is ColumnKind.NUMERIC:
            raise SchemaError(f"Column '{name}' is declared numeric but has dtype {series.dtype}")
        if isinstance(series.dtype, pd.CategoricalDtype):
            frame[name] = series.cat.as_ordered() if declared is ColumnKind.ORDINAL else series.cat.as_unordered()
        else:
            frame[name] = pd.Categorical(series, ordered=declared is ColumnKind.ORDINAL)
        logger.debug("Coerced column %s to %s", name, declared.value)
    return frame


def _advance_schema(working: pd.DataFrame, previous: Schema) -> Schema:
    """Re-infer kinds after a step; same-named columns keep their role, new ones are predictors."""

    roles = previous.roles()
    return Schema.from_frame(working, {name: roles.get(name, Role.PREDICTOR) for name in working.columns})


def define(
    schema: SchemaLike,
    outcome_or_formula: str,
    predictors: Optional[Union[str, Sequence[str]]] = None,
) -> "Pipeline":
    """Create an unfitted pipeline with resolved roles and no steps.

    Args:
        schema: A DataFrame (kinds inferred from dtypes), a :class:`Schema`, or a
            mapping of column name to kind.
        outcome_or_formula: Either a formula such as ``"Sale_Price ~ ."`` or the
            name of the outcome column.
        predictors: When an outcome name is given: a list of predictor names,
            ``"."``/``None`` for every other column, or a single column name.

    Raises:
        SchemaError: If the outcome or a named predictor is absent, or if the
            predictors resolve to no columns.
    """

    base = _as_schema(schema)

    if "~" in outcome_or_formula:
        if predictors is not None:
            raise ValueError("Pass either a formula or an outcome with predictors, not both")
        formula = parse_formula(outcome_or_formula, base.names)
    elif predictors is None or predictors == ".":
        others = tuple(name for name in base.names if name != outcome_or_formula)
        formula = Formula(outcome=outcome_or_formula, terms=others)
    elif isinstance(predictors, str):
        formula = Formula(outcome=outcome_or_formula, terms=(predictors,))
    else:
        formula = Formula(outcome=outcome_or_formula, terms=tuple(predictors))

    if formula.outcome not in base:
        raise SchemaError(f"Outcome column '{formula.outcome}' not present; available: {base.names}")
    if formula.outcome in formula.terms:
        raise SchemaError(f"Outcome column '{formula.outcome}' cannot also be a predictor")
    unknown = [name for name in formula.terms if name not in base]
    if unknown:
        raise SchemaError(f"Predictor columns {unknown} not present; available: {base.names}")

    chosen = formula.predictors(base.names)
    if not chosen:
        raise SchemaError("Predictor specification resolved to zero columns")

    roles = {name: Role.IGNORED for name in base.names}
    roles.update({name: Role.PREDICTOR for name in chosen})
    roles[formula.outcome] = Role.OUTCOME

    pipeline = Pipeline(schema=base.with_roles(roles))
    logger.debug(
        "Defined recipe: outcome=%s, %d predictors, %d ignored",
        formula.outcome,
        len(chosen),
        len(base) - len(chosen) - 1,
    )
    return pipeline


@dataclass(frozen=True)
class Pipeline:
    """Unfitted recipe. Every builder method returns a new instance."""

    schema: Schema
    steps: Tuple[Step, ...] = ()

    @property
    def outcome(self) -> str:
        return next(column.name for column in self.schema if column.role is Role.OUTCOME)

    @property
    def predictors(self) -> List[str]:
        return [column.name for column in self.schema if column.role is Role.PREDICTOR]

    @property
    def active_columns(self) -> List[str]:
        """Outcome and predictors in schema order; ignored columns never enter the recipe."""

        return [column.name for column in self.schema if column.role is not Role.IGNORED]

    def append_step(self, step: Step) -> "Pipeline":
        if not isinstance(step, Step):
            raise TypeError(f"Expected a Step instance, got {type(step).__name__}")
        return replace(self, steps=self.steps + (step,))

    def step_log(self, selector: SelectorLike, base: float = math.e) -> "Pipeline":
        return self.append_step(LogStep(_as_selector(selector), base=base))

    def step_other(self, selector: SelectorLike, threshold: Union[float, int] = 0.05, other: str = "other") -> "Pipeline":
        return self.append_step(OtherStep(_as_selector(selector), threshold=threshold, other=other))

    def step_dummy(self, selector: SelectorLike, one_hot: bool = False) -> "Pipeline":
        return self.append_step(DummyStep(_as_selector(selector), one_hot=one_hot))

    def step_interact(self, left: SelectorLike, right: SelectorLike, sep: str = "_x_") -> "Pipeline":
        return self.append_step(InteractStep(_as_selector(left), _as_selector(right), sep=sep))

    def step_ns(self, selector: SelectorLike, deg_free: int = 2) -> "Pipeline":
        return self.append_step(NaturalSplineStep(_as_selector(selector), deg_free=deg_free))

    def summary(self) -> pd.DataFrame:
        return self.schema.to_frame()

    def fit(self, training_data: pd.DataFrame) -> "FittedPipeline":
        """Estimate every step in order and return a frozen fitted snapshot.

        Raises:
            SchemaError: Training data lacks a column known to the recipe.
            UnresolvedSelectorError: A step's selector matched no columns.
            FitError: A step could not compute its statistics.
            DomainError: Training values are invalid for a step (e.g. log of zero).
        """

        _require_columns(training_data, self.active_columns, "fit")

        working = _apply_declared_kinds(training_data.loc[:, self.active_columns].copy(), self.schema)
        working_schema = _advance_schema(working, self.schema)

        fitted_steps: List[FittedStep] = []
        for index, step in enumerate(self.steps, start=1):
            label = f"{step.kind}_{index}"
            selected = step.resolve(working_schema)
            if not selected:
                raise UnresolvedSelectorError(label, step.describe_selector())

            state = step.fit(working, selected, working_schema)
            working = step.apply(working, selected, state)
            working_schema = _advance_schema(working, working_schema)

            fitted_steps.append(FittedStep(label=label, step=step, columns=selected, state=state))
            logger.debug("Fitted step %s on columns %s", label, list(selected))

        logger.info(
            "Fitted recipe with %d steps on %d rows: %d input columns -> %d output columns",
            len(fitted_steps),
            len(training_data),
            len(self.active_columns),
            len(working_schema),
        )
        return FittedPipeline(
            definition=self,
            fitted_steps=tuple(fitted_steps),
            output_schema=working_schema,
            training_frame=working,
        )

    def apply(self, new_data: pd.DataFrame) -> pd.DataFrame:
        raise PipelineStateError("Recipe has not been fitted; call fit() first")


@dataclass(frozen=True)
class FittedStep:
    label: str
    step: Step
    columns: Tuple[str, ...]
    state: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.label,
            "kind": self.step.kind,
            "selector": self.step.describe_selector(),
            "columns": list(self.columns),
            "state": self.state.to_dict(),
        }


@dataclass(frozen=True)
class FittedPipeline:
    """Frozen result of :meth:`Pipeline.fit`; safe to apply repeatedly."""

    definition: Pipeline
    fitted_steps: Tuple[FittedStep, ...]
    output_schema: Schema
    training_frame: pd.DataFrame = field(repr=False, compare=False)

    @property
    def outcome(self) -> str:
        return self.definition.outcome

    @property
    def feature_names(self) -> List[str]:
        return [column.name for column in self.output_schema if column.role is Role.PREDICTOR]

    def fit(self, training_data: pd.DataFrame) -> "FittedPipeline":
        raise PipelineStateError(
            "Recipe is already fitted; call definition.fit() to estimate a new snapshot"
        )

    def apply(self, new_data: pd.DataFrame) -> pd.DataFrame:
        """Transform ``new_data`` with the statistics captured at fit time.

        The outcome may be absent unless a step consumes it; every predictor
        must be present. Ignored columns and columns unknown to the recipe are
        dropped. ``new_data`` is never modified.
        """

        _require_columns(new_data, self.definition.predictors, "apply")

        present = [name for name in self.definition.active_columns if name in new_data.columns]
        working = _apply_declared_kinds(new_data.loc[:, present].copy(), self.definition.schema)
        for fitted in self.fitted_steps:
            _require_columns(working, fitted.columns, f"apply ({fitted.label})")
            working = fitted.step.apply(working, fitted.columns, fitted.state)

        ordered = [name for name in self.output_schema.names if name in working.columns]
        logger.debug("Applied recipe to %d rows -> %d columns", len(working), len(ordered))
        return working.loc[:, ordered]

    def training_output(self) -> pd.DataFrame:
        """Return a copy of the transformed training data materialized during fit."""

        return self.training_frame.copy()

    def describe_steps(self) -> List[Dict[str, Any]]:
        return [fitted.to_dict() for fitted in self.fitted_steps]

    def summary(self) -> pd.DataFrame:
        return self.output_schema.to_frame()
