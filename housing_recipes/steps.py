"""Step kinds that make up a recipe.

Every step is an immutable description (selector + configuration). The
pipeline drives each one through the same three calls:

* ``resolve(schema)`` picks the input columns from the *current* working schema,
* ``fit(data, columns, schema)`` estimates a frozen state object,
* ``apply(data, columns, state)`` returns a new frame; it never mutates ``data``
  and never looks at anything but ``state`` for statistics.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Hashable, Iterable, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from pandas.api import types as ptypes
from sklearn.preprocessing import OneHotEncoder

from .errors import DomainError, FitError
from .schema import Schema
from .selectors import Selector
from .splines import NaturalSplineBasis

Level = Hashable


def _is_numeric(series: pd.Series) -> bool:
    return ptypes.is_numeric_dtype(series.dtype) and not ptypes.is_bool_dtype(series.dtype)


def _require_numeric(step_name: str, data: pd.DataFrame, columns: Sequence[str]) -> None:
    non_numeric = [column for column in columns if not _is_numeric(data[column])]
    if non_numeric:
        raise FitError(step_name, f"columns {non_numeric} are not numeric")


def _sort_levels(levels: Iterable[Level]) -> List[Level]:
    """Sort levels by value; numeric-looking strings sort as numbers, mixed types as text."""

    levels = list(levels)
    if levels and all(isinstance(level, str) for level in levels):
        try:
            return sorted(levels, key=lambda level: (float(level), level))
        except ValueError:
            pass
    try:
        return sorted(levels)
    except TypeError:
        return sorted(levels, key=str)


def _observed_levels(series: pd.Series) -> List[Level]:
    """Distinct non-missing values, in category order for categoricals, else sorted."""

    present = set(series.dropna().unique().tolist())
    if isinstance(series.dtype, pd.CategoricalDtype):
        return [level for level in series.cat.categories.tolist() if level in present]
    return _sort_levels(present)


def clean_level_name(level: Level) -> str:
    """Make a category usable inside a column name (``1Fam`` -> ``1Fam``, ``Twnhs E`` -> ``Twnhs_E``)."""

    return re.sub(r"[^0-9A-Za-z_]", "_", str(level))


def _check_new_names(step_name: str, data: pd.DataFrame, new_names: Sequence[str], replaced: Sequence[str] = ()) -> None:
    duplicates = sorted({name for name in new_names if list(new_names).count(name) > 1})
    if duplicates:
        raise FitError(step_name, f"generated column names collide: {duplicates}")
    existing = set(data.columns) - set(replaced)
    clashes = [name for name in new_names if name in existing]
    if clashes:
        raise FitError(step_name, f"generated columns already exist in the data: {clashes}")


class Step:
    """Base class for all step kinds."""

    kind: ClassVar[str] = "step"

    @property
    def selectors(self) -> Tuple[Selector, ...]:
        return (self.selector,)  # type: ignore[attr-defined]

    def resolve(self, schema: Schema) -> Tuple[str, ...]:
        return tuple(self.selector(schema))  # type: ignore[attr-defined]

    def fit(self, data: pd.DataFrame, columns: Tuple[str, ...], schema: Schema) -> Any:
        raise NotImplementedError

    def apply(self, data: pd.DataFrame, columns: Tuple[str, ...], state: Any) -> pd.DataFrame:
        raise NotImplementedError

    def describe_selector(self) -> str:
        return ", ".join(repr(selector) for selector in self.selectors)


# ---------------------------------------------------------------------------
# log transform
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LogState:
    base: float

    def to_dict(self) -> Dict[str, Any]:
        return {"base": self.base}


@dataclass(frozen=True)
class LogStep(Step):
    selector: Selector
    base: float = math.e

    kind: ClassVar[str] = "log"

    def __post_init__(self) -> None:
        if not self.base > 0 or self.base == 1:
            raise ValueError(f"Log base must be positive and different from 1, got {self.base}")

    def fit(self, data: pd.DataFrame, columns: Tuple[str, ...], schema: Schema) -> LogState:
        _require_numeric(self.kind, data, columns)
        return LogState(base=float(self.base))

    def apply(self, data: pd.DataFrame, columns: Tuple[str, ...], state: LogState) -> pd.DataFrame:
        result = data.copy()
        divisor = np.log(state.base)
        for column in columns:
            values = data[column].to_numpy(dtype=np.float64)
            invalid = values <= 0
            if invalid.any():
                raise DomainError(
                    f"log: column '{column}' has {int(invalid.sum())} non-positive value(s), "
                    f"e.g. {values[invalid][0]!r}"
                )
            result[column] = np.log(values) / divisor
        return result


# ---------------------------------------------------------------------------
# rare-category lumping
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OtherState:
    kept: Tuple[Tuple[str, Tuple[Level, ...]], ...]
    other: str

    def levels_for(self, column: str) -> Tuple[Level, ...]:
        return dict(self.kept)[column]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "other": self.other,
            "kept": {column: [str(level) for level in levels] for column, levels in self.kept},
        }


@dataclass(frozen=True)
class OtherStep(Step):
    """Collapse infrequent categories into a single ``other`` level.

    ``threshold`` is a training-set proportion when it is a float in (0, 1) and
    a minimum count when it is an integer >= 1. Values unseen during fit are
    mapped to ``other`` as well; missing values stay missing.
    """

    selector: Selector
    threshold: Union[float, int] = 0.05
    other: str = "other"

    kind: ClassVar[str] = "other"

    def __post_init__(self) -> None:
        if isinstance(self.threshold, bool):
            raise ValueError("threshold must be a number, not a boolean")
        if isinstance(self.threshold, int):
            if self.threshold < 1:
                raise ValueError(f"Count threshold must be >= 1, got {self.threshold}")
        elif not 0 < self.threshold < 1:
            raise ValueError(f"Proportion threshold must be in (0, 1), got {self.threshold}")

    def _keeps(self, count: int, total: int) -> bool:
        if isinstance(self.threshold, int):
            return count >= self.threshold
        return count / total >= self.threshold

    def fit(self, data: pd.DataFrame, columns: Tuple[str, ...], schema: Schema) -> OtherState:
        kept = []
        for column in columns:
            series = data[column]
            counts = series.value_counts(dropna=True).to_dict()
            total = int(sum(counts.values()))
            if total == 0:
                raise FitError(self.kind, f"column '{column}' has no non-missing values")

            levels = _observed_levels(series)
            if self.other in {str(level) for level in levels}:
                raise FitError(self.kind, f"column '{column}' already has a level named '{self.other}'")

            kept.append((column, tuple(level for level in levels if self._keeps(int(counts.get(level, 0)), total))))
        return OtherState(kept=tuple(kept), other=self.other)

    def apply(self, data: pd.DataFrame, columns: Tuple[str, ...], state: OtherState) -> pd.DataFrame:
        result = data.copy()
        for column in columns:
            kept = state.levels_for(column)
            values = data[column].astype(object)
            lumped = values.where(values.isin(kept) | values.isna(), state.other)
            result[column] = pd.Categorical(lumped, categories=[*kept, state.other])
        return result


# ---------------------------------------------------------------------------
# dummy / one-hot encoding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DummyState:
    levels: Tuple[Tuple[str, Tuple[Level, ...]], ...]
    one_hot: bool
    encoders: Tuple[Tuple[str, OneHotEncoder], ...] = field(default=(), repr=False, compare=False)

    def levels_for(self, column: str) -> Tuple[Level, ...]:
        return dict(self.levels)[column]

    def encoder_for(self, column: str) -> OneHotEncoder:
        return dict(self.encoders)[column]

    def encoded_levels(self, column: str) -> Tuple[Level, ...]:
        levels = self.levels_for(column)
        return levels if self.one_hot else levels[1:]

    def output_names(self, column: str) -> List[str]:
        return [f"{column}_{clean_level_name(level)}" for level in self.encoded_levels(column)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "one_hot": self.one_hot,
            "levels": {column: [str(level) for level in levels] for column, levels in self.levels},
            "reference": {column: None if self.one_hot else str(levels[0]) for column, levels in self.levels},
        }


def _encoder_input(values: pd.Series, fill: Level) -> np.ndarray:
    return values.astype(object).mask(values.isna(), fill).to_numpy(dtype=object).reshape(-1, 1)


@dataclass(frozen=True)
class DummyStep(Step):
    """Replace categorical columns with float indicator columns.

    Each column gets a ``OneHotEncoder`` fixed to the levels observed at fit
    time. The first level is the reference and gets no column unless
    ``one_hot`` is set. Levels not seen at fit time encode as an all-zero row;
    missing values encode as NaN in every indicator.
    """

    selector: Selector
    one_hot: bool = False

    kind: ClassVar[str] = "dummy"

    def fit(self, data: pd.DataFrame, columns: Tuple[str, ...], schema: Schema) -> DummyState:
        minimum = 1 if self.one_hot else 2
        levels = []
        encoders = []
        for column in columns:
            observed = tuple(_observed_levels(data[column]))
            if len(observed) < minimum:
                raise FitError(
                    self.kind,
                    f"column '{column}' needs at least {minimum} distinct levels, found {len(observed)}",
                )
            encoder = OneHotEncoder(
                categories=[list(observed)],
                handle_unknown="ignore",
                sparse_output=False,
                dtype=np.float64,
            )
            encoder.fit(_encoder_input(data[column], observed[0]))
            levels.append((column, observed))
            encoders.append((column, encoder))

        state = DummyState(levels=tuple(levels), one_hot=self.one_hot, encoders=tuple(encoders))
        new_names = [name for column in columns for name in state.output_names(column)]
        _check_new_names(self.kind, data, new_names, replaced=columns)
        return state

    def apply(self, data: pd.DataFrame, columns: Tuple[str, ...], state: DummyState) -> pd.DataFrame:
        result = data.drop(columns=list(columns))
        for column in columns:
            values = data[column]
            encoded = state.encoder_for(column).transform(_encoder_input(values, state.levels_for(column)[0]))
            if not state.one_hot:
                # reference level is the first encoder column
                encoded = encoded[:, 1:]
            encoded[values.isna().to_numpy()] = np.nan
            for index, name in enumerate(state.output_names(column)):
                result[name] = encoded[:, index]
        return result


# ---------------------------------------------------------------------------
# pairwise interactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InteractState:
    pairs: Tuple[Tuple[str, str], ...]
    sep: str

    def output_names(self) -> List[str]:
        return [f"{left}{self.sep}{right}" for left, right in self.pairs]

    def to_dict(self) -> Dict[str, Any]:
        return {"pairs": [list(pair) for pair in self.pairs], "terms": self.output_names()}


@dataclass(frozen=True)
class InteractStep(Step):
    """Append the product of every (left, right) column pair."""

    left: Selector
    right: Selector
    sep: str = "_x_"

    kind: ClassVar[str] = "interact"

    @property
    def selectors(self) -> Tuple[Selector, ...]:
        return (self.left, self.right)

    def _pairs(self, schema: Schema) -> List[Tuple[str, str]]:
        pairs: List[Tuple[str, str]] = []
        for left in self.left(schema):
            for right in self.right(schema):
                if left == right or (right, left) in pairs:
                    continue
                pairs.append((left, right))
        return pairs

    def resolve(self, schema: Schema) -> Tuple[str, ...]:
        pairs = self._pairs(schema)
        involved = {name for pair in pairs for name in pair}
        return tuple(name for name in schema.names if name in involved)

    def fit(self, data: pd.DataFrame, columns: Tuple[str, ...], schema: Schema) -> InteractState:
        _require_numeric(self.kind, data, columns)
        state = InteractState(pairs=tuple(self._pairs(schema)), sep=self.sep)
        _check_new_names(self.kind, data, state.output_names())
        return state

    def apply(self, data: pd.DataFrame, columns: Tuple[str, ...], state: InteractState) -> pd.DataFrame:
        result = data.copy()
        for (left, right), name in zip(state.pairs, state.output_names()):
            result[name] = data[left].to_numpy(dtype=np.float64) * data[right].to_numpy(dtype=np.float64)
        return result


# ---------------------------------------------------------------------------
# natural spline expansion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SplineState:
    bases: Tuple[Tuple[str, NaturalSplineBasis], ...]

    def basis_for(self, column: str) -> NaturalSplineBasis:
        return dict(self.bases)[column]

    def output_names(self, column: str) -> List[str]:
        deg_free = self.basis_for(column).deg_free
        return [f"{column}_ns_{index:02d}" for index in range(1, deg_free + 1)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            column: {
                "boundary_knots": list(basis.boundary_knots),
                "interior_knots": list(basis.interior_knots),
            }
            for column, basis in self.bases
        }


@dataclass(frozen=True)
class NaturalSplineStep(Step):
    """Replace numeric columns with a natural cubic spline basis.

    Knots are learned from the training column (range plus quantiles); new
    values outside the training range are extrapolated linearly.
    """

    selector: Selector
    deg_free: int = 2

    kind: ClassVar[str] = "ns"

    def __post_init__(self) -> None:
        if isinstance(self.deg_free, bool) or not isinstance(self.deg_free, int) or self.deg_free < 1:
            raise ValueError(f"deg_free must be a positive integer, got {self.deg_free!r}")

    def fit(self, data: pd.DataFrame, columns: Tuple[str, ...], schema: Schema) -> SplineState:
        _require_numeric(self.kind, data, columns)
        bases = []
        for column in columns:
            try:
                basis = NaturalSplineBasis.from_values(data[column].to_numpy(dtype=np.float64), self.deg_free)
            except ValueError as exc:
                raise FitError(self.kind, f"column '{column}': {exc}") from exc
            bases.append((column, basis))

        state = SplineState(bases=tuple(bases))
        new_names = [name for column in columns for name in state.output_names(column)]
        _check_new_names(self.kind, data, new_names, replaced=columns)
        return state

    def apply(self, data: pd.DataFrame, columns: Tuple[str, ...], state: SplineState) -> pd.DataFrame:
        result = data.drop(columns=list(columns))
        for column in columns:
            design = state.basis_for(column).evaluate(data[column].to_numpy(dtype=np.float64))
            for index, name in enumerate(state.output_names(column)):
                result[name] = design[:, index]
        return result


STEP_KINDS = {
    step.kind: step
    for step in (LogStep, OtherStep, DummyStep, InteractStep, NaturalSplineStep)
}
