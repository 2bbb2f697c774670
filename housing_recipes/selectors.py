"""Column selectors evaluated against the working schema when a step is fit.

Selectors are small frozen dataclasses (picklable, comparable) that map a
:class:`~housing_recipes.schema.Schema` onto an ordered list of column names.
They compose with ``|`` (union) and ``-`` (difference)::

    all_nominal_predictors() - columns("Neighborhood")
    starts_with("Bldg_Type_") | columns("Gr_Liv_Area")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .errors import SchemaError
from .schema import ColumnKind, Role, Schema


class Selector:
    """Base class: ``selector(schema)`` returns matching names in schema order."""

    def __call__(self, schema: Schema) -> List[str]:
        raise NotImplementedError

    def __or__(self, other: "Selector") -> "Selector":
        return UnionSelector(self, other)

    def __sub__(self, other: "Selector") -> "Selector":
        return DifferenceSelector(self, other)


@dataclass(frozen=True)
class ColumnsSelector(Selector):
    names: Tuple[str, ...]

    def __call__(self, schema: Schema) -> List[str]:
        missing = [name for name in self.names if name not in schema]
        if missing:
            raise SchemaError(f"Columns {missing} not present; available: {schema.names}")
        wanted = set(self.names)
        return [name for name in schema.names if name in wanted]

    def __repr__(self) -> str:
        return f"columns({', '.join(repr(name) for name in self.names)})"


@dataclass(frozen=True)
class MetadataSelector(Selector):
    """Match on column role and/or kind; ``None`` means any."""

    roles: Optional[Tuple[Role, ...]] = None
    kinds: Optional[Tuple[ColumnKind, ...]] = None
    label: str = "metadata"

    def __call__(self, schema: Schema) -> List[str]:
        return [
            column.name
            for column in schema
            if (self.roles is None or column.role in self.roles)
            and (self.kinds is None or column.kind in self.kinds)
        ]

    def __repr__(self) -> str:
        return f"{self.label}()"


@dataclass(frozen=True)
class NameSelector(Selector):
    """Match column names by prefix, suffix, substring, or regular expression."""

    mode: str
    pattern: str

    def __post_init__(self) -> None:
        if self.mode not in {"starts_with", "ends_with", "contains", "matches"}:
            raise ValueError(f"Unsupported name selector mode: {self.mode}")

    def _matches(self, name: str) -> bool:
        if self.mode == "starts_with":
            return name.startswith(self.pattern)
        if self.mode == "ends_with":
            return name.endswith(self.pattern)
        if self.mode == "contains":
            return self.pattern in name
        return re.search(self.pattern, name) is not None

    def __call__(self, schema: Schema) -> List[str]:
        return [name for name in schema.names if self._matches(name)]

    def __repr__(self) -> str:
        return f"{self.mode}({self.pattern!r})"


@dataclass(frozen=True)
class UnionSelector(Selector):
    left: Selector
    right: Selector

    def __call__(self, schema: Schema) -> List[str]:
        selected = set(self.left(schema)) | set(self.right(schema))
        return [name for name in schema.names if name in selected]

    def __repr__(self) -> str:
        return f"{self.left!r} | {self.right!r}"


@dataclass(frozen=True)
class DifferenceSelector(Selector):
    left: Selector
    right: Selector

    def __call__(self, schema: Schema) -> List[str]:
        excluded = set(self.right(schema))
        return [name for name in self.left(schema) if name not in excluded]

    def __repr__(self) -> str:
        return f"{self.left!r} - {self.right!r}"


_CATEGORICAL_KINDS = (ColumnKind.NOMINAL, ColumnKind.ORDINAL)


def columns(*names: str) -> Selector:
    """Select columns by exact name; absent names raise ``SchemaError`` at fit time."""

    if not names:
        raise ValueError("columns() requires at least one column name")
    return ColumnsSelector(tuple(names))


def all_predictors() -> Selector:
    return MetadataSelector(roles=(Role.PREDICTOR,), label="all_predictors")


def all_outcomes() -> Selector:
    return MetadataSelector(roles=(Role.OUTCOME,), label="all_outcomes")


def all_numeric() -> Selector:
    return MetadataSelector(kinds=(ColumnKind.NUMERIC,), label="all_numeric")


def all_nominal() -> Selector:
    """Nominal and ordinal columns, regardless of role."""

    return MetadataSelector(kinds=_CATEGORICAL_KINDS, label="all_nominal")


def all_numeric_predictors() -> Selector:
    return MetadataSelector(roles=(Role.PREDICTOR,), kinds=(ColumnKind.NUMERIC,), label="all_numeric_predictors")


def all_nominal_predictors() -> Selector:
    return MetadataSelector(roles=(Role.PREDICTOR,), kinds=_CATEGORICAL_KINDS, label="all_nominal_predictors")


def has_role(*roles: str) -> Selector:
    resolved = tuple(Role(role) for role in roles)
    return MetadataSelector(roles=resolved, label=f"has_role[{','.join(r.value for r in resolved)}]")


def has_type(*kinds: str) -> Selector:
    resolved = tuple(ColumnKind(kind) for kind in kinds)
    return MetadataSelector(kinds=resolved, label=f"has_type[{','.join(k.value for k in resolved)}]")


def starts_with(prefix: str) -> Selector:
    return NameSelector("starts_with", prefix)


def ends_with(suffix: str) -> Selector:
    return NameSelector("ends_with", suffix)


def contains(substring: str) -> Selector:
    return NameSelector("contains", substring)


def matches(pattern: str) -> Selector:
    re.compile(pattern)
    return NameSelector("matches", pattern)


_NAMED_SELECTORS = {
    "all_predictors": all_predictors,
    "all_outcomes": all_outcomes,
    "all_numeric": all_numeric,
    "all_nominal": all_nominal,
    "all_numeric_predictors": all_numeric_predictors,
    "all_nominal_predictors": all_nominal_predictors,
}

_PATTERN_SELECTORS = {
    "starts_with": starts_with,
    "ends_with": ends_with,
    "contains": contains,
    "matches": matches,
}


def build_selector(spec: object) -> Selector:
    """Build a selector from its YAML form.

    Accepted forms::

        all_nominal_predictors            # a named selector
        [Latitude, Longitude]             # explicit columns
        {columns: [Gr_Liv_Area]}
        {starts_with: Bldg_Type_}
        {has_type: [nominal, ordinal]}
        {selector: all_nominal_predictors, exclude: {columns: [Neighborhood]}}
    """

    if isinstance(spec, Selector):
        return spec
    if isinstance(spec, str):
        if spec not in _NAMED_SELECTORS:
            raise ValueError(f"Unknown selector '{spec}'. Expected one of {sorted(_NAMED_SELECTORS)}")
        return _NAMED_SELECTORS[spec]()
    if isinstance(spec, (list, tuple)):
        return columns(*[str(name) for name in spec])
    if not isinstance(spec, dict) or not spec:
        raise ValueError(f"Cannot build a selector from {spec!r}")

    options = dict(spec)
    exclude = options.pop("exclude", None)
    if len(options) != 1:
        raise ValueError(f"Selector mapping must have exactly one key besides 'exclude', got {sorted(options)}")

    (key, value), = options.items()
    if key == "selector":
        selector = build_selector(value)
    elif key == "columns":
        names = [value] if isinstance(value, str) else list(value)
        selector = columns(*[str(name) for name in names])
    elif key in _PATTERN_SELECTORS:
        selector = _PATTERN_SELECTORS[key](str(value))
    elif key == "has_role":
        selector = has_role(*([value] if isinstance(value, str) else value))
    elif key == "has_type":
        selector = has_type(*([value] if isinstance(value, str) else value))
    else:
        raise ValueError(f"Unknown selector key '{key}'")

    if exclude is not None:
        selector = selector - build_selector(exclude)
    return selector
