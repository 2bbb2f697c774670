"""Column kinds, roles, and the schema snapshot that selectors operate on."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

import pandas as pd
from pandas.api import types as ptypes

from .errors import SchemaError


class ColumnKind(str, Enum):
    NUMERIC = "numeric"
    NOMINAL = "nominal"
    ORDINAL = "ordinal"


class Role(str, Enum):
    OUTCOME = "outcome"
    PREDICTOR = "predictor"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    kind: ColumnKind
    role: Role = Role.PREDICTOR

    def to_dict(self) -> dict:
        return {"name": self.name, "kind": self.kind.value, "role": self.role.value}


def infer_column_kind(series: pd.Series) -> ColumnKind:
    """Map a pandas dtype onto a column kind.

    Booleans are treated as nominal (True/False levels), ordered categoricals
    as ordinal, and every other non-numeric dtype as nominal.
    """

    dtype = series.dtype
    if isinstance(dtype, pd.CategoricalDtype):
        return ColumnKind.ORDINAL if dtype.ordered else ColumnKind.NOMINAL
    if ptypes.is_bool_dtype(dtype):
        return ColumnKind.NOMINAL
    if ptypes.is_numeric_dtype(dtype):
        return ColumnKind.NUMERIC
    return ColumnKind.NOMINAL


@dataclass(frozen=True)
class Schema:
    """Ordered, immutable snapshot of column metadata."""

    columns: Tuple[ColumnInfo, ...]

    @classmethod
    def from_frame(cls, df: pd.DataFrame, roles: Optional[Mapping[str, Role]] = None) -> "Schema":
        roles = roles or {}
        return cls(
            tuple(
                ColumnInfo(name=str(name), kind=infer_column_kind(df[name]), role=roles.get(str(name), Role.PREDICTOR))
                for name in df.columns
            )
        )

    @classmethod
    def from_mapping(cls, kinds: Mapping[str, Union[ColumnKind, str]]) -> "Schema":
        columns = []
        for name, kind in kinds.items():
            try:
                resolved = ColumnKind(kind)
            except ValueError as exc:
                raise SchemaError(f"Unknown column kind '{kind}' for column '{name}'") from exc
            columns.append(ColumnInfo(name=name, kind=resolved))
        return cls(tuple(columns))

    @property
    def names(self) -> List[str]:
        return [column.name for column in self.columns]

    def __contains__(self, name: object) -> bool:
        return any(column.name == name for column in self.columns)

    def __iter__(self) -> Iterator[ColumnInfo]:
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)

    def get(self, name: str) -> ColumnInfo:
        for column in self.columns:
            if column.name == name:
                return column
        raise SchemaError(f"Column '{name}' not present in schema")

    def roles(self) -> Dict[str, Role]:
        return {column.name: column.role for column in self.columns}

    def with_roles(self, roles: Mapping[str, Role]) -> "Schema":
        return Schema(tuple(replace(column, role=roles.get(column.name, column.role)) for column in self.columns))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [column.to_dict() for column in self.columns],
            columns=["name", "kind", "role"],
        )
