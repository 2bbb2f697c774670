"""Model-formula parsing for role assignment.

Formulas are parsed with patsy after ``.`` has been expanded to every column
other than the outcome. Only single-column terms are accepted, since the
formula assigns roles and does not build a design matrix::

    Sale_Price ~ Neighborhood + Gr_Liv_Area + Year_Built
    Sale_Price ~ . - Order - PID
    Sale_Price ~ `Lot Frontage` + Q("Lot Area")
"""

from __future__ import annotations

import keyword
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from patsy import ModelDesc, PatsyError

_BACKTICK_PATTERN = re.compile(r"`([^`]+)`")
_DOT_PATTERN = re.compile(r"(?<![\w.\"'])\.(?![\w.\"'])")
_NEGATED_DOT_PATTERN = re.compile(r"-\s*\.(?![\w.])")
_QUOTED_PATTERN = re.compile(r"^Q\(\s*(['\"])(.*)\1\s*\)$")


@dataclass(frozen=True)
class Formula:
    outcome: str
    terms: Tuple[str, ...]

    def predictors(self, available: Sequence[str]) -> List[str]:
        """Return the predictor terms found in ``available``, in that order."""

        wanted = set(self.terms)
        return [name for name in available if name in wanted]


def quote_name(name: str) -> str:
    if name.isidentifier() and not keyword.iskeyword(name):
        return name
    return f"Q({name!r})"


def _column_name(term, side: str) -> str:
    if len(term.factors) != 1:
        raise ValueError(f"Only single-column terms are supported on the {side}, got {term.name()!r}")
    code = term.factors[0].code
    quoted = _QUOTED_PATTERN.match(code)
    if quoted:
        return quoted.group(2)
    if code.isidentifier():
        return code
    raise ValueError(f"Only plain column names are supported on the {side}, got {code!r}")


def parse_formula(text: str, available: Optional[Sequence[str]] = None) -> Formula:
    """Parse ``outcome ~ rhs`` into the outcome and its predictor columns.

    ``available`` is needed when the right-hand side uses ``.``; it is expanded
    to every available column except the outcome before patsy sees it.
    """

    if text.count("~") != 1:
        raise ValueError(f"Formula must contain exactly one '~': {text!r}")

    lhs, rhs = (part.strip() for part in text.split("~"))
    if not lhs or not rhs:
        raise ValueError(f"Formula needs both an outcome and predictors: {text!r}")
    if _NEGATED_DOT_PATTERN.search(rhs):
        raise ValueError("'- .' is not a valid formula term")

    lhs = _BACKTICK_PATTERN.sub(lambda match: quote_name(match.group(1)), lhs)
    rhs = _BACKTICK_PATTERN.sub(lambda match: quote_name(match.group(1)), rhs)

    try:
        lhs_desc = ModelDesc.from_formula(lhs)
    except PatsyError as exc:
        raise ValueError(f"Cannot parse formula outcome {lhs!r}: {exc}") from exc
    outcome_terms = [term for term in lhs_desc.rhs_termlist if term.factors]
    if len(outcome_terms) != 1:
        raise ValueError(f"Formula must have exactly one outcome column: {text!r}")
    outcome = _column_name(outcome_terms[0], "left-hand side")

    if _DOT_PATTERN.search(rhs):
        if available is None:
            raise ValueError("Column names are required to expand '.' in a formula")
        others = " + ".join(quote_name(name) for name in available if name != outcome)
        rhs = _DOT_PATTERN.sub(lambda _: f"({others})" if others else "0", rhs)

    try:
        desc = ModelDesc.from_formula(f"{quote_name(outcome)} ~ {rhs}")
    except PatsyError as exc:
        raise ValueError(f"Cannot parse formula {text!r}: {exc}") from exc

    names = [_column_name(term, "right-hand side") for term in desc.rhs_termlist if term.factors]
    return Formula(outcome=outcome, terms=tuple(dict.fromkeys(names)))
