"""Natural cubic spline basis used by the spline expansion step.

The basis follows the truncated-power construction for natural cubic splines
(Hastie, Tibshirani & Friedman, *Elements of Statistical Learning*, eq. 5.4-5.5)
on ``K`` knots ``xi_1 < ... < xi_K``::

    N_1(x)     = x
    N_{k+1}(x) = d_k(x) - d_{K-1}(x),     k = 1 .. K-2
    d_k(x)     = ((x - xi_k)^3_+ - (x - xi_K)^3_+) / (xi_K - xi_k)

giving ``K - 1`` columns (no intercept). The functions are cubic between the
knots and linear outside ``[xi_1, xi_K]``, so values beyond the training range
are extrapolated linearly.

Inputs are rescaled to the unit interval using the boundary knots before the
basis is evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class NaturalSplineBasis:
    knots: Tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.knots) < 2:
            raise ValueError("A natural spline basis needs at least two knots")
        if np.any(np.diff(np.asarray(self.knots, dtype=np.float64)) <= 0):
            raise ValueError(f"Knots must be strictly increasing: {self.knots}")

    @property
    def deg_free(self) -> int:
        return len(self.knots) - 1

    @property
    def boundary_knots(self) -> Tuple[float, float]:
        return self.knots[0], self.knots[-1]

    @property
    def interior_knots(self) -> Tuple[float, ...]:
        return self.knots[1:-1]

    @classmethod
    def from_values(cls, values: np.ndarray, deg_free: int) -> "NaturalSplineBasis":
        """Place boundary knots at the range and interior knots at quantiles of ``values``."""

        if deg_free < 1:
            raise ValueError(f"deg_free must be >= 1, got {deg_free}")

        finite = np.asarray(values, dtype=np.float64)
        finite = finite[np.isfinite(finite)]
        n_unique = np.unique(finite).size
        if n_unique < deg_free + 1:
            raise ValueError(
                f"need at least {deg_free + 1} distinct finite values for {deg_free} degrees of freedom, "
                f"found {n_unique}"
            )

        probabilities = np.linspace(0.0, 1.0, deg_free + 1)
        knots = np.quantile(finite, probabilities)
        if np.any(np.diff(knots) <= 0):
            raise ValueError(f"quantile knots are not distinct: {knots.tolist()}")

        return cls(tuple(float(knot) for knot in knots))

    def evaluate(self, x: np.ndarray) -> np.ndarray:
        """Return an ``(n, deg_free)`` float64 design matrix; NaN inputs give NaN rows."""

        knots = np.asarray(self.knots, dtype=np.float64)
        lower, upper = knots[0], knots[-1]
        span = upper - lower

        z = (np.asarray(x, dtype=np.float64) - lower) / span
        xi = (knots - lower) / span
        last = xi.size - 1

        def truncated_cube(values: np.ndarray) -> np.ndarray:
            return np.maximum(values, 0.0) ** 3

        def d(k: int) -> np.ndarray:
            return (truncated_cube(z - xi[k]) - truncated_cube(z - xi[last])) / (xi[last] - xi[k])

        basis = np.empty((z.size, self.deg_free), dtype=np.float64)
        basis[:, 0] = z
        if self.deg_free > 1:
            d_penultimate = d(last - 1)
            for k in range(last - 1):
                basis[:, k + 1] = d(k) - d_penultimate
        return basis
