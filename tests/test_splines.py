from __future__ import annotations

import numpy as np
import pytest

from housing_recipes.splines import NaturalSplineBasis


def test_knots_at_range_and_quantiles():
    basis = NaturalSplineBasis.from_values(np.arange(101.0), deg_free=4)

    assert basis.knots == pytest.approx((0.0, 25.0, 50.0, 75.0, 100.0))
    assert basis.boundary_knots == (0.0, 100.0)
    assert basis.deg_free == 4


def test_missing_values_are_ignored_when_placing_knots():
    values = np.array([np.nan, 0.0, 1.0, 2.0, np.inf])
    basis = NaturalSplineBasis.from_values(values, deg_free=2)
    assert basis.knots == pytest.approx((0.0, 1.0, 2.0))


def test_rejects_insufficient_unique_values():
    with pytest.raises(ValueError):
        NaturalSplineBasis.from_values(np.array([1.0, 1.0, 2.0]), deg_free=2)


def test_rejects_unsorted_knots():
    with pytest.raises(ValueError):
        NaturalSplineBasis((1.0, 0.5, 2.0))


def test_first_column_is_rescaled_input():
    basis = NaturalSplineBasis((10.0, 15.0, 20.0))
    design = basis.evaluate(np.array([10.0, 15.0, 20.0]))

    assert design.shape == (3, 2)
    np.testing.assert_allclose(design[:, 0], [0.0, 0.5, 1.0])


def test_nonlinear_columns_vanish_below_lower_boundary():
    basis = NaturalSplineBasis((0.0, 1.0, 2.0, 3.0))
    design = basis.evaluate(np.array([-1.0, -0.5, 0.0]))
    np.testing.assert_allclose(design[:, 1:], 0.0)


@pytest.mark.parametrize("points", [(3.5, 4.5), (-2.0, -1.0)])
def test_extrapolation_is_linear(points):
    basis = NaturalSplineBasis((0.0, 0.7, 1.9, 3.0))
    x = np.array([points[0], points[1], 2 * points[1] - points[0]])
    design = basis.evaluate(x)

    second_difference = design[2] - 2 * design[1] + design[0]
    np.testing.assert_allclose(second_difference, 0.0, atol=1e-9)


def test_interior_is_not_linear():
    basis = NaturalSplineBasis((0.0, 1.0, 2.0, 3.0))
    design = basis.evaluate(np.array([1.0, 1.5, 2.0]))
    second_difference = design[2] - 2 * design[1] + design[0]
    assert np.abs(second_difference[1:]).max() > 1e-6


def test_nan_inputs_give_nan_rows():
    basis = NaturalSplineBasis((0.0, 1.0, 2.0))
    design = basis.evaluate(np.array([np.nan, 1.0]))
    assert np.isnan(design[0]).all()
    assert np.isfinite(design[1]).all()
