"""
Tests for the numerical primitives and correlation estimation.
"""

from math import erf as math_erf

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from copula_risk.exceptions import InsufficientDataError
from copula_risk.statistics import (
    as_return_frame,
    compute_correlation_matrix,
    compute_covariance_matrix,
    compute_mean_vector,
    erf,
    inverse_standard_normal_cdf,
    matrix_vector_product,
    normal_variates,
    pearson_correlation,
    standard_normal_cdf,
    student_t_inverse_cdf,
    uniform_variates,
    validate_correlation_matrix,
)


class TestRandomVariates:
    """Uniform and Box-Muller normal draws."""

    def test_uniforms_are_open_interval(self, rng):
        u = uniform_variates(rng, 100_000)
        assert u.min() > 0.0
        assert u.max() < 1.0

    def test_normal_moments(self, rng):
        z = normal_variates(rng, 200_000)
        assert abs(z.mean()) < 0.01
        assert abs(z.std() - 1.0) < 0.01

    def test_normal_shape(self, rng):
        assert normal_variates(rng, (10, 3)).shape == (10, 3)

    def test_same_seed_same_draws(self):
        a = normal_variates(np.random.default_rng(3), 50)
        b = normal_variates(np.random.default_rng(3), 50)
        np.testing.assert_array_equal(a, b)


class TestNormalDistribution:
    """erf, Φ and Φ⁻¹ approximations."""

    def test_erf_matches_reference(self):
        x = np.linspace(-3, 3, 61)
        expected = np.array([math_erf(v) for v in x])
        np.testing.assert_allclose(erf(x), expected, atol=2e-7)

    def test_cdf_at_zero(self):
        assert standard_normal_cdf(0.0) == pytest.approx(0.5, abs=1e-7)

    def test_cdf_returns_scalar_for_scalar(self):
        assert isinstance(standard_normal_cdf(1.0), float)

    def test_inverse_matches_scipy(self):
        p = np.array([0.001, 0.01, 0.02, 0.1, 0.5, 0.9, 0.98, 0.99, 0.999])
        np.testing.assert_allclose(inverse_standard_normal_cdf(p), stats.norm.ppf(p), atol=1e-6)

    def test_inverse_boundaries(self):
        assert inverse_standard_normal_cdf(0.0) == -np.inf
        assert inverse_standard_normal_cdf(1.0) == np.inf

    def test_inverse_nan_propagates(self):
        result = inverse_standard_normal_cdf(np.array([np.nan, 0.5]))
        assert np.isnan(result[0])
        assert result[1] == pytest.approx(0.0, abs=1e-9)

    def test_round_trip(self):
        p = np.linspace(0.01, 0.99, 25)
        np.testing.assert_allclose(standard_normal_cdf(inverse_standard_normal_cdf(p)), p, atol=1e-6)


class TestStudentTQuantile:
    """Cornish-Fisher t quantile."""

    def test_median_is_zero(self):
        assert student_t_inverse_cdf(0.5, 5) == pytest.approx(0.0, abs=1e-9)

    def test_heavier_tail_than_normal(self):
        assert student_t_inverse_cdf(0.99, 5) > inverse_standard_normal_cdf(0.99)
        assert student_t_inverse_cdf(0.01, 5) < inverse_standard_normal_cdf(0.01)

    def test_large_df_approaches_normal(self):
        assert student_t_inverse_cdf(0.95, 1e6) == pytest.approx(
            inverse_standard_normal_cdf(0.95), abs=1e-5
        )

    def test_close_to_exact_for_moderate_df(self):
        assert student_t_inverse_cdf(0.975, 30) == pytest.approx(stats.t.ppf(0.975, 30), abs=1e-3)

    def test_rejects_non_positive_df(self):
        with pytest.raises(ValueError):
            student_t_inverse_cdf(0.5, 0)

    def test_boundaries_stay_infinite(self):
        t = student_t_inverse_cdf(np.array([0.0, 1.0]), 5)
        assert t[0] == -np.inf
        assert t[1] == np.inf


class TestLinearAlgebra:

    def test_matrix_vector_product(self):
        m = np.array([[1.0, 2.0], [3.0, 4.0]])
        np.testing.assert_allclose(matrix_vector_product(m, [1.0, 1.0]), [3.0, 7.0])

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError):
            matrix_vector_product(np.eye(3), [1.0, 2.0])


class TestPearsonCorrelation:

    def test_perfect_correlation(self):
        x = np.arange(10.0)
        assert pearson_correlation(x, 2 * x + 1) == pytest.approx(1.0)
        assert pearson_correlation(x, -x) == pytest.approx(-1.0)

    def test_zero_variance_returns_zero(self):
        assert pearson_correlation([1.0, 1.0, 1.0], [1.0, 2.0, 3.0]) == 0.0

    def test_unequal_lengths(self):
        with pytest.raises(ValueError):
            pearson_correlation([1.0, 2.0], [1.0, 2.0, 3.0])

    def test_empty(self):
        with pytest.raises(InsufficientDataError):
            pearson_correlation([], [])


class TestCorrelationMatrix:
    """Pearson correlation matrix construction."""

    def test_symmetric_unit_diagonal(self, demo_returns):
        corr = compute_correlation_matrix(demo_returns)
        assert corr.shape == (4, 4)
        np.testing.assert_array_equal(corr, corr.T)
        np.testing.assert_array_equal(np.diag(corr), np.ones(4))
        assert validate_correlation_matrix(corr)

    def test_matches_pandas(self, demo_returns):
        corr = compute_correlation_matrix(demo_returns)
        np.testing.assert_allclose(corr, demo_returns.corr().values, atol=1e-12)

    def test_single_asset(self):
        corr = compute_correlation_matrix(pd.DataFrame({"A": [0.01, -0.02, 0.03]}))
        np.testing.assert_array_equal(corr, [[1.0]])

    def test_constant_series_gives_zero(self):
        frame = pd.DataFrame({"A": [0.5, 0.5, 0.5], "B": [0.01, -0.02, 0.03]})
        corr = compute_correlation_matrix(frame)
        assert corr[0, 1] == 0.0
        assert corr[0, 0] == 1.0

    def test_accepts_mapping(self):
        corr = compute_correlation_matrix({"A": [1.0, 2.0, 3.0], "B": [3.0, 2.0, 1.0]})
        assert corr[0, 1] == pytest.approx(-1.0)

    def test_too_few_observations(self):
        with pytest.raises(InsufficientDataError):
            compute_correlation_matrix(pd.DataFrame({"A": [0.01], "B": [0.02]}))

    def test_no_assets(self):
        with pytest.raises(InsufficientDataError):
            compute_correlation_matrix(pd.DataFrame())

    def test_unequal_mapping_lengths(self):
        with pytest.raises(ValueError):
            as_return_frame({"A": [1.0, 2.0], "B": [1.0]})

    def test_validate_rejects_asymmetric(self):
        assert not validate_correlation_matrix(np.array([[1.0, 0.5], [0.4, 1.0]]))
        assert not validate_correlation_matrix(np.ones(3))


class TestMoments:

    def test_mean_and_covariance(self, demo_returns):
        np.testing.assert_allclose(compute_mean_vector(demo_returns), demo_returns.mean().values)
        np.testing.assert_allclose(compute_covariance_matrix(demo_returns), demo_returns.cov().values)
