"""
Tests for goodness-of-fit, tail dependence, Kendall's tau and information criteria.
"""

import numpy as np
import pytest

from copula_risk.copulas import CopulaModel
from copula_risk.diagnostics import (
    DiagnosticsReport,
    aic,
    bic,
    compute_diagnostics,
    copula_parameter_count,
    goodness_of_fit,
    kendalls_tau,
    lower_tail_dependence,
    pseudo_observations,
    upper_tail_dependence,
)
from copula_risk.exceptions import InsufficientDataError


class TestGoodnessOfFit:
    """Two-sample Kolmogorov-Smirnov statistic."""

    def test_identical_samples(self, rng):
        x = rng.standard_normal(200)
        assert goodness_of_fit(x, x) == 0.0

    def test_disjoint_samples(self):
        assert goodness_of_fit([1.0, 2.0], [3.0, 4.0]) == 1.0

    def test_partial_overlap(self):
        assert goodness_of_fit([1, 2, 3, 4], [3, 4, 5, 6]) == pytest.approx(0.5)

    def test_unequal_lengths(self, rng):
        stat = goodness_of_fit(rng.standard_normal(100), rng.standard_normal(5_000))
        assert 0.0 <= stat <= 1.0

    def test_matches_scipy(self, rng):
        from scipy import stats
        a = rng.standard_normal(300)
        b = rng.standard_normal(400) + 0.3
        assert goodness_of_fit(a, b) == pytest.approx(stats.ks_2samp(a, b).statistic)

    def test_empty_sample(self):
        with pytest.raises(InsufficientDataError):
            goodness_of_fit([], [1.0])


class TestTailDependence:

    def test_comonotone_upper_tail(self):
        u = pseudo_observations(np.arange(100.0))
        assert upper_tail_dependence(u, u, 0.95) == pytest.approx(1.0)

    def test_comonotone_lower_tail(self):
        u = pseudo_observations(np.arange(100.0))
        assert lower_tail_dependence(u, u, 0.05) == pytest.approx(1.0)

    def test_countermonotone_has_no_tail_dependence(self):
        u = pseudo_observations(np.arange(100.0))
        assert upper_tail_dependence(u, u[::-1]) == 0.0
        assert lower_tail_dependence(u, u[::-1]) == 0.0

    def test_formula(self):
        x = np.array([0.96, 0.97, 0.10, 0.99])
        y = np.array([0.98, 0.20, 0.30, 0.96])
        # two joint exceedances of 0.95 among four pairs
        assert upper_tail_dependence(x, y, 0.95) == pytest.approx(2 / (4 * 0.05))

    def test_rejects_bad_threshold(self):
        with pytest.raises(ValueError):
            upper_tail_dependence([0.5], [0.5], 1.0)

    def test_rejects_unequal_lengths(self):
        with pytest.raises(ValueError):
            lower_tail_dependence([0.1, 0.2], [0.1])


class TestKendallsTau:

    def test_identical_monotone_sequences(self):
        x = np.arange(20.0)
        assert kendalls_tau(x, x) == 1.0

    def test_reversed(self):
        x = np.arange(20.0)
        assert kendalls_tau(x, x[::-1]) == -1.0

    def test_monotone_transform_invariant(self):
        x = np.linspace(0.1, 2.0, 30)
        assert kendalls_tau(x, np.exp(x)) == 1.0

    def test_matches_scipy_without_ties(self, rng):
        from scipy import stats
        x = rng.standard_normal(150)
        y = 0.5 * x + rng.standard_normal(150)
        assert kendalls_tau(x, y) == pytest.approx(stats.kendalltau(x, y)[0])

    def test_needs_two_points(self):
        with pytest.raises(InsufficientDataError):
            kendalls_tau([1.0], [1.0])


class TestInformationCriteria:

    def test_aic(self):
        assert aic(-100.0, 3) == pytest.approx(206.0)

    def test_bic(self):
        assert bic(-100.0, 3, 100) == pytest.approx(3 * np.log(100) + 200.0)

    def test_bic_needs_sample(self):
        with pytest.raises(ValueError):
            bic(-1.0, 1, 0)

    @pytest.mark.parametrize("model, expected", [
        (CopulaModel.gaussian(), 6),
        (CopulaModel.student_t(), 7),
        (CopulaModel.clayton(), 1),
        (CopulaModel.gumbel(), 1),
    ])
    def test_parameter_count_four_assets(self, model, expected):
        assert copula_parameter_count(model, 4) == expected


class TestPseudoObservations:

    def test_scaled_ranks(self):
        np.testing.assert_allclose(pseudo_observations([30.0, 10.0, 20.0]), [0.75, 0.25, 0.5])

    def test_ties_averaged(self):
        np.testing.assert_allclose(pseudo_observations([1.0, 1.0, 2.0]), [0.375, 0.375, 0.75])


class TestComputeDiagnostics:

    def test_report_without_likelihood(self, rng):
        hist = rng.standard_normal(250) * 0.01
        sim = rng.standard_normal(5_000) * 0.01
        report = compute_diagnostics(hist, sim, CopulaModel.gaussian(), 4)
        assert isinstance(report, DiagnosticsReport)
        assert report.aic is None
        assert report.bic is None
        assert report.n_parameters == 6
        assert 0.0 <= report.goodness_of_fit <= 1.0
        assert -1.0 <= report.kendalls_tau <= 1.0

    def test_report_with_likelihood(self, rng):
        hist = rng.standard_normal(100)
        report = compute_diagnostics(
            hist, rng.standard_normal(100), CopulaModel.student_t(), 2, log_likelihood=-50.0
        )
        assert report.aic == pytest.approx(2 * 2 + 100.0)
        assert report.bic == pytest.approx(2 * np.log(100) + 100.0)

    def test_explicit_observation_count(self, rng):
        report = compute_diagnostics(
            rng.standard_normal(50), rng.standard_normal(50), CopulaModel.clayton(), 2,
            log_likelihood=0.0, n_observations=10,
        )
        assert report.bic == pytest.approx(np.log(10))

    def test_to_dict(self, rng):
        report = compute_diagnostics(
            rng.standard_normal(30), rng.standard_normal(30), CopulaModel.gumbel(), 2
        )
        assert set(report.to_dict()) == {
            "goodness_of_fit", "upper_tail_dependence", "lower_tail_dependence",
            "kendalls_tau", "n_parameters", "aic", "bic",
        }

    def test_too_few_pairs(self):
        with pytest.raises(InsufficientDataError):
            compute_diagnostics([0.01], [0.02, 0.03], CopulaModel.gaussian(), 2)
