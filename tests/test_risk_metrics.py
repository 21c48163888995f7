"""
Tests for VaR, CVaR, volatility, drawdown, Sharpe and parametric metrics.
"""

import numpy as np
import pandas as pd
import pytest

from copula_risk.exceptions import InsufficientDataError
from copula_risk.risk_metrics import (
    RiskMetrics,
    compute_cvar,
    compute_max_drawdown,
    compute_parametric_es,
    compute_parametric_var,
    compute_risk_metrics,
    compute_sharpe_ratio,
    compute_var,
    compute_volatility,
    parametric_risk_metrics,
)

SAMPLE = [-0.05, -0.02, 0.01, 0.03, 0.04]


class TestValueAtRisk:
    """Empirical VaR and CVaR."""

    def test_reference_example(self):
        assert compute_var(SAMPLE, 80) == pytest.approx(0.02)

    def test_cvar_reference_example(self):
        assert compute_cvar(SAMPLE, 80) == pytest.approx(0.035)

    def test_order_of_input_is_irrelevant(self):
        shuffled = [0.03, -0.02, 0.04, -0.05, 0.01]
        assert compute_var(shuffled, 80) == compute_var(SAMPLE, 80)

    def test_index_clamped_to_first_element(self):
        assert compute_var(SAMPLE, 99) == pytest.approx(0.05)
        assert compute_cvar(SAMPLE, 99) == pytest.approx(0.05)

    def test_cvar_at_least_var(self, rng):
        returns = rng.standard_t(4, 5_000) * 0.01
        for confidence in (80, 90, 95, 97.5, 99):
            assert compute_cvar(returns, confidence) >= compute_var(returns, confidence)

    def test_monotone_in_confidence(self, rng):
        returns = rng.standard_normal(10_000) * 0.02
        levels = [80, 90, 95, 99, 99.9]
        var = [compute_var(returns, c) for c in levels]
        cvar = [compute_cvar(returns, c) for c in levels]
        assert var == sorted(var)
        assert cvar == sorted(cvar)

    def test_accepts_series(self):
        assert compute_var(pd.Series(SAMPLE), 80) == pytest.approx(0.02)

    @pytest.mark.parametrize("confidence", [0, 100, -5, 150])
    def test_rejects_confidence_out_of_range(self, confidence):
        with pytest.raises(ValueError):
            compute_var(SAMPLE, confidence)

    def test_single_observation(self):
        assert compute_var([-0.03], 95) == pytest.approx(0.03)
        assert compute_cvar([-0.03], 95) == pytest.approx(0.03)


class TestDrawdownAndVolatility:

    def test_increasing_path_has_no_drawdown(self):
        assert compute_max_drawdown([0.01, 0.02, 0.005]) == 0.0

    def test_single_loss(self):
        assert compute_max_drawdown([-0.1]) == pytest.approx(0.1)

    def test_compounded_drawdown(self):
        # 1.0 -> 1.1 -> 0.55
        assert compute_max_drawdown([0.1, -0.5]) == pytest.approx(0.5)

    def test_drawdown_uses_running_peak(self):
        # 1.0 -> 1.2 -> 0.96 -> 1.152 -> 0.864
        assert compute_max_drawdown([0.2, -0.2, 0.2, -0.25]) == pytest.approx(0.28)

    def test_population_volatility(self):
        assert compute_volatility([0.01, -0.01]) == pytest.approx(0.01)


class TestSharpeRatio:

    def test_zero_volatility(self):
        assert compute_sharpe_ratio([0.5, 0.5, 0.5]) == 0.0

    def test_annualization(self):
        expected = (0.0 - 0.02) / (0.01 * np.sqrt(252))
        assert compute_sharpe_ratio([0.01, -0.01]) == pytest.approx(expected)

    def test_custom_risk_free_rate(self):
        returns = [0.002, 0.001, 0.003]
        assert compute_sharpe_ratio(returns, 0.0) > compute_sharpe_ratio(returns, 0.05)


class TestEmptyInput:

    @pytest.mark.parametrize("metric", [
        compute_var,
        compute_cvar,
        compute_volatility,
        compute_max_drawdown,
        compute_sharpe_ratio,
        compute_risk_metrics,
    ])
    def test_raises_insufficient_data(self, metric):
        with pytest.raises(InsufficientDataError):
            metric([])

    def test_insufficient_data_is_value_error(self):
        with pytest.raises(ValueError):
            compute_var(np.array([]))


class TestRiskMetricsBundle:

    def test_fields(self):
        metrics = compute_risk_metrics(SAMPLE, 80, risk_free_rate=0.0)
        assert isinstance(metrics, RiskMetrics)
        assert metrics.var == pytest.approx(0.02)
        assert metrics.cvar == pytest.approx(0.035)
        assert metrics.confidence == 80.0
        assert metrics.max_drawdown > 0.0

    def test_to_dict(self):
        d = compute_risk_metrics(SAMPLE).to_dict()
        assert set(d) == {"var", "cvar", "volatility", "max_drawdown", "sharpe_ratio", "confidence"}


class TestParametric:
    """Gaussian closed-form VaR and ES."""

    def test_standard_normal_var(self):
        assert compute_parametric_var(0.0, 1.0, 95) == pytest.approx(1.6448536, rel=1e-6)

    def test_standard_normal_es(self):
        assert compute_parametric_es(0.0, 1.0, 95) == pytest.approx(2.0627128, rel=1e-6)

    def test_mean_shifts_var(self):
        assert compute_parametric_var(0.01, 0.02, 99) == pytest.approx(
            compute_parametric_var(0.0, 0.02, 99) - 0.01
        )

    def test_fitted_metrics(self, rng):
        returns = rng.standard_normal(100_000) * 0.02
        fitted = parametric_risk_metrics(returns, 95)
        assert fitted["param_es"] > fitted["param_var"]
        assert fitted["param_var"] == pytest.approx(compute_var(returns, 95), rel=0.03)
