"""
Risk Metrics Module
====================
Tail-risk and performance statistics of a return series, historical or
simulated.

Mathematical Foundation:
    VaR_c:     -r_(k),  k = floor((1 - c/100) · n)   on ascending-sorted r
    CVaR_c:    -mean(r_(0) .. r_(k))
    Drawdown:  1 - V_t / max_{s≤t} V_s,   V_t = Π (1 + r_s)
    Sharpe:    (252 · mean(r) - r_f) / (sqrt(252) · σ(r))

Confidence levels are percentages (95 means 95%). Every metric raises
``InsufficientDataError`` on an empty series.
"""

from dataclasses import asdict, dataclass
from typing import Dict, Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats

from copula_risk.config import TRADING_DAYS_PER_YEAR
from copula_risk.exceptions import InsufficientDataError


Returns = Union[Sequence[float], np.ndarray, pd.Series]


@dataclass(frozen=True)
class RiskMetrics:
    """Risk summary of one return series. VaR and CVaR are positive loss magnitudes."""
    var: float
    cvar: float
    volatility: float
    max_drawdown: float
    sharpe_ratio: float
    confidence: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _as_array(returns: Returns) -> np.ndarray:
    values = np.asarray(returns, dtype=float).ravel()
    if values.size == 0:
        raise InsufficientDataError("Return series is empty")
    return values


def _tail_index(n: int, confidence: float) -> int:
    if not 0.0 < confidence < 100.0:
        raise ValueError(f"confidence must be a percentage in (0, 100), got {confidence}")
    # Rounding guards floor() against float error, e.g. (1 - 0.8) * 5 = 0.9999999999999998
    index = int(np.floor(round((1.0 - confidence / 100.0) * n, 9)))
    return min(max(index, 0), n - 1)


# ─────────────────────────────────────────────────────────────
# Historical (empirical) VaR / CVaR
# ─────────────────────────────────────────────────────────────

def compute_var(returns: Returns, confidence: float = 95.0) -> float:
    """
    Empirical Value-at-Risk.

    Parameters
    ----------
    returns : array-like
        Return series.
    confidence : float
        Confidence level in percent (default: 95).

    Returns
    -------
    float
        VaR as a positive number (loss magnitude).
    """
    ordered = np.sort(_as_array(returns))
    return float(-ordered[_tail_index(ordered.size, confidence)])


def compute_cvar(returns: Returns, confidence: float = 95.0) -> float:
    """
    Empirical Conditional VaR (Expected Shortfall).

    Average of every sorted return at or below the VaR index, negated.
    Never smaller than ``compute_var`` for the same inputs.
    """
    ordered = np.sort(_as_array(returns))
    tail = ordered[: _tail_index(ordered.size, confidence) + 1]
    return float(-tail.mean())


# ─────────────────────────────────────────────────────────────
# Volatility, drawdown, Sharpe
# ─────────────────────────────────────────────────────────────

def compute_volatility(returns: Returns) -> float:
    """Population standard deviation (ddof=0), not annualized."""
    return float(np.std(_as_array(returns), ddof=0))


def compute_max_drawdown(returns: Returns) -> float:
    """
    Maximum peak-to-trough decline of the compounded value path.

    The path starts at 1.0, so a first-period loss already counts as a
    drawdown from the initial value.

    Returns
    -------
    float
        Drawdown fraction in [0, 1).
    """
    values = np.cumprod(1.0 + _as_array(returns))
    path = np.concatenate(([1.0], values))
    peaks = np.maximum.accumulate(path)
    drawdowns = 1.0 - path / peaks
    return float(max(drawdowns.max(), 0.0))


def compute_sharpe_ratio(returns: Returns, risk_free_rate: float = 0.02) -> float:
    """
    Annualized Sharpe ratio assuming 252 periods per year.

    Returns 0.0 when the series has zero volatility.
    """
    values = _as_array(returns)
    volatility = np.std(values, ddof=0) * np.sqrt(TRADING_DAYS_PER_YEAR)
    if volatility == 0.0:
        return 0.0
    excess_return = values.mean() * TRADING_DAYS_PER_YEAR - risk_free_rate
    return float(excess_return / volatility)


def compute_risk_metrics(
    returns: Returns,
    confidence: float = 95.0,
    risk_free_rate: float = 0.02,
) -> RiskMetrics:
    """
    Compute the full metric set for one return series.

    Parameters
    ----------
    returns : array-like
        Historical or simulated returns.
    confidence : float
        VaR/CVaR confidence in percent.
    risk_free_rate : float
        Annual risk-free rate for the Sharpe ratio.

    Returns
    -------
    RiskMetrics
    """
    values = _as_array(returns)
    return RiskMetrics(
        var=compute_var(values, confidence),
        cvar=compute_cvar(values, confidence),
        volatility=compute_volatility(values),
        max_drawdown=compute_max_drawdown(values),
        sharpe_ratio=compute_sharpe_ratio(values, risk_free_rate),
        confidence=float(confidence),
    )


# ─────────────────────────────────────────────────────────────
# Parametric (Variance-Covariance) VaR
# ─────────────────────────────────────────────────────────────

def compute_parametric_var(
    portfolio_mean: float,
    portfolio_std: float,
    confidence: float = 95.0,
) -> float:
    """
    Parametric VaR assuming Gaussian returns.

    Mathematical Definition:
        VaR_α = z_α · σ_p - μ_p

    Parameters
    ----------
    portfolio_mean : float
        Portfolio mean return over the horizon.
    portfolio_std : float
        Portfolio standard deviation over the horizon.
    confidence : float
        Confidence level in percent.

    Returns
    -------
    float
        Parametric VaR (positive = loss magnitude).
    """
    z_alpha = stats.norm.ppf(confidence / 100.0)
    return float(z_alpha * portfolio_std - portfolio_mean)


def compute_parametric_es(
    portfolio_mean: float,
    portfolio_std: float,
    confidence: float = 95.0,
) -> float:
    """
    Parametric Expected Shortfall under the Gaussian assumption.

    Mathematical Definition:
        ES_α = -μ_p + σ_p · φ(z_α) / (1 - α)
    """
    alpha = confidence / 100.0
    z_alpha = stats.norm.ppf(alpha)
    return float(-portfolio_mean + portfolio_std * stats.norm.pdf(z_alpha) / (1.0 - alpha))


def parametric_risk_metrics(returns: Returns, confidence: float = 95.0) -> Dict[str, float]:
    """
    Gaussian VaR and ES fitted to the sample mean and population volatility.

    Returns
    -------
    dict
        ``param_var`` and ``param_es``.
    """
    values = _as_array(returns)
    mean, std = float(values.mean()), float(np.std(values, ddof=0))
    return {
        "param_var": compute_parametric_var(mean, std, confidence),
        "param_es": compute_parametric_es(mean, std, confidence),
    }
