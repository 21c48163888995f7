"""
Portfolio Construction Module
=============================
Turns price histories into the aligned return matrix the engine consumes,
and aggregates asset returns into a portfolio series.

Mathematical Foundation:
    Log return:        r_t = ln(P_t / P_{t-1})
    Simple return:     r_t = (P_t - P_{t-1}) / P_{t-1}
    Portfolio return:  R_p = w^T * R

Weights are applied exactly as given: the engine never normalizes them.
``normalize_weights`` is available for callers that want a unit sum.
"""

from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from copula_risk.cholesky import cholesky_decomposition
from copula_risk.exceptions import InsufficientDataError
from copula_risk.statistics import normal_variates


# ─────────────────────────────────────────────────────────────
# Demo portfolio
# ─────────────────────────────────────────────────────────────
DEMO_ASSETS: List[str] = ["Stock A", "Stock B", "Bond C", "Commodity D"]

DEMO_CORRELATION: np.ndarray = np.array([
    [1.0, 0.7, 0.2, 0.3],
    [0.7, 1.0, 0.1, 0.4],
    [0.2, 0.1, 1.0, -0.2],
    [0.3, 0.4, -0.2, 1.0],
])

DEMO_VOLATILITIES: Dict[str, float] = {
    "Stock A": 0.02,
    "Stock B": 0.025,
    "Bond C": 0.01,
    "Commodity D": 0.03,
}

DEMO_WEIGHTS: Dict[str, float] = {
    "Stock A": 0.40,
    "Stock B": 0.30,
    "Bond C": 0.20,
    "Commodity D": 0.10,
}


def load_prices(path: str) -> pd.DataFrame:
    """
    Load price data from a CSV file.

    Parameters
    ----------
    path : str
        CSV with a date index in the first column and one column per asset.

    Returns
    -------
    pd.DataFrame
        Prices indexed by date, sorted chronologically, incomplete rows dropped.
    """
    df = pd.read_csv(path, index_col=0, parse_dates=True)
    df = df.sort_index().dropna()
    if df.empty:
        raise InsufficientDataError(f"No complete price rows in {path}")
    return df


def compute_log_returns(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Compute logarithmic returns from price series.

    Parameters
    ----------
    prices : pd.DataFrame
        DataFrame of asset prices (at least one row).

    Returns
    -------
    pd.DataFrame
        DataFrame of log returns (first row dropped).
    """
    if len(prices) < 1:
        raise InsufficientDataError("Price data is empty")
    return np.log(prices / prices.shift(1)).dropna()


def compute_simple_returns(prices: pd.DataFrame) -> pd.DataFrame:
    """Simple (arithmetic) returns, first row dropped."""
    if len(prices) < 1:
        raise InsufficientDataError("Price data is empty")
    return prices.pct_change().dropna()


def align_returns(series: Mapping[str, pd.Series]) -> pd.DataFrame:
    """
    Date-align per-asset return series.

    Keeps only dates present for every asset (inner join), in
    chronological order.

    Parameters
    ----------
    series : mapping of str -> pd.Series
        Date-indexed return series per asset.

    Returns
    -------
    pd.DataFrame
        Aligned return matrix (T x N).
    """
    if not series:
        raise InsufficientDataError("No return series to align")
    aligned = pd.concat(series, axis=1, join="inner").sort_index()
    return aligned.dropna()


def compute_portfolio_returns(
    returns: pd.DataFrame, weights: Union[Sequence[float], np.ndarray]
) -> pd.Series:
    """
    Compute portfolio returns as weighted sum of asset returns.

    Mathematical Definition:
        R_p = w^T * R

    Parameters
    ----------
    returns : pd.DataFrame
        Asset returns (T x N).
    weights : array-like
        Weight vector (N,), used as given.

    Returns
    -------
    pd.Series
        Portfolio return series.
    """
    w = np.asarray(weights, dtype=float)
    if w.shape != (returns.shape[1],):
        raise ValueError(
            f"Expected {returns.shape[1]} weights, got {w.shape[0] if w.ndim else 0}"
        )
    return pd.Series(returns.values @ w, index=returns.index, name="portfolio_return")


def equal_weights(n_assets: int) -> np.ndarray:
    """Equal-weight vector for ``n_assets`` assets."""
    if n_assets < 1:
        raise ValueError(f"n_assets must be positive, got {n_assets}")
    return np.full(n_assets, 1.0 / n_assets)


def normalize_weights(weights: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """Scale weights to sum to 1.0."""
    w = np.asarray(weights, dtype=float)
    total = w.sum()
    if np.isclose(total, 0.0):
        raise ValueError("Cannot normalize weights that sum to zero")
    return w / total


def generate_synthetic_prices(
    n_days: int = 252,
    seed: Optional[int] = None,
    start: str = "2023-01-01",
    initial_price: float = 100.0,
) -> pd.DataFrame:
    """
    Simulate a correlated four-asset price history for demos and tests.

    Daily log returns are Box-Muller normals correlated through the
    Cholesky factor of ``DEMO_CORRELATION`` and scaled by
    ``DEMO_VOLATILITIES``; prices compound from ``initial_price``.

    Parameters
    ----------
    n_days : int
        Number of price rows (≥ 2).
    seed : int, optional
        Seed for reproducible output.
    start : str
        First calendar date.
    initial_price : float
        Price level on the first date.

    Returns
    -------
    pd.DataFrame
        Prices indexed by daily dates, one column per demo asset.
    """
    if n_days < 2:
        raise InsufficientDataError(f"Need at least 2 price rows, got {n_days}")

    rng = np.random.default_rng(seed)
    factor = cholesky_decomposition(DEMO_CORRELATION)
    vols = np.array([DEMO_VOLATILITIES[a] for a in DEMO_ASSETS])

    z = normal_variates(rng, (n_days - 1, len(DEMO_ASSETS))) @ factor.lower.T
    log_returns = np.vstack([np.zeros(len(DEMO_ASSETS)), z * vols])
    prices = initial_price * np.exp(np.cumsum(log_returns, axis=0))

    index = pd.date_range(start=start, periods=n_days, freq="D", name="Date")
    return pd.DataFrame(prices, index=index, columns=DEMO_ASSETS)
