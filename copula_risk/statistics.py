"""
Statistical Primitives & Correlation Estimation
================================================
Random variate generation, normal CDF / quantile approximations, the
Cornish-Fisher Student-t quantile, and the pairwise Pearson correlation
matrix of a return matrix.

Mathematical Foundation:
    Box-Muller:   Z = sqrt(-2 ln U1) · cos(2π U2)
    Normal CDF:   Φ(z) = ½ (1 + erf(z / √2))
    Pearson:      ρ_xy = Σ(x-x̄)(y-ȳ) / sqrt(Σ(x-x̄)² Σ(y-ȳ)²)
"""

from typing import Mapping, Sequence, Union

import numpy as np
import pandas as pd

from copula_risk.exceptions import InsufficientDataError


ArrayLike = Union[Sequence[float], np.ndarray, pd.Series]
ReturnMatrix = Union[pd.DataFrame, Mapping[str, ArrayLike]]


# ─────────────────────────────────────────────────────────────
# Rational approximation coefficients
# ─────────────────────────────────────────────────────────────

# Abramowitz & Stegun 7.1.26
_ERF_A = (0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429)
_ERF_P = 0.3275911

# Beasley-Springer-Moro / Acklam inverse normal
_INV_A = (-3.969683028665376e+01, 2.209460984245205e+02, -2.759285104469687e+02,
          1.383577518672690e+02, -3.066479806614716e+01, 2.506628277459239e+00)
_INV_B = (-5.447609879822406e+01, 1.615858368580409e+02, -1.556989798598866e+02,
          6.680131188771972e+01, -1.328068155288572e+01)
_INV_C = (-7.784894002430293e-03, -3.223964580411365e-01, -2.400758277161838e+00,
          -2.549732539343734e+00, 4.374664141464968e+00, 2.938163982698783e+00)
_INV_D = (7.784695709041462e-03, 3.224671290700398e-01, 2.445134137142996e+00,
          3.754408661907416e+00)

P_LOW: float = 0.02425
P_HIGH: float = 1.0 - P_LOW


# ─────────────────────────────────────────────────────────────
# Random variates
# ─────────────────────────────────────────────────────────────

def uniform_variates(rng: np.random.Generator, size) -> np.ndarray:
    """
    Draw uniforms on the open interval (0, 1).

    ``Generator.random`` samples [0, 1); exact zeros are redrawn so that
    logarithms and normal quantiles stay finite.
    """
    u = rng.random(size)
    zeros = u == 0.0
    while np.any(zeros):
        u[zeros] = rng.random(int(zeros.sum()))
        zeros = u == 0.0
    return u


def normal_variates(rng: np.random.Generator, size) -> np.ndarray:
    """
    Standard normal draws via the Box-Muller transform.

    Each variate consumes two independent uniforms; the generator is the
    only state shared between calls.

    Parameters
    ----------
    rng : np.random.Generator
        Source of uniform draws.
    size : int or tuple
        Output shape.

    Returns
    -------
    np.ndarray
        Independent N(0, 1) draws.
    """
    u1 = uniform_variates(rng, size)
    u2 = uniform_variates(rng, size)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


# ─────────────────────────────────────────────────────────────
# Normal CDF and quantile
# ─────────────────────────────────────────────────────────────

def erf(x):
    """Error function, Abramowitz-Stegun approximation (|error| < 1.5e-7)."""
    x = np.asarray(x, dtype=float)
    sign = np.where(x >= 0, 1.0, -1.0)
    ax = np.abs(x)

    t = 1.0 / (1.0 + _ERF_P * ax)
    a1, a2, a3, a4, a5 = _ERF_A
    poly = ((((a5 * t + a4) * t + a3) * t + a2) * t + a1) * t
    y = 1.0 - poly * np.exp(-ax * ax)

    result = sign * y
    return float(result) if result.ndim == 0 else result


def standard_normal_cdf(z):
    """Φ(z) = ½ (1 + erf(z / √2)). Accepts scalars or arrays."""
    z = np.asarray(z, dtype=float)
    result = 0.5 * (1.0 + np.asarray(erf(z / np.sqrt(2.0))))
    return float(result) if result.ndim == 0 else result


def inverse_standard_normal_cdf(p):
    """
    Standard normal quantile Φ⁻¹(p).

    Rational approximation with a central region on [P_LOW, P_HIGH] and
    tail regions on either side (relative error ~1.15e-9).

    Parameters
    ----------
    p : float or array-like
        Probabilities. Values ≤ 0 map to -inf, values ≥ 1 to +inf.

    Returns
    -------
    float or np.ndarray
        Quantiles with the shape of ``p``.
    """
    p = np.asarray(p, dtype=float)
    z = np.full_like(p, np.nan)

    a1, a2, a3, a4, a5, a6 = _INV_A
    b1, b2, b3, b4, b5 = _INV_B
    c1, c2, c3, c4, c5, c6 = _INV_C
    d1, d2, d3, d4 = _INV_D

    lower = (p > 0.0) & (p < P_LOW)
    central = (p >= P_LOW) & (p <= P_HIGH)
    upper = (p > P_HIGH) & (p < 1.0)

    with np.errstate(divide="ignore", invalid="ignore"):
        q = np.sqrt(-2.0 * np.log(np.where(lower, p, 0.5)))
        z_lower = (((((c1 * q + c2) * q + c3) * q + c4) * q + c5) * q + c6) / \
                  ((((d1 * q + d2) * q + d3) * q + d4) * q + 1.0)

        q = np.where(central, p, 0.5) - 0.5
        r = q * q
        z_central = (((((a1 * r + a2) * r + a3) * r + a4) * r + a5) * r + a6) * q / \
                    (((((b1 * r + b2) * r + b3) * r + b4) * r + b5) * r + 1.0)

        q = np.sqrt(-2.0 * np.log(1.0 - np.where(upper, p, 0.5)))
        z_upper = -(((((c1 * q + c2) * q + c3) * q + c4) * q + c5) * q + c6) / \
                   ((((d1 * q + d2) * q + d3) * q + d4) * q + 1.0)

    z = np.where(lower, z_lower, z)
    z = np.where(central, z_central, z)
    z = np.where(upper, z_upper, z)
    z = np.where(p <= 0.0, -np.inf, z)
    z = np.where(p >= 1.0, np.inf, z)

    return float(z) if z.ndim == 0 else z


def student_t_inverse_cdf(p, degrees_of_freedom: float):
    """
    Approximate Student-t quantile via a Cornish-Fisher expansion.

    Mathematical Definition:
        t ≈ z + (z³ + z) / (4ν) + (5z⁵ + 16z³ + 3z) / (96ν²),   z = Φ⁻¹(p)

    Accurate for moderate ν; tails are heavier than Φ⁻¹ for small ν.
    """
    if degrees_of_freedom <= 0:
        raise ValueError(f"degrees_of_freedom must be positive, got {degrees_of_freedom}")

    z = np.asarray(inverse_standard_normal_cdf(p), dtype=float)
    nu = float(degrees_of_freedom)

    with np.errstate(invalid="ignore"):
        g1 = (z ** 3 + z) / 4.0
        g2 = (5.0 * z ** 5 + 16.0 * z ** 3 + 3.0 * z) / 96.0
        t = z + g1 / nu + g2 / (nu * nu)

    # inf - inf artefacts at the boundaries
    t = np.where(np.isinf(z), z, t)
    return float(t) if t.ndim == 0 else t


# ─────────────────────────────────────────────────────────────
# Linear algebra helpers
# ─────────────────────────────────────────────────────────────

def matrix_vector_product(matrix: np.ndarray, vector: ArrayLike) -> np.ndarray:
    """
    Compute M·v with the dimensions checked once up front.

    Raises
    ------
    ValueError
        If ``matrix`` is not 2-D or its column count differs from ``len(vector)``.
    """
    m = np.asarray(matrix, dtype=float)
    v = np.asarray(vector, dtype=float)
    if m.ndim != 2 or v.ndim != 1 or m.shape[1] != v.shape[0]:
        raise ValueError(f"Cannot multiply matrix {m.shape} by vector {v.shape}")
    return m @ v


# ─────────────────────────────────────────────────────────────
# Correlation estimation
# ─────────────────────────────────────────────────────────────

def pearson_correlation(x: ArrayLike, y: ArrayLike) -> float:
    """
    Sample Pearson correlation of two equal-length series.

    Returns 0.0 when either series has zero variance.

    Raises
    ------
    InsufficientDataError
        If the series are empty.
    ValueError
        If the series lengths differ.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)

    if x.shape != y.shape:
        raise ValueError(f"Series lengths differ: {x.shape[0]} vs {y.shape[0]}")
    if x.size == 0:
        raise InsufficientDataError("Cannot correlate empty series")

    dx = x - x.mean()
    dy = y - y.mean()
    denominator = np.sqrt(np.dot(dx, dx) * np.dot(dy, dy))

    if denominator == 0.0:
        return 0.0
    return float(np.dot(dx, dy) / denominator)


def as_return_frame(returns: ReturnMatrix) -> pd.DataFrame:
    """Coerce a mapping of asset -> series into a float DataFrame."""
    if isinstance(returns, pd.DataFrame):
        frame = returns
    else:
        lengths = {name: len(series) for name, series in returns.items()}
        if len(set(lengths.values())) > 1:
            raise ValueError(f"Return series must have equal length, got {lengths}")
        frame = pd.DataFrame({name: np.asarray(series, dtype=float)
                              for name, series in returns.items()})
    return frame.astype(float)


def compute_correlation_matrix(returns: ReturnMatrix) -> np.ndarray:
    """
    Build the Pearson correlation matrix of a return matrix.

    The diagonal is fixed to exactly 1.0 and each off-diagonal entry is
    computed once and mirrored, so the result is symmetric by construction.

    Parameters
    ----------
    returns : pd.DataFrame or mapping
        Aligned return series (T x N).

    Returns
    -------
    np.ndarray
        Correlation matrix (N x N).

    Raises
    ------
    InsufficientDataError
        If there are no assets or fewer than 2 observations.
    """
    frame = as_return_frame(returns)
    n_assets = frame.shape[1]

    if n_assets == 0:
        raise InsufficientDataError("Return matrix has no assets")
    if len(frame) < 2:
        raise InsufficientDataError(
            f"Need at least 2 observations to estimate correlation, got {len(frame)}"
        )

    values = frame.values
    corr = np.eye(n_assets)
    for i in range(n_assets):
        for j in range(i + 1, n_assets):
            rho = pearson_correlation(values[:, i], values[:, j])
            corr[i, j] = rho
            corr[j, i] = rho

    return corr


def validate_correlation_matrix(corr: np.ndarray, atol: float = 1e-10) -> bool:
    """
    Check shape, symmetry and unit diagonal of a correlation matrix.

    Positive semi-definiteness is left to the Cholesky step.
    """
    corr = np.asarray(corr, dtype=float)
    if corr.ndim != 2 or corr.shape[0] != corr.shape[1]:
        return False
    if not np.allclose(corr, corr.T, atol=atol):
        return False
    return bool(np.all(np.diag(corr) == 1.0))


def compute_mean_vector(returns: ReturnMatrix) -> np.ndarray:
    """Daily mean return per asset (N,)."""
    return as_return_frame(returns).mean().values


def compute_covariance_matrix(returns: ReturnMatrix) -> np.ndarray:
    """
    Sample covariance matrix of daily returns (unbiased, ddof=1).

    Returns
    -------
    np.ndarray
        Covariance matrix (N x N).
    """
    values = as_return_frame(returns).values
    return np.atleast_2d(np.cov(values, rowvar=False, ddof=1))
