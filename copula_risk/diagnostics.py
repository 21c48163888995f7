"""
Model Diagnostics
=================
Goodness-of-fit, tail dependence, rank concordance and information
criteria for comparing a simulated distribution against history.

Mathematical Foundation:
    KS statistic:   D = max_x |F_a(x) - F_b(x)|
    Upper tail:     λ_U = #{x > u, y > u} / (n (1 - u))
    Lower tail:     λ_L = #{x < u, y < u} / (n u)
    Kendall's τ:    (C - D) / (n (n - 1) / 2)
    AIC:            2k - 2 ln L
    BIC:            k ln n - 2 ln L

The engine does not fit a likelihood; AIC/BIC need a log-likelihood from
the caller.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Sequence, Union

import numpy as np
from scipy import stats

from copula_risk.copulas import CopulaFamily, CopulaModel
from copula_risk.exceptions import InsufficientDataError

logger = logging.getLogger(__name__)

Sample = Union[Sequence[float], np.ndarray]

DEFAULT_UPPER_THRESHOLD: float = 0.95
DEFAULT_LOWER_THRESHOLD: float = 0.05


@dataclass(frozen=True)
class DiagnosticsReport:
    goodness_of_fit: float
    upper_tail_dependence: float
    lower_tail_dependence: float
    kendalls_tau: float
    n_parameters: int
    aic: Optional[float] = None
    bic: Optional[float] = None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return asdict(self)


def _as_array(sample: Sample, name: str = "sample") -> np.ndarray:
    values = np.asarray(sample, dtype=float).ravel()
    if values.size == 0:
        raise InsufficientDataError(f"{name} is empty")
    return values


def _paired(x: Sample, y: Sample):
    x = _as_array(x, "x")
    y = _as_array(y, "y")
    if x.size != y.size:
        raise ValueError(f"Paired samples must have equal length, got {x.size} and {y.size}")
    return x, y


def goodness_of_fit(a: Sample, b: Sample) -> float:
    """
    Two-sample Kolmogorov-Smirnov statistic.

    Both empirical CDFs are evaluated at every distinct value of the
    pooled sample; the samples may differ in length.

    Returns
    -------
    float
        Maximum absolute CDF difference, in [0, 1].
    """
    a = np.sort(_as_array(a, "a"))
    b = np.sort(_as_array(b, "b"))
    grid = np.union1d(a, b)
    cdf_a = np.searchsorted(a, grid, side="right") / a.size
    cdf_b = np.searchsorted(b, grid, side="right") / b.size
    return float(np.max(np.abs(cdf_a - cdf_b)))


def upper_tail_dependence(x: Sample, y: Sample, u: float = DEFAULT_UPPER_THRESHOLD) -> float:
    """
    Empirical upper tail-dependence coefficient at threshold ``u``.

    ``x`` and ``y`` are expected on the uniform scale, see
    ``pseudo_observations``.
    """
    if not 0.0 < u < 1.0:
        raise ValueError(f"Threshold must lie in (0, 1), got {u}")
    x, y = _paired(x, y)
    joint = np.count_nonzero((x > u) & (y > u))
    return float(joint / (x.size * (1.0 - u)))


def lower_tail_dependence(x: Sample, y: Sample, u: float = DEFAULT_LOWER_THRESHOLD) -> float:
    """Empirical lower tail-dependence coefficient at threshold ``u``."""
    if not 0.0 < u < 1.0:
        raise ValueError(f"Threshold must lie in (0, 1), got {u}")
    x, y = _paired(x, y)
    joint = np.count_nonzero((x < u) & (y < u))
    return float(joint / (x.size * u))


def kendalls_tau(x: Sample, y: Sample) -> float:
    """
    Kendall's rank correlation (tau-a) over all unordered pairs.

    Tied pairs count as neither concordant nor discordant. Memory stays
    O(n) by sweeping one row of the pair matrix at a time.
    """
    x, y = _paired(x, y)
    n = x.size
    if n < 2:
        raise InsufficientDataError("Kendall's tau needs at least 2 paired observations")

    score = 0.0
    for i in range(n - 1):
        score += np.sum(np.sign(x[i + 1:] - x[i]) * np.sign(y[i + 1:] - y[i]))

    return float(score / (n * (n - 1) / 2.0))


def aic(log_likelihood: float, k: int) -> float:
    """Akaike information criterion."""
    return 2.0 * k - 2.0 * log_likelihood


def bic(log_likelihood: float, k: int, n: int) -> float:
    """Bayesian information criterion."""
    if n < 1:
        raise ValueError(f"BIC needs a positive sample size, got {n}")
    return float(np.log(n) * k - 2.0 * log_likelihood)


def pseudo_observations(sample: Sample) -> np.ndarray:
    """Map a sample to (0, 1) by rank / (n + 1), ties averaged."""
    values = _as_array(sample)
    return stats.rankdata(values) / (values.size + 1.0)


def copula_parameter_count(model: CopulaModel, n_assets: int) -> int:
    """
    Free parameters of a copula model.

    Gaussian: N(N-1)/2 correlations; Student-t adds ν; the bivariate
    Archimedean families carry a single θ.
    """
    correlations = n_assets * (n_assets - 1) // 2
    counts = {
        CopulaFamily.GAUSSIAN: correlations,
        CopulaFamily.STUDENT_T: correlations + 1,
        CopulaFamily.CLAYTON: 1,
        CopulaFamily.GUMBEL: 1,
    }
    return counts[model.family]


def compute_diagnostics(
    historical: Sample,
    simulated: Sample,
    model: CopulaModel,
    n_assets: int,
    log_likelihood: Optional[float] = None,
    n_observations: Optional[int] = None,
    tail_threshold: float = DEFAULT_UPPER_THRESHOLD,
) -> DiagnosticsReport:
    """
    Compare simulated portfolio returns with the historical series.

    The KS statistic uses the full samples. Tail dependence and Kendall's
    tau pair the two series observation by observation over their common
    prefix, on the pseudo-observation scale.

    Parameters
    ----------
    historical : array-like
        Historical portfolio returns.
    simulated : array-like
        Simulated portfolio returns.
    model : CopulaModel
        Model used for the simulation (parameter count).
    n_assets : int
        Number of assets.
    log_likelihood : float, optional
        Caller-supplied log-likelihood; AIC/BIC are ``None`` without it.
    n_observations : int, optional
        Sample size for BIC (default: length of ``historical``).
    tail_threshold : float
        Upper threshold u; the lower threshold is 1 - u.

    Returns
    -------
    DiagnosticsReport
    """
    historical = _as_array(historical, "historical")
    simulated = _as_array(simulated, "simulated")

    n_pairs = min(historical.size, simulated.size)
    if n_pairs < 2:
        raise InsufficientDataError("Diagnostics need at least 2 paired observations")

    u_hist = pseudo_observations(historical[:n_pairs])
    u_sim = pseudo_observations(simulated[:n_pairs])

    k = copula_parameter_count(model, n_assets)
    if log_likelihood is None:
        aic_score = bic_score = None
    else:
        n = n_observations if n_observations is not None else historical.size
        aic_score = aic(log_likelihood, k)
        bic_score = bic(log_likelihood, k, n)

    report = DiagnosticsReport(
        goodness_of_fit=goodness_of_fit(historical, simulated),
        upper_tail_dependence=upper_tail_dependence(u_hist, u_sim, tail_threshold),
        lower_tail_dependence=lower_tail_dependence(u_hist, u_sim, 1.0 - tail_threshold),
        kendalls_tau=kendalls_tau(historical[:n_pairs], simulated[:n_pairs]),
        n_parameters=k,
        aic=aic_score,
        bic=bic_score,
    )
    logger.debug("Diagnostics: %s", report)
    return report
