"""
Monte Carlo Simulation Engine (Flagship Module)
================================================
Generates a distribution of simulated portfolio returns by pushing
independent uniforms through a copula sampler and a marginal-return
transform.

Mathematical Foundation:
    Copula draw:   X = C(U),              U ~ Uniform(0,1)^N
    Marginal:      r_i = σ · ε_i,         ε_i ~ N(0, 1)
    Portfolio:     R_p = √h · Σ_i w_i r_i

Trials are independent, so they are split into batches that run on a
thread pool. Every batch owns a generator spawned from a single
``SeedSequence``; results are concatenated in batch order, which makes a
seeded run reproducible regardless of the number of workers.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

from copula_risk.cholesky import CholeskyFactor, CholeskyPolicy, cholesky_decomposition
from copula_risk.config import DEFAULT_NUM_SIMULATIONS
from copula_risk.copulas import (
    CopulaModel,
    sample_copula,
    to_uniform,
    warn_pairwise_fallback,
)
from copula_risk.exceptions import SimulationCancelledError
from copula_risk.risk_metrics import compute_cvar, compute_var
from copula_risk.statistics import (
    inverse_standard_normal_cdf,
    normal_variates,
    uniform_variates,
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────
DEFAULT_BATCH_SIZE: int = 5_000
DEFAULT_MARGINAL_VOLATILITY: float = 0.02
UNIFORM_CLIP: float = 1e-12


class MarginalMode(str, Enum):
    """How per-asset shocks are derived from a copula draw."""
    INDEPENDENT = "independent"  # fresh N(0,1) shock per coordinate
    COPULA = "copula"            # shock = Φ⁻¹ of the copula's uniform output


def _marginal_shocks(
    rng: np.random.Generator,
    variates: np.ndarray,
    model: CopulaModel,
    mode: MarginalMode,
) -> np.ndarray:
    if mode is MarginalMode.INDEPENDENT:
        return normal_variates(rng, variates.shape)

    u = np.clip(to_uniform(variates, model), UNIFORM_CLIP, 1.0 - UNIFORM_CLIP)
    return np.asarray(inverse_standard_normal_cdf(u), dtype=float)


def simulate_batch(
    rng: np.random.Generator,
    n_trials: int,
    weights: np.ndarray,
    model: CopulaModel,
    factor: Optional[CholeskyFactor],
    marginal_volatility: float,
    marginal_mode: MarginalMode = MarginalMode.INDEPENDENT,
) -> np.ndarray:
    """
    Simulate one batch of one-day portfolio returns.

    Parameters
    ----------
    rng : np.random.Generator
        Generator owned by this batch.
    n_trials : int
        Number of trials in the batch.
    weights : np.ndarray
        Portfolio weights (N,), used as given.
    model : CopulaModel
        Dependence model.
    factor : CholeskyFactor, optional
        Required by elliptical families.
    marginal_volatility : float
        Daily volatility applied to every asset.
    marginal_mode : MarginalMode
        Shock derivation, see ``MarginalMode``.

    Returns
    -------
    np.ndarray
        One-day portfolio returns (n_trials,).
    """
    u = uniform_variates(rng, (n_trials, weights.shape[0]))
    variates = sample_copula(u, model, factor)
    shocks = _marginal_shocks(rng, variates, model, marginal_mode)
    return (shocks * marginal_volatility) @ weights


def _batch_sizes(n_sims: int, batch_size: int) -> List[int]:
    full, remainder = divmod(n_sims, batch_size)
    return [batch_size] * full + ([remainder] if remainder else [])


def simulate_portfolio_returns(
    correlation: np.ndarray,
    weights: Sequence[float],
    model: CopulaModel,
    n_sims: int = DEFAULT_NUM_SIMULATIONS,
    horizon_days: int = 1,
    marginal_volatility: float = DEFAULT_MARGINAL_VOLATILITY,
    seed: Optional[int] = None,
    n_workers: int = 1,
    batch_size: int = DEFAULT_BATCH_SIZE,
    marginal_mode: Union[MarginalMode, str] = MarginalMode.INDEPENDENT,
    factor: Optional[CholeskyFactor] = None,
    cholesky_policy: Union[CholeskyPolicy, str] = CholeskyPolicy.CLAMP,
    cancel_event: Optional[threading.Event] = None,
) -> np.ndarray:
    """
    Simulate ``n_sims`` portfolio returns over ``horizon_days``.

    Algorithm (per trial):
        1. Draw N independent uniforms
        2. Pass them through the copula sampler for ``model``
        3. Derive one standard-normal shock per asset
        4. Scale by ``marginal_volatility``, weight, and sum
        5. Scale by √horizon_days (i.i.d. square-root-of-time rule)

    Parameters
    ----------
    correlation : np.ndarray
        Correlation matrix (N x N).
    weights : sequence of float
        Portfolio weights (N,). Not normalized.
    model : CopulaModel
        Dependence model.
    n_sims : int
        Number of trials (≥ 1).
    horizon_days : int
        Horizon in days (≥ 1).
    marginal_volatility : float
        Daily volatility per asset.
    seed : int, optional
        Root seed. ``None`` draws fresh OS entropy.
    n_workers : int
        Thread pool size; 1 runs batches inline.
    batch_size : int
        Trials per batch, and the granularity of cancellation checks.
    marginal_mode : MarginalMode or str
        ``independent`` (default) or ``copula``.
    factor : CholeskyFactor, optional
        Precomputed factor of ``correlation``.
    cholesky_policy : CholeskyPolicy or str
        Used when ``factor`` is not supplied.
    cancel_event : threading.Event, optional
        Checked before each batch starts.

    Returns
    -------
    np.ndarray
        Simulated portfolio returns (n_sims,).

    Raises
    ------
    ValueError
        On non-positive counts or a weight/correlation dimension mismatch.
    SimulationCancelledError
        If ``cancel_event`` is set before all batches ran.

    Warns
    -----
    DimensionMismatchWarning
        Once per call, for an Archimedean model with N ≠ 2 assets.
    """
    if n_sims < 1:
        raise ValueError(f"n_sims must be a positive integer, got {n_sims}")
    if horizon_days < 1:
        raise ValueError(f"horizon_days must be a positive integer, got {horizon_days}")
    if batch_size < 1:
        raise ValueError(f"batch_size must be a positive integer, got {batch_size}")

    corr = np.asarray(correlation, dtype=float)
    w = np.asarray(weights, dtype=float)
    if corr.ndim != 2 or corr.shape != (w.shape[0], w.shape[0]):
        raise ValueError(
            f"Correlation matrix {corr.shape} does not match {w.shape[0]} weights"
        )

    mode = MarginalMode(marginal_mode)
    warn_pairwise_fallback(model.family, w.shape[0])
    if factor is None and not model.family.is_archimedean:
        factor = cholesky_decomposition(corr, cholesky_policy)

    sizes = _batch_sizes(n_sims, batch_size)
    streams = np.random.SeedSequence(seed).spawn(len(sizes))

    def run(size: int, stream: np.random.SeedSequence) -> Optional[np.ndarray]:
        if cancel_event is not None and cancel_event.is_set():
            return None
        rng = np.random.default_rng(stream)
        return simulate_batch(rng, size, w, model, factor, marginal_volatility, mode)

    logger.debug(
        "Simulating %d trials in %d batches (%s, workers=%d)",
        n_sims, len(sizes), model.describe(), n_workers,
    )

    if n_workers <= 1:
        batches = _run_inline(run, sizes, streams)
    else:
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            batches = list(executor.map(run, sizes, streams))

    completed = [b for b in batches if b is not None]
    if len(completed) < len(sizes):
        raise SimulationCancelledError(len(completed), len(sizes))

    return np.concatenate(completed) * np.sqrt(horizon_days)


def _run_inline(run, sizes: Iterable[int], streams) -> List[Optional[np.ndarray]]:
    batches = []
    for size, stream in zip(sizes, streams):
        batch = run(size, stream)
        batches.append(batch)
        if batch is None:
            break
    return batches


def run_monte_carlo_engine(
    correlation: np.ndarray,
    weights: Sequence[float],
    model: CopulaModel,
    n_sims: int = DEFAULT_NUM_SIMULATIONS,
    horizon_days: int = 1,
    marginal_volatility: float = DEFAULT_MARGINAL_VOLATILITY,
    seed: Optional[int] = None,
    **simulation_options,
) -> Dict[str, object]:
    """
    Run the simulation and summarise tail risk at 95% and 99%.

    Parameters
    ----------
    correlation, weights, model, n_sims, horizon_days, marginal_volatility, seed
        See ``simulate_portfolio_returns``.
    **simulation_options
        Forwarded to ``simulate_portfolio_returns`` (workers, batch size,
        marginal mode, factor, policy, cancellation).

    Returns
    -------
    dict
        Contains: portfolio_pnl, var_95, var_99, es_95, es_99,
        num_simulations, copula.
    """
    portfolio_pnl = simulate_portfolio_returns(
        correlation, weights, model, n_sims, horizon_days,
        marginal_volatility, seed, **simulation_options,
    )

    return {
        "portfolio_pnl": portfolio_pnl,
        "var_95": compute_var(portfolio_pnl, 95),
        "var_99": compute_var(portfolio_pnl, 99),
        "es_95": compute_cvar(portfolio_pnl, 95),
        "es_99": compute_cvar(portfolio_pnl, 99),
        "num_simulations": n_sims,
        "copula": model.describe(),
    }
