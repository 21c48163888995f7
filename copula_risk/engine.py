"""
Risk Analysis Orchestrator
==========================
Single request/response entry point of the core.

Execution Flow:
    1. Validate the return matrix and weights
    2. Historical portfolio returns and metrics
    3. Correlation matrix and Cholesky factor
    4. Copula Monte Carlo simulation
    5. Simulated metrics and diagnostics
    6. Assemble the RiskReport (with warnings for degraded paths)
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from copula_risk.cholesky import CholeskyPolicy, cholesky_decomposition
from copula_risk.config import EngineConfig
from copula_risk.copulas import CopulaModel, archimedean_dimension_warning
from copula_risk.diagnostics import DiagnosticsReport, compute_diagnostics
from copula_risk.exceptions import InsufficientDataError
from copula_risk.monte_carlo import simulate_portfolio_returns
from copula_risk.portfolio import compute_portfolio_returns
from copula_risk.risk_metrics import RiskMetrics, compute_risk_metrics
from copula_risk.statistics import ReturnMatrix, as_return_frame, compute_correlation_matrix

logger = logging.getLogger(__name__)

WEIGHT_SUM_TOLERANCE: float = 1e-6


@dataclass
class RiskReport:
    """
    Output of one analysis run, owned by the caller.

    ``warnings`` lists every degraded-but-defined path taken (Archimedean
    pairwise fallback, clamped or regularized Cholesky factor,
    non-normalized weights). An empty list means no approximation beyond
    the model itself.
    """
    historical: RiskMetrics
    simulated: RiskMetrics
    correlation_matrix: np.ndarray
    copula: CopulaModel
    assets: List[str]
    diagnostics: Optional[DiagnosticsReport] = None
    simulated_sample: np.ndarray = field(default_factory=lambda: np.empty(0))
    n_simulations: int = 0
    horizon_days: int = 1
    cholesky_policy: CholeskyPolicy = CholeskyPolicy.CLAMP
    warnings: List[str] = field(default_factory=list)

    @property
    def copula_type(self) -> str:
        return self.copula.name

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-Python representation for persistence or transport."""
        return {
            "assets": list(self.assets),
            "copula": {
                "type": self.copula.name,
                "degrees_of_freedom": self.copula.degrees_of_freedom,
                "theta": self.copula.theta,
            },
            "historical": self.historical.to_dict(),
            "simulated": self.simulated.to_dict(),
            "correlation_matrix": self.correlation_matrix.tolist(),
            "diagnostics": self.diagnostics.to_dict() if self.diagnostics else None,
            "simulated_sample": self.simulated_sample.tolist(),
            "n_simulations": self.n_simulations,
            "horizon_days": self.horizon_days,
            "cholesky_policy": self.cholesky_policy.value,
            "warnings": list(self.warnings),
        }


def _validate_weights(weights: Sequence[float], n_assets: int, warnings: List[str]) -> np.ndarray:
    w = np.asarray(weights, dtype=float).ravel()
    if w.shape[0] != n_assets:
        raise ValueError(f"Expected {n_assets} weights, got {w.shape[0]}")

    total = float(w.sum())
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        # Weighted linearly as given; normalization is the caller's call
        warnings.append(f"Weights sum to {total:.6f}, not 1.0; used without normalization")
    return w


def run_risk_analysis(
    returns: ReturnMatrix,
    weights: Sequence[float],
    model: Union[CopulaModel, str],
    confidence: Optional[float] = None,
    horizon_days: Optional[int] = None,
    n_sims: Optional[int] = None,
    config: Optional[EngineConfig] = None,
    log_likelihood: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RiskReport:
    """
    Run a full copula risk analysis.

    Parameters
    ----------
    returns : pd.DataFrame or mapping
        Aligned per-asset log returns (T x N), chronological.
    weights : sequence of float
        One weight per asset, used as given.
    model : CopulaModel or str
        Dependence model; a family name uses the configured default
        parameters.
    confidence : float, optional
        VaR/CVaR confidence in percent (default from config: 95).
    horizon_days : int, optional
        Simulation horizon in days (default from config: 1).
    n_sims : int, optional
        Number of Monte Carlo trials (default from config: 10,000).
    config : EngineConfig, optional
        Engine configuration; defaults when omitted.
    log_likelihood : float, optional
        Enables AIC/BIC in the diagnostics.
    cancel_event : threading.Event, optional
        Cancels the simulation between batches.

    Returns
    -------
    RiskReport

    Raises
    ------
    InsufficientDataError
        Empty asset set or fewer than 2 observations.
    NotPositiveSemiDefiniteError
        Correlation matrix rejected under the ``raise``/``regularize`` policy
        (Gaussian and Student-t models only).
    SimulationCancelledError
        ``cancel_event`` was set mid-run.
    """
    config = (config or EngineConfig()).with_overrides(
        confidence=confidence, horizon_days=horizon_days, n_sims=n_sims,
    )
    sim_cfg, risk_cfg = config.simulation, config.risk
    if not isinstance(model, CopulaModel):
        model = CopulaModel.from_name(model, config.copula)

    frame = as_return_frame(returns)
    n_assets = frame.shape[1]
    if n_assets == 0:
        raise InsufficientDataError("Return matrix has no assets")
    if len(frame) < 2:
        raise InsufficientDataError(
            f"Need at least 2 aligned observations, got {len(frame)}"
        )

    warnings: List[str] = []
    w = _validate_weights(weights, n_assets, warnings)

    logger.info(
        "Risk analysis: %d assets, %d observations, copula=%s, %d sims, %d-day horizon",
        n_assets, len(frame), model.describe(), sim_cfg.n_sims, sim_cfg.horizon_days,
    )

    # ── Historical ────────────────────────────────────────────
    historical_returns = compute_portfolio_returns(frame, w).values
    historical = compute_risk_metrics(
        historical_returns, sim_cfg.confidence, risk_cfg.risk_free_rate
    )

    # ── Dependence structure ─────────────────────────────────
    correlation = compute_correlation_matrix(frame)
    policy = CholeskyPolicy(risk_cfg.cholesky_policy)
    factor = None
    # Archimedean samplers never read the correlation matrix
    if not model.family.is_archimedean:
        factor = cholesky_decomposition(correlation, policy)
    if factor is not None and factor.degenerate:
        if policy is CholeskyPolicy.CLAMP:
            warnings.append(
                "Correlation matrix is not positive semi-definite; Cholesky pivots "
                "clamped to zero, some simulated directions have zero variance"
            )
        else:
            warnings.append("Correlation matrix regularized before Cholesky factorization")

    dimension_warning = archimedean_dimension_warning(model.family, n_assets)
    if dimension_warning:
        warnings.append(dimension_warning)

    # ── Simulation ───────────────────────────────────────────
    simulated_returns = simulate_portfolio_returns(
        correlation,
        w,
        model,
        n_sims=sim_cfg.n_sims,
        horizon_days=sim_cfg.horizon_days,
        marginal_volatility=config.marginal_volatility.for_family(model.name),
        seed=sim_cfg.seed,
        n_workers=sim_cfg.n_workers,
        batch_size=sim_cfg.batch_size,
        marginal_mode=sim_cfg.marginal_mode,
        factor=factor,
        cancel_event=cancel_event,
    )
    simulated = compute_risk_metrics(
        simulated_returns, sim_cfg.confidence, risk_cfg.risk_free_rate
    )

    diagnostics = compute_diagnostics(
        historical_returns,
        simulated_returns,
        model,
        n_assets,
        log_likelihood=log_likelihood,
        tail_threshold=risk_cfg.tail_threshold,
    )

    for message in warnings:
        logger.warning(message)

    return RiskReport(
        historical=historical,
        simulated=simulated,
        correlation_matrix=correlation,
        copula=model,
        assets=[str(c) for c in frame.columns],
        diagnostics=diagnostics,
        simulated_sample=simulated_returns[: sim_cfg.sample_size].copy(),
        n_simulations=sim_cfg.n_sims,
        horizon_days=sim_cfg.horizon_days,
        cholesky_policy=policy,
        warnings=warnings,
    )
