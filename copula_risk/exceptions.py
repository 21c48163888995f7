"""
Fault Taxonomy
==============
Typed failures raised by the risk engine.

Hard faults abort the analysis and reach the caller as exceptions.
Degraded-but-defined paths (zero correlation, zero volatility, clamped
Cholesky pivots, Archimedean dimension fallback) never raise; they are
logged and recorded in ``RiskReport.warnings`` instead.
"""

import numpy as np


class RiskEngineError(Exception):
    """Base class for all risk engine faults."""


class InsufficientDataError(RiskEngineError, ValueError):
    """Fewer than two aligned observations, an empty asset set, or an empty series."""


class NotPositiveSemiDefiniteError(RiskEngineError, np.linalg.LinAlgError):
    """Cholesky factorization met a negative pivot under a non-clamping policy."""

    def __init__(self, message: str, row: int = -1, pivot: float = float("nan")):
        super().__init__(message)
        self.row = row
        self.pivot = pivot


class SimulationCancelledError(RiskEngineError):
    """The Monte Carlo run was cancelled between trial batches."""

    def __init__(self, completed_batches: int, total_batches: int):
        super().__init__(
            f"Simulation cancelled after {completed_batches}/{total_batches} batches"
        )
        self.completed_batches = completed_batches
        self.total_batches = total_batches


class DimensionMismatchWarning(UserWarning):
    """Archimedean copula applied to other than two assets (pairwise fallback)."""
