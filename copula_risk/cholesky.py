"""
Cholesky Factorization
======================
Decomposes a symmetric correlation matrix into a lower-triangular factor
used to inject correlation into independent draws.

Mathematical Foundation:
    M = L Lᵀ
    L_jj = sqrt(M_jj - Σ_{k<j} L_jk²)
    L_ij = (M_ij - Σ_{k<j} L_ik L_jk) / L_jj      (i > j)

Negative pivots mean the input is not positive semi-definite. What happens
next is decided by an explicit ``CholeskyPolicy``; the factor records the
policy and whether it had to intervene.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

import numpy as np

from copula_risk.exceptions import NotPositiveSemiDefiniteError

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────
PIVOT_TOLERANCE: float = 1e-12
REGULARIZATION_STEPS: Tuple[float, ...] = (1e-8, 1e-6)


class CholeskyPolicy(str, Enum):
    """Handling of negative pivots."""
    CLAMP = "clamp"            # clamp to zero, continue with a singular factor
    RAISE = "raise"            # raise NotPositiveSemiDefiniteError
    REGULARIZE = "regularize"  # add ε·I and retry, raise if still failing


@dataclass(frozen=True)
class CholeskyFactor:
    """
    Lower-triangular factor with provenance.

    Attributes
    ----------
    lower : np.ndarray
        L such that L Lᵀ ≈ M.
    policy : CholeskyPolicy
        Policy in effect when the factor was computed.
    degenerate : bool
        True when the policy had to alter the input (clamped pivots or
        diagonal regularization). Sampling with a clamped factor yields
        zero-variance directions.
    """
    lower: np.ndarray
    policy: CholeskyPolicy
    degenerate: bool = False

    @property
    def dimension(self) -> int:
        return self.lower.shape[0]


def _factorize(matrix: np.ndarray, clamp: bool) -> Tuple[np.ndarray, bool]:
    """
    Cholesky-Banachiewicz recursion, row by row.

    Returns the factor and whether any pivot was clamped. With
    ``clamp=False`` a negative pivot raises NotPositiveSemiDefiniteError.
    """
    n = matrix.shape[0]
    L = np.zeros((n, n))
    clamped = False

    for i in range(n):
        for j in range(i + 1):
            s = float(np.dot(L[i, :j], L[j, :j]))
            if i == j:
                pivot = matrix[i, i] - s
                if pivot < 0.0:
                    if not clamp and pivot < -PIVOT_TOLERANCE:
                        raise NotPositiveSemiDefiniteError(
                            f"Matrix is not positive semi-definite: pivot {pivot:.3e} at row {i}",
                            row=i,
                            pivot=pivot,
                        )
                    clamped = clamped or pivot < -PIVOT_TOLERANCE
                    pivot = 0.0
                L[i, i] = np.sqrt(pivot)
            else:
                L[i, j] = (matrix[i, j] - s) / L[j, j] if L[j, j] != 0.0 else 0.0

    return L, clamped


def cholesky_decomposition(
    matrix: np.ndarray,
    policy: Union[CholeskyPolicy, str] = CholeskyPolicy.CLAMP,
) -> CholeskyFactor:
    """
    Factor a symmetric matrix into L with L Lᵀ ≈ M.

    Parameters
    ----------
    matrix : np.ndarray
        Symmetric matrix (N x N), typically a correlation matrix.
    policy : CholeskyPolicy or str
        ``clamp`` (default), ``raise`` or ``regularize``.

    Returns
    -------
    CholeskyFactor

    Raises
    ------
    ValueError
        If the matrix is not square.
    NotPositiveSemiDefiniteError
        Under ``raise``, or under ``regularize`` when every
        regularization step still fails.
    """
    policy = CholeskyPolicy(policy)
    m = np.asarray(matrix, dtype=float)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ValueError(f"Cholesky input must be square, got shape {m.shape}")

    if policy is CholeskyPolicy.CLAMP:
        L, clamped = _factorize(m, clamp=True)
        if clamped:
            logger.warning(
                "Correlation matrix is not positive semi-definite; "
                "negative pivots clamped to zero (singular factor)"
            )
        return CholeskyFactor(lower=L, policy=policy, degenerate=clamped)

    if policy is CholeskyPolicy.RAISE:
        L, _ = _factorize(m, clamp=False)
        return CholeskyFactor(lower=L, policy=policy)

    try:
        L, _ = _factorize(m, clamp=False)
        return CholeskyFactor(lower=L, policy=policy)
    except NotPositiveSemiDefiniteError as exc:
        last_error = exc

    n = m.shape[0]
    for epsilon in REGULARIZATION_STEPS:
        try:
            L, _ = _factorize(m + epsilon * np.eye(n), clamp=False)
        except NotPositiveSemiDefiniteError as exc:
            last_error = exc
            continue
        logger.warning("Correlation matrix regularized with epsilon=%.0e", epsilon)
        return CholeskyFactor(lower=L, policy=policy, degenerate=True)

    raise last_error


def reconstruct(factor: Union[CholeskyFactor, np.ndarray]) -> np.ndarray:
    """Return L Lᵀ for a factor."""
    L = factor.lower if isinstance(factor, CholeskyFactor) else np.asarray(factor, dtype=float)
    return L @ L.T
