"""
conftest.py - Pytest Configuration and Shared Fixtures

Fixtures used across the test modules, organized by category:
- Random number generators (for reproducibility)
- Correlation matrices
- Return matrices and weights
"""

import numpy as np
import pandas as pd
import pytest

from copula_risk.portfolio import (
    DEMO_CORRELATION,
    DEMO_WEIGHTS,
    compute_log_returns,
    generate_synthetic_prices,
)


# =============================================================================
# RANDOM NUMBER GENERATORS
# =============================================================================

@pytest.fixture
def rng():
    """
    Provide a seeded random number generator for reproducible tests.

    All tests drawing random numbers should use this fixture (or derive
    from it) so that runs are reproducible.
    """
    return np.random.default_rng(seed=42)


# =============================================================================
# CORRELATION MATRICES
# =============================================================================

@pytest.fixture
def demo_correlation():
    """The 4x4 demo portfolio correlation matrix (positive definite)."""
    return DEMO_CORRELATION.copy()


@pytest.fixture
def non_psd_correlation():
    """
    A symmetric unit-diagonal matrix that is not positive semi-definite.

    Assets 0-1 and 1-2 are strongly positively correlated while 0-2 is
    strongly negative, which no joint distribution can produce.
    """
    return np.array([
        [1.0, 0.9, -0.9],
        [0.9, 1.0, 0.9],
        [-0.9, 0.9, 1.0],
    ])


# =============================================================================
# RETURNS & WEIGHTS
# =============================================================================

@pytest.fixture
def demo_prices():
    """252 days of synthetic prices for the four demo assets."""
    return generate_synthetic_prices(n_days=252, seed=7)


@pytest.fixture
def demo_returns(demo_prices):
    """Log returns of the demo prices (251 x 4)."""
    return compute_log_returns(demo_prices)


@pytest.fixture
def demo_weights():
    """Demo portfolio weights in column order (sum to 1)."""
    return np.array(list(DEMO_WEIGHTS.values()))


@pytest.fixture
def two_asset_returns(rng):
    """
    Two correlated return series (500 x 2) with ρ ≈ 0.6.
    """
    z1 = rng.standard_normal(500)
    z2 = 0.6 * z1 + 0.8 * rng.standard_normal(500)
    return pd.DataFrame({"A": 0.01 * z1, "B": 0.015 * z2})
