"""
Copula Portfolio Risk Engine
============================
Multi-asset tail-risk model implementing:
- Pearson Correlation Estimation
- Cholesky Factorization with explicit non-PSD policy
- Gaussian, Student-t, Clayton and Gumbel Copula Sampling
- Parallel Monte Carlo Portfolio Simulation
- Historical & Simulated VaR, CVaR, Volatility, Drawdown, Sharpe
- Tail Dependence, Kendall's Tau, Goodness-of-Fit, AIC/BIC Diagnostics
- Volatility Shock and Correlation Stress Testing
"""

__version__ = "1.0.0"

from copula_risk.copulas import CopulaFamily, CopulaModel
from copula_risk.engine import RiskReport, run_risk_analysis

__all__ = ["CopulaFamily", "CopulaModel", "RiskReport", "run_risk_analysis"]
