"""
Engine Configuration
====================
Frozen dataclasses holding every tunable default of the risk engine,
with an optional YAML loader.

Example YAML::

    simulation:
      n_sims: 20000
      seed: 7
      n_workers: 4
    risk:
      cholesky_policy: raise
    marginal_volatility:
      student_t: 0.03
"""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────
TRADING_DAYS_PER_YEAR: int = 252
DEFAULT_CONFIDENCE: float = 95.0
DEFAULT_NUM_SIMULATIONS: int = 10_000


@dataclass(frozen=True)
class CopulaDefaults:
    """
    Fixed copula shape parameters.

    Parameters are heuristic defaults, not estimated from data.
    """
    degrees_of_freedom: float = 5.0
    clayton_theta: float = 2.0
    gumbel_theta: float = 1.5


@dataclass(frozen=True)
class MarginalVolatility:
    """
    Daily marginal volatility applied to every asset, per copula family.

    Uncalibrated configuration defaults.
    """
    gaussian: float = 0.015
    student_t: float = 0.025
    clayton: float = 0.020
    gumbel: float = 0.020

    def for_family(self, family: str) -> float:
        return float(getattr(self, family))


@dataclass(frozen=True)
class SimulationConfig:
    n_sims: int = DEFAULT_NUM_SIMULATIONS
    horizon_days: int = 1
    confidence: float = DEFAULT_CONFIDENCE
    seed: Optional[int] = None
    n_workers: int = 1
    batch_size: int = 5_000
    marginal_mode: str = "independent"  # "independent" | "copula"
    sample_size: int = 1_000  # simulated returns kept in the report


@dataclass(frozen=True)
class RiskConfig:
    risk_free_rate: float = 0.02
    cholesky_policy: str = "clamp"  # "clamp" | "raise" | "regularize"
    tail_threshold: float = 0.95


@dataclass(frozen=True)
class EngineConfig:
    copula: CopulaDefaults = field(default_factory=CopulaDefaults)
    marginal_volatility: MarginalVolatility = field(default_factory=MarginalVolatility)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)

    def with_overrides(self, **simulation_overrides: Any) -> "EngineConfig":
        """Return a copy with selected ``SimulationConfig`` fields replaced."""
        overrides = {k: v for k, v in simulation_overrides.items() if v is not None}
        return replace(self, simulation=replace(self.simulation, **overrides))


_SECTIONS = {
    "copula": CopulaDefaults,
    "marginal_volatility": MarginalVolatility,
    "simulation": SimulationConfig,
    "risk": RiskConfig,
}


def _build_section(name: str, cls: type, raw: Optional[Dict[str, Any]]) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ValueError(f"Config section '{name}' must be a mapping, got {type(raw).__name__}")

    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown keys in config section '{name}': {sorted(unknown)}")
    return cls(**raw)


def config_from_dict(raw: Optional[Dict[str, Any]]) -> EngineConfig:
    """
    Build an ``EngineConfig`` from a nested mapping.

    Missing sections fall back to defaults; unknown sections or keys
    raise ``ValueError``.
    """
    raw = raw or {}
    unknown = set(raw) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown config sections: {sorted(unknown)}")

    sections = {name: _build_section(name, cls, raw.get(name)) for name, cls in _SECTIONS.items()}
    return EngineConfig(**sections)


def load_config(path: Union[str, Path, None] = None) -> EngineConfig:
    """
    Load engine configuration from a YAML file.

    Parameters
    ----------
    path : str or Path, optional
        YAML file. ``None`` returns the defaults.

    Returns
    -------
    EngineConfig
    """
    if path is None:
        return EngineConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    return config_from_dict(raw)
