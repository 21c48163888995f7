"""
Copula Sampler
==============
Turns independent uniform(0,1) draws into dependent variates under one of
four dependence models.

Families:
    Gaussian:   X = L Φ⁻¹(U)
    Student-t:  X = L t_ν⁻¹(U)                    (Cornish-Fisher quantile)
    Clayton:    C = (1 + u1^-θ + u2^-θ - 2)^(-1/θ)  lower-tail dependence
    Gumbel:     C = exp(-((-ln u1)^θ + (-ln u2)^θ)^(1/θ))  upper-tail dependence

All samplers accept one draw of shape (N,) or a batch of shape (n, N) and
return the same shape. Clayton and Gumbel are bivariate; with N ≠ 2 the
transform is applied to the first pair and remaining coordinates pass
through unchanged.
"""

import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Union

import numpy as np

from copula_risk.cholesky import CholeskyFactor
from copula_risk.config import CopulaDefaults
from copula_risk.exceptions import DimensionMismatchWarning
from copula_risk.statistics import (
    inverse_standard_normal_cdf,
    matrix_vector_product,
    standard_normal_cdf,
    student_t_inverse_cdf,
)

logger = logging.getLogger(__name__)


class CopulaFamily(str, Enum):
    GAUSSIAN = "gaussian"
    STUDENT_T = "student_t"
    CLAYTON = "clayton"
    GUMBEL = "gumbel"

    @property
    def is_archimedean(self) -> bool:
        return self in (CopulaFamily.CLAYTON, CopulaFamily.GUMBEL)

    @classmethod
    def parse(cls, value: Union["CopulaFamily", str]) -> "CopulaFamily":
        """Accept enum members or names such as ``"student-t"``."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(f.value for f in cls)
            raise ValueError(f"Unknown copula family '{value}'. Expected one of: {valid}") from None


@dataclass(frozen=True)
class CopulaModel:
    """
    A copula family with its shape parameters.

    Use the constructors rather than building instances directly; they
    validate parameter domains.
    """
    family: CopulaFamily
    degrees_of_freedom: Optional[float] = None
    theta: Optional[float] = None

    def __post_init__(self):
        family = CopulaFamily.parse(self.family)
        object.__setattr__(self, "family", family)
        if family is CopulaFamily.STUDENT_T:
            if self.degrees_of_freedom is None or self.degrees_of_freedom <= 0:
                raise ValueError(f"Student-t copula needs degrees_of_freedom > 0, got {self.degrees_of_freedom}")
        elif family is CopulaFamily.CLAYTON:
            if self.theta is None or self.theta <= 0:
                raise ValueError(f"Clayton copula needs theta > 0, got {self.theta}")
        elif family is CopulaFamily.GUMBEL:
            if self.theta is None or self.theta < 1:
                raise ValueError(f"Gumbel copula needs theta >= 1, got {self.theta}")

    @classmethod
    def gaussian(cls) -> "CopulaModel":
        return cls(CopulaFamily.GAUSSIAN)

    @classmethod
    def student_t(cls, degrees_of_freedom: float = 5.0) -> "CopulaModel":
        return cls(CopulaFamily.STUDENT_T, degrees_of_freedom=float(degrees_of_freedom))

    @classmethod
    def clayton(cls, theta: float = 2.0) -> "CopulaModel":
        return cls(CopulaFamily.CLAYTON, theta=float(theta))

    @classmethod
    def gumbel(cls, theta: float = 1.5) -> "CopulaModel":
        return cls(CopulaFamily.GUMBEL, theta=float(theta))

    @classmethod
    def from_name(
        cls,
        name: Union[CopulaFamily, str],
        defaults: Optional[CopulaDefaults] = None,
    ) -> "CopulaModel":
        """Build a model for a family name using configured default parameters."""
        defaults = defaults or CopulaDefaults()
        family = CopulaFamily.parse(name)
        builders: Dict[CopulaFamily, Callable[[], CopulaModel]] = {
            CopulaFamily.GAUSSIAN: cls.gaussian,
            CopulaFamily.STUDENT_T: lambda: cls.student_t(defaults.degrees_of_freedom),
            CopulaFamily.CLAYTON: lambda: cls.clayton(defaults.clayton_theta),
            CopulaFamily.GUMBEL: lambda: cls.gumbel(defaults.gumbel_theta),
        }
        return builders[family]()

    @property
    def name(self) -> str:
        return self.family.value

    def describe(self) -> str:
        if self.family is CopulaFamily.STUDENT_T:
            return f"student_t(df={self.degrees_of_freedom:g})"
        if self.family.is_archimedean:
            return f"{self.family.value}(theta={self.theta:g})"
        return self.family.value


# ─────────────────────────────────────────────────────────────
# Elliptical copulas
# ─────────────────────────────────────────────────────────────

def _correlate(z: np.ndarray, factor: CholeskyFactor) -> np.ndarray:
    if z.shape[-1] != factor.dimension:
        raise ValueError(
            f"Draw dimension {z.shape[-1]} does not match factor dimension {factor.dimension}"
        )
    if z.ndim == 1:
        return matrix_vector_product(factor.lower, z)
    # Row-wise L z  →  Z Lᵀ
    return z @ factor.lower.T


def gaussian_copula(u: np.ndarray, factor: CholeskyFactor) -> np.ndarray:
    """
    Correlated standard normals from independent uniforms.

    Parameters
    ----------
    u : np.ndarray
        Uniforms in (0, 1), shape (N,) or (n, N).
    factor : CholeskyFactor
        Factor of the target correlation matrix.

    Returns
    -------
    np.ndarray
        Correlated N(0, 1) variates, same shape as ``u``.
    """
    z = np.asarray(inverse_standard_normal_cdf(np.asarray(u, dtype=float)), dtype=float)
    return _correlate(z, factor)


def student_t_copula(u: np.ndarray, factor: CholeskyFactor, degrees_of_freedom: float) -> np.ndarray:
    """
    Correlated heavy-tailed variates from independent uniforms.

    Each uniform is mapped through the Cornish-Fisher t quantile before
    the Cholesky correlation step, so tails are heavier than the Gaussian
    copula for the same correlation matrix.
    """
    t = np.asarray(student_t_inverse_cdf(np.asarray(u, dtype=float), degrees_of_freedom), dtype=float)
    return _correlate(t, factor)


# ─────────────────────────────────────────────────────────────
# Archimedean copulas (bivariate)
# ─────────────────────────────────────────────────────────────

def archimedean_dimension_warning(family: CopulaFamily, n_assets: int) -> Optional[str]:
    """
    Describe the pairwise fallback for an Archimedean family, if it applies.

    Returns ``None`` for elliptical families or exactly two assets.
    """
    family = CopulaFamily.parse(family)
    if not family.is_archimedean or n_assets == 2:
        return None
    if n_assets < 2:
        return (
            f"{family.value} copula is bivariate; with {n_assets} asset "
            "the draw passes through unchanged"
        )
    return (
        f"{family.value} copula is bivariate; with {n_assets} assets it is "
        f"applied to the first pair only and the remaining {n_assets - 2} "
        "coordinates pass through as independent uniforms"
    )


def warn_pairwise_fallback(family: CopulaFamily, n_assets: int, stacklevel: int = 2) -> Optional[str]:
    """
    Emit ``DimensionMismatchWarning`` when an Archimedean family meets N ≠ 2.

    Called once per simulation by the caller that owns the run; the
    samplers themselves stay silent so batched runs warn a single time.
    ``stacklevel`` counts from the caller of this function.
    """
    message = archimedean_dimension_warning(family, n_assets)
    if message:
        warnings.warn(message, DimensionMismatchWarning, stacklevel=stacklevel + 1)
        logger.debug(message)
    return message


def _split_pair(u: np.ndarray):
    """Return (batch copy, pair_available)."""
    batch = np.atleast_2d(np.asarray(u, dtype=float)).copy()
    return batch, batch.shape[1] >= 2


def clayton_copula(u: np.ndarray, theta: float) -> np.ndarray:
    """
    Clayton transform of the first uniform pair.

    Mathematical Definition:
        t = u1^(-θ) + u2^(-θ) - 2     (held at ≥ 0)
        c = (1 + t)^(-1/θ)            assigned to both coordinates

    Parameters
    ----------
    u : np.ndarray
        Uniforms in (0, 1), shape (N,) or (n, N).
    theta : float
        Shape parameter, θ > 0.

    Returns
    -------
    np.ndarray
        Same shape as ``u``.
    """
    if theta <= 0:
        raise ValueError(f"Clayton theta must be positive, got {theta}")

    u_in = np.asarray(u, dtype=float)
    batch, has_pair = _split_pair(u_in)
    if has_pair:
        u1, u2 = batch[:, 0], batch[:, 1]
        t = np.maximum(u1 ** (-theta) + u2 ** (-theta) - 2.0, 0.0)
        c = (1.0 + t) ** (-1.0 / theta)
        batch[:, 0] = c
        batch[:, 1] = c

    return batch[0] if u_in.ndim == 1 else batch


def gumbel_copula(u: np.ndarray, theta: float) -> np.ndarray:
    """
    Gumbel transform of the first uniform pair.

    Mathematical Definition:
        t = (-ln u1)^θ + (-ln u2)^θ
        c = exp(-t^(1/θ))             assigned to both coordinates

    θ = 1 is the independence case (c = u1·u2).
    """
    if theta < 1:
        raise ValueError(f"Gumbel theta must be >= 1, got {theta}")

    u_in = np.asarray(u, dtype=float)
    batch, has_pair = _split_pair(u_in)
    if has_pair:
        u1, u2 = batch[:, 0], batch[:, 1]
        t = (-np.log(u1)) ** theta + (-np.log(u2)) ** theta
        c = np.exp(-(t ** (1.0 / theta)))
        batch[:, 0] = c
        batch[:, 1] = c

    return batch[0] if u_in.ndim == 1 else batch


# ─────────────────────────────────────────────────────────────
# Dispatch
# ─────────────────────────────────────────────────────────────

def sample_copula(
    u: np.ndarray,
    model: CopulaModel,
    factor: Optional[CholeskyFactor] = None,
) -> np.ndarray:
    """
    Apply the sampler for ``model`` to a draw of uniforms.

    Parameters
    ----------
    u : np.ndarray
        Independent uniforms, shape (N,) or (n, N).
    model : CopulaModel
        Dependence model.
    factor : CholeskyFactor, optional
        Required by the Gaussian and Student-t families.

    Returns
    -------
    np.ndarray
        Dependent variates: normal/t scale for elliptical families,
        uniform scale for Archimedean families.
    """
    family = model.family
    if family in (CopulaFamily.GAUSSIAN, CopulaFamily.STUDENT_T) and factor is None:
        raise ValueError(f"{family.value} copula requires a Cholesky factor")

    samplers: Dict[CopulaFamily, Callable[[], np.ndarray]] = {
        CopulaFamily.GAUSSIAN: lambda: gaussian_copula(u, factor),
        CopulaFamily.STUDENT_T: lambda: student_t_copula(u, factor, model.degrees_of_freedom),
        CopulaFamily.CLAYTON: lambda: clayton_copula(u, model.theta),
        CopulaFamily.GUMBEL: lambda: gumbel_copula(u, model.theta),
    }
    return samplers[family]()


def to_uniform(variates: np.ndarray, model: CopulaModel) -> np.ndarray:
    """
    Map sampler output back onto (0, 1).

    Elliptical variates go through Φ; Archimedean output is already uniform.
    The Student-t variates are mapped with Φ as well, which keeps the
    ranks but not the exact t marginal.
    """
    variates = np.asarray(variates, dtype=float)
    if model.family.is_archimedean:
        return variates
    return np.asarray(standard_normal_cdf(variates), dtype=float)
