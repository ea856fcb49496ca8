"""
types.py - Configuration and Result Types for farmtest

This module defines the data structures shared across the package:
- Alternative: The alternative hypothesis of a test
- EstimationConfig: Tolerances, iteration caps and testing options
- HuberCovResult / FactorSelection: Estimator outputs
- One frozen result dataclass per test driver shape

Design Principles:
-----------------
1. Immutability (frozen dataclasses for configuration and results)
2. Validation at construction time (fail-fast)
3. One result type per driver; no ambiguous Optional fields except where a
   quantity is genuinely not computed (e.g. the eigenvalue ratio when the
   number of factors is supplied)

Example Usage:
-------------
    >>> from farmtest.types import EstimationConfig, Alternative
    >>>
    >>> config = EstimationConfig(alpha=0.1, alternative="greater")
    >>> config.alternative is Alternative.GREATER
    True
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


# =============================================================================
# ENUMS
# =============================================================================

class Alternative(str, Enum):
    """Alternative hypothesis for per-coordinate mean tests."""
    TWO_SIDED = "two.sided"
    LESS = "less"
    GREATER = "greater"


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class EstimationConfig:
    """
    Tunable parameters of the estimation and testing engine.

    Parameters
    ----------
    epsilon : float, default=1e-4
        Convergence tolerance of the Huber mean fixed-point iteration.
    ite_max : int, default=500
        Iteration cap of the Huber mean fixed-point iteration.
    root_tol : float, default=1e-4
        Absolute tolerance of the bisection root finder.
    root_ite_max : int, default=500
        Iteration cap of the bisection root finder.
    reg_tol : float, default=1e-5
        Convergence tolerance of the robust regression solver.
    reg_const_tau : float, default=1.345
        Multiplier applied to the MAD scale to obtain the regression tau.
    reg_ite_max : int, default=500
        Iteration cap of the robust regression solver.
    alpha : float, default=0.05
        False discovery rate level, strictly between 0 and 1.
    alternative : Alternative or str, default="two.sided"
        One of "two.sided", "less" or "greater".
    n_boot : int, default=500
        Number of multiplier bootstrap replicates.

    Raises
    ------
    ValueError
        If any option is outside its valid range.

    Examples
    --------
    >>> config = EstimationConfig()
    >>> config.alpha
    0.05
    >>> EstimationConfig(alpha=1.5)
    Traceback (most recent call last):
    ...
    ValueError: alpha must be strictly between 0 and 1, got 1.5
    """
    epsilon: float = 1e-4
    ite_max: int = 500
    root_tol: float = 1e-4
    root_ite_max: int = 500
    reg_tol: float = 1e-5
    reg_const_tau: float = 1.345
    reg_ite_max: int = 500
    alpha: float = 0.05
    alternative: Alternative = Alternative.TWO_SIDED
    n_boot: int = 500

    def __post_init__(self):
        """Coerce the alternative and validate every option."""
        try:
            alternative = Alternative(self.alternative)
        except ValueError:
            valid = [a.value for a in Alternative]
            raise ValueError(
                f"alternative must be one of {valid}, got '{self.alternative}'"
            ) from None
        # Frozen dataclass: bypass __setattr__ for the coerced value
        object.__setattr__(self, "alternative", alternative)
        self.validate()

    def validate(self) -> None:
        """
        Check that every option lies in its valid range.

        Raises
        ------
        ValueError
            If a tolerance is not positive, a cap is below one, alpha is
            outside (0, 1) or the bootstrap size is not positive.
        """
        if not 0.0 < self.alpha < 1.0:
            raise ValueError(
                f"alpha must be strictly between 0 and 1, got {self.alpha}"
            )

        for name in ("epsilon", "root_tol", "reg_tol", "reg_const_tau"):
            value = getattr(self, name)
            if not value > 0:
                raise ValueError(f"{name} must be positive, got {value}")

        for name in ("ite_max", "root_ite_max", "reg_ite_max", "n_boot"):
            value = getattr(self, name)
            if int(value) != value or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value}")


# =============================================================================
# ESTIMATOR RESULTS
# =============================================================================

@dataclass(frozen=True)
class HuberCovResult:
    """
    Robust location and covariance of a sample matrix.

    Parameters
    ----------
    means : np.ndarray
        Huber mean of each column, shape (p,).
    cov : np.ndarray
        Symmetric robust covariance matrix, shape (p, p).
    """
    means: np.ndarray
    cov: np.ndarray

    @property
    def p(self) -> int:
        """Number of coordinates."""
        return self.means.shape[0]


@dataclass(frozen=True)
class FactorSelection:
    """
    Latent factor structure recovered from a robust covariance matrix.

    Parameters
    ----------
    loadings : np.ndarray
        Loading matrix with shape (p, k); column i is the i-th largest
        eigenvector scaled by the square root of its eigenvalue.
    n_factors : int
        Number of factors k.
    eigenvalues : np.ndarray
        Full eigenvalue spectrum in ascending order, shape (p,).
    ratio : np.ndarray or None
        Eigenvalue ratio curve used to choose k. None when k was supplied
        by the caller instead of being estimated.
    """
    loadings: np.ndarray
    n_factors: int
    eigenvalues: np.ndarray
    ratio: Optional[np.ndarray] = None

    @property
    def estimated(self) -> bool:
        """True if the number of factors was chosen by the ratio test."""
        return self.ratio is not None


# =============================================================================
# TEST RESULTS - ONE SAMPLE
# =============================================================================

@dataclass(frozen=True)
class OneSampleBootResult:
    """
    One-sample test with multiplier bootstrap p-values.

    Parameters
    ----------
    means : np.ndarray
        Robust mean estimates, shape (p,).
    p_values : np.ndarray
        Per-coordinate p-values, shape (p,).
    significant : np.ndarray
        Boolean rejection indicators from the adaptive BH procedure.
    """
    means: np.ndarray
    p_values: np.ndarray
    significant: np.ndarray

    @property
    def n_rejections(self) -> int:
        """Number of rejected hypotheses."""
        return int(np.count_nonzero(self.significant))

    @property
    def rejected(self) -> np.ndarray:
        """Indices of rejected hypotheses."""
        return np.flatnonzero(self.significant)


@dataclass(frozen=True)
class OneSampleResult(OneSampleBootResult):
    """
    One-sample test with Gaussian p-values.

    Adds the standard errors ``std_dev`` and test statistics ``t_stat``
    (both shape (p,)) to the bootstrap result fields.
    """
    std_dev: np.ndarray
    t_stat: np.ndarray


@dataclass(frozen=True)
class LatentFactorBootResult(OneSampleBootResult):
    """Factor-adjusted one-sample bootstrap test with estimated factors."""
    selection: FactorSelection

    @property
    def loadings(self) -> np.ndarray:
        return self.selection.loadings

    @property
    def n_factors(self) -> int:
        return self.selection.n_factors


@dataclass(frozen=True)
class LatentFactorResult(OneSampleResult):
    """
    Factor-adjusted one-sample test with estimated (latent) factors.

    ``selection`` carries the loadings, factor count, eigenvalues and the
    eigenvalue ratio curve.
    """
    selection: FactorSelection

    @property
    def loadings(self) -> np.ndarray:
        return self.selection.loadings

    @property
    def n_factors(self) -> int:
        return self.selection.n_factors


@dataclass(frozen=True)
class KnownFactorBootResult(OneSampleBootResult):
    """Factor-adjusted one-sample bootstrap test with observed factors."""
    n_factors: int


@dataclass(frozen=True)
class KnownFactorResult(OneSampleResult):
    """
    Factor-adjusted one-sample test with observed factors.

    ``loadings`` has shape (p, k) and holds the slope coefficients of each
    coordinate's robust regression on the factors.
    """
    loadings: np.ndarray
    n_factors: int


# =============================================================================
# TEST RESULTS - TWO SAMPLE
# =============================================================================

@dataclass(frozen=True)
class TwoSampleBootResult:
    """
    Two-sample test with multiplier bootstrap p-values.

    Parameters
    ----------
    means_x, means_y : np.ndarray
        Robust mean estimates of each sample, shape (p,).
    p_values : np.ndarray
        Per-coordinate p-values for the difference in means.
    significant : np.ndarray
        Boolean rejection indicators from the adaptive BH procedure.
    """
    means_x: np.ndarray
    means_y: np.ndarray
    p_values: np.ndarray
    significant: np.ndarray

    @property
    def n_rejections(self) -> int:
        """Number of rejected hypotheses."""
        return int(np.count_nonzero(self.significant))

    @property
    def rejected(self) -> np.ndarray:
        """Indices of rejected hypotheses."""
        return np.flatnonzero(self.significant)


@dataclass(frozen=True)
class TwoSampleResult(TwoSampleBootResult):
    """Two-sample test with Gaussian p-values and standard errors."""
    std_dev_x: np.ndarray
    std_dev_y: np.ndarray
    t_stat: np.ndarray


@dataclass(frozen=True)
class TwoSampleLatentFactorBootResult(TwoSampleBootResult):
    """Two-sample factor-adjusted bootstrap test with estimated factors."""
    selection_x: FactorSelection
    selection_y: FactorSelection


@dataclass(frozen=True)
class TwoSampleLatentFactorResult(TwoSampleResult):
    """Two-sample factor-adjusted test with estimated factors."""
    selection_x: FactorSelection
    selection_y: FactorSelection


@dataclass(frozen=True)
class TwoSampleKnownFactorBootResult(TwoSampleBootResult):
    """Two-sample factor-adjusted bootstrap test with observed factors."""
    n_factors_x: int
    n_factors_y: int


@dataclass(frozen=True)
class TwoSampleKnownFactorResult(TwoSampleResult):
    """Two-sample factor-adjusted test with observed factors."""
    loadings_x: np.ndarray
    loadings_y: np.ndarray
    n_factors_x: int
    n_factors_y: int


# =============================================================================
# TYPE ALIASES
# =============================================================================

FarmTestResult = Union[
    OneSampleResult,
    OneSampleBootResult,
    LatentFactorResult,
    LatentFactorBootResult,
    KnownFactorResult,
    KnownFactorBootResult,
    TwoSampleResult,
    TwoSampleBootResult,
    TwoSampleLatentFactorResult,
    TwoSampleLatentFactorBootResult,
    TwoSampleKnownFactorResult,
    TwoSampleKnownFactorBootResult,
]
