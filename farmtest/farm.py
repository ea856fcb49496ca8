"""
farm.py - Validated Entry Points
================================

Boundary layer of the package. Every public entry point validates its
inputs here, raising ValueError before any numerical work, and then
dispatches to the estimators or to the matching test procedure:

- farm_test: one- or two-sample, unadjusted, latent or observed factors,
  Gaussian or bootstrap p-values
- farm_cov: Huber covariance
- farm_mean: Huber mean
- farm_fdr: adaptive Benjamini-Hochberg rejections

Example Usage:
-------------
    >>> import numpy as np
    >>> from farmtest import farm_test
    >>>
    >>> rng = np.random.default_rng(1)
    >>> X = rng.standard_normal((60, 10))
    >>> X[:, 0] += 2.0
    >>> result = farm_test(X, alpha=0.1)
    >>> bool(result.significant[0])
    True
"""

from __future__ import annotations
from dataclasses import replace
from typing import Optional
import numpy as np
from loguru import logger

from . import procedures
from .estimation import huber_cov, huber_mean
from .inference import adaptive_bh
from .types import EstimationConfig, FarmTestResult, HuberCovResult

# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def _as_samples(X, name: str = "X") -> np.ndarray:
    """
    Convert input to a finite (n, p) float matrix with n >= 2.

    A 1D vector is treated as n samples of a single coordinate.
    """
    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    if X.ndim != 2:
        raise ValueError(f"{name} must be a 1D or 2D array, got {X.ndim}D")
    if X.shape[0] < 2:
        raise ValueError(f"{name} needs at least 2 samples, got {X.shape[0]}")
    if X.shape[1] < 1:
        raise ValueError(f"{name} needs at least 1 column")
    if not np.all(np.isfinite(X)):
        raise ValueError(f"{name} contains NaN or infinite values")
    return X


def _as_factors(F, n: int, name: str) -> np.ndarray:
    """Validate an observed factor matrix row-paired with n samples."""
    F = _as_samples(F, name)
    if F.shape[0] != n:
        raise ValueError(
            f"{name} must have the same number of rows as the data: {F.shape[0]} != {n}"
        )
    return F


def _as_null(h0, p: int) -> np.ndarray:
    """Broadcast h0 (None, scalar or (p,)) to a finite (p,) vector."""
    if h0 is None:
        return np.zeros(p)
    h0 = np.asarray(h0, dtype=float).ravel()
    if h0.size == 1:
        h0 = np.full(p, h0[0])
    if h0.size != p:
        raise ValueError(f"h0 must have length {p}, got {h0.size}")
    if not np.all(np.isfinite(h0)):
        raise ValueError("h0 contains NaN or infinite values")
    return h0


def _check_k(k: int, p: int, name: str) -> int:
    if int(k) != k:
        raise ValueError(f"{name} must be an integer, got {k}")
    if k > p:
        raise ValueError(f"{name} must be at most p={p}, got {k}")
    return int(k)


def _resolve_config(config: Optional[EstimationConfig], overrides: dict) -> EstimationConfig:
    """Apply keyword overrides to a config; replace() re-runs validation."""
    config = config or EstimationConfig()
    if overrides:
        unknown = set(overrides) - set(config.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown configuration options: {sorted(unknown)}")
        config = replace(config, **overrides)
    return config

# =============================================================================
# PUBLIC ENTRY POINTS
# =============================================================================

def farm_test(
    X,
    h0=None,
    Y=None,
    factors_x=None,
    factors_y=None,
    k_x: int = -1,
    k_y: int = -1,
    factor_adjusted: bool = True,
    bootstrap: bool = False,
    config: Optional[EstimationConfig] = None,
    rng: Optional[np.random.Generator] = None,
    **overrides
) -> FarmTestResult:
    """
    Factor-adjusted robust multiple testing of means.

    Parameters
    ----------
    X : array-like (n_x, p)
        First sample, one observation per row.
    h0 : float or array-like (p,), optional
        Null means (one sample) or null mean differences (two samples).
        Defaults to zero.
    Y : array-like (n_y, p), optional
        Second sample. When given a two-sample test is run.
    factors_x, factors_y : array-like (n, k), optional
        Observed factors for X and Y. When omitted, factors are latent and
        estimated from the data.
    k_x, k_y : int, default=-1
        Number of latent factors; values <= 0 select k automatically.
    factor_adjusted : bool, default=True
        Remove latent factors before testing. When False, or when p < 2 so
        that no factor structure can be estimated, the plain robust mean
        test is run. Ignored when observed factors are given.
    bootstrap : bool, default=False
        Use multiplier bootstrap p-values instead of Gaussian ones.
    config : EstimationConfig, optional
        Base configuration.
    rng : np.random.Generator, optional
        Source of randomness for the bootstrap.
    **overrides
        Fields of EstimationConfig to override, e.g. ``alpha=0.1``.

    Returns
    -------
    FarmTestResult
        The result dataclass of the dispatched procedure.

    Raises
    ------
    ValueError
        On malformed data, mismatched shapes, invalid k or configuration.
    """
    config = _resolve_config(config, overrides)
    X = _as_samples(X, "X")
    n_x, p = X.shape
    h0 = _as_null(h0, p)

    if factors_x is not None:
        factors_x = _as_factors(factors_x, n_x, "factors_x")
    else:
        k_x = _check_k(k_x, p, "k_x")
        if factor_adjusted and p < 2:
            logger.info(f"Too few coordinates (p={p}) to estimate factors; running plain test")
            factor_adjusted = False

    if Y is None:
        if factors_y is not None:
            raise ValueError("factors_y given without a second sample Y")
        if factors_x is not None:
            if bootstrap:
                return procedures.known_factor_test_boot(X, factors_x, h0, config, rng)
            return procedures.known_factor_test(X, factors_x, h0, config)
        if not factor_adjusted:
            if bootstrap:
                return procedures.mean_test_boot(X, h0, config, rng)
            return procedures.mean_test(X, h0, config)
        if bootstrap:
            return procedures.factor_adjusted_test_boot(X, h0, k_x, config, rng)
        return procedures.factor_adjusted_test(X, h0, k_x, config)

    Y = _as_samples(Y, "Y")
    if Y.shape[1] != p:
        raise ValueError(f"X and Y must have the same number of columns: {p} != {Y.shape[1]}")
    if (factors_x is None) != (factors_y is None):
        raise ValueError("factors_x and factors_y must be given together")

    if factors_x is not None:
        factors_y = _as_factors(factors_y, Y.shape[0], "factors_y")
        if bootstrap:
            return procedures.two_sample_known_factor_test_boot(
                X, factors_x, Y, factors_y, h0, config, rng
            )
        return procedures.two_sample_known_factor_test(X, factors_x, Y, factors_y, h0, config)

    k_y = _check_k(k_y, p, "k_y")
    if not factor_adjusted:
        if bootstrap:
            return procedures.two_sample_mean_test_boot(X, Y, h0, config, rng)
        return procedures.two_sample_mean_test(X, Y, h0, config)
    if bootstrap:
        return procedures.two_sample_factor_adjusted_test_boot(X, Y, h0, k_x, k_y, config, rng)
    return procedures.two_sample_factor_adjusted_test(X, Y, h0, k_x, k_y, config)


def farm_mean(x, config: Optional[EstimationConfig] = None) -> float:
    """
    Tuning-free Huber mean of a finite data vector.

    Raises
    ------
    ValueError
        If x is empty, not one-dimensional or contains non-finite values.
    """
    config = config or EstimationConfig()
    x = np.asarray(x, dtype=float)
    if x.ndim != 1:
        raise ValueError(f"x must be a 1D array, got {x.ndim}D")
    if x.size == 0:
        raise ValueError("x must not be empty")
    if not np.all(np.isfinite(x)):
        raise ValueError("x contains NaN or infinite values")
    return huber_mean(x, config.epsilon, config.ite_max, config.root_tol, config.root_ite_max)


def farm_cov(X, config: Optional[EstimationConfig] = None) -> HuberCovResult:
    """Tuning-free Huber covariance of a finite (n, p) matrix with n >= 2."""
    return huber_cov(_as_samples(X, "X"), config)


def farm_fdr(p_values, alpha: float = 0.05) -> np.ndarray:
    """
    Adaptive Benjamini-Hochberg rejections for a vector of p-values.

    Returns
    -------
    ndarray of bool
        True for rejected hypotheses.

    Raises
    ------
    ValueError
        If alpha is outside (0, 1) or a p-value is outside [0, 1].
    """
    if not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha must be strictly between 0 and 1, got {alpha}")
    p_values = np.asarray(p_values, dtype=float).ravel()
    if p_values.size == 0:
        raise ValueError("p_values must not be empty")
    if not np.all((p_values >= 0) & (p_values <= 1)):
        raise ValueError("p_values must lie in [0, 1]")
    significant = adaptive_bh(p_values, alpha)
    logger.debug(f"Adaptive BH rejected {int(significant.sum())} of {p_values.size}")
    return significant
