"""
estimation.py - Tuning-Free Huber Estimators of Location and Covariance
=======================================================================

Adaptive Huber estimation calibrates the robustification parameter tau from
the data at every iteration by solving a population moment equation:

    mean(min(r_i^2, tau^2)) / tau^2 = z / n

with z = log(n) for a single mean and z = 2 log(d) + log(n) when d^2
entries of a covariance matrix are estimated simultaneously. The equation is
monotone decreasing in tau^2 and is solved by bisection.

Uses loguru for diagnostics.
"""

from __future__ import annotations
from typing import Callable, Optional
import numpy as np
from loguru import logger

from .types import EstimationConfig, HuberCovResult

# =============================================================================
# HELPER: ONE-SIDED CORRECTION
# =============================================================================

def clamped_subtract(a, b):
    """
    Subtract ``b`` from ``a`` only where the result stays positive.

    Where ``a <= b`` the raw value of ``a`` is kept unchanged, so the
    correction never reports a negative second moment. This is a one-sided
    correction, not a floor at zero.

    Works element-wise on arrays and returns a float for scalar input.
    """
    a = np.asarray(a, dtype=float)
    out = np.where(a > b, a - b, a)
    return float(out) if out.ndim == 0 else out

# =============================================================================
# ROOT FINDER
# =============================================================================

def moment_equation(resid_sq: np.ndarray, n: int) -> Callable[[float], float]:
    """
    Build g(x) = mean(min(r^2, x)) / x - log(n) / n.

    Parameters
    ----------
    resid_sq : ndarray
        Squared residuals.
    n : int
        Sample size.
    """
    rhs = np.log(n) / n

    def g(x: float) -> float:
        return np.minimum(resid_sq, x).mean() / x - rhs

    return g


def moment_equation_dim(resid_sq: np.ndarray, n: int, d: int) -> Callable[[float], float]:
    """
    Build g(x) = mean(min(r^2, x)) / x - (2 log(d) + log(n)) / n.

    The mean runs over all ``len(resid_sq)`` entries (N pairwise terms for a
    covariance entry) while ``n`` is the original sample size and ``d`` the
    ambient dimension.
    """
    rhs = (2 * np.log(d) + np.log(n)) / n

    def g(x: float) -> float:
        return np.minimum(resid_sq, x).mean() / x - rhs

    return g


def bisection_root(
    func: Callable[[float], float],
    low: float,
    high: float,
    tol: float = 1e-4,
    ite_max: int = 500
) -> float:
    """
    Find the root of a monotone decreasing function by bisection.

    Parameters
    ----------
    func : callable
        Decreasing scalar function with func(low) >= 0 >= func(high).
    low, high : float
        Bracket bounds.
    tol : float, default=1e-4
        Absolute tolerance on the bracket width.
    ite_max : int, default=500
        Iteration cap.

    Returns
    -------
    float
        Midpoint of the final bracket. Never raises on non-convergence; an
        exact zero of ``func`` is returned as soon as it is hit.
    """
    if high <= low:
        return float(low)

    ite = 0
    while ite <= ite_max and high - low > tol:
        mid = (low + high) / 2
        val = func(mid)
        if val == 0:
            return float(mid)
        elif val < 0:
            high = mid
        else:
            low = mid
        ite += 1
    return float((low + high) / 2)

# =============================================================================
# HUBER MEAN
# =============================================================================

def _huber_iterate(
    x: np.ndarray,
    tau: float,
    make_equation: Callable[[np.ndarray], Callable[[float], float]],
    epsilon: float,
    ite_max: int,
    root_tol: float,
    root_ite_max: int
) -> float:
    """Fixed-point iteration shared by the Huber mean variants."""
    mu_old, tau_old = 0.0, 0.0
    mu_new, tau_new = float(x.mean()), float(tau)
    ite = 0

    while (abs(mu_new - mu_old) > epsilon or abs(tau_new - tau_old) > epsilon) and ite < ite_max:
        mu_old, tau_old = mu_new, tau_new
        res = x - mu_old
        res_sq = res ** 2
        high = res_sq.sum()
        if high == 0:
            # Every residual is zero: the current location is exact
            break
        tau_new = np.sqrt(bisection_root(
            make_equation(res_sq), res_sq.min(), high, tol=root_tol, ite_max=root_ite_max
        ))
        with np.errstate(divide="ignore"):
            w = np.minimum(tau_new / np.abs(res), 1.0)
        mu_new = float(x @ w / w.sum())
        ite += 1

    if abs(mu_new - mu_old) > epsilon or abs(tau_new - tau_old) > epsilon:
        logger.debug(f"Huber mean reached iteration cap ({ite_max}) | n={x.size}")
    return mu_new


def huber_mean(
    x: np.ndarray,
    epsilon: float = 1e-4,
    ite_max: int = 500,
    root_tol: float = 1e-4,
    root_ite_max: int = 500
) -> float:
    """
    Tuning-free Huber mean of a data vector.

    Parameters
    ----------
    x : ndarray (n,)
        Data vector.
    epsilon : float, default=1e-4
        Tolerance on successive location and tau iterates.
    ite_max : int, default=500
        Iteration cap of the fixed-point loop.
    root_tol, root_ite_max
        Bisection settings for the tau calibration.

    Returns
    -------
    float
        Robust location estimate. Samples with fewer than two observations
        return their arithmetic mean.

    Examples
    --------
    >>> x = np.array([1.0, 2.0, 3.0, 4.0, 50.0])
    >>> round(huber_mean(x), 1) < 5
    True
    """
    x = np.asarray(x, dtype=float).ravel()
    n = x.size
    if n < 2:
        return float(x.mean()) if n else float("nan")

    tau = x.std(ddof=1) * np.sqrt(n / np.log(n))
    return _huber_iterate(
        x, tau,
        lambda res_sq: moment_equation(res_sq, n),
        epsilon, ite_max, root_tol, root_ite_max
    )


def huber_mean_vec(X: np.ndarray, config: Optional[EstimationConfig] = None) -> np.ndarray:
    """Column-wise Huber mean of an (n, p) matrix."""
    config = config or EstimationConfig()
    return np.array([
        huber_mean(X[:, j], config.epsilon, config.ite_max, config.root_tol, config.root_ite_max)
        for j in range(X.shape[1])
    ])


def huber_mean_cov(
    z: np.ndarray,
    n: int,
    d: int,
    epsilon: float = 1e-4,
    ite_max: int = 500,
    root_tol: float = 1e-4,
    root_ite_max: int = 500
) -> float:
    """
    Huber mean calibrated for simultaneous estimation of covariance entries.

    Parameters
    ----------
    z : ndarray (N,)
        Pairwise terms, typically Y_i * Y_j / 2 over all N = n(n-1)/2
        sample pairs.
    n : int
        Original sample size.
    d : int
        Ambient dimension.
    """
    z = np.asarray(z, dtype=float).ravel()
    if z.size < 2:
        return float(z.mean()) if z.size else float("nan")

    tau = z.std(ddof=1) * np.sqrt(n / (2 * np.log(d) + np.log(n)))
    return _huber_iterate(
        z, tau,
        lambda res_sq: moment_equation_dim(res_sq, n, d),
        epsilon, ite_max, root_tol, root_ite_max
    )


def huber_variance(
    x: np.ndarray,
    mu: float,
    config: Optional[EstimationConfig] = None
) -> float:
    """
    Robust variance: Huber mean of x^2 minus mu^2 (one-sided correction).

    Parameters
    ----------
    x : ndarray (n,)
        Data vector.
    mu : float
        Robust location of ``x``.
    """
    config = config or EstimationConfig()
    theta = huber_mean(
        np.asarray(x, dtype=float) ** 2,
        config.epsilon, config.ite_max, config.root_tol, config.root_ite_max
    )
    return clamped_subtract(theta, mu * mu)

# =============================================================================
# HUBER COVARIANCE
# =============================================================================

def pairwise_differences(X: np.ndarray) -> np.ndarray:
    """
    All C(n, 2) row differences X[i] - X[j] for i < j, shape (N, p).
    """
    i, j = np.triu_indices(X.shape[0], k=1)
    return X[i] - X[j]


def huber_cov(X: np.ndarray, config: Optional[EstimationConfig] = None) -> HuberCovResult:
    """
    Tuning-free Huber-type covariance estimation.

    Parameters
    ----------
    X : ndarray (n, p)
        Data matrix with one sample per row.
    config : EstimationConfig, optional
        Tolerances and iteration caps.

    Returns
    -------
    HuberCovResult
        Column Huber means and the symmetric (p, p) covariance estimate.

    Notes
    -----
    Diagonal entries use the robust second moment of each column corrected
    by the squared robust mean. Off-diagonal entries are Huber means of
    Y_i * Y_j / 2 over all pairwise row differences Y, which cancel the
    location and confine an outlying sample to the pairs it belongs to.
    The difference matrix is built once; cost is O(n^2 p) for the
    differences and O(p^2) Huber means of length N = n(n-1)/2.
    """
    config = config or EstimationConfig()
    X = np.asarray(X, dtype=float)
    n, p = X.shape
    logger.info(f"Starting Huber covariance estimation: {n} samples, {p} coordinates")

    mu = np.empty(p)
    sigma = np.zeros((p, p))
    for j in range(p):
        mu[j] = huber_mean(X[:, j], config.epsilon, config.ite_max, config.root_tol, config.root_ite_max)
        sigma[j, j] = huber_variance(X[:, j], mu[j], config)

    if p > 1:
        Y = pairwise_differences(X)
        logger.debug(f"Built pairwise differences | Shape: {Y.shape}")
        for a in range(p - 1):
            for b in range(a + 1, p):
                sigma[a, b] = sigma[b, a] = huber_mean_cov(
                    Y[:, a] * Y[:, b] / 2, n, p,
                    config.epsilon, config.ite_max, config.root_tol, config.root_ite_max
                )

    logger.success(f"Huber covariance complete. Trace: {np.trace(sigma):.4f}")
    return HuberCovResult(means=mu, cov=sigma)
