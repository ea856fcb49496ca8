"""
regression.py - Robust Huber Regression with Barzilai-Borwein Steps
===================================================================

Gradient descent on the Huber loss with an adaptive (MAD based) tau and
Barzilai-Borwein step sizes. Used directly for regressions on observed
factors and as the loading regression of the latent-factor pipeline.
"""

from __future__ import annotations
from typing import Optional
import numpy as np
from loguru import logger

from .estimation import huber_mean
from .types import EstimationConfig

# Consistency constant of the MAD at the normal distribution
MAD_SCALE = 0.6744898

# =============================================================================
# LOSS AND SCALE HELPERS
# =============================================================================

def mad(x: np.ndarray) -> float:
    """Median absolute deviation, scaled to estimate the standard deviation."""
    return float(np.median(np.abs(x - np.median(x))) / MAD_SCALE)


def huber_loss(r: np.ndarray, tau: float) -> float:
    """Average Huber loss: quadratic inside [-tau, tau], linear outside."""
    a = np.abs(r)
    return float(np.where(a <= tau, r * r / 2, tau * a - tau * tau / 2).mean())


def huber_derivative(r: np.ndarray, tau: float) -> np.ndarray:
    """Derivative of the Huber loss with respect to the fit: -psi(r)."""
    return np.where(np.abs(r) <= tau, -r, -tau * np.sign(r))


def column_scale(X: np.ndarray) -> np.ndarray:
    """Column (ddof=1) standard deviations; zero for a single row."""
    if X.shape[0] < 2:
        return np.zeros(X.shape[1])
    return X.std(axis=0, ddof=1)


def standardize(X: np.ndarray) -> np.ndarray:
    """
    Center each column and scale it to unit (ddof=1) standard deviation.

    Columns without spread are returned as zeros.
    """
    scale = column_scale(X)
    centered = X - X.mean(axis=0)
    return np.divide(centered, scale, out=np.zeros_like(centered), where=scale > 0)


def huber_tau(r: np.ndarray, const_tau: float) -> float:
    """Robustification level const_tau * MAD(r), falling back to the SD when the MAD is 0."""
    scale = mad(r)
    if scale == 0:
        scale = float(r.std())
    return const_tau * scale

# =============================================================================
# SOLVER
# =============================================================================

def huber_reg(
    X: np.ndarray,
    Y: np.ndarray,
    tol: float = 1e-5,
    const_tau: float = 1.345,
    ite_max: int = 500,
    config: Optional[EstimationConfig] = None
) -> np.ndarray:
    """
    Robust linear regression of Y on X under Huber loss.

    Parameters
    ----------
    X : ndarray (n, p)
        Design matrix without intercept column.
    Y : ndarray (n,)
        Response vector.
    tol : float, default=1e-5
        Tolerance on both the loss change and the infinity-norm change of
        the coefficients.
    const_tau : float, default=1.345
        tau = const_tau * MAD(residuals), re-calibrated every iteration.
    ite_max : int, default=500
        Iteration cap.
    config : EstimationConfig, optional
        Settings for the final intercept Huber mean.

    Returns
    -------
    coef : ndarray (p + 1,)
        Intercept followed by the slopes on the original scale of X.

    Notes
    -----
    Columns are standardized before descent. After convergence the slopes
    are divided by the column standard deviations and the intercept is
    re-estimated as the Huber mean of Y - X @ slopes. Columns without spread
    (including every column of a single-row design) get a zero slope.
    """
    config = config or EstimationConfig()
    X = np.asarray(X, dtype=float)
    Y = np.asarray(Y, dtype=float).ravel()
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    n, p = X.shape

    Z = np.empty((n, p + 1))
    Z[:, 0] = 1.0
    Z[:, 1:] = standardize(X)

    beta_old = np.zeros(p + 1)
    tau = huber_tau(Y, const_tau)
    grad_old = Z.T @ huber_derivative(Y, tau) / n
    loss_old = huber_loss(Y, tau)
    beta_new = beta_old - grad_old
    res = Y - Z @ beta_new
    loss_new = huber_loss(res, tau)

    ite = 1
    while (
        (abs(loss_new - loss_old) > tol or np.max(np.abs(beta_new - beta_old)) > tol)
        and ite <= ite_max
    ):
        tau = huber_tau(res, const_tau)
        grad_new = Z.T @ huber_derivative(res, tau) / n
        grad_diff = grad_new - grad_old
        beta_diff = beta_new - beta_old

        step = 1.0
        cross = beta_diff @ grad_diff
        if cross > 0:
            a1 = cross / (grad_diff @ grad_diff)
            a2 = (beta_diff @ beta_diff) / cross
            step = min(a1, a2, 1.0)

        beta_old, grad_old, loss_old = beta_new, grad_new, loss_new
        beta_new = beta_new - step * grad_new
        res = res + step * (Z @ grad_new)
        loss_new = huber_loss(res, tau)
        ite += 1

    if abs(loss_new - loss_old) > tol or np.max(np.abs(beta_new - beta_old)) > tol:
        logger.debug(f"Huber regression reached iteration cap ({ite_max}) | n={n}, p={p}")

    scale = column_scale(X)
    coef = beta_new.copy()
    coef[1:] = np.divide(coef[1:], scale, out=np.zeros(p), where=scale > 0)
    coef[0] = huber_mean(
        Y - X @ coef[1:], config.epsilon, config.ite_max, config.root_tol, config.root_ite_max
    )
    return coef


def huber_reg_config(X: np.ndarray, Y: np.ndarray, config: EstimationConfig) -> np.ndarray:
    """Run :func:`huber_reg` with the regression settings of ``config``."""
    return huber_reg(
        X, Y,
        tol=config.reg_tol,
        const_tau=config.reg_const_tau,
        ite_max=config.reg_ite_max,
        config=config
    )
