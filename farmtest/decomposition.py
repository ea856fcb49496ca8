"""
decomposition.py - Latent Factor Selection from a Robust Covariance
===================================================================

Eigendecomposition of the Huber covariance, eigenvalue-ratio selection of
the number of factors and construction of the loading matrix.
Uses loguru for diagnostics.
"""

from __future__ import annotations
from typing import Tuple
import numpy as np
import scipy.linalg
from loguru import logger

from .types import FactorSelection

# =============================================================================
# HELPER: LOW-LEVEL SOLVER
# =============================================================================

def _eigh_ascending(cov: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Symmetric eigendecomposition with eigenvalues in ascending order.
    Column p-1 of the eigenvector matrix belongs to the largest eigenvalue.
    """
    if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
        logger.error("Eigendecomposition failed: covariance must be square.")
        raise ValueError(f"Covariance must be square, got shape {cov.shape}")

    logger.debug(f"Using Dense Eigensolver (LAPACK) | p={cov.shape[0]}")
    return scipy.linalg.eigh(cov)

# =============================================================================
# FACTOR NUMBER SELECTION
# =============================================================================

def eigen_ratio(eigenvalues: np.ndarray, n: int, p: int) -> np.ndarray:
    """
    Ratios of consecutive leading eigenvalues.

    Parameters
    ----------
    eigenvalues : ndarray (p,)
        Eigenvalues in ascending order.
    n : int
        Sample size.
    p : int
        Dimension.

    Returns
    -------
    ratio : ndarray
        ratio[i] = lambda_(p-1-i) / lambda_(p-2-i) for i < len, where
        len = min(n, p) - 1 if min(n, p) < 4 else min(n, p) // 2.

    Notes
    -----
    When len is 0 (only possible for min(n, p) == 1) the ratio test is not
    performed and a single-element array holding eigenvalues[p - 1] is
    returned, which leads to one factor being selected.
    """
    m = min(n, p)
    length = m - 1 if m < 4 else m // 2
    if length == 0:
        logger.warning(f"Eigenvalue ratio undefined for min(n, p)={m}; skipping factor selection")
        return np.array([eigenvalues[p - 1]])

    desc = eigenvalues[::-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        return desc[:length] / desc[1 : length + 1]


def select_n_factors(ratio: np.ndarray) -> int:
    """Number of factors maximizing the eigenvalue ratio (argmax + 1)."""
    return int(np.argmax(ratio)) + 1


def factor_loadings(eigenvalues: np.ndarray, eigenvectors: np.ndarray, k: int) -> np.ndarray:
    """
    Loading matrix from the k leading eigenpairs.

    Returns
    -------
    B : ndarray (p, k)
        Column i-1 is sqrt(max(lambda_(p-i), 0)) * v_(p-i); negative
        eigenvalues from rounding error are clipped to zero.
    """
    p = eigenvalues.shape[0]
    idx = np.arange(p - 1, p - 1 - k, -1)
    lam = np.sqrt(np.maximum(eigenvalues[idx], 0.0))
    return eigenvectors[:, idx] * lam

# =============================================================================
# MAIN SELECTION FUNCTION
# =============================================================================

def estimate_factors(cov: np.ndarray, n: int, k: int = -1) -> FactorSelection:
    """
    Estimate the latent factor structure of a robust covariance matrix.

    Parameters
    ----------
    cov : ndarray (p, p)
        Symmetric covariance estimate.
    n : int
        Sample size the covariance was estimated from.
    k : int, default=-1
        Number of factors. Values <= 0 trigger the eigenvalue ratio test.

    Returns
    -------
    FactorSelection
        Loadings, factor count, ascending eigenvalues and ratio curve
        (None when k was supplied).

    Raises
    ------
    ValueError
        If cov is not square or k exceeds the dimension.
    """
    eigenvalues, eigenvectors = _eigh_ascending(np.asarray(cov, dtype=float))
    p = eigenvalues.shape[0]

    if k > p:
        raise ValueError(f"k must be in range [1, {p}], got k={k}")

    ratio = None
    if k <= 0:
        ratio = eigen_ratio(eigenvalues, n, p)
        k = select_n_factors(ratio)
        logger.info(f"Eigenvalue ratio test selected k={k} factors (p={p}, n={n})")

    if eigenvalues[-1] <= 0:
        logger.warning("Covariance spectrum is non-positive; loadings are zero")

    B = factor_loadings(eigenvalues, eigenvectors, k)
    return FactorSelection(loadings=B, n_factors=k, eigenvalues=eigenvalues, ratio=ratio)
