"""
inference.py - P-values, Multiplier Bootstrap and FDR Control
=============================================================

Converts per-coordinate statistics into p-values (Gaussian or bootstrap)
and simultaneous decisions through an adaptive Benjamini-Hochberg rule.
"""

from __future__ import annotations
from typing import Callable, Optional, Union
import numpy as np
from scipy.stats import norm
from loguru import logger

from .types import Alternative

# Smallest retained subsample a bootstrap replicate may be estimated on
MIN_BOOT_SIZE = 2

# =============================================================================
# P-VALUES
# =============================================================================

def p_values(t_stat: np.ndarray, alternative: Union[Alternative, str] = Alternative.TWO_SIDED) -> np.ndarray:
    """
    Gaussian p-values of test statistics.

    Parameters
    ----------
    t_stat : ndarray (p,)
        Asymptotically standard normal statistics.
    alternative : Alternative or str
        "two.sided": 2 Phi(-|T|), "less": Phi(T), "greater": Phi(-T).
    """
    alternative = Alternative(alternative)
    t_stat = np.asarray(t_stat, dtype=float)
    if alternative is Alternative.TWO_SIDED:
        return 2 * norm.cdf(-np.abs(t_stat))
    elif alternative is Alternative.LESS:
        return norm.cdf(t_stat)
    return norm.cdf(-t_stat)


def bootstrap_p_values(
    mu: np.ndarray,
    boot: np.ndarray,
    h0: np.ndarray,
    alternative: Union[Alternative, str] = Alternative.TWO_SIDED
) -> np.ndarray:
    """
    Empirical p-values from bootstrap replicates.

    Parameters
    ----------
    mu : ndarray (p,)
        Point estimates.
    boot : ndarray (p, B)
        Bootstrap replicate estimates, one column per replicate.
    h0 : ndarray (p,)
        Null values.
    alternative : Alternative or str
        "two.sided" counts |boot - mu| >= |mu - h0|; "less" counts
        boot <= 2 mu - h0; "greater" counts boot >= 2 mu - h0.

    Returns
    -------
    ndarray (p,)
        Tail frequencies divided by B.
    """
    alternative = Alternative(alternative)
    mu = mu[:, np.newaxis]
    h0 = h0[:, np.newaxis]
    if alternative is Alternative.TWO_SIDED:
        hits = np.abs(boot - mu) >= np.abs(mu - h0)
    elif alternative is Alternative.LESS:
        hits = boot <= 2 * mu - h0
    else:
        hits = boot >= 2 * mu - h0
    return hits.sum(axis=1) / boot.shape[1]

# =============================================================================
# MULTIPLIER BOOTSTRAP
# =============================================================================

def bootstrap_indices(n: int, rng: np.random.Generator) -> np.ndarray:
    """
    Draw a Bernoulli(0.5) subset of the sample indices 0..n-1.

    Each index is kept when its uniform draw exceeds 0.5. Draws keeping
    fewer than two indices are repeated.
    """
    while True:
        idx = np.flatnonzero(rng.uniform(size=n) > 0.5)
        if idx.size >= min(MIN_BOOT_SIZE, n):
            return idx


def multiplier_bootstrap(
    estimator: Callable[[np.ndarray], np.ndarray],
    n: int,
    n_boot: int,
    rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """
    Run ``n_boot`` multiplier bootstrap replicates.

    Parameters
    ----------
    estimator : callable
        Maps an index array of retained samples to a (p,) estimate.
    n : int
        Number of samples to draw subsets from.
    n_boot : int
        Number of replicates B.
    rng : np.random.Generator, optional
        Random number generator; a fresh one if None.

    Returns
    -------
    boot : ndarray (p, B)
        One column per replicate.
    """
    rng = rng if rng is not None else np.random.default_rng()
    logger.debug(f"Running multiplier bootstrap | n={n}, B={n_boot}")
    return np.column_stack([estimator(bootstrap_indices(n, rng)) for _ in range(n_boot)])

# =============================================================================
# ADAPTIVE BENJAMINI-HOCHBERG
# =============================================================================

def adaptive_bh(pvals: np.ndarray, alpha: float = 0.05) -> np.ndarray:
    """
    Adaptive Benjamini-Hochberg rejection rule.

    Parameters
    ----------
    pvals : ndarray (p,)
        P-values in [0, 1].
    alpha : float, default=0.05
        Target false discovery rate.

    Returns
    -------
    significant : ndarray of bool (p,)
        True for rejected hypotheses.

    Notes
    -----
    The proportion of true nulls is estimated as
    pi_hat = #{p > alpha} / ((1 - alpha) p). Sorted p-values are scanned from
    the largest down for the first z_(i) pi_hat p <= alpha (i + 1); all
    p-values up to that threshold are rejected. Without such an index the
    threshold is -1 and nothing is rejected.

    Examples
    --------
    >>> adaptive_bh(np.zeros(5), alpha=0.05).all()
    True
    >>> adaptive_bh(np.ones(5), alpha=0.05).any()
    False
    """
    pvals = np.asarray(pvals, dtype=float)
    p = pvals.size
    pi_hat = np.count_nonzero(pvals > alpha) / ((1 - alpha) * p)
    z = np.sort(pvals)

    passed = np.flatnonzero(z * pi_hat * p <= alpha * np.arange(1, p + 1))
    threshold = z[passed[-1]] if passed.size else -1.0

    significant = pvals <= threshold
    if not significant.any():
        logger.info(f"No discoveries at FDR level {alpha}")
    return significant
