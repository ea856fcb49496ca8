"""
procedures.py - Robust and Factor-Adjusted Multiple Mean Testing
================================================================

End-to-end testing procedures composed from the Huber estimators, the
robust regression solver, the factor selector and the FDR layer:

- mean_test / mean_test_boot: robust one-sample tests
- two_sample_mean_test / two_sample_mean_test_boot
- factor_adjusted_test(_boot): latent factors estimated from the data
- two_sample_factor_adjusted_test(_boot)
- known_factor_test(_boot): observed factors supplied by the caller
- two_sample_known_factor_test(_boot)

Every procedure is a pure function of its inputs. Inputs are expected to be
validated already (see ``farmtest.farm``). Bootstrap procedures draw from
the ``rng`` they are given.

Example Usage:
-------------
    >>> import numpy as np
    >>> from farmtest.procedures import mean_test
    >>> from farmtest.types import EstimationConfig
    >>>
    >>> rng = np.random.default_rng(0)
    >>> X = rng.standard_t(df=3, size=(100, 20))
    >>> result = mean_test(X, np.zeros(20), EstimationConfig())
    >>> result.p_values.shape
    (20,)
"""

from __future__ import annotations
from typing import Optional, Tuple
import numpy as np
from loguru import logger

from .decomposition import estimate_factors
from .estimation import clamped_subtract, huber_cov, huber_mean_vec, huber_variance
from .inference import adaptive_bh, bootstrap_p_values, multiplier_bootstrap, p_values
from .regression import huber_reg_config
from .types import (
    EstimationConfig,
    FactorSelection,
    KnownFactorBootResult,
    KnownFactorResult,
    LatentFactorBootResult,
    LatentFactorResult,
    OneSampleBootResult,
    OneSampleResult,
    TwoSampleBootResult,
    TwoSampleKnownFactorBootResult,
    TwoSampleKnownFactorResult,
    TwoSampleLatentFactorBootResult,
    TwoSampleLatentFactorResult,
    TwoSampleResult,
)

# =============================================================================
# HELPERS: ROBUST MOMENTS
# =============================================================================

def _null_vector(h0, p: int) -> np.ndarray:
    """Broadcast a scalar or (p,) null hypothesis to a (p,) float array."""
    return np.broadcast_to(np.asarray(h0, dtype=float), (p,)).copy()


def _robust_moments(X: np.ndarray, config: EstimationConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Column Huber means and one-sided corrected Huber variances."""
    mu = huber_mean_vec(X, config)
    sigma = np.array([huber_variance(X[:, j], mu[j], config) for j in range(X.shape[1])])
    return mu, sigma


def _latent_moments(
    X: np.ndarray,
    k: int,
    config: EstimationConfig
) -> Tuple[np.ndarray, np.ndarray, FactorSelection]:
    """
    Factor-adjusted means and variances with factors estimated from X.

    The loadings B come from the Huber covariance; the factor realisation f
    is the slope vector of a robust regression of the column means on B.
    Means are corrected by B f and variances by the squared row norms of B.
    """
    n = X.shape[0]
    cov = huber_cov(X, config)
    selection = estimate_factors(cov.cov, n, k)
    B = selection.loadings

    f = huber_reg_config(B, X.mean(axis=0), config)[1:]
    sigma = clamped_subtract(np.diag(cov.cov), np.sum(B ** 2, axis=1))
    mu = cov.means - B @ f
    return mu, sigma, selection


def _latent_replicate(X: np.ndarray, B: np.ndarray, config: EstimationConfig):
    """Estimator of factor-adjusted means on a row subset, loadings fixed."""
    def estimate(idx: np.ndarray) -> np.ndarray:
        sub = X[idx]
        f = huber_reg_config(B, sub.mean(axis=0), config)[1:]
        return huber_mean_vec(sub, config) - B @ f
    return estimate


def _known_moments(
    X: np.ndarray,
    factors: np.ndarray,
    config: EstimationConfig
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Intercepts, factor-adjusted variances and loadings from per-coordinate
    robust regressions of X on observed factors.
    """
    p, k = X.shape[1], factors.shape[1]
    sigma_f = np.atleast_2d(np.cov(factors, rowvar=False))

    mu = np.empty(p)
    sigma = np.empty(p)
    B = np.empty((p, k))
    for j in range(p):
        theta = huber_reg_config(factors, X[:, j], config)
        mu[j] = theta[0]
        beta = theta[1:]
        B[j] = beta
        sig = huber_variance(X[:, j], mu[j], config)
        sigma[j] = clamped_subtract(sig, beta @ sigma_f @ beta)
    return mu, sigma, B


def _known_replicate(X: np.ndarray, factors: np.ndarray, config: EstimationConfig):
    """Estimator of regression intercepts on a row subset."""
    def estimate(idx: np.ndarray) -> np.ndarray:
        sub_f = factors[idx]
        return np.array([
            huber_reg_config(sub_f, X[idx, j], config)[0] for j in range(X.shape[1])
        ])
    return estimate


def _one_sample_stats(mu, sigma, n, h0, config):
    std_dev = np.sqrt(sigma / n)
    t_stat = (mu - h0) / std_dev
    pvals = p_values(t_stat, config.alternative)
    return std_dev, t_stat, pvals, adaptive_bh(pvals, config.alpha)


def _two_sample_stats(mu_x, sigma_x, n_x, mu_y, sigma_y, n_y, h0, config):
    t_stat = (mu_x - mu_y - h0) / np.sqrt(sigma_x / n_x + sigma_y / n_y)
    pvals = p_values(t_stat, config.alternative)
    return (
        np.sqrt(sigma_x / n_x), np.sqrt(sigma_y / n_y),
        t_stat, pvals, adaptive_bh(pvals, config.alpha)
    )


def _log_done(name: str, significant: np.ndarray) -> None:
    logger.success(
        f"{name} complete: {int(significant.sum())} of {significant.size} hypotheses rejected"
    )

# =============================================================================
# ROBUST MEAN TESTS
# =============================================================================

def mean_test(X: np.ndarray, h0, config: Optional[EstimationConfig] = None) -> OneSampleResult:
    """
    Robust one-sample multiple mean test with Gaussian p-values.

    Parameters
    ----------
    X : ndarray (n, p)
        Data matrix, one sample per row.
    h0 : float or ndarray (p,)
        Null means.
    config : EstimationConfig, optional
        Tolerances, FDR level and alternative.

    Returns
    -------
    OneSampleResult
    """
    config = config or EstimationConfig()
    n, p = X.shape
    logger.info(f"Starting robust mean test: {n} samples, {p} coordinates")
    h0 = _null_vector(h0, p)

    mu, sigma = _robust_moments(X, config)
    std_dev, t_stat, pvals, significant = _one_sample_stats(mu, sigma, n, h0, config)

    _log_done("Robust mean test", significant)
    return OneSampleResult(
        means=mu, p_values=pvals, significant=significant, std_dev=std_dev, t_stat=t_stat
    )


def mean_test_boot(
    X: np.ndarray,
    h0,
    config: Optional[EstimationConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> OneSampleBootResult:
    """Robust one-sample multiple mean test with multiplier bootstrap p-values."""
    config = config or EstimationConfig()
    n, p = X.shape
    logger.info(f"Starting bootstrap mean test: {n} samples, {p} coordinates, B={config.n_boot}")
    h0 = _null_vector(h0, p)

    mu = huber_mean_vec(X, config)
    boot = multiplier_bootstrap(lambda idx: huber_mean_vec(X[idx], config), n, config.n_boot, rng)
    pvals = bootstrap_p_values(mu, boot, h0, config.alternative)
    significant = adaptive_bh(pvals, config.alpha)

    _log_done("Bootstrap mean test", significant)
    return OneSampleBootResult(means=mu, p_values=pvals, significant=significant)


def two_sample_mean_test(
    X: np.ndarray,
    Y: np.ndarray,
    h0,
    config: Optional[EstimationConfig] = None
) -> TwoSampleResult:
    """
    Robust two-sample multiple test of mean differences.

    The statistic is (mu_x - mu_y - h0) / sqrt(s_x / n_x + s_y / n_y).
    """
    config = config or EstimationConfig()
    n_x, p = X.shape
    n_y = Y.shape[0]
    logger.info(f"Starting two-sample mean test: n_x={n_x}, n_y={n_y}, p={p}")
    h0 = _null_vector(h0, p)

    mu_x, sigma_x = _robust_moments(X, config)
    mu_y, sigma_y = _robust_moments(Y, config)
    std_x, std_y, t_stat, pvals, significant = _two_sample_stats(
        mu_x, sigma_x, n_x, mu_y, sigma_y, n_y, h0, config
    )

    _log_done("Two-sample mean test", significant)
    return TwoSampleResult(
        means_x=mu_x, means_y=mu_y, p_values=pvals, significant=significant,
        std_dev_x=std_x, std_dev_y=std_y, t_stat=t_stat
    )


def two_sample_mean_test_boot(
    X: np.ndarray,
    Y: np.ndarray,
    h0,
    config: Optional[EstimationConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> TwoSampleBootResult:
    """Robust two-sample multiple test with multiplier bootstrap p-values."""
    config = config or EstimationConfig()
    rng = rng if rng is not None else np.random.default_rng()
    n_x, p = X.shape
    n_y = Y.shape[0]
    logger.info(f"Starting two-sample bootstrap test: n_x={n_x}, n_y={n_y}, p={p}")
    h0 = _null_vector(h0, p)

    mu_x = huber_mean_vec(X, config)
    mu_y = huber_mean_vec(Y, config)
    boot_x = multiplier_bootstrap(lambda idx: huber_mean_vec(X[idx], config), n_x, config.n_boot, rng)
    boot_y = multiplier_bootstrap(lambda idx: huber_mean_vec(Y[idx], config), n_y, config.n_boot, rng)
    pvals = bootstrap_p_values(mu_x - mu_y, boot_x - boot_y, h0, config.alternative)
    significant = adaptive_bh(pvals, config.alpha)

    _log_done("Two-sample bootstrap test", significant)
    return TwoSampleBootResult(means_x=mu_x, means_y=mu_y, p_values=pvals, significant=significant)

# =============================================================================
# FACTOR-ADJUSTED TESTS: LATENT FACTORS
# =============================================================================

def factor_adjusted_test(
    X: np.ndarray,
    h0,
    k: int = -1,
    config: Optional[EstimationConfig] = None
) -> LatentFactorResult:
    """
    Factor-adjusted robust multiple test with latent factors.

    Parameters
    ----------
    X : ndarray (n, p)
        Data matrix, one sample per row.
    h0 : float or ndarray (p,)
        Null means.
    k : int, default=-1
        Number of factors; values <= 0 select k by the eigenvalue ratio test.
    config : EstimationConfig, optional

    Returns
    -------
    LatentFactorResult
        Adjusted means, standard errors, statistics, p-values, decisions and
        the factor selection (loadings, k, eigenvalues, ratio curve).
    """
    config = config or EstimationConfig()
    n, p = X.shape
    logger.info(f"Starting factor-adjusted test: {n} samples, {p} coordinates")
    h0 = _null_vector(h0, p)

    mu, sigma, selection = _latent_moments(X, k, config)
    std_dev, t_stat, pvals, significant = _one_sample_stats(mu, sigma, n, h0, config)

    _log_done("Factor-adjusted test", significant)
    return LatentFactorResult(
        means=mu, p_values=pvals, significant=significant,
        std_dev=std_dev, t_stat=t_stat, selection=selection
    )


def factor_adjusted_test_boot(
    X: np.ndarray,
    h0,
    k: int = -1,
    config: Optional[EstimationConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> LatentFactorBootResult:
    """
    Factor-adjusted robust multiple test with latent factors and multiplier
    bootstrap p-values. Loadings are estimated once on the full sample and
    held fixed across replicates.
    """
    config = config or EstimationConfig()
    n, p = X.shape
    logger.info(f"Starting factor-adjusted bootstrap test: {n} samples, {p} coordinates")
    h0 = _null_vector(h0, p)

    mu, _, selection = _latent_moments(X, k, config)
    boot = multiplier_bootstrap(_latent_replicate(X, selection.loadings, config), n, config.n_boot, rng)
    pvals = bootstrap_p_values(mu, boot, h0, config.alternative)
    significant = adaptive_bh(pvals, config.alpha)

    _log_done("Factor-adjusted bootstrap test", significant)
    return LatentFactorBootResult(
        means=mu, p_values=pvals, significant=significant, selection=selection
    )


def two_sample_factor_adjusted_test(
    X: np.ndarray,
    Y: np.ndarray,
    h0,
    k_x: int = -1,
    k_y: int = -1,
    config: Optional[EstimationConfig] = None
) -> TwoSampleLatentFactorResult:
    """Two-sample factor-adjusted test; factors estimated separately per sample."""
    config = config or EstimationConfig()
    n_x, p = X.shape
    n_y = Y.shape[0]
    logger.info(f"Starting two-sample factor-adjusted test: n_x={n_x}, n_y={n_y}, p={p}")
    h0 = _null_vector(h0, p)

    mu_x, sigma_x, sel_x = _latent_moments(X, k_x, config)
    mu_y, sigma_y, sel_y = _latent_moments(Y, k_y, config)
    std_x, std_y, t_stat, pvals, significant = _two_sample_stats(
        mu_x, sigma_x, n_x, mu_y, sigma_y, n_y, h0, config
    )

    _log_done("Two-sample factor-adjusted test", significant)
    return TwoSampleLatentFactorResult(
        means_x=mu_x, means_y=mu_y, p_values=pvals, significant=significant,
        std_dev_x=std_x, std_dev_y=std_y, t_stat=t_stat,
        selection_x=sel_x, selection_y=sel_y
    )


def two_sample_factor_adjusted_test_boot(
    X: np.ndarray,
    Y: np.ndarray,
    h0,
    k_x: int = -1,
    k_y: int = -1,
    config: Optional[EstimationConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> TwoSampleLatentFactorBootResult:
    """Two-sample factor-adjusted bootstrap test with latent factors."""
    config = config or EstimationConfig()
    rng = rng if rng is not None else np.random.default_rng()
    n_x, p = X.shape
    n_y = Y.shape[0]
    logger.info(f"Starting two-sample factor-adjusted bootstrap test: n_x={n_x}, n_y={n_y}, p={p}")
    h0 = _null_vector(h0, p)

    mu_x, _, sel_x = _latent_moments(X, k_x, config)
    mu_y, _, sel_y = _latent_moments(Y, k_y, config)
    boot_x = multiplier_bootstrap(_latent_replicate(X, sel_x.loadings, config), n_x, config.n_boot, rng)
    boot_y = multiplier_bootstrap(_latent_replicate(Y, sel_y.loadings, config), n_y, config.n_boot, rng)
    pvals = bootstrap_p_values(mu_x - mu_y, boot_x - boot_y, h0, config.alternative)
    significant = adaptive_bh(pvals, config.alpha)

    _log_done("Two-sample factor-adjusted bootstrap test", significant)
    return TwoSampleLatentFactorBootResult(
        means_x=mu_x, means_y=mu_y, p_values=pvals, significant=significant,
        selection_x=sel_x, selection_y=sel_y
    )

# =============================================================================
# FACTOR-ADJUSTED TESTS: OBSERVED FACTORS
# =============================================================================

def known_factor_test(
    X: np.ndarray,
    factors: np.ndarray,
    h0,
    config: Optional[EstimationConfig] = None
) -> KnownFactorResult:
    """
    Factor-adjusted robust multiple test with observed factors.

    Each coordinate is regressed on the factors with :func:`huber_reg`; the
    intercept is the adjusted mean and the slopes are the loadings. The
    variance is the robust variance of the coordinate minus the factor part
    beta' S_f beta, both one-sided corrected.

    The R FarmTest package (``farmTestFac``) subtracts (beta' S_f beta)^2
    instead, so its p-values differ from these whenever the factor part is
    not 0 or 1.

    Parameters
    ----------
    X : ndarray (n, p)
        Data matrix, one sample per row.
    factors : ndarray (n, k)
        Observed factors, row-paired with X.
    h0 : float or ndarray (p,)
        Null means.
    config : EstimationConfig, optional
    """
    config = config or EstimationConfig()
    n, p = X.shape
    k = factors.shape[1]
    logger.info(f"Starting known-factor test: {n} samples, {p} coordinates, k={k}")
    h0 = _null_vector(h0, p)

    mu, sigma, B = _known_moments(X, factors, config)
    std_dev, t_stat, pvals, significant = _one_sample_stats(mu, sigma, n, h0, config)

    _log_done("Known-factor test", significant)
    return KnownFactorResult(
        means=mu, p_values=pvals, significant=significant,
        std_dev=std_dev, t_stat=t_stat, loadings=B, n_factors=k
    )


def known_factor_test_boot(
    X: np.ndarray,
    factors: np.ndarray,
    h0,
    config: Optional[EstimationConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> KnownFactorBootResult:
    """Factor-adjusted bootstrap test with observed factors."""
    config = config or EstimationConfig()
    n, p = X.shape
    k = factors.shape[1]
    logger.info(f"Starting known-factor bootstrap test: {n} samples, {p} coordinates, k={k}")
    h0 = _null_vector(h0, p)

    mu = np.array([huber_reg_config(factors, X[:, j], config)[0] for j in range(p)])
    boot = multiplier_bootstrap(_known_replicate(X, factors, config), n, config.n_boot, rng)
    pvals = bootstrap_p_values(mu, boot, h0, config.alternative)
    significant = adaptive_bh(pvals, config.alpha)

    _log_done("Known-factor bootstrap test", significant)
    return KnownFactorBootResult(means=mu, p_values=pvals, significant=significant, n_factors=k)


def two_sample_known_factor_test(
    X: np.ndarray,
    factors_x: np.ndarray,
    Y: np.ndarray,
    factors_y: np.ndarray,
    h0,
    config: Optional[EstimationConfig] = None
) -> TwoSampleKnownFactorResult:
    """Two-sample factor-adjusted test with observed factors for each sample."""
    config = config or EstimationConfig()
    n_x, p = X.shape
    n_y = Y.shape[0]
    logger.info(f"Starting two-sample known-factor test: n_x={n_x}, n_y={n_y}, p={p}")
    h0 = _null_vector(h0, p)

    mu_x, sigma_x, B_x = _known_moments(X, factors_x, config)
    mu_y, sigma_y, B_y = _known_moments(Y, factors_y, config)
    std_x, std_y, t_stat, pvals, significant = _two_sample_stats(
        mu_x, sigma_x, n_x, mu_y, sigma_y, n_y, h0, config
    )

    _log_done("Two-sample known-factor test", significant)
    return TwoSampleKnownFactorResult(
        means_x=mu_x, means_y=mu_y, p_values=pvals, significant=significant,
        std_dev_x=std_x, std_dev_y=std_y, t_stat=t_stat,
        loadings_x=B_x, loadings_y=B_y,
        n_factors_x=factors_x.shape[1], n_factors_y=factors_y.shape[1]
    )


def two_sample_known_factor_test_boot(
    X: np.ndarray,
    factors_x: np.ndarray,
    Y: np.ndarray,
    factors_y: np.ndarray,
    h0,
    config: Optional[EstimationConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> TwoSampleKnownFactorBootResult:
    """Two-sample factor-adjusted bootstrap test with observed factors."""
    config = config or EstimationConfig()
    rng = rng if rng is not None else np.random.default_rng()
    n_x, p = X.shape
    n_y = Y.shape[0]
    logger.info(f"Starting two-sample known-factor bootstrap test: n_x={n_x}, n_y={n_y}, p={p}")
    h0 = _null_vector(h0, p)

    mu_x = np.array([huber_reg_config(factors_x, X[:, j], config)[0] for j in range(p)])
    mu_y = np.array([huber_reg_config(factors_y, Y[:, j], config)[0] for j in range(p)])
    boot_x = multiplier_bootstrap(_known_replicate(X, factors_x, config), n_x, config.n_boot, rng)
    boot_y = multiplier_bootstrap(_known_replicate(Y, factors_y, config), n_y, config.n_boot, rng)
    pvals = bootstrap_p_values(mu_x - mu_y, boot_x - boot_y, h0, config.alternative)
    significant = adaptive_bh(pvals, config.alpha)

    _log_done("Two-sample known-factor bootstrap test", significant)
    return TwoSampleKnownFactorBootResult(
        means_x=mu_x, means_y=mu_y, p_values=pvals, significant=significant,
        n_factors_x=factors_x.shape[1], n_factors_y=factors_y.shape[1]
    )
