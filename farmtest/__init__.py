"""
farmtest - Factor-Adjusted Robust Multiple Testing of Means
"""

__version__ = "1.0.0"

# =============================================================================
# CORE TYPES
# =============================================================================
from .types import (
    Alternative,
    EstimationConfig,
    HuberCovResult,
    FactorSelection,
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
    FarmTestResult,
)

# =============================================================================
# ESTIMATION
# =============================================================================
from .estimation import (
    bisection_root,
    clamped_subtract,
    huber_mean,
    huber_mean_vec,
    huber_mean_cov,
    huber_variance,
    huber_cov,
)
from .regression import (
    huber_reg,
    mad,
)

# =============================================================================
# DECOMPOSITION
# =============================================================================
from .decomposition import (
    eigen_ratio,
    estimate_factors,
    factor_loadings,
    select_n_factors,
)

# =============================================================================
# INFERENCE
# =============================================================================
from .inference import (
    adaptive_bh,
    bootstrap_indices,
    bootstrap_p_values,
    multiplier_bootstrap,
    p_values,
)

# =============================================================================
# PROCEDURES
# =============================================================================
from .procedures import (
    mean_test,
    mean_test_boot,
    two_sample_mean_test,
    two_sample_mean_test_boot,
    factor_adjusted_test,
    factor_adjusted_test_boot,
    two_sample_factor_adjusted_test,
    two_sample_factor_adjusted_test_boot,
    known_factor_test,
    known_factor_test_boot,
    two_sample_known_factor_test,
    two_sample_known_factor_test_boot,
)

# =============================================================================
# ENTRY POINTS
# =============================================================================
from .farm import (
    farm_test,
    farm_cov,
    farm_mean,
    farm_fdr,
)

# =============================================================================
# SIMULATION
# =============================================================================
from .simulation import (
    FactorDataSimulator,
    NoiseType,
    simulate_factor_data,
)

# =============================================================================
# PUBLIC API
# =============================================================================
__all__ = [
    "__version__",
    "Alternative",
    "EstimationConfig",
    "HuberCovResult",
    "FactorSelection",
    "OneSampleResult",
    "OneSampleBootResult",
    "LatentFactorResult",
    "LatentFactorBootResult",
    "KnownFactorResult",
    "KnownFactorBootResult",
    "TwoSampleResult",
    "TwoSampleBootResult",
    "TwoSampleLatentFactorResult",
    "TwoSampleLatentFactorBootResult",
    "TwoSampleKnownFactorResult",
    "TwoSampleKnownFactorBootResult",
    "FarmTestResult",
    "bisection_root",
    "clamped_subtract",
    "huber_mean",
    "huber_mean_vec",
    "huber_mean_cov",
    "huber_variance",
    "huber_cov",
    "huber_reg",
    "mad",
    "eigen_ratio",
    "estimate_factors",
    "factor_loadings",
    "select_n_factors",
    "adaptive_bh",
    "bootstrap_indices",
    "bootstrap_p_values",
    "multiplier_bootstrap",
    "p_values",
    "mean_test",
    "mean_test_boot",
    "two_sample_mean_test",
    "two_sample_mean_test_boot",
    "factor_adjusted_test",
    "factor_adjusted_test_boot",
    "two_sample_factor_adjusted_test",
    "two_sample_factor_adjusted_test_boot",
    "known_factor_test",
    "known_factor_test_boot",
    "two_sample_known_factor_test",
    "two_sample_known_factor_test_boot",
    "farm_test",
    "farm_cov",
    "farm_mean",
    "farm_fdr",
    "FactorDataSimulator",
    "NoiseType",
    "simulate_factor_data",
]
