"""
conftest.py - Pytest Configuration and Shared Fixtures

This file contains fixtures used across all test modules. Fixtures are
organized by category:
- Random number generators (for reproducibility)
- Configurations
- Sample data sets (null, shifted, factor-driven, two-sample)
- Log capture
"""

import pytest
import numpy as np
from loguru import logger

from farmtest import EstimationConfig, simulate_factor_data


# =============================================================================
# RANDOM NUMBER GENERATORS
# =============================================================================

@pytest.fixture
def rng():
    """
    Provide a seeded random number generator for reproducible tests.

    All tests should use this fixture (or derive from it) to ensure
    reproducibility across runs.
    """
    return np.random.default_rng(seed=42)


@pytest.fixture
def rng_alternate():
    """Alternate RNG with different seed for comparison tests."""
    return np.random.default_rng(seed=12345)


# =============================================================================
# CONFIGURATIONS
# =============================================================================

@pytest.fixture
def config():
    """Default estimation configuration."""
    return EstimationConfig()


@pytest.fixture
def boot_config():
    """Configuration with a small bootstrap size to keep tests fast."""
    return EstimationConfig(n_boot=50)


# =============================================================================
# SAMPLE DATA
# =============================================================================

@pytest.fixture
def shifted_data(rng):
    """
    100 x 20 standard normal sample; the first 5 coordinates have mean 1.5.
    """
    X = rng.standard_normal((100, 20))
    X[:, :5] += 1.5
    return X


@pytest.fixture
def latent_factor_data(rng):
    """
    60 x 12 sample from a 2-factor model with Gaussian noise.

    The first 4 coordinates have mean 2.0, the rest mean 0.
    """
    mu = np.zeros(12)
    mu[:4] = 2.0
    return simulate_factor_data(60, 12, 2, mu=mu, noise="normal", rng=rng)


@pytest.fixture
def known_factor_data(rng):
    """
    100 x 10 sample from a 2-factor model with observed factors.

    The first 3 coordinates have mean 2.0, the rest mean 0.
    """
    mu = np.zeros(10)
    mu[:3] = 2.0
    return simulate_factor_data(100, 10, 2, mu=mu, noise="normal", rng=rng)


@pytest.fixture
def outlier_pair():
    """
    Small two-sample case: Y equals X except for one gross outlier.
    """
    X = np.array([1.0, 2.0, 3.0, 4.0, 5.0]).reshape(-1, 1)
    Y = np.array([1.0, 2.0, 3.0, 4.0, 50.0]).reshape(-1, 1)
    return X, Y


# =============================================================================
# LOG CAPTURE
# =============================================================================

@pytest.fixture
def log_messages():
    """Collect loguru messages (DEBUG and above) emitted during a test."""
    messages = []
    handler_id = logger.add(messages.append, level="DEBUG", format="{message}")
    yield messages
    logger.remove(handler_id)
