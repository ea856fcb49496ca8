"""
test_estimation.py - Tests for Huber Location and Covariance Estimation

Tests cover:
- One-sided correction helper
- Bisection root finder (bracket containment, degenerate brackets)
- Huber mean accuracy and stability under gross outliers
- Robust variance
- Huber covariance symmetry, diagonal sign and accuracy
"""

import pytest
import numpy as np

from farmtest import (
    EstimationConfig,
    bisection_root,
    clamped_subtract,
    huber_cov,
    huber_mean,
    huber_mean_cov,
    huber_mean_vec,
    huber_variance,
)
from farmtest.estimation import moment_equation, moment_equation_dim, pairwise_differences


class TestClampedSubtract:
    """Tests for the one-sided correction."""

    def test_subtracts_when_positive(self):
        assert clamped_subtract(5.0, 3.0) == pytest.approx(2.0)

    def test_keeps_raw_value_otherwise(self):
        """Test a <= b leaves a unchanged instead of flooring at zero."""
        assert clamped_subtract(3.0, 5.0) == pytest.approx(3.0)
        assert clamped_subtract(3.0, 3.0) == pytest.approx(3.0)

    def test_scalar_returns_float(self):
        assert isinstance(clamped_subtract(2.0, 1.0), float)

    def test_elementwise(self):
        a = np.array([5.0, 1.0, 4.0])
        b = np.array([2.0, 3.0, 4.0])
        np.testing.assert_allclose(clamped_subtract(a, b), [3.0, 1.0, 4.0])


class TestBisectionRoot:
    """Tests for the bisection root finder."""

    def test_linear_root(self):
        """Test the root of a decreasing linear function is found."""
        root = bisection_root(lambda x: 2.0 - x, 0.0, 5.0, tol=1e-8)
        assert root == pytest.approx(2.0, abs=1e-6)

    def test_equal_bounds_return_low(self):
        """Test a zero-width bracket returns its bound without iterating."""
        assert bisection_root(lambda x: 1.0 / 0.0, 3.0, 3.0) == 3.0

    def test_inverted_bounds_return_low(self):
        assert bisection_root(lambda x: -x, 4.0, 1.0) == 4.0

    def test_root_stays_in_bracket(self, rng):
        """Test the calibrated tau^2 lies within [min r^2, sum r^2]."""
        res_sq = rng.standard_t(3, size=50) ** 2
        low, high = res_sq.min(), res_sq.sum()
        root = bisection_root(moment_equation(res_sq, 50), low, high)
        assert low <= root <= high

    def test_iteration_cap(self):
        """Test a tiny cap still returns a value inside the bracket."""
        root = bisection_root(lambda x: 2.0 - x, 0.0, 5.0, tol=1e-12, ite_max=3)
        assert 0.0 <= root <= 5.0

    def test_moment_equation_is_decreasing(self, rng):
        res_sq = rng.standard_normal(40) ** 2
        g = moment_equation_dim(res_sq, 40, 5)
        xs = np.linspace(res_sq.min() + 1e-3, res_sq.sum(), 20)
        values = np.array([g(x) for x in xs])
        assert np.all(np.diff(values) <= 1e-12)


class TestHuberMean:
    """Tests for the tuning-free Huber mean."""

    def test_close_to_mean_on_gaussian_data(self, rng):
        x = rng.normal(loc=3.0, size=500)
        assert huber_mean(x) == pytest.approx(x.mean(), abs=0.05)

    def test_stable_under_gross_outlier(self, rng):
        """Test a single 1e6 outlier moves the estimate only slightly."""
        x = rng.normal(size=200)
        contaminated = np.append(x, 1e6)
        assert abs(huber_mean(contaminated) - huber_mean(x)) < 0.2
        assert contaminated.mean() > 1000

    def test_symmetric_data(self):
        assert huber_mean(np.array([1.0, 2.0, 3.0, 4.0, 5.0])) == pytest.approx(3.0)

    def test_constant_vector(self):
        """Test zero residuals terminate immediately at the constant."""
        assert huber_mean(np.full(10, 7.5)) == pytest.approx(7.5)

    def test_single_observation(self):
        assert huber_mean(np.array([4.2])) == pytest.approx(4.2)

    def test_empty_is_nan(self):
        assert np.isnan(huber_mean(np.array([])))

    def test_column_wise(self, rng):
        X = rng.normal(size=(100, 3)) + np.array([0.0, 5.0, -5.0])
        mu = huber_mean_vec(X)
        assert mu.shape == (3,)
        np.testing.assert_allclose(mu, [0.0, 5.0, -5.0], atol=0.3)

    def test_config_is_respected(self, rng):
        """Test a one-iteration cap changes the result on skewed data."""
        x = np.append(rng.normal(size=50), [40.0, 60.0])
        loose = huber_mean_vec(x.reshape(-1, 1), EstimationConfig(ite_max=1))[0]
        assert loose != pytest.approx(huber_mean(x), abs=1e-6)

    def test_covariance_variant(self, rng):
        """Test the dimension-calibrated mean on pairwise products."""
        z = rng.normal(loc=1.0, size=300)
        assert huber_mean_cov(z, n=25, d=4) == pytest.approx(z.mean(), abs=0.15)


class TestHuberVariance:
    """Tests for the robust variance."""

    def test_standard_normal(self, rng):
        x = rng.standard_normal(500)
        mu = huber_mean(x)
        assert huber_variance(x, mu) == pytest.approx(1.0, abs=0.2)

    def test_non_negative(self, rng):
        x = rng.standard_t(2, size=100)
        assert huber_variance(x, huber_mean(x)) >= 0


class TestHuberCov:
    """Tests for the Huber covariance estimator."""

    def test_pairwise_differences(self):
        X = np.array([[1.0, 0.0], [3.0, 1.0], [6.0, 3.0]])
        D = pairwise_differences(X)
        np.testing.assert_array_equal(D, [[-2.0, -1.0], [-5.0, -3.0], [-3.0, -2.0]])

    def test_shapes(self, rng):
        X = rng.standard_normal((30, 4))
        result = huber_cov(X)
        assert result.means.shape == (4,)
        assert result.cov.shape == (4, 4)
        assert result.p == 4

    def test_exactly_symmetric(self, rng):
        X = rng.standard_t(3, size=(40, 5))
        cov = huber_cov(X).cov
        np.testing.assert_array_equal(cov, cov.T)

    def test_non_negative_diagonal(self, rng):
        X = rng.standard_t(2, size=(40, 5)) + 10.0
        assert np.all(np.diag(huber_cov(X).cov) >= 0)

    def test_recovers_gaussian_covariance(self, rng):
        """Test accuracy against a known covariance matrix."""
        sigma = np.array([
            [1.0, 0.5, 0.0],
            [0.5, 1.0, 0.3],
            [0.0, 0.3, 1.0],
        ])
        X = rng.multivariate_normal(np.zeros(3), sigma, size=150)
        np.testing.assert_allclose(huber_cov(X).cov, sigma, atol=0.4)

    def test_single_column(self, rng):
        result = huber_cov(rng.standard_normal((20, 1)))
        assert result.cov.shape == (1, 1)


class TestIterationCap:
    """Tests for the iteration-cap diagnostic of the Huber mean."""

    def test_cap_reported_when_not_converged(self, log_messages):
        huber_mean(np.array([1.0, 2.0, 3.0, 4.0, 5.0]), ite_max=1)
        assert any("iteration cap" in m for m in log_messages)

    def test_silent_when_converged_on_last_iteration(self, log_messages):
        """Test symmetric data settles on its second pass; a cap of 2 is not hit."""
        huber_mean(np.array([1.0, 2.0, 3.0, 4.0, 5.0]), ite_max=2)
        assert not any("iteration cap" in m for m in log_messages)
