"""
test_regression.py - Tests for Robust Huber Regression

Tests cover:
- Scale and loss helpers
- Coefficient recovery on clean data
- Robustness against heavy-tailed noise compared with least squares
- Configuration plumbing
"""

import pytest
import numpy as np

from farmtest import EstimationConfig, huber_reg, mad
from farmtest.regression import (
    huber_derivative,
    huber_loss,
    huber_reg_config,
    huber_tau,
    standardize,
)


class TestHelpers:
    """Tests for loss and scale helpers."""

    def test_mad_scaling(self):
        """Test MAD is divided by the normal consistency constant."""
        x = np.array([1.0, 2.0, 3.0, 4.0, 100.0])
        assert mad(x) == pytest.approx(1.0 / 0.6744898)

    def test_mad_normal_consistency(self, rng):
        assert mad(rng.normal(scale=2.0, size=5000)) == pytest.approx(2.0, rel=0.05)

    def test_huber_loss(self):
        """Test quadratic inside tau and linear outside, averaged."""
        r = np.array([0.5, -3.0])
        assert huber_loss(r, 1.0) == pytest.approx((0.125 + 2.5) / 2)

    def test_huber_derivative(self):
        r = np.array([0.5, -3.0, 2.0])
        np.testing.assert_allclose(huber_derivative(r, 1.0), [-0.5, 1.0, -1.0])

    def test_standardize(self, rng):
        Z = standardize(rng.normal(loc=4.0, scale=3.0, size=(50, 2)))
        np.testing.assert_allclose(Z.mean(axis=0), 0.0, atol=1e-12)
        np.testing.assert_allclose(Z.std(axis=0, ddof=1), 1.0)

    def test_standardize_constant_column(self, rng):
        X = np.column_stack([rng.standard_normal(20), np.full(20, 3.0)])
        Z = standardize(X)
        np.testing.assert_allclose(Z[:, 1], 0.0)
        np.testing.assert_allclose(Z[:, 0].std(ddof=1), 1.0)

    def test_standardize_single_row(self):
        np.testing.assert_allclose(standardize(np.array([[1.0, 2.0]])), 0.0)

    def test_tau_falls_back_to_sd(self):
        """Test a zero MAD uses the standard deviation of the residuals."""
        r = np.array([0.0, 0.0, 0.0, 0.0, 10.0])
        assert huber_tau(r, 1.345) == pytest.approx(1.345 * r.std())


class TestHuberReg:
    """Tests for the robust regression solver."""

    def test_output_shape(self, rng):
        X = rng.standard_normal((40, 3))
        coef = huber_reg(X, rng.standard_normal(40))
        assert coef.shape == (4,)

    def test_one_dimensional_design(self, rng):
        x = rng.standard_normal(60)
        coef = huber_reg(x, 2.0 * x + 1.0)
        np.testing.assert_allclose(coef, [1.0, 2.0], atol=1e-2)

    def test_recovers_coefficients(self, rng):
        """Test intercept and slopes are recovered on lightly noisy data."""
        n = 200
        X = rng.normal(loc=1.0, scale=2.0, size=(n, 3))
        beta = np.array([2.0, -1.0, 0.5])
        Y = 1.0 + X @ beta + 0.1 * rng.standard_normal(n)
        coef = huber_reg(X, Y)
        np.testing.assert_allclose(coef, [1.0, 2.0, -1.0, 0.5], atol=0.05)

    def test_beats_least_squares_under_heavy_tails(self, rng):
        """Test slope error is smaller than OLS under Cauchy noise."""
        beta = np.array([1.0, -2.0])
        huber_err, ols_err = [], []
        for _ in range(5):
            X = rng.standard_normal((200, 2))
            Y = 0.5 + X @ beta + rng.standard_cauchy(200)
            coef = huber_reg(X, Y)
            design = np.column_stack([np.ones(200), X])
            ols = np.linalg.lstsq(design, Y, rcond=None)[0]
            huber_err.append(np.linalg.norm(coef[1:] - beta))
            ols_err.append(np.linalg.norm(ols[1:] - beta))
        assert np.mean(huber_err) < np.mean(ols_err)
        assert np.mean(huber_err) < 0.5

    def test_config_wrapper(self, rng):
        """Test huber_reg_config forwards the regression settings."""
        X = rng.standard_normal((80, 2))
        Y = X @ np.array([1.0, 1.0]) + rng.standard_t(3, size=80)
        config = EstimationConfig(reg_tol=1e-6, reg_const_tau=2.0, reg_ite_max=200)
        np.testing.assert_allclose(
            huber_reg_config(X, Y, config),
            huber_reg(X, Y, tol=1e-6, const_tau=2.0, ite_max=200, config=config),
        )


class TestDegenerateDesign:
    """Tests for designs and responses without spread."""

    def test_constant_column_gets_zero_slope(self, rng):
        x = rng.standard_normal(50)
        X = np.column_stack([x, np.ones(50)])
        coef = huber_reg(X, 1.0 + 2.0 * x)
        assert np.all(np.isfinite(coef))
        assert coef[2] == 0.0
        assert coef[1] == pytest.approx(2.0, abs=1e-2)

    def test_zero_design(self):
        """Test an all-zero design leaves only the intercept."""
        y = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
        coef = huber_reg(np.zeros((5, 2)), y)
        np.testing.assert_allclose(coef[1:], 0.0)
        assert coef[0] == pytest.approx(3.0)

    def test_single_row(self):
        coef = huber_reg(np.array([[0.5, -1.0]]), np.array([2.0]))
        np.testing.assert_allclose(coef, [2.0, 0.0, 0.0])

    def test_zero_response(self, rng):
        coef = huber_reg(rng.standard_normal((30, 2)), np.zeros(30))
        np.testing.assert_allclose(coef, 0.0)
