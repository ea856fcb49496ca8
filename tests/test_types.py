"""
test_types.py - Tests for Configuration and Result Types

Tests cover:
- EstimationConfig defaults, coercion and validation
- Immutability of configuration and results
- Convenience properties of result dataclasses
"""

import dataclasses

import pytest
import numpy as np

from farmtest import (
    Alternative,
    EstimationConfig,
    FactorSelection,
    HuberCovResult,
    LatentFactorResult,
    OneSampleBootResult,
    TwoSampleBootResult,
)


class TestEstimationConfig:
    """Tests for EstimationConfig dataclass."""

    def test_defaults(self):
        """Test documented default values."""
        config = EstimationConfig()
        assert config.epsilon == 1e-4
        assert config.ite_max == 500
        assert config.root_tol == 1e-4
        assert config.root_ite_max == 500
        assert config.reg_tol == 1e-5
        assert config.reg_const_tau == 1.345
        assert config.reg_ite_max == 500
        assert config.alpha == 0.05
        assert config.alternative is Alternative.TWO_SIDED
        assert config.n_boot == 500

    @pytest.mark.parametrize("value,expected", [
        ("two.sided", Alternative.TWO_SIDED),
        ("less", Alternative.LESS),
        ("greater", Alternative.GREATER),
    ])
    def test_alternative_coerced_from_string(self, value, expected):
        """Test string alternatives are converted to the enum."""
        assert EstimationConfig(alternative=value).alternative is expected

    def test_unknown_alternative_rejected(self):
        """Test that an unknown alternative raises."""
        with pytest.raises(ValueError, match="alternative must be one of"):
            EstimationConfig(alternative="both")

    @pytest.mark.parametrize("alpha", [0.0, 1.0, -0.1, 1.5])
    def test_alpha_out_of_range(self, alpha):
        """Test alpha must lie strictly inside (0, 1)."""
        with pytest.raises(ValueError, match="alpha must be strictly between 0 and 1"):
            EstimationConfig(alpha=alpha)

    @pytest.mark.parametrize("name", ["epsilon", "root_tol", "reg_tol", "reg_const_tau"])
    def test_non_positive_tolerance(self, name):
        """Test tolerances must be positive."""
        with pytest.raises(ValueError, match=f"{name} must be positive"):
            EstimationConfig(**{name: 0.0})

    @pytest.mark.parametrize("name,value", [
        ("ite_max", 0),
        ("root_ite_max", -5),
        ("reg_ite_max", 2.5),
        ("n_boot", 0),
    ])
    def test_invalid_caps(self, name, value):
        """Test iteration caps and bootstrap size must be positive integers."""
        with pytest.raises(ValueError, match=f"{name} must be a positive integer"):
            EstimationConfig(**{name: value})

    def test_frozen(self):
        """Test configuration cannot be mutated."""
        config = EstimationConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.alpha = 0.1

    def test_replace_revalidates(self):
        """Test dataclasses.replace runs validation again."""
        config = EstimationConfig()
        assert dataclasses.replace(config, alpha=0.2).alpha == 0.2
        with pytest.raises(ValueError):
            dataclasses.replace(config, alpha=2.0)


class TestResultTypes:
    """Tests for result dataclasses."""

    def test_rejection_properties(self):
        """Test n_rejections and rejected indices."""
        result = OneSampleBootResult(
            means=np.zeros(4),
            p_values=np.array([0.001, 0.5, 0.002, 0.9]),
            significant=np.array([True, False, True, False]),
        )
        assert result.n_rejections == 2
        np.testing.assert_array_equal(result.rejected, [0, 2])

    def test_two_sample_rejection_properties(self):
        """Test the same properties on two-sample results."""
        result = TwoSampleBootResult(
            means_x=np.zeros(3),
            means_y=np.zeros(3),
            p_values=np.ones(3),
            significant=np.zeros(3, dtype=bool),
        )
        assert result.n_rejections == 0
        assert result.rejected.size == 0

    def test_factor_selection_estimated_flag(self):
        """Test estimated is True only when a ratio curve is present."""
        B = np.ones((3, 1))
        eig = np.array([1.0, 1.0, 5.0])
        assert FactorSelection(B, 1, eig, ratio=np.array([5.0])).estimated
        assert not FactorSelection(B, 1, eig).estimated

    def test_latent_result_delegates_to_selection(self):
        """Test loadings and n_factors come from the factor selection."""
        B = np.arange(6.0).reshape(3, 2)
        selection = FactorSelection(B, 2, np.array([1.0, 2.0, 3.0]))
        result = LatentFactorResult(
            means=np.zeros(3), p_values=np.ones(3), significant=np.zeros(3, dtype=bool),
            std_dev=np.ones(3), t_stat=np.zeros(3), selection=selection,
        )
        assert result.n_factors == 2
        np.testing.assert_array_equal(result.loadings, B)

    def test_cov_result_dimension(self):
        """Test HuberCovResult.p."""
        result = HuberCovResult(means=np.zeros(4), cov=np.eye(4))
        assert result.p == 4

    def test_results_are_frozen(self):
        """Test result objects cannot be mutated."""
        result = HuberCovResult(means=np.zeros(2), cov=np.eye(2))
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.means = np.ones(2)
