"""Tests for ScoreOptConfig.

Tests configuration validation, presets, and properties.
"""

from __future__ import annotations

import numpy as np
import pytest

from probrec import ScoreOptConfig


class TestScoreOptConfigValidation:
    """Test config validation."""

    def test_valid_config(self):
        """Create valid config."""
        config = ScoreOptConfig(n_draws=100, seed=7)
        assert config.n_draws == 100
        assert config.seed == 7

    def test_n_draws_negative(self):
        with pytest.raises(ValueError, match="n_draws must be non-negative"):
            ScoreOptConfig(n_draws=-1)

    @pytest.mark.parametrize("alpha", [0.0, -1.0, 2.5])
    def test_alpha_range(self, alpha):
        """alpha must lie in (0, 2]."""
        with pytest.raises(ValueError, match="alpha"):
            ScoreOptConfig(alpha=alpha)

    def test_unknown_scoring(self):
        with pytest.raises(ValueError, match="scoring"):
            ScoreOptConfig(scoring="crps")

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="method"):
            ScoreOptConfig(method="lbfgs")

    def test_max_iter(self):
        with pytest.raises(ValueError, match="max_iter must be at least 1"):
            ScoreOptConfig(max_iter=0)

    def test_negative_seed(self):
        with pytest.raises(ValueError, match="seed must be non-negative"):
            ScoreOptConfig(seed=-3)

    def test_unknown_init(self):
        with pytest.raises(ValueError, match="init"):
            ScoreOptConfig(init="top_down")

    def test_empty_levels(self):
        with pytest.raises(ValueError, match="levels cannot be empty"):
            ScoreOptConfig(levels=[])

    def test_seed_policy(self):
        with pytest.raises(ValueError, match="seed_policy"):
            ScoreOptConfig(seed_policy="random")

    def test_degenerate_policy(self):
        with pytest.raises(ValueError, match="degenerate_policy"):
            ScoreOptConfig(degenerate_policy="ignore")

    def test_max_workers(self):
        with pytest.raises(ValueError, match="max_workers"):
            ScoreOptConfig(max_workers=0)


class TestScoreOptConfigDefaults:
    """Test config defaults."""

    def test_defaults(self):
        """Defaults follow the Adam settings of the reference method."""
        config = ScoreOptConfig()
        assert config.n_draws == 0
        assert config.scoring == "energy"
        assert config.method == "adam"
        assert config.max_iter == 500
        assert config.tol == 1e-4
        assert config.learning_rate == 1e-3
        assert config.init == "bottom_up"
        assert config.seed_policy == "fixed_per_iteration"
        assert config.degenerate_policy == "skip"
        assert not config.is_seeded

    def test_levels_normalized(self):
        config = ScoreOptConfig(levels=[0, 2])
        assert config.levels == (0, 2)

    def test_array_init(self):
        config = ScoreOptConfig(init=[[0, 1, 0], [0, 0, 1]])
        assert isinstance(config.init, np.ndarray)
        assert config.init.dtype == float


class TestScoreOptConfigPresets:
    """Test config presets."""

    def test_quick(self):
        config = ScoreOptConfig.quick(seed=1)
        assert config.max_iter == 100
        assert config.is_seeded

    def test_standard(self):
        assert ScoreOptConfig.standard().max_iter == 500

    def test_thorough(self):
        config = ScoreOptConfig.thorough()
        assert config.max_iter == 5000
        assert config.raise_on_nonconvergence


class TestScoreOptConfigOverrides:
    """Test with_overrides."""

    def test_override(self):
        base = ScoreOptConfig.quick(seed=1)
        config = base.with_overrides(method="nelder_mead")
        assert config.method == "nelder_mead"
        assert config.seed == 1
        assert base.method == "adam"

    def test_override_is_validated(self):
        with pytest.raises(ValueError):
            ScoreOptConfig().with_overrides(tol=-1.0)

    def test_frozen(self):
        config = ScoreOptConfig()
        with pytest.raises(AttributeError):
            config.seed = 3

    def test_array_init_comparison_and_hash(self):
        """Configs holding equal init arrays compare by identity and stay hashable."""
        g0 = np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
        first = ScoreOptConfig(init=g0)
        second = ScoreOptConfig(init=g0.copy())
        assert first == first
        assert first != second
        assert len({first, second}) == 2

    def test_is_seeded(self):
        assert ScoreOptConfig(seed=0).is_seeded
        assert not ScoreOptConfig().is_seeded
