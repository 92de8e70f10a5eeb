"""Tests for the Adam update rule."""

from __future__ import annotations

import numpy as np
import pytest

from probrec.optim import AdamState


class TestAdamState:
    """Test bias-corrected Adam steps."""

    def test_first_step_moves_by_learning_rate(self):
        """The first bias-corrected step has magnitude eta in every coordinate."""
        adam = AdamState(learning_rate=0.1)
        params = np.array([1.0, -2.0, 0.5])
        updated = adam.step(params, np.array([3.0, -0.5, 1e-3]))
        np.testing.assert_allclose(updated - params, [-0.1, 0.1, -0.1], rtol=1e-4)
        assert adam.step_count == 1

    def test_zero_gradient_is_a_no_op(self):
        adam = AdamState()
        params = np.ones(4)
        np.testing.assert_array_equal(adam.step(params, np.zeros(4)), params)

    def test_minimizes_quadratic(self):
        """Adam drives a convex quadratic towards its minimum."""
        target = np.array([1.0, -3.0])
        adam = AdamState(learning_rate=0.1)
        params = np.zeros(2)
        for _ in range(500):
            params = adam.step(params, 2.0 * (params - target))
        np.testing.assert_allclose(params, target, atol=1e-2)

    def test_shape_mismatch(self):
        adam = AdamState()
        with pytest.raises(ValueError, match="grad shape"):
            adam.step(np.zeros(3), np.zeros(2))
