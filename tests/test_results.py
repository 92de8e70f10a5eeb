"""Tests for result containers."""

from __future__ import annotations

import numpy as np
import pytest

from probrec import HierarchyStructure, OptimizationResult, OptimizationStatus, WindowScore


@pytest.fixture
def result():
    return OptimizationResult(
        G=np.array([[0.1, 0.9, 0.0], [0.1, 0.0, 0.9]]),
        d=np.array([0.5, -0.5]),
        score=1.23456789,
        status=OptimizationStatus.CONVERGED,
        n_iterations=42,
        best_iteration=40,
    )


class TestWindowScore:
    """Test WindowScore."""

    def test_n_scored(self):
        score = WindowScore(period_scores=(1.0, None, 2.0), skipped=(1,), mean=1.5)
        assert score.n_scored == 2


class TestOptimizationResult:
    """Test OptimizationResult."""

    def test_converged(self, result):
        assert result.converged
        result.status = OptimizationStatus.DID_NOT_CONVERGE
        assert not result.converged

    def test_reconcile(self, result):
        """Reconciled forecasts are coherent."""
        structure = HierarchyStructure(np.array([[1, 1], [1, 0], [0, 1]]))
        coherent = result.reconcile(np.array([10.0, 4.0, 5.0]), structure)
        assert structure.is_coherent(coherent)
        np.testing.assert_allclose(coherent[1:], [5.1, 5.0])

    def test_summary(self, result):
        summary = result.summary()
        assert summary["status"] == "converged"
        assert summary["score"] == 1.234568
        assert summary["n_iterations"] == 42
        assert summary["G_shape"] == (2, 3)
        assert summary["method"] == "adam"
