"""Score-optimal reconciliation search."""

from __future__ import annotations

from .adam import AdamState
from .convergence import MovingWindowCriterion
from .optimizer import ScoreOptimizer, score_optimize

__all__ = [
    "ScoreOptimizer",
    "score_optimize",
    "AdamState",
    "MovingWindowCriterion",
]
