"""Scoring rules, their sample-path gradients and the total score."""

from __future__ import annotations

from .gradients import energy_score_gradient, variogram_score_gradient
from .rules import energy_score, score_samples, variogram_score
from .total import draw_window, evaluate_window, total_score

__all__ = [
    # Rules
    "energy_score",
    "variogram_score",
    "score_samples",
    # Gradients
    "energy_score_gradient",
    "variogram_score_gradient",
    # Total score
    "total_score",
    "evaluate_window",
    "draw_window",
]
