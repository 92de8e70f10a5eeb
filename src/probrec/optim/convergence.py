"""Moving-window stopping rule for noisy objectives."""

from __future__ import annotations

import numpy as np


class MovingWindowCriterion:
    """Stop when the mean objective of the latest window stops improving.

    After each update the mean of the last `window` objective values is
    compared with the mean of the `window` values before them. The run has
    converged once the relative improvement falls below `tol`.
    """

    def __init__(self, window: int = 10, tol: float = 1e-4) -> None:
        if window < 1:
            raise ValueError("window must be at least 1")
        self.window = window
        self.tol = tol
        self.values: list[float] = []

    def update(self, value: float) -> bool:
        """Record an objective value and report whether the run has converged."""
        self.values.append(float(value))
        return self.converged

    @property
    def relative_improvement(self) -> float | None:
        """Relative drop between the two latest windows, None until both are full."""
        if len(self.values) < 2 * self.window:
            return None
        previous = np.mean(self.values[-2 * self.window : -self.window])
        current = np.mean(self.values[-self.window :])
        scale = max(abs(previous), np.finfo(float).tiny)
        return float((previous - current) / scale)

    @property
    def converged(self) -> bool:
        improvement = self.relative_improvement
        return improvement is not None and improvement < self.tol
