"""Adam update rule for flat parameter vectors."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


@dataclass
class AdamState:
    """First and second moment estimates of the Adam optimizer.

    Attributes:
        learning_rate: Step size eta
        beta1: Decay of the first moment
        beta2: Decay of the second moment
        epsilon: Denominator guard
        step_count: Number of updates applied so far
    """

    learning_rate: float = 1e-3
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8
    step_count: int = 0
    _m: np.ndarray | None = field(default=None, repr=False)
    _v: np.ndarray | None = field(default=None, repr=False)

    def step(self, params: np.ndarray, grad: np.ndarray) -> np.ndarray:
        """Return params moved one bias-corrected Adam step against grad."""
        if self._m is None or self._v is None:
            self._m = np.zeros_like(params)
            self._v = np.zeros_like(params)
        if grad.shape != params.shape:
            raise ValueError(f"grad shape {grad.shape} doesn't match params shape {params.shape}")

        self.step_count += 1
        self._m = self.beta1 * self._m + (1.0 - self.beta1) * grad
        self._v = self.beta2 * self._v + (1.0 - self.beta2) * grad**2
        m_hat = self._m / (1.0 - self.beta1**self.step_count)
        v_hat = self._v / (1.0 - self.beta2**self.step_count)
        return params - self.learning_rate * m_hat / (np.sqrt(v_hat) + self.epsilon)
