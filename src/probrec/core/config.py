"""Unified configuration for score-optimal reconciliation.

A single frozen dataclass carries every option recognized by the scoring
and optimization entry points, with sensible defaults and presets.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Literal

import numpy as np


@dataclass(frozen=True, eq=False)
class ScoreOptConfig:
    """Configuration for total-score evaluation and score optimization.

    Args:
        n_draws: Draws K required from each generator call (0 accepts whatever K
            the generator produces)
        scoring: Proper scoring rule - 'energy' or 'variogram'
        alpha: Energy score exponent, in (0, 2]
        variogram_p: Variogram score order
        levels: Optional row indices the score is restricted to
        method: Optimizer - 'adam' (stochastic gradient) or 'nelder_mead'
        max_iter: Iteration cap
        tol: Relative improvement tolerance of the moving-window stopping rule
        convergence_window: Number of iterations in each moving window
        learning_rate: Adam step size (eta)
        beta1: Adam first-moment decay
        beta2: Adam second-moment decay
        epsilon: Adam denominator guard
        seed_policy: 'fixed_per_iteration' scores every candidate of one
            iteration on the same draws; 'stochastic' redraws per evaluation
        seed: Base seed handed to seeded samplers (None = unseeded)
        init: Initial G - 'bottom_up', 'ols' or an explicit (m x n) array
        optimize_offset: Also optimize the translation d in S(d + Gx)
        degenerate_policy: 'skip' degenerate periods or 'raise'
        max_retries: Redraws allowed when every period of an iteration is degenerate
        raise_on_nonconvergence: Raise EDidNotConverge instead of flagging status
        max_workers: Thread pool size for per-period scoring (1 = sequential,
            None = executor default)
        trace: Keep the per-iteration score history
        log_every: Iterations between debug progress messages
    """

    # Sampling
    n_draws: int = 0

    # Scoring rule
    scoring: Literal["energy", "variogram"] = "energy"
    alpha: float = 1.0
    variogram_p: float = 0.5
    levels: tuple[int, ...] | None = None

    # Optimizer
    method: Literal["adam", "nelder_mead"] = "adam"
    max_iter: int = 500
    tol: float = 1e-4
    convergence_window: int = 10
    learning_rate: float = 1e-3
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8

    # Randomness
    seed_policy: Literal["fixed_per_iteration", "stochastic"] = "fixed_per_iteration"
    seed: int | None = None

    # Starting point
    init: Any = "bottom_up"
    optimize_offset: bool = False

    # Failure handling
    degenerate_policy: Literal["skip", "raise"] = "skip"
    max_retries: int = 3
    raise_on_nonconvergence: bool = False

    # Execution
    max_workers: int | None = 1
    trace: bool = False
    log_every: int = 50

    def __post_init__(self) -> None:
        # Validation
        if self.n_draws < 0:
            raise ValueError(f"n_draws must be non-negative, got {self.n_draws}")
        if self.scoring not in ("energy", "variogram"):
            raise ValueError(f"scoring must be 'energy' or 'variogram', got {self.scoring!r}")
        if not 0 < self.alpha <= 2:
            raise ValueError(f"alpha must be in (0, 2], got {self.alpha}")
        if self.variogram_p <= 0:
            raise ValueError(f"variogram_p must be positive, got {self.variogram_p}")
        if self.method not in ("adam", "nelder_mead"):
            raise ValueError(f"method must be 'adam' or 'nelder_mead', got {self.method!r}")
        if self.max_iter < 1:
            raise ValueError("max_iter must be at least 1")
        if self.tol < 0:
            raise ValueError("tol must be non-negative")
        if self.convergence_window < 1:
            raise ValueError("convergence_window must be at least 1")
        if self.learning_rate <= 0:
            raise ValueError("learning_rate must be positive")
        if not (0 <= self.beta1 < 1 and 0 <= self.beta2 < 1):
            raise ValueError("beta1 and beta2 must be in [0, 1)")
        if self.seed_policy not in ("fixed_per_iteration", "stochastic"):
            raise ValueError(
                f"seed_policy must be 'fixed_per_iteration' or 'stochastic', got {self.seed_policy!r}"
            )
        if self.degenerate_policy not in ("skip", "raise"):
            raise ValueError(f"degenerate_policy must be 'skip' or 'raise', got {self.degenerate_policy!r}")
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.seed is not None and self.seed < 0:
            raise ValueError(f"seed must be non-negative, got {self.seed}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("max_workers must be at least 1 or None")
        if isinstance(self.init, str) and self.init not in ("bottom_up", "ols"):
            raise ValueError(f"init must be 'bottom_up', 'ols' or an array, got {self.init!r}")
        if self.levels is not None:
            object.__setattr__(self, "levels", tuple(int(i) for i in self.levels))
            if not self.levels:
                raise ValueError("levels cannot be empty")
        if not isinstance(self.init, str):
            object.__setattr__(self, "init", np.asarray(self.init, dtype=float))

    @classmethod
    def quick(cls, seed: int | None = None) -> ScoreOptConfig:
        """Quick experimentation preset.

        Few iterations and a large step, good enough to see the direction
        of improvement over bottom-up.
        """
        return cls(
            max_iter=100,
            learning_rate=1e-2,
            convergence_window=5,
            tol=1e-3,
            seed=seed,
        )

    @classmethod
    def standard(cls, seed: int | None = None) -> ScoreOptConfig:
        """Standard preset - defaults of the Adam optimizer."""
        return cls(seed=seed)

    @classmethod
    def thorough(cls, seed: int | None = None) -> ScoreOptConfig:
        """Long run with a tight tolerance; fails loudly on non-convergence."""
        return cls(
            max_iter=5000,
            tol=1e-5,
            convergence_window=25,
            raise_on_nonconvergence=True,
            seed=seed,
        )

    def with_overrides(self, **overrides: Any) -> ScoreOptConfig:
        """Return a copy with the given fields replaced (re-validated)."""
        return replace(self, **overrides)

    @property
    def is_seeded(self) -> bool:
        """Whether draws are routed through explicit seeded generators."""
        return self.seed is not None
