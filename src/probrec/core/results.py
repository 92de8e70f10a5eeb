"""Result types for scoring and optimization."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from probrec.hierarchy.structure import HierarchyStructure


@dataclass(frozen=True)
class WindowScore:
    """Scores of one reconciliation matrix over a training window.

    period_scores holds None for periods skipped as degenerate; skipped
    lists their indices. mean averages the remaining periods only.
    single_draw is set when some period was scored from one draw, which
    drops the dispersion term of the energy score.
    """

    period_scores: tuple[float | None, ...]
    skipped: tuple[int, ...]
    mean: float
    single_draw: bool = False

    @property
    def n_scored(self) -> int:
        return len(self.period_scores) - len(self.skipped)


class OptimizationStatus(Enum):
    """Outcome of a score optimization run."""

    CONVERGED = "converged"
    DID_NOT_CONVERGE = "did_not_converge"


@dataclass
class OptimizationResult:
    """Optimized reconciliation matrix and its score.

    Attributes:
        G: Best-seen reconciliation matrix (m x n)
        d: Best-seen translation vector (m,); zeros unless the offset is optimized
        score: Total score of (G, d) on a fresh evaluation of the window
        status: Convergence status
        n_iterations: Iterations actually run
        best_iteration: Iteration at which the best pair was seen
        method: Optimizer used
        history: Per-iteration objective values (empty unless traced). For adam
            this is the score estimate at each iterate; for nelder_mead it is
            the best score seen once the iteration completes, so it never rises
    """

    G: np.ndarray
    d: np.ndarray
    score: float
    status: OptimizationStatus
    n_iterations: int
    best_iteration: int = 0
    method: str = "adam"
    history: list[float] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.status is OptimizationStatus.CONVERGED

    def reconcile(self, samples: np.ndarray, structure: HierarchyStructure) -> np.ndarray:
        """Apply the optimized reconciliation to a vector or sample matrix."""
        return structure.reconcile(samples, self.G, self.d)

    def summary(self) -> dict[str, Any]:
        """Human-readable summary of the run."""
        return {
            "method": self.method,
            "status": self.status.value,
            "score": round(float(self.score), 6),
            "n_iterations": self.n_iterations,
            "best_iteration": self.best_iteration,
            "G_shape": tuple(self.G.shape),
        }
