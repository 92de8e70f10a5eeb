"""probrec - Score-optimal reconciliation of probabilistic hierarchical forecasts.

Given Monte Carlo base forecasts and observed values over a training window,
find the linear reconciliation S(d + Gx) that minimizes a proper scoring
rule (energy or variogram score), or evaluate a fixed reconciliation.

Input contract:
    S is an (n x m) 0/1 summing matrix whose last m rows are the identity.
    Realizations are (W x n); each period's generator returns (n x K) draws.
    All of them follow the same variable order.

Basic usage:
    >>> from probrec import HierarchyStructure, total_score, score_optimize
    >>> structure = HierarchyStructure(S)
    >>> bottom_up = total_score(y, generators, structure, structure.bottom_up_matrix())
    >>> result = score_optimize(y, generators, structure)
    >>> result.score <= bottom_up

Advanced usage:
    >>> from probrec import ScoreOptConfig, ScoreOptimizer, TrainingWindow
    >>> config = ScoreOptConfig.quick(seed=42).with_overrides(method="nelder_mead")
    >>> window = TrainingWindow.from_frame(actuals, generators, structure)
    >>> result = ScoreOptimizer(structure, config).fit(window)
"""

__version__ = "0.3.0"

# Core API
from probrec.core.config import ScoreOptConfig
from probrec.core.errors import (
    DegenerateSample,
    DidNotConverge,
    DimensionMismatch,
    EDegenerateSample,
    EDidNotConverge,
    EDimensionMismatch,
    EInvalidHierarchy,
    InvalidHierarchy,
    ProbRecError,
)
from probrec.core.results import OptimizationResult, OptimizationStatus, WindowScore

# Hierarchy and sampling
from probrec.hierarchy import HierarchyStructure

# Main entry points
from probrec.optim import ScoreOptimizer, score_optimize
from probrec.sampling import (
    EmpiricalSampler,
    FixedSampler,
    GaussianSampler,
    SampleGenerator,
    SeededSampler,
    TrainingWindow,
    rolling,
)

# Scoring
from probrec.scoring import (
    energy_score,
    evaluate_window,
    score_samples,
    total_score,
    variogram_score,
)

__all__ = [
    "__version__",
    # Main entry points
    "total_score",
    "score_optimize",
    "ScoreOptimizer",
    "evaluate_window",
    # Config
    "ScoreOptConfig",
    # Hierarchy
    "HierarchyStructure",
    # Sampling
    "SampleGenerator",
    "SeededSampler",
    "GaussianSampler",
    "EmpiricalSampler",
    "FixedSampler",
    "TrainingWindow",
    "rolling",
    # Scoring rules
    "energy_score",
    "variogram_score",
    "score_samples",
    # Results
    "WindowScore",
    "OptimizationResult",
    "OptimizationStatus",
    # Errors
    "ProbRecError",
    "EInvalidHierarchy",
    "EDimensionMismatch",
    "EDidNotConverge",
    "EDegenerateSample",
    "InvalidHierarchy",
    "DimensionMismatch",
    "DidNotConverge",
    "DegenerateSample",
]
