"""Core module - configuration, errors and result containers.

This module provides the foundational types shared by the hierarchy,
scoring and optimization layers.
"""

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

__all__ = [
    # Config
    "ScoreOptConfig",
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
