"""Sample generators and training windows."""

from __future__ import annotations

from .generators import (
    EmpiricalSampler,
    FixedSampler,
    GaussianSampler,
    SampleGenerator,
    SeededSampler,
    draw,
)
from .window import TrainingWindow, rolling

__all__ = [
    # Generators
    "SampleGenerator",
    "SeededSampler",
    "GaussianSampler",
    "EmpiricalSampler",
    "FixedSampler",
    "draw",
    # Window
    "TrainingWindow",
    "rolling",
]
