"""Shared type definitions for probrec.

Type aliases used across modules for clarity and consistency.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Union

import numpy as np

# Anything np.asarray turns into a float matrix or vector
ArrayLike = Any

# Factory of per-period random generators, keyed by period index
RngFactory = Callable[[int], Union[np.random.Generator, None]]

__all__ = [
    "ArrayLike",
    "RngFactory",
]
