"""Sample generators for base-forecast distributions.

A sample generator is any zero-argument callable returning a fresh
(n x K) matrix of K independent draws from one period's base-forecast
distribution. Samplers deriving from SeededSampler can additionally draw
from an explicit numpy Generator, which lets the scoring layer make draws
reproducible per (seed, iteration, period).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

import numpy as np

from probrec.core.errors import EDimensionMismatch


@runtime_checkable
class SampleGenerator(Protocol):
    """Zero-argument draw of an (n x K) sample matrix."""

    def __call__(self) -> np.ndarray: ...


class SeededSampler(ABC):
    """Sampler that can draw from an explicit random generator.

    Calling the sampler with no arguments uses its own generator, so it
    satisfies the SampleGenerator protocol; sample(rng) draws from the
    generator supplied by the caller instead.
    """

    def __init__(self, n_draws: int = 50, seed: int | None = None) -> None:
        if n_draws < 1:
            raise ValueError(f"n_draws must be positive, got {n_draws}")
        self.n_draws = n_draws
        self._rng = np.random.default_rng(seed)

    @property
    @abstractmethod
    def n_series(self) -> int:
        """Number of rows n of each sample matrix."""

    @abstractmethod
    def sample(self, rng: np.random.Generator) -> np.ndarray:
        """Draw an (n x n_draws) matrix using rng."""

    def __call__(self) -> np.ndarray:
        return self.sample(self._rng)


class GaussianSampler(SeededSampler):
    """Normal base forecasts, independent per series or jointly correlated.

    Args:
        mean: Forecast mean per series (n,)
        std: Per-series standard deviations (independent draws)
        cov: Full covariance matrix (n x n); mutually exclusive with std
        n_draws: Draws per call
        seed: Seed of the sampler's own generator
    """

    def __init__(
        self,
        mean: np.ndarray,
        std: np.ndarray | None = None,
        cov: np.ndarray | None = None,
        n_draws: int = 50,
        seed: int | None = None,
    ) -> None:
        super().__init__(n_draws=n_draws, seed=seed)
        self.mean = np.asarray(mean, dtype=float).ravel()
        n = self.mean.shape[0]
        if (std is None) == (cov is None):
            raise ValueError("Exactly one of std or cov must be given")
        if std is not None:
            self.std = np.broadcast_to(np.asarray(std, dtype=float), (n,)).copy()
            if np.any(self.std < 0):
                raise ValueError("std must be non-negative")
            self.cov = None
        else:
            self.std = None
            self.cov = np.asarray(cov, dtype=float)
            if self.cov.shape != (n, n):
                raise EDimensionMismatch(
                    f"cov shape {self.cov.shape} doesn't match mean length {n}"
                )

    @property
    def n_series(self) -> int:
        return self.mean.shape[0]

    def sample(self, rng: np.random.Generator) -> np.ndarray:
        if self.std is not None:
            noise = rng.standard_normal((self.n_series, self.n_draws))
            return self.mean[:, None] + self.std[:, None] * noise
        draws = rng.multivariate_normal(self.mean, self.cov, size=self.n_draws)
        return draws.T


class EmpiricalSampler(SeededSampler):
    """Bootstrap draws from a fixed pool of simulated base-forecast paths.

    Columns of pool (n x P) are resampled with replacement.
    """

    def __init__(self, pool: np.ndarray, n_draws: int = 50, seed: int | None = None) -> None:
        super().__init__(n_draws=n_draws, seed=seed)
        self.pool = np.asarray(pool, dtype=float)
        if self.pool.ndim != 2 or self.pool.shape[1] == 0:
            raise ValueError(f"pool must be a non-empty (n x P) matrix, got shape {self.pool.shape}")

    @property
    def n_series(self) -> int:
        return self.pool.shape[0]

    def sample(self, rng: np.random.Generator) -> np.ndarray:
        columns = rng.integers(0, self.pool.shape[1], size=self.n_draws)
        return self.pool[:, columns]


class FixedSampler(SeededSampler):
    """Deterministic generator that always returns the same matrix."""

    def __init__(self, matrix: np.ndarray) -> None:
        values = np.asarray(matrix, dtype=float)
        if values.ndim == 1:
            values = values[:, None]
        super().__init__(n_draws=values.shape[1])
        self.matrix = values

    @property
    def n_series(self) -> int:
        return self.matrix.shape[0]

    def sample(self, rng: np.random.Generator) -> np.ndarray:
        return self.matrix.copy()


def draw(generator: SampleGenerator, rng: np.random.Generator | None = None) -> np.ndarray:
    """Invoke a generator and return its draws as a float (n x K) array.

    Seeded samplers draw from rng when one is given; any other callable is
    simply called. A 1-D output is a single draw (K=1).
    """
    if rng is not None and isinstance(generator, SeededSampler):
        samples = generator.sample(rng)
    else:
        samples = generator()
    samples = np.asarray(samples, dtype=float)
    if samples.ndim == 1:
        samples = samples[:, None]
    if samples.ndim != 2:
        raise EDimensionMismatch(
            f"Sample generator returned an array with {samples.ndim} dimensions, expected 2"
        )
    return samples
