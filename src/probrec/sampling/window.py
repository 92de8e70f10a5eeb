"""Training window of realizations paired with sample generators."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

import numpy as np
import pandas as pd

from probrec.core.errors import EDimensionMismatch
from probrec.core.types import RngFactory
from probrec.hierarchy.structure import HierarchyStructure
from probrec.sampling.generators import SampleGenerator, draw


@dataclass(frozen=True, eq=False)
class TrainingWindow:
    """Ordered periods of observed values and base-forecast generators.

    Row t of realizations is the observed n-vector of period t and
    generators[t] draws base-forecast samples for the same period. Both
    follow the hierarchy's node order.

    Attributes:
        realizations: Read-only (W x n) matrix of observed values
        generators: One sample generator per period
    """

    realizations: np.ndarray
    generators: tuple[SampleGenerator, ...]

    def __post_init__(self) -> None:
        values = np.array(self.realizations, dtype=float)
        if values.ndim == 1:
            values = values[None, :]
        if values.ndim != 2:
            raise EDimensionMismatch(
                f"realizations must be a (W x n) matrix, got {values.ndim} dimensions"
            )
        generators = tuple(self.generators)
        if values.shape[0] != len(generators):
            raise EDimensionMismatch(
                f"{values.shape[0]} realizations but {len(generators)} generators",
                context={"realizations": values.shape[0], "generators": len(generators)},
            )
        for t, generator in enumerate(generators):
            if not callable(generator):
                raise TypeError(f"generator for period {t} is not callable")
        values.setflags(write=False)
        object.__setattr__(self, "realizations", values)
        object.__setattr__(self, "generators", generators)

    def __len__(self) -> int:
        return len(self.generators)

    @property
    def n_series(self) -> int:
        return self.realizations.shape[1]

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[np.ndarray, SampleGenerator]]) -> TrainingWindow:
        """Build a window from (realization, generator) pairs."""
        pairs = list(pairs)
        if not pairs:
            raise EDimensionMismatch("Training window must contain at least one period")
        vectors = [np.asarray(y, dtype=float).ravel() for y, _ in pairs]
        lengths = {v.shape[0] for v in vectors}
        if len(lengths) != 1:
            raise EDimensionMismatch(
                f"Realizations have inconsistent lengths: {sorted(lengths)}"
            )
        return cls(realizations=np.vstack(vectors), generators=tuple(g for _, g in pairs))

    @classmethod
    def from_frame(
        cls,
        actuals: pd.DataFrame,
        generators: Sequence[SampleGenerator],
        structure: HierarchyStructure,
    ) -> TrainingWindow:
        """Build a window from a wide frame with one column per node name.

        Columns are reordered to the structure's node order; rows keep
        their order and pair with generators by position.
        """
        return cls(realizations=structure.align(actuals), generators=tuple(generators))

    def validate(self, structure: HierarchyStructure) -> None:
        """Check the window against a hierarchy.

        Raises:
            EDimensionMismatch: If the window is empty or realizations are not length n
        """
        if len(self) == 0:
            raise EDimensionMismatch("Training window must contain at least one period")
        if self.n_series != structure.n_series:
            raise EDimensionMismatch(
                f"Realizations have length {self.n_series}, hierarchy has {structure.n_series} series",
                context={"realization_length": self.n_series, "n_series": structure.n_series},
            )

    def draw_all(self, rng_factory: RngFactory | None = None) -> list[np.ndarray]:
        """Draw one sample matrix per period."""
        return [
            draw(generator, rng_factory(t) if rng_factory is not None else None)
            for t, generator in enumerate(self.generators)
        ]

    def subset(self, start: int, stop: int) -> TrainingWindow:
        """Return periods [start, stop) as a new window."""
        return TrainingWindow(
            realizations=self.realizations[start:stop],
            generators=self.generators[start:stop],
        )


def rolling(
    realizations: np.ndarray,
    generators: Sequence[SampleGenerator],
    size: int,
    step: int = 1,
) -> Iterator[TrainingWindow]:
    """Yield consecutive training windows of a fixed size.

    Windows start at 0, step, 2*step, ... and stop once fewer than size
    periods remain.
    """
    if size < 1 or step < 1:
        raise ValueError("size and step must be positive")
    full = TrainingWindow(realizations=realizations, generators=tuple(generators))
    for start in range(0, len(full) - size + 1, step):
        yield full.subset(start, start + size)
