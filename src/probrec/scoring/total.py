"""Total score of a reconciliation matrix over a training window.

Each period is scored independently: draw once from the period's
generator, reconcile every draw with S(d + Gx), score against the
observation. The total is the mean over scored periods.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TypeVar, Union

import numpy as np

from probrec.core.config import ScoreOptConfig
from probrec.core.errors import EDegenerateSample, EDimensionMismatch
from probrec.core.results import WindowScore
from probrec.core.types import ArrayLike, RngFactory
from probrec.hierarchy.structure import HierarchyStructure
from probrec.sampling.generators import SampleGenerator
from probrec.sampling.window import TrainingWindow
from probrec.scoring.rules import score_samples

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Iteration index, or a tuple of non-negative ints naming a draw stream
DrawKey = Union[int, tuple[int, ...]]


def rng_factory(config: ScoreOptConfig, iteration: DrawKey) -> RngFactory | None:
    """Per-period generators for one iteration, or None when unseeded.

    Period t of iteration key k always draws from default_rng([seed, *k, t]),
    regardless of the order in which periods are evaluated.
    """
    if not config.is_seeded:
        return None
    entropy = [config.seed, *((iteration,) if isinstance(iteration, int) else iteration)]

    def factory(period: int) -> np.random.Generator:
        return np.random.default_rng([*entropy, period])

    return factory


def draw_window(
    window: TrainingWindow,
    structure: HierarchyStructure,
    config: ScoreOptConfig,
    iteration: DrawKey = 0,
) -> list[np.ndarray]:
    """Draw one sample matrix per period and check its shape.

    Raises:
        EDimensionMismatch: If a draw has the wrong number of rows, or the
            wrong number of draws when config.n_draws is set
    """
    draws = window.draw_all(rng_factory(config, iteration))
    for t, samples in enumerate(draws):
        if samples.shape[0] != structure.n_series:
            raise EDimensionMismatch(
                f"Draws for period {t} have {samples.shape[0]} rows, hierarchy has "
                f"{structure.n_series} series",
                context={"period": t, "shape": samples.shape},
            )
        if config.n_draws and samples.shape[1] != config.n_draws:
            raise EDimensionMismatch(
                f"Generator for period {t} returned {samples.shape[1]} draws, "
                f"expected {config.n_draws}",
                context={"period": t, "shape": samples.shape},
            )
    return draws


def map_periods(
    fn: Callable[[int], T],
    n_periods: int,
    max_workers: int | None = 1,
) -> list[T]:
    """Apply fn to every period index and return results in period order.

    Runs on a ThreadPoolExecutor unless there is a single period or
    max_workers == 1. Exceptions raised by fn propagate to the caller.
    """
    # For a single period or max_workers=1, fall back to sequential
    if n_periods <= 1 or max_workers == 1:
        return [fn(t) for t in range(n_periods)]

    results: list[T | None] = [None] * n_periods
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(fn, t): t for t in range(n_periods)}
        for future in as_completed(futures):
            results[futures[future]] = future.result()
    return results  # type: ignore[return-value]


def guard_degenerate(
    fn: Callable[[int], T],
    policy: str,
) -> Callable[[int], T | None]:
    """Wrap a per-period function so degenerate periods yield None under 'skip'."""

    def guarded(t: int) -> T | None:
        try:
            return fn(t)
        except EDegenerateSample as exc:
            if policy == "raise":
                raise
            logger.warning("Skipping degenerate period %d: %s", t, exc.message)
            return None

    return guarded


def evaluate_window(
    window: TrainingWindow,
    structure: HierarchyStructure,
    G: np.ndarray,
    d: np.ndarray | None = None,
    config: ScoreOptConfig | None = None,
    draws: Sequence[np.ndarray] | None = None,
    iteration: DrawKey = 0,
    quiet: bool = False,
) -> WindowScore:
    """Score a fixed (G, d) over every period of a window.

    Args:
        window: Realizations and generators in the hierarchy's node order
        structure: Hierarchy descriptor
        G: Reconciliation matrix (m x n)
        d: Optional translation (m,)
        config: Scoring configuration
        draws: Pre-drawn raw samples per period; lets several candidates be
            scored on the same draws
        iteration: Iteration index (or key tuple) used to derive seeded draws
        quiet: Do not warn about single-draw periods (inner optimizer evaluations)

    Returns:
        WindowScore with per-period scores, skipped periods, the mean and
        whether any period was scored from a single draw

    Raises:
        EDimensionMismatch: If G, d, realizations or draws disagree with the hierarchy
        EDegenerateSample: If every period is degenerate, or any period is
            degenerate under degenerate_policy='raise'
    """
    config = config or ScoreOptConfig()
    window.validate(structure)
    g, offset = structure.check_reconciliation(G, d)
    if draws is None:
        draws = draw_window(window, structure, config, iteration)
    elif len(draws) != len(window):
        raise EDimensionMismatch(f"{len(draws)} draw sets for a window of {len(window)} periods")

    single_draw = any(samples.shape[1] == 1 for samples in draws)
    if single_draw and not quiet:
        logger.warning(
            "Scoring with a single draw in some periods: the dispersion term is dropped "
            "and those scores reduce to the distance to the observation"
        )

    def score_period(t: int) -> float:
        reconciled = structure.reconcile(draws[t], g, offset)
        return score_samples(reconciled, window.realizations[t], config)

    period_scores = map_periods(
        guard_degenerate(score_period, config.degenerate_policy),
        len(window),
        config.max_workers,
    )

    skipped = tuple(t for t, score in enumerate(period_scores) if score is None)
    scored = [score for score in period_scores if score is not None]
    if not scored:
        raise EDegenerateSample(
            "Every period of the training window produced a degenerate sample",
            context={"n_periods": len(window)},
        )
    mean = float(np.mean(scored))
    if not np.isfinite(mean):
        raise EDegenerateSample("Total score is not finite", context={"mean": mean})
    return WindowScore(
        period_scores=tuple(period_scores),
        skipped=skipped,
        mean=mean,
        single_draw=single_draw,
    )


def as_structure(S: ArrayLike | HierarchyStructure) -> HierarchyStructure:
    """Return S as a HierarchyStructure, validating a raw matrix."""
    if isinstance(S, HierarchyStructure):
        return S
    return HierarchyStructure(s_matrix=S)


def as_window(
    realizations: ArrayLike | TrainingWindow,
    generators: Sequence[SampleGenerator] | None,
) -> TrainingWindow:
    """Return realizations and generators as a TrainingWindow."""
    if isinstance(realizations, TrainingWindow):
        return realizations
    if generators is None:
        raise TypeError("generators are required unless realizations is a TrainingWindow")
    return TrainingWindow(realizations=realizations, generators=tuple(generators))


def total_score(
    realizations: ArrayLike | TrainingWindow,
    generators: Sequence[SampleGenerator] | None,
    S: ArrayLike | HierarchyStructure,
    G: np.ndarray,
    d: np.ndarray | None = None,
    config: ScoreOptConfig | None = None,
) -> float:
    """Mean score of the reconciliation S(d + Gx) over a training window.

    Args:
        realizations: (W x n) observed values, or a TrainingWindow
        generators: One sample generator per period (ignored for a TrainingWindow)
        S: Summing matrix (n x m) or HierarchyStructure
        G: Reconciliation matrix (m x n)
        d: Optional translation (m,)
        config: Scoring configuration

    Returns:
        Mean score over scored periods (lower is better)

    Example:
        >>> S = np.array([[1, 1], [1, 0], [0, 1]])
        >>> y = np.array([[3.0, 1.0, 2.0]])
        >>> gens = [FixedSampler(np.tile(y[0][:, None], (1, 2)))]
        >>> total_score(y, gens, S, HierarchyStructure(S).bottom_up_matrix())
        0.0
    """
    structure = as_structure(S)
    window = as_window(realizations, generators)
    return evaluate_window(window, structure, G, d, config).mean
