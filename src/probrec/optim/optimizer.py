"""Score-optimal reconciliation.

Searches for the reconciliation S(d + Gx) that minimizes the mean sampled
score over a training window. Two searches are available:

- adam: stochastic gradient descent using the sample-path gradient of the
  score on each iteration's draws.
- nelder_mead: derivative-free simplex search over vec(G) (and d).

The optimizer loop is the single owner of the best-seen (G, d); worker
threads only compute per-period scores and gradients.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
from scipy.optimize import minimize

from probrec.core.config import ScoreOptConfig
from probrec.core.errors import EDegenerateSample, EDidNotConverge
from probrec.core.results import OptimizationResult, OptimizationStatus
from probrec.core.types import ArrayLike
from probrec.hierarchy.structure import HierarchyStructure
from probrec.optim.adam import AdamState
from probrec.optim.convergence import MovingWindowCriterion
from probrec.sampling.generators import SampleGenerator
from probrec.sampling.window import TrainingWindow
from probrec.scoring.gradients import energy_score_gradient, variogram_score_gradient
from probrec.scoring.total import (
    as_structure,
    as_window,
    draw_window,
    evaluate_window,
    guard_degenerate,
    map_periods,
)

logger = logging.getLogger(__name__)


class ScoreOptimizer:
    """Find the reconciliation matrix minimizing the total score.

    Example:
        >>> optimizer = ScoreOptimizer(structure, ScoreOptConfig.quick(seed=1))
        >>> result = optimizer.fit(window)
        >>> result.G.shape == (structure.n_bottom, structure.n_series)
        True

    Attributes (set during fit):
        best_G_: Best-seen reconciliation matrix
        best_d_: Best-seen translation
        best_score_: Objective estimate at the best-seen pair
        n_iter_: Iterations run
    """

    def __init__(
        self,
        structure: HierarchyStructure,
        config: ScoreOptConfig | None = None,
    ) -> None:
        self.structure = structure
        self.config = config or ScoreOptConfig()
        self.best_G_: np.ndarray | None = None
        self.best_d_: np.ndarray | None = None
        self.best_score_: float = np.inf
        self.best_iteration_: int = 0
        self.n_iter_: int = 0
        self._history: list[float] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def initial_matrix(self) -> np.ndarray:
        """Starting G from config.init."""
        init = self.config.init
        if isinstance(init, str):
            if init == "ols":
                return self.structure.ols_matrix()
            return self.structure.bottom_up_matrix()
        g, _ = self.structure.check_reconciliation(init)
        return g.copy()

    def fit(self, window: TrainingWindow) -> OptimizationResult:
        """Run the configured search over the window.

        Raises:
            EDimensionMismatch: If the window, init or any draw disagrees
                with the hierarchy; the best-seen pair so far is kept on
                the optimizer
            EDegenerateSample: Under degenerate_policy='raise'
            EDidNotConverge: If raise_on_nonconvergence is set and the
                iteration cap is hit
        """
        window.validate(self.structure)
        g0 = self.initial_matrix()
        d0 = np.zeros(self.structure.n_bottom)

        self.best_G_, self.best_d_ = g0.copy(), d0.copy()
        self.best_score_ = np.inf
        self.best_iteration_ = 0
        self.n_iter_ = 0
        self._history = []

        logger.info(
            "Starting %s score optimization: n=%d m=%d periods=%d scoring=%s",
            self.config.method,
            self.structure.n_series,
            self.structure.n_bottom,
            len(window),
            self.config.scoring,
        )

        if self.config.method == "nelder_mead":
            converged = self._fit_nelder_mead(window, g0, d0)
        else:
            converged = self._fit_adam(window, g0, d0)

        score = evaluate_window(
            window,
            self.structure,
            self.best_G_,
            self.best_d_,
            self.config,
            iteration=self._FINAL_KEY,
        ).mean

        status = OptimizationStatus.CONVERGED if converged else OptimizationStatus.DID_NOT_CONVERGE
        result = OptimizationResult(
            G=self.best_G_.copy(),
            d=self.best_d_.copy(),
            score=score,
            status=status,
            n_iterations=self.n_iter_,
            best_iteration=self.best_iteration_,
            method=self.config.method,
            history=list(self._history) if self.config.trace else [],
        )

        if converged:
            logger.info(
                "Score optimization converged after %d iterations: score=%.6f",
                self.n_iter_,
                score,
            )
        else:
            logger.warning(
                "Score optimization hit max_iter=%d without converging; returning best-seen "
                "result from iteration %d (score=%.6f)",
                self.config.max_iter,
                self.best_iteration_,
                score,
            )
            if self.config.raise_on_nonconvergence:
                raise EDidNotConverge(
                    f"No convergence within {self.config.max_iter} iterations",
                    context={"result": result},
                )
        return result

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    # Draw-stream keys: gradient draws, fresh score estimates, per-iteration
    # simplex draws, per-evaluation simplex draws and the final evaluation
    # never share seeds
    _FINAL_KEY = (3,)

    @staticmethod
    def _gradient_key(iteration: int, attempt: int) -> tuple[int, ...]:
        return (0, iteration, attempt)

    @staticmethod
    def _fresh_key(iteration: int) -> tuple[int, ...]:
        return (1, iteration)

    @staticmethod
    def _simplex_key(iteration: int) -> tuple[int, ...]:
        return (2, 0, iteration)

    @staticmethod
    def _evaluation_key(evaluation: int) -> tuple[int, ...]:
        return (2, 1, evaluation)

    def _record(self, G: np.ndarray, d: np.ndarray, score: float, iteration: int) -> None:
        if score < self.best_score_:
            self.best_G_ = G.copy()
            self.best_d_ = d.copy()
            self.best_score_ = score
            self.best_iteration_ = iteration

    def _scored_rows(self, window: TrainingWindow) -> tuple[np.ndarray, np.ndarray]:
        rows = list(self.config.levels) if self.config.levels is not None else slice(None)
        return self.structure.s_matrix[rows], window.realizations[:, rows]

    def _pack(self, G: np.ndarray, d: np.ndarray) -> np.ndarray:
        if self.config.optimize_offset:
            return np.concatenate([G.ravel(), d])
        return G.ravel().copy()

    def _unpack(self, theta: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        m, n = self.structure.n_bottom, self.structure.n_series
        G = theta[: m * n].reshape(m, n)
        if self.config.optimize_offset:
            return G, theta[m * n :].copy()
        return G, np.zeros(m)

    # ------------------------------------------------------------------
    # Adam
    # ------------------------------------------------------------------

    def _gradient_step(
        self,
        window: TrainingWindow,
        G: np.ndarray,
        d: np.ndarray,
        iteration: int,
    ) -> tuple[float, np.ndarray, np.ndarray] | None:
        """Mean score and gradient over the window on one iteration's draws.

        Returns None if every period stays degenerate after max_retries redraws.
        """
        config = self.config
        s_rows, y_rows = self._scored_rows(window)

        def period_gradient(t: int, draws: list[np.ndarray]) -> tuple[float, np.ndarray, np.ndarray]:
            if config.scoring == "energy":
                return energy_score_gradient(s_rows, G, d, draws[t], y_rows[t], config.alpha)
            return variogram_score_gradient(s_rows, G, d, draws[t], y_rows[t], config.variogram_p)

        for attempt in range(config.max_retries + 1):
            draws = draw_window(
                window, self.structure, config, self._gradient_key(iteration, attempt)
            )
            results = map_periods(
                guard_degenerate(lambda t: period_gradient(t, draws), config.degenerate_policy),
                len(window),
                config.max_workers,
            )
            scored = [r for r in results if r is not None]
            if scored:
                score = float(np.mean([r[0] for r in scored]))
                grad_g = np.mean([r[1] for r in scored], axis=0)
                grad_d = np.mean([r[2] for r in scored], axis=0)
                return score, grad_g, grad_d
            logger.warning(
                "Iteration %d: every period degenerate (attempt %d of %d)",
                iteration,
                attempt + 1,
                config.max_retries + 1,
            )
        return None

    def _fit_adam(self, window: TrainingWindow, G: np.ndarray, d: np.ndarray) -> bool:
        config = self.config
        adam = AdamState(
            learning_rate=config.learning_rate,
            beta1=config.beta1,
            beta2=config.beta2,
            epsilon=config.epsilon,
        )
        criterion = MovingWindowCriterion(window=config.convergence_window, tol=config.tol)
        theta = self._pack(G, d)

        for iteration in range(config.max_iter):
            self.n_iter_ = iteration + 1
            G, d = self._unpack(theta)
            step = self._gradient_step(window, G, d, iteration)
            if step is None:
                continue
            score, grad_g, grad_d = step

            if config.seed_policy == "stochastic":
                try:
                    score = evaluate_window(
                        window,
                        self.structure,
                        G,
                        d,
                        config,
                        iteration=self._fresh_key(iteration),
                        quiet=True,
                    ).mean
                except EDegenerateSample:
                    if config.degenerate_policy == "raise":
                        raise
                    logger.warning("Iteration %d: fresh score estimate degenerate", iteration)

            self._record(G, d, score, iteration)
            self._history.append(score)

            if config.log_every and iteration % config.log_every == 0:
                logger.debug(
                    "Iteration %d: score=%.6f best=%.6f", iteration, score, self.best_score_
                )

            if criterion.update(score):
                return True

            grad = self._pack(grad_g, grad_d)
            theta = adam.step(theta, grad)

        return False

    # ------------------------------------------------------------------
    # Nelder-Mead
    # ------------------------------------------------------------------

    def _fit_nelder_mead(self, window: TrainingWindow, G: np.ndarray, d: np.ndarray) -> bool:
        config = self.config
        # Draws shared by every evaluation of the current simplex iteration
        iteration_draws: dict[int, Sequence[np.ndarray]] = {}
        evaluations = 0

        def current_draws() -> Sequence[np.ndarray] | None:
            if config.seed_policy != "fixed_per_iteration":
                return None
            if self.n_iter_ not in iteration_draws:
                iteration_draws.clear()
                iteration_draws[self.n_iter_] = draw_window(
                    window, self.structure, config, self._simplex_key(self.n_iter_)
                )
            return iteration_draws[self.n_iter_]

        def objective(theta: np.ndarray) -> float:
            nonlocal evaluations
            candidate_g, candidate_d = self._unpack(theta)
            evaluations += 1
            try:
                score = evaluate_window(
                    window,
                    self.structure,
                    candidate_g,
                    candidate_d,
                    config,
                    draws=current_draws(),
                    iteration=self._evaluation_key(evaluations),
                    quiet=True,
                ).mean
            except EDegenerateSample:
                if config.degenerate_policy == "raise":
                    raise
                logger.warning("Evaluation %d degenerate; treating candidate as infeasible", evaluations)
                return np.inf
            self._record(candidate_g, candidate_d, score, self.n_iter_)
            return score

        def callback(theta: np.ndarray) -> None:
            self.n_iter_ += 1
            self._history.append(self.best_score_)
            if config.log_every and self.n_iter_ % config.log_every == 0:
                logger.debug("Iteration %d: best=%.6f", self.n_iter_, self.best_score_)

        res = minimize(
            objective,
            self._pack(G, d),
            method="Nelder-Mead",
            callback=callback,
            options={
                "maxiter": config.max_iter,
                "xatol": config.tol,
                "fatol": config.tol,
                "adaptive": True,
            },
        )
        self.n_iter_ = int(res.nit)
        return bool(res.success)


def score_optimize(
    realizations: ArrayLike | TrainingWindow,
    generators: Sequence[SampleGenerator] | None,
    S: ArrayLike | HierarchyStructure,
    config: ScoreOptConfig | None = None,
) -> OptimizationResult:
    """Optimize the reconciliation matrix over a training window.

    Args:
        realizations: (W x n) observed values, or a TrainingWindow
        generators: One sample generator per period (ignored for a TrainingWindow)
        S: Summing matrix (n x m) or HierarchyStructure
        config: Optimization configuration

    Returns:
        OptimizationResult with the best-seen G, d, its total score and status
    """
    structure = as_structure(S)
    window = as_window(realizations, generators)
    return ScoreOptimizer(structure, config).fit(window)
