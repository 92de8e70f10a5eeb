"""Sample-based proper scoring rules for multivariate forecasts.

Scores are negatively oriented: lower is better, zero for a perfect
point mass at the observation.
"""

from __future__ import annotations

import numpy as np
from scipy.spatial.distance import pdist

from probrec.core.config import ScoreOptConfig
from probrec.core.errors import EDegenerateSample, EDimensionMismatch


def _check_inputs(samples: np.ndarray, truth: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    x = np.asarray(samples, dtype=float)
    y = np.asarray(truth, dtype=float).ravel()
    if x.ndim == 1:
        x = x[:, None]
    if x.ndim != 2 or x.shape[0] != y.shape[0]:
        raise EDimensionMismatch(
            f"samples shape {x.shape} doesn't match truth length {y.shape[0]}"
        )
    if x.shape[1] == 0:
        raise EDegenerateSample("Sample matrix contains no draws")
    if not np.all(np.isfinite(y)):
        raise EDegenerateSample("Observed values contain NaN or Inf")
    if not np.all(np.isfinite(x)):
        raise EDegenerateSample(
            "Sample draws contain NaN or Inf",
            context={"n_nonfinite": int(np.sum(~np.isfinite(x)))},
        )
    return x, y


def energy_score(samples: np.ndarray, truth: np.ndarray, alpha: float = 1.0) -> float:
    """Energy score of a sample distribution against an observation.

    ES = (1/K) sum_k ||x_k - y||^a - 1/(2K(K-1)) sum_{j!=k} ||x_j - x_k||^a

    Args:
        samples: Draws as columns (n x K)
        truth: Observed vector (n,)
        alpha: Distance exponent in (0, 2]; alpha=2 is not strictly proper

    Returns:
        The score. With K=1 the dispersion term is zero; evaluate_window
        flags and logs such periods.

    Raises:
        EDimensionMismatch: If sample rows differ from the truth length
        EDegenerateSample: If any value is NaN or Inf
    """
    x, y = _check_inputs(samples, truth)
    k = x.shape[1]

    accuracy = np.mean(np.linalg.norm(x - y[:, None], axis=0) ** alpha)
    if k == 1:
        return float(accuracy)

    # Mean over unordered pairs equals the ordered-pair sum over K(K-1)
    dispersion = 0.5 * np.mean(pdist(x.T, metric="euclidean") ** alpha)
    return float(accuracy - dispersion)


def variogram_score(
    samples: np.ndarray,
    truth: np.ndarray,
    p: float = 0.5,
    weights: np.ndarray | None = None,
) -> float:
    """Variogram score of order p.

    VS = sum_{i<j} w_ij (|y_i - y_j|^p - (1/K) sum_k |x_ki - x_kj|^p)^2

    Args:
        samples: Draws as columns (n x K)
        truth: Observed vector (n,)
        p: Variogram order
        weights: Optional symmetric (n x n) pair weights (default: all ones)
    """
    x, y = _check_inputs(samples, truth)
    n = y.shape[0]
    w = _pair_weights(weights, n)

    observed = np.abs(y[:, None] - y[None, :]) ** p
    expected = np.mean(np.abs(x[:, None, :] - x[None, :, :]) ** p, axis=2)
    upper = np.triu_indices(n, k=1)
    return float(np.sum(w[upper] * (observed[upper] - expected[upper]) ** 2))


def _pair_weights(weights: np.ndarray | None, n: int) -> np.ndarray:
    if weights is None:
        return np.ones((n, n))
    w = np.asarray(weights, dtype=float)
    if w.shape != (n, n):
        raise EDimensionMismatch(f"variogram weights shape {w.shape} doesn't match ({n}, {n})")
    return w


def score_samples(
    samples: np.ndarray,
    truth: np.ndarray,
    config: ScoreOptConfig | None = None,
) -> float:
    """Score reconciled draws with the rule selected in config.

    When config.levels is set, only those rows enter the score.
    """
    config = config or ScoreOptConfig()
    x = np.asarray(samples, dtype=float)
    y = np.asarray(truth, dtype=float).ravel()
    if config.levels is not None:
        rows = list(config.levels)
        if max(rows) >= y.shape[0] or min(rows) < -y.shape[0]:
            raise EDimensionMismatch(
                f"levels {config.levels} out of range for {y.shape[0]} series"
            )
        x = x[rows]
        y = y[rows]

    if config.scoring == "energy":
        return energy_score(x, y, alpha=config.alpha)
    return variogram_score(x, y, p=config.variogram_p)
