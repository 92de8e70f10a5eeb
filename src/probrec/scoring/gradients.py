"""Sample-path gradients of scoring rules with respect to (G, d).

For fixed raw draws X (n x K) the reconciled draws are Z = S(G X + d 1').
The sampled score is piecewise smooth in (G, d), so its gradient on the
same draws is an unbiased stochastic (sub)gradient of the expected score.
Distances that are exactly zero contribute zero.
"""

from __future__ import annotations

import numpy as np

from probrec.core.errors import EDimensionMismatch
from probrec.scoring.rules import _check_inputs, _pair_weights


def _reconciled(s_matrix: np.ndarray, G: np.ndarray, d: np.ndarray, X: np.ndarray) -> np.ndarray:
    if G.shape != (s_matrix.shape[1], X.shape[0]):
        raise EDimensionMismatch(
            f"G shape {G.shape} doesn't match ({s_matrix.shape[1]}, {X.shape[0]})"
        )
    return s_matrix @ (G @ X + d[:, None])


def _chain(
    s_matrix: np.ndarray,
    grad_z: np.ndarray,
    X: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    # Z = S B with B = G X + d 1'
    grad_b = s_matrix.T @ grad_z
    return grad_b @ X.T, grad_b.sum(axis=1)


def _safe_power(distance: np.ndarray, exponent: float) -> np.ndarray:
    out = np.zeros_like(distance)
    positive = distance > 0
    out[positive] = distance[positive] ** exponent
    return out


def energy_score_gradient(
    s_matrix: np.ndarray,
    G: np.ndarray,
    d: np.ndarray,
    X: np.ndarray,
    y: np.ndarray,
    alpha: float = 1.0,
) -> tuple[float, np.ndarray, np.ndarray]:
    """Energy score of S(GX + d) against y and its gradient.

    Args:
        s_matrix: Summing matrix, optionally restricted to scored rows (r x m)
        G: Reconciliation matrix (m x n)
        d: Translation (m,)
        X: Raw base-forecast draws (n x K)
        y: Observation restricted to the same rows as s_matrix (r,)
        alpha: Distance exponent

    Returns:
        (score, grad_G, grad_d)
    """
    z, y = _check_inputs(_reconciled(s_matrix, G, d, X), y)
    k = z.shape[1]

    residual = z - y[:, None]
    dist = np.linalg.norm(residual, axis=0)
    accuracy = np.mean(dist**alpha)
    grad_z = residual * (alpha * _safe_power(dist, alpha - 2.0))[None, :] / k

    dispersion = 0.0
    if k > 1:
        ii, jj = np.triu_indices(k, k=1)
        diff = z[:, ii] - z[:, jj]
        pair_dist = np.linalg.norm(diff, axis=0)
        dispersion = np.sum(pair_dist**alpha) / (k * (k - 1))
        contrib = diff * (alpha * _safe_power(pair_dist, alpha - 2.0))[None, :] / (k * (k - 1))
        np.add.at(grad_z, (slice(None), ii), -contrib)
        np.add.at(grad_z, (slice(None), jj), contrib)

    grad_g, grad_d = _chain(s_matrix, grad_z, X)
    return float(accuracy - dispersion), grad_g, grad_d


def variogram_score_gradient(
    s_matrix: np.ndarray,
    G: np.ndarray,
    d: np.ndarray,
    X: np.ndarray,
    y: np.ndarray,
    p: float = 0.5,
    weights: np.ndarray | None = None,
) -> tuple[float, np.ndarray, np.ndarray]:
    """Variogram score of S(GX + d) against y and its gradient.

    Same arguments as energy_score_gradient, with the variogram order p and
    optional pair weights.
    """
    z, y = _check_inputs(_reconciled(s_matrix, G, d, X), y)
    n, k = z.shape
    w = _pair_weights(weights, n).copy()
    np.fill_diagonal(w, 0.0)

    observed = np.abs(y[:, None] - y[None, :]) ** p
    delta = z[:, None, :] - z[None, :, :]
    abs_delta = np.abs(delta)
    expected = np.mean(abs_delta**p, axis=2)
    gap = observed - expected

    upper = np.triu_indices(n, k=1)
    score = np.sum(w[upper] * gap[upper] ** 2)

    # d expected_ij / d z_ik = p |delta|^(p-1) sign(delta) / K
    slope = p * _safe_power(abs_delta, p - 1.0) * np.sign(delta) / k
    grad_z = np.sum((-2.0 * w * gap)[:, :, None] * slope, axis=1)

    grad_g, grad_d = _chain(s_matrix, grad_z, X)
    return float(score), grad_g, grad_d
