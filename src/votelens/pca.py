"""
Principal Component Analysis by power iteration with deflation.

Method:
  1. Center each issue column on its mean vote.
  2. For each component, start from a uniform unit direction and run a fixed
     number of power-iteration rounds on the residual matrix. A start with
     no component in the residual's row space is replaced by the unit
     vector on the residual's largest column.
  3. Fix the sign: a loading vector whose entries sum to a positive number is
     negated, so reruns on identical data give identical orientation.
  4. Record variance (mean squared residual score), then deflate the residual
     by the outer product of scores and component.
  5. Project the original centered matrix onto all retained components for
     the final legislator coordinates.

No randomness anywhere: identical input and component count give identical
output. Components are mutually orthogonal because each is drawn from the row
space of a residual that has already had the earlier components removed.
"""

from __future__ import annotations

import numpy as np

from votelens.config import N_COMPONENTS, POWER_EPSILON, POWER_ITERATIONS
from votelens.models import PcaResult


def center_columns(values: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Subtract each column's mean. Returns (centered, means)."""
    means = values.mean(axis=0)
    return values - means, means


def fallback_direction(residual: np.ndarray) -> np.ndarray:
    """Unit vector on the issue axis whose residual column has the largest norm.

    Ties go to the lowest index. Used when the uniform start has no component
    in the residual's row space.
    """
    column_norms = np.linalg.norm(residual, axis=0)
    direction = np.zeros(residual.shape[1])
    direction[int(np.argmax(column_norms))] = 1.0
    return direction


def power_iterate(
    residual: np.ndarray,
    n_iterations: int = POWER_ITERATIONS,
    epsilon: float = POWER_EPSILON,
    tol: float | None = None,
) -> np.ndarray:
    """Estimate the dominant right singular vector of ``residual``.

    Returns an all-zero vector only when the residual itself has norm below
    ``epsilon`` (exhausted), or when no start reaches its row space.
    Iteration starts from the uniform unit vector. If that start is
    orthogonal to the residual's row space, it restarts from
    ``fallback_direction``. With ``tol`` set, stops once successive
    directions differ by less than ``tol``.
    """
    m = residual.shape[1]
    if np.linalg.norm(residual) < epsilon:
        return np.zeros(m)

    uniform = np.full(m, 1.0 / np.sqrt(m))
    for start in (uniform, fallback_direction(residual)):
        direction = _iterate_from(residual, start, n_iterations, epsilon, tol)
        if direction is not None:
            return direction
    return np.zeros(m)


def _iterate_from(residual, direction, n_iterations, epsilon, tol):
    """Power iteration from one start. None if the iterate vanishes."""
    for _ in range(n_iterations):
        scores = residual @ direction
        updated = residual.T @ scores
        norm = np.linalg.norm(updated)
        if norm < epsilon:
            return None
        updated = updated / norm
        if tol is not None and np.linalg.norm(updated - direction) < tol:
            return updated
        direction = updated
    return direction


def orient_component(component: np.ndarray) -> np.ndarray:
    """Negate the component if its loadings sum to a positive value."""
    if component.sum() > 0:
        return -component
    return component


def compute_pca(
    values: np.ndarray,
    n_components: int = N_COMPONENTS,
    n_iterations: int = POWER_ITERATIONS,
    epsilon: float = POWER_EPSILON,
    tol: float | None = None,
) -> PcaResult:
    """Run iterative PCA on an (n legislators x m issues) matrix.

    Returns PcaResult.empty() when the matrix has no rows or no columns.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.ndim != 2 or values.shape[0] == 0 or values.shape[1] == 0:
        return PcaResult.empty(n_components)

    n, m = values.shape
    centered, means = center_columns(values)
    residual = centered.copy()

    components = np.zeros((n_components, m))
    variances = np.zeros(n_components)

    for c in range(n_components):
        component = power_iterate(residual, n_iterations, epsilon, tol)
        component = orient_component(component)

        scores = residual @ component
        components[c] = component
        variances[c] = float(np.mean(scores**2))

        # Deflate: remove this axis before extracting the next
        residual -= np.outer(scores, component)

    return PcaResult(
        components=components,
        variances=variances,
        scores=centered @ components.T,
        means=means,
        centered=centered,
    )


def explained_variance_ratio(variances: np.ndarray) -> np.ndarray:
    """Share of the extracted variance carried by each component (zeros if none)."""
    total = float(np.sum(variances))
    if total <= 0:
        return np.zeros_like(variances, dtype=np.float64)
    return np.asarray(variances, dtype=np.float64) / total
