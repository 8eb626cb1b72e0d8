"""Issue loadings: which votes define each PCA axis.

A loading here is the Pearson correlation between an issue's centered vote
column and an axis's legislator scores. Unlike the raw eigenvector
coefficient it is bounded in [-1, 1] and comparable across axes.
"""

from __future__ import annotations

import numpy as np

from votelens.config import POWER_EPSILON, TOP_N_LOADINGS
from votelens.models import BillLoading


def issue_loadings(
    centered: np.ndarray,
    scores: np.ndarray,
    epsilon: float = POWER_EPSILON,
) -> np.ndarray:
    """Correlate every centered issue column with every axis's scores.

    Returns an array of shape (n_axes, n_issues). Any issue or axis with
    (near-)zero spread gets loading 0.0 rather than NaN.
    """
    centered = np.asarray(centered, dtype=np.float64)
    scores = np.asarray(scores, dtype=np.float64)
    n = centered.shape[0]
    if n == 0 or scores.ndim != 2:
        return np.zeros((0, centered.shape[1]))

    # Scores come from a centered matrix, so their mean is already ~0; recenter
    # anyway so the correlation stays exact for any caller-supplied scores.
    axis_scores = scores - scores.mean(axis=0)
    issue_std = np.sqrt(np.mean(centered**2, axis=0))
    axis_std = np.sqrt(np.mean(axis_scores**2, axis=0))
    covariance = (axis_scores.T @ centered) / n  # (k, m)

    denom = np.outer(axis_std, issue_std)
    valid = (axis_std >= epsilon)[:, None] & (issue_std >= epsilon)[None, :]
    loadings = np.zeros_like(covariance)
    np.divide(covariance, denom, out=loadings, where=valid)
    return np.clip(loadings, -1.0, 1.0)


def top_issues_per_axis(
    loadings: np.ndarray,
    issue_ids: list[str],
    top_n: int = TOP_N_LOADINGS,
) -> list[list[BillLoading]]:
    """Strongest positive then strongest negative issues for each axis.

    Per axis: up to ``top_n`` loadings > 0 (highest first), followed by up to
    ``top_n`` loadings < 0 (most negative first). Zero loadings are skipped.
    Ties break on issue id.
    """
    result = []
    for axis, row in enumerate(np.asarray(loadings)):
        pairs = [(issue_ids[j], float(v)) for j, v in enumerate(row)]
        positive = sorted(
            (p for p in pairs if p[1] > 0), key=lambda p: (-p[1], p[0])
        )[:top_n]
        negative = sorted(
            (p for p in pairs if p[1] < 0), key=lambda p: (p[1], p[0])
        )[:top_n]
        result.append([
            BillLoading(issue_id=iid, axis=axis, loading=value)
            for iid, value in positive + negative
        ])
    return result


def rank_diagnostic_issues(
    loadings: np.ndarray,
    issue_ids: list[str],
    candidates: set[str] | None = None,
) -> list[BillLoading]:
    """Order issues by absolute first-axis loading, most diagnostic first.

    Used to order questionnaire items so the most separating votes come
    first. ``candidates`` restricts the ranking to a subset of issue ids.
    """
    if len(loadings) == 0:
        return []
    first = np.asarray(loadings)[0]
    ranked = [
        BillLoading(issue_id=iid, axis=0, loading=float(first[j]))
        for j, iid in enumerate(issue_ids)
        if candidates is None or iid in candidates
    ]
    ranked.sort(key=lambda b: (-abs(b.loading), b.issue_id))
    return ranked
