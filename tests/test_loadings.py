"""
Tests for issue loadings and defining-issue selection in loadings.py.

Run: uv run pytest tests/test_loadings.py -v
"""

import numpy as np
import pytest

from votelens.loadings import issue_loadings, rank_diagnostic_issues, top_issues_per_axis
from votelens.models import BillLoading
from votelens.pca import compute_pca

# ── Helpers ──────────────────────────────────────────────────────────────────


def _rank_one_matrix():
    """Two pairs of legislators voting exactly opposite on every issue."""
    row = np.array([1.0, -1.0, 1.0, 1.0])
    return np.vstack([row, row, -row, -row])


# ── issue_loadings() ─────────────────────────────────────────────────────────


class TestIssueLoadings:
    def test_shape(self):
        result = compute_pca(_rank_one_matrix(), n_components=2)
        assert issue_loadings(result.centered, result.scores).shape == (2, 4)

    def test_perfectly_aligned_issues(self):
        """Every issue is the axis itself (up to sign), so |loading| = 1."""
        result = compute_pca(_rank_one_matrix(), n_components=1)
        loadings = issue_loadings(result.centered, result.scores)
        np.testing.assert_allclose(loadings[0], [-1.0, 1.0, -1.0, -1.0], atol=1e-9)

    def test_unanimous_issue_loads_exactly_zero(self):
        values = np.array([
            [1.0, -1.0, 1.0],
            [1.0, 1.0, -1.0],
            [1.0, 1.0, 1.0],
            [1.0, -1.0, -1.0],
        ])  # column 0 unanimous
        result = compute_pca(values, n_components=2)
        loadings = issue_loadings(result.centered, result.scores)
        assert np.all(np.isfinite(loadings))
        assert loadings[0, 0] == 0.0
        assert loadings[1, 0] == 0.0

    def test_zero_spread_axis_loads_zero(self):
        result = compute_pca(_rank_one_matrix(), n_components=2)
        loadings = issue_loadings(result.centered, result.scores)
        np.testing.assert_array_equal(loadings[1], np.zeros(4))

    def test_bounded(self):
        rng = np.random.default_rng(3)
        values = rng.choice([-1.0, 0.0, 1.0], size=(20, 8))
        result = compute_pca(values, n_components=3)
        loadings = issue_loadings(result.centered, result.scores)
        assert np.all(loadings <= 1.0)
        assert np.all(loadings >= -1.0)

    def test_matches_numpy_corrcoef(self):
        rng = np.random.default_rng(11)
        values = rng.choice([-1.0, 1.0], size=(15, 5))
        result = compute_pca(values, n_components=1)
        loadings = issue_loadings(result.centered, result.scores)
        for j in range(5):
            expected = np.corrcoef(values[:, j], result.scores[:, 0])[0, 1]
            assert loadings[0, j] == pytest.approx(expected)

    def test_no_rows(self):
        assert issue_loadings(np.zeros((0, 3)), np.zeros((0, 2))).shape == (0, 3)


# ── top_issues_per_axis() ────────────────────────────────────────────────────


class TestTopIssuesPerAxis:
    """Positives strongest first, then negatives most negative first."""

    def test_ordering(self):
        loadings = np.array([[0.2, -0.9, 0.8, 0.0, -0.1]])
        ids = ["a", "b", "c", "d", "e"]
        [axis] = top_issues_per_axis(loadings, ids, top_n=5)
        assert [b.issue_id for b in axis] == ["c", "a", "b", "e"]
        assert [b.loading for b in axis] == [0.8, 0.2, -0.9, -0.1]

    def test_zero_loadings_skipped(self):
        [axis] = top_issues_per_axis(np.zeros((1, 3)), ["a", "b", "c"])
        assert axis == []

    def test_top_n_per_polarity(self):
        loadings = np.array([[0.9, 0.8, 0.7, -0.5, -0.6, -0.7]])
        [axis] = top_issues_per_axis(loadings, list("abcdef"), top_n=2)
        assert [b.issue_id for b in axis] == ["a", "b", "f", "e"]

    def test_ties_break_on_issue_id(self):
        loadings = np.array([[0.5, 0.5, 0.5]])
        [axis] = top_issues_per_axis(loadings, ["z", "m", "a"], top_n=2)
        assert [b.issue_id for b in axis] == ["a", "m"]

    def test_axis_index_recorded(self):
        loadings = np.array([[0.3], [-0.4]])
        axes = top_issues_per_axis(loadings, ["x"])
        assert axes[1] == [BillLoading(issue_id="x", axis=1, loading=-0.4)]

    def test_no_axes(self):
        assert top_issues_per_axis(np.zeros((0, 0)), []) == []


# ── rank_diagnostic_issues() ─────────────────────────────────────────────────


class TestRankDiagnosticIssues:
    def test_ordered_by_absolute_first_axis(self):
        loadings = np.array([[0.1, -0.9, 0.5], [0.99, 0.0, 0.0]])
        ranked = rank_diagnostic_issues(loadings, ["a", "b", "c"])
        assert [b.issue_id for b in ranked] == ["b", "c", "a"]
        assert ranked[0].loading == -0.9

    def test_candidates_restrict(self):
        loadings = np.array([[0.1, -0.9, 0.5]])
        ranked = rank_diagnostic_issues(loadings, ["a", "b", "c"], candidates={"a", "c"})
        assert [b.issue_id for b in ranked] == ["c", "a"]

    def test_empty(self):
        assert rank_diagnostic_issues(np.zeros((0, 0)), []) == []
