"""
Tests for questionnaire projection in projection.py.

The key property: a legislator's own vote row, projected through the stored
basis, lands exactly on that legislator's computed coordinates.

Run: uv run pytest tests/test_projection.py -v
"""

import math

import numpy as np
import pytest

from votelens.models import LegislatorCoordinate, PcaBasis
from votelens.pca import compute_pca
from votelens.projection import (
    encode_response,
    project,
    project_responses,
    rank_by_distance,
    response_vector,
)

# ── Helpers ──────────────────────────────────────────────────────────────────


def _values():
    return np.array([
        [1.0, -1.0, 1.0, 0.0, -1.0],
        [1.0, -1.0, 1.0, 1.0, -1.0],
        [-1.0, 1.0, -1.0, 1.0, 1.0],
        [-1.0, 1.0, 0.0, -1.0, 1.0],
        [1.0, 1.0, -1.0, 1.0, -1.0],
        [0.0, -1.0, 1.0, -1.0, 1.0],
    ])


def _basis_and_result():
    result = compute_pca(_values(), n_components=2)
    basis = PcaBasis(
        components=result.components,
        means=result.means,
        issue_ids=["v1", "v2", "v3", "v4", "v5"],
    )
    return basis, result


# ── encode_response() ────────────────────────────────────────────────────────


class TestEncodeResponse:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("agree", 1.0),
            ("Disagree", -1.0),
            ("neutral", 0.0),
            ("skip", 0.0),
            ("yes", 1.0),
            ("nay", -1.0),
            (1, 1.0),
            (-0.3, -1.0),
            (0, 0.0),
            (None, 0.0),
            (True, 0.0),
            (math.nan, 0.0),
            ("something", 0.0),
        ],
    )
    def test_values(self, raw, expected):
        assert encode_response(raw) == expected


class TestResponseVector:
    def test_aligns_and_ignores_unknown(self):
        v = response_vector([("v3", "agree"), ("zz", "agree"), ("v1", "disagree")],
                            ["v1", "v2", "v3"])
        np.testing.assert_array_equal(v, [-1.0, 0.0, 1.0])

    def test_mapping_input(self):
        v = response_vector({"v2": "agree"}, ["v1", "v2"])
        np.testing.assert_array_equal(v, [0.0, 1.0])


# ── project() ────────────────────────────────────────────────────────────────


class TestProject:
    def test_self_projection_matches_scores(self):
        basis, result = _basis_and_result()
        for i, row in enumerate(_values()):
            np.testing.assert_allclose(project(row, basis), result.scores[i], atol=1e-12)

    def test_all_neutral_projects_minus_means(self):
        basis, _ = _basis_and_result()
        expected = basis.components @ (-basis.means)
        np.testing.assert_allclose(project(np.zeros(5), basis), expected)

    def test_shape_mismatch_raises(self):
        basis, _ = _basis_and_result()
        with pytest.raises(ValueError, match="shape"):
            project(np.zeros(4), basis)

    def test_no_components(self):
        basis = PcaBasis(components=np.zeros((0, 0)), means=np.zeros(0), issue_ids=[])
        assert project(np.zeros(0), basis) == ()

    def test_returns_plain_floats(self):
        basis, _ = _basis_and_result()
        point = project(np.ones(5), basis)
        assert len(point) == 2
        assert all(type(v) is float for v in point)


class TestProjectResponses:
    def test_answers_equivalent_to_votes(self):
        basis, result = _basis_and_result()
        words = {1.0: "agree", -1.0: "disagree", 0.0: "neutral"}
        answers = {iid: words[v] for iid, v in zip(basis.issue_ids, _values()[2])}
        np.testing.assert_allclose(project_responses(answers, basis), result.scores[2],
                                   atol=1e-12)


# ── rank_by_distance() ───────────────────────────────────────────────────────


class TestRankByDistance:
    def _coords(self):
        return [
            LegislatorCoordinate("c", "EPP", (3.0, 4.0)),
            LegislatorCoordinate("a", "S&D", (0.0, 1.0)),
            LegislatorCoordinate("b", "S&D", (1.0, 0.0)),
        ]

    def test_nearest_first(self):
        ranked = rank_by_distance((0.0, 0.0), self._coords())
        assert [c.legislator_id for c, _ in ranked] == ["a", "b", "c"]
        assert ranked[2][1] == pytest.approx(5.0)

    def test_limit(self):
        assert len(rank_by_distance((0.0, 0.0), self._coords(), limit=1)) == 1

    def test_common_axes_only(self):
        coords = [LegislatorCoordinate("x", None, (2.0, 100.0))]
        [(_, distance)] = rank_by_distance((0.0,), coords)
        assert distance == pytest.approx(2.0)
