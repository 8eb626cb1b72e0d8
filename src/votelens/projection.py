"""Place a new, partial vote vector in a stored PCA coordinate space.

The vector is centered with the stored per-issue means and dotted with each
stored component, exactly as legislator coordinates were produced. A basis
computed before a roster change still projects; the result is stale, not
wrong-shaped.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import numpy as np

from votelens.models import LegislatorCoordinate, PcaBasis

_ANSWERS = {
    "agree": 1.0,
    "yes": 1.0,
    "yea": 1.0,
    "for": 1.0,
    "disagree": -1.0,
    "no": -1.0,
    "nay": -1.0,
    "against": -1.0,
}


def encode_response(raw: object) -> float:
    """Encode one answer as +1, -1 or 0.

    Numbers keep only their sign. Strings accept agree/disagree and vote
    words; neutral, skip, abstain and anything unrecognized are 0.
    """
    if isinstance(raw, bool) or raw is None:
        return 0.0
    if isinstance(raw, (int, float)):
        if raw != raw:  # NaN
            return 0.0
        return float(np.sign(raw))
    return _ANSWERS.get(str(raw).strip().lower(), 0.0)


def response_vector(
    responses: Iterable[tuple[str, object]] | Mapping[str, object],
    issue_ids: list[str],
) -> np.ndarray:
    """Align (issue_id, response) pairs to ``issue_ids``; unanswered issues are 0.

    Responses for issues outside the basis are ignored.
    """
    pairs = responses.items() if isinstance(responses, Mapping) else responses
    index = {iid: j for j, iid in enumerate(issue_ids)}
    vector = np.zeros(len(issue_ids))
    for issue_id, answer in pairs:
        j = index.get(str(issue_id))
        if j is not None:
            vector[j] = encode_response(answer)
    return vector


def project(vector: np.ndarray, basis: PcaBasis) -> tuple[float, ...]:
    """Coordinates of an issue-aligned vote vector in the basis space."""
    vector = np.asarray(vector, dtype=np.float64)
    if vector.shape != (basis.n_issues,):
        raise ValueError(
            f"vector has shape {vector.shape}, basis expects ({basis.n_issues},)"
        )
    if basis.n_components == 0:
        return ()
    return tuple(float(v) for v in basis.components @ (vector - basis.means))


def project_responses(
    responses: Iterable[tuple[str, object]] | Mapping[str, object],
    basis: PcaBasis,
) -> tuple[float, ...]:
    """Encode, align and project a questionnaire's answers."""
    return project(response_vector(responses, basis.issue_ids), basis)


def rank_by_distance(
    point: tuple[float, ...],
    coordinates: Iterable[LegislatorCoordinate],
    limit: int | None = None,
) -> list[tuple[LegislatorCoordinate, float]]:
    """Legislators nearest to ``point`` by Euclidean distance.

    Compares only the axes both sides have. Ties break on legislator id.
    """
    target = np.asarray(point, dtype=np.float64)
    ranked = []
    for coord in coordinates:
        k = min(len(target), len(coord.coordinates))
        diff = np.asarray(coord.coordinates[:k]) - target[:k]
        ranked.append((coord, float(np.sqrt(np.sum(diff**2)))))
    ranked.sort(key=lambda pair: (pair[1], pair[0].legislator_id))
    return ranked if limit is None else ranked[:limit]
