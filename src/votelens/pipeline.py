"""
Batch recompute, live fallback, and projection entry points.

These are thin wrappers: they fetch records, call the pure analytics
functions, and handle persistence. All numeric work lives in matrix, pca,
loadings, parties and projection.

Batch artifacts (written as one snapshot):
  - variance:              per-component variance
  - basis:                 {components, means, issueIds}
  - topIssuesPerAxis:      per-axis [{issueId, loading}]
  - partyAgreement:        [{partyA, partyB, totalBills, agreements}]
  - partyCohesion:         [{party, avgCohesionPercent, billsVoted}]
  - legislatorCoordinates: [{legislatorId, group, coordinates}]
  - diagnosticIssues:      [{issueId, loading}] by |first-axis loading|
  - groupStats:            per-party vote totals
  - legislatorAgreement:   closest cross-party legislator pairs
  - partyAbsence:          per-party turnout and absence rates
  - controversialIssues:   issues with the closest yes/no splits
  - lastRecompute:         completion marker with run parameters
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import polars as pl

from votelens.config import (
    EP_PARTY_SCHEME,
    LIVE_N_COMPONENTS,
    CONTROVERSIAL_MIN_VOTES,
    MIN_COHESION_VOTERS,
    MIN_SHARED_VOTES_PAIR,
    MIN_VOTERS_PER_ISSUE,
    MIN_VOTES_PER_LEGISLATOR,
    N_COMPONENTS,
    TOP_LEGISLATOR_PAIRS,
    TOP_N_LOADINGS,
)
from votelens.loadings import issue_loadings, rank_diagnostic_issues, top_issues_per_axis
from votelens.matrix import build_vote_matrix, records_frame
from votelens.models import (
    LegislatorCoordinate,
    PartyScheme,
    PcaBasis,
    PcaResult,
    VoteMatrix,
    VoteRecord,
)
from votelens.parties import (
    compute_controversial_issues,
    compute_group_stats,
    compute_legislator_agreement,
    compute_party_absence,
    compute_party_agreement,
    compute_party_cohesion,
)
from votelens.pca import compute_pca, explained_variance_ratio
from votelens.projection import project_responses
from votelens.store import (
    BASIS,
    CONTROVERSIAL_ISSUES,
    DIAGNOSTIC_ISSUES,
    GROUP_STATS,
    LAST_RECOMPUTE,
    LEGISLATOR_AGREEMENT,
    LEGISLATOR_COORDINATES,
    PARTY_ABSENCE,
    PARTY_AGREEMENT,
    PARTY_COHESION,
    TOP_ISSUES,
    VARIANCE,
    ArtifactStore,
    load_basis,
)

VOTES_COLUMNS = ("legislator_id", "issue_id", "vote")


def print_header(title: str) -> None:
    width = 80
    print(f"\n{'=' * width}")
    print(f"  {title}")
    print(f"{'=' * width}")


# ── Input ────────────────────────────────────────────────────────────────────


def load_vote_records(path: Path) -> list[VoteRecord]:
    """Read vote records from a CSV with legislator_id, issue_id, vote[, group]."""
    df = pl.read_csv(path, infer_schema_length=0)  # every column as string
    missing = [c for c in VOTES_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing column(s) {', '.join(missing)}")
    if "group" not in df.columns:
        df = df.with_columns(pl.lit(None, dtype=pl.Utf8).alias("group"))
    return [
        VoteRecord(legislator_id=lid, issue_id=iid, value=vote, group=group)
        for lid, iid, vote, group in df.select(*VOTES_COLUMNS, "group").iter_rows()
    ]


# ── Shared helpers ───────────────────────────────────────────────────────────


def legislator_coordinates(matrix: VoteMatrix, result: PcaResult) -> list[LegislatorCoordinate]:
    """Pair each matrix row with its PCA scores."""
    return [
        LegislatorCoordinate(
            legislator_id=lid,
            group=matrix.groups.get(lid),
            coordinates=tuple(float(v) for v in result.scores[i]),
        )
        for i, lid in enumerate(matrix.legislator_ids)
    ]


def basis_from_result(matrix: VoteMatrix, result: PcaResult) -> PcaBasis:
    if result.is_empty:
        return PcaBasis(components=np.zeros((0, 0)), means=np.zeros(0), issue_ids=[])
    return PcaBasis(
        components=result.components.copy(),
        means=result.means.copy(),
        issue_ids=list(matrix.issue_ids),
    )


# ── Batch recompute ──────────────────────────────────────────────────────────


def recompute(
    records: Iterable[VoteRecord] | pl.DataFrame,
    store: ArtifactStore,
    n_components: int = N_COMPONENTS,
    min_votes_per_legislator: int = MIN_VOTES_PER_LEGISLATOR,
    min_voters_per_issue: int = MIN_VOTERS_PER_ISSUE,
    top_n: int = TOP_N_LOADINGS,
    min_cohesion_voters: int = MIN_COHESION_VOTERS,
    min_shared_votes: int = MIN_SHARED_VOTES_PAIR,
    controversial_min_votes: int = CONTROVERSIAL_MIN_VOTES,
    scheme: PartyScheme = EP_PARTY_SCHEME,
    questionnaire_issues: set[str] | None = None,
) -> dict[str, object]:
    """Recompute every artifact and publish them as one snapshot.

    Insufficient data still produces a complete (empty) artifact set. A
    persistence failure propagates as PersistenceError and leaves the previous
    snapshot in place; the completion marker is never written on its own.

    Returns the artifact dict that was stored.
    """
    start = time.monotonic()
    df = records if isinstance(records, pl.DataFrame) else records_frame(records)
    params = {
        "n_components": n_components,
        "min_votes_per_legislator": min_votes_per_legislator,
        "min_voters_per_issue": min_voters_per_issue,
        "top_n": top_n,
        "min_cohesion_voters": min_cohesion_voters,
        "min_shared_votes": min_shared_votes,
        "controversial_min_votes": controversial_min_votes,
    }

    print_header("VOTE MATRIX")
    print(f"  Records: {df.height:,}")
    matrix = build_vote_matrix(df, min_votes_per_legislator, min_voters_per_issue)
    n_legislators, n_issues = matrix.shape
    print(f"  Matrix: {n_legislators} legislators x {n_issues} issues")

    print_header("PCA")
    if matrix.is_empty:
        print("  Skipping: no data left after filtering")
        result = PcaResult.empty(n_components)
        loadings = np.zeros((0, 0))
    else:
        result = compute_pca(matrix.values, n_components)
        ratio = explained_variance_ratio(result.variances)
        for i, (v, r) in enumerate(zip(result.variances, ratio)):
            print(f"    PC{i + 1}: variance={v:.4f} ({100 * r:.1f}% of extracted)")
        loadings = issue_loadings(result.centered, result.scores)

    top_issues = top_issues_per_axis(loadings, matrix.issue_ids, top_n)
    diagnostic = rank_diagnostic_issues(loadings, matrix.issue_ids, questionnaire_issues)
    for axis, items in enumerate(top_issues):
        labels = ", ".join(f"{b.issue_id} ({b.loading:+.2f})" for b in items[:3])
        print(f"    PC{axis + 1} defining issues: {labels or '-'}")

    print_header("PARTY AGGREGATES")
    agreement = compute_party_agreement(df, scheme)
    cohesion = compute_party_cohesion(df, scheme, min_voters=min_cohesion_voters)
    group_stats = compute_group_stats(df, scheme)
    print(f"  Party pairs: {len(agreement)}")
    for entry in cohesion:
        print(f"    {entry.party:12s}  cohesion={entry.avg_cohesion_percent:5.1f}%"
              f"  issues={entry.bills_voted}")
    absence = compute_party_absence(df, scheme)
    for entry in absence:
        print(f"    {entry.party:12s}  absence={entry.absence_rate or 0.0:5.1f}%"
              f"  participation={entry.participation_rate:5.1f}%")

    print_header("LEGISLATOR AGREEMENT")
    pairs = compute_legislator_agreement(
        df, scheme, min_shared_votes, cross_party_only=True, limit=TOP_LEGISLATOR_PAIRS
    )
    print(f"  Cross-party pairs kept: {len(pairs)}")
    if pairs:
        top = pairs[0]
        print(f"    Closest: {top.legislator_a} ({top.party_a}) / {top.legislator_b}"
              f" ({top.party_b}) {top.agreement_pct:.1f}% of {top.total_bills} issues")
    controversial = compute_controversial_issues(df, min_votes=controversial_min_votes)
    print(f"  Controversial issues: {len(controversial)}")

    artifacts: dict[str, object] = {
        VARIANCE: [float(v) for v in result.variances],
        BASIS: basis_from_result(matrix, result).to_json(),
        TOP_ISSUES: [[b.to_json() for b in axis] for axis in top_issues],
        PARTY_AGREEMENT: [e.to_json() for e in agreement],
        PARTY_COHESION: [e.to_json() for e in cohesion],
        LEGISLATOR_COORDINATES: [
            c.to_json() for c in legislator_coordinates(matrix, result)
        ],
        DIAGNOSTIC_ISSUES: [b.to_json() for b in diagnostic],
        GROUP_STATS: [g.to_json() for g in group_stats],
        LEGISLATOR_AGREEMENT: [e.to_json() for e in pairs],
        PARTY_ABSENCE: [e.to_json() for e in absence],
        CONTROVERSIAL_ISSUES: [c.to_json() for c in controversial],
        LAST_RECOMPUTE: {
            "completedAt": datetime.now(timezone.utc).isoformat(),
            "legislators": n_legislators,
            "issues": n_issues,
            "params": params,
        },
    }

    print_header("SAVING SNAPSHOT")
    store.write_snapshot(artifacts)
    print(f"  Saved: {len(artifacts)} artifacts")
    print(f"  Done in {time.monotonic() - start:.1f}s")
    return artifacts


# ── Live fallback ────────────────────────────────────────────────────────────


@dataclass
class LiveResult:
    """Coordinates computed on request, with the matrix they came from."""

    coordinates: list[LegislatorCoordinate]
    matrix: VoteMatrix
    basis: PcaBasis
    variances: list[float]

    @property
    def issue_ids(self) -> list[str]:
        return self.matrix.issue_ids


def live_coordinates(
    records: Iterable[VoteRecord] | pl.DataFrame,
    min_votes: int = MIN_VOTES_PER_LEGISLATOR,
    min_voters_per_issue: int = MIN_VOTERS_PER_ISSUE,
    n_components: int = LIVE_N_COMPONENTS,
) -> LiveResult | None:
    """Compute legislator coordinates synchronously, without persisting.

    Used when precomputed artifacts are missing or invalid. Blocks for the
    whole decomposition. Returns None when filtering leaves no data.
    """
    matrix = build_vote_matrix(records, min_votes, min_voters_per_issue)
    if matrix.is_empty:
        return None
    result = compute_pca(matrix.values, n_components)
    return LiveResult(
        coordinates=legislator_coordinates(matrix, result),
        matrix=matrix,
        basis=basis_from_result(matrix, result),
        variances=[float(v) for v in result.variances],
    )


# ── Projection ───────────────────────────────────────────────────────────────


def project_from_store(
    responses: Iterable[tuple[str, object]] | Mapping[str, object],
    store: ArtifactStore,
) -> tuple[float, ...] | None:
    """Project questionnaire answers with the most recently stored basis.

    Returns None when no basis has been stored yet. A malformed basis raises
    ArtifactValidationError.
    """
    basis = load_basis(store)
    if basis is None:
        return None
    return project_responses(responses, basis)
