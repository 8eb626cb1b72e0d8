"""
Aggregates computed straight from vote records: party majority positions,
party agreement and cohesion, legislator-to-legislator agreement, party
absence, and the closest-split issues.

Nothing here touches the PCA artifacts. Party labels are canonicalized
through an explicit PartyScheme passed by the caller (see config.EP_PARTY_SCHEME).

Majorities, agreement and cohesion count only cast votes (yes, no,
abstain); absence also counts did_not_vote. A party's majority position on
an issue is the position with the most votes; equal counts resolve by
MAJORITY_PRIORITY (yes, then no, then abstain).
"""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np
import polars as pl

from votelens.config import (
    CONTROVERSIAL_LIMIT,
    CONTROVERSIAL_MIN_VOTES,
    LEGISLATOR_AGREEMENT_LIMIT,
    MAJORITY_PRIORITY,
    MIN_COHESION_VOTERS,
    MIN_SHARED_ISSUES,
    MIN_SHARED_VOTES_PAIR,
)
from votelens.matrix import dedupe_records, legislator_groups, records_frame
from votelens.models import (
    ControversialIssue,
    GroupStatsEntry,
    LegislatorAgreementEntry,
    PartyAbsenceEntry,
    PartyAgreementEntry,
    PartyCohesionEntry,
    PartyScheme,
    VoteRecord,
    VoteValue,
    round_half_up,
)

# ── Canonicalization ─────────────────────────────────────────────────────────


def canonical_party(label: str | None, scheme: PartyScheme) -> str | None:
    """Map a free-text group label to a canonical party code.

    Exact lookup first, then the scheme's substring rules in order
    (case-insensitive), then the fallback code. Labels matching an excluded
    rule return None.
    """
    text = (label or "").strip()
    lower = text.lower()
    for needles in scheme.excluded:
        if needles and all(n in lower for n in needles):
            return None
    if not text:
        return scheme.fallback
    if text in scheme.exact:
        return scheme.exact[text]
    if text in scheme.codes:
        return text
    for needle, code in scheme.substrings:
        if needle in lower:
            return code
    return scheme.fallback


def party_order(parties: Iterable[str], scheme: PartyScheme) -> list[str]:
    """Sort party codes left to right; unknown codes go last, alphabetically."""
    position = {code: i for i, code in enumerate(scheme.codes)}
    return sorted(set(parties), key=lambda p: (position.get(p, len(position)), p))


def _labelled_frame(
    records: Iterable[VoteRecord] | pl.DataFrame, scheme: PartyScheme
) -> pl.DataFrame:
    """Deduplicated records of every position with a canonical ``party`` column.

    ``party`` is null for labels the scheme excludes.
    """
    df = records if isinstance(records, pl.DataFrame) else records_frame(records)
    df = dedupe_records(df).with_columns(pl.col("group").fill_null(""))

    labels = df["group"].unique().to_list()
    mapping = pl.DataFrame(
        {"group": labels, "party": [canonical_party(lbl, scheme) for lbl in labels]},
        schema={"group": pl.Utf8, "party": pl.Utf8},
    )
    return df.join(mapping, on="group", how="left")


def _party_frame(
    records: Iterable[VoteRecord] | pl.DataFrame, scheme: PartyScheme
) -> pl.DataFrame:
    """Deduplicated cast votes with a canonical ``party`` column."""
    return _labelled_frame(records, scheme).filter(
        pl.col("vote").is_in(list(VoteValue.CAST)) & pl.col("party").is_not_null()
    )


# ── Majority positions ───────────────────────────────────────────────────────


def _majority_expr() -> pl.Expr:
    first, second, third = MAJORITY_PRIORITY
    c1, c2, c3 = (pl.col(f"{v}_count") for v in MAJORITY_PRIORITY)
    return (
        pl.when((c1 >= c2) & (c1 >= c3))
        .then(pl.lit(first))
        .when(c2 >= c3)
        .then(pl.lit(second))
        .otherwise(pl.lit(third))
    )


def party_vote_counts(
    records: Iterable[VoteRecord] | pl.DataFrame,
    scheme: PartyScheme,
) -> pl.DataFrame:
    """Per-issue per-party yes/no/abstain counts and majority position.

    Returns DataFrame with columns: issue_id, party, yes_count, no_count,
    abstain_count, total, majority.
    """
    df = _party_frame(records, scheme)
    return (
        df.group_by("issue_id", "party")
        .agg(
            (pl.col("vote") == VoteValue.YES).sum().cast(pl.Int64).alias("yes_count"),
            (pl.col("vote") == VoteValue.NO).sum().cast(pl.Int64).alias("no_count"),
            (pl.col("vote") == VoteValue.ABSTAIN).sum().cast(pl.Int64).alias("abstain_count"),
        )
        .with_columns(
            (pl.col("yes_count") + pl.col("no_count") + pl.col("abstain_count")).alias("total"),
            _majority_expr().alias("majority"),
        )
        .sort("issue_id", "party")
    )


# ── Agreement ────────────────────────────────────────────────────────────────


def compute_party_agreement(
    records: Iterable[VoteRecord] | pl.DataFrame,
    scheme: PartyScheme,
    min_shared_issues: int = MIN_SHARED_ISSUES,
) -> list[PartyAgreementEntry]:
    """Pairwise agreement between party majorities.

    For every issue on which both parties cast votes, totalBills increments;
    agreements increments when their majority positions match. Pairs are
    unordered and stored with party_a < party_b, so the result does not depend
    on input order. Pairs sharing fewer than ``min_shared_issues`` issues are
    omitted.
    """
    counts = party_vote_counts(records, scheme).select("issue_id", "party", "majority")
    left = counts.rename({"party": "party_a", "majority": "majority_a"})
    right = counts.rename({"party": "party_b", "majority": "majority_b"})

    pairs = (
        left.join(right, on="issue_id", how="inner")
        .filter(pl.col("party_a") < pl.col("party_b"))
        .group_by("party_a", "party_b")
        .agg(
            pl.len().alias("total_bills"),
            (pl.col("majority_a") == pl.col("majority_b")).sum().alias("agreements"),
        )
        .filter(pl.col("total_bills") >= min_shared_issues)
        .sort("party_a", "party_b")
    )

    return [
        PartyAgreementEntry(
            party_a=row["party_a"],
            party_b=row["party_b"],
            total_bills=int(row["total_bills"]),
            agreements=int(row["agreements"]),
        )
        for row in pairs.iter_rows(named=True)
    ]


def agreement_lookup(entries: Iterable[PartyAgreementEntry]) -> dict[tuple[str, str], float]:
    """Symmetric (party, party) -> agreement % map for display code."""
    lookup: dict[tuple[str, str], float] = {}
    for e in entries:
        lookup[(e.party_a, e.party_b)] = e.agreement_pct
        lookup[(e.party_b, e.party_a)] = e.agreement_pct
    return lookup


# ── Cohesion ─────────────────────────────────────────────────────────────────


def compute_party_cohesion(
    records: Iterable[VoteRecord] | pl.DataFrame,
    scheme: PartyScheme,
    min_voters: int = MIN_COHESION_VOTERS,
    min_issues: int = 1,
) -> list[PartyCohesionEntry]:
    """Average per-issue cohesion for each party.

    Cohesion on one issue = max(yes, no, abstain) / (yes + no + abstain), only
    for issues where the party cast at least ``min_voters`` votes. A party's
    figure is the mean over those issues, as a percentage rounded to one
    decimal. Sorted by cohesion (highest first), then party code.
    """
    per_issue = (
        party_vote_counts(records, scheme)
        .filter(pl.col("total") >= min_voters)
        .with_columns(
            (
                pl.max_horizontal("yes_count", "no_count", "abstain_count")
                / pl.col("total").cast(pl.Float64)
            ).alias("cohesion"),
        )
    )
    summary = (
        per_issue.group_by("party")
        .agg(
            (pl.col("cohesion").mean() * 100).alias("avg_cohesion"),
            pl.col("issue_id").n_unique().alias("bills_voted"),
        )
        .filter(pl.col("bills_voted") >= min_issues)
    )

    entries = [
        PartyCohesionEntry(
            party=row["party"],
            avg_cohesion_percent=round_half_up(float(row["avg_cohesion"])),
            bills_voted=int(row["bills_voted"]),
        )
        for row in summary.iter_rows(named=True)
    ]
    entries.sort(key=lambda e: (-e.avg_cohesion_percent, e.party))
    return entries


# ── Group statistics ─────────────────────────────────────────────────────────


def compute_group_stats(
    records: Iterable[VoteRecord] | pl.DataFrame,
    scheme: PartyScheme,
) -> list[GroupStatsEntry]:
    """Member count and raw vote totals per party, in left-to-right order."""
    df = _party_frame(records, scheme)
    summary = df.group_by("party").agg(
        pl.col("legislator_id").n_unique().alias("member_count"),
        pl.len().alias("total_votes"),
        (pl.col("vote") == VoteValue.YES).sum().alias("yes_votes"),
        (pl.col("vote") == VoteValue.NO).sum().alias("no_votes"),
        (pl.col("vote") == VoteValue.ABSTAIN).sum().alias("abstain_votes"),
    )
    rows = {row["party"]: row for row in summary.iter_rows(named=True)}
    return [
        GroupStatsEntry(
            party=party,
            member_count=int(rows[party]["member_count"]),
            total_votes=int(rows[party]["total_votes"]),
            yes_votes=int(rows[party]["yes_votes"]),
            no_votes=int(rows[party]["no_votes"]),
            abstain_votes=int(rows[party]["abstain_votes"]),
        )
        for party in party_order(rows, scheme)
    ]


# ── Legislator agreement ─────────────────────────────────────────────────────

_VOTE_CODES = {VoteValue.YES: 1, VoteValue.NO: 2, VoteValue.ABSTAIN: 3}


def _pairwise_counts(cast: pl.DataFrame) -> tuple[list[str], np.ndarray, np.ndarray]:
    """Shared-issue and same-vote counts for every pair of legislators.

    Returns (legislator_ids, shared, agreements); both arrays are (n, n).
    """
    legislator_ids = sorted(cast["legislator_id"].unique().to_list())
    issue_ids = sorted(cast["issue_id"].unique().to_list())
    row_index = {lid: i for i, lid in enumerate(legislator_ids)}
    col_index = {iid: j for j, iid in enumerate(issue_ids)}

    codes = np.zeros((len(legislator_ids), len(issue_ids)), dtype=np.int8)
    for lid, iid, vote in cast.select("legislator_id", "issue_id", "vote").iter_rows():
        codes[row_index[lid], col_index[iid]] = _VOTE_CODES[vote]

    voted = (codes > 0).astype(np.float64)
    shared = voted @ voted.T
    agreements = np.zeros_like(shared)
    for code in _VOTE_CODES.values():
        same = (codes == code).astype(np.float64)
        agreements += same @ same.T
    return legislator_ids, np.rint(shared).astype(np.int64), np.rint(agreements).astype(np.int64)


def compute_legislator_agreement(
    records: Iterable[VoteRecord] | pl.DataFrame,
    scheme: PartyScheme,
    min_shared: int = MIN_SHARED_VOTES_PAIR,
    cross_party_only: bool = False,
    legislator_id: str | None = None,
    limit: int | None = None,
) -> list[LegislatorAgreementEntry]:
    """How often pairs of legislators cast the same vote.

    Only issues both legislators voted yes, no or abstain on are counted.
    Pairs sharing fewer than ``min_shared`` issues are omitted. Without
    ``legislator_id`` every pair appears once, with legislator_a <
    legislator_b; with it, each entry pairs that legislator (as
    legislator_a) with one other.

    ``cross_party_only`` keeps pairs whose canonical parties differ. A
    legislator's party comes from their last non-empty group label, and
    legislators in an excluded group never form a cross-party pair.

    Sorted by agreement % (highest first), then shared issues (most first).
    """
    df = records if isinstance(records, pl.DataFrame) else records_frame(records)
    deduped = dedupe_records(df)
    cast = deduped.filter(pl.col("vote").is_in(list(VoteValue.CAST)))
    if cast.height == 0:
        return []

    legislator_ids, shared, agreements = _pairwise_counts(cast)
    groups = legislator_groups(deduped, legislator_ids)
    parties = [canonical_party(groups[lid], scheme) for lid in legislator_ids]

    if legislator_id is None:
        rows, cols = np.triu_indices(len(legislator_ids), k=1)
    elif legislator_id in legislator_ids:
        target = legislator_ids.index(legislator_id)
        cols = np.array([j for j in range(len(legislator_ids)) if j != target], dtype=np.int64)
        rows = np.full_like(cols, target)
    else:
        return []

    keep = shared[rows, cols] >= max(min_shared, 1)
    entries = []
    for i, j in zip(rows[keep], cols[keep]):
        if cross_party_only and (
            parties[i] is None or parties[j] is None or parties[i] == parties[j]
        ):
            continue
        entries.append(
            LegislatorAgreementEntry(
                legislator_a=legislator_ids[i],
                legislator_b=legislator_ids[j],
                party_a=parties[i],
                party_b=parties[j],
                total_bills=int(shared[i, j]),
                agreements=int(agreements[i, j]),
            )
        )

    entries.sort(key=lambda e: (-e.agreement_pct, -e.total_bills, e.legislator_a, e.legislator_b))
    return entries if limit is None else entries[:limit]


def legislator_agreement_for(
    records: Iterable[VoteRecord] | pl.DataFrame,
    legislator_id: str,
    scheme: PartyScheme,
    min_shared: int = MIN_SHARED_VOTES_PAIR,
    limit: int = LEGISLATOR_AGREEMENT_LIMIT,
) -> list[LegislatorAgreementEntry]:
    """The legislators who most often voted like ``legislator_id``."""
    return compute_legislator_agreement(
        records, scheme, min_shared=min_shared, legislator_id=legislator_id, limit=limit
    )


# ── Absence ──────────────────────────────────────────────────────────────────


def compute_party_absence(
    records: Iterable[VoteRecord] | pl.DataFrame,
    scheme: PartyScheme,
) -> list[PartyAbsenceEntry]:
    """Turnout per party.

    votes_cast counts yes/no/abstain and absent_votes counts did_not_vote.
    active_members and bills_participated count distinct legislators and
    issues among cast votes; total_members counts every legislator recorded
    under the party. total_bills is the number of distinct issues in the
    whole record set. Parties with no cast vote are omitted, as are excluded
    groups. Sorted by absence rate (highest first), then left-to-right.
    """
    df = _labelled_frame(records, scheme)
    total_bills = df["issue_id"].n_unique()
    df = df.filter(pl.col("party").is_not_null())
    cast = df.filter(pl.col("vote").is_in(list(VoteValue.CAST)))

    members = df.group_by("party").agg(pl.col("legislator_id").n_unique().alias("total_members"))
    absences = (
        df.filter(pl.col("vote") == VoteValue.DID_NOT_VOTE)
        .group_by("party")
        .agg(pl.len().alias("absent_votes"))
    )
    summary = (
        cast.group_by("party")
        .agg(
            pl.len().alias("votes_cast"),
            pl.col("legislator_id").n_unique().alias("active_members"),
            pl.col("issue_id").n_unique().alias("bills_participated"),
        )
        .join(absences, on="party", how="left")
        .join(members, on="party", how="left")
        .with_columns(pl.col("absent_votes").fill_null(0))
    )

    entries = [
        PartyAbsenceEntry(
            party=row["party"],
            total_members=int(row["total_members"]),
            active_members=int(row["active_members"]),
            votes_cast=int(row["votes_cast"]),
            absent_votes=int(row["absent_votes"]),
            bills_participated=int(row["bills_participated"]),
            total_bills=total_bills,
        )
        for row in summary.iter_rows(named=True)
    ]
    position = {party: i for i, party in enumerate(party_order(summary["party"].to_list(), scheme))}
    entries.sort(key=lambda e: (-(e.absence_rate or 0.0), position[e.party]))
    return entries


# ── Controversial issues ─────────────────────────────────────────────────────


def compute_controversial_issues(
    records: Iterable[VoteRecord] | pl.DataFrame,
    min_votes: int = CONTROVERSIAL_MIN_VOTES,
    limit: int | None = CONTROVERSIAL_LIMIT,
) -> list[ControversialIssue]:
    """Issues with the closest yes/no splits.

    Abstentions and absences are ignored. margin = |yes - no| / (yes + no) *
    100, unrounded. Issues with fewer than ``min_votes`` yes + no votes are
    skipped. Sorted by margin (closest first), then issue id.
    """
    df = records if isinstance(records, pl.DataFrame) else records_frame(records)
    decided = dedupe_records(df).filter(pl.col("vote").is_in([VoteValue.YES, VoteValue.NO]))
    counts = (
        decided.group_by("issue_id")
        .agg(
            (pl.col("vote") == VoteValue.YES).sum().cast(pl.Int64).alias("yes_votes"),
            (pl.col("vote") == VoteValue.NO).sum().cast(pl.Int64).alias("no_votes"),
        )
        .filter(pl.col("yes_votes") + pl.col("no_votes") >= min_votes)
    )

    issues = [
        ControversialIssue(
            issue_id=row["issue_id"],
            yes_votes=int(row["yes_votes"]),
            no_votes=int(row["no_votes"]),
        )
        for row in counts.iter_rows(named=True)
    ]
    issues.sort(key=lambda c: (c.margin, c.issue_id))
    return issues if limit is None else issues[:limit]
