"""Vote matrix construction: raw vote records -> legislators x issues."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import numpy as np
import polars as pl

from votelens.config import VOTE_ENCODING
from votelens.models import VoteMatrix, VoteRecord, VoteValue, normalize_vote

RECORD_SCHEMA = {
    "legislator_id": pl.Utf8,
    "issue_id": pl.Utf8,
    "vote": pl.Utf8,
    "group": pl.Utf8,
}


def records_frame(records: Iterable[VoteRecord]) -> pl.DataFrame:
    """Load vote records into a polars frame with normalized vote values.

    Adds a ``seq`` column holding input order so "last record wins" rules stay
    well defined after group-bys.
    """
    rows = [
        (str(r.legislator_id), str(r.issue_id), normalize_vote(r.value), r.group or None)
        for r in records
    ]
    df = pl.DataFrame(rows, schema=RECORD_SCHEMA, orient="row")
    return df.with_row_index("seq")


def dedupe_records(df: pl.DataFrame) -> pl.DataFrame:
    """Keep the last record for each (legislator, issue) pair."""
    return df.unique(subset=["legislator_id", "issue_id"], keep="last", maintain_order=True)


def build_vote_matrix(
    records: Iterable[VoteRecord] | pl.DataFrame,
    min_votes_per_legislator: int,
    min_voters_per_issue: int,
    encoding: Mapping[str, float] = VOTE_ENCODING,
) -> VoteMatrix:
    """Build the filtered, encoded vote matrix.

    Two filters applied in sequence:
      1. Drop issues with fewer than ``min_voters_per_issue`` cast votes
         (yes/no/abstain).
      2. Drop legislators with fewer than ``min_votes_per_legislator`` cast
         votes on the issues that survived filter 1.

    Cells: yes=+1, no=-1, abstain/did_not_vote/missing=0 under the default
    encoding. Rows sorted by legislator id, columns by issue id.

    Returns an empty VoteMatrix if either filter leaves nothing.
    """
    df = records if isinstance(records, pl.DataFrame) else records_frame(records)
    if df.height == 0:
        return VoteMatrix.empty()
    df = dedupe_records(df)

    cast = df.filter(pl.col("vote").is_in(list(VoteValue.CAST)))

    # Filter 1: issues with enough participants
    issue_counts = cast.group_by("issue_id").agg(pl.len().alias("n_voters"))
    issue_ids = sorted(
        issue_counts.filter(pl.col("n_voters") >= min_voters_per_issue)["issue_id"].to_list()
    )

    # Filter 2: legislators active on the kept issues
    legislator_counts = (
        cast.filter(pl.col("issue_id").is_in(issue_ids))
        .group_by("legislator_id")
        .agg(pl.len().alias("n_votes"))
    )
    legislator_ids = sorted(
        legislator_counts.filter(pl.col("n_votes") >= min_votes_per_legislator)[
            "legislator_id"
        ].to_list()
    )
    if not issue_ids or not legislator_ids:
        return VoteMatrix.empty()

    subset = df.filter(
        pl.col("issue_id").is_in(issue_ids) & pl.col("legislator_id").is_in(legislator_ids)
    )
    encoded = subset.with_columns(
        pl.col("vote")
        .replace_strict(dict(encoding), default=0.0, return_dtype=pl.Float64)
        .alias("value")
    )

    row_index = {lid: i for i, lid in enumerate(legislator_ids)}
    col_index = {iid: j for j, iid in enumerate(issue_ids)}
    values = np.zeros((len(legislator_ids), len(issue_ids)), dtype=np.float64)
    for lid, iid, value in encoded.select("legislator_id", "issue_id", "value").iter_rows():
        values[row_index[lid], col_index[iid]] = value

    return VoteMatrix(
        legislator_ids=legislator_ids,
        issue_ids=issue_ids,
        values=values,
        groups=legislator_groups(df, legislator_ids),
    )


def legislator_groups(df: pl.DataFrame, legislator_ids: list[str]) -> dict[str, str | None]:
    """Last non-empty group label seen for each legislator, in record order."""
    labelled = (
        df.filter(pl.col("group").is_not_null() & (pl.col("group").str.strip_chars() != ""))
        .sort("seq")
        .group_by("legislator_id")
        .agg(pl.col("group").last())
    )
    lookup = dict(labelled.iter_rows())
    return {lid: lookup.get(lid) for lid in legislator_ids}


def vote_vector(
    votes: Mapping[str, object],
    issue_ids: list[str],
    encoding: Mapping[str, float] = VOTE_ENCODING,
) -> np.ndarray:
    """Encode one legislator's {issue_id: vote} mapping along ``issue_ids``."""
    return np.array(
        [encoding.get(normalize_vote(votes.get(iid)), 0.0) for iid in issue_ids],
        dtype=np.float64,
    )
