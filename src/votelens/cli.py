"""Command-line interface for the votelens analytics engine."""

import argparse
from pathlib import Path

from votelens.config import (
    EP_PARTY_SCHEME,
    LIVE_N_COMPONENTS,
    MIN_COHESION_VOTERS,
    MIN_VOTERS_PER_ISSUE,
    MIN_VOTES_PER_LEGISLATOR,
    N_COMPONENTS,
    TOP_N_LOADINGS,
)
from votelens.output import save_coordinates_csv, save_party_tables_csv
from votelens.parties import compute_party_agreement, compute_party_cohesion
from votelens.pipeline import (
    live_coordinates,
    load_vote_records,
    print_header,
    project_from_store,
    recompute,
)
from votelens.store import JsonDirectoryStore


def _parse_response(text: str) -> tuple[str, str]:
    issue_id, sep, answer = text.partition("=")
    if not sep or not issue_id:
        raise argparse.ArgumentTypeError(f"expected ISSUE=ANSWER, got {text!r}")
    return issue_id, answer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="votelens",
        description="PCA axes, issue loadings and party aggregates for roll-call votes.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("recompute", help="Recompute all artifacts into a store")
    p.add_argument("votes", type=Path, help="CSV with legislator_id, issue_id, vote[, group]")
    p.add_argument("--store", type=Path, required=True, help="Artifact store directory")
    p.add_argument(
        "--components", type=int, default=N_COMPONENTS,
        help=f"PCA components to extract (default: {N_COMPONENTS})",
    )
    p.add_argument(
        "--min-votes", type=int, default=MIN_VOTES_PER_LEGISLATOR,
        help=f"Minimum votes per legislator (default: {MIN_VOTES_PER_LEGISLATOR})",
    )
    p.add_argument(
        "--min-voters", type=int, default=MIN_VOTERS_PER_ISSUE,
        help=f"Minimum voters per issue (default: {MIN_VOTERS_PER_ISSUE})",
    )
    p.add_argument(
        "--top-n", type=int, default=TOP_N_LOADINGS,
        help=f"Defining issues kept per polarity per axis (default: {TOP_N_LOADINGS})",
    )

    p = sub.add_parser("live", help="Compute legislator coordinates without storing them")
    p.add_argument("votes", type=Path)
    p.add_argument("--min-votes", type=int, default=MIN_VOTES_PER_LEGISLATOR)
    p.add_argument("--min-voters", type=int, default=MIN_VOTERS_PER_ISSUE)
    p.add_argument("--components", type=int, default=LIVE_N_COMPONENTS)
    p.add_argument("--output", "-o", type=Path, default=None, help="Write coordinates CSV")

    p = sub.add_parser("parties", help="Write party agreement and cohesion CSVs")
    p.add_argument("votes", type=Path)
    p.add_argument("--output", "-o", type=Path, default=Path("."))
    p.add_argument("--min-voters", type=int, default=MIN_COHESION_VOTERS)

    p = sub.add_parser("project", help="Project answers onto the stored basis")
    p.add_argument("--store", type=Path, required=True)
    p.add_argument("responses", nargs="*", type=_parse_response, metavar="ISSUE=ANSWER")

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if args.command == "recompute":
        records = load_vote_records(args.votes)
        recompute(
            records,
            JsonDirectoryStore(args.store),
            n_components=args.components,
            min_votes_per_legislator=args.min_votes,
            min_voters_per_issue=args.min_voters,
            top_n=args.top_n,
        )

    elif args.command == "live":
        records = load_vote_records(args.votes)
        result = live_coordinates(
            records,
            min_votes=args.min_votes,
            min_voters_per_issue=args.min_voters,
            n_components=args.components,
        )
        if result is None:
            print("No legislators or issues left after filtering.")
            return
        print(f"{len(result.coordinates)} legislators x {len(result.issue_ids)} issues")
        if args.output:
            save_coordinates_csv(args.output, result.coordinates)
        else:
            for c in result.coordinates:
                coords = "  ".join(f"{v:+.3f}" for v in c.coordinates)
                print(f"  {c.legislator_id:20s}  {c.group or '':12s}  {coords}")

    elif args.command == "parties":
        records = load_vote_records(args.votes)
        print_header("PARTY TABLES")
        agreement = compute_party_agreement(records, EP_PARTY_SCHEME)
        cohesion = compute_party_cohesion(records, EP_PARTY_SCHEME, min_voters=args.min_voters)
        save_party_tables_csv(args.output, agreement, cohesion)

    elif args.command == "project":
        point = project_from_store(args.responses, JsonDirectoryStore(args.store))
        if point is None:
            print("No basis stored yet; run `votelens recompute` first.")
            return
        print("  ".join(f"PC{i + 1}={v:+.4f}" for i, v in enumerate(point)))
