"""CSV output for computed coordinates and party tables."""

import csv
from pathlib import Path

from votelens.models import LegislatorCoordinate, PartyAgreementEntry, PartyCohesionEntry


def save_coordinates_csv(path: Path, coordinates: list[LegislatorCoordinate]) -> None:
    """Write one row per legislator: id, group, PC1..PCk."""
    n_axes = max((len(c.coordinates) for c in coordinates), default=0)
    fieldnames = ["legislator_id", "group", *[f"PC{i + 1}" for i in range(n_axes)]]
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for coord in coordinates:
            row = {"legislator_id": coord.legislator_id, "group": coord.group or ""}
            for i, value in enumerate(coord.coordinates):
                row[f"PC{i + 1}"] = f"{value:.6f}"
            writer.writerow(row)
    print(f"  {path} ({len(coordinates)} rows)")


def save_party_tables_csv(
    output_dir: Path,
    agreement: list[PartyAgreementEntry],
    cohesion: list[PartyCohesionEntry],
) -> None:
    """Save party agreement and cohesion tables side by side."""
    output_dir.mkdir(parents=True, exist_ok=True)

    agreement_file = output_dir / "party_agreement.csv"
    with open(agreement_file, "w", newline="", encoding="utf-8") as f:
        fieldnames = ["party_a", "party_b", "total_bills", "agreements", "agreement_pct"]
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for e in agreement:
            writer.writerow({
                "party_a": e.party_a,
                "party_b": e.party_b,
                "total_bills": e.total_bills,
                "agreements": e.agreements,
                "agreement_pct": e.agreement_pct,
            })
    print(f"  {agreement_file} ({len(agreement)} rows)")

    cohesion_file = output_dir / "party_cohesion.csv"
    with open(cohesion_file, "w", newline="", encoding="utf-8") as f:
        fieldnames = ["party", "avg_cohesion_percent", "bills_voted"]
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for e in cohesion:
            writer.writerow({
                "party": e.party,
                "avg_cohesion_percent": e.avg_cohesion_percent,
                "bills_voted": e.bills_voted,
            })
    print(f"  {cohesion_file} ({len(cohesion)} rows)")
