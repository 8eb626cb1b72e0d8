"""Key -> value artifact storage with all-or-nothing snapshot writes.

A batch run writes its whole artifact set as one snapshot. Readers only ever
see a complete snapshot: either the previous one or the new one.

JsonDirectoryStore layout:
    <root>/snapshots/<stamp>/<key>.json   one file per artifact
    <root>/.staging-<stamp>/              in-progress snapshot
    <root>/current -> snapshots/<stamp>   swapped atomically on success
"""

from __future__ import annotations

import json
import os
import shutil
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from votelens.models import (
    ArtifactValidationError,
    BillLoading,
    ControversialIssue,
    LegislatorAgreementEntry,
    PartyAbsenceEntry,
    PartyAgreementEntry,
    PartyCohesionEntry,
    PcaBasis,
    top_issues_from_json,
    unwrap,
    variance_from_json,
    wrap,
)

# Artifact keys
VARIANCE = "variance"
BASIS = "basis"
TOP_ISSUES = "topIssuesPerAxis"
PARTY_AGREEMENT = "partyAgreement"
PARTY_COHESION = "partyCohesion"
LEGISLATOR_COORDINATES = "legislatorCoordinates"
DIAGNOSTIC_ISSUES = "diagnosticIssues"
GROUP_STATS = "groupStats"
LEGISLATOR_AGREEMENT = "legislatorAgreement"
PARTY_ABSENCE = "partyAbsence"
CONTROVERSIAL_ISSUES = "controversialIssues"
LAST_RECOMPUTE = "lastRecompute"  # completion marker, written with the rest


class PersistenceError(RuntimeError):
    """A snapshot could not be written; the previous snapshot is untouched."""


class ArtifactStore(ABC):
    """Abstract key -> JSON-value store holding one snapshot at a time."""

    @abstractmethod
    def _read_raw(self, key: str) -> object | None:
        """Return the stored envelope for ``key``, or None."""

    @abstractmethod
    def _write_all(self, envelopes: dict[str, object]) -> None:
        """Replace the current snapshot with ``envelopes`` atomically."""

    @abstractmethod
    def keys(self) -> list[str]:
        """Keys present in the current snapshot."""

    def read(self, key: str) -> object | None:
        """Return the data stored under ``key``, validating its envelope."""
        envelope = self._read_raw(key)
        if envelope is None:
            return None
        return unwrap(envelope)

    def write_snapshot(self, artifacts: dict[str, object]) -> None:
        """Store every artifact or none of them.

        Raises PersistenceError if the write fails for any reason.
        """
        envelopes = {key: wrap(value) for key, value in artifacts.items()}
        try:
            self._write_all(envelopes)
        except PersistenceError:
            raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"snapshot write failed: {e}") from e

    @property
    def is_complete(self) -> bool:
        return self._read_raw(LAST_RECOMPUTE) is not None


class MemoryStore(ArtifactStore):
    """In-process store. ``fail_on`` makes writes of that key fail (tests)."""

    def __init__(self, fail_on: str | None = None) -> None:
        self._data: dict[str, object] = {}
        self.fail_on = fail_on

    def _read_raw(self, key: str) -> object | None:
        return self._data.get(key)

    def _write_all(self, envelopes: dict[str, object]) -> None:
        staged: dict[str, object] = {}
        for key, envelope in envelopes.items():
            if key == self.fail_on:
                raise PersistenceError(f"injected failure writing {key!r}")
            # Round-trip through JSON so stored values are plain data
            staged[key] = json.loads(json.dumps(envelope))
        self._data = staged

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonDirectoryStore(ArtifactStore):
    """Snapshots as directories of JSON files, published by symlink swap."""

    def __init__(self, root: Path, keep: int = 3) -> None:
        self.root = Path(root)
        self.keep = keep
        self.snapshots_dir = self.root / "snapshots"
        self.current = self.root / "current"

    def _read_raw(self, key: str) -> object | None:
        path = self.current / f"{key}.json"
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ArtifactValidationError(f"{path.name}: invalid JSON ({e})") from e

    def _write_all(self, envelopes: dict[str, object]) -> None:
        self.snapshots_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        staging = self.root / f".staging-{stamp}"
        staging.mkdir()
        try:
            for key, envelope in envelopes.items():
                with open(staging / f"{key}.json", "w", encoding="utf-8") as f:
                    json.dump(envelope, f, indent=2)
            final = self.snapshots_dir / stamp
            staging.rename(final)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        # Relative link so the store directory stays portable
        tmp_link = self.root / f".current-{stamp}"
        tmp_link.symlink_to(Path("snapshots") / stamp)
        os.replace(tmp_link, self.current)
        self._prune()

    def _prune(self) -> None:
        snapshots = sorted(p for p in self.snapshots_dir.iterdir() if p.is_dir())
        live = self.current.resolve()
        for old in snapshots[: max(0, len(snapshots) - self.keep)]:
            if old.resolve() != live:
                shutil.rmtree(old, ignore_errors=True)

    def keys(self) -> list[str]:
        if not self.current.exists():
            return []
        return sorted(p.stem for p in self.current.glob("*.json"))


# ── Typed readers ────────────────────────────────────────────────────────────


def load_basis(store: ArtifactStore) -> PcaBasis | None:
    data = store.read(BASIS)
    return None if data is None else PcaBasis.from_json(data)


def load_variance(store: ArtifactStore) -> list[float] | None:
    data = store.read(VARIANCE)
    return None if data is None else variance_from_json(data)


def load_top_issues(store: ArtifactStore) -> list[list[BillLoading]] | None:
    data = store.read(TOP_ISSUES)
    return None if data is None else top_issues_from_json(data)


def _load_entries(store: ArtifactStore, key: str, parse):
    data = store.read(key)
    if data is None:
        return None
    if not isinstance(data, list):
        raise ArtifactValidationError(f"{key}: expected a list")
    return [parse(item) for item in data]


def load_party_agreement(store: ArtifactStore) -> list[PartyAgreementEntry] | None:
    return _load_entries(store, PARTY_AGREEMENT, PartyAgreementEntry.from_json)


def load_party_cohesion(store: ArtifactStore) -> list[PartyCohesionEntry] | None:
    return _load_entries(store, PARTY_COHESION, PartyCohesionEntry.from_json)


def load_legislator_agreement(store: ArtifactStore) -> list[LegislatorAgreementEntry] | None:
    return _load_entries(store, LEGISLATOR_AGREEMENT, LegislatorAgreementEntry.from_json)


def load_party_absence(store: ArtifactStore) -> list[PartyAbsenceEntry] | None:
    return _load_entries(store, PARTY_ABSENCE, PartyAbsenceEntry.from_json)


def load_controversial_issues(store: ArtifactStore) -> list[ControversialIssue] | None:
    return _load_entries(store, CONTROVERSIAL_ISSUES, ControversialIssue.from_json)
