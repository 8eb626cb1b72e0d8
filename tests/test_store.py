"""
Tests for artifact stores in store.py.

Covers all-or-nothing snapshot writes (a failed write leaves the previous
snapshot readable), the on-disk symlink swap and pruning, and validation of
artifacts on read.

Run: uv run pytest tests/test_store.py -v
"""

import json

import pytest

from votelens.models import (
    ArtifactValidationError,
    ControversialIssue,
    LegislatorAgreementEntry,
    PartyAbsenceEntry,
    PartyAgreementEntry,
)
from votelens.store import (
    BASIS,
    CONTROVERSIAL_ISSUES,
    LAST_RECOMPUTE,
    LEGISLATOR_AGREEMENT,
    PARTY_ABSENCE,
    PARTY_AGREEMENT,
    PARTY_COHESION,
    TOP_ISSUES,
    VARIANCE,
    JsonDirectoryStore,
    MemoryStore,
    PersistenceError,
    load_basis,
    load_controversial_issues,
    load_legislator_agreement,
    load_party_absence,
    load_party_agreement,
    load_party_cohesion,
    load_top_issues,
    load_variance,
)

# ── Helpers ──────────────────────────────────────────────────────────────────


def _artifacts(variance=(2.0, 1.0)):
    return {
        VARIANCE: list(variance),
        BASIS: {"components": [[0.6, -0.8]], "means": [0.0, 0.5], "issueIds": ["v1", "v2"]},
        TOP_ISSUES: [[{"issueId": "v1", "loading": 0.9}]],
        PARTY_AGREEMENT: [
            {"partyA": "EPP", "partyB": "S&D", "totalBills": 10, "agreements": 7},
        ],
        PARTY_COHESION: [{"party": "EPP", "avgCohesionPercent": 91.2, "billsVoted": 10}],
        LAST_RECOMPUTE: {"completedAt": "2026-01-01T00:00:00+00:00"},
    }


# ── MemoryStore ──────────────────────────────────────────────────────────────


class TestMemoryStore:
    def test_empty_store(self):
        store = MemoryStore()
        assert store.read(VARIANCE) is None
        assert store.keys() == []
        assert not store.is_complete

    def test_write_then_read(self):
        store = MemoryStore()
        store.write_snapshot(_artifacts())
        assert store.read(VARIANCE) == [2.0, 1.0]
        assert store.is_complete
        assert set(store.keys()) == set(_artifacts())

    def test_failed_write_keeps_previous_snapshot(self):
        store = MemoryStore()
        store.write_snapshot(_artifacts(variance=(3.0,)))
        store.fail_on = PARTY_COHESION
        with pytest.raises(PersistenceError):
            store.write_snapshot(_artifacts(variance=(9.0,)))
        assert store.read(VARIANCE) == [3.0]
        assert store.is_complete

    def test_failed_first_write_leaves_store_empty(self):
        store = MemoryStore(fail_on=LAST_RECOMPUTE)
        with pytest.raises(PersistenceError):
            store.write_snapshot(_artifacts())
        assert store.keys() == []
        assert not store.is_complete

    def test_unserializable_value_is_persistence_error(self):
        store = MemoryStore()
        with pytest.raises(PersistenceError):
            store.write_snapshot({VARIANCE: object()})

    def test_new_snapshot_replaces_old_keys(self):
        store = MemoryStore()
        store.write_snapshot(_artifacts())
        store.write_snapshot({VARIANCE: [1.0]})
        assert store.keys() == [VARIANCE]


# ── JsonDirectoryStore ───────────────────────────────────────────────────────


class TestJsonDirectoryStore:
    def test_write_then_read(self, tmp_path):
        store = JsonDirectoryStore(tmp_path / "store")
        store.write_snapshot(_artifacts())
        assert store.read(VARIANCE) == [2.0, 1.0]
        assert store.current.is_symlink()
        assert store.is_complete

    def test_files_are_enveloped(self, tmp_path):
        store = JsonDirectoryStore(tmp_path)
        store.write_snapshot(_artifacts())
        data = json.loads((store.current / f"{VARIANCE}.json").read_text())
        assert data == {"version": 1, "data": [2.0, 1.0]}

    def test_second_snapshot_swaps_current(self, tmp_path):
        store = JsonDirectoryStore(tmp_path)
        store.write_snapshot(_artifacts(variance=(1.0,)))
        first = store.current.resolve()
        store.write_snapshot(_artifacts(variance=(5.0,)))
        assert store.current.resolve() != first
        assert store.read(VARIANCE) == [5.0]

    def test_prunes_old_snapshots(self, tmp_path):
        store = JsonDirectoryStore(tmp_path, keep=2)
        for v in range(4):
            store.write_snapshot({VARIANCE: [float(v)]})
        snapshots = [p for p in store.snapshots_dir.iterdir() if p.is_dir()]
        assert len(snapshots) == 2
        assert store.read(VARIANCE) == [3.0]

    def test_failed_write_keeps_previous_snapshot(self, tmp_path):
        store = JsonDirectoryStore(tmp_path)
        store.write_snapshot(_artifacts(variance=(3.0,)))
        with pytest.raises(PersistenceError):
            store.write_snapshot({VARIANCE: [1.0], PARTY_COHESION: {1, 2}})
        assert store.read(VARIANCE) == [3.0]
        assert not any(p.name.startswith(".staging") for p in tmp_path.iterdir())

    def test_missing_key(self, tmp_path):
        store = JsonDirectoryStore(tmp_path)
        assert store.read(VARIANCE) is None
        assert store.keys() == []

    def test_corrupt_file_is_validation_error(self, tmp_path):
        store = JsonDirectoryStore(tmp_path)
        store.write_snapshot(_artifacts())
        (store.current / f"{VARIANCE}.json").write_text("{not json")
        with pytest.raises(ArtifactValidationError):
            store.read(VARIANCE)


# ── Typed readers ────────────────────────────────────────────────────────────


class TestTypedReaders:
    def test_all_readers(self):
        store = MemoryStore()
        store.write_snapshot(_artifacts())
        assert load_variance(store) == [2.0, 1.0]
        assert load_basis(store).issue_ids == ["v1", "v2"]
        assert load_top_issues(store)[0][0].issue_id == "v1"
        assert load_party_agreement(store) == [PartyAgreementEntry("EPP", "S&D", 10, 7)]
        assert load_party_cohesion(store)[0].avg_cohesion_percent == pytest.approx(91.2)

    def test_readers_return_none_when_missing(self):
        store = MemoryStore()
        assert load_variance(store) is None
        assert load_basis(store) is None
        assert load_party_agreement(store) is None

    def test_malformed_basis_rejected(self):
        store = MemoryStore()
        artifacts = _artifacts()
        artifacts[BASIS] = {"components": [[1.0]], "means": [0.0, 0.0], "issueIds": ["a", "b"]}
        store.write_snapshot(artifacts)
        with pytest.raises(ArtifactValidationError):
            load_basis(store)

    def test_agreement_must_be_list(self):
        store = MemoryStore()
        store.write_snapshot({PARTY_AGREEMENT: {"partyA": "EPP"}})
        with pytest.raises(ArtifactValidationError):
            load_party_agreement(store)

    def test_aggregate_readers(self):
        pair = LegislatorAgreementEntry("m1", "m2", "EPP", "S&D", 10, 8)
        absence = PartyAbsenceEntry("EPP", 3, 2, 3, 3, 2, 3)
        issue = ControversialIssue("v1", 51, 49)
        store = MemoryStore()
        store.write_snapshot({
            LEGISLATOR_AGREEMENT: [pair.to_json()],
            PARTY_ABSENCE: [absence.to_json()],
            CONTROVERSIAL_ISSUES: [issue.to_json()],
        })
        assert load_legislator_agreement(store) == [pair]
        assert load_party_absence(store) == [absence]
        assert load_controversial_issues(store) == [issue]

    def test_aggregate_must_be_list(self):
        store = MemoryStore()
        store.write_snapshot({PARTY_ABSENCE: {"party": "EPP"}})
        with pytest.raises(ArtifactValidationError, match="partyAbsence"):
            load_party_absence(store)
