"""Data classes for vote records and the persisted analytics artifacts.

Each persisted artifact has a ``to_json()`` producing the exact stored shape
and a ``from_json()`` that validates it. Stored values are wrapped in a
versioned envelope (see ``wrap`` / ``unwrap``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

import numpy as np

ARTIFACT_SCHEMA_VERSION = 1


class ArtifactValidationError(ValueError):
    """A stored artifact does not have the shape its reader expects."""


def round_half_up(value: float, places: int = 1) -> float:
    """Round to ``places`` decimals with halves going away from zero.

    Works on the shortest decimal repr of the float, so 6.25 -> 6.3 and
    2.675 -> 2.68 where the builtin round() gives 6.2 and 2.67.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


class VoteValue:
    """The four recorded positions of a legislator on an issue."""

    YES = "yes"
    NO = "no"
    ABSTAIN = "abstain"
    DID_NOT_VOTE = "did_not_vote"

    ALL = (YES, NO, ABSTAIN, DID_NOT_VOTE)
    CAST = (YES, NO, ABSTAIN)  # positions that count as participation


_VOTE_SYNONYMS = {
    "yes": VoteValue.YES,
    "yea": VoteValue.YES,
    "for": VoteValue.YES,
    "no": VoteValue.NO,
    "nay": VoteValue.NO,
    "against": VoteValue.NO,
    "abstain": VoteValue.ABSTAIN,
    "abstention": VoteValue.ABSTAIN,
    "did_not_vote": VoteValue.DID_NOT_VOTE,
    "did not vote": VoteValue.DID_NOT_VOTE,
    "absent": VoteValue.DID_NOT_VOTE,
    "not voting": VoteValue.DID_NOT_VOTE,
}


def normalize_vote(raw: object) -> str:
    """Map a raw vote string to a VoteValue.

    "Yea" -> "yes", " NO " -> "no". Anything unrecognized is treated as
    non-participation rather than raising.
    """
    if raw is None:
        return VoteValue.DID_NOT_VOTE
    key = " ".join(str(raw).strip().lower().split())
    return _VOTE_SYNONYMS.get(key, VoteValue.DID_NOT_VOTE)


@dataclass(frozen=True)
class VoteRecord:
    """One legislator's position on one issue."""

    legislator_id: str
    issue_id: str
    value: str  # yes, no, abstain, did_not_vote
    group: str | None = None  # free-text group label as recorded


@dataclass
class VoteMatrix:
    """Legislators x issues, cells in {+1, -1, 0}."""

    legislator_ids: list[str]
    issue_ids: list[str]
    values: np.ndarray
    groups: dict[str, str | None] = field(default_factory=dict)

    @property
    def shape(self) -> tuple[int, int]:
        return len(self.legislator_ids), len(self.issue_ids)

    @property
    def is_empty(self) -> bool:
        return not self.legislator_ids or not self.issue_ids

    @classmethod
    def empty(cls) -> VoteMatrix:
        return cls(legislator_ids=[], issue_ids=[], values=np.zeros((0, 0)))


@dataclass
class PcaResult:
    """Output of one PCA run.

    components: (k, m) unit loading vectors (zero rows for degenerate axes)
    variances:  (k,) mean squared residual score per component
    scores:     (n, k) coordinates of the centered matrix on each component
    means:      (m,) per-issue centering means
    centered:   (n, m) centered input matrix
    """

    components: np.ndarray
    variances: np.ndarray
    scores: np.ndarray
    means: np.ndarray
    centered: np.ndarray

    @property
    def n_components(self) -> int:
        return int(self.components.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.scores.shape[0] == 0 or self.components.shape[1] == 0

    @classmethod
    def empty(cls, n_components: int = 0) -> PcaResult:
        return cls(
            components=np.zeros((0, 0)),
            variances=np.zeros(0),
            scores=np.zeros((0, n_components)),
            means=np.zeros(0),
            centered=np.zeros((0, 0)),
        )


@dataclass(frozen=True)
class LegislatorCoordinate:
    """One legislator's position on each computed axis."""

    legislator_id: str
    group: str | None
    coordinates: tuple[float, ...]

    def to_json(self) -> dict:
        return {
            "legislatorId": self.legislator_id,
            "group": self.group,
            "coordinates": list(self.coordinates),
        }

    @classmethod
    def from_json(cls, data: object) -> LegislatorCoordinate:
        obj = _require_dict(data, "legislator coordinate")
        group = obj.get("group")
        if group is not None and not isinstance(group, str):
            raise ArtifactValidationError("legislator coordinate: group must be a string")
        return cls(
            legislator_id=_require_str(obj, "legislatorId"),
            group=group,
            coordinates=tuple(_require_numbers(obj.get("coordinates"), "coordinates")),
        )


@dataclass(frozen=True)
class BillLoading:
    """Correlation between one issue's votes and one axis."""

    issue_id: str
    axis: int
    loading: float

    def to_json(self) -> dict:
        return {"issueId": self.issue_id, "loading": self.loading}

    @classmethod
    def from_json(cls, data: object, axis: int) -> BillLoading:
        obj = _require_dict(data, "bill loading")
        loading = _require_number(obj, "loading")
        if not -1.0 - 1e-9 <= loading <= 1.0 + 1e-9:
            raise ArtifactValidationError(f"bill loading out of range: {loading}")
        return cls(issue_id=_require_str(obj, "issueId"), axis=axis, loading=loading)


@dataclass(frozen=True)
class PartyAgreementEntry:
    """How often two parties' majorities voted the same way."""

    party_a: str
    party_b: str
    total_bills: int
    agreements: int

    @property
    def agreement_pct(self) -> float:
        if self.total_bills == 0:
            return 0.0
        return round_half_up(self.agreements / self.total_bills * 100)

    def to_json(self) -> dict:
        return {
            "partyA": self.party_a,
            "partyB": self.party_b,
            "totalBills": self.total_bills,
            "agreements": self.agreements,
        }

    @classmethod
    def from_json(cls, data: object) -> PartyAgreementEntry:
        obj = _require_dict(data, "party agreement")
        total = _require_int(obj, "totalBills")
        agreements = _require_int(obj, "agreements")
        if not 0 <= agreements <= total:
            raise ArtifactValidationError(
                f"party agreement: agreements={agreements} outside 0..{total}"
            )
        return cls(
            party_a=_require_str(obj, "partyA"),
            party_b=_require_str(obj, "partyB"),
            total_bills=total,
            agreements=agreements,
        )


@dataclass(frozen=True)
class PartyCohesionEntry:
    """Average share of a party voting with its own largest bloc."""

    party: str
    avg_cohesion_percent: float
    bills_voted: int

    def to_json(self) -> dict:
        return {
            "party": self.party,
            "avgCohesionPercent": self.avg_cohesion_percent,
            "billsVoted": self.bills_voted,
        }

    @classmethod
    def from_json(cls, data: object) -> PartyCohesionEntry:
        obj = _require_dict(data, "party cohesion")
        return cls(
            party=_require_str(obj, "party"),
            avg_cohesion_percent=_require_number(obj, "avgCohesionPercent"),
            bills_voted=_require_int(obj, "billsVoted"),
        )


@dataclass(frozen=True)
class GroupStatsEntry:
    """Raw vote totals per party."""

    party: str
    member_count: int
    total_votes: int
    yes_votes: int
    no_votes: int
    abstain_votes: int

    def to_json(self) -> dict:
        return {
            "party": self.party,
            "memberCount": self.member_count,
            "totalVotes": self.total_votes,
            "yesVotes": self.yes_votes,
            "noVotes": self.no_votes,
            "abstainVotes": self.abstain_votes,
        }


@dataclass(frozen=True)
class LegislatorAgreementEntry:
    """How often two legislators cast the same vote on issues both voted on."""

    legislator_a: str
    legislator_b: str
    party_a: str | None
    party_b: str | None
    total_bills: int
    agreements: int

    @property
    def agreement_pct(self) -> float:
        if self.total_bills == 0:
            return 0.0
        return round_half_up(self.agreements / self.total_bills * 100)

    def to_json(self) -> dict:
        return {
            "legislatorA": self.legislator_a,
            "legislatorB": self.legislator_b,
            "partyA": self.party_a,
            "partyB": self.party_b,
            "totalBills": self.total_bills,
            "agreements": self.agreements,
            "agreementPct": self.agreement_pct,
        }

    @classmethod
    def from_json(cls, data: object) -> LegislatorAgreementEntry:
        obj = _require_dict(data, "legislator agreement")
        total = _require_int(obj, "totalBills")
        agreements = _require_int(obj, "agreements")
        if not 0 <= agreements <= total:
            raise ArtifactValidationError(
                f"legislator agreement: agreements={agreements} outside 0..{total}"
            )
        return cls(
            legislator_a=_require_str(obj, "legislatorA"),
            legislator_b=_require_str(obj, "legislatorB"),
            party_a=_optional_str(obj, "partyA"),
            party_b=_optional_str(obj, "partyB"),
            total_bills=total,
            agreements=agreements,
        )


@dataclass(frozen=True)
class PartyAbsenceEntry:
    """Turnout of one party: cast votes against recorded absences."""

    party: str
    total_members: int
    active_members: int
    votes_cast: int
    absent_votes: int
    bills_participated: int
    total_bills: int

    @property
    def absence_rate(self) -> float | None:
        """Absences as a percentage of recorded positions; None if there are none."""
        recorded = self.votes_cast + self.absent_votes
        if recorded == 0:
            return None
        return round_half_up(self.absent_votes / recorded * 100)

    @property
    def participation_rate(self) -> float:
        if self.total_bills == 0:
            return 0.0
        return round_half_up(self.bills_participated / self.total_bills * 100)

    def to_json(self) -> dict:
        return {
            "party": self.party,
            "totalMembers": self.total_members,
            "activeMembers": self.active_members,
            "votesCast": self.votes_cast,
            "absentVotes": self.absent_votes,
            "billsParticipated": self.bills_participated,
            "totalBills": self.total_bills,
            "absenceRate": self.absence_rate,
            "participationRate": self.participation_rate,
        }

    @classmethod
    def from_json(cls, data: object) -> PartyAbsenceEntry:
        obj = _require_dict(data, "party absence")
        participated = _require_int(obj, "billsParticipated")
        total = _require_int(obj, "totalBills")
        if participated > total:
            raise ArtifactValidationError(
                f"party absence: billsParticipated={participated} above totalBills={total}"
            )
        return cls(
            party=_require_str(obj, "party"),
            total_members=_require_int(obj, "totalMembers"),
            active_members=_require_int(obj, "activeMembers"),
            votes_cast=_require_int(obj, "votesCast"),
            absent_votes=_require_int(obj, "absentVotes"),
            bills_participated=participated,
            total_bills=total,
        )


@dataclass(frozen=True)
class ControversialIssue:
    """An issue and how close its yes/no split was."""

    issue_id: str
    yes_votes: int
    no_votes: int

    @property
    def total_votes(self) -> int:
        return self.yes_votes + self.no_votes

    @property
    def margin(self) -> float:
        """|yes - no| as a percentage of yes + no; 0 is a dead heat."""
        if self.total_votes == 0:
            return 0.0
        return abs(self.yes_votes - self.no_votes) / self.total_votes * 100

    def to_json(self) -> dict:
        return {
            "issueId": self.issue_id,
            "yesVotes": self.yes_votes,
            "noVotes": self.no_votes,
            "totalVotes": self.total_votes,
            "margin": self.margin,
        }

    @classmethod
    def from_json(cls, data: object) -> ControversialIssue:
        obj = _require_dict(data, "controversial issue")
        return cls(
            issue_id=_require_str(obj, "issueId"),
            yes_votes=_require_int(obj, "yesVotes"),
            no_votes=_require_int(obj, "noVotes"),
        )


@dataclass
class PcaBasis:
    """Everything needed to place a new vote vector in the legislators' space."""

    components: np.ndarray  # (k, m)
    means: np.ndarray  # (m,)
    issue_ids: list[str]

    @property
    def n_components(self) -> int:
        return int(self.components.shape[0])

    @property
    def n_issues(self) -> int:
        return len(self.issue_ids)

    def to_json(self) -> dict:
        return {
            "components": [[float(v) for v in row] for row in self.components],
            "means": [float(v) for v in self.means],
            "issueIds": list(self.issue_ids),
        }

    @classmethod
    def from_json(cls, data: object) -> PcaBasis:
        obj = _require_dict(data, "basis")
        issue_ids = obj.get("issueIds")
        if not isinstance(issue_ids, list) or not all(isinstance(i, str) for i in issue_ids):
            raise ArtifactValidationError("basis: issueIds must be a list of strings")
        means = _require_numbers(obj.get("means"), "means")
        rows = obj.get("components")
        if not isinstance(rows, list):
            raise ArtifactValidationError("basis: components must be a list")
        components = [_require_numbers(row, "components row") for row in rows]

        m = len(issue_ids)
        if len(means) != m:
            raise ArtifactValidationError(f"basis: {len(means)} means for {m} issues")
        for row in components:
            if len(row) != m:
                raise ArtifactValidationError(f"basis: component of length {len(row)}, want {m}")

        return cls(
            components=np.array(components, dtype=np.float64).reshape(len(components), m),
            means=np.array(means, dtype=np.float64),
            issue_ids=list(issue_ids),
        )


@dataclass(frozen=True)
class PartyScheme:
    """Canonicalization table for free-text party/group labels.

    codes:      canonical codes in left-to-right display order
    exact:      full label -> code
    substrings: ordered (needle, code) rules, matched case-insensitively
    fallback:   code for labels no rule matches
    excluded:   tuples of needles; a label containing all needles of one
                tuple is dropped from party aggregation
    """

    codes: tuple[str, ...]
    exact: dict[str, str]
    substrings: tuple[tuple[str, str], ...]
    fallback: str
    excluded: tuple[tuple[str, ...], ...] = ()


# -- Envelope + validation helpers ---------------------------------------------


def wrap(data: object) -> dict:
    """Wrap artifact data in a versioned envelope for storage."""
    return {"version": ARTIFACT_SCHEMA_VERSION, "data": data}


def unwrap(envelope: object) -> object:
    """Return the data of a stored envelope, checking its schema version."""
    obj = _require_dict(envelope, "artifact envelope")
    version = obj.get("version")
    if version != ARTIFACT_SCHEMA_VERSION:
        raise ArtifactValidationError(
            f"unsupported artifact version {version!r} (expected {ARTIFACT_SCHEMA_VERSION})"
        )
    if "data" not in obj:
        raise ArtifactValidationError("artifact envelope has no data")
    return obj["data"]


def _require_dict(data: object, what: str) -> dict:
    if not isinstance(data, dict):
        raise ArtifactValidationError(f"{what}: expected an object, got {type(data).__name__}")
    return data


def _require_str(obj: dict, key: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise ArtifactValidationError(f"{key}: expected a string")
    return value


def _optional_str(obj: dict, key: str) -> str | None:
    value = obj.get(key)
    if value is not None and not isinstance(value, str):
        raise ArtifactValidationError(f"{key}: expected a string or null")
    return value


def _require_int(obj: dict, key: str) -> int:
    value = obj.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ArtifactValidationError(f"{key}: expected a non-negative integer")
    return value


def _require_number(obj: dict, key: str) -> float:
    value = obj.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ArtifactValidationError(f"{key}: expected a finite number")
    return float(value)


def _require_numbers(values: object, key: str) -> list[float]:
    if not isinstance(values, list):
        raise ArtifactValidationError(f"{key}: expected a list of numbers")
    out = []
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            raise ArtifactValidationError(f"{key}: expected finite numbers")
        out.append(float(v))
    return out


def variance_from_json(data: object) -> list[float]:
    """Validate a stored variance array."""
    values = _require_numbers(data, "variance")
    if any(v < 0 for v in values):
        raise ArtifactValidationError("variance: values must be non-negative")
    return values


def top_issues_from_json(data: object) -> list[list[BillLoading]]:
    """Validate a stored per-axis top-issue table."""
    if not isinstance(data, list):
        raise ArtifactValidationError("topIssuesPerAxis: expected a list of axes")
    axes = []
    for axis, items in enumerate(data):
        if not isinstance(items, list):
            raise ArtifactValidationError(f"topIssuesPerAxis[{axis}]: expected a list")
        axes.append([BillLoading.from_json(item, axis) for item in items])
    return axes
