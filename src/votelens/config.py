"""Configuration constants for the votelens analytics engine."""

from votelens.models import PartyScheme, VoteValue

N_COMPONENTS = 3  # axes computed by the batch recompute
LIVE_N_COMPONENTS = 2  # axes for the live fallback
POWER_ITERATIONS = 100
POWER_EPSILON = 1e-10  # below this norm the residual is treated as exhausted

MIN_VOTES_PER_LEGISLATOR = 20  # yes/no/abstain votes on retained issues
MIN_VOTERS_PER_ISSUE = 50  # yes/no/abstain votes cast on the issue

TOP_N_LOADINGS = 5  # issues kept per polarity per axis
MIN_COHESION_VOTERS = 5  # party members voting on an issue for it to count
MIN_SHARED_ISSUES = 1  # issues a party pair must share to be reported
MIN_SHARED_VOTES_PAIR = 10  # issues two legislators must both vote on to be compared
LEGISLATOR_AGREEMENT_LIMIT = 50  # closest peers returned for one legislator
TOP_LEGISLATOR_PAIRS = 100  # cross-party pairs kept in the batch artifact
CONTROVERSIAL_MIN_VOTES = 100  # yes + no votes for an issue to qualify
CONTROVERSIAL_LIMIT = 20  # closest issues kept

# Majority position tie-break: earlier wins when counts are equal.
MAJORITY_PRIORITY = (VoteValue.YES, VoteValue.NO, VoteValue.ABSTAIN)

# Matrix encoding. Abstention and absence share the neutral value; callers that
# want to separate them pass their own mapping to build_vote_matrix().
VOTE_ENCODING = {
    VoteValue.YES: 1.0,
    VoteValue.NO: -1.0,
    VoteValue.ABSTAIN: 0.0,
    VoteValue.DID_NOT_VOTE: 0.0,
}

# European Parliament political groups, left to right.
EP_PARTY_SCHEME = PartyScheme(
    codes=("GUE/NGL", "Greens/EFA", "S&D", "Renew", "EPP", "ECR", "PfE", "ESN", "NI"),
    exact={
        "The Left group in the European Parliament - GUE/NGL": "GUE/NGL",
        "The Left in the European Parliament - GUE/NGL": "GUE/NGL",
        "Group of the Greens/European Free Alliance": "Greens/EFA",
        "Group of the Progressive Alliance of Socialists and Democrats in the European Parliament": "S&D",  # noqa: E501
        "Renew Europe Group": "Renew",
        "Group of the European People's Party (Christian Democrats)": "EPP",
        "European Conservatives and Reformists Group": "ECR",
        "Patriots for Europe Group": "PfE",
        "Europe of Sovereign Nations Group": "ESN",
        "Non-attached Members": "NI",
    },
    substrings=(
        ("gue", "GUE/NGL"),
        ("left", "GUE/NGL"),
        ("green", "Greens/EFA"),
        ("socialist", "S&D"),
        ("s&d", "S&D"),
        ("renew", "Renew"),
        ("people's party", "EPP"),
        ("epp", "EPP"),
        ("conservative", "ECR"),
        ("ecr", "ECR"),
        ("patriot", "PfE"),
        ("sovereign", "ESN"),
        ("esn", "ESN"),
        ("non-attached", "NI"),
    ),
    fallback="NI",
    # Identity and Democracy was dissolved before the current term.
    excluded=(("identity", "democracy"),),
)
