"""votelens - voting-pattern analytics for roll-call records."""

__version__ = "0.1.0"

from votelens.matrix import build_vote_matrix as build_vote_matrix
from votelens.models import PcaBasis as PcaBasis
from votelens.models import VoteRecord as VoteRecord
from votelens.pca import compute_pca as compute_pca
from votelens.pipeline import live_coordinates as live_coordinates
from votelens.pipeline import project_from_store as project_from_store
from votelens.pipeline import recompute as recompute
