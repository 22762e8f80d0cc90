"""User-user collaborative filtering rating prediction."""

from .neighborhood import Neighbor, NeighborhoodFinder, SimpleNeighborhoodFinder
from .normalize import (
    IdentityNormalizer,
    MeanCenteringNormalizer,
    MeanVarianceNormalizer,
    UserVectorNormalizer,
    VectorTransformation,
)
from .predictor import UserUserRatingPredictor
from .vectors import MutableSparseVector, SparseVector

__all__ = [
    "IdentityNormalizer",
    "MeanCenteringNormalizer",
    "MeanVarianceNormalizer",
    "MutableSparseVector",
    "Neighbor",
    "NeighborhoodFinder",
    "SimpleNeighborhoodFinder",
    "SparseVector",
    "UserUserRatingPredictor",
    "UserVectorNormalizer",
    "VectorTransformation",
]
