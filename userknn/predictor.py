"""User-user collaborative filtering rating predictor.

Predictions are a similarity-weighted mean of neighbor ratings computed in the
normalizer's space, then mapped back to the target user's rating scale:

    pred(u, i) = T_u^-1( sum_n s(u, n) * r'(n, i) / sum_n |s(u, n)| )

where `r'` are the neighbors' normalized ratings and `T_u` is the
transformation built from the target user's own ratings. Items nobody can
vote on come back as NaN.
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from itertools import chain
from typing import Optional

import numpy as np

from .data import RatingSnapshot
from .neighborhood import Neighbor, NeighborhoodFinder
from .normalize import UserVectorNormalizer
from .utils import as_id_array
from .vectors import MutableSparseVector, SparseVector


class UserUserRatingPredictor:
    """Weighted kNN predictor wired with a neighborhood finder and a normalizer.

    Holds no per-call state, so one instance can serve concurrent calls as long
    as the finder hands each call its own neighbor vectors.
    """

    def __init__(
        self,
        finder: NeighborhoodFinder,
        normalizer: UserVectorNormalizer,
        *,
        snapshot: Optional[RatingSnapshot] = None,
    ) -> None:
        self.finder = finder
        self.normalizer = normalizer
        self.snapshot = snapshot

    def normalize_neighbor_ratings(self, neighborhoods: Iterable[Sequence[Neighbor]]) -> int:
        """Normalize every distinct neighbor rating vector exactly once, in place.

        Vectors are told apart by their identity token, not their contents: the
        same vector listed under many items is normalized once, while two
        equal-valued vectors from different neighbors are each normalized.
        Returns the number of vectors normalized.
        """
        seen: set[int] = set()
        for nbr in chain.from_iterable(neighborhoods):
            token = nbr.ratings.token
            if token in seen:
                continue
            seen.add(token)
            self.normalizer.normalize(nbr.user_id, nbr.ratings)
        return len(seen)

    @staticmethod
    def _score(item: int, neighbors: Optional[Sequence[Neighbor]]) -> float:
        if not neighbors:
            return math.nan
        weight = 0.0
        total = 0.0
        for nbr in neighbors:
            weight += abs(nbr.similarity)
            total += nbr.similarity * nbr.ratings[item]
        if weight == 0.0:
            return math.nan
        return total / weight

    def score_items(self, keys: np.ndarray, neighborhoods: Mapping[int, Sequence[Neighbor]]) -> np.ndarray:
        """Normalized-space scores for `keys`, NaN where no neighbor votes."""
        return np.fromiter(
            (self._score(int(item), neighborhoods.get(int(item))) for item in keys),
            dtype=np.float64,
            count=int(keys.size),
        )

    def predict(
        self,
        user_id: int,
        ratings: SparseVector,
        items: Optional[Iterable[int]] = None,
    ) -> SparseVector:
        """Predict `user_id`'s ratings for `items`.

        With `items=None` the scope is every item the finder returns neighbors
        for. The result is keyed by the (sorted, de-duplicated) scope; values
        are predicted ratings or NaN when no prediction is possible.
        """
        scope = None if items is None else as_id_array(items)
        if scope is not None and scope.size == 0:
            return SparseVector.empty()

        neighborhoods = self.finder.find_neighbors(user_id, ratings, scope)
        keys = as_id_array(neighborhoods.keys()) if scope is None else scope

        self.normalize_neighbor_ratings(neighborhoods.values())
        preds = self.score_items(keys, neighborhoods)

        transform = self.normalizer.make_transformation(user_id, ratings)
        out = MutableSparseVector.wrap(keys, preds)
        transform.unapply(out)
        return out.freeze()

    def predict_for_user(self, user_id: int, items: Optional[Iterable[int]] = None) -> SparseVector:
        """Look up `user_id`'s ratings in the snapshot and predict."""
        if self.snapshot is None:
            raise ValueError("predict_for_user needs a predictor built with a RatingSnapshot")
        return self.predict(user_id, self.snapshot.user_ratings(user_id), items)
