"""Neighbors and the finders that produce them for a prediction request."""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from .data import RatingSnapshot
from .similarity import VectorSimilarity
from .utils import as_id_array
from .vectors import MutableSparseVector, SparseVector


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Neighbor:
    """A user voting on items, with its similarity to the target user.

    `ratings` belongs to the finder that built it, but the predictor may
    normalize it in place exactly once.
    """

    user_id: int
    similarity: float
    ratings: MutableSparseVector


Neighborhoods = Dict[int, List[Neighbor]]


class NeighborhoodFinder(ABC):
    @abstractmethod
    def find_neighbors(
        self,
        user_id: int,
        ratings: SparseVector,
        items: Optional[Iterable[int]] = None,
    ) -> Neighborhoods:
        """Map each item to the neighbors that can vote on it.

        `items=None` means every item the finder can supply neighbors for.
        Items without any eligible neighbor may be left out of the result.
        """


class SimpleNeighborhoodFinder(NeighborhoodFinder):
    """Brute-force finder over an in-memory `RatingSnapshot`.

    For each request, every candidate user (raters of the scoped items, or all
    users when unscoped) is scored once against the target user. Accepted
    candidates get one private copy of their rating vector, shared across all
    of the item lists they appear in. Each item keeps its `neighborhood_size`
    most similar raters.
    """

    def __init__(
        self,
        snapshot: RatingSnapshot,
        similarity: VectorSimilarity,
        *,
        neighborhood_size: int = 30,
        min_similarity: Optional[float] = 0.0,
    ) -> None:
        if int(neighborhood_size) < 1:
            raise ValueError("neighborhood_size must be >= 1")
        self.snapshot = snapshot
        self.similarity = similarity
        self.neighborhood_size = int(neighborhood_size)
        self.min_similarity = None if min_similarity is None else float(min_similarity)

    def _candidate_users(self, user_id: int, scope: Optional[np.ndarray]) -> np.ndarray:
        if scope is None:
            users = self.snapshot.users
        else:
            parts = [self.snapshot.item_raters(int(i)) for i in scope]
            users = np.unique(np.concatenate(parts)) if parts else np.empty(0, dtype=np.int64)
        return users[users != int(user_id)]

    def _accepts(self, sim: float) -> bool:
        if math.isnan(sim):
            return False
        if self.min_similarity is not None and sim <= self.min_similarity:
            return False
        return True

    def find_neighbors(
        self,
        user_id: int,
        ratings: SparseVector,
        items: Optional[Iterable[int]] = None,
    ) -> Neighborhoods:
        scope = None if items is None else as_id_array(items)
        candidates = self._candidate_users(user_id, scope)

        accepted: list[Neighbor] = []
        for cand in candidates:
            cand_ratings = self.snapshot.user_ratings(int(cand))
            sim = float(self.similarity(ratings, cand_ratings))
            if not self._accepts(sim):
                continue
            accepted.append(Neighbor(user_id=int(cand), similarity=sim, ratings=cand_ratings.mutable_copy()))

        # Most similar first, ties by user id, so truncation is deterministic.
        accepted.sort(key=lambda n: (-n.similarity, n.user_id))

        scope_set = None if scope is None else set(scope.tolist())
        out: Neighborhoods = {}
        for nbr in accepted:
            for item in nbr.ratings:
                if scope_set is not None and item not in scope_set:
                    continue
                lst = out.setdefault(item, [])
                if len(lst) < self.neighborhood_size:
                    lst.append(nbr)

        logger.debug(
            "find_neighbors user=%d candidates=%d accepted=%d items=%d",
            int(user_id),
            len(candidates),
            len(accepted),
            len(out),
        )
        return out
