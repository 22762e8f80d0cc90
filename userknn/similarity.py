"""Similarity functions between two users' rating vectors."""
from __future__ import annotations

import math
from abc import ABC, abstractmethod

import numpy as np

from .vectors import SparseVector


class VectorSimilarity(ABC):
    @abstractmethod
    def similarity(self, a: SparseVector, b: SparseVector) -> float:
        ...

    def __call__(self, a: SparseVector, b: SparseVector) -> float:
        return self.similarity(a, b)


class CosineSimilarity(VectorSimilarity):
    """Cosine over the full vectors: `a·b / (|a| |b| + damping)`."""

    def __init__(self, damping: float = 0.0) -> None:
        if damping < 0:
            raise ValueError("damping must be >= 0")
        self.damping = float(damping)

    def similarity(self, a: SparseVector, b: SparseVector) -> float:
        dot = a.dot(b)
        denom = a.norm() * b.norm() + self.damping
        if denom == 0.0 or dot == 0.0:
            return 0.0
        return float(dot / denom)


class PearsonCorrelation(VectorSimilarity):
    """Pearson correlation over co-rated keys.

    Each side is centered by its mean over the co-rated keys only.
    """

    def __init__(self, damping: float = 0.0) -> None:
        if damping < 0:
            raise ValueError("damping must be >= 0")
        self.damping = float(damping)

    def similarity(self, a: SparseVector, b: SparseVector) -> float:
        va, vb = a.overlap(b)
        if va.size < 2:
            return 0.0
        da = va - va.mean()
        db = vb - vb.mean()
        denom = math.sqrt(float(np.dot(da, da))) * math.sqrt(float(np.dot(db, db))) + self.damping
        if denom == 0.0:
            return 0.0
        return float(np.dot(da, db) / denom)


def make_similarity(name: str, damping: float = 0.0) -> VectorSimilarity:
    key = str(name).strip().lower()
    if key == "cosine":
        return CosineSimilarity(damping=damping)
    if key == "pearson":
        return PearsonCorrelation(damping=damping)
    raise ValueError(f"Unknown similarity {name!r}; expected 'cosine' or 'pearson'")
