"""Per-user rating normalizers.

A normalizer maps a user's ratings into a comparable space (e.g. mean-centered)
and can build a reversible `VectorTransformation` from a reference vector, which
is later used to map predictions back onto the user's own rating scale.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod

import numpy as np

from .vectors import MutableSparseVector, SparseVector


class VectorTransformation(ABC):
    """In-place, invertible transform of a vector's values."""

    @abstractmethod
    def apply(self, vector: MutableSparseVector) -> MutableSparseVector:
        ...

    @abstractmethod
    def unapply(self, vector: MutableSparseVector) -> MutableSparseVector:
        ...


class IdentityTransformation(VectorTransformation):
    def apply(self, vector: MutableSparseVector) -> MutableSparseVector:
        return vector

    def unapply(self, vector: MutableSparseVector) -> MutableSparseVector:
        return vector


class ShiftScaleTransformation(VectorTransformation):
    """`apply`: (x - shift) / scale; `unapply`: x * scale + shift."""

    def __init__(self, shift: float, scale: float = 1.0) -> None:
        if scale == 0.0 or not math.isfinite(scale):
            raise ValueError(f"scale must be finite and non-zero, got {scale}")
        self.shift = float(shift)
        self.scale = float(scale)

    def apply(self, vector: MutableSparseVector) -> MutableSparseVector:
        vector.add(-self.shift)
        if self.scale != 1.0:
            vector.multiply(1.0 / self.scale)
        return vector

    def unapply(self, vector: MutableSparseVector) -> MutableSparseVector:
        if self.scale != 1.0:
            vector.multiply(self.scale)
        vector.add(self.shift)
        return vector

    def __repr__(self) -> str:
        return f"ShiftScaleTransformation(shift={self.shift:g}, scale={self.scale:g})"


class UserVectorNormalizer(ABC):
    """Normalizes a user's rating vector; see module docstring."""

    @abstractmethod
    def make_transformation(self, user_id: int, reference: SparseVector) -> VectorTransformation:
        """Build the transformation defined by `reference` (the user's raw ratings)."""

    def normalize(self, user_id: int, vector: MutableSparseVector) -> MutableSparseVector:
        """Normalize `vector` in place using a transformation built from itself.

        Not idempotent: applying it twice to the same vector transforms twice.
        """
        return self.make_transformation(user_id, vector).apply(vector)


class IdentityNormalizer(UserVectorNormalizer):
    def make_transformation(self, user_id: int, reference: SparseVector) -> VectorTransformation:
        return IdentityTransformation()


class MeanCenteringNormalizer(UserVectorNormalizer):
    """Subtract the user's mean rating.

    With `damping > 0` the mean is shrunk toward `global_mean`:
    `(sum + damping * global_mean) / (n + damping)`.
    """

    def __init__(self, *, damping: float = 0.0, global_mean: float = 0.0) -> None:
        if damping < 0:
            raise ValueError("damping must be >= 0")
        self.damping = float(damping)
        self.global_mean = float(global_mean)

    def user_mean(self, reference: SparseVector) -> float:
        n = len(reference)
        if n == 0 and self.damping == 0.0:
            return 0.0
        return (reference.sum() + self.damping * self.global_mean) / (n + self.damping)

    def make_transformation(self, user_id: int, reference: SparseVector) -> VectorTransformation:
        if len(reference) == 0 and self.damping == 0.0:
            return IdentityTransformation()
        return ShiftScaleTransformation(self.user_mean(reference))


class MeanVarianceNormalizer(UserVectorNormalizer):
    """Z-score normalization: subtract the mean, divide by the standard deviation.

    A user whose ratings are all equal keeps unit scale.
    """

    def __init__(self, *, damping: float = 0.0) -> None:
        if damping < 0:
            raise ValueError("damping must be >= 0")
        self.damping = float(damping)

    def make_transformation(self, user_id: int, reference: SparseVector) -> VectorTransformation:
        n = len(reference)
        if n == 0:
            return IdentityTransformation()
        values = reference.values()
        mean = float(values.mean())
        var = float(np.sum((values - mean) ** 2)) / (n + self.damping)
        std = math.sqrt(var)
        return ShiftScaleTransformation(mean, std if std > 0.0 else 1.0)


_NORMALIZERS = {
    "identity": IdentityNormalizer,
    "mean": MeanCenteringNormalizer,
    "zscore": MeanVarianceNormalizer,
}


def make_normalizer(name: str, **kwargs) -> UserVectorNormalizer:
    """Resolve a normalizer by config name (`identity`, `mean`, `zscore`)."""
    key = str(name).strip().lower()
    if key not in _NORMALIZERS:
        raise ValueError(f"Unknown normalizer {name!r}; expected one of {sorted(_NORMALIZERS)}")
    if key == "identity":
        return IdentityNormalizer()
    return _NORMALIZERS[key](**kwargs)
