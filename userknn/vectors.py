"""Sparse rating vectors keyed by integer ids.

A `SparseVector` is an immutable, key-sorted mapping from int64 ids (items or
users) to float64 values. Looking up an absent key yields NaN, which is also the
"no prediction" sentinel used throughout the package.

`MutableSparseVector` shares the same layout but allows its values to change
(never its key set). It is used for neighbor rating vectors that get normalized
in place and for prediction output that gets denormalized before it is frozen.

Every vector carries a `token`: a process-unique integer assigned when the
vector is constructed. Code that needs to recognise "the same vector object"
(as opposed to two vectors with equal contents) keys on the token.
"""
from __future__ import annotations

import itertools
import math
from typing import Iterator, Mapping

import numpy as np
import pandas as pd


_TOKENS = itertools.count(1)


def _next_token() -> int:
    return next(_TOKENS)


class SparseVector:
    """Immutable sorted mapping `int -> float`; missing keys read as NaN."""

    __slots__ = ("_keys", "_values", "_token")

    def __init__(self, keys, values, *, _sorted: bool = False) -> None:
        k = np.asarray(keys, dtype=np.int64).reshape(-1)
        v = np.asarray(values, dtype=np.float64).reshape(-1)
        if k.shape != v.shape:
            raise ValueError(f"keys and values differ in length: {k.size} != {v.size}")

        if not _sorted:
            order = np.argsort(k, kind="stable")
            k = k[order]
            v = v[order]
        if k.size > 1 and bool((np.diff(k) == 0).any()):
            dup = sorted(set(k[1:][np.diff(k) == 0].tolist()))
            raise ValueError(f"duplicate keys in sparse vector: {dup}")

        self._keys = np.array(k, dtype=np.int64, copy=True)
        self._values = np.array(v, dtype=np.float64, copy=True)
        self._keys.setflags(write=False)
        self._freeze_values()
        self._token = _next_token()

    def _freeze_values(self) -> None:
        self._values.setflags(write=False)

    # ----- construction helpers -----
    @classmethod
    def empty(cls) -> "SparseVector":
        return cls(np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64), _sorted=True)

    @classmethod
    def from_dict(cls, data: Mapping[int, float]) -> "SparseVector":
        keys = np.fromiter((int(k) for k in data.keys()), dtype=np.int64, count=len(data))
        values = np.fromiter((float(x) for x in data.values()), dtype=np.float64, count=len(data))
        return cls(keys, values)

    @classmethod
    def from_series(cls, series: pd.Series) -> "SparseVector":
        """Build from a pandas Series indexed by id."""
        return cls(series.index.to_numpy(dtype=np.int64), series.to_numpy(dtype=np.float64))

    # ----- identity -----
    @property
    def token(self) -> int:
        """Identity token; unique per constructed vector, never shared by copies."""
        return self._token

    # ----- mapping protocol -----
    def __len__(self) -> int:
        return int(self._keys.size)

    def __iter__(self) -> Iterator[int]:
        return (int(k) for k in self._keys)

    def __contains__(self, key: object) -> bool:
        try:
            ikey = int(key)  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return False
        if ikey != key:
            return False
        return self._index(ikey) >= 0

    def __getitem__(self, key: int) -> float:
        return self.get(key)

    def _index(self, key: int) -> int:
        i = int(np.searchsorted(self._keys, key))
        if i < self._keys.size and int(self._keys[i]) == key:
            return i
        return -1

    def get(self, key: int, default: float = math.nan) -> float:
        i = self._index(int(key))
        if i < 0:
            return default
        return float(self._values[i])

    def keys(self) -> np.ndarray:
        """Sorted key array (read-only)."""
        return self._keys

    def values(self) -> np.ndarray:
        """Value array aligned with `keys()`. Read-only for immutable vectors."""
        return self._values

    def items(self) -> Iterator[tuple[int, float]]:
        return ((int(k), float(v)) for k, v in zip(self._keys, self._values))

    # ----- arithmetic -----
    def sum(self) -> float:
        return float(self._values.sum())

    def mean(self) -> float:
        if self._values.size == 0:
            return math.nan
        return float(self._values.mean())

    def norm(self) -> float:
        return float(np.linalg.norm(self._values))

    def overlap(self, other: "SparseVector") -> tuple[np.ndarray, np.ndarray]:
        """Values of both vectors restricted to their shared keys."""
        _, ia, ib = np.intersect1d(self._keys, other._keys, assume_unique=True, return_indices=True)
        return self._values[ia], other._values[ib]

    def dot(self, other: "SparseVector") -> float:
        a, b = self.overlap(other)
        return float(np.dot(a, b))

    # ----- conversion -----
    def to_dict(self) -> dict[int, float]:
        return dict(self.items())

    def to_series(self, name: str | None = None) -> pd.Series:
        return pd.Series(self._values.copy(), index=pd.Index(self._keys.copy(), name="id"), name=name)

    def copy(self) -> "SparseVector":
        return SparseVector(self._keys, self._values, _sorted=True)

    def mutable_copy(self) -> "MutableSparseVector":
        return MutableSparseVector(self._keys, self._values, _sorted=True)

    def __repr__(self) -> str:
        body = ", ".join(f"{k}: {v:g}" for k, v in itertools.islice(self.items(), 8))
        more = ", ..." if len(self) > 8 else ""
        return f"{type(self).__name__}({{{body}{more}}})"


class MutableSparseVector(SparseVector):
    """Sparse vector with a fixed key set and writable values."""

    __slots__ = ()

    def _freeze_values(self) -> None:
        # values stay writable; keys are still frozen
        pass

    @classmethod
    def wrap(cls, keys, values) -> "MutableSparseVector":
        """Build from parallel key/value arrays (keys need not be sorted)."""
        return cls(keys, values)

    def __setitem__(self, key: int, value: float) -> None:
        i = self._index(int(key))
        if i < 0:
            raise KeyError(f"key {key} is not in the vector's key domain")
        self._values[i] = float(value)

    def add(self, scalar: float) -> "MutableSparseVector":
        self._values += float(scalar)
        return self

    def multiply(self, scalar: float) -> "MutableSparseVector":
        self._values *= float(scalar)
        return self

    def freeze(self) -> SparseVector:
        """Immutable copy of the current contents."""
        return SparseVector(self._keys, self._values, _sorted=True)
