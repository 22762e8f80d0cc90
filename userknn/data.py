from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .vectors import SparseVector


logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: Tuple[str, ...] = ("user", "item", "rating")


ColumnSelector = Union[str, int]

_FORMAT_DELIMITERS: Dict[str, str] = {
    "csv": ",",
    "tsv": "\t",
    "delimited": "\t",
}


def format_delimiter(fmt: str, delimiter: Optional[str] = None) -> str:
    """Delimiter for a file format (`csv`, `tsv`, `delimited`); `delimiter` wins if given."""
    key = str(fmt).strip().lower()
    if key not in _FORMAT_DELIMITERS:
        raise ValueError(f"unsupported ratings format {fmt!r}; expected one of {sorted(_FORMAT_DELIMITERS)}")
    return _FORMAT_DELIMITERS[key] if delimiter is None else str(delimiter)


def _column_position(df: pd.DataFrame, selector: ColumnSelector, *, has_header: bool, source: str) -> int:
    if isinstance(selector, bool):
        raise ValueError(f"{source}: invalid column selector {selector!r}")
    if isinstance(selector, int):
        pos = selector
    elif not has_header and str(selector).strip().isdigit():
        pos = int(str(selector).strip())
    elif has_header:
        if selector not in df.columns:
            raise ValueError(f"{source} missing columns: {[selector]}")
        return int(df.columns.get_loc(selector))
    else:
        raise ValueError(f"{source}: cannot select column {selector!r} by name without a file header")

    if not 0 <= pos < df.shape[1]:
        raise ValueError(f"{source}: column position {pos} out of range (file has {df.shape[1]} columns)")
    return pos


def load_ratings(
    path: Path,
    *,
    user_col: ColumnSelector = "userId",
    item_col: ColumnSelector = "movieId",
    rating_col: ColumnSelector = "rating",
    fmt: str = "csv",
    delimiter: Optional[str] = None,
    header: Union[bool, int] = True,
) -> pd.DataFrame:
    """Load a delimited ratings file into a canonical `user, item, rating` frame.

    Notes
    -----
    `header` is True (first line names the columns), False (no header) or the
    number of leading lines to skip. Without a header, columns are selected by
    position (ints, or digit strings such as "0"); with one, by name or
    position. Extra columns (e.g. timestamps) are dropped. Dtypes are set
    explicitly so ids stay int64 and ratings float64.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"ratings file not found: {path}")

    sep = format_delimiter(fmt, delimiter)
    if isinstance(header, bool):
        has_header = header
        df = pd.read_csv(path, sep=sep, header=0 if header else None)
    else:
        if int(header) < 0:
            raise ValueError(f"header line count must be >= 0, got {header}")
        has_header = False
        df = pd.read_csv(path, sep=sep, header=None, skiprows=int(header))
    logger.debug("%s: sep=%r header=%r columns=%d", path.name, sep, header, df.shape[1])

    positions = [
        _column_position(df, sel, has_header=has_header, source=path.name)
        for sel in (user_col, item_col, rating_col)
    ]
    df = df.iloc[:, positions].copy()
    df.columns = list(REQUIRED_COLUMNS)

    validate_ratings(df)
    df = df.astype({"user": "int64", "item": "int64", "rating": "float64"}).reset_index(drop=True)
    logger.info("Loaded %d ratings (%d users, %d items) from %s", len(df), df["user"].nunique(), df["item"].nunique(), path)
    return df


def validate_ratings(df: pd.DataFrame) -> None:
    """Validate that required columns exist and basic constraints hold."""
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"ratings frame missing columns: {missing}")

    if df[list(REQUIRED_COLUMNS)].isna().any().any():
        raise ValueError("ratings contain missing values")

    if not np.isfinite(df["rating"].astype("float64").to_numpy()).all():
        raise ValueError("ratings contain non-finite values")

    if df.duplicated(subset=["user", "item"]).any():
        raise ValueError("ratings contain duplicate (user, item) rows")


@dataclass(frozen=True)
class RatingSnapshot:
    """Immutable in-memory index of a ratings table.

    The vectors held here are never handed out for mutation; neighborhood
    finders copy them before giving them to a predictor.
    """

    user_vectors: Dict[int, SparseVector]
    item_users: Dict[int, np.ndarray]
    global_mean: float

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "RatingSnapshot":
        validate_ratings(df)
        df = df.astype({"user": "int64", "item": "int64", "rating": "float64"})

        user_vectors: Dict[int, SparseVector] = {}
        for uid, grp in df.groupby("user", sort=True):
            user_vectors[int(uid)] = SparseVector(grp["item"].to_numpy(), grp["rating"].to_numpy())

        item_users: Dict[int, np.ndarray] = {}
        for iid, grp in df.groupby("item", sort=True):
            users = np.sort(grp["user"].to_numpy(dtype=np.int64))
            users.setflags(write=False)
            item_users[int(iid)] = users

        global_mean = float(df["rating"].mean()) if len(df) else 0.0
        logger.info("RatingSnapshot: users=%d items=%d ratings=%d", len(user_vectors), len(item_users), len(df))
        return cls(user_vectors=user_vectors, item_users=item_users, global_mean=global_mean)

    @property
    def users(self) -> np.ndarray:
        return np.fromiter(self.user_vectors.keys(), dtype=np.int64, count=len(self.user_vectors))

    @property
    def items(self) -> np.ndarray:
        return np.fromiter(self.item_users.keys(), dtype=np.int64, count=len(self.item_users))

    def has_user(self, user_id: int) -> bool:
        return int(user_id) in self.user_vectors

    def user_ratings(self, user_id: int) -> SparseVector:
        """Ratings of `user_id`; an empty vector for unknown users."""
        vec = self.user_vectors.get(int(user_id))
        return vec if vec is not None else SparseVector.empty()

    def item_raters(self, item_id: int) -> np.ndarray:
        users = self.item_users.get(int(item_id))
        return users if users is not None else np.empty(0, dtype=np.int64)
