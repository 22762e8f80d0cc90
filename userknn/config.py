"""`config.yaml` parsing and explicit predictor wiring."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd
import yaml

from .data import ColumnSelector, RatingSnapshot, load_ratings
from .neighborhood import SimpleNeighborhoodFinder
from .normalize import make_normalizer
from .predictor import UserUserRatingPredictor
from .similarity import make_similarity


@dataclass(frozen=True)
class DatasetConfig:
    ratings_path: str = "data/raw/ratings.csv"
    user_col: ColumnSelector = "userId"
    item_col: ColumnSelector = "movieId"
    rating_col: ColumnSelector = "rating"
    # csv | tsv | delimited (tab); `delimiter` overrides the format default.
    format: str = "csv"
    delimiter: Optional[str] = None
    # True, False, or a number of header lines to skip.
    header: Union[bool, int] = True


@dataclass(frozen=True)
class PredictorConfig:
    neighborhood_size: int = 30
    # None disables the threshold (negative similarities then vote too).
    min_similarity: Optional[float] = 0.0
    similarity: str = "cosine"
    damping: float = 0.0
    normalizer: str = "mean"
    normalizer_damping: float = 0.0


@dataclass(frozen=True)
class EvaluationConfig:
    test_size: float = 0.2
    random_state: int = 42
    max_users: Optional[int] = None


@dataclass(frozen=True)
class AppConfig:
    dataset: DatasetConfig = field(default_factory=DatasetConfig)
    predictor: PredictorConfig = field(default_factory=PredictorConfig)
    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    sec = raw.get(name, {})
    if sec is None:
        return {}
    if not isinstance(sec, dict):
        raise ValueError(f"config section {name!r} must be a mapping")
    return sec


def _opt_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _opt_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def _column(value: Any) -> ColumnSelector:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return str(value)


def _header(value: Any) -> Union[bool, int]:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    raise ValueError(f"dataset.header must be true, false or a line count, got {value!r}")


def parse_config(raw: Any) -> AppConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("config.yaml must be a mapping")

    ds = _section(raw, "dataset")
    pr = _section(raw, "predictor")
    ev = _section(raw, "evaluation")
    d_ds, d_pr, d_ev = DatasetConfig(), PredictorConfig(), EvaluationConfig()

    return AppConfig(
        dataset=DatasetConfig(
            ratings_path=str(ds.get("ratings_path", d_ds.ratings_path)),
            user_col=_column(ds.get("user_col", d_ds.user_col)),
            item_col=_column(ds.get("item_col", d_ds.item_col)),
            rating_col=_column(ds.get("rating_col", d_ds.rating_col)),
            format=str(ds.get("format", d_ds.format)),
            delimiter=None if ds.get("delimiter") is None else str(ds["delimiter"]),
            header=_header(ds.get("header", d_ds.header)),
        ),
        predictor=PredictorConfig(
            neighborhood_size=int(pr.get("neighborhood_size", d_pr.neighborhood_size)),
            min_similarity=_opt_float(pr.get("min_similarity", d_pr.min_similarity)),
            similarity=str(pr.get("similarity", d_pr.similarity)),
            damping=float(pr.get("damping", d_pr.damping)),
            normalizer=str(pr.get("normalizer", d_pr.normalizer)),
            normalizer_damping=float(pr.get("normalizer_damping", d_pr.normalizer_damping)),
        ),
        evaluation=EvaluationConfig(
            test_size=float(ev.get("test_size", d_ev.test_size)),
            random_state=int(ev.get("random_state", d_ev.random_state)),
            max_users=_opt_int(ev.get("max_users", d_ev.max_users)),
        ),
    )


def load_config(path: Path) -> AppConfig:
    """Read `config.yaml`; a missing file yields the defaults."""
    path = Path(path)
    if not path.exists():
        return AppConfig()
    return parse_config(yaml.safe_load(path.read_text()))


def build_predictor(cfg: PredictorConfig, snapshot: RatingSnapshot) -> UserUserRatingPredictor:
    """Wire finder + normalizer for `snapshot` according to `cfg`."""
    similarity = make_similarity(cfg.similarity, damping=cfg.damping)
    finder = SimpleNeighborhoodFinder(
        snapshot,
        similarity,
        neighborhood_size=cfg.neighborhood_size,
        min_similarity=cfg.min_similarity,
    )

    norm_kwargs: dict[str, Any] = {}
    if cfg.normalizer.strip().lower() == "mean":
        norm_kwargs = {"damping": cfg.normalizer_damping, "global_mean": snapshot.global_mean}
    elif cfg.normalizer.strip().lower() == "zscore":
        norm_kwargs = {"damping": cfg.normalizer_damping}
    normalizer = make_normalizer(cfg.normalizer, **norm_kwargs)

    return UserUserRatingPredictor(finder, normalizer, snapshot=snapshot)


def load_dataset_ratings(cfg: DatasetConfig, path: Path) -> pd.DataFrame:
    """Load the ratings file at `path` with the column/format settings of `cfg`."""
    return load_ratings(
        path,
        user_col=cfg.user_col,
        item_col=cfg.item_col,
        rating_col=cfg.rating_col,
        fmt=cfg.format,
        delimiter=cfg.delimiter,
        header=cfg.header,
    )
