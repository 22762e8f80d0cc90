"""Holdout evaluation of the user-user predictor.

Splits the rating rows into train/test, builds the predictor on the train
split and predicts every test user's held-out items. Reports RMSE and MAE over
the rows that received a prediction, plus coverage (share of test rows with a
prediction).
"""
from __future__ import annotations

import argparse
import json
import logging
import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from sklearn import model_selection

from ..config import AppConfig, build_predictor, load_config, load_dataset_ratings
from ..data import RatingSnapshot
from ..paths import ProjectPaths, get_repo_root
from ..utils import setup_logging


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationResult:
    n_train: int
    n_test: int
    n_users: int
    n_predicted: int
    coverage: float
    rmse: float
    mae: float


def evaluate_predictor(ratings: pd.DataFrame, cfg: AppConfig) -> EvaluationResult:
    """Run a single train/test split evaluation on a canonical ratings frame."""
    df_train, df_test = model_selection.train_test_split(
        ratings,
        test_size=float(cfg.evaluation.test_size),
        random_state=int(cfg.evaluation.random_state),
    )
    snapshot = RatingSnapshot.from_frame(df_train)
    predictor = build_predictor(cfg.predictor, snapshot)

    test_users = sorted(int(u) for u in df_test["user"].unique())
    if cfg.evaluation.max_users is not None:
        test_users = test_users[: int(cfg.evaluation.max_users)]
        df_test = df_test[df_test["user"].isin(test_users)]

    logger.info("Evaluating: train=%d test=%d users=%d", len(df_train), len(df_test), len(test_users))

    parts: list[pd.DataFrame] = []
    for uid, grp in df_test.groupby("user", sort=True):
        preds = predictor.predict_for_user(int(uid), grp["item"].to_numpy())
        parts.append(
            pd.DataFrame(
                {
                    "rating": grp["rating"].to_numpy(dtype=np.float64),
                    "prediction": [preds[int(i)] for i in grp["item"]],
                }
            )
        )

    scored = pd.concat(parts, ignore_index=True) if parts else pd.DataFrame(columns=["rating", "prediction"])
    hit = scored.dropna(subset=["prediction"])
    err = hit["prediction"].astype(float) - hit["rating"].astype(float)

    n_test = int(len(scored))
    n_pred = int(len(hit))
    result = EvaluationResult(
        n_train=int(len(df_train)),
        n_test=n_test,
        n_users=len(test_users),
        n_predicted=n_pred,
        coverage=(n_pred / n_test) if n_test else 0.0,
        rmse=float(np.sqrt(np.mean(err**2))) if n_pred else float("nan"),
        mae=float(np.mean(np.abs(err))) if n_pred else float("nan"),
    )
    logger.info(
        "Evaluation: rmse=%.4f mae=%.4f coverage=%.3f (%d/%d)",
        result.rmse,
        result.mae,
        result.coverage,
        n_pred,
        n_test,
    )
    return result


def metrics_to_json(result: EvaluationResult) -> dict[str, Any]:
    """Metrics as a JSON-safe dict; undefined errors (nothing predicted) become null."""
    out: dict[str, Any] = {}
    for key, value in asdict(result).items():
        out[key] = None if isinstance(value, float) and math.isnan(value) else value
    return out


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Holdout evaluation of the user-user kNN predictor.")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML.")
    p.add_argument("--ratings", type=Path, default=None, help="Override dataset.ratings_path")
    p.add_argument("--out", type=Path, default=None, help="Write metrics JSON here")
    return p


def main(argv: list[str] | None = None) -> EvaluationResult:
    setup_logging("INFO")
    args = build_arg_parser().parse_args(argv)

    config_path = Path(args.config)
    if not config_path.is_absolute() and not config_path.exists():
        config_path = (get_repo_root() / config_path).resolve()
    cfg = load_config(config_path)

    paths = ProjectPaths.from_repo_root(
        config_path.resolve().parent,
        ratings_path=args.ratings or cfg.dataset.ratings_path,
    )
    ratings = load_dataset_ratings(cfg.dataset, paths.ratings_path)
    result = evaluate_predictor(ratings, cfg)

    if args.out is not None:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(metrics_to_json(result), indent=2, sort_keys=True, allow_nan=False) + "\n")
        logger.info("Wrote metrics to %s", out_path)
    return result


if __name__ == "__main__":
    main()
