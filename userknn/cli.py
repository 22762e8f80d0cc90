"""Predict ratings for one user from the command line.

Example:
    userknn-predict --user-id 1 --items 10 20 30
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

import pandas as pd

from .config import build_predictor, load_config, load_dataset_ratings
from .data import RatingSnapshot
from .paths import ProjectPaths, get_repo_root
from .utils import format_prediction, setup_logging


logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="User-user kNN rating prediction")
    p.add_argument("--user-id", type=int, required=True, help="Target user id (raw id from the ratings file)")
    p.add_argument("--items", type=int, nargs="*", default=None, help="Item ids to predict; default all predictable")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML")
    p.add_argument("--ratings", type=Path, default=None, help="Override dataset.ratings_path")
    p.add_argument("--top", type=int, default=None, help="Only show the N highest predictions")
    p.add_argument("--log-level", type=str, default="INFO")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    config_path = Path(args.config)
    if not config_path.is_absolute() and not config_path.exists():
        config_path = (get_repo_root() / config_path).resolve()
    cfg = load_config(config_path)

    repo_root = config_path.resolve().parent
    paths = ProjectPaths.from_repo_root(repo_root, ratings_path=args.ratings or cfg.dataset.ratings_path)
    ratings = load_dataset_ratings(cfg.dataset, paths.ratings_path)
    snapshot = RatingSnapshot.from_frame(ratings)

    user_id = int(args.user_id)
    if not snapshot.has_user(user_id):
        raise KeyError(f"Unknown user id: {user_id}")

    predictor = build_predictor(cfg.predictor, snapshot)
    preds = predictor.predict_for_user(user_id, args.items)
    logger.info("Predicted %d items for user=%d", len(preds), user_id)

    df = pd.DataFrame({"item": preds.keys(), "prediction": preds.values()})
    if args.top is not None:
        df = df.dropna(subset=["prediction"]).sort_values(["prediction", "item"], ascending=[False, True])
        df = df.head(int(args.top))

    print("\n=== Predictions ===")
    if df.empty:
        print("No predictions available.")
    else:
        print(df.to_string(index=False, formatters={"prediction": format_prediction}))


if __name__ == "__main__":
    main()
