from __future__ import annotations

import json
import math
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from userknn import cli
from userknn.config import AppConfig, PredictorConfig, build_predictor, load_config, parse_config
from userknn.data import RatingSnapshot, load_ratings, validate_ratings
from userknn.neighborhood import SimpleNeighborhoodFinder
from userknn.normalize import MeanVarianceNormalizer
from userknn.pipelines import evaluate
from userknn.similarity import PearsonCorrelation


def _write_movielens_csv(path: Path, n_users: int = 12, n_items: int = 8) -> Path:
    rows = []
    for u in range(1, n_users + 1):
        for i in range(1, n_items + 1):
            if (u + i) % 4 == 0:
                continue
            rating = 1.0 + float((u * 7 + i * 3) % 5)
            rows.append((u, 100 + i, rating, 1_000_000 + u * 10 + i))
    df = pd.DataFrame(rows, columns=["userId", "movieId", "rating", "timestamp"])
    df.to_csv(path, index=False)
    return path


def test_load_ratings_renames_and_types(tmp_path: Path) -> None:
    csv = _write_movielens_csv(tmp_path / "ratings.csv")
    df = load_ratings(csv)

    assert list(df.columns) == ["user", "item", "rating"]
    assert df["user"].dtype == np.int64
    assert df["rating"].dtype == np.float64


def test_load_ratings_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_ratings(tmp_path / "nope.csv")

    bad = tmp_path / "bad.csv"
    bad.write_text("userId,movieId\n1,2\n")
    with pytest.raises(ValueError, match="missing columns"):
        load_ratings(bad)

    dup = pd.DataFrame({"user": [1, 1], "item": [2, 2], "rating": [3.0, 4.0]})
    with pytest.raises(ValueError, match="duplicate"):
        validate_ratings(dup)


def test_snapshot_indexes(small_ratings: pd.DataFrame) -> None:
    snap = RatingSnapshot.from_frame(small_ratings)

    assert snap.users.tolist() == [1, 2, 3, 4]
    assert snap.items.tolist() == [10, 20, 30, 40, 50]
    assert snap.item_raters(40).tolist() == [2, 3]
    assert snap.item_raters(999).size == 0
    assert len(snap.user_ratings(999)) == 0
    assert snap.has_user(4) and not snap.has_user(5)
    assert snap.global_mean == pytest.approx(small_ratings["rating"].mean())


def test_parse_config_defaults_and_overrides() -> None:
    assert parse_config(None) == AppConfig()

    cfg = parse_config(
        {
            "predictor": {"similarity": "pearson", "min_similarity": None, "normalizer": "zscore"},
            "evaluation": {"max_users": 3},
        }
    )
    assert cfg.predictor.similarity == "pearson"
    assert cfg.predictor.min_similarity is None
    assert cfg.predictor.neighborhood_size == 30
    assert cfg.evaluation.max_users == 3

    with pytest.raises(ValueError):
        parse_config(["not", "a", "mapping"])
    with pytest.raises(ValueError):
        parse_config({"predictor": 5})


def test_load_config_missing_file_gives_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path / "config.yaml") == AppConfig()


def test_build_predictor_wires_strategies(small_ratings: pd.DataFrame) -> None:
    snap = RatingSnapshot.from_frame(small_ratings)
    pred = build_predictor(PredictorConfig(similarity="pearson", normalizer="zscore", neighborhood_size=5), snap)

    assert isinstance(pred.finder, SimpleNeighborhoodFinder)
    assert isinstance(pred.finder.similarity, PearsonCorrelation)
    assert pred.finder.neighborhood_size == 5
    assert isinstance(pred.normalizer, MeanVarianceNormalizer)
    assert pred.snapshot is snap


def test_evaluate_predictor_reports_metrics(tmp_path: Path) -> None:
    ratings = load_ratings(_write_movielens_csv(tmp_path / "ratings.csv"))
    result = evaluate.evaluate_predictor(ratings, AppConfig())

    assert result.n_train + result.n_test == len(ratings)
    assert 0 < result.n_predicted <= result.n_test
    assert 0.0 < result.coverage <= 1.0
    assert math.isfinite(result.rmse) and result.rmse >= result.mae >= 0.0


def test_evaluate_main_writes_metrics(tmp_path: Path) -> None:
    csv = _write_movielens_csv(tmp_path / "ratings.csv")
    config = tmp_path / "config.yaml"
    config.write_text("evaluation:\n  test_size: 0.25\n  random_state: 7\n  max_users: 5\n")
    out = tmp_path / "metrics" / "eval.json"

    result = evaluate.main(["--config", str(config), "--ratings", str(csv), "--out", str(out)])

    metrics = json.loads(out.read_text())
    assert metrics["n_users"] == result.n_users <= 5
    assert metrics["n_test"] == result.n_test


def test_cli_prints_predictions(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    csv = _write_movielens_csv(tmp_path / "ratings.csv")
    config = tmp_path / "config.yaml"
    config.write_text("predictor:\n  neighborhood_size: 5\n")

    cli.main(["--user-id", "1", "--config", str(config), "--ratings", str(csv), "--items", "103", "999"])
    out = capsys.readouterr().out

    assert "=== Predictions ===" in out
    assert "103" in out and "999" in out


def test_cli_unknown_user(tmp_path: Path) -> None:
    csv = _write_movielens_csv(tmp_path / "ratings.csv")
    with pytest.raises(KeyError):
        cli.main(["--user-id", "4242", "--config", str(tmp_path / "config.yaml"), "--ratings", str(csv)])


def _write_udata(path: Path, header_lines: list[str] | None = None) -> Path:
    lines = list(header_lines or [])
    lines += ["1\t10\t5\t881250949", "1\t20\t3\t881250950", "2\t10\t4\t881250951", "2\t30\t2\t881250952"]
    path.write_text("\n".join(lines) + "\n")
    return path


def test_load_headerless_tsv_by_position(tmp_path: Path) -> None:
    udata = _write_udata(tmp_path / "u.data")

    df = load_ratings(udata, user_col=0, item_col=1, rating_col=2, fmt="tsv", header=False)
    assert df.to_dict("list") == {"user": [1, 1, 2, 2], "item": [10, 20, 10, 30], "rating": [5.0, 3.0, 4.0, 2.0]}

    # digit strings also select by position when there is no header
    same = load_ratings(udata, user_col="0", item_col="1", rating_col="2", fmt="delimited", header=False)
    pd.testing.assert_frame_equal(df, same)


def test_load_skips_header_lines(tmp_path: Path) -> None:
    udata = _write_udata(tmp_path / "u.data", header_lines=["# exported ratings", "user\titem\trating\tts"])
    df = load_ratings(udata, user_col=0, item_col=1, rating_col=2, fmt="tsv", header=2)
    assert len(df) == 4
    assert df["rating"].tolist() == [5.0, 3.0, 4.0, 2.0]


def test_load_format_and_selector_errors(tmp_path: Path) -> None:
    udata = _write_udata(tmp_path / "u.data")
    with pytest.raises(ValueError, match="without a file header"):
        load_ratings(udata, user_col="userId", item_col=1, rating_col=2, fmt="tsv", header=False)
    with pytest.raises(ValueError, match="out of range"):
        load_ratings(udata, user_col=0, item_col=1, rating_col=9, fmt="tsv", header=False)
    with pytest.raises(ValueError, match="unsupported"):
        load_ratings(udata, fmt="parquet")


def test_headerless_dataset_config_drives_cli(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    udata = _write_udata(tmp_path / "u.data")
    config = tmp_path / "config.yaml"
    config.write_text(
        "dataset:\n"
        "  ratings_path: u.data\n"
        "  format: tsv\n"
        "  header: false\n"
        "  user_col: 0\n"
        "  item_col: 1\n"
        "  rating_col: 2\n"
    )
    cfg = load_config(config)
    assert cfg.dataset.header is False
    assert cfg.dataset.user_col == 0
    assert cfg.dataset.delimiter is None

    cli.main(["--user-id", "1", "--config", str(config), "--items", "30"])
    assert "30" in capsys.readouterr().out
    assert udata.exists()


def test_metrics_json_writes_null_for_undefined_errors() -> None:
    result = evaluate.EvaluationResult(
        n_train=3, n_test=2, n_users=1, n_predicted=0, coverage=0.0, rmse=float("nan"), mae=float("nan")
    )
    metrics = evaluate.metrics_to_json(result)
    assert metrics["rmse"] is None and metrics["mae"] is None
    assert json.loads(json.dumps(metrics, allow_nan=False))["n_test"] == 2
