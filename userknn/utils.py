from __future__ import annotations

import logging
import math
from typing import Iterable

import numpy as np


def setup_logging(level: int | str = "INFO") -> None:
    """Configure stdlib logging with a consistent, project-wide format."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        # Avoid duplicate handlers if called multiple times (e.g., tests + CLI).
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def as_id_array(ids: Iterable[int]) -> np.ndarray:
    """Sorted, duplicate-free int64 array of ids."""
    arr = np.fromiter((int(i) for i in ids), dtype=np.int64)
    return np.unique(arr)


def format_prediction(value: float) -> str:
    if value is None or math.isnan(float(value)):
        return "-"
    return f"{float(value):.4f}"
