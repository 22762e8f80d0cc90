from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest

# Ensure `import userknn...` works when pytest uses importlib import mode.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture()
def small_ratings() -> pd.DataFrame:
    """Four users; user 4 shares no items with user 1."""
    rows = [
        (1, 10, 5.0), (1, 20, 3.0), (1, 30, 4.0),
        (2, 10, 4.0), (2, 20, 2.0), (2, 40, 5.0),
        (3, 10, 1.0), (3, 30, 5.0), (3, 40, 2.0),
        (4, 50, 3.0),
    ]
    return pd.DataFrame(rows, columns=["user", "item", "rating"])
