"""
conftest.py
-----------
Pytest configuration: keeps loggers off the filesystem and provides a
deterministic indicator-dataset writer shared by the prediction and batch
tests.
"""

import os
import sys

# Disable the daily log file before any stocksentix module builds a logger.
os.environ.setdefault("STOCKSENTIX_LOG_DIR", "")
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
import numpy as np
import pandas as pd
from datetime import date, timedelta

from stocksentix.features import DEFAULT_FEATURES


def build_indicator_frame(n_days: int, tickers=("AAA", "BBB", "CCC"),
                          start: date = date(2023, 1, 2), seed: int = 7) -> pd.DataFrame:
    """n_days x len(tickers) rows whose TARGET leans on RSIadjclose15."""
    rng = np.random.default_rng(seed)
    rows = []
    for i in range(n_days):
        day = (start + timedelta(days=i)).isoformat()
        for ticker in tickers:
            x = rng.normal(0.0, 1.0, len(DEFAULT_FEATURES))
            target = 1.0 if x[0] + rng.normal(0.0, 0.5) > 0 else -1.0
            row = {"date": day, "ticker": ticker, "TARGET": target}
            row.update({name: float(v) for name, v in zip(DEFAULT_FEATURES, x)})
            rows.append(row)
    return pd.DataFrame(rows)


@pytest.fixture
def indicator_csv(tmp_path):
    """Factory: write a synthetic indicator CSV and return its path."""
    def _write(n_days: int = 100, name: str = "data.csv", **kwargs) -> str:
        path = tmp_path / name
        build_indicator_frame(n_days, **kwargs).to_csv(path, index=False)
        return str(path)
    return _write
