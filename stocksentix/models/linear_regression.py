"""
================================================================================
NEXT-CLOSE LINEAR REGRESSION
================================================================================
Ridge-penalised linear model of tomorrow's index close from today's bar.

Features for day t (prev = t - 1):
    open, high, low, close, volume, adj_close,
    close - open,
    (high - low) / close,
    (close - prev_close) / prev_close,
    log((volume + 1) / (prev_volume + 1))
Zero denominators in the ratio features are replaced by 1.

Target: close_{t+1}. Both X and y are z-scored with train statistics
(population std, 0 -> 1); predictions are mapped back to price scale.

Optimiser: full-batch gradient descent on the mean squared error,
    w <- w - lr * (X^T e / n + l2 * w),   b <- b - lr * mean(e)
2500 epochs, lr_0 = 0.03 decayed by 0.999 per epoch.
================================================================================
"""

import math
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import List, Optional, Tuple

from stocksentix.config import LinearRegressionConfig
from stocksentix.utils import get_logger, timeit

log = get_logger(__name__)

FEATURE_NAMES = (
    "open", "high", "low", "close", "volume", "adj_close",
    "close_minus_open", "range_over_close", "close_return", "log_volume_change",
)


def bar_features(cur, prev) -> List[float]:
    """Ten-feature vector for one bar given the previous one."""
    return [
        cur["open"],
        cur["high"],
        cur["low"],
        cur["close"],
        cur["volume"],
        cur["adj_close"],
        cur["close"] - cur["open"],
        (cur["high"] - cur["low"]) / (cur["close"] or 1),
        (cur["close"] - prev["close"]) / (prev["close"] or 1),
        math.log((cur["volume"] + 1) / (prev["volume"] + 1)),
    ]


def build_samples(bars: pd.DataFrame) -> Tuple[List[str], np.ndarray, np.ndarray]:
    """
    Supervised samples from date-sorted OHLCV bars.

    Day i contributes for 1 <= i <= len - 2 (needs a previous and a next
    bar). Returns (dates, X of shape (n, 10), y = next close).
    """
    records = bars.to_dict("records")
    dates, X, y = [], [], []
    for i in range(1, len(records) - 1):
        dates.append(str(records[i]["date"]))
        X.append(bar_features(records[i], records[i - 1]))
        y.append(records[i + 1]["close"])
    return dates, np.asarray(X, dtype=float).reshape(-1, len(FEATURE_NAMES)), np.asarray(y, dtype=float)


def _population_stats(values: np.ndarray, axis=0):
    mean = values.mean(axis=axis)
    std = values.std(axis=axis)
    return mean, np.where(std == 0, 1.0, std)


@dataclass
class LinearRegressionModel:
    weights:      np.ndarray
    bias:         float
    feature_mean: np.ndarray
    feature_std:  np.ndarray
    target_mean:  float
    target_std:   float

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Predictions on the original price scale."""
        Z = (np.atleast_2d(np.asarray(X, dtype=float)) - self.feature_mean) / self.feature_std
        return (Z @ self.weights + self.bias) * self.target_std + self.target_mean


class LinearRegressionTrainer:
    """
    Gradient-descent trainer for LinearRegressionModel.

    Parameters
    ----------
    config : LinearRegressionConfig, optional
    """

    def __init__(self, config: Optional[LinearRegressionConfig] = None):
        self.cfg = config or LinearRegressionConfig()

    @timeit
    def fit(self, X: np.ndarray, y: np.ndarray) -> LinearRegressionModel:
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        if len(y) == 0:
            raise ValueError("Cannot fit a regression on zero samples")

        mean, std = _population_stats(X)
        y_mean, y_std = _population_stats(y)
        Z = (X - mean) / std
        t = (y - y_mean) / y_std

        n, d = Z.shape
        w = np.zeros(d)
        b = 0.0
        lr = self.cfg.learning_rate
        for _ in range(self.cfg.epochs):
            err = Z @ w + b - t
            w = w - lr * (Z.T @ err / n + self.cfg.l2 * w)
            b = b - lr * float(err.mean())
            lr *= self.cfg.lr_decay

        log.debug("Linear regression fit on %d samples", n)
        return LinearRegressionModel(
            weights=w, bias=b,
            feature_mean=mean, feature_std=std,
            target_mean=float(y_mean), target_std=float(y_std),
        )
