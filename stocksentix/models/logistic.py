"""
================================================================================
CLASS-WEIGHTED LOGISTIC REGRESSION
================================================================================
Binary "next move is up" classifier over standardised technical indicators.

Model:
    p(x) = sigma(w . z + b),   z = (x - mu_train) / sd_train
    sigma(u) = 1 / (1 + e^-u), clamped to exactly 0 / 1 beyond |u| > 35

Loss (per row, class-weighted, L2 on weights only):
    err_i = (p_i - y_i) * c_i,   c_i = pos_weight if y_i = 1 else 1
    pos_weight = n_neg / max(n_pos, 1)

Solvers:
    "batch" : full-batch gradient descent, mean gradient per epoch
              w <- w - lr * (X^T err / n + l2 * w),  b <- b - lr * mean(err)
    "sgd"   : one update per training row in file order (the dashboard's
              historical behaviour)

Both run 18 epochs with lr_0 = 0.03 decayed by 0.93 after each epoch. The
decision threshold is chosen afterwards on a validation partition by an F1
sweep over a fixed grid.
================================================================================
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

from stocksentix.config import LogisticConfig
from stocksentix.evaluation import ClassificationMetrics, classification_metrics
from stocksentix.exceptions import InsufficientDataError
from stocksentix.utils import get_logger, timeit

log = get_logger(__name__)

SIGMOID_CLAMP = 35.0


def sigmoid(z):
    """Logistic function, exactly 0 below -35 and exactly 1 above 35."""
    z = np.asarray(z, dtype=float)
    out = 1.0 / (1.0 + np.exp(-np.clip(z, -SIGMOID_CLAMP, SIGMOID_CLAMP)))
    out = np.where(z > SIGMOID_CLAMP, 1.0, out)
    out = np.where(z < -SIGMOID_CLAMP, 0.0, out)
    return out if out.ndim else float(out)


def chronological_split(
    n: int,
    train_fraction: float = 0.70,
    val_fraction: float = 0.10,
) -> Tuple[slice, slice, slice]:
    """
    Index slices for a train / validation / test split of n ordered rows.

    Sizes are floor(train_fraction * n), floor(val_fraction * n) and the
    remainder, so they always add up to n.

    Raises
    ------
    InsufficientDataError if any partition would be empty.
    """
    train_end = int(np.floor(n * train_fraction))
    val_end = train_end + int(np.floor(n * val_fraction))
    if train_end <= 0 or val_end <= train_end or val_end >= n:
        raise InsufficientDataError("CSV dataset split failed. Use a wider date range.")
    return slice(0, train_end), slice(train_end, val_end), slice(val_end, n)


def standardize(X: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Column mean and population std; a zero std is replaced by 1."""
    mean = X.mean(axis=0)
    std = X.std(axis=0)
    std = np.where(std == 0, 1.0, std)
    return mean, std


def threshold_grid(start: float = 0.15, stop: float = 0.85, step: float = 0.01) -> np.ndarray:
    """Inclusive grid of thresholds rounded to 2 decimals."""
    count = int(round((stop - start) / step)) + 1
    return np.round(start + step * np.arange(count), 2)


def tune_threshold(
    y_true: Sequence[int],
    probabilities: Sequence[float],
    grid: Sequence[float],
) -> Tuple[float, ClassificationMetrics]:
    """
    Pick the grid threshold with the highest F1. Ties keep the lowest
    threshold since only a strictly better F1 replaces the incumbent.
    """
    best_threshold = float(grid[0])
    best = classification_metrics(y_true, probabilities, best_threshold)
    for threshold in grid[1:]:
        metrics = classification_metrics(y_true, probabilities, float(threshold))
        if metrics.f1 > best.f1:
            best_threshold, best = float(threshold), metrics
    return best_threshold, best


@dataclass
class LogisticModel:
    """Fitted parameters; `predict_proba` takes raw (unstandardised) rows."""
    weights:      np.ndarray
    bias:         float
    feature_mean: np.ndarray
    feature_std:  np.ndarray
    threshold:    float = 0.5

    def decision_function(self, X: np.ndarray) -> np.ndarray:
        Z = (np.atleast_2d(X) - self.feature_mean) / self.feature_std
        return Z @ self.weights + self.bias

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        return np.atleast_1d(sigmoid(self.decision_function(X)))

    def predict(self, X: np.ndarray) -> np.ndarray:
        return (self.predict_proba(X) >= self.threshold).astype(int)


class Trainer(Protocol):
    """Anything that fits a LogisticModel from raw features and 0/1 labels."""

    def fit(self, X: np.ndarray, y: np.ndarray) -> LogisticModel:
        ...


class LogisticTrainer:
    """
    Gradient-descent trainer for LogisticModel.

    Parameters
    ----------
    config : LogisticConfig, optional
        Epochs, learning-rate schedule, L2 strength and solver.
    """

    def __init__(self, config: Optional[LogisticConfig] = None):
        self.cfg = config or LogisticConfig()
        if self.cfg.solver not in ("batch", "sgd"):
            raise ValueError(f"Unknown solver: {self.cfg.solver}")

    @timeit
    def fit(self, X: np.ndarray, y: np.ndarray) -> LogisticModel:
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        mean, std = standardize(X)
        Z = (X - mean) / std

        positives = float(y.sum())
        negatives = len(y) - positives
        pos_weight = negatives / max(positives, 1.0)
        class_weight = np.where(y == 1, pos_weight, 1.0)

        if self.cfg.solver == "sgd":
            w, b = self._fit_sgd(Z, y, class_weight)
        else:
            w, b = self._fit_batch(Z, y, class_weight)

        log.debug("Logistic fit on %d rows (pos_weight=%.3f, solver=%s)",
                  len(y), pos_weight, self.cfg.solver)
        return LogisticModel(weights=w, bias=b, feature_mean=mean, feature_std=std)

    # ------------------------------------------------------------------
    # Solvers
    # ------------------------------------------------------------------

    def _fit_batch(self, Z, y, class_weight):
        n, d = Z.shape
        w = np.zeros(d)
        b = 0.0
        lr = self.cfg.learning_rate
        for _ in range(self.cfg.epochs):
            err = (sigmoid(Z @ w + b) - y) * class_weight
            w = w - lr * (Z.T @ err / n + self.cfg.l2 * w)
            b = b - lr * float(err.mean())
            lr *= self.cfg.lr_decay
        return w, b

    def _fit_sgd(self, Z, y, class_weight):
        w = np.zeros(Z.shape[1])
        b = 0.0
        lr = self.cfg.learning_rate
        for _ in range(self.cfg.epochs):
            for z_i, y_i, c_i in zip(Z, y, class_weight):
                err = (sigmoid(float(z_i @ w) + b) - y_i) * c_i
                w = w - lr * (err * z_i + self.cfg.l2 * w)
                b -= lr * err
            lr *= self.cfg.lr_decay
        return w, b
