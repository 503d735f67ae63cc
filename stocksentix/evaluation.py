"""
================================================================================
MODEL EVALUATION METRICS
================================================================================
Classification and regression metrics shared by the logistic prediction
engine and the offline batch trainers.

Binary classification at threshold tau (prediction = 1 iff p >= tau):

    precision   = TP / (TP + FP)
    recall      = TP / (TP + FN)
    F1          = 2 * precision * recall / (precision + recall)
    specificity = TN / (TN + FP)
    balanced    = (recall + specificity) / 2

Every ratio uses a denominator of 1 when the natural one is 0, so degenerate
partitions report 0 rather than NaN.

Regression on the original price scale:

    MAE  = mean|y - y_hat|
    RMSE = sqrt(mean (y - y_hat)^2)
    MAPE = mean(|y - y_hat| / |y|) * 100       (|y| = 0 counts as 1)
================================================================================
"""

import numpy as np
from dataclasses import dataclass, asdict
from typing import Dict, Sequence


@dataclass(frozen=True)
class ClassificationMetrics:
    """Confusion counts and the ratios derived from them."""
    accuracy:          float
    precision:         float
    recall:            float
    f1:                float
    specificity:       float
    balanced_accuracy: float
    tp: int
    tn: int
    fp: int
    fn: int

    def summary(self, decimals: int = 4, extended: bool = False) -> Dict:
        """Rounded ratios; `extended` adds specificity and balanced accuracy."""
        out = {
            "accuracy": round(self.accuracy, decimals),
            "precision": round(self.precision, decimals),
            "recall": round(self.recall, decimals),
            "f1": round(self.f1, decimals),
        }
        if extended:
            out["specificity"] = round(self.specificity, decimals)
            out["balanced_accuracy"] = round(self.balanced_accuracy, decimals)
        return out

    def confusion(self) -> Dict[str, int]:
        return {"tp": self.tp, "tn": self.tn, "fp": self.fp, "fn": self.fn}

    def to_dict(self) -> Dict:
        return asdict(self)


def classification_metrics(
    y_true: Sequence[int],
    probabilities: Sequence[float],
    threshold: float = 0.5,
) -> ClassificationMetrics:
    """
    Confusion-matrix metrics for probabilistic binary predictions.

    Parameters
    ----------
    y_true : sequence of {0, 1}
    probabilities : sequence of float
        P(y = 1) for each row, aligned with y_true.
    threshold : float
        Rows with probability >= threshold are predicted positive.
    """
    y = np.asarray(y_true, dtype=int)
    pred = (np.asarray(probabilities, dtype=float) >= threshold).astype(int)

    tp = int(np.sum((pred == 1) & (y == 1)))
    tn = int(np.sum((pred == 0) & (y == 0)))
    fp = int(np.sum((pred == 1) & (y == 0)))
    fn = int(len(y) - tp - tn - fp)

    n = len(y) or 1
    accuracy = (tp + tn) / n
    precision = tp / ((tp + fp) or 1)
    recall = tp / ((tp + fn) or 1)
    f1 = (2 * precision * recall) / ((precision + recall) or 1)
    specificity = tn / ((tn + fp) or 1)

    return ClassificationMetrics(
        accuracy=accuracy,
        precision=precision,
        recall=recall,
        f1=f1,
        specificity=specificity,
        balanced_accuracy=(recall + specificity) / 2,
        tp=tp, tn=tn, fp=fp, fn=fn,
    )


def regression_metrics(y_true: Sequence[float], y_pred: Sequence[float]) -> Dict[str, float]:
    """MAE, RMSE and MAPE (percent); all 0 for empty input."""
    y = np.asarray(y_true, dtype=float)
    y_hat = np.asarray(y_pred, dtype=float)
    if y.size == 0:
        return {"mae": 0.0, "rmse": 0.0, "mape": 0.0}

    err = y - y_hat
    scale = np.where(np.abs(y) == 0, 1.0, np.abs(y))
    return {
        "mae": float(np.mean(np.abs(err))),
        "rmse": float(np.sqrt(np.mean(err ** 2))),
        "mape": float(np.mean(np.abs(err) / scale) * 100),
    }
