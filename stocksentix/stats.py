"""
================================================================================
STATISTICS: CORRELATION AND SIGNIFICANCE
================================================================================
Small-sample statistics used by the correlation pipeline.

Pearson correlation between sentiment s and next-day return r:

    rho = sum((s_i - s_bar)(r_i - r_bar))
          / sqrt(sum((s_i - s_bar)^2) * sum((r_i - r_bar)^2))

Significance of a sample correlation rho over n points uses

    t = rho * sqrt((n - 2) / (1 - rho^2))

with a two-sided p-value. Two tail models are available:

    "normal"    : Zelen & Severo (1964) polynomial approximation to the
                  standard normal CDF, evaluated at |t|. Matches the
                  dashboard's historical output.
    "student_t" : exact Student's-t survival function with n - 2 degrees
                  of freedom (scipy.stats.t). Stricter for small n.

Reference:
    Abramowitz, M. & Stegun, I. (1964). Handbook of Mathematical Functions,
    formula 26.2.17.
================================================================================
"""

import math
import numpy as np
from dataclasses import dataclass
from scipy import stats as sps
from typing import Dict, List, Sequence

from stocksentix.utils import round_to


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def variance(values: Sequence[float]) -> float:
    """Sample variance (n - 1 divisor); 0 when n <= 1."""
    if len(values) <= 1:
        return 0.0
    return float(np.var(np.asarray(values, dtype=float), ddof=1))


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Pearson correlation coefficient.

    Returns 0 when the lengths differ, fewer than 2 points are given, or
    either series has zero variance.
    """
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    # A constant float series need not equal its computed mean exactly
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return 0.0
    dx = x - x.mean()
    dy = y - y.mean()
    denominator = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
    if denominator == 0:
        return 0.0
    rho = float(np.sum(dx * dy)) / denominator
    return max(-1.0, min(1.0, rho))


def rolling_correlation(
    points: Sequence[Dict],
    window: int = 30,
    x_key: str = "sentiment",
    y_key: str = "next_day_return",
    date_key: str = "date",
) -> List[Dict]:
    """
    Trailing-window correlation ending at each point.

    Parameters
    ----------
    points : sequence of dict
        Time-ordered samples carrying x_key, y_key and date_key.
    window : int
        Maximum number of trailing samples per correlation.

    Returns
    -------
    list of {"date", "value"}; indices whose trailing slice holds fewer than
    two samples are skipped rather than reported as 0.
    """
    out = []
    for i in range(len(points)):
        start = max(0, i - window + 1)
        chunk = points[start:i + 1]
        if len(chunk) < 2:
            continue
        xs = [p[x_key] for p in chunk]
        ys = [p[y_key] for p in chunk]
        out.append({
            "date": points[i][date_key],
            "value": round_to(pearson_correlation(xs, ys), 4),
        })
    return out


def normal_cdf(x: float) -> float:
    """Zelen-Severo polynomial approximation to the standard normal CDF."""
    t = 1.0 / (1.0 + 0.2316419 * abs(x))
    d = 0.3989423 * math.exp(-x * x / 2.0)
    prob = d * t * (
        0.3193815 + t * (-0.3565638 + t * (1.781478 + t * (-1.821256 + t * 1.330274)))
    )
    if x > 0:
        prob = 1.0 - prob
    return prob


@dataclass(frozen=True)
class SignificanceResult:
    """t-test of a sample correlation against zero."""
    t_statistic:        float
    p_value:            float
    significant:        bool
    significance_level: float = 0.05
    method:             str   = "normal"

    def to_dict(self) -> Dict:
        return {
            "t_statistic": round_to(self.t_statistic, 4),
            "p_value_approx": round_to(self.p_value, 4),
            "is_statistically_meaningful": self.significant,
            "significance_level": self.significance_level,
            "method": self.method,
        }


def t_statistic_and_p_value(
    correlation: float,
    n: int,
    method: str = "normal",
    significance_level: float = 0.05,
) -> SignificanceResult:
    """
    Two-sided significance of a sample correlation.

    Parameters
    ----------
    correlation : float
        Sample Pearson correlation.
    n : int
        Number of paired samples.
    method : str
        "normal" (polynomial normal tail) or "student_t" (exact t, n-2 dof).

    Returns
    -------
    SignificanceResult. For n < 3 or |correlation| >= 1 the statistic is
    undefined and the result is t = 0, p = 1, not significant.
    """
    if method not in ("normal", "student_t"):
        raise ValueError(f"Unknown p-value method: {method}")
    if n < 3 or abs(correlation) >= 1:
        return SignificanceResult(0.0, 1.0, False, significance_level, method)

    t_stat = correlation * math.sqrt((n - 2) / (1 - correlation ** 2))
    if method == "student_t":
        p_value = float(2.0 * sps.t.sf(abs(t_stat), df=n - 2))
    else:
        p_value = 2.0 * (1.0 - normal_cdf(abs(t_stat)))

    return SignificanceResult(
        t_statistic=t_stat,
        p_value=p_value,
        significant=p_value < significance_level,
        significance_level=significance_level,
        method=method,
    )


def rolling_compound_return(returns: Sequence[float], window: int = 5) -> List[float]:
    """Compounded return prod(1 + r) - 1 over the trailing <= window returns."""
    out = []
    for i in range(len(returns)):
        start = max(0, i - window + 1)
        out.append(float(np.prod([1.0 + r for r in returns[start:i + 1]])) - 1.0)
    return out
