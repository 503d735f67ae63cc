"""
================================================================================
UNIT TESTS -- STATISTICS LIBRARY
================================================================================
Pearson correlation, rolling diagnostics, t-test p-values and the model
evaluation metrics.
================================================================================
"""

import math
import pytest
import numpy as np
from scipy import stats as sps

from stocksentix.evaluation import classification_metrics, regression_metrics
from stocksentix.stats import (
    mean,
    normal_cdf,
    pearson_correlation,
    rolling_compound_return,
    rolling_correlation,
    t_statistic_and_p_value,
    variance,
)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


# ============================================================================
# TEST: DESCRIPTIVE STATISTICS
# ============================================================================

class TestDescriptive:

    def test_mean_empty(self):
        assert mean([]) == 0.0

    def test_variance_is_sample_variance(self):
        assert variance([1.0, 2.0, 3.0, 4.0]) == pytest.approx(np.var([1, 2, 3, 4], ddof=1))

    @pytest.mark.parametrize("values", [[], [5.0]])
    def test_variance_degenerate(self, values):
        assert variance(values) == 0.0


# ============================================================================
# TEST: PEARSON CORRELATION
# ============================================================================

class TestPearson:

    def test_symmetric(self, rng):
        x, y = rng.normal(size=50), rng.normal(size=50)
        assert pearson_correlation(x, y) == pytest.approx(pearson_correlation(y, x))

    def test_bounded(self, rng):
        for _ in range(20):
            x, y = rng.normal(size=15), rng.normal(size=15)
            r = pearson_correlation(x, y)
            assert -1.0 <= r <= 1.0

    def test_matches_numpy(self, rng):
        x = rng.normal(size=40)
        y = 0.3 * x + rng.normal(size=40)
        assert pearson_correlation(x, y) == pytest.approx(np.corrcoef(x, y)[0, 1])

    def test_perfect_linear(self):
        assert pearson_correlation([1, 2, 3, 4], [2, 4, 6, 8]) == pytest.approx(1.0)
        assert pearson_correlation([1, 2, 3, 4], [8, 6, 4, 2]) == pytest.approx(-1.0)

    def test_zero_variance_is_exactly_zero(self):
        assert pearson_correlation([1, 1, 1], [1, 2, 3]) == 0.0
        assert pearson_correlation([1, 2, 3], [7, 7, 7]) == 0.0

    @pytest.mark.parametrize("value", [0.1, 0.3, -0.2857, 1e-4, 0.7071])
    @pytest.mark.parametrize("n", [3, 6, 17, 39])
    def test_constant_float_series_is_exactly_zero(self, rng, value, n):
        returns = rng.normal(0.0, 0.02, n)
        assert pearson_correlation([value] * n, returns) == 0.0
        assert pearson_correlation(returns, [value] * n) == 0.0

    def test_degenerate_inputs(self):
        assert pearson_correlation([1, 2], [1, 2, 3]) == 0.0
        assert pearson_correlation([1], [2]) == 0.0
        assert pearson_correlation([], []) == 0.0


# ============================================================================
# TEST: ROLLING DIAGNOSTICS
# ============================================================================

class TestRolling:

    @pytest.fixture
    def points(self):
        return [
            {"date": "2024-01-01", "sentiment": 0.1, "next_day_return": 0.01},
            {"date": "2024-01-02", "sentiment": 0.4, "next_day_return": 0.02},
            {"date": "2024-01-03", "sentiment": -0.2, "next_day_return": -0.01},
            {"date": "2024-01-04", "sentiment": 0.0, "next_day_return": 0.005},
        ]

    def test_first_index_skipped(self, points):
        out = rolling_correlation(points, window=30)
        assert [p["date"] for p in out] == ["2024-01-02", "2024-01-03", "2024-01-04"]

    def test_full_window_matches_pearson(self, points):
        out = rolling_correlation(points, window=30)
        xs = [p["sentiment"] for p in points]
        ys = [p["next_day_return"] for p in points]
        assert out[-1]["value"] == round(pearson_correlation(xs, ys), 4)

    def test_two_point_window(self, points):
        out = rolling_correlation(points, window=2)
        assert all(abs(p["value"]) in (0.0, 1.0) for p in out)

    def test_compound_return(self):
        out = rolling_compound_return([0.1, 0.1, -0.5], window=2)
        assert out == pytest.approx([0.1, 0.21, 1.1 * 0.5 - 1])

    def test_compound_window_one_is_identity(self):
        returns = [0.01, -0.02, 0.03]
        assert rolling_compound_return(returns, window=1) == pytest.approx(returns)


# ============================================================================
# TEST: SIGNIFICANCE
# ============================================================================

class TestSignificance:

    def test_normal_cdf_centre_and_symmetry(self):
        assert normal_cdf(0.0) == pytest.approx(0.5, abs=1e-6)
        for x in (0.3, 1.0, 2.5):
            assert normal_cdf(x) + normal_cdf(-x) == pytest.approx(1.0, abs=1e-6)

    def test_normal_cdf_accuracy(self):
        for x in (-2.0, -0.5, 1.3, 3.1):
            assert normal_cdf(x) == pytest.approx(sps.norm.cdf(x), abs=1e-6)

    @pytest.mark.parametrize("r, n", [(0.5, 2), (0.9, 0), (1.0, 30), (-1.0, 30)])
    def test_undefined_cases(self, r, n):
        res = t_statistic_and_p_value(r, n)
        assert res.t_statistic == 0.0
        assert res.p_value == 1.0
        assert res.significant is False

    def test_t_statistic_formula(self):
        res = t_statistic_and_p_value(0.5, 30)
        expected_t = 0.5 * math.sqrt(28 / 0.75)
        assert res.t_statistic == pytest.approx(expected_t)
        assert res.p_value == pytest.approx(2 * sps.norm.sf(expected_t), abs=1e-6)
        assert res.significant

    def test_weak_correlation_not_significant(self):
        assert not t_statistic_and_p_value(0.1, 20).significant

    def test_student_t_is_more_conservative(self):
        normal = t_statistic_and_p_value(0.5, 10, method="normal")
        student = t_statistic_and_p_value(0.5, 10, method="student_t")
        assert student.p_value > normal.p_value
        assert student.method == "student_t"

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            t_statistic_and_p_value(0.3, 10, method="bootstrap")

    def test_to_dict_rounding(self):
        out = t_statistic_and_p_value(0.4321, 25).to_dict()
        assert set(out) == {
            "t_statistic", "p_value_approx", "is_statistically_meaningful",
            "significance_level", "method",
        }
        assert out["t_statistic"] == round(out["t_statistic"], 4)
        assert out["p_value_approx"] == round(out["p_value_approx"], 4)


# ============================================================================
# TEST: EVALUATION METRICS
# ============================================================================

class TestMetrics:

    def test_confusion_counts(self):
        m = classification_metrics([1, 1, 0, 0], [0.9, 0.4, 0.6, 0.1], 0.5)
        assert m.confusion() == {"tp": 1, "tn": 1, "fp": 1, "fn": 1}
        assert m.accuracy == pytest.approx(0.5)
        assert m.precision == pytest.approx(0.5)
        assert m.recall == pytest.approx(0.5)
        assert m.f1 == pytest.approx(0.5)
        assert m.specificity == pytest.approx(0.5)
        assert m.balanced_accuracy == pytest.approx(0.5)

    def test_threshold_is_inclusive(self):
        m = classification_metrics([1], [0.5], 0.5)
        assert m.tp == 1

    def test_empty_partition_reports_zero(self):
        m = classification_metrics([], [], 0.5)
        assert m.accuracy == 0.0
        assert m.f1 == 0.0

    def test_summary_extended(self):
        m = classification_metrics([1, 0, 1], [0.8, 0.3, 0.2], 0.5)
        assert set(m.summary()) == {"accuracy", "precision", "recall", "f1"}
        assert "balanced_accuracy" in m.summary(extended=True)

    def test_regression_metrics(self):
        out = regression_metrics([100.0, 0.0], [110.0, 1.0])
        assert out["mae"] == pytest.approx(5.5)
        assert out["rmse"] == pytest.approx(math.sqrt(50.5))
        assert out["mape"] == pytest.approx(55.0)

    def test_regression_metrics_empty(self):
        assert regression_metrics([], []) == {"mae": 0.0, "rmse": 0.0, "mape": 0.0}


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
