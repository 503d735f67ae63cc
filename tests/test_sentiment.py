"""
================================================================================
UNIT TESTS -- HEADLINE SENTIMENT AND DAILY AGGREGATION
================================================================================
Tests cover:
    1. Lexicon scorer (tokenisation, negation, intensifiers, model modes)
    2. Daily sentiment aggregation (ordering, variance, counts)
================================================================================
"""

import math
import pytest
import pandas as pd

from stocksentix.aggregation import (
    DailySentimentAggregator,
    HeadlineRecord,
    compute_daily_sentiment,
)
from stocksentix.models.lexicon import LexiconSentiment, score_headline


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def sample_headlines():
    """Headlines with known lexicon hits."""
    return [
        "Tech stocks rally on strong growth",
        "Bank shares slump after earnings miss",
        "Analysts expect a flat session",
        "Markets not weak despite recession talk",
    ]


@pytest.fixture
def headlines_by_date():
    return {
        "2024-01-03": ["gain", "crash"],
        "2024-01-02": ["gain"],
        "2024-01-04": [],
        "2024-01-05": ["flat session", "rally"],
    }


# ============================================================================
# TEST: LEXICON SCORER
# ============================================================================

class TestLexiconScorer:
    """Rule-based polarity scoring."""

    @pytest.mark.parametrize("text", ["", "   ", "\t\n", "!!! ???"])
    def test_empty_or_blank_scores_zero(self, text):
        assert score_headline(text) == 0.0

    @pytest.mark.parametrize("value", [None, 42, 3.5, ["gain"]])
    def test_non_string_scores_zero(self, value):
        assert LexiconSentiment().score_text(value) == 0.0

    def test_negation_flips_and_dampens(self):
        # weight(gain) = 1.6 over two tokens
        expected = -0.7 * 1.6 / math.sqrt(2)
        assert score_headline("not gain") == pytest.approx(expected)

    def test_intensifier_amplifies(self):
        expected = 1.25 * 1.6 / math.sqrt(2)
        assert score_headline("very gain") == pytest.approx(expected)
        assert score_headline("very gain", "FINBERT") == pytest.approx(expected)

    def test_length_normalisation(self):
        assert score_headline("crash") == pytest.approx(-2.2)
        assert score_headline("crash today again now") == pytest.approx(-2.2 / 2)

    def test_punctuation_and_case_are_stripped(self):
        assert score_headline("GAIN!") == pytest.approx(1.6)
        assert score_headline("Re-rally") == pytest.approx(0.0)   # "rerally" is unknown

    def test_finance_overrides_generic_weight(self):
        assert score_headline("beat", "VADER") == pytest.approx(1.7)
        assert score_headline("beat", "FINBERT") == pytest.approx(1.6)

    def test_finance_only_terms(self):
        assert score_headline("bullish", "VADER") == 0.0
        assert score_headline("bullish", "finbert") == pytest.approx(2.1)

    def test_unknown_model_uses_generic_lexicon(self):
        scorer = LexiconSentiment("SOMETHING-ELSE")
        assert scorer.model_name == "VADER"
        assert scorer.score_text("bullish") == 0.0

    def test_polarity_direction(self, sample_headlines):
        scores = LexiconSentiment("FINBERT").score_batch(sample_headlines)
        assert scores[0] > 0
        assert scores[1] < 0
        assert scores[2] == 0.0

    def test_batch_matches_single(self, sample_headlines):
        scorer = LexiconSentiment()
        batch = scorer.score_batch(sample_headlines)
        assert len(batch) == len(sample_headlines)
        for text, score in zip(sample_headlines, batch):
            assert score == pytest.approx(scorer.score_text(text))

    def test_dataframe_scoring(self, sample_headlines):
        df = pd.DataFrame({"headline": sample_headlines + [None]})
        scored = LexiconSentiment().score_dataframe(df)
        assert "sentiment" in scored.columns
        assert "sentiment" not in df.columns
        assert scored["sentiment"].iloc[-1] == 0.0


# ============================================================================
# TEST: DAILY AGGREGATION
# ============================================================================

class TestDailyAggregation:
    """Per-day mean, sample variance and strict polarity counts."""

    def test_sorted_and_skips_empty_days(self, headlines_by_date):
        daily = compute_daily_sentiment(headlines_by_date)
        assert [d.date for d in daily] == ["2024-01-02", "2024-01-03", "2024-01-05"]

    def test_single_headline_has_zero_variance(self, headlines_by_date):
        first = compute_daily_sentiment(headlines_by_date)[0]
        assert first.sentiment_mean == pytest.approx(1.6)
        assert first.sentiment_variance == 0.0
        assert first.headline_count == 1

    def test_mean_and_sample_variance(self, headlines_by_date):
        day = compute_daily_sentiment(headlines_by_date)[1]
        # scores 1.6 and -2.2 -> mean -0.3, (1.9^2 + 1.9^2) / 1
        assert day.sentiment_mean == pytest.approx(-0.3)
        assert day.sentiment_variance == pytest.approx(7.22)
        assert day.positive_count == 1
        assert day.negative_count == 1

    def test_zero_scores_are_not_counted(self, headlines_by_date):
        day = compute_daily_sentiment(headlines_by_date)[2]
        assert day.headline_count == 2
        assert day.positive_count == 1
        assert day.negative_count == 0

    def test_values_rounded_to_four_decimals(self):
        day = compute_daily_sentiment({"2024-02-01": ["gain today", "gain"]})[0]
        assert day.sentiment_mean == round(day.sentiment_mean, 4)
        assert day.sentiment_variance == round(day.sentiment_variance, 4)

    def test_idempotent(self, headlines_by_date):
        agg = DailySentimentAggregator("FINBERT")
        assert agg.aggregate(headlines_by_date) == agg.aggregate(headlines_by_date)

    def test_aggregate_records_groups_by_date(self):
        records = [
            HeadlineRecord("2024-03-02", "rally", "AAPL"),
            HeadlineRecord("2024-03-01", "slump"),
            HeadlineRecord("2024-03-02", "gain"),
        ]
        daily = DailySentimentAggregator().aggregate_records(records)
        assert [d.date for d in daily] == ["2024-03-01", "2024-03-02"]
        assert daily[1].headline_count == 2

    def test_to_frame(self, headlines_by_date):
        frame = DailySentimentAggregator.to_frame(compute_daily_sentiment(headlines_by_date))
        assert list(frame.columns) == [
            "date", "sentiment_mean", "sentiment_variance",
            "headline_count", "positive_count", "negative_count",
        ]
        assert len(frame) == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
