"""
================================================================================
DAILY SENTIMENT AGGREGATION
================================================================================
Collapses headline-level polarity scores into one record per calendar day:

    Headlines by date -> per-headline score -> daily mean / variance / counts

Variance uses the sample (n - 1) divisor and is 0 for single-headline days.
Positive and negative counts are strict (> 0 and < 0); a headline scoring
exactly 0 is counted in neither.
================================================================================
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, asdict
from typing import Dict, List, Mapping, Optional, Sequence

from stocksentix.models.lexicon import LexiconSentiment
from stocksentix.utils import round_to


@dataclass(frozen=True)
class HeadlineRecord:
    """A single headline as delivered by a news source."""
    date:   str
    text:   str
    ticker: Optional[str] = None


@dataclass(frozen=True)
class DailySentiment:
    """Aggregated sentiment for one calendar day."""
    date:               str
    sentiment_mean:     float
    sentiment_variance: float
    headline_count:     int
    positive_count:     int
    negative_count:     int


class DailySentimentAggregator:
    """
    Turns a date -> headlines mapping into a sorted list of DailySentiment.

    Parameters
    ----------
    model : str
        Lexicon mode passed to LexiconSentiment ("VADER" or "FINBERT").
    decimals : int
        Rounding applied to daily mean and variance (default 4).
    """

    def __init__(self, model: str = "VADER", decimals: int = 4):
        self.scorer = LexiconSentiment(model)
        self.decimals = decimals

    def aggregate(
        self,
        headlines_by_date: Mapping[str, Sequence[str]],
    ) -> List[DailySentiment]:
        """
        Aggregate headlines per date, ascending by date.

        Dates with no headlines are skipped. Recomputing on identical input
        yields identical output.
        """
        daily = []
        for date, headlines in headlines_by_date.items():
            if not headlines:
                continue
            scores = self.scorer.score_batch(list(headlines))
            n = len(scores)
            mean = float(scores.mean())
            variance = float(scores.var(ddof=1)) if n > 1 else 0.0
            daily.append(DailySentiment(
                date=str(date),
                sentiment_mean=round_to(mean, self.decimals),
                sentiment_variance=round_to(variance, self.decimals),
                headline_count=n,
                positive_count=int(np.sum(scores > 0)),
                negative_count=int(np.sum(scores < 0)),
            ))
        return sorted(daily, key=lambda d: d.date)

    def aggregate_records(self, records: Sequence[HeadlineRecord]) -> List[DailySentiment]:
        """Group HeadlineRecord objects by date, then aggregate."""
        grouped: Dict[str, List[str]] = {}
        for rec in records:
            grouped.setdefault(rec.date, []).append(rec.text)
        return self.aggregate(grouped)

    @staticmethod
    def to_frame(daily: Sequence[DailySentiment]) -> pd.DataFrame:
        """DailySentiment list as a DataFrame (one row per date)."""
        columns = [
            "date", "sentiment_mean", "sentiment_variance",
            "headline_count", "positive_count", "negative_count",
        ]
        return pd.DataFrame([asdict(d) for d in daily], columns=columns)


def compute_daily_sentiment(
    headlines_by_date: Mapping[str, Sequence[str]],
    model: str = "VADER",
) -> List[DailySentiment]:
    """Functional shortcut for DailySentimentAggregator(model).aggregate()."""
    return DailySentimentAggregator(model).aggregate(headlines_by_date)
