"""
================================================================================
SENTIMENT / NEXT-DAY RETURN CORRELATION
================================================================================
Aligns daily headline sentiment with the return realised over the following
trading session and reports how strongly the two move together.

Pipeline:
    Headlines [from, to] -> daily sentiment
    Closes [from, to + 1] -> r_t = (close_{t+1} - close_t) / close_t
    Inner join on date -> Pearson rho, t-test, rolling diagnostics

The extra price day is needed to realise the return attributed to date_to.
Returns are rounded to 5 decimals and closes to 3 before alignment, so the
statistics are computed on exactly the values the report shows.

Caveat: a correlation between same-day headlines and the next close is a
descriptive statistic. It says nothing about tradability once headline
timing, costs and regime changes are accounted for.
================================================================================
"""

from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence

from stocksentix.aggregation import DailySentiment, DailySentimentAggregator
from stocksentix.config import CorrelationConfig
from stocksentix.data_sources import NewsSource, PricePoint, PriceSource
from stocksentix.exceptions import (
    FutureDateError,
    InsufficientDataError,
    InvalidRangeError,
    ValidationError,
)
from stocksentix.stats import (
    pearson_correlation,
    rolling_compound_return,
    rolling_correlation,
    t_statistic_and_p_value,
)
from stocksentix.utils import DateLike, add_days, get_logger, parse_date, round_to, timeit

log = get_logger(__name__)


EDUCATIONAL_WARNINGS = (
    "Look-ahead bias can inflate results if same-day news timing is not controlled.",
    "Headline sentiment is noisy and can include contradictory narratives.",
    "Macro events, sector rotation, and liquidity can confound correlations.",
    "Short-horizon markets are partly random, so correlations can drift quickly.",
)


@dataclass(frozen=True)
class AlignedSample:
    """One date with both a sentiment reading and a realised next-day return."""
    date:            str
    sentiment:       float
    next_day_return: float
    close:           float
    variance:        float
    headline_count:  int
    positive_count:  int
    negative_count:  int


@dataclass
class CorrelationReport:
    """Structured output of a correlation run."""
    ticker:              str
    model:               str
    date_from:           str
    date_to:             str
    sample_size:         int
    correlation:         float
    explanation:         str
    stats:               Dict
    educational_report:  Dict
    daily_sentiment_rows: List[Dict] = field(default_factory=list)
    stock_return_rows:   List[Dict] = field(default_factory=list)
    sentiment_features:  List[Dict] = field(default_factory=list)
    scatter_data:        List[Dict] = field(default_factory=list)
    rolling_correlation: List[Dict] = field(default_factory=list)
    synthetic_prices:    bool = False
    result_type:         str = "correlation"

    def to_dict(self) -> Dict:
        return asdict(self)


def strength_label(correlation: float) -> str:
    """weak (|r| < 0.2), moderate (< 0.5) or strong."""
    magnitude = abs(correlation)
    if magnitude < 0.2:
        return "weak"
    if magnitude < 0.5:
        return "moderate"
    return "strong"


def explain_correlation(correlation: float) -> str:
    label = strength_label(correlation)
    if label == "weak":
        return "Weak relationship: sentiment alone explains little movement in next-day returns."
    if label == "moderate":
        return "Moderate relationship: sentiment has signal, but macro and sector effects remain important."
    return "Strong relationship: sentiment currently aligns meaningfully with next-day return direction."


def build_returns_by_date(prices: Sequence[PricePoint]) -> Dict[str, float]:
    """Next-day simple return keyed by the date it is attributed to (5 dp)."""
    out = {}
    for current, nxt in zip(prices[:-1], prices[1:]):
        if not current.close or not nxt.close:
            continue
        out[current.date] = round_to((nxt.close - current.close) / current.close, 5)
    return out


def build_close_by_date(prices: Sequence[PricePoint]) -> Dict[str, float]:
    """Same-day close (3 dp) for every date that has a following price row."""
    return {p.date: round_to(p.close, 3) for p in prices[:-1] if p.close}


def align_samples(
    daily: Sequence[DailySentiment],
    prices: Sequence[PricePoint],
) -> List[AlignedSample]:
    """Inner join of daily sentiment with next-day returns and closes."""
    returns = build_returns_by_date(prices)
    closes = build_close_by_date(prices)
    aligned = []
    for day in daily:
        if day.date not in returns or day.date not in closes:
            continue
        aligned.append(AlignedSample(
            date=day.date,
            sentiment=day.sentiment_mean,
            next_day_return=returns[day.date],
            close=closes[day.date],
            variance=day.sentiment_variance,
            headline_count=day.headline_count,
            positive_count=day.positive_count,
            negative_count=day.negative_count,
        ))
    return aligned


class CorrelationAnalyzer:
    """
    Runs the sentiment / next-day return correlation for one ticker.

    Parameters
    ----------
    news_source : NewsSource
        Provides {date: [headlines]} for a date range.
    price_source : PriceSource
        Provides ascending daily closes.
    config : CorrelationConfig, optional
        Window sizes, significance level and p-value method.
    today : callable, optional
        Returns the current date; injected so future-date checks are
        testable.
    """

    def __init__(
        self,
        news_source: NewsSource,
        price_source: PriceSource,
        config: Optional[CorrelationConfig] = None,
        today: Callable[[], date] = date.today,
    ):
        self.news_source = news_source
        self.price_source = price_source
        self.cfg = config or CorrelationConfig()
        self.today = today

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate_range(self, date_from: DateLike, date_to: DateLike):
        """Reject future or inverted ranges before touching any source."""
        try:
            start, end = parse_date(date_from), parse_date(date_to)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        today = self.today()
        if start > today or end > today:
            raise FutureDateError(
                f"Future dates are not allowed. Please choose a date on or before {today.isoformat()}."
            )
        if start > end:
            raise InvalidRangeError("dateFrom must be earlier than dateTo")
        return start, end

    @timeit
    def run(
        self,
        ticker: str,
        model: str,
        date_from: DateLike,
        date_to: DateLike,
    ) -> CorrelationReport:
        """
        Correlate daily sentiment with next-day returns.

        Raises
        ------
        FutureDateError, InvalidRangeError, InsufficientDataError,
        DataSourceError (from the news source).
        """
        start, end = self.validate_range(date_from, date_to)

        headlines = self.news_source.fetch_headlines(start, end, ticker)
        prices = self.price_source.fetch_prices(ticker, start, add_days(end, 1))
        synthetic = any(p.synthetic for p in prices)
        if synthetic:
            log.warning("Correlation for %s uses synthetic prices; treat the result as illustrative", ticker)

        daily = DailySentimentAggregator(model).aggregate(headlines)
        aligned = align_samples(daily, prices)

        if len(aligned) < self.cfg.min_samples:
            raise InsufficientDataError(
                "Insufficient aligned news/price data. Expand the date range or provide richer input data."
            )

        report = self.build_report(ticker, model, start.isoformat(), end.isoformat(), aligned)
        report.synthetic_prices = synthetic
        log.info("Correlation %s %s..%s: r=%.4f over %d samples",
                 ticker, report.date_from, report.date_to, report.correlation, report.sample_size)
        return report

    # ------------------------------------------------------------------
    # Report assembly
    # ------------------------------------------------------------------

    def build_report(
        self,
        ticker: str,
        model: str,
        date_from: str,
        date_to: str,
        aligned: Sequence[AlignedSample],
    ) -> CorrelationReport:
        sentiments = [s.sentiment for s in aligned]
        returns = [s.next_day_return for s in aligned]

        correlation = round_to(pearson_correlation(sentiments, returns), 4)
        compounded = rolling_compound_return(returns, self.cfg.compound_window)
        significance = t_statistic_and_p_value(
            correlation, len(aligned),
            method=self.cfg.pvalue_method,
            significance_level=self.cfg.significance_level,
        )
        stats = significance.to_dict()
        label = strength_label(correlation)

        if significance.significant:
            meaning = (f"Approx. p-value {stats['p_value_approx']} is below {self.cfg.significance_level}, "
                       "so this relationship is statistically meaningful for the selected sample.")
        else:
            meaning = (f"Approx. p-value {stats['p_value_approx']} is above {self.cfg.significance_level}, "
                       "so the relationship is not statistically meaningful for the selected sample.")

        points = [{"date": s.date, "sentiment": s.sentiment, "next_day_return": s.next_day_return}
                  for s in aligned]

        return CorrelationReport(
            ticker=ticker,
            model=model,
            date_from=date_from,
            date_to=date_to,
            sample_size=len(aligned),
            correlation=correlation,
            explanation=explain_correlation(correlation),
            stats=stats,
            educational_report={
                "strength": label,
                "relationship_summary": f"{label.capitalize()} relationship detected between "
                                        "sentiment and next-day returns.",
                "statistical_meaning": meaning,
                "warnings": list(EDUCATIONAL_WARNINGS),
            },
            daily_sentiment_rows=[
                {
                    "date": s.date,
                    "sentiment_score": round_to(s.sentiment, 4),
                    "positive_headlines": s.positive_count,
                    "negative_headlines": s.negative_count,
                    "total_headlines": s.headline_count,
                    "tone": "Positive" if s.sentiment > 0 else "Negative" if s.sentiment < 0 else "Neutral",
                }
                for s in aligned
            ],
            stock_return_rows=[
                {
                    "date": s.date,
                    "close": s.close,
                    "next_day_return_pct": round_to(s.next_day_return * 100, 3),
                    "rolling_return_pct": round_to(compounded[i] * 100, 3),
                }
                for i, s in enumerate(aligned)
            ],
            sentiment_features=[
                {
                    "date": s.date,
                    "sentiment_mean": s.sentiment,
                    "sentiment_variance": s.variance,
                    "headline_count": s.headline_count,
                    "next_day_return": s.next_day_return,
                }
                for s in aligned
            ],
            scatter_data=[
                {
                    "date": s.date,
                    "sentiment": round_to(s.sentiment, 4),
                    "return_pct": round_to(s.next_day_return * 100, 3),
                }
                for s in aligned
            ],
            rolling_correlation=rolling_correlation(points, window=self.cfg.rolling_window),
        )
