"""
================================================================================
CSV-ML PREDICTION ENGINE
================================================================================
Next-day direction forecast for one ticker from the indicator dataset:

    FeatureStore rows -> date filter -> 70/10/20 chronological split
    -> logistic fit on train -> F1 threshold sweep on validation
    -> metrics on test -> P(up) for the ticker's latest row in range

The model is retrained on every request. Training sits behind the Trainer
protocol so a caching layer can be added without touching this module.
================================================================================
"""

import pandas as pd
from dataclasses import dataclass, field, asdict
from typing import Dict, Optional

from stocksentix.config import LogisticConfig
from stocksentix.evaluation import ClassificationMetrics, classification_metrics
from stocksentix.exceptions import (
    InsufficientDataError,
    InvalidRangeError,
    TickerNotFoundError,
    ValidationError,
)
from stocksentix.features import FeatureSchema, FeatureStore, filter_date_range
from stocksentix.models.logistic import (
    LogisticModel,
    LogisticTrainer,
    Trainer,
    chronological_split,
    threshold_grid,
    tune_threshold,
)
from stocksentix.utils import DateLike, get_logger, parse_date, round_to, timeit

log = get_logger(__name__)


@dataclass
class TrainingOutcome:
    """A fitted model with its tuned threshold and partition metrics."""
    model:      LogisticModel
    validation: ClassificationMetrics
    test:       ClassificationMetrics
    train_rows: int
    val_rows:   int
    test_rows:  int


def train_and_evaluate(
    rows: pd.DataFrame,
    schema: FeatureSchema,
    trainer: Trainer,
    config: LogisticConfig,
) -> TrainingOutcome:
    """
    Fit on the train partition, tune the threshold on validation and score
    the test partition. `rows` must already be in chronological order.
    """
    train, val, test = chronological_split(len(rows), config.train_fraction, config.val_fraction)
    X = schema.matrix(rows)
    y = schema.labels(rows)

    model = trainer.fit(X[train], y[train])
    val_probs = model.predict_proba(X[val])
    threshold, val_metrics = tune_threshold(y[val], val_probs, threshold_grid(*config.threshold_grid))
    model.threshold = threshold

    test_metrics = classification_metrics(y[test], model.predict_proba(X[test]), threshold)
    return TrainingOutcome(
        model=model,
        validation=val_metrics,
        test=test_metrics,
        train_rows=train.stop - train.start,
        val_rows=val.stop - val.start,
        test_rows=test.stop - test.start,
    )


@dataclass
class PredictionReport:
    """Structured output of a CSV-ML prediction."""
    ticker:                 str
    date_from:              str
    date_to:                str
    as_of:                  str
    sample_size:            int
    prediction_probability: float
    prediction_label:       str
    threshold:              float
    explanation:            str
    performance:            Dict = field(default_factory=dict)
    model:                  str = "CSV-ML"
    result_type:            str = "csv_prediction"

    @property
    def correlation(self) -> float:
        # Run history stores the probability in the correlation column.
        return self.prediction_probability

    def to_dict(self) -> Dict:
        out = asdict(self)
        out["correlation"] = self.correlation
        return out


class LogisticPredictionEngine:
    """
    Answers CSV-ML prediction requests.

    Parameters
    ----------
    feature_store : FeatureStore
        Cached reader of the indicator dataset.
    features_path : str
        Dataset location passed to the store on every request.
    trainer : Trainer, optional
        Defaults to LogisticTrainer(config).
    config : LogisticConfig, optional
    """

    def __init__(
        self,
        feature_store: FeatureStore,
        features_path: str,
        trainer: Optional[Trainer] = None,
        config: Optional[LogisticConfig] = None,
    ):
        self.store = feature_store
        self.features_path = features_path
        self.cfg = config or LogisticConfig()
        self.trainer = trainer or LogisticTrainer(self.cfg)

    @timeit
    def predict(self, ticker: str, date_from: DateLike, date_to: DateLike) -> PredictionReport:
        """
        Forecast the next move for `ticker` using rows dated in [from, to].

        Raises
        ------
        ValidationError       : empty ticker or unparseable date.
        InvalidRangeError     : date_from > date_to.
        InsufficientDataError : fewer than min_rows rows, or an empty split.
        TickerNotFoundError   : ticker has no row in range.
        """
        symbol = str(ticker or "").strip().upper()
        if not symbol:
            raise ValidationError("Ticker is required for CSV prediction mode.")
        try:
            start, end = parse_date(date_from), parse_date(date_to)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if start > end:
            raise InvalidRangeError("dateFrom must be earlier than dateTo")

        schema = self.store.schema
        rows = filter_date_range(self.store.load_rows(self.features_path), start, end)
        if len(rows) < self.cfg.min_rows:
            raise InsufficientDataError(
                "CSV range has too few rows. Expand date range for better prediction quality."
            )

        outcome = train_and_evaluate(rows, schema, self.trainer, self.cfg)

        ticker_rows = rows.loc[rows["ticker"] == symbol]
        if ticker_rows.empty:
            raise TickerNotFoundError(f"Ticker {symbol} was not found in CSV for selected date range.")
        latest = ticker_rows.iloc[[-1]]
        probability = float(outcome.model.predict_proba(schema.matrix(latest))[0])
        threshold = outcome.model.threshold
        label = "UP" if probability >= threshold else "DOWN"
        as_of = str(latest["date"].iloc[0])

        log.info("CSV-ML %s as of %s: P(up)=%.4f threshold=%.2f -> %s",
                 symbol, as_of, probability, threshold, label)

        return PredictionReport(
            ticker=symbol,
            date_from=start.isoformat(),
            date_to=end.isoformat(),
            as_of=as_of,
            sample_size=len(rows),
            prediction_probability=round_to(probability, 4),
            prediction_label=label,
            threshold=round_to(threshold, 2),
            explanation=(
                f"Predicted {label} for {symbol} on {as_of}. "
                f"Validation F1 {outcome.validation.f1:.2f}, "
                f"Test Accuracy {outcome.test.accuracy:.2f}."
            ),
            performance={
                "validation": outcome.validation.summary(),
                "test": outcome.test.summary(),
                "confusion": outcome.test.confusion(),
            },
        )


def latest_per_ticker(rows: pd.DataFrame) -> pd.DataFrame:
    """First row on each ticker's latest date, in first-seen ticker order."""
    newest = rows.groupby("ticker", sort=False)["date"].transform("max")
    return rows.loc[rows["date"] == newest].drop_duplicates("ticker", keep="first")


def score_latest(model: LogisticModel, rows: pd.DataFrame, schema: FeatureSchema,
                 top: int = 15):
    """Latest-row probability per ticker, highest first."""
    latest = latest_per_ticker(rows)
    if latest.empty:
        return []
    probs = model.predict_proba(schema.matrix(latest))
    ranked = [
        {
            "ticker": t,
            "date": d,
            "probability_up": round_to(p, 4),
            "prediction": int(p >= model.threshold),
        }
        for t, d, p in zip(latest["ticker"], latest["date"], probs)
    ]
    ranked.sort(key=lambda r: r["probability_up"], reverse=True)
    return ranked[:top]
