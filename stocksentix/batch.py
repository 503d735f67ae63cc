"""
================================================================================
OFFLINE BATCH PREDICTION JOBS
================================================================================
Two jobs that write static artefacts for the dashboard:

1. BatchCsvPredictor
   Streams the whole indicator dataset, trains the logistic model once with
   the same 70/10/20 protocol as request-time prediction and reports the
   highest-probability latest row per ticker.

2. ArchivePredictionJob
   Works on the Kaggle "Daily News for Stock Market Prediction" archive:
       Combined_News_DJIA.csv  -> naive Bayes on Top1..Top25 (80/20 split)
       RedditNews.csv          -> per-date text scored by a model fitted on
                                  every Combined_News_DJIA row
       upload_DJIA_table.csv   -> linear regression of the next close
   and writes three prediction CSVs plus prediction_summary.json.
================================================================================
"""

import os
import json
import numpy as np
import pandas as pd
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from stocksentix.config import LinearRegressionConfig, LogisticConfig, NaiveBayesConfig
from stocksentix.evaluation import classification_metrics, regression_metrics
from stocksentix.exceptions import DataSourceError, InsufficientDataError
from stocksentix.features import FeatureStore
from stocksentix.models.linear_regression import LinearRegressionTrainer, bar_features, build_samples
from stocksentix.models.logistic import LogisticTrainer, Trainer
from stocksentix.models.naive_bayes import NaiveBayesTextClassifier
from stocksentix.prediction import score_latest, train_and_evaluate
from stocksentix.utils import get_logger, round_to, timeit

log = get_logger(__name__)

COMBINED_FILE = "Combined_News_DJIA.csv"
REDDIT_FILE = "RedditNews.csv"
DJIA_FILE = "upload_DJIA_table.csv"

COMBINED_PREDICTIONS = "Combined_News_predictions.csv"
REDDIT_PREDICTIONS = "RedditNews_date_predictions.csv"
DJIA_PREDICTIONS = "DJIA_next_close_test_predictions.csv"
SUMMARY_FILE = "prediction_summary.json"


# ============================================================================
# CSV batch predictor
# ============================================================================

class BatchCsvPredictor:
    """
    Trains once on a full indicator file and ranks the latest row per ticker.

    Parameters
    ----------
    feature_store : FeatureStore, optional
        Supplies the schema and the chunked reader.
    config : LogisticConfig, optional
    trainer : Trainer, optional
    chunksize : int
        Rows per streamed chunk.
    """

    def __init__(
        self,
        feature_store: Optional[FeatureStore] = None,
        config: Optional[LogisticConfig] = None,
        trainer: Optional[Trainer] = None,
        chunksize: int = 50_000,
    ):
        self.store = feature_store or FeatureStore()
        self.cfg = config or LogisticConfig()
        self.trainer = trainer or LogisticTrainer(self.cfg)
        self.chunksize = chunksize

    @timeit
    def run(self, path: str, top: int = 15) -> Dict:
        schema = self.store.schema
        chunks = list(self.store.iter_chunks(path, self.chunksize))
        rows = pd.concat(chunks, ignore_index=True) if chunks else pd.DataFrame(columns=list(schema.columns))
        rows = schema.sort_by_date(rows)

        if len(rows) < self.cfg.batch_min_rows:
            raise InsufficientDataError(
                f"Not enough labeled rows in {path}. Need at least {self.cfg.batch_min_rows}."
            )

        outcome = train_and_evaluate(rows, schema, self.trainer, self.cfg)
        log.info("Batch CSV model: %d rows, threshold %.2f, test F1 %.4f",
                 len(rows), outcome.model.threshold, outcome.test.f1)

        test = outcome.test.summary(extended=True)
        test["confusion"] = outcome.test.confusion()
        return {
            "file_path": path,
            "total_rows": len(rows),
            "train_rows": outcome.train_rows,
            "val_rows": outcome.val_rows,
            "test_rows": outcome.test_rows,
            "selected_features": list(schema.features),
            "threshold": round_to(outcome.model.threshold, 2),
            "validation": outcome.validation.summary(extended=True),
            "test": test,
            "top_latest_predictions": score_latest(outcome.model, rows, schema, top=top),
        }


# ============================================================================
# Archive datasets
# ============================================================================

def _read_csv(path: str) -> pd.DataFrame:
    try:
        return pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except (OSError, ValueError) as exc:
        raise DataSourceError(f"Could not read {path}: {exc}") from exc


REQUIRED_COLUMNS = {
    COMBINED_FILE: ("Date", "Label"),
    REDDIT_FILE: ("Date", "News"),
    DJIA_FILE: ("Date", "Open", "High", "Low", "Close", "Volume", "Adj Close"),
}


def _require_columns(frame: pd.DataFrame, name: str) -> None:
    missing = [c for c in REQUIRED_COLUMNS[name] if c not in frame.columns]
    if missing:
        raise DataSourceError(f"{name} is missing required columns: {', '.join(missing)}")


def _numeric(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").replace([np.inf, -np.inf], np.nan).fillna(0.0)


def collect_combined_rows(raw: pd.DataFrame) -> pd.DataFrame:
    """One row per trading day: date, label (Label > 0) and joined Top1..Top25."""
    label = pd.to_numeric(raw.get("Label", pd.Series(np.nan, index=raw.index)), errors="coerce")
    top_columns = [f"Top{i}" for i in range(1, 26) if f"Top{i}" in raw.columns]
    texts = [
        " ".join(v for v in values if v)
        for values in raw[top_columns].itertuples(index=False, name=None)
    ] if top_columns else [""] * len(raw)

    out = pd.DataFrame({
        "date": raw.get("Date", pd.Series("", index=raw.index)).astype(str),
        "label": (label > 0).astype(int),
        "text": texts,
    }, index=raw.index)
    out = out.loc[np.isfinite(label.to_numpy(dtype=float))]
    return out.sort_values("date", kind="mergesort").reset_index(drop=True)


def aggregate_reddit(raw: pd.DataFrame) -> pd.DataFrame:
    """All Reddit headlines of a date joined into one document, by date."""
    if raw.empty:
        return pd.DataFrame(columns=["date", "text"])
    grouped = raw.groupby("Date", sort=True)["News"].agg(" ".join)
    return pd.DataFrame({"date": grouped.index.astype(str), "text": grouped.to_numpy()})


def djia_bars(raw: pd.DataFrame) -> pd.DataFrame:
    """Date-sorted numeric OHLCV bars from the DJIA table."""
    bars = pd.DataFrame({
        "date": raw["Date"].astype(str),
        "open": _numeric(raw["Open"]),
        "high": _numeric(raw["High"]),
        "low": _numeric(raw["Low"]),
        "close": _numeric(raw["Close"]),
        "volume": _numeric(raw["Volume"]),
        "adj_close": _numeric(raw["Adj Close"]),
    })
    return bars.sort_values("date", kind="mergesort").reset_index(drop=True)


class ArchivePredictionJob:
    """
    Generates the archive prediction files.

    Parameters
    ----------
    archive_dir : str
        Folder holding the three Kaggle CSV files.
    output_dir : str
        Destination folder (created if missing).
    now : callable, optional
        Returns the generation timestamp written to the summary.
    """

    def __init__(
        self,
        archive_dir: str,
        output_dir: str,
        nb_config: Optional[NaiveBayesConfig] = None,
        lr_config: Optional[LinearRegressionConfig] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.archive_dir = archive_dir
        self.output_dir = output_dir
        self.nb_cfg = nb_config or NaiveBayesConfig()
        self.lr_cfg = lr_config or LinearRegressionConfig()
        self.now = now

    def _path(self, name: str) -> str:
        return os.path.join(self.archive_dir, name)

    @timeit
    def run(self) -> Dict:
        missing = [n for n in (COMBINED_FILE, REDDIT_FILE, DJIA_FILE) if not os.path.exists(self._path(n))]
        if missing:
            raise DataSourceError(f"Expected CSV files in {self.archive_dir}: missing {', '.join(missing)}")
        os.makedirs(self.output_dir, exist_ok=True)

        combined_raw = _read_csv(self._path(COMBINED_FILE))
        reddit_raw = _read_csv(self._path(REDDIT_FILE))
        djia_raw = _read_csv(self._path(DJIA_FILE))
        _require_columns(combined_raw, COMBINED_FILE)
        _require_columns(reddit_raw, REDDIT_FILE)
        _require_columns(djia_raw, DJIA_FILE)

        combined = collect_combined_rows(combined_raw)
        combined_summary = self._predict_combined(combined)
        reddit_dates = self._predict_reddit(reddit_raw, combined)
        djia_summary = self._predict_djia(djia_raw)

        summary = {
            "sourceFolder": self.archive_dir,
            "outputFolder": self.output_dir,
            "generatedAt": self.now().isoformat(),
            "datasets": {
                "Combined_News_DJIA": combined_summary,
                "RedditNews": {
                    "rows": len(reddit_raw),
                    "aggregatedDates": reddit_dates,
                    "predictionsFile": REDDIT_PREDICTIONS,
                },
                "upload_DJIA_table": djia_summary,
            },
        }
        with open(os.path.join(self.output_dir, SUMMARY_FILE), "w", encoding="utf-8") as fh:
            json.dump(summary, fh, indent=2)
        log.info("Archive predictions written to %s", self.output_dir)
        return summary

    # ------------------------------------------------------------------
    # Per-dataset steps
    # ------------------------------------------------------------------

    def _predict_combined(self, combined: pd.DataFrame) -> Dict:
        cutoff = int(np.floor(len(combined) * self.nb_cfg.train_fraction))
        train, test = combined.iloc[:cutoff], combined.iloc[cutoff:]
        model = NaiveBayesTextClassifier(self.nb_cfg).fit(train["text"], train["label"])

        probs = [model.predict_proba(t) for t in combined["text"]]
        preds = [1 if p >= 0.5 else 0 for p in probs]
        pd.DataFrame({
            "Date": combined["date"],
            "ActualLabel": combined["label"],
            "ProbabilityUp": [round_to(p, 4) for p in probs],
            "PredictedLabel": preds,
            "Split": ["train" if i < cutoff else "test" for i in range(len(combined))],
        }).to_csv(os.path.join(self.output_dir, COMBINED_PREDICTIONS), index=False)

        metrics = classification_metrics(test["label"].to_numpy(), probs[cutoff:], 0.5)
        return {
            "rows": len(combined),
            "trainRows": len(train),
            "testRows": len(test),
            "metrics": {**metrics.summary(), "confusion": metrics.confusion()},
            "predictionsFile": COMBINED_PREDICTIONS,
        }

    def _predict_reddit(self, reddit_raw: pd.DataFrame, combined: pd.DataFrame) -> int:
        by_date = aggregate_reddit(reddit_raw)
        model = NaiveBayesTextClassifier(self.nb_cfg).fit(combined["text"], combined["label"])
        probs = [model.predict_proba(t) for t in by_date["text"]]
        pd.DataFrame({
            "Date": by_date["date"],
            "ProbabilityUp": [round_to(p, 4) for p in probs],
            "PredictedLabel": [1 if p >= 0.5 else 0 for p in probs],
        }).to_csv(os.path.join(self.output_dir, REDDIT_PREDICTIONS), index=False)
        return len(by_date)

    def _predict_djia(self, djia_raw: pd.DataFrame) -> Dict:
        bars = djia_bars(djia_raw)
        dates, X, y = build_samples(bars)
        cutoff = int(np.floor(len(y) * self.lr_cfg.train_fraction))
        if cutoff == 0:
            raise InsufficientDataError("DJIA table has too few rows to train the next-close model.")

        model = LinearRegressionTrainer(self.lr_cfg).fit(X[:cutoff], y[:cutoff])
        y_test = y[cutoff:]
        pred_test = model.predict(X[cutoff:]) if len(y_test) else np.array([])
        pd.DataFrame({
            "Date": dates[cutoff:],
            "ActualNextClose": np.round(y_test, 4),
            "PredictedNextClose": np.round(pred_test, 4),
            "AbsoluteError": np.round(np.abs(pred_test - y_test), 4),
        }).to_csv(os.path.join(self.output_dir, DJIA_PREDICTIONS), index=False)

        records = bars.to_dict("records")
        latest, prev = records[-1], records[-2]
        forecast = float(model.predict([bar_features(latest, prev)])[0])
        errors = regression_metrics(y_test, pred_test)
        return {
            "rows": len(djia_raw),
            "trainRows": cutoff,
            "testRows": len(y_test),
            "metrics": {k: round_to(v, 4) for k, v in errors.items()},
            "predictionsFile": DJIA_PREDICTIONS,
            "latestForecast": {
                "lastKnownDate": latest["date"],
                "predictedNextClose": round_to(forecast, 4),
            },
        }


def _csv_preview(path: str, limit: int) -> Dict:
    rows = pd.read_csv(path, dtype=str, keep_default_na=False)
    return {
        "file": os.path.basename(path),
        "total_rows": len(rows),
        "preview_rows": rows.head(limit).to_dict("records"),
    }


def load_archive_preview(output_dir: str, limit: int = 12) -> Dict:
    """
    Read back the archive job's outputs: the summary plus the first `limit`
    rows of each prediction CSV.

    Raises
    ------
    DataSourceError if any file is missing.
    """
    try:
        with open(os.path.join(output_dir, SUMMARY_FILE), "r", encoding="utf-8") as fh:
            summary = json.load(fh)
        previews = {
            "combined": _csv_preview(os.path.join(output_dir, COMBINED_PREDICTIONS), limit),
            "reddit": _csv_preview(os.path.join(output_dir, REDDIT_PREDICTIONS), limit),
            "djia": _csv_preview(os.path.join(output_dir, DJIA_PREDICTIONS), limit),
        }
    except FileNotFoundError as exc:
        raise DataSourceError(
            "Archive prediction files were not found. Run prediction generation first."
        ) from exc
    return {"summary": summary, "previews": previews}
