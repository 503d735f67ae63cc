"""
service.py
----------
Request entry point shared by the CLI and any web layer.

`AnalysisService.run` validates the request, routes model "CSV-ML" to the
prediction engine and every other model name to the correlation pipeline,
then records the run. Recording is best effort: a failing sink is logged and
never turns a successful analysis into an error.
"""

from datetime import date
from typing import Callable, Dict, Optional

from stocksentix.config import AppConfig
from stocksentix.correlation import CorrelationAnalyzer
from stocksentix.data_sources import (
    FallbackPriceSource,
    FileNewsSource,
    SyntheticPriceSource,
    YahooPriceSource,
)
from stocksentix.exceptions import ValidationError
from stocksentix.features import FeatureStore
from stocksentix.prediction import LogisticPredictionEngine
from stocksentix.run_store import JsonRunStore, ResultSink, RunRecord
from stocksentix.utils import DateLike, get_logger, to_iso

log = get_logger(__name__)

CSV_ML_MODEL = "CSV-ML"


class AnalysisService:
    """
    Dispatches analysis requests and persists a run record for each.

    Parameters
    ----------
    correlation : CorrelationAnalyzer
    prediction : LogisticPredictionEngine
    sink : ResultSink, optional
        Receives one RunRecord per successful run.
    today : callable, optional
        Date stamped on run records.
    """

    def __init__(
        self,
        correlation: CorrelationAnalyzer,
        prediction: LogisticPredictionEngine,
        sink: Optional[ResultSink] = None,
        today: Callable[[], date] = date.today,
    ):
        self.correlation = correlation
        self.prediction = prediction
        self.sink = sink
        self.today = today

    def run(
        self,
        ticker: str,
        model: str,
        date_from: DateLike,
        date_to: DateLike,
        requested_by: str = "anonymous",
    ) -> Dict:
        """Run one analysis and return its report as a dict."""
        if not ticker or not model or not date_from or not date_to:
            raise ValidationError("ticker, model, dateFrom, and dateTo are required")

        if model == CSV_ML_MODEL:
            report = self.prediction.predict(ticker, date_from, date_to)
            record = RunRecord(
                date=self.today().isoformat(),
                requested_by=requested_by,
                stock=ticker,
                correlation=report.correlation,
                model=model,
                date_from=to_iso(date_from),
                date_to=to_iso(date_to),
                sample_size=report.sample_size,
                run_type="csv_prediction",
                prediction_label=report.prediction_label,
                prediction_probability=report.prediction_probability,
            )
        else:
            report = self.correlation.run(ticker, model, date_from, date_to)
            record = RunRecord(
                date=self.today().isoformat(),
                requested_by=requested_by,
                stock=ticker,
                correlation=report.correlation,
                model=model,
                date_from=report.date_from,
                date_to=report.date_to,
                sample_size=report.sample_size,
                run_type="correlation",
            )

        self._persist(record)
        return report.to_dict()

    def _persist(self, record: RunRecord):
        if self.sink is None:
            return
        try:
            self.sink.save_run(record)
        except Exception:
            log.exception("Failed to save run for %s (%s)", record.stock, record.model)


def build_service(config: Optional[AppConfig] = None, offline: bool = False) -> AnalysisService:
    """
    Wire the file/Yahoo-backed collaborators from configuration.

    offline=True skips Yahoo and uses the synthetic price series directly.
    """
    cfg = config or AppConfig()
    news = FileNewsSource(cfg.data.news_path, cfg.data.ticker_news_path)
    prices = SyntheticPriceSource() if offline else FallbackPriceSource(YahooPriceSource())
    return AnalysisService(
        correlation=CorrelationAnalyzer(news, prices, cfg.correlation),
        prediction=LogisticPredictionEngine(FeatureStore(), cfg.data.features_path, config=cfg.logistic),
        sink=JsonRunStore(cfg.data.runs_path),
    )
