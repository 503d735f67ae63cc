"""
main.py
-------
Command-line entry point for the StockSentix analytics core.

Usage
-----
# Sentiment / next-day return correlation:
    python main.py correlate --ticker AAPL --model FINBERT --from 2024-01-02 --to 2024-03-28

# CSV-ML next-move prediction from the indicator dataset:
    python main.py predict --ticker AAPL --from 2020-01-01 --to 2024-12-31

# Offline jobs:
    python main.py csv-batch data/uploads/data.csv
    python main.py archive --archive-dir data/archive --output-dir data/archive_predictions

# Run history, news coverage and Finnhub download:
    python main.py runs --limit 10
    python main.py news-range
    FINNHUB_API_KEY=... python main.py fetch-news --symbols AAPL,MSFT --from 2025-01-01 --to 2025-01-31

Environment variables
---------------------
See stocksentix/config.py for the full list of supported env vars.
"""

import sys
import json
import argparse

from stocksentix.batch import ArchivePredictionJob, BatchCsvPredictor, load_archive_preview
from stocksentix.config import AppConfig
from stocksentix.data_sources import FileNewsSource, FinnhubNewsCollector
from stocksentix.exceptions import AnalysisError
from stocksentix.run_store import JsonRunStore
from stocksentix.service import CSV_ML_MODEL, build_service
from stocksentix.utils import get_logger, set_log_level

log = get_logger("main")


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


# =============================================================================
# Sub-commands
# =============================================================================

def cmd_correlate(args, cfg: AppConfig) -> None:
    service = build_service(cfg, offline=args.offline)
    _emit(service.run(args.ticker, args.model, args.date_from, args.date_to,
                      requested_by=args.user))


def cmd_predict(args, cfg: AppConfig) -> None:
    if args.features:
        cfg.data.features_path = args.features
    service = build_service(cfg)
    _emit(service.run(args.ticker, CSV_ML_MODEL, args.date_from, args.date_to,
                      requested_by=args.user))


def cmd_csv_batch(args, cfg: AppConfig) -> None:
    path = args.path or cfg.data.features_path
    _emit(BatchCsvPredictor(config=cfg.logistic).run(path, top=args.top))


def cmd_archive(args, cfg: AppConfig) -> None:
    output_dir = args.output_dir or cfg.data.archive_output_dir
    if args.preview:
        _emit(load_archive_preview(output_dir, limit=args.limit))
        return
    job = ArchivePredictionJob(
        archive_dir=args.archive_dir or cfg.data.archive_dir,
        output_dir=output_dir,
        nb_config=cfg.naive_bayes,
        lr_config=cfg.linear,
    )
    _emit(job.run())


def cmd_runs(args, cfg: AppConfig) -> None:
    store = JsonRunStore(cfg.data.runs_path)
    _emit(store.recent_runs(limit=args.limit, requested_by=args.user))


def cmd_news_range(args, cfg: AppConfig) -> None:
    source = FileNewsSource(cfg.data.news_path, cfg.data.ticker_news_path)
    _emit(source.news_date_range())


def cmd_fetch_news(args, cfg: AppConfig) -> None:
    symbols = [s.strip().upper() for s in args.symbols.split(",") if s.strip()]
    collector = FinnhubNewsCollector(api_key=args.api_key, delay=args.delay)
    frame, failures = collector.fetch(symbols, args.date_from, args.date_to)
    out = args.out or cfg.data.ticker_news_path or "data/ticker_news.csv"
    path = collector.write_csv(frame, out)
    log.info("Saved %d headlines to %s", len(frame), path)
    _emit({"rows": len(frame), "output": path, "failures": failures})


# =============================================================================
# Entry point
# =============================================================================

def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="StockSentix - news sentiment vs next-day returns",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--log-level", default=None,
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log verbosity")
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("correlate", help="Sentiment / next-day return correlation")
    c.add_argument("--ticker", required=True)
    c.add_argument("--model", default="VADER", choices=["VADER", "FINBERT"])
    c.add_argument("--from", dest="date_from", required=True, help="YYYY-MM-DD")
    c.add_argument("--to", dest="date_to", required=True, help="YYYY-MM-DD")
    c.add_argument("--user", default="cli")
    c.add_argument("--offline", action="store_true", help="Use synthetic prices, skip Yahoo")
    c.set_defaults(func=cmd_correlate)

    pr = sub.add_parser("predict", help="CSV-ML next-move prediction")
    pr.add_argument("--ticker", required=True)
    pr.add_argument("--from", dest="date_from", required=True)
    pr.add_argument("--to", dest="date_to", required=True)
    pr.add_argument("--features", default=None, help="Indicator CSV (overrides config)")
    pr.add_argument("--user", default="cli")
    pr.set_defaults(func=cmd_predict)

    b = sub.add_parser("csv-batch", help="Train once on a full indicator file")
    b.add_argument("path", nargs="?", default=None)
    b.add_argument("--top", type=int, default=15)
    b.set_defaults(func=cmd_csv_batch)

    a = sub.add_parser("archive", help="Archive dataset predictions")
    a.add_argument("--archive-dir", default=None)
    a.add_argument("--output-dir", default=None)
    a.add_argument("--preview", action="store_true", help="Read existing outputs instead")
    a.add_argument("--limit", type=int, default=12)
    a.set_defaults(func=cmd_archive)

    r = sub.add_parser("runs", help="Recent run history")
    r.add_argument("--limit", type=int, default=20)
    r.add_argument("--user", default=None)
    r.set_defaults(func=cmd_runs)

    n = sub.add_parser("news-range", help="Date coverage of the news dataset")
    n.set_defaults(func=cmd_news_range)

    f = sub.add_parser("fetch-news", help="Download ticker news from Finnhub")
    f.add_argument("--symbols", required=True, help="Comma-separated symbols")
    f.add_argument("--from", dest="date_from", required=True)
    f.add_argument("--to", dest="date_to", required=True)
    f.add_argument("--out", default=None)
    f.add_argument("--api-key", default=None)
    f.add_argument("--delay", type=float, default=0.35)
    f.set_defaults(func=cmd_fetch_news)

    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    cfg = AppConfig()
    if args.log_level:
        cfg.log_level = args.log_level
        set_log_level(args.log_level)

    try:
        args.func(args, cfg)
    except AnalysisError as exc:
        log.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
