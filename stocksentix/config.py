"""
config.py
---------
Centralised configuration for the StockSentix analytics core.
Data locations are read from environment variables with sensible defaults;
algorithm constants are plain dataclass defaults so every request retrains
with the same hyperparameters.
"""

import os
from dataclasses import dataclass, field
from typing import Tuple


@dataclass
class DataConfig:
    """Locations of the file-backed collaborators."""
    news_path:          str = os.getenv("STOCKSENTIX_NEWS_PATH",
                                        "data/fallback_news.json")
    ticker_news_path:   str = os.getenv("STOCKSENTIX_TICKER_NEWS_PATH", "")
    features_path:      str = os.getenv("STOCKSENTIX_FEATURES_PATH",
                                        "data/uploads/data.csv")
    runs_path:          str = os.getenv("STOCKSENTIX_RUNS_PATH",
                                        "storage/runs.json")
    archive_dir:        str = os.getenv("STOCKSENTIX_ARCHIVE_DIR",
                                        "data/archive")
    archive_output_dir: str = os.getenv("STOCKSENTIX_ARCHIVE_OUTPUT_DIR",
                                        "data/archive_predictions")


@dataclass
class CorrelationConfig:
    """Sentiment / next-day return correlation parameters."""
    rolling_window:     int   = 30      # samples per rolling correlation
    compound_window:    int   = 5       # samples per rolling compounded return
    significance_level: float = 0.05
    pvalue_method:      str   = os.getenv("STOCKSENTIX_PVALUE_METHOD", "normal")
    min_samples:        int   = 3


@dataclass
class LogisticConfig:
    """Class-weighted logistic regression used by CSV-ML mode."""
    epochs:            int   = 18
    learning_rate:     float = 0.03
    lr_decay:          float = 0.93
    l2:                float = 0.0008
    train_fraction:    float = 0.70
    val_fraction:      float = 0.10
    min_rows:          int   = 200      # request-time floor
    batch_min_rows:    int   = 100      # offline floor
    threshold_grid:    Tuple[float, float, float] = (0.15, 0.85, 0.01)
    solver:            str   = "batch"  # batch | sgd


@dataclass
class NaiveBayesConfig:
    """Headline naive-Bayes classifier."""
    vocab_limit:    int   = 6000
    min_token_len:  int   = 2
    train_fraction: float = 0.80


@dataclass
class LinearRegressionConfig:
    """Next-close linear regressor."""
    epochs:         int   = 2500
    learning_rate:  float = 0.03
    lr_decay:       float = 0.999
    l2:             float = 0.0005
    train_fraction: float = 0.80


@dataclass
class AppConfig:
    """Master configuration aggregating all sub-configs."""
    data:        DataConfig             = field(default_factory=DataConfig)
    correlation: CorrelationConfig      = field(default_factory=CorrelationConfig)
    logistic:    LogisticConfig         = field(default_factory=LogisticConfig)
    naive_bayes: NaiveBayesConfig       = field(default_factory=NaiveBayesConfig)
    linear:      LinearRegressionConfig = field(default_factory=LinearRegressionConfig)

    log_dir:     str = os.getenv("STOCKSENTIX_LOG_DIR", "outputs/logs")
    log_level:   str = os.getenv("LOG_LEVEL", "INFO")


# Singleton instance used by the CLI
CONFIG = AppConfig()
