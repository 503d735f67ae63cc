"""
StockSentix Analytics Core
==========================
Headline sentiment, sentiment / next-day return correlation and lightweight
supervised forecasts for a stock-news dashboard.

Modules:
    models.lexicon            - Rule-based headline polarity (VADER / FINBERT modes)
    aggregation               - Per-day sentiment mean, variance and counts
    stats                     - Pearson, rolling correlation, t-test p-values
    correlation               - Sentiment vs next-day return pipeline
    features                  - Indicator dataset schema and mtime-keyed cache
    models.logistic           - Class-weighted logistic regression and trainer
    prediction                - CSV-ML next-move prediction engine
    models.naive_bayes        - Headline naive-Bayes direction classifier
    models.linear_regression  - Next-close linear regression
    batch                     - Offline CSV and archive prediction jobs
    data_sources              - News files, Finnhub collector, Yahoo prices
    run_store                 - JSON run history
    service                   - Request dispatcher (correlation vs CSV-ML)
"""

__version__ = "1.0.0"
