"""
utils.py
--------
Logging, timing decorators, and shared date/rounding helpers.
"""

import os
import logging
import time
import functools
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Union


def get_logger(name: str,
               log_dir: str = os.getenv("STOCKSENTIX_LOG_DIR", "outputs/logs"),
               level: str = os.getenv("LOG_LEVEL", "INFO")) -> logging.Logger:
    """
    Return a named logger writing to stderr and a daily log file.

    Parameters
    ----------
    name    : Logger name (typically the module __name__).
    log_dir : Directory for log files. Empty string disables the file handler.
    level   : Logging level string ("DEBUG", "INFO", "WARNING", "ERROR").

    Returns
    -------
    logging.Logger
    """
    logger = logging.getLogger(name)

    if logger.handlers:          # avoid duplicate handlers on re-import
        return logger

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Console handler
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    # File handler
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_file = os.path.join(
            log_dir, f"stocksentix_{datetime.now().strftime('%Y%m%d')}.log"
        )
        fh = logging.FileHandler(log_file)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def set_log_level(level: str, prefixes=("stocksentix", "main")) -> None:
    """Apply `level` to every already-built logger under the given name prefixes."""
    names = [n for n in logging.root.manager.loggerDict
             if any(n == p or n.startswith(p + ".") for p in prefixes)]
    for name in names:
        logging.getLogger(name).setLevel(level.upper())


def timeit(func):
    """Decorator that logs the execution time of any function."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__)
        t0 = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - t0
        logger.debug("%s completed in %.3f s", func.__qualname__, elapsed)
        return result
    return wrapper


DateLike = Union[str, date]


def parse_date(value: DateLike) -> date:
    """Parse a YYYY-MM-DD string (or pass a date through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValueError(f"Invalid date: {value}") from exc


def to_iso(value: DateLike) -> str:
    """Format a date as YYYY-MM-DD."""
    return parse_date(value).isoformat()


def add_days(value: DateLike, days: int) -> date:
    return parse_date(value) + timedelta(days=days)


def round_to(value: float, decimals: int) -> float:
    """Round to a fixed number of decimals and return a plain float."""
    return float(round(float(value), decimals))
