"""
================================================================================
TABULAR FEATURE PIPELINE
================================================================================
Loads the labelled technical-indicator dataset used by CSV-ML prediction.

Input: a comma-delimited file with a header row carrying `date`, `ticker`,
`TARGET` and the indicator columns listed in FeatureSchema. Each row becomes

    date (ISO string), ticker (upper-case), label = 1[TARGET > 0], x_1..x_11

Indicator values that are missing or non-numeric are read as 0.0. Rows with
no date, no ticker or a non-numeric TARGET are dropped. Rows are ordered by
date with a stable sort so same-day rows keep their file order.

FeatureStore keeps the last parsed file in memory, keyed by its resolved
path and modification time, and hands callers copies.
================================================================================
"""

import os
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from stocksentix.exceptions import DataSourceError
from stocksentix.utils import DateLike, get_logger, to_iso

log = get_logger(__name__)


DEFAULT_FEATURES: Tuple[str, ...] = (
    "RSIadjclose15",
    "RSIadjclose25",
    "RSIadjclose50",
    "MACDhistadjclose15",
    "MACDhistadjclose25",
    "MACDhistadjclose50",
    "diff",
    "INCREMENTO",
    "atr10",
    "stochastic-kd-10",
    "volumenrelativo",
)


@dataclass(frozen=True)
class FeatureSchema:
    """
    Column layout of the indicator dataset and the rule that turns raw
    cells into model inputs.

    Parameters
    ----------
    features : tuple of str
        Indicator columns, in model input order.
    date_column, ticker_column, label_column : str
        Key columns of the raw file.
    """
    features:      Tuple[str, ...] = DEFAULT_FEATURES
    date_column:   str = "date"
    ticker_column: str = "ticker"
    label_column:  str = "TARGET"

    @property
    def columns(self) -> Tuple[str, ...]:
        """Columns of an extracted frame."""
        return ("date", "ticker", "label") + tuple(self.features)

    def extract(self, raw: pd.DataFrame, require_keys: bool = True,
                missing_ticker: str = "UNK") -> pd.DataFrame:
        """
        Convert a raw string frame into typed feature rows (unsorted).

        Parameters
        ----------
        raw : pd.DataFrame
            Frame read with every column as str.
        require_keys : bool
            Drop rows with an empty date or ticker. The offline batch reader
            keeps them and fills a missing ticker column with `missing_ticker`.
        """
        n = len(raw)
        if self.date_column in raw.columns:
            dates = raw[self.date_column].fillna("").astype(str).str.strip()
        else:
            dates = pd.Series([""] * n, index=raw.index)
        if self.ticker_column in raw.columns:
            tickers = raw[self.ticker_column].fillna("").astype(str).str.strip().str.upper()
        else:
            tickers = pd.Series(["" if require_keys else missing_ticker] * n, index=raw.index)

        if self.label_column in raw.columns:
            target = pd.to_numeric(raw[self.label_column], errors="coerce")
        else:
            target = pd.Series(np.nan, index=raw.index)

        out = pd.DataFrame({
            "date": dates,
            "ticker": tickers,
            "label": (target > 0).astype(int),
        }, index=raw.index)
        for name in self.features:
            if name in raw.columns:
                values = pd.to_numeric(raw[name], errors="coerce")
                out[name] = values.replace([np.inf, -np.inf], np.nan).fillna(0.0).astype(float)
            else:
                out[name] = 0.0

        keep = np.isfinite(target.to_numpy(dtype=float))
        if require_keys:
            keep &= (dates != "").to_numpy() & (tickers != "").to_numpy()
        dropped = int(n - keep.sum())
        if dropped:
            log.warning("Dropped %d malformed feature rows", dropped)
        return out.loc[keep]

    @staticmethod
    def sort_by_date(frame: pd.DataFrame) -> pd.DataFrame:
        """Stable ascending sort on the ISO date string."""
        return frame.sort_values("date", kind="mergesort").reset_index(drop=True)

    def matrix(self, frame: pd.DataFrame) -> np.ndarray:
        """Feature block as a float array of shape (n, len(features))."""
        return frame.loc[:, list(self.features)].to_numpy(dtype=float)

    def labels(self, frame: pd.DataFrame) -> np.ndarray:
        return frame["label"].to_numpy(dtype=float)


class LocalFileSystem:
    """Filesystem access used by FeatureStore; swap for a fake in tests."""

    def resolve(self, path: str) -> str:
        return os.path.abspath(path)

    def stat_mtime(self, path: str) -> float:
        return os.stat(path).st_mtime

    def open(self, path: str):
        return open(path, "r", encoding="utf-8", newline="")


def _read_csv(handle, **kwargs):
    return pd.read_csv(handle, dtype=str, keep_default_na=False,
                       skip_blank_lines=True, **kwargs)


class FeatureStore:
    """
    Last-value cache over the indicator dataset.

    A call with the same resolved path and an unchanged mtime returns a copy
    of the cached rows without touching the file contents. A different path
    or a new mtime triggers exactly one re-parse.

    Parameters
    ----------
    schema : FeatureSchema, optional
    filesystem : object, optional
        Provides resolve(path), stat_mtime(path) and open(path).
    """

    def __init__(self, schema: Optional[FeatureSchema] = None, filesystem=None):
        self.schema = schema or FeatureSchema()
        self.fs = filesystem or LocalFileSystem()
        self._cache_key: Optional[Tuple[str, float]] = None
        self._rows: Optional[pd.DataFrame] = None

    def load_rows(self, path: str) -> pd.DataFrame:
        """
        Sorted feature rows for `path`.

        Raises
        ------
        DataSourceError if the file cannot be stat'ed, opened or parsed.
        """
        full = self.fs.resolve(path)
        try:
            mtime = self.fs.stat_mtime(full)
        except OSError as exc:
            raise DataSourceError(f"Feature dataset not found: {full}") from exc

        key = (full, mtime)
        if self._cache_key == key and self._rows is not None:
            return self._rows.copy()

        log.info("Loading feature dataset %s", full)
        try:
            with self.fs.open(full) as handle:
                raw = _read_csv(handle)
        except (OSError, ValueError) as exc:
            raise DataSourceError(f"Could not read feature dataset {full}: {exc}") from exc

        rows = self.schema.sort_by_date(self.schema.extract(raw))
        self._cache_key = key
        self._rows = rows
        return rows.copy()

    def iter_chunks(self, path: str, chunksize: int = 50_000) -> Iterator[pd.DataFrame]:
        """
        Stream the file in chunks without caching (offline batch use).
        Rows keep an empty date and a missing ticker column becomes "UNK".
        """
        full = self.fs.resolve(path)
        try:
            with self.fs.open(full) as handle:
                for chunk in _read_csv(handle, chunksize=chunksize):
                    yield self.schema.extract(chunk, require_keys=False)
        except (OSError, ValueError) as exc:
            raise DataSourceError(f"Could not read feature dataset {full}: {exc}") from exc

    def invalidate(self):
        """Drop the cached rows."""
        self._cache_key = None
        self._rows = None


def filter_date_range(rows: pd.DataFrame, date_from: DateLike, date_to: DateLike) -> pd.DataFrame:
    """Rows with date_from <= date <= date_to (ISO string comparison)."""
    start, end = to_iso(date_from), to_iso(date_to)
    mask = (rows["date"] >= start) & (rows["date"] <= end)
    return rows.loc[mask].reset_index(drop=True)
