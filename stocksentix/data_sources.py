"""
================================================================================
NEWS AND PRICE DATA SOURCES
================================================================================
Adapters for the collaborators the analytics core reads from:

    1. FileNewsSource       -- headlines from local datasets
                               (ticker news CSV, Kaggle-style CSV, JSON)
    2. FinnhubNewsCollector -- downloads company news into a ticker news CSV
    3. YahooPriceSource     -- daily closes via yfinance
    4. SyntheticPriceSource -- deterministic sinusoidal price series
    5. FallbackPriceSource  -- primary source with a one-shot synthetic
                               fallback (points are flagged synthetic=True)

News sources return {YYYY-MM-DD: [headline, ...]}; an empty mapping is a
valid "no signal" answer. Price sources return PricePoint lists ascending by
date. Unreachable or malformed sources raise DataSourceError.
================================================================================
"""

import os
import re
import json
import math
import time
import pandas as pd
import yfinance as yf
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Protocol
from tqdm import tqdm

from stocksentix.exceptions import DataSourceError
from stocksentix.utils import DateLike, add_days, get_logger, parse_date, round_to, to_iso

log = get_logger(__name__)


# ============================================================================
# Contracts
# ============================================================================

@dataclass(frozen=True)
class PricePoint:
    """Daily close. synthetic=True marks fallback data, not market data."""
    date:      str
    close:     float
    synthetic: bool = False


class NewsSource(Protocol):
    def fetch_headlines(self, date_from: DateLike, date_to: DateLike,
                        ticker: Optional[str] = None) -> Dict[str, List[str]]:
        ...


class PriceSource(Protocol):
    def fetch_prices(self, ticker: str, date_from: DateLike,
                     date_to: DateLike) -> List[PricePoint]:
        ...


# Dashboard symbols that differ from the market-data provider symbol
SYMBOL_ALIASES = {
    "NIFTY50":  "^NSEI",
    "TCS":      "TCS.NS",
    "INFY":     "INFY.NS",
    "RELIANCE": "RELIANCE.NS",
}

_TICKER_CHARS = re.compile(r"[^A-Z0-9.^=-]")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_ticker(value) -> str:
    """Upper-case and strip everything that cannot appear in a symbol."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    return _TICKER_CHARS.sub("", str(value).strip().upper())


def normalize_date(value) -> str:
    """Coerce a date-ish value to YYYY-MM-DD (UTC); '' when unparseable."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    raw = str(value).strip()
    if not raw:
        return ""
    if _ISO_DATE.match(raw):
        return raw
    parsed = pd.to_datetime(raw, utc=True, errors="coerce")
    if pd.isna(parsed):
        return ""
    return parsed.strftime("%Y-%m-%d")


def resolve_symbol(ticker: str) -> str:
    clean = normalize_ticker(ticker)
    return SYMBOL_ALIASES.get(clean, clean)


def _as_headline_list(value) -> List[str]:
    """A JSON headlines value as a list; a bare string is one headline."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(v) for v in value if v is not None]


# ============================================================================
# News
# ============================================================================

class FileNewsSource:
    """
    Headlines grouped by date from local files.

    Parameters
    ----------
    news_path : str
        General dataset. ``.csv`` files are read Kaggle-style (a ``Date``
        column, every other non-empty cell is a headline); anything else is
        JSON, either ``[{"date", "headlines"}]`` or ``{date: [headlines]}``.
    ticker_news_path : str, optional
        Per-ticker CSV (``ticker``/``symbol``, ``date``/``datetime``/...,
        ``headline``/``title``). Preferred whenever it has at least one
        headline for the requested range; on read errors the general
        dataset is used instead.
    """

    TICKER_COLUMNS = ("ticker", "symbol", "Symbol")
    DATE_COLUMNS = ("date", "Date", "datetime", "publishedAt", "published_at", "time")
    HEADLINE_COLUMNS = ("headline", "title", "Headline")

    def __init__(self, news_path: str, ticker_news_path: str = ""):
        self.news_path = news_path
        self.ticker_news_path = ticker_news_path
        self._range_cache: Optional[Dict] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fetch_headlines(
        self,
        date_from: DateLike,
        date_to: DateLike,
        ticker: Optional[str] = None,
    ) -> Dict[str, List[str]]:
        start, end = to_iso(date_from), to_iso(date_to)

        if self._has_ticker_dataset():
            try:
                records = self._read_ticker_news()
                grouped = self._group_ticker_news(records, start, end, ticker)
                if any(grouped.values()):
                    return grouped
            except DataSourceError as exc:
                log.warning("Failed reading ticker news dataset, using fallback source: %s", exc)

        return self._group_news(self._read_general_news(), start, end)

    def news_date_range(self) -> Dict:
        """First/last headline date and number of distinct days (cached)."""
        if self._range_cache is not None:
            return self._range_cache

        dates: List[str] = []
        if self._has_ticker_dataset():
            try:
                dates = self._read_ticker_news()["date"].tolist()
            except DataSourceError as exc:
                log.warning("Failed reading ticker news range, using fallback source: %s", exc)
                dates = []
        if not dates:
            dates = [rec["date"] for rec in self._read_general_news()]

        dates = sorted(d for d in (str(x).strip() for x in dates) if d)
        if not dates:
            self._range_cache = {"date_from": None, "date_to": None, "total_days": 0}
        else:
            self._range_cache = {
                "date_from": dates[0],
                "date_to": dates[-1],
                "total_days": len(set(dates)),
            }
        return self._range_cache

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def _has_ticker_dataset(self) -> bool:
        return bool(self.ticker_news_path) and os.path.exists(self.ticker_news_path)

    @staticmethod
    def _first_column(df: pd.DataFrame, candidates) -> pd.Series:
        for col in candidates:
            if col in df.columns:
                return df[col]
        return pd.Series([""] * len(df), index=df.index)

    def _read_ticker_news(self) -> pd.DataFrame:
        try:
            raw = pd.read_csv(self.ticker_news_path, dtype=str, skip_blank_lines=True)
        except (OSError, ValueError) as exc:
            raise DataSourceError(
                f"Ticker news dataset {self.ticker_news_path} could not be read."
            ) from exc

        df = pd.DataFrame({
            "ticker": self._first_column(raw, self.TICKER_COLUMNS).map(normalize_ticker),
            "date": self._first_column(raw, self.DATE_COLUMNS).map(normalize_date),
            "headline": self._first_column(raw, self.HEADLINE_COLUMNS).fillna("").astype(str).str.strip(),
        })
        return df[(df["ticker"] != "") & (df["date"] != "") & (df["headline"] != "")]

    def _read_general_news(self) -> List[Dict]:
        try:
            if self.news_path.lower().endswith(".csv"):
                return self._read_kaggle_csv()
            with open(self.news_path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as exc:
            raise DataSourceError(
                f"News dataset {self.news_path} could not be read."
            ) from exc

        if isinstance(payload, dict):
            pairs = payload.items()
        elif isinstance(payload, list):
            pairs = [(item.get("date"), item.get("headlines"))
                     for item in payload if isinstance(item, dict)]
        else:
            raise DataSourceError(f"News dataset {self.news_path} has an unsupported layout.")

        records = []
        for raw_date, headlines in pairs:
            day = normalize_date(raw_date)
            if day:
                records.append({"date": day, "headlines": _as_headline_list(headlines)})
        return records

    def _read_kaggle_csv(self) -> List[Dict]:
        df = pd.read_csv(self.news_path, dtype=str, keep_default_na=False, skip_blank_lines=True)
        if "Date" not in df.columns:
            raise ValueError("missing Date column")
        headline_cols = [c for c in df.columns if c != "Date"]
        records = []
        for _, row in df.iterrows():
            day = normalize_date(row["Date"])
            if not day:
                continue
            headlines = [row[c].strip() for c in headline_cols if row[c].strip()]
            records.append({"date": day, "headlines": headlines})
        return records

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    @staticmethod
    def _group_news(records: List[Dict], start: str, end: str) -> Dict[str, List[str]]:
        out: Dict[str, List[str]] = {}
        for item in records:
            if item["date"] < start or item["date"] > end:
                continue
            out[item["date"]] = item["headlines"]
        return out

    @staticmethod
    def _group_ticker_news(df: pd.DataFrame, start: str, end: str,
                           ticker: Optional[str]) -> Dict[str, List[str]]:
        mask = (df["date"] >= start) & (df["date"] <= end)
        target = normalize_ticker(ticker)
        if target:
            mask &= df["ticker"] == target
        out: Dict[str, List[str]] = {}
        for d, headline in zip(df.loc[mask, "date"], df.loc[mask, "headline"]):
            out.setdefault(d, []).append(headline)
        return out


class FinnhubNewsCollector:
    """
    Downloads company news from Finnhub (finnhub.io) into a ticker news CSV
    that FileNewsSource can read.

    Each dashboard symbol is tried under its provider aliases until one
    returns articles; symbols that never do are reported as failures.

    Parameters
    ----------
    api_key : str, optional
        Finnhub token. If None, reads FINNHUB_API_KEY.
    delay : float
        Seconds between symbols (rate limiting).
    """

    BASE_URL = "https://finnhub.io/api/v1/company-news"

    SYMBOL_CANDIDATES = {
        "NIFTY50":  ["^NSEI", "NSE:NIFTY50"],
        "TCS":      ["TCS.NS", "NSE:TCS", "TCS"],
        "INFY":     ["INFY.NS", "NSE:INFY", "INFY"],
        "RELIANCE": ["RELIANCE.NS", "NSE:RELIANCE", "RELIANCE"],
    }

    def __init__(self, api_key: Optional[str] = None, delay: float = 0.35,
                 session=None, timeout: float = 20.0):
        import requests
        self.api_key = api_key or os.getenv("FINNHUB_API_KEY", "")
        self.delay = delay
        self.timeout = timeout
        self.session = session or requests.Session()
        self._request_errors = (requests.RequestException, ValueError)

        if not self.api_key:
            raise DataSourceError("Finnhub API key missing. Set FINNHUB_API_KEY or pass --api-key.")

    def candidates(self, symbol: str) -> List[str]:
        clean = str(symbol or "").strip().upper()
        if not clean:
            return []
        seen = [clean]
        for alias in self.SYMBOL_CANDIDATES.get(clean, []):
            if alias not in seen:
                seen.append(alias)
        return seen

    def fetch_symbol(self, symbol: str, date_from: str, date_to: str) -> List[Dict]:
        """Articles for one symbol; raises DataSourceError if no alias works."""
        reason = "no_data"
        for provider_symbol in self.candidates(symbol):
            params = {"symbol": provider_symbol, "from": date_from, "to": date_to,
                      "token": self.api_key}
            try:
                resp = self.session.get(self.BASE_URL, params=params, timeout=self.timeout)
                if not resp.ok:
                    reason = f"status_{resp.status_code}"
                    continue
                payload = resp.json()
            except self._request_errors as exc:
                reason = f"request_failed: {exc}"
                continue
            if not isinstance(payload, list) or not payload:
                reason = "empty"
                continue
            rows = []
            for item in payload:
                try:
                    stamp = datetime.fromtimestamp(float(item.get("datetime")), tz=timezone.utc)
                except (TypeError, ValueError, OverflowError, OSError):
                    continue
                headline = str(item.get("headline") or "").strip()
                if not headline:
                    continue
                rows.append({
                    "date": stamp.strftime("%Y-%m-%d"),
                    "ticker": symbol,
                    "headline": headline,
                    "source": str(item.get("source") or ""),
                    "url": str(item.get("url") or ""),
                })
            return rows
        raise DataSourceError(f"No Finnhub news for {symbol} ({reason}).")

    def fetch(self, symbols: List[str], date_from: str, date_to: str):
        """
        Fetch news for many symbols.

        Returns
        -------
        (pd.DataFrame [date, ticker, headline, source, url], list of failures)
        """
        rows, failures = [], []
        for i, symbol in enumerate(tqdm(symbols, desc="Finnhub")):
            try:
                rows.extend(self.fetch_symbol(symbol, date_from, date_to))
            except DataSourceError as exc:
                log.warning("%s", exc)
                failures.append({"symbol": symbol, "reason": str(exc)})
            if i < len(symbols) - 1:
                time.sleep(self.delay)

        df = pd.DataFrame(rows, columns=["date", "ticker", "headline", "source", "url"])
        if not df.empty:
            df = df.sort_values(["date", "ticker"], kind="mergesort").reset_index(drop=True)
        return df, failures

    @staticmethod
    def write_csv(df: pd.DataFrame, out_path: str) -> str:
        full = os.path.abspath(out_path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        df.to_csv(full, index=False)
        return full


# ============================================================================
# Prices
# ============================================================================

class YahooPriceSource:
    """Daily closes from Yahoo Finance via yfinance."""

    def fetch_prices(self, ticker: str, date_from: DateLike,
                     date_to: DateLike) -> List[PricePoint]:
        symbol = resolve_symbol(ticker)
        if not symbol:
            raise DataSourceError("Symbol is required.")
        # yfinance `end` is exclusive
        end_exclusive = add_days(date_to, 1)
        try:
            hist = yf.Ticker(symbol).history(
                start=to_iso(date_from), end=end_exclusive.isoformat(),
                interval="1d", auto_adjust=False,
            )
        except Exception as exc:
            raise DataSourceError(f"Market data provider failed for {ticker}.") from exc

        if hist is None or hist.empty or "Close" not in hist.columns:
            raise DataSourceError(f"No market data available for {ticker}.")

        closes = pd.to_numeric(hist["Close"], errors="coerce")
        index = pd.DatetimeIndex(hist.index)
        if index.tz is not None:
            index = index.tz_localize(None)
        points = [
            PricePoint(date=stamp.strftime("%Y-%m-%d"), close=float(close))
            for stamp, close in zip(index, closes)
            if not pd.isna(close)
        ]
        if not points:
            raise DataSourceError(f"No valid close prices for {ticker}.")
        return points


class SyntheticPriceSource:
    """
    Deterministic weekday price path starting at 100:

        close_t = close_{t-1} * (1 + 0.003 * sin(day_of_month / 5) + m_t)

    with m_t = +0.0008 in Jan/Mar/May/... and -0.0006 otherwise. Only for
    demos and offline runs; the series carries no market information.
    """

    def __init__(self, start_price: float = 100.0):
        self.start_price = start_price

    def fetch_prices(self, ticker: str, date_from: DateLike,
                     date_to: DateLike) -> List[PricePoint]:
        out = []
        close = self.start_price
        day = parse_date(date_from)
        end = parse_date(date_to)
        while day <= end:
            if day.weekday() < 5:
                drift = math.sin(day.day / 5) * 0.003 + (0.0008 if (day.month - 1) % 2 == 0 else -0.0006)
                close *= 1 + drift
                out.append(PricePoint(date=day.isoformat(), close=round_to(close, 3), synthetic=True))
            day += timedelta(days=1)
        return out


class FallbackPriceSource:
    """
    Primary price source with a single deterministic fallback.

    When the primary raises DataSourceError the fallback series is returned
    and a warning is logged. Callers can detect the substitution through
    PricePoint.synthetic.
    """

    def __init__(self, primary: PriceSource, fallback: Optional[PriceSource] = None):
        self.primary = primary
        self.fallback = fallback or SyntheticPriceSource()

    def fetch_prices(self, ticker: str, date_from: DateLike,
                     date_to: DateLike) -> List[PricePoint]:
        try:
            return self.primary.fetch_prices(ticker, date_from, date_to)
        except DataSourceError as exc:
            log.warning("Falling back to synthetic prices for %s: %s", ticker, exc)
            return self.fallback.fetch_prices(ticker, date_from, date_to)
