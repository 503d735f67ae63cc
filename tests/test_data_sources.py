"""
================================================================================
UNIT TESTS -- NEWS AND PRICE DATA SOURCES
================================================================================
Tests cover:
    1. Ticker / date normalisation and provider aliases
    2. FileNewsSource layouts, ticker preference and date range
    3. Finnhub collector against a fake HTTP session
    4. Yahoo, synthetic and fallback price sources
================================================================================
"""

import json
import math
import pytest
import requests
import numpy as np
import pandas as pd

from stocksentix import data_sources
from stocksentix.data_sources import (
    FallbackPriceSource,
    FileNewsSource,
    FinnhubNewsCollector,
    PricePoint,
    SyntheticPriceSource,
    YahooPriceSource,
    normalize_date,
    normalize_ticker,
    resolve_symbol,
)
from stocksentix.exceptions import DataSourceError


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def json_news(tmp_path):
    path = tmp_path / "news.json"
    path.write_text(json.dumps([
        {"date": "2024-01-02", "headlines": ["Stocks rally"]},
        {"date": "2024-01-03", "headlines": ["Stocks slump", "Oil falls"]},
        {"date": "2024-01-10", "headlines": ["Outside range"]},
    ]))
    return str(path)


@pytest.fixture
def ticker_news(tmp_path):
    path = tmp_path / "ticker_news.csv"
    pd.DataFrame({
        "ticker": ["aapl", "AAPL", "MSFT", "AAPL", ""],
        "date": ["2024-01-02", "2024-01-02T15:30:00Z", "2024-01-02", "2024-01-04", "2024-01-02"],
        "headline": ["Apple gains", "iPhone demand strong", "Cloud growth", "Apple dips", "orphan"],
    }).to_csv(path, index=False)
    return str(path)


# ============================================================================
# TEST: NORMALISATION
# ============================================================================

class TestNormalisation:

    @pytest.mark.parametrize("raw, clean", [
        ("  aapl ", "AAPL"), ("brk.b", "BRK.B"), ("TCS!", "TCS"),
        ("^nsei", "^NSEI"), (None, ""), (float("nan"), ""),
    ])
    def test_ticker(self, raw, clean):
        assert normalize_ticker(raw) == clean

    @pytest.mark.parametrize("raw, clean", [
        ("2024-01-05", "2024-01-05"),
        ("2024-01-05T14:30:00Z", "2024-01-05"),
        ("Jan 5, 2024", "2024-01-05"),
        ("not a date", ""),
        ("", ""),
        (None, ""),
    ])
    def test_date(self, raw, clean):
        assert normalize_date(raw) == clean

    def test_aliases(self):
        assert resolve_symbol("tcs") == "TCS.NS"
        assert resolve_symbol("NIFTY50") == "^NSEI"
        assert resolve_symbol("aapl") == "AAPL"


# ============================================================================
# TEST: FILE NEWS SOURCE
# ============================================================================

class TestFileNewsSource:

    def test_json_list(self, json_news):
        out = FileNewsSource(json_news).fetch_headlines("2024-01-01", "2024-01-05")
        assert out == {"2024-01-02": ["Stocks rally"], "2024-01-03": ["Stocks slump", "Oil falls"]}

    def test_json_mapping(self, tmp_path):
        path = tmp_path / "news.json"
        path.write_text(json.dumps({"2024-01-02": ["a"], "2024-01-03": None}))
        out = FileNewsSource(str(path)).fetch_headlines("2024-01-01", "2024-01-31")
        assert out == {"2024-01-02": ["a"], "2024-01-03": []}

    def test_kaggle_csv(self, tmp_path):
        path = tmp_path / "Combined.csv"
        pd.DataFrame({
            "Date": ["2024-01-02", "2024-01-03"],
            "Top1": ["Markets climb", "Markets slide"],
            "Top2": ["Banks steady", ""],
        }).to_csv(path, index=False)
        out = FileNewsSource(str(path)).fetch_headlines("2024-01-01", "2024-01-31")
        assert out == {"2024-01-02": ["Markets climb", "Banks steady"], "2024-01-03": ["Markets slide"]}

    def test_kaggle_csv_skips_blank_dates(self, tmp_path):
        path = tmp_path / "Combined.csv"
        path.write_text("Date,Top1\n2024-01-02,markets rally\n,orphan headline\n")
        out = FileNewsSource(str(path)).fetch_headlines("2024-01-01", "2024-01-31")
        assert out == {"2024-01-02": ["markets rally"]}

    def test_json_single_string_is_one_headline(self, tmp_path):
        path = tmp_path / "news.json"
        path.write_text(json.dumps({"2024-01-02": "markets rally", "2024-01-03": ["a", "b"]}))
        out = FileNewsSource(str(path)).fetch_headlines("2024-01-01", "2024-01-31")
        assert out == {"2024-01-02": ["markets rally"], "2024-01-03": ["a", "b"]}

    def test_json_records_without_date_are_skipped(self, tmp_path):
        path = tmp_path / "news.json"
        path.write_text(json.dumps([{"headlines": ["no date"]}, {"date": "2024-01-02", "headlines": "one"}]))
        out = FileNewsSource(str(path)).fetch_headlines("2024-01-01", "2024-01-31")
        assert out == {"2024-01-02": ["one"]}

    def test_missing_dataset(self, tmp_path):
        with pytest.raises(DataSourceError):
            FileNewsSource(str(tmp_path / "absent.json")).fetch_headlines("2024-01-01", "2024-01-31")

    def test_ticker_dataset_preferred_and_filtered(self, json_news, ticker_news):
        source = FileNewsSource(json_news, ticker_news)
        out = source.fetch_headlines("2024-01-01", "2024-01-03", ticker="aapl")
        assert out == {"2024-01-02": ["Apple gains", "iPhone demand strong"]}

    def test_ticker_dataset_without_ticker_keeps_all(self, json_news, ticker_news):
        out = FileNewsSource(json_news, ticker_news).fetch_headlines("2024-01-02", "2024-01-02")
        assert out == {"2024-01-02": ["Apple gains", "iPhone demand strong", "Cloud growth"]}

    def test_falls_back_when_ticker_has_no_news(self, json_news, ticker_news):
        out = FileNewsSource(json_news, ticker_news).fetch_headlines("2024-01-01", "2024-01-05", ticker="TSLA")
        assert "2024-01-03" in out
        assert out["2024-01-02"] == ["Stocks rally"]

    def test_alternative_column_names(self, json_news, tmp_path):
        path = tmp_path / "alt.csv"
        pd.DataFrame({
            "symbol": ["INFY"],
            "datetime": ["2024-01-03 10:00:00"],
            "title": ["Infosys wins contract"],
        }).to_csv(path, index=False)
        out = FileNewsSource(json_news, str(path)).fetch_headlines("2024-01-01", "2024-01-05", "INFY")
        assert out == {"2024-01-03": ["Infosys wins contract"]}

    def test_date_range_from_ticker_dataset(self, json_news, ticker_news):
        rng = FileNewsSource(json_news, ticker_news).news_date_range()
        assert rng == {"date_from": "2024-01-02", "date_to": "2024-01-04", "total_days": 2}

    def test_date_range_is_cached(self, json_news, tmp_path):
        source = FileNewsSource(json_news)
        first = source.news_date_range()
        assert first == {"date_from": "2024-01-02", "date_to": "2024-01-10", "total_days": 3}
        (tmp_path / "news.json").unlink()
        assert source.news_date_range() == first

    def test_empty_dataset_range(self, tmp_path):
        path = tmp_path / "news.json"
        path.write_text("[]")
        assert FileNewsSource(str(path)).news_date_range() == {
            "date_from": None, "date_to": None, "total_days": 0,
        }


# ============================================================================
# TEST: FINNHUB COLLECTOR
# ============================================================================

class FakeResponse:
    def __init__(self, status, payload):
        self.status_code = status
        self.ok = 200 <= status < 300
        self._payload = payload

    def json(self):
        return self._payload


class FakeSession:
    """Replies per provider symbol; records every request."""

    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append(params["symbol"])
        return self.replies.get(params["symbol"], FakeResponse(200, []))


JAN_2_2024 = 1704153600


class TestFinnhubCollector:

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("FINNHUB_API_KEY", raising=False)
        with pytest.raises(DataSourceError, match="API key"):
            FinnhubNewsCollector(session=FakeSession({}))

    def test_candidates(self):
        collector = FinnhubNewsCollector(api_key="k", session=FakeSession({}))
        assert collector.candidates(" tcs ") == ["TCS", "TCS.NS", "NSE:TCS"]
        assert collector.candidates("AAPL") == ["AAPL"]
        assert collector.candidates("") == []

    def test_alias_fallthrough_and_parsing(self):
        session = FakeSession({
            "TCS": FakeResponse(403, None),
            "TCS.NS": FakeResponse(200, [
                {"datetime": JAN_2_2024 + 3600, "headline": " TCS signs deal ", "source": "Reuters", "url": "u1"},
                {"datetime": "bad", "headline": "skipped"},
                {"datetime": JAN_2_2024, "headline": ""},
            ]),
        })
        rows = FinnhubNewsCollector(api_key="k", session=session).fetch_symbol("TCS", "2024-01-01", "2024-01-05")
        assert session.calls == ["TCS", "TCS.NS"]
        assert rows == [{
            "date": "2024-01-02", "ticker": "TCS", "headline": "TCS signs deal",
            "source": "Reuters", "url": "u1",
        }]

    def test_fetch_reports_failures(self):
        session = FakeSession({
            "AAPL": FakeResponse(200, [{"datetime": JAN_2_2024, "headline": "Apple news"}]),
        })
        collector = FinnhubNewsCollector(api_key="k", delay=0, session=session)
        df, failures = collector.fetch(["AAPL", "ZZZZ"], "2024-01-01", "2024-01-05")
        assert list(df.columns) == ["date", "ticker", "headline", "source", "url"]
        assert df["ticker"].tolist() == ["AAPL"]
        assert [f["symbol"] for f in failures] == ["ZZZZ"]
        assert "empty" in failures[0]["reason"]

    def test_transport_errors_become_failures(self):
        class DownSession:
            def get(self, url, params=None, timeout=None):
                raise requests.ConnectionError("connection refused")

        collector = FinnhubNewsCollector(api_key="k", delay=0, session=DownSession())
        df, failures = collector.fetch(["AAPL", "MSFT"], "2024-01-01", "2024-01-05")
        assert df.empty
        assert [f["symbol"] for f in failures] == ["AAPL", "MSFT"]
        assert "request_failed" in failures[0]["reason"]

    def test_invalid_json_body_becomes_failure(self):
        class BadJson(FakeResponse):
            def json(self):
                raise ValueError("Expecting value")

        session = FakeSession({
            "AAPL": BadJson(200, None),
            "MSFT": FakeResponse(200, [{"datetime": JAN_2_2024, "headline": "Cloud deal"}]),
        })
        collector = FinnhubNewsCollector(api_key="k", delay=0, session=session)
        df, failures = collector.fetch(["AAPL", "MSFT"], "2024-01-01", "2024-01-05")
        assert df["ticker"].tolist() == ["MSFT"]
        assert [f["symbol"] for f in failures] == ["AAPL"]

    def test_write_csv_round_trips_through_file_source(self, json_news, tmp_path):
        session = FakeSession({
            "AAPL": FakeResponse(200, [{"datetime": JAN_2_2024, "headline": "Apple news"}]),
        })
        collector = FinnhubNewsCollector(api_key="k", delay=0, session=session)
        df, _ = collector.fetch(["AAPL"], "2024-01-01", "2024-01-05")
        path = collector.write_csv(df, str(tmp_path / "out" / "ticker_news.csv"))
        out = FileNewsSource(json_news, path).fetch_headlines("2024-01-01", "2024-01-05", "AAPL")
        assert out == {"2024-01-02": ["Apple news"]}


# ============================================================================
# TEST: PRICE SOURCES
# ============================================================================

class FakeTicker:
    history_frame = None
    last = None

    def __init__(self, symbol):
        self.symbol = symbol

    def history(self, **kwargs):
        FakeTicker.last = (self.symbol, kwargs)
        if isinstance(FakeTicker.history_frame, Exception):
            raise FakeTicker.history_frame
        return FakeTicker.history_frame


@pytest.fixture
def fake_yf(monkeypatch):
    monkeypatch.setattr(data_sources.yf, "Ticker", FakeTicker)
    FakeTicker.history_frame = None
    FakeTicker.last = None
    return FakeTicker


class TestYahooPriceSource:

    def test_closes_and_exclusive_end(self, fake_yf):
        index = pd.DatetimeIndex(["2024-01-02", "2024-01-03", "2024-01-04"]).tz_localize("Asia/Kolkata")
        fake_yf.history_frame = pd.DataFrame({"Close": [10.0, np.nan, 11.5]}, index=index)
        points = YahooPriceSource().fetch_prices("tcs", "2024-01-02", "2024-01-04")
        symbol, kwargs = fake_yf.last
        assert symbol == "TCS.NS"
        assert kwargs["start"] == "2024-01-02"
        assert kwargs["end"] == "2024-01-05"
        assert points == [PricePoint("2024-01-02", 10.0), PricePoint("2024-01-04", 11.5)]

    def test_empty_history(self, fake_yf):
        fake_yf.history_frame = pd.DataFrame()
        with pytest.raises(DataSourceError, match="No market data"):
            YahooPriceSource().fetch_prices("AAPL", "2024-01-02", "2024-01-04")

    def test_provider_error(self, fake_yf):
        fake_yf.history_frame = RuntimeError("network down")
        with pytest.raises(DataSourceError, match="provider failed"):
            YahooPriceSource().fetch_prices("AAPL", "2024-01-02", "2024-01-04")


class TestSyntheticAndFallback:

    def test_weekdays_only_and_flagged(self):
        points = SyntheticPriceSource().fetch_prices("AAPL", "2024-01-01", "2024-01-07")
        assert [p.date for p in points] == [
            "2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04", "2024-01-05",
        ]
        assert all(p.synthetic for p in points)

    def test_first_step(self):
        first = SyntheticPriceSource().fetch_prices("AAPL", "2024-01-01", "2024-01-01")[0]
        drift = math.sin(1 / 5) * 0.003 + 0.0008
        assert first.close == pytest.approx(100.0 * (1 + drift), abs=1e-3)

    def test_deterministic(self):
        a = SyntheticPriceSource().fetch_prices("X", "2024-02-01", "2024-03-31")
        b = SyntheticPriceSource().fetch_prices("Y", "2024-02-01", "2024-03-31")
        assert a == b

    def test_fallback_on_failure(self):
        class Failing:
            def fetch_prices(self, ticker, date_from, date_to):
                raise DataSourceError("down")

        points = FallbackPriceSource(Failing()).fetch_prices("AAPL", "2024-01-01", "2024-01-05")
        assert len(points) == 5
        assert all(p.synthetic for p in points)

    def test_primary_passes_through(self):
        class Working:
            def fetch_prices(self, ticker, date_from, date_to):
                return [PricePoint("2024-01-02", 50.0)]

        points = FallbackPriceSource(Working()).fetch_prices("AAPL", "2024-01-01", "2024-01-05")
        assert points == [PricePoint("2024-01-02", 50.0)]

    def test_other_errors_propagate(self):
        class Buggy:
            def fetch_prices(self, ticker, date_from, date_to):
                raise KeyError("bug")

        with pytest.raises(KeyError):
            FallbackPriceSource(Buggy()).fetch_prices("AAPL", "2024-01-01", "2024-01-05")


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
