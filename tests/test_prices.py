from datetime import date, timedelta

import pandas as pd
import pytest

from divtracker import prices
from divtracker.db import JsonDocumentRepository
from divtracker.prices import PriceFetcher, fetch_dividend_history


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FakeTicker:
    quotes = {}
    dividends = pd.Series(dtype=float)
    calls = []

    def __init__(self, symbol):
        self.symbol = symbol
        FakeTicker.calls.append(symbol)
        quote = self.quotes.get(symbol)
        if isinstance(quote, Exception):
            raise quote
        self.fast_info = {"lastPrice": quote}

    def history(self, period="2d"):
        return pd.DataFrame({"Close": []})


@pytest.fixture
def ticker(monkeypatch):
    FakeTicker.quotes = {}
    FakeTicker.calls = []
    FakeTicker.dividends = pd.Series(dtype=float)
    monkeypatch.setattr(prices.yf, "Ticker", FakeTicker)
    return FakeTicker


@pytest.fixture
def no_download(monkeypatch):
    def _fail(*args, **kwargs):
        raise RuntimeError("offline")
    monkeypatch.setattr(prices.yf, "download", _fail)


class TestGetQuote:
    def test_live_quote(self, ticker):
        ticker.quotes = {"KO": 61.25}
        fetcher = PriceFetcher(clock=FakeClock())
        assert fetcher.get_quote("ko") == 61.25
        assert fetcher.is_stale("KO") is False

    def test_failure_falls_back_to_last_known(self, ticker):
        clock   = FakeClock()
        fetcher = PriceFetcher(clock=clock, min_interval=30)
        ticker.quotes = {"KO": 61.25}
        fetcher.get_quote("KO")

        clock.now += 60
        ticker.quotes = {"KO": ConnectionError("down")}
        assert fetcher.get_quote("KO") == 61.25
        assert fetcher.is_stale("KO") is True

    def test_unknown_symbol_with_no_history_is_none(self, ticker):
        ticker.quotes = {"ZZZZ": RuntimeError("404")}
        assert PriceFetcher(clock=FakeClock()).get_quote("ZZZZ") is None

    def test_throttled_within_interval(self, ticker):
        clock   = FakeClock()
        fetcher = PriceFetcher(clock=clock, min_interval=30)
        ticker.quotes = {"KO": 61.25}
        fetcher.get_quote("KO")
        ticker.quotes = {"KO": 70.0}

        clock.now += 10
        assert fetcher.get_quote("KO") == 61.25
        assert ticker.calls == ["KO"]

        clock.now += 25
        assert fetcher.get_quote("KO") == 70.0

    def test_clear_cache_forces_refetch_but_keeps_prices(self, ticker):
        fetcher = PriceFetcher(clock=FakeClock())
        ticker.quotes = {"KO": 61.25}
        fetcher.get_quote("KO")
        fetcher.clear_cache()
        assert fetcher.is_stale("KO")
        assert fetcher.last_known("KO") == 61.25

    def test_repository_cache_seeds_and_persists(self, ticker, tmp_path):
        repo = JsonDocumentRepository(str(tmp_path / "p.json"))
        repo.set_prices({"PEP": 150.0})
        ticker.quotes = {"KO": 61.25, "PEP": RuntimeError("down")}
        fetcher = PriceFetcher(repository=repo, clock=FakeClock())

        assert fetcher.get_quote("PEP") == 150.0
        fetcher.get_quote("KO")
        assert repo.get_price_cache() == {"PEP": 150.0, "KO": 61.25}


class TestGetPrices:
    def test_batch_download(self, ticker, monkeypatch):
        index = pd.to_datetime(["2026-01-14", "2026-01-15"])
        raw   = pd.DataFrame(
            {("Close", "KO"): [60.0, 61.0], ("Close", "O"): [56.0, None]}, index=index)
        monkeypatch.setattr(prices.yf, "download", lambda *a, **k: raw)

        result = PriceFetcher(clock=FakeClock()).get_prices(["ko", "O"])
        # O's last row is NaN, so its last valid close is used
        assert result == {"KO": 61.0, "O": 56.0}
        assert ticker.calls == []

    def test_missing_symbols_fall_back_to_single_quotes(self, ticker, no_download):
        ticker.quotes = {"KO": 61.0, "O": RuntimeError("down")}
        result = PriceFetcher(clock=FakeClock()).get_prices(["KO", "O"])
        assert result == {"KO": 61.0, "O": None}

    def test_fresh_symbols_not_refetched(self, ticker, no_download):
        fetcher = PriceFetcher(clock=FakeClock())
        ticker.quotes = {"KO": 61.0}
        fetcher.get_prices(["KO"])
        fetcher.get_prices(["KO"])
        assert ticker.calls == ["KO"]


class TestDividendHistory:
    def test_recent_payments_most_recent_first(self, ticker):
        today = pd.Timestamp(date.today())
        ticker.dividends = pd.Series(
            [0.46, 0.485, 0.485],
            index=pd.DatetimeIndex([today - timedelta(days=500),
                                    today - timedelta(days=200),
                                    today - timedelta(days=20)]).tz_localize("America/New_York"))
        history = fetch_dividend_history("ko")
        assert len(history) == 2
        assert history[0].ex_date == (today - timedelta(days=20)).strftime("%Y-%m-%d")
        assert history[0].payment_date == history[0].ex_date
        assert history[0].amount == 0.485

    def test_no_dividends(self, ticker):
        assert fetch_dividend_history("BRK-B") == []

    def test_error_returns_empty(self, ticker):
        ticker.quotes = {"KO": RuntimeError("down")}
        assert fetch_dividend_history("KO") == []
