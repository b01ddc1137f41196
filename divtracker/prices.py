"""
divtracker/prices.py  —  Live quotes + price cache

The projector never talks to the network. Callers fetch quotes here first and
pass plain numbers in. A failed fetch is logged and answered with the last
known price (memory, then the repository's price cache), never raised.
"""

import logging
import time
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

import pandas as pd
import yfinance as yf

from divtracker import config
from divtracker.models import DividendPayment

logger = logging.getLogger(__name__)


def _close_from_download(raw: pd.DataFrame, symbols: list) -> pd.DataFrame:
    """
    Extract a (date × symbol) Close price DataFrame from yf.download() output.
    Newer yfinance returns MultiIndex columns, (field, symbol) or
    (symbol, field); older versions return flat columns.
    """
    cols = raw.columns
    if isinstance(cols, pd.MultiIndex):
        if "Close" in set(cols.get_level_values(0)):
            close = raw["Close"]
        elif "Close" in set(cols.get_level_values(1)):
            close = raw.xs("Close", axis=1, level=1)
        else:
            raise KeyError("Could not find 'Close' in MultiIndex columns.")
        if isinstance(close, pd.Series):
            close = close.to_frame(name=symbols[0].upper())
    elif "Close" in cols:
        close = raw[["Close"]].copy()
        close.columns = [symbols[0].upper()]
    else:
        close = raw.copy()

    close.columns = [str(c).upper() for c in close.columns]
    return close


class PriceFetcher:
    """
    Quote collaborator. A symbol fetched less than `min_interval` seconds ago
    is served from memory without a network call.
    """

    def __init__(self, repository=None,
                 min_interval: float = config.PRICE_REFRESH_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self._repo        = repository
        self._min_interval = min_interval
        self._clock       = clock
        self._cache: Dict[str, float] = {}
        self._fetched_at: Dict[str, float] = {}
        if self._repo is not None:
            self._cache.update(self._repo.get_price_cache())

    def _store(self, prices: Dict[str, float]) -> None:
        now = self._clock()
        self._cache.update(prices)
        for symbol in prices:
            self._fetched_at[symbol] = now
        if prices and self._repo is not None:
            self._repo.set_prices(prices)

    def _is_fresh(self, symbol: str) -> bool:
        fetched = self._fetched_at.get(symbol)
        return fetched is not None and self._clock() - fetched < self._min_interval

    def is_stale(self, symbol: str) -> bool:
        """True if the price was not fetched live within the refresh interval."""
        return not self._is_fresh(symbol.upper())

    def last_known(self, symbol: str) -> Optional[float]:
        return self._cache.get(symbol.upper())

    def get_quote(self, symbol: str) -> Optional[float]:
        symbol = symbol.upper()
        if self._is_fresh(symbol):
            return self._cache[symbol]
        try:
            t     = yf.Ticker(symbol)
            price = t.fast_info.get("lastPrice") or t.fast_info.get("regularMarketPrice")
            if price is None:
                hist  = t.history(period="2d")
                price = float(hist["Close"].iloc[-1]) if not hist.empty else None
            if price is not None:
                self._store({symbol: float(price)})
                return float(price)
            logger.warning("No quote returned for %s", symbol)
        except Exception as e:
            logger.warning("Could not fetch %s, using last known price: %s", symbol, e)
        return self._cache.get(symbol)

    def get_prices(self, symbols: List[str]) -> Dict[str, Optional[float]]:
        symbols  = [s.upper() for s in symbols]
        to_fetch = [s for s in symbols if not self._is_fresh(s)]

        if to_fetch:
            try:
                raw = yf.download(to_fetch, period="2d", progress=False, auto_adjust=True)
                if not raw.empty:
                    close = _close_from_download(raw, to_fetch)
                    fresh = {}
                    for symbol in to_fetch:
                        if symbol in close.columns:
                            series = close[symbol].dropna()
                            if not series.empty:
                                fresh[symbol] = float(series.iloc[-1])
                    self._store(fresh)
            except Exception as e:
                logger.warning("Batch quote fetch failed: %s", e)

            for symbol in to_fetch:
                if not self._is_fresh(symbol):
                    self.get_quote(symbol)

        return {s: self._cache.get(s) for s in symbols}

    def clear_cache(self) -> None:
        """Forget fetch times so the next call goes live. Known prices are kept."""
        self._fetched_at.clear()


def fetch_dividend_history(symbol: str, days: int = 365) -> List[DividendPayment]:
    """
    Past dividends for `symbol`, most recent first. yfinance only reports
    ex-dates, so the payment date falls back to the ex-date.
    """
    try:
        series = yf.Ticker(symbol.upper()).dividends
    except Exception as e:
        logger.warning("Could not fetch dividend history for %s: %s", symbol, e)
        return []
    if series is None or series.empty:
        return []

    since    = pd.Timestamp(date.today() - timedelta(days=days))
    payments = []
    for ts, amount in series.items():
        ts = pd.Timestamp(ts)
        if ts.tz is not None:
            ts = ts.tz_localize(None)
        if ts < since:
            continue
        day = ts.strftime("%Y-%m-%d")
        payments.append(DividendPayment(ex_date=day, payment_date=day,
                                        amount=float(amount)))
    payments.sort(key=lambda p: p.ex_date, reverse=True)
    return payments
