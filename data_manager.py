"""
Price data collaborator for the frontier engine.

Downloads daily adjusted closes from Yahoo Finance one ticker at a time,
retrying with exponential backoff, and falls back to a synthetic random walk
(deterministic parameters per ticker) when a download fails. Results carry
an `is_simulated` provenance flag; the engine modules never do I/O.
"""
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import yfinance as yf

from factor_model import normalize_ticker

logger = logging.getLogger(__name__)

# Analysis period -> download range (extra history leaves room for backtests)
PERIOD_RANGES = {'1y': '2y', '3y': '5y', '5y': '10y'}
# Analysis period -> length of a synthetic series, in calendar days
SYNTHETIC_DAYS = {'1y': 500, '3y': 1000, '5y': 1500}


@dataclass(frozen=True)
class PriceHistory:
    ticker: str
    prices: Tuple[float, ...]
    dates: Tuple[str, ...]
    is_simulated: bool = False


@dataclass
class FetchResult:
    histories: List[PriceHistory] = field(default_factory=list)

    @property
    def is_simulated(self) -> bool:
        """True if any history came from the synthetic generator."""
        return any(h.is_simulated for h in self.histories)

    @property
    def simulated_tickers(self) -> List[str]:
        return [h.ticker for h in self.histories if h.is_simulated]


def ticker_hash(ticker: str) -> int:
    return sum(ord(c) for c in ticker)


def generate_random_walk(days: int, start_price: float, drift: float, volatility: float,
                         end_date: Optional[date] = None,
                         rng: Optional[np.random.Generator] = None) -> Tuple[List[float], List[str]]:
    """
    Euler-stepped geometric random walk on a calendar-day grid.

    Produces days + 1 prices and dates, the last date being end_date (today
    by default). Prices are floored at 0.01.
    """
    if rng is None:
        rng = np.random.default_rng()
    if end_date is None:
        end_date = date.today()

    dates = pd.date_range(end=pd.Timestamp(end_date), periods=days + 1, freq='D')
    dt = 1 / 365
    shocks = rng.standard_normal(days)

    prices = [float(start_price)]
    current = float(start_price)
    for z in shocks:
        current += current * (drift * dt + volatility * np.sqrt(dt) * z)
        prices.append(max(0.01, current))

    return prices, [d.date().isoformat() for d in dates]


def synthetic_history(ticker: str, days: int, end_date: Optional[date] = None,
                      rng: Optional[np.random.Generator] = None) -> PriceHistory:
    """Synthetic series whose drift, volatility and start price derive from the ticker."""
    h = ticker_hash(ticker)
    volatility = 0.15 + (h % 30) / 100
    drift = 0.05 + (h % 20) / 100
    start_price = 50 + (h % 150)
    prices, dates = generate_random_walk(days, start_price, drift, volatility,
                                         end_date=end_date, rng=rng)
    return PriceHistory(ticker=ticker, prices=tuple(prices), dates=tuple(dates),
                        is_simulated=True)


class DataManager:
    def __init__(self, ticker_suffix: str = '.SA', retries: int = 3, delay: float = 2.0,
                 pause: float = 1.5, offline: bool = False, seed: Optional[int] = None,
                 end_date: Optional[date] = None):
        """
        Parameters:
            ticker_suffix: Appended to bare tickers for the provider (B3 uses '.SA')
            retries: Download attempts per ticker
            delay: Initial backoff in seconds, doubled after each failure
            pause: Seconds to wait between sequential tickers
            offline: Skip downloads and use synthetic data only
            seed: Seed for synthetic series
            end_date: Last date of synthetic series (today by default)
        """
        self.ticker_suffix = ticker_suffix
        self.retries = retries
        self.delay = delay
        self.pause = pause
        self.offline = offline
        self.end_date = end_date
        self.rng = np.random.default_rng(seed)

    def provider_symbol(self, ticker: str) -> str:
        t = ticker.strip().upper()
        if self.ticker_suffix and '.' not in t and '-' not in t:
            t += self.ticker_suffix
        return t

    def get_prices(self, ticker: str, period: str = '1y') -> PriceHistory:
        """Download one ticker's adjusted closes. Raises ValueError when nothing comes back."""
        symbol = self.provider_symbol(ticker)
        logger.info("Downloading %s from Yahoo Finance...", symbol)
        df = self._smart_download(symbol, PERIOD_RANGES.get(period, '2y'))
        if df.empty:
            raise ValueError(f"No data returned for {symbol}")

        column = 'Adj Close' if 'Adj Close' in df.columns else 'Close'
        series = df[column].dropna()
        if len(series) < 2:
            raise ValueError(f"Only {len(series)} valid prices for {symbol}")

        history = PriceHistory(
            ticker=normalize_ticker(ticker),
            prices=tuple(float(p) for p in series.values),
            dates=tuple(d.date().isoformat() for d in series.index),
        )
        logger.info("Downloaded %s (%d records). Start: %s", symbol, len(history.prices),
                    history.dates[0])
        return history

    def synthetic(self, ticker: str, period: str = '1y') -> PriceHistory:
        return synthetic_history(normalize_ticker(ticker), SYNTHETIC_DAYS.get(period, 500),
                                 end_date=self.end_date, rng=self.rng)

    def fetch_all(self, tickers: Sequence[str], period: str = '1y') -> FetchResult:
        """
        Fetch tickers sequentially, in order, pausing between requests.

        A ticker whose download fails is replaced by a synthetic series and
        the result is flagged as simulated.
        """
        result = FetchResult()
        for i, ticker in enumerate(tickers):
            if self.offline:
                result.histories.append(self.synthetic(ticker, period))
                continue
            try:
                result.histories.append(self.get_prices(ticker, period))
            except Exception as e:
                logger.warning("Failed to fetch %s (%s), falling back to simulation", ticker, e)
                result.histories.append(self.synthetic(ticker, period))
            if i < len(tickers) - 1 and self.pause > 0:
                time.sleep(self.pause)

        if result.is_simulated:
            logger.warning("Simulated data used for: %s", ', '.join(result.simulated_tickers))
        return result

    def _smart_download(self, symbol: str, history_range: str) -> pd.DataFrame:
        """Download with Exponential Backoff"""
        delay = self.delay
        for i in range(self.retries):
            try:
                df = yf.Ticker(symbol).history(period=history_range, interval='1d',
                                               auto_adjust=False)
                if not df.empty:
                    return df
                logger.debug("Empty frame for %s (attempt %d/%d)", symbol, i + 1, self.retries)
                time.sleep(delay)
                delay *= 2
            except Exception:
                if i == self.retries - 1:
                    raise
                time.sleep(delay + random.random())
                delay *= 2
        return pd.DataFrame()
