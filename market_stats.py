"""
Return and risk statistics from daily price series.

Log returns, sample mean / standard deviation, and the covariance and
correlation matrices consumed by the Monte Carlo optimizer.
"""
import logging
from dataclasses import dataclass, replace
from typing import List, Sequence, Tuple

import numpy as np

from errors import InsufficientDataError, UndefinedStatisticError

logger = logging.getLogger(__name__)

TRADING_DAYS_PER_MONTH = 21


def _frozen(values) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


def log_returns(prices: Sequence[float]) -> np.ndarray:
    """Calculate log returns ln(P[t+1] / P[t]); needs at least 2 prices."""
    prices = np.asarray(prices, dtype=float)
    if prices.size < 2:
        raise InsufficientDataError(
            f"Log returns need at least 2 prices, got {prices.size}"
        )
    return np.log(prices[1:] / prices[:-1])


def mean(xs: Sequence[float]) -> float:
    """Arithmetic mean"""
    xs = np.asarray(xs, dtype=float)
    if xs.size == 0:
        raise InsufficientDataError("Mean of an empty series is undefined")
    return float(np.sum(xs) / xs.size)


def sample_std_dev(xs: Sequence[float], xs_mean: float) -> float:
    """Sample standard deviation (n-1 denominator). NaN when n < 2."""
    xs = np.asarray(xs, dtype=float)
    if xs.size < 2:
        return float('nan')
    return float(np.sqrt(np.sum((xs - xs_mean) ** 2) / (xs.size - 1)))


def covariance(xs_a: Sequence[float], mean_a: float,
               xs_b: Sequence[float], mean_b: float) -> float:
    """
    Sample covariance of two equal-length series around the given means.

    Series of different lengths give 0.0 so a matrix build over jagged inputs
    stays total; build_matrices truncates to a common window first.
    """
    xs_a = np.asarray(xs_a, dtype=float)
    xs_b = np.asarray(xs_b, dtype=float)
    if xs_a.size != xs_b.size:
        return 0.0
    if xs_a.size < 2:
        return float('nan')
    return float(np.dot(xs_a - mean_a, xs_b - mean_b) / (xs_a.size - 1))


def daily_mean_from_monthly_percent(percent: float) -> float:
    """Convert an expected monthly return in percent to a daily mean proxy."""
    return (percent / 100.0) / TRADING_DAYS_PER_MONTH


@dataclass(frozen=True, eq=False)
class AssetStatistics:
    """
    Immutable per-instrument statistics.

    mean_return is what the optimizer uses and may be overridden with a user
    expectation; historical_mean always keeps the value measured from prices
    (see build_matrices(center_on_historical=True)).
    """
    ticker: str
    prices: np.ndarray
    dates: Tuple[str, ...]
    returns: np.ndarray
    mean_return: float
    historical_mean: float
    std_dev: float
    last_price: float

    def with_mean_return(self, daily_mean: float) -> 'AssetStatistics':
        """Copy of these statistics with the optimizer's mean replaced."""
        return replace(self, mean_return=float(daily_mean))

    @property
    def observations(self) -> int:
        return int(self.returns.size)


def compute_asset_statistics(ticker: str, prices: Sequence[float],
                             dates: Sequence) -> AssetStatistics:
    """
    Build AssetStatistics from an ascending price series.

    Parameters:
        ticker: Instrument identifier
        prices: Closing prices, oldest first
        dates: ISO 'YYYY-MM-DD' strings (or dates), same length as prices

    Raises InsufficientDataError for mismatched lengths or fewer than 2 prices.
    """
    if len(prices) != len(dates):
        raise InsufficientDataError(
            f"{ticker}: {len(prices)} prices but {len(dates)} dates"
        )
    if len(prices) < 2:
        raise InsufficientDataError(
            f"{ticker}: need at least 2 prices, got {len(prices)}"
        )

    price_arr = _frozen(prices)
    returns = _frozen(log_returns(price_arr))
    m = mean(returns)
    s = sample_std_dev(returns, m)

    return AssetStatistics(
        ticker=ticker,
        prices=price_arr,
        dates=tuple(str(d) for d in dates),
        returns=returns,
        mean_return=m,
        historical_mean=m,
        std_dev=s,
        last_price=float(price_arr[-1]),
    )


def common_window(stats: Sequence[AssetStatistics]) -> int:
    """Length of the shortest return series; matrices use this trailing window."""
    return min(s.observations for s in stats)


def build_matrices(stats: Sequence[AssetStatistics],
                   center_on_historical: bool = False) -> Tuple[np.ndarray, np.ndarray]:
    """
    Covariance and correlation matrices over the common trailing window.

    Every return series is truncated to its most recent `common_window(stats)`
    observations. Each pair is centered on the instruments' `mean_return`, so
    an expected-return override shifts the risk model too; pass
    center_on_historical=True to center on the means measured from prices
    instead. Correlation divides by the measured standard deviations. Only the
    upper triangle is computed and mirrored, so both matrices are exactly
    symmetric.
    Correlation is not clamped; its diagonal is exactly 1.0.

    Returns: (covariance, correlation) as N x N arrays in input order.
    """
    n = len(stats)
    if n == 0:
        raise InsufficientDataError("No instruments to build matrices from")

    for s in stats:
        if not np.isfinite(s.std_dev) or s.std_dev == 0:
            raise UndefinedStatisticError(
                f"{s.ticker}: standard deviation is {s.std_dev}; correlation is undefined"
            )

    window = common_window(stats)
    truncated = [s.returns[-window:] for s in stats]
    if center_on_historical:
        means = [s.historical_mean for s in stats]
    else:
        means = [s.mean_return for s in stats]

    cov = np.zeros((n, n))
    corr = np.zeros((n, n))
    for i in range(n):
        for j in range(i, n):
            c = covariance(truncated[i], means[i], truncated[j], means[j])
            cov[i, j] = cov[j, i] = c
            if i == j:
                corr[i, i] = 1.0
            else:
                corr[i, j] = corr[j, i] = c / (stats[i].std_dev * stats[j].std_dev)

    logger.debug("Built %dx%d matrices over a %d-day window", n, n, window)
    return cov, corr


def apply_expected_returns(stats: Sequence[AssetStatistics],
                           monthly_percents: dict) -> List[AssetStatistics]:
    """
    Replace each instrument's mean with a user expectation.

    monthly_percents maps ticker -> expected monthly return in percent;
    instruments without an entry are overridden with 0.
    """
    return [
        s.with_mean_return(daily_mean_from_monthly_percent(monthly_percents.get(s.ticker, 0.0)))
        for s in stats
    ]
