"""
30-day forward backtest of a chosen allocation.

Replays a portfolio's weights against each instrument's own price history,
from the first trading day on/after the start date to the first trading day
on/after start + 30 calendar days.
"""
import logging
from bisect import bisect_left
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from errors import InsufficientHistoryError
from factor_model import normalize_ticker
from market_stats import AssetStatistics
from portfolio_optimizer import PortfolioCandidate

logger = logging.getLogger(__name__)

BACKTEST_DAYS = 30
NEGLIGIBLE_WEIGHT = 0.001


@dataclass(frozen=True)
class AssetPerformance:
    ticker: str
    start_price: float
    end_price: float
    percent: float            # Realized return (%)
    expected_percent: float   # User expectation (%)
    weight: float
    contribution: float       # Profit/loss in currency


@dataclass(frozen=True)
class BacktestOutcome:
    start_date: str
    end_date: str
    start_value: float
    end_value: float
    profit: float
    profit_percent: float
    allocated_value: float = 0.0  # Sum of capital actually assigned to instruments
    asset_performance: List[AssetPerformance] = field(default_factory=list)

    @property
    def expected_percent(self) -> float:
        """Weight-averaged user expectation (%) across the backtested instruments."""
        return sum(a.weight * a.expected_percent for a in self.asset_performance)

    @property
    def delta_percent(self) -> float:
        """Realized minus expected portfolio return, in percentage points."""
        return self.profit_percent - self.expected_percent

    @property
    def total_weight(self) -> float:
        return sum(a.weight for a in self.asset_performance)


def end_date_for(start_date: str, days: int = BACKTEST_DAYS) -> str:
    """ISO date `days` calendar days after start_date."""
    return (date.fromisoformat(start_date) + timedelta(days=days)).isoformat()


def first_index_on_or_after(dates: Sequence[str], target: str) -> Optional[int]:
    """Index of the first ISO date >= target in an ascending sequence, or None."""
    idx = bisect_left(dates, target)
    return idx if idx < len(dates) else None


def run_backtest(stats: Sequence[AssetStatistics], candidate: PortfolioCandidate,
                 start_date: str, total_capital: float,
                 user_expectations: Sequence[Tuple[str, float]] = ()) -> BacktestOutcome:
    """
    Realized performance of `candidate` over the 30 days after start_date.

    Parameters:
        stats: Instruments in the candidate's weight order
        candidate: Portfolio whose weights are replayed
        start_date: ISO 'YYYY-MM-DD'
        total_capital: Capital the weights apply to; profit % is relative to it
        user_expectations: (ticker, expected monthly return %) pairs; tickers
            are matched after normalization, missing ones count as 0

    Raises InsufficientHistoryError when an instrument with a non-negligible
    weight has no price on/after the start or end date. Instruments with
    |weight| <= 0.001 are skipped instead.
    """
    if total_capital <= 0:
        raise ValueError(f"total_capital must be positive, got {total_capital}")
    if len(candidate.weights) != len(stats):
        raise ValueError(
            f"Portfolio has {len(candidate.weights)} weights for {len(stats)} assets"
        )

    end_date = end_date_for(start_date)
    expectations = {normalize_ticker(t): pct for t, pct in user_expectations}

    performance = []
    end_value = 0.0
    start_value = 0.0

    for asset, weight in zip(stats, candidate.weights):
        weight = float(weight)
        start_idx = first_index_on_or_after(asset.dates, start_date)
        end_idx = first_index_on_or_after(asset.dates, end_date)

        if (start_idx is None or end_idx is None
                or start_idx >= len(asset.prices) or end_idx >= len(asset.prices)):
            if abs(weight) > NEGLIGIBLE_WEIGHT:
                raise InsufficientHistoryError(asset.ticker, start_date, end_date)
            logger.debug("Skipping %s: no history for window and weight %.4f", asset.ticker, weight)
            continue

        start_price = float(asset.prices[start_idx])
        end_price = float(asset.prices[end_idx])

        allocated = total_capital * weight
        price_return = (end_price - start_price) / start_price
        pnl = allocated * price_return

        start_value += allocated
        end_value += allocated + pnl

        performance.append(AssetPerformance(
            ticker=asset.ticker,
            start_price=start_price,
            end_price=end_price,
            percent=price_return * 100,
            expected_percent=expectations.get(normalize_ticker(asset.ticker), 0.0),
            weight=weight,
            contribution=pnl,
        ))

    profit = end_value - total_capital
    profit_percent = profit * 100 / total_capital
    logger.info("Backtest %s -> %s: profit %.2f (%.2f%%)", start_date, end_date,
                profit, profit_percent)

    return BacktestOutcome(
        start_date=start_date,
        end_date=end_date,
        start_value=total_capital,
        end_value=end_value,
        profit=profit,
        profit_percent=profit_percent,
        allocated_value=start_value,
        asset_performance=performance,
    )
