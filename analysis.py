"""
Orchestration: fetch -> statistics -> Monte Carlo -> allocation -> backtest.

Wires a RunConfig through the engine modules and produces an
AnalysisReport plus a plain-text rendering of it.
"""
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from backtester import NEGLIGIBLE_WEIGHT, BacktestOutcome, run_backtest
from data_manager import DataManager, FetchResult
from errors import InsufficientHistoryError
from factor_model import estimate_factor_return
from market_stats import AssetStatistics, apply_expected_returns, build_matrices, compute_asset_statistics
from portfolio_optimizer import PortfolioCandidate, SimulationResult, run_monte_carlo
from run_config import AssetInput, RunConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LotAllocation:
    """Whole-lot position for one instrument"""
    ticker: str
    price: float
    weight: float        # Theoretical weight
    shares: int
    real_value: float


@dataclass
class AnalysisReport:
    config: RunConfig
    stats: List[AssetStatistics]
    result: SimulationResult
    selected: PortfolioCandidate
    allocation: List[LotAllocation]
    remaining_cash: float
    expectations: Dict[str, float]
    is_simulated: bool
    backtest: Optional[BacktestOutcome] = None
    backtest_error: Optional[str] = None


def resolve_expectations(assets: Sequence[AssetInput]) -> Dict[str, float]:
    """Expected monthly return (%) per ticker; factor estimates fill the blanks."""
    expectations = {}
    for asset in assets:
        if asset.expected_monthly_return is None:
            expectations[asset.ticker] = estimate_factor_return(asset.ticker)
            logger.info("Using factor estimate %.2f%% for %s", expectations[asset.ticker], asset.ticker)
        else:
            expectations[asset.ticker] = float(asset.expected_monthly_return)
    return expectations


def build_statistics(fetched: FetchResult) -> List[AssetStatistics]:
    return [compute_asset_statistics(h.ticker, h.prices, h.dates) for h in fetched.histories]


def allocate_standard_lots(stats: Sequence[AssetStatistics], candidate: PortfolioCandidate,
                           total_capital: float,
                           lot_size: int = 100) -> Tuple[List[LotAllocation], float]:
    """
    Round each theoretical position down to whole lots at the last price.

    Flooring every position keeps the invested total at or below the
    theoretical one. Negligible weights are left out.

    Returns: (allocations, remaining_cash)
    """
    rows = []
    for asset, weight in zip(stats, candidate.weights):
        weight = float(weight)
        if abs(weight) <= NEGLIGIBLE_WEIGHT:
            continue
        theoretical_shares = weight * total_capital / asset.last_price
        shares = math.floor(theoretical_shares / lot_size) * lot_size
        rows.append(LotAllocation(ticker=asset.ticker, price=asset.last_price, weight=weight,
                                  shares=shares, real_value=shares * asset.last_price))

    remaining_cash = total_capital - sum(r.real_value for r in rows)
    return rows, remaining_cash


def run_analysis(config: RunConfig, data_manager: Optional[DataManager] = None) -> AnalysisReport:
    """Run the full pipeline for a configuration."""
    settings = config.settings
    if data_manager is None:
        data_manager = DataManager(ticker_suffix=settings.ticker_suffix, seed=settings.seed)

    logger.info("Fetching %d tickers for period %s", len(config.assets), settings.period)
    fetched = data_manager.fetch_all(config.tickers, settings.period)
    stats = build_statistics(fetched)

    expectations = resolve_expectations(config.assets)
    stats = apply_expected_returns(stats, expectations)

    covariance, _ = build_matrices(stats)
    result = run_monte_carlo(stats, covariance, settings.simulation_count,
                             settings.risk_free_rate, seed=settings.seed)
    if result.degenerate:
        logger.warning("Sampler found no feasible portfolio; results use the equal-weight fallback")

    selected = result.select(settings.strategy)
    allocation, remaining_cash = allocate_standard_lots(stats, selected, settings.total_capital,
                                                        settings.lot_size)

    report = AnalysisReport(config=config, stats=stats, result=result, selected=selected,
                            allocation=allocation, remaining_cash=remaining_cash,
                            expectations=expectations, is_simulated=fetched.is_simulated)

    if settings.mode == 'BACKTEST':
        try:
            report.backtest = run_backtest(stats, selected, settings.backtest_date,
                                           settings.total_capital, list(expectations.items()))
        except InsufficientHistoryError as e:
            logger.warning("Backtest unavailable: %s", e)
            report.backtest_error = str(e)

    return report


def _candidate_line(label: str, p: PortfolioCandidate) -> str:
    return (f"  {label:<12} return {p.expected_return * 100:>8.2f}%  "
            f"risk {p.risk * 100:>7.2f}%  sharpe {p.sharpe:>6.2f}  (#{p.id})")


def format_report(report: AnalysisReport) -> str:
    """Format an AnalysisReport as a readable text block"""
    result = report.result
    lines = [
        "=" * 60,
        f"EFFICIENT FRONTIER: {report.config.name}",
        "=" * 60,
    ]
    if report.is_simulated:
        lines.append("⚠ Market data is SIMULATED for at least one ticker")
    lines.extend([
        f"Portfolios accepted: {len(result.portfolios):,} of {result.iterations:,} iterations",
    ])
    if result.degenerate:
        lines.append("⚠ No portfolio satisfied the weight constraints; showing equal weights")

    lines.extend([
        "",
        "EXTREMAL PORTFOLIOS",
        _candidate_line("Min Risk", result.min_risk_portfolio),
        _candidate_line("Max Sharpe", result.max_sharpe_portfolio),
        _candidate_line("Max Return", result.max_return_portfolio),
        "",
        f"ALLOCATION ({report.config.settings.strategy})",
    ])
    for row in report.allocation:
        lines.append(f"  {row.ticker:<8} {row.weight * 100:>7.1f}%  {row.shares:>8,} sh "
                     f"@ {row.price:>9.2f} = {row.real_value:>13,.2f}")
    lines.append(f"  Remaining cash: {report.remaining_cash:,.2f}")

    if report.backtest is not None:
        bt = report.backtest
        lines.extend([
            "",
            f"BACKTEST {bt.start_date} -> {bt.end_date}",
        ])
        for a in bt.asset_performance:
            lines.append(f"  {a.ticker:<8} {a.start_price:>9.2f} -> {a.end_price:>9.2f}  "
                         f"realized {a.percent:>7.2f}%  expected {a.expected_percent:>6.2f}%  "
                         f"P/L {a.contribution:>12,.2f}")
        lines.extend([
            f"  Profit: {bt.profit:,.2f} ({bt.profit_percent:.2f}%)",
            f"  Expected: {bt.expected_percent:.2f}%  Delta: {bt.delta_percent:+.2f} pp",
        ])
    elif report.backtest_error:
        lines.extend(["", f"BACKTEST FAILED: {report.backtest_error}"])

    lines.append("=" * 60)
    return "\n".join(lines)
