"""
Monte Carlo efficient frontier search.

Random long/short portfolios are drawn by rejection sampling under a box
constraint (no position above 50% of capital) and an exclusion zone (no
position below 10% of capital in magnitude). The accepted population
approximates the efficient frontier; the minimum-risk, maximum-Sharpe and
maximum-return portfolios are picked from it.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from errors import DegenerateConstraintError, InsufficientDataError, UndefinedStatisticError
from market_stats import AssetStatistics, build_matrices

logger = logging.getLogger(__name__)

TRADING_DAYS = 252
MAX_ATTEMPTS = 200       # Rejection-sampling attempts per iteration
MAX_WEIGHT = 0.5         # |w| <= 50% of capital, long or short
MIN_WEIGHT = 0.1         # |w| >= 10%: no near-zero positions
# Upper bound on floats drawn at once (iterations x attempts x assets)
BATCH_ELEMENTS = 2_000_000
FALLBACK_ID = 'fallback'


class Strategy(str, Enum):
    MAX_SHARPE = 'MAX_SHARPE'
    MIN_RISK = 'MIN_RISK'
    MAX_RETURN = 'MAX_RETURN'


@dataclass(frozen=True, eq=False)
class PortfolioCandidate:
    """One sampled portfolio. Return and risk are annualized."""
    id: str
    weights: np.ndarray
    expected_return: float
    risk: float
    sharpe: float
    is_fallback: bool = False

    def weight_map(self, tickers: Sequence[str]) -> dict:
        return dict(zip(tickers, (float(w) for w in self.weights)))


@dataclass
class ExtremalPortfolios:
    """
    Running min-risk / max-Sharpe / max-return picks.

    Comparisons are strict, so the first candidate seen wins a tie. Folding
    batches with merge() in iteration order gives the same picks as a single
    sequential pass.
    """
    min_risk: Optional[PortfolioCandidate] = None
    max_sharpe: Optional[PortfolioCandidate] = None
    max_return: Optional[PortfolioCandidate] = None

    def update(self, candidate: PortfolioCandidate) -> 'ExtremalPortfolios':
        if self.min_risk is None or candidate.risk < self.min_risk.risk:
            self.min_risk = candidate
        if self.max_sharpe is None or candidate.sharpe > self.max_sharpe.sharpe:
            self.max_sharpe = candidate
        if self.max_return is None or candidate.expected_return > self.max_return.expected_return:
            self.max_return = candidate
        return self

    def merge(self, later: 'ExtremalPortfolios') -> 'ExtremalPortfolios':
        """Combine with picks from iterations that came after this one's."""
        merged = ExtremalPortfolios(self.min_risk, self.max_sharpe, self.max_return)
        if later.min_risk is not None and (
                merged.min_risk is None or later.min_risk.risk < merged.min_risk.risk):
            merged.min_risk = later.min_risk
        if later.max_sharpe is not None and (
                merged.max_sharpe is None or later.max_sharpe.sharpe > merged.max_sharpe.sharpe):
            merged.max_sharpe = later.max_sharpe
        if later.max_return is not None and (
                merged.max_return is None
                or later.max_return.expected_return > merged.max_return.expected_return):
            merged.max_return = later.max_return
        return merged

    @property
    def is_empty(self) -> bool:
        return self.min_risk is None


def select_extremes(candidates: Sequence[PortfolioCandidate]) -> ExtremalPortfolios:
    """Fold a population into its three extremal portfolios."""
    picks = ExtremalPortfolios()
    for candidate in candidates:
        picks.update(candidate)
    return picks


@dataclass
class SimulationResult:
    portfolios: List[PortfolioCandidate]
    min_risk_portfolio: PortfolioCandidate
    max_sharpe_portfolio: PortfolioCandidate
    max_return_portfolio: PortfolioCandidate
    covariance: np.ndarray
    correlation: np.ndarray
    tickers: Tuple[str, ...] = ()
    iterations: int = 0
    skipped_iterations: int = 0
    dropped_non_finite: int = 0
    degenerate: bool = False

    def select(self, strategy) -> PortfolioCandidate:
        """Portfolio matching a Strategy (or its name)."""
        strategy = Strategy(strategy)
        if strategy is Strategy.MIN_RISK:
            return self.min_risk_portfolio
        if strategy is Strategy.MAX_RETURN:
            return self.max_return_portfolio
        return self.max_sharpe_portfolio

    def raise_if_degenerate(self):
        if self.degenerate:
            raise DegenerateConstraintError(
                f"No portfolio of {len(self.tickers)} assets satisfied "
                f"{MIN_WEIGHT:.0%} <= |w| <= {MAX_WEIGHT:.0%} in {self.iterations} iterations"
            )

    def to_frame(self) -> pd.DataFrame:
        """Population as a DataFrame: id, return, risk, sharpe, one column per weight."""
        rows = []
        for p in self.portfolios:
            row = {'id': p.id, 'return': p.expected_return, 'risk': p.risk, 'sharpe': p.sharpe}
            row.update(p.weight_map(self.tickers))
            rows.append(row)
        return pd.DataFrame(rows, columns=['id', 'return', 'risk', 'sharpe', *self.tickers])


def _batch_size(n_assets: int) -> int:
    return max(1, BATCH_ELEMENTS // (MAX_ATTEMPTS * n_assets))


def sample_weights(n_assets: int, n_iterations: int,
                   rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    """
    Rejection-sample weight vectors for a batch of iterations.

    Each iteration draws up to MAX_ATTEMPTS vectors of uniforms in
    [-0.5, 0.5], normalizes each by its sum, and keeps the first one whose
    weights all satisfy MIN_WEIGHT <= |w| <= MAX_WEIGHT.

    Returns:
        weights: (n_iterations, n_assets) chosen vectors (undefined rows where invalid)
        valid: (n_iterations,) bool, False where every attempt was rejected
    """
    raw = rng.uniform(-0.5, 0.5, size=(n_iterations, MAX_ATTEMPTS, n_assets))
    with np.errstate(divide='ignore', invalid='ignore'):
        normalized = raw / raw.sum(axis=2, keepdims=True)
    magnitude = np.abs(normalized)
    # NaN (zero-sum draw) fails both comparisons and is rejected
    ok = np.all((magnitude <= MAX_WEIGHT) & (magnitude >= MIN_WEIGHT), axis=2)

    valid = ok.any(axis=1)
    first_ok = np.argmax(ok, axis=1)
    weights = normalized[np.arange(n_iterations), first_ok]
    return weights, valid


def portfolio_metrics(weights: np.ndarray, mean_returns: np.ndarray,
                      covariance: np.ndarray, risk_free_rate: float):
    """
    Annualized return, risk and Sharpe ratio for one or many weight vectors.

    weights may be (n_assets,) or (n_portfolios, n_assets).
    """
    weights = np.atleast_2d(weights)
    annual_return = (weights @ mean_returns) * TRADING_DAYS
    variance = np.einsum('ij,jk,ik->i', weights, covariance, weights)
    with np.errstate(divide='ignore', invalid='ignore'):
        annual_risk = np.sqrt(variance * TRADING_DAYS)
        sharpe = (annual_return - risk_free_rate) / annual_risk
    return annual_return, annual_risk, sharpe


def equal_weight_fallback(n_assets: int) -> PortfolioCandidate:
    """Placeholder used when the sampler accepts nothing; metrics are zero."""
    weights = np.full(n_assets, 1.0 / n_assets)
    weights.setflags(write=False)
    return PortfolioCandidate(id=FALLBACK_ID, weights=weights, expected_return=0.0,
                              risk=0.0, sharpe=0.0, is_fallback=True)


def run_monte_carlo(stats: Sequence[AssetStatistics], covariance, iterations: int,
                    risk_free_rate: float, seed: Optional[int] = None,
                    rng: Optional[np.random.Generator] = None) -> SimulationResult:
    """
    Sample `iterations` constrained portfolios and pick the extremal ones.

    Parameters:
        stats: Instruments in weight order; mean_return is the daily mean used
        covariance: N x N daily covariance matrix (see market_stats.build_matrices)
        iterations: Number of sampling iterations (skipped ones add nothing)
        risk_free_rate: Annual risk-free rate for the Sharpe ratio
        seed / rng: Randomness source; rng wins when both are given

    When no portfolio is accepted the result is flagged `degenerate` and all
    three picks are the same equal-weight fallback candidate.
    """
    n_assets = len(stats)
    if n_assets == 0:
        raise InsufficientDataError("Monte Carlo needs at least one instrument")

    covariance = np.asarray(covariance, dtype=float)
    if covariance.shape != (n_assets, n_assets):
        raise ValueError(f"Covariance shape {covariance.shape} does not match {n_assets} assets")
    if not np.all(np.isfinite(covariance)):
        raise UndefinedStatisticError("Covariance matrix contains non-finite values")

    mean_returns = np.array([s.mean_return for s in stats], dtype=float)
    if not np.all(np.isfinite(mean_returns)):
        raise UndefinedStatisticError("Mean returns contain non-finite values")

    if rng is None:
        rng = np.random.default_rng(seed)

    _, correlation = build_matrices(stats)
    tickers = tuple(s.ticker for s in stats)

    portfolios: List[PortfolioCandidate] = []
    picks = ExtremalPortfolios()
    skipped = 0
    dropped = 0
    batch_size = _batch_size(n_assets)

    for batch_start in range(0, iterations, batch_size):
        current_batch = min(batch_size, iterations - batch_start)
        weights, valid = sample_weights(n_assets, current_batch, rng)
        skipped += int(current_batch - valid.sum())
        if not valid.any():
            continue

        accepted = weights[valid]
        iteration_ids = np.flatnonzero(valid) + batch_start
        returns, risks, sharpes = portfolio_metrics(accepted, mean_returns, covariance,
                                                    risk_free_rate)

        batch_picks = ExtremalPortfolios()
        for k, iteration in enumerate(iteration_ids):
            if not (np.isfinite(returns[k]) and np.isfinite(risks[k]) and np.isfinite(sharpes[k])):
                dropped += 1
                continue
            w = accepted[k].copy()
            w.setflags(write=False)
            candidate = PortfolioCandidate(id=str(iteration), weights=w,
                                           expected_return=float(returns[k]),
                                           risk=float(risks[k]), sharpe=float(sharpes[k]))
            portfolios.append(candidate)
            batch_picks.update(candidate)
        picks = picks.merge(batch_picks)

    if dropped:
        logger.warning("Dropped %d portfolios with non-finite return, risk or Sharpe", dropped)

    degenerate = picks.is_empty
    if degenerate:
        logger.warning(
            "No feasible portfolio for %d assets in %d iterations; using equal-weight fallback",
            n_assets, iterations)
        fallback = equal_weight_fallback(n_assets)
        picks = ExtremalPortfolios(fallback, fallback, fallback)
    else:
        logger.info("Accepted %d of %d portfolios (%d iterations exhausted %d attempts)",
                    len(portfolios), iterations, skipped, MAX_ATTEMPTS)

    return SimulationResult(
        portfolios=portfolios,
        min_risk_portfolio=picks.min_risk,
        max_sharpe_portfolio=picks.max_sharpe,
        max_return_portfolio=picks.max_return,
        covariance=covariance,
        correlation=correlation,
        tickers=tickers,
        iterations=iterations,
        skipped_iterations=skipped,
        dropped_non_finite=dropped,
        degenerate=degenerate,
    )
