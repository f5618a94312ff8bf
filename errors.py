"""
Error taxonomy for the frontier engine.
"""


class PortfolioEngineError(Exception):
    """Base class for engine failures."""


class InsufficientDataError(PortfolioEngineError, ValueError):
    """Fewer than 2 prices, or prices and dates of different lengths."""


class InsufficientHistoryError(PortfolioEngineError):
    """A weighted instrument has no prices covering the backtest window."""

    def __init__(self, ticker, start_date, end_date):
        self.ticker = ticker
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"No price history for {ticker} covering {start_date} to {end_date}"
        )


class DegenerateConstraintError(PortfolioEngineError):
    """
    The constrained sampler accepted no portfolio.

    Not raised by the optimizer itself, which returns a flagged equal-weight
    fallback instead. See SimulationResult.raise_if_degenerate().
    """


class UndefinedStatisticError(PortfolioEngineError, ArithmeticError):
    """A statistic would divide by a zero (or non-finite) standard deviation."""


class UnknownInstrumentWarning(UserWarning):
    """The factor table has no exposures for a ticker; defaults were used."""
