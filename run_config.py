"""
Configuration system - assets, expectations and optimization settings.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Literal, Optional

from factor_model import normalize_ticker, suggest_portfolio
from portfolio_optimizer import Strategy


@dataclass
class AssetInput:
    """
    One instrument to optimize.

    expected_monthly_return is the user's expectation in percent; when None
    the factor model estimate is used.
    """
    ticker: str
    expected_monthly_return: Optional[float] = None

    def __post_init__(self):
        self.ticker = normalize_ticker(self.ticker)
        if not self.ticker:
            raise ValueError("ticker must not be empty")


@dataclass
class OptimizationSettings:
    period: Literal['1y', '3y', '5y'] = '1y'
    risk_free_rate: float = 0.1075      # Annual, approx. Selic
    simulation_count: int = 2000
    total_capital: float = 100000
    strategy: str = Strategy.MAX_SHARPE.value
    mode: Literal['INVESTMENT', 'BACKTEST'] = 'INVESTMENT'
    backtest_date: Optional[str] = None  # YYYY-MM-DD, required in BACKTEST mode
    seed: Optional[int] = None
    ticker_suffix: str = '.SA'
    lot_size: int = 100

    def __post_init__(self):
        if self.period not in ('1y', '3y', '5y'):
            raise ValueError(f"period must be 1y, 3y or 5y, got {self.period!r}")
        if self.simulation_count < 1:
            raise ValueError("simulation_count must be at least 1")
        if self.total_capital <= 0:
            raise ValueError("total_capital must be positive")
        if self.lot_size < 1:
            raise ValueError("lot_size must be at least 1")
        self.strategy = Strategy(self.strategy.upper()).value
        if self.mode not in ('INVESTMENT', 'BACKTEST'):
            raise ValueError(f"mode must be INVESTMENT or BACKTEST, got {self.mode!r}")
        if self.mode == 'BACKTEST':
            if not self.backtest_date:
                raise ValueError("backtest_date is required in BACKTEST mode")
            date.fromisoformat(self.backtest_date)


@dataclass
class RunConfig:
    name: str
    assets: List[AssetInput]
    settings: OptimizationSettings = field(default_factory=OptimizationSettings)

    def __post_init__(self):
        if len(self.assets) < 2:
            raise ValueError("Need at least 2 assets for optimization")
        tickers = [a.ticker for a in self.assets]
        if len(set(tickers)) != len(tickers):
            raise ValueError(f"Duplicate tickers in {tickers}")

    @property
    def tickers(self) -> List[str]:
        return [a.ticker for a in self.assets]

    @classmethod
    def from_suggestions(cls, market: Optional[str] = None, limit: int = 10,
                         settings: Optional[OptimizationSettings] = None) -> 'RunConfig':
        """Config built from the factor model's top-ranked instruments."""
        assets = [AssetInput(t, er) for t, er in suggest_portfolio(market, limit=limit)]
        return cls(name=f"Factor suggestions ({market or 'ALL'})", assets=assets,
                   settings=settings or OptimizationSettings())


# Helper function to load config from a Python file
def load_config_from_file(filepath: str) -> RunConfig:
    """
    Load a RunConfig from a Python file.

    The file should define a variable called 'config' that is a RunConfig instance.

    Example file content:
        from run_config import RunConfig, AssetInput, OptimizationSettings

        config = RunConfig(
            name="My Config",
            assets=[AssetInput('PETR4', 2.5), AssetInput('VALE3')],
        )
    """
    import importlib.util
    from pathlib import Path

    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    spec = importlib.util.spec_from_file_location("user_config", filepath)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    if not hasattr(module, 'config'):
        raise ValueError(f"Config file {filepath} must define a 'config' variable")

    config = module.config
    if not isinstance(config, RunConfig):
        raise ValueError(f"'config' must be a RunConfig instance, got {type(config)}")

    return config
