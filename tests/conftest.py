"""
Pytest fixtures for frontier engine testing.
Provides deterministic price series with known statistics.
"""
import pytest
import numpy as np
import pandas as pd
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from market_stats import compute_asset_statistics


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")


def iso_dates(start: str, periods: int) -> list:
    """Consecutive calendar days as ISO strings."""
    return [d.date().isoformat() for d in pd.date_range(start=start, periods=periods, freq='D')]


def random_prices(rng: np.random.Generator, n_days: int, daily_mean=0.0005,
                  daily_vol=0.015, start_price=100.0) -> np.ndarray:
    """Geometric random walk of n_days prices."""
    shocks = rng.normal(daily_mean, daily_vol, n_days - 1)
    return start_price * np.exp(np.concatenate([[0.0], np.cumsum(shocks)]))


def make_universe(n_assets: int, n_days: int = 120, seed: int = 42,
                  start: str = '2023-01-02') -> list:
    """n_assets AssetStatistics with independent random walks on a shared calendar."""
    rng = np.random.default_rng(seed)
    dates = iso_dates(start, n_days)
    return [
        compute_asset_statistics(f"A{i}", random_prices(rng, n_days, daily_vol=0.01 + 0.002 * i), dates)
        for i in range(n_assets)
    ]


@pytest.fixture
def scenario_prices():
    """
    The two-instrument scenario:
    A: 100, 102, 101, 105
    B: 50, 49, 51, 52
    """
    return {
        'A': [100.0, 102.0, 101.0, 105.0],
        'B': [50.0, 49.0, 51.0, 52.0],
        'dates': ['2024-01-02', '2024-01-03', '2024-01-04', '2024-01-05'],
    }


@pytest.fixture
def scenario_stats(scenario_prices):
    dates = scenario_prices['dates']
    return [
        compute_asset_statistics('A', scenario_prices['A'], dates),
        compute_asset_statistics('B', scenario_prices['B'], dates),
    ]


@pytest.fixture
def three_assets():
    """Three independent random walks, 120 days."""
    return make_universe(3)


@pytest.fixture
def five_assets():
    return make_universe(5, n_days=250, seed=7)
