"""
Example configuration - five B3 blue chips, max Sharpe, with a backtest.
"""

from run_config import RunConfig, AssetInput, OptimizationSettings

config = RunConfig(
    name="B3 Blue Chips",

    assets=[
        AssetInput('PETR4', expected_monthly_return=2.5),
        AssetInput('VALE3', expected_monthly_return=1.8),
        AssetInput('ITUB4', expected_monthly_return=1.2),
        AssetInput('BBDC4', expected_monthly_return=1.1),
        AssetInput('ABEV3'),  # No expectation: factor model estimate
    ],

    settings=OptimizationSettings(
        period='1y',
        risk_free_rate=0.1075,
        simulation_count=2000,
        total_capital=100000,
        strategy='MAX_SHARPE',
        # mode='BACKTEST',
        # backtest_date='2024-01-02',
    ),
)
