"""
Main script - Monte Carlo efficient frontier for a configured asset list.
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from analysis import format_report, run_analysis
from data_manager import DataManager
from errors import PortfolioEngineError
from factor_model import suggest_portfolio
from run_config import RunConfig, load_config_from_file


def find_config_file(specified_path: str = None) -> Path:
    if specified_path:
        path = Path(specified_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {specified_path}")
        return path
    if Path('config/my_portfolio.py').exists():
        return Path('config/my_portfolio.py')
    if Path('config/example_config.py').exists():
        return Path('config/example_config.py')
    raise FileNotFoundError("No config file found.")


def print_suggestions(market):
    print("\n" + "=" * 60)
    print(f"FACTOR MODEL SUGGESTIONS ({market or 'ALL'})")
    print("=" * 60)
    for rank, (ticker, expected) in enumerate(suggest_portfolio(market), start=1):
        print(f"  {rank:>2}. {ticker:<8} {expected:>6.2f}% / month")


def build_parser():
    parser = argparse.ArgumentParser(description='Monte Carlo Efficient Frontier')
    parser.add_argument('config', nargs='?')
    parser.add_argument('--suggest', nargs='?', const='ALL', metavar='MARKET',
                        help='Print factor-model suggestions and exit')
    parser.add_argument('--from-suggestions', nargs='?', const='ALL', metavar='MARKET',
                        help='Optimize the suggested instruments instead of a config file')
    parser.add_argument('--offline', action='store_true',
                        help='Use synthetic prices only (no downloads)')
    parser.add_argument('--iterations', type=int, help='Override simulation_count')
    parser.add_argument('--seed', type=int, help='Seed for sampling and synthetic data')
    parser.add_argument('-v', '--verbose', action='store_true')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.suggest:
        print_suggestions(args.suggest)
        return 0

    try:
        if args.from_suggestions:
            config = RunConfig.from_suggestions(args.from_suggestions)
        else:
            config_path = find_config_file(args.config)
            print(f"✓ Loading configuration from: {config_path}")
            config = load_config_from_file(str(config_path))
    except (FileNotFoundError, ValueError) as e:
        print(f"\n✗ Error loading config: {e}")
        return 1

    overrides = {}
    if args.iterations is not None:
        overrides['simulation_count'] = args.iterations
    if args.seed is not None:
        overrides['seed'] = args.seed
    try:
        # replace() re-runs OptimizationSettings validation
        config.settings = dataclasses.replace(config.settings, **overrides)
    except ValueError as e:
        print(f"\n✗ Invalid override: {e}")
        return 1
    settings = config.settings

    data_manager = DataManager(ticker_suffix=settings.ticker_suffix, offline=args.offline,
                               seed=settings.seed)

    try:
        report = run_analysis(config, data_manager)
    except PortfolioEngineError as e:
        print(f"\n✗ Analysis failed: {e}")
        return 1

    print(format_report(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
