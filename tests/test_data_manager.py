"""
Tests for DataManager and the synthetic price generator.
Downloads are mocked; no network access is needed.
"""
import pytest
import numpy as np
import pandas as pd
from datetime import date
from unittest.mock import patch

from data_manager import (
    PERIOD_RANGES,
    SYNTHETIC_DAYS,
    DataManager,
    FetchResult,
    PriceHistory,
    generate_random_walk,
    synthetic_history,
    ticker_hash,
)


def provider_frame(prices, start='2024-01-02', column='Adj Close'):
    index = pd.date_range(start=start, periods=len(prices), freq='B')
    return pd.DataFrame({column: prices, 'Volume': [1000] * len(prices)}, index=index)


# ============================================================
# Synthetic generator
# ============================================================

class TestSyntheticPrices:
    def test_ticker_hash(self):
        assert ticker_hash('AB') == ord('A') + ord('B')

    def test_length_and_end_date(self):
        end = date(2024, 6, 28)
        prices, dates = generate_random_walk(100, 50.0, 0.1, 0.2, end_date=end,
                                             rng=np.random.default_rng(0))
        assert len(prices) == len(dates) == 101
        assert prices[0] == 50.0
        assert dates[-1] == '2024-06-28'
        assert dates == sorted(dates)

    def test_price_floor(self):
        """Extreme volatility would go negative without the 0.01 floor."""
        prices, _ = generate_random_walk(500, 1.0, -5.0, 20.0, end_date=date(2024, 1, 1),
                                         rng=np.random.default_rng(1))
        assert min(prices) >= 0.01

    def test_parameters_derive_from_ticker(self):
        """Start price is 50 + hash % 150."""
        history = synthetic_history('PETR4', 30, end_date=date(2024, 1, 31),
                                    rng=np.random.default_rng(0))
        assert history.is_simulated
        assert history.ticker == 'PETR4'
        assert history.prices[0] == 50 + ticker_hash('PETR4') % 150

    def test_seeded_series_reproducible(self):
        a = synthetic_history('VALE3', 200, date(2024, 1, 31), np.random.default_rng(9))
        b = synthetic_history('VALE3', 200, date(2024, 1, 31), np.random.default_rng(9))
        assert a == b


# ============================================================
# DataManager
# ============================================================

class TestDataManager:
    @pytest.fixture
    def dm(self):
        return DataManager(retries=3, delay=0.0, pause=0.0, seed=1, end_date=date(2024, 6, 28))

    def test_provider_symbol(self, dm):
        assert dm.provider_symbol('petr4') == 'PETR4.SA'
        assert dm.provider_symbol('PETR4.SA') == 'PETR4.SA'
        assert dm.provider_symbol('BRK-B') == 'BRK-B'
        assert DataManager(ticker_suffix='').provider_symbol('AAPL') == 'AAPL'

    @patch('data_manager.yf.Ticker')
    def test_get_prices(self, mock_ticker, dm):
        mock_ticker.return_value.history.return_value = provider_frame([10.0, 10.5, np.nan, 11.0])

        history = dm.get_prices('petr4.sa', '3y')

        mock_ticker.assert_called_once_with('PETR4.SA')
        mock_ticker.return_value.history.assert_called_once_with(
            period=PERIOD_RANGES['3y'], interval='1d', auto_adjust=False)
        assert history.ticker == 'PETR4'
        assert history.prices == (10.0, 10.5, 11.0)
        assert history.dates == ('2024-01-02', '2024-01-03', '2024-01-05')
        assert not history.is_simulated

    @patch('data_manager.yf.Ticker')
    def test_get_prices_falls_back_to_close(self, mock_ticker, dm):
        mock_ticker.return_value.history.return_value = provider_frame([1.0, 2.0], column='Close')
        assert dm.get_prices('VALE3').prices == (1.0, 2.0)

    @patch('data_manager.time.sleep')
    @patch('data_manager.yf.Ticker')
    def test_retry_then_success(self, mock_ticker, mock_sleep, dm):
        mock_ticker.return_value.history.side_effect = [ConnectionError("rate limited"),
                                                         provider_frame([1.0, 2.0, 3.0])]
        history = dm.get_prices('ITUB4')
        assert len(history.prices) == 3
        assert mock_sleep.call_count == 1

    @patch('data_manager.time.sleep')
    @patch('data_manager.yf.Ticker')
    def test_empty_download_raises(self, mock_ticker, mock_sleep, dm):
        mock_ticker.return_value.history.return_value = pd.DataFrame()
        with pytest.raises(ValueError):
            dm.get_prices('ITUB4')
        assert mock_ticker.return_value.history.call_count == 3

    @patch('data_manager.yf.Ticker')
    def test_single_price_raises(self, mock_ticker, dm):
        mock_ticker.return_value.history.return_value = provider_frame([10.0])
        with pytest.raises(ValueError):
            dm.get_prices('ITUB4')

    @patch('data_manager.time.sleep')
    @patch('data_manager.yf.Ticker')
    def test_fetch_all_falls_back_to_synthetic(self, mock_ticker, mock_sleep, dm):
        good = provider_frame([10.0, 11.0, 12.0])
        mock_ticker.return_value.history.side_effect = [
            good,
            ConnectionError("down"), ConnectionError("down"), ConnectionError("down"),
        ]

        result = dm.fetch_all(['PETR4', 'VALE3'], '1y')

        assert [h.ticker for h in result.histories] == ['PETR4', 'VALE3']
        assert not result.histories[0].is_simulated
        assert result.histories[1].is_simulated
        assert len(result.histories[1].prices) == SYNTHETIC_DAYS['1y'] + 1
        assert result.is_simulated
        assert result.simulated_tickers == ['VALE3']

    @patch('data_manager.yf.Ticker')
    def test_offline_never_downloads(self, mock_ticker):
        dm = DataManager(offline=True, seed=3, end_date=date(2024, 6, 28))
        result = dm.fetch_all(['petr4', 'VALE3.SA'], '3y')

        mock_ticker.assert_not_called()
        assert [h.ticker for h in result.histories] == ['PETR4', 'VALE3']
        assert all(h.is_simulated for h in result.histories)
        assert all(len(h.prices) == SYNTHETIC_DAYS['3y'] + 1 for h in result.histories)
        assert result.histories[0].dates[-1] == '2024-06-28'

    def test_offline_seed_reproducible(self):
        a = DataManager(offline=True, seed=5, end_date=date(2024, 1, 1)).fetch_all(['A1', 'B2'])
        b = DataManager(offline=True, seed=5, end_date=date(2024, 1, 1)).fetch_all(['A1', 'B2'])
        assert a.histories == b.histories

    @patch('data_manager.time.sleep')
    @patch('data_manager.yf.Ticker')
    def test_pause_between_tickers(self, mock_ticker, mock_sleep):
        mock_ticker.return_value.history.return_value = provider_frame([1.0, 2.0])
        dm = DataManager(pause=1.5)
        dm.fetch_all(['A', 'B', 'C'])
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(1.5)


class TestFetchResult:
    def test_provenance(self):
        real = PriceHistory('A', (1.0, 2.0), ('2024-01-01', '2024-01-02'))
        fake = PriceHistory('B', (1.0, 2.0), ('2024-01-01', '2024-01-02'), is_simulated=True)
        assert not FetchResult([real]).is_simulated
        assert FetchResult([real, fake]).is_simulated
        assert FetchResult([real, fake]).simulated_tickers == ['B']
