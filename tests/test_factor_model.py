"""
Tests for the Fama-French factor heuristics and suggestion ranking.
"""
import dataclasses

import pytest

from errors import UnknownInstrumentWarning
from factor_model import (
    DEFAULT_EXPOSURE,
    FACTOR_TABLE,
    PREMIA,
    estimate_factor_return,
    expected_return,
    lookup_exposure,
    normalize_ticker,
    suggest_portfolio,
)


class TestNormalization:
    @pytest.mark.parametrize("raw", ['PETR4', 'petr4', ' PETR4.SA ', 'petr4.sa'])
    def test_variants(self, raw):
        assert normalize_ticker(raw) == 'PETR4'

    def test_other_suffixes_untouched(self):
        assert normalize_ticker('brk-b') == 'BRK-B'


class TestEstimateFactorReturn:
    def test_known_ticker(self):
        """ITUB4: 0.37 + 0.9*0.46 - 0.4*0.17 + 0.5*0.33 + 0.3*0.25 + 0.1*0.25 = 0.981"""
        assert expected_return(FACTOR_TABLE['ITUB4']) == pytest.approx(0.981)
        assert estimate_factor_return('ITUB4') == 0.98

    def test_suffix_and_case_are_ignored(self):
        assert estimate_factor_return('itub4.sa') == estimate_factor_return('ITUB4')

    def test_unknown_ticker_uses_default_profile(self):
        """Default: rf + 1.0 * mkt_rf + 0.1 * smb = 0.847"""
        with pytest.warns(UnknownInstrumentWarning):
            first = estimate_factor_return('ZZZZ9')
        with pytest.warns(UnknownInstrumentWarning):
            second = estimate_factor_return('ZZZZ9')
        assert first == second == 0.85
        assert expected_return(DEFAULT_EXPOSURE) == pytest.approx(0.847)

    def test_unknown_lookup_returns_default(self):
        with pytest.warns(UnknownInstrumentWarning):
            assert lookup_exposure('NOPE3') is DEFAULT_EXPOSURE

    def test_rounded_to_two_decimals(self):
        for ticker in FACTOR_TABLE:
            value = estimate_factor_return(ticker)
            assert value == round(value, 2)

    def test_premia_defaults(self):
        assert (PREMIA.rf, PREMIA.mkt_rf, PREMIA.smb, PREMIA.hml, PREMIA.rmw, PREMIA.cma) == \
            (0.37, 0.46, 0.17, 0.33, 0.25, 0.25)


class TestFactorTable:
    def test_read_only(self):
        with pytest.raises(TypeError):
            FACTOR_TABLE['NEW3'] = DEFAULT_EXPOSURE

    def test_exposure_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            FACTOR_TABLE['PETR4'].mkt = 2.0

    def test_entries_tagged(self):
        assert len(FACTOR_TABLE) > 50
        for ticker, exposure in FACTOR_TABLE.items():
            assert exposure.market == 'B3', ticker
            assert exposure.sector, ticker
            assert exposure.avg_vol > 0, ticker


class TestSuggestPortfolio:
    def test_top_ten_by_return_per_volatility(self):
        suggestions = suggest_portfolio()
        assert len(suggestions) == 10

        scores = [expected_return(FACTOR_TABLE[t]) / FACTOR_TABLE[t].avg_vol for t, _ in suggestions]
        assert scores == sorted(scores, reverse=True)

        best_overall = max(expected_return(e) / e.avg_vol for e in FACTOR_TABLE.values())
        assert scores[0] == best_overall

    def test_reports_rounded_expected_return(self):
        for ticker, er in suggest_portfolio():
            assert er == estimate_factor_return(ticker)

    def test_all_is_no_filter(self):
        assert suggest_portfolio('ALL') == suggest_portfolio(None) == suggest_portfolio('all')

    def test_market_filter(self):
        assert suggest_portfolio('US') == []
        assert all(FACTOR_TABLE[t].market == 'B3' for t, _ in suggest_portfolio('B3'))

    def test_sector_filter(self):
        suggestions = suggest_portfolio(sector='utilities', limit=100)
        assert suggestions
        assert all(FACTOR_TABLE[t].sector == 'utilities' for t, _ in suggestions)

    def test_limit(self):
        assert len(suggest_portfolio(limit=3)) == 3
        assert len(suggest_portfolio(limit=1000)) == len(FACTOR_TABLE)

    def test_ties_keep_table_order(self):
        """ELET3 and ELET6 share loadings; ELET3 comes first in the table."""
        ranked = [t for t, _ in suggest_portfolio(limit=1000)]
        assert ranked.index('ELET3') < ranked.index('ELET6')
