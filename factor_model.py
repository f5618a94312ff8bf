"""
Fama-French 5 factor heuristics.

A static table of factor loadings (market, size, value, profitability,
investment) for the B3 universe, used to estimate expected monthly returns
and to rank instruments by return per unit of volatility.
"""
import logging
import warnings
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Optional, Tuple

from errors import UnknownInstrumentWarning

logger = logging.getLogger(__name__)

PROVIDER_SUFFIX = '.SA'


@dataclass(frozen=True)
class FactorExposure:
    """Factor loadings for one instrument"""
    mkt: float
    smb: float
    hml: float
    rmw: float
    cma: float
    avg_vol: float  # Estimated monthly volatility (%), used for ranking
    market: str = 'B3'
    sector: Optional[str] = None


@dataclass(frozen=True)
class FactorPremia:
    """Monthly factor premia in percent"""
    rf: float = 0.37
    mkt_rf: float = 0.46
    smb: float = 0.17
    hml: float = 0.33
    rmw: float = 0.25
    cma: float = 0.25


PREMIA = FactorPremia()

DEFAULT_EXPOSURE = FactorExposure(mkt=1.0, smb=0.1, hml=0.0, rmw=0.0, cma=0.0,
                                  avg_vol=8.0, market='UNKNOWN')

# ticker: (mkt, smb, hml, rmw, cma, avg_vol), grouped by sector
_B3_LOADINGS = {
    'financials': {
        'ITUB4': (0.9, -0.4, 0.5, 0.3, 0.1, 5.5),
        'BBDC4': (1.0, -0.4, 0.5, 0.2, 0.1, 6.0),
        'BBAS3': (1.1, -0.3, 0.6, 0.1, 0.2, 6.5),
        'SANB11': (0.9, -0.3, 0.4, 0.2, 0.1, 5.8),
        'BPAC11': (1.4, 0.2, 0.1, 0.4, 0.0, 8.5),
        'ABCB4': (0.8, 0.1, 0.4, 0.3, 0.1, 5.0),
        'BRSR6': (1.0, 0.0, 0.5, 0.1, 0.2, 6.2),
        'B3SA3': (1.1, -0.1, 0.0, 0.5, 0.1, 6.2),
        'CIEL3': (1.0, 0.1, 0.1, 0.2, 0.1, 7.5),
        'IRBR3': (1.5, 0.2, 0.1, -0.2, -0.1, 12.0),
        'BBSE3': (0.7, -0.2, 0.2, 0.5, 0.2, 4.8),
        'CXSE3': (0.7, -0.1, 0.3, 0.4, 0.1, 4.5),
        'PSSA3': (0.8, -0.1, 0.1, 0.3, 0.1, 5.2),
        'BMGB4': (1.2, 0.3, 0.4, -0.1, 0.1, 8.0),
        'CLSA3': (1.3, 0.4, 0.0, 0.1, 0.0, 9.0),
    },
    'energy': {
        'PETR4': (1.3, -0.3, 0.6, 0.4, 0.4, 8.0),
        'PETR3': (1.3, -0.3, 0.6, 0.4, 0.4, 8.1),
        'PRIO3': (1.4, 0.1, 0.2, 0.3, 0.2, 9.0),
        'CSAN3': (1.1, 0.0, 0.1, 0.2, 0.1, 7.0),
        'VBBR3': (1.0, 0.1, 0.2, 0.1, 0.1, 6.8),
        'UGPA3': (0.9, 0.0, 0.2, 0.2, 0.1, 6.5),
        'RRRP3': (1.6, 0.3, 0.1, -0.1, 0.2, 10.0),
        'RECV3': (1.5, 0.4, 0.1, 0.1, 0.1, 9.5),
        'ENAT3': (1.2, 0.3, 0.3, 0.1, 0.1, 8.2),
        'RAIZ4': (1.0, 0.1, 0.1, 0.1, 0.1, 6.5),
        'RPAI3': (1.3, 0.4, 0.1, 0.0, 0.1, 8.5),
        'LUPA3': (1.4, 0.5, 0.2, -0.1, 0.0, 11.0),
        'AURE3': (1.1, 0.1, 0.1, 0.2, 0.1, 7.5),
        'MEGA3': (1.0, 0.1, 0.1, 0.3, 0.1, 6.0),
        'VAMO3': (1.3, 0.2, 0.1, 0.3, 0.0, 8.5),
    },
    'materials': {
        'VALE3': (1.1, -0.3, 0.4, 0.5, 0.3, 7.5),
        'CSNA3': (1.5, 0.0, 0.5, 0.1, 0.3, 10.0),
        'GGBR4': (1.2, -0.1, 0.4, 0.2, 0.2, 7.8),
        'GOAU4': (1.2, -0.1, 0.4, 0.2, 0.2, 7.7),
        'USIM5': (1.6, 0.1, 0.5, 0.0, 0.3, 10.5),
        'SUZB3': (0.8, -0.2, 0.1, 0.4, 0.1, 6.5),
        'KLBN11': (0.8, -0.1, 0.1, 0.3, 0.1, 6.2),
        'DXCO3': (1.1, 0.2, 0.2, 0.1, 0.1, 8.0),
        'UNIP6': (0.7, 0.2, 0.1, 0.6, 0.2, 5.5),
        'CMIN3': (1.3, 0.2, 0.3, 0.3, 0.2, 9.0),
        'CBAV3': (1.4, 0.3, 0.2, 0.1, 0.1, 9.5),
    },
    'utilities': {
        'ELET3': (1.1, -0.1, 0.4, 0.0, 0.2, 7.0),
        'ELET6': (1.1, -0.1, 0.4, 0.0, 0.2, 7.0),
        'EGIE3': (0.6, -0.2, 0.2, 0.4, 0.3, 4.0),
        'TAEE11': (0.4, -0.3, 0.2, 0.3, 0.1, 3.5),
        'TRPL4': (0.5, -0.2, 0.3, 0.2, 0.2, 4.0),
        'CPLE6': (0.7, -0.1, 0.2, 0.3, 0.2, 5.0),
        'CPFE3': (0.6, -0.1, 0.2, 0.4, 0.2, 4.5),
        'CMIG4': (0.9, -0.1, 0.3, 0.2, 0.2, 6.0),
        'EQTL3': (0.8, 0.0, 0.1, 0.5, 0.1, 5.5),
        'NEOE3': (0.7, 0.0, 0.2, 0.3, 0.1, 5.2),
        'ALUP11': (0.5, 0.0, 0.2, 0.4, 0.2, 4.0),
        'SBSP3': (0.9, -0.1, 0.3, 0.2, 0.1, 6.5),
        'CSMG3': (0.8, 0.1, 0.2, 0.3, 0.1, 5.8),
        'SAPR11': (0.7, 0.0, 0.2, 0.4, 0.2, 4.8),
        'AESB3': (0.9, 0.1, 0.1, 0.2, 0.1, 6.0),
    },
    'consumer': {
        'MGLU3': (1.8, 0.3, -0.3, -0.2, -0.2, 15.0),
        'LREN3': (1.1, 0.0, 0.1, 0.2, 0.1, 8.5),
        'VIIA3': (2.0, 0.4, -0.2, -0.4, -0.3, 18.0),
        'ABEV3': (0.7, -0.5, 0.1, 0.6, 0.2, 4.5),
        'RADL3': (0.6, -0.1, -0.2, 0.7, 0.3, 5.0),
        'ASAI3': (0.8, 0.1, 0.0, 0.3, 0.1, 6.0),
        'CRFB3': (0.8, 0.0, 0.1, 0.2, 0.1, 6.2),
        'NTCO3': (1.3, 0.1, -0.1, 0.1, 0.0, 9.0),
        'ARZZ3': (1.2, 0.2, 0.0, 0.4, 0.1, 8.0),
        'SOMA3': (1.3, 0.3, -0.1, 0.2, 0.0, 9.5),
        'AMER3': (2.5, 0.5, -0.5, -0.8, -0.5, 25.0),
        'PETZ3': (1.4, 0.3, -0.2, 0.1, 0.0, 10.0),
        'SMTO3': (1.1, 0.2, 0.1, 0.3, 0.1, 7.5),
        'MDIA3': (0.9, 0.1, 0.1, 0.2, 0.1, 6.5),
        'ALPA4': (1.4, 0.2, -0.1, 0.1, 0.0, 9.0),
        'GRND3': (0.8, 0.1, 0.1, 0.3, 0.1, 5.5),
    },
    'agro': {
        'SLCE3': (1.1, 0.1, 0.2, 0.4, 0.2, 7.5),
        'AGRO3': (0.9, 0.2, 0.3, 0.3, 0.2, 6.8),
        'KEPL3': (1.2, 0.3, 0.2, 0.4, 0.1, 8.5),
        'SOJA3': (1.0, 0.2, 0.2, 0.2, 0.1, 7.0),
        'TTEN3': (1.3, 0.4, 0.1, 0.2, 0.1, 9.0),
    },
    'real_estate': {
        'CYRE3': (1.4, 0.2, 0.1, 0.2, 0.1, 9.0),
        'EZTC3': (1.2, 0.2, 0.1, 0.3, 0.2, 8.5),
        'MRVE3': (1.5, 0.3, 0.1, 0.1, 0.1, 10.0),
        'JHSF3': (1.3, 0.2, 0.1, 0.2, 0.1, 9.2),
        'TEND3': (1.4, 0.3, 0.0, 0.1, 0.1, 9.5),
        'EVEN3': (1.5, 0.4, 0.1, 0.0, 0.0, 10.5),
        'MULT3': (1.0, 0.1, 0.2, 0.3, 0.0, 7.0),
        'IGTI11': (1.1, 0.1, 0.2, 0.3, 0.0, 7.2),
        'ALSO3': (1.2, 0.2, 0.1, 0.1, 0.0, 8.0),
        'HBRE3': (1.4, 0.4, 0.1, -0.1, 0.0, 10.0),
    },
    'health': {
        'HYPE3': (0.7, 0.0, -0.1, 0.4, 0.1, 5.8),
        'FLRY3': (0.8, 0.1, 0.0, 0.4, 0.1, 5.5),
        'HAPV3': (1.4, 0.2, -0.2, 0.0, -0.1, 10.0),
        'ODPV3': (0.7, -0.1, -0.1, 0.6, 0.2, 5.0),
        'RDOR3': (1.0, 0.1, 0.0, 0.3, 0.1, 7.0),
        'QUAL3': (1.6, 0.4, -0.1, -0.2, -0.1, 14.0),
    },
    'tech_telecom': {
        'WEGE3': (0.8, -0.2, -0.3, 0.7, 0.2, 5.5),
        'TOTS3': (0.9, 0.0, -0.2, 0.4, 0.1, 6.8),
        'LWSA3': (2.1, 0.5, -0.3, -0.5, -0.4, 16.0),
        'CASH3': (2.4, 0.6, -0.4, -0.6, -0.5, 20.0),
        'VIVT3': (0.6, -0.3, 0.3, 0.4, 0.2, 4.5),
        'TIMS3': (0.7, -0.2, 0.3, 0.3, 0.2, 5.0),
        'INTB3': (1.3, 0.2, -0.2, 0.4, 0.0, 8.5),
        'MLAS3': (1.5, 0.3, -0.1, 0.1, 0.0, 10.0),
    },
    'industrials': {
        'EMBR3': (1.2, 0.1, 0.2, 0.2, 0.1, 8.0),
        'RENT3': (1.1, 0.1, 0.1, 0.3, 0.1, 8.0),
        'RAIL3': (1.0, 0.1, 0.1, 0.1, 0.1, 7.5),
        'CCRO3': (0.9, 0.0, 0.2, 0.2, 0.1, 6.5),
        'ECOR3': (1.0, 0.1, 0.2, 0.1, 0.1, 7.0),
        'STBP3': (1.1, 0.2, 0.1, 0.2, 0.1, 7.8),
    },
}


def _build_table():
    table = {}
    for sector, rows in _B3_LOADINGS.items():
        for ticker, (mkt, smb, hml, rmw, cma, avg_vol) in rows.items():
            table[ticker] = FactorExposure(mkt, smb, hml, rmw, cma, avg_vol,
                                           market='B3', sector=sector)
    return MappingProxyType(table)


# Read-only after import; insertion order is the ranking tie-break.
FACTOR_TABLE = _build_table()


def normalize_ticker(ticker: str) -> str:
    """'petr4.sa ' -> 'PETR4'"""
    t = ticker.strip().upper()
    if t.endswith(PROVIDER_SUFFIX):
        t = t[:-len(PROVIDER_SUFFIX)]
    return t


def expected_return(exposure: FactorExposure, premia: FactorPremia = PREMIA) -> float:
    """Unrounded monthly expected return (%) implied by the loadings."""
    return (premia.rf
            + exposure.mkt * premia.mkt_rf
            + exposure.smb * premia.smb
            + exposure.hml * premia.hml
            + exposure.rmw * premia.rmw
            + exposure.cma * premia.cma)


def lookup_exposure(ticker: str) -> FactorExposure:
    """Table exposure for a ticker, or the default profile with a warning."""
    key = normalize_ticker(ticker)
    exposure = FACTOR_TABLE.get(key)
    if exposure is None:
        logger.warning("No factor exposures for %s; using default profile", key)
        warnings.warn(f"No factor exposures for {key}; using default profile",
                      UnknownInstrumentWarning, stacklevel=3)
        return DEFAULT_EXPOSURE
    return exposure


def estimate_factor_return(ticker: str) -> float:
    """Expected monthly return in percent, rounded to 2 decimals."""
    return round(expected_return(lookup_exposure(ticker)), 2)


def suggest_portfolio(market: Optional[str] = None, sector: Optional[str] = None,
                      limit: int = 10) -> List[Tuple[str, float]]:
    """
    Rank the factor table by expected return per unit of volatility.

    Parameters:
        market: Market tag to keep (None or 'ALL' keeps every instrument)
        sector: Optional sector name to keep
        limit: Number of suggestions to return

    Returns [(ticker, expected_monthly_return_percent), ...], best first.
    Equal scores keep table order.
    """
    candidates = []
    for ticker, exposure in FACTOR_TABLE.items():
        if market and market.upper() != 'ALL' and exposure.market != market.upper():
            continue
        if sector and exposure.sector != sector.lower():
            continue
        er = expected_return(exposure)
        candidates.append((ticker, round(er, 2), er / exposure.avg_vol))

    candidates.sort(key=lambda c: c[2], reverse=True)
    return [(ticker, er) for ticker, er, _ in candidates[:limit]]
