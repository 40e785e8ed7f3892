"""Historical annual market data for backtests.

Annual S&P 500 total return, 10-year Treasury yield and CPI inflation,
1970-2025, stored in percent as published and exposed as decimals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True, slots=True)
class HistoricalYear:
    equity: float
    bond: float
    inflation: float


# year: (S&P 500 %, 10-year Treasury %, CPI %)
_PERCENT_TABLE: Final[dict[int, tuple[float, float, float]]] = {
    1970: (4.01, 7.79, 5.8),
    1971: (14.31, 6.24, 4.3),
    1972: (18.98, 5.95, 3.3),
    1973: (-14.66, 6.46, 6.2),
    1974: (-26.47, 6.99, 11.1),
    1975: (37.20, 7.50, 9.1),
    1976: (23.84, 7.74, 5.7),
    1977: (-7.18, 7.21, 6.5),
    1978: (6.56, 7.96, 7.6),
    1979: (18.44, 9.10, 11.3),
    1980: (32.42, 10.80, 13.5),
    1981: (-4.91, 12.57, 10.3),
    1982: (21.55, 14.59, 6.1),
    1983: (22.56, 10.46, 3.2),
    1984: (6.27, 11.67, 4.3),
    1985: (31.73, 11.38, 3.5),
    1986: (18.67, 9.19, 1.9),
    1987: (5.25, 7.08, 3.7),
    1988: (16.61, 8.67, 4.1),
    1989: (31.69, 9.09, 4.8),
    1990: (-3.10, 8.21, 5.4),
    1991: (30.47, 8.09, 4.2),
    1992: (7.62, 7.03, 3.0),
    1993: (10.08, 6.60, 3.0),
    1994: (1.32, 5.75, 2.6),
    1995: (37.58, 7.78, 2.8),
    1996: (22.96, 5.65, 2.9),
    1997: (33.36, 6.58, 2.3),
    1998: (28.58, 5.54, 1.6),
    1999: (21.04, 4.72, 2.2),
    2000: (-9.10, 6.66, 3.4),
    2001: (-11.89, 5.16, 2.8),
    2002: (-22.10, 5.04, 1.6),
    2003: (28.68, 4.05, 2.3),
    2004: (10.88, 4.15, 2.7),
    2005: (4.91, 4.22, 3.4),
    2006: (15.79, 4.42, 3.2),
    2007: (5.49, 4.76, 2.9),
    2008: (-37.00, 3.74, 3.8),
    2009: (26.46, 2.52, -0.4),
    2010: (15.06, 3.73, 1.6),
    2011: (2.11, 3.39, 3.2),
    2012: (16.00, 1.97, 2.1),
    2013: (32.39, 1.91, 1.5),
    2014: (13.69, 2.86, 1.6),
    2015: (1.38, 1.88, 0.1),
    2016: (11.96, 2.09, 1.3),
    2017: (21.83, 2.43, 2.1),
    2018: (-4.38, 2.58, 2.4),
    2019: (31.49, 2.71, 1.8),
    2020: (18.40, 1.76, 1.2),
    2021: (28.71, 1.08, 4.7),
    2022: (-18.11, 1.76, 8.0),
    2023: (26.29, 3.53, 4.1),
    2024: (25.02, 4.06, 2.9),
    2025: (17.88, 4.63, 2.6),
}


def _build_dataset() -> dict[int, HistoricalYear]:
    return {
        year: HistoricalYear(equity=equity / 100.0, bond=bond / 100.0, inflation=inflation / 100.0)
        for year, (equity, bond, inflation) in _PERCENT_TABLE.items()
    }


HISTORICAL_ANNUAL_RETURNS: Final[dict[int, HistoricalYear]] = _build_dataset()
FIRST_HISTORICAL_YEAR: Final[int] = min(HISTORICAL_ANNUAL_RETURNS)
LAST_HISTORICAL_YEAR: Final[int] = max(HISTORICAL_ANNUAL_RETURNS)


def historical_year(year: int) -> HistoricalYear | None:
    return HISTORICAL_ANNUAL_RETURNS.get(year)
