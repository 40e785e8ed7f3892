"""Calendar driver: steps a portfolio through every checkpoint of its horizon."""

from __future__ import annotations

import logging
from typing import Mapping

from .historical_data import HistoricalYear
from .instrument import BOND_LIKE, EQUITY_LIKE, INFLATION_LIKE, WAGE_LIKE, Instrument
from .portfolio import Portfolio

logger = logging.getLogger(__name__)


def backtest_rate(instrument: Instrument, year: HistoricalYear) -> float | None:
    """Historical rate an instrument follows for one year, or None to keep its own."""
    if instrument in EQUITY_LIKE:
        return year.equity
    if instrument in BOND_LIKE:
        return year.bond
    if instrument in INFLATION_LIKE or instrument in WAGE_LIKE:
        return year.inflation
    return None


def apply_backtest_year(portfolio: Portfolio, year: HistoricalYear | None) -> None:
    for account in portfolio.accounts:
        account.rate_override = None if year is None else backtest_rate(account.instrument, year)


def run_chronometer(
    portfolio: Portfolio,
    *,
    historical: Mapping[int, HistoricalYear] | None = None,
    backtest_start_year: int | None = None,
) -> None:
    """Run ``portfolio`` from its first to its last checkpoint.

    With ``historical`` and ``backtest_start_year`` set, the first simulated
    year replays ``backtest_start_year`` and each later year the one after it.
    Growth rates fall back to the accounts' own once the table runs out.
    """
    first = portfolio.first_point
    last = portfolio.last_point
    if first is None or last is None:
        logger.warning("nothing to simulate: the portfolio has no accounts")
        return
    if last < first:
        logger.warning("nothing to simulate: last point %s precedes first point %s", last.label(), first.label())
        return

    backtesting = historical is not None and backtest_start_year is not None

    def replay(calendar_year: int) -> None:
        mapped = backtest_start_year + (calendar_year - first.year)
        data = historical.get(mapped)
        if data is None:
            logger.debug("no historical data for %d; using account rates", mapped)
        apply_backtest_year(portfolio, data)

    portfolio.initialize()
    logger.info("simulating %s through %s", first, last)
    if backtesting:
        replay(first.year)

    when = first
    try:
        while True:
            portfolio.apply_checkpoint(when)
            when = when.next_checkpoint()
            if when.day != 1:
                continue
            portfolio.monthly_chron(when)
            if when > last:
                break
            if when.is_new_years_day():
                if backtesting:
                    replay(when.year)
                portfolio.apply_year(when)
                portfolio.yearly_chron(when)
    finally:
        if backtesting:
            apply_backtest_year(portfolio, None)
    portfolio.finalize()
