import copy
import json
from pathlib import Path

from pfsim.account import Account
from pfsim.chronometer import run_chronometer
from pfsim.context import SimulationContext, SimulationSettings
from pfsim.instrument import Instrument
from pfsim.portfolio import Portfolio
from pfsim.transfer import Frequency, FundTransferRule
from pfsim.values import AnnualRate, CalendarPoint


def write_portfolio(tmp_path: Path, data: dict, filename: str = "portfolio.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_portfolio(data: dict) -> dict:
    return copy.deepcopy(data)


def rule(to: str, percent: float = 100.0, *, close: float = 0.0, frequency: Frequency = Frequency.MONTHLY) -> FundTransferRule:
    return FundTransferRule(target_name=to, frequency=frequency, recurring_percent=percent, close_percent=close)


def make_account(
    instrument: Instrument,
    name: str,
    *,
    start: str = "2026-01",
    finish: str = "2026-12",
    value: float = 0.0,
    basis: float = 0.0,
    rate: float = 0.0,
    dividend: float = 0.0,
    tax_rate: float = 0.0,
    term: int = 0,
    self_employed: bool = False,
    transfers: list[FundTransferRule] | None = None,
) -> Account:
    return Account(
        instrument=instrument,
        name=name,
        start=CalendarPoint.parse(start),
        finish=CalendarPoint.parse(finish),
        start_value=value,
        start_basis=basis,
        annual_return_rate=AnnualRate(rate),
        dividend_rate=AnnualRate(dividend),
        annual_tax_rate=AnnualRate(tax_rate),
        months_remaining=term,
        self_employed=self_employed,
        transfers=transfers or [],
    )


def make_portfolio(accounts: list[Account], *, reports: bool = False, **settings) -> Portfolio:
    return Portfolio(accounts, SimulationContext(SimulationSettings(**settings)), reports=reports)


def run_accounts(accounts: list[Account], *, reports: bool = False, **settings) -> Portfolio:
    portfolio = make_portfolio(accounts, reports=reports, **settings)
    run_chronometer(portfolio)
    return portfolio
