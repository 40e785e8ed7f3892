"""Simulation orchestration."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math

from .chronometer import run_chronometer
from .historical_data import HISTORICAL_ANNUAL_RETURNS
from .portfolio import Portfolio
from .schema import PortfolioFile, build_portfolio
from .totals import PeriodReport

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AnnualSummary:
    year: int
    income: float
    taxes: float
    expenses: float
    net_flow: float
    net_worth_end: float


@dataclass(slots=True)
class NetWorthPercentiles:
    year: int
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float


@dataclass(slots=True)
class SimulationResult:
    mode: str
    annual: list[AnnualSummary]
    insolvency_years: list[int]
    scenario_count: int = 1
    success_rate: float | None = None
    net_worth_percentiles: list[NetWorthPercentiles] | None = None
    start_years: list[int] = field(default_factory=list)
    yearly_reports: list[PeriodReport] = field(default_factory=list)
    final_balances: dict[str, float] = field(default_factory=dict)
    reconciliation_issues: list[str] = field(default_factory=list)


def _build_annual_summary(portfolio: Portfolio) -> tuple[list[AnnualSummary], list[int]]:
    annual: list[AnnualSummary] = []
    insolvency_years: list[int] = []
    for report, year_end in zip(portfolio.yearly_reports, portfolio.year_ends):
        totals = report.totals
        expenses = -(totals.expense.amount + totals.debt_service() + totals.property_taxes.amount)
        annual.append(
            AnnualSummary(
                year=year_end.year,
                income=report.total_income,
                taxes=report.total_taxes,
                expenses=expenses,
                net_flow=report.cash_flow,
                net_worth_end=year_end.net_worth,
            )
        )
        if year_end.liquid < 0:
            insolvency_years.append(year_end.year)
    return annual, insolvency_years


def _percentile(values: list[float], pct: float) -> float:
    ordered = sorted(values)
    if not ordered:
        return 0.0
    if len(ordered) == 1:
        return ordered[0]
    position = (len(ordered) - 1) * pct
    low = int(math.floor(position))
    high = int(math.ceil(position))
    if low == high:
        return ordered[low]
    weight = position - low
    return (ordered[low] * (1.0 - weight)) + (ordered[high] * weight)


def _aggregate_summaries(
    scenario_annual: list[list[AnnualSummary]],
    scenario_insolvency: list[list[int]],
    mode: str,
) -> SimulationResult:
    scenario_count = len(scenario_annual)
    if scenario_count == 0:
        return SimulationResult(
            mode=mode,
            annual=[],
            insolvency_years=[],
            scenario_count=0,
            success_rate=0.0,
            net_worth_percentiles=[],
        )

    years = [row.year for row in scenario_annual[0]]
    aggregated: list[AnnualSummary] = []
    percentiles: list[NetWorthPercentiles] = []
    for idx, year in enumerate(years):
        rows = [annual[idx] for annual in scenario_annual]
        net_worths = [row.net_worth_end for row in rows]
        aggregated.append(
            AnnualSummary(
                year=year,
                income=sum(row.income for row in rows) / scenario_count,
                taxes=sum(row.taxes for row in rows) / scenario_count,
                expenses=sum(row.expenses for row in rows) / scenario_count,
                net_flow=sum(row.net_flow for row in rows) / scenario_count,
                net_worth_end=sum(net_worths) / scenario_count,
            )
        )
        percentiles.append(
            NetWorthPercentiles(
                year=year,
                p10=_percentile(net_worths, 0.10),
                p25=_percentile(net_worths, 0.25),
                p50=_percentile(net_worths, 0.50),
                p75=_percentile(net_worths, 0.75),
                p90=_percentile(net_worths, 0.90),
            )
        )

    insolvency_years = sorted({year for years in scenario_insolvency for year in years})
    success_count = sum(1 for years in scenario_insolvency if not years)
    return SimulationResult(
        mode=mode,
        annual=aggregated,
        insolvency_years=insolvency_years,
        scenario_count=scenario_count,
        success_rate=success_count / scenario_count,
        net_worth_percentiles=percentiles,
    )


def _rolling_start_years(portfolio: Portfolio, start_year: int, end_year: int) -> list[int]:
    first, last = portfolio.first_point, portfolio.last_point
    if first is None or last is None:
        return []
    span = last.year - first.year + 1
    available = sorted(year for year in HISTORICAL_ANNUAL_RETURNS if start_year <= year <= end_year)
    if not available:
        raise ValueError("historical settings produced an empty year range")
    if len(available) < span:
        raise ValueError("historical settings do not have enough years for rolling periods")
    return available[: len(available) - span + 1]


def run_portfolio(portfolio_file: PortfolioFile, *, backtest_start_year: int | None = None) -> Portfolio:
    """Build and run one fresh portfolio with reports collected."""
    portfolio = build_portfolio(portfolio_file.accounts, portfolio_file.settings.to_settings(), reports=True)
    if backtest_start_year is None:
        run_chronometer(portfolio)
    else:
        run_chronometer(portfolio, historical=HISTORICAL_ANNUAL_RETURNS, backtest_start_year=backtest_start_year)
    return portfolio


def run_simulation(portfolio_file: PortfolioFile, mode_override: str | None = None) -> SimulationResult:
    run_settings = portfolio_file.settings.simulation
    mode = mode_override or run_settings.mode

    if mode == "deterministic":
        portfolio = run_portfolio(portfolio_file, backtest_start_year=run_settings.backtest_start_year)
        annual, insolvency_years = _build_annual_summary(portfolio)
        return SimulationResult(
            mode=mode,
            annual=annual,
            insolvency_years=insolvency_years,
            scenario_count=1,
            success_rate=1.0 if not insolvency_years else 0.0,
            net_worth_percentiles=[],
            start_years=[] if run_settings.backtest_start_year is None else [run_settings.backtest_start_year],
            yearly_reports=list(portfolio.yearly_reports),
            final_balances={account.name: account.balance.rounded() for account in portfolio.accounts},
            reconciliation_issues=portfolio.reconciliation_issues + portfolio.balance_issues,
        )

    if mode != "historical":
        raise ValueError(f"unsupported simulation mode: {mode}")

    probe = build_portfolio(portfolio_file.accounts, portfolio_file.settings.to_settings())
    historical = run_settings.historical
    start_years = _rolling_start_years(probe, historical.start_year, historical.end_year)

    scenario_annual: list[list[AnnualSummary]] = []
    scenario_insolvency: list[list[int]] = []
    for start_year in start_years:
        portfolio = run_portfolio(portfolio_file, backtest_start_year=start_year)
        annual, insolvency_years = _build_annual_summary(portfolio)
        scenario_annual.append(annual)
        scenario_insolvency.append(insolvency_years)
    logger.info("historical mode: %d rolling windows starting %s", len(start_years), start_years[:1])

    result = _aggregate_summaries(scenario_annual, scenario_insolvency, mode=mode)
    result.start_years = start_years
    return result
