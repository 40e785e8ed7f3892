import pytest

from pfsim.chronometer import run_chronometer
from pfsim.instrument import Instrument
from pfsim.metrics import Metric
from pfsim.portfolio import Portfolio
from pfsim.transfer import Frequency

from tests.helpers import make_account, make_portfolio, rule, run_accounts


def _balance(portfolio, name):
    return portfolio.registry[name].balance.amount


def test_accounts_are_sorted_into_pipeline_order():
    portfolio = make_portfolio(
        [
            make_account(Instrument.MONTHLY_EXPENSE, "Rent"),
            make_account(Instrument.CASH, "Cash"),
            make_account(Instrument.SALARY, "Salary"),
            make_account(Instrument.HOME, "Home"),
        ]
    )
    assert [account.name for account in portfolio.accounts] == ["Home", "Salary", "Cash", "Rent"]


def test_first_and_last_points_span_all_accounts():
    portfolio = make_portfolio(
        [
            make_account(Instrument.CASH, "Cash", start="2026-03", finish="2027-06"),
            make_account(Instrument.SAVINGS, "Savings", start="2026-01", finish="2026-12"),
        ]
    )
    assert portfolio.first_point.label() == "2026-01-01"
    assert portfolio.last_point.label() == "2027-06-30"
    assert Portfolio([]).first_point is None


def test_salary_flows_to_cash_net_of_fica_and_income_tax():
    portfolio = run_accounts(
        [
            make_account(Instrument.SALARY, "Salary", value=5000.0, rate=0.03),
            make_account(Instrument.CASH, "Cash"),
        ],
        inflation_rate=0.0,
    )
    # The raise would land on 2027-01-01, which is past the horizon.
    assert portfolio.lifetime.total_income() == pytest.approx(60_000)
    assert portfolio.lifetime.fica.amount == pytest.approx(-4_590)
    assert portfolio.lifetime.income_tax.amount == pytest.approx(-5_020)
    assert _balance(portfolio, "Cash") == pytest.approx(60_000 - 4_590 - 5_020)
    assert portfolio.reconciliation_issues == []
    assert portfolio.balance_issues == []


def test_capital_account_compounds_monthly():
    portfolio = run_accounts([make_account(Instrument.TAXABLE_BROKERAGE, "Brokerage", value=100_000.0, rate=0.06)])
    brokerage = portfolio.registry["Brokerage"]
    assert brokerage.balance.amount == pytest.approx(100_000 * 1.005**12)
    assert brokerage.metrics.total(Metric.GROWTH) == pytest.approx(brokerage.balance.amount - 100_000)
    assert portfolio.lifetime.asset_appreciation.amount == pytest.approx(brokerage.balance.amount - 100_000)


def test_short_term_closing_gain_is_taxed_as_ordinary_income():
    portfolio = run_accounts(
        [
            make_account(Instrument.TAXABLE_BROKERAGE, "Brokerage", finish="2026-06", value=10_000.0, basis=4_000.0),
            make_account(Instrument.CASH, "Cash"),
        ],
        filing_status="single",
        inflation_rate=0.0,
    )
    brokerage = portfolio.registry["Brokerage"]
    assert brokerage.is_closed
    assert brokerage.balance.amount == 0.0
    assert portfolio.lifetime.short_term_capital_gains.amount == pytest.approx(6_000)
    assert portfolio.lifetime.income_tax.amount == pytest.approx(-600)
    assert _balance(portfolio, "Cash") == pytest.approx(9_400)
    assert portfolio.reconciliation_issues == []


def test_long_term_closing_gain_uses_gains_brackets():
    portfolio = run_accounts(
        [
            make_account(Instrument.TAXABLE_BROKERAGE, "Brokerage", finish="2027-01", value=200_000.0, basis=100_000.0),
            make_account(Instrument.CASH, "Cash", finish="2027-12"),
        ],
        filing_status="single",
        inflation_rate=0.0,
    )
    assert portfolio.lifetime.long_term_capital_gains.amount == pytest.approx(100_000)
    assert portfolio.lifetime.long_term_capital_gains_tax.amount == pytest.approx(-7_380)
    assert _balance(portfolio, "Cash") == pytest.approx(192_620)
    assert portfolio.reconciliation_issues == []


def test_home_sale_applies_exclusion_after_two_years():
    portfolio = run_accounts(
        [
            make_account(Instrument.HOME, "Home", finish="2028-06", value=600_000.0, basis=300_000.0),
            make_account(Instrument.CASH, "Cash", finish="2028-12"),
        ],
        filing_status="single",
        inflation_rate=0.0,
    )
    assert portfolio.lifetime.long_term_capital_gains.amount == pytest.approx(50_000)
    assert portfolio.lifetime.long_term_capital_gains_tax.amount == 0.0
    assert _balance(portfolio, "Cash") == pytest.approx(600_000)


def test_closing_transfer_follows_close_percent():
    portfolio = run_accounts(
        [
            make_account(
                Instrument.SAVINGS,
                "Savings",
                finish="2026-06",
                value=1_000.0,
                transfers=[rule("Cash", 0.0, close=25.0)],
            ),
            make_account(Instrument.CASH, "Cash"),
            make_account(Instrument.TAXABLE_BROKERAGE, "Brokerage"),
        ]
    )
    # 25% by rule, the remainder to the first expensable account.
    assert _balance(portfolio, "Cash") == pytest.approx(1_000)
    assert _balance(portfolio, "Savings") == 0.0


def test_closing_rule_into_brokerage_carries_basis():
    portfolio = run_accounts(
        [
            make_account(
                Instrument.SAVINGS,
                "Savings",
                finish="2026-06",
                value=50_000.0,
                transfers=[rule("Brokerage", 0.0, close=100.0, frequency=Frequency.NONE)],
            ),
            make_account(Instrument.TAXABLE_BROKERAGE, "Brokerage"),
        ]
    )
    brokerage = portfolio.registry["Brokerage"]
    assert brokerage.balance.amount == pytest.approx(50_000)
    assert brokerage.basis.total_basis == pytest.approx(50_000)
    assert brokerage.basis.unrealized_gain_ratio(brokerage.balance.amount) == pytest.approx(0.0)


def test_mortgage_payments_come_out_of_cash():
    portfolio = run_accounts(
        [
            make_account(Instrument.MORTGAGE, "Mortgage", value=100_000.0, rate=0.06, term=12),
            make_account(Instrument.CASH, "Cash", value=200_000.0),
        ],
        inflation_rate=0.0,
    )
    mortgage = portfolio.registry["Mortgage"]
    payments = mortgage.metrics.history(Metric.MORTGAGE_PAYMENT)
    assert len(payments) == 12
    assert all(payment == pytest.approx(payments[0]) for payment in payments)
    assert mortgage.balance.amount == pytest.approx(0.0, abs=0.01)
    assert _balance(portfolio, "Cash") == pytest.approx(200_000 - 12 * 8_606.64, abs=0.1)
    assert portfolio.lifetime.mortgage_principal.amount == pytest.approx(-100_000, abs=0.01)
    assert portfolio.reconciliation_issues == []


def test_expense_paid_by_transfer_rule():
    portfolio = run_accounts(
        [
            make_account(Instrument.MONTHLY_EXPENSE, "Rent", value=1_000.0, transfers=[rule("Cash")]),
            make_account(Instrument.CASH, "Cash", value=12_000.0),
        ]
    )
    assert _balance(portfolio, "Cash") == pytest.approx(0.0)
    assert portfolio.lifetime.expense.amount == pytest.approx(-12_000)


def test_expense_shortfall_draws_from_taxable_account_first():
    portfolio = run_accounts(
        [
            make_account(Instrument.MONTHLY_EXPENSE, "Rent", finish="2026-01", value=1_000.0),
            make_account(Instrument.CASH, "Cash", finish="2026-01", value=500.0),
            make_account(Instrument.TAXABLE_BROKERAGE, "Brokerage", finish="2026-01", value=10_000.0, basis=10_000.0),
        ]
    )
    assert _balance(portfolio, "Brokerage") == pytest.approx(9_000)
    assert _balance(portfolio, "Cash") == pytest.approx(500)


def test_gross_up_covers_long_term_gains_tax(monkeypatch):
    portfolio = make_portfolio([make_account(Instrument.TAXABLE_BROKERAGE, "Brokerage")])
    portfolio.initialize()
    brokerage = portfolio.registry["Brokerage"]
    brokerage.balance.amount = 10_000.0
    brokerage.basis.reset(5_000.0)
    monkeypatch.setattr(portfolio.tax_table, "marginal_long_term_gains_rate", lambda income: 0.15)
    assert portfolio.gross_up(1_000.0, brokerage) == pytest.approx(1_000.0 / 0.925)


def test_gross_up_guards_non_positive_denominator(monkeypatch):
    portfolio = make_portfolio([make_account(Instrument.TAXABLE_BROKERAGE, "Brokerage")])
    portfolio.initialize()
    brokerage = portfolio.registry["Brokerage"]
    brokerage.balance.amount = 10_000.0
    monkeypatch.setattr(portfolio.tax_table, "marginal_long_term_gains_rate", lambda income: 1.0)
    assert portfolio.gross_up(1_000.0, brokerage) == 1_000.0


def test_401k_contributions_stop_at_the_yearly_limit():
    portfolio = run_accounts(
        [
            make_account(Instrument.SALARY, "Salary", value=10_000.0, transfers=[rule("401k", 50.0)]),
            make_account(Instrument.FOUR_01K, "401k"),
            make_account(Instrument.CASH, "Cash"),
        ],
        start_age=57,
    )
    assert _balance(portfolio, "401k") == pytest.approx(32_500)
    assert portfolio.lifetime.four01k_contribution.amount == pytest.approx(32_500)


def test_roth_contributions_stop_at_the_ira_limit():
    portfolio = run_accounts(
        [
            make_account(Instrument.SALARY, "Salary", value=10_000.0, transfers=[rule("Roth", 20.0)]),
            make_account(Instrument.ROTH_IRA, "Roth"),
            make_account(Instrument.CASH, "Cash"),
        ],
        filing_status="single",
        start_age=57,
    )
    assert _balance(portfolio, "Roth") == pytest.approx(8_600)
    assert portfolio.lifetime.roth_contribution.amount == pytest.approx(8_600)


def test_required_minimum_distributions_move_to_cash():
    portfolio = run_accounts(
        [
            make_account(Instrument.TRADITIONAL_IRA, "IRA", value=100_000.0),
            make_account(Instrument.CASH, "Cash"),
        ],
        start_age=75,
    )
    assert _balance(portfolio, "IRA") == pytest.approx(100_000 - 100_000 / 24.6)
    assert _balance(portfolio, "Cash") == pytest.approx(100_000 / 24.6)
    assert portfolio.lifetime.ira_distribution.amount == pytest.approx(100_000 / 24.6)


def test_no_distributions_before_rmd_age():
    portfolio = run_accounts(
        [
            make_account(Instrument.TRADITIONAL_IRA, "IRA", value=100_000.0),
            make_account(Instrument.CASH, "Cash"),
        ],
        start_age=60,
    )
    assert _balance(portfolio, "IRA") == pytest.approx(100_000)


def test_home_property_tax_is_paid_from_cash():
    portfolio = run_accounts(
        [
            make_account(Instrument.HOME, "Home", value=120_000.0, tax_rate=0.01, transfers=[rule("Cash")]),
            make_account(Instrument.CASH, "Cash", value=5_000.0),
        ],
        inflation_rate=0.0,
    )
    assert portfolio.lifetime.property_taxes.amount == pytest.approx(-1_200)
    assert _balance(portfolio, "Cash") == pytest.approx(3_800)
    assert portfolio.reconciliation_issues == []


def test_reports_cover_each_month_and_year():
    accounts = [
        make_account(Instrument.SALARY, "Salary", value=5000.0),
        make_account(Instrument.CASH, "Cash"),
    ]
    portfolio = run_accounts(accounts, reports=True)
    assert [report.label for report in portfolio.monthly_reports] == [f"2026-{month:02d}" for month in range(1, 13)]
    assert [report.label for report in portfolio.yearly_reports] == ["2026"]
    assert [snapshot.year for snapshot in portfolio.year_ends] == [2026]
    assert portfolio.yearly_reports[0].total_income == pytest.approx(60_000)

    quiet = run_accounts([account.copy() for account in accounts])
    assert quiet.monthly_reports == []
    assert quiet.finish_value() == pytest.approx(portfolio.finish_value())


def test_multi_year_run_rolls_years_and_ages_user():
    portfolio = run_accounts(
        [
            make_account(Instrument.SALARY, "Salary", finish="2027-12", value=5000.0, rate=0.10),
            make_account(Instrument.CASH, "Cash", finish="2027-12"),
        ],
        reports=True,
        start_age=57,
    )
    assert [report.label for report in portfolio.yearly_reports] == ["2026", "2027"]
    assert portfolio.yearly_reports[1].total_income == pytest.approx(66_000)
    assert portfolio.user.age == 58
    assert portfolio.tax_table.year == 2027
    assert len(portfolio.year_reconciliations) == 2


def test_rerun_is_repeatable():
    portfolio = make_portfolio(
        [
            make_account(Instrument.SALARY, "Salary", value=5000.0, transfers=[rule("Brokerage", 20.0)]),
            make_account(Instrument.TAXABLE_BROKERAGE, "Brokerage", rate=0.07),
            make_account(Instrument.CASH, "Cash"),
        ]
    )
    run_chronometer(portfolio)
    first = portfolio.finish_value()
    run_chronometer(portfolio)
    assert portfolio.finish_value() == pytest.approx(first)


def test_over_allocated_transfers_are_scaled(caplog):
    portfolio = make_portfolio(
        [
            make_account(Instrument.SALARY, "Salary", transfers=[rule("Cash", 80.0), rule("Savings", 80.0)]),
            make_account(Instrument.CASH, "Cash"),
            make_account(Instrument.SAVINGS, "Savings"),
        ]
    )
    portfolio.initialize()
    salary = portfolio.registry["Salary"]
    assert [r.recurring_percent for r in salary.transfers] == [pytest.approx(50.0), pytest.approx(50.0)]
    assert "scaled down" in caplog.text


def test_value_helpers():
    portfolio = make_portfolio(
        [
            make_account(Instrument.HOME, "Home", value=300_000.0),
            make_account(Instrument.MORTGAGE, "Mortgage", value=200_000.0, term=360),
            make_account(Instrument.CASH, "Cash", value=10_000.0),
            make_account(Instrument.SALARY, "Salary", value=5_000.0),
        ]
    )
    assert portfolio.start_value() == pytest.approx(110_000)
    copy = portfolio.copy()
    assert copy is not portfolio
    assert [account.name for account in copy.accounts] == [account.name for account in portfolio.accounts]
    assert copy.context is not portfolio.context
