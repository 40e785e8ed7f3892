import pytest

from pfsim.account import AccountRegistry, LifecycleState
from pfsim.cost_basis import CostBasisTracker
from pfsim.instrument import Instrument
from pfsim.metrics import Metric, MetricLedger
from pfsim.results import MemoLabel
from pfsim.values import CalendarPoint

from tests.helpers import make_account, rule


def _open(account, when=CalendarPoint(2026, 1, 1)):
    account.refresh_lifecycle(when)
    account.apply_first_day(when)
    return account


def test_lifecycle_moves_from_before_start_to_active_to_due_for_close():
    account = make_account(Instrument.CASH, "Cash", start="2026-03", finish="2026-04", value=100.0)
    assert not account.refresh_lifecycle(CalendarPoint(2026, 1, 1))
    assert account.state is LifecycleState.BEFORE_START

    assert not account.refresh_lifecycle(CalendarPoint(2026, 3, 1))
    assert account.is_active
    assert account.on_start

    assert not account.refresh_lifecycle(CalendarPoint(2026, 4, 1))
    assert account.on_finish
    assert account.refresh_lifecycle(CalendarPoint(2026, 5, 1))


def test_before_start_balance_is_held_at_zero():
    account = make_account(Instrument.CASH, "Cash", start="2026-03", value=100.0)
    account.refresh_lifecycle(CalendarPoint(2026, 1, 1))
    account.credit(50.0, CalendarPoint(2026, 1, 1))
    account.apply_first_day(CalendarPoint(2026, 1, 1))
    assert account.balance.amount == 0.0


def test_opening_value_signs():
    assert _open(make_account(Instrument.MORTGAGE, "M", value=1000.0, term=12)).balance.amount == -1000.0
    assert _open(make_account(Instrument.MONTHLY_EXPENSE, "E", value=50.0)).balance.amount == -50.0
    assert _open(make_account(Instrument.SALARY, "S", value=5000.0)).balance.amount == 5000.0


def test_opening_resets_basis_for_basis_tracked_accounts():
    account = _open(make_account(Instrument.TAXABLE_BROKERAGE, "B", value=1000.0, basis=400.0))
    assert account.basis.total_basis == 400.0
    assert account.opening_balance == 0.0
    assert account.memos[0].label is MemoLabel.OPENING


def test_close_zeroes_balance_and_ignores_later_credits():
    account = _open(make_account(Instrument.CASH, "Cash", value=100.0))
    when = CalendarPoint(2026, 2, 1)
    account.close(when)
    assert account.is_closed
    assert account.balance.amount == 0.0
    assert account.memos[-1].label is MemoLabel.CLOSING

    result = account.credit(25.0, when)
    assert result.balance_change == 0.0
    assert account.balance.amount == 0.0


def test_flow_account_credit_is_logged_but_not_applied():
    salary = _open(make_account(Instrument.SALARY, "Salary", value=5000.0))
    salary.credit(100.0, CalendarPoint(2026, 1, 1))
    assert salary.balance.amount == 5000.0
    assert salary.memos[-1].applied is False


def test_withdrawal_from_brokerage_realizes_average_cost_gain():
    account = _open(make_account(Instrument.TAXABLE_BROKERAGE, "B", value=1000.0, basis=400.0))
    result = account.debit(500.0, CalendarPoint(2026, 1, 30))
    assert result.realized_gain == pytest.approx(300.0)
    assert account.basis.total_basis == pytest.approx(200.0)
    assert account.metrics.current(Metric.LONG_TERM_CAPITAL_GAIN) == pytest.approx(300.0)


def test_skip_gain_recognition_leaves_basis():
    account = _open(make_account(Instrument.TAXABLE_BROKERAGE, "B", value=1000.0, basis=400.0))
    result = account.debit(500.0, CalendarPoint(2026, 1, 30), skip_gain_recognition=True)
    assert result.realized_gain == 0.0
    assert account.basis.total_basis == 400.0


def test_skip_gain_recognition_still_adds_deposit_basis():
    account = _open(make_account(Instrument.TAXABLE_BROKERAGE, "B", value=1000.0, basis=400.0))
    result = account.credit(500.0, CalendarPoint(2026, 1, 30), skip_gain_recognition=True)
    assert result.realized_gain == 0.0
    assert account.basis.total_basis == 900.0


@pytest.mark.parametrize(
    "instrument,contribution,distribution",
    [
        (Instrument.TRADITIONAL_IRA, Metric.IRA_CONTRIBUTION, Metric.IRA_DISTRIBUTION),
        (Instrument.FOUR_01K, Metric.FOUR_01K_CONTRIBUTION, Metric.FOUR_01K_DISTRIBUTION),
        (Instrument.ROTH_IRA, Metric.ROTH_CONTRIBUTION, Metric.ROTH_DISTRIBUTION),
    ],
)
def test_retirement_accounts_track_contributions_and_distributions(instrument, contribution, distribution):
    account = _open(make_account(instrument, "R", value=1000.0))
    when = CalendarPoint(2026, 1, 30)
    account.credit(200.0, when)
    account.debit(50.0, when)
    assert account.metrics.current(contribution) == 200.0
    assert account.metrics.current(distribution) == 50.0
    assert account.balance.amount == 1150.0


def test_amortization_payment_is_constant_and_pays_off():
    loan = _open(make_account(Instrument.MORTGAGE, "M", value=100000.0, rate=0.06, term=12))
    payments = []
    for month in range(1, 13):
        result = loan.apply_monthly(CalendarPoint(2026, month, 1))
        payments.append(result.payment)
    assert payments[0] == pytest.approx(-8606.64, abs=0.01)
    assert all(payment == pytest.approx(payments[0]) for payment in payments)
    assert loan.balance.amount == pytest.approx(0.0, abs=0.01)
    assert loan.remaining_term == 0
    assert loan.apply_monthly(CalendarPoint(2027, 1, 1)).payment == 0.0


def test_zero_rate_amortization_splits_evenly():
    loan = _open(make_account(Instrument.DEBT, "Car", value=1200.0, term=12))
    result = loan.apply_monthly(CalendarPoint(2026, 1, 1))
    assert result.payment == pytest.approx(-100.0)
    assert result.interest == 0.0


def test_capital_growth_and_taxable_dividend_add_basis():
    account = _open(make_account(Instrument.TAXABLE_BROKERAGE, "B", value=12000.0, rate=0.12, dividend=0.06))
    result = account.apply_monthly(CalendarPoint(2026, 1, 30))
    assert result.growth == pytest.approx(120.0)
    assert result.dividend == pytest.approx(60.0)
    assert result.qualified
    assert account.basis.total_basis == pytest.approx(60.0)
    assert account.balance.amount == pytest.approx(12180.0)


def test_expense_drifts_with_its_rate():
    expense = _open(make_account(Instrument.MONTHLY_EXPENSE, "Rent", value=1200.0, rate=0.12))
    result = expense.apply_monthly(CalendarPoint(2026, 1, 30))
    assert result.expense == -1200.0
    assert expense.balance.amount == pytest.approx(-1212.0)


def test_income_raise_compounds_on_balance():
    salary = _open(make_account(Instrument.SALARY, "Salary", value=5000.0, rate=0.03))
    salary.apply_yearly(CalendarPoint(2027, 1, 1))
    assert salary.balance.amount == pytest.approx(5150.0)
    assert make_account(Instrument.CASH, "Cash").apply_yearly(CalendarPoint(2027, 1, 1)) is None


def test_interest_bearing_accounts_earn_monthly_interest():
    savings = _open(make_account(Instrument.SAVINGS, "Savings", value=12000.0, rate=0.05))
    result = savings.apply_monthly(CalendarPoint(2026, 1, 30))
    assert result.interest == pytest.approx(50.0)


def test_rate_override_replaces_growth_rate():
    account = _open(make_account(Instrument.ROTH_IRA, "Roth", value=1200.0, rate=0.12))
    account.rate_override = -0.12
    result = account.apply_monthly(CalendarPoint(2026, 1, 30))
    assert result.growth == pytest.approx(-12.0)


def test_estimated_tax_accrual_skips_home():
    brokerage = _open(make_account(Instrument.TAXABLE_BROKERAGE, "B", value=12000.0, tax_rate=0.01))
    home = _open(make_account(Instrument.HOME, "Home", value=12000.0, tax_rate=0.01))
    assert brokerage.accrue_estimated_tax(CalendarPoint(2026, 1, 30)) == pytest.approx(10.0)
    assert home.accrue_estimated_tax(CalendarPoint(2026, 1, 30)) == 0.0
    assert home.property_tax_escrow == pytest.approx(10.0)


def test_monthly_chron_snapshots_and_keeps_balance_trail():
    account = _open(make_account(Instrument.ROTH_IRA, "Roth", value=1200.0, rate=0.12))
    account.apply_monthly(CalendarPoint(2026, 1, 30))
    assert account.balance_drift() == pytest.approx(0.0)
    account.monthly_chron()
    assert account.metrics.history(Metric.GROWTH) == [pytest.approx(12.0)]
    assert account.metrics.current(Metric.GROWTH) == 0.0
    assert account.metrics.current(Metric.VALUE) == pytest.approx(1212.0)
    assert account.opening_balance == pytest.approx(1212.0)
    assert list(account.memos_this_month()) == []


def test_initialize_allows_a_rerun():
    account = _open(make_account(Instrument.CASH, "Cash", value=100.0))
    account.credit(50.0, CalendarPoint(2026, 1, 30))
    account.initialize()
    assert account.balance.amount == 0.0
    assert account.memos == []
    assert account.state is LifecycleState.BEFORE_START


def test_copy_is_unbound_and_fresh():
    account = make_account(Instrument.CASH, "Cash", value=100.0, transfers=[rule("Other", 10.0)])
    account.transfers[0].unbind()
    clone = account.copy()
    assert clone.name == "Cash"
    assert clone.transfers[0] is not account.transfers[0]
    assert clone.transfers[0].recurring_percent == 10.0


def test_registry_rejects_duplicate_names():
    registry = AccountRegistry([make_account(Instrument.CASH, "Cash")])
    with pytest.raises(ValueError):
        registry.add(make_account(Instrument.SAVINGS, "Cash"))
    assert list(registry) == ["Cash"]
    assert registry["Cash"].instrument is Instrument.CASH


def test_limit_recurring_percentages_on_account():
    account = make_account(Instrument.SALARY, "Salary", transfers=[rule("a", 80.0), rule("b", 80.0)])
    assert account.limit_recurring_percentages()
    assert sum(r.recurring_percent for r in account.transfers) == pytest.approx(100.0)


def test_cost_basis_withdraw_and_ratio():
    tracker = CostBasisTracker()
    tracker.reset(4000.0)
    tracker.add_basis(-10.0)
    assert tracker.unrealized_gain_ratio(10000.0) == pytest.approx(0.6)
    assert tracker.withdraw(2000.0, 10000.0) == pytest.approx(1200.0)
    assert tracker.total_basis == pytest.approx(3200.0)
    # A withdrawal larger than the balance only removes all of the basis.
    assert tracker.withdraw(20000.0, 8000.0) == pytest.approx(16800.0)
    assert tracker.total_basis == 0.0
    assert tracker.withdraw(100.0, 0.0) == 0.0


def test_metric_ledger_snapshot_keeps_carried_metrics():
    ledger = MetricLedger()
    ledger.add(Metric.INCOME, 100.0)
    ledger[Metric.VALUE].set(500.0)
    ledger.add(Metric.ACCUMULATED, 10.0)
    ledger.snapshot_all()
    ledger.add(Metric.INCOME, 50.0)
    ledger.add(Metric.ACCUMULATED, 10.0)

    assert ledger.history(Metric.INCOME) == [100.0]
    assert ledger.current(Metric.INCOME) == 50.0
    assert ledger.total(Metric.INCOME) == 150.0
    assert ledger.current(Metric.VALUE) == 500.0
    assert ledger.current(Metric.ACCUMULATED) == 20.0

    ledger.initialize_all()
    assert all(metric.current == 0.0 and metric.history == [] for metric in ledger)
