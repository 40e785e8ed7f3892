"""Per-account state machine and the per-instrument calculation rules.

An account moves BEFORE_START -> ACTIVE -> CLOSED. Only the portfolio closes
accounts. Every balance change is funnelled through ``Account._post`` so the
memo trail always explains the balance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Callable, Iterable, Iterator, Mapping

from .cost_basis import CostBasisTracker
from .instrument import (
    AMORTIZING,
    BASIS_TRACKED,
    CAPITAL,
    FLOW,
    INTEREST_BEARING,
    MONTHLY_EXPENSE,
    MONTHLY_INCOME,
    SORT_ORDER,
    TAXABLE,
    Instrument,
)
from .metrics import Metric, MetricLedger
from .results import (
    AmortizationResult,
    AppreciationResult,
    CreditMemo,
    ExpenseResult,
    IncomeResult,
    InterestResult,
    MemoLabel,
    MonthlyResult,
    RaiseResult,
    ReconcileResult,
)
from .transfer import FundTransferRule, limit_recurring_percentages
from .values import AnnualRate, CalendarPoint, Currency

logger = logging.getLogger(__name__)

DRIFT_TOLERANCE = 0.01


class LifecycleState(str, Enum):
    BEFORE_START = "before_start"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(slots=True)
class Account:
    instrument: Instrument
    name: str
    start: CalendarPoint
    finish: CalendarPoint
    start_value: float = 0.0
    start_basis: float = 0.0
    annual_return_rate: AnnualRate = field(default_factory=AnnualRate)
    dividend_rate: AnnualRate = field(default_factory=AnnualRate)
    annual_tax_rate: AnnualRate = field(default_factory=AnnualRate)
    months_remaining: int = 0
    self_employed: bool = False
    transfers: list[FundTransferRule] = field(default_factory=list)

    balance: Currency = field(init=False, repr=False)
    basis: CostBasisTracker = field(init=False, repr=False)
    state: LifecycleState = field(init=False, repr=False)
    on_start: bool = field(init=False, repr=False)
    on_finish: bool = field(init=False, repr=False)
    past_finish: bool = field(init=False, repr=False)
    opened: bool = field(init=False, repr=False)
    remaining_term: int = field(init=False, repr=False)
    rate_override: float | None = field(init=False, repr=False)
    metrics: MetricLedger = field(init=False, repr=False)
    memos: list[CreditMemo] = field(init=False, repr=False)
    opening_balance: float = field(init=False, repr=False)
    month_mark: int = field(init=False, repr=False)
    reconcile_mark: int = field(init=False, repr=False)
    closed_value: float = field(init=False, repr=False)
    closed_basis: float = field(init=False, repr=False)
    net_income: float = field(init=False, repr=False)
    withheld_income_tax: float = field(init=False, repr=False)
    property_tax_escrow: float = field(init=False, repr=False)
    property_tax_due: float = field(init=False, repr=False)
    prior_year_end_balance: float = field(init=False, repr=False)
    rmd_due: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.metrics = MetricLedger()
        self.memos = []
        self.balance = Currency()
        self.basis = CostBasisTracker()
        self.rate_override = None
        self.initialize()

    # -- lifecycle -------------------------------------------------------

    def initialize(self) -> None:
        """Reset all run state so the same account can be simulated again."""
        self.balance.zero()
        self.basis.reset(0.0)
        self.state = LifecycleState.BEFORE_START
        self.on_start = False
        self.on_finish = False
        self.past_finish = False
        self.opened = False
        self.remaining_term = self.months_remaining
        self.metrics.initialize_all()
        self.memos.clear()
        self.opening_balance = 0.0
        self.month_mark = 0
        self.reconcile_mark = 0
        self.closed_value = 0.0
        self.closed_basis = 0.0
        self.net_income = 0.0
        self.withheld_income_tax = 0.0
        self.property_tax_escrow = 0.0
        self.property_tax_due = 0.0
        self.prior_year_end_balance = 0.0
        self.rmd_due = 0.0

    @property
    def sort_key(self) -> tuple[int, str]:
        return SORT_ORDER[self.instrument], self.name

    @property
    def is_closed(self) -> bool:
        return self.state is LifecycleState.CLOSED

    @property
    def is_active(self) -> bool:
        return self.state is LifecycleState.ACTIVE

    @property
    def is_flow(self) -> bool:
        return self.instrument in FLOW

    @property
    def growth_rate(self) -> AnnualRate:
        if self.rate_override is not None:
            return AnnualRate(self.rate_override)
        return self.annual_return_rate

    def in_window(self, when: CalendarPoint) -> bool:
        return self.start.month_index <= when.month_index <= self.finish.month_index

    def refresh_lifecycle(self, when: CalendarPoint) -> bool:
        """Update state flags; return True when the portfolio must close this account now."""
        self.on_start = when.same_month(self.start)
        self.on_finish = when.same_month(self.finish)
        self.past_finish = when.month_index > self.finish.month_index
        if self.is_closed:
            return False
        if self.state is LifecycleState.BEFORE_START and self.in_window(when):
            self.state = LifecycleState.ACTIVE
        return self.past_finish and self.state is LifecycleState.ACTIVE

    def apply_first_day(self, when: CalendarPoint) -> None:
        if self.state is LifecycleState.BEFORE_START:
            if not self.balance.is_zero():
                self._post(-self.balance.amount, MemoLabel.OPENING, when, "held at zero before start")
            return
        if self.is_active and self.on_start and not self.opened:
            self.opened = True
            target = self.opening_value()
            self._post(target - self.balance.amount, MemoLabel.OPENING, when)
            if self.instrument in BASIS_TRACKED:
                self.basis.reset(self.start_basis)
            self.remaining_term = self.months_remaining
            self.prior_year_end_balance = target
            if self.instrument is Instrument.HOME:
                self.reassess_escrow()

    def opening_value(self) -> float:
        # Outflows and liabilities carry a negative balance.
        if self.instrument in MONTHLY_EXPENSE or self.instrument in AMORTIZING:
            return -abs(self.start_value)
        return self.start_value

    def close(self, when: CalendarPoint) -> None:
        if self.balance.amount != 0.0:
            self._post(-self.balance.amount, MemoLabel.CLOSING, when)
        self.balance.zero()
        self.basis.reset(0.0)
        self.state = LifecycleState.CLOSED
        logger.debug("%s closed %s", when.label(), self.name)

    # -- money movement --------------------------------------------------

    def credit(
        self,
        amount: float,
        when: CalendarPoint,
        *,
        note: str = "",
        label: MemoLabel = MemoLabel.TRANSFER,
        skip_gain_recognition: bool = False,
    ) -> ReconcileResult:
        """Add ``amount`` to the account; a negative amount is a withdrawal.

        ``skip_gain_recognition`` only affects withdrawals. Deposits into a
        basis-tracked account always add to its basis.
        """
        if amount == 0.0:
            return ReconcileResult()
        if self.is_closed:
            logger.debug("%s ignoring %s on closed account %s", when.label(), Currency(amount), self.name)
            return ReconcileResult()
        if self.is_flow:
            self.memos.append(CreditMemo(amount, label, when, note, applied=False))
            return ReconcileResult()
        return self._reconcile(amount, when, note, label, skip_gain_recognition)

    def debit(
        self,
        amount: float,
        when: CalendarPoint,
        *,
        note: str = "",
        label: MemoLabel = MemoLabel.TRANSFER,
        skip_gain_recognition: bool = False,
    ) -> ReconcileResult:
        return self.credit(-amount, when, note=note, label=label, skip_gain_recognition=skip_gain_recognition)

    def _reconcile(
        self,
        amount: float,
        when: CalendarPoint,
        note: str,
        label: MemoLabel,
        skip_gain_recognition: bool,
    ) -> ReconcileResult:
        realized = 0.0
        balance_before = self.balance.amount
        tracks_basis = self.instrument in BASIS_TRACKED
        if amount > 0:
            if tracks_basis:
                self.basis.add_basis(amount)
            else:
                metric = _CONTRIBUTION_METRICS.get(self.instrument)
                if metric is not None:
                    self.metrics.add(metric, amount)
        else:
            if tracks_basis and not skip_gain_recognition:
                realized = self.basis.withdraw(-amount, balance_before)
            else:
                metric = _DISTRIBUTION_METRICS.get(self.instrument)
                if metric is not None:
                    self.metrics.add(metric, -amount)

        self._post(amount, label, when, note)
        self.metrics.add(Metric.CREDIT, amount)
        if realized != 0.0:
            self.metrics.add(Metric.LONG_TERM_CAPITAL_GAIN, realized)
            self.memos.append(CreditMemo(realized, MemoLabel.CAPITAL_GAINS, when, note, applied=False))
        return ReconcileResult(balance_change=amount, realized_gain=realized)

    def _post(self, amount: float, label: MemoLabel, when: CalendarPoint, note: str = "") -> None:
        if amount == 0.0:
            return
        self.balance.add(amount)
        self.memos.append(CreditMemo(amount, label, when, note))

    def log_flow(self, amount: float, label: MemoLabel, when: CalendarPoint, note: str = "") -> None:
        """Record an event that does not move the balance (withholding on a paycheck, realized gains)."""
        if amount == 0.0:
            return
        self.memos.append(CreditMemo(amount, label, when, note, applied=False))

    def deduct_tax(self, amount: float, label: MemoLabel, when: CalendarPoint, note: str = "") -> None:
        self._post(-amount, label, when, note)

    # -- calculations ----------------------------------------------------

    def apply_monthly(self, when: CalendarPoint) -> MonthlyResult | None:
        return BEHAVIORS[self.instrument].monthly(self, when)

    def apply_yearly(self, when: CalendarPoint) -> RaiseResult | None:
        yearly = BEHAVIORS[self.instrument].yearly
        if yearly is None:
            return None
        return yearly(self, when)

    def cash_flow(self) -> float:
        return BEHAVIORS[self.instrument].cash_flow(self)

    def accrue_estimated_tax(self, when: CalendarPoint) -> float:
        """Flat monthly tax drag at the account's own rate; returns the amount taken."""
        if self.instrument not in CAPITAL or self.instrument is Instrument.HOME:
            return 0.0
        tax = self.balance.amount * self.annual_tax_rate.as_monthly()
        if tax <= 0:
            return 0.0
        self._post(-tax, MemoLabel.ESTIMATED_TAX, when)
        self.metrics.add(Metric.ESTIMATED_TAX, -tax)
        return tax

    def reassess_escrow(self) -> float:
        self.property_tax_escrow = max(0.0, self.balance.amount * self.annual_tax_rate.as_monthly())
        return self.property_tax_escrow

    def limit_recurring_percentages(self, cap: float = 100.0) -> bool:
        return limit_recurring_percentages(self.transfers, cap)

    # -- month bookkeeping -----------------------------------------------

    def monthly_chron(self) -> None:
        flow = self.cash_flow()
        self.metrics[Metric.VALUE].set(self.balance.amount)
        self.metrics[Metric.CASH_FLOW].set(flow)
        self.metrics.add(Metric.ACCUMULATED, flow)
        self.metrics.snapshot_all()
        self.open_month()

    def open_month(self) -> None:
        self.opening_balance = self.balance.amount
        self.month_mark = len(self.memos)

    def memos_this_month(self) -> Iterator[CreditMemo]:
        return iter(self.memos[self.month_mark:])

    def balance_drift(self) -> float:
        """Opening balance plus applied memos, minus the balance; zero when the trail is complete."""
        recorded = sum(memo.amount for memo in self.memos_this_month() if memo.applied)
        return self.opening_balance + recorded - self.balance.amount

    def unreconciled_memos(self) -> list[CreditMemo]:
        pending = self.memos[self.reconcile_mark:]
        self.reconcile_mark = len(self.memos)
        return pending

    # -- copies ----------------------------------------------------------

    def copy(self) -> Account:
        return Account(
            instrument=self.instrument,
            name=self.name,
            start=self.start,
            finish=self.finish,
            start_value=self.start_value,
            start_basis=self.start_basis,
            annual_return_rate=self.annual_return_rate.copy(),
            dividend_rate=self.dividend_rate.copy(),
            annual_tax_rate=self.annual_tax_rate.copy(),
            months_remaining=self.months_remaining,
            self_employed=self.self_employed,
            transfers=[rule.copy() for rule in self.transfers],
        )


_CONTRIBUTION_METRICS: dict[Instrument, Metric] = {
    Instrument.TRADITIONAL_IRA: Metric.IRA_CONTRIBUTION,
    Instrument.FOUR_01K: Metric.FOUR_01K_CONTRIBUTION,
    Instrument.ROTH_IRA: Metric.ROTH_CONTRIBUTION,
}

_DISTRIBUTION_METRICS: dict[Instrument, Metric] = {
    Instrument.TRADITIONAL_IRA: Metric.IRA_DISTRIBUTION,
    Instrument.FOUR_01K: Metric.FOUR_01K_DISTRIBUTION,
    Instrument.ROTH_IRA: Metric.ROTH_DISTRIBUTION,
}


# -- per-instrument rules -----------------------------------------------------


def _income_month(account: Account, when: CalendarPoint) -> IncomeResult:
    gross = account.balance.amount
    account.metrics.add(Metric.INCOME, gross)
    if account.instrument is Instrument.SOCIAL_SECURITY:
        return IncomeResult(social_security=gross)
    if account.self_employed:
        return IncomeResult(self_employed=gross)
    return IncomeResult(employed=gross)


def _expense_month(account: Account, when: CalendarPoint) -> ExpenseResult:
    expense = account.balance.amount
    account.metrics.add(Metric.EXPENSE, expense)
    growth = expense * account.growth_rate.as_monthly()
    account._post(growth, MemoLabel.EXPENSE_GROWTH, when, f"{account.growth_rate} yearly drift")
    return ExpenseResult(expense=expense, growth=growth)


def _amortize_month(account: Account, when: CalendarPoint) -> AmortizationResult:
    principal_balance = account.balance.amount
    n = account.remaining_term
    if n <= 0 or principal_balance >= 0:
        return AmortizationResult()

    r = account.growth_rate.as_monthly()
    if r == 0:
        payment = principal_balance / n
    else:
        growth = (1.0 + r) ** n
        payment = r * principal_balance * growth / (growth - 1.0)
    interest = principal_balance * r
    principal = payment - interest

    account._post(-principal, MemoLabel.AMORTIZATION, when, f"{n} payments left")
    account.remaining_term = n - 1
    account.metrics.add(Metric.MORTGAGE_PAYMENT, payment)
    account.metrics.add(Metric.MORTGAGE_INTEREST, interest)
    account.metrics.add(Metric.MORTGAGE_PRINCIPAL, principal)
    return AmortizationResult(payment=payment, interest=interest, principal=principal)


def _appreciate_month(account: Account, when: CalendarPoint) -> AppreciationResult:
    base = account.balance.amount
    if base <= 0:
        return AppreciationResult()

    growth = base * account.growth_rate.as_monthly()
    dividend = base * account.dividend_rate.as_monthly()
    account._post(growth, MemoLabel.ASSET_GROWTH, when)
    account.metrics.add(Metric.GROWTH, growth)
    if dividend:
        account._post(dividend, MemoLabel.DIVIDEND, when)
        account.metrics.add(Metric.DIVIDEND, dividend)
        if account.instrument in TAXABLE:
            # Reinvested dividends were taxed on receipt.
            account.basis.add_basis(dividend)
    return AppreciationResult(growth=growth, dividend=dividend, qualified=account.instrument in TAXABLE)


def _interest_month(account: Account, when: CalendarPoint) -> InterestResult:
    base = account.balance.amount
    if base <= 0:
        return InterestResult()
    interest = base * account.growth_rate.as_monthly()
    account._post(interest, MemoLabel.INTEREST_INCOME, when)
    account.metrics.add(Metric.INTEREST_INCOME, interest)
    return InterestResult(interest=interest)


def _no_month(account: Account, when: CalendarPoint) -> None:
    return None


def _raise_year(account: Account, when: CalendarPoint) -> RaiseResult:
    amount = account.balance.amount * account.growth_rate.rate
    account._post(amount, MemoLabel.RAISE, when, str(account.growth_rate))
    return RaiseResult(amount=amount)


def _income_cash_flow(account: Account) -> float:
    return account.metrics.current(Metric.NET_INCOME)


def _expense_cash_flow(account: Account) -> float:
    return account.metrics.current(Metric.EXPENSE)


def _amortizing_cash_flow(account: Account) -> float:
    return account.metrics.current(Metric.MORTGAGE_PAYMENT)


def _capital_cash_flow(account: Account) -> float:
    return (
        account.metrics.current(Metric.GROWTH)
        + account.metrics.current(Metric.DIVIDEND)
        + account.metrics.current(Metric.ESTIMATED_TAX)
    )


def _interest_cash_flow(account: Account) -> float:
    return account.metrics.current(Metric.INTEREST_INCOME)


def _no_cash_flow(account: Account) -> float:
    return 0.0


@dataclass(slots=True, frozen=True)
class InstrumentBehavior:
    monthly: Callable[[Account, CalendarPoint], MonthlyResult | None]
    yearly: Callable[[Account, CalendarPoint], RaiseResult] | None
    cash_flow: Callable[[Account], float]


def _build_behaviors() -> dict[Instrument, InstrumentBehavior]:
    income = InstrumentBehavior(_income_month, _raise_year, _income_cash_flow)
    expense = InstrumentBehavior(_expense_month, None, _expense_cash_flow)
    amortizing = InstrumentBehavior(_amortize_month, None, _amortizing_cash_flow)
    capital = InstrumentBehavior(_appreciate_month, None, _capital_cash_flow)
    interest = InstrumentBehavior(_interest_month, None, _interest_cash_flow)
    idle = InstrumentBehavior(_no_month, None, _no_cash_flow)

    table: dict[Instrument, InstrumentBehavior] = {}
    for instrument in Instrument:
        if instrument in MONTHLY_INCOME:
            table[instrument] = income
        elif instrument in MONTHLY_EXPENSE:
            table[instrument] = expense
        elif instrument in AMORTIZING:
            table[instrument] = amortizing
        elif instrument in CAPITAL:
            table[instrument] = capital
        elif instrument in INTEREST_BEARING:
            table[instrument] = interest
        else:
            table[instrument] = idle
    return table


BEHAVIORS: dict[Instrument, InstrumentBehavior] = _build_behaviors()


class AccountRegistry(Mapping[str, Account]):
    """Accounts in portfolio order plus a name index; transfer rules bind against it."""

    def __init__(self, accounts: Iterable[Account] = ()) -> None:
        self._accounts: list[Account] = []
        self._index: dict[str, int] = {}
        for account in accounts:
            self.add(account)

    def add(self, account: Account) -> None:
        if account.name in self._index:
            raise ValueError(f"duplicate account name: {account.name!r}")
        self._index[account.name] = len(self._accounts)
        self._accounts.append(account)

    def __getitem__(self, name: str) -> Account:
        return self._accounts[self._index[name]]

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._accounts)

    def accounts(self) -> list[Account]:
        return list(self._accounts)

    def bind_all(self) -> int:
        """Resolve every transfer rule by name; returns the number left unbound."""
        unbound = 0
        for account in self._accounts:
            for rule in account.transfers:
                if not rule.bind(account, self):
                    unbound += 1
        return unbound
