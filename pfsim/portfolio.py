"""Portfolio orchestration: the per-checkpoint pipeline and period totals.

Day 1 recognizes income, amortization, withholding and RMD obligations and
routes paychecks through their transfer rules. Day 15 accrues property-tax
escrow. Day 30 pays expenses, forces outstanding RMDs, recognizes growth and
settles withholding. Nothing here raises for a modeling anomaly; gaps are
logged and kept in ``reconciliation_issues`` / ``balance_issues``.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
import logging
from typing import Iterable

from .account import DRIFT_TOLERANCE, Account, AccountRegistry
from .context import SimulationContext
from .instrument import (
    AMORTIZING,
    ASSET,
    BASIS_TRACKED,
    CAPITAL,
    INTEREST_BEARING,
    MONTHLY_EXPENSE,
    MONTHLY_INCOME,
    TAX_DEFERRED,
    TAXABLE,
    Instrument,
    expensable_rank,
    is_expensable,
)
from .metrics import Metric
from .results import (
    AmortizationResult,
    AppreciationResult,
    CapitalGainsResult,
    ExpenseResult,
    IncomeResult,
    InterestResult,
    MemoLabel,
    MonthlyResult,
    ReconcileResult,
)
from .tax import YearReconciliation
from .tax_data import HOME_SALE_MIN_HOLDING_MONTHS, LONG_TERM_HOLDING_MONTHS
from .totals import PeriodReport, PeriodTotals
from .transfer import FundTransferRule
from .values import CalendarPoint, Currency

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class YearEndSnapshot:
    year: int
    net_worth: float
    liquid: float


@dataclass(slots=True)
class _Paycheck:
    account: Account
    gross: float
    fica: float = 0.0
    income_tax: float = 0.0
    pre_tax: float = 0.0

    @property
    def net(self) -> float:
        return self.gross - self.fica - self.income_tax - self.pre_tax


class Portfolio:
    def __init__(
        self,
        accounts: Iterable[Account],
        context: SimulationContext | None = None,
        *,
        reports: bool = False,
    ) -> None:
        self.accounts: list[Account] = sorted(accounts, key=lambda account: account.sort_key)
        self.registry = AccountRegistry(self.accounts)
        self.context = context if context is not None else SimulationContext()
        self.collect_reports = reports
        self.monthly = PeriodTotals()
        self.yearly = PeriodTotals()
        self.lifetime = PeriodTotals()
        self.monthly_reports: list[PeriodReport] = []
        self.yearly_reports: list[PeriodReport] = []
        self.year_reconciliations: list[YearReconciliation] = []
        self.year_ends: list[YearEndSnapshot] = []
        self.reconciliation_issues: list[str] = []
        self.balance_issues: list[str] = []
        self.current: CalendarPoint | None = None
        self._withheld_income_tax = 0.0

    # -- structure -------------------------------------------------------

    @property
    def tax_table(self):
        return self.context.tax_table

    @property
    def user(self):
        return self.context.user

    @property
    def first_point(self) -> CalendarPoint | None:
        if not self.accounts:
            return None
        return min(account.start for account in self.accounts).with_day(1)

    @property
    def last_point(self) -> CalendarPoint | None:
        if not self.accounts:
            return None
        return max(account.finish for account in self.accounts).with_day(30)

    def copy(self) -> Portfolio:
        return Portfolio([account.copy() for account in self.accounts], self.context.fork(), reports=self.collect_reports)

    def initialize(self) -> None:
        """Reset every account, the totals and the context; re-bind transfer rules."""
        self.context.reset()
        for totals in (self.monthly, self.yearly, self.lifetime):
            totals.zero()
        self.monthly_reports.clear()
        self.yearly_reports.clear()
        self.year_reconciliations.clear()
        self.year_ends.clear()
        self.reconciliation_issues.clear()
        self.balance_issues.clear()
        self.current = None
        self._withheld_income_tax = 0.0
        for account in self.accounts:
            account.initialize()
            if account.limit_recurring_percentages():
                logger.warning("%s: recurring transfer percentages exceed 100; scaled down", account.name)
        unbound = self.registry.bind_all()
        if unbound:
            logger.warning("%d transfer rule(s) could not be bound and will not move money", unbound)

    def first_expensable(self, exclude: Account | None = None) -> Account | None:
        candidates = [
            account
            for account in self.accounts
            if account.is_active and is_expensable(account.instrument) and account is not exclude
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda account: (expensable_rank(account.instrument), account.sort_key))

    def first_taxable(self) -> Account | None:
        for account in self.accounts:
            if account.is_active and account.instrument in TAXABLE:
                return account
        return None

    def start_value(self) -> float:
        return sum(account.opening_value() for account in self.accounts if account.instrument in ASSET)

    def finish_value(self) -> float:
        return sum(account.balance.amount for account in self.accounts if account.instrument in ASSET)

    def liquid_value(self) -> float:
        return sum(account.balance.amount for account in self.accounts if is_expensable(account.instrument))

    def snapshot_year(self, year: int) -> YearEndSnapshot:
        return YearEndSnapshot(year=year, net_worth=self.finish_value(), liquid=self.liquid_value())

    def accumulated_value(self) -> float:
        return sum(account.metrics.total(Metric.ACCUMULATED) for account in self.accounts)

    # -- checkpoint dispatch ---------------------------------------------

    def apply_checkpoint(self, when: CalendarPoint) -> None:
        self.current = when
        if when.day == 1:
            self._first_day(when)
        elif when.day == 15:
            self._mid_month(when)
        else:
            self._last_day(when)

    def _first_day(self, when: CalendarPoint) -> None:
        self._withheld_income_tax = 0.0

        closing = [account for account in self.accounts if account.refresh_lifecycle(when)]
        for account in closing:
            self.close_account(account, when)
        for account in self.accounts:
            account.apply_first_day(when)

        # Portfolio order already runs liabilities before income before savings.
        paychecks: list[_Paycheck] = []
        for account in self.accounts:
            if not account.is_active:
                continue
            if account.instrument in AMORTIZING:
                self._amortize(account, when)
            elif account.instrument in MONTHLY_INCOME:
                paychecks.append(self._recognize_income(account, when))

        for paycheck in paychecks:
            self._withhold_fica(paycheck, when)
        self._withhold_income_tax(paychecks, when)

        if self.user.rmd_required:
            self._compute_rmds()

        for paycheck in paychecks:
            self._distribute_income(paycheck, when)

    def _mid_month(self, when: CalendarPoint) -> None:
        for account in self.accounts:
            if account.is_active and account.instrument is Instrument.HOME and account.property_tax_escrow > 0:
                escrow = account.property_tax_escrow
                account.property_tax_due += escrow
                account.metrics.add(Metric.PROPERTY_TAX, -escrow)
                self.monthly.property_taxes.subtract(escrow)

    def _last_day(self, when: CalendarPoint) -> None:
        self._pay_expenses(when)
        self._ensure_rmd_distributions(when)
        for account in self.accounts:
            if not account.is_active:
                continue
            if account.instrument in CAPITAL or account.instrument in INTEREST_BEARING or account.instrument in MONTHLY_EXPENSE:
                self._record_result(account.apply_monthly(when))
            tax = account.accrue_estimated_tax(when)
            if tax:
                self.monthly.estimated_taxes.subtract(tax)
        self._settle_withholding(when)
        self._check_balances(when)

    # -- money movement with bookkeeping ---------------------------------

    def _move(
        self,
        account: Account,
        amount: float,
        when: CalendarPoint,
        *,
        label: MemoLabel,
        note: str = "",
        skip_gain_recognition: bool = False,
    ) -> ReconcileResult:
        result = account.credit(amount, when, note=note, label=label, skip_gain_recognition=skip_gain_recognition)
        if result.balance_change < 0:
            self._record_withdrawal(account, -result.balance_change)
        if result.realized_gain:
            self.monthly.long_term_capital_gains.add(result.realized_gain)
        return result

    def _execute_rule(
        self,
        rule: FundTransferRule,
        amount: float,
        when: CalendarPoint,
        *,
        label: MemoLabel = MemoLabel.TRANSFER,
        skip_gain_recognition: bool = False,
    ) -> float:
        result = rule.execute(amount, when, label=label, skip_gain_recognition=skip_gain_recognition)
        if result.source_change < 0:
            self._record_withdrawal(rule.source, -result.source_change)
        if result.target_change < 0:
            self._record_withdrawal(rule.target, -result.target_change)
        if result.realized_gain:
            self.monthly.long_term_capital_gains.add(result.realized_gain)
        return amount if result.moved else 0.0

    def _record_withdrawal(self, account: Account, amount: float) -> None:
        if account.instrument is Instrument.TRADITIONAL_IRA:
            self.monthly.ira_distribution.add(amount)
        elif account.instrument is Instrument.FOUR_01K:
            self.monthly.four01k_distribution.add(amount)
        elif account.instrument is Instrument.ROTH_IRA:
            self.monthly.roth_distribution.add(amount)

    def _pay(self, amount: float, when: CalendarPoint, label: MemoLabel, note: str, exclude: Account | None = None) -> bool:
        """Take ``amount`` (negative pays in) from the first expensable account."""
        payer = self.first_expensable(exclude=exclude)
        if payer is None:
            logger.warning("%s no expensable account for %s (%s)", when.label(), note or label.value, Currency(amount))
            return False
        self._move(payer, -amount, when, label=label, note=note)
        return True

    # -- day 1 -----------------------------------------------------------

    def _amortize(self, account: Account, when: CalendarPoint) -> None:
        result = account.apply_monthly(when)
        if not isinstance(result, AmortizationResult) or result.payment == 0.0:
            return
        if account.instrument is Instrument.MORTGAGE:
            interest_total, principal_total = self.monthly.mortgage_interest, self.monthly.mortgage_principal
            interest_label, principal_label = MemoLabel.MORTGAGE_INTEREST, MemoLabel.MORTGAGE_PRINCIPAL
        else:
            interest_total, principal_total = self.monthly.debt_interest, self.monthly.debt_principal
            interest_label, principal_label = MemoLabel.DEBT_INTEREST, MemoLabel.DEBT_PRINCIPAL

        interest_total.add(result.interest)
        principal_total.add(result.principal)
        self._pay(-result.interest, when, interest_label, f"{account.name} interest")
        self._pay(-result.principal, when, principal_label, f"{account.name} principal")

    def _recognize_income(self, account: Account, when: CalendarPoint) -> _Paycheck:
        result = account.apply_monthly(when)
        if not isinstance(result, IncomeResult):
            return _Paycheck(account, 0.0)
        self.monthly.employed_income.add(result.employed)
        self.monthly.self_income.add(result.self_employed)
        self.monthly.social_security.add(result.social_security)

        paycheck = _Paycheck(account, result.gross)
        for rule in account.transfers:
            if not rule.is_bound or not rule.is_active_for(when):
                continue
            instrument = rule.target.instrument
            if instrument not in TAX_DEFERRED:
                continue
            rule.cap = self._contribution_room(instrument)
            amount = rule.calculate(result.gross)
            if instrument is Instrument.FOUR_01K:
                self.monthly.four01k_contribution.add(amount)
            else:
                self.monthly.ira_contribution.add(amount)
            paycheck.pre_tax += amount
        return paycheck

    def _contribution_room(self, instrument: Instrument) -> float:
        age = self.user.age
        if instrument is Instrument.FOUR_01K:
            used = self.yearly.four01k_contribution.amount + self.monthly.four01k_contribution.amount
            return max(0.0, self.tax_table.four01k_contribution_limit(age) - used)
        used = (
            self.yearly.ira_contribution.amount
            + self.monthly.ira_contribution.amount
            + self.yearly.roth_contribution.amount
            + self.monthly.roth_contribution.amount
        )
        return max(0.0, self.tax_table.ira_contribution_limit(age) - used)

    def _withhold_fica(self, paycheck: _Paycheck, when: CalendarPoint) -> None:
        account = paycheck.account
        if account.instrument is Instrument.SOCIAL_SECURITY:
            return
        withholding = self.tax_table.fica_tax(paycheck.gross, account.self_employed)
        if withholding.total <= 0:
            return
        paycheck.fica = withholding.total
        account.metrics.add(Metric.SOCIAL_SECURITY_TAX, -withholding.social_security)
        account.metrics.add(Metric.MEDICARE_TAX, -withholding.medicare)
        account.log_flow(-withholding.total, MemoLabel.FICA_WITHHOLDING, when)
        self.monthly.fica.subtract(withholding.total)

    def estimated_monthly_income_tax(self) -> float:
        """Income tax on the running month, annualized through the yearly rules, per month."""
        annual = self.monthly.copy()
        # Closing gains are taxed when realized.
        annual.short_term_capital_gains.zero()
        annual.multiply(12.0)
        limited = annual.limit_deductions(self.tax_table, self.user.age)
        taxable = self.tax_table.yearly_taxable_income(limited)
        return self.tax_table.yearly_income_tax(taxable) / 12.0

    def annualized_taxable_income(self) -> float:
        annual = self.monthly.copy().multiply(12.0)
        return self.tax_table.yearly_taxable_income(annual.limit_deductions(self.tax_table, self.user.age))

    def _withhold_income_tax(self, paychecks: list[_Paycheck], when: CalendarPoint) -> None:
        total_gross = sum(paycheck.gross for paycheck in paychecks if paycheck.gross > 0)
        if total_gross <= 0:
            return
        estimate = self.estimated_monthly_income_tax()
        for paycheck in paychecks:
            if paycheck.gross <= 0:
                continue
            share = estimate * paycheck.gross / total_gross
            paycheck.income_tax = share
            account = paycheck.account
            account.withheld_income_tax = share
            account.metrics.add(Metric.INCOME_TAX, -share)
            account.log_flow(-share, MemoLabel.INCOME_TAX_WITHHOLDING, when)
            self.monthly.income_tax.subtract(share)
            self._withheld_income_tax += share

    def _compute_rmds(self) -> None:
        for account in self.accounts:
            if not account.is_active or account.instrument not in TAX_DEFERRED:
                continue
            account.rmd_due = self.tax_table.monthly_rmd(account.prior_year_end_balance, self.user.age)
            account.metrics.add(Metric.RMD, account.rmd_due)

    def _distribute_income(self, paycheck: _Paycheck, when: CalendarPoint) -> None:
        account = paycheck.account
        net = paycheck.net
        account.net_income = net
        account.metrics.add(Metric.NET_INCOME, net)

        post_tax = 0.0
        for rule in account.transfers:
            if not rule.is_bound or not rule.is_active_for(when):
                continue
            instrument = rule.target.instrument
            if instrument in TAX_DEFERRED:
                # Already carved out of gross; the cap from recognition still applies.
                self._execute_rule(rule, rule.calculate(paycheck.gross), when)
                continue
            if instrument is Instrument.ROTH_IRA:
                rule.cap = self._contribution_room(instrument)
            amount = rule.calculate(max(0.0, net))
            moved = self._execute_rule(rule, amount, when)
            if instrument is Instrument.ROTH_IRA:
                self.monthly.roth_contribution.add(moved)
            post_tax += moved

        remaining = net - post_tax
        if remaining > 0.005:
            self._pay(-remaining, when, MemoLabel.INCOME, f"remaining income from {account.name}")
        elif remaining < -0.005:
            logger.warning(
                "%s transfers from %s exceed net income by %s", when.label(), account.name, Currency(-remaining)
            )

    # -- day 30 ----------------------------------------------------------

    def _pay_expenses(self, when: CalendarPoint) -> None:
        for account in self.accounts:
            if not account.is_active:
                continue
            if account.instrument is Instrument.HOME:
                required = account.property_tax_due
                account.property_tax_due = 0.0
                label = MemoLabel.PROPERTY_TAXES
            elif account.instrument in MONTHLY_EXPENSE:
                required = -account.balance.amount
                label = MemoLabel.EXPENSE
            else:
                continue
            if required <= 0:
                continue

            covered = 0.0
            for rule in account.transfers:
                if not rule.is_bound or not rule.is_active_for(when):
                    continue
                amount = rule.calculate(required)
                if amount <= 0:
                    continue
                note = rule.describe(-amount)
                self._move(rule.target, -amount, when, label=label, note=note)
                if account.is_flow:
                    account.log_flow(-amount, label, when, note)
                covered += amount

            shortfall = required - covered
            if shortfall > 0.005:
                self._cover_shortfall(account, shortfall, label, when)

    def gross_up(self, shortfall: float, account: Account) -> float:
        """Withdrawal needed from ``account`` to net ``shortfall`` after long-term gains tax."""
        balance = account.balance.amount
        gain_ratio = account.basis.unrealized_gain_ratio(balance) if account.instrument in BASIS_TRACKED else 0.0
        rate = self.tax_table.marginal_long_term_gains_rate(self.annualized_taxable_income())
        denominator = 1.0 - rate * gain_ratio
        if denominator <= 0:
            return shortfall
        return shortfall / denominator

    def _cover_shortfall(self, source: Account, shortfall: float, label: MemoLabel, when: CalendarPoint) -> None:
        remaining = shortfall
        taxable = self.first_taxable()
        if taxable is not None and taxable.balance.amount > 0:
            gross = self.gross_up(remaining, taxable)
            net = remaining
            if gross > taxable.balance.amount:
                net = remaining * taxable.balance.amount / gross
                gross = taxable.balance.amount
            note = f"{source.name} shortfall"
            self._move(taxable, -net, when, label=label, note=note)
            tax_cost = gross - net
            if tax_cost > 0.005:
                self._move(taxable, -tax_cost, when, label=MemoLabel.ESTIMATED_TAX, note=f"{note} gross-up")
                self.monthly.estimated_taxes.subtract(tax_cost)
            remaining -= net
        if remaining > 0.005:
            self._pay(remaining, when, label, f"{source.name} shortfall")

    def _ensure_rmd_distributions(self, when: CalendarPoint) -> None:
        if not self.user.rmd_required:
            return
        for account in self.accounts:
            if not account.is_active or account.instrument not in TAX_DEFERRED or account.rmd_due <= 0:
                continue
            metric = Metric.IRA_DISTRIBUTION if account.instrument is Instrument.TRADITIONAL_IRA else Metric.FOUR_01K_DISTRIBUTION
            outstanding = min(account.rmd_due - account.metrics.current(metric), account.balance.amount)
            if outstanding <= 0.005:
                continue
            target = self.first_expensable(exclude=account)
            if target is None:
                logger.warning("%s nowhere to deposit the RMD from %s", when.label(), account.name)
                continue
            note = f"RMD from {account.name}"
            self._move(account, -outstanding, when, label=MemoLabel.RMD, note=note)
            self._move(target, outstanding, when, label=MemoLabel.RMD, note=note)

    def _record_result(self, result: MonthlyResult | None) -> None:
        if isinstance(result, AppreciationResult):
            self.monthly.asset_appreciation.add(result.growth)
            if result.qualified:
                self.monthly.qualified_dividends.add(result.dividend)
            else:
                self.monthly.asset_appreciation.add(result.dividend)
        elif isinstance(result, InterestResult):
            self.monthly.interest_income.add(result.interest)
        elif isinstance(result, ExpenseResult):
            self.monthly.expense.add(result.expense)

    def _settle_withholding(self, when: CalendarPoint) -> None:
        """Top up (or refund) income tax once growth and distributions are known."""
        income_tax_due = self.estimated_monthly_income_tax() - self._withheld_income_tax
        if abs(income_tax_due) > 0.005 and self._pay(
            income_tax_due, when, MemoLabel.INCOME_TAX_WITHHOLDING, "income tax settlement"
        ):
            self.monthly.income_tax.subtract(income_tax_due)
            self._withheld_income_tax += income_tax_due

    def _check_balances(self, when: CalendarPoint) -> None:
        for account in self.accounts:
            drift = account.balance_drift()
            if abs(drift) > DRIFT_TOLERANCE:
                message = f"{when.label()} {account.name}: memo trail off by {Currency(drift)}"
                self.balance_issues.append(message)
                logger.warning(message)
            if account.is_closed and account.balance.amount != 0.0:
                message = f"{when.label()} {account.name}: closed with balance {account.balance}"
                self.balance_issues.append(message)
                logger.warning(message)

    # -- closing ---------------------------------------------------------

    def close_account(self, account: Account, when: CalendarPoint) -> None:
        account.closed_value = account.balance.amount
        account.closed_basis = account.basis.total_basis
        if not account.is_flow:
            if account.instrument in BASIS_TRACKED:
                self.realize_closing_gain(account, when)
            self._transfer_on_close(account, when)
        account.close(when)

    def realize_closing_gain(self, account: Account, when: CalendarPoint) -> CapitalGainsResult:
        gain = account.balance.amount - account.basis.total_basis
        held = account.start.months_between(when)
        long_term = held >= LONG_TERM_HOLDING_MONTHS
        taxable_gain = gain
        if account.instrument is Instrument.HOME and held > HOME_SALE_MIN_HOLDING_MONTHS and gain > 0:
            taxable_gain = max(0.0, gain - self.tax_table.home_sale_exclusion)

        income = self.annualized_taxable_income()
        tax = 0.0
        if taxable_gain > 0:
            if long_term:
                tax = self.tax_table.yearly_long_term_gains_tax(income, taxable_gain)
            else:
                table = self.tax_table
                tax = table.yearly_income_tax(income + taxable_gain) - table.yearly_income_tax(income)

        if long_term:
            self.monthly.long_term_capital_gains.add(taxable_gain)
            self.monthly.long_term_capital_gains_tax.subtract(tax)
            account.metrics.add(Metric.LONG_TERM_CAPITAL_GAIN, taxable_gain)
            tax_label = MemoLabel.CAPITAL_GAINS_TAX
        else:
            self.monthly.short_term_capital_gains.add(taxable_gain)
            self.monthly.income_tax.subtract(tax)
            account.metrics.add(Metric.SHORT_TERM_CAPITAL_GAIN, taxable_gain)
            tax_label = MemoLabel.INCOME_TAX_WITHHOLDING

        account.log_flow(taxable_gain, MemoLabel.CAPITAL_GAINS, when, f"held {held} months")
        if tax > 0:
            account.deduct_tax(tax, tax_label, when)
            account.metrics.add(Metric.CAPITAL_GAINS_TAX, -tax)
        logger.debug("%s %s closing gain %s, tax %s", when.label(), account.name, Currency(gain), Currency(tax))
        return CapitalGainsResult(gain=gain, taxable_gain=taxable_gain, tax=tax, long_term=long_term)

    def _transfer_on_close(self, account: Account, when: CalendarPoint) -> None:
        value = account.balance.amount
        moved = 0.0
        for rule in account.transfers:
            if rule.close_percent <= 0 or not rule.is_bound:
                continue
            if not is_expensable(rule.target.instrument):
                logger.warning("%s closing transfer %s skipped: target is not expensable", when.label(), rule.describe())
                continue
            amount = rule.calculate(value, on_close=True)
            moved += self._execute_rule(
                rule, amount, when, label=MemoLabel.CLOSE_TRANSFER, skip_gain_recognition=True
            )

        remainder = value - moved
        if remainder == 0.0:
            return
        target = self.first_expensable(exclude=account)
        if target is None:
            logger.warning("%s %s of %s has nowhere to go", when.label(), Currency(remainder), account.name)
            return
        note = f"closing {account.name}"
        self._move(account, -remainder, when, label=MemoLabel.CLOSE_TRANSFER, note=note, skip_gain_recognition=True)
        self._move(target, remainder, when, label=MemoLabel.CLOSE_TRANSFER, note=note)

    # -- period hooks ----------------------------------------------------

    def monthly_chron(self, when: CalendarPoint) -> None:
        """Close out the month that ended just before ``when``."""
        label = str(when.add_months(-1))
        if self.collect_reports:
            self.monthly_reports.append(PeriodReport.capture("monthly", label, self.monthly))
        self._reconcile_memos(label)
        self.yearly.add(self.monthly)
        self.lifetime.add(self.monthly)
        self.monthly.zero()
        for account in self.accounts:
            account.monthly_chron()

    def apply_year(self, when: CalendarPoint) -> None:
        for account in self.accounts:
            account.prior_year_end_balance = account.balance.amount
        for account in self.accounts:
            if not account.is_active or not account.in_window(when):
                continue
            if account.instrument in MONTHLY_INCOME:
                account.apply_yearly(when)
            elif account.instrument is Instrument.HOME:
                account.reassess_escrow()
        self.year_reconciliations.append(self.tax_table.reconcile_year(self.yearly))

    def yearly_chron(self, when: CalendarPoint) -> None:
        self.year_ends.append(self.snapshot_year(when.year - 1))
        if self.collect_reports:
            self.yearly_reports.append(PeriodReport.capture("yearly", str(when.year - 1), self.yearly))
        self.yearly.zero()
        self.user.add_year()
        self.tax_table.yearly_chron()

    def finalize(self) -> None:
        """Close out the final, possibly partial, year."""
        last = self.last_point
        if last is not None:
            self.year_ends.append(self.snapshot_year(last.year))
            if self.collect_reports:
                self.yearly_reports.append(PeriodReport.capture("yearly", str(last.year), self.yearly))
            self.year_reconciliations.append(self.tax_table.reconcile_year(self.yearly))
        logger.info(
            "finished at %s: start value %s, finish value %s",
            last,
            Currency(self.start_value()),
            Currency(self.finish_value()),
        )

    def _reconcile_memos(self, label: str) -> None:
        recorded: dict[MemoLabel, float] = defaultdict(float)
        for account in self.accounts:
            for memo in account.unreconciled_memos():
                recorded[memo.label] += memo.amount

        expected = {
            MemoLabel.FICA_WITHHOLDING: self.monthly.fica.amount,
            MemoLabel.INCOME_TAX_WITHHOLDING: self.monthly.income_tax.amount,
            MemoLabel.MORTGAGE_INTEREST: self.monthly.mortgage_interest.amount,
            MemoLabel.MORTGAGE_PRINCIPAL: self.monthly.mortgage_principal.amount,
            MemoLabel.DEBT_INTEREST: self.monthly.debt_interest.amount,
            MemoLabel.DEBT_PRINCIPAL: self.monthly.debt_principal.amount,
            MemoLabel.PROPERTY_TAXES: self.monthly.property_taxes.amount,
            MemoLabel.CAPITAL_GAINS: self.monthly.long_term_capital_gains.amount
            + self.monthly.short_term_capital_gains.amount,
            MemoLabel.CAPITAL_GAINS_TAX: self.monthly.long_term_capital_gains_tax.amount,
            MemoLabel.ESTIMATED_TAX: self.monthly.estimated_taxes.amount,
        }
        for memo_label, total in expected.items():
            difference = recorded[memo_label] - total
            if abs(difference) > DRIFT_TOLERANCE:
                message = f"{label} {memo_label.value}: memos {Currency(recorded[memo_label])} vs totals {Currency(total)}"
                self.reconciliation_issues.append(message)
                logger.warning(message)
