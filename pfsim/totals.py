"""Flat period aggregates (monthly, yearly, lifetime) and their report form.

Sign convention: income, contributions, distributions and gains are positive;
expenses, taxes and debt service are negative.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any

from .tax_data import SOCIAL_SECURITY_TAXABLE_SHARE
from .values import Currency

if TYPE_CHECKING:
    from .tax import TaxTable


@dataclass(slots=True)
class PeriodTotals:
    employed_income: Currency = field(default_factory=Currency)
    self_income: Currency = field(default_factory=Currency)
    social_security: Currency = field(default_factory=Currency)
    asset_appreciation: Currency = field(default_factory=Currency)
    expense: Currency = field(default_factory=Currency)
    fica: Currency = field(default_factory=Currency)
    income_tax: Currency = field(default_factory=Currency)
    estimated_taxes: Currency = field(default_factory=Currency)
    ira_contribution: Currency = field(default_factory=Currency)
    four01k_contribution: Currency = field(default_factory=Currency)
    roth_contribution: Currency = field(default_factory=Currency)
    ira_distribution: Currency = field(default_factory=Currency)
    four01k_distribution: Currency = field(default_factory=Currency)
    roth_distribution: Currency = field(default_factory=Currency)
    mortgage_interest: Currency = field(default_factory=Currency)
    mortgage_principal: Currency = field(default_factory=Currency)
    debt_interest: Currency = field(default_factory=Currency)
    debt_principal: Currency = field(default_factory=Currency)
    property_taxes: Currency = field(default_factory=Currency)
    short_term_capital_gains: Currency = field(default_factory=Currency)
    long_term_capital_gains: Currency = field(default_factory=Currency)
    non_qualified_dividends: Currency = field(default_factory=Currency)
    qualified_dividends: Currency = field(default_factory=Currency)
    interest_income: Currency = field(default_factory=Currency)
    long_term_capital_gains_tax: Currency = field(default_factory=Currency)

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return _FIELD_NAMES

    def add(self, other: PeriodTotals) -> PeriodTotals:
        for name in _FIELD_NAMES:
            getattr(self, name).add(getattr(other, name))
        return self

    def subtract(self, other: PeriodTotals) -> PeriodTotals:
        for name in _FIELD_NAMES:
            getattr(self, name).subtract(getattr(other, name))
        return self

    def multiply(self, factor: float) -> PeriodTotals:
        for name in _FIELD_NAMES:
            getattr(self, name).multiply(factor)
        return self

    def zero(self) -> PeriodTotals:
        for name in _FIELD_NAMES:
            getattr(self, name).zero()
        return self

    def copy(self) -> PeriodTotals:
        return PeriodTotals(**{name: getattr(self, name).copy() for name in _FIELD_NAMES})

    def wage_income(self) -> float:
        return self.employed_income.amount + self.self_income.amount

    def ordinary_income(self) -> float:
        return (
            self.social_security.amount * SOCIAL_SECURITY_TAXABLE_SHARE
            + self.interest_income.amount
            + self.short_term_capital_gains.amount
            + self.ira_distribution.amount
            + self.four01k_distribution.amount
            + self.non_qualified_dividends.amount
        )

    def nontaxable_income(self) -> float:
        return self.roth_distribution.amount + self.qualified_dividends.amount

    def total_income(self) -> float:
        return self.wage_income() + self.ordinary_income() + self.nontaxable_income()

    def contributions(self) -> float:
        return self.ira_contribution.amount + self.four01k_contribution.amount + self.roth_contribution.amount

    def debt_service(self) -> float:
        return (
            self.mortgage_interest.amount
            + self.mortgage_principal.amount
            + self.debt_interest.amount
            + self.debt_principal.amount
        )

    def total_taxes(self) -> float:
        """Taxes paid, as a positive number."""
        return -(
            self.income_tax.amount
            + self.fica.amount
            + self.long_term_capital_gains_tax.amount
            + self.estimated_taxes.amount
        )

    def cash_flow(self) -> float:
        return (
            self.total_income()
            - self.total_taxes()
            + self.expense.amount
            + self.debt_service()
            + self.property_taxes.amount
        )

    def effective_tax_rate(self) -> float:
        income = self.total_income()
        if income <= 0:
            return 0.0
        return self.total_taxes() / income

    def deductions(self, tax_table: TaxTable) -> float:
        return tax_table.yearly_deductions(self)

    def limit_deductions(self, tax_table: TaxTable, age: int) -> PeriodTotals:
        """Copy with contributions and property taxes clipped to what is deductible."""
        limited = self.copy()
        limited.ira_contribution.amount = min(limited.ira_contribution.amount, tax_table.ira_contribution_limit(age))
        limited.four01k_contribution.amount = min(
            limited.four01k_contribution.amount, tax_table.four01k_contribution_limit(age)
        )
        limited.property_taxes.amount = -min(
            abs(limited.property_taxes.amount), tax_table.property_tax_deduction_max
        )
        return limited


_FIELD_NAMES: tuple[str, ...] = tuple(f.name for f in fields(PeriodTotals))


@dataclass(slots=True)
class PeriodReport:
    """Read-only copy of one period's totals plus the derived figures."""

    kind: str
    label: str
    totals: PeriodTotals

    @classmethod
    def capture(cls, kind: str, label: str, totals: PeriodTotals) -> PeriodReport:
        return cls(kind=kind, label=label, totals=totals.copy())

    @property
    def total_income(self) -> float:
        return self.totals.total_income()

    @property
    def total_taxes(self) -> float:
        return self.totals.total_taxes()

    @property
    def cash_flow(self) -> float:
        return self.totals.cash_flow()

    @property
    def effective_tax_rate(self) -> float:
        return self.totals.effective_tax_rate()

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"kind": self.kind, "period": self.label}
        for name in _FIELD_NAMES:
            out[name] = getattr(self.totals, name).rounded()
        out["total_income"] = round(self.total_income, 2)
        out["total_taxes"] = round(self.total_taxes, 2)
        out["effective_tax_rate"] = round(self.effective_tax_rate, 4)
        out["cash_flow"] = round(self.cash_flow, 2)
        return out
