"""Typed records produced by account calculations and money movements."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .values import CalendarPoint


class MemoLabel(str, Enum):
    OPENING = "Opening balance"
    CLOSING = "Closing balance"
    TRANSFER = "Fund transfer"
    INCOME = "Net income"
    RAISE = "Raise"
    EXPENSE = "Expense"
    EXPENSE_GROWTH = "Expense growth"
    ASSET_GROWTH = "Asset growth"
    DIVIDEND = "Dividend"
    INTEREST_INCOME = "Interest income"
    AMORTIZATION = "Amortization"
    MORTGAGE_INTEREST = "Mortgage interest"
    MORTGAGE_PRINCIPAL = "Mortgage principal"
    DEBT_INTEREST = "Debt interest"
    DEBT_PRINCIPAL = "Debt principal"
    PROPERTY_TAXES = "Property taxes"
    FICA_WITHHOLDING = "FICA withholding"
    INCOME_TAX_WITHHOLDING = "Income tax withholding"
    ESTIMATED_TAX = "Estimated tax"
    CAPITAL_GAINS = "Capital gains"
    CAPITAL_GAINS_TAX = "Capital gains tax withholding"
    RMD = "Required distribution"
    CLOSE_TRANSFER = "Closing transfer"


@dataclass(slots=True, frozen=True)
class CreditMemo:
    """One dated event on an account. ``applied`` memos moved the balance."""

    amount: float
    label: MemoLabel
    when: CalendarPoint
    note: str = ""
    applied: bool = True

    def to_dict(self) -> dict:
        return {
            "amount": round(self.amount, 2),
            "label": self.label.value,
            "when": self.when.label(),
            "note": self.note,
            "applied": self.applied,
        }


@dataclass(slots=True)
class ReconcileResult:
    balance_change: float = 0.0
    realized_gain: float = 0.0


@dataclass(slots=True)
class IncomeResult:
    employed: float = 0.0
    self_employed: float = 0.0
    social_security: float = 0.0

    @property
    def gross(self) -> float:
        return self.employed + self.self_employed + self.social_security


@dataclass(slots=True)
class ExpenseResult:
    expense: float = 0.0
    growth: float = 0.0


@dataclass(slots=True)
class AmortizationResult:
    payment: float = 0.0
    interest: float = 0.0
    principal: float = 0.0


@dataclass(slots=True)
class AppreciationResult:
    growth: float = 0.0
    dividend: float = 0.0
    qualified: bool = False


@dataclass(slots=True)
class InterestResult:
    interest: float = 0.0


@dataclass(slots=True)
class RaiseResult:
    amount: float = 0.0


@dataclass(slots=True)
class WithholdingResult:
    social_security: float = 0.0
    medicare: float = 0.0

    @property
    def total(self) -> float:
        return self.social_security + self.medicare


@dataclass(slots=True)
class CapitalGainsResult:
    gain: float = 0.0
    taxable_gain: float = 0.0
    tax: float = 0.0
    long_term: bool = True


MonthlyResult = IncomeResult | ExpenseResult | AmortizationResult | AppreciationResult | InterestResult
