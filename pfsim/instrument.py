"""Instrument kinds and the classification sets the engine routes on."""

from __future__ import annotations

from enum import Enum
from typing import Final


class Instrument(str, Enum):
    HOME = "home"
    MORTGAGE = "mortgage"
    SALARY = "salary"
    SOCIAL_SECURITY = "social_security"
    BOND = "bond"
    SAVINGS = "savings"
    ROTH_IRA = "roth_ira"
    TRADITIONAL_IRA = "traditional_ira"
    FOUR_01K = "401k"
    TAXABLE_BROKERAGE = "taxable_brokerage"
    CASH = "cash"
    DEBT = "debt"
    MONTHLY_EXPENSE = "monthly_expense"

    @classmethod
    def parse(cls, value: str) -> Instrument:
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"unknown instrument: {value!r}") from None


INSTRUMENT_LABELS: Final[dict[Instrument, str]] = {
    Instrument.HOME: "Home",
    Instrument.MORTGAGE: "Mortgage",
    Instrument.SALARY: "Salary",
    Instrument.SOCIAL_SECURITY: "Social Security",
    Instrument.BOND: "Bond",
    Instrument.SAVINGS: "Savings",
    Instrument.ROTH_IRA: "Roth IRA",
    Instrument.TRADITIONAL_IRA: "Traditional IRA",
    Instrument.FOUR_01K: "401K",
    Instrument.TAXABLE_BROKERAGE: "Taxable Brokerage",
    Instrument.CASH: "Cash",
    Instrument.DEBT: "Debt",
    Instrument.MONTHLY_EXPENSE: "Monthly Expense",
}

# Portfolio ordering; upstream balances are computed before anything that reads them.
SORT_ORDER: Final[dict[Instrument, int]] = {
    Instrument.HOME: 0,
    Instrument.MORTGAGE: 1,
    Instrument.SALARY: 2,
    Instrument.SOCIAL_SECURITY: 3,
    Instrument.BOND: 4,
    Instrument.SAVINGS: 5,
    Instrument.ROTH_IRA: 6,
    Instrument.TRADITIONAL_IRA: 7,
    Instrument.FOUR_01K: 8,
    Instrument.TAXABLE_BROKERAGE: 9,
    Instrument.CASH: 10,
    Instrument.DEBT: 11,
    Instrument.MONTHLY_EXPENSE: 12,
}

MONTHLY_INCOME: Final[frozenset[Instrument]] = frozenset({Instrument.SALARY, Instrument.SOCIAL_SECURITY})
MONTHLY_EXPENSE: Final[frozenset[Instrument]] = frozenset({Instrument.MONTHLY_EXPENSE})
FLOW: Final[frozenset[Instrument]] = MONTHLY_INCOME | MONTHLY_EXPENSE

AMORTIZING: Final[frozenset[Instrument]] = frozenset({Instrument.MORTGAGE, Instrument.DEBT})
TAX_DEFERRED: Final[frozenset[Instrument]] = frozenset({Instrument.TRADITIONAL_IRA, Instrument.FOUR_01K})
TAX_FREE: Final[frozenset[Instrument]] = frozenset({Instrument.ROTH_IRA})
TAXABLE: Final[frozenset[Instrument]] = frozenset({Instrument.TAXABLE_BROKERAGE})
INTEREST_BEARING: Final[frozenset[Instrument]] = frozenset({Instrument.SAVINGS, Instrument.BOND})
CAPITAL: Final[frozenset[Instrument]] = frozenset(
    {
        Instrument.TAXABLE_BROKERAGE,
        Instrument.TRADITIONAL_IRA,
        Instrument.FOUR_01K,
        Instrument.ROTH_IRA,
        Instrument.HOME,
    }
)
BASIS_TRACKED: Final[frozenset[Instrument]] = frozenset({Instrument.TAXABLE_BROKERAGE, Instrument.HOME})
FUNDABLE: Final[frozenset[Instrument]] = frozenset(
    {
        Instrument.CASH,
        Instrument.SAVINGS,
        Instrument.TAXABLE_BROKERAGE,
        Instrument.FOUR_01K,
        Instrument.TRADITIONAL_IRA,
        Instrument.ROTH_IRA,
        Instrument.BOND,
        Instrument.DEBT,
    }
)

# Ordered: the first active match absorbs cash shortfalls and leftovers.
EXPENSABLE_PRIORITY: Final[tuple[Instrument, ...]] = (
    Instrument.CASH,
    Instrument.SAVINGS,
    Instrument.TAXABLE_BROKERAGE,
    Instrument.FOUR_01K,
    Instrument.TRADITIONAL_IRA,
    Instrument.ROTH_IRA,
)
EXPENSABLE: Final[frozenset[Instrument]] = frozenset(EXPENSABLE_PRIORITY)

ASSET: Final[frozenset[Instrument]] = FUNDABLE | {Instrument.HOME, Instrument.MORTGAGE}

# Backtest classes.
EQUITY_LIKE: Final[frozenset[Instrument]] = TAXABLE | TAX_DEFERRED | TAX_FREE
BOND_LIKE: Final[frozenset[Instrument]] = INTEREST_BEARING
INFLATION_LIKE: Final[frozenset[Instrument]] = frozenset({Instrument.HOME, Instrument.MONTHLY_EXPENSE})
WAGE_LIKE: Final[frozenset[Instrument]] = MONTHLY_INCOME


def is_expensable(instrument: Instrument) -> bool:
    return instrument in EXPENSABLE


def expensable_rank(instrument: Instrument) -> int:
    if instrument in EXPENSABLE:
        return EXPENSABLE_PRIORITY.index(instrument)
    return len(EXPENSABLE_PRIORITY)
