"""Year-scoped tax table: brackets, FICA, deductions, limits and RMDs."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from .results import WithholdingResult
from .rmd import compute_monthly_rmd
from .tax_data import (
    BASE_TAX_YEAR,
    CAPITAL_GAINS_BRACKETS,
    CATCH_UP_AGE,
    CONTRIBUTION_LIMITS,
    DEFAULT_FILING_STATUS,
    DEFAULT_INFLATION_RATE,
    FEDERAL_BRACKETS,
    FICA_RATES,
    HOME_SALE_EXCLUSIONS,
    JOINT_FILING_STATUSES,
    PROPERTY_TAX_DEDUCTION_MAX,
    STANDARD_DEDUCTIONS,
)

if TYPE_CHECKING:
    from .totals import PeriodTotals

logger = logging.getLogger(__name__)

Brackets = list[tuple[float | None, float]]


def _normalize_filing_status(filing_status: str) -> str:
    if filing_status in FEDERAL_BRACKETS[BASE_TAX_YEAR]:
        return filing_status
    logger.warning("unknown filing status %r; using %s", filing_status, DEFAULT_FILING_STATUS)
    return DEFAULT_FILING_STATUS


def _progressive_tax(amount: float, brackets: Brackets) -> float:
    if amount <= 0:
        return 0.0

    remaining = amount
    lower = 0.0
    tax = 0.0
    for upper, rate in brackets:
        if remaining <= 0:
            break
        if upper is None:
            taxable_at_rate = remaining
        else:
            span = max(0.0, upper - lower)
            taxable_at_rate = min(remaining, span)
        tax += taxable_at_rate * rate
        remaining -= taxable_at_rate
        if upper is None:
            break
        lower = upper
    return max(0.0, tax)


def _stacked_tax(base: float, amount: float, brackets: Brackets) -> float:
    """Tax ``amount`` stacked on top of ``base``: only bracket ranges above base count."""
    if amount <= 0:
        return 0.0

    floor = max(0.0, base)
    ceiling = floor + amount
    lower = 0.0
    tax = 0.0
    for upper, rate in brackets:
        top = ceiling if upper is None else min(upper, ceiling)
        bottom = max(lower, floor)
        if top > bottom:
            tax += (top - bottom) * rate
        if upper is None or upper >= ceiling:
            break
        lower = upper
    return tax


def _marginal_rate(amount: float, brackets: Brackets) -> float:
    for upper, rate in brackets:
        if upper is None or amount < upper:
            return rate
    return brackets[-1][1]


@dataclass(slots=True)
class YearReconciliation:
    year: int
    taxable_income: float
    income_tax_due: float
    income_tax_withheld: float
    long_term_gains_tax_due: float
    long_term_gains_tax_withheld: float

    @property
    def income_tax_gap(self) -> float:
        return self.income_tax_due - self.income_tax_withheld


class TaxTable:
    """Mutable per-run tax state; one instance is shared by every account in a run."""

    def __init__(
        self,
        filing_status: str = DEFAULT_FILING_STATUS,
        inflation_rate: float = DEFAULT_INFLATION_RATE,
        property_tax_deduction_max: float = PROPERTY_TAX_DEDUCTION_MAX,
    ) -> None:
        self.filing_status = _normalize_filing_status(filing_status)
        self.inflation_rate = inflation_rate
        self.property_tax_deduction_max = property_tax_deduction_max
        self.initialize()

    def initialize(self) -> None:
        fs = self.filing_status
        fica = FICA_RATES[BASE_TAX_YEAR]
        self.year = BASE_TAX_YEAR
        self.income_brackets: Brackets = list(FEDERAL_BRACKETS[BASE_TAX_YEAR][fs])
        self.gains_brackets: Brackets = list(CAPITAL_GAINS_BRACKETS[BASE_TAX_YEAR][fs])
        self.standard_deduction = STANDARD_DEDUCTIONS[BASE_TAX_YEAR][fs]
        self.social_security_rate = fica["social_security_rate"]
        self.medicare_rate = fica["medicare_rate"]
        self.wage_base = fica["social_security_wage_base"]
        self.social_security_wages = 0.0

    @property
    def is_joint(self) -> bool:
        return self.filing_status in JOINT_FILING_STATUSES

    @property
    def home_sale_exclusion(self) -> float:
        return HOME_SALE_EXCLUSIONS[self.filing_status]

    def yearly_income_tax(self, taxable_income: float) -> float:
        return _progressive_tax(taxable_income, self.income_brackets)

    def marginal_income_rate(self, taxable_income: float) -> float:
        return _marginal_rate(max(0.0, taxable_income), self.income_brackets)

    def yearly_long_term_gains_tax(self, ordinary_taxable_income: float, gains: float) -> float:
        return _stacked_tax(ordinary_taxable_income, gains, self.gains_brackets)

    def marginal_long_term_gains_rate(self, taxable_income: float) -> float:
        return _marginal_rate(max(0.0, taxable_income), self.gains_brackets)

    def fica_tax(self, wages: float, self_employed: bool = False) -> WithholdingResult:
        """FICA on one month of wages; Social Security stops at the yearly wage base."""
        if wages <= 0:
            return WithholdingResult()

        share = 2.0 if self_employed else 1.0
        ss_taxable = max(0.0, min(wages, self.wage_base - self.social_security_wages))
        self.social_security_wages += wages
        return WithholdingResult(
            social_security=ss_taxable * self.social_security_rate * share,
            medicare=wages * self.medicare_rate * share,
        )

    def yearly_deductions(self, totals: PeriodTotals) -> float:
        """Larger of itemized (mortgage interest plus capped property tax) and standard."""
        property_taxes = min(abs(totals.property_taxes.amount), self.property_tax_deduction_max)
        itemized = abs(totals.mortgage_interest.amount) + property_taxes
        return max(itemized, self.standard_deduction)

    def yearly_taxable_income(self, totals: PeriodTotals) -> float:
        pre_tax = totals.ira_contribution.amount + totals.four01k_contribution.amount
        gross = totals.wage_income() + totals.ordinary_income()
        return max(0.0, gross - pre_tax - self.yearly_deductions(totals))

    def ira_contribution_limit(self, age: int) -> float:
        under, over = CONTRIBUTION_LIMITS[BASE_TAX_YEAR]["ira"]
        limit = over if age >= CATCH_UP_AGE else under
        return limit * 2.0 if self.is_joint else limit

    def four01k_contribution_limit(self, age: int) -> float:
        under, over = CONTRIBUTION_LIMITS[BASE_TAX_YEAR]["401k"]
        return over if age >= CATCH_UP_AGE else under

    def monthly_rmd(self, prior_balance: float, age: int) -> float:
        return compute_monthly_rmd(prior_balance, age)

    def inflate(self) -> None:
        factor = 1.0 + self.inflation_rate
        self.income_brackets = [(None if upper is None else upper * factor, rate) for upper, rate in self.income_brackets]
        self.gains_brackets = [(None if upper is None else upper * factor, rate) for upper, rate in self.gains_brackets]
        self.wage_base *= factor

    def yearly_chron(self) -> None:
        self.social_security_wages = 0.0
        self.inflate()
        self.year += 1

    def reconcile_year(self, totals: PeriodTotals) -> YearReconciliation:
        """Compare a year's withheld taxes against what the brackets say was owed."""
        taxable = self.yearly_taxable_income(totals)
        gains = max(0.0, totals.long_term_capital_gains.amount + totals.qualified_dividends.amount)
        result = YearReconciliation(
            year=self.year,
            taxable_income=taxable,
            income_tax_due=self.yearly_income_tax(taxable),
            income_tax_withheld=-totals.income_tax.amount,
            long_term_gains_tax_due=self.yearly_long_term_gains_tax(taxable, gains),
            long_term_gains_tax_withheld=-(totals.long_term_capital_gains_tax.amount + totals.estimated_taxes.amount),
        )
        if abs(result.income_tax_gap) > 1.0:
            logger.info(
                "%d income tax: due %.2f, withheld %.2f (gap %.2f)",
                result.year,
                result.income_tax_due,
                result.income_tax_withheld,
                result.income_tax_gap,
            )
        return result
