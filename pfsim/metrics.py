"""Per-account running totals with monthly snapshot/reset semantics."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator


class Metric(str, Enum):
    VALUE = "value"
    GROWTH = "growth"
    DIVIDEND = "dividend"
    INCOME = "income"
    NET_INCOME = "net_income"
    INTEREST_INCOME = "interest_income"
    EXPENSE = "expense"
    SOCIAL_SECURITY_TAX = "social_security_tax"
    MEDICARE_TAX = "medicare_tax"
    INCOME_TAX = "income_tax"
    ESTIMATED_TAX = "estimated_tax"
    IRA_CONTRIBUTION = "ira_contribution"
    FOUR_01K_CONTRIBUTION = "401k_contribution"
    ROTH_CONTRIBUTION = "roth_contribution"
    IRA_DISTRIBUTION = "ira_distribution"
    FOUR_01K_DISTRIBUTION = "401k_distribution"
    ROTH_DISTRIBUTION = "roth_distribution"
    RMD = "rmd"
    SHORT_TERM_CAPITAL_GAIN = "short_term_capital_gain"
    LONG_TERM_CAPITAL_GAIN = "long_term_capital_gain"
    CAPITAL_GAINS_TAX = "capital_gains_tax"
    MORTGAGE_PAYMENT = "mortgage_payment"
    MORTGAGE_INTEREST = "mortgage_interest"
    MORTGAGE_PRINCIPAL = "mortgage_principal"
    PROPERTY_TAX = "property_tax"
    CREDIT = "credit"
    CASH_FLOW = "cash_flow"
    ACCUMULATED = "accumulated"


# Metrics that carry across the monthly snapshot instead of resetting.
CARRIED_METRICS: frozenset[Metric] = frozenset({Metric.VALUE, Metric.ACCUMULATED})


@dataclass(slots=True)
class TrackedMetric:
    name: Metric
    current: float = 0.0
    history: list[float] = field(default_factory=list)

    def add(self, amount: float) -> None:
        self.current += amount

    def set(self, amount: float) -> None:
        self.current = amount

    def snapshot(self, reset: bool = True) -> None:
        self.history.append(self.current)
        if reset:
            self.current = 0.0

    def total(self) -> float:
        return sum(self.history) + self.current

    def clear(self) -> None:
        self.current = 0.0
        self.history.clear()


class MetricLedger:
    """Named running totals for one account."""

    __slots__ = ("_metrics",)

    def __init__(self) -> None:
        self._metrics: dict[Metric, TrackedMetric] = {name: TrackedMetric(name) for name in Metric}

    def __getitem__(self, name: Metric) -> TrackedMetric:
        return self._metrics[name]

    def __iter__(self) -> Iterator[TrackedMetric]:
        return iter(self._metrics.values())

    def add(self, name: Metric, amount: float) -> None:
        self._metrics[name].add(amount)

    def current(self, name: Metric) -> float:
        return self._metrics[name].current

    def history(self, name: Metric) -> list[float]:
        return self._metrics[name].history

    def total(self, name: Metric) -> float:
        return self._metrics[name].total()

    def snapshot_all(self) -> None:
        for metric in self._metrics.values():
            metric.snapshot(reset=metric.name not in CARRIED_METRICS)

    def initialize_all(self) -> None:
        for metric in self._metrics.values():
            metric.clear()
