"""Explicit per-run simulation context: settings, tax table and the aging user."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .tax import TaxTable
from .tax_data import (
    DEFAULT_FILING_STATUS,
    DEFAULT_INFLATION_RATE,
    DEFAULT_RMD_START_AGE,
    DEFAULT_START_AGE,
    PROPERTY_TAX_DEDUCTION_MAX,
)


@dataclass(slots=True)
class SimulationSettings:
    filing_status: str = DEFAULT_FILING_STATUS
    inflation_rate: float = DEFAULT_INFLATION_RATE
    start_age: int = DEFAULT_START_AGE
    rmd_start_age: int = DEFAULT_RMD_START_AGE
    property_tax_deduction_max: float = PROPERTY_TAX_DEDUCTION_MAX


@dataclass(slots=True)
class UserContext:
    age: int = DEFAULT_START_AGE
    rmd_start_age: int = DEFAULT_RMD_START_AGE

    @property
    def rmd_required(self) -> bool:
        return self.age >= self.rmd_start_age

    def add_year(self) -> None:
        self.age += 1


@dataclass(slots=True)
class SimulationContext:
    """Everything a run used to read from globals, built once per run.

    Never share an instance between portfolios: the tax table is mutated as
    simulated years pass.
    """

    settings: SimulationSettings = field(default_factory=SimulationSettings)
    tax_table: TaxTable = field(init=False)
    user: UserContext = field(init=False)

    def __post_init__(self) -> None:
        self.tax_table = TaxTable(
            filing_status=self.settings.filing_status,
            inflation_rate=self.settings.inflation_rate,
            property_tax_deduction_max=self.settings.property_tax_deduction_max,
        )
        self.user = UserContext(age=self.settings.start_age, rmd_start_age=self.settings.rmd_start_age)

    def reset(self) -> None:
        self.tax_table.initialize()
        self.user.age = self.settings.start_age
        self.user.rmd_start_age = self.settings.rmd_start_age

    def fork(self) -> SimulationContext:
        return SimulationContext(settings=replace(self.settings))
