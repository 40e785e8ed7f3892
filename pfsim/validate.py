"""Semantic and cross-reference validation for portfolio files."""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Iterable

from .instrument import AMORTIZING, Instrument, is_expensable
from .schema import PortfolioFile
from .tax_data import FILING_STATUSES
from .transfer import Frequency

DATE_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

INSTRUMENTS = {instrument.value for instrument in Instrument}
FREQUENCIES = {frequency.value for frequency in Frequency}
SIM_MODES = {"deterministic", "historical"}


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_enum(result: ValidationResult, path: str, value: str, allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    if value not in allowed_set:
        expected = ", ".join(sorted(allowed_set))
        result.errors.append(f"{path}: '{value}' is not valid; expected one of [{expected}]")


def _check_date(result: ValidationResult, path: str, value: object) -> bool:
    if not isinstance(value, str) or not DATE_RE.match(value):
        result.errors.append(f"{path}: '{value}' is not valid; expected YYYY-MM")
        return False
    return True


def _check_non_negative(result: ValidationResult, path: str, value: float) -> None:
    if value < 0:
        result.errors.append(f"{path}: must be >= 0")


def validate_portfolio(portfolio_file: PortfolioFile) -> ValidationResult:
    result = ValidationResult()
    settings = portfolio_file.settings

    _check_enum(result, "settings.filing_status", settings.filing_status, FILING_STATUSES)
    _check_enum(result, "settings.simulation.mode", settings.simulation.mode, SIM_MODES)
    if settings.inflation_rate <= -1.0:
        result.errors.append("settings.inflation_rate: must be > -1")
    if settings.start_age < 0:
        result.errors.append("settings.start_age: must be >= 0")
    historical = settings.simulation.historical
    if historical.start_year > historical.end_year:
        result.errors.append("settings.simulation.historical: start_year must be <= end_year")

    if not portfolio_file.accounts:
        result.warnings.append("accounts: portfolio has no accounts; nothing will be simulated")

    instruments: dict[str, str] = {}
    for idx, record in enumerate(portfolio_file.accounts):
        base = f"accounts[{idx}]"
        if record.name in instruments:
            result.errors.append(f"{base}.name: duplicate account name '{record.name}'")
        instruments[record.name] = record.instrument

        _check_enum(result, f"{base}.instrument", record.instrument, INSTRUMENTS)
        start_ok = _check_date(result, f"{base}.start", record.start)
        finish_ok = _check_date(result, f"{base}.finish", record.finish)
        if start_ok and finish_ok and record.start > record.finish:
            result.errors.append(f"{base}.start/{base}.finish: start must be <= finish")

        _check_non_negative(result, f"{base}.start_basis", record.start_basis)
        _check_non_negative(result, f"{base}.dividend_rate", record.dividend_rate)
        _check_non_negative(result, f"{base}.annual_tax_rate", record.annual_tax_rate)
        _check_non_negative(result, f"{base}.months_remaining", record.months_remaining)
        if record.instrument in INSTRUMENTS and Instrument(record.instrument) in AMORTIZING and record.months_remaining <= 0:
            result.errors.append(f"{base}.months_remaining: required for {record.instrument} accounts")

    for idx, record in enumerate(portfolio_file.accounts):
        base = f"accounts[{idx}]"
        recurring_total = 0.0
        for rule_idx, transfer in enumerate(record.transfers):
            path = f"{base}.transfers[{rule_idx}]"
            _check_enum(result, f"{path}.frequency", transfer.frequency, FREQUENCIES)
            _check_non_negative(result, f"{path}.recurring_percent", transfer.recurring_percent)
            _check_non_negative(result, f"{path}.close_percent", transfer.close_percent)
            if transfer.frequency != Frequency.NONE.value:
                recurring_total += max(0.0, transfer.recurring_percent)

            target = instruments.get(transfer.to)
            if target is None:
                result.warnings.append(f"{path}.to: '{transfer.to}' does not match any account name; transfer is ignored")
                continue
            if transfer.to == record.name:
                result.warnings.append(f"{path}.to: transfer targets its own account; transfer is ignored")
            if transfer.close_percent > 0 and target in INSTRUMENTS and not is_expensable(Instrument(target)):
                result.warnings.append(
                    f"{path}.close_percent: target '{transfer.to}' is not expensable; closing proceeds skip it"
                )
        if recurring_total > 100.0:
            result.warnings.append(
                f"{base}.transfers: recurring percentages sum to {recurring_total:g}; they will be scaled to 100"
            )

    return result
