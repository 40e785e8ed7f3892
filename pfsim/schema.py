"""Portfolio file dataclasses, JSON loading and the reference-free account snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any

from .account import Account
from .context import SimulationContext, SimulationSettings
from .instrument import Instrument
from .portfolio import Portfolio
from .tax_data import (
    DEFAULT_FILING_STATUS,
    DEFAULT_INFLATION_RATE,
    DEFAULT_RMD_START_AGE,
    DEFAULT_START_AGE,
    PROPERTY_TAX_DEDUCTION_MAX,
)
from .transfer import Frequency, FundTransferRule
from .values import AnnualRate, CalendarPoint


class SchemaError(ValueError):
    """Raised when raw JSON cannot be parsed into schema objects."""


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(f"{path}: expected array")
    return value


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    return data.get(key, default)


def _number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"{path}: expected number")
    return float(value)


@dataclass(slots=True)
class TransferRecord:
    to: str
    frequency: str = Frequency.MONTHLY.value
    recurring_percent: float = 0.0
    close_percent: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "TransferRecord":
        return cls(
            to=_require(data, "to", path),
            frequency=_optional(data, "frequency", Frequency.MONTHLY.value),
            recurring_percent=_number(_optional(data, "recurring_percent", 0.0), f"{path}.recurring_percent"),
            close_percent=_number(_optional(data, "close_percent", 0.0), f"{path}.close_percent"),
        )

    @classmethod
    def from_rule(cls, rule: FundTransferRule) -> "TransferRecord":
        return cls(
            to=rule.target_name,
            frequency=rule.frequency.value,
            recurring_percent=rule.recurring_percent,
            close_percent=rule.close_percent,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "to": self.to,
            "frequency": self.frequency,
            "recurring_percent": self.recurring_percent,
            "close_percent": self.close_percent,
        }

    def to_rule(self) -> FundTransferRule:
        return FundTransferRule(
            target_name=self.to,
            frequency=Frequency(self.frequency),
            recurring_percent=self.recurring_percent,
            close_percent=self.close_percent,
        )


@dataclass(slots=True)
class AccountRecord:
    """Serializable account snapshot; carries transfer targets by name only."""

    instrument: str
    name: str
    start: str
    finish: str
    start_value: float = 0.0
    start_basis: float = 0.0
    annual_return_rate: float = 0.0
    dividend_rate: float = 0.0
    annual_tax_rate: float = 0.0
    months_remaining: int = 0
    self_employed: bool = False
    transfers: list[TransferRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "AccountRecord":
        return cls(
            instrument=_require(data, "instrument", path),
            name=_require(data, "name", path),
            start=_require(data, "start", path),
            finish=_require(data, "finish", path),
            start_value=_number(_optional(data, "start_value", 0.0), f"{path}.start_value"),
            start_basis=_number(_optional(data, "start_basis", 0.0), f"{path}.start_basis"),
            annual_return_rate=_number(_optional(data, "annual_return_rate", 0.0), f"{path}.annual_return_rate"),
            dividend_rate=_number(_optional(data, "dividend_rate", 0.0), f"{path}.dividend_rate"),
            annual_tax_rate=_number(_optional(data, "annual_tax_rate", 0.0), f"{path}.annual_tax_rate"),
            months_remaining=int(_number(_optional(data, "months_remaining", 0), f"{path}.months_remaining")),
            self_employed=bool(_optional(data, "self_employed", False)),
            transfers=[
                TransferRecord.from_dict(_expect_dict(item, f"{path}.transfers[{idx}]"), f"{path}.transfers[{idx}]")
                for idx, item in enumerate(_expect_list(_optional(data, "transfers", []), f"{path}.transfers"))
            ],
        )

    @classmethod
    def from_account(cls, account: Account) -> "AccountRecord":
        return cls(
            instrument=account.instrument.value,
            name=account.name,
            start=str(account.start),
            finish=str(account.finish),
            start_value=account.start_value,
            start_basis=account.start_basis,
            annual_return_rate=account.annual_return_rate.rate,
            dividend_rate=account.dividend_rate.rate,
            annual_tax_rate=account.annual_tax_rate.rate,
            months_remaining=account.months_remaining,
            self_employed=account.self_employed,
            transfers=[TransferRecord.from_rule(rule) for rule in account.transfers],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "instrument": self.instrument,
            "name": self.name,
            "start": self.start,
            "finish": self.finish,
            "start_value": self.start_value,
            "start_basis": self.start_basis,
            "annual_return_rate": self.annual_return_rate,
            "dividend_rate": self.dividend_rate,
            "annual_tax_rate": self.annual_tax_rate,
            "months_remaining": self.months_remaining,
            "self_employed": self.self_employed,
            "transfers": [transfer.to_dict() for transfer in self.transfers],
        }

    def to_account(self) -> Account:
        """Build a live account; raises ValueError on an unknown instrument, frequency or date."""
        return Account(
            instrument=Instrument.parse(self.instrument),
            name=self.name,
            start=CalendarPoint.parse(self.start),
            finish=CalendarPoint.parse(self.finish),
            start_value=self.start_value,
            start_basis=self.start_basis,
            annual_return_rate=AnnualRate(self.annual_return_rate),
            dividend_rate=AnnualRate(self.dividend_rate),
            annual_tax_rate=AnnualRate(self.annual_tax_rate),
            months_remaining=self.months_remaining,
            self_employed=self.self_employed,
            transfers=[transfer.to_rule() for transfer in self.transfers],
        )


@dataclass(slots=True)
class HistoricalSettings:
    start_year: int = 1970
    end_year: int = 2025

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "HistoricalSettings":
        return cls(
            start_year=int(_optional(data, "start_year", 1970)),
            end_year=int(_optional(data, "end_year", 2025)),
        )


@dataclass(slots=True)
class RunSettings:
    mode: str = "deterministic"
    historical: HistoricalSettings = field(default_factory=HistoricalSettings)
    backtest_start_year: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "RunSettings":
        backtest = _optional(data, "backtest_start_year")
        return cls(
            mode=_optional(data, "mode", "deterministic"),
            historical=HistoricalSettings.from_dict(
                _expect_dict(_optional(data, "historical", {}), f"{path}.historical"),
                f"{path}.historical",
            ),
            backtest_start_year=None if backtest is None else int(backtest),
        )


@dataclass(slots=True)
class SettingsRecord:
    filing_status: str = DEFAULT_FILING_STATUS
    inflation_rate: float = DEFAULT_INFLATION_RATE
    start_age: int = DEFAULT_START_AGE
    rmd_start_age: int = DEFAULT_RMD_START_AGE
    property_tax_deduction_max: float = PROPERTY_TAX_DEDUCTION_MAX
    simulation: RunSettings = field(default_factory=RunSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "settings") -> "SettingsRecord":
        return cls(
            filing_status=_optional(data, "filing_status", DEFAULT_FILING_STATUS),
            inflation_rate=_number(_optional(data, "inflation_rate", DEFAULT_INFLATION_RATE), f"{path}.inflation_rate"),
            start_age=int(_number(_optional(data, "start_age", DEFAULT_START_AGE), f"{path}.start_age")),
            rmd_start_age=int(_number(_optional(data, "rmd_start_age", DEFAULT_RMD_START_AGE), f"{path}.rmd_start_age")),
            property_tax_deduction_max=_number(
                _optional(data, "property_tax_deduction_max", PROPERTY_TAX_DEDUCTION_MAX),
                f"{path}.property_tax_deduction_max",
            ),
            simulation=RunSettings.from_dict(
                _expect_dict(_optional(data, "simulation", {}), f"{path}.simulation"),
                f"{path}.simulation",
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "filing_status": self.filing_status,
            "inflation_rate": self.inflation_rate,
            "start_age": self.start_age,
            "rmd_start_age": self.rmd_start_age,
            "property_tax_deduction_max": self.property_tax_deduction_max,
            "simulation": {
                "mode": self.simulation.mode,
                "historical": {
                    "start_year": self.simulation.historical.start_year,
                    "end_year": self.simulation.historical.end_year,
                },
                "backtest_start_year": self.simulation.backtest_start_year,
            },
        }

    def to_settings(self) -> SimulationSettings:
        return SimulationSettings(
            filing_status=self.filing_status,
            inflation_rate=self.inflation_rate,
            start_age=self.start_age,
            rmd_start_age=self.rmd_start_age,
            property_tax_deduction_max=self.property_tax_deduction_max,
        )


@dataclass(slots=True)
class PortfolioFile:
    settings: SettingsRecord
    accounts: list[AccountRecord]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PortfolioFile":
        return cls(
            settings=SettingsRecord.from_dict(_expect_dict(_optional(data, "settings", {}), "settings")),
            accounts=[
                AccountRecord.from_dict(_expect_dict(item, f"accounts[{idx}]"), f"accounts[{idx}]")
                for idx, item in enumerate(_expect_list(_require(data, "accounts", "portfolio"), "accounts"))
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "settings": self.settings.to_dict(),
            "accounts": [record.to_dict() for record in self.accounts],
        }


def build_accounts(records: list[AccountRecord]) -> list[Account]:
    return [record.to_account() for record in records]


def build_portfolio(
    records: list[AccountRecord],
    settings: SimulationSettings | None = None,
    *,
    reports: bool = False,
) -> Portfolio:
    """Fresh portfolio with its own context; raises ValueError on bad records."""
    return Portfolio(build_accounts(records), SimulationContext(settings or SimulationSettings()), reports=reports)


def snapshot_accounts(accounts: list[Account]) -> list[dict[str, Any]]:
    return [AccountRecord.from_account(account).to_dict() for account in accounts]


def records_from_dicts(raw: list[Any], path: str = "accounts") -> list[AccountRecord]:
    return [
        AccountRecord.from_dict(_expect_dict(item, f"{path}[{idx}]"), f"{path}[{idx}]")
        for idx, item in enumerate(_expect_list(raw, path))
    ]


def load_portfolio(path: str | Path) -> PortfolioFile:
    """Load portfolio JSON into strongly-typed dataclasses."""
    source = Path(path)
    raw = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise SchemaError("portfolio: root must be a JSON object")
    return PortfolioFile.from_dict(raw)


def dump_portfolio(portfolio_file: PortfolioFile, path: str | Path) -> None:
    Path(path).write_text(json.dumps(portfolio_file.to_dict(), indent=2) + "\n", encoding="utf-8")
