"""Value primitives: money, calendar checkpoints and annual rates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

CHECKPOINT_DAYS: tuple[int, ...] = (1, 15, 30)


@dataclass(slots=True)
class Currency:
    """Monetary amount. Arithmetic stays floating; display rounds to cents.

    The in-place operations return ``self`` so they can be chained.
    """

    amount: float = 0.0

    def add(self, other: Currency | float) -> Currency:
        self.amount += _as_float(other)
        return self

    def subtract(self, other: Currency | float) -> Currency:
        self.amount -= _as_float(other)
        return self

    def multiply(self, factor: float) -> Currency:
        self.amount *= factor
        return self

    def divide(self, divisor: float) -> Currency:
        if divisor == 0:
            logger.warning("ignoring division of %s by zero", self)
            return self
        self.amount /= divisor
        return self

    def flip_sign(self) -> Currency:
        self.amount = -self.amount
        return self

    def zero(self) -> Currency:
        self.amount = 0.0
        return self

    def copy(self) -> Currency:
        return Currency(self.amount)

    def plus(self, other: Currency | float) -> Currency:
        return Currency(self.amount + _as_float(other))

    def minus(self, other: Currency | float) -> Currency:
        return Currency(self.amount - _as_float(other))

    def times(self, factor: float) -> Currency:
        return Currency(self.amount * factor)

    def rounded(self) -> float:
        return round(self.amount, 2)

    def is_zero(self) -> bool:
        return abs(self.amount) < 0.005

    def __str__(self) -> str:
        sign = "-" if self.amount < 0 else ""
        return f"{sign}${abs(self.amount):,.2f}"

    @classmethod
    def parse(cls, text: str) -> Currency:
        cleaned = text.strip().replace("$", "").replace(",", "")
        return cls(float(cleaned) if cleaned else 0.0)


def _as_float(value: Currency | float) -> float:
    if isinstance(value, Currency):
        return value.amount
    return float(value)


@dataclass(slots=True, frozen=True, order=True)
class CalendarPoint:
    year: int
    month: int
    day: int = 1

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month out of range: {self.month}")
        if self.day not in CHECKPOINT_DAYS:
            raise ValueError(f"day must be one of {CHECKPOINT_DAYS}: {self.day}")

    @classmethod
    def parse(cls, text: str) -> CalendarPoint:
        parsed = datetime.strptime(text.strip(), "%Y-%m")
        return cls(parsed.year, parsed.month, 1)

    @classmethod
    def from_int(cls, value: int) -> CalendarPoint:
        return cls(value // 10000, (value // 100) % 100, value % 100)

    @classmethod
    def from_month_index(cls, index: int, day: int = 1) -> CalendarPoint:
        return cls(index // 12, index % 12 + 1, day)

    def to_int(self) -> int:
        return self.year * 10000 + self.month * 100 + self.day

    @property
    def month_index(self) -> int:
        return self.year * 12 + (self.month - 1)

    def with_day(self, day: int) -> CalendarPoint:
        return CalendarPoint(self.year, self.month, day)

    def add_months(self, months: int) -> CalendarPoint:
        return CalendarPoint.from_month_index(self.month_index + months, self.day)

    def months_between(self, other: CalendarPoint) -> int:
        """Whole months from ``self`` to ``other`` (negative when ``other`` is earlier)."""
        return other.month_index - self.month_index

    def next_checkpoint(self) -> CalendarPoint:
        position = CHECKPOINT_DAYS.index(self.day)
        if position + 1 < len(CHECKPOINT_DAYS):
            return CalendarPoint(self.year, self.month, CHECKPOINT_DAYS[position + 1])
        return CalendarPoint.from_month_index(self.month_index + 1, CHECKPOINT_DAYS[0])

    def same_month(self, other: CalendarPoint) -> bool:
        return self.month_index == other.month_index

    def is_new_years_day(self) -> bool:
        return self.month == 1 and self.day == 1

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


@dataclass(slots=True)
class AnnualRate:
    rate: float = 0.0

    @classmethod
    def from_percent(cls, percent: float) -> AnnualRate:
        return cls(percent / 100.0)

    def to_percent(self) -> float:
        return self.rate * 100.0

    def as_monthly(self) -> float:
        return self.rate / 12.0

    def copy(self) -> AnnualRate:
        return AnnualRate(self.rate)

    def __str__(self) -> str:
        return f"{self.rate * 100.0:.2f}%"
