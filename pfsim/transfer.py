"""Declarative percentage transfers between two named accounts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import TYPE_CHECKING, Iterable, Mapping

from .results import MemoLabel
from .values import CalendarPoint, Currency

if TYPE_CHECKING:
    from .account import Account

logger = logging.getLogger(__name__)


class Frequency(str, Enum):
    NONE = "none"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half-yearly"
    YEARLY = "yearly"

    def is_active_for_month(self, month: int) -> bool:
        if self is Frequency.MONTHLY:
            return True
        if self is Frequency.QUARTERLY:
            return month % 3 == 0
        if self is Frequency.HALF_YEARLY:
            return month in (6, 12)
        if self is Frequency.YEARLY:
            return month == 12
        return False


@dataclass(slots=True)
class TransferResult:
    source_change: float = 0.0
    target_change: float = 0.0
    realized_gain: float = 0.0

    @property
    def moved(self) -> bool:
        return self.source_change != 0.0 or self.target_change != 0.0


@dataclass(slots=True)
class FundTransferRule:
    """Moves a percentage of the source account's flow or value to ``target_name``.

    ``source``/``target`` are live references filled in by :meth:`bind` at the
    start of every run and never serialized.
    """

    target_name: str
    frequency: Frequency = Frequency.MONTHLY
    recurring_percent: float = 0.0
    close_percent: float = 0.0
    cap: float | None = None
    source: Account | None = field(default=None, repr=False, compare=False)
    target: Account | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.recurring_percent = max(0.0, float(self.recurring_percent))
        self.close_percent = max(0.0, float(self.close_percent))

    @property
    def is_bound(self) -> bool:
        return self.source is not None and self.target is not None

    @property
    def is_recurring(self) -> bool:
        return self.frequency is not Frequency.NONE and self.recurring_percent > 0

    def is_active_for(self, when: CalendarPoint) -> bool:
        return self.is_recurring and self.frequency.is_active_for_month(when.month)

    def bind(self, source: Account, registry: Mapping[str, Account]) -> bool:
        self.source = source
        self.target = registry.get(self.target_name)
        self.cap = None
        if self.target is None:
            logger.warning("transfer from %s: no account named %r", source.name, self.target_name)
            return False
        if self.target is source:
            logger.warning("transfer from %s targets itself; ignoring", source.name)
            self.target = None
            return False
        return True

    def unbind(self) -> None:
        self.source = None
        self.target = None
        self.cap = None

    def calculate(self, base: float, *, on_close: bool = False) -> float:
        """Amount this rule moves for ``base``; zero when unbound or the target is closed."""
        if not self.is_bound or self.target.is_closed:
            return 0.0
        percent = self.close_percent if on_close else self.recurring_percent
        amount = base * percent / 100.0
        if not on_close and self.cap is not None and abs(amount) > self.cap:
            amount = self.cap if amount >= 0 else -self.cap
        return amount

    def execute(
        self,
        amount: float,
        when: CalendarPoint,
        *,
        label: MemoLabel = MemoLabel.TRANSFER,
        skip_gain_recognition: bool = False,
    ) -> TransferResult:
        """Debit the source and credit the target by ``amount``.

        A negative ``amount`` runs the transfer backwards, which is how an
        expense pulls money out of its paying account.
        """
        if not self.is_bound or amount == 0.0:
            return TransferResult()
        note = self.describe(amount)
        debited = self.source.debit(amount, when, note=note, label=label, skip_gain_recognition=skip_gain_recognition)
        credited = self.target.credit(amount, when, note=note, label=label, skip_gain_recognition=skip_gain_recognition)
        logger.debug("%s %s", when.label(), note)
        return TransferResult(
            source_change=debited.balance_change,
            target_change=credited.balance_change,
            realized_gain=debited.realized_gain + credited.realized_gain,
        )

    def describe(self, amount: float | None = None) -> str:
        source = self.source.name if self.source is not None else "?"
        text = f"{source} -> {self.target_name} ({self.frequency.value})"
        if amount is not None:
            text += f" => {Currency(amount)}"
        return text

    def copy(self) -> FundTransferRule:
        return FundTransferRule(
            target_name=self.target_name,
            frequency=self.frequency,
            recurring_percent=self.recurring_percent,
            close_percent=self.close_percent,
        )


def limit_recurring_percentages(rules: Iterable[FundTransferRule], cap: float = 100.0) -> bool:
    """Scale recurring percentages down proportionally so they sum to at most ``cap``.

    Returns True when a rescale happened.
    """
    recurring = [rule for rule in rules if rule.is_recurring]
    total = sum(rule.recurring_percent for rule in recurring)
    if total <= cap:
        return False
    factor = cap / total
    for rule in recurring:
        rule.recurring_percent *= factor
    return True
