"""Genetic search over recurring transfer percentages, plus its worker process boundary.

Only serialized account records and message dicts cross the process boundary;
the worker binds its own rules against its own accounts.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import multiprocessing
import queue
import random
from typing import Any, Callable, ClassVar, Iterator

from .chronometer import run_chronometer
from .context import SimulationSettings
from .instrument import EXPENSABLE, FUNDABLE, MONTHLY_EXPENSE, MONTHLY_INCOME
from .schema import AccountRecord, build_portfolio, records_from_dicts, snapshot_accounts
from .transfer import Frequency, FundTransferRule

logger = logging.getLogger(__name__)

Chromosome = list[float]


@dataclass(slots=True, frozen=True)
class IterationMessage:
    kind: ClassVar[str] = "iteration"
    generation_label: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "generationLabel": self.generation_label}


@dataclass(slots=True, frozen=True)
class FoundBetterMessage:
    kind: ClassVar[str] = "foundBetter"
    accounts: list[dict[str, Any]]
    finish_value: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "accounts": self.accounts, "finishValue": self.finish_value}


@dataclass(slots=True, frozen=True)
class CompleteMessage:
    kind: ClassVar[str] = "complete"
    accounts: list[dict[str, Any]]
    finish_value: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "accounts": self.accounts, "finishValue": self.finish_value}


OptimizerMessage = IterationMessage | FoundBetterMessage | CompleteMessage


def message_from_dict(data: dict[str, Any]) -> OptimizerMessage:
    kind = data.get("kind")
    if kind == IterationMessage.kind:
        return IterationMessage(generation_label=data["generationLabel"])
    if kind == FoundBetterMessage.kind:
        return FoundBetterMessage(accounts=data["accounts"], finish_value=data.get("finishValue", 0.0))
    if kind == CompleteMessage.kind:
        return CompleteMessage(accounts=data["accounts"], finish_value=data.get("finishValue", 0.0))
    raise ValueError(f"unknown optimizer message kind: {kind!r}")


class Optimizer:
    """Maximizes the portfolio's finish value by tuning recurring transfer percentages.

    Genes are the recurring percentages (0-100) of the transfer rules on
    income and expense accounts, in portfolio order.
    """

    def __init__(
        self,
        records: list[AccountRecord],
        settings: SimulationSettings | None = None,
        *,
        population_size: int = 100,
        generations: int = 600,
        mutation_rate: float = 0.1,
        reseed_interval: int = 30,
        seed: int | None = None,
        expand_candidates: bool = False,
    ) -> None:
        self.portfolio = build_portfolio(records, settings)
        self.population_size = max(2, population_size)
        self.generations = max(0, generations)
        self.mutation_rate = mutation_rate
        self.reseed_interval = reseed_interval
        self.rng = random.Random(seed)
        if expand_candidates:
            self._expand_candidates()
        self.rules: list[FundTransferRule] = [
            rule
            for account in self.portfolio.accounts
            if account.instrument in MONTHLY_INCOME or account.instrument in MONTHLY_EXPENSE
            for rule in account.transfers
            if rule.frequency is not Frequency.NONE
        ]
        self.best_value: float | None = None
        self.best_genes: Chromosome = [rule.recurring_percent for rule in self.rules]
        self.best_accounts: list[dict[str, Any]] = []
        self.history: list[float] = []

    def _expand_candidates(self) -> None:
        """Add a zero-percent rule from every income/expense account to each eligible target."""
        for anchor in self.portfolio.accounts:
            if anchor.instrument in MONTHLY_INCOME:
                eligible = FUNDABLE
            elif anchor.instrument in MONTHLY_EXPENSE:
                eligible = EXPENSABLE
            else:
                continue
            existing = {rule.target_name for rule in anchor.transfers}
            for account in self.portfolio.accounts:
                if account is anchor or account.instrument not in eligible or account.name in existing:
                    continue
                anchor.transfers.append(FundTransferRule(target_name=account.name, frequency=Frequency.MONTHLY))

    @property
    def gene_count(self) -> int:
        return len(self.rules)

    def describe_genes(self) -> str:
        return "\n".join(
            f"{rule.source.name if rule.source is not None else '?'} -> {rule.target_name}: {rule.recurring_percent:.1f}%"
            for rule in self.rules
        )

    def random_chromosome(self) -> Chromosome:
        return [float(self.rng.randint(1, 100)) for _ in self.rules]

    def initial_population(self) -> list[Chromosome]:
        return [self.random_chromosome() for _ in range(self.population_size)]

    def apply_chromosome(self, chromosome: Chromosome) -> None:
        for rule, gene in zip(self.rules, chromosome):
            rule.recurring_percent = max(0.0, min(100.0, gene))
        for account in self.portfolio.accounts:
            account.limit_recurring_percentages(100.0)
        # Keep the chromosome equal to what was actually simulated.
        chromosome[:] = [rule.recurring_percent for rule in self.rules]

    def evaluate(self, chromosome: Chromosome, emit: Callable[[OptimizerMessage], None] | None = None) -> float:
        self.apply_chromosome(chromosome)
        run_chronometer(self.portfolio)
        value = self.portfolio.finish_value()
        if self.best_value is None or value > self.best_value:
            self.best_value = value
            self.best_genes = list(chromosome)
            self.best_accounts = snapshot_accounts(self.portfolio.accounts)
            if emit is not None:
                emit(FoundBetterMessage(accounts=self.best_accounts, finish_value=value))
        return value

    def select_parents(self, population: list[Chromosome], fitnesses: list[float]) -> list[Chromosome]:
        ranked = sorted(zip(population, fitnesses), key=lambda pair: pair[1], reverse=True)
        count = max(1, len(population) // 2)
        return [chromosome for chromosome, _ in ranked[:count]]

    def crossover(self, parent_a: Chromosome, parent_b: Chromosome) -> tuple[Chromosome, Chromosome]:
        point = self.rng.randrange(len(parent_a)) if parent_a else 0
        return parent_a[:point] + parent_b[point:], parent_b[:point] + parent_a[point:]

    def mutate(self, chromosome: Chromosome) -> Chromosome:
        return [self.rng.uniform(0.0, 100.0) if self.rng.random() < self.mutation_rate else gene for gene in chromosome]

    def breed(self, parents: list[Chromosome]) -> list[Chromosome]:
        offspring: list[Chromosome] = []
        while len(offspring) < self.population_size:
            child_a, child_b = self.crossover(self.rng.choice(parents), self.rng.choice(parents))
            offspring.append(self.mutate(child_a))
            offspring.append(self.mutate(child_b))
        return offspring[: self.population_size]

    def run(self, emit: Callable[[OptimizerMessage], None] | None = None) -> float:
        """Run the full generation budget; returns the best finish value found."""
        logger.info(
            "optimizing %d gene(s): population %d, %d generation(s)",
            self.gene_count,
            self.population_size,
            self.generations,
        )
        if not self.rules:
            value = self.evaluate([], emit)
            self._complete(emit)
            return value

        population = self.initial_population()
        for generation in range(self.generations):
            if generation and self.reseed_interval and generation % self.reseed_interval == 0:
                population = self.initial_population()
            fitnesses = [self.evaluate(chromosome, emit) for chromosome in population]
            self.history.append(self.best_value)
            population = self.breed(self.select_parents(population, fitnesses))
            if emit is not None:
                emit(IterationMessage(generation_label=f"Generation: {generation}\n{self.describe_genes()}"))
            logger.debug("generation %d best %.2f", generation, self.best_value)

        for chromosome in population:
            self.evaluate(chromosome, emit)
        self._complete(emit)
        return self.best_value

    def _complete(self, emit: Callable[[OptimizerMessage], None] | None) -> None:
        self.apply_chromosome(list(self.best_genes))
        logger.info("optimizer finished: best finish value %.2f", self.best_value or 0.0)
        if emit is not None:
            emit(CompleteMessage(accounts=self.best_accounts, finish_value=self.best_value or 0.0))


def _optimizer_worker(inbox: Any, outbox: Any, settings: SimulationSettings | None, options: dict[str, Any]) -> None:
    records = records_from_dicts(inbox.get())
    optimizer = Optimizer(records, settings, **options)
    optimizer.run(lambda message: outbox.put(message.to_dict()))


class OptimizerProcess:
    """Runs an :class:`Optimizer` in a separate process.

    ``status`` is one of ``idle``, ``running``, ``complete``, ``cancelled`` or
    ``failed``. Cancellation terminates the process; in-flight work is lost.
    """

    def __init__(
        self,
        accounts: list[dict[str, Any]],
        settings: SimulationSettings | None = None,
        **options: Any,
    ) -> None:
        self.accounts = accounts
        self.settings = settings
        self.options = options
        self.status = "idle"
        self.result: CompleteMessage | None = None
        self._inbox: Any = multiprocessing.Queue()
        self._outbox: Any = multiprocessing.Queue()
        self._process: multiprocessing.Process | None = None

    def start(self) -> None:
        self._process = multiprocessing.Process(
            target=_optimizer_worker,
            args=(self._inbox, self._outbox, self.settings, self.options),
            daemon=True,
        )
        self._process.start()
        self._inbox.put(self.accounts)
        self.status = "running"

    def poll(self, timeout: float | None = None) -> dict[str, Any] | None:
        """Next message dict, or None when none arrived in ``timeout`` seconds."""
        if self.status != "running":
            return None
        try:
            message = self._outbox.get(timeout=timeout)
        except queue.Empty:
            if self._process is None or self._process.is_alive():
                return None
            # The worker may have exited cleanly with messages still in flight.
            try:
                message = self._outbox.get(timeout=0.1)
            except queue.Empty:
                logger.warning("optimizer worker exited with code %s", self._process.exitcode)
                self.status = "failed"
                return None
        if message.get("kind") == CompleteMessage.kind:
            self.result = message_from_dict(message)
            self.status = "complete"
        return message

    def messages(self, poll_interval: float = 0.5) -> Iterator[dict[str, Any]]:
        """Yield message dicts until the run completes, fails or is cancelled."""
        while self.status == "running":
            message = self.poll(timeout=poll_interval)
            if message is not None:
                yield message

    def cancel(self) -> None:
        if self._process is not None and self._process.is_alive():
            self._process.terminate()
            self._process.join()
        self.status = "cancelled"

    def join(self, timeout: float | None = None) -> None:
        if self._process is not None:
            self._process.join(timeout)
