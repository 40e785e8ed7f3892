"""Cost basis tracking for basis-tracked holdings using the average cost method."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class CostBasisTracker:
    total_basis: float = 0.0

    def reset(self, basis: float) -> None:
        self.total_basis = max(0.0, basis)

    def add_basis(self, amount: float) -> None:
        if amount <= 0:
            return
        self.total_basis += amount

    def withdraw(self, amount: float, balance_before: float) -> float:
        """Apply a withdrawal and return the realized gain (negative for a loss)."""
        if amount <= 0 or balance_before <= 0:
            return 0.0

        share = min(1.0, amount / balance_before)
        basis_reduction = self.total_basis * share
        self.total_basis = max(0.0, self.total_basis - basis_reduction)
        return amount - basis_reduction

    def unrealized_gain_ratio(self, balance: float) -> float:
        if balance <= 0:
            return 0.0
        return max(0.0, 1.0 - self.total_basis / balance)
