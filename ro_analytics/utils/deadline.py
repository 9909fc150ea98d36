from __future__ import annotations

from time import perf_counter
from typing import Optional


class Deadline:
    """Wall-clock budget for one request, measured with perf_counter."""

    def __init__(self, budget_s: Optional[float]):
        self.started = perf_counter()
        self.budget_s = budget_s

    def elapsed_s(self) -> float:
        return perf_counter() - self.started

    def elapsed_ms(self) -> int:
        return round(self.elapsed_s() * 1000)

    def remaining_s(self) -> Optional[float]:
        if self.budget_s is None:
            return None
        return self.budget_s - self.elapsed_s()

    def expired(self) -> bool:
        remaining = self.remaining_s()
        return remaining is not None and remaining <= 0
