from __future__ import annotations

from typing import Iterable

from timetable_engine.schemas.generator import MetricsWeights
from timetable_engine.services.assignments import Schedule
from timetable_engine.services.time_grid import TimeGrid


class MetricsCalculator:
    def __init__(self, weights: MetricsWeights | None = None) -> None:
        self.weights = weights or MetricsWeights()

    @staticmethod
    def utilization(schedule: Schedule, grid: TimeGrid) -> float:
        """Share of non-lunch slots holding a class, in percent."""
        available = grid.available_slot_count
        if available <= 0:
            return 0.0
        filled = sum(1 for item in schedule.teaching_entries() if grid.is_teaching_slot(item.time_slot))
        return 100.0 * filled / available

    def efficiency(self, conflicts: int, *, solved_jointly: bool = False, timed_out: bool = False) -> float:
        weights = self.weights
        if timed_out:
            return 0.0
        if solved_jointly and conflicts == 0:
            return weights.max_efficiency
        value = weights.base_efficiency - conflicts * weights.conflict_penalty
        return max(weights.min_efficiency, min(weights.max_efficiency, value))

    def score(self, efficiency: float, utilization: float, conflicts: int) -> float:
        weights = self.weights
        value = weights.efficiency_weight * efficiency + weights.utilization_weight * utilization
        if conflicts == 0:
            value += weights.conflict_free_bonus
        return round(min(100.0, value), 2)

    @staticmethod
    def overall_efficiency(values: Iterable[float]) -> float:
        items = list(values)
        if not items:
            return 0.0
        return round(sum(items) / len(items), 2)
