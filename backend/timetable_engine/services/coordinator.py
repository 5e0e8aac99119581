from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Literal

from timetable_engine.schemas.config import Batch
from timetable_engine.schemas.generator import GenerationSettings
from timetable_engine.services.assignments import Schedule, lunch_assignment
from timetable_engine.services.backtracking import (
    BacktrackingScheduler,
    Occurrence,
    capacity_shortfalls,
    expand_occurrences,
)
from timetable_engine.services.config_normalizer import NormalizedConfig
from timetable_engine.services.constraints import ConstraintSet
from timetable_engine.services.fallback import BestEffortScheduler
from timetable_engine.services.ledger import Ledger
from timetable_engine.services.placement import Deadline, PlacementPlanner
from timetable_engine.services.time_grid import TimeGrid

logger = logging.getLogger(__name__)

BatchStatus = Literal["solved", "fallback"]


@dataclass
class BatchOutcome:
    batch: Batch
    schedule: Schedule
    status: BatchStatus = "solved"
    deficits: Counter[str] = field(default_factory=Counter)

    @property
    def deficit_total(self) -> int:
        return sum(self.deficits.values())


@dataclass
class CoordinatorOutcome:
    strategy: str
    batches: list[BatchOutcome]
    solved_jointly: bool = False

    @property
    def fallback_used(self) -> bool:
        return any(item.status == "fallback" for item in self.batches)


class MultiBatchCoordinator:
    def __init__(
        self,
        *,
        normalized: NormalizedConfig,
        grid: TimeGrid,
        constraint_set: ConstraintSet,
        settings: GenerationSettings,
        deadline: Deadline | None = None,
    ) -> None:
        self.normalized = normalized
        self.grid = grid
        self.constraint_set = constraint_set
        self.settings = settings
        self.ledger = Ledger()
        self.schedules: dict[str, Schedule] = {
            batch.id: Schedule(batch.id, batch.name) for batch in normalized.batches
        }
        self.planner = PlacementPlanner(
            grid=grid,
            constraint_set=constraint_set,
            ledger=self.ledger,
            schedules=self.schedules,
            batches={batch.id: batch for batch in normalized.batches},
            rooms=normalized.rooms,
            faculty_pool=normalized.faculty_pool,
            settings=settings,
            deadline=deadline,
        )
        self._outcomes: dict[str, BatchOutcome] = {
            batch.id: BatchOutcome(batch=batch, schedule=self.schedules[batch.id])
            for batch in normalized.batches
        }

    def seed_lunch(self) -> None:
        lunch_slot = self.grid.lunch_slot
        if lunch_slot is None:
            return
        for batch in self.normalized.batches:
            entries = [lunch_assignment(batch.id, day, lunch_slot) for day in self.grid.days]
            with self.ledger.lock:
                for entry in entries:
                    self.schedules[batch.id].place(entry)
                self.ledger.commit(entries)

    def occurrences_for(self, batch: Batch, position: int) -> list[Occurrence]:
        return expand_occurrences(
            batch,
            self.normalized.subjects_by_batch[batch.id],
            batch_position=position,
            slot_minutes=self.settings.slot_minutes,
        )

    def run(self) -> CoordinatorOutcome:
        strategy = self.settings.strategy
        logger.info(
            "Coordinator run strategy=%s batches=%s room_policy=%s workers=%s",
            strategy,
            len(self.normalized.batches),
            self.settings.room_policy,
            self.settings.max_workers,
        )
        self.seed_lunch()
        if strategy == "joint":
            solved_jointly = self._run_joint()
        else:
            self._run_sequential()
            solved_jointly = False
        return CoordinatorOutcome(
            strategy=strategy,
            batches=[self._outcomes[batch.id] for batch in self.normalized.batches],
            solved_jointly=solved_jointly,
        )

    def _run_joint(self) -> bool:
        occurrences: list[Occurrence] = []
        for position, batch in enumerate(self.normalized.batches):
            occurrences.extend(self.occurrences_for(batch, position))

        shortfalls = capacity_shortfalls(occurrences, self.grid, self.settings)
        if shortfalls:
            logger.warning("Joint search skipped: %s", "; ".join(shortfalls))
        else:
            outcome = BacktrackingScheduler(self.planner, self.settings).solve(occurrences)
            if outcome.success:
                logger.info("Joint search solved %s occurrences in %s attempts", len(occurrences), outcome.attempts)
                return True
            logger.warning(
                "Joint search failed after %s attempts (%s); falling back to best effort",
                outcome.attempts,
                outcome.reason,
            )

        self._apply_fallback(occurrences, [batch.id for batch in self.normalized.batches])
        return False

    def _run_sequential(self) -> None:
        batches = list(enumerate(self.normalized.batches))
        if self.settings.max_workers > 1 and len(batches) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
                futures = [executor.submit(self._solve_batch, batch, position) for position, batch in batches]
                for future in futures:
                    future.result()
            return
        for position, batch in batches:
            self._solve_batch(batch, position)

    def _solve_batch(self, batch: Batch, position: int) -> None:
        occurrences = self.occurrences_for(batch, position)
        shortfalls = capacity_shortfalls(occurrences, self.grid, self.settings)
        if shortfalls:
            logger.warning("Search for batch %s skipped: %s", batch.id, "; ".join(shortfalls))
        else:
            outcome = BacktrackingScheduler(self.planner, self.settings).solve(occurrences)
            if outcome.success:
                logger.info(
                    "Batch %s solved: %s occurrences in %s attempts",
                    batch.id,
                    len(occurrences),
                    outcome.attempts,
                )
                return
            logger.warning(
                "Search for batch %s failed after %s attempts (%s); falling back to best effort",
                batch.id,
                outcome.attempts,
                outcome.reason,
            )
        self._apply_fallback(occurrences, [batch.id])

    def _apply_fallback(self, occurrences: list[Occurrence], batch_ids: list[str]) -> None:
        fallback = BestEffortScheduler(self.planner, self.settings).run(occurrences)
        for batch_id in batch_ids:
            outcome = self._outcomes[batch_id]
            outcome.status = "fallback"
            outcome.deficits.update(fallback.deficits.get(batch_id, Counter()))
