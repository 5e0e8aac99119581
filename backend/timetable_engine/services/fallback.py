from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from itertools import islice
from typing import Iterable

from timetable_engine.schemas.generator import GenerationSettings
from timetable_engine.services.assignments import ClassAssignment
from timetable_engine.services.backtracking import Occurrence, order_occurrences
from timetable_engine.services.placement import PlacementPlanner

logger = logging.getLogger(__name__)


@dataclass
class FallbackOutcome:
    placements: list[tuple[ClassAssignment, ...]] = field(default_factory=list)
    deficits: dict[str, Counter[str]] = field(default_factory=lambda: defaultdict(Counter))
    relaxed_placements: int = 0
    relaxed_violations: int = 0

    @property
    def deficit_total(self) -> int:
        return sum(sum(counter.values()) for counter in self.deficits.values())


class BestEffortScheduler:
    """Single greedy pass used once the exact search has given up.

    Each occurrence is placed conflict-free when possible. Otherwise the
    candidate breaking the fewest cross-batch rules is taken, as long as the
    ``fallback_max_conflicts`` budget lasts; past that the occurrence becomes a
    deficit. Lunch, contiguity and one-class-per-slot within a batch are never
    relaxed.
    """

    def __init__(self, planner: PlacementPlanner, settings: GenerationSettings) -> None:
        self.planner = planner
        self.settings = settings

    def run(self, occurrences: Iterable[Occurrence]) -> FallbackOutcome:
        outcome = FallbackOutcome()
        budget = self.settings.fallback_max_conflicts

        for occurrence in order_occurrences(occurrences):
            self.planner.check_deadline()
            placement = self._place_strict(occurrence)
            if placement is not None:
                outcome.placements.append(placement)
                continue

            with self.planner.ledger.lock:
                relaxed = self._cheapest_relaxed(occurrence)
                if relaxed is not None and relaxed[0] <= budget:
                    self.planner.force_place(relaxed[1])
                else:
                    relaxed = None
            if relaxed is not None:
                cost, assignments = relaxed
                budget -= cost
                outcome.placements.append(assignments)
                outcome.relaxed_placements += 1
                outcome.relaxed_violations += cost
                logger.warning(
                    "Relaxed placement for %s on %s %s (%s rule violations)",
                    occurrence.key,
                    assignments[0].day,
                    assignments[0].time_slot,
                    cost,
                )
                continue

            outcome.deficits[occurrence.batch_id][occurrence.subject.id] += 1
            logger.warning("No placement for %s; recorded as deficit", occurrence.key)

        logger.info(
            "Best-effort pass done | placed=%s relaxed=%s deficits=%s",
            len(outcome.placements),
            outcome.relaxed_placements,
            outcome.deficit_total,
        )
        return outcome

    def _candidates(self, occurrence: Occurrence):
        return islice(
            self.planner.candidates(
                occurrence.batch_id,
                occurrence.subject,
                span=occurrence.span,
                occurrence=occurrence.index,
            ),
            self.settings.max_occurrence_attempts,
        )

    def _place_strict(self, occurrence: Occurrence) -> tuple[ClassAssignment, ...] | None:
        for assignments in self._candidates(occurrence):
            if self.planner.try_place(assignments):
                return assignments
        return None

    def _cheapest_relaxed(self, occurrence: Occurrence) -> tuple[int, tuple[ClassAssignment, ...]] | None:
        # Caller holds the ledger lock until the chosen placement is committed.
        constraint_set = self.planner.constraint_set
        context = self.planner.context(occurrence.batch_id)
        best: tuple[int, tuple[ClassAssignment, ...]] | None = None
        for assignments in self._candidates(occurrence):
            if constraint_set.hard_violations(assignments, context):
                continue
            cost = constraint_set.soft_violations(assignments, context)
            if best is None or cost < best[0]:
                best = (cost, assignments)
            if cost <= 1:
                break
        return best
