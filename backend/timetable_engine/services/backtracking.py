from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from timetable_engine.core.exceptions import GenerationTimeoutError
from timetable_engine.schemas.config import Batch, Subject
from timetable_engine.schemas.generator import GenerationSettings
from timetable_engine.services.assignments import ClassAssignment
from timetable_engine.services.placement import PlacementPlanner
from timetable_engine.services.time_grid import TimeGrid
from timetable_engine.services.workload import declared_faculty_demand

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Occurrence:
    batch_id: str
    subject: Subject
    index: int
    span: int
    declaration: tuple[int, int]

    @property
    def key(self) -> str:
        return f"{self.batch_id}:{self.subject.id}:{self.index}"


@dataclass
class SearchOutcome:
    success: bool
    placements: list[tuple[ClassAssignment, ...]] = field(default_factory=list)
    attempts: int = 0
    deepest: int = 0
    reason: str | None = None


@dataclass
class _Frame:
    occurrence: Occurrence
    candidates: Iterator[tuple[ClassAssignment, ...]]
    committed: tuple[ClassAssignment, ...] | None = None
    attempts: int = 0


def expand_occurrences(
    batch: Batch,
    subjects: Iterable[Subject],
    *,
    batch_position: int = 0,
    slot_minutes: int = 60,
) -> list[Occurrence]:
    occurrences: list[Occurrence] = []
    for subject_position, subject in enumerate(subjects):
        span = subject.span(slot_minutes)
        for index in range(subject.classes_per_week):
            occurrences.append(
                Occurrence(
                    batch_id=batch.id,
                    subject=subject,
                    index=index,
                    span=span,
                    declaration=(batch_position, subject_position),
                )
            )
    return occurrences


def occurrence_sort_key(occurrence: Occurrence) -> tuple:
    subject = occurrence.subject
    return (
        -subject.priority_rank,       # high priority first
        occurrence.index,             # round-robin across subjects keeps load balanced
        -occurrence.span,             # long blocks are harder to fit
        -subject.classes_per_week,
        occurrence.declaration,
    )


def order_occurrences(occurrences: Iterable[Occurrence]) -> list[Occurrence]:
    return sorted(occurrences, key=occurrence_sort_key)


def capacity_shortfalls(
    occurrences: list[Occurrence],
    grid: TimeGrid,
    settings: GenerationSettings,
) -> list[str]:
    """Reasons why no conflict-free placement can exist, found without searching."""
    reasons: list[str] = []
    available = grid.available_slot_count

    demand_by_batch: dict[str, int] = {}
    for occurrence in occurrences:
        demand_by_batch[occurrence.batch_id] = demand_by_batch.get(occurrence.batch_id, 0) + occurrence.span
    for batch_id, demand in demand_by_batch.items():
        if demand > available:
            reasons.append(f"batch {batch_id} needs {demand} slots but the week offers {available}")

    for span in sorted({occurrence.span for occurrence in occurrences}):
        if not any(grid.span_slots(slot, span) for slot in grid.slot_labels):
            reasons.append(f"no run of {span} contiguous teaching slots exists in a day")

    if not settings.allow_faculty_substitution:
        demand = declared_faculty_demand(
            (occurrence.subject.faculty, occurrence.span) for occurrence in occurrences
        )
        weekly_room = min(
            settings.max_faculty_weekly_load,
            settings.max_faculty_classes_per_day * len(grid.days),
            available,
        )
        for faculty, slots in sorted(demand.items()):
            if slots > weekly_room:
                reasons.append(f"{faculty} needs {slots} slots but may teach at most {weekly_room}")
    return reasons


class BacktrackingScheduler:
    """Depth-first search over occurrences, undoing commitments on dead ends.

    The search keeps an explicit stack of frames instead of recursing, one frame
    per placed occurrence, each holding a lazy iterator over its remaining
    candidates so backtracking resumes exactly where the frame left off.
    """

    def __init__(self, planner: PlacementPlanner, settings: GenerationSettings) -> None:
        self.planner = planner
        self.settings = settings

    def solve(self, occurrences: Iterable[Occurrence]) -> SearchOutcome:
        order = order_occurrences(occurrences)
        if not order:
            return SearchOutcome(success=True)

        stack: list[_Frame] = []
        attempts = 0
        deepest = 0
        position = 0
        try:
            while position < len(order):
                if position == len(stack):
                    occurrence = order[position]
                    stack.append(
                        _Frame(
                            occurrence=occurrence,
                            candidates=self.planner.candidates(
                                occurrence.batch_id,
                                occurrence.subject,
                                span=occurrence.span,
                                occurrence=occurrence.index,
                            ),
                        )
                    )
                frame = stack[position]
                if frame.committed is not None:
                    self.planner.undo(frame.committed)
                    frame.committed = None

                placed = False
                for assignments in frame.candidates:
                    self.planner.check_deadline()
                    attempts += 1
                    frame.attempts += 1
                    if attempts > self.settings.max_search_attempts:
                        self._rollback(stack)
                        return SearchOutcome(
                            success=False,
                            attempts=attempts,
                            deepest=deepest,
                            reason="search attempt ceiling reached",
                        )
                    if frame.attempts > self.settings.max_occurrence_attempts:
                        logger.debug("Occurrence %s hit its attempt ceiling", frame.occurrence.key)
                        break
                    if self.planner.try_place(assignments):
                        frame.committed = assignments
                        placed = True
                        break

                if placed:
                    position += 1
                    deepest = max(deepest, position)
                    continue

                logger.debug("Backtracking from %s after %s attempts", frame.occurrence.key, frame.attempts)
                stack.pop()
                if not stack:
                    return SearchOutcome(
                        success=False,
                        attempts=attempts,
                        deepest=deepest,
                        reason=f"no placement left for {frame.occurrence.key}",
                    )
                position -= 1
        except GenerationTimeoutError:
            self._rollback(stack)
            raise

        logger.debug("Search placed %s occurrences in %s attempts", len(stack), attempts)
        return SearchOutcome(
            success=True,
            placements=[frame.committed for frame in stack if frame.committed is not None],
            attempts=attempts,
            deepest=deepest,
        )

    def _rollback(self, stack: list[_Frame]) -> None:
        for frame in reversed(stack):
            if frame.committed is not None:
                self.planner.undo(frame.committed)
                frame.committed = None
        stack.clear()
