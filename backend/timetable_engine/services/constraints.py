from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

from timetable_engine.schemas.generator import GenerationSettings
from timetable_engine.services.assignments import ClassAssignment, Schedule, normalize_subject_name
from timetable_engine.services.ledger import Ledger
from timetable_engine.services.time_grid import TimeGrid
from timetable_engine.services.workload import has_capacity

logger = logging.getLogger(__name__)

__all__ = [
    "Constraint",
    "ConstraintSet",
    "DurationConstraint",
    "FacultyConstraint",
    "FacultyLoadConstraint",
    "LunchConstraint",
    "PlacementContext",
    "RoomConstraint",
    "SubjectConstraint",
    "build_constraint_set",
    "normalize_subject_name",
]


@dataclass(frozen=True)
class PlacementContext:
    grid: TimeGrid
    ledger: Ledger
    schedule: Schedule


def _different_batches(first: ClassAssignment, second: ClassAssignment) -> bool:
    return first.batch_id != second.batch_id and not first.is_lunch and not second.is_lunch


class Constraint:
    """A placement rule.

    ``check`` answers whether ``candidate`` may join what is already committed.
    ``clashes`` is the same rule stated over a pair of committed assignments and
    is what the validator uses to recount conflicts after the fact.
    """

    kind: str = "constraint"
    description: str = ""
    relaxable: bool = True

    def check(self, candidate: ClassAssignment, context: PlacementContext) -> bool:
        return True

    def clashes(self, first: ClassAssignment, second: ClassAssignment) -> bool:
        return False


class FacultyConstraint(Constraint):
    kind = "faculty"
    description = "A faculty member teaches at most one batch per timeslot"

    def check(self, candidate: ClassAssignment, context: PlacementContext) -> bool:
        if candidate.is_lunch or not candidate.faculty:
            return True
        return not context.ledger.faculty_busy(
            candidate.day, candidate.time_slot, candidate.faculty, exclude_batch=candidate.batch_id
        )

    def clashes(self, first: ClassAssignment, second: ClassAssignment) -> bool:
        return _different_batches(first, second) and bool(first.faculty) and first.faculty == second.faculty


class RoomConstraint(Constraint):
    kind = "room"
    description = "A room hosts at most one batch per timeslot"

    def check(self, candidate: ClassAssignment, context: PlacementContext) -> bool:
        if candidate.is_lunch or not candidate.room:
            return True
        return not context.ledger.room_busy(
            candidate.day, candidate.time_slot, candidate.room, exclude_batch=candidate.batch_id
        )

    def clashes(self, first: ClassAssignment, second: ClassAssignment) -> bool:
        return _different_batches(first, second) and bool(first.room) and first.room == second.room


class SubjectConstraint(Constraint):
    kind = "subject"
    description = "A subject runs for at most one batch per timeslot"

    def check(self, candidate: ClassAssignment, context: PlacementContext) -> bool:
        if candidate.is_lunch:
            return True
        return not context.ledger.subject_busy(
            candidate.day, candidate.time_slot, candidate.normalized_subject, exclude_batch=candidate.batch_id
        )

    def clashes(self, first: ClassAssignment, second: ClassAssignment) -> bool:
        return _different_batches(first, second) and first.normalized_subject == second.normalized_subject


class LunchConstraint(Constraint):
    kind = "lunch"
    description = "The lunch timeslot only ever holds the lunch break"
    relaxable = False

    def check(self, candidate: ClassAssignment, context: PlacementContext) -> bool:
        if candidate.is_lunch:
            return candidate.time_slot == context.grid.lunch_slot
        return candidate.time_slot != context.grid.lunch_slot and context.grid.is_teaching_slot(candidate.time_slot)


class DurationConstraint(Constraint):
    kind = "duration"
    description = "A multi-slot subject needs contiguous free slots on one day, none of them lunch"
    relaxable = False

    def check(self, candidate: ClassAssignment, context: PlacementContext) -> bool:
        if candidate.is_lunch or candidate.is_continuation:
            # Continuations are covered by the check on their opening slot.
            return True
        slots = context.grid.span_slots(candidate.time_slot, candidate.span)
        if slots is None:
            return False
        return all(context.schedule.is_free(candidate.day, slot) for slot in slots)


class FacultyLoadConstraint(Constraint):
    kind = "faculty_load"
    description = "A faculty member stays within the daily and weekly class ceilings"

    def __init__(self, *, daily_limit: int, weekly_limit: int) -> None:
        self.daily_limit = daily_limit
        self.weekly_limit = weekly_limit

    def check(self, candidate: ClassAssignment, context: PlacementContext) -> bool:
        if candidate.is_lunch or candidate.is_continuation or not candidate.faculty:
            return True
        ledger = context.ledger
        return has_capacity(
            ledger.faculty_day_load(candidate.faculty, candidate.day), candidate.span, self.daily_limit
        ) and has_capacity(ledger.faculty_load(candidate.faculty), candidate.span, self.weekly_limit)


class ConstraintSet:
    def __init__(self, constraints: Iterable[Constraint]) -> None:
        self._constraints: tuple[Constraint, ...] = tuple(constraints)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self._constraints)

    def __len__(self) -> int:
        return len(self._constraints)

    def get(self, kind: str) -> Constraint | None:
        return next((item for item in self._constraints if item.kind == kind), None)

    def allows(self, candidate: ClassAssignment, context: PlacementContext) -> bool:
        return all(constraint.check(candidate, context) for constraint in self._constraints)

    def allows_all(self, assignments: Iterable[ClassAssignment], context: PlacementContext) -> bool:
        return all(self.allows(item, context) for item in assignments)

    def violations(self, candidate: ClassAssignment, context: PlacementContext) -> list[Constraint]:
        return [constraint for constraint in self._constraints if not constraint.check(candidate, context)]

    def hard_violations(self, assignments: Iterable[ClassAssignment], context: PlacementContext) -> int:
        return sum(
            1
            for item in assignments
            for constraint in self._constraints
            if not constraint.relaxable and not constraint.check(item, context)
        )

    def soft_violations(self, assignments: Iterable[ClassAssignment], context: PlacementContext) -> int:
        return sum(
            1
            for item in assignments
            for constraint in self._constraints
            if constraint.relaxable and not constraint.check(item, context)
        )

    def clash_kinds(self, first: ClassAssignment, second: ClassAssignment) -> list[str]:
        return [constraint.kind for constraint in self._constraints if constraint.clashes(first, second)]


def build_constraint_set(settings: GenerationSettings) -> ConstraintSet:
    constraints: list[Constraint] = [FacultyConstraint()]
    if settings.room_policy == "exclusive":
        constraints.append(RoomConstraint())
    constraints.extend(
        [
            SubjectConstraint(),
            LunchConstraint(),
            DurationConstraint(),
            FacultyLoadConstraint(
                daily_limit=settings.max_faculty_classes_per_day,
                weekly_limit=settings.max_faculty_weekly_load,
            ),
        ]
    )
    logger.debug(
        "Constraint set built | room_policy=%s constraints=%s",
        settings.room_policy,
        ",".join(item.kind for item in constraints),
    )
    return ConstraintSet(constraints)
