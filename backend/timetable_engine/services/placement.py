from __future__ import annotations

import random
from dataclasses import dataclass
from time import perf_counter
from typing import Iterator

from timetable_engine.core.exceptions import GenerationTimeoutError
from timetable_engine.schemas.config import Batch, Subject
from timetable_engine.schemas.generator import GenerationSettings
from timetable_engine.services.assignments import ClassAssignment, Schedule
from timetable_engine.services.constraints import ConstraintSet, PlacementContext
from timetable_engine.services.ledger import Ledger
from timetable_engine.services.rooms import ordered_rooms
from timetable_engine.services.time_grid import TimeGrid
from timetable_engine.services.workload import rank_faculty


@dataclass(frozen=True)
class Deadline:
    started_at: float
    limit_seconds: float

    @classmethod
    def start(cls, limit_seconds: float) -> "Deadline":
        return cls(started_at=perf_counter(), limit_seconds=limit_seconds)

    @property
    def elapsed(self) -> float:
        return perf_counter() - self.started_at

    def expired(self) -> bool:
        return self.elapsed >= self.limit_seconds

    def check(self) -> None:
        elapsed = self.elapsed
        if elapsed >= self.limit_seconds:
            raise GenerationTimeoutError(elapsed_seconds=elapsed, limit_seconds=self.limit_seconds)


class PlacementPlanner:
    """Candidate generation and atomic placement shared by every search pass."""

    def __init__(
        self,
        *,
        grid: TimeGrid,
        constraint_set: ConstraintSet,
        ledger: Ledger,
        schedules: dict[str, Schedule],
        batches: dict[str, Batch],
        rooms: list[str] | tuple[str, ...],
        faculty_pool: list[str] | tuple[str, ...],
        settings: GenerationSettings,
        deadline: Deadline | None = None,
    ) -> None:
        self.grid = grid
        self.constraint_set = constraint_set
        self.ledger = ledger
        self.schedules = schedules
        self.batches = batches
        self.rooms = tuple(rooms)
        self.faculty_pool = tuple(faculty_pool)
        self.settings = settings
        self.deadline = deadline
        self._jitter: dict[tuple[str, str], float] = {}
        seed = settings.random_seed
        if seed is None and settings.slot_policy == "flexible":
            seed = 0
        if seed is not None:
            rng = random.Random(seed)
            self._jitter = {
                (day, slot): rng.random()
                for day in grid.days
                for slot in grid.slot_labels
            }

    def context(self, batch_id: str) -> PlacementContext:
        return PlacementContext(grid=self.grid, ledger=self.ledger, schedule=self.schedules[batch_id])

    def check_deadline(self) -> None:
        if self.deadline is not None:
            self.deadline.check()

    def slot_order(self, batch_id: str, subject_id: str, span: int) -> list[tuple[str, tuple[str, ...]]]:
        schedule = self.schedules[batch_id]
        used_days = schedule.subject_days(subject_id)
        day_loads = {day: schedule.day_load(day) for day in self.grid.days}
        options: list[tuple[tuple, str, tuple[str, ...]]] = []
        for day in self.grid.days:
            for slot in self.grid.slot_labels:
                slots = self.grid.span_slots(slot, span)
                if slots is None:
                    continue
                if not all(schedule.is_free(day, item) for item in slots):
                    continue
                key = self._slot_key(day, slot, used=day in used_days, load=day_loads[day])
                options.append((key, day, slots))
        options.sort(key=lambda item: item[0])
        return [(day, slots) for _, day, slots in options]

    def _slot_key(self, day: str, slot: str, *, used: bool, load: int) -> tuple:
        policy = self.settings.slot_policy
        jitter = self._jitter.get((day, slot), 0.0)
        day_index = self.grid.day_index(day)
        slot_index = self.grid.slot_index(slot)
        if policy == "balanced":
            # Each day starts its preference two slots later than the day before.
            rotated = (slot_index - 2 * day_index) % max(1, len(self.grid.slot_labels))
            return (used, load, jitter, rotated, day_index)
        if policy == "flexible":
            return (used, jitter, load, day_index, slot_index)
        return (used, load, jitter, day_index, slot_index)

    def faculty_candidates(self, batch_id: str, subject: Subject) -> list[str]:
        declared = subject.faculty
        if declared and not self.settings.allow_faculty_substitution:
            return [declared]
        sticky = self.schedules[batch_id].faculty_for_subject(subject.id)
        pool = rank_faculty(
            self.faculty_pool,
            load_of=self.ledger.faculty_load,
            weekly_ceiling=self.settings.max_faculty_weekly_load,
            sticky=sticky,
        )
        if declared:
            return [declared] + [name for name in pool if name != declared]
        return pool

    def room_candidates(self, batch_id: str, subject: Subject) -> list[str]:
        batch = self.batches.get(batch_id)
        preferred = batch.preferred_rooms if batch is not None else []
        rooms = ordered_rooms(subject.type, self.rooms, preferred)
        if self.settings.room_policy == "shared":
            return rooms[:1]
        return rooms or [""]

    def build(
        self,
        *,
        batch_id: str,
        subject: Subject,
        day: str,
        slots: tuple[str, ...],
        faculty: str,
        room: str,
        occurrence: int = 0,
        gap_fill: bool = False,
    ) -> tuple[ClassAssignment, ...]:
        span = len(slots)
        head = ClassAssignment(
            batch_id=batch_id,
            subject_id=subject.id,
            subject_name=subject.name,
            faculty=faculty,
            room=room,
            day=day,
            time_slot=slots[0],
            span=span,
            type=subject.type,
            variant="gap_fill" if gap_fill else "class",
            occurrence=occurrence,
            counts_toward_quota=not gap_fill,
        )
        continuations = tuple(
            ClassAssignment(
                batch_id=batch_id,
                subject_id=subject.id,
                subject_name=subject.name,
                faculty=faculty,
                room=room,
                day=day,
                time_slot=slot,
                span=span,
                type=subject.type,
                variant="continuation",
                occurrence=occurrence,
                counts_toward_quota=False,
            )
            for slot in slots[1:]
        )
        return (head, *continuations)

    def candidates(
        self,
        batch_id: str,
        subject: Subject,
        *,
        span: int,
        occurrence: int = 0,
    ) -> Iterator[tuple[ClassAssignment, ...]]:
        """Yield placements lazily: slot order first, then faculty, then room."""
        slot_options = self.slot_order(batch_id, subject.id, span)
        rooms = self.room_candidates(batch_id, subject)
        for day, slots in slot_options:
            for faculty in self.faculty_candidates(batch_id, subject):
                for room in rooms:
                    yield self.build(
                        batch_id=batch_id,
                        subject=subject,
                        day=day,
                        slots=slots,
                        faculty=faculty,
                        room=room,
                        occurrence=occurrence,
                    )

    def try_place(self, assignments: tuple[ClassAssignment, ...]) -> bool:
        batch_id = assignments[0].batch_id
        schedule = self.schedules[batch_id]
        context = self.context(batch_id)
        with self.ledger.lock:
            committed = self.ledger.try_commit(
                assignments,
                lambda: self.constraint_set.allows_all(assignments, context),
            )
            if not committed:
                return False
            for item in assignments:
                schedule.place(item)
        return True

    def force_place(self, assignments: tuple[ClassAssignment, ...]) -> None:
        schedule = self.schedules[assignments[0].batch_id]
        with self.ledger.lock:
            self.ledger.commit(assignments)
            for item in assignments:
                schedule.place(item)

    def undo(self, assignments: tuple[ClassAssignment, ...]) -> None:
        schedule = self.schedules[assignments[0].batch_id]
        with self.ledger.lock:
            self.ledger.uncommit(assignments)
            for item in assignments:
                schedule.remove(item.day, item.time_slot)
