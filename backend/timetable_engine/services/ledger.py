from __future__ import annotations

from collections import Counter, defaultdict
from threading import RLock
from typing import Callable, Iterable

from timetable_engine.core.exceptions import SchedulerError
from timetable_engine.services.assignments import ClassAssignment


class Ledger:
    """Cross-batch record of what is committed at every (day, slot).

    Every read and write goes through one re-entrant lock, so a caller can hold
    ``ledger.lock`` around a check followed by a commit and no other batch can
    slip an assignment into the same slot in between.
    """

    def __init__(self) -> None:
        self._slots: dict[tuple[str, str], list[ClassAssignment]] = defaultdict(list)
        self._faculty_load: Counter[str] = Counter()
        self._faculty_day_load: Counter[tuple[str, str]] = Counter()
        self._lock = RLock()

    @property
    def lock(self) -> RLock:
        return self._lock

    def commit(self, assignments: Iterable[ClassAssignment]) -> None:
        with self._lock:
            for assignment in assignments:
                self._slots[(assignment.day, assignment.time_slot)].append(assignment)
                if assignment.faculty and not assignment.is_lunch:
                    self._faculty_load[assignment.faculty] += 1
                    self._faculty_day_load[(assignment.faculty, assignment.day)] += 1

    def uncommit(self, assignments: Iterable[ClassAssignment]) -> None:
        with self._lock:
            for assignment in assignments:
                if assignment.is_lunch:
                    raise SchedulerError(
                        f"Lunch on {assignment.day} {assignment.time_slot} cannot be removed from the ledger",
                    )
                key = (assignment.day, assignment.time_slot)
                entries = self._slots.get(key, [])
                if assignment not in entries:
                    raise SchedulerError(
                        f"{assignment.display_name} is not committed at {assignment.day} {assignment.time_slot}",
                    )
                entries.remove(assignment)
                if not entries:
                    self._slots.pop(key, None)
                if assignment.faculty:
                    self._decrement(self._faculty_load, assignment.faculty)
                    self._decrement(self._faculty_day_load, (assignment.faculty, assignment.day))

    def try_commit(self, assignments: Iterable[ClassAssignment], check: Callable[[], bool]) -> bool:
        items = tuple(assignments)
        with self._lock:
            if not check():
                return False
            self.commit(items)
        return True

    def entries_at(self, day: str, time_slot: str) -> tuple[ClassAssignment, ...]:
        with self._lock:
            return tuple(self._slots.get((day, time_slot), ()))

    def all_entries(self) -> list[ClassAssignment]:
        with self._lock:
            return [item for entries in self._slots.values() for item in entries]

    def faculty_busy(self, day: str, time_slot: str, faculty: str, *, exclude_batch: str | None = None) -> bool:
        return any(
            item.faculty == faculty and item.batch_id != exclude_batch
            for item in self.entries_at(day, time_slot)
            if not item.is_lunch
        )

    def room_busy(self, day: str, time_slot: str, room: str, *, exclude_batch: str | None = None) -> bool:
        return any(
            item.room == room and item.batch_id != exclude_batch
            for item in self.entries_at(day, time_slot)
            if not item.is_lunch
        )

    def subject_busy(self, day: str, time_slot: str, normalized_subject: str, *, exclude_batch: str | None = None) -> bool:
        return any(
            item.normalized_subject == normalized_subject and item.batch_id != exclude_batch
            for item in self.entries_at(day, time_slot)
            if not item.is_lunch
        )

    def faculty_load(self, faculty: str) -> int:
        with self._lock:
            return self._faculty_load.get(faculty, 0)

    def faculty_day_load(self, faculty: str, day: str) -> int:
        with self._lock:
            return self._faculty_day_load.get((faculty, day), 0)

    @staticmethod
    def _decrement(counter: Counter, key) -> None:
        current = counter.get(key, 0)
        if current <= 1:
            counter.pop(key, None)
        else:
            counter[key] = current - 1
