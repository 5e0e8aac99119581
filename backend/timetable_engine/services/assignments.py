from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterator, Literal

from timetable_engine.core.exceptions import SchedulerError

AssignmentVariant = Literal["class", "continuation", "gap_fill", "lunch"]

LUNCH_SUBJECT_ID = "lunch"
LUNCH_SUBJECT_NAME = "Lunch Break"

SUBJECT_SUFFIX_PATTERN = re.compile(
    r"\s*\((continued|extra|additional|gap-fill|final-fill|optimization)\)",
    re.IGNORECASE,
)

VARIANT_SUFFIXES: dict[str, str] = {
    "continuation": " (continued)",
    "gap_fill": " (gap-fill)",
}


def normalize_subject_name(name: str) -> str:
    """Strip bookkeeping suffixes so "Physics (continued)" and "physics" compare equal."""
    return SUBJECT_SUFFIX_PATTERN.sub("", name or "").strip().lower()


@dataclass(frozen=True)
class ClassAssignment:
    batch_id: str
    subject_id: str
    subject_name: str
    faculty: str
    room: str
    day: str
    time_slot: str
    span: int = 1
    type: str = "theory"
    variant: AssignmentVariant = "class"
    occurrence: int = 0
    counts_toward_quota: bool = True

    @property
    def id(self) -> str:
        return f"{self.batch_id}:{self.day}:{self.time_slot}"

    @property
    def is_lunch(self) -> bool:
        return self.variant == "lunch"

    @property
    def is_continuation(self) -> bool:
        return self.variant == "continuation"

    @property
    def is_occurrence(self) -> bool:
        return self.variant == "class" and self.counts_toward_quota

    @property
    def display_name(self) -> str:
        return f"{self.subject_name}{VARIANT_SUFFIXES.get(self.variant, '')}"

    @property
    def normalized_subject(self) -> str:
        return normalize_subject_name(self.subject_name)


def lunch_assignment(batch_id: str, day: str, time_slot: str) -> ClassAssignment:
    return ClassAssignment(
        batch_id=batch_id,
        subject_id=LUNCH_SUBJECT_ID,
        subject_name=LUNCH_SUBJECT_NAME,
        faculty="",
        room="",
        day=day,
        time_slot=time_slot,
        type="lunch",
        variant="lunch",
        counts_toward_quota=False,
    )


class Schedule:
    """One batch's week: at most one assignment per (day, slot)."""

    def __init__(self, batch_id: str, batch_name: str | None = None) -> None:
        self.batch_id = batch_id
        self.batch_name = batch_name or batch_id
        self._entries: dict[tuple[str, str], ClassAssignment] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ClassAssignment]:
        return iter(list(self._entries.values()))

    def get(self, day: str, time_slot: str) -> ClassAssignment | None:
        return self._entries.get((day, time_slot))

    def is_free(self, day: str, time_slot: str) -> bool:
        return (day, time_slot) not in self._entries

    def place(self, assignment: ClassAssignment) -> None:
        if assignment.batch_id != self.batch_id:
            raise SchedulerError(
                f"Assignment for batch {assignment.batch_id} cannot be placed in schedule of {self.batch_id}",
            )
        key = (assignment.day, assignment.time_slot)
        existing = self._entries.get(key)
        if existing is not None:
            raise SchedulerError(
                f"Slot {assignment.day} {assignment.time_slot} of batch {self.batch_id} already holds "
                f"{existing.display_name}",
                details={"day": assignment.day, "time": assignment.time_slot, "batchId": self.batch_id},
            )
        self._entries[key] = assignment

    def remove(self, day: str, time_slot: str) -> ClassAssignment:
        existing = self._entries.get((day, time_slot))
        if existing is None:
            raise SchedulerError(f"Slot {day} {time_slot} of batch {self.batch_id} is empty")
        if existing.is_lunch:
            raise SchedulerError(
                f"Lunch on {day} {time_slot} of batch {self.batch_id} cannot be removed",
                details={"day": day, "time": time_slot, "batchId": self.batch_id},
            )
        del self._entries[(day, time_slot)]
        return existing

    def teaching_entries(self) -> list[ClassAssignment]:
        return [item for item in self._entries.values() if not item.is_lunch]

    @property
    def filled_count(self) -> int:
        return sum(1 for item in self._entries.values() if not item.is_lunch)

    def day_load(self, day: str) -> int:
        return sum(1 for (entry_day, _), item in self._entries.items() if entry_day == day and not item.is_lunch)

    def subject_days(self, subject_id: str) -> set[str]:
        return {item.day for item in self._entries.values() if item.subject_id == subject_id}

    def occurrence_counts(self) -> Counter[str]:
        return Counter(item.subject_id for item in self._entries.values() if item.is_occurrence)

    def faculty_for_subject(self, subject_id: str) -> str | None:
        for item in self._entries.values():
            if item.subject_id == subject_id and item.faculty and not item.is_lunch:
                return item.faculty
        return None
