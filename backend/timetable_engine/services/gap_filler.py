from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

from timetable_engine.schemas.config import Subject
from timetable_engine.schemas.generator import GenerationSettings
from timetable_engine.services.assignments import ClassAssignment
from timetable_engine.services.placement import PlacementPlanner

logger = logging.getLogger(__name__)


@dataclass
class GapFillReport:
    batch_id: str
    filled: int = 0
    recovered: int = 0
    unfillable: int = 0


class GapFillingOptimizer:
    """Post-solve pass that only ever adds assignments to empty teaching slots."""

    def __init__(
        self,
        planner: PlacementPlanner,
        subjects_by_batch: dict[str, tuple[Subject, ...]],
        settings: GenerationSettings,
    ) -> None:
        self.planner = planner
        self.subjects_by_batch = subjects_by_batch
        self.settings = settings

    def fill(self, batch_id: str, deficits: Counter[str] | None = None) -> GapFillReport:
        deficits = deficits if deficits is not None else Counter()
        report = GapFillReport(batch_id=batch_id)
        grid = self.planner.grid
        schedule = self.planner.schedules[batch_id]

        for day in grid.days:
            for slot in grid.slot_labels:
                if not schedule.is_free(day, slot):
                    continue
                self.planner.check_deadline()
                placed = self._fill_slot(batch_id, day, slot, deficits)
                if placed is None:
                    report.unfillable += 1
                    continue
                report.filled += len(placed)
                if placed[0].is_occurrence:
                    report.recovered += 1

        logger.info(
            "Gap fill batch=%s filled=%s recovered=%s unfillable=%s",
            batch_id,
            report.filled,
            report.recovered,
            report.unfillable,
        )
        return report

    def _subject_order(self, batch_id: str, day: str, deficits: Counter[str]) -> list[Subject]:
        schedule = self.planner.schedules[batch_id]
        subjects = self.subjects_by_batch.get(batch_id, ())
        on_day = Counter(item.subject_id for item in schedule if item.day == day and not item.is_lunch)
        position = {subject.id: index for index, subject in enumerate(subjects)}
        return sorted(
            subjects,
            key=lambda subject: (-deficits.get(subject.id, 0), on_day[subject.id], position[subject.id]),
        )

    def _fill_slot(
        self,
        batch_id: str,
        day: str,
        slot: str,
        deficits: Counter[str],
    ) -> tuple[ClassAssignment, ...] | None:
        ordered = self._subject_order(batch_id, day, deficits)

        for subject in ordered:
            if deficits.get(subject.id, 0) <= 0:
                break
            slots = self.planner.grid.span_slots(slot, subject.span(self.settings.slot_minutes))
            if slots is None:
                continue
            occurrence = self.planner.schedules[batch_id].occurrence_counts()[subject.id]
            placed = self._try_subject(batch_id, subject, day, slots, occurrence=occurrence, gap_fill=False)
            if placed is not None:
                deficits[subject.id] -= 1
                logger.debug("Recovered deficit of %s for batch %s on %s %s", subject.id, batch_id, day, slot)
                return placed

        for subject in ordered:
            placed = self._try_subject(batch_id, subject, day, (slot,), occurrence=0, gap_fill=True)
            if placed is not None:
                return placed
        return None

    def _try_subject(
        self,
        batch_id: str,
        subject: Subject,
        day: str,
        slots: tuple[str, ...],
        *,
        occurrence: int,
        gap_fill: bool,
    ) -> tuple[ClassAssignment, ...] | None:
        rooms = self.planner.room_candidates(batch_id, subject)
        for faculty in self.planner.faculty_candidates(batch_id, subject):
            for room in rooms:
                assignments = self.planner.build(
                    batch_id=batch_id,
                    subject=subject,
                    day=day,
                    slots=slots,
                    faculty=faculty,
                    room=room,
                    occurrence=occurrence,
                    gap_fill=gap_fill,
                )
                if self.planner.try_place(assignments):
                    return assignments
        return None
