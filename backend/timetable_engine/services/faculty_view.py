from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Iterable

from timetable_engine.schemas.config import DAY_ORDER, parse_window
from timetable_engine.schemas.faculty_view import (
    DepartmentFacultyTimetables,
    FacultyDistributionSummary,
    FacultySlotEntry,
    FacultyTimetable,
    FacultyWorkload,
)
from timetable_engine.schemas.timetable import MultiBatchResult
from timetable_engine.services.assignments import SUBJECT_SUFFIX_PATTERN

logger = logging.getLogger(__name__)

NON_TEACHING_TYPES = {"lunch", "break"}


def _slot_order(entry: FacultySlotEntry) -> tuple[int, int]:
    day_index = DAY_ORDER.index(entry.day) if entry.day in DAY_ORDER else len(DAY_ORDER)
    return day_index, parse_window(entry.time)[0]


def _workload(schedule: list[FacultySlotEntry]) -> FacultyWorkload:
    if not schedule:
        return FacultyWorkload()
    days = {entry.day for entry in schedule}
    breakdown = Counter(SUBJECT_SUFFIX_PATTERN.sub("", entry.subject).strip() for entry in schedule)
    return FacultyWorkload(
        weekly_total=len(schedule),
        daily_average=round(len(schedule) / len(days), 2),
        subject_breakdown=dict(sorted(breakdown.items())),
    )


def _clashes(faculty: str, schedule: list[FacultySlotEntry]) -> list[str]:
    by_slot = defaultdict(list)
    for entry in schedule:
        by_slot[(entry.day, entry.time)].append(entry)
    messages = []
    for (day, time), entries in by_slot.items():
        if len(entries) > 1:
            details = " vs ".join(f"{entry.subject} ({entry.batch_name})" for entry in entries)
            messages.append(f"{faculty} has conflict at {day} {time}: {details}")
    return messages


def distribute_to_faculty(
    result: MultiBatchResult,
    *,
    department: str = "",
    semester: str = "",
    roster: Iterable[str] = (),
) -> DepartmentFacultyTimetables:
    """Regroup the first-ranked timetable of every batch by faculty.

    Roster members get a timetable even when they teach nothing; faculty found
    in the schedule but missing from the roster are appended after them in
    name order.
    """
    schedules: dict[str, list[FacultySlotEntry]] = {name: [] for name in roster if name}
    for batch in result.batches:
        if not batch.timetables:
            logger.warning("Batch %s has no timetable to distribute", batch.batch_id)
            continue
        for entry in batch.timetables[0].schedule:
            if not entry.faculty or entry.type in NON_TEACHING_TYPES:
                continue
            schedules.setdefault(entry.faculty, []).append(
                FacultySlotEntry(
                    day=entry.day,
                    time=entry.time,
                    subject=entry.subject,
                    room=entry.room,
                    type=entry.type,
                    batch_id=batch.batch_id,
                    batch_name=batch.batch_name,
                )
            )

    roster_names = [name for name in roster if name]
    ordered = list(dict.fromkeys(roster_names)) + sorted(name for name in schedules if name not in roster_names)

    timetables: list[FacultyTimetable] = []
    all_conflicts: list[str] = []
    for faculty in ordered:
        schedule = sorted(schedules[faculty], key=_slot_order)
        conflicts = _clashes(faculty, schedule)
        all_conflicts.extend(conflicts)
        timetables.append(
            FacultyTimetable(
                faculty=faculty,
                schedule=schedule,
                total_classes=len(schedule),
                workload=_workload(schedule),
                conflicts=conflicts,
            )
        )

    total_classes = sum(item.total_classes for item in timetables)
    summary = FacultyDistributionSummary(
        total_faculties=len(timetables),
        total_classes=total_classes,
        average_workload=round(total_classes / len(timetables), 2) if timetables else 0.0,
        conflicts_found=len(all_conflicts),
    )
    logger.info(
        "Faculty distribution | faculties=%s classes=%s conflicts=%s",
        summary.total_faculties,
        summary.total_classes,
        summary.conflicts_found,
    )
    return DepartmentFacultyTimetables(
        department=department,
        semester=semester,
        generated_at=datetime.now(timezone.utc).isoformat(),
        faculty_timetables=timetables,
        summary=summary,
    )
