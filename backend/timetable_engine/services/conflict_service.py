from __future__ import annotations

from collections import Counter, defaultdict
from typing import Dict, Iterable, List

from timetable_engine.schemas.conflict import ConflictDetail, ConflictReport, ResolutionAction
from timetable_engine.schemas.config import parse_window
from timetable_engine.services.assignments import ClassAssignment
from timetable_engine.services.constraints import ConstraintSet
from timetable_engine.services.time_grid import TimeGrid
from timetable_engine.services.workload import (
    DEFAULT_DAILY_CEILING,
    DEFAULT_WEEKLY_CEILING,
    constrained_ceiling,
)

CLASH_TYPES = {
    "faculty": "faculty_conflict",
    "room": "room_conflict",
    "subject": "subject_conflict",
}

MOVABLE_TYPES = (
    "faculty_conflict",
    "subject_conflict",
    "room_conflict",
    "duration_violation",
    "slot_double_booking",
)


class ConflictValidator:
    """Recounts conflicts from committed assignments alone, ignoring solver state."""

    def __init__(
        self,
        assignments: Iterable[ClassAssignment],
        *,
        constraint_set: ConstraintSet,
        grid: TimeGrid | None = None,
        max_daily_classes: int = DEFAULT_DAILY_CEILING,
        max_weekly_classes: int = DEFAULT_WEEKLY_CEILING,
    ):
        self.assignments: List[ClassAssignment] = list(assignments)
        self.constraint_set = constraint_set
        self.grid = grid
        self.max_weekly_classes = max_weekly_classes
        self.max_daily_classes = constrained_ceiling(max_daily_classes, max_weekly_classes)
        self.by_id: Dict[str, ClassAssignment] = {item.id: item for item in self.assignments}
        # Conflicts that reference no assignment (a missing lunch) still belong to a batch.
        self._batch_of_conflict: Dict[str, str] = {}
        self._faculty_of_conflict: Dict[str, str] = {}

    def detect_conflicts(self) -> ConflictReport:
        conflicts: List[ConflictDetail] = []
        conflicts.extend(self._double_bookings())
        conflicts.extend(self._pairwise_conflicts())
        conflicts.extend(self._workload_conflicts())
        conflicts.extend(self._lunch_conflicts())
        conflicts.extend(self._duration_conflicts())

        resolutions: List[ResolutionAction] = []
        for conflict in conflicts:
            resolutions.extend(self.generate_resolutions(conflict))
        return ConflictReport(conflicts=conflicts, suggested_resolutions=resolutions)

    def _double_bookings(self) -> List[ConflictDetail]:
        conflicts: List[ConflictDetail] = []
        groups = defaultdict(list)
        for item in self.assignments:
            if not item.is_lunch:
                groups[(item.batch_id, item.day, item.time_slot)].append(item)

        for (batch_id, day, time_slot), group in groups.items():
            if len(group) < 2:
                continue
            names = ", ".join(item.display_name for item in group)
            conflicts.append(ConflictDetail(
                id=f"double-{batch_id}-{day}-{time_slot}",
                conflict_type="slot_double_booking",
                description=f"Batch {batch_id} has {len(group)} classes on {day} {time_slot}: {names}",
                severity="hard",
                day=day,
                time=time_slot,
                affected_slots=[group[0].id],
            ))
        return conflicts

    def _pairwise_conflicts(self) -> List[ConflictDetail]:
        conflicts: List[ConflictDetail] = []
        groups = defaultdict(list)
        for item in self.assignments:
            if not item.is_lunch:
                groups[(item.day, item.time_slot)].append(item)

        for (day, time_slot), group in groups.items():
            n = len(group)
            for i in range(n):
                first = group[i]
                for j in range(i + 1, n):
                    second = group[j]
                    for kind in self.constraint_set.clash_kinds(first, second):
                        conflict_type = CLASH_TYPES.get(kind)
                        if conflict_type is None:
                            continue
                        shared = {
                            "faculty": first.faculty,
                            "room": first.room,
                            "subject": first.subject_name,
                        }[kind]
                        conflicts.append(ConflictDetail(
                            id=f"{kind}-{first.id}-{second.id}",
                            conflict_type=conflict_type,
                            description=(
                                f"{kind.capitalize()} overlap on {day} {time_slot} for {shared}: "
                                f"{first.batch_id} and {second.batch_id}"
                            ),
                            severity="hard",
                            day=day,
                            time=time_slot,
                            affected_slots=[first.id, second.id],
                        ))
        return conflicts

    def _workload_conflicts(self) -> List[ConflictDetail]:
        conflicts: List[ConflictDetail] = []
        daily = defaultdict(list)
        weekly = defaultdict(list)
        for item in self.assignments:
            if item.is_lunch or not item.faculty:
                continue
            daily[(item.faculty, item.day)].append(item.id)
            weekly[item.faculty].append(item.id)

        for (faculty, day), ids in daily.items():
            if len(ids) > self.max_daily_classes:
                conflict_id = f"load-{faculty}-{day}"
                self._faculty_of_conflict[conflict_id] = faculty
                conflicts.append(ConflictDetail(
                    id=conflict_id,
                    conflict_type="workload_overflow",
                    description=f"{faculty} teaches {len(ids)} classes on {day} (limit {self.max_daily_classes})",
                    severity="soft",
                    day=day,
                    affected_slots=ids,
                ))
        for faculty, ids in weekly.items():
            if len(ids) > self.max_weekly_classes:
                conflict_id = f"load-{faculty}-week"
                self._faculty_of_conflict[conflict_id] = faculty
                conflicts.append(ConflictDetail(
                    id=conflict_id,
                    conflict_type="workload_overflow",
                    description=f"{faculty} teaches {len(ids)} classes this week (limit {self.max_weekly_classes})",
                    severity="soft",
                    affected_slots=ids,
                ))
        return conflicts

    def _lunch_slots(self) -> set[str]:
        if self.grid is not None and self.grid.lunch_slot is not None:
            return {self.grid.lunch_slot}
        return {item.time_slot for item in self.assignments if item.is_lunch}

    def _lunch_conflicts(self) -> List[ConflictDetail]:
        conflicts: List[ConflictDetail] = []
        lunch_slots = self._lunch_slots()
        for item in self.assignments:
            if item.time_slot in lunch_slots and not item.is_lunch:
                conflicts.append(ConflictDetail(
                    id=f"lunch-{item.id}",
                    conflict_type="lunch_violation",
                    description=f"{item.display_name} scheduled over lunch on {item.day}",
                    severity="hard",
                    day=item.day,
                    time=item.time_slot,
                    affected_slots=[item.id],
                ))

        if self.grid is None or self.grid.lunch_slot is None:
            return conflicts
        lunch_slot = self.grid.lunch_slot
        batches = sorted({item.batch_id for item in self.assignments})
        seeded = {(item.batch_id, item.day) for item in self.assignments if item.is_lunch and item.time_slot == lunch_slot}
        for batch_id in batches:
            for day in self.grid.days:
                if (batch_id, day) not in seeded:
                    conflict_id = f"lunch-missing-{batch_id}-{day}"
                    self._batch_of_conflict[conflict_id] = batch_id
                    conflicts.append(ConflictDetail(
                        id=conflict_id,
                        conflict_type="lunch_violation",
                        description=f"Batch {batch_id} has no lunch break on {day}",
                        severity="hard",
                        day=day,
                        time=lunch_slot,
                        affected_slots=[],
                    ))
        return conflicts

    def _duration_conflicts(self) -> List[ConflictDetail]:
        conflicts: List[ConflictDetail] = []
        # The slot before a continuation is the one ending where it starts.
        by_end = {}
        for item in self.assignments:
            _, end = parse_window(item.time_slot)
            by_end[(item.batch_id, item.day, end)] = item

        for item in self.assignments:
            if not item.is_continuation:
                continue
            start, _ = parse_window(item.time_slot)
            previous = by_end.get((item.batch_id, item.day, start))
            if (
                previous is None
                or previous.is_lunch
                or previous.subject_id != item.subject_id
                or previous.faculty != item.faculty
                or previous.room != item.room
            ):
                conflicts.append(ConflictDetail(
                    id=f"duration-{item.id}",
                    conflict_type="duration_violation",
                    description=f"{item.display_name} on {item.day} {item.time_slot} does not follow its opening slot",
                    severity="hard",
                    day=item.day,
                    time=item.time_slot,
                    affected_slots=[item.id],
                ))
        return conflicts

    def count_by_batch(self, report: ConflictReport) -> Counter:
        counts: Counter = Counter()
        for conflict in report.conflicts:
            batch_ids = {self.by_id[slot_id].batch_id for slot_id in conflict.affected_slots if slot_id in self.by_id}
            if conflict.id in self._batch_of_conflict:
                batch_ids.add(self._batch_of_conflict[conflict.id])
            for batch_id in batch_ids:
                counts[batch_id] += 1
        return counts

    def generate_resolutions(self, conflict: ConflictDetail) -> List[ResolutionAction]:
        resolutions = []
        if not conflict.affected_slots:
            if conflict.conflict_type == "lunch_violation":
                resolutions.append(ResolutionAction(
                    action_type="restore_lunch",
                    description="Re-seed the lunch break for this day",
                    target_slot_id=conflict.id,
                    parameters={"day": conflict.day, "time": conflict.time},
                ))
            return resolutions

        target = conflict.affected_slots[-1]
        if conflict.conflict_type == "room_conflict":
            resolutions.append(ResolutionAction(
                action_type="change_room",
                description="Move one class to a free room",
                target_slot_id=target,
                parameters={},
            ))
        if conflict.conflict_type == "faculty_conflict":
            resolutions.append(ResolutionAction(
                action_type="change_faculty",
                description="Assign another faculty member",
                target_slot_id=target,
                parameters={},
            ))
        if conflict.conflict_type in MOVABLE_TYPES:
            resolutions.append(ResolutionAction(
                action_type="move_slot",
                description="Move to a different time slot",
                target_slot_id=target,
                parameters={},
            ))
        if conflict.conflict_type == "workload_overflow":
            resolutions.append(ResolutionAction(
                action_type="reduce_load",
                description="Hand some of these classes to another faculty member",
                target_slot_id=target,
                parameters={"faculty": self._faculty_of_conflict.get(conflict.id, "")},
            ))
        if conflict.conflict_type == "lunch_violation":
            resolutions.append(ResolutionAction(
                action_type="restore_lunch",
                description="Move this class out of the lunch window",
                target_slot_id=target,
                parameters={},
            ))
        return resolutions
