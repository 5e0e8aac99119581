from fastapi import APIRouter

from timetable_engine.schemas.conflict import ConflictReport
from timetable_engine.schemas.generator import GenerationSettings
from timetable_engine.schemas.timetable import TimeSlotEntry, ValidateScheduleRequest
from timetable_engine.services.assignments import ClassAssignment, SUBJECT_SUFFIX_PATTERN
from timetable_engine.services.conflict_service import ConflictValidator
from timetable_engine.services.constraints import build_constraint_set

router = APIRouter()


def _to_assignment(entry: TimeSlotEntry, index: int) -> ClassAssignment:
    variant = "lunch" if entry.type == "lunch" else entry.variant
    return ClassAssignment(
        batch_id=entry.batch_id or "default",
        subject_id=entry.subject_id or f"entry-{index}",
        subject_name=SUBJECT_SUFFIX_PATTERN.sub("", entry.subject).strip(),
        faculty=entry.faculty,
        room=entry.room,
        day=entry.day,
        time_slot=entry.time,
        type=entry.type,
        variant=variant,
        counts_toward_quota=variant == "class",
    )


@router.post("/detect", response_model=ConflictReport)
def detect_conflicts(payload: ValidateScheduleRequest):
    settings = GenerationSettings(
        room_policy=payload.room_policy,
        max_faculty_classes_per_day=min(payload.max_faculty_classes_per_day, payload.max_faculty_weekly_load),
        max_faculty_weekly_load=payload.max_faculty_weekly_load,
    )
    validator = ConflictValidator(
        [_to_assignment(entry, index) for index, entry in enumerate(payload.entries)],
        constraint_set=build_constraint_set(settings),
        max_daily_classes=payload.max_faculty_classes_per_day,
        max_weekly_classes=payload.max_faculty_weekly_load,
    )
    return validator.detect_conflicts()
