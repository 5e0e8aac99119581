import pytest

from timetable_engine.schemas.generator import GenerationSettings
from timetable_engine.services.assignments import ClassAssignment, lunch_assignment
from timetable_engine.services.conflict_service import ConflictValidator
from timetable_engine.services.constraints import build_constraint_set
from timetable_engine.services.time_grid import build_time_grid


def slot(batch, subject, faculty, room, *, day="Monday", time="09:00 - 10:00", variant="class"):
    return ClassAssignment(
        batch_id=batch,
        subject_id=subject.lower(),
        subject_name=subject,
        faculty=faculty,
        room=room,
        day=day,
        time_slot=time,
        variant=variant,
        counts_toward_quota=variant == "class",
    )


@pytest.fixture
def exclusive():
    return build_constraint_set(GenerationSettings())


def test_detect_room_conflict(exclusive):
    entries = [
        slot("a", "Course 1", "Prof A", "Room 1"),
        slot("b", "Course 2", "Prof B", "Room 1"),
    ]
    report = ConflictValidator(entries, constraint_set=exclusive).detect_conflicts()

    assert len(report.conflicts) == 1
    conflict = report.conflicts[0]
    assert conflict.conflict_type == "room_conflict"
    assert "Room overlap on Monday 09:00 - 10:00 for Room 1" in conflict.description
    assert set(conflict.affected_slots) == {"a:Monday:09:00 - 10:00", "b:Monday:09:00 - 10:00"}


def test_shared_rooms_are_not_conflicts():
    shared = build_constraint_set(GenerationSettings(room_policy="shared"))
    entries = [
        slot("a", "Course 1", "Prof A", "Room 1"),
        slot("b", "Course 2", "Prof B", "Room 1"),
    ]
    assert ConflictValidator(entries, constraint_set=shared).detect_conflicts().total == 0


def test_detect_faculty_conflict_with_resolutions(exclusive):
    entries = [
        slot("a", "Course 1", "Prof A", "Room 1"),
        slot("b", "Course 2", "Prof A", "Room 2"),
    ]
    validator = ConflictValidator(entries, constraint_set=exclusive)
    report = validator.detect_conflicts()

    assert [item.conflict_type for item in report.conflicts] == ["faculty_conflict"]
    actions = [item.action_type for item in report.suggested_resolutions]
    assert actions == ["change_faculty", "move_slot"]
    assert validator.count_by_batch(report) == {"a": 1, "b": 1}


def test_subject_conflict_ignores_suffixes(exclusive):
    entries = [
        slot("a", "Physics", "Prof A", "Room 1"),
        slot("b", "Physics", "Prof B", "Room 2", variant="gap_fill"),
    ]
    report = ConflictValidator(entries, constraint_set=exclusive).detect_conflicts()
    assert report.count("subject_conflict") == 1


def test_same_batch_entries_never_clash(exclusive):
    entries = [
        slot("a", "Course 1", "Prof A", "Room 1"),
        slot("a", "Course 1", "Prof A", "Room 1", time="10:00 - 11:00"),
    ]
    assert ConflictValidator(entries, constraint_set=exclusive).detect_conflicts().total == 0


def test_daily_overload_flagged(exclusive):
    times = ["09:00 - 10:00", "10:00 - 11:00", "11:00 - 12:00", "12:00 - 13:00", "14:00 - 15:00", "15:00 - 16:00", "16:00 - 17:00"]
    entries = [slot("a", f"Course {index}", "Prof A", "Room 1", time=time) for index, time in enumerate(times)]
    validator = ConflictValidator(entries, constraint_set=exclusive, max_daily_classes=6)
    report = validator.detect_conflicts()

    assert report.count("workload_overflow") == 1
    overflow = report.conflicts[0]
    assert overflow.severity == "soft"
    assert len(overflow.affected_slots) == 7
    assert report.suggested_resolutions[0].action_type == "reduce_load"
    assert report.suggested_resolutions[0].parameters == {"faculty": "Prof A"}


def test_weekly_overload_flagged(exclusive):
    entries = [
        slot("a", "Course", "Prof A", "Room 1", day=day, time=time)
        for day in ("Monday", "Tuesday")
        for time in ("09:00 - 10:00", "10:00 - 11:00")
    ]
    report = ConflictValidator(
        entries, constraint_set=exclusive, max_daily_classes=2, max_weekly_classes=3
    ).detect_conflicts()
    assert [item.id for item in report.conflicts] == ["load-Prof A-week"]


def test_structural_lunch_and_duration_checks(exclusive):
    grid = build_time_grid(
        working_days=["Monday"],
        start_time="09:00",
        end_time="17:00",
        lunch_time="13:00 - 14:00",
        max_classes_per_day=8,
    )
    entries = [
        slot("a", "Course 1", "Prof A", "Room 1", time="13:00 - 14:00"),
        slot("a", "Course 2", "Prof B", "Room 2", time="14:00 - 15:00", variant="continuation"),
        slot("b", "Course 3", "Prof C", "Room 3"),
        slot("b", "Course 3", "Prof C", "Room 3", time="10:00 - 11:00", variant="continuation"),
        lunch_assignment("b", "Monday", "13:00 - 14:00"),
    ]
    validator = ConflictValidator(entries, constraint_set=exclusive, grid=grid)
    report = validator.detect_conflicts()

    assert report.count("lunch_violation") == 2
    assert report.count("duration_violation") == 1
    assert report.total == 3
    assert validator.count_by_batch(report) == {"a": 3}


def test_same_batch_double_booking_flagged(exclusive):
    entries = [
        slot("a", "Course 1", "Prof A", "Room 1"),
        slot("a", "Course 2", "Prof B", "Room 2"),
        slot("b", "Course 3", "Prof C", "Room 3"),
    ]
    validator = ConflictValidator(entries, constraint_set=exclusive)
    report = validator.detect_conflicts()

    assert [item.conflict_type for item in report.conflicts] == ["slot_double_booking"]
    conflict = report.conflicts[0]
    assert conflict.id == "double-a-Monday-09:00 - 10:00"
    assert conflict.severity == "hard"
    assert "Batch a has 2 classes on Monday 09:00 - 10:00" in conflict.description
    assert [item.action_type for item in report.suggested_resolutions] == ["move_slot"]
    assert validator.count_by_batch(report) == {"a": 1}
