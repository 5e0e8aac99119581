import pytest

from timetable_engine.schemas.generator import GenerationSettings
from timetable_engine.services.assignments import ClassAssignment, Schedule
from timetable_engine.services.constraints import (
    DurationConstraint,
    FacultyConstraint,
    FacultyLoadConstraint,
    LunchConstraint,
    PlacementContext,
    RoomConstraint,
    SubjectConstraint,
    build_constraint_set,
    normalize_subject_name,
)
from timetable_engine.services.ledger import Ledger
from timetable_engine.services.time_grid import build_time_grid

MONDAY_NINE = "09:00 - 10:00"


def assignment(batch, *, subject="Mathematics", faculty="Dr. Smith", room="Room A101", day="Monday", slot=MONDAY_NINE, **extra):
    return ClassAssignment(
        batch_id=batch,
        subject_id=subject.lower(),
        subject_name=subject,
        faculty=faculty,
        room=room,
        day=day,
        time_slot=slot,
        **extra,
    )


@pytest.fixture
def grid():
    return build_time_grid(
        working_days=["Monday", "Tuesday"],
        start_time="09:00",
        end_time="17:00",
        lunch_time="13:00 - 14:00",
        max_classes_per_day=8,
    )


@pytest.fixture
def ledger():
    return Ledger()


def context_for(grid, ledger, batch="b"):
    return PlacementContext(grid=grid, ledger=ledger, schedule=Schedule(batch))


def test_subject_names_normalise_suffixes():
    assert normalize_subject_name("Physics (continued)") == "physics"
    assert normalize_subject_name("  Mathematics (Gap-Fill) ") == "mathematics"
    assert normalize_subject_name("Chemistry (final-fill)") == "chemistry"
    assert normalize_subject_name("Data (Structures)") == "data (structures)"


def test_faculty_busy_in_other_batch(grid, ledger):
    ledger.commit([assignment("a")])
    context = context_for(grid, ledger)
    constraint = FacultyConstraint()
    assert not constraint.check(assignment("b", subject="Physics", room="Room A102"), context)
    assert constraint.check(assignment("b", subject="Physics", room="Room A102", slot="10:00 - 11:00"), context)
    assert constraint.check(assignment("b", subject="Physics", faculty="Prof. Johnson", room="Room A102"), context)


def test_room_exclusive_only_under_exclusive_policy(grid, ledger):
    ledger.commit([assignment("a")])
    context = context_for(grid, ledger)
    assert not RoomConstraint().check(assignment("b", subject="Physics", faculty="Prof. Johnson"), context)

    exclusive = build_constraint_set(GenerationSettings())
    shared = build_constraint_set(GenerationSettings(room_policy="shared"))
    assert exclusive.get("room") is not None
    assert shared.get("room") is None
    assert shared.allows(assignment("b", subject="Physics", faculty="Prof. Johnson"), context)


def test_subject_collides_across_batches_after_normalisation(grid, ledger):
    ledger.commit([assignment("a", subject="Physics")])
    context = context_for(grid, ledger)
    candidate = assignment("b", subject="physics (extra)", faculty="Prof. Johnson", room="Room A102")
    assert not SubjectConstraint().check(candidate, context)


def test_lunch_slot_is_reserved(grid, ledger):
    context = context_for(grid, ledger)
    assert not LunchConstraint().check(assignment("b", slot="13:00 - 14:00"), context)
    assert LunchConstraint().check(assignment("b"), context)


def test_duration_needs_contiguous_free_slots(grid, ledger):
    context = context_for(grid, ledger)
    constraint = DurationConstraint()
    assert constraint.check(assignment("b", span=2), context)
    assert not constraint.check(assignment("b", span=2, slot="12:00 - 13:00"), context)

    context.schedule.place(assignment("b", subject="Physics", slot="10:00 - 11:00"))
    assert not constraint.check(assignment("b", span=2), context)


def test_faculty_load_ceilings(grid, ledger):
    slots = ["09:00 - 10:00", "10:00 - 11:00", "11:00 - 12:00", "12:00 - 13:00", "14:00 - 15:00", "15:00 - 16:00"]
    ledger.commit([assignment("a", slot=slot, room=f"Room {index}") for index, slot in enumerate(slots)])
    context = context_for(grid, ledger)
    constraint = FacultyLoadConstraint(daily_limit=6, weekly_limit=8)

    assert not constraint.check(assignment("b", slot="16:00 - 17:00"), context)
    assert constraint.check(assignment("b", day="Tuesday"), context)
    assert not constraint.check(assignment("b", day="Tuesday", span=3), context)


def test_clash_kinds_only_across_batches():
    constraint_set = build_constraint_set(GenerationSettings())
    first = assignment("a")
    assert constraint_set.clash_kinds(first, assignment("b")) == ["faculty", "room", "subject"]
    assert constraint_set.clash_kinds(first, assignment("a", slot="10:00 - 11:00")) == []
    assert constraint_set.clash_kinds(first, assignment("b", faculty="Prof. Johnson", room="Room A102", subject="Physics")) == []


def test_violations_report_failed_rules(grid, ledger):
    ledger.commit([assignment("a")])
    context = context_for(grid, ledger)
    constraint_set = build_constraint_set(GenerationSettings())
    kinds = [item.kind for item in constraint_set.violations(assignment("b"), context)]
    assert kinds == ["faculty", "room", "subject"]
    assert constraint_set.soft_violations([assignment("b")], context) == 3
    assert constraint_set.hard_violations([assignment("b")], context) == 0
