import pytest
from fastapi.testclient import TestClient

from timetable_engine.main import app
from timetable_engine.schemas.config import Batch, Subject, TimetableConfig


@pytest.fixture()
def client():
    with TestClient(app) as test_client:
        yield test_client


def _subject(subject_id, name, per_week, *, faculty=None, duration=60, type="theory", priority="medium"):
    return Subject(
        id=subject_id,
        name=name,
        classes_per_week=per_week,
        faculty=faculty,
        duration=duration,
        type=type,
        priority=priority,
    )


@pytest.fixture()
def make_subject():
    return _subject


@pytest.fixture()
def make_config():
    def build(subjects, batches=None, **overrides):
        values = {
            "name": "CSE Semester 3",
            "department": "Computer Science",
            "semester": "3",
            "subjects": subjects,
            "batches": batches or [],
            "available_classrooms": ["Room A101", "Room A102", "Lab L201"],
            "working_days": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
            "start_time": "09:00",
            "end_time": "17:00",
            "lunch_time": "13:00 - 14:00",
            "max_classes_per_day": 8,
        }
        values.update(overrides)
        return TimetableConfig(**values)

    return build


@pytest.fixture()
def scenario_a_config(make_config):
    # 5 days x 8 slots minus one lunch slot per day = 35 teaching slots.
    subjects = [
        _subject("math", "Mathematics", 4, faculty="Dr. Smith"),
        _subject("physics", "Physics", 3, faculty="Prof. Johnson"),
    ]
    batches = [Batch(id="cse-a", name="CSE A", subjects=["math", "physics"])]
    return make_config(subjects, batches)


@pytest.fixture()
def scenario_b_config(make_config):
    subjects = [
        _subject("math", "Mathematics", 4, faculty="Dr. Smith"),
        _subject("dsa", "Data Structures", 3, faculty="Dr. Smith"),
        _subject("physics", "Physics", 3, faculty="Prof. Johnson"),
    ]
    batches = [
        Batch(id="cse-a", name="CSE A", subjects=["math", "dsa", "physics"]),
        Batch(id="cse-b", name="CSE B", subjects=["math", "dsa", "physics"]),
    ]
    return make_config(subjects, batches)


@pytest.fixture()
def single_room_config(make_config):
    """Two batches competing for one room over three teaching slots: four classes cannot fit."""
    subjects = [
        _subject("x", "Algebra", 3, faculty="Dr. Smith"),
        _subject("y", "Biology", 1, faculty="Prof. Johnson"),
    ]
    batches = [
        Batch(id="a", name="Batch A", subjects=["x"]),
        Batch(id="b", name="Batch B", subjects=["y"]),
    ]
    return make_config(
        subjects,
        batches,
        available_classrooms=["Room A101"],
        working_days=["Monday"],
        start_time="09:00",
        end_time="13:00",
        lunch_time="11:00 - 12:00",
    )
