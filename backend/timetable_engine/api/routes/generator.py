import logging
from time import perf_counter

from fastapi import APIRouter

from timetable_engine.core.config import get_settings
from timetable_engine.schemas.faculty_view import DepartmentFacultyTimetables, FacultyViewRequest
from timetable_engine.schemas.generator import GenerateTimetableRequest, GenerationSettings
from timetable_engine.schemas.timetable import MultiBatchResult
from timetable_engine.services.engine import TimetableEngine
from timetable_engine.services.faculty_view import distribute_to_faculty

router = APIRouter()
logger = logging.getLogger(__name__)


def default_generation_settings() -> GenerationSettings:
    settings = get_settings()
    return GenerationSettings(
        strategy=settings.default_strategy,
        room_policy=settings.default_room_policy,
        timeout_seconds=settings.generation_timeout_seconds,
    )


@router.post("/timetables/generate", response_model=MultiBatchResult)
def generate_timetable(payload: GenerateTimetableRequest) -> MultiBatchResult:
    started = perf_counter()
    settings = payload.settings_override or default_generation_settings()
    logger.info(
        "TIMETABLE GENERATION START | name=%s | batches=%s | subjects=%s | strategy=%s",
        payload.config.name,
        len(payload.config.batches),
        len(payload.config.subjects),
        settings.strategy,
    )
    result = TimetableEngine(settings).generate(payload.config)
    logger.info(
        "TIMETABLE GENERATION END | name=%s | status=%s | conflicts=%s | duration_ms=%.2f",
        payload.config.name,
        result.status,
        result.global_conflicts,
        (perf_counter() - started) * 1000,
    )
    return result


@router.post("/timetables/faculty-view", response_model=DepartmentFacultyTimetables)
def faculty_view(payload: FacultyViewRequest) -> DepartmentFacultyTimetables:
    return distribute_to_faculty(
        payload.result,
        department=payload.department,
        semester=payload.semester,
        roster=payload.faculty_roster,
    )
