from __future__ import annotations

import logging
from dataclasses import dataclass

from timetable_engine.schemas.config import (
    Batch,
    Subject,
    TimetableConfig,
    format_window,
    parse_time_to_minutes,
    parse_window,
)
from timetable_engine.services.rooms import DEFAULT_ROOMS
from timetable_engine.services.time_grid import (
    DEFAULT_END_TIME,
    DEFAULT_LUNCH_TIME,
    DEFAULT_START_TIME,
    DEFAULT_WORKING_DAYS,
    order_working_days,
)
from timetable_engine.services.workload import DEFAULT_FACULTY_POOL

logger = logging.getLogger(__name__)

DEFAULT_BATCH_ID = "default"
DEFAULT_BATCH_NAME = "Default Section"
DEFAULT_BATCH_STRENGTH = 60

SAMPLE_SUBJECTS: tuple[Subject, ...] = (
    Subject(id="sample-math", name="Mathematics", classes_per_week=4, faculty="Dr. Smith"),
    Subject(id="sample-physics", name="Physics", classes_per_week=3, faculty="Prof. Johnson"),
    Subject(id="sample-chemistry", name="Chemistry", classes_per_week=3, faculty="Dr. Brown"),
    Subject(id="sample-cs", name="Computer Science", classes_per_week=4, faculty="Prof. Wilson"),
)


@dataclass(frozen=True)
class NormalizedConfig:
    config: TimetableConfig
    batches: tuple[Batch, ...]
    subjects_by_batch: dict[str, tuple[Subject, ...]]
    rooms: tuple[str, ...]
    faculty_pool: tuple[str, ...]

    @property
    def required_occurrences(self) -> int:
        return sum(
            subject.classes_per_week
            for subjects in self.subjects_by_batch.values()
            for subject in subjects
        )


def _normalize_hours(config: TimetableConfig) -> tuple[str, str]:
    try:
        start = parse_time_to_minutes(config.start_time)
        end = parse_time_to_minutes(config.end_time)
    except ValueError:
        logger.warning(
            "Unreadable teaching hours %r-%r; using %s-%s",
            config.start_time,
            config.end_time,
            DEFAULT_START_TIME,
            DEFAULT_END_TIME,
        )
        return DEFAULT_START_TIME, DEFAULT_END_TIME
    if end <= start:
        logger.warning(
            "End time %s is not after start time %s; using %s-%s",
            config.end_time,
            config.start_time,
            DEFAULT_START_TIME,
            DEFAULT_END_TIME,
        )
        return DEFAULT_START_TIME, DEFAULT_END_TIME
    return config.start_time, config.end_time


def _normalize_lunch(lunch_time: str, start_time: str, end_time: str, slot_minutes: int) -> str:
    day_start = parse_time_to_minutes(start_time)
    day_end = parse_time_to_minutes(end_time)

    def inside(window: tuple[int, int]) -> bool:
        return day_start <= window[0] and window[1] <= day_end

    try:
        window = parse_window(lunch_time)
    except ValueError:
        logger.warning("Unreadable lunch window %r; using the default", lunch_time)
    else:
        if inside(window):
            return format_window(*window)
        logger.warning("Lunch window %s lies outside %s-%s", lunch_time, start_time, end_time)

    default_window = parse_window(DEFAULT_LUNCH_TIME)
    if inside(default_window):
        return DEFAULT_LUNCH_TIME
    slot_count = max(1, (day_end - day_start) // slot_minutes)
    midday_start = day_start + (slot_count // 2) * slot_minutes
    midday = (midday_start, min(day_end, midday_start + slot_minutes))
    logger.warning("Using the midday slot %s as lunch", format_window(*midday))
    return format_window(*midday)


def _normalize_subjects(config: TimetableConfig) -> list[Subject]:
    if not config.subjects:
        logger.warning("No subjects configured; using %s sample subjects", len(SAMPLE_SUBJECTS))
        return list(SAMPLE_SUBJECTS)
    subjects: list[Subject] = []
    seen: set[str] = set()
    for subject in config.subjects:
        if subject.id in seen:
            logger.warning("Duplicate subject id %s ignored", subject.id)
            continue
        seen.add(subject.id)
        subjects.append(subject)
    return subjects


def _normalize_batches(
    config: TimetableConfig,
    subjects: list[Subject],
    rooms: tuple[str, ...],
) -> tuple[tuple[Batch, ...], dict[str, tuple[Subject, ...]]]:
    subject_by_id = {subject.id: subject for subject in subjects}
    batches: list[Batch] = list(config.batches)
    if not batches:
        logger.warning("No batches configured; scheduling a single %r", DEFAULT_BATCH_NAME)
        batches = [
            Batch(
                id=DEFAULT_BATCH_ID,
                name=DEFAULT_BATCH_NAME,
                strength=DEFAULT_BATCH_STRENGTH,
                subjects=[subject.id for subject in subjects],
                preferred_rooms=list(rooms),
            )
        ]

    normalized: list[Batch] = []
    subjects_by_batch: dict[str, tuple[Subject, ...]] = {}
    for batch in batches:
        if batch.id in subjects_by_batch:
            logger.warning("Duplicate batch id %s ignored", batch.id)
            continue
        unknown = [subject_id for subject_id in batch.subjects if subject_id not in subject_by_id]
        if unknown:
            logger.warning("Batch %s references unknown subjects %s; dropping them", batch.id, ", ".join(unknown))
        selected = tuple(dict.fromkeys(subject_id for subject_id in batch.subjects if subject_id in subject_by_id))
        if not selected:
            logger.warning("Batch %s has no usable subjects; assigning all %s subjects", batch.id, len(subjects))
            selected = tuple(subject.id for subject in subjects)
        subjects_by_batch[batch.id] = tuple(subject_by_id[subject_id] for subject_id in selected)
        normalized.append(batch.model_copy(update={"subjects": list(selected)}))
    return tuple(normalized), subjects_by_batch


def normalize_config(config: TimetableConfig, *, slot_minutes: int = 60) -> NormalizedConfig:
    """Repair doubtful input with logged defaults instead of rejecting it."""
    subjects = _normalize_subjects(config)

    working_days = order_working_days(config.working_days)
    if not working_days:
        logger.warning("No usable working days; using %s", ", ".join(DEFAULT_WORKING_DAYS))
        working_days = DEFAULT_WORKING_DAYS

    start_time, end_time = _normalize_hours(config)
    lunch_time = _normalize_lunch(config.lunch_time, start_time, end_time, slot_minutes)

    rooms = tuple(config.available_classrooms)
    if not rooms:
        logger.warning("No classrooms configured; using %s default rooms", len(DEFAULT_ROOMS))
        rooms = DEFAULT_ROOMS

    faculty_pool = tuple(config.faculty_pool)
    if not faculty_pool:
        faculty_pool = DEFAULT_FACULTY_POOL

    batches, subjects_by_batch = _normalize_batches(config, subjects, rooms)

    normalized = config.model_copy(
        update={
            "subjects": subjects,
            "batches": list(batches),
            "available_classrooms": list(rooms),
            "faculty_pool": list(faculty_pool),
            "working_days": list(working_days),
            "start_time": start_time,
            "end_time": end_time,
            "lunch_time": lunch_time,
        }
    )
    return NormalizedConfig(
        config=normalized,
        batches=batches,
        subjects_by_batch=subjects_by_batch,
        rooms=rooms,
        faculty_pool=faculty_pool,
    )
