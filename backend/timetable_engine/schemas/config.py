from __future__ import annotations

import math
import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DAY_ORDER = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

DAY_VALUES = set(DAY_ORDER)

DAY_SHORT_MAP = {
    "Mon": "Monday",
    "Tue": "Tuesday",
    "Wed": "Wednesday",
    "Thu": "Thursday",
    "Fri": "Friday",
    "Sat": "Saturday",
    "Sun": "Sunday",
}

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
WINDOW_PATTERN = re.compile(r"^\s*(\d{1,2}:\d{2})\s*-\s*(\d{1,2}:\d{2})\s*$")

SubjectType = Literal["theory", "practical", "lab"]
SubjectPriority = Literal["high", "medium", "low"]

PRIORITY_RANK: dict[str, int] = {"high": 3, "medium": 2, "low": 1}


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    hours = value // 60
    minutes = value % 60
    return f"{hours:02d}:{minutes:02d}"


def parse_window(value: str) -> tuple[int, int]:
    """Parse an ``"HH:MM - HH:MM"`` window into start/end minutes."""
    match = WINDOW_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Time window must look like 'HH:MM - HH:MM', got {value!r}")
    start_raw, end_raw = match.groups()
    start = parse_time_to_minutes(start_raw.zfill(5))
    end = parse_time_to_minutes(end_raw.zfill(5))
    if end <= start:
        raise ValueError("Time window end must be after its start")
    return start, end


def format_window(start: int, end: int) -> str:
    return f"{minutes_to_time(start)} - {minutes_to_time(end)}"


def normalize_day(value: str) -> str:
    cleaned = value.strip()
    return DAY_SHORT_MAP.get(cleaned, cleaned)


class Subject(BaseModel):
    model_config = {"populate_by_name": True}

    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    code: str | None = Field(default=None, max_length=50)
    classes_per_week: int = Field(alias="classesPerWeek", ge=1, le=40)
    duration: int = Field(default=60, ge=15, le=480)
    type: SubjectType = "theory"
    faculty: str | None = Field(default=None, max_length=200)
    credits: int | None = Field(default=None, ge=0, le=40)
    priority: SubjectPriority = "medium"

    @field_validator("faculty")
    @classmethod
    def blank_faculty_is_unassigned(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANK[self.priority]

    def span(self, slot_minutes: int = 60) -> int:
        return max(1, math.ceil(self.duration / slot_minutes))


class Batch(BaseModel):
    model_config = {"populate_by_name": True}

    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    strength: int = Field(default=60, ge=1, le=2000)
    subjects: list[str] = Field(default_factory=list)
    preferred_rooms: list[str] = Field(default_factory=list, alias="preferredRooms")


class TimetableConfig(BaseModel):
    """Complete input of one generation request.

    Only the pydantic-level shape is enforced here. Semantically doubtful values
    (no subjects, unknown working days, a lunch window outside the teaching day)
    are repaired with logged defaults by ``services.config_normalizer``.
    """

    model_config = {"populate_by_name": True}

    name: str = Field(default="Generated Timetable", max_length=200)
    department: str = Field(default="", max_length=200)
    semester: str = Field(default="", max_length=50)
    subjects: list[Subject] = Field(default_factory=list)
    batches: list[Batch] = Field(default_factory=list)
    available_classrooms: list[str] = Field(default_factory=list, alias="availableClassrooms")
    faculty_pool: list[str] = Field(default_factory=list, alias="facultyPool")
    working_days: list[str] = Field(default_factory=list, alias="workingDays")
    start_time: str = Field(default="09:00", alias="startTime")
    end_time: str = Field(default="17:00", alias="endTime")
    lunch_time: str = Field(default="13:00 - 14:00", alias="lunchTime")
    max_classes_per_day: int = Field(default=8, alias="maxClassesPerDay", ge=1, le=24)

    @field_validator("available_classrooms", "faculty_pool")
    @classmethod
    def strip_names(cls, value: list[str]) -> list[str]:
        unique: list[str] = []
        for item in value:
            cleaned = item.strip()
            if cleaned and cleaned not in unique:
                unique.append(cleaned)
        return unique
