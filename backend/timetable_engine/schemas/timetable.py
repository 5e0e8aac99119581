from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from timetable_engine.schemas.config import DAY_VALUES, format_window, parse_window
from timetable_engine.schemas.conflict import ConflictReport
from timetable_engine.schemas.generator import SlotPolicy

SlotType = Literal["theory", "practical", "lab", "break", "lunch"]
SlotVariant = Literal["class", "continuation", "gap_fill", "lunch"]
GenerationStatus = Literal["solved", "fallback", "timeout"]


class TimeSlotEntry(BaseModel):
    model_config = {"populate_by_name": True}

    day: str
    time: str
    subject: str
    faculty: str = ""
    room: str = ""
    type: SlotType
    batch_id: str | None = Field(default=None, alias="batchId")
    subject_id: str | None = Field(default=None, alias="subjectId")
    variant: SlotVariant = "class"

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        day = value.strip()
        if day not in DAY_VALUES:
            raise ValueError("Invalid day value")
        return day

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        start, end = parse_window(value)
        return format_window(start, end)


class GeneratedTimetable(BaseModel):
    model_config = {"populate_by_name": True}

    id: str
    name: str
    batch_id: str | None = Field(default=None, alias="batchId")
    batch_name: str | None = Field(default=None, alias="batchName")
    schedule: list[TimeSlotEntry]
    efficiency: float
    conflicts: int
    utilization: float
    score: float
    pre_gap_fill_utilization: float = Field(default=0.0, alias="preGapFillUtilization")
    deficits: dict[str, int] = Field(default_factory=dict)
    status: GenerationStatus = "solved"
    option: SlotPolicy = "optimal"


class BatchTimetableResult(BaseModel):
    model_config = {"populate_by_name": True}

    batch_id: str = Field(alias="batchId")
    batch_name: str = Field(alias="batchName")
    timetables: list[GeneratedTimetable]


class MultiBatchResult(BaseModel):
    model_config = {"populate_by_name": True}

    batches: list[BatchTimetableResult]
    global_conflicts: int = Field(alias="globalConflicts")
    overall_efficiency: float = Field(alias="overallEfficiency")
    generated_at: str | None = Field(default=None, alias="generatedAt")
    strategy: str = "joint"
    status: GenerationStatus = "solved"
    message: str | None = None
    conflict_report: ConflictReport | None = Field(default=None, alias="conflictReport")
    runtime_ms: int = Field(default=0, alias="runtimeMs")


class ValidateScheduleRequest(BaseModel):
    model_config = {"populate_by_name": True}

    entries: list[TimeSlotEntry]
    room_policy: Literal["exclusive", "shared"] = Field(default="exclusive", alias="roomPolicy")
    max_faculty_classes_per_day: int = Field(default=6, alias="maxFacultyClassesPerDay", ge=1, le=24)
    max_faculty_weekly_load: int = Field(default=25, alias="maxFacultyWeeklyLoad", ge=1, le=168)
