from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from timetable_engine.schemas.config import TimetableConfig


class MetricsWeights(BaseModel):
    model_config = {"populate_by_name": True}

    base_efficiency: float = Field(default=95.0, ge=0.0, le=100.0)
    max_efficiency: float = Field(default=100.0, ge=0.0, le=100.0)
    min_efficiency: float = Field(default=70.0, ge=0.0, le=100.0)
    conflict_penalty: float = Field(default=15.0, ge=0.0, le=100.0)
    efficiency_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    utilization_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    conflict_free_bonus: float = Field(default=10.0, ge=0.0, le=100.0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "MetricsWeights":
        if self.min_efficiency > self.max_efficiency:
            raise ValueError("min_efficiency cannot exceed max_efficiency")
        if abs(self.efficiency_weight + self.utilization_weight - 1.0) > 1e-9:
            raise ValueError("efficiency_weight and utilization_weight must sum to 1")
        return self


SchedulingStrategy = Literal["joint", "sequential"]
RoomPolicy = Literal["exclusive", "shared"]
SlotPolicy = Literal["optimal", "balanced", "flexible"]

SLOT_POLICIES: tuple[str, ...] = ("optimal", "balanced", "flexible")


class GenerationSettings(BaseModel):
    model_config = {"populate_by_name": True}

    strategy: SchedulingStrategy = "joint"
    room_policy: RoomPolicy = Field(default="exclusive", alias="roomPolicy")
    slot_policy: SlotPolicy = Field(default="optimal", alias="slotPolicy")
    options_per_batch: int = Field(default=1, alias="optionsPerBatch", ge=1, le=len(SLOT_POLICIES))
    random_seed: int | None = Field(default=None, alias="randomSeed", ge=0, le=2_000_000_000)
    allow_faculty_substitution: bool = Field(default=True, alias="allowFacultySubstitution")
    slot_minutes: int = Field(default=60, alias="slotMinutes", ge=15, le=240)
    max_occurrence_attempts: int = Field(default=5_000, alias="maxOccurrenceAttempts", ge=1, le=1_000_000)
    max_search_attempts: int = Field(default=150_000, alias="maxSearchAttempts", ge=1, le=50_000_000)
    timeout_seconds: float = Field(default=30.0, alias="timeoutSeconds", gt=0, le=600)
    max_faculty_classes_per_day: int = Field(default=6, alias="maxFacultyClassesPerDay", ge=1, le=24)
    max_faculty_weekly_load: int = Field(default=25, alias="maxFacultyWeeklyLoad", ge=1, le=168)
    fallback_max_conflicts: int = Field(default=10, alias="fallbackMaxConflicts", ge=0, le=10_000)
    max_workers: int = Field(default=1, alias="maxWorkers", ge=1, le=32)
    gap_fill: bool = Field(default=True, alias="gapFill")
    metrics: MetricsWeights = Field(default_factory=MetricsWeights)

    @model_validator(mode="after")
    def validate_relationships(self) -> "GenerationSettings":
        if self.max_occurrence_attempts > self.max_search_attempts:
            raise ValueError("max_occurrence_attempts cannot exceed max_search_attempts")
        if self.max_faculty_classes_per_day > self.max_faculty_weekly_load:
            raise ValueError("max_faculty_classes_per_day cannot exceed max_faculty_weekly_load")
        if self.max_workers > 1 and self.strategy == "joint":
            raise ValueError("max_workers > 1 is only supported by the sequential strategy")
        return self


class GenerateTimetableRequest(BaseModel):
    model_config = {"populate_by_name": True}

    config: TimetableConfig
    settings_override: GenerationSettings | None = Field(default=None, alias="settingsOverride")
