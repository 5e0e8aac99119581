from __future__ import annotations

from pydantic import BaseModel, Field

from timetable_engine.schemas.timetable import MultiBatchResult


class FacultySlotEntry(BaseModel):
    model_config = {"populate_by_name": True}

    day: str
    time: str
    subject: str
    room: str = ""
    type: str
    batch_id: str = Field(alias="batchId")
    batch_name: str = Field(alias="batchName")


class FacultyWorkload(BaseModel):
    model_config = {"populate_by_name": True}

    weekly_total: int = Field(default=0, alias="weeklyTotal")
    daily_average: float = Field(default=0.0, alias="dailyAverage")
    subject_breakdown: dict[str, int] = Field(default_factory=dict, alias="subjectBreakdown")


class FacultyTimetable(BaseModel):
    model_config = {"populate_by_name": True}

    faculty: str
    schedule: list[FacultySlotEntry] = Field(default_factory=list)
    total_classes: int = Field(default=0, alias="totalClasses")
    workload: FacultyWorkload = Field(default_factory=FacultyWorkload)
    conflicts: list[str] = Field(default_factory=list)


class FacultyDistributionSummary(BaseModel):
    model_config = {"populate_by_name": True}

    total_faculties: int = Field(alias="totalFaculties")
    total_classes: int = Field(alias="totalClasses")
    average_workload: float = Field(alias="averageWorkload")
    conflicts_found: int = Field(alias="conflictsFound")


class DepartmentFacultyTimetables(BaseModel):
    model_config = {"populate_by_name": True}

    department: str = ""
    semester: str = ""
    generated_at: str | None = Field(default=None, alias="generatedAt")
    faculty_timetables: list[FacultyTimetable] = Field(alias="facultyTimetables")
    summary: FacultyDistributionSummary


class FacultyViewRequest(BaseModel):
    model_config = {"populate_by_name": True}

    result: MultiBatchResult
    department: str = Field(default="", max_length=200)
    semester: str = Field(default="", max_length=50)
    faculty_roster: list[str] = Field(default_factory=list, alias="facultyRoster")
