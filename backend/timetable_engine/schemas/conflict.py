from pydantic import BaseModel, Field
from typing import Literal, List

ConflictType = Literal[
    "faculty_conflict",
    "room_conflict",
    "subject_conflict",
    "workload_overflow",
    "lunch_violation",
    "duration_violation",
    "slot_double_booking",
]

class ConflictDetail(BaseModel):
    id: str
    conflict_type: ConflictType
    description: str
    severity: Literal["hard", "soft"]
    day: str | None = None
    time: str | None = None
    affected_slots: List[str]  # ClassAssignment ids involved

class ResolutionAction(BaseModel):
    action_type: Literal["move_slot", "change_room", "change_faculty", "reduce_load", "restore_lunch"]
    description: str
    target_slot_id: str
    parameters: dict  # e.g. {"room": "Room A102"}

class ConflictReport(BaseModel):
    conflicts: List[ConflictDetail]
    suggested_resolutions: List[ResolutionAction] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.conflicts)

    def count(self, conflict_type: str) -> int:
        return sum(1 for item in self.conflicts if item.conflict_type == conflict_type)
