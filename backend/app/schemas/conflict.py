from pydantic import BaseModel
from typing import Literal, List


class ConflictDetail(BaseModel):
    id: str
    conflict_type: Literal[
        "classroom_conflict",
        "instructor_conflict",
        "classroom_capacity",
        "classroom_type",
    ]
    description: str
    severity: Literal["hard", "soft"]
    affected_entries: List[str]  # schedule entry ids involved


class ResolutionAction(BaseModel):
    action_type: Literal["move_section", "change_classroom"]
    description: str
    target_section_id: str
    parameters: dict


class ConflictReport(BaseModel):
    conflicts: List[ConflictDetail]
    suggested_resolutions: List[ResolutionAction]

    @property
    def has_hard_conflicts(self) -> bool:
        return any(item.severity == "hard" for item in self.conflicts)
