from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.course_section import Semester
from app.models.schedule_run import ScheduleRunStatus


class TermRequest(BaseModel):
    semester: Semester
    year: int = Field(ge=2000, le=2100)


class GenerateScheduleRequest(TermRequest):
    preview_only: bool = False


class TimeSlotOut(BaseModel):
    days: list[str]
    start_time: str
    end_time: str
    label: str


class AssignmentOut(BaseModel):
    section_id: str
    course_code: str
    classroom_id: str
    instructor_id: str | None = None
    time_slot: TimeSlotOut


class UnassignedOut(BaseModel):
    section_id: str
    section: str
    reason: str
    detail: str = ""


class RunStatisticsOut(BaseModel):
    scheduled_sections: int
    unscheduled_sections: int
    backtrack_count: int
    duration_ms: int


class RunResultOut(BaseModel):
    run_id: str
    success: bool
    status: ScheduleRunStatus
    preview_only: bool
    semester: Semester
    year: int
    statistics: RunStatisticsOut
    assignments: list[AssignmentOut]
    unassigned: list[UnassignedOut]


class ClearScheduleOut(BaseModel):
    success: bool
    deleted: int


class CancelRunsOut(BaseModel):
    success: bool
    cancelled: int


class SchedulingInfoOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_sections: int = Field(alias="totalSections")
    total_classrooms: int = Field(alias="totalClassrooms")
    total_instructors: int = Field(alias="totalInstructors")
    time_slots: int = Field(alias="timeSlots")
    total_assignments: int = Field(alias="totalAssignments")


class ScheduleEntryOut(BaseModel):
    id: str
    run_id: str
    semester: Semester
    year: int
    section_id: str
    course_code: str
    classroom_id: str
    instructor_id: str | None = None
    day_of_week: str
    start_time: str
    end_time: str

    model_config = {"from_attributes": True}


class ScheduleRunOut(BaseModel):
    id: str
    semester: Semester
    year: int
    preview_only: bool
    status: ScheduleRunStatus
    scheduled_count: int
    unscheduled_count: int
    backtrack_count: int
    duration_ms: int
    unassigned: list[dict]
    error: str | None = None
    created_at: datetime | None = None
    committed_at: datetime | None = None

    model_config = {"from_attributes": True}
