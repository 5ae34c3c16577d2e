"""Value types shared by the scheduling engine.

Everything here is built once from the term snapshot and never mutated while
a run is in progress.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

from app.services.time_grid import MeetingPattern, TimeGrid

REASON_NO_CANDIDATES = "no compatible classroom/time combination"
REASON_TIMED_OUT = "timed out"


class ConflictTag(str, Enum):
    classroom_conflict = "classroom_conflict"
    instructor_conflict = "instructor_conflict"


class SearchState(str, Enum):
    ready = "ready"
    searching = "searching"
    succeeded = "succeeded"
    partially_succeeded = "partially_succeeded"
    exhausted = "exhausted"


@dataclass(frozen=True)
class SectionRecord:
    id: str
    label: str
    course_code: str
    headcount: int
    requires_lab: bool
    meetings_per_week: int
    duration_min: int
    instructor_id: str | None = None


@dataclass(frozen=True)
class ClassroomRecord:
    id: str
    name: str
    capacity: int
    is_lab: bool
    booked_mask: int = 0


@dataclass(frozen=True)
class InstructorRecord:
    id: str
    name: str
    unavailable_mask: int = 0
    section_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScheduleSnapshot:
    semester: str
    year: int
    grid: TimeGrid
    sections: tuple[SectionRecord, ...]
    classrooms: tuple[ClassroomRecord, ...]
    instructors: dict[str, InstructorRecord] = field(default_factory=dict)


class CandidatePair(NamedTuple):
    pattern: MeetingPattern
    classroom: ClassroomRecord


@dataclass(frozen=True)
class Assignment:
    section_id: str
    course_code: str
    classroom_id: str
    instructor_id: str | None
    pattern: MeetingPattern


@dataclass(frozen=True)
class UnassignedSection:
    section_id: str
    label: str
    reason: str
    detail: str = ""


@dataclass(frozen=True)
class Statistics:
    scheduled_count: int
    unscheduled_count: int
    backtrack_count: int
    duration_ms: int


@dataclass
class RunResult:
    state: SearchState
    assignments: dict[str, Assignment]
    unassigned: list[UnassignedSection]
    statistics: Statistics

    @property
    def success(self) -> bool:
        return self.state in {SearchState.succeeded, SearchState.partially_succeeded}

    @property
    def timed_out(self) -> bool:
        return any(item.reason == REASON_TIMED_OUT for item in self.unassigned)
