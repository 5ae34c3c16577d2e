from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_db
from app.core.config import get_settings
from app.core.exceptions import ResourceNotFoundError
from app.models.course_section import Semester
from app.schemas.conflict import ConflictReport
from app.schemas.scheduling import (
    AssignmentOut,
    CancelRunsOut,
    ClearScheduleOut,
    GenerateScheduleRequest,
    RunResultOut,
    RunStatisticsOut,
    ScheduleEntryOut,
    ScheduleRunOut,
    SchedulingInfoOut,
    TermRequest,
    TimeSlotOut,
    UnassignedOut,
)
from app.services import schedule_runs
from app.services.schedule_runs import ScheduleOutcome
from app.services.time_grid import TimeGrid

router = APIRouter()


def _run_result_out(outcome: ScheduleOutcome) -> RunResultOut:
    result = outcome.result
    return RunResultOut(
        run_id=outcome.run_id,
        success=result.success,
        status=outcome.status,
        preview_only=outcome.preview_only,
        semester=outcome.semester,
        year=outcome.year,
        statistics=RunStatisticsOut(
            scheduled_sections=result.statistics.scheduled_count,
            unscheduled_sections=result.statistics.unscheduled_count,
            backtrack_count=result.statistics.backtrack_count,
            duration_ms=result.statistics.duration_ms,
        ),
        assignments=[
            AssignmentOut(
                section_id=item.section_id,
                course_code=item.course_code,
                classroom_id=item.classroom_id,
                instructor_id=item.instructor_id,
                time_slot=TimeSlotOut(
                    days=list(item.pattern.days),
                    start_time=item.pattern.slots[0].start_time,
                    end_time=item.pattern.slots[0].end_time,
                    label=item.pattern.label,
                ),
            )
            for item in result.assignments.values()
        ],
        unassigned=[
            UnassignedOut(section_id=item.section_id, section=item.label, reason=item.reason, detail=item.detail)
            for item in result.unassigned
        ],
    )


@router.post("/generate", response_model=RunResultOut)
def generate_schedule(
    payload: GenerateScheduleRequest,
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> RunResultOut:
    outcome = schedule_runs.generate_schedule(
        db,
        semester=payload.semester,
        year=payload.year,
        preview_only=payload.preview_only,
        actor=actor,
    )
    return _run_result_out(outcome)


@router.delete("/schedule", response_model=ClearScheduleOut)
def clear_schedule(
    payload: TermRequest = Body(...),
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> ClearScheduleOut:
    deleted = schedule_runs.clear_schedule(db, semester=payload.semester, year=payload.year, actor=actor)
    return ClearScheduleOut(success=True, deleted=deleted)


@router.get("/info", response_model=SchedulingInfoOut)
def scheduling_info(
    semester: Semester | None = Query(default=None),
    year: int | None = Query(default=None, ge=2000, le=2100),
    db: Session = Depends(get_db),
) -> SchedulingInfoOut:
    grid = TimeGrid.from_settings(get_settings())
    counts = schedule_runs.scheduling_info(db, grid=grid, semester=semester, year=year)
    return SchedulingInfoOut(**counts)


@router.get("/schedule", response_model=list[ScheduleEntryOut])
def list_schedule(
    semester: Semester | None = Query(default=None),
    year: int | None = Query(default=None, ge=2000, le=2100),
    section_id: str | None = Query(default=None, max_length=36),
    classroom_id: str | None = Query(default=None, max_length=36),
    instructor_id: str | None = Query(default=None, max_length=36),
    db: Session = Depends(get_db),
) -> list[ScheduleEntryOut]:
    return schedule_runs.list_schedule_entries(
        db,
        semester=semester,
        year=year,
        section_id=section_id,
        classroom_id=classroom_id,
        instructor_id=instructor_id,
    )


@router.get("/schedule/validation", response_model=ConflictReport)
def validate_schedule(
    semester: Semester = Query(...),
    year: int = Query(..., ge=2000, le=2100),
    db: Session = Depends(get_db),
) -> ConflictReport:
    return schedule_runs.validate_term_schedule(db, semester=semester, year=year)


@router.get("/runs", response_model=list[ScheduleRunOut])
def list_runs(
    semester: Semester = Query(...),
    year: int = Query(..., ge=2000, le=2100),
    limit: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> list[ScheduleRunOut]:
    return schedule_runs.list_runs(db, semester=semester, year=year, limit=limit)


@router.post("/cancel", response_model=CancelRunsOut)
def cancel_runs(payload: TermRequest) -> CancelRunsOut:
    cancelled = schedule_runs.cancel_active_runs(semester=payload.semester, year=payload.year)
    if not cancelled:
        raise ResourceNotFoundError("Active schedule run", f"{payload.semester.value}-{payload.year}")
    return CancelRunsOut(success=True, cancelled=cancelled)
