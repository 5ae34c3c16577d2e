"""Run coordination for term schedule generation.

One request loads the term snapshot, runs the backtracking engine once and,
unless it is a preview, replaces the term's schedule entries in a single
transaction under the term lease.
"""
from __future__ import annotations

import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    ScheduleIntegrityError,
    ScheduleLockedError,
    SchedulePersistenceError,
    ScheduleRunCancelledError,
    ScheduleValidationError,
)
from app.models.activity_log import ActivityAction
from app.models.classroom import Classroom, RoomType
from app.models.classroom_booking import ClassroomBooking
from app.models.course_section import CourseSection, Semester
from app.models.instructor import Instructor
from app.models.schedule_entry import ScheduleEntry
from app.models.schedule_run import ScheduleRun, ScheduleRunStatus
from app.schemas.calendar import TimeWindow, parse_time_to_minutes
from app.schemas.conflict import ConflictReport
from app.services.audit import log_schedule_activity
from app.services.conflict_service import ConflictService
from app.services.csp_scheduler import BacktrackingScheduler
from app.services.schedule_domain import (
    ClassroomRecord,
    InstructorRecord,
    RunResult,
    ScheduleSnapshot,
    SearchState,
    SectionRecord,
)
from app.services.term_lease import acquire_term_lease, ensure_term_lease, release_term_lease
from app.services.time_grid import TimeGrid

logger = logging.getLogger(__name__)

RUN_STATUS_BY_STATE = {
    SearchState.succeeded: ScheduleRunStatus.succeeded,
    SearchState.partially_succeeded: ScheduleRunStatus.partially_succeeded,
    SearchState.exhausted: ScheduleRunStatus.exhausted,
}


class ActiveRunRegistry:
    """Cancel events of the runs currently searching, per term."""

    def __init__(self) -> None:
        self._runs: dict[tuple[str, int], dict[str, threading.Event]] = defaultdict(dict)
        self._lock = threading.Lock()

    def register(self, *, semester: str, year: int, run_id: str) -> threading.Event:
        event = threading.Event()
        with self._lock:
            self._runs[(semester, year)][run_id] = event
        return event

    def unregister(self, *, semester: str, year: int, run_id: str) -> None:
        with self._lock:
            runs = self._runs.get((semester, year))
            if runs is None:
                return
            runs.pop(run_id, None)
            if not runs:
                del self._runs[(semester, year)]

    def cancel(self, *, semester: str, year: int) -> int:
        with self._lock:
            events = list(self._runs.get((semester, year), {}).values())
        for event in events:
            event.set()
        return len(events)

    def clear(self) -> None:
        with self._lock:
            self._runs.clear()


_registry = ActiveRunRegistry()


def cancel_active_runs(*, semester: Semester, year: int) -> int:
    cancelled = _registry.cancel(semester=semester.value, year=year)
    logger.info("Cancel requested | term=%s %s | active_runs=%s", semester.value, year, cancelled)
    return cancelled


def clear_active_runs() -> None:
    _registry.clear()


@dataclass
class ScheduleOutcome:
    run_id: str
    semester: Semester
    year: int
    preview_only: bool
    status: ScheduleRunStatus
    result: RunResult


def _window_mask(grid: TimeGrid, windows: list[tuple[str, str, str]]) -> int:
    return grid.window_mask(
        (day, parse_time_to_minutes(start), parse_time_to_minutes(end)) for day, start, end in windows
    )


def load_snapshot(db: Session, *, semester: Semester, year: int, grid: TimeGrid) -> ScheduleSnapshot:
    """Read the term's sections, rooms, bookings and instructors into engine records.

    Raises ``ScheduleValidationError`` listing every record the engine cannot
    take as given.
    """
    sections = list(
        db.execute(
            select(CourseSection)
            .where(CourseSection.semester == semester, CourseSection.year == year)
            .order_by(CourseSection.id)
        ).scalars()
    )
    classrooms = list(db.execute(select(Classroom).where(Classroom.is_active.is_(True)).order_by(Classroom.id)).scalars())
    bookings = list(
        db.execute(
            select(ClassroomBooking).where(
                or_(
                    and_(ClassroomBooking.semester == semester, ClassroomBooking.year == year),
                    ClassroomBooking.semester.is_(None),
                )
            )
        ).scalars()
    )

    instructor_ids = sorted({section.instructor_id for section in sections if section.instructor_id})
    instructors = {
        item.id: item
        for item in db.execute(select(Instructor).where(Instructor.id.in_(instructor_ids))).scalars()
    } if instructor_ids else {}

    issues: list[dict] = []
    max_meetings = len(grid.days)
    for section in sections:
        problems: list[str] = []
        if not 1 <= section.meetings_per_week <= max_meetings:
            problems.append(f"meetings_per_week must be between 1 and {max_meetings}")
        if not 0 < section.meeting_duration_minutes <= grid.day_length_min:
            problems.append(f"meeting_duration_minutes must be between 1 and {grid.day_length_min}")
        if section.expected_headcount < 0:
            problems.append("expected_headcount must not be negative")
        if section.instructor_id and section.instructor_id not in instructors:
            problems.append(f"instructor {section.instructor_id} does not exist")
        if problems:
            issues.append({"section_id": section.id, "section": section.label, "problems": problems})

    unavailable: dict[str, int] = {}
    for instructor in instructors.values():
        try:
            windows = [TimeWindow.model_validate(item) for item in instructor.unavailability_windows or []]
        except ValueError as exc:
            issues.append({"instructor_id": instructor.id, "problems": [f"invalid unavailability window: {exc}"]})
            continue
        unavailable[instructor.id] = _window_mask(
            grid, [(window.day, window.start_time, window.end_time) for window in windows]
        )

    booked: dict[str, list[tuple[str, str, str]]] = defaultdict(list)
    for booking in bookings:
        try:
            window = TimeWindow(day=booking.day_of_week, start_time=booking.start_time, end_time=booking.end_time)
        except ValueError as exc:
            issues.append({"booking_id": booking.id, "problems": [f"invalid booking window: {exc}"]})
            continue
        booked[booking.classroom_id].append((window.day, window.start_time, window.end_time))

    if issues:
        logger.warning(
            "Snapshot rejected | term=%s %s | issues=%s",
            semester.value,
            year,
            len(issues),
        )
        raise ScheduleValidationError(
            f"Term data for {semester.value} {year} cannot be scheduled as given",
            details={"issues": issues},
        )

    sections_by_instructor: dict[str, list[str]] = defaultdict(list)
    for section in sections:
        if section.instructor_id:
            sections_by_instructor[section.instructor_id].append(section.id)

    return ScheduleSnapshot(
        semester=semester.value,
        year=year,
        grid=grid,
        sections=tuple(
            SectionRecord(
                id=section.id,
                label=section.label,
                course_code=section.course_code,
                headcount=section.expected_headcount,
                requires_lab=section.requires_lab,
                meetings_per_week=section.meetings_per_week,
                duration_min=section.meeting_duration_minutes,
                instructor_id=section.instructor_id,
            )
            for section in sections
        ),
        classrooms=tuple(
            ClassroomRecord(
                id=room.id,
                name=room.name,
                capacity=room.capacity,
                is_lab=room.is_lab,
                booked_mask=_window_mask(grid, booked.get(room.id, [])),
            )
            for room in classrooms
        ),
        instructors={
            instructor.id: InstructorRecord(
                id=instructor.id,
                name=instructor.name,
                unavailable_mask=unavailable.get(instructor.id, 0),
                section_ids=tuple(sections_by_instructor.get(instructor.id, ())),
            )
            for instructor in instructors.values()
        },
    )


def build_entries(*, run_id: str, semester: Semester, year: int, result: RunResult) -> list[ScheduleEntry]:
    entries: list[ScheduleEntry] = []
    for assignment in result.assignments.values():
        for slot in assignment.pattern.slots:
            entries.append(
                ScheduleEntry(
                    id=str(uuid.uuid4()),
                    run_id=run_id,
                    semester=semester,
                    year=year,
                    section_id=assignment.section_id,
                    course_code=assignment.course_code,
                    classroom_id=assignment.classroom_id,
                    instructor_id=assignment.instructor_id,
                    day_of_week=slot.day,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                )
            )
    return entries


def verify_entries(snapshot: ScheduleSnapshot, entries: list[ScheduleEntry]) -> ConflictReport:
    service = ConflictService(
        entries,
        room_map={
            room.id: {
                "name": room.name,
                "capacity": room.capacity,
                "type": RoomType.lab.value if room.is_lab else RoomType.lecture.value,
            }
            for room in snapshot.classrooms
        },
        section_map={
            section.id: {
                "label": section.label,
                "headcount": section.headcount,
                "requires_lab": section.requires_lab,
            }
            for section in snapshot.sections
        },
        instructor_map={item.id: {"name": item.name} for item in snapshot.instructors.values()},
    )
    return service.detect_conflicts()


def _unassigned_payload(result: RunResult) -> list[dict]:
    return [
        {"section_id": item.section_id, "section": item.label, "reason": item.reason, "detail": item.detail}
        for item in result.unassigned
    ]


def _record_result(run: ScheduleRun, result: RunResult) -> None:
    run.status = RUN_STATUS_BY_STATE[result.state]
    run.scheduled_count = result.statistics.scheduled_count
    run.unscheduled_count = result.statistics.unscheduled_count
    run.backtrack_count = result.statistics.backtrack_count
    run.duration_ms = result.statistics.duration_ms
    run.unassigned = _unassigned_payload(result)


def _mark_run(db: Session, run_id: str, *, status: ScheduleRunStatus, error: str) -> None:
    try:
        run = db.get(ScheduleRun, run_id)
        if run is None:
            return
        run.status = status
        run.error = error
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Run status update failed | run_id=%s | status=%s", run_id, status.value)


def _release_lease(db: Session, *, semester: Semester, year: int, holder: str) -> None:
    try:
        release_term_lease(db, semester=semester, year=year, holder=holder)
    except SQLAlchemyError:
        # The lease row expires on its own.
        logger.exception("Term lease release failed | term=%s %s | holder=%s", semester.value, year, holder)


def _persist(
    db: Session,
    *,
    run: ScheduleRun,
    snapshot: ScheduleSnapshot,
    result: RunResult,
    semester: Semester,
    year: int,
    actor: str | None,
    holder: str,
) -> None:
    run_id = run.id
    entries = build_entries(run_id=run_id, semester=semester, year=year, result=result)
    report = verify_entries(snapshot, entries)
    if report.has_hard_conflicts:
        logger.error(
            "Schedule verification failed | run_id=%s | conflicts=%s",
            run_id,
            len(report.conflicts),
        )
        _mark_run(db, run_id, status=ScheduleRunStatus.failed, error="generated schedule failed verification")
        raise ScheduleIntegrityError(
            "Generated schedule failed verification and was not written",
            details={"conflicts": [item.model_dump() for item in report.conflicts]},
        )

    try:
        ensure_term_lease(db, semester=semester, year=year, holder=holder)
        removed = db.execute(
            delete(ScheduleEntry)
            .where(ScheduleEntry.semester == semester, ScheduleEntry.year == year)
            .execution_options(synchronize_session=False)
        ).rowcount
        db.add_all(entries)
        _record_result(run, result)
        run.committed_at = datetime.now(timezone.utc)
        log_schedule_activity(
            db,
            actor=actor,
            action=ActivityAction.schedule_commit,
            semester=semester,
            year=year,
            run_id=run_id,
            replaced_entries=removed or 0,
            entries=len(entries),
            scheduled_sections=result.statistics.scheduled_count,
            unscheduled_sections=result.statistics.unscheduled_count,
        )
        db.commit()
    except ScheduleLockedError:
        db.rollback()
        _mark_run(db, run_id, status=ScheduleRunStatus.failed, error="term lease lost before commit")
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Schedule commit failed | run_id=%s | term=%s %s", run_id, semester.value, year)
        _mark_run(db, run_id, status=ScheduleRunStatus.failed, error=str(exc.__class__.__name__))
        raise SchedulePersistenceError(
            f"Saving the {semester.value} {year} schedule failed; the previous schedule is unchanged",
            details={"run_id": run_id},
        ) from exc

    logger.info(
        "Schedule committed | run_id=%s | term=%s %s | entries=%s | replaced=%s",
        run_id,
        semester.value,
        year,
        len(entries),
        removed or 0,
    )


def generate_schedule(
    db: Session,
    *,
    semester: Semester,
    year: int,
    preview_only: bool,
    actor: str | None = None,
    settings: Settings | None = None,
) -> ScheduleOutcome:
    settings = settings or get_settings()
    grid = TimeGrid.from_settings(settings)

    holder: str | None = None
    if not preview_only:
        holder = str(uuid.uuid4())
        acquire_term_lease(
            db,
            semester=semester,
            year=year,
            holder=holder,
            lease_seconds=settings.scheduler_lease_seconds,
        )

    try:
        snapshot = load_snapshot(db, semester=semester, year=year, grid=grid)

        run = ScheduleRun(semester=semester, year=year, preview_only=preview_only, status=ScheduleRunStatus.searching)
        db.add(run)
        db.commit()
        run_id = run.id
        logger.info(
            "Schedule run started | run_id=%s | term=%s %s | preview=%s",
            run_id,
            semester.value,
            year,
            preview_only,
        )

        cancel_event = _registry.register(semester=semester.value, year=year, run_id=run_id)
        try:
            scheduler = BacktrackingScheduler(
                snapshot,
                max_backtracks=settings.scheduler_max_backtracks,
                timeout_seconds=settings.scheduler_timeout_seconds,
                cancel_event=cancel_event,
            )
            result = scheduler.run()
        except ScheduleRunCancelledError as exc:
            _mark_run(db, run_id, status=ScheduleRunStatus.cancelled, error=exc.message)
            raise
        finally:
            _registry.unregister(semester=semester.value, year=year, run_id=run_id)

        if preview_only:
            _record_result(run, result)
            db.commit()
        else:
            _persist(
                db,
                run=run,
                snapshot=snapshot,
                result=result,
                semester=semester,
                year=year,
                actor=actor,
                holder=holder,
            )

        return ScheduleOutcome(
            run_id=run_id,
            semester=semester,
            year=year,
            preview_only=preview_only,
            status=RUN_STATUS_BY_STATE[result.state],
            result=result,
        )
    finally:
        if holder is not None:
            _release_lease(db, semester=semester, year=year, holder=holder)


def clear_schedule(
    db: Session,
    *,
    semester: Semester,
    year: int,
    actor: str | None = None,
    settings: Settings | None = None,
) -> int:
    """Remove every persisted entry of the term; clearing an empty term is a no-op."""
    settings = settings or get_settings()
    holder = str(uuid.uuid4())
    acquire_term_lease(db, semester=semester, year=year, holder=holder, lease_seconds=settings.scheduler_lease_seconds)
    try:
        try:
            deleted = db.execute(
                delete(ScheduleEntry)
                .where(ScheduleEntry.semester == semester, ScheduleEntry.year == year)
                .execution_options(synchronize_session=False)
            ).rowcount or 0
            log_schedule_activity(
                db,
                actor=actor,
                action=ActivityAction.schedule_clear,
                semester=semester,
                year=year,
                deleted_entries=deleted,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Schedule clear failed | term=%s %s", semester.value, year)
            raise SchedulePersistenceError(
                f"Clearing the {semester.value} {year} schedule failed; nothing was removed",
            ) from exc
    finally:
        _release_lease(db, semester=semester, year=year, holder=holder)

    logger.info("Schedule cleared | term=%s %s | deleted=%s", semester.value, year, deleted)
    return deleted


def scheduling_info(
    db: Session,
    *,
    grid: TimeGrid,
    semester: Semester | None = None,
    year: int | None = None,
) -> dict[str, int]:
    section_query = select(func.count(CourseSection.id))
    assignment_query = select(func.count(func.distinct(ScheduleEntry.section_id)))
    if semester is not None:
        section_query = section_query.where(CourseSection.semester == semester)
        assignment_query = assignment_query.where(ScheduleEntry.semester == semester)
    if year is not None:
        section_query = section_query.where(CourseSection.year == year)
        assignment_query = assignment_query.where(ScheduleEntry.year == year)

    return {
        "total_sections": db.execute(section_query).scalar_one(),
        "total_classrooms": db.execute(
            select(func.count(Classroom.id)).where(Classroom.is_active.is_(True))
        ).scalar_one(),
        "total_instructors": db.execute(select(func.count(Instructor.id))).scalar_one(),
        "time_slots": grid.slot_count,
        "total_assignments": db.execute(assignment_query).scalar_one(),
    }


def list_schedule_entries(
    db: Session,
    *,
    semester: Semester | None = None,
    year: int | None = None,
    section_id: str | None = None,
    classroom_id: str | None = None,
    instructor_id: str | None = None,
) -> list[ScheduleEntry]:
    query = select(ScheduleEntry)
    if semester is not None:
        query = query.where(ScheduleEntry.semester == semester)
    if year is not None:
        query = query.where(ScheduleEntry.year == year)
    if section_id:
        query = query.where(ScheduleEntry.section_id == section_id)
    if classroom_id:
        query = query.where(ScheduleEntry.classroom_id == classroom_id)
    if instructor_id:
        query = query.where(ScheduleEntry.instructor_id == instructor_id)
    query = query.order_by(
        ScheduleEntry.section_id,
        ScheduleEntry.day_of_week,
        ScheduleEntry.start_time,
    )
    return list(db.execute(query).scalars())


def list_runs(db: Session, *, semester: Semester, year: int, limit: int = 20) -> list[ScheduleRun]:
    return list(
        db.execute(
            select(ScheduleRun)
            .where(ScheduleRun.semester == semester, ScheduleRun.year == year)
            .order_by(ScheduleRun.created_at.desc(), ScheduleRun.id)
            .limit(limit)
        ).scalars()
    )


def validate_term_schedule(db: Session, *, semester: Semester, year: int) -> ConflictReport:
    entries = list_schedule_entries(db, semester=semester, year=year)
    room_ids = {entry.classroom_id for entry in entries}
    section_ids = {entry.section_id for entry in entries}
    instructor_ids = {entry.instructor_id for entry in entries if entry.instructor_id}

    rooms = db.execute(select(Classroom).where(Classroom.id.in_(room_ids))).scalars() if room_ids else []
    sections = db.execute(select(CourseSection).where(CourseSection.id.in_(section_ids))).scalars() if section_ids else []
    instructors = (
        db.execute(select(Instructor).where(Instructor.id.in_(instructor_ids))).scalars() if instructor_ids else []
    )

    service = ConflictService(
        entries,
        room_map={room.id: {"name": room.name, "capacity": room.capacity, "type": room.type.value} for room in rooms},
        section_map={
            section.id: {
                "label": section.label,
                "headcount": section.expected_headcount,
                "requires_lab": section.requires_lab,
            }
            for section in sections
        },
        instructor_map={item.id: {"name": item.name} for item in instructors},
    )
    return service.detect_conflicts()
