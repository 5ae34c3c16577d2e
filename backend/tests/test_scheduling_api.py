from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.models.activity_log import ActivityLog
from app.models.classroom import Classroom, RoomType
from app.models.classroom_booking import ClassroomBooking
from app.models.course_section import CourseSection, Semester
from app.models.instructor import Instructor
from app.models.schedule_entry import ScheduleEntry
from app.models.schedule_lease import ScheduleLease
from app.models.schedule_run import ScheduleRun, ScheduleRunStatus
from app.services import schedule_runs
from app.services.term_lease import acquire_term_lease

FALL_2026 = {"semester": "Fall", "year": 2026}


def seed_term(db, *, section_count: int = 3, with_lab: bool = False) -> list[CourseSection]:
    instructors = [
        Instructor(id=f"inst-{index}", name=f"Instructor {index}", email=f"inst{index}@campus.edu")
        for index in range(5)
    ]
    rooms = [
        Classroom(id="room-a", name="A101", building="Main", capacity=30, type=RoomType.lecture),
        Classroom(id="room-b", name="B201", building="Main", capacity=45, type=RoomType.lecture),
    ]
    if with_lab:
        rooms.append(Classroom(id="lab-1", name="Chem Lab", building="Science", capacity=24, type=RoomType.lab))
    sections = [
        CourseSection(
            id=f"sec-{index:02d}",
            course_code=f"CS{100 + index}",
            course_name=f"Course {index}",
            section_number=1,
            semester=Semester.fall,
            year=2026,
            expected_headcount=25,
            requires_lab=False,
            meetings_per_week=2,
            meeting_duration_minutes=90,
            instructor_id=f"inst-{index % 5}",
        )
        for index in range(section_count)
    ]
    db.add_all(instructors + rooms + sections)
    db.commit()
    return sections


def delete_schedule(client, payload):
    return client.request("DELETE", "/api/scheduling/schedule", json=payload)


def test_preview_returns_result_without_persisting(client, db_session):
    seed_term(db_session)

    response = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": True})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "succeeded"
    assert body["preview_only"] is True
    assert body["statistics"]["scheduled_sections"] == 3
    assert body["statistics"]["unscheduled_sections"] == 0
    assert body["statistics"]["backtrack_count"] == 0
    assert body["statistics"]["duration_ms"] >= 0
    assert body["unassigned"] == []
    first = body["assignments"][0]
    assert set(first) == {"section_id", "course_code", "classroom_id", "instructor_id", "time_slot"}
    assert set(first["time_slot"]) == {"days", "start_time", "end_time", "label"}

    assert db_session.execute(select(func.count(ScheduleEntry.id))).scalar_one() == 0
    run = db_session.execute(select(ScheduleRun)).scalar_one()
    assert run.preview_only is True
    assert run.status == ScheduleRunStatus.succeeded


def test_commit_matches_preview_and_persists_entries(client, db_session):
    seed_term(db_session)

    preview = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": True}).json()
    commit = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False}).json()

    assert commit["assignments"] == preview["assignments"]
    assert commit["unassigned"] == preview["unassigned"]

    entries = client.get("/api/scheduling/schedule", params=FALL_2026).json()
    # Two meetings per section.
    assert len(entries) == 6
    assert {entry["run_id"] for entry in entries} == {commit["run_id"]}

    by_section = client.get("/api/scheduling/schedule", params={"section_id": "sec-01"}).json()
    assert {entry["section_id"] for entry in by_section} == {"sec-01"}

    assert db_session.execute(select(func.count(ScheduleLease.id))).scalar_one() == 0
    actions = list(db_session.execute(select(ActivityLog.action)).scalars())
    assert actions == ["schedule.commit"]


def test_recommit_replaces_previous_entries(client, db_session):
    seed_term(db_session)

    first = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False}).json()
    second = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False}).json()

    entries = client.get("/api/scheduling/schedule", params=FALL_2026).json()
    assert len(entries) == 6
    assert {entry["run_id"] for entry in entries} == {second["run_id"]}
    assert first["run_id"] != second["run_id"]


def test_oversized_and_lab_sections_reported(client, db_session):
    seed_term(db_session, section_count=2, with_lab=True)
    db_session.add_all(
        [
            CourseSection(
                id="sec-big",
                course_code="EE500",
                section_number=1,
                semester=Semester.fall,
                year=2026,
                expected_headcount=50,
            ),
            CourseSection(
                id="sec-lab",
                course_code="CH210",
                section_number=2,
                semester=Semester.fall,
                year=2026,
                expected_headcount=20,
                requires_lab=True,
            ),
        ]
    )
    db_session.commit()

    body = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": True}).json()

    assert body["success"] is True
    assert body["status"] == "partially_succeeded"
    assert body["unassigned"] == [
        {
            "section_id": "sec-big",
            "section": "EE500-01",
            "reason": "no compatible classroom/time combination",
            "detail": "no classroom seats 50 students",
        }
    ]
    lab = next(item for item in body["assignments"] if item["section_id"] == "sec-lab")
    assert lab["classroom_id"] == "lab-1"
    assert lab["instructor_id"] is None


def test_external_bookings_are_respected(client, db_session):
    seed_term(db_session, section_count=1)
    db_session.add_all(
        [
            ClassroomBooking(classroom_id="room-a", day_of_week="Monday", start_time="08:00", end_time="12:00"),
            ClassroomBooking(
                classroom_id="room-a",
                semester=Semester.fall,
                year=2026,
                day_of_week="Tue",
                start_time="08:00",
                end_time="09:00",
                title="Department meeting",
            ),
        ]
    )
    db_session.commit()

    body = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": True}).json()

    slot = body["assignments"][0]["time_slot"]
    assert body["assignments"][0]["classroom_id"] == "room-a"
    assert slot["days"] == ["Wednesday", "Friday"]
    assert slot["label"] == "Wed/Fri 08:00-09:30"


def test_clear_schedule_then_info_reports_zero(client, db_session):
    seed_term(db_session, section_count=10)

    commit = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False})
    assert commit.status_code == 200
    assert commit.json()["statistics"]["scheduled_sections"] == 10

    info = client.get("/api/scheduling/info", params=FALL_2026).json()
    assert info == {
        "totalSections": 10,
        "totalClassrooms": 2,
        "totalInstructors": 5,
        "timeSlots": 130,
        "totalAssignments": 10,
    }

    cleared = delete_schedule(client, FALL_2026)
    assert cleared.status_code == 200
    assert cleared.json() == {"success": True, "deleted": 20}

    info = client.get("/api/scheduling/info", params=FALL_2026).json()
    assert info["totalAssignments"] == 0
    assert info["totalSections"] == 10


def test_clear_is_idempotent(client, db_session):
    for _ in range(2):
        response = delete_schedule(client, {"semester": "Spring", "year": 2027})
        assert response.status_code == 200
        assert response.json() == {"success": True, "deleted": 0}

    assert db_session.execute(select(func.count(ScheduleLease.id))).scalar_one() == 0


def test_clear_only_touches_requested_term(client, db_session):
    seed_term(db_session)
    client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False})

    response = delete_schedule(client, {"semester": "Spring", "year": 2026})

    assert response.json()["deleted"] == 0
    assert len(client.get("/api/scheduling/schedule", params=FALL_2026).json()) == 6


def test_malformed_requests_rejected(client):
    assert client.post("/api/scheduling/generate", json={"semester": "Winter", "year": 2026}).status_code == 422
    assert client.post("/api/scheduling/generate", json={"semester": "Fall", "year": 1890}).status_code == 422
    assert client.post("/api/scheduling/generate", json={"semester": "Fall"}).status_code == 422
    assert delete_schedule(client, {"year": 2026}).status_code == 422


def test_invalid_term_data_rejected_before_search(client, db_session):
    seed_term(db_session, section_count=1)
    db_session.add(
        CourseSection(
            id="sec-bad",
            course_code="MA300",
            section_number=1,
            semester=Semester.fall,
            year=2026,
            expected_headcount=20,
            meetings_per_week=7,
            instructor_id="ghost",
        )
    )
    db_session.commit()

    response = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False})

    assert response.status_code == 422
    body = response.json()
    issue = body["details"]["issues"][0]
    assert issue["section_id"] == "sec-bad"
    assert len(issue["problems"]) == 2
    assert db_session.execute(select(func.count(ScheduleRun.id))).scalar_one() == 0
    assert db_session.execute(select(func.count(ScheduleLease.id))).scalar_one() == 0


def test_commit_blocked_while_term_is_leased(client, db_session):
    seed_term(db_session)
    now = datetime.now(timezone.utc)
    db_session.add(
        ScheduleLease(
            semester=Semester.fall,
            year=2026,
            holder="other-worker",
            acquired_at=now,
            expires_at=now + timedelta(minutes=5),
        )
    )
    db_session.commit()

    blocked = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False})
    assert blocked.status_code == 409
    assert blocked.json()["details"] == {"semester": "Fall", "year": 2026}
    assert delete_schedule(client, FALL_2026).status_code == 409

    # Previews and other terms are not serialised by the lease.
    assert client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": True}).status_code == 200
    assert delete_schedule(client, {"semester": "Fall", "year": 2027}).status_code == 200


def test_failed_commit_keeps_previous_schedule(client, db_session, monkeypatch):
    seed_term(db_session)
    first = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False}).json()

    def broken_log_activity(*args, **kwargs):
        raise OperationalError("INSERT INTO activity_logs", {}, Exception("disk I/O error"))

    monkeypatch.setattr(schedule_runs, "log_schedule_activity", broken_log_activity)

    response = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False})

    assert response.status_code == 503
    assert response.json()["details"]["retryable"] is True

    entries = client.get("/api/scheduling/schedule", params=FALL_2026).json()
    assert len(entries) == 6
    assert {entry["run_id"] for entry in entries} == {first["run_id"]}

    db_session.expire_all()
    failed_run = db_session.get(ScheduleRun, response.json()["details"]["run_id"])
    assert failed_run.status == ScheduleRunStatus.failed
    assert db_session.execute(select(func.count(ScheduleLease.id))).scalar_one() == 0


def test_cancelled_run_writes_nothing(client, db_session, monkeypatch):
    seed_term(db_session)
    original_register = schedule_runs._registry.register

    def register_and_cancel(**kwargs):
        event = original_register(**kwargs)
        event.set()
        return event

    monkeypatch.setattr(schedule_runs._registry, "register", register_and_cancel)

    response = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False})

    assert response.status_code == 409
    assert db_session.execute(select(func.count(ScheduleEntry.id))).scalar_one() == 0
    run = db_session.execute(select(ScheduleRun)).scalar_one()
    assert run.status == ScheduleRunStatus.cancelled


def test_cancel_without_active_run_is_not_found(client):
    response = client.post("/api/scheduling/cancel", json=FALL_2026)
    assert response.status_code == 404


def test_cancel_sets_registered_events():
    registry = schedule_runs.ActiveRunRegistry()
    event = registry.register(semester="Fall", year=2026, run_id="run-1")
    other = registry.register(semester="Spring", year=2026, run_id="run-2")

    assert registry.cancel(semester="Fall", year=2026) == 1
    assert event.is_set()
    assert not other.is_set()

    registry.unregister(semester="Fall", year=2026, run_id="run-1")
    assert registry.cancel(semester="Fall", year=2026) == 0


def test_run_history_lists_recent_runs(client, db_session):
    seed_term(db_session)
    client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": True})
    client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False})

    runs = client.get("/api/scheduling/runs", params=FALL_2026).json()

    assert len(runs) == 2
    assert {run["preview_only"] for run in runs} == {True, False}
    committed = next(run for run in runs if not run["preview_only"])
    assert committed["committed_at"] is not None
    assert committed["scheduled_count"] == 3


def test_schedule_validation_reports_persisted_conflicts(client, db_session):
    seed_term(db_session)
    client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False})

    clean = client.get("/api/scheduling/schedule/validation", params=FALL_2026).json()
    assert clean["conflicts"] == []

    entry = db_session.execute(select(ScheduleEntry).order_by(ScheduleEntry.id)).scalars().first()
    db_session.add(
        ScheduleEntry(
            run_id="manual",
            semester=Semester.fall,
            year=2026,
            section_id="sec-02",
            course_code="CS102",
            classroom_id=entry.classroom_id,
            instructor_id="inst-4",
            day_of_week=entry.day_of_week,
            start_time=entry.start_time,
            end_time=entry.end_time,
        )
    )
    db_session.commit()

    report = client.get("/api/scheduling/schedule/validation", params=FALL_2026).json()
    kinds = {item["conflict_type"] for item in report["conflicts"]}
    assert "classroom_conflict" in kinds
    assert report["suggested_resolutions"]


def test_activity_log_records_commit_and_clear(client, db_session):
    seed_term(db_session)
    headers = {"X-Actor": "registrar"}
    client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False}, headers=headers)
    client.request("DELETE", "/api/scheduling/schedule", json=FALL_2026, headers=headers)

    logs = client.get("/api/activity/logs").json()

    assert {item["action"] for item in logs} == {"schedule.commit", "schedule.clear"}
    assert {item["actor"] for item in logs} == {"registrar"}
    clear_log = next(item for item in logs if item["action"] == "schedule.clear")
    assert clear_log["details"]["deleted_entries"] == 6
    assert clear_log["semester"] == "Fall"
    assert clear_log["year"] == 2026

    commit_log = next(item for item in logs if item["action"] == "schedule.commit")
    assert commit_log["run_id"]
    assert commit_log["details"]["entries"] == 6

    other_term = client.get("/api/activity/logs", params={"semester": "Spring", "year": 2026}).json()
    assert other_term == []
    only_clears = client.get("/api/activity/logs", params={"action": "schedule.clear"}).json()
    assert [item["action"] for item in only_clears] == ["schedule.clear"]
    assert client.get("/api/activity/logs", params={"action": "schedule.delete"}).status_code == 422


def test_commit_after_losing_the_lease_writes_nothing(client, db_session, session_factory, monkeypatch):
    seed_term(db_session)
    first = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False}).json()
    original_register = schedule_runs._registry.register

    def register_then_lose_lease(**kwargs):
        event = original_register(**kwargs)
        other = session_factory()
        try:
            lease = other.execute(select(ScheduleLease)).scalar_one()
            lease.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
            other.commit()
            acquire_term_lease(other, semester=Semester.fall, year=2026, holder="worker-b", lease_seconds=300)
        finally:
            other.close()
        return event

    monkeypatch.setattr(schedule_runs._registry, "register", register_then_lose_lease)

    response = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False})

    assert response.status_code == 409
    entries = client.get("/api/scheduling/schedule", params=FALL_2026).json()
    assert len(entries) == 6
    assert {entry["run_id"] for entry in entries} == {first["run_id"]}

    db_session.expire_all()
    holders = list(db_session.execute(select(ScheduleLease.holder)).scalars())
    assert holders == ["worker-b"]
    failed = db_session.execute(
        select(ScheduleRun).where(ScheduleRun.status == ScheduleRunStatus.failed)
    ).scalar_one()
    assert failed.error == "term lease lost before commit"


def test_lease_release_failure_keeps_persistence_error(client, db_session, monkeypatch):
    seed_term(db_session)

    def broken_write(*args, **kwargs):
        raise OperationalError("INSERT INTO activity_logs", {}, Exception("disk I/O error"))

    def broken_release(*args, **kwargs):
        raise OperationalError("DELETE FROM schedule_leases", {}, Exception("disk I/O error"))

    monkeypatch.setattr(schedule_runs, "log_schedule_activity", broken_write)
    monkeypatch.setattr(schedule_runs, "release_term_lease", broken_release)

    generated = client.post("/api/scheduling/generate", json={**FALL_2026, "preview_only": False})
    assert generated.status_code == 503
    assert generated.json()["details"]["retryable"] is True

    # The unreleased lease from the failed commit blocks the term until it expires.
    db_session.expire_all()
    db_session.execute(select(ScheduleLease)).scalar_one().expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    db_session.commit()

    cleared = delete_schedule(client, FALL_2026)
    assert cleared.status_code == 503
    assert cleared.json()["details"]["retryable"] is True
    assert db_session.execute(select(func.count(ScheduleEntry.id))).scalar_one() == 0
