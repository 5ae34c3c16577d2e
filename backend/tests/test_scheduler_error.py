from app.core.exceptions import (
    AppError,
    ScheduleLockedError,
    SchedulePersistenceError,
    ScheduleRunCancelledError,
    SchedulerError,
    ScheduleValidationError,
)


def test_scheduler_error_structure():
    err = SchedulerError(message="Test error", details={"foo": "bar"})
    assert err.status_code == 400
    assert err.message == "Test error"
    assert err.details == {"foo": "bar"}
    assert isinstance(err, AppError)


def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}


def test_schedule_error_status_codes():
    assert ScheduleValidationError("bad data").status_code == 422
    assert ScheduleLockedError("Fall", 2026).status_code == 409
    assert ScheduleRunCancelledError("Fall", 2026).details == {"semester": "Fall", "year": 2026}

    persistence = SchedulePersistenceError("write failed", details={"run_id": "r-1"})
    assert persistence.status_code == 503
    assert persistence.details == {"retryable": True, "run_id": "r-1"}


def test_app_errors_render_message_and_details(client):
    response = client.post("/api/scheduling/cancel", json={"semester": "Fall", "year": 2026})
    assert response.status_code == 404
    assert set(response.json()) == {"message", "details"}
