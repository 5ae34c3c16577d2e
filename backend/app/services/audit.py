from __future__ import annotations

from sqlalchemy.orm import Session

from app.models.activity_log import ActivityAction, ActivityLog
from app.models.course_section import Semester


def log_schedule_activity(
    db: Session,
    *,
    actor: str | None,
    action: ActivityAction,
    semester: Semester,
    year: int,
    run_id: str | None = None,
    **details: int | str,
) -> ActivityLog:
    """Stage an activity row for a term schedule write in the caller's transaction.

    The row commits or rolls back together with the write it describes.
    """
    record = ActivityLog(
        actor=actor,
        action=action.value,
        semester=semester,
        year=year,
        run_id=run_id,
        details=dict(details),
    )
    db.add(record)
    return record
