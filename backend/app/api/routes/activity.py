from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.models.activity_log import ActivityAction, ActivityLog
from app.models.course_section import Semester
from app.schemas.activity import ActivityLogOut

router = APIRouter()


@router.get("/activity/logs", response_model=list[ActivityLogOut])
def list_activity_logs(
    action: ActivityAction | None = Query(default=None),
    semester: Semester | None = Query(default=None),
    year: int | None = Query(default=None, ge=2000, le=2100),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[ActivityLogOut]:
    query = select(ActivityLog)
    if action is not None:
        query = query.where(ActivityLog.action == action.value)
    if semester is not None:
        query = query.where(ActivityLog.semester == semester)
    if year is not None:
        query = query.where(ActivityLog.year == year)
    query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id).limit(limit)
    return list(db.execute(query).scalars())
