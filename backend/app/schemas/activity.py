from datetime import datetime

from pydantic import BaseModel

from app.models.activity_log import ActivityAction
from app.models.course_section import Semester


class ActivityLogOut(BaseModel):
    id: str
    actor: str | None
    action: ActivityAction
    semester: Semester | None = None
    year: int | None = None
    run_id: str | None = None
    details: dict
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
