import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.course_section import Semester


class ActivityAction(str, Enum):
    schedule_commit = "schedule.commit"
    schedule_clear = "schedule.clear"


class ActivityLog(Base):
    """Operator-visible trail of writes to a term's schedule."""

    __tablename__ = "activity_logs"
    __table_args__ = (Index("ix_activity_logs_term", "semester", "year"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    actor: Mapped[str | None] = mapped_column(String(200), nullable=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    semester: Mapped[Semester | None] = mapped_column(SAEnum(Semester, name="semester"), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    run_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
