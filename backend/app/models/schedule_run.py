from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.course_section import Semester


class ScheduleRunStatus(str, Enum):
    searching = "searching"
    succeeded = "succeeded"
    partially_succeeded = "partially_succeeded"
    exhausted = "exhausted"
    cancelled = "cancelled"
    failed = "failed"


class ScheduleRun(Base):
    __tablename__ = "schedule_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    semester: Mapped[Semester] = mapped_column(SAEnum(Semester, name="semester"), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    preview_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[ScheduleRunStatus] = mapped_column(
        SAEnum(ScheduleRunStatus, name="schedule_run_status"),
        nullable=False,
        default=ScheduleRunStatus.searching,
    )
    scheduled_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unscheduled_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    backtrack_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unassigned: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    committed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
