import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.course_section import Semester


class ScheduleEntry(Base):
    """One weekly meeting of a scheduled section."""

    __tablename__ = "schedule_entries"
    __table_args__ = (Index("ix_schedule_entries_term", "semester", "year"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    run_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    semester: Mapped[Semester] = mapped_column(SAEnum(Semester, name="semester"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    section_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    course_code: Mapped[str] = mapped_column(String(50), nullable=False)
    classroom_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    instructor_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    day_of_week: Mapped[str] = mapped_column(String(20), nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
