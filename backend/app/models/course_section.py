import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class Semester(str, Enum):
    fall = "Fall"
    spring = "Spring"
    summer = "Summer"


class CourseSection(Base):
    __tablename__ = "course_sections"
    __table_args__ = (
        UniqueConstraint(
            "course_code",
            "section_number",
            "semester",
            "year",
            name="uq_course_sections_course_section_term",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    course_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    section_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    semester: Mapped[Semester] = mapped_column(SAEnum(Semester, name="semester"), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    expected_headcount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requires_lab: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    meetings_per_week: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    meeting_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=90)
    instructor_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def label(self) -> str:
        return f"{self.course_code}-{self.section_number:02d}"
