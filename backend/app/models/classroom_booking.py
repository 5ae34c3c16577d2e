import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.course_section import Semester


class ClassroomBooking(Base):
    """Weekly recurring block on a classroom made outside the scheduler.

    A booking without a semester/year applies to every term.
    """

    __tablename__ = "classroom_bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    classroom_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    semester: Mapped[Semester | None] = mapped_column(SAEnum(Semester, name="semester"), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    day_of_week: Mapped[str] = mapped_column(String(20), nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    purpose: Mapped[str] = mapped_column(String(50), nullable=False, default="other")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
