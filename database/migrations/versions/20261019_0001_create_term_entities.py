"""create term entities

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    semester = postgresql.ENUM("fall", "spring", "summer", name="semester", create_type=False)
    room_type = postgresql.ENUM("lecture", "lab", "seminar", name="room_type", create_type=False)
    semester.create(op.get_bind(), checkfirst=True)
    room_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "instructors",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("department", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("unavailability_windows", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_instructors_email", "instructors", ["email"], unique=True)

    op.create_table(
        "classrooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("building", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("type", room_type, nullable=False, server_default="lecture"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_classrooms_name", "classrooms", ["name"], unique=True)

    op.create_table(
        "classroom_bookings",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("classroom_id", sa.String(length=36), nullable=False),
        sa.Column("semester", semester, nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("day_of_week", sa.String(length=20), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("purpose", sa.String(length=50), nullable=False, server_default="other"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_classroom_bookings_classroom_id", "classroom_bookings", ["classroom_id"], unique=False)

    op.create_table(
        "course_sections",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("course_code", sa.String(length=50), nullable=False),
        sa.Column("course_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("section_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("semester", semester, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("expected_headcount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("requires_lab", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("meetings_per_week", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("meeting_duration_minutes", sa.Integer(), nullable=False, server_default="90"),
        sa.Column("instructor_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "course_code",
            "section_number",
            "semester",
            "year",
            name="uq_course_sections_course_section_term",
        ),
    )
    op.create_index("ix_course_sections_course_code", "course_sections", ["course_code"], unique=False)
    op.create_index("ix_course_sections_semester", "course_sections", ["semester"], unique=False)
    op.create_index("ix_course_sections_year", "course_sections", ["year"], unique=False)
    op.create_index("ix_course_sections_instructor_id", "course_sections", ["instructor_id"], unique=False)

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("actor", sa.String(length=200), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("semester", semester, nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("run_id", sa.String(length=36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"], unique=False)
    op.create_index("ix_activity_logs_term", "activity_logs", ["semester", "year"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_activity_logs_term", table_name="activity_logs")
    op.drop_index("ix_activity_logs_action", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_course_sections_instructor_id", table_name="course_sections")
    op.drop_index("ix_course_sections_year", table_name="course_sections")
    op.drop_index("ix_course_sections_semester", table_name="course_sections")
    op.drop_index("ix_course_sections_course_code", table_name="course_sections")
    op.drop_table("course_sections")
    op.drop_index("ix_classroom_bookings_classroom_id", table_name="classroom_bookings")
    op.drop_table("classroom_bookings")
    op.drop_index("ix_classrooms_name", table_name="classrooms")
    op.drop_table("classrooms")
    op.drop_index("ix_instructors_email", table_name="instructors")
    op.drop_table("instructors")
    postgresql.ENUM(name="room_type", create_type=False).drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="semester", create_type=False).drop(op.get_bind(), checkfirst=True)
