"""create schedule runs, entries and term leases

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    semester = postgresql.ENUM("fall", "spring", "summer", name="semester", create_type=False)
    run_status = postgresql.ENUM(
        "searching",
        "succeeded",
        "partially_succeeded",
        "exhausted",
        "cancelled",
        "failed",
        name="schedule_run_status",
        create_type=False,
    )
    run_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "schedule_runs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("semester", semester, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("preview_only", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("status", run_status, nullable=False, server_default="searching"),
        sa.Column("scheduled_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unscheduled_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("backtrack_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unassigned", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_schedule_runs_semester", "schedule_runs", ["semester"], unique=False)
    op.create_index("ix_schedule_runs_year", "schedule_runs", ["year"], unique=False)

    op.create_table(
        "schedule_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("run_id", sa.String(length=36), nullable=False),
        sa.Column("semester", semester, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.String(length=36), nullable=False),
        sa.Column("course_code", sa.String(length=50), nullable=False),
        sa.Column("classroom_id", sa.String(length=36), nullable=False),
        sa.Column("instructor_id", sa.String(length=36), nullable=True),
        sa.Column("day_of_week", sa.String(length=20), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_schedule_entries_term", "schedule_entries", ["semester", "year"], unique=False)
    op.create_index("ix_schedule_entries_run_id", "schedule_entries", ["run_id"], unique=False)
    op.create_index("ix_schedule_entries_section_id", "schedule_entries", ["section_id"], unique=False)
    op.create_index("ix_schedule_entries_classroom_id", "schedule_entries", ["classroom_id"], unique=False)
    op.create_index("ix_schedule_entries_instructor_id", "schedule_entries", ["instructor_id"], unique=False)

    op.create_table(
        "schedule_leases",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("semester", semester, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("holder", sa.String(length=64), nullable=False),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("semester", "year", name="uq_schedule_leases_term"),
    )


def downgrade() -> None:
    op.drop_table("schedule_leases")
    op.drop_index("ix_schedule_entries_instructor_id", table_name="schedule_entries")
    op.drop_index("ix_schedule_entries_classroom_id", table_name="schedule_entries")
    op.drop_index("ix_schedule_entries_section_id", table_name="schedule_entries")
    op.drop_index("ix_schedule_entries_run_id", table_name="schedule_entries")
    op.drop_index("ix_schedule_entries_term", table_name="schedule_entries")
    op.drop_table("schedule_entries")
    op.drop_index("ix_schedule_runs_year", table_name="schedule_runs")
    op.drop_index("ix_schedule_runs_semester", table_name="schedule_runs")
    op.drop_table("schedule_runs")
    postgresql.ENUM(name="schedule_run_status", create_type=False).drop(op.get_bind(), checkfirst=True)
