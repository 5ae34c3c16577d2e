from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings
import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "course_sections": {
        "id",
        "course_code",
        "section_number",
        "semester",
        "year",
        "expected_headcount",
        "requires_lab",
        "meetings_per_week",
        "meeting_duration_minutes",
        "instructor_id",
    },
    "classrooms": {"id", "name", "capacity", "type", "is_active"},
    "classroom_bookings": {"id", "classroom_id", "semester", "year", "day_of_week", "start_time", "end_time"},
    "instructors": {"id", "name", "email", "unavailability_windows"},
    "schedule_entries": {
        "id",
        "run_id",
        "semester",
        "year",
        "section_id",
        "classroom_id",
        "instructor_id",
        "day_of_week",
        "start_time",
        "end_time",
    },
    "schedule_runs": {"id", "semester", "year", "status", "preview_only", "backtrack_count", "unassigned"},
    "schedule_leases": {"id", "semester", "year", "holder", "expires_at"},
    "activity_logs": {"id", "actor", "action", "semester", "year", "run_id", "details"},
}


def find_missing_schema() -> tuple[list[str], list[str]]:
    with engine.connect() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            if table_name not in table_names:
                continue
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
    return missing_tables, missing_columns


def ensure_runtime_schema_compatibility() -> None:
    settings = get_settings()
    try:
        if settings.auto_create_schema:
            Base.metadata.create_all(bind=engine)
        missing_tables, missing_columns = find_missing_schema()
    except SQLAlchemyError as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema bootstrap failed")
        raise RuntimeError("Runtime schema bootstrap failed") from exc

    if missing_tables or missing_columns:
        # Readiness reports degraded until `alembic upgrade head` has run.
        logger.warning(
            "Schema incomplete | missing_tables=%s | missing_columns=%s",
            ",".join(missing_tables) or "-",
            ",".join(missing_columns) or "-",
        )
        return
    logger.info("Schema check passed | tables=%s", len(REQUIRED_COLUMNS))
