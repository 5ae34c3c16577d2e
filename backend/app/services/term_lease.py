from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ScheduleLockedError
from app.models.course_section import Semester
from app.models.schedule_lease import ScheduleLease

logger = logging.getLogger(__name__)


def acquire_term_lease(
    db: Session,
    *,
    semester: Semester,
    year: int,
    holder: str,
    lease_seconds: int,
) -> None:
    """Take the exclusive write lease for one term or raise ``ScheduleLockedError``.

    An expired lease is taken over in place; a missing one is inserted and the
    unique (semester, year) constraint settles concurrent inserts.
    """
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=lease_seconds)

    taken_over = db.execute(
        update(ScheduleLease)
        .where(
            ScheduleLease.semester == semester,
            ScheduleLease.year == year,
            ScheduleLease.expires_at <= now,
        )
        .values(holder=holder, acquired_at=now, expires_at=expires_at)
        .execution_options(synchronize_session=False)
    )
    if taken_over.rowcount:
        db.commit()
        logger.info("Term lease acquired | term=%s %s | holder=%s | takeover=true", semester.value, year, holder)
        return

    existing = db.execute(
        select(ScheduleLease.id).where(ScheduleLease.semester == semester, ScheduleLease.year == year)
    ).scalar_one_or_none()
    if existing is not None:
        db.rollback()
        logger.info("Term lease busy | term=%s %s | holder=%s", semester.value, year, holder)
        raise ScheduleLockedError(semester.value, year)

    db.add(ScheduleLease(semester=semester, year=year, holder=holder, acquired_at=now, expires_at=expires_at))
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Term lease busy | term=%s %s | holder=%s | race=true", semester.value, year, holder)
        raise ScheduleLockedError(semester.value, year) from exc
    logger.info("Term lease acquired | term=%s %s | holder=%s", semester.value, year, holder)


def release_term_lease(db: Session, *, semester: Semester, year: int, holder: str) -> None:
    db.rollback()
    db.execute(
        delete(ScheduleLease)
        .where(
            ScheduleLease.semester == semester,
            ScheduleLease.year == year,
            ScheduleLease.holder == holder,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info("Term lease released | term=%s %s | holder=%s", semester.value, year, holder)


def ensure_term_lease(db: Session, *, semester: Semester, year: int, holder: str) -> None:
    """Raise ``ScheduleLockedError`` unless ``holder`` still owns an unexpired lease on the term.

    Runs inside the caller's write transaction.
    """
    now = datetime.now(timezone.utc)
    held = db.execute(
        select(ScheduleLease.id).where(
            ScheduleLease.semester == semester,
            ScheduleLease.year == year,
            ScheduleLease.holder == holder,
            ScheduleLease.expires_at > now,
        )
    ).scalar_one_or_none()
    if held is None:
        logger.warning("Term lease lost | term=%s %s | holder=%s", semester.value, year, holder)
        raise ScheduleLockedError(semester.value, year)
