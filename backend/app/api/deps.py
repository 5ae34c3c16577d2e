from collections.abc import Generator

from fastapi import Header
from sqlalchemy.orm import Session

from app.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor(x_actor: str | None = Header(default=None, max_length=200)) -> str | None:
    # Identity is resolved upstream; the portal forwards the operator name for the activity log.
    return x_actor.strip() if x_actor and x_actor.strip() else None
