"""SQLite persistence for the session key-value store."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlmodel import Column, DateTime, Field, SQLModel, create_engine


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionEntry(SQLModel, table=True):
    """One string value surviving a login redirect."""

    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )


def create_engine_for_path(db_path: Path):
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )


def init_db(engine) -> None:
    SQLModel.metadata.create_all(engine)
