"""Database configuration and session dependency."""

from typing import Iterator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine


def create_store_engine(database_url: str, echo: bool = False) -> Engine:
    """Build the engine backing the row store.

    In-memory SQLite databases use a StaticPool so every connection sees the
    same database.
    """
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, echo=echo, **kwargs)


def create_db_and_tables(engine: Engine) -> None:
    """Create database tables based on SQLModel metadata."""
    # Import so every table is registered on the metadata
    from exam_portal import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session(request: Request) -> Iterator[Session]:
    """FastAPI dependency that yields a session bound to the app's engine."""
    with Session(request.app.state.engine) as session:
        yield session
