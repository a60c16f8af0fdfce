"""Database engine, session factory and schema helpers."""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from chorus_aggregates.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by content and aggregate models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import chorus_aggregates.models  # noqa: E402,F401


def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def enable_sqlite_foreign_keys(bind: Engine) -> Engine:
    """Turn on foreign key enforcement for every new SQLite connection.

    Aggregate rows are removed through ``ON DELETE CASCADE``, which SQLite
    ignores unless the pragma is set. Other backends are returned unchanged.
    """
    if bind.dialect.name == "sqlite":
        event.listen(bind, "connect", _enable_foreign_keys)
    return bind


engine = enable_sqlite_foreign_keys(
    create_engine(
        settings.effective_database_url,
        pool_pre_ping=True,
        echo=settings.sql_debug,
    )
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(bind: Engine | None = None) -> None:
    """Create every table on ``bind`` (the configured engine by default)."""
    Base.metadata.create_all(bind=bind or engine)


def drop_tables(bind: Engine | None = None) -> None:
    """Drop every table on ``bind`` (the configured engine by default)."""
    Base.metadata.drop_all(bind=bind or engine)
