"""Engine, sessions and column types for the aggregate schema."""

from .session import (
    Base,
    SessionLocal,
    create_tables,
    drop_tables,
    enable_sqlite_foreign_keys,
)

__all__ = [
    "Base", "SessionLocal",
    "create_tables", "drop_tables", "enable_sqlite_foreign_keys",
]
