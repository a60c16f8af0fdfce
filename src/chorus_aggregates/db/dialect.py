"""Dialect-aware statement helpers."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(conn: Connection, table: Any) -> Any:
    """Return an INSERT construct supporting ``ON CONFLICT`` for ``conn``'s dialect.

    Args:
        conn: Connection the statement will run on.
        table: Mapped class or Table to insert into.

    Returns:
        A dialect-specific insert exposing ``on_conflict_do_nothing`` and
        ``on_conflict_do_update``.

    Raises:
        NotImplementedError: If the backend has no ``ON CONFLICT`` support.
    """
    name = conn.dialect.name
    try:
        factory = _INSERT_BY_DIALECT[name]
    except KeyError:
        raise NotImplementedError(f"ON CONFLICT inserts are not supported on {name!r}") from None
    return factory(table)
