"""Resolve open reports when a moderator removes the reported content."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import bindparam, or_, update
from sqlalchemy.engine import Connection

from chorus_aggregates.db.types import UTCDateTime, utcnow

from .things import ThingKind, thing_tables
from .transition import Row, require_columns

logger = logging.getLogger(__name__)


def resolve_reports_when_thing_removed(
    conn: Connection,
    kind: ThingKind | str,
    new_removals: Sequence[Row],
    *,
    now: datetime | None = None,
) -> set[int]:
    """Mark every open report on newly removed things as resolved.

    Only removal rows with ``removed`` set count (restores are ignored). The
    moderator of the removal becomes the resolver. Reports already resolved,
    or updated at or after ``now``, are left alone, which makes replaying the
    same removals a no-op.

    Returns:
        Ids of the things whose reports were considered.
    """
    tables = thing_tables(kind)
    if not new_removals:
        return set()
    require_columns(new_removals, tables.id_key, "mod_person_id", "removed")

    # Later removals of the same thing in the batch win.
    resolver_by_thing = {
        row[tables.id_key]: row["mod_person_id"] for row in new_removals if row["removed"]
    }
    if not resolver_by_thing:
        return set()

    now = now or utcnow()
    report = tables.report
    now_param = bindparam("b_now", type_=UTCDateTime)
    conn.execute(
        update(report)
        .where(
            report.c[tables.id_key] == bindparam("b_thing_id"),
            report.c.resolved.is_(False),
            or_(report.c.updated.is_(None), report.c.updated < now_param),
        )
        .values(resolved=True, resolver_id=bindparam("b_resolver_id"), updated=now_param),
        [
            {"b_thing_id": thing_id, "b_resolver_id": resolver_id, "b_now": now}
            for thing_id, resolver_id in sorted(resolver_by_thing.items())
        ],
    )
    logger.debug(
        "Resolved reports for %d removed %ss", len(resolver_by_thing), tables.kind.value
    )
    return set(resolver_by_thing)
