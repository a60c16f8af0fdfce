"""Row images of children removed by ``ON DELETE CASCADE``.

Deleting a person, community or post removes dependent rows inside the
database, so they never pass through the session and no reaction sees them.
They are read before the flush and replayed as deletions afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Table, or_, select
from sqlalchemy.engine import Connection

from chorus_aggregates.models.comment import Comment
from chorus_aggregates.models.community import Community
from chorus_aggregates.models.instance import Instance
from chorus_aggregates.models.person import Person
from chorus_aggregates.models.post import Post
from chorus_aggregates.models.vote import CommentLike, PostLike

from .things import ThingKind, thing_tables
from .transition import Row, freeze_row

logger = logging.getLogger(__name__)


@dataclass
class CascadeSnapshot:
    """Rows the database is about to delete on its own."""

    removed: dict[type, tuple[Row, ...]] = field(default_factory=dict)
    # Likes whose target is deleted too; images carry the target's creator_id.
    orphaned_likes: dict[ThingKind, tuple[Row, ...]] = field(default_factory=dict)
    orphaned_keys: dict[type, frozenset[tuple]] = field(default_factory=dict)
    comment_communities: dict[int, int] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return any(self.removed.values()) or any(self.orphaned_likes.values())

    def old_rows(self, model: type) -> tuple[Row, ...]:
        return self.removed.get(model, ())

    def covers(self, model: type, row: Row) -> bool:
        """Return True if a deleted like is replayed as orphaned instead."""
        keys = self.orphaned_keys.get(model)
        return bool(keys) and _key(model.__table__, row) in keys

    def annotate(self, model: type, row: Row) -> Row:
        """Attach the parent community to a deleted comment's before image."""
        if model is not Comment or "community_id" in row:
            return row
        community_id = self.comment_communities.get(row["id"])
        if community_id is None:
            return row
        return freeze_row({**row, "community_id": community_id})


def _key(table: Table, row: Any) -> tuple:
    return tuple(row[column.name] for column in table.primary_key.columns)


def _fetch(conn: Connection, stmt: Any) -> list[Row]:
    return [freeze_row(row) for row in conn.execute(stmt).mappings()]


def _like_rows(
    conn: Connection,
    kind: ThingKind,
    voter_ids: set[int],
    thing_ids: set[int],
) -> list[Row]:
    tables = thing_tables(kind)
    like, thing = tables.like, tables.thing
    conditions = []
    if voter_ids:
        conditions.append(like.c.person_id.in_(voter_ids))
    if thing_ids:
        conditions.append(like.c[tables.id_key].in_(thing_ids))
    if not conditions:
        return []
    return _fetch(
        conn,
        select(like, thing.c.creator_id)
        .join(thing, thing.c.id == like.c[tables.id_key])
        .where(or_(*conditions)),
    )


def snapshot_cascades(conn: Connection, deleted: Iterable[Any]) -> CascadeSnapshot:
    """Read every counted row that deleting ``deleted`` will cascade to.

    Rows that are themselves in ``deleted`` are left out, because their own
    reactions already see them. The one exception is likes on deleted
    things: the thing is gone by the time the like reaction runs, so those
    likes are returned as orphaned with the thing's creator attached.
    """
    deleted = list(deleted)
    explicit: dict[type, set[tuple]] = {}
    for obj in deleted:
        table = type(obj).__table__
        explicit.setdefault(type(obj), set()).add(
            tuple(getattr(obj, column.key) for column in table.primary_key.columns)
        )

    def ids(model: type) -> set[int]:
        return {key[0] for key in explicit.get(model, ())}

    snapshot = CascadeSnapshot()

    def keep(model: type, rows: list[Row]) -> list[Row]:
        table = model.__table__
        kept = [row for row in rows if _key(table, row) not in explicit.get(model, ())]
        if kept:
            snapshot.removed[model] = tuple(kept)
        return rows

    person, community = Person.__table__, Community.__table__
    post, comment = Post.__table__, Comment.__table__

    person_ids, community_ids = ids(Person), ids(Community)
    instance_ids = ids(Instance)
    if instance_ids:
        persons = keep(Person, _fetch(conn, select(person).where(person.c.instance_id.in_(instance_ids))))
        communities = keep(
            Community,
            _fetch(conn, select(community).where(community.c.instance_id.in_(instance_ids))),
        )
        person_ids |= {row["id"] for row in persons}
        community_ids |= {row["id"] for row in communities}

    post_ids = ids(Post)
    conditions = []
    if person_ids:
        conditions.append(post.c.creator_id.in_(person_ids))
    if community_ids:
        conditions.append(post.c.community_id.in_(community_ids))
    if conditions:
        posts = keep(Post, _fetch(conn, select(post).where(or_(*conditions))))
        post_ids |= {row["id"] for row in posts}

    comment_ids = ids(Comment)
    conditions = []
    if person_ids:
        conditions.append(comment.c.creator_id.in_(person_ids))
    if post_ids:
        conditions.append(comment.c.post_id.in_(post_ids))
    if comment_ids:
        conditions.append(comment.c.id.in_(comment_ids))
    if conditions:
        # The parent post may be gone after the flush, so its community rides along.
        comments = keep(
            Comment,
            _fetch(
                conn,
                select(comment, post.c.community_id)
                .join(post, post.c.id == comment.c.post_id)
                .where(or_(*conditions)),
            ),
        )
        snapshot.comment_communities = {row["id"]: row["community_id"] for row in comments}
        comment_ids |= set(snapshot.comment_communities)

    for kind, model, thing_ids in (
        (ThingKind.POST, PostLike, post_ids),
        (ThingKind.COMMENT, CommentLike, comment_ids),
    ):
        id_key = thing_tables(kind).id_key
        likes = _like_rows(conn, kind, person_ids, thing_ids)
        orphaned = tuple(row for row in likes if row[id_key] in thing_ids)
        if orphaned:
            snapshot.orphaned_likes[kind] = orphaned
            snapshot.orphaned_keys[model] = frozenset(_key(model.__table__, row) for row in orphaned)
        keep(model, [row for row in likes if row[id_key] not in thing_ids])

    if snapshot:
        logger.debug(
            "Cascade snapshot: %s",
            {model.__tablename__: len(rows) for model, rows in snapshot.removed.items()},
        )
    return snapshot
