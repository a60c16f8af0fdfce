"""Create aggregate rows alongside the entities they describe.

Deleting aggregate rows is handled by ``ON DELETE CASCADE`` on their foreign
keys; removals only move the site counters.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import func, insert, not_, or_, select, update
from sqlalchemy.engine import Connection

from chorus_aggregates.db.dialect import upsert_insert
from chorus_aggregates.models.aggregates import (
    SITE_AGGREGATES_KEY,
    CommentAggregates,
    CommunityAggregates,
    PersonAggregates,
    PostAggregates,
    SiteAggregates,
)
from chorus_aggregates.models.comment import Comment
from chorus_aggregates.models.community import Community
from chorus_aggregates.models.person import Person

from .transition import Row, require_columns

logger = logging.getLogger(__name__)

_site_aggregates = SiteAggregates.__table__


def _bump_site_counter(conn: Connection, column: str, amount: int) -> None:
    if amount:
        conn.execute(
            update(_site_aggregates).values(
                {column: _site_aggregates.c[column] + amount}
            )
        )


def _local_diff(new_rows: Sequence[Row], old_rows: Sequence[Row]) -> int:
    return sum(1 for row in new_rows if row["local"]) - sum(1 for row in old_rows if row["local"])


def person_aggregates_from_person(
    conn: Connection,
    new_rows: Sequence[Row],
    old_rows: Sequence[Row] = (),
) -> None:
    """Insert zeroed person aggregates and keep the site's local user count.

    Removed persons lose their aggregates through the cascade; only the site
    counter needs to move for them.
    """
    require_columns(new_rows, "id", "local")
    require_columns(old_rows, "local")
    if new_rows:
        conn.execute(
            insert(PersonAggregates.__table__),
            [{"person_id": row["id"]} for row in new_rows],
        )
    _bump_site_counter(conn, "users", _local_diff(new_rows, old_rows))


def community_aggregates_from_community(
    conn: Connection,
    new_rows: Sequence[Row],
    old_rows: Sequence[Row] = (),
) -> None:
    """Insert zeroed community aggregates and keep the site's local community count."""
    require_columns(new_rows, "id", "local", "published")
    require_columns(old_rows, "local")
    if new_rows:
        conn.execute(
            insert(CommunityAggregates.__table__),
            [{"community_id": row["id"], "published": row["published"]} for row in new_rows],
        )
    _bump_site_counter(conn, "communities", _local_diff(new_rows, old_rows))


def comment_aggregates_from_comment(conn: Connection, new_rows: Sequence[Row]) -> None:
    """Insert comment aggregates carrying the comment's publish time."""
    if not new_rows:
        return
    require_columns(new_rows, "id", "published")
    conn.execute(
        insert(CommentAggregates.__table__),
        [{"comment_id": row["id"], "published": row["published"]} for row in new_rows],
    )


def post_aggregates_from_post(conn: Connection, new_rows: Sequence[Row]) -> None:
    """Upsert post aggregates for new posts or posts whose featured flags changed.

    New rows start with both newest-comment timestamps at the post's publish
    time and copy the community's instance. On conflict only the featured
    flags are written, so counters are never reset. Posts whose community
    cannot be found are skipped.
    """
    if not new_rows:
        return
    require_columns(
        new_rows,
        "id",
        "published",
        "community_id",
        "creator_id",
        "featured_community",
        "featured_local",
    )
    community = Community.__table__
    instance_by_community = dict(
        conn.execute(
            select(community.c.id, community.c.instance_id).where(
                community.c.id.in_({row["community_id"] for row in new_rows})
            )
        ).all()
    )

    values = []
    for row in new_rows:
        instance_id = instance_by_community.get(row["community_id"])
        if instance_id is None:
            logger.warning(
                "Skipping aggregates for post %s: community %s not found",
                row["id"],
                row["community_id"],
            )
            continue
        values.append(
            {
                "post_id": row["id"],
                "published": row["published"],
                "newest_comment_time": row["published"],
                "newest_comment_time_necro": row["published"],
                "community_id": row["community_id"],
                "creator_id": row["creator_id"],
                "instance_id": instance_id,
                "featured_community": row["featured_community"],
                "featured_local": row["featured_local"],
            }
        )
    if not values:
        return

    stmt = upsert_insert(conn, PostAggregates.__table__).values(values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["post_id"],
        set_={
            "featured_community": stmt.excluded.featured_community,
            "featured_local": stmt.excluded.featured_local,
        },
    )
    conn.execute(stmt)


def site_aggregates_from_site(conn: Connection, new_rows: Sequence[Row]) -> bool:
    """Create the singleton site aggregate row if it does not exist yet.

    The row is keyed by a constant, so a second site insert hits the primary
    key and is ignored. Counters start from the local persons, communities
    and visible comments already present.

    Returns:
        True if a row was inserted.
    """
    if not new_rows:
        return False
    require_columns(new_rows, "id")
    person = Person.__table__
    community = Community.__table__
    comment = Comment.__table__

    local_users = select(func.count()).select_from(person).where(person.c.local)
    local_communities = select(func.count()).select_from(community).where(community.c.local)
    local_comments = (
        select(func.count())
        .select_from(comment)
        .where(comment.c.local, not_(or_(comment.c.deleted, comment.c.removed)))
    )

    stmt = upsert_insert(conn, _site_aggregates).values(
        id=SITE_AGGREGATES_KEY,
        site_id=new_rows[0]["id"],
        users=local_users.scalar_subquery(),
        communities=local_communities.scalar_subquery(),
        comments=local_comments.scalar_subquery(),
    )
    result = conn.execute(stmt.on_conflict_do_nothing(index_elements=["id"]))
    created = bool(result.rowcount)
    if created:
        logger.info("Created site aggregates for site %s", new_rows[0]["id"])
    else:
        logger.debug("Site aggregates already exist; ignoring site %s", new_rows[0]["id"])
    return created


__all__ = [
    "comment_aggregates_from_comment",
    "community_aggregates_from_community",
    "person_aggregates_from_person",
    "post_aggregates_from_post",
    "site_aggregates_from_site",
]
