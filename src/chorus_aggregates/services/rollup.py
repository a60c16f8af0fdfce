"""Roll comment and post changes up into their parents' aggregates.

Only visible rows count: an image that is deleted or removed contributes
nothing, so hiding a comment removes it from the counts and restoring it adds
it back. Timestamps only ever move forward.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import bindparam, case, select, update
from sqlalchemy.engine import Connection

from chorus_aggregates.core.settings import settings
from chorus_aggregates.db.types import UTCDateTime, utcnow
from chorus_aggregates.models.aggregates import (
    CommunityAggregates,
    PersonAggregates,
    PostAggregates,
    SiteAggregates,
)
from chorus_aggregates.models.post import Post

from .transition import SignedRow, TransitionSet, sum_by

logger = logging.getLogger(__name__)


def is_visible(row: Any) -> bool:
    """Return True unless the row image is deleted or removed."""
    return not (row["deleted"] or row["removed"])


def greatest(column: Any, candidate: Any) -> Any:
    """``max(column, candidate)`` that ignores a NULL candidate.

    Written as ``CASE`` so it behaves the same on SQLite and PostgreSQL.
    """
    return case(
        (candidate.is_(None), column),
        (column.is_(None), candidate),
        (candidate > column, candidate),
        else_=column,
    )


def _max_time(current: datetime | None, candidate: datetime) -> datetime:
    return candidate if current is None or candidate > current else current


def _apply_counts(
    conn: Connection,
    table: Any,
    key_column: str,
    count_column: str,
    diffs: dict[int, int],
) -> None:
    changed = sorted((key, diff) for key, diff in diffs.items() if diff)
    if not changed:
        return
    conn.execute(
        update(table)
        .where(table.c[key_column] == bindparam("b_key"))
        .values({count_column: table.c[count_column] + bindparam("d_count")}),
        [{"b_key": key, "d_count": diff} for key, diff in changed],
    )


def _bump_site(conn: Connection, column: str, diff: int) -> None:
    if diff:
        site = SiteAggregates.__table__
        conn.execute(update(site).values({column: site.c[column] + diff}))


def _parent_posts(conn: Connection, post_ids: set[int]) -> dict[int, Any]:
    post = Post.__table__
    rows = conn.execute(
        select(post.c.id, post.c.community_id, post.c.creator_id, post.c.published).where(
            post.c.id.in_(post_ids)
        )
    ).all()
    return {row.id: row for row in rows}


def parent_aggregates_from_comment(
    conn: Connection,
    transition: TransitionSet,
    *,
    now: datetime | None = None,
    necro_window: timedelta | None = None,
) -> None:
    """Apply a batch of comment changes to post, community, site and person aggregates.

    Groupings over the visible rows of the batch:

    * post: comment count, newest publish time among added comments, and the
      newest publish time among added comments that count as a necro bump;
    * community of the parent post: comment count;
    * local comments: site comment count;
    * creator: person comment count.

    A comment counts as a necro bump when its creator is not the post's
    creator and the post was published within ``necro_window`` of ``now``.
    """
    if not transition:
        return
    transition.require("post_id", "creator_id", "published", "local", "deleted", "removed")
    visible: list[SignedRow] = [
        (count_diff, row) for count_diff, row in transition.combined() if is_visible(row)
    ]
    if not visible:
        return

    now = now or utcnow()
    if necro_window is None:
        necro_window = timedelta(hours=settings.necro_bump_window_hours)
    necro_cutoff = now - necro_window
    posts = _parent_posts(conn, {row["post_id"] for _, row in visible})

    post_diffs = sum_by(visible, "post_id")
    creator_diffs = sum_by(visible, "creator_id")
    local_diff = sum(count_diff for count_diff, row in visible if row["local"])
    newest: dict[int, datetime] = {}
    newest_necro: dict[int, datetime] = {}
    community_diffs: dict[int, int] = defaultdict(int)

    for count_diff, row in visible:
        post_id = row["post_id"]
        parent = posts.get(post_id)
        # Comments removed by a cascade carry the community of a post that may be gone.
        community_id = row.get("community_id", parent.community_id if parent else None)
        if community_id is not None:
            community_diffs[community_id] += count_diff
        if parent is None:
            continue
        if count_diff > 0:
            newest[post_id] = _max_time(newest.get(post_id), row["published"])
            if row["creator_id"] != parent.creator_id and parent.published > necro_cutoff:
                newest_necro[post_id] = _max_time(newest_necro.get(post_id), row["published"])

    post_updates = [
        {
            "b_post_id": post_id,
            "d_comments": post_diffs[post_id],
            "newest": newest.get(post_id),
            "newest_necro": newest_necro.get(post_id),
        }
        for post_id in sorted(posts)
        if post_diffs.get(post_id) or post_id in newest
    ]
    if post_updates:
        aggregates = PostAggregates.__table__
        newest_param = bindparam("newest", type_=UTCDateTime)
        necro_param = bindparam("newest_necro", type_=UTCDateTime)
        conn.execute(
            update(aggregates)
            .where(aggregates.c.post_id == bindparam("b_post_id"))
            .values(
                comments=aggregates.c.comments + bindparam("d_comments"),
                newest_comment_time=greatest(aggregates.c.newest_comment_time, newest_param),
                newest_comment_time_necro=greatest(
                    aggregates.c.newest_comment_time_necro, necro_param
                ),
            ),
            post_updates,
        )

    _apply_counts(conn, CommunityAggregates.__table__, "community_id", "comments", community_diffs)
    _apply_counts(conn, PersonAggregates.__table__, "person_id", "comment_count", creator_diffs)
    _bump_site(conn, "comments", local_diff)
    logger.debug(
        "Rolled up %d comment rows into %d posts", len(visible), len(post_updates)
    )


def post_count_from_post(conn: Connection, transition: TransitionSet) -> None:
    """Apply a batch of post changes to community and person post counts.

    Site-wide post counting is intentionally not maintained.
    """
    if not transition:
        return
    transition.require("community_id", "creator_id", "deleted", "removed")
    visible = [(count_diff, row) for count_diff, row in transition.combined() if is_visible(row)]
    _apply_counts(
        conn, CommunityAggregates.__table__, "community_id", "posts", sum_by(visible, "community_id")
    )
    _apply_counts(
        conn, PersonAggregates.__table__, "person_id", "post_count", sum_by(visible, "creator_id")
    )


__all__ = [
    "greatest",
    "is_visible",
    "parent_aggregates_from_comment",
    "post_count_from_post",
]
