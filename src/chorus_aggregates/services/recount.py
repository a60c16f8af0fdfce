"""Rebuild every aggregate row from the base tables.

Used after imports that bypassed the flush listener. The result matches what
incremental maintenance produces, except that the necro timestamp, which
depends on when each comment arrived, is approximated by comments published
within the necro window after the post.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, insert, not_, or_, select
from sqlalchemy.engine import Connection

from chorus_aggregates.core.settings import settings
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
from chorus_aggregates.models.instance import Site
from chorus_aggregates.models.person import Person
from chorus_aggregates.models.post import Post

from .rank import controversy_rank
from .things import ThingKind, thing_tables

logger = logging.getLogger(__name__)


def _visible(table: Any) -> Any:
    return not_(or_(table.c.deleted, table.c.removed))


def _vote_totals(conn: Connection, kind: ThingKind, upvote_score: int) -> dict[int, list[int]]:
    tables = thing_tables(kind)
    like = tables.like
    is_upvote = like.c.score == upvote_score
    rows = conn.execute(
        select(like.c[tables.id_key], is_upvote, func.count())
        .group_by(like.c[tables.id_key], is_upvote)
    ).all()
    totals: dict[int, list[int]] = defaultdict(lambda: [0, 0])
    for thing_id, upvote, count in rows:
        totals[thing_id][0 if upvote else 1] += count
    return totals


def _count_by(conn: Connection, column: Any, *where: Any) -> dict[int, int]:
    return dict(conn.execute(select(column, func.count()).where(*where).group_by(column)).all())


def _vote_row(totals: list[int]) -> dict[str, Any]:
    upvotes, downvotes = totals
    return {
        "score": upvotes - downvotes,
        "upvotes": upvotes,
        "downvotes": downvotes,
        "controversy_rank": controversy_rank(upvotes, downvotes),
    }


def recount_aggregates(
    conn: Connection,
    *,
    upvote_score: int | None = None,
    necro_window: timedelta | None = None,
) -> None:
    """Delete and recompute all aggregate tables on ``conn``.

    Runs in the caller's transaction; nothing is committed here.
    """
    if upvote_score is None:
        upvote_score = settings.upvote_score
    if necro_window is None:
        necro_window = timedelta(hours=settings.necro_bump_window_hours)

    for model in (
        SiteAggregates,
        PostAggregates,
        CommentAggregates,
        CommunityAggregates,
        PersonAggregates,
    ):
        conn.execute(delete(model.__table__))

    person = Person.__table__
    community = Community.__table__
    post = Post.__table__
    comment = Comment.__table__

    post_votes = _vote_totals(conn, ThingKind.POST, upvote_score)
    comment_votes = _vote_totals(conn, ThingKind.COMMENT, upvote_score)

    posts = conn.execute(
        select(
            post.c.id,
            post.c.creator_id,
            post.c.community_id,
            post.c.published,
            post.c.featured_community,
            post.c.featured_local,
            community.c.instance_id,
        ).join(community, community.c.id == post.c.community_id)
    ).all()
    comments = conn.execute(
        select(
            comment.c.id,
            comment.c.post_id,
            comment.c.creator_id,
            comment.c.published,
            comment.c.local,
            _visible(comment).label("visible"),
        )
    ).all()
    post_by_id = {row.id: row for row in posts}

    comment_counts: dict[int, int] = defaultdict(int)
    newest: dict[int, datetime] = {}
    newest_necro: dict[int, datetime] = {}
    for row in comments:
        parent = post_by_id.get(row.post_id)
        if not row.visible or parent is None:
            continue
        comment_counts[row.post_id] += 1
        if row.post_id not in newest or row.published > newest[row.post_id]:
            newest[row.post_id] = row.published
        if row.creator_id == parent.creator_id:
            continue
        if row.published <= parent.published + necro_window and (
            row.post_id not in newest_necro or row.published > newest_necro[row.post_id]
        ):
            newest_necro[row.post_id] = row.published

    post_rows = []
    person_post_score: dict[int, int] = defaultdict(int)
    for row in posts:
        votes = _vote_row(post_votes.get(row.id, [0, 0]))
        person_post_score[row.creator_id] += votes["score"]
        post_rows.append(
            {
                "post_id": row.id,
                "comments": comment_counts[row.id],
                "published": row.published,
                "newest_comment_time": max(row.published, newest.get(row.id, row.published)),
                "newest_comment_time_necro": max(
                    row.published, newest_necro.get(row.id, row.published)
                ),
                "featured_community": row.featured_community,
                "featured_local": row.featured_local,
                "community_id": row.community_id,
                "creator_id": row.creator_id,
                "instance_id": row.instance_id,
                **votes,
            }
        )

    comment_rows = []
    person_comment_score: dict[int, int] = defaultdict(int)
    for row in comments:
        votes = _vote_row(comment_votes.get(row.id, [0, 0]))
        person_comment_score[row.creator_id] += votes["score"]
        comment_rows.append({"comment_id": row.id, "published": row.published, **votes})

    post_counts = _count_by(conn, post.c.creator_id, _visible(post))
    person_comment_counts = _count_by(conn, comment.c.creator_id, _visible(comment))
    person_rows = [
        {
            "person_id": person_id,
            "post_count": post_counts.get(person_id, 0),
            "post_score": person_post_score.get(person_id, 0),
            "comment_count": person_comment_counts.get(person_id, 0),
            "comment_score": person_comment_score.get(person_id, 0),
        }
        for person_id in conn.execute(select(person.c.id)).scalars()
    ]

    community_posts = _count_by(conn, post.c.community_id, _visible(post))
    community_comments: dict[int, int] = defaultdict(int)
    for post_id, count in comment_counts.items():
        community_comments[post_by_id[post_id].community_id] += count
    community_rows = [
        {
            "community_id": row.id,
            "published": row.published,
            "posts": community_posts.get(row.id, 0),
            "comments": community_comments.get(row.id, 0),
        }
        for row in conn.execute(select(community.c.id, community.c.published))
    ]

    for model, rows in (
        (PersonAggregates, person_rows),
        (CommunityAggregates, community_rows),
        (PostAggregates, post_rows),
        (CommentAggregates, comment_rows),
    ):
        if rows:
            conn.execute(insert(model.__table__), rows)

    site_table = Site.__table__
    site_id = conn.execute(select(func.min(site_table.c.id))).scalar()
    if site_id is not None:
        conn.execute(
            insert(SiteAggregates.__table__).values(
                id=SITE_AGGREGATES_KEY,
                site_id=site_id,
                users=conn.execute(
                    select(func.count()).select_from(person).where(person.c.local)
                ).scalar_one(),
                communities=conn.execute(
                    select(func.count()).select_from(community).where(community.c.local)
                ).scalar_one(),
                comments=sum(1 for row in comments if row.visible and row.local),
            )
        )

    logger.info(
        "Recounted aggregates: %d persons, %d communities, %d posts, %d comments",
        len(person_rows),
        len(community_rows),
        len(post_rows),
        len(comment_rows),
    )
