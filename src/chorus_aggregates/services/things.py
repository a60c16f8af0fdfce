"""Content-kind descriptors shared by the post and comment reactions.

Votes and reports work the same way for posts and comments; the only
differences are which tables and columns are involved. Each reaction is
written once against a :class:`ThingTables` and instantiated per kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sqlalchemy import Table

from chorus_aggregates.models.aggregates import CommentAggregates, PostAggregates
from chorus_aggregates.models.comment import Comment
from chorus_aggregates.models.moderation import ModRemoveComment, ModRemovePost
from chorus_aggregates.models.post import Post
from chorus_aggregates.models.report import CommentReport, PostReport
from chorus_aggregates.models.vote import CommentLike, PostLike

from .errors import UnknownThingKindError


class ThingKind(str, Enum):
    """Votable, reportable content variants."""

    POST = "post"
    COMMENT = "comment"


@dataclass(frozen=True)
class ThingTables:
    """Tables and column names backing one content kind."""

    kind: ThingKind
    thing: Table
    like: Table
    report: Table
    removal: Table
    aggregates: Table
    # Column naming the thing on like, report, removal and aggregate tables.
    id_key: str
    # person_aggregates columns fed by this kind.
    score_column: str
    count_column: str


_THING_TABLES = {
    ThingKind.POST: ThingTables(
        kind=ThingKind.POST,
        thing=Post.__table__,
        like=PostLike.__table__,
        report=PostReport.__table__,
        removal=ModRemovePost.__table__,
        aggregates=PostAggregates.__table__,
        id_key="post_id",
        score_column="post_score",
        count_column="post_count",
    ),
    ThingKind.COMMENT: ThingTables(
        kind=ThingKind.COMMENT,
        thing=Comment.__table__,
        like=CommentLike.__table__,
        report=CommentReport.__table__,
        removal=ModRemoveComment.__table__,
        aggregates=CommentAggregates.__table__,
        id_key="comment_id",
        score_column="comment_score",
        count_column="comment_count",
    ),
}


def thing_tables(kind: ThingKind | str) -> ThingTables:
    """Return the table descriptor for ``kind``.

    Raises:
        UnknownThingKindError: If ``kind`` is neither post nor comment.
    """
    try:
        return _THING_TABLES[ThingKind(kind)]
    except ValueError:
        raise UnknownThingKindError(f"unknown content kind: {kind!r}") from None
