"""Models capturing voting interactions on posts and comments."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, SmallInteger
from sqlalchemy.orm import Mapped, mapped_column

from chorus_aggregates.db.session import Base
from chorus_aggregates.db.types import UTCDateTime, utcnow


class PostLike(Base):
    """Per-person vote on a post.

    The composite primary key keeps one vote per (voter, post); changing a
    vote updates ``score`` in place.
    """

    __tablename__ = "post_like"
    __table_args__ = (Index("ix_post_like_post_id", "post_id"),)

    person_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("person.id", ondelete="CASCADE"),
        primary_key=True,
    )
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # 1 = upvote; any other value counts as a downvote.
    score: Mapped[int] = mapped_column(SmallInteger, nullable=False, active_history=True)
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class CommentLike(Base):
    """Per-person vote on a comment."""

    __tablename__ = "comment_like"
    __table_args__ = (Index("ix_comment_like_comment_id", "comment_id"),)

    person_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("person.id", ondelete="CASCADE"),
        primary_key=True,
    )
    comment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("comment.id", ondelete="CASCADE"),
        primary_key=True,
    )
    score: Mapped[int] = mapped_column(SmallInteger, nullable=False, active_history=True)
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
