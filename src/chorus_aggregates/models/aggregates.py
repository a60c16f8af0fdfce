"""Denormalized aggregate tables.

Rows here are written only by ``chorus_aggregates.services``; every table is
keyed one-to-one by the owning entity and cascades with it.
"""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Float, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from chorus_aggregates.db.session import Base
from chorus_aggregates.db.types import UTCDateTime

SITE_AGGREGATES_KEY = 1


class PostAggregates(Base):
    """Vote totals, comment counts and activity timestamps for a post."""

    __tablename__ = "post_aggregates"
    __table_args__ = (
        Index("ix_post_aggregates_community_id", "community_id"),
        Index("ix_post_aggregates_creator_id", "creator_id"),
    )

    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    controversy_rank: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    newest_comment_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    # Only bumped by other people's comments on recent posts.
    newest_comment_time_necro: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    featured_community: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    featured_local: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Copied from the post (and its community) so listings avoid joins.
    community_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("community.id", ondelete="CASCADE"),
        nullable=False,
    )
    creator_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("person.id", ondelete="CASCADE"),
        nullable=False,
    )
    instance_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("instance.id", ondelete="CASCADE"),
        nullable=False,
    )


class CommentAggregates(Base):
    """Vote totals for a comment."""

    __tablename__ = "comment_aggregates"

    comment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("comment.id", ondelete="CASCADE"),
        primary_key=True,
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    controversy_rank: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class PersonAggregates(Base):
    """Content counts and accumulated scores for a person."""

    __tablename__ = "person_aggregates"

    person_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("person.id", ondelete="CASCADE"),
        primary_key=True,
    )
    post_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    post_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comment_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class CommunityAggregates(Base):
    """Post and comment counts for a community."""

    __tablename__ = "community_aggregates"

    community_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("community.id", ondelete="CASCADE"),
        primary_key=True,
    )
    posts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class SiteAggregates(Base):
    """Site-wide counters for local content.

    The constant primary key plus check constraint keeps this a single row.
    """

    __tablename__ = "site_aggregates"
    __table_args__ = (
        CheckConstraint(f"id = {SITE_AGGREGATES_KEY}", name="ck_site_aggregates_singleton"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=False,
        default=SITE_AGGREGATES_KEY,
    )
    site_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("site.id", ondelete="CASCADE"),
        nullable=False,
    )
    users: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    communities: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
