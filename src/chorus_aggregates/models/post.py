"""SQLAlchemy models for posts and related attributes."""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from chorus_aggregates.db.session import Base
from chorus_aggregates.db.types import UTCDateTime, utcnow


class Post(Base):
    """Top-level content item submitted to a community."""

    __tablename__ = "post"
    __table_args__ = (Index("ix_post_community_id", "community_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    creator_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("person.id", ondelete="CASCADE"),
        nullable=False,
    )
    community_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("community.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Visibility flags: deleted by the author, removed by a moderator.
    deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, active_history=True
    )
    removed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, active_history=True
    )
    local: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Pinned in its community / on the local front page.
    featured_community: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, active_history=True
    )
    featured_local: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, active_history=True
    )

    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
