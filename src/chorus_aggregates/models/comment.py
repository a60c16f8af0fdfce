"""SQLAlchemy models for comments."""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from chorus_aggregates.db.session import Base
from chorus_aggregates.db.types import UTCDateTime, utcnow


class Comment(Base):
    """Reply attached to a post."""

    __tablename__ = "comment"
    __table_args__ = (Index("ix_comment_post_id", "post_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    creator_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("person.id", ondelete="CASCADE"),
        nullable=False,
    )
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=False,
    )
    deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, active_history=True
    )
    removed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, active_history=True
    )
    local: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
