"""Models recording moderator removal actions."""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from chorus_aggregates.db.session import Base
from chorus_aggregates.db.types import UTCDateTime, utcnow


class ModRemovePost(Base):
    """Moderation log entry for removing or restoring a post."""

    __tablename__ = "mod_remove_post"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mod_person_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("person.id", ondelete="CASCADE"),
        nullable=False,
    )
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    # False records a restore.
    removed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    when_: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class ModRemoveComment(Base):
    """Moderation log entry for removing or restoring a comment."""

    __tablename__ = "mod_remove_comment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mod_person_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("person.id", ondelete="CASCADE"),
        nullable=False,
    )
    comment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("comment.id", ondelete="CASCADE"),
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    removed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    when_: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
