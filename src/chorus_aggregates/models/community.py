"""SQLAlchemy models for communities."""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from chorus_aggregates.db.session import Base
from chorus_aggregates.db.types import UTCDateTime, utcnow


class Community(Base):
    """Community grouping posts, hosted on an instance."""

    __tablename__ = "community"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Internal identifier akin to a handle.
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    instance_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("instance.id", ondelete="CASCADE"),
        nullable=False,
    )
    local: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
