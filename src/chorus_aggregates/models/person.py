"""SQLAlchemy models for person accounts."""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from chorus_aggregates.db.session import Base
from chorus_aggregates.db.types import UTCDateTime, utcnow


class Person(Base):
    """A user account that creates content and casts votes."""

    __tablename__ = "person"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    instance_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("instance.id", ondelete="CASCADE"),
        nullable=False,
    )
    # False for accounts fetched from other instances.
    local: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
