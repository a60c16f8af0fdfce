"""SQLAlchemy models for federated instances and the local site."""

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from chorus_aggregates.db.session import Base
from chorus_aggregates.db.types import UTCDateTime, utcnow


class Instance(Base):
    """A server hosting persons and communities, local or remote."""

    __tablename__ = "instance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    domain: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class Site(Base):
    """Site metadata for the local instance.

    Exactly one site aggregate row exists no matter how many site rows are
    inserted.
    """

    __tablename__ = "site"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    instance_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("instance.id", ondelete="CASCADE"),
        nullable=False,
    )
    published: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
