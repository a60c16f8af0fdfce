"""Mapping checks for the content and aggregate models."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import chorus_aggregates.db as db
from chorus_aggregates.models import (
    CommentLike,
    PostAggregates,
    PostLike,
    SiteAggregates,
)


def test_like_tables_use_composite_primary_keys() -> None:
    """One vote per voter and target."""
    assert {c.name for c in PostLike.__table__.primary_key} == {"person_id", "post_id"}
    assert {c.name for c in CommentLike.__table__.primary_key} == {"person_id", "comment_id"}


def test_aggregate_tables_are_keyed_by_their_entity() -> None:
    assert [c.name for c in PostAggregates.__table__.primary_key] == ["post_id"]
    foreign_key = next(iter(PostAggregates.__table__.c.post_id.foreign_keys))
    assert foreign_key.ondelete == "CASCADE"


def test_site_aggregates_reject_a_second_key(db_session: Session, site) -> None:
    db_session.add(SiteAggregates(id=2, site_id=site.id))
    with pytest.raises(IntegrityError):
        db_session.flush()


def test_published_is_timezone_aware(db_session: Session, post) -> None:
    db_session.expire(post)
    assert post.published.tzinfo is not None


def test_db_package_exports_schema_helpers() -> None:
    assert set(db.__all__) == {
        "Base",
        "SessionLocal",
        "create_tables",
        "drop_tables",
        "enable_sqlite_foreign_keys",
    }
