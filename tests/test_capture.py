"""Tests for running aggregate reactions inside session flushes."""

import logging

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy import event
from sqlalchemy.orm import Session, sessionmaker

from chorus_aggregates.models import (
    Comment,
    CommentLike,
    Community,
    Instance,
    Person,
    PersonAggregates,
    Post,
    PostAggregates,
    PostLike,
)
from chorus_aggregates.services import (
    AggregateEngine,
    ThingKind,
    UnknownThingKindError,
    install_triggers,
    thing_tables,
    uninstall_triggers,
)
from chorus_aggregates.services.cascade import snapshot_cascades
from chorus_aggregates.services.capture import before_image, row_image
from chorus_aggregates.services.transition import TransitionSet

def test_row_images_hold_every_column(db_session: Session, post: Post) -> None:
    image = row_image(post)
    assert image["id"] == post.id
    assert set(image) >= {"community_id", "creator_id", "deleted", "removed", "published"}


def test_before_image_reports_previous_values(db_session: Session, post: Post) -> None:
    post.removed = True
    assert before_image(post)["removed"] is False
    assert row_image(post)["removed"] is True
    db_session.flush()


def test_uninstalled_engine_stops_maintaining(
    db_session: Session,
    session_factory: sessionmaker,
    aggregate_engine: AggregateEngine,
    instance: Instance,
    fetch,
) -> None:
    uninstall_triggers(session_factory, aggregate_engine)
    person = Person(name="untracked", instance_id=instance.id)
    db_session.add(person)
    db_session.flush()
    assert fetch(PersonAggregates, person.id) is None
    assert not event.contains(session_factory, "before_flush", aggregate_engine.before_flush)


def test_engine_methods_accept_core_transitions(
    db_session: Session, aggregate_engine: AggregateEngine, post: Post, voter: Person, fetch
) -> None:
    """Callers writing with Core statements hand their row images over directly."""
    transition = TransitionSet.inserted([{"post_id": post.id, "score": 1}])
    aggregate_engine.on_post_like(db_session.connection(), transition)
    assert fetch(PostAggregates, post.id).upvotes == 1


def test_dispatch_is_logged(
    db_session: Session, instance: Instance, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG, logger="chorus_aggregates.services.capture"):
        db_session.add(Person(name="logged", instance_id=instance.id))
        db_session.flush()
    assert "person to on_person" in caplog.text


def test_database_errors_propagate(db_session: Session, voter: Person) -> None:
    db_session.add(PostLike(person_id=voter.id, post_id=424242, score=1))
    with pytest.raises(IntegrityError):
        db_session.flush()


def test_unknown_kind_is_rejected() -> None:
    assert thing_tables("comment").kind is ThingKind.COMMENT
    with pytest.raises(UnknownThingKindError):
        thing_tables("page")
    with pytest.raises(ValueError):
        thing_tables("")


def test_rollback_discards_aggregate_writes(standalone_engine) -> None:
    """Aggregate writes share the mutation's transaction."""
    factory = sessionmaker(bind=standalone_engine, expire_on_commit=False)
    install_triggers(factory)

    with factory() as session:
        instance = Instance(domain="rollback.test")
        session.add(instance)
        session.flush()
        person = Person(name="author", instance_id=instance.id)
        community = Community(name="rollback", title="Rollback", instance_id=instance.id)
        session.add_all([person, community])
        session.flush()
        post = Post(name="kept", creator_id=person.id, community_id=community.id)
        session.add(post)
        session.commit()
        post_id, person_id = post.id, person.id

    with factory() as session:
        session.add(PostLike(person_id=person_id, post_id=post_id, score=1))
        session.flush()
        assert session.get(PostAggregates, post_id).score == 1
        session.rollback()

    with factory() as session:
        assert session.get(PostAggregates, post_id).score == 0
        assert session.get(PersonAggregates, person_id).post_score == 0


def test_cascade_snapshot_reads_dependent_rows(
    db_session: Session, post: Post, voter: Person, make_comment
) -> None:
    comment = make_comment(voter, post)
    db_session.add_all(
        [
            PostLike(person_id=voter.id, post_id=post.id, score=1),
            CommentLike(person_id=voter.id, comment_id=comment.id, score=-1),
        ]
    )
    db_session.flush()

    snapshot = snapshot_cascades(db_session.connection(), [post])

    assert [row["id"] for row in snapshot.old_rows(Comment)] == [comment.id]
    assert snapshot.old_rows(Comment)[0]["community_id"] == post.community_id
    assert snapshot.old_rows(Post) == ()
    post_likes = snapshot.orphaned_likes[ThingKind.POST]
    assert [(row["person_id"], row["creator_id"]) for row in post_likes] == [
        (voter.id, post.creator_id)
    ]
    assert [row["score"] for row in snapshot.orphaned_likes[ThingKind.COMMENT]] == [-1]
    assert snapshot.old_rows(PostLike) == ()


def test_cascade_snapshot_is_empty_without_deletes(db_session: Session) -> None:
    snapshot = snapshot_cascades(db_session.connection(), [])
    assert not snapshot
    assert snapshot.orphaned_likes == {}


def test_cascade_snapshot_does_not_leak_into_later_flushes(
    db_session: Session, post: Post, voter: Person, make_comment, fetch
) -> None:
    """Each flush replays only the cascades of its own deletes."""
    make_comment(voter, post)
    db_session.delete(post)
    db_session.flush()
    assert fetch(PersonAggregates, voter.id).comment_count == 0

    voter.name = "renamed"
    db_session.flush()
    assert fetch(PersonAggregates, voter.id).comment_count == 0
    assert not db_session.info
