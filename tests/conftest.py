# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from itertools import count
from typing import Any

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from chorus_aggregates.db.session import create_tables, drop_tables, enable_sqlite_foreign_keys
from chorus_aggregates.models import Comment, Community, Instance, Person, Post, Site
from chorus_aggregates.services import AggregateEngine, install_triggers, uninstall_triggers

TEST_DB_URL = "sqlite://"

_NAME_COUNTER = count(1)


def make_engine() -> Engine:
    """Return an in-memory SQLite engine with the full schema created."""
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    create_tables(engine)
    return engine


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = make_engine()
    try:
        yield engine
    finally:
        drop_tables(engine)
        engine.dispose()


@pytest.fixture()
def standalone_engine() -> Generator[Engine, None, None]:
    """Separate database for tests that need real commits."""
    engine = make_engine()
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def connection(engine: Engine) -> Iterator[Connection]:
    """Connection inside a transaction that is rolled back after the test."""
    connection = engine.connect()
    transaction = connection.begin()
    try:
        yield connection
    finally:
        if transaction.is_active:
            transaction.rollback()
        connection.close()


@pytest.fixture()
def session_factory(connection: Connection) -> sessionmaker:
    return sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def aggregate_engine(session_factory: sessionmaker) -> Iterator[AggregateEngine]:
    """Aggregate maintenance attached to the test sessions."""
    aggregate_engine = install_triggers(session_factory, AggregateEngine())
    try:
        yield aggregate_engine
    finally:
        if event.contains(session_factory, "after_flush", aggregate_engine.after_flush):
            uninstall_triggers(session_factory, aggregate_engine)


@pytest.fixture()
def db_session(
    session_factory: sessionmaker,
    aggregate_engine: AggregateEngine,
) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def instance(db_session: Session) -> Instance:
    """Create the local instance."""
    instance = Instance(domain="chorus.test")
    db_session.add(instance)
    db_session.flush()
    return instance


@pytest.fixture()
def make_person(db_session: Session, instance: Instance) -> Callable[..., Person]:
    """Return a factory creating persisted persons."""

    def _make(**overrides: Any) -> Person:
        person = Person(name=f"person{next(_NAME_COUNTER)}", instance_id=instance.id)
        for key, value in overrides.items():
            setattr(person, key, value)
        db_session.add(person)
        db_session.flush()
        return person

    return _make


@pytest.fixture()
def make_community(db_session: Session, instance: Instance) -> Callable[..., Community]:
    """Return a factory creating persisted communities."""

    def _make(**overrides: Any) -> Community:
        name = f"community{next(_NAME_COUNTER)}"
        community = Community(name=name, title=name.title(), instance_id=instance.id)
        for key, value in overrides.items():
            setattr(community, key, value)
        db_session.add(community)
        db_session.flush()
        return community

    return _make


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., Post]:
    """Return a factory creating persisted posts."""

    def _make(creator: Person, community: Community, **overrides: Any) -> Post:
        post = Post(
            name=f"post{next(_NAME_COUNTER)}",
            creator_id=creator.id,
            community_id=community.id,
        )
        for key, value in overrides.items():
            setattr(post, key, value)
        db_session.add(post)
        db_session.flush()
        return post

    return _make


@pytest.fixture()
def make_comment(db_session: Session) -> Callable[..., Comment]:
    """Return a factory creating persisted comments."""

    def _make(creator: Person, post: Post, **overrides: Any) -> Comment:
        comment = Comment(
            content=f"comment{next(_NAME_COUNTER)}",
            creator_id=creator.id,
            post_id=post.id,
        )
        for key, value in overrides.items():
            setattr(comment, key, value)
        db_session.add(comment)
        db_session.flush()
        return comment

    return _make


@pytest.fixture()
def site(db_session: Session, instance: Instance) -> Site:
    """Create the local site, which seeds the site aggregates."""
    site = Site(name="Chorus", instance_id=instance.id)
    db_session.add(site)
    db_session.flush()
    return site


@pytest.fixture()
def author(make_person: Callable[..., Person]) -> Person:
    return make_person()


@pytest.fixture()
def voter(make_person: Callable[..., Person]) -> Person:
    return make_person()


@pytest.fixture()
def community(make_community: Callable[..., Community]) -> Community:
    return make_community()


@pytest.fixture()
def post(make_post: Callable[..., Post], author: Person, community: Community) -> Post:
    return make_post(author, community)


@pytest.fixture()
def fetch(db_session: Session) -> Callable[[type, Any], Any]:
    """Return a loader that reads rows fresh from the database.

    Aggregate rows are written with Core statements, so identity-map copies go
    stale after every flush.
    """

    def _fetch(model: type, key: Any) -> Any:
        return db_session.get(model, key, populate_existing=True)

    return _fetch
