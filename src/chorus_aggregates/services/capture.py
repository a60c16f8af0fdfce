"""Run aggregate reactions as part of every ORM flush.

A flush plays the role of one mutating statement: for each watched table the
inserted, deleted and relevant-column-updated instances are turned into a
single :class:`TransitionSet`, and each reaction runs once per table on the
flush's own connection. The aggregate writes therefore commit or roll back
together with the change that caused them.

Rows removed by ``ON DELETE CASCADE`` never reach the session. The
``before_flush`` hook reads them while they still exist and ``after_flush``
replays them as removals, so deleting a post also uncounts its comments.

Bulk Core statements (``session.execute(update(Comment)...)``) bypass the
flush; callers using them must hand their row images to
:class:`AggregateEngine` directly.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from chorus_aggregates.core.settings import settings
from chorus_aggregates.db.types import utcnow
from chorus_aggregates.models.comment import Comment
from chorus_aggregates.models.community import Community
from chorus_aggregates.models.instance import Site
from chorus_aggregates.models.moderation import ModRemoveComment, ModRemovePost
from chorus_aggregates.models.person import Person
from chorus_aggregates.models.post import Post
from chorus_aggregates.models.vote import CommentLike, PostLike

from . import reports, rollup, seeders, votes
from .cascade import CascadeSnapshot, snapshot_cascades
from .errors import TransitionError
from .things import ThingKind
from .transition import Row, TransitionSet, freeze_row

logger = logging.getLogger(__name__)


def row_image(obj: Any) -> Row:
    """Return the current column values of a mapped instance."""
    mapper = inspect(obj).mapper
    return freeze_row({attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs})


def before_image(obj: Any) -> Row:
    """Return the column values of a mapped instance as they were before the flush.

    Raises:
        TransitionError: If a changed column's previous value was never loaded.
    """
    state = inspect(obj)
    values: dict[str, Any] = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            values[attr.key] = history.deleted[0]
        elif history.unchanged:
            values[attr.key] = history.unchanged[0]
        elif history.added:
            raise TransitionError(
                f"previous value of {state.class_.__name__}.{attr.key} is unknown"
            )
        else:
            # Unchanged but expired: the stored value is still the old one.
            values[attr.key] = getattr(obj, attr.key)
    return freeze_row(values)


def _columns_changed(obj: Any, columns: Iterable[str]) -> bool:
    state = inspect(obj)
    return any(state.attrs[column].history.has_changes() for column in columns)


@dataclass(frozen=True)
class Reaction:
    """A handler subscribed to some change types of one mapped class."""

    model: type
    handler: Callable[[Connection, TransitionSet], Any]
    on_insert: bool = True
    on_delete: bool = False
    update_of: tuple[str, ...] = ()

    def collect(self, session: Session, cascade: CascadeSnapshot | None = None) -> TransitionSet:
        """Build this reaction's transition set from the session's pending changes.

        Rows in ``cascade`` that the database deleted on its own are added as
        removals when the reaction listens for deletes.
        """
        if cascade is None:
            cascade = CascadeSnapshot()
        old_rows: list[Row] = []
        new_rows: list[Row] = []
        if self.on_insert:
            new_rows.extend(row_image(obj) for obj in session.new if type(obj) is self.model)
        if self.on_delete:
            for obj in session.deleted:
                if type(obj) is not self.model:
                    continue
                row = before_image(obj)
                if not cascade.covers(self.model, row):
                    old_rows.append(cascade.annotate(self.model, row))
            old_rows.extend(cascade.old_rows(self.model))
        if self.update_of:
            for obj in session.dirty:
                if type(obj) is self.model and _columns_changed(obj, self.update_of):
                    old_rows.append(before_image(obj))
                    new_rows.append(row_image(obj))
        return TransitionSet(old_rows=tuple(old_rows), new_rows=tuple(new_rows))


class AggregateEngine:
    """Keeps aggregate tables consistent with batches of base-table changes.

    Each ``on_*`` method accepts the transition set of one statement and runs
    on the caller's connection; none of them commits. :meth:`after_flush`
    drives all of them from a session flush in dependency order.
    """

    def __init__(
        self,
        *,
        upvote_score: int | None = None,
        necro_window: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.upvote_score = settings.upvote_score if upvote_score is None else upvote_score
        if necro_window is None:
            necro_window = timedelta(hours=settings.necro_bump_window_hours)
        self.necro_window = necro_window
        self.clock = clock
        # Seeders first so later reactions find their rows; the site row is
        # seeded last because it counts what is already in the tables.
        self.reactions: tuple[Reaction, ...] = (
            Reaction(Person, self.on_person, on_delete=True),
            Reaction(Community, self.on_community, on_delete=True),
            Reaction(Post, self.on_post_featured, update_of=("featured_community", "featured_local")),
            Reaction(Comment, self.on_comment_created),
            Reaction(Post, self.on_post, on_delete=True, update_of=("deleted", "removed")),
            Reaction(PostLike, self.on_post_like, on_delete=True, update_of=("score",)),
            Reaction(CommentLike, self.on_comment_like, on_delete=True, update_of=("score",)),
            Reaction(Comment, self.on_comment, on_delete=True, update_of=("deleted", "removed")),
            Reaction(ModRemovePost, self.on_post_removal),
            Reaction(ModRemoveComment, self.on_comment_removal),
            Reaction(Site, self.on_site),
        )

    # Seeders

    def on_person(self, conn: Connection, transition: TransitionSet) -> None:
        seeders.person_aggregates_from_person(conn, transition.new_rows, transition.old_rows)

    def on_community(self, conn: Connection, transition: TransitionSet) -> None:
        seeders.community_aggregates_from_community(
            conn, transition.new_rows, transition.old_rows
        )

    def on_comment_created(self, conn: Connection, transition: TransitionSet) -> None:
        seeders.comment_aggregates_from_comment(conn, transition.new_rows)

    def on_post_featured(self, conn: Connection, transition: TransitionSet) -> None:
        """Create post aggregates or copy changed featured flags onto them."""
        seeders.post_aggregates_from_post(conn, transition.new_rows)

    def on_site(self, conn: Connection, transition: TransitionSet) -> bool:
        return seeders.site_aggregates_from_site(conn, transition.new_rows)

    # Counters

    def on_post(self, conn: Connection, transition: TransitionSet) -> None:
        rollup.post_count_from_post(conn, transition)

    def on_comment(self, conn: Connection, transition: TransitionSet) -> None:
        rollup.parent_aggregates_from_comment(
            conn,
            transition,
            now=self.clock(),
            necro_window=self.necro_window,
        )

    def on_post_like(self, conn: Connection, transition: TransitionSet) -> votes.VoteRollup:
        return votes.thing_aggregates_from_like(
            conn, ThingKind.POST, transition, upvote_score=self.upvote_score
        )

    def on_comment_like(self, conn: Connection, transition: TransitionSet) -> votes.VoteRollup:
        return votes.thing_aggregates_from_like(
            conn, ThingKind.COMMENT, transition, upvote_score=self.upvote_score
        )

    def on_orphaned_likes(
        self, conn: Connection, kind: ThingKind, rows: tuple[Row, ...]
    ) -> dict[int, int]:
        """Take the votes of likes whose target was deleted off the target's creator."""
        return votes.creator_scores_from_orphaned_likes(
            conn, kind, rows, upvote_score=self.upvote_score
        )

    # Moderation

    def on_post_removal(self, conn: Connection, transition: TransitionSet) -> set[int]:
        return reports.resolve_reports_when_thing_removed(
            conn, ThingKind.POST, transition.new_rows, now=self.clock()
        )

    def on_comment_removal(self, conn: Connection, transition: TransitionSet) -> set[int]:
        return reports.resolve_reports_when_thing_removed(
            conn, ThingKind.COMMENT, transition.new_rows, now=self.clock()
        )

    def _cascade_key(self) -> tuple[str, int]:
        return ("chorus_aggregates.cascade", id(self))

    def before_flush(self, session: Session, flush_context: Any, instances: Any) -> None:
        """Session ``before_flush`` hook reading the rows pending deletes will cascade to."""
        if not session.deleted:
            session.info.pop(self._cascade_key(), None)
            return
        # Before images of deleted rows cannot be loaded once the rows are gone.
        for obj in session.deleted:
            if inspect(obj).expired_attributes:
                session.refresh(obj)
        session.info[self._cascade_key()] = snapshot_cascades(
            session.connection(), session.deleted
        )

    def after_flush(self, session: Session, flush_context: Any) -> None:
        """Session ``after_flush`` hook applying every reaction to the flushed changes."""
        cascade = session.info.pop(self._cascade_key(), None)
        if cascade is None:
            cascade = CascadeSnapshot()
        batches = [(reaction, reaction.collect(session, cascade)) for reaction in self.reactions]
        batches = [(reaction, transition) for reaction, transition in batches if transition]
        if not batches and not cascade.orphaned_likes:
            return
        conn = session.connection()
        for reaction, transition in batches:
            logger.debug(
                "Dispatching %s to %s: %d old, %d new",
                reaction.model.__tablename__,
                reaction.handler.__name__,
                len(transition.old_rows),
                len(transition.new_rows),
            )
            reaction.handler(conn, transition)
        for kind, rows in cascade.orphaned_likes.items():
            logger.debug("Dispatching %d orphaned %s likes", len(rows), kind.value)
            self.on_orphaned_likes(conn, kind, rows)


def install_triggers(target: Any, engine: AggregateEngine | None = None) -> AggregateEngine:
    """Attach aggregate maintenance to a Session, sessionmaker or Session class.

    Returns:
        The engine whose flush hooks were registered; pass it to
        :func:`uninstall_triggers` to detach.
    """
    engine = engine or AggregateEngine()
    event.listen(target, "before_flush", engine.before_flush)
    event.listen(target, "after_flush", engine.after_flush)
    return engine


def uninstall_triggers(target: Any, engine: AggregateEngine) -> None:
    """Detach an engine previously attached with :func:`install_triggers`."""
    event.remove(target, "before_flush", engine.before_flush)
    event.remove(target, "after_flush", engine.after_flush)
