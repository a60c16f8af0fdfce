"""Vote aggregation for posts and comments.

A batch of like inserts, deletes and score changes is reduced to one
``(Δupvotes, Δdownvotes)`` pair per target. Each target's aggregate row is
updated once, then the net score change is summed per creator and applied to
``person_aggregates`` once per creator. Likes deleted together with their
target only move the creator's score, since the target's aggregates are gone.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy import bindparam, select, update
from sqlalchemy.engine import Connection

from chorus_aggregates.core.settings import settings
from chorus_aggregates.models.aggregates import PersonAggregates

from .rank import controversy_rank_expr
from .things import ThingKind, thing_tables
from .transition import Row, TransitionSet, require_columns

logger = logging.getLogger(__name__)


@dataclass
class VoteRollup:
    """Deltas applied by one vote batch."""

    kind: ThingKind
    # thing id -> (Δupvotes, Δdownvotes)
    target_deltas: dict[int, tuple[int, int]] = field(default_factory=dict)
    # creator id -> Δscore
    creator_deltas: dict[int, int] = field(default_factory=dict)


def vote_deltas(
    transition: TransitionSet,
    id_key: str,
    upvote_score: int,
) -> dict[int, tuple[int, int]]:
    """Group signed like rows by target into ``(Δupvotes, Δdownvotes)``.

    A score equal to ``upvote_score`` is an upvote; every other score is a
    downvote. Targets whose changes cancel out are omitted.
    """
    totals: dict[int, list[int]] = defaultdict(lambda: [0, 0])
    for count_diff, row in transition.combined():
        slot = totals[row[id_key]]
        if row["score"] == upvote_score:
            slot[0] += count_diff
        else:
            slot[1] += count_diff
    return {
        thing_id: (upvotes, downvotes)
        for thing_id, (upvotes, downvotes) in totals.items()
        if upvotes or downvotes
    }


def _apply_creator_scores(conn: Connection, score_column: str, deltas: dict[int, int]) -> None:
    if not deltas:
        return
    person = PersonAggregates.__table__
    conn.execute(
        update(person)
        .where(person.c.person_id == bindparam("b_person_id"))
        .values({score_column: person.c[score_column] + bindparam("d_score")}),
        [
            {"b_person_id": creator_id, "d_score": score}
            for creator_id, score in sorted(deltas.items())
        ],
    )


def thing_aggregates_from_like(
    conn: Connection,
    kind: ThingKind | str,
    transition: TransitionSet,
    *,
    upvote_score: int | None = None,
) -> VoteRollup:
    """Apply a batch of vote changes to thing and creator aggregates.

    Args:
        conn: Connection inside the transaction that changed the likes.
        kind: Which content kind the likes belong to.
        transition: Like rows removed and added by the statement.
        upvote_score: Score value counted as an upvote (defaults to settings).

    Returns:
        The per-target and per-creator deltas that were applied.
    """
    tables = thing_tables(kind)
    rollup = VoteRollup(kind=tables.kind)
    if not transition:
        return rollup
    transition.require(tables.id_key, "score")

    if upvote_score is None:
        upvote_score = settings.upvote_score
    deltas = vote_deltas(transition, tables.id_key, upvote_score)
    if not deltas:
        return rollup

    aggregates = tables.aggregates
    d_upvotes = bindparam("d_upvotes")
    d_downvotes = bindparam("d_downvotes")
    new_upvotes = aggregates.c.upvotes + d_upvotes
    new_downvotes = aggregates.c.downvotes + d_downvotes
    conn.execute(
        update(aggregates)
        .where(aggregates.c[tables.id_key] == bindparam("b_thing_id"))
        .values(
            score=aggregates.c.score + d_upvotes - d_downvotes,
            upvotes=new_upvotes,
            downvotes=new_downvotes,
            controversy_rank=controversy_rank_expr(new_upvotes, new_downvotes),
        ),
        [
            {"b_thing_id": thing_id, "d_upvotes": up, "d_downvotes": down}
            for thing_id, (up, down) in sorted(deltas.items())
        ],
    )
    rollup.target_deltas = deltas

    # Only things that have an aggregate row pass their score on to the creator.
    thing = tables.thing
    creators = conn.execute(
        select(thing.c.id, thing.c.creator_id)
        .join(aggregates, aggregates.c[tables.id_key] == thing.c.id)
        .where(thing.c.id.in_(deltas))
    ).all()
    if len(creators) < len(deltas):
        missing = set(deltas) - {thing_id for thing_id, _ in creators}
        logger.warning("Votes on %s without aggregates: %s", tables.kind.value, sorted(missing))

    creator_deltas: dict[int, int] = defaultdict(int)
    for thing_id, creator_id in creators:
        up, down = deltas[thing_id]
        creator_deltas[creator_id] += up - down
    rollup.creator_deltas = {
        creator_id: score for creator_id, score in creator_deltas.items() if score
    }
    _apply_creator_scores(conn, tables.score_column, rollup.creator_deltas)

    logger.debug(
        "Applied %s votes: %d targets, %d creators",
        tables.kind.value,
        len(rollup.target_deltas),
        len(rollup.creator_deltas),
    )
    return rollup


def creator_scores_from_orphaned_likes(
    conn: Connection,
    kind: ThingKind | str,
    rows: Sequence[Row],
    *,
    upvote_score: int | None = None,
) -> dict[int, int]:
    """Take the votes on deleted things back off their creators' scores.

    The things and their aggregates are already gone, so each like image
    must carry the creator of the thing it voted on as ``creator_id``.

    Returns:
        The score change applied per creator.
    """
    tables = thing_tables(kind)
    if not rows:
        return {}
    require_columns(rows, "creator_id", "score")
    if upvote_score is None:
        upvote_score = settings.upvote_score
    deltas = vote_deltas(TransitionSet.deleted(rows), "creator_id", upvote_score)
    creator_deltas = {
        creator_id: up - down for creator_id, (up, down) in deltas.items() if up != down
    }
    _apply_creator_scores(conn, tables.score_column, creator_deltas)
    logger.debug(
        "Withdrew %d orphaned %s votes from %d creators",
        len(rows),
        tables.kind.value,
        len(creator_deltas),
    )
    return creator_deltas
