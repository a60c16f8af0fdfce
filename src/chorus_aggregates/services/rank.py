"""Rank calculations."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Float, case, cast, literal, or_
from sqlalchemy.sql.elements import ColumnElement


def controversy_rank(upvotes: float, downvotes: float) -> float:
    """Score a vote split, rewarding balanced votes over lopsided ones.

    Returns 0 unless both sides have votes; otherwise total engagement scaled
    by the ratio of the smaller side to the larger one. Symmetric in its
    arguments.
    """
    if downvotes <= 0 or upvotes <= 0:
        return 0.0
    if upvotes > downvotes:
        balance = downvotes / upvotes
    else:
        balance = upvotes / downvotes
    return float((upvotes + downvotes) * balance)


def controversy_rank_expr(upvotes: Any, downvotes: Any) -> ColumnElement[float]:
    """SQL form of :func:`controversy_rank` for set-based updates.

    ``upvotes`` and ``downvotes`` are column expressions, typically the
    post-update totals (``table.c.upvotes + delta``).
    """
    up = cast(upvotes, Float)
    down = cast(downvotes, Float)
    return case(
        (or_(upvotes <= 0, downvotes <= 0), literal(0.0, Float)),
        (upvotes > downvotes, (up + down) * (down / up)),
        else_=(up + down) * (up / down),
    )
