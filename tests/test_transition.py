"""Tests for transition sets and the signed row stream."""

import pytest

from chorus_aggregates.services.errors import TransitionError
from chorus_aggregates.services.transition import (
    TransitionSet,
    combine_transition_tables,
    require_columns,
    sum_by,
)


def test_combined_stream_tags_old_rows_negative_then_new_rows_positive() -> None:
    old = [{"post_id": 1}, {"post_id": 2}]
    new = [{"post_id": 2}]
    assert list(combine_transition_tables(old, new)) == [
        (-1, {"post_id": 1}),
        (-1, {"post_id": 2}),
        (1, {"post_id": 2}),
    ]


def test_sum_by_nets_changes_per_key() -> None:
    """An update that keeps the key cancels out; keys are kept with 0."""
    transition = TransitionSet.updated(
        before=[{"post_id": 1}, {"post_id": 2}],
        after=[{"post_id": 1}, {"post_id": 3}],
    )
    assert sum_by(transition.combined(), "post_id") == {1: 0, 2: -1, 3: 1}


def test_sum_by_accepts_callable_key() -> None:
    transition = TransitionSet.inserted([{"score": 1}, {"score": -1}, {"score": 1}])
    totals = sum_by(transition.combined(), lambda row: row["score"] > 0)
    assert totals == {True: 2, False: 1}


def test_empty_transition_is_falsy() -> None:
    assert not TransitionSet()
    assert TransitionSet.deleted([{"id": 1}])


def test_transitions_add_up() -> None:
    combined = TransitionSet.inserted([{"id": 1}]) + TransitionSet.deleted([{"id": 2}])
    assert [row["id"] for row in combined.new_rows] == [1]
    assert [row["id"] for row in combined.old_rows] == [2]


def test_row_images_are_read_only() -> None:
    transition = TransitionSet.inserted([{"id": 1}])
    with pytest.raises(TypeError):
        transition.new_rows[0]["id"] = 2  # type: ignore[index]


def test_missing_columns_raise_transition_error() -> None:
    with pytest.raises(TransitionError, match="score"):
        require_columns([{"post_id": 1}], "post_id", "score")

    transition = TransitionSet.updated(before=[{"id": 1}], after=[{"id": 1, "removed": True}])
    with pytest.raises(TransitionError):
        transition.require("id", "removed")
