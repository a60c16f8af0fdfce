"""Transition sets: the before and after row images of one mutating statement.

A reaction never looks at rows one at a time. The removed images are tagged
``-1`` and the added images ``+1``; grouping that stream by a key and summing
the tags gives the net change per key for the whole batch, however many rows
the statement touched. An update contributes its old image as a removal and
its new image as an addition.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .errors import TransitionError

Row = Mapping[str, Any]
SignedRow = tuple[int, Row]


def freeze_row(values: Mapping[str, Any]) -> Row:
    """Return a read-only copy of ``values`` usable as a row image."""
    return MappingProxyType(dict(values))


def combine_transition_tables(
    old_rows: Iterable[Row],
    new_rows: Iterable[Row],
) -> Iterator[SignedRow]:
    """Yield ``(-1, row)`` for every removed row, then ``(1, row)`` for every added row."""
    for row in old_rows:
        yield -1, row
    for row in new_rows:
        yield 1, row


def sum_by(
    pairs: Iterable[SignedRow],
    key: str | Callable[[Row], Hashable],
) -> dict[Hashable, int]:
    """Sum ``count_diff`` per group in a single pass.

    Args:
        pairs: Signed rows, usually from :func:`combine_transition_tables`.
        key: Column name or callable producing the grouping key.

    Returns:
        Net change per key. Keys whose changes cancel out are kept with ``0``.
    """
    key_fn = (lambda row: row[key]) if isinstance(key, str) else key
    totals: dict[Hashable, int] = defaultdict(int)
    for count_diff, row in pairs:
        totals[key_fn(row)] += count_diff
    return dict(totals)


def require_columns(rows: Iterable[Row], *columns: str) -> None:
    """Raise :class:`TransitionError` if any row image lacks one of ``columns``."""
    for row in rows:
        missing = [column for column in columns if column not in row]
        if missing:
            raise TransitionError(f"row image is missing columns: {', '.join(missing)}")


@dataclass(frozen=True)
class TransitionSet:
    """Row images removed and added by one statement.

    Inserts only fill ``new_rows``, deletes only fill ``old_rows`` and updates
    fill both with matching before/after images.
    """

    old_rows: tuple[Row, ...] = ()
    new_rows: tuple[Row, ...] = ()

    @classmethod
    def inserted(cls, rows: Iterable[Mapping[str, Any]]) -> TransitionSet:
        """Build an insert-only transition."""
        return cls(new_rows=tuple(freeze_row(row) for row in rows))

    @classmethod
    def deleted(cls, rows: Iterable[Mapping[str, Any]]) -> TransitionSet:
        """Build a delete-only transition."""
        return cls(old_rows=tuple(freeze_row(row) for row in rows))

    @classmethod
    def updated(
        cls,
        before: Iterable[Mapping[str, Any]],
        after: Iterable[Mapping[str, Any]],
    ) -> TransitionSet:
        """Build an update transition from before and after images."""
        return cls(
            old_rows=tuple(freeze_row(row) for row in before),
            new_rows=tuple(freeze_row(row) for row in after),
        )

    def __bool__(self) -> bool:
        return bool(self.old_rows or self.new_rows)

    def __add__(self, other: TransitionSet) -> TransitionSet:
        return TransitionSet(
            old_rows=self.old_rows + other.old_rows,
            new_rows=self.new_rows + other.new_rows,
        )

    def combined(self) -> Iterator[SignedRow]:
        """Return the signed row stream for this transition."""
        return combine_transition_tables(self.old_rows, self.new_rows)

    def require(self, *columns: str) -> None:
        """Validate that every image carries ``columns``."""
        require_columns(self.old_rows, *columns)
        require_columns(self.new_rows, *columns)
