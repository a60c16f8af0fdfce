"""Exceptions raised by the aggregate engine."""


class AggregateError(RuntimeError):
    """Base exception for aggregate maintenance failures.

    Database errors raised while applying a batch are not wrapped; they
    propagate as-is and abort the caller's transaction.
    """


class UnknownThingKindError(AggregateError, ValueError):
    """Raised when a content kind other than post or comment is requested."""


class TransitionError(AggregateError, ValueError):
    """Raised when a row image lacks a column a reaction depends on."""
