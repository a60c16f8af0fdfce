"""Aggregate maintenance for the content hierarchy."""

from chorus_aggregates.core.settings import settings
from chorus_aggregates.db.session import SessionLocal

from .capture import AggregateEngine, install_triggers, uninstall_triggers
from .errors import AggregateError, TransitionError, UnknownThingKindError
from .rank import controversy_rank
from .things import ThingKind, thing_tables
from .transition import TransitionSet, combine_transition_tables

# Engine attached to the application's SessionLocal, if enabled.
default_engine: AggregateEngine | None = (
    install_triggers(SessionLocal) if settings.install_triggers else None
)

__all__ = [
    "AggregateEngine", "install_triggers", "uninstall_triggers",
    "AggregateError", "TransitionError", "UnknownThingKindError",
    "controversy_rank",
    "ThingKind", "thing_tables",
    "TransitionSet", "combine_transition_tables",
    "default_engine",
]
