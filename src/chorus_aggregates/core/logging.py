"""Logging setup for command-line entry points."""

from __future__ import annotations

import logging

from chorus_aggregates.core.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging from ``LOG_LEVEL`` unless a level is given."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
    )
