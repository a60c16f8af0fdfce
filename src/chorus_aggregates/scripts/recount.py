"""Rebuild all aggregate tables from the base tables."""
from __future__ import annotations

import argparse
import logging
import sys

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from chorus_aggregates.core.logging import configure_logging
from chorus_aggregates.core.settings import settings
from chorus_aggregates.db.session import enable_sqlite_foreign_keys
from chorus_aggregates.services.recount import recount_aggregates

logger = logging.getLogger("chorus_aggregates.scripts.recount")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Recompute every aggregate row")
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to effective settings URL)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Recount inside a transaction and roll it back.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    engine = enable_sqlite_foreign_keys(
        create_engine(args.url or settings.database_url_sync, echo=settings.sql_debug)
    )
    try:
        with engine.connect() as conn:
            with conn.begin() as transaction:
                recount_aggregates(conn)
                if args.dry_run:
                    logger.info("Dry run: rolling back")
                    transaction.rollback()
    except SQLAlchemyError as exc:
        logger.error("Recount failed: %s", exc)
        return 1
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
