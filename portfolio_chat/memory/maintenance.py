"""Initialise the chat database and prune stale rows.

Usage: python -m portfolio_chat.memory.maintenance [--cleanup] [--database-url URL]
"""
from __future__ import annotations

import argparse
from typing import Dict, List, Optional

from portfolio_chat.config import (
    DATABASE_URL,
    SESSION_RETENTION_DAYS,
    TELEMETRY_RETENTION_DAYS,
)
from portfolio_chat.utils.logger import get_logger, log_function_call

from . import crud
from .db import configure_database, init_db

logger = get_logger(__name__)


@log_function_call()
def initialize_database(database_url: Optional[str] = None) -> None:
    if database_url and database_url != DATABASE_URL:
        configure_database(database_url)
    init_db()


@log_function_call()
def cleanup_stale_rows(
    session_days: int = SESSION_RETENTION_DAYS,
    telemetry_days: int = TELEMETRY_RETENTION_DAYS,
) -> Dict[str, int]:
    sessions = crud.cleanup_old_sessions(session_days)
    events = crud.cleanup_old_events(telemetry_days)
    logger.info("Removed %d idle sessions and %d old telemetry events", sessions, events)
    return {"sessions": sessions, "telemetry_events": events}


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL (defaults to PORTFOLIO_CHAT_DB)")
    parser.add_argument("--cleanup", action="store_true", help="delete idle sessions and old telemetry events")
    args = parser.parse_args(argv)

    initialize_database(args.database_url)
    if args.cleanup:
        cleanup_stale_rows()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
