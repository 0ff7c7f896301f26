from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from portfolio_chat.config import DATABASE_URL

# ---------------------------------------------------------------------------
# Database configuration
# ---------------------------------------------------------------------------


def _make_engine(url: str) -> Engine:
    if url.startswith("sqlite:///"):
        # Make sure the parent directory of the database file exists.
        db_path = url[len("sqlite:///"):]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    # ``check_same_thread`` must be disabled for SQLite to allow usage from
    # FastAPI's threadpool.
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
        echo=False,
    )


_engine = _make_engine(DATABASE_URL)

# Session factory. Every CRUD helper opens a short-lived session with
# ``SessionLocal()`` and closes it before returning, so no session is shared
# between requests or threads.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

# Declarative base class that the ORM models should inherit from.
Base = declarative_base()

# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_engine() -> Engine:
    return _engine


def configure_database(url: str) -> None:
    """Point the session factory at another database (used by tests and scripts)."""
    global _engine
    _engine.dispose()
    _engine = _make_engine(url)
    SessionLocal.configure(bind=_engine)


def init_db() -> None:
    """Create tables if they do not yet exist.

    Importing ``portfolio_chat.memory.models`` registers all subclasses with the
    Base metadata, after which ``metadata.create_all`` will build the schema.
    """
    # The models import needs to stay **inside** the function to avoid circular
    # imports.
    from . import models  # noqa: F401  (side-effect import)

    Base.metadata.create_all(bind=_engine)
