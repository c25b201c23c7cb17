"""
Database session management for RallyRank.

Provides SQLAlchemy engine and session factory with proper
connection pooling configuration. Uses the settings from config.py.

Every ladder operation runs inside one session, and that session is the
transaction boundary: match services flush but never commit, so either
everything an operation wrote is committed together or nothing is.

Usage:
    # As a context manager (recommended for scripts)
    from rallyrank.db import get_session

    with get_session() as session:
        MatchService(session).confirm_match(match_id, "player-b")
        # Commits automatically on exit, rolls back on exception

    # As a dependency injection (for FastAPI)
    from rallyrank.db.session import get_db

    @router.post("/matches/{match_id}/confirm")
    def confirm(match_id: int, db: Session = Depends(get_db)):
        ...
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from rallyrank.config import settings


def get_engine(database_url: str | None = None) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    The engine is configured with:
    - Connection pool for efficient reuse
    - Echo mode disabled (set LOG_LEVEL=DEBUG for SQL logging)
    - Pre-ping to verify connections before use (handles stale connections)
    """
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        # SQLite pools don't accept size/overflow arguments
        return create_engine(url, echo=settings.log_level == "DEBUG")

    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,  # Verify connection is alive before using
        echo=settings.log_level == "DEBUG",  # Log SQL only in debug mode
    )


# Created lazily so importing this module never opens a connection
_engine: Engine | None = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


# Session factory - bound to the engine on first use
SessionLocal = sessionmaker(
    autocommit=False,  # We'll handle commits explicitly
    autoflush=False,  # Don't auto-flush before queries (more control)
)


def _new_session() -> Session:
    return SessionLocal(bind=_get_engine())


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.
    This is the recommended way to use sessions in scripts and tasks.

    Example:
        with get_session() as session:
            player = session.get(Player, "auth-123")
            player.singles_elo = 1040
            # Commits automatically when exiting the block

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = _new_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency injection function for FastAPI.

    One request is one unit of work: the session commits when the handler
    returns and rolls back if it raised, so a failed confirmation never
    leaves partial rating updates behind.
    """
    with get_session() as db:
        yield db
