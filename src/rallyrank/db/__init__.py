"""
Database module for RallyRank.

Provides SQLAlchemy ORM models and session management.

Usage:
    from rallyrank.db import get_session, Player, Match

    with get_session() as session:
        pending = session.query(Match).filter(Match.status == "pending").all()
"""

from rallyrank.db.models import (
    Base,
    EloHistory,
    Match,
    MatchPlayer,
    Player,
)
from rallyrank.db.session import SessionLocal, get_db, get_engine, get_session

__all__ = [
    # Base
    "Base",
    # Models
    "Player",
    "Match",
    "MatchPlayer",
    "EloHistory",
    # Session
    "get_session",
    "get_engine",
    "get_db",
    "SessionLocal",
]
