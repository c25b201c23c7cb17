"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rallyrank.db.models import Base, Player
from rallyrank.elo.calculator import EloCalculator
from rallyrank.matches.lifecycle import MatchService


@pytest.fixture
def test_engine():
    """
    Create a fresh in-memory database for one test.

    StaticPool keeps a single connection so the API tests, which run
    handlers in worker threads, see the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory configured like the production SessionLocal."""
    return sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    """A database session for a test, rolled back afterwards."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def add_player(db_session):
    """
    Factory for registered players.

    Usage:
        add_player("alice", singles_elo=1100)
    """
    def _add(player_id, singles_elo=1000, doubles_elo=1000, gender="male", **kwargs):
        player = Player(
            id=player_id,
            username=kwargs.pop("username", player_id.capitalize()),
            gender=gender,
            singles_elo=singles_elo,
            doubles_elo=doubles_elo,
            **kwargs,
        )
        db_session.add(player)
        db_session.flush()
        return player

    return _add


@pytest.fixture
def calculator():
    """Default v2 calculator with K=32."""
    return EloCalculator()


@pytest.fixture
def service(db_session, calculator):
    """Match service bound to the test session."""
    return MatchService(db_session, calculator=calculator)
