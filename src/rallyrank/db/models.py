"""
SQLAlchemy ORM models for RallyRank.

This module defines the tables the match lifecycle and rating engine work
against. User profiles are owned by an external service; the players table
holds just the identity and rating columns this core reads and writes.

Key design decisions:
- Players are keyed by the auth id issued by the identity provider
- Each discipline keeps an independent rating; overall_elo is derived
- A match stores its canonical score string, never a parsed form
- match_players.is_winner mirrors the parsed score so reads never re-parse
- elo_history is append-only with one row per (player, match)

Tables:
- players: Rating snapshot per player
- matches: Submitted matches and their confirmation state
- match_players: Team membership per match
- elo_history: Rating changes applied by confirmed matches
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from rallyrank.config import settings

def _starting_elo() -> int:
    """Rating given to a new player, read when the row is inserted."""
    return settings.default_elo


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONList = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Player Models
# =============================================================================

class Player(Base):
    """
    Rating snapshot for one player.

    singles_elo and doubles_elo are authoritative. overall_elo is a blend of
    the two weighted by matches played, recomputed whenever a match is
    confirmed (see elo.overall). It stays NULL until the first confirmed match.
    """
    __tablename__ = "players"

    # Auth id from the identity provider
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # 'male', 'female'

    singles_elo: Mapped[int] = mapped_column(Integer, nullable=False, default=_starting_elo)
    doubles_elo: Mapped[int] = mapped_column(Integer, nullable=False, default=_starting_elo)
    overall_elo: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    singles_matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    doubles_matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_players_singles_elo", "singles_elo"),
        Index("idx_players_doubles_elo", "doubles_elo"),
        Index("idx_players_overall_elo", "overall_elo"),
    )

    def rating_for(self, discipline: str) -> int:
        """Current rating in 'singles' or 'doubles'."""
        if discipline == "singles":
            return self.singles_elo
        if discipline == "doubles":
            return self.doubles_elo
        raise ValueError(f"Unknown discipline '{discipline}'")

    def __repr__(self) -> str:
        return (
            f"<Player(id='{self.id}', singles={self.singles_elo}, "
            f"doubles={self.doubles_elo}, overall={self.overall_elo})>"
        )


# =============================================================================
# Match Models
# =============================================================================

class Match(Base):
    """
    A submitted match and its confirmation state.

    Score format:
    - score: Canonical set scores from team A's point of view, "21-15,18-21,21-19"

    Match status lifecycle:
    - 'pending': Submitted, waiting for the opposing side to confirm
    - 'confirmed': Opposing side agreed; ratings were applied (terminal)
    - 'cancelled': Withdrawn before confirmation (terminal)
    Rejected matches are deleted outright.

    needs_confirmation_from_list always holds the player ids on the side
    opposite submitted_by. Any one of them can confirm.
    """
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)

    match_type: Mapped[str] = mapped_column(String(10), nullable=False)  # 'singles', 'doubles'
    score: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    # Who created the match, and who proposed the current score
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    submitted_by: Mapped[str] = mapped_column(String(64), nullable=False)
    needs_confirmation_from_list: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    played_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # ==========================================================================
    # Cancellation
    # ==========================================================================

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ==========================================================================
    # Rating changes (set on confirmation)
    # ==========================================================================

    elo_change_side_a: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    elo_change_side_b: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Only settable once confirmed
    video_link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    video_added_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    players: Mapped[list["MatchPlayer"]] = relationship(
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchPlayer.id",
    )

    __table_args__ = (
        CheckConstraint("match_type IN ('singles', 'doubles')", name="ck_matches_match_type"),
        CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="ck_matches_status"),
        Index("idx_matches_status", "status"),
        Index("idx_matches_played_at", "played_at"),
    )

    @property
    def discipline(self) -> str:
        return self.match_type

    def team_ids(self, team: str) -> list[str]:
        """Player ids on team 'A' or 'B', in insertion order."""
        return [p.player_id for p in self.players if p.team == team]

    @property
    def participant_ids(self) -> list[str]:
        return [p.player_id for p in self.players]

    def team_of(self, player_id: str) -> Optional[str]:
        """Team label of a participant, or None when not in the match."""
        for p in self.players:
            if p.player_id == player_id:
                return p.team
        return None

    @property
    def winner_team(self) -> Optional[str]:
        """Winning team according to the stored is_winner flags."""
        for p in self.players:
            if p.is_winner:
                return p.team
        return None

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, type='{self.match_type}', status='{self.status}', score='{self.score}')>"


class MatchPlayer(Base):
    """
    Team membership of one player in one match.

    is_winner is kept in sync with the parsed score on every submission, so
    listings can show the result without parsing the score string.
    """
    __tablename__ = "match_players"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    team: Mapped[str] = mapped_column(String(1), nullable=False)  # 'A' or 'B'
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    match: Mapped["Match"] = relationship(back_populates="players")

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_match_players_match_player"),
        CheckConstraint("team IN ('A', 'B')", name="ck_match_players_team"),
    )

    def __repr__(self) -> str:
        return f"<MatchPlayer(match_id={self.match_id}, player='{self.player_id}', team='{self.team}')>"


# =============================================================================
# Rating History
# =============================================================================

class EloHistory(Base):
    """
    One rating change applied to one player by one confirmed match.

    created_at is the match's played_at so history series line up with when
    the match happened rather than when it was confirmed.
    """
    __tablename__ = "elo_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[str] = mapped_column(String(64), nullable=False)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id"), nullable=False)
    discipline: Mapped[str] = mapped_column(String(10), nullable=False)

    old_elo: Mapped[int] = mapped_column(Integer, nullable=False)
    new_elo: Mapped[int] = mapped_column(Integer, nullable=False)
    old_overall_elo: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    new_overall_elo: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("player_id", "match_id", name="uq_elo_history_player_match"),
        Index("idx_elo_history_player_created", "player_id", "created_at"),
    )

    @property
    def change(self) -> int:
        return self.new_elo - self.old_elo

    def __repr__(self) -> str:
        return (
            f"<EloHistory(player='{self.player_id}', match_id={self.match_id}, "
            f"{self.discipline}: {self.old_elo} -> {self.new_elo})>"
        )
