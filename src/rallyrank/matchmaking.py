"""
Opponent suggestions by rating proximity.

The search starts with a narrow rating window around the user and widens it
until some candidates turn up:

    ±100  ->  ±200  ->  ±400  ->  anyone

Candidates are ordered by rating gap, ties going to the higher-rated
player. Nothing is stored; this is a pure read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from rallyrank.config import settings
from rallyrank.db.models import Player
from rallyrank.errors import NotFound, ValidationError
from rallyrank.match_statuses import DISCIPLINES
from rallyrank.ratings.ranking import rating_column

logger = logging.getLogger(__name__)

# None is the unbounded last pass
SEARCH_WINDOWS: tuple[Optional[int], ...] = (100, 200, 400, None)

STATE_SUGGESTED = "suggested"
STATE_NO_SUGGESTIONS = "no_suggestions"


@dataclass(frozen=True)
class Recommendation:
    player_id: str
    username: Optional[str]
    gender: Optional[str]
    elo: int
    elo_gap: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "username": self.username,
            "gender": self.gender,
            "elo": self.elo,
            "elo_gap": self.elo_gap,
        }


@dataclass(frozen=True)
class MatchSuggestions:
    """Result of a matchmaking search."""
    state: str
    recommendations: tuple[Recommendation, ...] = ()
    criteria: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "state": self.state,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "criteria": dict(self.criteria),
        }
        if self.state == STATE_NO_SUGGESTIONS:
            data["message"] = "No other players available to recommend at this time."
        return data


def sort_by_closeness(candidates: list[Recommendation]) -> list[Recommendation]:
    """Closest rating first; equal gaps go to the stronger player."""
    return sorted(candidates, key=lambda r: (r.elo_gap, -r.elo))


def find_match(
    session: Session,
    user_id: str,
    mode: str,
    candidate_limit: Optional[int] = None,
    result_limit: Optional[int] = None,
) -> MatchSuggestions:
    """
    Suggest opponents for a user in one discipline.

    Args:
        user_id: Player looking for a match
        mode: 'singles' or 'doubles', selects the rating compared
        candidate_limit: Rows fetched per window (settings default: 50)
        result_limit: Suggestions returned (settings default: 5)

    Raises:
        ValidationError: Missing or unknown mode
        NotFound: Unknown user
    """
    if not mode:
        raise ValidationError("Mode is required", code="mode_required")
    if mode not in DISCIPLINES:
        raise ValidationError(f"mode must be one of {DISCIPLINES}", code="invalid_mode")

    candidate_limit = candidate_limit or settings.matchmaking_candidate_limit
    result_limit = result_limit or settings.matchmaking_result_limit

    user = session.get(Player, user_id)
    if user is None:
        raise NotFound(f"Player {user_id} not found", code="player_not_found")

    column = rating_column(mode)
    target = user.rating_for(mode)

    for window in SEARCH_WINDOWS:
        query = session.query(Player).filter(Player.id != user_id)
        if window is not None:
            query = query.filter(column >= target - window, column <= target + window)

        candidates = [
            Recommendation(
                player_id=p.id,
                username=p.username,
                gender=p.gender,
                elo=p.rating_for(mode),
                elo_gap=abs(p.rating_for(mode) - target),
            )
            for p in query.order_by(func.abs(column - target), column.desc(), Player.id).limit(candidate_limit).all()
        ]
        if candidates:
            logger.debug("Found %s %s candidates for %s within %s", len(candidates), mode, user_id, window or "any")
            return MatchSuggestions(
                state=STATE_SUGGESTED,
                recommendations=tuple(sort_by_closeness(candidates)[:result_limit]),
                criteria={"target_elo": target, "range": window if window is not None else "any", "mode": mode},
            )

    logger.info("No %s opponents available for %s", mode, user_id)
    return MatchSuggestions(state=STATE_NO_SUGGESTIONS, criteria={"target_elo": target, "mode": mode})
