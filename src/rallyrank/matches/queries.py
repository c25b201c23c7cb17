"""Read models over matches: lookups, per-user listings and head-to-head records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rallyrank.db.models import Match, MatchPlayer
from rallyrank.errors import NotFound, ValidationError
from rallyrank.match_statuses import CONFIRMED, DISCIPLINES, PENDING, normalize_status_filter, opposing_team
from rallyrank.parsers.score import ScoreParseError, parse_score

DEFAULT_RECENT_LIMIT = 10


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def match_winner(match: Match) -> Optional[str]:
    """
    Winning team of a match.

    The stored score is authoritative; the is_winner flags are only used
    when the score no longer parses.
    """
    try:
        return parse_score(match.score).winner_team
    except ScoreParseError:
        return match.winner_team


def serialize_match(match: Match) -> dict[str, Any]:
    """Plain dict for API responses, with players split by team."""
    players = [
        {"player_id": p.player_id, "team": p.team, "is_winner": p.is_winner}
        for p in match.players
    ]
    return {
        "match_id": match.id,
        "match_type": match.match_type,
        "score": match.score,
        "status": match.status,
        "created_by": match.created_by,
        "submitted_by": match.submitted_by,
        "needs_confirmation_from_list": list(match.needs_confirmation_from_list or []),
        "played_at": _iso(match.played_at),
        "submitted_at": _iso(match.submitted_at),
        "confirmed_at": _iso(match.confirmed_at),
        "cancelled_at": _iso(match.cancelled_at),
        "cancelled_by": match.cancelled_by,
        "cancel_reason": match.cancel_reason,
        "elo_change_side_a": match.elo_change_side_a,
        "elo_change_side_b": match.elo_change_side_b,
        "video_link": match.video_link,
        "video_added_at": _iso(match.video_added_at),
        "team_A_players": [p for p in players if p["team"] == "A"],
        "team_B_players": [p for p in players if p["team"] == "B"],
        "winner_team": match_winner(match),
    }


def get_match(session: Session, match_id: int) -> dict[str, Any]:
    match = (
        session.query(Match)
        .options(selectinload(Match.players))
        .filter(Match.id == match_id)
        .one_or_none()
    )
    if match is None:
        raise NotFound(f"Match {match_id} not found", code="match_not_found")
    return serialize_match(match)


def _matches_for_user(session: Session, user_id: str, statuses: Iterable[str]):
    played = select(MatchPlayer.match_id).where(MatchPlayer.player_id == user_id)
    return (
        session.query(Match)
        .options(selectinload(Match.players))
        .filter(Match.id.in_(played), Match.status.in_(list(statuses)))
        .order_by(Match.played_at.desc(), Match.id.desc())
    )


def list_matches_for_user(
    session: Session,
    user_id: str,
    statuses: Optional[Iterable[str]] = None,
    limit: Optional[int] = None,
) -> list[dict[str, Any]]:
    """
    Matches a user plays in, newest first.

    Args:
        statuses: Status filter; unknown values are ignored, None means all
        limit: Maximum rows, None for no limit
    """
    wanted = normalize_status_filter(statuses)
    if not wanted:
        return []

    query = _matches_for_user(session, user_id, wanted)
    if limit is not None:
        query = query.limit(limit)
    return [serialize_match(m) for m in query.all()]


def list_pending_confirmations(session: Session, user_id: str) -> list[dict[str, Any]]:
    """Pending matches waiting on this user to confirm or reject."""
    pending = _matches_for_user(session, user_id, [PENDING]).all()
    return [
        serialize_match(m)
        for m in pending
        if user_id in (m.needs_confirmation_from_list or [])
    ]


def list_recent_matches(session: Session, user_id: str, limit: int = DEFAULT_RECENT_LIMIT) -> list[dict[str, Any]]:
    """Latest confirmed matches of a user."""
    if limit <= 0:
        raise ValidationError("limit must be positive", code="invalid_limit")
    query = _matches_for_user(session, user_id, [CONFIRMED]).limit(limit)
    return [serialize_match(m) for m in query.all()]


def get_head_to_head(session: Session, user_id: str, discipline: Optional[str] = None) -> list[dict[str, Any]]:
    """
    Confirmed record against every opponent the user has faced.

    In doubles each player on the other team counts as an opponent.

    Returns:
        Rows of {opponent_id, matches, wins, losses, draws, last_played_at},
        most-played opponent first.
    """
    if discipline is not None and discipline not in DISCIPLINES:
        raise ValidationError("Invalid discipline", code="invalid_discipline")

    query = _matches_for_user(session, user_id, [CONFIRMED])
    if discipline is not None:
        query = query.filter(Match.match_type == discipline)

    records: dict[str, dict[str, Any]] = {}
    for match in query.all():
        team = match.team_of(user_id)
        winner = match_winner(match)
        for opponent_id in match.team_ids(opposing_team(team)):
            record = records.setdefault(
                opponent_id,
                {"opponent_id": opponent_id, "matches": 0, "wins": 0, "losses": 0, "draws": 0, "last_played_at": None},
            )
            record["matches"] += 1
            if winner is None:
                record["draws"] += 1
            elif winner == team:
                record["wins"] += 1
            else:
                record["losses"] += 1
            # Query is newest first, so the first match seen is the latest
            if record["last_played_at"] is None:
                record["last_played_at"] = _iso(match.played_at)

    return sorted(records.values(), key=lambda r: (-r["matches"], r["opponent_id"]))
