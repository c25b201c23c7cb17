"""
Rank queries and leaderboards.

A player's rank is one more than the number of players rated strictly
higher in the same discipline. Tied players therefore share a rank, and
the next distinct rating skips ahead by the size of the tie:

    ratings 1100, 1050, 1050, 1000  ->  ranks 1, 2, 2, 4
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from rallyrank.db.models import Player
from rallyrank.errors import ValidationError

RATING_COLUMNS = {
    "singles": Player.singles_elo,
    "doubles": Player.doubles_elo,
    "overall": Player.overall_elo,
}

LEADERBOARD_GENDERS = ("male", "female", "mixed")
DEFAULT_LEADERBOARD_LIMIT = 100


def rating_column(discipline: str):
    """Player column holding the rating for a discipline."""
    try:
        return RATING_COLUMNS[discipline]
    except KeyError:
        raise ValidationError(
            f"Invalid discipline '{discipline}', expected one of {tuple(RATING_COLUMNS)}",
            code="invalid_discipline",
        ) from None


def get_rank(session: Session, rating: int | float, discipline: str) -> int:
    """Rank of a rating value: count of players rated strictly higher, plus one."""
    column = rating_column(discipline)
    higher = session.query(func.count(Player.id)).filter(column > rating).scalar()
    return int(higher or 0) + 1


def get_player_rank(session: Session, player: Player, discipline: str) -> int | None:
    """Rank of a player's current rating, None when they have no overall rating yet."""
    if discipline == "overall":
        if player.overall_elo is None:
            return None
        return get_rank(session, player.overall_elo, "overall")
    return get_rank(session, player.rating_for(discipline), discipline)


def get_ranks(session: Session, ratings: dict[str, int], discipline: str) -> dict[str, int]:
    """Rank for each player id -> rating pair."""
    return {player_id: get_rank(session, rating, discipline) for player_id, rating in ratings.items()}


def _leaderboard_row(player: Player, rating: int, rank: int) -> dict[str, Any]:
    return {
        "player_id": player.id,
        "username": player.username,
        "gender": player.gender,
        "rating": rating,
        "rank": rank,
    }


def get_leaderboard(
    session: Session,
    gender: str,
    discipline: str = "singles",
    limit: int = DEFAULT_LEADERBOARD_LIMIT,
) -> dict[str, Any]:
    """
    Top players in a discipline, optionally restricted to one gender.

    Args:
        gender: 'male', 'female', or 'mixed' (no gender filter)
        discipline: 'singles' or 'doubles'
        limit: Maximum rows returned

    Returns:
        {"gender", "discipline", "leaders": [...]} where each leader carries
        its ladder-wide rank in the discipline.
    """
    if gender not in LEADERBOARD_GENDERS:
        raise ValidationError("Invalid gender", code="invalid_gender")
    if discipline not in ("singles", "doubles"):
        raise ValidationError("Invalid discipline", code="invalid_discipline")

    column = rating_column(discipline)
    query = session.query(Player).order_by(column.desc(), Player.id)
    if gender != "mixed":
        query = query.filter(Player.gender == gender)

    leaders = []
    for player in query.limit(limit).all():
        rating = player.rating_for(discipline)
        leaders.append(_leaderboard_row(player, rating, get_rank(session, rating, discipline)))

    return {"gender": gender, "discipline": discipline, "leaders": leaders}


def get_overall_leaderboard(
    session: Session,
    limit: int = DEFAULT_LEADERBOARD_LIMIT,
    offset: int = 0,
) -> dict[str, Any]:
    """Players with an overall rating, highest first, paginated."""
    if limit <= 0 or offset < 0:
        raise ValidationError("limit must be positive and offset non-negative")

    query = (
        session.query(Player)
        .filter(Player.overall_elo.isnot(None))
        .order_by(Player.overall_elo.desc(), Player.id)
    )
    total = query.count()
    players = query.offset(offset).limit(limit).all()

    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "leaders": [
            _leaderboard_row(p, p.overall_elo, get_rank(session, p.overall_elo, "overall"))
            for p in players
        ],
    }
