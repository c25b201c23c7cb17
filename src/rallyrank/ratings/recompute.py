"""
Maintenance for the derived overall rating.

overall_elo is normally updated on every confirmation. These helpers
rebuild it (and optionally the matches-played counters it is weighted by)
after manual data fixes or an import.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func
from sqlalchemy.orm import Session

from rallyrank.db.models import Match, MatchPlayer, Player
from rallyrank.elo.overall import compute_overall_elo
from rallyrank.match_statuses import CONFIRMED, DOUBLES, SINGLES

logger = logging.getLogger(__name__)


@dataclass
class RecomputeResult:
    checked: int = 0
    counters_fixed: int = 0
    overall_changed: int = 0
    changed_player_ids: list[str] = field(default_factory=list)


def confirmed_match_counts(session: Session) -> dict[str, dict[str, int]]:
    """Confirmed matches per player and discipline, counted from match rows."""
    rows = (
        session.query(MatchPlayer.player_id, Match.match_type, func.count(Match.id))
        .join(Match, Match.id == MatchPlayer.match_id)
        .filter(Match.status == CONFIRMED)
        .group_by(MatchPlayer.player_id, Match.match_type)
        .all()
    )
    counts: dict[str, dict[str, int]] = {}
    for player_id, match_type, count in rows:
        counts.setdefault(player_id, {SINGLES: 0, DOUBLES: 0})[match_type] = int(count)
    return counts


def recompute_overall_ratings(session: Session, recount: bool = False) -> RecomputeResult:
    """
    Recompute overall_elo for every player.

    Args:
        recount: Also reset singles/doubles matches played from confirmed matches

    Nothing is committed; the caller decides (see scripts/recompute_overall_elo.py).
    """
    result = RecomputeResult()
    counts = confirmed_match_counts(session) if recount else {}

    for player in session.query(Player).order_by(Player.id).all():
        result.checked += 1

        if recount:
            played = counts.get(player.id, {SINGLES: 0, DOUBLES: 0})
            if (player.singles_matches_played, player.doubles_matches_played) != (played[SINGLES], played[DOUBLES]):
                logger.info(
                    "Player %s matches played %s/%s -> %s/%s",
                    player.id,
                    player.singles_matches_played,
                    player.doubles_matches_played,
                    played[SINGLES],
                    played[DOUBLES],
                )
                player.singles_matches_played = played[SINGLES]
                player.doubles_matches_played = played[DOUBLES]
                result.counters_fixed += 1

        overall = compute_overall_elo(
            player.singles_elo,
            player.singles_matches_played,
            player.doubles_elo,
            player.doubles_matches_played,
        )
        if overall != player.overall_elo:
            logger.debug("Player %s overall %s -> %s", player.id, player.overall_elo, overall)
            player.overall_elo = overall
            result.overall_changed += 1
            result.changed_player_ids.append(player.id)

    session.flush()
    return result
