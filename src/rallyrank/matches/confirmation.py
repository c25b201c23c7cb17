"""
Match confirmation - the only multi-step read-modify-write in the ladder.

Confirming a pending match:
1. Locks the match row and checks it is still pending
2. Checks the confirmer is on the side opposite the submitter
3. Re-validates the stored rosters and re-parses the stored score
4. Snapshots every participant's rating and rank
5. Runs the rating formula on team ratings (doubles: team average)
6. Applies rounded deltas, history rows, overall ratings and the status
   change inside the caller's transaction
7. Reports rank movement and whether the result was an upset

Two confirmations racing on the same match both pass the pending check
only if the database has no row lock (SQLite). The terminal UPDATE is
guarded with ``status = 'pending'`` in its WHERE clause, so exactly one of
them changes a row and the other raises Conflict before writing anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload

from rallyrank.db.models import EloHistory, Match, Player
from rallyrank.elo.calculator import EloCalculator
from rallyrank.elo.overall import compute_overall_elo
from rallyrank.errors import Conflict, Forbidden, NotFound, ValidationError
from rallyrank.match_statuses import CONFIRMED, PENDING, TEAM_A, TEAM_B
from rallyrank.matches.validation import validate_stored_teams
from rallyrank.parsers.score import ParsedScore, ScoreParseError, parse_score
from rallyrank.ratings.ranking import get_rank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerRatingChange:
    """Rating and rank movement of one participant."""
    player_id: str
    team: str
    old_elo: int
    new_elo: int
    old_overall_elo: Optional[int]
    new_overall_elo: Optional[int]
    previous_rank: int
    new_rank: int

    @property
    def elo_change(self) -> int:
        return self.new_elo - self.old_elo

    @property
    def rank_change(self) -> int:
        """Positive when the player moved up the ladder."""
        return self.previous_rank - self.new_rank

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "team": self.team,
            "old_elo": self.old_elo,
            "new_elo": self.new_elo,
            "elo_change": self.elo_change,
            "old_overall_elo": self.old_overall_elo,
            "new_overall_elo": self.new_overall_elo,
            "previous_rank": self.previous_rank,
            "new_rank": self.new_rank,
            "rank_change": self.rank_change,
        }


@dataclass(frozen=True)
class UpsetSummary:
    """Pre-match average ratings of the winning and losing sides."""
    winner_team: Optional[str]
    winners_avg_elo: Optional[float]
    losers_avg_elo: Optional[float]
    is_upset: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "winner_team": self.winner_team,
            "winners_avg_elo": self.winners_avg_elo,
            "losers_avg_elo": self.losers_avg_elo,
            "is_upset": self.is_upset,
        }


@dataclass(frozen=True)
class ConfirmationResult:
    """Everything a client needs to show after a confirmation."""
    match_id: int
    status: str
    discipline: str
    score: str
    is_draw: bool
    elo_change_side_a: int
    elo_change_side_b: int
    confirmed_at: datetime
    players: tuple[PlayerRatingChange, ...]
    upset: UpsetSummary
    formula_version: str

    def player(self, player_id: str) -> PlayerRatingChange:
        for change in self.players:
            if change.player_id == player_id:
                return change
        raise KeyError(player_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "status": self.status,
            "discipline": self.discipline,
            "score": self.score,
            "is_draw": self.is_draw,
            "elo_change_side_a": self.elo_change_side_a,
            "elo_change_side_b": self.elo_change_side_b,
            "confirmed_at": self.confirmed_at.isoformat(),
            "players": [p.to_dict() for p in self.players],
            "upset": self.upset.to_dict(),
            "formula_version": self.formula_version,
        }


def _load_match_for_update(session: Session, match_id: int) -> Optional[Match]:
    """Fetch a match with its players, locking the match row where supported."""
    return (
        session.query(Match)
        .options(selectinload(Match.players))
        .filter(Match.id == match_id)
        .with_for_update(of=Match)
        .populate_existing()
        .one_or_none()
    )


def _check_confirmable(match: Optional[Match], match_id: int) -> Match:
    if match is None:
        raise NotFound(f"Match {match_id} not found", code="match_not_found")
    if match.status == CONFIRMED:
        raise Conflict("Match has already been confirmed", code="already_confirmed")
    if match.status != PENDING:
        raise ValidationError(f"Match is {match.status} and can no longer be confirmed", code="match_not_pending")
    return match


def _check_confirmer(match: Match, confirmer_id: str) -> None:
    """The confirmer must be listed, playing, and on the other side from the submitter."""
    needs = match.needs_confirmation_from_list or []
    if needs and confirmer_id not in needs:
        raise Forbidden("You are not asked to confirm this match", code="not_confirmer")

    confirmer_team = match.team_of(confirmer_id)
    if confirmer_team is None:
        raise Forbidden("Only match participants can confirm", code="not_participant")

    submitter_team = match.team_of(match.submitted_by)
    if submitter_team == confirmer_team:
        raise Forbidden("Confirmation must come from the opposing team", code="same_team")


def _parse_stored_score(match: Match) -> ParsedScore:
    try:
        return parse_score(match.score)
    except ScoreParseError as exc:
        raise ValidationError(f"Stored score is invalid: {exc.message}", code="invalid_stored_score") from exc


def _upset_summary(parsed: ParsedScore, old_ratings: dict[str, int], teams: dict[str, list[str]]) -> UpsetSummary:
    if parsed.is_draw:
        return UpsetSummary(winner_team=None, winners_avg_elo=None, losers_avg_elo=None, is_upset=False)

    winner = parsed.winner_team
    loser = TEAM_B if winner == TEAM_A else TEAM_A
    winners_avg = sum(old_ratings[pid] for pid in teams[winner]) / len(teams[winner])
    losers_avg = sum(old_ratings[pid] for pid in teams[loser]) / len(teams[loser])
    return UpsetSummary(
        winner_team=winner,
        winners_avg_elo=winners_avg,
        losers_avg_elo=losers_avg,
        is_upset=winners_avg < losers_avg,
    )


def _mark_confirmed(
    session: Session,
    match: Match,
    confirmed_at: datetime,
    delta_a: int,
    delta_b: int,
) -> None:
    """
    Move the match to confirmed only if it is still pending.

    Raises:
        Conflict: If another request confirmed it first
        ValidationError: If it was cancelled meanwhile
        NotFound: If it was rejected meanwhile
    """
    result = session.execute(
        update(Match)
        .where(Match.id == match.id, Match.status == PENDING)
        .values(
            status=CONFIRMED,
            confirmed_at=confirmed_at,
            elo_change_side_a=delta_a,
            elo_change_side_b=delta_b,
        )
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount == 1:
        return

    current = session.query(Match.status).filter(Match.id == match.id).scalar()
    logger.warning("Lost confirmation race on match %s (now %s)", match.id, current)
    if current is None:
        raise NotFound(f"Match {match.id} not found", code="match_not_found")
    if current == CONFIRMED:
        raise Conflict("Match has already been confirmed", code="already_confirmed")
    raise ValidationError(f"Match is {current} and can no longer be confirmed", code="match_not_pending")


def _apply_player_update(
    session: Session,
    player: Player,
    discipline: str,
    delta: int,
    match: Match,
) -> tuple[int, int, Optional[int], Optional[int]]:
    """Apply one player's delta, bump matches played, recompute overall, write history."""
    old_elo = player.rating_for(discipline)
    new_elo = old_elo + delta
    old_overall = player.overall_elo

    if discipline == "singles":
        player.singles_elo = new_elo
        player.singles_matches_played = (player.singles_matches_played or 0) + 1
    else:
        player.doubles_elo = new_elo
        player.doubles_matches_played = (player.doubles_matches_played or 0) + 1

    player.overall_elo = compute_overall_elo(
        player.singles_elo,
        player.singles_matches_played,
        player.doubles_elo,
        player.doubles_matches_played,
    )

    session.add(
        EloHistory(
            player_id=player.id,
            match_id=match.id,
            discipline=discipline,
            old_elo=old_elo,
            new_elo=new_elo,
            old_overall_elo=old_overall,
            new_overall_elo=player.overall_elo,
            created_at=match.played_at,
        )
    )
    return old_elo, new_elo, old_overall, player.overall_elo


def confirm_match(
    session: Session,
    match_id: int,
    confirmer_id: str,
    calculator: Optional[EloCalculator] = None,
    now: Optional[datetime] = None,
) -> ConfirmationResult:
    """
    Confirm a pending match and apply its rating changes.

    Nothing is committed here. Every write happens in ``session`` so the
    caller's unit of work either commits all of it or none of it.

    Args:
        session: Open session; its transaction is the atomicity boundary
        match_id: Match to confirm
        confirmer_id: Caller's player id
        calculator: Rating calculator (defaults to the configured one)
        now: Confirmation timestamp (naive UTC), defaults to the current time

    Raises:
        NotFound: Match (or a participant) does not exist
        Conflict: Match is already confirmed
        ValidationError: Match is not pending, rosters or score are invalid
        Forbidden: Confirmer is not allowed to confirm
    """
    calculator = calculator or EloCalculator.from_settings()

    match = _check_confirmable(_load_match_for_update(session, match_id), match_id)
    _check_confirmer(match, confirmer_id)

    team_a, team_b = validate_stored_teams(session, match)
    parsed = _parse_stored_score(match)
    discipline = match.match_type
    teams = {TEAM_A: team_a, TEAM_B: team_b}

    players = {
        p.id: p
        for p in session.query(Player).filter(Player.id.in_(team_a + team_b)).with_for_update().all()
    }
    old_ratings = {pid: players[pid].rating_for(discipline) for pid in team_a + team_b}
    previous_ranks = {pid: get_rank(session, rating, discipline) for pid, rating in old_ratings.items()}

    delta = calculator.rate_match(
        ratings_a=[old_ratings[pid] for pid in team_a],
        ratings_b=[old_ratings[pid] for pid in team_b],
        parsed=parsed,
        mode=discipline,
    )
    delta_a, delta_b = delta.rounded()
    side_deltas = {TEAM_A: delta_a, TEAM_B: delta_b}
    confirmed_at = now or datetime.utcnow()

    _mark_confirmed(session, match, confirmed_at, delta_a, delta_b)

    applied = {}
    for team, roster in teams.items():
        for pid in roster:
            applied[pid] = (team, *_apply_player_update(session, players[pid], discipline, side_deltas[team], match))
    session.flush()

    changes = []
    for pid, (team, old_elo, new_elo, old_overall, new_overall) in applied.items():
        changes.append(
            PlayerRatingChange(
                player_id=pid,
                team=team,
                old_elo=old_elo,
                new_elo=new_elo,
                old_overall_elo=old_overall,
                new_overall_elo=new_overall,
                previous_rank=previous_ranks[pid],
                new_rank=get_rank(session, new_elo, discipline),
            )
        )

    upset = _upset_summary(parsed, old_ratings, teams)

    logger.info(
        "Confirmed %s match %s by %s: %s (A %+d, B %+d)%s",
        discipline, match.id, confirmer_id, match.score, delta_a, delta_b,
        " upset" if upset.is_upset else "",
    )

    return ConfirmationResult(
        match_id=match.id,
        status=CONFIRMED,
        discipline=discipline,
        score=match.score,
        is_draw=parsed.is_draw,
        elo_change_side_a=delta_a,
        elo_change_side_b=delta_b,
        confirmed_at=confirmed_at,
        players=tuple(changes),
        upset=upset,
        formula_version=calculator.version,
    )
