"""
Validation helpers shared by every match lifecycle operation.

These checks run on creation and edit, and again on confirmation because
edits may have changed the stored rows since the match was created.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from sqlalchemy.orm import Session

from rallyrank.db.models import Match, Player
from rallyrank.errors import Forbidden, NotFound, ValidationError
from rallyrank.match_statuses import DISCIPLINES, TEAM_A, TEAM_B, TEAM_SIZES, TEAMS
from rallyrank.parsers.score import ParsedScore


def validate_match_type(match_type: str) -> str:
    """Return the match type if it names a discipline."""
    if match_type not in DISCIPLINES:
        raise ValidationError(
            f"match_type must be one of {DISCIPLINES}",
            code="invalid_match_type",
        )
    return match_type


def validate_teams(
    match_type: str,
    team_a: Sequence[str],
    team_b: Sequence[str],
) -> tuple[list[str], list[str]]:
    """
    Check team composition for a discipline.

    Singles needs 1v1 and doubles 2v2. No player may appear twice, on the
    same team or across teams.

    Returns:
        The two teams as lists of player ids
    """
    validate_match_type(match_type)

    team_a = list(team_a or [])
    team_b = list(team_b or [])
    size = TEAM_SIZES[match_type]

    if len(team_a) != size or len(team_b) != size:
        raise ValidationError(
            f"{match_type.capitalize()} matches require exactly {size} player(s) per team",
            code="invalid_team_size",
        )

    for player_id in team_a + team_b:
        if not isinstance(player_id, str) or not player_id.strip():
            raise ValidationError("Player ids must be non-empty strings", code="invalid_player_id")

    everyone = team_a + team_b
    if len(set(everyone)) != len(everyone):
        raise ValidationError("A player cannot appear more than once in a match", code="duplicate_player")

    return team_a, team_b


def load_players(session: Session, player_ids: Iterable[str]) -> dict[str, Player]:
    """
    Fetch players by id.

    Raises:
        NotFound: If any player is not registered
    """
    ids = list(dict.fromkeys(player_ids))
    players = session.query(Player).filter(Player.id.in_(ids)).all() if ids else []
    by_id = {p.id: p for p in players}

    missing = [pid for pid in ids if pid not in by_id]
    if missing:
        raise NotFound(f"Unknown player(s): {', '.join(missing)}", code="player_not_found")
    return by_id


def resolve_winner(parsed: ParsedScore, winner_hint: Optional[str]) -> Optional[str]:
    """
    Check a client-supplied winner against the parsed score.

    The score is authoritative; the hint can only agree with it.

    Returns:
        The winning team from the score, or None for a draw
    """
    if winner_hint is None or winner_hint == "":
        return parsed.winner_team

    hint = str(winner_hint).strip().upper()
    if hint not in TEAMS:
        raise ValidationError("winner_team must be 'A' or 'B'", code="invalid_winner")
    if parsed.is_draw:
        raise ValidationError("A drawn score cannot have a winner", code="winner_on_draw")
    if hint != parsed.winner_team:
        raise ValidationError("winner_team does not match the score", code="winner_mismatch")
    return parsed.winner_team


def opposing_side(team_a: Sequence[str], team_b: Sequence[str], player_id: str) -> Optional[list[str]]:
    """Players on the other team from ``player_id``, None if they are not playing."""
    if player_id in team_a:
        return list(team_b)
    if player_id in team_b:
        return list(team_a)
    return None


def confirmation_list_for_creation(
    team_a: Sequence[str],
    team_b: Sequence[str],
    submitter_id: str,
) -> list[str]:
    """
    Who must confirm a newly created match.

    The submitter's opponents; when the submitter is not playing (e.g. an
    organiser recording the result), every participant except them.
    """
    opponents = opposing_side(team_a, team_b, submitter_id)
    if opponents is not None:
        return opponents
    return [pid for pid in list(team_a) + list(team_b) if pid != submitter_id]


def confirmation_list_for_submission(
    team_a: Sequence[str],
    team_b: Sequence[str],
    submitter_id: str,
) -> list[str]:
    """
    Who must confirm a resubmitted score: strictly the submitter's opponents.

    Raises:
        Forbidden: If the submitter is not a participant
    """
    opponents = opposing_side(team_a, team_b, submitter_id)
    if opponents is None:
        raise Forbidden("Only match participants can submit a score", code="not_participant")
    return opponents


def teams_of(match: Match) -> tuple[list[str], list[str]]:
    """Stored team rosters of a match."""
    return match.team_ids(TEAM_A), match.team_ids(TEAM_B)


def validate_stored_teams(session: Session, match: Match) -> tuple[list[str], list[str]]:
    """
    Re-check a stored match's rosters before rating it.

    Rows carry a team each, so a player stored twice shows up as a
    duplicate id here even if the rows sit on different teams.
    """
    team_a, team_b = teams_of(match)
    stray = [p.player_id for p in match.players if p.team not in TEAMS]
    if stray:
        raise ValidationError("Match has players without a valid team", code="invalid_team")

    validate_teams(match.match_type, team_a, team_b)
    load_players(session, team_a + team_b)
    return team_a, team_b
