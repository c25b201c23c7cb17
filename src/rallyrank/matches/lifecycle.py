"""
Match lifecycle operations.

MatchService wraps one session and exposes every state change a match can
go through before and after confirmation:

    create_match ──> pending ──confirm_match──> confirmed ──> video link
                       │  ▲
                       │  └── submit_match_score / edit_pending_match
                       ├──cancel_match──> cancelled
                       └──reject_match──> (deleted)

None of these methods commit. They flush so generated ids and constraint
violations surface immediately, and leave commit/rollback to the caller's
get_session() / get_db() scope.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from rallyrank.db.models import Match, MatchPlayer
from rallyrank.elo.calculator import EloCalculator
from rallyrank.errors import Conflict, Forbidden, NotFound, ValidationError
from rallyrank.match_statuses import CANCELLED, CONFIRMED, PENDING, TEAM_A, TEAM_B
from rallyrank.matches.confirmation import ConfirmationResult, confirm_match
from rallyrank.matches.validation import (
    confirmation_list_for_creation,
    confirmation_list_for_submission,
    load_players,
    resolve_winner,
    teams_of,
    validate_teams,
)
from rallyrank.parsers.score import parse_score

logger = logging.getLogger(__name__)

VIDEO_LINK_PREFIX = "https://"

# Keys accepted by edit_pending_match; missing keys keep the stored value
EDITABLE_FIELDS = ("match_type", "team_a", "team_b", "score", "winner_team", "played_at")


class MatchService:
    """
    Match lifecycle bound to one unit of work.

    Usage:
        with get_session() as session:
            service = MatchService(session)
            match = service.create_match(
                match_type="singles",
                team_a=["player-a"],
                team_b=["player-b"],
                score="21-15,21-18",
                submitted_by="player-a",
            )
    """

    def __init__(self, session: Session, calculator: Optional[EloCalculator] = None):
        self.session = session
        self.calculator = calculator or EloCalculator.from_settings()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_match(self, match_id: int, lock: bool = False) -> Match:
        query = self.session.query(Match).filter(Match.id == match_id)
        if lock:
            query = query.with_for_update()
        match = query.one_or_none()
        if match is None:
            raise NotFound(f"Match {match_id} not found", code="match_not_found")
        return match

    @staticmethod
    def _require_status(match: Match, status: str, action: str) -> None:
        if match.status != status:
            logger.warning("Match %s is %s and cannot be %s", match.id, match.status, action)
            raise ValidationError(
                f"Only {status} matches can be {action}, this one is {match.status}",
                code=f"match_not_{status}",
            )

    @staticmethod
    def _build_players(team_a: Sequence[str], team_b: Sequence[str], winner: Optional[str]) -> list[MatchPlayer]:
        rows = []
        for team, roster in ((TEAM_A, team_a), (TEAM_B, team_b)):
            for player_id in roster:
                rows.append(MatchPlayer(player_id=player_id, team=team, is_winner=team == winner))
        return rows

    @staticmethod
    def _sync_winners(match: Match, winner: Optional[str]) -> None:
        """Keep each player row's is_winner in line with the parsed score."""
        for row in match.players:
            row.is_winner = row.team == winner

    # =========================================================================
    # Creation and submission
    # =========================================================================

    def create_match(
        self,
        match_type: str,
        team_a: Sequence[str],
        team_b: Sequence[str],
        score: str,
        submitted_by: str,
        winner_team: Optional[str] = None,
        played_at: Optional[datetime] = None,
    ) -> Match:
        """
        Record a new pending match.

        Args:
            match_type: 'singles' or 'doubles'
            team_a: Player ids on team A
            team_b: Player ids on team B
            score: Set scores from team A's point of view, e.g. "21-15,18-21,21-19"
            submitted_by: Caller id; becomes creator and submitter
            winner_team: Optional 'A'/'B' hint, must agree with the score
            played_at: When the match was played (naive UTC), defaults to now

        Returns:
            The flushed Match with its player rows

        Raises:
            ValidationError: Bad type, team shape, score or winner hint
            NotFound: A player is not registered
        """
        team_a, team_b = validate_teams(match_type, team_a, team_b)
        load_players(self.session, team_a + team_b)

        parsed = parse_score(score)
        winner = resolve_winner(parsed, winner_team)
        needs = confirmation_list_for_creation(team_a, team_b, submitted_by)

        now = datetime.utcnow()
        match = Match(
            match_type=match_type,
            score=parsed.to_canonical(),
            status=PENDING,
            created_by=submitted_by,
            submitted_by=submitted_by,
            needs_confirmation_from_list=needs,
            played_at=played_at or now,
            submitted_at=now,
        )
        match.players = self._build_players(team_a, team_b, winner)

        self.session.add(match)
        self.session.flush()

        logger.info(
            "Created %s match %s by %s: %s vs %s, %s (awaiting %s)",
            match_type, match.id, submitted_by, team_a, team_b, match.score, needs,
        )
        return match

    def submit_match_score(
        self,
        match_id: int,
        submitter_id: str,
        score: str,
        winner_team: Optional[str] = None,
    ) -> Match:
        """
        Propose a new score for a pending match.

        The submitter becomes the party whose opponents must confirm, so a
        counter-proposal flips who is asked to confirm.

        Raises:
            NotFound: Unknown match
            ValidationError: Match not pending, bad score or winner hint
            Forbidden: Submitter does not play in the match
        """
        match = self._get_match(match_id, lock=True)
        self._require_status(match, PENDING, "resubmitted")

        team_a, team_b = teams_of(match)
        needs = confirmation_list_for_submission(team_a, team_b, submitter_id)

        parsed = parse_score(score)
        winner = resolve_winner(parsed, winner_team)

        match.score = parsed.to_canonical()
        match.submitted_by = submitter_id
        match.submitted_at = datetime.utcnow()
        match.needs_confirmation_from_list = needs
        self._sync_winners(match, winner)
        self.session.flush()

        logger.info("Score for match %s resubmitted by %s: %s (awaiting %s)", match.id, submitter_id, match.score, needs)
        return match

    def edit_pending_match(self, match_id: int, requester_id: str, payload: Mapping[str, Any]) -> Match:
        """
        Rewrite a pending match created by the requester.

        ``payload`` may carry any of match_type, team_a, team_b, score,
        winner_team and played_at. Everything is re-validated as if the
        match were created again, and the player rows are replaced.

        Raises:
            NotFound: Unknown match or player
            Forbidden: Requester did not create the match or no longer plays in it
            ValidationError: Match not pending or edited fields invalid
        """
        unknown = set(payload) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}", code="invalid_fields")

        match = self._get_match(match_id, lock=True)
        if match.created_by != requester_id:
            logger.warning("User %s tried to edit match %s created by %s", requester_id, match.id, match.created_by)
            raise Forbidden("Only the match creator can edit it", code="not_creator")
        self._require_status(match, PENDING, "edited")

        stored_a, stored_b = teams_of(match)
        match_type = payload["match_type"] if "match_type" in payload else match.match_type
        team_a = payload.get("team_a") if payload.get("team_a") is not None else stored_a
        team_b = payload.get("team_b") if payload.get("team_b") is not None else stored_b
        team_a, team_b = validate_teams(match_type, team_a, team_b)
        load_players(self.session, team_a + team_b)
        needs = confirmation_list_for_submission(team_a, team_b, requester_id)

        parsed = parse_score(payload["score"] if "score" in payload else match.score)
        winner = resolve_winner(parsed, payload.get("winner_team"))

        # Flush the deletes first so re-added players don't hit the unique constraint
        match.players.clear()
        self.session.flush()

        match.match_type = match_type
        match.score = parsed.to_canonical()
        match.players = self._build_players(team_a, team_b, winner)
        match.needs_confirmation_from_list = needs
        match.submitted_by = requester_id
        match.submitted_at = datetime.utcnow()
        if payload.get("played_at") is not None:
            match.played_at = payload["played_at"]
        self.session.flush()

        logger.info("Match %s edited by %s: %s vs %s, %s", match.id, requester_id, team_a, team_b, match.score)
        return match

    # =========================================================================
    # Withdrawal
    # =========================================================================

    def cancel_match(self, match_id: int, user_id: str, reason: Optional[str] = None) -> Match:
        """
        Withdraw a pending match. Participants and the creator may cancel.

        Raises:
            NotFound: Unknown match
            ValidationError: Match not pending
            Forbidden: Caller neither plays in nor created the match
        """
        match = self._get_match(match_id, lock=True)
        self._require_status(match, PENDING, "cancelled")

        if user_id not in match.participant_ids and user_id != match.created_by:
            logger.warning("User %s tried to cancel match %s they are not part of", user_id, match.id)
            raise Forbidden("Only participants can cancel a match", code="not_participant")

        match.status = CANCELLED
        match.cancelled_by = user_id
        match.cancel_reason = reason.strip() if reason and reason.strip() else None
        match.cancelled_at = datetime.utcnow()
        self.session.flush()

        logger.info("Match %s cancelled by %s (%s)", match.id, user_id, match.cancel_reason or "no reason")
        return match

    def reject_match(self, match_id: int, user_id: str) -> int:
        """
        Reject a pending match, deleting it and its player rows.

        Only someone asked to confirm can reject.

        Returns:
            The id of the deleted match
        """
        match = self._get_match(match_id, lock=True)
        self._require_status(match, PENDING, "rejected")

        if user_id not in (match.needs_confirmation_from_list or []):
            logger.warning("User %s tried to reject match %s without being asked to confirm", user_id, match.id)
            raise Forbidden("You are not asked to confirm this match", code="not_confirmer")

        self.session.delete(match)
        self.session.flush()

        logger.info("Match %s rejected and deleted by %s", match_id, user_id)
        return match_id

    def delete_match(self, match_id: int, requester_id: str) -> int:
        """
        Delete a match the requester created.

        Confirmed matches are kept because their rating changes are
        already applied and referenced from rating history.
        """
        match = self._get_match(match_id, lock=True)
        if match.created_by != requester_id:
            logger.warning("User %s tried to delete match %s created by %s", requester_id, match.id, match.created_by)
            raise Forbidden("Not authorized to delete this match", code="not_creator")
        if match.status == CONFIRMED:
            raise Conflict("Confirmed matches cannot be deleted", code="match_confirmed")

        self.session.delete(match)
        self.session.flush()

        logger.info("Match %s deleted by its creator %s", match_id, requester_id)
        return match_id

    # =========================================================================
    # Confirmation and after
    # =========================================================================

    def confirm_match(self, match_id: int, confirmer_id: str) -> ConfirmationResult:
        """Confirm a pending match with this service's calculator."""
        return confirm_match(self.session, match_id, confirmer_id, calculator=self.calculator)

    def update_match_video_link(self, match_id: int, user_id: str, url: str) -> Match:
        """
        Attach a video of a confirmed match.

        Raises:
            NotFound: Unknown match
            ValidationError: Match not confirmed or link not https
            Forbidden: Caller does not play in the match
        """
        match = self._get_match(match_id)
        self._require_status(match, CONFIRMED, "given a video")
        if user_id not in match.participant_ids:
            raise Forbidden("Only participants can add a video", code="not_participant")

        link = (url or "").strip()
        if not link.startswith(VIDEO_LINK_PREFIX) or len(link) == len(VIDEO_LINK_PREFIX):
            raise ValidationError("Video link must be an https:// URL", code="invalid_video_link")

        match.video_link = link
        match.video_added_at = datetime.utcnow()
        self.session.flush()

        logger.info("Video link added to match %s by %s", match.id, user_id)
        return match
