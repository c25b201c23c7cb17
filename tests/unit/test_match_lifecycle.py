"""
Unit tests for MatchService lifecycle operations.

Covers creation, score resubmission, edits, cancellation, rejection,
deletion and video links. Confirmation has its own module.
"""

from datetime import datetime

import pytest

from rallyrank.db.models import Match, MatchPlayer
from rallyrank.errors import Conflict, Forbidden, NotFound, ValidationError
from rallyrank.parsers.score import ScoreParseError


@pytest.fixture
def singles_players(add_player):
    add_player("alice")
    add_player("bob")
    add_player("carol")


@pytest.fixture
def doubles_players(add_player):
    for player_id in ("a1", "a2", "b1", "b2", "c1"):
        add_player(player_id)


def _winners(match):
    return sorted(p.player_id for p in match.players if p.is_winner)


class TestCreateMatch:
    """Tests for create_match."""

    def test_singles(self, service, singles_players):
        match = service.create_match("singles", ["alice"], ["bob"], "21-15, 21-18", submitted_by="alice")

        assert match.id is not None
        assert match.status == "pending"
        assert match.score == "21-15,21-18"
        assert match.created_by == "alice"
        assert match.submitted_by == "alice"
        assert match.needs_confirmation_from_list == ["bob"]
        assert _winners(match) == ["alice"]

    def test_doubles_confirmation_list_is_opposing_team(self, service, doubles_players):
        match = service.create_match("doubles", ["a1", "a2"], ["b1", "b2"], "15-21,18-21", submitted_by="a2")

        assert match.needs_confirmation_from_list == ["b1", "b2"]
        assert _winners(match) == ["b1", "b2"]
        assert match.team_ids("A") == ["a1", "a2"]

    def test_organiser_not_playing(self, service, singles_players):
        """A non-participant submitter needs every player to confirm."""
        match = service.create_match("singles", ["alice"], ["bob"], "21-15", submitted_by="carol")

        assert match.needs_confirmation_from_list == ["alice", "bob"]
        assert match.created_by == "carol"

    def test_draw_has_no_winners(self, service, singles_players):
        match = service.create_match("singles", ["alice"], ["bob"], "21-19,19-21", submitted_by="alice")

        assert _winners(match) == []

    def test_played_at(self, service, singles_players):
        played = datetime(2026, 3, 1, 18, 30)
        match = service.create_match("singles", ["alice"], ["bob"], "21-15", submitted_by="alice", played_at=played)

        assert match.played_at == played
        assert match.submitted_at >= played

    def test_winner_hint_matches(self, service, singles_players):
        match = service.create_match(
            "singles", ["alice"], ["bob"], "21-15,21-18", submitted_by="alice", winner_team="a"
        )

        assert _winners(match) == ["alice"]

    def test_winner_hint_conflicts(self, service, singles_players):
        with pytest.raises(ValidationError) as exc_info:
            service.create_match("singles", ["alice"], ["bob"], "21-15,21-18", submitted_by="alice", winner_team="B")

        assert exc_info.value.code == "winner_mismatch"

    def test_winner_hint_on_draw(self, service, singles_players):
        with pytest.raises(ValidationError) as exc_info:
            service.create_match("singles", ["alice"], ["bob"], "21-19,19-21", submitted_by="alice", winner_team="A")

        assert exc_info.value.code == "winner_on_draw"

    def test_invalid_winner_hint(self, service, singles_players):
        with pytest.raises(ValidationError):
            service.create_match("singles", ["alice"], ["bob"], "21-15", submitted_by="alice", winner_team="C")

    def test_invalid_match_type(self, service, singles_players):
        with pytest.raises(ValidationError) as exc_info:
            service.create_match("triples", ["alice"], ["bob"], "21-15", submitted_by="alice")

        assert exc_info.value.code == "invalid_match_type"

    @pytest.mark.parametrize(
        "match_type,team_a,team_b",
        [
            ("singles", ["alice", "carol"], ["bob"]),
            ("singles", [], ["bob"]),
            ("doubles", ["a1"], ["b1", "b2"]),
            ("doubles", ["a1", "a2", "c1"], ["b1", "b2"]),
        ],
    )
    def test_wrong_team_size(self, service, singles_players, doubles_players, match_type, team_a, team_b):
        with pytest.raises(ValidationError) as exc_info:
            service.create_match(match_type, team_a, team_b, "21-15", submitted_by=team_b[0])

        assert exc_info.value.code == "invalid_team_size"

    def test_player_on_both_teams(self, service, doubles_players):
        with pytest.raises(ValidationError) as exc_info:
            service.create_match("doubles", ["a1", "b1"], ["b1", "b2"], "21-15", submitted_by="a1")

        assert exc_info.value.code == "duplicate_player"

    def test_duplicate_on_same_team(self, service, doubles_players):
        with pytest.raises(ValidationError):
            service.create_match("doubles", ["a1", "a1"], ["b1", "b2"], "21-15", submitted_by="a1")

    def test_blank_player_id(self, service, singles_players):
        with pytest.raises(ValidationError) as exc_info:
            service.create_match("singles", ["  "], ["bob"], "21-15", submitted_by="bob")

        assert exc_info.value.code == "invalid_player_id"

    def test_unknown_player(self, service, singles_players):
        with pytest.raises(NotFound) as exc_info:
            service.create_match("singles", ["alice"], ["ghost"], "21-15", submitted_by="alice")

        assert exc_info.value.code == "player_not_found"

    def test_bad_score(self, service, singles_players, db_session):
        with pytest.raises(ScoreParseError):
            service.create_match("singles", ["alice"], ["bob"], "21-21", submitted_by="alice")

        assert db_session.query(Match).count() == 0

    def test_oversized_set_refused(self, service, singles_players, db_session):
        with pytest.raises(ScoreParseError) as exc_info:
            service.create_match("singles", ["alice"], ["bob"], "9" * 400 + "-0", submitted_by="alice")

        assert exc_info.value.code == "invalid_score"
        assert db_session.query(Match).count() == 0


class TestSubmitMatchScore:
    """Tests for submit_match_score."""

    @pytest.fixture
    def match(self, service, doubles_players):
        return service.create_match("doubles", ["a1", "a2"], ["b1", "b2"], "21-15,21-18", submitted_by="a1")

    def test_counter_proposal_flips_confirmers(self, service, match):
        updated = service.submit_match_score(match.id, "b2", "15-21,21-18,19-21")

        assert updated.score == "15-21,21-18,19-21"
        assert updated.submitted_by == "b2"
        assert updated.created_by == "a1"
        assert updated.needs_confirmation_from_list == ["a1", "a2"]
        assert _winners(updated) == ["b1", "b2"]

    def test_is_winner_kept_per_player(self, service, match, db_session):
        service.submit_match_score(match.id, "b1", "15-21,15-21")

        rows = db_session.query(MatchPlayer).filter(MatchPlayer.match_id == match.id).all()
        assert len(rows) == 4
        assert {r.player_id: r.is_winner for r in rows} == {"a1": False, "a2": False, "b1": True, "b2": True}

    def test_resubmitted_draw(self, service, match):
        updated = service.submit_match_score(match.id, "b1", "21-19,19-21")

        assert _winners(updated) == []

    def test_non_participant(self, service, match):
        with pytest.raises(Forbidden):
            service.submit_match_score(match.id, "c1", "21-15")

    def test_unknown_match(self, service, match):
        with pytest.raises(NotFound):
            service.submit_match_score(match.id + 100, "a1", "21-15")

    def test_not_pending(self, service, match):
        service.confirm_match(match.id, "b1")

        with pytest.raises(ValidationError) as exc_info:
            service.submit_match_score(match.id, "a1", "21-10,21-10")

        assert exc_info.value.code == "match_not_pending"

    def test_winner_hint_checked(self, service, match):
        with pytest.raises(ValidationError):
            service.submit_match_score(match.id, "b1", "15-21,15-21", winner_team="A")


class TestEditPendingMatch:
    """Tests for edit_pending_match."""

    @pytest.fixture
    def match(self, service, doubles_players):
        return service.create_match("doubles", ["a1", "a2"], ["b1", "b2"], "21-15,21-18", submitted_by="a1")

    def test_replace_teammate_and_score(self, service, match, db_session):
        edited = service.edit_pending_match(match.id, "a1", {"team_a": ["a1", "c1"], "score": "21-19,21-19"})

        assert edited.team_ids("A") == ["a1", "c1"]
        assert edited.team_ids("B") == ["b1", "b2"]
        assert edited.score == "21-19,21-19"
        assert edited.needs_confirmation_from_list == ["b1", "b2"]
        assert db_session.query(MatchPlayer).filter(MatchPlayer.match_id == match.id).count() == 4

    def test_swap_sides(self, service, match):
        """Moving the requester to the other side recomputes who confirms."""
        edited = service.edit_pending_match(match.id, "a1", {"team_a": ["b1", "b2"], "team_b": ["a1", "a2"]})

        assert edited.needs_confirmation_from_list == ["b1", "b2"]
        assert _winners(edited) == ["b1", "b2"]

    def test_change_to_singles(self, service, match):
        edited = service.edit_pending_match(
            match.id, "a1", {"match_type": "singles", "team_a": ["a1"], "team_b": ["b1"], "score": "21-3"}
        )

        assert edited.match_type == "singles"
        assert edited.participant_ids == ["a1", "b1"]
        assert edited.needs_confirmation_from_list == ["b1"]

    def test_played_at(self, service, match):
        played = datetime(2026, 5, 2, 9, 0)
        edited = service.edit_pending_match(match.id, "a1", {"played_at": played})

        assert edited.played_at == played

    def test_only_creator(self, service, match):
        with pytest.raises(Forbidden) as exc_info:
            service.edit_pending_match(match.id, "a2", {"score": "21-5"})

        assert exc_info.value.code == "not_creator"

    def test_creator_must_keep_playing(self, service, match):
        with pytest.raises(Forbidden):
            service.edit_pending_match(match.id, "a1", {"team_a": ["c1", "a2"]})

    def test_revalidates_teams(self, service, match):
        with pytest.raises(ValidationError):
            service.edit_pending_match(match.id, "a1", {"team_b": ["b1"]})

    def test_unknown_field(self, service, match):
        with pytest.raises(ValidationError) as exc_info:
            service.edit_pending_match(match.id, "a1", {"status": "confirmed"})

        assert exc_info.value.code == "invalid_fields"

    def test_empty_score_refused(self, service, match):
        """An empty score is an error, not a request to keep the stored one."""
        with pytest.raises(ScoreParseError):
            service.edit_pending_match(match.id, "a1", {"score": ""})

        assert match.score == "21-15,21-18"

    def test_omitted_score_kept(self, service, match):
        edited = service.edit_pending_match(match.id, "a1", {"team_b": ["b1", "c1"]})

        assert edited.score == "21-15,21-18"

    def test_not_pending(self, service, match):
        service.cancel_match(match.id, "a1")

        with pytest.raises(ValidationError):
            service.edit_pending_match(match.id, "a1", {"score": "21-5"})


class TestCancelMatch:
    """Tests for cancel_match."""

    @pytest.fixture
    def match(self, service, singles_players):
        return service.create_match("singles", ["alice"], ["bob"], "21-15", submitted_by="alice")

    def test_participant_cancels(self, service, match):
        cancelled = service.cancel_match(match.id, "bob", reason="  wrong opponent ")

        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_by == "bob"
        assert cancelled.cancel_reason == "wrong opponent"
        assert cancelled.cancelled_at is not None

    def test_blank_reason_stored_as_null(self, service, match):
        cancelled = service.cancel_match(match.id, "alice", reason="   ")

        assert cancelled.cancel_reason is None

    def test_organiser_can_cancel(self, service, singles_players):
        match = service.create_match("singles", ["alice"], ["bob"], "21-15", submitted_by="carol")

        assert service.cancel_match(match.id, "carol").status == "cancelled"

    def test_outsider_cannot_cancel(self, service, match):
        with pytest.raises(Forbidden):
            service.cancel_match(match.id, "carol")

    def test_cancel_is_terminal(self, service, match):
        service.cancel_match(match.id, "alice")

        with pytest.raises(ValidationError):
            service.cancel_match(match.id, "alice")
        with pytest.raises(ValidationError):
            service.confirm_match(match.id, "bob")


class TestRejectMatch:
    """Tests for reject_match."""

    @pytest.fixture
    def match(self, service, singles_players):
        return service.create_match("singles", ["alice"], ["bob"], "21-15", submitted_by="alice")

    def test_confirmer_rejects(self, service, match, db_session):
        match_id = match.id

        assert service.reject_match(match_id, "bob") == match_id
        assert db_session.get(Match, match_id) is None
        assert db_session.query(MatchPlayer).filter(MatchPlayer.match_id == match_id).count() == 0

    def test_submitter_cannot_reject(self, service, match):
        with pytest.raises(Forbidden):
            service.reject_match(match.id, "alice")

    def test_rejected_match_is_gone(self, service, match):
        service.reject_match(match.id, "bob")

        with pytest.raises(NotFound):
            service.confirm_match(match.id, "bob")

    def test_confirmed_cannot_be_rejected(self, service, match):
        service.confirm_match(match.id, "bob")

        with pytest.raises(ValidationError):
            service.reject_match(match.id, "bob")


class TestDeleteMatch:
    """Tests for delete_match."""

    @pytest.fixture
    def match(self, service, singles_players):
        return service.create_match("singles", ["alice"], ["bob"], "21-15", submitted_by="alice")

    def test_creator_deletes(self, service, match, db_session):
        match_id = match.id
        service.delete_match(match_id, "alice")

        assert db_session.get(Match, match_id) is None

    def test_cancelled_can_be_deleted(self, service, match, db_session):
        service.cancel_match(match.id, "bob")
        service.delete_match(match.id, "alice")

        assert db_session.query(Match).count() == 0

    def test_only_creator(self, service, match):
        with pytest.raises(Forbidden):
            service.delete_match(match.id, "bob")

    def test_confirmed_kept(self, service, match):
        service.confirm_match(match.id, "bob")

        with pytest.raises(Conflict):
            service.delete_match(match.id, "alice")


class TestVideoLink:
    """Tests for update_match_video_link."""

    @pytest.fixture
    def match(self, service, singles_players):
        return service.create_match("singles", ["alice"], ["bob"], "21-15", submitted_by="alice")

    def test_confirmed_match(self, service, match):
        service.confirm_match(match.id, "bob")
        updated = service.update_match_video_link(match.id, "bob", " https://video.example/m/1 ")

        assert updated.video_link == "https://video.example/m/1"
        assert updated.video_added_at is not None

    def test_pending_match(self, service, match):
        with pytest.raises(ValidationError) as exc_info:
            service.update_match_video_link(match.id, "alice", "https://video.example/m/1")

        assert exc_info.value.code == "match_not_confirmed"

    @pytest.mark.parametrize("url", ["http://video.example/m/1", "video.example", "", "https://"])
    def test_requires_https(self, service, match, url):
        service.confirm_match(match.id, "bob")

        with pytest.raises(ValidationError) as exc_info:
            service.update_match_video_link(match.id, "alice", url)

        assert exc_info.value.code == "invalid_video_link"

    def test_unknown_match_before_link_check(self, service, match):
        with pytest.raises(NotFound):
            service.update_match_video_link(match.id + 100, "alice", "http://video.example/m/1")

    def test_status_before_link_check(self, service, match):
        with pytest.raises(ValidationError) as exc_info:
            service.update_match_video_link(match.id, "alice", "not-a-link")

        assert exc_info.value.code == "match_not_confirmed"

    def test_participants_only(self, service, match):
        service.confirm_match(match.id, "bob")

        with pytest.raises(Forbidden):
            service.update_match_video_link(match.id, "carol", "https://video.example/m/1")
