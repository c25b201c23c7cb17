"""
HTTP API for the ladder.

A thin layer: each route reads the caller id, opens one request-scoped
session via get_db, calls a match service or read model, and returns its
dict form. Any LadderError becomes

    {"error": {"code": "...", "message": "..."}}

with the error's status code. The session rolls back whenever a handler
raises, so a refused operation never leaves partial writes behind.

Caller identity is established upstream; this layer only reads the id the
auth middleware puts in the configured header (X-Auth-Id by default).
"""

import logging
from functools import lru_cache
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from rallyrank import __version__
from rallyrank.config import settings
from rallyrank.db.models import Player
from rallyrank.db.session import get_db
from rallyrank.elo.calculator import EloCalculator
from rallyrank.errors import LadderError, NotFound, Unauthorized
from rallyrank.matches.lifecycle import MatchService
from rallyrank.matches.queries import (
    get_head_to_head,
    get_match,
    list_matches_for_user,
    list_pending_confirmations,
    list_recent_matches,
    serialize_match,
)
from rallyrank.matchmaking import find_match
from rallyrank.ratings.history import get_elo_series
from rallyrank.ratings.ranking import get_leaderboard, get_overall_leaderboard, get_player_rank
from rallyrank.web.schemas import CancelRequest, MatchCreate, MatchEdit, ScoreSubmission, VideoLinkRequest

logger = logging.getLogger(__name__)

app = FastAPI(title="RallyRank Ladder", version=__version__)


# =============================================================================
# Error mapping
# =============================================================================

@app.exception_handler(LadderError)
async def ladder_error_handler(request: Request, exc: LadderError):
    """Render ladder errors as {"error": {code, message}} with their status."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s refused (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse({"error": exc.to_dict()}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query params use the same error shape as ladder errors."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else first.get("msg", "invalid request")
    return JSONResponse({"error": {"code": "validation_error", "message": message}}, status_code=400)


# =============================================================================
# Dependencies
# =============================================================================

def get_current_user_id(request: Request) -> str:
    """Caller id set by the upstream auth middleware."""
    user_id = (request.headers.get(settings.auth_header) or "").strip()
    if not user_id:
        raise Unauthorized("Missing caller identity", code="missing_auth")
    return user_id


@lru_cache
def get_calculator() -> EloCalculator:
    """One rating calculator per process, chosen from settings."""
    calculator = EloCalculator.from_settings()
    logger.info("Using rating formula %s (K=%s)", calculator.version, calculator.k_factor)
    return calculator


def get_match_service(
    db: Session = Depends(get_db),
    calculator: EloCalculator = Depends(get_calculator),
) -> MatchService:
    return MatchService(db, calculator=calculator)


# =============================================================================
# Matches
# =============================================================================

@app.post("/matches", status_code=201)
def create_match_route(
    body: MatchCreate,
    user_id: str = Depends(get_current_user_id),
    service: MatchService = Depends(get_match_service),
):
    match = service.create_match(
        match_type=body.match_type,
        team_a=body.players_team_A,
        team_b=body.players_team_B,
        score=body.score,
        submitted_by=user_id,
        winner_team=body.winner_team,
        played_at=body.played_at,
    )
    return {"message": "Match created successfully", "match": serialize_match(match)}


@app.get("/matches")
def list_my_matches(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    status: Optional[str] = Query(None, description="Comma-separated statuses (default: all)"),
    limit: Optional[int] = Query(None, ge=1, le=200),
):
    statuses = status.split(",") if status else None
    return {"matches": list_matches_for_user(db, user_id, statuses=statuses, limit=limit)}


@app.get("/matches/pending")
def pending_matches(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return {"matches": list_pending_confirmations(db, user_id)}


@app.get("/matches/recent")
def recent_matches(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=100),
):
    return {"matches": list_recent_matches(db, user_id, limit=limit)}


@app.get("/matches/h2h")
def head_to_head(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    discipline: Optional[str] = Query(None, description="'singles' or 'doubles' (default: both)"),
):
    return {"rivals": get_head_to_head(db, user_id, discipline=discipline)}


@app.get("/matches/user/{player_id}")
def player_matches(
    player_id: str,
    _user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    status: Optional[str] = Query(None, description="Comma-separated statuses (default: all)"),
):
    statuses = status.split(",") if status else None
    return {"matches": list_matches_for_user(db, player_id, statuses=statuses)}


@app.get("/matches/{match_id}")
def match_detail(
    match_id: int,
    _user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_match(db, match_id)


@app.patch("/matches/{match_id}")
def edit_match_route(
    match_id: int,
    body: MatchEdit,
    user_id: str = Depends(get_current_user_id),
    service: MatchService = Depends(get_match_service),
):
    match = service.edit_pending_match(match_id, user_id, body.to_payload())
    return {"message": "Match updated", "match": serialize_match(match)}


@app.post("/matches/{match_id}/score")
def submit_score_route(
    match_id: int,
    body: ScoreSubmission,
    user_id: str = Depends(get_current_user_id),
    service: MatchService = Depends(get_match_service),
):
    match = service.submit_match_score(match_id, user_id, body.score, winner_team=body.winner_team)
    return {"message": "Score submitted", "match": serialize_match(match)}


@app.post("/matches/{match_id}/confirm")
def confirm_match_route(
    match_id: int,
    user_id: str = Depends(get_current_user_id),
    service: MatchService = Depends(get_match_service),
):
    result = service.confirm_match(match_id, user_id)
    return {"message": "Match confirmed", **result.to_dict()}


@app.post("/matches/{match_id}/reject")
def reject_match_route(
    match_id: int,
    user_id: str = Depends(get_current_user_id),
    service: MatchService = Depends(get_match_service),
):
    service.reject_match(match_id, user_id)
    return {"message": "Match rejected", "match_id": match_id}


@app.post("/matches/{match_id}/cancel")
def cancel_match_route(
    match_id: int,
    body: Optional[CancelRequest] = None,
    user_id: str = Depends(get_current_user_id),
    service: MatchService = Depends(get_match_service),
):
    match = service.cancel_match(match_id, user_id, reason=body.reason if body else None)
    return {"message": "Match cancelled", "match": serialize_match(match)}


@app.delete("/matches/{match_id}")
def delete_match_route(
    match_id: int,
    user_id: str = Depends(get_current_user_id),
    service: MatchService = Depends(get_match_service),
):
    service.delete_match(match_id, user_id)
    return {"message": "Match deleted successfully", "match_id": match_id}


@app.post("/matches/{match_id}/video")
def add_video_link_route(
    match_id: int,
    body: VideoLinkRequest,
    user_id: str = Depends(get_current_user_id),
    service: MatchService = Depends(get_match_service),
):
    match = service.update_match_video_link(match_id, user_id, body.video_link)
    return {"message": "Video link saved", "match": serialize_match(match)}


# =============================================================================
# Ratings
# =============================================================================

@app.get("/leaderboard/overall")
def overall_leaderboard(
    db: Session = Depends(get_db),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    return get_overall_leaderboard(db, limit=limit, offset=offset)


@app.get("/leaderboard/{gender}")
def gender_leaderboard(
    gender: str,
    db: Session = Depends(get_db),
    discipline: str = Query("singles", description="'singles' or 'doubles'"),
    limit: int = Query(100, ge=1, le=500),
):
    return get_leaderboard(db, gender.strip().lower(), discipline=discipline, limit=limit)


@app.get("/players/{player_id}/rank")
def player_rank(
    player_id: str,
    db: Session = Depends(get_db),
):
    player = db.get(Player, player_id)
    if player is None:
        raise NotFound(f"Player {player_id} not found", code="player_not_found")
    return {
        "player_id": player.id,
        "ratings": {
            "singles": player.singles_elo,
            "doubles": player.doubles_elo,
            "overall": player.overall_elo,
        },
        "ranks": {
            discipline: get_player_rank(db, player, discipline)
            for discipline in ("singles", "doubles", "overall")
        },
    }


@app.get("/stats/elo-series")
def elo_series(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    player_id: Optional[str] = Query(None, description="Defaults to the caller"),
    range: str = Query("1M", description="1D, 1W, 1M, YTD or ALL"),
    elo_type: str = Query("overall", description="overall, singles or doubles"),
):
    target = player_id or user_id
    points = get_elo_series(
        db,
        target,
        range_code=range.upper(),
        elo_type=elo_type.lower(),
        tz_name=settings.stats_timezone or "UTC",
    )
    return {
        "player_id": target,
        "range": range.upper(),
        "elo_type": elo_type.lower(),
        "points": [p.to_dict() for p in points],
    }


# =============================================================================
# Matchmaking
# =============================================================================

@app.get("/matchmaking/find")
def matchmaking_find(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    mode: Optional[str] = Query(None, description="'singles' or 'doubles'"),
) -> dict[str, Any]:
    return find_match(db, user_id, mode or "").to_dict()


@app.get("/health")
def health():
    return {"status": "ok", "version": __version__}


def main():
    """Run the API with uvicorn using the configured host and port."""
    import uvicorn

    logging.basicConfig(level=settings.log_level, format=settings.log_format)
    uvicorn.run(
        "rallyrank.web.api:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )


if __name__ == "__main__":
    main()
