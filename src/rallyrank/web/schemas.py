"""Request bodies accepted by the ladder API."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class MatchCreate(BaseModel):
    match_type: str = Field(..., description="'singles' or 'doubles'")
    players_team_A: list[str] = Field(default_factory=list)
    players_team_B: list[str] = Field(default_factory=list)
    score: str = Field(..., description="Set scores from team A's side, e.g. '21-15,18-21,21-19'")
    winner_team: Optional[str] = Field(None, description="Optional 'A'/'B', must agree with the score")
    played_at: Optional[datetime] = None

    @field_validator("played_at")
    @classmethod
    def normalize_played_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(v)


class MatchEdit(BaseModel):
    """Partial edit of a pending match; omitted fields keep their stored value."""
    match_type: Optional[str] = None
    players_team_A: Optional[list[str]] = None
    players_team_B: Optional[list[str]] = None
    score: Optional[str] = None
    winner_team: Optional[str] = None
    played_at: Optional[datetime] = None

    @field_validator("played_at")
    @classmethod
    def normalize_played_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(v)

    def to_payload(self) -> dict[str, Any]:
        """Keys understood by MatchService.edit_pending_match."""
        data = self.model_dump(exclude_none=True)
        if "players_team_A" in data:
            data["team_a"] = data.pop("players_team_A")
        if "players_team_B" in data:
            data["team_b"] = data.pop("players_team_B")
        return data


class ScoreSubmission(BaseModel):
    score: str
    winner_team: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class VideoLinkRequest(BaseModel):
    video_link: str
