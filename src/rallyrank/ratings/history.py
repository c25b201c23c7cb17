"""Rating time series built from the append-only elo_history table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from rallyrank.db.models import EloHistory
from rallyrank.errors import ValidationError

ALLOWED_RANGES: tuple[str, ...] = ("1D", "1W", "1M", "YTD", "ALL")
ELO_TYPES: tuple[str, ...] = ("overall", "singles", "doubles")


@dataclass(frozen=True)
class EloPoint:
    """One point of a rating series."""
    timestamp: datetime
    elo: int
    match_id: int
    discipline: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "elo": self.elo,
            "match_id": self.match_id,
            "discipline": self.discipline,
        }


def range_start(range_code: str, now: datetime, tz_name: str = "UTC") -> Optional[datetime]:
    """
    First instant included in a range, as a naive UTC datetime.

    Rolling ranges (1D, 1W, 1M) count back from ``now``; YTD starts at
    January 1st in ``tz_name``. ALL has no lower bound.
    """
    if range_code not in ALLOWED_RANGES:
        raise ValidationError("Invalid range", code="invalid_range")

    if range_code == "ALL":
        return None
    if range_code == "1D":
        return now - timedelta(days=1)
    if range_code == "1W":
        return now - timedelta(weeks=1)
    if range_code == "1M":
        return now - timedelta(days=30)

    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone '{tz_name}'", code="invalid_timezone") from None

    local_now = now.replace(tzinfo=timezone.utc).astimezone(tz)
    local_start = local_now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return local_start.astimezone(timezone.utc).replace(tzinfo=None)


def get_elo_series(
    session: Session,
    player_id: str,
    range_code: str = "1M",
    elo_type: str = "overall",
    tz_name: str = "UTC",
    now: Optional[datetime] = None,
) -> list[EloPoint]:
    """
    Chronological rating points for a player.

    Args:
        player_id: Player auth id
        range_code: One of 1D, 1W, 1M, YTD, ALL
        elo_type: 'singles' or 'doubles' for that discipline's rating,
            'overall' for the blended rating across both
        tz_name: Timezone for calendar ranges
        now: Reference time (naive UTC), defaults to the current time

    Raises:
        ValidationError: For an unknown range, type or timezone
    """
    if elo_type not in ELO_TYPES:
        raise ValidationError("Invalid elo type", code="invalid_elo_type")

    start = range_start(range_code, now or datetime.utcnow(), tz_name)

    query = session.query(EloHistory).filter(EloHistory.player_id == player_id)
    if elo_type != "overall":
        query = query.filter(EloHistory.discipline == elo_type)
    if start is not None:
        query = query.filter(EloHistory.created_at >= start)

    points = []
    for row in query.order_by(EloHistory.created_at, EloHistory.id).all():
        elo = row.new_elo if elo_type != "overall" else row.new_overall_elo
        if elo is None:
            continue
        points.append(
            EloPoint(timestamp=row.created_at, elo=elo, match_id=row.match_id, discipline=row.discipline)
        )
    return points
