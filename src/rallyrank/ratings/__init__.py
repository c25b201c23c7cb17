"""
Rating read models and maintenance.

- ranking: Rank of a rating value, leaderboards
- history: Rating time series from elo_history
- recompute: Rebuild derived overall ratings
"""

from rallyrank.ratings.history import ALLOWED_RANGES, EloPoint, get_elo_series
from rallyrank.ratings.ranking import (
    get_leaderboard,
    get_overall_leaderboard,
    get_player_rank,
    get_rank,
    get_ranks,
)
from rallyrank.ratings.recompute import RecomputeResult, recompute_overall_ratings

__all__ = [
    "ALLOWED_RANGES",
    "EloPoint",
    "RecomputeResult",
    "get_elo_series",
    "get_leaderboard",
    "get_overall_leaderboard",
    "get_player_rank",
    "get_rank",
    "get_ranks",
    "recompute_overall_ratings",
]
