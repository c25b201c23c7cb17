"""Derived overall rating, weighted by matches played per discipline."""

from typing import Optional

from rallyrank.elo.calculator import round_half_up
from rallyrank.elo.constants import DEFAULT_ELO


def compute_overall_elo(
    singles_elo: Optional[int],
    singles_played: Optional[int],
    doubles_elo: Optional[int],
    doubles_played: Optional[int],
) -> Optional[int]:
    """
    Blend singles and doubles ratings by how often each was played.

        overall = round((S * n_s + D * n_d) / (n_s + n_d))

    Returns None for a player with no confirmed matches.

    Example:
        compute_overall_elo(1100, 3, 1000, 1)  # -> 1075
    """
    singles_played = singles_played or 0
    doubles_played = doubles_played or 0
    total = singles_played + doubles_played
    if total <= 0:
        return None

    singles = singles_elo if singles_elo is not None else DEFAULT_ELO
    doubles = doubles_elo if doubles_elo is not None else DEFAULT_ELO
    weighted = (singles * singles_played + doubles * doubles_played) / total
    return round_half_up(weighted)
