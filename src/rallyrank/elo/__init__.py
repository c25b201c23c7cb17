"""
ELO rating system module.

Implements ladder-specific ELO calculations with:
- Margin-of-victory scaling from point and set differentials
- Upset amplification for surprising results
- Fixed draw bonus
- Team-average ratings for doubles
- A flat v1 formula selectable through configuration
- Matches-played weighted overall rating
"""

from rallyrank.elo.calculator import (
    EloCalculator,
    EloDelta,
    FlatEloFormula,
    MarginEloFormula,
    compute_elo_delta,
    expected_score,
    get_formula,
    team_rating,
)
from rallyrank.elo.constants import DEFAULT_ELO, K_FACTOR
from rallyrank.elo.margin import MarginResult, calculate_margin_multiplier
from rallyrank.elo.overall import compute_overall_elo

__all__ = [
    "EloCalculator",
    "EloDelta",
    "FlatEloFormula",
    "MarginEloFormula",
    "compute_elo_delta",
    "expected_score",
    "get_formula",
    "team_rating",
    "DEFAULT_ELO",
    "K_FACTOR",
    "MarginResult",
    "calculate_margin_multiplier",
    "compute_overall_elo",
]
