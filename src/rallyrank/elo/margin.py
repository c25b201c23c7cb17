"""
Margin of victory calculations for ELO delta scaling.

In standard ELO, a 21-5 21-3 blowout and a 21-19 21-19 squeaker produce the
same rating change. This module scales the delta based on how dominant the
win was, so blowouts move ratings more than close matches.

The multiplier combines two factors:
    points_factor = 1 + alpha * tanh(points_diff / p0)
    sets_factor   = 1 + beta * (sets_diff / max_sets)
    multiplier    = max(1, points_factor * sets_factor)

Where points_diff is the sum of absolute per-set point differentials and
sets_diff is the absolute difference in sets won. tanh saturates, so huge
point differentials approach (1 + alpha) instead of growing without bound.
The floor of 1 means margin can only amplify a result, never dampen it.
"""

import math
from dataclasses import dataclass
from typing import Optional

from rallyrank.elo.constants import MARGIN_DEFAULTS
from rallyrank.parsers.score import ParsedScore


@dataclass(frozen=True)
class MarginResult:
    """
    Result of margin-of-victory calculation.

    Attributes:
        multiplier: Delta multiplier, always >= 1.0
        points_diff: Sum of absolute per-set point differentials
        sets_diff: Absolute difference in sets won
        points_factor: Contribution from point differential
        sets_factor: Contribution from sets differential
    """
    multiplier: float
    points_diff: int
    sets_diff: int
    points_factor: float
    sets_factor: float


def calculate_margin_multiplier(
    parsed: ParsedScore,
    alpha: Optional[float] = None,
    p0: Optional[float] = None,
    beta: Optional[float] = None,
    max_sets: Optional[int] = None,
) -> MarginResult:
    """
    Calculate a delta multiplier based on the match score.

    Args:
        parsed: Parsed score of the match
        alpha: Point-differential weight (default from constants)
        p0: Point-differential saturation scale (default from constants)
        beta: Sets-differential weight (default from constants)
        max_sets: Longest match format (default from constants)

    Returns:
        MarginResult with the multiplier and score analysis

    Examples:
        # Close match: 21-19 21-19 -> multiplier ~1.56
        calculate_margin_multiplier(parse_score("21-19,21-19"))

        # Dominant win: 21-8 21-10 -> multiplier ~2.32
        calculate_margin_multiplier(parse_score("21-8,21-10"))
    """
    alpha = alpha if alpha is not None else MARGIN_DEFAULTS["alpha"]
    p0 = p0 if p0 is not None else MARGIN_DEFAULTS["p0"]
    beta = beta if beta is not None else MARGIN_DEFAULTS["beta"]
    max_sets = max_sets if max_sets is not None else MARGIN_DEFAULTS["max_sets"]

    points_diff = parsed.points_diff
    sets_diff = parsed.sets_diff

    points_factor = 1.0 + alpha * math.tanh(points_diff / p0)
    sets_factor = 1.0 + beta * (sets_diff / max_sets)
    multiplier = max(1.0, points_factor * sets_factor)

    return MarginResult(
        multiplier=multiplier,
        points_diff=points_diff,
        sets_diff=sets_diff,
        points_factor=points_factor,
        sets_factor=sets_factor,
    )
