"""
ELO rating calculator for ladder matches.

Implements the standard ELO expectancy with two interchangeable formulas:

- v2 (MarginEloFormula, default): scales the classic delta by a
  margin-of-victory multiplier and an upset factor, then clamps it.
  Draws award a fixed bonus to both sides.
- v1 (FlatEloFormula): the classic delta with no scaling, kept as a named
  strategy for leagues that want plain ELO.

The formula:
  Expected score: E_A = 1 / (1 + 10^((R_B - R_A) / 400))
  Base delta:     D   = K * (S_A - E_A)     where S_A is 1 / 0 / 0.5

Doubles uses the team average rating on each side as the effective rating,
and both teammates receive the same delta.

All math here is float. Rounding to integer ratings happens only when the
delta is persisted (see EloDelta.rounded()).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Protocol, Sequence

from rallyrank.elo.constants import (
    CLAMP_MAX,
    CLAMP_MIN,
    DRAW_BONUS,
    FORMULA_V1,
    FORMULA_V2,
    FORMULA_VERSIONS,
    K_FACTOR,
    SCORE_DRAW,
    SCORE_LOSS,
    SCORE_WIN,
    SPREAD,
    UPSET_GAMMA,
    VARIABILITY_SCALE,
)
from rallyrank.elo.margin import calculate_margin_multiplier
from rallyrank.parsers.score import ParsedScore

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability that a side rated ``rating`` beats ``opponent_rating``."""
    try:
        return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / SPREAD))
    except OverflowError:
        return 0.0 if opponent_rating > rating else 1.0


def team_rating(ratings: Sequence[float]) -> float:
    """Effective rating of a side: the mean of its players' ratings."""
    if not ratings:
        raise ValueError("A team needs at least one rating")
    return sum(ratings) / len(ratings)


def score_for_side_a(parsed: ParsedScore) -> float:
    """Actual score for side A: 1 for a win, 0 for a loss, 0.5 for a draw."""
    if parsed.is_draw:
        return SCORE_DRAW
    return SCORE_WIN if parsed.winner_team == "A" else SCORE_LOSS


@dataclass(frozen=True)
class EloDelta:
    """
    Result of a rating formula.

    delta_a is applied to every player on side A, delta_b to side B.
    """
    delta_a: float
    delta_b: float
    expected_a: float
    margin_multiplier: float = 1.0
    upset_factor: float = 1.0

    @property
    def expected_b(self) -> float:
        return 1.0 - self.expected_a

    def rounded(self) -> tuple[int, int]:
        """Deltas as applied to storage (nearest integer, halves away from zero)."""
        return round_half_up(self.delta_a), round_half_up(self.delta_b)

    def __repr__(self) -> str:
        return (
            f"<EloDelta(A: {self.delta_a:+.2f}, B: {self.delta_b:+.2f}, "
            f"E_A={self.expected_a:.3f})>"
        )


class EloFormula(Protocol):
    """Strategy interface shared by every rating formula version."""

    version: str

    def compute_delta(
        self,
        rating_a: float,
        rating_b: float,
        score_a: float,
        parsed: Optional[ParsedScore],
        k_factor: float,
        mode: str,
    ) -> EloDelta:
        ...


class FlatEloFormula:
    """Classic zero-sum ELO with no margin or upset scaling."""

    version = FORMULA_V1

    def compute_delta(
        self,
        rating_a: float,
        rating_b: float,
        score_a: float,
        parsed: Optional[ParsedScore],
        k_factor: float,
        mode: str,
    ) -> EloDelta:
        exp_a = expected_score(rating_a, rating_b)
        delta_a = k_factor * (score_a - exp_a)
        return EloDelta(delta_a=delta_a, delta_b=-delta_a, expected_a=exp_a)


class MarginEloFormula:
    """
    Margin-of-victory and upset aware ELO.

    Non-draw results:
        delta = clamp(K * (S_A - E_A) * margin * upset * scale, -60, 60)
    where margin comes from elo.margin and
        upset = 1 + gamma * |S_A - E_A|

    Draws skip the proportional formula entirely and award a fixed bonus
    to both sides.
    """

    version = FORMULA_V2

    def __init__(
        self,
        draw_bonus: float = DRAW_BONUS,
        upset_gamma: float = UPSET_GAMMA,
        variability_scale: float = VARIABILITY_SCALE,
        clamp_min: float = CLAMP_MIN,
        clamp_max: float = CLAMP_MAX,
    ):
        self.draw_bonus = draw_bonus
        self.upset_gamma = upset_gamma
        self.variability_scale = variability_scale
        self.clamp_min = clamp_min
        self.clamp_max = clamp_max

    def compute_delta(
        self,
        rating_a: float,
        rating_b: float,
        score_a: float,
        parsed: Optional[ParsedScore],
        k_factor: float,
        mode: str,
    ) -> EloDelta:
        exp_a = expected_score(rating_a, rating_b)

        if parsed is not None and parsed.is_draw:
            return EloDelta(
                delta_a=float(self.draw_bonus),
                delta_b=float(self.draw_bonus),
                expected_a=exp_a,
            )

        if parsed is not None:
            margin = calculate_margin_multiplier(parsed).multiplier
        else:
            margin = 1.0

        surprise = score_a - exp_a
        upset = 1.0 + self.upset_gamma * abs(surprise)

        base_delta = k_factor * surprise
        raw_delta = base_delta * margin * upset * self.variability_scale
        delta_a = min(max(raw_delta, self.clamp_min), self.clamp_max)

        logger.debug(
            "v2 %s delta: base=%.3f margin=%.3f upset=%.3f -> %.3f",
            mode, base_delta, margin, upset, delta_a,
        )

        return EloDelta(
            delta_a=delta_a,
            delta_b=-delta_a,
            expected_a=exp_a,
            margin_multiplier=margin,
            upset_factor=upset,
        )


def get_formula(version: str, draw_bonus: float = DRAW_BONUS) -> EloFormula:
    """
    Build the formula strategy for a configured version.

    Raises:
        ValueError: If the version is unknown
    """
    if version == FORMULA_V2:
        return MarginEloFormula(draw_bonus=draw_bonus)
    if version == FORMULA_V1:
        return FlatEloFormula()
    raise ValueError(f"Unknown ELO formula version '{version}', expected one of {FORMULA_VERSIONS}")


class EloCalculator:
    """
    Rating calculator bound to one formula strategy.

    Built once at process start (usually via from_settings()) and passed to
    the match services, so the formula in use is always explicit.

    Usage:
        calculator = EloCalculator.from_settings()

        delta = calculator.rate_match(
            ratings_a=[1050, 1010],   # doubles team A
            ratings_b=[1000, 1050],   # doubles team B
            parsed=parse_score("21-15,21-13"),
            mode="doubles",
        )
        print(delta.rounded())
    """

    def __init__(self, formula: Optional[EloFormula] = None, k_factor: float = K_FACTOR):
        self.formula = formula or MarginEloFormula()
        self.k_factor = k_factor

    @classmethod
    def from_settings(cls, app_settings=None) -> "EloCalculator":
        """Create a calculator from application settings."""
        if app_settings is None:
            from rallyrank.config import settings as app_settings

        formula = get_formula(app_settings.elo_formula_version, draw_bonus=app_settings.elo_draw_bonus)
        return cls(formula=formula, k_factor=app_settings.elo_k_factor)

    @property
    def version(self) -> str:
        return self.formula.version

    def compute_delta(
        self,
        rating_a: float,
        rating_b: float,
        score_a: float,
        parsed: Optional[ParsedScore] = None,
        mode: str = "singles",
    ) -> EloDelta:
        """Delta for two effective side ratings and a known side-A score."""
        return self.formula.compute_delta(
            rating_a=float(rating_a),
            rating_b=float(rating_b),
            score_a=score_a,
            parsed=parsed,
            k_factor=self.k_factor,
            mode=mode,
        )

    def rate_match(
        self,
        ratings_a: Sequence[float],
        ratings_b: Sequence[float],
        parsed: ParsedScore,
        mode: str,
    ) -> EloDelta:
        """
        Delta for a whole match given every player's rating on each side.

        Singles passes one rating per side; doubles passes two and the
        team average is used for expectancy.
        """
        return self.compute_delta(
            rating_a=team_rating(ratings_a),
            rating_b=team_rating(ratings_b),
            score_a=score_for_side_a(parsed),
            parsed=parsed,
            mode=mode,
        )

    def get_win_probability(self, rating_a: float, rating_b: float) -> float:
        """Probability of side A winning."""
        return expected_score(float(rating_a), float(rating_b))


def compute_elo_delta(
    rating_a: float,
    rating_b: float,
    score_a: float,
    parsed: Optional[ParsedScore],
    k_factor: float = K_FACTOR,
    mode: str = "singles",
    version: str = FORMULA_V2,
) -> EloDelta:
    """
    Simple function to compute one match's deltas.

    For when you just need the numbers without holding a calculator.
    """
    return get_formula(version).compute_delta(
        rating_a=float(rating_a),
        rating_b=float(rating_b),
        score_a=score_a,
        parsed=parsed,
        k_factor=k_factor,
        mode=mode,
    )
