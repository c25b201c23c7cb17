"""
Unit tests for ELO calculator.

Tests the rating formulas to ensure:
- Decisive results are zero-sum
- Underdogs winning gain more than favorites winning
- Bigger margins move ratings more
- Draws award the fixed bonus regardless of ratings
- Doubles uses team averages
- Edge cases (clamping, rounding, unknown versions) are handled
"""

import pydantic
import pytest

from rallyrank.config import Settings
from rallyrank.elo.calculator import (
    EloCalculator,
    FlatEloFormula,
    MarginEloFormula,
    compute_elo_delta,
    expected_score,
    get_formula,
    round_half_up,
    team_rating,
)
from rallyrank.elo.margin import calculate_margin_multiplier
from rallyrank.elo.overall import compute_overall_elo
from rallyrank.parsers.score import parse_score


class TestExpectedScore:
    """Tests for the expectancy curve."""

    def test_equal_ratings(self):
        assert expected_score(1000, 1000) == pytest.approx(0.5)

    def test_400_point_spread(self):
        """A 400 point edge means 10:1 odds."""
        assert expected_score(1400, 1000) == pytest.approx(10 / 11)
        assert expected_score(1000, 1400) == pytest.approx(1 / 11)

    def test_extreme_gap_does_not_overflow(self):
        assert expected_score(0, 10**6) == pytest.approx(0.0)
        assert expected_score(10**6, 0) == pytest.approx(1.0)

    def test_calculator_win_probability(self):
        assert EloCalculator().get_win_probability(1200, 1000) == pytest.approx(expected_score(1200, 1000))


class TestMarginMultiplier:
    """Tests for margin-of-victory scaling."""

    def test_close_match(self):
        result = calculate_margin_multiplier(parse_score("21-19,21-19"))

        assert result.points_diff == 4
        assert result.sets_diff == 2
        assert result.multiplier == pytest.approx(1.5636, abs=1e-3)

    def test_blowout_beats_close_match(self):
        close = calculate_margin_multiplier(parse_score("21-19,21-19"))
        blowout = calculate_margin_multiplier(parse_score("21-8,21-10"))

        assert blowout.multiplier > close.multiplier

    def test_straight_sets_beat_three_setter(self):
        """Same point differential, but winning in straight sets counts more."""
        straight = calculate_margin_multiplier(parse_score("21-17,21-17"))
        three = calculate_margin_multiplier(parse_score("21-19,19-21,21-17"))

        assert straight.points_diff == three.points_diff == 8
        assert straight.multiplier > three.multiplier

    def test_saturates(self):
        """Huge differentials approach (1 + alpha) * sets factor, never beyond."""
        result = calculate_margin_multiplier(parse_score("21-0,21-0"))

        assert result.points_factor < 1.9
        assert result.multiplier < 1.9 * (1 + 0.4 * 2 / 3)

    def test_never_below_one(self):
        result = calculate_margin_multiplier(parse_score("21-20"))

        assert result.multiplier >= 1.0


class TestMarginEloFormula:
    """Tests for the default v2 formula."""

    @pytest.fixture
    def calculator(self):
        return EloCalculator()

    def test_version(self, calculator):
        assert calculator.version == "v2"

    def test_equal_ratings_win(self, calculator):
        """
        Equal ratings, A wins 21-15 21-18.

        base 16, margin ~1.879, upset 1.3, scale 1.25 -> ~48.85
        """
        delta = calculator.rate_match([1000], [1000], parse_score("21-15,21-18"), "singles")

        assert delta.delta_a == pytest.approx(48.85, abs=0.01)
        assert delta.rounded() == (49, -49)

    def test_zero_sum(self, calculator):
        delta = calculator.rate_match([1180], [1020], parse_score("15-21,21-19,17-21"), "singles")

        assert delta.delta_a + delta.delta_b == pytest.approx(0.0)
        assert sum(delta.rounded()) == 0

    def test_loser_loses_points(self, calculator):
        delta = calculator.rate_match([1000], [1000], parse_score("15-21,18-21"), "singles")

        assert delta.delta_a < 0
        assert delta.delta_b > 0

    def test_underdog_gains_more(self, calculator):
        """Beating a stronger side is worth more than beating a weaker one."""
        score = parse_score("21-17,21-17")
        underdog = calculator.rate_match([900], [1100], score, "singles")
        favorite = calculator.rate_match([1100], [900], score, "singles")

        assert underdog.delta_a > favorite.delta_a > 0
        assert underdog.upset_factor > favorite.upset_factor

    def test_bigger_margin_moves_more(self, calculator):
        close = calculator.rate_match([1000], [1000], parse_score("21-19,21-19"), "singles")
        blowout = calculator.rate_match([1000], [1000], parse_score("21-5,21-3"), "singles")

        assert blowout.delta_a > close.delta_a

    def test_clamped(self, calculator):
        """Extreme upsets are capped at 60 points."""
        delta = calculator.rate_match([600], [1400], parse_score("21-0,21-0"), "singles")

        assert delta.delta_a == 60.0
        assert delta.delta_b == -60.0

    def test_draw_awards_fixed_bonus(self, calculator):
        delta = calculator.rate_match([1000], [1000], parse_score("21-19,19-21"), "singles")

        assert (delta.delta_a, delta.delta_b) == (5.0, 5.0)

    def test_draw_ignores_ratings(self, calculator):
        """A draw pays the same bonus whoever was favored."""
        draw = parse_score("21-15,15-21")
        even = calculator.rate_match([1000], [1000], draw, "singles")
        lopsided = calculator.rate_match([1400], [900], draw, "singles")

        assert even.rounded() == lopsided.rounded() == (5, 5)

    def test_configurable_draw_bonus(self):
        calculator = EloCalculator(formula=MarginEloFormula(draw_bonus=3))
        delta = calculator.rate_match([1000], [1200], parse_score("21-19,19-21"), "singles")

        assert delta.rounded() == (3, 3)

    def test_no_score_means_no_margin(self, calculator):
        delta = calculator.compute_delta(1000, 1000, score_a=1.0, parsed=None)

        assert delta.margin_multiplier == 1.0
        assert delta.delta_a == pytest.approx(16 * 1.3 * 1.25)


class TestDoubles:
    """Doubles uses the team average on each side."""

    def test_team_rating_is_mean(self):
        assert team_rating([1050, 1010]) == 1030
        assert team_rating([1200]) == 1200

    def test_team_rating_requires_players(self):
        with pytest.raises(ValueError):
            team_rating([])

    def test_matches_equivalent_singles(self):
        calculator = EloCalculator()
        score = parse_score("21-15,21-13")

        doubles = calculator.rate_match([1050, 1010], [1000, 1050], score, "doubles")
        singles = calculator.compute_delta(1030, 1025, score_a=1.0, parsed=score, mode="doubles")

        assert doubles.delta_a == pytest.approx(singles.delta_a)

    def test_teammate_order_irrelevant(self):
        calculator = EloCalculator()
        score = parse_score("18-21,21-16,21-19")

        first = calculator.rate_match([1100, 950], [1000, 1000], score, "doubles")
        second = calculator.rate_match([950, 1100], [1000, 1000], score, "doubles")

        assert first.delta_a == pytest.approx(second.delta_a)


class TestFlatEloFormula:
    """Tests for the legacy v1 formula."""

    @pytest.fixture
    def calculator(self):
        return EloCalculator(formula=FlatEloFormula())

    def test_classic_delta(self, calculator):
        delta = calculator.rate_match([1000], [1000], parse_score("21-5,21-3"), "singles")

        assert delta.delta_a == pytest.approx(16.0)
        assert delta.delta_b == pytest.approx(-16.0)

    def test_margin_ignored(self, calculator):
        close = calculator.rate_match([1000], [1000], parse_score("21-19"), "singles")
        blowout = calculator.rate_match([1000], [1000], parse_score("21-0"), "singles")

        assert close.delta_a == pytest.approx(blowout.delta_a)

    def test_draw_scores_half(self, calculator):
        """v1 draws are zero-sum: the favorite loses a little."""
        delta = calculator.rate_match([1100], [1000], parse_score("21-19,19-21"), "singles")

        assert delta.delta_a < 0
        assert delta.delta_a + delta.delta_b == pytest.approx(0.0)


class TestFormulaSelection:
    """Formula versions come from configuration."""

    def test_get_formula(self):
        assert isinstance(get_formula("v2"), MarginEloFormula)
        assert isinstance(get_formula("v1"), FlatEloFormula)

    def test_unknown_version(self):
        with pytest.raises(ValueError):
            get_formula("v9")

    def test_from_settings(self):
        app_settings = Settings(elo_formula_version="v1", elo_k_factor=24)
        calculator = EloCalculator.from_settings(app_settings)

        assert calculator.version == "v1"
        assert calculator.k_factor == 24

    def test_settings_reject_unknown_version(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(elo_formula_version="v3")

    def test_compute_elo_delta_convenience(self):
        delta = compute_elo_delta(1000, 1000, 1.0, parse_score("21-15,21-18"))

        assert delta.rounded() == (49, -49)


class TestRounding:
    """Rounding applied at persistence."""

    @pytest.mark.parametrize(
        "value,expected",
        [(2.5, 3), (-2.5, -3), (2.49, 2), (-0.4, 0), (59.5, 60), (0.0, 0)],
    )
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_rounded_deltas_stay_zero_sum(self):
        """Symmetric rounding keeps A's gain equal to B's loss."""
        calculator = EloCalculator()
        for rating_b in range(900, 1200, 7):
            delta = calculator.rate_match([1000], [rating_b], parse_score("21-17,19-21,21-18"), "singles")
            gain, loss = delta.rounded()
            assert gain == -loss


class TestOverallElo:
    """Tests for the matches-played weighted overall rating."""

    def test_weighted_mean(self):
        assert compute_overall_elo(1100, 3, 1000, 1) == 1075

    def test_no_matches(self):
        assert compute_overall_elo(1000, 0, 1000, 0) is None
        assert compute_overall_elo(1000, None, 1000, None) is None

    def test_single_discipline(self):
        assert compute_overall_elo(1049, 1, 1000, 0) == 1049
        assert compute_overall_elo(1000, 0, 962, 4) == 962

    def test_rounds_half_up(self):
        assert compute_overall_elo(1001, 1, 1000, 1) == 1001
