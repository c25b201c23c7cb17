"""
Rating engine constants.

K factor: Controls rating volatility (how much ratings change per match).
Singles and doubles share the same K; doubles uses team-average ratings
so a single K keeps both disciplines on the same scale.

SPREAD: Rating difference at which the stronger side is ten times as
likely to win (the classic 400-point ELO spread).

Margin-of-victory and upset parameters only apply to the v2 formula:
- ALPHA, P0: point-differential boost, saturating through tanh so a
  21-0 21-0 blowout cannot move ratings without bound
- BETA, MAX_SETS: sets-differential boost
- GAMMA: amplifies results that diverge from the expected outcome
- VARIABILITY_SCALE: global multiplier applied after the factors above
- CLAMP_MIN, CLAMP_MAX: hard bounds on a single match's delta
"""

# Default starting rating for new players in every discipline
DEFAULT_ELO = 1000

# K-factor for both disciplines
K_FACTOR = 32

# Spread used in the expected-score formula
SPREAD = 400

# Fixed bonus each side receives for a draw (v2 only)
DRAW_BONUS = 5

# Supported formula strategies, selected through configuration
FORMULA_V1 = "v1"
FORMULA_V2 = "v2"
FORMULA_VERSIONS = (FORMULA_V1, FORMULA_V2)

# Margin-of-victory parameters for the v2 formula
MARGIN_DEFAULTS = {
    "alpha": 0.9,        # Max extra weight from point differential
    "p0": 15.0,          # Point differential at which tanh reaches ~0.76
    "beta": 0.4,         # Max extra weight from sets differential
    "max_sets": 3,       # Longest match format
}

# Upset amplification for the v2 formula
UPSET_GAMMA = 0.6

# Global scale and clamp for the v2 formula
VARIABILITY_SCALE = 1.25
CLAMP_MIN = -60.0
CLAMP_MAX = 60.0

# Actual-score values fed into the formula for side A
SCORE_WIN = 1.0
SCORE_LOSS = 0.0
SCORE_DRAW = 0.5
