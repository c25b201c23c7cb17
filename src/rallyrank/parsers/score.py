"""
Set-score parsing utilities.

Players type scores as comma-separated set results, always written from
team A's point of view:
- One set: "21-15"
- Two sets: "21-15, 18-21"
- Three sets: "21-15,18-21,21-19"

This module validates that text and turns it into a structured result with
sets won per team, the winning team, and whether the match was a draw.

Tie rules:
- A single set can never be tied ("21-21" is rejected).
- Sets tied 1-1 over exactly two sets are a draw only when both sets were
  won by the same point margin (e.g. "21-19,19-21"). Any other 1-1 split
  has no winner and is rejected.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from rallyrank.errors import ValidationError

MIN_SETS = 1
MAX_SETS = 3

# Two digits per side keeps three canonical sets well inside the score column
MAX_SET_POINTS = 99

_SET_PATTERN = re.compile(r"^(\d+)\s*-\s*(\d+)$")


class ScoreParseError(ValidationError):
    """Raised when a score cannot be parsed."""

    default_code = "invalid_score"


@dataclass(frozen=True)
class SetScore:
    """
    A single set result.

    Attributes:
        a: Points won by team A
        b: Points won by team B
    """
    a: int
    b: int

    @property
    def winner(self) -> str:
        """'A' or 'B' - sets are never tied once parsed."""
        return "A" if self.a > self.b else "B"

    @property
    def margin(self) -> int:
        """Absolute point differential of the set."""
        return abs(self.a - self.b)

    def __str__(self) -> str:
        return f"{self.a}-{self.b}"


@dataclass(frozen=True)
class ParsedScore:
    """
    Complete parsed score representation.

    Attributes:
        sets: Set results in the order they were played
        team_a_sets_won: Sets won by team A
        team_b_sets_won: Sets won by team B
        winner_team: 'A', 'B', or None for a draw
        is_draw: True when the match ended level
    """
    sets: tuple[SetScore, ...]
    team_a_sets_won: int
    team_b_sets_won: int
    winner_team: Optional[str] = None
    is_draw: bool = False
    raw_score: str = field(default="", compare=False)

    @property
    def points_diff(self) -> int:
        """Sum of the absolute per-set point differentials."""
        return sum(s.margin for s in self.sets)

    @property
    def sets_diff(self) -> int:
        """Absolute difference in sets won."""
        return abs(self.team_a_sets_won - self.team_b_sets_won)

    def to_canonical(self) -> str:
        """Convert back to the stored form like '21-15,18-21'."""
        return ",".join(str(s) for s in self.sets)

    def to_dict(self) -> dict[str, Any]:
        """Structured form for API responses."""
        return {
            "sets": [{"a": s.a, "b": s.b} for s in self.sets],
            "teamA_sets_won": self.team_a_sets_won,
            "teamB_sets_won": self.team_b_sets_won,
            "winner_team": self.winner_team,
            "is_draw": self.is_draw,
        }

    def __repr__(self) -> str:
        return f"<ParsedScore({self.to_canonical()}, winner={self.winner_team}, draw={self.is_draw})>"


def parse_score(score_text: Any) -> ParsedScore:
    """
    Parse a set-score string into structured format.

    Args:
        score_text: Raw score string, e.g. "21-15, 18-21, 21-19"

    Returns:
        ParsedScore with sets, sets won per team and the outcome

    Raises:
        ScoreParseError: If the text is missing, malformed, has a tied set,
            or has no winner under the tie rules

    Examples:
        >>> parse_score("21-15,21-18")
        <ParsedScore(21-15,21-18, winner=A, draw=False)>

        >>> parse_score("21-19,19-21")
        <ParsedScore(21-19,19-21, winner=None, draw=True)>
    """
    if not score_text or not isinstance(score_text, str):
        raise ScoreParseError("Score text is required")

    set_strings = [part.strip() for part in score_text.split(",")]
    set_strings = [part for part in set_strings if part]

    if not MIN_SETS <= len(set_strings) <= MAX_SETS:
        raise ScoreParseError(f"Score must contain between {MIN_SETS} and {MAX_SETS} sets")

    sets = tuple(_parse_set(s) for s in set_strings)

    sets_a = sum(1 for s in sets if s.winner == "A")
    sets_b = len(sets) - sets_a

    if sets_a != sets_b:
        return ParsedScore(
            sets=sets,
            team_a_sets_won=sets_a,
            team_b_sets_won=sets_b,
            winner_team="A" if sets_a > sets_b else "B",
            is_draw=False,
            raw_score=score_text,
        )

    # Only a 1-1 split over two sets can get here
    if len(sets) == 2 and sets[0].margin == sets[1].margin:
        return ParsedScore(
            sets=sets,
            team_a_sets_won=sets_a,
            team_b_sets_won=sets_b,
            winner_team=None,
            is_draw=True,
            raw_score=score_text,
        )

    raise ScoreParseError("Score must produce a winner")


def normalize_score_text(score_text: Any) -> str:
    """Validate a score and return its canonical stored form."""
    return parse_score(score_text).to_canonical()


def _parse_set(set_str: str) -> SetScore:
    """Parse a single 'a-b' set, rejecting non-integers, oversized sets and ties."""
    match = _SET_PATTERN.match(set_str)
    if not match:
        raise ScoreParseError("Set scores must be integers")

    digits_a, digits_b = match.group(1), match.group(2)
    # Length first so huge inputs never reach int()
    max_digits = len(str(MAX_SET_POINTS))
    if len(digits_a.lstrip("0")) > max_digits or len(digits_b.lstrip("0")) > max_digits:
        raise ScoreParseError(f"Set scores cannot exceed {MAX_SET_POINTS} points")

    a = int(digits_a)
    b = int(digits_b)

    if a > MAX_SET_POINTS or b > MAX_SET_POINTS:
        raise ScoreParseError(f"Set scores cannot exceed {MAX_SET_POINTS} points")
    if a == b:
        raise ScoreParseError("Set scores cannot be tied")

    return SetScore(a=a, b=b)
