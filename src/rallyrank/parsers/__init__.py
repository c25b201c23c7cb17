"""
Parsers for user-submitted match data.

- score: Comma-separated set scores ("21-15,18-21,21-19")
"""

from rallyrank.parsers.score import (
    ParsedScore,
    ScoreParseError,
    SetScore,
    normalize_score_text,
    parse_score,
)

__all__ = [
    "ParsedScore",
    "ScoreParseError",
    "SetScore",
    "normalize_score_text",
    "parse_score",
]
