"""
RallyRank - Racket-Sport Ladder Backend

Players record singles and doubles matches, the opposing side confirms the
score, and a margin-of-victory aware ELO engine moves ratings per discipline.

Main components:
- parsers: Set-score parsing and validation
- elo: Rating formulas and the derived overall rating
- matches: Match lifecycle and the confirmation state machine
- ratings: Rank queries, leaderboards and rating history
- matchmaking: Nearest-rating opponent suggestions
- web: Thin FastAPI request layer
"""

__version__ = "1.0.0"
