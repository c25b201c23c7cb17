"""
Match lifecycle.

- validation: Team shape, confirmation lists, winner hints
- lifecycle: MatchService (create, resubmit, edit, cancel, reject, delete, video)
- confirmation: confirm_match and its result types
- queries: Read models for matches
"""

from rallyrank.matches.confirmation import (
    ConfirmationResult,
    PlayerRatingChange,
    UpsetSummary,
    confirm_match,
)
from rallyrank.matches.lifecycle import MatchService
from rallyrank.matches.queries import (
    get_head_to_head,
    get_match,
    list_matches_for_user,
    list_pending_confirmations,
    list_recent_matches,
    serialize_match,
)

__all__ = [
    "ConfirmationResult",
    "MatchService",
    "PlayerRatingChange",
    "UpsetSummary",
    "confirm_match",
    "get_head_to_head",
    "get_match",
    "list_matches_for_user",
    "list_pending_confirmations",
    "list_recent_matches",
    "serialize_match",
]
