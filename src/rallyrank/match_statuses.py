"""Shared match-status, discipline and team definitions.

This module is the single source of truth for the vocabulary reused across
the lifecycle service, read models, the web layer and the rating engine.
"""

from __future__ import annotations

from typing import Iterable

PENDING = "pending"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"

# Rejected matches are deleted outright, so there is no "rejected" status.
ALL_MATCH_STATUSES: tuple[str, ...] = (PENDING, CONFIRMED, CANCELLED)

MATCH_STATUS_GROUPS: dict[str, tuple[str, ...]] = {
    # Matches still awaiting confirmation.
    "actionable": (PENDING,),
    # Statuses that can never transition again.
    "terminal": (CONFIRMED, CANCELLED),
    # Matches whose result moved ratings.
    "rated": (CONFIRMED,),
    "all": ALL_MATCH_STATUSES,
}

SINGLES = "singles"
DOUBLES = "doubles"
DISCIPLINES: tuple[str, ...] = (SINGLES, DOUBLES)

# Players required on each team per discipline.
TEAM_SIZES: dict[str, int] = {
    SINGLES: 1,
    DOUBLES: 2,
}

TEAM_A = "A"
TEAM_B = "B"
TEAMS: tuple[str, ...] = (TEAM_A, TEAM_B)


def get_status_group(group_name: str) -> tuple[str, ...]:
    """Return a named status group, raising KeyError for unknown names."""
    return MATCH_STATUS_GROUPS[group_name]


def opposing_team(team: str) -> str:
    """Return the other team label."""
    if team not in TEAMS:
        raise ValueError(f"team must be 'A' or 'B', got '{team}'")
    return TEAM_B if team == TEAM_A else TEAM_A


def normalize_status_filter(
    raw_statuses: Iterable[str] | None,
    *,
    default_group: str = "all",
) -> list[str]:
    """Normalize requested statuses against known values.

    - If no statuses are provided, returns the statuses from ``default_group``.
    - Group names (e.g. "terminal") expand to their statuses.
    - Unknown statuses are ignored.
    - Order is preserved and duplicates are removed.
    """
    if raw_statuses is None:
        return list(get_status_group(default_group))

    seen: set[str] = set()
    normalized: list[str] = []

    for raw in raw_statuses:
        name = raw.strip().lower()
        expanded = MATCH_STATUS_GROUPS.get(name, (name,))
        for status in expanded:
            if status in seen or status not in ALL_MATCH_STATUSES:
                continue
            seen.add(status)
            normalized.append(status)

    if normalized:
        return normalized

    return list(get_status_group(default_group))
