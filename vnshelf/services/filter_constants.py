# vnshelf/services/filter_constants.py

"""Constants and enums for library sorting and catalog presentation.

Defines the sort enums used by LibraryFilterService, the canonical
trait-category and character-role orders used by GroupingService, and
the VNDB list-status labels.
"""

from __future__ import annotations

from enum import Enum

__all__ = [
    "ALL_SORT_KEYS",
    "DEFAULT_ROLE",
    "OTHER_TRAIT_GROUP",
    "ROLE_NAMES",
    "ROLE_ORDER",
    "STATUS_LABELS",
    "SortDirection",
    "SortKey",
    "TRAIT_ORDER",
]


class SortKey(Enum):
    """Available sort keys for the library view.

    Attributes:
        TITLE: Alphabetical by title (A-Z).
        LAST_PLAYED: Most recently played first; never-played entries last.
        PLAY_TIME: Most played first.
    """

    TITLE = "title"
    LAST_PLAYED = "lastPlayed"
    PLAY_TIME = "playTime"


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"


ALL_SORT_KEYS: frozenset[str] = frozenset(key.value for key in SortKey)

# Trait categories in display order; anything else follows in first-seen order
TRAIT_ORDER: tuple[str, ...] = (
    "Hair",
    "Eyes",
    "Body",
    "Clothes",
    "Items",
    "Personality",
    "Role",
    "Engages in",
    "Subject of",
    "Engages in (Sexual)",
    "Subject of (Sexual)",
)

OTHER_TRAIT_GROUP = "Other"

# VNDB role keys in display order: protagonist, main, side, appearance-only
ROLE_ORDER: tuple[str, ...] = ("main", "primary", "side", "appears")

DEFAULT_ROLE = "appears"

ROLE_NAMES: dict[str, str] = {
    "main": "Protagonist",
    "primary": "Main Characters",
    "side": "Side Characters",
    "appears": "Makes an Appearance",
}

# VNDB list labels that act as a mutually exclusive status
STATUS_LABELS: dict[int, str] = {
    1: "Playing",
    2: "Finished",
    3: "Stalled",
    4: "Dropped",
    5: "Wishlist",
    6: "Blacklist",
}
