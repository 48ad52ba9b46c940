# Domain constants shared by services and schemas

from enum import Enum


class ReactionType(str, Enum):
    """Closed set of reaction types. A user may hold one of each per check-in."""

    HAHA = "haha"
    HEART = "heart"
    WOW = "wow"


# Stable display order for aggregates
REACTION_ORDER = [ReactionType.HAHA, ReactionType.HEART, ReactionType.WOW]

# Upload kinds and their object-store prefixes
UPLOAD_PREFIXES = {
    "checkin": "checkins",
    "background": "backgrounds",
}

# Profile usernames
USERNAME_MIN_LENGTH = 2
USERNAME_MAX_LENGTH = 50
USERNAME_PATTERN = r"^[A-Za-z0-9_]+$"
DEFAULT_USERNAME = "user"
DEFAULT_DISPLAY_NAME = "User"
USERNAME_MAX_ATTEMPTS = 1000

# Minimum length for user search queries
SEARCH_MIN_LENGTH = 2
