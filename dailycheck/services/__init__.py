"""Services package."""

from dailycheck.services.checkin import CheckinService
from dailycheck.services.feed import FeedService
from dailycheck.services.profile import ProfileService
from dailycheck.services.reaction import ReactionService
from dailycheck.services.social import SocialService
from dailycheck.services.storage import StorageService

__all__ = [
    "CheckinService",
    "FeedService",
    "ProfileService",
    "ReactionService",
    "SocialService",
    "StorageService",
]
