from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Literal
from datetime import datetime
from uuid import UUID

from dailycheck.constants import ReactionType


class CamelModel(BaseModel):
    """Wire models use camelCase keys; services hand back snake_case dicts."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ----- Identity -----
class CurrentUser(BaseModel):
    id: UUID
    email: Optional[str] = None


# ----- Shared -----
class SuccessResponse(CamelModel):
    success: bool = True


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


# ----- Check-in Schemas -----
class CheckinCreate(CamelModel):
    photo_url: str = Field(..., min_length=1, description="Public URL of the uploaded photo")
    location: Optional[str] = None
    device_info: Optional[str] = None


class CheckinResponse(CamelModel):
    id: UUID
    user_id: UUID
    photo_url: str
    created_at: datetime
    location: Optional[str] = None
    device_info: Optional[str] = None


class CheckinCreateResponse(CamelModel):
    ok: bool = True
    checkin: CheckinResponse


class CheckinHistoryResponse(CamelModel):
    checkins: list[CheckinResponse]
    pagination: Pagination


# ----- Reaction Schemas -----
class ReactionCreate(CamelModel):
    checkin_id: UUID
    reaction_type: ReactionType


class ReactionSummary(CamelModel):
    type: ReactionType
    count: int
    user_reacted: bool


class CheckinReactionsResponse(CamelModel):
    reactions: list[ReactionSummary]
    user_reactions: list[ReactionType]


class ReactionAddResponse(CamelModel):
    success: bool = True
    created: bool


class ReactionRemoveResponse(CamelModel):
    success: bool = True
    removed: int


class UserReaction(CamelModel):
    id: UUID
    checkin_id: UUID
    reaction_type: str
    created_at: datetime
    photo_url: str
    checkin_created_at: datetime


class UserReactionsResponse(CamelModel):
    reactions: list[UserReaction]


# ----- Feed Schemas -----
class FeedUser(CamelModel):
    id: UUID
    username: Optional[str] = None
    display_name: str


class FeedItem(CamelModel):
    id: UUID
    photo_url: str
    created_at: datetime
    location: Optional[str] = None
    device_info: Optional[str] = None
    user: FeedUser
    reactions: list[ReactionSummary] = []
    user_reactions: list[ReactionType] = []


class FeedResponse(CamelModel):
    checkins: list[FeedItem]
    pagination: Pagination


# ----- Follow Schemas -----
class FollowCreate(CamelModel):
    following_id: UUID = Field(..., description="User to follow")


class FollowStatusResponse(CamelModel):
    is_following: bool
    is_followed_by: bool
    following_count: int
    followers_count: int


class FollowUser(CamelModel):
    id: UUID
    username: str
    display_name: str
    followed_at: datetime


class FollowListResponse(CamelModel):
    users: list[FollowUser]


# ----- Profile Schemas -----
class ProfileResponse(CamelModel):
    id: UUID
    user_id: UUID
    username: str
    display_name: Optional[str] = None
    background_url: Optional[str] = None
    updated_at: Optional[datetime] = None


class ProfileEnvelope(CamelModel):
    profile: ProfileResponse


class UsernameUpdate(CamelModel):
    username: str


class UsernameUpdateResponse(CamelModel):
    success: bool = True
    username: str


class BackgroundUpdate(CamelModel):
    background_url: str = Field(..., min_length=1)


class BackgroundUpdateResponse(CamelModel):
    success: bool = True
    background_url: str


class UserSearchResult(CamelModel):
    id: UUID
    username: str
    display_name: str


class UserSearchResponse(CamelModel):
    users: list[UserSearchResult]


# ----- Storage Schemas -----
UploadKind = Literal["checkin", "background"]


class UploadUrlRequest(CamelModel):
    kind: UploadKind = "checkin"


class UploadUrlResponse(CamelModel):
    path: str
    token: str
    url: str
    public_url: str


# ----- Health Schemas -----
class HealthResponse(BaseModel):
    status: str
    database: str
    version: str
