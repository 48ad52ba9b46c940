from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from typing import Literal, Optional
from uuid import UUID

from dailycheck import __version__
from dailycheck.config import get_settings
from dailycheck.database import get_db
from dailycheck.exceptions import MissingParameter
from dailycheck.api.deps import (
    get_current_user,
    get_checkin_service,
    get_feed_service,
    get_reaction_service,
    get_social_service,
    get_profile_service,
    get_storage_service,
)
from dailycheck.services.checkin import CheckinService
from dailycheck.services.feed import FeedService
from dailycheck.services.reaction import ReactionService
from dailycheck.services.social import SocialService
from dailycheck.services.profile import ProfileService
from dailycheck.services.storage import StorageService
from dailycheck.schemas import (
    CurrentUser,
    SuccessResponse,
    Pagination,
    CheckinCreate,
    CheckinResponse,
    CheckinCreateResponse,
    CheckinHistoryResponse,
    ReactionCreate,
    ReactionSummary,
    CheckinReactionsResponse,
    ReactionAddResponse,
    ReactionRemoveResponse,
    UserReaction,
    UserReactionsResponse,
    FeedItem,
    FeedResponse,
    FollowCreate,
    FollowStatusResponse,
    FollowUser,
    FollowListResponse,
    ProfileResponse,
    ProfileEnvelope,
    UsernameUpdate,
    UsernameUpdateResponse,
    BackgroundUpdate,
    BackgroundUpdateResponse,
    UserSearchResult,
    UserSearchResponse,
    UploadUrlRequest,
    UploadUrlResponse,
    HealthResponse,
)

settings = get_settings()
router = APIRouter()


# ----- Health Check -----
@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check endpoint."""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception:
        db_status = "unhealthy"

    return HealthResponse(
        status="ok" if db_status == "healthy" else "degraded",
        database=db_status,
        version=__version__,
    )


# ----- Check-in Endpoints -----
@router.post("/checkins", response_model=CheckinCreateResponse, status_code=201, tags=["Check-ins"])
async def create_checkin(
    request: CheckinCreate,
    user: CurrentUser = Depends(get_current_user),
    checkin_service: CheckinService = Depends(get_checkin_service),
):
    """Create a check-in. Rejected with 429 inside the cooldown window."""
    checkin = await checkin_service.create_checkin(
        user_id=user.id,
        photo_url=request.photo_url,
        location=request.location,
        device_info=request.device_info,
    )
    return CheckinCreateResponse(checkin=CheckinResponse(**checkin))


@router.get("/checkins", response_model=list[CheckinResponse], tags=["Check-ins"])
async def list_checkins(
    user: CurrentUser = Depends(get_current_user),
    checkin_service: CheckinService = Depends(get_checkin_service),
):
    """Most recent check-ins of the caller, newest first."""
    checkins = await checkin_service.list_checkins(user.id)
    return [CheckinResponse(**c) for c in checkins]


@router.get("/checkins/history", response_model=CheckinHistoryResponse, tags=["Check-ins"])
async def checkin_history(
    page: int = Query(default=1),
    user: CurrentUser = Depends(get_current_user),
    checkin_service: CheckinService = Depends(get_checkin_service),
):
    """Full check-in history of the caller, paginated."""
    checkins, pagination = await checkin_service.list_history(user.id, page=page)
    return CheckinHistoryResponse(
        checkins=[CheckinResponse(**c) for c in checkins],
        pagination=Pagination(**pagination),
    )


@router.get("/checkins/{checkin_id}", response_model=CheckinResponse, tags=["Check-ins"])
async def get_checkin(
    checkin_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    checkin_service: CheckinService = Depends(get_checkin_service),
):
    """Get one of the caller's own check-ins."""
    checkin = await checkin_service.get_checkin(user.id, checkin_id)
    return CheckinResponse(**checkin)


# ----- Feed Endpoints -----
@router.get("/social/feed", response_model=FeedResponse, tags=["Feed"])
async def get_feed(
    page: int = Query(default=1),
    limit: int = Query(default=settings.feed_limit_default),
    user: CurrentUser = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    """
    Check-ins from everyone the caller follows, newest first.
    Pages beyond the last one are clamped to the last page, and limit is
    clamped into [1, feed_limit_max].
    """
    checkins, pagination = await feed_service.get_feed(user.id, page=page, limit=limit)
    return FeedResponse(
        checkins=[FeedItem(**c) for c in checkins],
        pagination=Pagination(**pagination),
    )


# ----- Reaction Endpoints -----
@router.post("/reactions", response_model=ReactionAddResponse, tags=["Reactions"])
async def add_reaction(
    request: ReactionCreate,
    user: CurrentUser = Depends(get_current_user),
    reaction_service: ReactionService = Depends(get_reaction_service),
):
    """Add a reaction. Adding one that already exists succeeds without change."""
    created = await reaction_service.react(user.id, request.checkin_id, request.reaction_type)
    return ReactionAddResponse(created=created)


@router.delete("/reactions", response_model=ReactionRemoveResponse, tags=["Reactions"])
async def remove_reaction(
    checkin_id: UUID = Query(..., alias="checkinId"),
    reaction_type: Optional[str] = Query(default=None, alias="reactionType"),
    user: CurrentUser = Depends(get_current_user),
    reaction_service: ReactionService = Depends(get_reaction_service),
):
    """Remove one reaction type, or all of the caller's reactions on the check-in."""
    # An empty reactionType clears every type, same as omitting it
    removed = await reaction_service.unreact(user.id, checkin_id, reaction_type or None)
    return ReactionRemoveResponse(removed=removed)


@router.get("/reactions", tags=["Reactions"])
async def get_reactions(
    checkin_id: Optional[UUID] = Query(default=None, alias="checkinId"),
    user_id: Optional[UUID] = Query(default=None, alias="userId"),
    user: CurrentUser = Depends(get_current_user),
    reaction_service: ReactionService = Depends(get_reaction_service),
):
    """Reaction aggregate for a check-in, or every reaction placed by a user."""
    if checkin_id is not None:
        data = await reaction_service.get_reactions(checkin_id, user.id)
        return CheckinReactionsResponse(
            reactions=[ReactionSummary(**r) for r in data["reactions"]],
            user_reactions=data["user_reactions"],
        )
    if user_id is not None:
        reactions = await reaction_service.list_user_reactions(user_id)
        return UserReactionsResponse(reactions=[UserReaction(**r) for r in reactions])
    raise MissingParameter("checkinId or userId is required")


# ----- Follow Endpoints -----
@router.post("/follows", response_model=SuccessResponse, tags=["Follows"])
async def follow_user(
    request: FollowCreate,
    user: CurrentUser = Depends(get_current_user),
    social_service: SocialService = Depends(get_social_service),
):
    """Follow a user."""
    await social_service.follow(user.id, request.following_id)
    return SuccessResponse()


@router.delete("/follows", response_model=SuccessResponse, tags=["Follows"])
async def unfollow_user(
    following_id: UUID = Query(..., alias="followingId"),
    user: CurrentUser = Depends(get_current_user),
    social_service: SocialService = Depends(get_social_service),
):
    """Unfollow a user."""
    await social_service.unfollow(user.id, following_id)
    return SuccessResponse()


@router.get("/follows", response_model=FollowListResponse, tags=["Follows"])
async def list_follows(
    type: Literal["following", "followers"] = Query(default="following"),
    user_id: Optional[UUID] = Query(default=None, alias="userId"),
    user: CurrentUser = Depends(get_current_user),
    social_service: SocialService = Depends(get_social_service),
):
    """Users followed by (or following) the given user, the caller by default."""
    users = await social_service.list_follows(user_id or user.id, direction=type)
    return FollowListResponse(users=[FollowUser(**u) for u in users])


@router.get("/follows/status", response_model=FollowStatusResponse, tags=["Follows"])
async def follow_status(
    user_id: UUID = Query(..., alias="userId"),
    user: CurrentUser = Depends(get_current_user),
    social_service: SocialService = Depends(get_social_service),
):
    """Follow relationship between the caller and a user, with the user's counts."""
    status = await social_service.follow_status(user.id, user_id)
    return FollowStatusResponse(**status)


# ----- User / Profile Endpoints -----
@router.get("/users/search", response_model=UserSearchResponse, tags=["Users"])
async def search_users(
    username: Optional[str] = Query(default=None),
    user: CurrentUser = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """Search users by username (case-insensitive, partial)."""
    users = await profile_service.search_users(user.id, username)
    return UserSearchResponse(users=[UserSearchResult(**u) for u in users])


@router.get("/profile", response_model=ProfileEnvelope, tags=["Profile"])
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """The caller's profile, created on first access."""
    profile = await profile_service.ensure_profile(user.id, user.email)
    return ProfileEnvelope(profile=ProfileResponse(**profile))


@router.post("/profile/sync", response_model=SuccessResponse, tags=["Profile"])
async def sync_profile(
    user: CurrentUser = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """Make sure the caller's profile exists and has a display name."""
    await profile_service.sync_profile(user.id, user.email)
    return SuccessResponse()


@router.put("/profile/username", response_model=UsernameUpdateResponse, tags=["Profile"])
async def update_username(
    request: UsernameUpdate,
    user: CurrentUser = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """Change the caller's username."""
    username = await profile_service.update_username(user.id, request.username, user.email)
    return UsernameUpdateResponse(username=username)


@router.put("/profile/background", response_model=BackgroundUpdateResponse, tags=["Profile"])
async def update_background(
    request: BackgroundUpdate,
    user: CurrentUser = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """Set the caller's background image URL."""
    background_url = await profile_service.update_background(
        user.id, request.background_url, user.email
    )
    return BackgroundUpdateResponse(background_url=background_url)


# ----- Storage Endpoints -----
@router.post("/upload-url", response_model=UploadUrlResponse, tags=["Storage"])
async def create_upload_url(
    request: Optional[UploadUrlRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    storage_service: StorageService = Depends(get_storage_service),
):
    """Signed upload slot for a check-in photo or a background image."""
    kind = request.kind if request else "checkin"
    upload = await storage_service.create_upload_url(user.id, kind)
    return UploadUrlResponse(**upload)
