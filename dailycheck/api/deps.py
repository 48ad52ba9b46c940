from typing import AsyncGenerator, Optional
from uuid import UUID

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dailycheck.auth.jwt import verify_token
from dailycheck.config import get_settings
from dailycheck.database import get_db
from dailycheck.exceptions import AuthenticationRequired
from dailycheck.schemas import CurrentUser
from dailycheck.services.checkin import CheckinService
from dailycheck.services.feed import FeedService
from dailycheck.services.profile import ProfileService
from dailycheck.services.reaction import ReactionService
from dailycheck.services.social import SocialService
from dailycheck.services.storage import StorageService

settings = get_settings()
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """Resolve the caller from the identity provider's bearer token."""
    if credentials is None:
        raise AuthenticationRequired()

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise AuthenticationRequired("Invalid authentication token")

    sub = payload.get("sub")
    if not isinstance(sub, str):
        raise AuthenticationRequired("Invalid token subject")
    try:
        user_id = UUID(sub)
    except ValueError:
        raise AuthenticationRequired("Invalid token subject")

    return CurrentUser(id=user_id, email=payload.get("email"))


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Dependency for an HTTP client scoped to the request."""
    async with httpx.AsyncClient(timeout=settings.storage_timeout_seconds) as client:
        yield client


async def get_checkin_service(db: AsyncSession = Depends(get_db)) -> CheckinService:
    """Dependency for CheckinService."""
    return CheckinService(db)


async def get_feed_service(db: AsyncSession = Depends(get_db)) -> FeedService:
    """Dependency for FeedService."""
    return FeedService(db)


async def get_reaction_service(db: AsyncSession = Depends(get_db)) -> ReactionService:
    """Dependency for ReactionService."""
    return ReactionService(db)


async def get_social_service(db: AsyncSession = Depends(get_db)) -> SocialService:
    """Dependency for SocialService."""
    return SocialService(db)


async def get_profile_service(db: AsyncSession = Depends(get_db)) -> ProfileService:
    """Dependency for ProfileService."""
    return ProfileService(db)


async def get_storage_service(
    client: httpx.AsyncClient = Depends(get_http_client),
) -> StorageService:
    """Dependency for StorageService."""
    return StorageService(client)
