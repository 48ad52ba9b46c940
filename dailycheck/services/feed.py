from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import bindparam, text
from typing import Optional
from uuid import UUID

from dailycheck.config import get_settings
from dailycheck.pagination import build_pagination, clamp_limit, page_offset
from dailycheck.services.profile import fallback_display_name
from dailycheck.services.reaction import ReactionService
from dailycheck.services.social import SocialService

settings = get_settings()


class FeedService:
    """
    Social feed.
    Pull-based (fan-out-on-read) with offset pagination:
    1. Get all users this user follows
    2. Count their check-ins and clamp the requested page
    3. Fetch one page, newest first, joined with owner profiles
    4. Attach reaction aggregates for the page in one batch
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.social = SocialService(db)
        self.reactions = ReactionService(db)

    async def get_feed(
        self,
        user_id: UUID,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[dict], dict]:
        """Returns: (checkins, pagination)"""
        if limit is None:
            limit = settings.feed_limit_default
        limit = clamp_limit(limit, settings.feed_limit_max)

        following_ids = await self.social.get_following_ids(user_id)
        # The no-self-follow constraint already guarantees this
        following_ids = [fid for fid in following_ids if fid != user_id]
        if not following_ids:
            return [], build_pagination(page, limit, 0)

        count_query = text("""
            SELECT COUNT(*)
            FROM checkins
            WHERE user_id IN :following_ids
        """).bindparams(bindparam("following_ids", expanding=True))
        result = await self.db.execute(count_query, {"following_ids": following_ids})
        total = result.scalar() or 0

        pagination = build_pagination(page, limit, total)
        if total == 0:
            return [], pagination

        page_query = text("""
            SELECT
                c.id,
                c.user_id,
                c.photo_url,
                c.created_at,
                c.location,
                c.device_info,
                p.username,
                p.display_name
            FROM checkins c
            LEFT JOIN profiles p ON p.user_id = c.user_id
            WHERE c.user_id IN :following_ids
            ORDER BY c.created_at DESC, c.id DESC
            LIMIT :limit OFFSET :offset
        """).bindparams(bindparam("following_ids", expanding=True))
        result = await self.db.execute(
            page_query,
            {
                "following_ids": following_ids,
                "limit": limit,
                "offset": page_offset(pagination),
            },
        )
        rows = result.fetchall()

        aggregates = await self.reactions.aggregate_for_checkins(
            [row.id for row in rows], user_id
        )

        checkins = []
        for row in rows:
            summaries, own_types = aggregates.get(row.id, ([], []))
            checkins.append({
                "id": row.id,
                "photo_url": row.photo_url,
                "created_at": row.created_at,
                "location": row.location,
                "device_info": row.device_info,
                "user": {
                    "id": row.user_id,
                    "username": row.username,
                    "display_name": row.display_name or fallback_display_name(row.user_id),
                },
                "reactions": summaries,
                "user_reactions": own_types,
            })

        return checkins, pagination
