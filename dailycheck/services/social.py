import logging
from typing import Literal
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from dailycheck.exceptions import AlreadyFollowing, FollowNotFound, SelfFollowNotAllowed
from dailycheck.services.profile import fallback_display_name, fallback_username

logger = logging.getLogger(__name__)

FollowDirection = Literal["following", "followers"]


class SocialService:
    """Follow graph. Every mutation is scoped to the caller as follower."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def follow(self, follower_id: UUID, following_id: UUID) -> None:
        if follower_id == following_id:
            raise SelfFollowNotAllowed()

        result = await self.db.execute(
            text("""
                INSERT INTO follows (follower_id, following_id)
                VALUES (:follower_id, :following_id)
                ON CONFLICT (follower_id, following_id) DO NOTHING
                RETURNING id
            """),
            {"follower_id": follower_id, "following_id": following_id},
        )
        row = result.fetchone()
        await self.db.commit()

        if row is None:
            raise AlreadyFollowing()
        logger.info(f"Follow created: follower={follower_id}, following={following_id}")

    async def unfollow(self, follower_id: UUID, following_id: UUID) -> None:
        result = await self.db.execute(
            text("DELETE FROM follows WHERE follower_id = :follower_id AND following_id = :following_id"),
            {"follower_id": follower_id, "following_id": following_id},
        )
        await self.db.commit()

        if result.rowcount == 0:
            raise FollowNotFound()
        logger.info(f"Follow removed: follower={follower_id}, following={following_id}")

    async def get_following_ids(self, user_id: UUID) -> list[UUID]:
        result = await self.db.execute(
            text("SELECT following_id FROM follows WHERE follower_id = :user_id"),
            {"user_id": user_id},
        )
        return [row.following_id for row in result.fetchall()]

    async def follow_status(self, viewer_id: UUID, target_id: UUID) -> dict:
        """Relationship between viewer and target, plus the target's counts."""
        result = await self.db.execute(
            text("""
                SELECT
                    EXISTS(
                        SELECT 1 FROM follows
                        WHERE follower_id = :viewer_id AND following_id = :target_id
                    ) AS is_following,
                    EXISTS(
                        SELECT 1 FROM follows
                        WHERE follower_id = :target_id AND following_id = :viewer_id
                    ) AS is_followed_by,
                    (SELECT COUNT(*) FROM follows WHERE follower_id = :target_id) AS following_count,
                    (SELECT COUNT(*) FROM follows WHERE following_id = :target_id) AS followers_count
            """),
            {"viewer_id": viewer_id, "target_id": target_id},
        )
        row = result.fetchone()
        return {
            "is_following": bool(row.is_following),
            "is_followed_by": bool(row.is_followed_by),
            "following_count": int(row.following_count or 0),
            "followers_count": int(row.followers_count or 0),
        }

    async def list_follows(
        self,
        user_id: UUID,
        direction: FollowDirection = "following",
    ) -> list[dict]:
        """Users that user_id follows, or that follow user_id, newest edge first."""
        if direction == "followers":
            query = """
                SELECT f.follower_id AS id, p.username, p.display_name, f.created_at
                FROM follows f
                LEFT JOIN profiles p ON f.follower_id = p.user_id
                WHERE f.following_id = :user_id
                ORDER BY f.created_at DESC
            """
        else:
            query = """
                SELECT f.following_id AS id, p.username, p.display_name, f.created_at
                FROM follows f
                LEFT JOIN profiles p ON f.following_id = p.user_id
                WHERE f.follower_id = :user_id
                ORDER BY f.created_at DESC
            """

        result = await self.db.execute(text(query), {"user_id": user_id})
        return [
            {
                "id": r.id,
                "username": r.username or fallback_username(r.id),
                "display_name": r.display_name or r.username or fallback_display_name(r.id),
                "followed_at": r.created_at,
            }
            for r in result.fetchall()
        ]
