import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from dailycheck.config import get_settings
from dailycheck.exceptions import CheckinNotFound, CheckinRateLimited
from dailycheck.pagination import build_pagination, page_offset

settings = get_settings()
logger = logging.getLogger(__name__)

CHECKIN_COLUMNS = "id, user_id, photo_url, created_at, location, device_info"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def retry_after_seconds(last_checkin_at: datetime, now: datetime, cooldown: timedelta) -> int:
    """Whole seconds until the cooldown opened by last_checkin_at expires (at least 1)."""
    remaining = (last_checkin_at + cooldown - now).total_seconds()
    return max(1, math.ceil(remaining))


def checkin_to_dict(row) -> dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "photo_url": row.photo_url,
        "created_at": row.created_at,
        "location": row.location,
        "device_info": row.device_info,
    }


class CheckinService:
    """
    Check-in creation and reads.

    Creation enforces a per-user cooldown. The existence check and the insert
    run in one transaction holding a per-user advisory lock, so concurrent
    requests from the same user cannot both slip through the window.
    """

    def __init__(
        self,
        db: AsyncSession,
        cooldown_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.cooldown = timedelta(
            minutes=cooldown_minutes if cooldown_minutes is not None else settings.checkin_cooldown_minutes
        )
        self.clock = clock

    async def create_checkin(
        self,
        user_id: UUID,
        photo_url: str,
        location: Optional[str] = None,
        device_info: Optional[str] = None,
    ) -> dict:
        """Create a check-in, or raise CheckinRateLimited inside the cooldown window."""
        now = self.clock()
        since = now - self.cooldown

        # Serializes concurrent creates for this user until commit/rollback
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"),
            {"lock_key": f"checkin:{user_id}"},
        )

        result = await self.db.execute(
            text("""
                SELECT id, created_at
                FROM checkins
                WHERE user_id = :user_id AND created_at >= :since
                ORDER BY created_at DESC
                LIMIT 1
            """),
            {"user_id": user_id, "since": since},
        )
        recent = result.fetchone()

        if recent:
            await self.db.rollback()
            retry_after = retry_after_seconds(recent.created_at, now, self.cooldown)
            logger.info(
                f"Check-in rejected by cooldown: user_id={user_id}, "
                f"blocking_checkin={recent.id}, retry_after={retry_after}s"
            )
            raise CheckinRateLimited(
                cooldown_minutes=int(self.cooldown.total_seconds() // 60),
                retry_after_seconds=retry_after,
            )

        result = await self.db.execute(
            text(f"""
                INSERT INTO checkins (user_id, photo_url, location, device_info, created_at)
                VALUES (:user_id, :photo_url, :location, :device_info, :created_at)
                RETURNING {CHECKIN_COLUMNS}
            """),
            {
                "user_id": user_id,
                "photo_url": photo_url,
                "location": location,
                "device_info": device_info,
                "created_at": now,
            },
        )
        row = result.fetchone()
        await self.db.commit()

        logger.info(f"Check-in created: id={row.id}, user_id={user_id}")
        return checkin_to_dict(row)

    async def list_checkins(self, user_id: UUID, limit: Optional[int] = None) -> list[dict]:
        """Most recent check-ins of a user, newest first."""
        result = await self.db.execute(
            text(f"""
                SELECT {CHECKIN_COLUMNS}
                FROM checkins
                WHERE user_id = :user_id
                ORDER BY created_at DESC
                LIMIT :limit
            """),
            {"user_id": user_id, "limit": limit or settings.checkin_list_limit},
        )
        return [checkin_to_dict(row) for row in result.fetchall()]

    async def list_history(
        self,
        user_id: UUID,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> tuple[list[dict], dict]:
        """Full check-in history, one page at a time. Returns: (checkins, pagination)"""
        page_size = page_size or settings.history_page_size

        result = await self.db.execute(
            text("SELECT COUNT(*) FROM checkins WHERE user_id = :user_id"),
            {"user_id": user_id},
        )
        total = result.scalar() or 0
        pagination = build_pagination(page, page_size, total)
        if total == 0:
            return [], pagination

        result = await self.db.execute(
            text(f"""
                SELECT {CHECKIN_COLUMNS}
                FROM checkins
                WHERE user_id = :user_id
                ORDER BY created_at DESC
                LIMIT :limit OFFSET :offset
            """),
            {"user_id": user_id, "limit": page_size, "offset": page_offset(pagination)},
        )
        return [checkin_to_dict(row) for row in result.fetchall()], pagination

    async def get_checkin(self, user_id: UUID, checkin_id: UUID) -> dict:
        """A single check-in owned by user_id."""
        result = await self.db.execute(
            text(f"""
                SELECT {CHECKIN_COLUMNS}
                FROM checkins
                WHERE id = :checkin_id AND user_id = :user_id
            """),
            {"checkin_id": checkin_id, "user_id": user_id},
        )
        row = result.fetchone()
        if not row:
            raise CheckinNotFound(str(checkin_id))
        return checkin_to_dict(row)
