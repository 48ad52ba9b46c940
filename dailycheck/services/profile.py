import logging
import re
import uuid
from typing import Iterator, Optional
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dailycheck.config import get_settings
from dailycheck.constants import (
    DEFAULT_DISPLAY_NAME,
    DEFAULT_USERNAME,
    SEARCH_MIN_LENGTH,
    USERNAME_MAX_ATTEMPTS,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
    USERNAME_PATTERN,
)
from dailycheck.exceptions import InvalidSearchQuery, InvalidUsername, UsernameTaken

settings = get_settings()
logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "id, user_id, username, display_name, background_url, updated_at"

_username_re = re.compile(USERNAME_PATTERN)
_disallowed_username_chars = re.compile(r"[^A-Za-z0-9_]")


def email_local_part(email: Optional[str]) -> str:
    if not email:
        return ""
    return email.split("@")[0]


def derive_base_username(email: Optional[str]) -> str:
    """Email local-part reduced to username characters, or 'user'."""
    base = _disallowed_username_chars.sub("", email_local_part(email))
    # Leave room for a numeric suffix
    base = base[: USERNAME_MAX_LENGTH - 10]
    if len(base) < USERNAME_MIN_LENGTH:
        return DEFAULT_USERNAME
    return base


def default_display_name(email: Optional[str]) -> str:
    return email_local_part(email) or DEFAULT_DISPLAY_NAME


def fallback_display_name(user_id) -> str:
    return f"User {str(user_id)[:8]}"


def fallback_username(user_id) -> str:
    return f"user_{str(user_id)[:8]}"


def username_candidates(base: str) -> Iterator[str]:
    """base, base1, base2, ... and finally a random suffix."""
    yield base
    for counter in range(1, USERNAME_MAX_ATTEMPTS):
        yield f"{base}{counter}"
    yield f"{base}_{uuid.uuid4().hex[:8]}"


def validate_username(raw: Optional[str]) -> str:
    username = (raw or "").strip()
    if len(username) < USERNAME_MIN_LENGTH:
        raise InvalidUsername(f"Username must be at least {USERNAME_MIN_LENGTH} characters")
    if len(username) > USERNAME_MAX_LENGTH:
        raise InvalidUsername(f"Username must be at most {USERNAME_MAX_LENGTH} characters")
    if not _username_re.match(username):
        raise InvalidUsername("Username can only contain letters, numbers, and underscores")
    return username


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def profile_to_dict(row) -> dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "username": row.username,
        "display_name": row.display_name,
        "background_url": row.background_url,
        "updated_at": row.updated_at,
    }


class ProfileService:
    """Profiles: lazy provisioning, username and background edits, search."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id: UUID) -> Optional[dict]:
        result = await self.db.execute(
            text(f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE user_id = :user_id"),
            {"user_id": user_id},
        )
        row = result.fetchone()
        return profile_to_dict(row) if row else None

    async def ensure_profile(self, user_id: UUID, email: Optional[str] = None) -> dict:
        """
        Get-or-create the profile for user_id.

        Each candidate username is inserted with ON CONFLICT DO NOTHING, so the
        unique constraints on user_id and username decide races: an empty
        RETURNING means either another request created this user's profile
        (return it) or the username is taken (try the next one).
        """
        existing = await self.get_profile(user_id)
        if existing:
            return existing

        base = derive_base_username(email)
        display_name = default_display_name(email)
        taken = await self._usernames_like(base)

        for candidate in username_candidates(base):
            if candidate in taken:
                continue

            result = await self.db.execute(
                text(f"""
                    INSERT INTO profiles (user_id, username, display_name, updated_at)
                    VALUES (:user_id, :username, :display_name, NOW())
                    ON CONFLICT DO NOTHING
                    RETURNING {PROFILE_COLUMNS}
                """),
                {"user_id": user_id, "username": candidate, "display_name": display_name},
            )
            row = result.fetchone()
            await self.db.commit()

            if row:
                logger.info(f"Profile created: user_id={user_id}, username={candidate}")
                return profile_to_dict(row)

            existing = await self.get_profile(user_id)
            if existing:
                return existing

        raise UsernameTaken(base)

    async def sync_profile(self, user_id: UUID, email: Optional[str] = None) -> dict:
        """Ensure the profile exists and fill in a missing display name."""
        profile = await self.ensure_profile(user_id, email)
        if profile["display_name"]:
            return profile

        result = await self.db.execute(
            text(f"""
                UPDATE profiles
                SET display_name = COALESCE(display_name, :display_name)
                WHERE user_id = :user_id
                RETURNING {PROFILE_COLUMNS}
            """),
            {"user_id": user_id, "display_name": default_display_name(email)},
        )
        row = result.fetchone()
        await self.db.commit()
        return profile_to_dict(row) if row else profile

    async def update_username(
        self,
        user_id: UUID,
        username: str,
        email: Optional[str] = None,
    ) -> str:
        """Change the username; uniqueness is left to the storage constraint."""
        username = validate_username(username)
        await self.ensure_profile(user_id, email)

        try:
            result = await self.db.execute(
                text("""
                    UPDATE profiles
                    SET username = :username, updated_at = NOW()
                    WHERE user_id = :user_id
                    RETURNING username
                """),
                {"username": username, "user_id": user_id},
            )
            row = result.fetchone()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise UsernameTaken(username)

        return row.username

    async def update_background(
        self,
        user_id: UUID,
        background_url: str,
        email: Optional[str] = None,
    ) -> str:
        await self.ensure_profile(user_id, email)
        result = await self.db.execute(
            text("""
                UPDATE profiles
                SET background_url = :background_url, updated_at = NOW()
                WHERE user_id = :user_id
                RETURNING background_url
            """),
            {"background_url": background_url, "user_id": user_id},
        )
        row = result.fetchone()
        await self.db.commit()
        return row.background_url

    async def search_users(
        self,
        viewer_id: UUID,
        query: Optional[str],
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Case-insensitive partial username match, excluding the viewer."""
        query = (query or "").strip()
        if len(query) < SEARCH_MIN_LENGTH:
            raise InvalidSearchQuery(
                f"Username query must be at least {SEARCH_MIN_LENGTH} characters"
            )

        result = await self.db.execute(
            text("""
                SELECT user_id, username, display_name
                FROM profiles
                WHERE username ILIKE :pattern ESCAPE '\\'
                AND user_id <> :viewer_id
                ORDER BY username
                LIMIT :limit
            """),
            {
                "pattern": f"%{escape_like(query)}%",
                "viewer_id": viewer_id,
                "limit": limit or settings.user_search_limit,
            },
        )
        return [
            {
                "id": row.user_id,
                "username": row.username,
                "display_name": row.display_name or row.username,
            }
            for row in result.fetchall()
        ]

    async def _usernames_like(self, base: str) -> set[str]:
        """Existing usernames of the form base or base<digits>."""
        result = await self.db.execute(
            text("SELECT username FROM profiles WHERE username ~ :pattern"),
            {"pattern": f"^{re.escape(base)}[0-9]*$"},
        )
        return {row.username for row in result.fetchall()}
