import logging
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import bindparam, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dailycheck.constants import REACTION_ORDER, ReactionType
from dailycheck.exceptions import CheckinNotFound, InvalidReactionType

logger = logging.getLogger(__name__)


def parse_reaction_type(value: Union[str, ReactionType]) -> ReactionType:
    try:
        return ReactionType(value)
    except ValueError:
        raise InvalidReactionType(str(value))


def summarize(rows) -> tuple[list[dict], list[ReactionType]]:
    """
    Turn (reaction_type, count, user_reacted) rows for one check-in into
    per-type summaries plus the requesting user's own types, both in
    REACTION_ORDER.
    """
    by_type = {}
    for row in rows:
        try:
            reaction_type = ReactionType(row.reaction_type)
        except ValueError:
            logger.warning(f"Ignoring unknown reaction type in storage: {row.reaction_type!r}")
            continue
        by_type[reaction_type] = row

    summaries = []
    own_types = []
    for reaction_type in REACTION_ORDER:
        row = by_type.get(reaction_type)
        if row is None:
            continue
        summaries.append({
            "type": reaction_type,
            "count": int(row.count),
            "user_reacted": bool(row.user_reacted),
        })
        if row.user_reacted:
            own_types.append(reaction_type)
    return summaries, own_types


class ReactionService:
    """
    Typed reactions on check-ins.

    Types are not mutually exclusive: a user may hold haha, heart and wow on
    the same check-in at once, but never the same type twice.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def react(
        self,
        user_id: UUID,
        checkin_id: UUID,
        reaction_type: Union[str, ReactionType],
    ) -> bool:
        """
        Add a reaction. Idempotent.

        Returns True if a row was inserted, False if it already existed.
        """
        reaction_type = parse_reaction_type(reaction_type)

        try:
            result = await self.db.execute(
                text("""
                    INSERT INTO reactions (user_id, checkin_id, reaction_type)
                    VALUES (:user_id, :checkin_id, :reaction_type)
                    ON CONFLICT (user_id, checkin_id, reaction_type) DO NOTHING
                    RETURNING id
                """),
                {
                    "user_id": user_id,
                    "checkin_id": checkin_id,
                    "reaction_type": reaction_type.value,
                },
            )
            row = result.fetchone()
            await self.db.commit()
        except IntegrityError:
            # Only the check-in foreign key can fail here
            await self.db.rollback()
            raise CheckinNotFound(str(checkin_id))

        return row is not None

    async def unreact(
        self,
        user_id: UUID,
        checkin_id: UUID,
        reaction_type: Optional[Union[str, ReactionType]] = None,
    ) -> int:
        """
        Remove one reaction type, or every reaction the user holds on the
        check-in when no type is given. Removing nothing is not an error.

        Returns the number of rows deleted.
        """
        if reaction_type is not None:
            reaction_type = parse_reaction_type(reaction_type)
            result = await self.db.execute(
                text("""
                    DELETE FROM reactions
                    WHERE user_id = :user_id AND checkin_id = :checkin_id
                    AND reaction_type = :reaction_type
                """),
                {
                    "user_id": user_id,
                    "checkin_id": checkin_id,
                    "reaction_type": reaction_type.value,
                },
            )
        else:
            result = await self.db.execute(
                text("DELETE FROM reactions WHERE user_id = :user_id AND checkin_id = :checkin_id"),
                {"user_id": user_id, "checkin_id": checkin_id},
            )
        await self.db.commit()
        return result.rowcount

    async def get_reactions(self, checkin_id: UUID, requesting_user_id: UUID) -> dict:
        """Per-type counts on one check-in, plus the requesting user's own types."""
        aggregates = await self.aggregate_for_checkins([checkin_id], requesting_user_id)
        summaries, own_types = aggregates.get(checkin_id, ([], []))
        return {"reactions": summaries, "user_reactions": own_types}

    async def aggregate_for_checkins(
        self,
        checkin_ids: list[UUID],
        requesting_user_id: UUID,
    ) -> dict[UUID, tuple[list[dict], list[ReactionType]]]:
        """Batch version of get_reactions keyed by check-in id."""
        if not checkin_ids:
            return {}

        query = text("""
            SELECT
                checkin_id,
                reaction_type,
                COUNT(*) AS count,
                BOOL_OR(user_id = :user_id) AS user_reacted
            FROM reactions
            WHERE checkin_id IN :checkin_ids
            GROUP BY checkin_id, reaction_type
        """).bindparams(bindparam("checkin_ids", expanding=True))

        result = await self.db.execute(
            query,
            {"user_id": requesting_user_id, "checkin_ids": list(checkin_ids)},
        )

        grouped: dict[UUID, list] = {}
        for row in result.fetchall():
            grouped.setdefault(row.checkin_id, []).append(row)

        return {checkin_id: summarize(rows) for checkin_id, rows in grouped.items()}

    async def list_user_reactions(self, user_id: UUID) -> list[dict]:
        """All reactions placed by a user, newest first, with the target photo."""
        result = await self.db.execute(
            text("""
                SELECT r.id, r.checkin_id, r.reaction_type, r.created_at,
                       c.photo_url, c.created_at AS checkin_created_at
                FROM reactions r
                JOIN checkins c ON r.checkin_id = c.id
                WHERE r.user_id = :user_id
                ORDER BY r.created_at DESC
            """),
            {"user_id": user_id},
        )
        return [
            {
                "id": r.id,
                "checkin_id": r.checkin_id,
                "reaction_type": r.reaction_type,
                "created_at": r.created_at,
                "photo_url": r.photo_url,
                "checkin_created_at": r.checkin_created_at,
            }
            for r in result.fetchall()
        ]
