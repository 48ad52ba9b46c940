"""SQLAlchemy models for the four persisted tables.

Users live in the identity provider, so user ids are plain UUID columns
without a foreign key.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from dailycheck.database import Base


class Profile(Base):
    """Public profile, one per user, created lazily."""

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    background_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_profiles_user_id"),
        UniqueConstraint("username", name="uq_profiles_username"),
        Index("idx_profiles_username_lower", text("lower(username)")),
    )

    def __repr__(self) -> str:
        return f"<Profile(user_id={self.user_id}, username={self.username})>"


class Checkin(Base):
    """A single timestamped photo capture."""

    __tablename__ = "checkins"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)
    photo_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    device_info: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_checkins_user_created", "user_id", text("created_at DESC")),
    )

    def __repr__(self) -> str:
        return f"<Checkin(id={self.id}, user_id={self.user_id})>"


class Follow(Base):
    """Directed follow edge: follower sees following's check-ins."""

    __tablename__ = "follows"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    follower_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)
    following_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        CheckConstraint("follower_id <> following_id", name="ck_follows_no_self"),
        Index("idx_follows_following", "following_id"),
    )


class Reaction(Base):
    """One typed reaction by one user on one check-in."""

    __tablename__ = "reactions"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)
    checkin_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("checkins.id", ondelete="CASCADE"), nullable=False
    )
    reaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "checkin_id", "reaction_type", name="uq_reactions_user_checkin_type"
        ),
        Index("idx_reactions_checkin", "checkin_id"),
    )
