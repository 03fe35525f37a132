from __future__ import annotations
import uuid
from datetime import date, datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Float, Date, DateTime, ForeignKey, Text, Uuid, CheckConstraint, UniqueConstraint, func
from challengers.db import Base
from challengers.models.user import _utcnow

class Challenge(Base):
    __tablename__ = "challenges"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    host_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text())
    photo_description: Mapped[str | None] = mapped_column(Text())
    challenge_rule: Mapped[str | None] = mapped_column(Text())
    check_frequency: Mapped[str] = mapped_column(String(16), nullable=False)  # every_day|every_week
    check_times_per_round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    category: Mapped[str] = mapped_column(String(16), nullable=False, default="etc")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    deposit_point: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    introduction: Mapped[str | None] = mapped_column(Text())
    total_star_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    star_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    user_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    user_count_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    failed_point: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    round: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ready")  # ready|in_progress|validate|finish
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_challenge_date_order"),
        CheckConstraint("user_count <= user_count_limit", name="ck_challenge_user_limit"),
        CheckConstraint("failed_point >= 0", name="ck_challenge_failed_point"),
    )

class ExamplePhoto(Base):
    __tablename__ = "example_photos"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    challenge_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("challenges.id", ondelete="CASCADE"), index=True, nullable=False)
    photo_url: Mapped[str] = mapped_column(Text(), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

class Tag(Base):
    __tablename__ = "tags"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)

class ChallengeTag(Base):
    __tablename__ = "challenge_tags"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    challenge_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("challenges.id", ondelete="CASCADE"), index=True, nullable=False)
    tag_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tags.id", ondelete="CASCADE"), index=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("challenge_id", "tag_id", name="uq_challenge_tag"),
    )

class UserChallenge(Base):
    __tablename__ = "user_challenges"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    challenge_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("challenges.id", ondelete="CASCADE"), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="in_progress")  # in_progress|abandoned|completed
    # Checks this participant was expected to have made so far
    max_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_user_challenge_once"),
    )

class Bookmark(Base):
    __tablename__ = "bookmarks"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    challenge_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("challenges.id", ondelete="CASCADE"), index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_bookmark_once"),
    )
