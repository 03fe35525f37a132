from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, Uuid, func
from challengers.db import Base
from challengers.models.user import _utcnow


class ChallengePhoto(Base):
    """Stored photo asset behind a photo check."""
    __tablename__ = "challenge_photos"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    challenge_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("challenges.id", ondelete="SET NULL"), index=True, nullable=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    photo_url: Mapped[str] = mapped_column(Text(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)


class PhotoCheck(Base):
    __tablename__ = "photo_checks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Checks outlive their challenge and participation rows (audit trail)
    challenge_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("challenges.id", ondelete="SET NULL"), index=True, nullable=True
    )
    user_challenge_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_challenges.id", ondelete="SET NULL"), index=True, nullable=True
    )
    challenge_photo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("challenge_photos.id"), nullable=False
    )

    round: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="waiting")  # waiting|pass|fail

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
