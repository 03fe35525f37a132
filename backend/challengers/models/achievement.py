from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint, Uuid, func
from challengers.db import Base
from challengers.models.user import _utcnow

class Achievement(Base):
    __tablename__ = "achievements"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    award: Mapped[str] = mapped_column(String(32), nullable=False)  # one_participation|fifty_participation
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "award", name="uq_achievement_once_per_award"),
    )
