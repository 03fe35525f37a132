from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal, List
from uuid import UUID
from datetime import datetime

PhotoCheckStatus = Literal["waiting", "pass", "fail"]


class PhotoCheckPublic(BaseModel):
    id: UUID
    challenge_id: UUID | None
    user_challenge_id: UUID | None
    round: int
    status: PhotoCheckStatus
    photo_url: str
    created_at: datetime
    reviewed_at: datetime | None = None


class CheckRequest(BaseModel):
    photo_check_ids: List[UUID] = Field(min_length=1, max_length=200)


class CheckResult(BaseModel):
    status: PhotoCheckStatus
    photo_check_ids: List[UUID]
    # points added to each affected challenge's failed_point (fail only)
    failed_points: dict[UUID, int] = Field(default_factory=dict)
