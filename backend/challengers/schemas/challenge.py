from __future__ import annotations
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Literal, List
from uuid import UUID
from datetime import date, datetime

CheckFrequency = Literal["every_day", "every_week"]
Category = Literal["life", "exercise", "study", "hobby", "diet", "etc"]
ChallengeStatus = Literal["ready", "in_progress", "validate", "finish"]
ParticipationStatus = Literal["in_progress", "abandoned", "completed"]

class ChallengeCreate(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    photo_description: str | None = None
    challenge_rule: str | None = None
    check_frequency: CheckFrequency
    check_times_per_round: int = Field(ge=1, default=1, description="Checks required per day/week")
    category: Category = "etc"
    start_date: date
    end_date: date
    deposit_point: int = Field(ge=0, default=0)
    introduction: str | None = None
    user_count_limit: int = Field(ge=1, le=1000)
    tags: List[str] = Field(default_factory=list, max_length=10)

    @model_validator(mode="after")
    def weekly_checks_fit_in_a_week(self):
        if self.check_frequency == "every_week" and self.check_times_per_round > 7:
            raise ValueError("every_week challenges can require at most 7 checks per round")
        return self

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, v: list[str]):
        return [t.strip() for t in v if t and t.strip()]

class ChallengeUpdate(BaseModel):
    introduction: str | None = None

class ChallengePublic(BaseModel):
    """Listing row."""
    id: UUID
    host_id: UUID
    name: str
    image_url: str | None
    category: Category
    check_frequency: CheckFrequency
    check_times_per_round: int
    start_date: date
    end_date: date
    deposit_point: int
    status: ChallengeStatus
    round: int
    star_rating: float
    review_count: int
    user_count: int
    user_count_limit: int
    is_bookmarked: bool = False
    joined_user_ids: List[UUID] = Field(default_factory=list)

class ChallengeDetail(BaseModel):
    id: UUID
    host_id: UUID
    name: str
    image_url: str | None
    photo_description: str | None
    challenge_rule: str | None
    introduction: str | None
    category: Category
    check_frequency: CheckFrequency
    check_times_per_round: int
    start_date: date
    end_date: date
    deposit_point: int
    status: ChallengeStatus
    round: int
    star_rating: float
    review_count: int
    user_count: int
    user_count_limit: int
    failed_point: int
    example_photo_urls: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    # viewer-dependent fields
    is_bookmarked: bool = False
    is_joined: bool = False
    expected_penalty: int = 0

class ChallengePage(BaseModel):
    items: List[ChallengePublic]
    limit: int
    offset: int
    total: int

class ParticipationPublic(BaseModel):
    id: UUID
    challenge_id: UUID
    user_id: UUID
    status: ParticipationStatus
    max_progress: int
    joined_at: datetime

class ReviewCreate(BaseModel):
    star_rating: float = Field(ge=0.5, le=5.0)
    content: str | None = Field(default=None, max_length=2000)

    @field_validator("star_rating")
    @classmethod
    def half_steps(cls, v: float):
        if round(v * 2) != v * 2:
            raise ValueError("star_rating must be a multiple of 0.5")
        return v

class ReviewPublic(BaseModel):
    id: UUID
    challenge_id: UUID
    user_id: UUID
    star_rating: float
    content: str | None
    created_at: datetime
    # aggregate after the change
    challenge_star_rating: float
    challenge_review_count: int
