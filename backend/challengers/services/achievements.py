from __future__ import annotations
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from challengers.models.achievement import Achievement
from challengers.models.user import User

# challenge_count value -> award granted when the user reaches it
PARTICIPATION_MILESTONES = {
    1: "one_participation",
    50: "fifty_participation",
}

async def on_participation_milestone(session: AsyncSession, user: User, total_challenge_count: int) -> Achievement | None:
    award = PARTICIPATION_MILESTONES.get(total_challenge_count)
    if award is None:
        return None
    exists = await session.scalar(
        select(Achievement).where(Achievement.user_id == user.id, Achievement.award == award)
    )
    if exists:
        return exists
    achievement = Achievement(user_id=user.id, award=award)
    session.add(achievement)
    return achievement

async def record_participation(session: AsyncSession, user: User) -> Achievement | None:
    """Count one more hosted/joined challenge for `user` and fire the milestone check."""
    user.challenge_count = int(user.challenge_count or 0) + 1
    return await on_participation_milestone(session, user, user.challenge_count)
