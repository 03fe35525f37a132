from __future__ import annotations
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from challengers.errors import NotFound
from challengers.models.challenge import Challenge, UserChallenge


async def load_challenge(session: AsyncSession, challenge_id: UUID, *, for_update: bool = False) -> Challenge:
    """Fetch a challenge or raise NotFound; `for_update` takes the row lock for the transaction."""
    q = select(Challenge).where(Challenge.id == challenge_id)
    if for_update:
        q = q.with_for_update().execution_options(populate_existing=True)
    ch = await session.scalar(q)
    if ch is None:
        raise NotFound("Challenge", challenge_id)
    return ch


async def find_user_challenge(session: AsyncSession, user_id: UUID, challenge_id: UUID) -> UserChallenge | None:
    return await session.scalar(
        select(UserChallenge).where(UserChallenge.user_id == user_id, UserChallenge.challenge_id == challenge_id)
    )


async def count_user_challenges(session: AsyncSession, challenge_id: UUID) -> int:
    total = await session.scalar(
        select(func.count()).select_from(UserChallenge).where(UserChallenge.challenge_id == challenge_id)
    )
    return int(total or 0)
