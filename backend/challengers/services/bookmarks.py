from __future__ import annotations
from uuid import UUID
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from challengers.models.challenge import Bookmark

async def is_bookmarked(session: AsyncSession, challenge_id: UUID, user_id: UUID | None) -> bool:
    if user_id is None:
        return False
    found = await session.scalar(
        select(Bookmark.id).where(Bookmark.challenge_id == challenge_id, Bookmark.user_id == user_id)
    )
    return found is not None

async def bookmarked_ids(session: AsyncSession, challenge_ids: list[UUID], user_id: UUID | None) -> set[UUID]:
    if user_id is None or not challenge_ids:
        return set()
    rows = await session.execute(
        select(Bookmark.challenge_id).where(Bookmark.user_id == user_id, Bookmark.challenge_id.in_(challenge_ids))
    )
    return set(rows.scalars().all())

async def add_bookmark(session: AsyncSession, challenge_id: UUID, user_id: UUID) -> None:
    # idempotent
    if await is_bookmarked(session, challenge_id, user_id):
        return
    session.add(Bookmark(challenge_id=challenge_id, user_id=user_id))
    await session.flush()

async def remove_bookmark(session: AsyncSession, challenge_id: UUID, user_id: UUID) -> None:
    await session.execute(
        delete(Bookmark).where(Bookmark.challenge_id == challenge_id, Bookmark.user_id == user_id)
    )
