from __future__ import annotations
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from challengers.models.challenge import ChallengeTag, Tag

def normalize_tag(name: str) -> str:
    return name.strip().lstrip("#").strip()

async def find_or_create_tag(session: AsyncSession, name: str) -> Tag:
    tag = await session.scalar(select(Tag).where(Tag.name == name))
    if tag is None:
        tag = Tag(name=name)
        session.add(tag)
        await session.flush()
    return tag

async def associate_tags(session: AsyncSession, challenge_id: UUID, names: list[str]) -> list[str]:
    """Link each distinct non-empty tag name to the challenge; returns the names linked."""
    linked: list[str] = []
    for raw in names:
        name = normalize_tag(raw)
        if not name or name in linked:
            continue
        tag = await find_or_create_tag(session, name)
        session.add(ChallengeTag(challenge_id=challenge_id, tag_id=tag.id))
        linked.append(name)
    await session.flush()
    return linked

async def tag_names(session: AsyncSession, challenge_id: UUID) -> list[str]:
    rows = await session.execute(
        select(Tag.name)
        .join(ChallengeTag, ChallengeTag.tag_id == Tag.id)
        .where(ChallengeTag.challenge_id == challenge_id)
        .order_by(Tag.name)
    )
    return list(rows.scalars().all())
