from __future__ import annotations
import pytest
from sqlalchemy import select
from challengers.models.achievement import Achievement
from challengers.models.user import User
from challengers.services.achievements import on_participation_milestone, record_participation


async def _awards(session, user_id) -> list[str]:
    rows = await session.execute(
        select(Achievement.award).where(Achievement.user_id == user_id).order_by(Achievement.award)
    )
    return list(rows.scalars().all())


@pytest.mark.asyncio
async def test_milestones_fire_only_at_first_and_fiftieth(session, make_user):
    uid = await make_user()
    async with session.begin():
        user = await session.get(User, uid)
        for total in (2, 3, 49, 51):
            assert await on_participation_milestone(session, user, total) is None
        assert await _awards(session, uid) == []

        first = await on_participation_milestone(session, user, 1)
        fiftieth = await on_participation_milestone(session, user, 50)
        assert (first.award, fiftieth.award) == ("one_participation", "fifty_participation")
        await session.flush()
        assert await _awards(session, uid) == ["fifty_participation", "one_participation"]


@pytest.mark.asyncio
async def test_milestone_is_not_awarded_twice(session, make_user):
    uid = await make_user()
    async with session.begin():
        user = await session.get(User, uid)
        first = await on_participation_milestone(session, user, 50)
        await session.flush()
        again = await on_participation_milestone(session, user, 50)
        assert again.id == first.id
        assert await _awards(session, uid) == ["fifty_participation"]


@pytest.mark.asyncio
async def test_fiftieth_participation_awards_badge(session, make_user):
    uid = await make_user()
    async with session.begin():
        user = await session.get(User, uid)
        user.challenge_count = 48
        assert await record_participation(session, user) is None
        awarded = await record_participation(session, user)
        assert user.challenge_count == 50
        assert awarded.award == "fifty_participation"
