from __future__ import annotations
import asyncio
from datetime import timedelta
import pytest
from sqlalchemy import select, func
from challengers.errors import (
    AlreadyJoined, ChallengeFull, InvalidDateRange, InvalidTransition, JoinWindowClosed, NotFound,
    ParticipantsPresent, StorageFailure, Unauthorized,
)
from challengers.models.achievement import Achievement
from challengers.models.challenge import Challenge, UserChallenge
from challengers.models.user import User
from challengers.schemas.challenge import ChallengeCreate
from challengers.services import challenges as facade
from conftest import TODAY, challenge_payload, png_bytes


@pytest.mark.asyncio
async def test_create_auto_joins_host(session, make_user, make_challenge):
    host = await make_user("host")
    ch = await make_challenge(host)
    assert ch.status == "in_progress" and ch.round == 1
    assert ch.user_count == 0 and ch.is_joined is True
    assert sorted(ch.tags) == ["morning", "running"]

    async with session.begin():
        uc = await session.scalar(select(UserChallenge).where(UserChallenge.challenge_id == ch.id))
        user = await session.get(User, host)
        awards = (await session.execute(select(Achievement.award).where(Achievement.user_id == host))).scalars().all()
    assert uc.user_id == host and uc.status == "in_progress" and uc.max_progress == 0
    assert user.challenge_count == 1
    assert awards == ["one_participation"]


@pytest.mark.asyncio
async def test_future_start_creates_ready_challenge(make_user, make_challenge):
    host = await make_user()
    ch = await make_challenge(host, start_date=(TODAY + timedelta(days=1)).isoformat())
    assert (ch.status, ch.round) == ("ready", 0)


@pytest.mark.asyncio
async def test_end_date_must_follow_start_date(session, make_user, make_challenge):
    host = await make_user()
    with pytest.raises(InvalidDateRange):
        await make_challenge(host, end_date=TODAY.isoformat())
    async with session.begin():
        assert await session.scalar(select(func.count()).select_from(Challenge)) == 0

    ch = await make_challenge(host, end_date=(TODAY + timedelta(days=1)).isoformat())
    assert ch.end_date == TODAY + timedelta(days=1)


@pytest.mark.asyncio
async def test_create_unknown_host_rejected(make_challenge):
    import uuid
    with pytest.raises(NotFound):
        await make_challenge(uuid.uuid4())


@pytest.mark.asyncio
async def test_create_stores_images_in_order(session_factory, store, make_user):
    host = await make_user()
    data = ChallengeCreate.model_validate(challenge_payload())
    first, second = png_bytes((1, 2, 3)), png_bytes((4, 5, 6))
    async with session_factory() as s:
        ch = await facade.create_challenge(s, store, host, data, image=png_bytes(), example_photos=[first, second], today=TODAY)
    assert ch.image_url.startswith(store.base + "challenges/")
    assert [store.objects[u] for u in ch.example_photo_urls] == [first, second]
    assert len(store.objects) == 3


@pytest.mark.asyncio
async def test_storage_failure_leaves_nothing_behind(session, session_factory, store, make_user):
    host = await make_user()
    data = ChallengeCreate.model_validate(challenge_payload())
    store.fail_after = 2
    async with session_factory() as s:
        with pytest.raises(StorageFailure):
            await facade.create_challenge(
                s, store, host, data, image=png_bytes(), example_photos=[png_bytes(), png_bytes()], today=TODAY
            )
    assert store.objects == {}
    async with session.begin():
        assert await session.scalar(select(func.count()).select_from(Challenge)) == 0


@pytest.mark.asyncio
async def test_join_twice_rejected(session_factory, make_user, make_challenge):
    host, member = await make_user(), await make_user()
    ch = await make_challenge(host)
    async with session_factory() as s:
        uc = await facade.join_challenge(s, ch.id, member, today=TODAY)
    assert uc.status == "in_progress" and uc.max_progress == 0
    async with session_factory() as s:
        with pytest.raises(AlreadyJoined):
            await facade.join_challenge(s, ch.id, member, today=TODAY)
    async with session_factory() as s:
        detail = await facade.get_challenge_detail(s, ch.id, member)
    assert detail.user_count == 1 and detail.is_joined


@pytest.mark.asyncio
async def test_full_challenge_rejects_join(session_factory, make_user, make_challenge):
    host, first, second = await make_user(), await make_user(), await make_user()
    # the host does not take one of the slots
    ch = await make_challenge(host, user_count_limit=1)
    async with session_factory() as s:
        await facade.join_challenge(s, ch.id, first, today=TODAY)
    async with session_factory() as s:
        with pytest.raises(ChallengeFull):
            await facade.join_challenge(s, ch.id, second, today=TODAY)


@pytest.mark.asyncio
async def test_parallel_joins_never_exceed_limit(session_factory, make_user, make_challenge):
    host = await make_user()
    ch = await make_challenge(host, user_count_limit=1)
    users = [await make_user() for _ in range(6)]

    async def attempt(uid):
        async with session_factory() as s:
            return await facade.join_challenge(s, ch.id, uid, today=TODAY)

    results = await asyncio.gather(*(attempt(u) for u in users), return_exceptions=True)
    ok = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(ok) == 1
    assert all(isinstance(e, ChallengeFull) for e in failed)

    async with session_factory() as s:
        detail = await facade.get_challenge_detail(s, ch.id)
    assert detail.user_count == 1


@pytest.mark.asyncio
async def test_weekly_challenge_join_window(session_factory, make_user, make_challenge):
    host, member = await make_user(), await make_user()
    saturday = TODAY + timedelta(days=3)
    ch = await make_challenge(
        host, check_frequency="every_week", check_times_per_round=2,
        end_date=(TODAY + timedelta(days=30)).isoformat(),
    )
    async with session_factory() as s:
        with pytest.raises(JoinWindowClosed):
            await facade.join_challenge(s, ch.id, member, today=saturday)
    monday = TODAY + timedelta(days=5)
    async with session_factory() as s:
        await facade.join_challenge(s, ch.id, member, today=monday)


@pytest.mark.asyncio
async def test_leave(session_factory, make_user, make_challenge):
    host, member = await make_user(), await make_user()
    ch = await make_challenge(host)
    async with session_factory() as s:
        await facade.join_challenge(s, ch.id, member, today=TODAY)

    async with session_factory() as s:
        with pytest.raises(Unauthorized):
            await facade.leave_challenge(s, ch.id, host)
    async with session_factory() as s:
        uc = await facade.leave_challenge(s, ch.id, member)
    assert uc.status == "abandoned"
    async with session_factory() as s:
        with pytest.raises(InvalidTransition):
            await facade.leave_challenge(s, ch.id, member)
    async with session_factory() as s:
        detail = await facade.get_challenge_detail(s, ch.id, member)
    assert detail.user_count == 0 and detail.is_joined is False


@pytest.mark.asyncio
async def test_delete_with_only_host_succeeds(session, session_factory, store, make_user):
    host = await make_user()
    data = ChallengeCreate.model_validate(challenge_payload())
    async with session_factory() as s:
        ch = await facade.create_challenge(s, store, host, data, image=png_bytes(), example_photos=[png_bytes()], today=TODAY)
    async with session_factory() as s:
        await facade.delete_challenge(s, store, ch.id, host)
    assert store.objects == {}
    async with session.begin():
        assert await session.get(Challenge, ch.id) is None
        assert await session.scalar(select(func.count()).select_from(UserChallenge)) == 0


@pytest.mark.asyncio
async def test_delete_with_participants_rejected(session_factory, store, make_user, make_challenge):
    host, member = await make_user(), await make_user()
    ch = await make_challenge(host)
    async with session_factory() as s:
        await facade.join_challenge(s, ch.id, member, today=TODAY)
    async with session_factory() as s:
        with pytest.raises(Unauthorized):
            await facade.delete_challenge(s, store, ch.id, member)
    async with session_factory() as s:
        with pytest.raises(ParticipantsPresent):
            await facade.delete_challenge(s, store, ch.id, host)
    async with session_factory() as s:
        assert (await facade.get_challenge_detail(s, ch.id)).user_count == 1
