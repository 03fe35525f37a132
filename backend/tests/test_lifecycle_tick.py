from __future__ import annotations
from datetime import timedelta
import pytest
from sqlalchemy import select
from challengers.errors import InvalidTransition, Unauthorized
from challengers.jobs.lifecycle_tick import _run
from challengers.models.challenge import UserChallenge
from challengers.services import challenges as facade
from conftest import TODAY, png_bytes


async def _tick(session_factory, days: int):
    async with session_factory() as s:
        return await facade.run_lifecycle_tick(s, TODAY + timedelta(days=days))


async def _progress(session_factory, challenge_id) -> dict:
    async with session_factory() as s:
        async with s.begin():
            rows = (await s.execute(
                select(UserChallenge.user_id, UserChallenge.status, UserChallenge.max_progress)
                .where(UserChallenge.challenge_id == challenge_id)
            )).all()
    return {uid: (status, progress) for uid, status, progress in rows}


@pytest.mark.asyncio
async def test_challenge_runs_from_ready_to_validate(session_factory, store, make_user, make_challenge):
    host, member, quitter = await make_user(), await make_user(), await make_user()
    ch = await make_challenge(
        host,
        start_date=(TODAY + timedelta(days=1)).isoformat(),
        end_date=(TODAY + timedelta(days=4)).isoformat(),
        deposit_point=800,
    )
    assert (ch.status, ch.round) == ("ready", 0)
    for uid in (member, quitter):
        async with session_factory() as s:
            await facade.join_challenge(s, ch.id, uid, today=TODAY)
    async with session_factory() as s:
        await facade.leave_challenge(s, ch.id, quitter)

    assert (await _tick(session_factory, 0))["started"] == 0

    summary = await _tick(session_factory, 1)
    assert summary["started"] == 1 and summary["rounds_advanced"] == 0
    async with session_factory() as s:
        detail = await facade.get_challenge_detail(s, ch.id)
    assert (detail.status, detail.round) == ("in_progress", 1)

    summary = await _tick(session_factory, 3)
    assert summary["rounds_advanced"] == 2
    progress = await _progress(session_factory, ch.id)
    assert progress[host] == ("in_progress", 2)
    assert progress[member] == ("in_progress", 2)
    assert progress[quitter] == ("abandoned", 0)

    # one rejected check in round 3: 800 deposit over 4 checks
    async with session_factory() as s:
        check = await facade.submit_photo_check(s, store, ch.id, member, png_bytes())
    assert check.round == 3
    async with session_factory() as s:
        await facade.fail_photo_checks(s, [check.id], host)
    async with session_factory() as s:
        detail = await facade.get_challenge_detail(s, ch.id)
    assert detail.failed_point == 200
    # 200 // (2 + 2 + 3) * 3, not 600 // 7
    assert detail.expected_penalty == 84

    summary = await _tick(session_factory, 5)
    assert summary["rounds_advanced"] == 1 and summary["validated"] == 1
    async with session_factory() as s:
        detail = await facade.get_challenge_detail(s, ch.id)
    assert (detail.status, detail.round) == ("validate", 4)
    assert (await _progress(session_factory, ch.id))[member] == ("in_progress", 4)

    assert await _tick(session_factory, 6) == {
        "today": (TODAY + timedelta(days=6)).isoformat(), "started": 0, "rounds_advanced": 0, "validated": 0,
    }


@pytest.mark.asyncio
async def test_finish_requires_host_and_validation(session_factory, make_user, make_challenge):
    host, member = await make_user(), await make_user()
    ch = await make_challenge(host, end_date=(TODAY + timedelta(days=1)).isoformat())
    async with session_factory() as s:
        await facade.join_challenge(s, ch.id, member, today=TODAY)

    async with session_factory() as s:
        with pytest.raises(InvalidTransition):
            await facade.finish_challenge(s, ch.id, host)

    await _tick(session_factory, 2)
    async with session_factory() as s:
        with pytest.raises(Unauthorized):
            await facade.finish_challenge(s, ch.id, member)
    async with session_factory() as s:
        detail = await facade.finish_challenge(s, ch.id, host)
    assert detail.status == "finish"
    progress = await _progress(session_factory, ch.id)
    assert {status for status, _ in progress.values()} == {"completed"}


@pytest.mark.asyncio
async def test_job_entry_runs_tick(session_factory, make_user, make_challenge):
    host = await make_user()
    await make_challenge(host, start_date=(TODAY + timedelta(days=1)).isoformat())
    summary = await _run((TODAY + timedelta(days=1)).isoformat(), session_factory)
    assert summary["started"] == 1
