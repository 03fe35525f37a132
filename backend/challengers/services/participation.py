from __future__ import annotations
from datetime import date
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from challengers.errors import AlreadyJoined, ChallengeFull, InvalidTransition, JoinWindowClosed, ParticipantsPresent, Unauthorized
from challengers.models.challenge import Challenge, UserChallenge
from challengers.services.repository import count_user_challenges, find_user_challenge
from challengers.services.round_clock import can_join, max_progress


def ensure_can_join(ch: Challenge, already_joined: bool, today: date) -> None:
    if ch.user_count >= ch.user_count_limit:
        raise ChallengeFull(f"Challenge is full ({ch.user_count}/{ch.user_count_limit})")
    if already_joined:
        raise AlreadyJoined()
    if not can_join(ch, today):
        raise JoinWindowClosed()


async def _claim_slot(session: AsyncSession, ch: Challenge) -> None:
    # conditional increment: concurrent joiners cannot both pass the limit
    res = await session.execute(
        update(Challenge)
        .where(Challenge.id == ch.id, Challenge.user_count < Challenge.user_count_limit)
        .values(user_count=Challenge.user_count + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ChallengeFull()
    ch.user_count = await session.scalar(select(Challenge.user_count).where(Challenge.id == ch.id))


async def add_participant(session: AsyncSession, ch: Challenge, user_id: UUID) -> UserChallenge:
    uc = UserChallenge(challenge_id=ch.id, user_id=user_id, status="in_progress", max_progress=0)
    session.add(uc)
    try:
        async with session.begin_nested():
            await session.flush()
    except IntegrityError:
        raise AlreadyJoined()
    return uc


async def join(session: AsyncSession, ch: Challenge, user_id: UUID, today: date) -> UserChallenge:
    """
    Join `ch` (which the caller loaded with a row lock).
    Raises ChallengeFull, AlreadyJoined or JoinWindowClosed.
    """
    existing = await find_user_challenge(session, user_id, ch.id)
    ensure_can_join(ch, existing is not None, today)
    await _claim_slot(session, ch)
    return await add_participant(session, ch, user_id)


async def leave(session: AsyncSession, ch: Challenge, user_id: UUID) -> UserChallenge:
    if ch.host_id == user_id:
        raise Unauthorized("The host cannot leave their own challenge")
    if ch.status not in ("ready", "in_progress"):
        raise InvalidTransition(f"Cannot leave a challenge in status '{ch.status}'")
    uc = await find_user_challenge(session, user_id, ch.id)
    if uc is None or uc.status != "in_progress":
        raise InvalidTransition("Not an active participant")
    uc.status = "abandoned"
    ch.user_count = max(0, ch.user_count - 1)
    await session.flush()
    return uc


def progress_penalty(failed_point: int, progress_sum: int, expected: int) -> int:
    """
    Share of the failed points attributed to the challenge-level expected progress:
    failed_point // (progress_sum + expected) * expected. The division is
    integral and happens before the multiplication.
    Defined as 0 when nobody has any expected progress yet.
    """
    denominator = progress_sum + expected
    if denominator <= 0:
        return 0
    return int(failed_point) // denominator * int(expected)


async def progress_sum(session: AsyncSession, challenge_id: UUID) -> int:
    total = await session.scalar(
        select(func.coalesce(func.sum(UserChallenge.max_progress), 0)).where(
            UserChallenge.challenge_id == challenge_id, UserChallenge.status == "in_progress"
        )
    )
    return int(total or 0)


async def compute_progress_penalty(session: AsyncSession, ch: Challenge) -> int:
    return progress_penalty(ch.failed_point, await progress_sum(session, ch.id), max_progress(ch))


async def ensure_deletable(session: AsyncSession, ch: Challenge) -> None:
    remaining = await count_user_challenges(session, ch.id)
    if remaining != 1:
        raise ParticipantsPresent(f"Challenge has {remaining} participations; only the host's may remain")


async def accrue_round_progress(session: AsyncSession, ch: Challenge) -> int:
    """Credit one round of expected checks to every active participant. Returns rows touched."""
    res = await session.execute(
        update(UserChallenge)
        .where(UserChallenge.challenge_id == ch.id, UserChallenge.status == "in_progress")
        .values(max_progress=UserChallenge.max_progress + ch.check_times_per_round)
        .execution_options(synchronize_session="fetch")
    )
    return int(res.rowcount or 0)


async def complete_participants(session: AsyncSession, ch: Challenge) -> int:
    res = await session.execute(
        update(UserChallenge)
        .where(UserChallenge.challenge_id == ch.id, UserChallenge.status == "in_progress")
        .values(status="completed")
        .execution_options(synchronize_session="fetch")
    )
    return int(res.rowcount or 0)
