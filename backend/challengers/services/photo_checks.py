"""Photo-check verification workflow.

A check starts as ``waiting`` and moves exactly once to ``pass`` or ``fail``.
Rejections do not touch the challenge here: each ``fail`` yields a
``PhotoCheckFailed`` event that the caller feeds to the lifecycle so the
penalty lands in the same transaction.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone as dt_tz
from typing import Iterable, Literal
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from challengers.errors import (
    AlreadyReviewed, InvalidTransition, NotFound, NotInProgress, NotParticipating, QuotaExceeded, Unauthorized,
)
from challengers.models.challenge import Challenge, UserChallenge
from challengers.models.photo_check import ChallengePhoto, PhotoCheck
from challengers.services.round_clock import failed_point_per_check

Outcome = Literal["pass", "fail"]

# statuses that occupy one of the round's slots
ACTIVE_STATUSES = ("waiting", "pass")


@dataclass(frozen=True)
class PhotoCheckFailed:
    challenge_id: UUID
    photo_check_id: UUID
    amount: int


def ensure_can_submit(ch: Challenge, uc: UserChallenge | None, submitted_this_round: int) -> None:
    if ch.status != "in_progress":
        raise NotInProgress(f"Challenge is not in progress (status={ch.status})")
    if uc is None:
        raise NotFound("Participation")
    if uc.status != "in_progress":
        raise NotParticipating(f"Participation is {uc.status}")
    if submitted_this_round >= ch.check_times_per_round:
        raise QuotaExceeded(
            f"Already submitted {submitted_this_round}/{ch.check_times_per_round} checks for round {ch.round}"
        )


async def count_round_checks(session: AsyncSession, user_challenge_id: UUID, round_no: int) -> int:
    total = await session.scalar(
        select(func.count()).select_from(PhotoCheck).where(
            PhotoCheck.user_challenge_id == user_challenge_id,
            PhotoCheck.round == round_no,
            PhotoCheck.status.in_(ACTIVE_STATUSES),
        )
    )
    return int(total or 0)


async def record_photo_check(
    session: AsyncSession, ch: Challenge, uc: UserChallenge, photo_url: str
) -> PhotoCheck:
    """Persist the photo asset row and a waiting check stamped with the current round."""
    photo = ChallengePhoto(challenge_id=ch.id, user_id=uc.user_id, photo_url=photo_url)
    session.add(photo)
    await session.flush()
    check = PhotoCheck(
        challenge_id=ch.id,
        user_challenge_id=uc.id,
        challenge_photo_id=photo.id,
        round=ch.round,
        status="waiting",
    )
    session.add(check)
    await session.flush()
    return check


def apply_outcome(check: PhotoCheck, outcome: Outcome, now: datetime | None = None) -> None:
    if check.status == outcome:
        raise AlreadyReviewed(f"Photo check {check.id} is already '{outcome}'")
    if check.status != "waiting":
        raise InvalidTransition(f"Photo check {check.id} was already reviewed as '{check.status}'")
    check.status = outcome
    check.reviewed_at = now or datetime.now(dt_tz.utc)


def _unique(ids: Iterable[UUID]) -> list[UUID]:
    seen: dict[UUID, None] = {}
    for i in ids:
        seen.setdefault(i, None)
    return list(seen)


async def review(
    session: AsyncSession, photo_check_ids: Iterable[UUID], reviewer_id: UUID, outcome: Outcome
) -> tuple[list[PhotoCheck], list[PhotoCheckFailed]]:
    """
    Apply `outcome` to every check in the batch, or to none of them.

    The whole batch is validated first: all ids must exist, every check must
    belong to a challenge hosted by `reviewer_id` and still be waiting.
    """
    ids = _unique(photo_check_ids)
    if not ids:
        raise NotFound("PhotoCheck")

    # lock in id order so overlapping batches cannot deadlock
    rows = (await session.execute(
        select(PhotoCheck)
        .where(PhotoCheck.id.in_(ids))
        .order_by(PhotoCheck.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )).scalars().all()
    by_id = {c.id: c for c in rows}
    for i in ids:
        if i not in by_id:
            raise NotFound("PhotoCheck", i)
    checks = [by_id[i] for i in ids]

    ch_ids = {c.challenge_id for c in checks}
    if None in ch_ids:
        raise NotFound("Challenge")
    challenges = {
        ch.id: ch for ch in (await session.execute(select(Challenge).where(Challenge.id.in_(ch_ids)))).scalars().all()
    }
    for cid in ch_ids:
        ch = challenges.get(cid)
        if ch is None:
            raise NotFound("Challenge", cid)
        if ch.host_id != reviewer_id:
            raise Unauthorized("Only the challenge host can review photo checks")

    for c in checks:
        if c.status == outcome:
            raise AlreadyReviewed(f"Photo check {c.id} is already '{outcome}'")
        if c.status != "waiting":
            raise InvalidTransition(f"Photo check {c.id} was already reviewed as '{c.status}'")

    now = datetime.now(dt_tz.utc)
    events: list[PhotoCheckFailed] = []
    for c in checks:
        apply_outcome(c, outcome, now)
        if outcome == "fail":
            events.append(PhotoCheckFailed(
                challenge_id=c.challenge_id,
                photo_check_id=c.id,
                amount=failed_point_per_check(challenges[c.challenge_id]),
            ))
    await session.flush()
    return checks, events
