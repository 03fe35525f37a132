"""Use cases exposed to the API and the scheduler.

Each public coroutine is one unit of work: it opens its own
``session.begin()`` block(s) and either commits every mutation or none.
Asset uploads happen between a read-only precondition pass and the writing
transaction, and are deleted again if that transaction fails.
"""
from __future__ import annotations
from datetime import date, datetime, timezone as dt_tz
from uuid import UUID

import structlog
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from challengers.config import settings
from challengers.errors import AlreadyReviewed, InvalidDateRange, NotFound, StorageFailure, Unauthorized
from challengers.models.challenge import Challenge, ExamplePhoto, UserChallenge
from challengers.models.photo_check import ChallengePhoto, PhotoCheck
from challengers.models.review import Review
from challengers.schemas.challenge import (
    ChallengeCreate, ChallengeDetail, ChallengePage, ChallengePublic, ChallengeUpdate,
    ParticipationPublic, ReviewCreate, ReviewPublic,
)
from challengers.schemas.photo_check import CheckResult, PhotoCheckPublic
from challengers.services import lifecycle, participation, photo_checks
from challengers.services.achievements import record_participation
from challengers.services.bookmarks import add_bookmark, bookmarked_ids, is_bookmarked, remove_bookmark
from challengers.services.media import validate_image
from challengers.services.repository import find_user_challenge, load_challenge
from challengers.services.round_clock import initial_status, round_for, today_local
from challengers.services.storage import AssetStore
from challengers.services.tags import associate_tags, tag_names
from challengers.services.users import find_user

log = structlog.get_logger(__name__)

OPEN_STATUSES = ("ready", "in_progress")


def _discard_assets(store: AssetStore, urls: list[str]) -> None:
    if not urls:
        return
    try:
        store.delete_many(urls)
    except StorageFailure:
        log.warning("asset_cleanup_failed", urls=urls)


def _require_host(ch: Challenge, user_id: UUID) -> None:
    if ch.host_id != user_id:
        raise Unauthorized("Only the challenge host can do this")


def _to_participation(uc: UserChallenge) -> ParticipationPublic:
    return ParticipationPublic(
        id=uc.id, challenge_id=uc.challenge_id, user_id=uc.user_id,
        status=uc.status, max_progress=uc.max_progress, joined_at=uc.joined_at,
    )


def _to_detail(ch: Challenge, example_urls: list[str], tags: list[str], **viewer) -> ChallengeDetail:
    return ChallengeDetail(
        id=ch.id, host_id=ch.host_id, name=ch.name, image_url=ch.image_url,
        photo_description=ch.photo_description, challenge_rule=ch.challenge_rule,
        introduction=ch.introduction, category=ch.category,
        check_frequency=ch.check_frequency, check_times_per_round=ch.check_times_per_round,
        start_date=ch.start_date, end_date=ch.end_date, deposit_point=ch.deposit_point,
        status=ch.status, round=ch.round, star_rating=ch.star_rating, review_count=ch.review_count,
        user_count=ch.user_count, user_count_limit=ch.user_count_limit, failed_point=ch.failed_point,
        example_photo_urls=example_urls, tags=tags, created_at=ch.created_at,
        **viewer,
    )


async def _example_urls(session: AsyncSession, challenge_id: UUID) -> list[str]:
    rows = await session.execute(
        select(ExamplePhoto.photo_url).where(ExamplePhoto.challenge_id == challenge_id).order_by(ExamplePhoto.position)
    )
    return list(rows.scalars().all())


# ---------- challenge CRUD ----------

async def create_challenge(
    session: AsyncSession,
    store: AssetStore,
    host_id: UUID,
    data: ChallengeCreate,
    image: bytes | None = None,
    example_photos: list[bytes] | None = None,
    today: date | None = None,
) -> ChallengeDetail:
    today = today or today_local()
    if data.end_date <= data.start_date:
        raise InvalidDateRange()

    # reject bad files before anything is uploaded
    image_mime = validate_image(image) if image else None
    examples = [(b, validate_image(b)) for b in (example_photos or [])]

    async with session.begin():
        await find_user(session, host_id)

    uploaded: list[str] = []
    if image:
        image_url = store.store(image, image_mime, prefix="challenges")
        uploaded.append(image_url)
    else:
        image_url = settings.default_challenge_image_url
    try:
        example_urls = store.store_many(examples, prefix="examples")
    except StorageFailure:
        _discard_assets(store, uploaded)
        raise
    uploaded.extend(example_urls)

    try:
        async with session.begin():
            host = await find_user(session, host_id)
            status, rnd = initial_status(data.start_date, today)
            ch = Challenge(
                host_id=host.id,
                name=data.name,
                image_url=image_url,
                photo_description=data.photo_description,
                challenge_rule=data.challenge_rule,
                check_frequency=data.check_frequency,
                check_times_per_round=data.check_times_per_round,
                category=data.category,
                start_date=data.start_date,
                end_date=data.end_date,
                deposit_point=data.deposit_point,
                introduction=data.introduction,
                total_star_rating=0.0,
                star_rating=0.0,
                review_count=0,
                # user_count tracks joiners; the host never takes a slot
                user_count=0,
                user_count_limit=data.user_count_limit,
                failed_point=0,
                round=rnd,
                status=status,
            )
            session.add(ch)
            await session.flush()
            for pos, url in enumerate(example_urls):
                session.add(ExamplePhoto(challenge_id=ch.id, photo_url=url, position=pos))
            tags = await associate_tags(session, ch.id, data.tags)
            await participation.add_participant(session, ch, host.id)
            await record_participation(session, host)
    except Exception:
        _discard_assets(store, uploaded)
        raise

    log.info("challenge_created", challenge_id=str(ch.id), host_id=str(host_id), status=ch.status, round=ch.round)
    return _to_detail(ch, example_urls, tags, is_bookmarked=False, is_joined=True, expected_penalty=0)


async def update_challenge(
    session: AsyncSession,
    store: AssetStore,
    challenge_id: UUID,
    user_id: UUID,
    data: ChallengeUpdate,
    image: bytes | None = None,
) -> ChallengeDetail:
    image_mime = validate_image(image) if image else None
    async with session.begin():
        _require_host(await load_challenge(session, challenge_id), user_id)

    new_url = store.store(image, image_mime, prefix="challenges") if image else None
    try:
        async with session.begin():
            ch = await load_challenge(session, challenge_id, for_update=True)
            _require_host(ch, user_id)
            old_url = ch.image_url
            if new_url:
                ch.image_url = new_url
            if "introduction" in data.model_fields_set:
                ch.introduction = data.introduction
    except Exception:
        _discard_assets(store, [new_url] if new_url else [])
        raise

    if new_url and old_url:
        _discard_assets(store, [old_url])
    log.info("challenge_updated", challenge_id=str(challenge_id), image_replaced=bool(new_url))
    return await get_challenge_detail(session, challenge_id, user_id)


async def delete_challenge(session: AsyncSession, store: AssetStore, challenge_id: UUID, user_id: UUID) -> None:
    async with session.begin():
        ch = await load_challenge(session, challenge_id, for_update=True)
        _require_host(ch, user_id)
        await participation.ensure_deletable(session, ch)
        urls = [u for u in [ch.image_url, *await _example_urls(session, ch.id)] if u]
        await session.execute(delete(UserChallenge).where(UserChallenge.challenge_id == ch.id))
        await session.delete(ch)
    # rows are gone; stored files follow on a best-effort basis
    _discard_assets(store, urls)
    log.info("challenge_deleted", challenge_id=str(challenge_id), host_id=str(user_id))


async def get_challenge_detail(session: AsyncSession, challenge_id: UUID, viewer_id: UUID | None = None) -> ChallengeDetail:
    async with session.begin():
        ch = await load_challenge(session, challenge_id)
        uc = await find_user_challenge(session, viewer_id, ch.id) if viewer_id else None
        return _to_detail(
            ch,
            await _example_urls(session, ch.id),
            await tag_names(session, ch.id),
            is_bookmarked=await is_bookmarked(session, ch.id, viewer_id),
            is_joined=uc is not None and uc.status != "abandoned",
            expected_penalty=await participation.compute_progress_penalty(session, ch),
        )


async def list_open_challenges(
    session: AsyncSession, viewer_id: UUID | None = None, limit: int = 20, offset: int = 0
) -> ChallengePage:
    """Ready and in-progress challenges, newest first."""
    async with session.begin():
        total = await session.scalar(
            select(func.count()).select_from(Challenge).where(Challenge.status.in_(OPEN_STATUSES))
        )
        rows = (await session.execute(
            select(Challenge)
            .where(Challenge.status.in_(OPEN_STATUSES))
            .order_by(Challenge.created_at.desc(), Challenge.id)
            .limit(limit)
            .offset(offset)
        )).scalars().all()
        ids = [c.id for c in rows]
        joined: dict[UUID, list[UUID]] = {cid: [] for cid in ids}
        if ids:
            pairs = await session.execute(
                select(UserChallenge.challenge_id, UserChallenge.user_id)
                .where(UserChallenge.challenge_id.in_(ids), UserChallenge.status != "abandoned")
                .order_by(UserChallenge.joined_at)
            )
            for cid, uid in pairs.all():
                joined[cid].append(uid)
        marked = await bookmarked_ids(session, ids, viewer_id)

    items = [
        ChallengePublic(
            id=c.id, host_id=c.host_id, name=c.name, image_url=c.image_url, category=c.category,
            check_frequency=c.check_frequency, check_times_per_round=c.check_times_per_round,
            start_date=c.start_date, end_date=c.end_date, deposit_point=c.deposit_point,
            status=c.status, round=c.round, star_rating=c.star_rating, review_count=c.review_count,
            user_count=c.user_count, user_count_limit=c.user_count_limit,
            is_bookmarked=c.id in marked, joined_user_ids=joined[c.id],
        )
        for c in rows
    ]
    return ChallengePage(items=items, limit=limit, offset=offset, total=int(total or 0))


# ---------- participation ----------

async def join_challenge(
    session: AsyncSession, challenge_id: UUID, user_id: UUID, today: date | None = None
) -> ParticipationPublic:
    today = today or today_local()
    async with session.begin():
        user = await find_user(session, user_id)
        ch = await load_challenge(session, challenge_id, for_update=True)
        uc = await participation.join(session, ch, user.id, today)
        await record_participation(session, user)
    log.info("challenge_joined", challenge_id=str(challenge_id), user_id=str(user_id), user_count=ch.user_count)
    return _to_participation(uc)


async def leave_challenge(session: AsyncSession, challenge_id: UUID, user_id: UUID) -> ParticipationPublic:
    async with session.begin():
        ch = await load_challenge(session, challenge_id, for_update=True)
        uc = await participation.leave(session, ch, user_id)
    log.info("challenge_left", challenge_id=str(challenge_id), user_id=str(user_id))
    return _to_participation(uc)


async def finish_challenge(session: AsyncSession, challenge_id: UUID, user_id: UUID) -> ChallengeDetail:
    async with session.begin():
        ch = await load_challenge(session, challenge_id, for_update=True)
        _require_host(ch, user_id)
        lifecycle.to_finish(ch)
        completed = await participation.complete_participants(session, ch)
    log.info("challenge_finished", challenge_id=str(challenge_id), completed=completed)
    return await get_challenge_detail(session, challenge_id, user_id)


# ---------- photo checks ----------

def _to_photo_check(check: PhotoCheck, photo_url: str) -> PhotoCheckPublic:
    return PhotoCheckPublic(
        id=check.id, challenge_id=check.challenge_id, user_challenge_id=check.user_challenge_id,
        round=check.round, status=check.status, photo_url=photo_url,
        created_at=check.created_at, reviewed_at=check.reviewed_at,
    )


async def _check_submittable(session: AsyncSession, challenge_id: UUID, user_id: UUID, *, for_update: bool):
    ch = await load_challenge(session, challenge_id, for_update=for_update)
    uc = await find_user_challenge(session, user_id, ch.id)
    done = await photo_checks.count_round_checks(session, uc.id, ch.round) if uc else 0
    photo_checks.ensure_can_submit(ch, uc, done)
    return ch, uc


async def submit_photo_check(
    session: AsyncSession, store: AssetStore, challenge_id: UUID, user_id: UUID, photo: bytes
) -> PhotoCheckPublic:
    mime = validate_image(photo)
    async with session.begin():
        await find_user(session, user_id)
        await _check_submittable(session, challenge_id, user_id, for_update=False)

    url = store.store(photo, mime, prefix=f"checks/{challenge_id}")
    try:
        async with session.begin():
            # re-check under the row lock: the round or quota may have moved during the upload
            ch, uc = await _check_submittable(session, challenge_id, user_id, for_update=True)
            check = await photo_checks.record_photo_check(session, ch, uc, url)
    except Exception:
        _discard_assets(store, [url])
        raise

    log.info("photo_check_submitted", photo_check_id=str(check.id), challenge_id=str(challenge_id), round=check.round)
    return _to_photo_check(check, url)


async def get_photo_check(session: AsyncSession, photo_check_id: UUID) -> PhotoCheckPublic:
    async with session.begin():
        row = (await session.execute(
            select(PhotoCheck, ChallengePhoto.photo_url)
            .join(ChallengePhoto, ChallengePhoto.id == PhotoCheck.challenge_photo_id)
            .where(PhotoCheck.id == photo_check_id)
        )).first()
    if row is None:
        raise NotFound("PhotoCheck", photo_check_id)
    check, url = row
    return _to_photo_check(check, url)


async def _apply_failures(session: AsyncSession, events: list[photo_checks.PhotoCheckFailed]) -> dict[UUID, int]:
    totals: dict[UUID, int] = {}
    for e in events:
        totals[e.challenge_id] = totals.get(e.challenge_id, 0) + e.amount
    for cid in sorted(totals, key=str):
        ch = await load_challenge(session, cid, for_update=True)
        lifecycle.add_failed_point(ch, totals[cid])
    return totals


async def _review(session: AsyncSession, photo_check_ids: list[UUID], reviewer_id: UUID, outcome: photo_checks.Outcome) -> CheckResult:
    async with session.begin():
        checks, events = await photo_checks.review(session, photo_check_ids, reviewer_id, outcome)
        failed = await _apply_failures(session, events)
    log.info("photo_checks_reviewed", outcome=outcome, count=len(checks), reviewer_id=str(reviewer_id))
    return CheckResult(status=outcome, photo_check_ids=[c.id for c in checks], failed_points=failed)


async def pass_photo_checks(session: AsyncSession, photo_check_ids: list[UUID], reviewer_id: UUID) -> CheckResult:
    return await _review(session, photo_check_ids, reviewer_id, "pass")


async def fail_photo_checks(session: AsyncSession, photo_check_ids: list[UUID], reviewer_id: UUID) -> CheckResult:
    return await _review(session, photo_check_ids, reviewer_id, "fail")


# ---------- scheduler ----------

async def run_lifecycle_tick(session: AsyncSession, today: date | None = None) -> dict:
    """
    Bring every open challenge up to date with the calendar:
    start challenges whose start date has come, advance rounds (crediting
    each active participant with the closed round's checks), and move
    challenges past their end date to validation.
    """
    today = today or today_local()
    started = advanced = validated = 0
    async with session.begin():
        rows = (await session.execute(
            select(Challenge)
            .where(Challenge.status.in_(OPEN_STATUSES))
            .order_by(Challenge.id)
            .with_for_update()
        )).scalars().all()
        for ch in rows:
            if ch.status == "ready":
                if ch.start_date > today:
                    continue
                lifecycle.to_in_progress(ch)
                started += 1
            target = round_for(ch.check_frequency, ch.start_date, min(today, ch.end_date))
            while ch.round < target:
                await participation.accrue_round_progress(session, ch)
                lifecycle.advance_round(ch)
                advanced += 1
            if today > ch.end_date:
                # the final round closes with the challenge
                await participation.accrue_round_progress(session, ch)
                lifecycle.to_validate(ch)
                validated += 1
    summary = {"today": today.isoformat(), "started": started, "rounds_advanced": advanced, "validated": validated}
    log.info("lifecycle_tick", **summary)
    return summary


# ---------- reviews & bookmarks ----------

def _to_review(r: Review, ch: Challenge) -> ReviewPublic:
    return ReviewPublic(
        id=r.id, challenge_id=r.challenge_id, user_id=r.user_id, star_rating=r.star_rating,
        content=r.content, created_at=r.created_at,
        challenge_star_rating=ch.star_rating, challenge_review_count=ch.review_count,
    )


async def _find_review(session: AsyncSession, challenge_id: UUID, user_id: UUID) -> Review | None:
    return await session.scalar(select(Review).where(Review.challenge_id == challenge_id, Review.user_id == user_id))


async def add_review(session: AsyncSession, challenge_id: UUID, user_id: UUID, data: ReviewCreate) -> ReviewPublic:
    async with session.begin():
        ch = await load_challenge(session, challenge_id, for_update=True)
        if await find_user_challenge(session, user_id, ch.id) is None:
            raise Unauthorized("Only participants can review a challenge")
        if await _find_review(session, ch.id, user_id) is not None:
            raise AlreadyReviewed("You already reviewed this challenge")
        review = Review(challenge_id=ch.id, user_id=user_id, star_rating=data.star_rating, content=data.content)
        session.add(review)
        await session.flush()
        lifecycle.add_review_relation(ch, data.star_rating)
    return _to_review(review, ch)


async def update_review(session: AsyncSession, challenge_id: UUID, user_id: UUID, data: ReviewCreate) -> ReviewPublic:
    async with session.begin():
        ch = await load_challenge(session, challenge_id, for_update=True)
        review = await _find_review(session, ch.id, user_id)
        if review is None:
            raise NotFound("Review")
        lifecycle.update_review_relation(ch, review.star_rating, data.star_rating)
        review.star_rating = data.star_rating
        review.content = data.content
        review.updated_at = datetime.now(dt_tz.utc)
    return _to_review(review, ch)


async def delete_review(session: AsyncSession, challenge_id: UUID, user_id: UUID) -> None:
    async with session.begin():
        ch = await load_challenge(session, challenge_id, for_update=True)
        review = await _find_review(session, ch.id, user_id)
        if review is None:
            raise NotFound("Review")
        lifecycle.delete_review_relation(ch, review.star_rating)
        await session.delete(review)


async def set_bookmark(session: AsyncSession, challenge_id: UUID, user_id: UUID, marked: bool) -> None:
    async with session.begin():
        await load_challenge(session, challenge_id)
        if marked:
            await add_bookmark(session, challenge_id, user_id)
        else:
            await remove_bookmark(session, challenge_id, user_id)
