from __future__ import annotations
import json
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, Form, UploadFile, File, Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from challengers.db import get_session
from challengers.auth_deps import get_current_user_id, get_optional_user_id
from challengers.schemas.challenge import (
    ChallengeCreate, ChallengeDetail, ChallengePage, ChallengeUpdate, ParticipationPublic, ReviewCreate, ReviewPublic,
)
from challengers.services import challenges as engine
from challengers.services.storage import AssetStore, get_asset_store

router = APIRouter(prefix="/challenges", tags=["challenges"])

def _parse_payload(model, payload: str):
    try:
        return model.model_validate(json.loads(payload))
    except json.JSONDecodeError:
        raise HTTPException(status_code=422, detail="Invalid JSON in payload")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

@router.post("", response_model=ChallengeDetail, status_code=201)
async def create_challenge(
    payload: str = Form(..., description="JSON string of challenge data"),
    image: UploadFile | None = File(default=None, description="Optional challenge image"),
    example_photos: list[UploadFile] | None = File(default=None, description="Example photos of a valid check"),
    session: AsyncSession = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user_id: UUID = Depends(get_current_user_id),
):
    data = _parse_payload(ChallengeCreate, payload)
    image_bytes = await image.read() if image else None
    examples = []
    for f in example_photos or []:
        data_bytes = await f.read()
        if data_bytes:
            examples.append(data_bytes)
    return await engine.create_challenge(session, store, user_id, data, image_bytes or None, examples)

@router.get("", response_model=ChallengePage)
async def list_challenges(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
    user_id: UUID | None = Depends(get_optional_user_id),
):
    return await engine.list_open_challenges(session, user_id, limit=limit, offset=offset)

@router.get("/{challenge_id}", response_model=ChallengeDetail)
async def get_challenge(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: UUID | None = Depends(get_optional_user_id),
):
    return await engine.get_challenge_detail(session, challenge_id, user_id)

@router.patch("/{challenge_id}", response_model=ChallengeDetail)
async def update_challenge(
    challenge_id: UUID,
    payload: str = Form(default="{}", description="JSON string with the fields to change"),
    image: UploadFile | None = File(default=None, description="Replacement challenge image"),
    session: AsyncSession = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user_id: UUID = Depends(get_current_user_id),
):
    data = _parse_payload(ChallengeUpdate, payload)
    image_bytes = await image.read() if image else None
    return await engine.update_challenge(session, store, challenge_id, user_id, data, image_bytes or None)

@router.delete("/{challenge_id}", status_code=204)
async def delete_challenge(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user_id: UUID = Depends(get_current_user_id),
):
    await engine.delete_challenge(session, store, challenge_id, user_id)
    return Response(status_code=204)

@router.post("/{challenge_id}/join", response_model=ParticipationPublic, status_code=201)
async def join_challenge(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    return await engine.join_challenge(session, challenge_id, user_id)

@router.post("/{challenge_id}/leave", response_model=ParticipationPublic)
async def leave_challenge(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    return await engine.leave_challenge(session, challenge_id, user_id)

@router.post("/{challenge_id}/finish", response_model=ChallengeDetail)
async def finish_challenge(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    return await engine.finish_challenge(session, challenge_id, user_id)

@router.put("/{challenge_id}/bookmark", status_code=204)
async def bookmark_challenge(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    await engine.set_bookmark(session, challenge_id, user_id, True)
    return Response(status_code=204)

@router.delete("/{challenge_id}/bookmark", status_code=204)
async def unbookmark_challenge(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    await engine.set_bookmark(session, challenge_id, user_id, False)
    return Response(status_code=204)

@router.post("/{challenge_id}/reviews", response_model=ReviewPublic, status_code=201)
async def add_review(
    challenge_id: UUID,
    payload: ReviewCreate,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    return await engine.add_review(session, challenge_id, user_id, payload)

@router.patch("/{challenge_id}/reviews", response_model=ReviewPublic)
async def update_review(
    challenge_id: UUID,
    payload: ReviewCreate,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    return await engine.update_review(session, challenge_id, user_id, payload)

@router.delete("/{challenge_id}/reviews", status_code=204)
async def delete_review(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    await engine.delete_review(session, challenge_id, user_id)
    return Response(status_code=204)
