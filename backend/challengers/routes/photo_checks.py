from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Form, UploadFile, File
from sqlalchemy.ext.asyncio import AsyncSession
from challengers.db import get_session
from challengers.auth_deps import get_current_user_id
from challengers.schemas.photo_check import CheckRequest, CheckResult, PhotoCheckPublic
from challengers.services import challenges as engine
from challengers.services.storage import AssetStore, get_asset_store

router = APIRouter(prefix="/photo-checks", tags=["photo-checks"])

@router.post("", response_model=PhotoCheckPublic, status_code=201)
async def submit_photo_check(
    challenge_id: UUID = Form(...),
    photo: UploadFile = File(..., description="JPEG or PNG proof photo"),
    session: AsyncSession = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user_id: UUID = Depends(get_current_user_id),
):
    data = await photo.read()
    return await engine.submit_photo_check(session, store, challenge_id, user_id, data)

@router.get("/{photo_check_id}", response_model=PhotoCheckPublic)
async def get_photo_check(
    photo_check_id: UUID,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    return await engine.get_photo_check(session, photo_check_id)

@router.post("/pass", response_model=CheckResult)
async def pass_photo_checks(
    payload: CheckRequest,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    return await engine.pass_photo_checks(session, payload.photo_check_ids, user_id)

@router.post("/fail", response_model=CheckResult)
async def fail_photo_checks(
    payload: CheckRequest,
    session: AsyncSession = Depends(get_session),
    user_id: UUID = Depends(get_current_user_id),
):
    return await engine.fail_photo_checks(session, payload.photo_check_ids, user_id)
