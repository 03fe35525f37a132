from __future__ import annotations
import io
import uuid
from datetime import date, timedelta

import httpx
import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import async_sessionmaker

from challengers.db import Base, make_engine, get_session
import challengers.models.user  # register tables
import challengers.models.achievement
import challengers.models.challenge
import challengers.models.photo_check
import challengers.models.review
from challengers.errors import StorageFailure
from challengers.main import app
from challengers.models.user import User
from challengers.schemas.challenge import ChallengeCreate
from challengers.security import make_access_token
from challengers.services import challenges as engine_facade
from challengers.services.media import ext_for_mime
from challengers.services.storage import AssetStore, get_asset_store

# a Wednesday; rounds and join windows in tests are computed against it
TODAY = date(2025, 1, 8)


class MemoryAssetStore(AssetStore):
    base = "memory://assets/"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.fail_after: int | None = None
        self.uploads = 0

    def store(self, data: bytes, content_type: str, prefix: str = "uploads") -> str:
        self.uploads += 1
        if self.fail_after is not None and self.uploads > self.fail_after:
            raise StorageFailure("upload refused")
        url = f"{self.base}{prefix}/{uuid.uuid4().hex}.{ext_for_mime(content_type)}"
        self.objects[url] = data
        return url

    def delete(self, url: str) -> None:
        self.objects.pop(url, None)


def png_bytes(color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color).save(buf, format="PNG")
    return buf.getvalue()


def challenge_payload(**overrides) -> dict:
    data = {
        "name": "Morning run",
        "photo_description": "Photo of your running app summary",
        "challenge_rule": "At least 3km",
        "check_frequency": "every_day",
        "check_times_per_round": 1,
        "category": "exercise",
        "start_date": TODAY.isoformat(),
        "end_date": (TODAY + timedelta(days=9)).isoformat(),
        "deposit_point": 1000,
        "introduction": "Run every morning for ten days",
        "user_count_limit": 10,
        "tags": ["running", "#morning"],
    }
    data.update(overrides)
    return data


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    eng = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'challengers.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def store():
    return MemoryAssetStore()


@pytest.fixture
def make_user(session_factory):
    async def _make(username: str | None = None) -> uuid.UUID:
        username = username or f"user_{uuid.uuid4().hex[:8]}"
        async with session_factory() as s:
            async with s.begin():
                user = User(email=f"{username}@ex.com", username=username)
                s.add(user)
        return user.id
    return _make


@pytest.fixture
def make_challenge(session_factory, store):
    async def _make(host_id: uuid.UUID, today: date = TODAY, **overrides):
        data = ChallengeCreate.model_validate(challenge_payload(**overrides))
        async with session_factory() as s:
            return await engine_facade.create_challenge(s, store, host_id, data, today=today)
    return _make


def auth(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_access_token(str(user_id))}"}


@pytest_asyncio.fixture
async def client(session_factory, store):
    async def _session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_asset_store] = lambda: store
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
