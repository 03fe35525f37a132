from __future__ import annotations
import pytest
from challengers.config import settings
from challengers.routes import system


@pytest.mark.asyncio
async def test_health_ok(client):
    r = await client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert "request_id" in data
    assert r.headers["X-Request-ID"] == data["request_id"]


@pytest.mark.asyncio
async def test_version_ok(client):
    r = await client.get("/version")
    assert r.status_code == 200
    data = r.json()
    assert "version" in data and "git_sha" in data


class _FakeJob:
    id = "job-1"


class _FakeQueue:
    def __init__(self):
        self.calls = []

    def enqueue(self, fn, *args, **kwargs):
        self.calls.append((fn, args))
        return _FakeJob()


@pytest.mark.asyncio
async def test_lifecycle_tick_requires_scheduler_token(client, monkeypatch):
    queue = _FakeQueue()
    monkeypatch.setattr(system, "q", queue)
    r = await client.post("/system/lifecycle-tick", headers={"X-Scheduler-Token": "wrong"})
    assert r.status_code == 403
    assert queue.calls == []


@pytest.mark.asyncio
async def test_lifecycle_tick_enqueues_job(client, monkeypatch):
    queue = _FakeQueue()
    monkeypatch.setattr(system, "q", queue)
    r = await client.post(
        "/system/lifecycle-tick?today=2025-01-09", headers={"X-Scheduler-Token": settings.scheduler_token}
    )
    assert r.status_code == 202
    assert r.json() == {"job_id": "job-1", "today": "2025-01-09"}
    assert queue.calls == [(system.lifecycle_tick, ("2025-01-09",))]

    r = await client.post(
        "/system/lifecycle-tick?today=tomorrow", headers={"X-Scheduler-Token": settings.scheduler_token}
    )
    assert r.status_code == 422
