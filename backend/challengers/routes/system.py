from __future__ import annotations
import hmac
from fastapi import APIRouter, Header, HTTPException, Request
from datetime import datetime, timezone
from redis import Redis
from redis.exceptions import RedisError
from rq import Queue
from challengers.config import settings
from challengers.jobs.lifecycle_tick import lifecycle_tick

router = APIRouter()

# RQ queue (lazy single instance; no connection is made until enqueue)
_redis = Redis.from_url(settings.redis_url)
q = Queue("default", connection=_redis)

@router.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "env": settings.environment,
        "time": datetime.now(timezone.utc).isoformat(),
        "request_id": request.headers.get("x-request-id") or request.state.request_id,
    }

@router.get("/version")
async def version():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "git_sha": settings.git_sha,
        "build": "docker",
    }

@router.post("/system/lifecycle-tick", status_code=202)
async def enqueue_lifecycle_tick(
    today: str | None = None,
    x_scheduler_token: str | None = Header(default=None, alias="X-Scheduler-Token"),
):
    """Called by the external scheduler; the tick itself runs on an RQ worker."""
    if not x_scheduler_token or not hmac.compare_digest(x_scheduler_token, settings.scheduler_token):
        raise HTTPException(status_code=403, detail="Invalid scheduler token")
    if today is not None:
        try:
            datetime.strptime(today, "%Y-%m-%d")
        except ValueError:
            raise HTTPException(status_code=422, detail="today must be YYYY-MM-DD")
    try:
        job = q.enqueue(lifecycle_tick, today, job_timeout=300)
    except RedisError:
        raise HTTPException(status_code=503, detail="Job queue unavailable")
    return {"job_id": job.id, "today": today}
