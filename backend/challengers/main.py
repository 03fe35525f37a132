from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from challengers.config import settings
from challengers.errors import ChallengersError
from challengers.logging_setup import configure_logging
from challengers.routes.system import router as system_router
from challengers.routes.challenges import router as challenges_router
from challengers.routes.photo_checks import router as photo_checks_router
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    yield
    # Shutdown
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for group habit challenges with photo checks"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system_router)
app.include_router(challenges_router)
app.include_router(photo_checks_router)

@app.exception_handler(ChallengersError)
async def challengers_error_handler(request: Request, exc: ChallengersError):
    log.info("request_rejected", code=exc.code, status=exc.status_code, path=request.url.path, detail=str(exc))
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc), "code": exc.code})

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    structlog.contextvars.clear_contextvars()
    return response
