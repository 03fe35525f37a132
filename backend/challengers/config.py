from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "challengers-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Challengers")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/challengers_dev")
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    s3_endpoint: str = os.getenv("S3_ENDPOINT", "http://minio:9000")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "minioadmin")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "minioadmin")
    s3_bucket_uploads: str = os.getenv("S3_BUCKET_UPLOADS", "challengers-uploads-dev")
    # Public prefix for stored objects; asset urls are "<base>/<bucket>/<key>"
    s3_public_base_url: str = os.getenv("S3_PUBLIC_BASE_URL", "http://localhost:9000")
    default_challenge_image_url: str = os.getenv(
        "DEFAULT_CHALLENGE_IMAGE_URL", "http://localhost:9000/challengers-static/challenge_default.jpg"
    )

    # Calendar used for "today" by rounds, join windows and the lifecycle tick
    challenge_timezone: str = os.getenv("CHALLENGE_TIMEZONE", "Asia/Seoul")

    # Shared secret the external scheduler sends to trigger the lifecycle tick
    scheduler_token: str = os.getenv("SCHEDULER_TOKEN", "dev-scheduler-token")

settings = Settings()
