from __future__ import annotations
import asyncio
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from challengers.db import SessionLocal
from challengers.services.challenges import run_lifecycle_tick

async def _run(today_iso: str | None = None, session_factory: async_sessionmaker[AsyncSession] | None = None) -> dict:
    today = date.fromisoformat(today_iso) if today_iso else None
    async with (session_factory or SessionLocal)() as session:
        return await run_lifecycle_tick(session, today)

def lifecycle_tick(today_iso: str | None = None) -> dict:
    # RQ entry point (sync); run the async coroutine
    return asyncio.run(_run(today_iso))
