from __future__ import annotations
from typing import AsyncGenerator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from challengers.config import settings

class Base(DeclarativeBase):
    pass

def make_engine(url: str, **kwargs) -> AsyncEngine:
    eng = create_async_engine(url, future=True, echo=False, **kwargs)
    if eng.dialect.name == "sqlite":
        _serialize_sqlite_writers(eng)
    return eng

def _serialize_sqlite_writers(eng: AsyncEngine) -> None:
    # SQLite has no row locks; take the write lock at BEGIN so that
    # check-then-act sequences (capacity, review status) run one at a time.
    @event.listens_for(eng.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(eng.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

engine = make_engine(settings.database_url)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session
