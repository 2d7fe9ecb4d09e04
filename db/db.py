"""
Async engine / session helpers for the reminder pipeline.
Uses SQLAlchemy 2.0 + asyncpg driver (aiosqlite in tests).
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass

# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None
_null_pool = False

def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if url.startswith(("postgres://", "postgresql://")) and "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

def use_null_pool() -> None:
    """Open a fresh connection per session.

    Celery tasks drive coroutines with ``asyncio.run``, one event loop per
    call; pooled asyncpg connections cannot cross loops.
    """
    global _null_pool
    _null_pool = True


def get_engine():
    global _engine
    if _engine is None:
        url = _build_url()
        if _null_pool:
            _engine = create_async_engine(url, poolclass=NullPool)
        elif url.startswith("sqlite"):
            _engine = create_async_engine(url)
        else:
            _engine = create_async_engine(url, pool_size=5, max_overflow=5, pool_pre_ping=True)
    return _engine

@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async with _session_maker() as session:
        yield session

# ──────────────────────────────────────────────────────────────────────
# 3. DDL helper (tests / local dev; production uses Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    from db import models  # noqa: F401  registers tables on Base.metadata

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None
