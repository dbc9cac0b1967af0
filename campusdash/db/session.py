"""
Async engine & session factory.

PostgreSQL (asyncpg) in deployment; SQLite (aiosqlite) works for local
runs and the test-suite.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from campusdash.core.config import settings


def build_engine(url: str) -> AsyncEngine:
    backend = make_url(url).get_backend_name()
    engine_args: dict[str, Any] = {"echo": False, "pool_pre_ping": True}

    if backend == "postgresql":
        engine_args.update(pool_size=20, max_overflow=10, pool_recycle=300)
    elif backend == "sqlite":
        # concurrent first-access writers wait on the file lock instead of failing
        engine_args["connect_args"] = {"timeout": 30}

    return create_async_engine(url, **engine_args)


engine = build_engine(settings.DATABASE_URL)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
