from __future__ import annotations

"""Async SQLAlchemy engine/session helpers.

Postgres (asyncpg) in production, SQLite (aiosqlite) as the dev fallback.
"""

import asyncio
import logging
import os
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

log = logging.getLogger("db")

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker | None = None


def get_database_url() -> str:
    """Public accessor for the database URL (used by Alembic and other tooling)."""
    return _database_url()


def _database_url() -> str:
    url = (os.getenv("DATABASE_URL", "") or "").strip()
    if url:
        # Convert sync postgres URLs to asyncpg URLs if needed
        if url.startswith("postgres://"):
            url = "postgresql+asyncpg://" + url[len("postgres://") :]
        elif url.startswith("postgresql://") and "+asyncpg" not in url:
            url = "postgresql+asyncpg://" + url[len("postgresql://") :]
        return url

    # In production, DATABASE_URL must be provided. A silent SQLite fallback
    # causes data loss across deploys.
    env = (os.getenv("ENVIRONMENT", "prod") or "prod").strip().lower()
    if env != "dev":
        raise RuntimeError(
            "DATABASE_URL is missing. Set DATABASE_URL (Postgres) in your environment. "
            "If you are running locally, set ENVIRONMENT=dev to allow a local SQLite fallback."
        )

    return "sqlite+aiosqlite:///./main.db"


def _enable_sqlite_foreign_keys(dbapi_conn: Any, _record: Any) -> None:
    # SQLite ignores ON DELETE CASCADE unless this is set per connection.
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def make_engine(url: str) -> AsyncEngine:
    is_sqlite = url.startswith("sqlite")
    pool_kwargs: dict = {}
    if not is_sqlite:
        pool_kwargs = {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_timeout": 30,
            "pool_recycle": 1800,
            "pool_pre_ping": True,
        }
    engine = create_async_engine(url, echo=False, **pool_kwargs)
    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = make_engine(_database_url())
    return _engine


def get_sessionmaker() -> async_sessionmaker:
    global _sessionmaker
    if _sessionmaker is None:
        _sessionmaker = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _sessionmaker


_DB_RETRY_ATTEMPTS = 5
_DB_RETRY_BASE_DELAY = 2.0


async def init_db() -> None:
    """Initialize the engine and ensure the schema.

    In dev (or with DB_AUTO_CREATE) tables are created on startup; otherwise we
    only run a preflight query and expect Alembic migrations to be applied.

    Retries up to 5 times with exponential backoff for transient connectivity
    failures (the DB container often boots after the bot).
    """
    from utils.models import Base

    engine = get_engine()
    env = (os.getenv("ENVIRONMENT", "prod") or "prod").strip().lower()
    auto_create = str(os.getenv("DB_AUTO_CREATE", "")).strip().lower() in {"1", "true", "yes", "on"}

    for attempt in range(1, _DB_RETRY_ATTEMPTS + 1):
        try:
            await _init_db_inner(engine, Base, env, auto_create)
            return
        except Exception as exc:
            if attempt >= _DB_RETRY_ATTEMPTS:
                log.exception("DB init/preflight failed after %d attempts", _DB_RETRY_ATTEMPTS)
                raise
            delay = _DB_RETRY_BASE_DELAY * (2 ** (attempt - 1))
            log.warning(
                "DB init attempt %d/%d failed (%s); retrying in %.1fs…",
                attempt, _DB_RETRY_ATTEMPTS, exc, delay,
            )
            await asyncio.sleep(delay)


async def _init_db_inner(engine: AsyncEngine, Base, env: str, auto_create: bool) -> None:
    async with engine.begin() as conn:
        if env == "dev" or auto_create:
            await conn.run_sync(Base.metadata.create_all)
            log.info("DB init OK (tables ensured; env=%s auto_create=%s)", env, auto_create)
        else:
            await conn.execute(text("SELECT 1"))
            log.info("DB preflight OK (env=%s). Apply migrations via Alembic.", env)


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None
