from __future__ import annotations

import asyncio
import logging
from typing import Optional

from app.core.config import settings
from app.db.adapter import DatabaseAdapter
from app.db.postgres import PostgresAdapter
from app.db.sqlite import SQLiteAdapter

logger = logging.getLogger(__name__)

# One adapter per process, created on first use.
_adapter: Optional[DatabaseAdapter] = None
_init_lock = asyncio.Lock()


def build_adapter() -> DatabaseAdapter:
    """A configured DATABASE_URL selects Postgres; otherwise the SQLite file is used."""
    if settings.use_postgres:
        return PostgresAdapter(
            settings.DATABASE_URL_ASYNCPG,
            min_size=settings.DB_POOL_MIN_SIZE,
            max_size=settings.DB_POOL_MAX_SIZE,
        )
    return SQLiteAdapter(settings.SQLITE_PATH)


async def init_db() -> DatabaseAdapter:
    global _adapter
    async with _init_lock:
        if _adapter is None:
            adapter = build_adapter()
            await adapter.init_schema()
            _adapter = adapter
            logger.info("db.initialized", extra={"engine": adapter.engine_name})
    return _adapter


async def close_db() -> None:
    global _adapter
    if _adapter is not None:
        await _adapter.close()
        _adapter = None


async def get_db() -> DatabaseAdapter:
    """
    FastAPI dependency that provides the process-wide adapter.
    Handlers never learn which engine is behind it.
    """
    return await init_db()
