from __future__ import annotations

import logging
from typing import Optional

import asyncpg
from sqlalchemy.dialects import postgresql

from app.db.adapter import (
    DatabaseAdapter,
    ExecResult,
    Params,
    Row,
    has_returning,
    translate_datetime_functions,
    translate_placeholders,
)
from app.db.schema import add_column_statements, create_statements, tables

logger = logging.getLogger(__name__)


def to_postgres_sql(sql: str) -> str:
    # datetime helpers first: their quoted arguments never contain `?`
    return translate_placeholders(translate_datetime_functions(sql))


def parse_status_rowcount(status: str) -> int:
    """
    asyncpg returns the command tag: "UPDATE 3", "DELETE 0", "INSERT 0 1".
    The affected row count is always the last token.
    """
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    try:
        return int(last)
    except ValueError:
        return 0


class PostgresAdapter(DatabaseAdapter):
    """Networked engine backed by an asyncpg connection pool."""

    engine_name = "postgres"

    def __init__(self, dsn: str, *, min_size: int = 1, max_size: int = 10) -> None:
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
            )
        return self._pool

    async def get_one(self, sql: str, params: Params = ()) -> Optional[Row]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            record = await conn.fetchrow(to_postgres_sql(sql), *params)
        return dict(record) if record is not None else None

    async def get_many(self, sql: str, params: Params = ()) -> list[Row]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            records = await conn.fetch(to_postgres_sql(sql), *params)
        return [dict(r) for r in records]

    async def execute(self, sql: str, params: Params = ()) -> ExecResult:
        statement = to_postgres_sql(sql)
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            if has_returning(statement):
                records = await conn.fetch(statement, *params)
                last_id = None
                if records and "id" in records[0].keys():
                    last_id = records[0]["id"]
                return ExecResult(changes=len(records), last_insert_id=last_id)

            status = await conn.execute(statement, *params)
        return ExecResult(changes=parse_status_rowcount(status))

    async def init_schema(self) -> None:
        dialect = postgresql.dialect()
        added = 0
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                for statement in create_statements(dialect):
                    await conn.execute(statement)

                for table in tables():
                    rows = await conn.fetch(
                        "SELECT column_name FROM information_schema.columns "
                        "WHERE table_schema = current_schema() AND table_name = $1",
                        table.name,
                    )
                    existing = [r["column_name"] for r in rows]
                    for statement in add_column_statements(table, existing, dialect):
                        logger.info("db.column_added", extra={"statement": statement})
                        await conn.execute(statement)
                        added += 1

        logger.info("db.schema_ready", extra={"engine": self.engine_name, "columns_added": added})

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
