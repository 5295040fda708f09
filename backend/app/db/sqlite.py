from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from app.db.adapter import DatabaseAdapter, ExecResult, Params, Row, strip_returning
from app.db.schema import add_column_statements, create_statements, tables

logger = logging.getLogger(__name__)


def _to_sqlite_param(value: Any) -> Any:
    # stored as "YYYY-MM-DD HH:MM:SS[.ffffff]" in UTC, the same shape datetime('now')
    # produces, so text comparison orders them correctly
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.isoformat(sep=" ")
    if isinstance(value, bool):
        return int(value)
    return value


def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_sqlite_engine(path: str) -> Engine:
    if path == ":memory:":
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        Path(path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            f"sqlite:///{path}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


class SQLiteAdapter(DatabaseAdapter):
    """
    Embedded file engine. Calls run synchronously on the event loop thread;
    SQLite itself serializes writers. Each call is its own transaction.
    """

    engine_name = "sqlite"

    def __init__(self, path: str, engine: Optional[Engine] = None) -> None:
        self.path = path
        self.engine = engine or create_sqlite_engine(path)

    @staticmethod
    def _params(params: Params) -> tuple:
        return tuple(_to_sqlite_param(p) for p in params)

    async def get_one(self, sql: str, params: Params = ()) -> Optional[Row]:
        with self.engine.connect() as conn:
            row = conn.exec_driver_sql(sql, self._params(params)).mappings().first()
        return dict(row) if row is not None else None

    async def get_many(self, sql: str, params: Params = ()) -> list[Row]:
        with self.engine.connect() as conn:
            rows = conn.exec_driver_sql(sql, self._params(params)).mappings().all()
        return [dict(r) for r in rows]

    async def execute(self, sql: str, params: Params = ()) -> ExecResult:
        statement = strip_returning(sql)
        with self.engine.begin() as conn:
            result = conn.exec_driver_sql(statement, self._params(params))
            changes = result.rowcount if result.rowcount is not None and result.rowcount >= 0 else 0
            last_id = None
            if statement.lstrip().upper().startswith("INSERT"):
                last_id = result.lastrowid
        return ExecResult(changes=changes, last_insert_id=last_id)

    async def init_schema(self) -> None:
        added = 0
        with self.engine.begin() as conn:
            for statement in create_statements(self.engine.dialect):
                conn.exec_driver_sql(statement)

            inspector = inspect(conn)
            for table in tables():
                existing = [c["name"] for c in inspector.get_columns(table.name)]
                for statement in add_column_statements(table, existing, self.engine.dialect):
                    logger.info("db.column_added", extra={"statement": statement})
                    conn.exec_driver_sql(statement)
                    added += 1

        logger.info("db.schema_ready", extra={"engine": self.engine_name, "columns_added": added})

    async def close(self) -> None:
        self.engine.dispose()
