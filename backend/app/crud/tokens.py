# app/crud/tokens.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from app.crud.rows import normalize_row
from app.db.adapter import DatabaseAdapter, Row


async def store_token(
    db: DatabaseAdapter,
    *,
    user_id: int,
    token: str,
    token_type: str,
    expires_at: datetime,
) -> int:
    result = await db.execute(
        "INSERT INTO user_tokens (user_id, token, type, expires_at) VALUES (?, ?, ?, ?) RETURNING id",
        (user_id, token, token_type, expires_at),
    )
    return int(result.last_insert_id)


async def get_valid_token(db: DatabaseAdapter, token: str, token_type: str) -> Optional[Row]:
    row = await db.get_one(
        "SELECT id, user_id, token, type, expires_at, created_at FROM user_tokens "
        "WHERE token = ? AND type = ? AND expires_at > datetime('now')",
        (token, token_type),
    )
    return normalize_row(row, datetimes=("created_at", "expires_at"))


async def delete_token(db: DatabaseAdapter, token_id: int) -> int:
    return (await db.execute("DELETE FROM user_tokens WHERE id = ?", (token_id,))).changes


async def delete_user_tokens(db: DatabaseAdapter, user_id: int, token_type: str) -> int:
    result = await db.execute(
        "DELETE FROM user_tokens WHERE user_id = ? AND type = ?",
        (user_id, token_type),
    )
    return result.changes
