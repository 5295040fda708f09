# app/crud/users.py
from __future__ import annotations

from typing import Optional, Sequence

from app.crud.rows import normalize_row
from app.db.adapter import DatabaseAdapter, Row

_USER_WITH_TENANT = (
    "SELECT u.id, u.email, u.password_hash, u.first_name, u.last_name, u.role, "
    "u.tenant_id, u.is_verified, u.created_at, u.updated_at, "
    "t.slug AS tenant_slug, t.name AS tenant_name, t.subscription_plan, "
    "t.theme_color, t.logo "
    "FROM users u JOIN tenants t ON u.tenant_id = t.id"
)


def _user(row: Optional[Row]) -> Optional[Row]:
    return normalize_row(row, bools=("is_verified",))


async def get_user_by_email(db: DatabaseAdapter, email: str) -> Optional[Row]:
    """Email is unique across tenants, so this lookup is global."""
    return _user(await db.get_one(f"{_USER_WITH_TENANT} WHERE u.email = ?", (email,)))


async def get_user(db: DatabaseAdapter, user_id: int) -> Optional[Row]:
    return _user(await db.get_one(f"{_USER_WITH_TENANT} WHERE u.id = ?", (user_id,)))


async def create_user(
    db: DatabaseAdapter,
    *,
    email: str,
    password_hash: str,
    first_name: str,
    last_name: str,
    role: str,
    tenant_id: int,
    is_verified: bool = False,
) -> int:
    result = await db.execute(
        "INSERT INTO users (email, password_hash, first_name, last_name, role, tenant_id, is_verified) "
        "VALUES (?, ?, ?, ?, ?, ?, ?) RETURNING id",
        (email, password_hash, first_name, last_name, role, tenant_id, is_verified),
    )
    return int(result.last_insert_id)


async def mark_verified(db: DatabaseAdapter, user_id: int) -> None:
    await db.execute(
        "UPDATE users SET is_verified = ?, updated_at = datetime('now') WHERE id = ?",
        (True, user_id),
    )


async def update_password(db: DatabaseAdapter, user_id: int, password_hash: str) -> None:
    await db.execute(
        "UPDATE users SET password_hash = ?, updated_at = datetime('now') WHERE id = ?",
        (password_hash, user_id),
    )


async def get_member_by_email(db: DatabaseAdapter, *, tenant_id: int, email: str) -> Optional[Row]:
    return _user(
        await db.get_one(
            f"{_USER_WITH_TENANT} WHERE u.tenant_id = ? AND u.email = ?",
            (tenant_id, email),
        )
    )


async def list_members_by_ids(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    user_ids: Sequence[int],
) -> list[Row]:
    """Members of the tenant among user_ids; ids from other tenants are dropped."""
    ids = list(dict.fromkeys(int(i) for i in user_ids))
    if not ids:
        return []
    placeholders = ", ".join("?" for _ in ids)
    return await db.get_many(
        f"SELECT id, email, first_name, last_name FROM users "
        f"WHERE tenant_id = ? AND id IN ({placeholders}) ORDER BY id",
        (tenant_id, *ids),
    )
