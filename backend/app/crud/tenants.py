# app/crud/tenants.py
from __future__ import annotations

from typing import Optional

from app.crud.rows import normalize_row
from app.db.adapter import DatabaseAdapter, Row

_TENANT_COLUMNS = "id, name, slug, subscription_plan, theme_color, logo, created_at, updated_at"


async def get_tenant(db: DatabaseAdapter, *, tenant_id: int) -> Optional[Row]:
    row = await db.get_one(f"SELECT {_TENANT_COLUMNS} FROM tenants WHERE id = ?", (tenant_id,))
    return normalize_row(row)


async def get_tenant_by_slug(db: DatabaseAdapter, slug: str) -> Optional[Row]:
    row = await db.get_one(f"SELECT {_TENANT_COLUMNS} FROM tenants WHERE slug = ?", (slug,))
    return normalize_row(row)


async def create_tenant(
    db: DatabaseAdapter,
    *,
    name: str,
    slug: str,
    theme_color: str,
    logo: Optional[str] = None,
    subscription_plan: str = "free",
) -> int:
    result = await db.execute(
        "INSERT INTO tenants (name, slug, subscription_plan, theme_color, logo) "
        "VALUES (?, ?, ?, ?, ?) RETURNING id",
        (name, slug, subscription_plan, theme_color, logo),
    )
    return int(result.last_insert_id)


async def update_tenant_settings(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    name: Optional[str] = None,
    theme_color: Optional[str] = None,
    logo: Optional[str] = None,
) -> None:
    """Fields left as None keep their stored value."""
    await db.execute(
        "UPDATE tenants SET name = COALESCE(?, name), theme_color = COALESCE(?, theme_color), "
        "logo = COALESCE(?, logo), updated_at = datetime('now') WHERE id = ?",
        (name, theme_color, logo, tenant_id),
    )


async def set_subscription_plan(db: DatabaseAdapter, *, tenant_id: int, plan: str) -> int:
    result = await db.execute(
        "UPDATE tenants SET subscription_plan = ?, updated_at = datetime('now') WHERE id = ?",
        (plan, tenant_id),
    )
    return result.changes
