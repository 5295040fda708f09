from __future__ import annotations

import os
import uuid

import pytest
import pytest_asyncio

from app.core.config import _normalize_asyncpg_dsn
from app.db.postgres import PostgresAdapter

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = pytest.mark.skipif(
    not TEST_DATABASE_URL,
    reason="TEST_DATABASE_URL is not set",
)


@pytest_asyncio.fixture()
async def pg():
    adapter = PostgresAdapter(_normalize_asyncpg_dsn(TEST_DATABASE_URL))
    await adapter.init_schema()
    yield adapter
    await adapter.close()


@pytest.mark.asyncio
async def test_insert_then_get_one_round_trip(pg):
    slug = f"pg-{uuid.uuid4().hex[:12]}"
    result = await pg.execute(
        "INSERT INTO tenants (name, slug) VALUES (?, ?) RETURNING id",
        ("Postgres Co", slug),
    )
    try:
        assert result.changes == 1
        assert isinstance(result.last_insert_id, int)

        row = await pg.get_one("SELECT * FROM tenants WHERE id = ?", (result.last_insert_id,))
        assert row["slug"] == slug
        assert row["subscription_plan"] == "free"
        assert row["theme_color"] == "#3B82F6"

        updated = await pg.execute(
            "UPDATE tenants SET subscription_plan = ?, updated_at = datetime('now') WHERE id = ?",
            ("pro", result.last_insert_id),
        )
        assert updated.changes == 1
    finally:
        await pg.execute("DELETE FROM tenants WHERE slug = ?", (slug,))

    assert await pg.get_one("SELECT id FROM tenants WHERE slug = ?", (slug,)) is None


@pytest.mark.asyncio
async def test_init_schema_is_idempotent(pg):
    await pg.init_schema()
    rows = await pg.get_many(
        "SELECT table_name FROM information_schema.tables WHERE table_schema = current_schema()"
    )
    assert {"tenants", "users", "notes", "login_attempts"} <= {r["table_name"] for r in rows}
