from __future__ import annotations

import os
import tempfile

# Settings are read at import time; pin a throwaway environment first.
_TMP = tempfile.mkdtemp(prefix="notes-tests-")
os.environ["ENVIRONMENT"] = "testing"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SQLITE_PATH"] = os.path.join(_TMP, "default.sqlite")
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""
os.environ["LOG_FORMAT"] = "plain"
os.environ.pop("DATABASE_URL", None)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.db.session import get_db  # noqa: E402
from app.db.sqlite import SQLiteAdapter  # noqa: E402

DEFAULT_PASSWORD = "Sup3rSecret!"


# ---------------------------------------------------------
# Database: one fresh SQLite file per test
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(tmp_path):
    adapter = SQLiteAdapter(str(tmp_path / "notes.sqlite"))
    await adapter.init_schema()
    yield adapter
    await adapter.close()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(db):
    from app.main import app as fastapi_app

    async def _override_get_db():
        return db

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------
def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def create_tenant(client):
    """POST /tenants and return the response body (token, tenant, user)."""

    async def _create(
        company_name: str = "Acme Corp",
        admin_email: str = "admin@acme.com",
        password: str = DEFAULT_PASSWORD,
        **extra,
    ) -> dict:
        resp = await client.post(
            "/api/v1/tenants",
            json={
                "company_name": company_name,
                "admin_email": admin_email,
                "admin_password": password,
                "admin_first_name": "Ada",
                "admin_last_name": "Admin",
                **extra,
            },
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture()
def register_member(client):
    """POST /auth/register into a tenant, then log in; returns (user, token)."""

    async def _register(tenant_slug: str, email: str, password: str = DEFAULT_PASSWORD):
        resp = await client.post(
            "/api/v1/auth/register",
            json={
                "email": email,
                "password": password,
                "first_name": "Mia",
                "last_name": "Member",
                "tenant_slug": tenant_slug,
            },
        )
        assert resp.status_code == 201, resp.text
        login = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        return resp.json()["user"], login.json()["token"]

    return _register


@pytest.fixture()
def create_note(client):
    async def _create(token: str, title: str = "Groceries", content: str = "milk, eggs", **extra) -> dict:
        resp = await client.post(
            "/api/v1/notes",
            json={"title": title, "content": content, **extra},
            headers=auth_headers(token),
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["note"]

    return _create
