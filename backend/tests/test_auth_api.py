from __future__ import annotations

import pytest

from app.core.roles import TokenType

PASSWORD = "Sup3rSecret!"


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def invite(client, admin_token: str, slug: str, email: str, role: str = "member"):
    resp = await client.post(
        f"/api/v1/tenants/{slug}/invite",
        json={"email": email, "first_name": "Ivy", "last_name": "Invitee", "role": role},
        headers=auth_headers(admin_token),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def invitation_token(db, email: str) -> str:
    row = await db.get_one("SELECT token FROM user_invitations WHERE email = ?", (email,))
    return row["token"]


async def user_token(db, email: str, token_type: TokenType) -> str:
    row = await db.get_one(
        "SELECT t.token FROM user_tokens t JOIN users u ON t.user_id = u.id WHERE u.email = ? AND t.type = ?",
        (email, token_type.value),
    )
    return row["token"] if row else None


# =========================================================
# LOGIN
# =========================================================
@pytest.mark.asyncio
async def test_login_returns_session_with_tenant(client, create_tenant):
    await create_tenant()

    resp = await client.post("/api/v1/auth/login", json={"email": "ADMIN@acme.com ", "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["token"]
    assert body["user"]["email"] == "admin@acme.com"
    assert body["user"]["role"] == "admin"
    assert body["user"]["tenant"]["slug"] == "acme-corp"
    assert body["user"]["tenant"]["subscription_plan"] == "free"

    me = await client.get("/api/v1/auth/me", headers=auth_headers(body["token"]))
    assert me.status_code == 200
    assert me.json()["user"]["id"] == body["user"]["id"]


@pytest.mark.asyncio
async def test_login_bad_password_reports_remaining(client, create_tenant, db):
    await create_tenant()

    resp = await client.post("/api/v1/auth/login", json={"email": "admin@acme.com", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == {"message": "Invalid credentials", "remaining": 4}

    resp = await client.post("/api/v1/auth/login", json={"email": "nobody@acme.com", "password": "nope"})
    assert resp.status_code == 401

    rows = await db.get_many("SELECT email, success FROM login_attempts ORDER BY id")
    assert [r["email"] for r in rows] == ["admin@acme.com", "nobody@acme.com"]


@pytest.mark.asyncio
async def test_login_is_throttled_after_five_failures(client, create_tenant):
    await create_tenant()

    for _ in range(5):
        resp = await client.post("/api/v1/auth/login", json={"email": "admin@acme.com", "password": "nope"})
        assert resp.status_code == 401

    # even the right password is refused while blocked
    resp = await client.post("/api/v1/auth/login", json={"email": "admin@acme.com", "password": PASSWORD})
    assert resp.status_code == 429
    assert "reset_at" in resp.json()["detail"]
    assert int(resp.headers["Retry-After"]) > 0


@pytest.mark.asyncio
async def test_login_missing_fields_is_400(client):
    resp = await client.post("/api/v1/auth/login", json={"email": "admin@acme.com"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_me_requires_valid_session(client):
    assert (await client.get("/api/v1/auth/me")).status_code == 401
    assert (await client.get("/api/v1/auth/me", headers=auth_headers("garbage"))).status_code == 401


# =========================================================
# REGISTER + VERIFY EMAIL
# =========================================================
@pytest.mark.asyncio
async def test_register_creates_unverified_member(client, create_tenant, db):
    await create_tenant()

    resp = await client.post(
        "/api/v1/auth/register",
        json={
            "email": "mia@acme.com",
            "password": PASSWORD,
            "first_name": "Mia",
            "last_name": "Member",
            "tenant_slug": "Acme Corp",
        },
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["email_sent"] is True
    assert body["user"]["role"] == "member"
    assert body["user"]["is_verified"] is False
    assert body["user"]["tenant"]["slug"] == "acme-corp"

    token = await user_token(db, "mia@acme.com", TokenType.EMAIL_VERIFICATION)
    assert token

    verified = await client.post("/api/v1/auth/verify-email", json={"token": token})
    assert verified.status_code == 200, verified.text
    assert verified.json()["user"]["is_verified"] is True

    # consumed
    again = await client.post("/api/v1/auth/verify-email", json={"token": token})
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_register_errors(client, create_tenant):
    await create_tenant()
    base = {"password": PASSWORD, "first_name": "Mia", "last_name": "Member"}

    resp = await client.post(
        "/api/v1/auth/register",
        json={**base, "email": "mia@acme.com", "tenant_slug": "no-such-co"},
    )
    assert resp.status_code == 404

    resp = await client.post(
        "/api/v1/auth/register",
        json={**base, "email": "admin@acme.com", "tenant_slug": "acme-corp"},
    )
    assert resp.status_code == 409

    resp = await client.post(
        "/api/v1/auth/register",
        json={**base, "password": "short", "email": "mia@acme.com", "tenant_slug": "acme-corp"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_verify_email_rejects_wrong_token_type(client, create_tenant):
    created = await create_tenant()
    resp = await client.post("/api/v1/auth/verify-email", json={"token": created["token"]})
    assert resp.status_code == 400


# =========================================================
# INVITATIONS
# =========================================================
@pytest.mark.asyncio
async def test_invitation_verify_and_accept_once(client, create_tenant, db):
    created = await create_tenant()
    await invite(client, created["token"], "acme-corp", "ivy@acme.com", role="admin")
    token = await invitation_token(db, "ivy@acme.com")

    details = await client.get("/api/v1/auth/verify-invitation", params={"token": token})
    assert details.status_code == 200, details.text
    invitation = details.json()["invitation"]
    assert invitation["company_name"] == "Acme Corp"
    assert invitation["email"] == "ivy@acme.com"
    assert invitation["role"] == "admin"

    accepted = await client.post("/api/v1/auth/accept-invitation", json={"token": token, "password": PASSWORD})
    assert accepted.status_code == 201, accepted.text
    body = accepted.json()
    assert body["user"]["role"] == "admin"
    assert body["user"]["is_verified"] is True
    assert body["tenant"]["slug"] == "acme-corp"
    assert body["email_sent"] is True

    row = await db.get_one("SELECT accepted_at, accepted_by FROM user_invitations WHERE email = ?", ("ivy@acme.com",))
    assert row["accepted_at"] is not None
    assert row["accepted_by"] == body["user"]["id"]

    second = await client.post("/api/v1/auth/accept-invitation", json={"token": token, "password": PASSWORD})
    assert second.status_code == 404

    again = await client.get("/api/v1/auth/verify-invitation", params={"token": token})
    assert again.status_code == 404

    login = await client.post("/api/v1/auth/login", json={"email": "ivy@acme.com", "password": PASSWORD})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_invitation_bad_tokens(client, create_tenant):
    created = await create_tenant()

    resp = await client.get("/api/v1/auth/verify-invitation", params={"token": "not-a-token"})
    assert resp.status_code == 400

    # a session token is signed correctly but has the wrong type
    resp = await client.post(
        "/api/v1/auth/accept-invitation",
        json={"token": created["token"], "password": PASSWORD},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_invitation_for_existing_user_conflicts(client, create_tenant, db):
    created = await create_tenant()
    await create_tenant(company_name="Globex", admin_email="hank@globex.com")
    await invite(client, created["token"], "acme-corp", "hank@globex.com")
    token = await invitation_token(db, "hank@globex.com")

    resp = await client.get("/api/v1/auth/verify-invitation", params={"token": token})
    assert resp.status_code == 409


# =========================================================
# PASSWORD RESET
# =========================================================
@pytest.mark.asyncio
async def test_forgot_password_does_not_reveal_accounts(client, create_tenant, db):
    await create_tenant()

    unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "ghost@acme.com"})
    known = await client.post("/api/v1/auth/forgot-password", json={"email": "admin@acme.com"})
    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()

    assert await user_token(db, "admin@acme.com", TokenType.PASSWORD_RESET)


@pytest.mark.asyncio
async def test_reset_password_is_single_use(client, create_tenant, db):
    await create_tenant()
    await client.post("/api/v1/auth/forgot-password", json={"email": "admin@acme.com"})
    token = await user_token(db, "admin@acme.com", TokenType.PASSWORD_RESET)

    resp = await client.post(
        "/api/v1/auth/reset-password",
        json={"token": token, "new_password": "An0therSecret!"},
    )
    assert resp.status_code == 200, resp.text

    old = await client.post("/api/v1/auth/login", json={"email": "admin@acme.com", "password": PASSWORD})
    assert old.status_code == 401
    new = await client.post("/api/v1/auth/login", json={"email": "admin@acme.com", "password": "An0therSecret!"})
    assert new.status_code == 200

    reused = await client.post(
        "/api/v1/auth/reset-password",
        json={"token": token, "new_password": "Y3tAnotherOne!"},
    )
    assert reused.status_code == 400
    assert await user_token(db, "admin@acme.com", TokenType.PASSWORD_RESET) is None


@pytest.mark.asyncio
async def test_reset_password_validation(client):
    resp = await client.post("/api/v1/auth/reset-password", json={"token": "x", "new_password": "short"})
    assert resp.status_code == 400

    resp = await client.post("/api/v1/auth/reset-password", json={"token": "x", "new_password": "LongEnough1!"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_pasted_tokens_with_quotes_or_bearer_prefix_are_accepted(client, create_tenant, db):
    created = await create_tenant()
    await invite(client, created["token"], "acme-corp", "ivy@acme.com")
    token = await invitation_token(db, "ivy@acme.com")

    details = await client.get("/api/v1/auth/verify-invitation", params={"token": f'"{token}"'})
    assert details.status_code == 200, details.text

    accepted = await client.post(
        "/api/v1/auth/accept-invitation",
        json={"token": f"Bearer {token}", "password": PASSWORD},
    )
    assert accepted.status_code == 201, accepted.text

    await client.post("/api/v1/auth/forgot-password", json={"email": "admin@acme.com"})
    reset_token = await user_token(db, "admin@acme.com", TokenType.PASSWORD_RESET)
    resp = await client.post(
        "/api/v1/auth/reset-password",
        json={"token": f"  '{reset_token}'\n", "new_password": "An0therSecret!"},
    )
    assert resp.status_code == 200, resp.text
