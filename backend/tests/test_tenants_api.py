from __future__ import annotations

import pytest


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_create_tenant_with_first_admin(client, create_tenant):
    body = await create_tenant(company_name="Acme Corp!", logo="https://cdn.acme.com/logo.png")

    assert body["tenant"]["slug"] == "acme-corp"
    assert body["tenant"]["name"] == "Acme Corp!"
    assert body["tenant"]["subscription_plan"] == "free"
    assert body["tenant"]["theme_color"] == "#3B82F6"
    assert body["tenant"]["logo"] == "https://cdn.acme.com/logo.png"
    assert body["user"]["role"] == "admin"
    assert body["user"]["is_verified"] is True

    me = await client.get("/api/v1/auth/me", headers=auth_headers(body["token"]))
    assert me.status_code == 200
    assert me.json()["user"]["tenant"]["id"] == body["tenant"]["id"]


@pytest.mark.asyncio
async def test_create_tenant_conflicts(client, create_tenant):
    await create_tenant()

    payload = {
        "company_name": "acme corp",
        "admin_email": "someone@else.com",
        "admin_password": "Sup3rSecret!",
        "admin_first_name": "So",
        "admin_last_name": "Meone",
    }
    resp = await client.post("/api/v1/tenants", json=payload)
    assert resp.status_code == 409

    resp = await client.post(
        "/api/v1/tenants",
        json={**payload, "company_name": "Globex", "admin_email": "admin@acme.com"},
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_create_tenant_validation(client):
    base = {
        "company_name": "Acme",
        "admin_email": "admin@acme.com",
        "admin_password": "Sup3rSecret!",
        "admin_first_name": "Ada",
        "admin_last_name": "Admin",
    }
    for override in (
        {"admin_password": "short"},
        {"admin_email": "not-an-email"},
        {"company_name": ""},
        {"theme_color": "blue"},
        {"company_name": "!!!"},
    ):
        resp = await client.post("/api/v1/tenants", json={**base, **override})
        assert resp.status_code == 400, override


@pytest.mark.asyncio
async def test_list_tenants_returns_callers_tenant(client, create_tenant):
    acme = await create_tenant()
    await create_tenant(company_name="Globex", admin_email="hank@globex.com")

    resp = await client.get("/api/v1/tenants", headers=auth_headers(acme["token"]))
    assert resp.status_code == 200
    assert [t["slug"] for t in resp.json()["tenants"]] == ["acme-corp"]


@pytest.mark.asyncio
async def test_settings_partial_update(client, create_tenant):
    acme = await create_tenant()
    headers = auth_headers(acme["token"])

    resp = await client.put(
        "/api/v1/tenants/acme-corp/settings",
        json={"theme_color": "#112233"},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    tenant = resp.json()["tenant"]
    assert tenant["theme_color"] == "#112233"
    assert tenant["name"] == "Acme Corp"

    resp = await client.get("/api/v1/tenants/acme-corp/settings", headers=headers)
    assert resp.json()["tenant"]["theme_color"] == "#112233"

    resp = await client.put("/api/v1/tenants/acme-corp/settings", json={}, headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_admin_endpoints_reject_foreign_slug_and_members(client, create_tenant, register_member):
    acme = await create_tenant()
    await create_tenant(company_name="Globex", admin_email="hank@globex.com")
    _member, member_token = await register_member("acme-corp", "mia@acme.com")

    foreign = auth_headers(acme["token"])
    for method, path in (
        ("GET", "/api/v1/tenants/globex/settings"),
        ("POST", "/api/v1/tenants/globex/upgrade"),
        ("GET", "/api/v1/tenants/globex/invite"),
    ):
        resp = await client.request(method, path, headers=foreign)
        assert resp.status_code == 403, path

    member = auth_headers(member_token)
    assert (await client.get("/api/v1/tenants/acme-corp/settings", headers=member)).status_code == 403
    assert (await client.post("/api/v1/tenants/acme-corp/upgrade", headers=member)).status_code == 403
    resp = await client.post(
        "/api/v1/tenants/acme-corp/invite",
        json={"email": "x@acme.com", "first_name": "X", "last_name": "Y"},
        headers=member,
    )
    assert resp.status_code == 403

    assert (await client.get("/api/v1/tenants/acme-corp/settings")).status_code == 401


@pytest.mark.asyncio
async def test_upgrade_and_downgrade_are_idempotent(client, create_tenant):
    acme = await create_tenant()
    headers = auth_headers(acme["token"])

    first = await client.post("/api/v1/tenants/acme-corp/upgrade", headers=headers)
    second = await client.post("/api/v1/tenants/acme-corp/upgrade", headers=headers)
    assert first.status_code == second.status_code == 200
    assert first.json()["tenant"]["subscription_plan"] == "pro"
    assert second.json()["tenant"]["subscription_plan"] == "pro"
    assert "already" in second.json()["message"]

    down = await client.post("/api/v1/tenants/acme-corp/downgrade", headers=headers)
    assert down.status_code == 200
    assert down.json()["tenant"]["subscription_plan"] == "free"


@pytest.mark.asyncio
async def test_invite_and_list_pending(client, create_tenant, register_member):
    acme = await create_tenant()
    headers = auth_headers(acme["token"])
    await register_member("acme-corp", "mia@acme.com")

    resp = await client.post(
        "/api/v1/tenants/acme-corp/invite",
        json={"email": "Ivy@Acme.com", "first_name": "Ivy", "last_name": "Invitee"},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["email_sent"] is True
    assert body["invitation_link"] is None
    assert body["invitation"]["email"] == "ivy@acme.com"
    assert body["invitation"]["role"] == "member"

    dup = await client.post(
        "/api/v1/tenants/acme-corp/invite",
        json={"email": "ivy@acme.com", "first_name": "Ivy", "last_name": "Invitee"},
        headers=headers,
    )
    assert dup.status_code == 409

    member = await client.post(
        "/api/v1/tenants/acme-corp/invite",
        json={"email": "mia@acme.com", "first_name": "Mia", "last_name": "Member"},
        headers=headers,
    )
    assert member.status_code == 409

    bad_role = await client.post(
        "/api/v1/tenants/acme-corp/invite",
        json={"email": "z@acme.com", "first_name": "Z", "last_name": "Z", "role": "owner"},
        headers=headers,
    )
    assert bad_role.status_code == 400

    listing = await client.get("/api/v1/tenants/acme-corp/invite", headers=headers)
    assert listing.status_code == 200
    invitations = listing.json()["invitations"]
    assert [i["email"] for i in invitations] == ["ivy@acme.com"]
    assert invitations[0]["invited_by_email"] == "admin@acme.com"


@pytest.mark.asyncio
async def test_invite_returns_link_when_email_fails(client, create_tenant, monkeypatch):
    from app.api.v1 import tenant_invitations

    async def _fail(**_kwargs):
        return False

    monkeypatch.setattr(tenant_invitations.email_service, "send_invitation_email", _fail)
    acme = await create_tenant()

    resp = await client.post(
        "/api/v1/tenants/acme-corp/invite",
        json={"email": "ivy@acme.com", "first_name": "Ivy", "last_name": "Invitee"},
        headers=auth_headers(acme["token"]),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["email_sent"] is False
    assert "accept-invitation?token=" in body["invitation_link"]
