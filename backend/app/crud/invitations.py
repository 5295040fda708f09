# app/crud/invitations.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from app.crud.rows import normalize_row
from app.db.adapter import DatabaseAdapter, Row

_INVITATION_DATES = ("created_at", "expires_at", "accepted_at")


def _invitation(row: Optional[Row]) -> Optional[Row]:
    return normalize_row(row, datetimes=_INVITATION_DATES)


async def create_invitation(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    email: str,
    first_name: str,
    last_name: str,
    role: str,
    token: str,
    expires_at: datetime,
    invited_by: int,
) -> int:
    result = await db.execute(
        "INSERT INTO user_invitations "
        "(email, first_name, last_name, role, tenant_id, token, expires_at, invited_by) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?) RETURNING id",
        (email, first_name, last_name, role, tenant_id, token, expires_at, invited_by),
    )
    return int(result.last_insert_id)


async def get_pending_invitation(db: DatabaseAdapter, *, tenant_id: int, email: str) -> Optional[Row]:
    return _invitation(
        await db.get_one(
            "SELECT * FROM user_invitations "
            "WHERE tenant_id = ? AND email = ? AND accepted_at IS NULL AND expires_at > datetime('now')",
            (tenant_id, email),
        )
    )


async def list_pending_invitations(db: DatabaseAdapter, *, tenant_id: int) -> list[Row]:
    rows = await db.get_many(
        "SELECT ui.id, ui.email, ui.first_name, ui.last_name, ui.role, ui.expires_at, ui.created_at, "
        "u.email AS invited_by_email "
        "FROM user_invitations ui JOIN users u ON ui.invited_by = u.id "
        "WHERE ui.tenant_id = ? AND ui.accepted_at IS NULL AND ui.expires_at > datetime('now') "
        "ORDER BY ui.created_at DESC, ui.id DESC",
        (tenant_id,),
    )
    return [_invitation(r) for r in rows]


async def get_open_invitation_by_token(db: DatabaseAdapter, token: str) -> Optional[Row]:
    """
    Unaccepted, unexpired invitation for a token, joined with its tenant.
    The token is the only handle a prospective user has, so this lookup is
    not tenant-scoped; the tenant comes from the row.
    """
    return _invitation(
        await db.get_one(
            "SELECT ui.*, t.name AS company_name, t.slug AS tenant_slug, "
            "t.subscription_plan, t.theme_color, t.logo "
            "FROM user_invitations ui JOIN tenants t ON ui.tenant_id = t.id "
            "WHERE ui.token = ? AND ui.accepted_at IS NULL AND ui.expires_at > datetime('now')",
            (token,),
        )
    )


async def mark_accepted(
    db: DatabaseAdapter,
    *,
    tenant_id: int,
    invitation_id: int,
    user_id: int,
    accepted_at: datetime,
) -> int:
    result = await db.execute(
        "UPDATE user_invitations SET accepted_at = ?, accepted_by = ? "
        "WHERE id = ? AND tenant_id = ? AND accepted_at IS NULL",
        (accepted_at, user_id, invitation_id, tenant_id),
    )
    return result.changes
