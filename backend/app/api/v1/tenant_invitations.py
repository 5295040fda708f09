from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps.tenant import get_admin_tenant
from app.api.v1.auth import get_current_user
from app.core.config import settings
from app.core.roles import TokenType
from app.core.security import create_purpose_token
from app.crud import invitations as invitations_crud
from app.crud import users as users_crud
from app.db.adapter import DatabaseAdapter
from app.db.session import get_db
from app.schemas.invitation import (
    InvitationCreate,
    InvitationCreateResponse,
    InvitationListResponse,
    InvitationOut,
)
from app.services import email as email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants", tags=["tenant-invitations"])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =========================================================
# CREATE + LIST (admin of the tenant named in the path)
# =========================================================
@router.post(
    "/{slug}/invite",
    response_model=InvitationCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invitation(
    payload: InvitationCreate,
    db: DatabaseAdapter = Depends(get_db),
    tenant: dict[str, Any] = Depends(get_admin_tenant),
    inviter: dict[str, Any] = Depends(get_current_user),
) -> InvitationCreateResponse:
    """
    Invite someone into the tenant with a signed, 7-day token.
    The link is returned in the response only when the e-mail could not be sent.
    """
    email = payload.email

    if await users_crud.get_member_by_email(db, tenant_id=tenant["id"], email=email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already a member of this tenant",
        )

    if await invitations_crud.get_pending_invitation(db, tenant_id=tenant["id"], email=email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A pending invitation already exists for this email",
        )

    expires_delta = timedelta(days=settings.INVITATION_EXPIRE_DAYS)
    token = create_purpose_token(
        TokenType.INVITATION,
        {"email": email, "tenant_id": tenant["id"], "role": payload.role},
        expires_delta,
    )
    invitation_id = await invitations_crud.create_invitation(
        db,
        tenant_id=tenant["id"],
        email=email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        token=token,
        expires_at=_utcnow() + expires_delta,
        invited_by=inviter["id"],
    )

    link = email_service.app_link("accept-invitation", token)
    email_sent = await email_service.send_invitation_email(
        to=email,
        first_name=payload.first_name,
        company_name=tenant["name"],
        invitation_link=link,
        invited_by=f"{inviter['first_name']} {inviter['last_name']}".strip() or inviter["email"],
    )

    invitation = await invitations_crud.get_pending_invitation(db, tenant_id=tenant["id"], email=email)
    logger.info(
        "tenant.invitation_created",
        extra={"tenant_id": tenant["id"], "invitation_id": invitation_id, "email_sent": email_sent},
    )
    return InvitationCreateResponse(
        message="Invitation sent successfully" if email_sent else "Invitation created; e-mail could not be sent",
        invitation=InvitationOut(**invitation, invited_by_email=inviter["email"]),
        email_sent=email_sent,
        invitation_link=None if email_sent else link,
    )


@router.get("/{slug}/invite", response_model=InvitationListResponse)
async def list_invitations(
    db: DatabaseAdapter = Depends(get_db),
    tenant: dict[str, Any] = Depends(get_admin_tenant),
) -> InvitationListResponse:
    """
    Pending (unaccepted, unexpired) invitations of the tenant, newest first.
    """
    rows = await invitations_crud.list_pending_invitations(db, tenant_id=tenant["id"])
    return InvitationListResponse(invitations=[InvitationOut(**r) for r in rows])
