# backend/app/api/v1/tenants.py
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps.tenant import get_admin_tenant
from app.api.v1.auth import get_current_user, session_token_for, user_out
from app.core.plans import PLAN_FREE, PLAN_PRO, normalize_plan
from app.core.roles import UserRole
from app.core.security import hash_password
from app.core.slugs import slugify
from app.crud import tenants as tenants_crud
from app.crud import users as users_crud
from app.db.adapter import DatabaseAdapter
from app.db.session import get_db
from app.schemas.auth import TenantSignupResponse
from app.schemas.tenant import (
    PlanChangeResponse,
    TenantCreate,
    TenantEnvelope,
    TenantListResponse,
    TenantOut,
    TenantSettingsUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants", tags=["tenants"])


# =========================================================
# SIGNUP (public)
# =========================================================
@router.post("", response_model=TenantSignupResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(payload: TenantCreate, db: DatabaseAdapter = Depends(get_db)) -> TenantSignupResponse:
    """
    Create a company on the free plan together with its first admin.
    The admin is verified immediately and receives a session token.
    """
    slug = slugify(payload.company_name)
    if not slug:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Company name must contain at least one letter or digit",
        )

    if await tenants_crud.get_tenant_by_slug(db, slug) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A company with this name already exists")

    if await users_crud.get_user_by_email(db, payload.admin_email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists with this email")

    tenant_id = await tenants_crud.create_tenant(
        db,
        name=payload.company_name,
        slug=slug,
        theme_color=payload.theme_color,
        logo=payload.logo,
        subscription_plan=PLAN_FREE,
    )
    user_id = await users_crud.create_user(
        db,
        email=payload.admin_email,
        password_hash=hash_password(payload.admin_password),
        first_name=payload.admin_first_name,
        last_name=payload.admin_last_name,
        role=UserRole.ADMIN.value,
        tenant_id=tenant_id,
        is_verified=True,
    )

    tenant = await tenants_crud.get_tenant(db, tenant_id=tenant_id)
    user = await users_crud.get_user(db, user_id)
    logger.info("tenant.created", extra={"tenant_id": tenant_id, "slug": slug})
    return TenantSignupResponse(
        message="Company created successfully",
        token=session_token_for(user),
        tenant=TenantOut(**tenant),
        user=user_out(user),
    )


@router.get("", response_model=TenantListResponse)
async def list_my_tenants(
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(get_current_user),
) -> TenantListResponse:
    """A user belongs to exactly one tenant; the list holds that one."""
    tenant = await tenants_crud.get_tenant(db, tenant_id=user["tenant_id"])
    return TenantListResponse(tenants=[TenantOut(**tenant)] if tenant else [])


# =========================================================
# SETTINGS (admin of the same tenant)
# =========================================================
@router.get("/{slug}/settings", response_model=TenantEnvelope)
async def get_tenant_settings(tenant: dict[str, Any] = Depends(get_admin_tenant)) -> TenantEnvelope:
    return TenantEnvelope(tenant=TenantOut(**tenant))


@router.put("/{slug}/settings", response_model=TenantEnvelope)
async def update_tenant_settings(
    payload: TenantSettingsUpdate,
    db: DatabaseAdapter = Depends(get_db),
    tenant: dict[str, Any] = Depends(get_admin_tenant),
) -> TenantEnvelope:
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    await tenants_crud.update_tenant_settings(
        db,
        tenant_id=tenant["id"],
        name=data.get("name"),
        theme_color=data.get("theme_color"),
        logo=data.get("logo"),
    )
    updated = await tenants_crud.get_tenant(db, tenant_id=tenant["id"])
    logger.info("tenant.settings_updated", extra={"tenant_id": tenant["id"], "fields": sorted(data)})
    return TenantEnvelope(tenant=TenantOut(**updated))


# =========================================================
# PLAN
# =========================================================
async def _change_plan(db: DatabaseAdapter, tenant: dict[str, Any], target: str) -> PlanChangeResponse:
    if normalize_plan(tenant["subscription_plan"]) == target:
        return PlanChangeResponse(
            message=f"Tenant is already on the {target} plan",
            tenant=TenantOut(**tenant),
        )

    await tenants_crud.set_subscription_plan(db, tenant_id=tenant["id"], plan=target)
    updated = await tenants_crud.get_tenant(db, tenant_id=tenant["id"])
    logger.info(
        "tenant.plan_changed",
        extra={"tenant_id": tenant["id"], "from_plan": tenant["subscription_plan"], "to_plan": target},
    )
    return PlanChangeResponse(
        message=f"Tenant moved to the {target} plan",
        tenant=TenantOut(**updated),
    )


@router.post("/{slug}/upgrade", response_model=PlanChangeResponse)
async def upgrade_tenant(
    db: DatabaseAdapter = Depends(get_db),
    tenant: dict[str, Any] = Depends(get_admin_tenant),
) -> PlanChangeResponse:
    return await _change_plan(db, tenant, PLAN_PRO)


@router.post("/{slug}/downgrade", response_model=PlanChangeResponse)
async def downgrade_tenant(
    db: DatabaseAdapter = Depends(get_db),
    tenant: dict[str, Any] = Depends(get_admin_tenant),
) -> PlanChangeResponse:
    """Existing notes are kept; the free quota only blocks new ones."""
    return await _change_plan(db, tenant, PLAN_FREE)
