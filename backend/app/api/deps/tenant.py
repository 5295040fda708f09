from typing import Any

from fastapi import Depends, HTTPException, status

from app.api.v1.auth import get_current_user
from app.core.roles import UserRole
from app.crud import tenants as tenants_crud
from app.db.adapter import DatabaseAdapter
from app.db.session import get_db


async def require_admin(user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    if user["role"] != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return user


async def get_admin_tenant(
    slug: str,
    db: DatabaseAdapter = Depends(get_db),
    user: dict[str, Any] = Depends(require_admin),
) -> dict[str, Any]:
    """
    Resolve the tenant named in the path for an admin of that same tenant.
    A slug belonging to any other tenant is forbidden, not merely absent.
    """
    if slug != user["tenant_slug"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only manage your own tenant",
        )

    tenant = await tenants_crud.get_tenant(db, tenant_id=user["tenant_id"])
    if not tenant:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant not found",
        )
    return tenant
