# backend/app/schemas/tenant.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.schemas.common import normalize_email, required_text

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
DEFAULT_THEME_COLOR = "#3B82F6"


class TenantSummary(BaseModel):
    id: int
    slug: str
    name: str
    subscription_plan: str
    theme_color: Optional[str] = None
    logo: Optional[str] = None


class TenantOut(TenantSummary):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TenantCreate(BaseModel):
    company_name: str = Field(min_length=1, max_length=255)
    admin_email: EmailStr
    admin_password: str = Field(min_length=8, max_length=128)
    admin_first_name: str = Field(min_length=1, max_length=100)
    admin_last_name: str = Field(min_length=1, max_length=100)
    theme_color: str = Field(default=DEFAULT_THEME_COLOR, pattern=HEX_COLOR_PATTERN)
    logo: Optional[str] = None

    @field_validator("company_name", "admin_first_name", "admin_last_name")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        return required_text(v)

    @field_validator("admin_email")
    @classmethod
    def validate_admin_email(cls, v: str) -> str:
        return normalize_email(v)


class TenantSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # omitted (or null) fields keep their stored value
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    theme_color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    logo: Optional[str] = None


class TenantListResponse(BaseModel):
    tenants: List[TenantOut]


class TenantEnvelope(BaseModel):
    tenant: TenantOut


class PlanChangeResponse(BaseModel):
    message: str
    tenant: TenantOut
