# backend/app/schemas/auth.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.common import normalize_email, required_text
from app.schemas.tenant import TenantOut, TenantSummary

PASSWORD_MIN_LENGTH = 8


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class UserOut(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    is_verified: bool
    tenant: TenantSummary


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserOut


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    tenant_slug: str = Field(min_length=1, max_length=100)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("first_name", "last_name", "tenant_slug")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        return required_text(v)


class RegisterResponse(BaseModel):
    message: str
    user: UserOut
    email_sent: bool


class InvitationDetails(BaseModel):
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    company_name: str
    tenant_slug: str
    expires_at: datetime


class InvitationDetailsResponse(BaseModel):
    invitation: InvitationDetails


class AcceptInvitationRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=128)


class AcceptInvitationResponse(BaseModel):
    message: str
    token: str
    user: UserOut
    tenant: TenantOut
    email_sent: bool


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=128)


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1)


class UserResponse(BaseModel):
    message: Optional[str] = None
    user: UserOut


class TenantSignupResponse(BaseModel):
    message: str
    token: str
    tenant: TenantOut
    user: UserOut
