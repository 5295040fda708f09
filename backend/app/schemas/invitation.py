# backend/app/schemas/invitation.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.roles import ALLOWED_ROLES, UserRole
from app.schemas.common import normalize_email, required_text


class InvitationCreate(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: str = Field(default=UserRole.MEMBER.value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        return required_text(v)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        role = (v or "").strip().lower()
        if role not in ALLOWED_ROLES:
            raise ValueError(f"role must be one of: {', '.join(sorted(ALLOWED_ROLES))}")
        return role


class InvitationOut(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    expires_at: datetime
    created_at: Optional[datetime] = None
    invited_by_email: Optional[str] = None


class InvitationCreateResponse(BaseModel):
    message: str
    invitation: InvitationOut
    email_sent: bool
    # only present when the e-mail could not be sent, so an admin can pass it on
    invitation_link: Optional[str] = None


class InvitationListResponse(BaseModel):
    invitations: List[InvitationOut]
