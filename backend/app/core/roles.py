# app/core/roles.py

import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"    # manages tenant settings, plan and invitations
    MEMBER = "member"  # works with notes only


class TokenType(str, enum.Enum):
    SESSION = "session"
    INVITATION = "invitation"
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


ALLOWED_ROLES = {r.value for r in UserRole}
