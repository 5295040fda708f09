from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import HTTPException, status
from fastapi.security import HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.roles import TokenType

bearer_scheme = HTTPBearer(auto_error=False)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


class TokenError(Exception):
    """Signed token is malformed, expired, or of the wrong type."""

    def __init__(self, message: str, *, expired: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.expired = expired


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_token(token: str) -> str:
    """
    Make token decoding resilient to common copy-paste issues:
    - Leading/trailing whitespace/newlines
    - Surrounding quotes
    - Accidentally including the 'Bearer ' prefix in the token field
    """
    if token is None:
        return ""

    t = token.strip()

    if (t.startswith('"') and t.endswith('"')) or (t.startswith("'") and t.endswith("'")):
        t = t[1:-1].strip()

    if t.lower().startswith("bearer "):
        t = t[7:].strip()

    return t


# ---------------------------------------------------------
# Passwords
# ---------------------------------------------------------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(plain_password, password_hash)
    except ValueError:
        # unrecognized / corrupted hash
        return False


# ---------------------------------------------------------
# Tokens
# ---------------------------------------------------------
def _encode(claims: dict[str, Any], expires_delta: timedelta) -> str:
    now = _utcnow()
    to_encode = dict(claims)
    # numeric timestamps for maximum compatibility
    to_encode["iat"] = int(now.timestamp())
    to_encode["exp"] = int((now + expires_delta).timestamp())
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_access_token(
    *,
    user_id: int,
    email: str,
    role: str,
    tenant_id: int,
    tenant_slug: str,
    expires_minutes: Optional[int] = None,
) -> str:
    return _encode(
        {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "tenant_id": tenant_id,
            "tenant_slug": tenant_slug,
            "type": TokenType.SESSION.value,
        },
        timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_purpose_token(token_type: TokenType, claims: dict[str, Any], expires_delta: timedelta) -> str:
    """
    Sign a single-purpose token (invitation, password reset, email verification).
    The `type` claim is always set from token_type, never from claims.
    """
    payload = {k: v for k, v in claims.items() if k != "type"}
    payload["type"] = token_type.value
    # unique per issue; the token column is unique and claims alone can repeat within a second
    payload.setdefault("jti", secrets.token_urlsafe(16))
    # jose validates `sub` as a string when present
    if "sub" in payload:
        payload["sub"] = str(payload["sub"])
    return _encode(payload, expires_delta)


def decode_purpose_token(token: str, expected_type: TokenType) -> dict[str, Any]:
    token = normalize_token(token)
    if not token:
        raise TokenError("Token is required")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require_exp": True},
        )
    except ExpiredSignatureError:
        raise TokenError("Token has expired", expired=True)
    except JWTError:
        raise TokenError("Invalid token")

    if payload.get("type") != expected_type.value:
        raise TokenError("Invalid token type")
    return payload


def decode_access_token(token: str) -> dict[str, Any]:
    token = normalize_token(token)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError:
        # Includes expired signature, bad format, bad signature, wrong algorithm, etc.
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if payload.get("type") != TokenType.SESSION.value or not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return payload
