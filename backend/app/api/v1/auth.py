# backend/app/api/v1/auth.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.core.config import settings
from app.core.rate_limiter import LoginRateLimiter, get_client_ip
from app.core.roles import TokenType, UserRole
from app.core.security import (
    TokenError,
    bearer_scheme,
    create_access_token,
    create_purpose_token,
    decode_access_token,
    decode_purpose_token,
    hash_password,
    normalize_token,
    verify_password,
)
from app.core.slugs import slugify
from app.crud import invitations as invitations_crud
from app.crud import tenants as tenants_crud
from app.crud import tokens as tokens_crud
from app.crud import users as users_crud
from app.db.adapter import DatabaseAdapter
from app.db.session import get_db
from app.schemas.auth import (
    AcceptInvitationRequest,
    AcceptInvitationResponse,
    ForgotPasswordRequest,
    InvitationDetails,
    InvitationDetailsResponse,
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenResponse,
    UserOut,
    UserResponse,
    VerifyEmailRequest,
)
from app.schemas.common import MessageResponse
from app.schemas.tenant import TenantOut, TenantSummary
from app.services import email as email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If an account exists for that e-mail, a password reset link has been sent."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _bad_token(exc: TokenError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


def user_out(user: dict[str, Any]) -> UserOut:
    return UserOut(
        id=user["id"],
        email=user["email"],
        first_name=user["first_name"],
        last_name=user["last_name"],
        role=user["role"],
        is_verified=user["is_verified"],
        tenant=TenantSummary(
            id=user["tenant_id"],
            slug=user["tenant_slug"],
            name=user["tenant_name"],
            subscription_plan=user["subscription_plan"],
            theme_color=user.get("theme_color"),
            logo=user.get("logo"),
        ),
    )


def session_token_for(user: dict[str, Any]) -> str:
    return create_access_token(
        user_id=user["id"],
        email=user["email"],
        role=user["role"],
        tenant_id=user["tenant_id"],
        tenant_slug=user["tenant_slug"],
    )


def get_login_rate_limiter(db: DatabaseAdapter = Depends(get_db)) -> LoginRateLimiter:
    return LoginRateLimiter(db)


async def get_current_user(
    credentials=Depends(bearer_scheme),
    db: DatabaseAdapter = Depends(get_db),
) -> dict[str, Any]:
    """
    Dependency for protected endpoints. Returns the user row joined with its tenant.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    payload = decode_access_token(credentials.credentials)

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    user = await users_crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return user


# =========================================================
# LOGIN / REGISTER
# =========================================================
@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    db: DatabaseAdapter = Depends(get_db),
    limiter: LoginRateLimiter = Depends(get_login_rate_limiter),
) -> TokenResponse:
    """
    Body: {"email": "...", "password": "..."}
    Every attempt is recorded after the decision, successful or not.
    """
    email = payload.email
    decision = await limiter.check(email)
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "message": "Too many login attempts. Please try again later.",
                "reset_at": decision.reset_at,
            },
            headers={"Retry-After": str(decision.retry_after)},
        )

    ip_address = get_client_ip(request)
    user = await users_crud.get_user_by_email(db, email)

    if user is None or not verify_password(payload.password, user["password_hash"]):
        await limiter.record(email, False, ip_address)
        logger.info("auth.login_failed", extra={"email": email, "ip_address": ip_address})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Invalid credentials", "remaining": max(0, decision.remaining - 1)},
        )

    await limiter.record(email, True, ip_address)
    logger.info("auth.login_succeeded", extra={"user_id": user["id"], "tenant_id": user["tenant_id"]})
    return TokenResponse(token=session_token_for(user), user=user_out(user))


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: DatabaseAdapter = Depends(get_db)) -> RegisterResponse:
    """
    Join an existing tenant as an unverified member.
    A verification link is mailed (or logged in development).
    """
    tenant = await tenants_crud.get_tenant_by_slug(db, slugify(payload.tenant_slug))
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")

    if await users_crud.get_user_by_email(db, payload.email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")

    user_id = await users_crud.create_user(
        db,
        email=payload.email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=UserRole.MEMBER.value,
        tenant_id=tenant["id"],
        is_verified=False,
    )

    expires_delta = timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS)
    token = create_purpose_token(
        TokenType.EMAIL_VERIFICATION,
        {"sub": user_id, "email": payload.email},
        expires_delta,
    )
    await tokens_crud.store_token(
        db,
        user_id=user_id,
        token=token,
        token_type=TokenType.EMAIL_VERIFICATION.value,
        expires_at=_utcnow() + expires_delta,
    )

    email_sent = await email_service.send_verification_email(
        to=payload.email,
        first_name=payload.first_name,
        verification_link=email_service.app_link("verify-email", token),
    )

    user = await users_crud.get_user(db, user_id)
    logger.info("auth.registered", extra={"user_id": user_id, "tenant_id": tenant["id"]})
    return RegisterResponse(
        message="Registration successful. Please verify your e-mail address.",
        user=user_out(user),
        email_sent=email_sent,
    )


# =========================================================
# INVITATIONS (public side)
# =========================================================
async def _open_invitation(db: DatabaseAdapter, token: str) -> dict[str, Any]:
    token = normalize_token(token)
    try:
        decode_purpose_token(token, TokenType.INVITATION)
    except TokenError as exc:
        raise _bad_token(exc)

    invitation = await invitations_crud.get_open_invitation_by_token(db, token)
    if invitation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invitation not found, expired or already accepted",
        )

    existing = await users_crud.get_user_by_email(db, invitation["email"])
    if existing is not None:
        detail = (
            "User is already a member of this tenant"
            if existing["tenant_id"] == invitation["tenant_id"]
            else "User with this email already exists"
        )
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

    return invitation


@router.get("/verify-invitation", response_model=InvitationDetailsResponse)
async def verify_invitation(
    token: str = Query(..., min_length=1),
    db: DatabaseAdapter = Depends(get_db),
) -> InvitationDetailsResponse:
    invitation = await _open_invitation(db, token)
    return InvitationDetailsResponse(
        invitation=InvitationDetails(
            email=invitation["email"],
            first_name=invitation["first_name"],
            last_name=invitation["last_name"],
            role=invitation["role"],
            company_name=invitation["company_name"],
            tenant_slug=invitation["tenant_slug"],
            expires_at=invitation["expires_at"],
        )
    )


@router.post(
    "/accept-invitation",
    response_model=AcceptInvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def accept_invitation(
    payload: AcceptInvitationRequest,
    db: DatabaseAdapter = Depends(get_db),
) -> AcceptInvitationResponse:
    """
    Creates a verified user with the invited role and closes the invitation.
    A second acceptance of the same token finds no open invitation (404).
    """
    invitation = await _open_invitation(db, payload.token)
    tenant_id = invitation["tenant_id"]

    user_id = await users_crud.create_user(
        db,
        email=invitation["email"],
        password_hash=hash_password(payload.password),
        first_name=invitation["first_name"],
        last_name=invitation["last_name"],
        role=invitation["role"],
        tenant_id=tenant_id,
        is_verified=True,
    )
    await invitations_crud.mark_accepted(
        db,
        tenant_id=tenant_id,
        invitation_id=invitation["id"],
        user_id=user_id,
        accepted_at=_utcnow(),
    )

    email_sent = await email_service.send_welcome_email(
        to=invitation["email"],
        first_name=invitation["first_name"],
        company_name=invitation["company_name"],
    )

    user = await users_crud.get_user(db, user_id)
    tenant = await tenants_crud.get_tenant(db, tenant_id=tenant_id)
    logger.info("auth.invitation_accepted", extra={"user_id": user_id, "tenant_id": tenant_id})
    return AcceptInvitationResponse(
        message="Invitation accepted",
        token=session_token_for(user),
        user=user_out(user),
        tenant=TenantOut(**tenant),
        email_sent=email_sent,
    )


# =========================================================
# PASSWORD RESET / EMAIL VERIFICATION
# =========================================================
@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    db: DatabaseAdapter = Depends(get_db),
) -> MessageResponse:
    """Always answers the same way so account existence is not revealed."""
    user = await users_crud.get_user_by_email(db, payload.email)
    if user is None:
        logger.info("auth.password_reset_unknown_email")
        return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

    expires_delta = timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
    token = create_purpose_token(
        TokenType.PASSWORD_RESET,
        {"sub": user["id"], "email": user["email"]},
        expires_delta,
    )
    await tokens_crud.store_token(
        db,
        user_id=user["id"],
        token=token,
        token_type=TokenType.PASSWORD_RESET.value,
        expires_at=_utcnow() + expires_delta,
    )
    await email_service.send_password_reset_email(
        to=user["email"],
        first_name=user["first_name"],
        reset_link=email_service.app_link("reset-password", token),
    )
    logger.info("auth.password_reset_requested", extra={"user_id": user["id"]})
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


async def _consume_user_token(db: DatabaseAdapter, token: str, token_type: TokenType) -> dict[str, Any]:
    token = normalize_token(token)
    try:
        claims = decode_purpose_token(token, token_type)
    except TokenError as exc:
        raise _bad_token(exc)

    row = await tokens_crud.get_valid_token(db, token, token_type.value)
    if row is None or str(row["user_id"]) != str(claims.get("sub")):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token")
    return row


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    payload: ResetPasswordRequest,
    db: DatabaseAdapter = Depends(get_db),
) -> MessageResponse:
    row = await _consume_user_token(db, payload.token, TokenType.PASSWORD_RESET)
    user_id = row["user_id"]

    await users_crud.update_password(db, user_id, hash_password(payload.new_password))
    await tokens_crud.delete_token(db, row["id"])
    # any other outstanding reset links die with this one
    await tokens_crud.delete_user_tokens(db, user_id, TokenType.PASSWORD_RESET.value)

    logger.info("auth.password_reset", extra={"user_id": user_id})
    return MessageResponse(message="Password has been reset successfully")


@router.post("/verify-email", response_model=UserResponse)
async def verify_email(
    payload: VerifyEmailRequest,
    db: DatabaseAdapter = Depends(get_db),
) -> UserResponse:
    row = await _consume_user_token(db, payload.token, TokenType.EMAIL_VERIFICATION)
    user_id = row["user_id"]

    await users_crud.mark_verified(db, user_id)
    await tokens_crud.delete_token(db, row["id"])

    user = await users_crud.get_user(db, user_id)
    logger.info("auth.email_verified", extra={"user_id": user_id})
    return UserResponse(message="E-mail verified successfully", user=user_out(user))


@router.get("/me", response_model=UserResponse)
async def me(user: dict[str, Any] = Depends(get_current_user)) -> UserResponse:
    """
    Returns the current user with their tenant.
    """
    return UserResponse(user=user_out(user))
