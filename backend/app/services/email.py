"""Outgoing mail: invitations, welcome, password reset and address verification.

SMTP calls are blocking, so delivery runs in a worker thread via
asyncio.to_thread(). Without SMTP credentials in development/testing the
message is written to the log and reported as sent.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional
from urllib.parse import quote

from app.core.config import settings

logger = logging.getLogger(__name__)


def _smtp_configured() -> bool:
    return bool(settings.SMTP_USER and settings.SMTP_PASSWORD)


def app_link(path: str, token: Optional[str] = None) -> str:
    base = settings.APP_URL.rstrip("/")
    link = f"{base}/{path.lstrip('/')}"
    if token is not None:
        link += f"?token={quote(token, safe='')}"
    return link


def _build_message(to: str, subject: str, body: str, sender_name: Optional[str] = None) -> EmailMessage:
    sender = settings.SMTP_FROM or settings.SMTP_USER or "no-reply@localhost"
    msg = EmailMessage()
    msg["To"] = to
    msg["From"] = f'"{sender_name}" <{sender}>' if sender_name else sender
    msg["Subject"] = subject
    msg.set_content(body)
    return msg


def _deliver(msg: EmailMessage) -> None:
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
        smtp.starttls()
        smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(msg)


async def send_email(to: str, subject: str, body: str, *, sender_name: Optional[str] = None) -> bool:
    """Returns True when the message was delivered (or logged in development)."""
    if not _smtp_configured():
        if settings.is_dev:
            logger.info(
                "email.logged",
                extra={"to": to, "subject": subject, "body": body},
            )
            return True
        logger.warning("email.not_configured", extra={"to": to, "subject": subject})
        return False

    msg = _build_message(to, subject, body, sender_name)
    try:
        await asyncio.to_thread(_deliver, msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("email.send_failed", extra={"to": to, "subject": subject})
        return False

    logger.info("email.sent", extra={"to": to, "subject": subject})
    return True


async def send_invitation_email(
    *,
    to: str,
    first_name: str,
    company_name: str,
    invitation_link: str,
    invited_by: str,
) -> bool:
    body = (
        f"Hello {first_name}!\n\n"
        f"{invited_by} has invited you to join {company_name} on Multi-Tenant Notes.\n\n"
        f"Accept the invitation here:\n{invitation_link}\n\n"
        f"This invitation expires in {settings.INVITATION_EXPIRE_DAYS} days.\n"
    )
    return await send_email(to, f"You're invited to join {company_name}", body, sender_name=company_name)


async def send_welcome_email(*, to: str, first_name: str, company_name: str) -> bool:
    body = (
        f"Hello {first_name}!\n\n"
        f"Your account at {company_name} is ready. Sign in here:\n{app_link('')}\n"
    )
    return await send_email(to, f"Welcome to {company_name}!", body, sender_name=company_name)


async def send_password_reset_email(*, to: str, first_name: str, reset_link: str) -> bool:
    body = (
        f"Hello {first_name},\n\n"
        "We received a request to reset your password. Choose a new one here:\n"
        f"{reset_link}\n\n"
        f"The link expires in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes. "
        "If you did not ask for this, ignore this message.\n"
    )
    return await send_email(to, "Reset your password", body)


async def send_verification_email(*, to: str, first_name: str, verification_link: str) -> bool:
    body = (
        f"Hello {first_name},\n\n"
        f"Confirm your e-mail address:\n{verification_link}\n\n"
        f"The link expires in {settings.EMAIL_VERIFICATION_EXPIRE_HOURS} hours.\n"
    )
    return await send_email(to, "Verify your e-mail address", body)
