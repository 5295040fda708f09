"""Login throttling backed by the login_attempts table.

Checking and recording are separate calls: the login handler asks first,
authenticates, then records the outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import Request

from app.core.config import settings
from app.db.adapter import DatabaseAdapter

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RateLimitConfig:
    window: timedelta = field(default_factory=lambda: timedelta(minutes=settings.LOGIN_WINDOW_MINUTES))
    max_attempts: int = field(default_factory=lambda: settings.LOGIN_MAX_ATTEMPTS)
    block_duration: timedelta = field(default_factory=lambda: timedelta(minutes=settings.LOGIN_BLOCK_MINUTES))


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    # UNIX epoch seconds
    reset_at: int
    limit: int

    @property
    def retry_after(self) -> int:
        return max(0, self.reset_at - int(_utcnow().timestamp()))


class LoginRateLimiter:
    def __init__(
        self,
        db: DatabaseAdapter,
        config: Optional[RateLimitConfig] = None,
        clock: Clock = _utcnow,
    ) -> None:
        self.db = db
        self.config = config or RateLimitConfig()
        self.clock = clock

    async def check(self, identifier: str) -> RateLimitResult:
        cfg = self.config
        now = self.clock()

        try:
            failed = await self.db.get_one(
                "SELECT COUNT(*) AS count FROM login_attempts "
                "WHERE email = ? AND success = ? AND created_at > ?",
                (identifier, False, now - cfg.block_duration),
            )
            if int(failed["count"] if failed else 0) >= cfg.max_attempts:
                logger.warning("rate_limit.blocked", extra={"identifier": identifier})
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=int((now + cfg.block_duration).timestamp()),
                    limit=cfg.max_attempts,
                )

            recent = await self.db.get_one(
                "SELECT COUNT(*) AS count FROM login_attempts WHERE email = ? AND created_at > ?",
                (identifier, now - cfg.window),
            )
        except Exception:
            # fail open: an unavailable store must not lock everybody out
            logger.exception("rate_limit.check_failed", extra={"identifier": identifier})
            return RateLimitResult(
                allowed=True,
                remaining=cfg.max_attempts,
                reset_at=int((now + cfg.window).timestamp()),
                limit=cfg.max_attempts,
            )

        remaining = max(0, cfg.max_attempts - int(recent["count"] if recent else 0))
        return RateLimitResult(
            allowed=remaining > 0,
            remaining=remaining,
            reset_at=int((now + cfg.window).timestamp()),
            limit=cfg.max_attempts,
        )

    async def record(self, identifier: str, success: bool, ip_address: str = "unknown") -> None:
        try:
            await self.db.execute(
                "INSERT INTO login_attempts (email, ip_address, success, created_at) VALUES (?, ?, ?, ?)",
                (identifier, ip_address or "unknown", bool(success), self.clock()),
            )
        except Exception:
            logger.exception("rate_limit.record_failed", extra={"identifier": identifier})


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"
